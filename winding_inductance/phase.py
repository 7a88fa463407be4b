"""
Inductance matrix, stored energy and leakage reactance of one transformer phase.
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import numpy as np
from numpy.typing import NDArray

from winding_inductance.coils import Coil
from winding_inductance.config import DEFAULT_SETTINGS
from winding_inductance.core import Core
from winding_inductance.matrix import LinalgStatus, Matrix
from winding_inductance.sections import Section, SectionIdAllocator
from winding_inductance.utils import _progressbar

logger = logging.getLogger(__name__)

_VALIDATION_POOL = ThreadPoolExecutor(
    max_workers=1, thread_name_prefix="winding_inductance_validation"
)
"""Positive-definite checks run here, one at a time, off the calling thread"""


def stored_energy(inductance: Matrix | NDArray, currents: NDArray) -> float:
    """
    DelVecchio 3e, eq. 4.20: `W = 0.5 sum_i L_i I_i^2 + sum_{i<j} M_ij I_i I_j`,
    i.e. `0.5 I^T M I` for a symmetric inductance matrix.

    Args:
        inductance: [H] symmetric inductance matrix
        currents: [A] signed current in each row's section; zero excludes a section

    Returns:
        [J] stored magnetic energy
    """
    m = inductance.to_array() if isinstance(inductance, Matrix) else np.asarray(inductance)
    currents = np.asarray(currents, dtype=float)
    assert m.shape == (currents.size, currents.size), "Current vector does not match matrix"
    return float(0.5 * currents @ m @ currents)


def _validate(matrix: Matrix) -> tuple[LinalgStatus, Matrix | None]:
    factor = matrix.copy()
    status = factor.test_positive_definite(overwrite=True)
    if status:
        logger.info("Inductance matrix is positive-definite")
        return status, factor
    logger.warning(f"Inductance matrix is not positive-definite: {status.message}")
    return status, None


class Phase:
    """
    All coils wound on one core leg.

    The inductance matrix has one row per section, in coil order and then
    bottom-to-top within each coil. It is built on first use and cached until
    `invalidate()` is called (or the sections are changed through this object).
    Each build is checked for positive-definiteness in the background.
    """

    def __init__(self, core: Core, coils: list[Coil]):
        """
        Args:
            core: The core leg shared by all coils
            coils: Coils in matrix order

        Raises:
            ValueError: If a coil is wound on a different core, or if coil or section ids repeat
        """
        coil_ids = set()
        for coil in coils:
            if coil.core != core:
                raise ValueError(f"Coil {coil.name} is wound on a different core")
            if coil.coil_id in coil_ids:
                raise ValueError(f"Duplicate coil id {coil.coil_id}")
            coil_ids.add(coil.coil_id)

        for i, a in enumerate(coils):
            for b in coils[i + 1 :]:
                lo, hi = sorted((a, b), key=lambda c: c.inner_radius)
                if (
                    abs(lo.inner_radius - hi.inner_radius) >= lo.settings.radial_tolerance
                    and hi.inner_radius < lo.outer_radius
                ):
                    logger.warning(f"Coils {lo.name} and {hi.name} overlap radially")

        self.core = core
        self.coils = list(coils)

        # Any new sections made through this phase get ids above the existing ones
        existing = [s.section_id for s in self.sections]
        self.ids = SectionIdAllocator(start=max(existing, default=0) + 1)
        for section_id in existing:
            self.ids.claim(section_id)

        self._lock = threading.RLock()
        self._dirty = True
        self._matrix: Matrix | None = None
        self._rows: list[Section] = []
        self._section_index: dict[int, int] = {}
        self._validation: Future | None = None

    @property
    def sections(self) -> list[Section]:
        """All sections, in matrix row order"""
        return [s for coil in self.coils for s in coil.sections]

    @property
    def dirty(self) -> bool:
        """Whether the cached inductance matrix is out of date"""
        return self._dirty

    def invalidate(self) -> None:
        """Drop the cached matrix, index and factor; the next access rebuilds"""
        with self._lock:
            self._dirty = True
            self._matrix = None
            self._validation = None

    def _reindex(self) -> None:
        rows = self.sections
        index = {s.section_id: i for i, s in enumerate(rows)}
        if len(index) != len(rows):
            raise ValueError(
                "Section ids repeat across the phase; split through `Phase.split_sections`"
            )
        self._rows = rows
        self._section_index = index

    @property
    def section_index(self) -> dict[int, int]:
        """Section id -> matrix row"""
        with self._lock:
            if self._dirty:
                self._reindex()
            return dict(self._section_index)

    def section_from_matrix_row(self, row: int) -> Section | None:
        """
        The section behind a matrix row.

        Returns:
            The section, or None (with a logged error) if the row is out of range
        """
        with self._lock:
            if self._dirty:
                self._reindex()
            if not 0 <= row < len(self._rows):
                logger.error(f"Matrix row {row} out of range for {len(self._rows)} sections")
                return None
            return self._rows[row]

    def rebuild(self, show_prog: bool = False) -> Matrix:
        """
        Evaluate every self- and mutual-inductance and cache the result.

        Each unordered pair of sections is evaluated once and written to both
        off-diagonal entries, so the matrix is exactly symmetric.

        Args:
            show_prog: Display a terminal progressbar

        Returns:
            [H] the new inductance matrix
        """
        with self._lock:
            self._reindex()
            rows = self._rows
            n = len(rows)
            matrix = Matrix(n, n)

            logger.info(f"Building {n}x{n} inductance matrix for {len(self.coils)} coils")
            n_negative = 0
            items = _progressbar(range(n), "sections") if show_prog else range(n)
            for i in items:
                a = rows[i]
                matrix[i, i] = a.self_inductance()
                logger.debug(f"L[{a.section_id}] = {matrix[i, i]} H")
                for j in range(i + 1, n):
                    b = rows[j]
                    mutual = a.mutual_inductance_to(b)
                    if mutual < 0.0:
                        n_negative += 1
                    matrix[i, j] = mutual
                    matrix[j, i] = mutual
                    logger.debug(f"M[{a.section_id}, {b.section_id}] = {mutual} H")

            logger.info(f"Number of negative mutual inductances: {n_negative}")

            self._matrix = matrix
            self._dirty = False
            self._validation = _VALIDATION_POOL.submit(_validate, matrix.copy())
            return matrix

    def recalculate_inductance_matrix(self, show_prog: bool = False) -> Matrix:
        """Alias for `rebuild()`"""
        return self.rebuild(show_prog=show_prog)

    @property
    def inductance_matrix(self) -> Matrix:
        """[H] cached inductance matrix, rebuilt first if out of date"""
        with self._lock:
            if self._dirty or self._matrix is None:
                return self.rebuild()
            return self._matrix

    def wait_for_validation(self, timeout: float | None = None) -> LinalgStatus:
        """
        Block until the background positive-definite check of the current matrix finishes.

        Args:
            timeout: [s] give up after this long; None waits indefinitely

        Returns:
            The outcome of the Cholesky factorization
        """
        future = self._validation
        if future is None:
            return LinalgStatus(False, -1, "No inductance matrix has been built")
        try:
            status, _ = future.result(timeout=timeout)
        except FutureTimeoutError:
            return LinalgStatus(False, -1, "Validation still running")
        return status

    @property
    def cholesky_factor(self) -> Matrix | None:
        """
        Cholesky factor of the current matrix, or None if the background check
        has not finished, or found the matrix not positive-definite.
        """
        future = self._validation
        if future is None or not future.done():
            return None
        _, factor = future.result()
        return factor

    def split_sections(self, coil: Coil, count: int, gap: float = 0.0) -> list[Section]:
        """
        Replace each section of `coil` with `count` children separated by `gap`.

        Returns:
            The new sections
        """
        if coil not in self.coils:
            raise ValueError(f"Coil {coil.name} is not part of this phase")
        children = coil.split_sections(count, gap, ids=self.ids)
        self.invalidate()
        return children

    def currents(self) -> NDArray:
        """[A] signed rated current of each row's section; direction 0 gives 0"""
        with self._lock:
            if self._dirty:
                self._reindex()
            return np.array(
                [s.parent.current_direction * s.parent.current for s in self._rows]
            )

    def energy(self) -> float:
        """[J] stored magnetic energy with every coil at its rated current and direction"""
        matrix = self.inductance_matrix
        return stored_energy(matrix, self.currents())

    def leakage_inductance(self, base_current: float) -> float:
        """[H] `2 W / I_b^2`, referred to the coil whose rated current is `base_current`"""
        return 2.0 * self.energy() / base_current**2

    @property
    def frequency(self) -> float:
        """[Hz] system frequency from the coils' settings"""
        if not self.coils:
            return DEFAULT_SETTINGS.frequency
        return self.coils[0].settings.frequency

    def leakage_reactance(self, base_current: float, frequency: float | None = None) -> float:
        """[ohm] `2 pi f L_leak`, at `self.frequency` unless `frequency` is given"""
        if frequency is None:
            frequency = self.frequency
        return 2.0 * math.pi * frequency * self.leakage_inductance(base_current)

    def leakage_reactance_pu(
        self, base_va: float, base_current: float, frequency: float | None = None
    ) -> float:
        """[pu] `X I_b^2 / VA`"""
        return self.leakage_reactance(base_current, frequency) * base_current**2 / base_va
