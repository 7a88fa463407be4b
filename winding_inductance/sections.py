from __future__ import annotations

import logging
import math
import sys
import threading
import weakref
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray
from scipy.constants import mu_0

from winding_inductance.parallel import harmonic_sum
from winding_inductance.scaled import ScaledNumber

if TYPE_CHECKING:
    from winding_inductance.coils import Coil

logger = logging.getLogger(__name__)

NOT_COMPUTABLE = -sys.float_info.max
"""Sentinel returned by inductance calcs on a section with no parent coil"""


class SectionIdAllocator:
    """Hands out unique section ids; one allocator per phase (or per test)"""

    def __init__(self, start: int = 1):
        self._next = start
        self._used: set[int] = set()
        self._lock = threading.Lock()

    def next_id(self) -> int:
        """The next unused id"""
        with self._lock:
            while self._next in self._used:
                self._next += 1
            section_id = self._next
            self._used.add(section_id)
            self._next += 1
            return section_id

    def claim(self, section_id: int) -> int:
        """
        Reserve an explicitly chosen id.

        Raises:
            ValueError: If the id was already handed out
        """
        with self._lock:
            if section_id in self._used:
                raise ValueError(f"Section id {section_id} is already in use")
            self._used.add(section_id)
            return section_id


class Section:
    """
    An axial slice `[z_min, z_max]` of a coil, carrying `turns` turns at the coil's current.

    `z` is measured from the bottom yoke. Sections hold a weak reference to the coil that
    owns them; the harmonic spectrum of the current density is cached once attached.
    """

    def __init__(self, section_id: int, z_min: float, z_max: float, turns: float):
        if not z_max > z_min:
            raise ValueError(f"Section {section_id} has z_max={z_max} <= z_min={z_min}")
        if z_min < 0.0:
            raise ValueError(f"Section {section_id} extends below the yoke: z_min={z_min}")
        if not turns > 0.0:
            raise ValueError(f"Section {section_id} must have positive turns, got {turns}")

        self.section_id = section_id
        self.z_min = z_min  # [m]
        self.z_max = z_max  # [m]
        self.turns = turns  # [dimensionless]
        self._parent: weakref.ref | None = None
        self._jn_per_amp: NDArray | None = None

    def __repr__(self) -> str:
        return (
            f"Section(section_id={self.section_id}, z_min={self.z_min}, "
            f"z_max={self.z_max}, turns={self.turns})"
        )

    @property
    def height(self) -> float:
        """[m]"""
        return self.z_max - self.z_min

    @property
    def parent(self) -> Coil | None:
        """The owning coil, if it is still alive"""
        if self._parent is None:
            return None
        return self._parent()

    @property
    def initialized(self) -> bool:
        return self._jn_per_amp is not None and self.parent is not None

    def attach(self, coil: Coil) -> None:
        """Set the owning coil and cache the harmonic spectrum against its geometry"""
        self._parent = weakref.ref(coil)
        self.initialize_harmonics()

    def initialize_harmonics(self) -> None:
        """
        Cache the current-density spectrum per ampere of coil current, for `n = 0..N`.

        Raises:
            ValueError: If the section has no parent coil
        """
        coil = self.parent
        if coil is None:
            raise ValueError(f"Section {self.section_id} is not attached to a coil")

        L = coil.core.effective_window_height  # [m]
        j_per_amp = self.turns / (coil.radial_build * self.height)  # [A/m^2 per A]
        ns = np.arange(0, coil.settings.n_harmonics + 1, dtype=float)

        jn = np.empty_like(ns)
        jn[0] = j_per_amp * self.height / L
        k = ns[1:] * np.pi / L
        jn[1:] = (2.0 * j_per_amp / (ns[1:] * np.pi)) * (
            np.sin(k * self.z_max) - np.sin(k * self.z_min)
        )
        self._jn_per_amp = jn

    @property
    def current_density(self) -> float:
        """[A/m^2] at the parent coil's rated current, NaN if detached"""
        coil = self._require_parent("current density")
        if coil is None:
            return math.nan
        return coil.current * self.turns / (coil.radial_build * self.height)

    def jn(self, n: int) -> float:
        """
        [A/m^2] Fourier coefficient of the current density for harmonic `n`
        at the parent coil's rated current, NaN if detached.
        """
        coil = self._require_parent("harmonic current density")
        if coil is None:
            return math.nan
        return coil.current * float(self._jn_per_amp[n])

    def jn_per_amp(self, n: int) -> float:
        """[A/m^2 per A] Fourier coefficient of the current density per ampere of coil current"""
        if self._jn_per_amp is None:
            raise ValueError(f"Section {self.section_id} has no harmonic spectrum")
        return float(self._jn_per_amp[n])

    def _require_parent(self, what: str) -> Coil | None:
        coil = self.parent
        if coil is None or self._jn_per_amp is None:
            logger.error(f"Cannot compute {what} of section {self.section_id}: no parent coil")
            return None
        return coil

    def self_inductance(self) -> float:
        """
        Self-inductance by Rabin's method (DelVecchio 3e, eq. 9.78).

        Returns:
            [H] self-inductance, or NOT_COMPUTABLE if the section is detached
        """
        coil = self._require_parent("self-inductance")
        if coil is None:
            return NOT_COMPUTABLE

        L = coil.core.effective_window_height  # [m]
        r1, r2 = coil.inner_radius, coil.outer_radius  # [m]
        coeffs = coil.coefficients

        uniform = (
            math.pi * mu_0 * self.turns**2 / (6.0 * L) * ((r2 + r1) ** 2 + 2.0 * r1**2)
        )

        def term(n: int) -> ScaledNumber | None:
            j = self._jn_per_amp[n]
            if j == 0.0:
                return None
            m = coeffs.winding(n).m
            weight = ScaledNumber.from_term(2.0 * math.log(abs(j)) - 4.0 * math.log(m), 1.0)
            return weight * coeffs.self_kernel(n)

        series = harmonic_sum(
            term, range(1, coeffs.n_harmonics + 1), coil.settings.max_workers
        ).to_float()

        return uniform + math.pi * mu_0 * L * series

    def mutual_inductance_to(self, other: Section) -> float:
        """
        Mutual inductance by Rabin's method (DelVecchio 3e, eqs. 9.79-9.80).

        The pair is put in a canonical order (inner radius, then section id) before
        evaluating, so that `a.mutual_inductance_to(b)` and `b.mutual_inductance_to(a)`
        follow the same path. Sections on coils with the same inner radius are treated
        as coaxial and share one set of shape functions; otherwise the flux of the
        inner coil is linked through the outer.

        Returns:
            [H] mutual inductance, or NOT_COMPUTABLE if either section is detached
        """
        a, b = sorted(
            (self, other),
            key=lambda s: (
                s.parent.inner_radius if s.parent is not None else -math.inf,
                s.section_id,
            ),
        )
        coil_a = a._require_parent("mutual inductance")
        coil_b = b._require_parent("mutual inductance")
        if coil_a is None or coil_b is None:
            return NOT_COMPUTABLE

        L = coil_a.core.effective_window_height  # [m]
        r1, r2 = coil_a.inner_radius, coil_a.outer_radius  # [m]
        coeffs_a = coil_a.coefficients
        coeffs_b = coil_b.coefficients
        coaxial = abs(coil_a.inner_radius - coil_b.inner_radius) < coil_a.settings.radial_tolerance

        if coaxial:
            uniform = (
                math.pi * mu_0 * a.turns * b.turns / (6.0 * L)
                * ((r2 + r1) ** 2 + 2.0 * r1**2)
            )

            def kernel(n: int) -> ScaledNumber:
                return coeffs_a.self_kernel(n)

        else:
            uniform = (
                math.pi * mu_0 * a.turns * b.turns / (3.0 * L)
                * (r1**2 + r1 * r2 + r2**2)
            )

            def kernel(n: int) -> ScaledNumber:
                inner = coeffs_a.winding(n)
                outer = coeffs_b.winding(n)
                return outer.c * inner.int_i1 + outer.d * inner.c

        def term(n: int) -> ScaledNumber | None:
            ja = a._jn_per_amp[n]
            jb = b._jn_per_amp[n]
            if ja == 0.0 or jb == 0.0:
                return None
            m = coeffs_a.winding(n).m
            weight = ScaledNumber.from_term(
                math.log(abs(ja)) + math.log(abs(jb)) - 4.0 * math.log(m),
                math.copysign(1.0, ja * jb),
            )
            return weight * kernel(n)

        series = harmonic_sum(
            term, range(1, coeffs_a.n_harmonics + 1), coil_a.settings.max_workers
        ).to_float()

        return uniform + math.pi * mu_0 * L * series

    def split(self, count: int, gap: float = 0.0, *, ids: SectionIdAllocator) -> list[Section]:
        """
        Divide into `count` equal sections separated by `gap`, turns shared equally.

        The new sections get fresh ids and, if this section is attached, the same parent.
        This section itself is not modified.

        Args:
            count: number of new sections, >= 1
            gap: [m] axial clearance between adjacent new sections
            ids: source of fresh ids, shared by every section of the phase

        Raises:
            ValueError: If the gaps leave no room for the new sections

        Returns:
            New sections, bottom to top
        """
        if count < 1:
            raise ValueError(f"Cannot split into {count} sections")
        if gap < 0.0:
            raise ValueError(f"Gap must not be negative, got {gap}")

        height = (self.height - (count - 1) * gap) / count  # [m]
        if not height > 0.0:
            raise ValueError(
                f"Section {self.section_id} of height {self.height} m cannot hold "
                f"{count} sections with {gap} m gaps"
            )

        coil = self.parent
        children = []
        for i in range(count):
            z_min = self.z_min + i * (height + gap)
            z_max = self.z_max if i == count - 1 else z_min + height
            child = Section(ids.next_id(), z_min, z_max, self.turns / count)
            if coil is not None:
                child.attach(coil)
            children.append(child)

        logger.debug(
            f"Split section {self.section_id} into {[c.section_id for c in children]}"
        )
        return children
