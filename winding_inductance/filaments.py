"""
Air-core filament model of the same sections, as an independent cross-check.

Each section is discretized into a grid of circular filaments carrying equal
shares of its turns. Mutual inductances between sections come from the filament
sums; self-inductances sum the filament-filament flux with the singular
self-terms replaced by the self-inductance of each filament's rectangular cell.
There is no core and no window in this model, so it agrees with the harmonic
solution only to the degree that the leakage field is insensitive to the iron.
"""

import logging
from itertools import combinations

import numpy as np
from numpy.typing import NDArray

from cfsem import (
    flux_circular_filament,
    mutual_inductance_of_cylindrical_coils,
    self_inductance_lyle6,
)

from winding_inductance.sections import Section
from winding_inductance.utils import _progressbar

logger = logging.getLogger(__name__)


def section_filaments(section: Section, nr: int = 4, nz: int = 20) -> NDArray:
    """
    Discretize a section's winding cross-section into `nr x nz` filaments.

    Args:
        section: An attached section
        nr: Number of filaments across the radial build
        nz: Number of filaments along the section height

    Returns:
        (3 x nr*nz) array of filament (r, z, n) as stacked rows
    """
    coil = section.parent
    if coil is None:
        raise ValueError(f"Section {section.section_id} is not attached to a coil")

    dr = coil.radial_build / nr  # [m]
    dz = section.height / nz  # [m]
    rs = coil.inner_radius + dr * (np.arange(nr) + 0.5)  # [m]
    zs = section.z_min + dz * (np.arange(nz) + 0.5)  # [m]
    rmesh, zmesh = np.meshgrid(rs, zs, indexing="ij")
    ns = np.full(rmesh.size, section.turns / (nr * nz))  # [dimensionless]

    return np.vstack((rmesh.flatten(), zmesh.flatten(), ns))


def _section_self_inductance(section: Section, fils: NDArray, nr: int, nz: int) -> float:
    coil = section.parent
    w = coil.radial_build / nr  # [m] cell width
    h = section.height / nz  # [m] cell height
    rs, zs, ns = fils

    self_inductance = 0.0  # [H]
    for i in range(rs.size):
        contribs = ns * flux_circular_filament(
            np.array([ns[i]]),  # Unit current multiplied by number of turns
            np.array([rs[i]]),
            np.array([zs[i]]),
            rs,
            zs,
        )
        # Replace the singular self-contribution
        contribs[i] = self_inductance_lyle6(rs[i], w, h, ns[i])
        self_inductance += float(np.sum(contribs))

    return self_inductance


def air_core_inductance_matrix(
    sections: list[Section], nr: int = 4, nz: int = 20, show_prog: bool = False
) -> NDArray:
    """
    Inductance matrix of the given sections, ignoring the core.

    Args:
        sections: Attached sections, in matrix row order
        nr: Number of filaments across each coil's radial build
        nz: Number of filaments along each section
        show_prog: Display a terminal progressbar

    Returns:
        [H] symmetric (n x n) inductance matrix
    """
    n = len(sections)
    fils = [section_filaments(s, nr, nz) for s in sections]
    m = np.zeros((n, n))  # [H]

    items = list(range(n))
    if show_prog:
        items = _progressbar(items, "Air-core self inductances")
    for i in items:
        m[i, i] = _section_self_inductance(sections[i], fils[i], nr, nz)

    for i, j in combinations(range(n), 2):
        m[i, j] = mutual_inductance_of_cylindrical_coils(fils[i], fils[j])
        m[j, i] = m[i, j]  # Mutual inductance is reflexive

    logger.debug(f"Air-core inductance matrix for {n} sections with {nr}x{nz} filaments each")
    return m  # [H]
