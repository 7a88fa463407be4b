"""
Per-coil table of harmonic shape functions for Rabin's method.

The window is modeled as a cylinder of height `L` (the effective window height)
with the core leg as an infinitely-permeable boundary at `r = rc`. The current
density of each coil is expanded in `cos(m z)`, `m = n pi / L`, and for each
harmonic the vector potential takes the form (DelVecchio 3e, eqs. 9.63-9.67)

```
    r < r1 (core gap):   A_n = (mu0 J_n / m^2) (C_n I1(mr) + D_n K1(mr))
    r1 < r < r2 (coil):  A_n = (mu0 J_n / m^2) (E_n I1(mr) + F_n K1(mr) - (pi/2) L1(mr))
    r > r2 (tank side):  A_n = (mu0 J_n / m^2) G_n K1(mr)
```

with `I1`, `K1` the modified Bessel functions and `L1` the modified Struve function.
The shape functions are tabulated here for three radial regions of each coil,
as ScaledNumbers, since each of them spans hundreds of orders of magnitude over
the harmonics in use.
"""

import logging
import threading
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from winding_inductance.config import DEFAULT_SETTINGS, Settings
from winding_inductance.scaled import ScaledNumber
from winding_inductance.special import (
    HALF_PI,
    i0_over_k0,
    integral_t_i1,
    integral_t_k1,
    integral_t_l1,
)

logger = logging.getLogger(__name__)


class Region(IntEnum):
    """Radial regions around a coil"""

    CORE_GAP = 0
    """Core leg to coil inner radius"""

    WINDING = 1
    """Coil inner radius to coil outer radius"""

    TANK_GAP = 2
    """Coil outer radius to the tank wall"""


@dataclass(frozen=True)
class ShapeFunctions:
    """Shape functions for one harmonic over one radial region `[r_a, r_b]`"""

    n: int
    """Harmonic index, >= 1"""

    m: float
    """[1/m] spatial frequency `n pi / L`"""

    x1: float
    """[dimensionless] `m r_a`"""

    x2: float
    """[dimensionless] `m r_b`"""

    c: ScaledNumber
    """`int_{x1}^{x2} t K1(t) dt`"""

    d: ScaledNumber
    """`(I0(xc) / K0(xc)) C`, with `xc` at the core radius"""

    e: ScaledNumber
    """`int_0^{x2} t K1(t) dt`"""

    f: ScaledNumber
    """`D - int_0^{x1} t I1(t) dt`"""

    g: ScaledNumber
    """`D + int_{x1}^{x2} t I1(t) dt`"""

    int_i1: ScaledNumber
    """`int_{x1}^{x2} t I1(t) dt`"""

    int_l1: ScaledNumber
    """`int_{x1}^{x2} t L1(t) dt`"""

    def self_kernel(self) -> ScaledNumber:
        """
        Radial integral of the in-winding vector potential shape, weighted by `r`,
        for the winding region: `E int_i1 + F C - (pi/2) int_l1`.

        The leading exponential terms of `E int_i1` and `(pi/2) int_l1` are bit-identical
        and cancel exactly when the result is reduced.
        """
        return self.e * self.int_i1 + self.f * self.c - HALF_PI * self.int_l1


def _shape_functions(
    n: int, m: float, core_radius: float, ra: float, rb: float, settings: Settings
) -> ShapeFunctions:
    x1 = m * ra
    x2 = m * rb
    xc = m * core_radius
    q = settings.quadrature

    int_i1 = integral_t_i1(x1, x2, q)
    c = integral_t_k1(x1, x2, q)
    d = i0_over_k0(xc) * c

    return ShapeFunctions(
        n=n,
        m=m,
        x1=x1,
        x2=x2,
        c=c,
        d=d,
        e=integral_t_k1(0.0, x2, q),
        f=d - integral_t_i1(0.0, x1, q),
        g=d + int_i1,
        int_i1=int_i1,
        int_l1=integral_t_l1(x1, x2, q),
    )


class HarmonicCoefficients:
    """
    Shape functions of one coil, indexed `[region, n]` for `n = 1..n_harmonics`.

    Computed once per coil; read-only afterward. The winding-region self kernels
    are formed lazily, once, on first use.
    """

    def __init__(
        self,
        table: dict[Region, tuple[ShapeFunctions, ...]],
        window_height: float,
        bounds: dict[Region, tuple[float, float]],
    ):
        self._table = table
        self.window_height = window_height
        """[m] effective window height used for the spatial frequencies"""
        self.bounds = bounds
        """[m] radial extent of each region"""
        self._kernels: tuple[ScaledNumber, ...] | None = None
        self._kernel_lock = threading.Lock()

    @classmethod
    def compute(
        cls,
        core_radius: float,
        inner_radius: float,
        outer_radius: float,
        window_height: float,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> "HarmonicCoefficients":
        """
        Tabulate shape functions for all three regions of a coil.

        Args:
            core_radius: [m] radius of the core leg
            inner_radius: [m] coil inner radius
            outer_radius: [m] coil outer radius
            window_height: [m] effective window height
            settings: harmonic count, tank clearance and quadrature error budget

        Raises:
            QuadratureError: If an auxiliary integral does not converge in strict mode

        Returns:
            The populated table
        """
        assert window_height > 0.0, "Window height must be positive"
        assert inner_radius < outer_radius, "Coil radial build must be positive"

        bounds = {
            # A coil that overlaps the core leg gets an empty core gap
            Region.CORE_GAP: (min(core_radius, inner_radius), inner_radius),
            Region.WINDING: (inner_radius, outer_radius),
            Region.TANK_GAP: (outer_radius, outer_radius + settings.tank_clearance),
        }

        ns = np.arange(1, settings.n_harmonics + 1)
        ms = ns * np.pi / window_height  # [1/m]
        table = {
            region: tuple(
                _shape_functions(int(n), float(m), core_radius, ra, rb, settings)
                for n, m in zip(ns, ms)
            )
            for region, (ra, rb) in bounds.items()
        }

        logger.debug(
            f"Tabulated {settings.n_harmonics} harmonics for coil r=[{inner_radius}, {outer_radius}] m"
        )
        return cls(table, window_height, bounds)

    @property
    def n_harmonics(self) -> int:
        return len(self._table[Region.WINDING])

    def __getitem__(self, key: tuple[Region, int]) -> ShapeFunctions:
        region, n = key
        if not 1 <= n <= self.n_harmonics:
            raise IndexError(f"Harmonic {n} outside 1..{self.n_harmonics}")
        return self._table[Region(region)][n - 1]

    def winding(self, n: int) -> ShapeFunctions:
        """Shorthand for `self[Region.WINDING, n]`"""
        return self[Region.WINDING, n]

    def self_kernel(self, n: int) -> ScaledNumber:
        """Unreduced winding self kernel for harmonic `n`"""
        if self._kernels is None:
            with self._kernel_lock:
                if self._kernels is None:
                    self._kernels = tuple(
                        sf.self_kernel() for sf in self._table[Region.WINDING]
                    )
        return self._kernels[n - 1]
