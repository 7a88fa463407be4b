import logging
import math
from functools import cached_property

from scipy.constants import mu_0

from winding_inductance.config import DEFAULT_SETTINGS, Settings
from winding_inductance.core import Core
from winding_inductance.harmonics import HarmonicCoefficients, Region
from winding_inductance.parallel import harmonic_sum
from winding_inductance.scaled import ScaledNumber
from winding_inductance.sections import Section, SectionIdAllocator
from winding_inductance.special import HALF_PI, i1_scaled, k1_scaled, l1_scaled

logger = logging.getLogger(__name__)


class Coil:
    """
    A cylindrical winding on the core leg, made of one or more axial sections.

    The harmonic shape functions depend only on the coil's radii and the core,
    so they are tabulated once here and shared by every section of the coil.
    """

    def __init__(
        self,
        coil_id: int,
        name: str,
        current_direction: int,
        inner_radius: float,
        outer_radius: float,
        current: float,
        core: Core,
        sections: list[Section],
        settings: Settings = DEFAULT_SETTINGS,
    ):
        """
        Args:
            coil_id: Identifier, unique within a phase
            name: Human-readable label
            current_direction: +1 or -1 for the sense of the current, 0 to leave
                the coil out of energy calculations
            inner_radius: [m]
            outer_radius: [m]
            current: [A] rated current
            core: Core leg the coil is wound on
            sections: Axial sections; at least one
            settings: Harmonic count, tank clearance and quadrature settings

        Raises:
            ValueError: On invalid geometry, direction, or current
            QuadratureError: If a shape function cannot be evaluated in strict mode
        """
        if current_direction not in (-1, 0, 1):
            raise ValueError(f"Current direction must be -1, 0, or 1, got {current_direction}")
        if not 0.0 < inner_radius < outer_radius:
            raise ValueError(
                f"Coil {name} needs 0 < inner_radius < outer_radius, got {inner_radius}, {outer_radius}"
            )
        if current < 0.0:
            raise ValueError(f"Coil {name} current must not be negative, got {current}")
        if not sections:
            raise ValueError(f"Coil {name} has no sections")
        if inner_radius < core.radius:
            logger.warning(
                f"Coil {name} inner radius {inner_radius} m is inside the core leg (radius {core.radius} m)"
            )

        self.coil_id = coil_id
        self.name = name
        self.current_direction = current_direction
        self.inner_radius = inner_radius  # [m]
        self.outer_radius = outer_radius  # [m]
        self.current = current  # [A]
        self.core = core
        self.settings = settings

        self.coefficients = HarmonicCoefficients.compute(
            core.radius,
            inner_radius,
            outer_radius,
            core.effective_window_height,
            settings,
        )

        self.sections: list[Section] = []
        self.replace_sections(sections)

    def __repr__(self) -> str:
        return (
            f"Coil(coil_id={self.coil_id}, name={self.name!r}, "
            f"r=[{self.inner_radius}, {self.outer_radius}], "
            f"current={self.current}, sections={len(self.sections)})"
        )

    @property
    def radial_build(self) -> float:
        """[m]"""
        return self.outer_radius - self.inner_radius

    @property
    def mean_radius(self) -> float:
        """[m]"""
        return 0.5 * (self.inner_radius + self.outer_radius)

    @property
    def turns(self) -> float:
        """[dimensionless] total over all sections"""
        return sum(s.turns for s in self.sections)

    def replace_sections(self, sections: list[Section]) -> None:
        """Take ownership of a new set of sections, sorted bottom to top"""
        sections = sorted(sections, key=lambda s: s.z_min)
        for lower, upper in zip(sections[:-1], sections[1:]):
            if upper.z_min < lower.z_max:
                logger.warning(
                    f"Coil {self.name}: sections {lower.section_id} and {upper.section_id} overlap"
                )
        if sections and sections[-1].z_max > self.core.real_window_height:
            logger.warning(
                f"Coil {self.name} extends above the real window height "
                f"({sections[-1].z_max} > {self.core.real_window_height} m)"
            )
        for s in sections:
            s.attach(self)
        self.sections = sections
        self.__dict__.pop("current_density_harmonics", None)

    def split_sections(
        self, count: int, gap: float = 0.0, *, ids: SectionIdAllocator
    ) -> list[Section]:
        """
        Replace every section with `count` equal children separated by `gap`.

        Args:
            count: number of children per section
            gap: [m] axial clearance between adjacent children
            ids: allocator that knows every section id in use alongside this coil

        Returns:
            The new sections
        """
        children = [child for s in self.sections for child in s.split(count, gap, ids=ids)]
        self.replace_sections(children)
        return children

    @cached_property
    def current_density_harmonics(self) -> list[float]:
        """[A/m^2] Fourier coefficients of the whole coil's current density, `n = 0..N`"""
        return [
            self.current * sum(s.jn_per_amp(n) for s in self.sections)
            for n in range(self.coefficients.n_harmonics + 1)
        ]

    def vector_potential(self, r: float, z: float) -> float:
        """
        Azimuthal vector potential produced by this coil at rated current.

        The uniform (`n = 0`) part is the field of an infinitely long winding;
        the harmonics use this coil's winding-region shape functions in the
        closed form of the region containing `r`.

        Args:
            r: [m] radius, at or outside the core leg
            z: [m] height above the bottom yoke

        Raises:
            ValueError: If `r` lies inside the core leg

        Returns:
            [Wb/m] `A_phi(r, z)`
        """
        if r < self.core.radius:
            raise ValueError(f"r={r} m is inside the core leg (radius {self.core.radius} m)")

        jn = self.current_density_harmonics
        r1, r2 = self.inner_radius, self.outer_radius
        coeffs = self.coefficients
        q = self.settings.quadrature

        # Flux of the n=0 field inside radius r, divided by 2 pi r
        b_inner = mu_0 * jn[0] * self.radial_build  # [T]
        if r <= r1:
            a0 = b_inner * r / 2.0
        else:
            rr = min(r, r2)
            flux = b_inner * r1**2 / 2.0 + mu_0 * jn[0] * (
                r2 * (rr**2 - r1**2) / 2.0 - (rr**3 - r1**3) / 3.0
            )
            a0 = flux / r

        if r < r1:
            region = Region.CORE_GAP
        elif r <= r2:
            region = Region.WINDING
        else:
            region = Region.TANK_GAP

        def term(n: int) -> ScaledNumber | None:
            sf = coeffs.winding(n)
            x = sf.m * r
            weight = jn[n] * math.cos(sf.m * z)
            if weight == 0.0:
                return None
            scale = ScaledNumber.from_term(
                math.log(abs(weight)) - 2.0 * math.log(sf.m), math.copysign(1.0, weight)
            )
            if region == Region.CORE_GAP:
                shape = sf.c * i1_scaled(x) + sf.d * k1_scaled(x)
            elif region == Region.WINDING:
                shape = sf.e * i1_scaled(x) + sf.f * k1_scaled(x) - HALF_PI * l1_scaled(x, q)
            else:
                shape = sf.g * k1_scaled(x)
            return scale * shape

        series = harmonic_sum(
            term, range(1, coeffs.n_harmonics + 1), self.settings.max_workers
        ).to_float()

        return a0 + mu_0 * series
