"""Tunable numerical parameters for the harmonic inductance calculation"""

import logging
import os
import warnings
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

WINDOW_MULTIPLIER_MIN = 1.0
"""[dimensionless] Window height multipliers at or below this value are rejected"""

WINDOW_MULTIPLIER_MAX = 3.0
"""
[dimensionless] At or above this window height multiplier the inductance matrix
has been observed to lose positive-definiteness once the windings are divided
into enough sections. Such values are allowed, but flagged.
"""

DEFAULT_WINDOW_MULTIPLIER = 1.5
"""[dimensionless] Default enlargement of the real core window height"""


def validate_window_multiplier(multiplier: float) -> float:
    """
    Check a window height multiplier against its empirically-validated range.

    Args:
        multiplier: [dimensionless] factor applied to the real core window height

    Raises:
        ValueError: If the multiplier does not enlarge the window

    Returns:
        The multiplier, unchanged
    """
    if not multiplier > WINDOW_MULTIPLIER_MIN:
        raise ValueError(
            f"Window height multiplier must be greater than {WINDOW_MULTIPLIER_MIN}, got {multiplier}"
        )
    if multiplier >= WINDOW_MULTIPLIER_MAX:
        msg = (
            f"Window height multiplier {multiplier} is at or above {WINDOW_MULTIPLIER_MAX}; "
            "the inductance matrix may not be positive-definite"
        )
        logger.warning(msg)
        warnings.warn(msg, UserWarning, stacklevel=3)
    return multiplier


@dataclass(frozen=True)
class QuadratureSettings:
    """Error budget for the adaptive quadrature behind the auxiliary integrals"""

    abs_tol: float = 1e-12
    """Required absolute error"""

    rel_tol: float = 1e-8
    """Required relative error"""

    limit: int = 50
    """Maximum number of subintervals in the adaptive scheme"""

    strict: bool = True
    """
    Whether a quadrature that misses its error budget raises `QuadratureError`.
    If False, the failure is logged and warned about, and the integral is taken as 0.0.
    """

    def __post_init__(self):
        assert self.abs_tol > 0.0, "Absolute tolerance must be positive"
        assert self.rel_tol > 0.0, "Relative tolerance must be positive"
        assert self.limit > 0, "Subdivision limit must be positive"


def _default_workers() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass(frozen=True)
class Settings:
    """Series truncation, geometry tolerances and parallelism for one calculation"""

    n_harmonics: int = 200
    """Number of Fourier harmonics retained in the series solution"""

    max_workers: int = field(default_factory=_default_workers)
    """Size of the worker pool used to fan out over harmonics"""

    tank_clearance: float = 0.1
    """[m] Radial standoff from a coil's outer radius to the tank wall"""

    radial_tolerance: float = 1e-6
    """[m] Coils with inner radii closer than this are treated as coaxial"""

    frequency: float = 60.0
    """[Hz] Default system frequency for reactance calculations"""

    quadrature: QuadratureSettings = field(default_factory=QuadratureSettings)
    """Error budget for auxiliary integrals"""

    def __post_init__(self):
        assert self.n_harmonics > 0, "At least one harmonic is required"
        assert self.max_workers > 0, "Worker pool must have at least one worker"
        assert self.tank_clearance > 0.0, "Tank clearance must be positive"
        assert self.radial_tolerance >= 0.0, "Radial tolerance must not be negative"
        assert self.frequency > 0.0, "Frequency must be positive"


DEFAULT_SETTINGS = Settings()
