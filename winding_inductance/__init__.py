from importlib.metadata import metadata

__version__ = metadata(str(__package__))["Version"]
__author__ = metadata(str(__package__))["Author"]

from winding_inductance import special
from winding_inductance.coils import Coil
from winding_inductance.config import DEFAULT_SETTINGS, QuadratureSettings, Settings
from winding_inductance.core import Core
from winding_inductance.description import load_example_description, phase_from_description
from winding_inductance.errors import InductanceError, QuadratureError, ScaledArithmeticError
from winding_inductance.filaments import air_core_inductance_matrix
from winding_inductance.harmonics import HarmonicCoefficients, Region, ShapeFunctions
from winding_inductance.logging_config import setup_logging
from winding_inductance.matrix import LinalgStatus, Matrix
from winding_inductance.phase import Phase, stored_energy
from winding_inductance.scaled import ScaledNumber, ScaledSum
from winding_inductance.sections import NOT_COMPUTABLE, Section, SectionIdAllocator


def load_example_phase(settings: Settings = DEFAULT_SETTINGS) -> Phase:
    """Build the example two-winding phase."""
    return phase_from_description(load_example_description(), settings)


__all__ = [
    "Coil",
    "Core",
    "Section",
    "SectionIdAllocator",
    "NOT_COMPUTABLE",
    "Phase",
    "stored_energy",
    "Matrix",
    "LinalgStatus",
    "ScaledNumber",
    "ScaledSum",
    "HarmonicCoefficients",
    "Region",
    "ShapeFunctions",
    "Settings",
    "QuadratureSettings",
    "DEFAULT_SETTINGS",
    "InductanceError",
    "QuadratureError",
    "ScaledArithmeticError",
    "air_core_inductance_matrix",
    "phase_from_description",
    "load_example_description",
    "load_example_phase",
    "setup_logging",
    "special",
]
