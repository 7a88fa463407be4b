import copy

import pytest

import winding_inductance
from winding_inductance import Phase, Settings


@pytest.fixture(scope="session")
def example_description() -> dict:
    return winding_inductance.load_example_description()


@pytest.fixture(scope="session")
def two_winding_phase(example_description) -> Phase:
    """The example 10 MVA phase at the default number of harmonics, one section per coil"""
    phase = winding_inductance.phase_from_description(example_description)
    phase.rebuild()
    return phase


@pytest.fixture(scope="session")
def split_phase(example_description) -> Phase:
    """The example phase with each coil divided into 4 touching discs"""
    description = copy.deepcopy(example_description)
    for coil in description["coils"]:
        coil["discs"] = 4
        coil["gap"] = 0.0
    phase = winding_inductance.phase_from_description(description)
    phase.rebuild()
    return phase


@pytest.fixture(scope="session")
def small_settings() -> Settings:
    """Fewer harmonics, for tests that build many throwaway models"""
    return Settings(n_harmonics=30)
