import numpy as np
from pytest import approx, raises
from scipy.constants import mu_0

from winding_inductance import Coil, Core, Section, Settings

CORE = Core(real_window_height=1.26, radius=0.2415)
SETTINGS = Settings(n_harmonics=40)


def _coil(**kwargs) -> Coil:
    args = dict(
        coil_id=1,
        name="LV",
        current_direction=-1,
        inner_radius=0.26035,
        outer_radius=0.3012821,
        current=801.3,
        core=CORE,
        sections=[Section(1, 0.0889, 1.130935, 64)],
        settings=SETTINGS,
    )
    args.update(kwargs)
    return Coil(**args)


def test_validation(caplog):
    with raises(ValueError):
        _coil(current_direction=2)
    with raises(ValueError):
        _coil(inner_radius=0.31)
    with raises(ValueError):
        _coil(current=-1.0)
    with raises(ValueError):
        _coil(sections=[])

    # Inside the core leg is suspicious, but allowed
    coil = _coil(inner_radius=0.1663, outer_radius=0.2, sections=[Section(2, 0.1, 1.0, 10)])
    assert "inside the core leg" in caplog.text
    assert coil.radial_build == approx(0.0337)


def test_geometry():
    coil = _coil(sections=[Section(3, 0.6, 1.0, 30), Section(2, 0.1, 0.5, 34)])
    assert [s.section_id for s in coil.sections] == [2, 3]  # Sorted bottom to top
    assert coil.turns == 64
    assert coil.mean_radius == approx(0.5 * (0.26035 + 0.3012821))
    assert all(s.parent is coil for s in coil.sections)


def test_vector_potential_continuity():
    """The field solutions of the three regions meet at the coil's radii"""
    coil = _coil()
    eps = 1e-7  # [m]
    for z in [0.2, 0.63, 1.1]:
        for r in [coil.inner_radius, coil.outer_radius]:
            below = coil.vector_potential(r - eps, z)
            above = coil.vector_potential(r + eps, z)
            assert below == approx(above, rel=1e-4, abs=1e-9)


def test_vector_potential_mid_window():
    """Far from the coil ends, the field is close to that of an infinite solenoid"""
    coil = _coil()
    z = 0.5 * (coil.sections[0].z_min + coil.sections[0].z_max)
    j = coil.sections[0].current_density
    b = mu_0 * j * coil.radial_build  # [T] inside the winding's bore

    r = 0.25  # [m] between core and winding
    a = coil.vector_potential(r, z)
    assert a > 0.0
    # Stronger than the window-averaged uniform field alone
    assert a > b * (coil.sections[0].height / CORE.effective_window_height) * r / 2

    with raises(ValueError):
        coil.vector_potential(0.2, z)


def test_vector_potential_decays_outside():
    coil = _coil()
    z = 0.6
    values = [coil.vector_potential(r, z) for r in [0.31, 0.35, 0.40, 0.45]]
    assert np.all(np.diff(values) < 0.0)
