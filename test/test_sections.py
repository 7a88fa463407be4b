import gc
import math

import numpy as np
from pytest import approx, raises

from winding_inductance import (
    NOT_COMPUTABLE,
    Coil,
    Core,
    Phase,
    Section,
    SectionIdAllocator,
    Settings,
)

from . import example_description, small_settings, split_phase, two_winding_phase  # Required fixtures

__all__ = ["example_description", "small_settings", "split_phase", "two_winding_phase"]

CORE = Core(real_window_height=1.26, radius=0.2415)


def _coil(settings: Settings, sections: list[Section], coil_id: int = 1, r1=0.26035, r2=0.3012821):
    return Coil(
        coil_id=coil_id,
        name=f"coil{coil_id}",
        current_direction=1,
        inner_radius=r1,
        outer_radius=r2,
        current=100.0,
        core=CORE,
        sections=sections,
        settings=settings,
    )


def test_id_allocator():
    ids = SectionIdAllocator()
    assert ids.next_id() == 1
    assert ids.claim(3) == 3
    assert ids.next_id() == 2
    assert ids.next_id() == 4  # Skips the claimed id
    with raises(ValueError):
        ids.claim(2)


def test_section_validation():
    with raises(ValueError):
        Section(1, 0.5, 0.5, 10)
    with raises(ValueError):
        Section(1, 0.6, 0.5, 10)
    with raises(ValueError):
        Section(1, -0.1, 0.5, 10)
    with raises(ValueError):
        Section(1, 0.1, 0.5, 0.0)


def test_current_density_spectrum(small_settings):
    section = Section(1, 0.1, 0.9, 50)
    coil = _coil(small_settings, [section])
    L = CORE.effective_window_height

    j = coil.current * section.turns / (coil.radial_build * section.height)
    assert section.current_density == approx(j)
    assert section.jn(0) == approx(j * section.height / L)
    for n in [1, 2, 7, 30]:
        expected = (2 * j / (n * np.pi)) * (
            np.sin(n * np.pi * section.z_max / L) - np.sin(n * np.pi * section.z_min / L)
        )
        assert section.jn(n) == approx(expected, rel=1e-12, abs=1e-9)
        assert coil.current_density_harmonics[n] == approx(section.jn(n))


def test_split(small_settings):
    parent = Section(10, 0.1, 0.9, 60)
    coil = _coil(small_settings, [parent])
    ids = SectionIdAllocator(start=100)

    children = parent.split(3, gap=0.01, ids=ids)
    assert [c.section_id for c in children] == [100, 101, 102]
    assert all(c.parent is coil for c in children)
    assert all(c.turns == approx(20.0) for c in children)
    heights = [c.height for c in children]
    assert heights == approx([(0.8 - 2 * 0.01) / 3] * 3)
    assert children[0].z_min == parent.z_min
    assert children[-1].z_max == parent.z_max
    assert children[1].z_min - children[0].z_max == approx(0.01)
    # The original is untouched
    assert parent.turns == 60 and parent.height == approx(0.8)

    # Ids always come from a shared allocator
    with raises(TypeError):
        parent.split(2)

    with raises(ValueError):
        parent.split(0, ids=ids)
    with raises(ValueError):
        parent.split(5, gap=0.5, ids=ids)


def test_split_preserves_spectrum(small_settings):
    """Touching children carry exactly the parent's current density harmonics"""
    parent = Section(1, 0.1, 0.9, 60)
    coil = _coil(small_settings, [parent])
    before = list(coil.current_density_harmonics)

    coil.split_sections(4, ids=SectionIdAllocator(start=2))
    assert len(coil.sections) == 4
    assert coil.turns == approx(60.0)
    assert coil.current_density_harmonics == approx(before, rel=1e-12, abs=1e-9)


def test_detached_section(caplog):
    section = Section(1, 0.1, 0.9, 60)
    assert section.parent is None
    assert section.self_inductance() == NOT_COMPUTABLE
    assert NOT_COMPUTABLE == -np.finfo(float).max
    assert math.isnan(section.current_density)
    assert math.isnan(section.jn(1))
    assert "no parent coil" in caplog.text
    with raises(ValueError):
        section.initialize_harmonics()


def test_parent_is_weak(small_settings):
    """A section does not keep its coil alive"""
    section = Section(1, 0.1, 0.9, 60)
    coil = _coil(small_settings, [section])
    assert section.initialized
    other = Section(2, 0.1, 0.9, 60)
    other_coil = _coil(small_settings, [other], coil_id=2, r1=0.34, r2=0.38)

    del coil
    gc.collect()
    assert section.parent is None
    assert section.self_inductance() == NOT_COMPUTABLE
    assert section.mutual_inductance_to(other) == NOT_COMPUTABLE
    assert other.parent is other_coil


def test_reciprocity(small_settings):
    ids = SectionIdAllocator(start=100)
    lv = _coil(small_settings, Section(1, 0.1, 0.9, 40).split(3, ids=ids), coil_id=1)
    hv = _coil(
        small_settings,
        Section(10, 0.1, 0.9, 400).split(2, ids=ids),
        coil_id=2,
        r1=0.34,
        r2=0.38,
    )
    sections = lv.sections + hv.sections
    for a in sections:
        for b in sections:
            if a is b:
                continue
            assert a.mutual_inductance_to(b) == approx(b.mutual_inductance_to(a), rel=1e-9)


def test_coaxial_coils(small_settings):
    """Separate coils at the same radii follow the same path as sections of one coil"""
    whole = _coil(small_settings, Section(1, 0.1, 0.9, 80).split(2, ids=SectionIdAllocator(start=2)))
    bottom_whole, top_whole = whole.sections

    bottom = _coil(small_settings, [Section(5, 0.1, 0.5, 40)], coil_id=2)
    top = _coil(small_settings, [Section(6, 0.5, 0.9, 40)], coil_id=3)
    m_whole = bottom_whole.mutual_inductance_to(top_whole)
    m_coils = bottom.sections[0].mutual_inductance_to(top.sections[0])
    assert m_coils == approx(m_whole, rel=1e-9)
    assert bottom.sections[0].self_inductance() == approx(
        bottom_whole.self_inductance(), rel=1e-9
    )


def test_positive_inductances(two_winding_phase: Phase):
    lv_section = two_winding_phase.coils[0].sections[0]
    hv_section = two_winding_phase.coils[1].sections[0]
    assert lv_section.self_inductance() > 0.0
    assert hv_section.self_inductance() > 0.0
    m = lv_section.mutual_inductance_to(hv_section)
    assert m > 0.0
    # Coupling coefficient of tightly coupled concentric windings
    k = m / math.sqrt(lv_section.self_inductance() * hv_section.self_inductance())
    assert 0.5 < k < 1.0


def test_additivity_under_splitting(two_winding_phase: Phase, split_phase: Phase):
    """Sums of sub-section inductances reproduce the whole-coil inductances"""
    whole = two_winding_phase.inductance_matrix.to_array()
    split = split_phase.inductance_matrix.to_array()
    lv, hv = slice(0, 4), slice(4, 8)

    assert np.sum(split[lv, lv]) == approx(whole[0, 0], rel=1e-6)
    assert np.sum(split[hv, hv]) == approx(whole[1, 1], rel=1e-6)
    assert np.sum(split[lv, hv]) == approx(whole[0, 1], rel=1e-6)
