import json
import logging
from pathlib import Path
from typing import Any

from winding_inductance.coils import Coil
from winding_inductance.config import DEFAULT_SETTINGS, Settings
from winding_inductance.core import Core
from winding_inductance.phase import Phase
from winding_inductance.sections import Section, SectionIdAllocator

logger = logging.getLogger(__name__)

EXAMPLE_DESCRIPTION = Path(__file__).parent / "../examples/two_winding_10MVA.json"


def load_example_description() -> dict[str, Any]:
    """Load the example two-winding phase description."""
    with open(EXAMPLE_DESCRIPTION) as f:
        return json.load(f)


def _coil_sections(entry: dict[str, Any], ids: SectionIdAllocator) -> list[Section]:
    if "sections" in entry:
        return [
            Section(
                ids.claim(s["section_id"]) if "section_id" in s else ids.next_id(),
                s["z_min"],
                s["z_max"],
                s["turns"],
            )
            for s in entry["sections"]
        ]

    full = Section(ids.next_id(), entry["z_min"], entry["z_max"], entry["turns"])
    discs = int(entry.get("discs", 1))
    if discs == 1:
        return [full]
    return full.split(discs, entry.get("gap", 0.0), ids=ids)


def phase_from_description(
    description: dict[str, Any], settings: Settings = DEFAULT_SETTINGS
) -> Phase:
    """
    Build a phase from a plain description mapping, such as one loaded from JSON.

    The mapping has a `core` entry with `real_window_height`, `radius` and optionally
    `window_height_multiplier`, and a `coils` list. Each coil gives `coil_id`, `name`,
    `current_direction`, `inner_radius`, `outer_radius` and `current`, and either an
    explicit `sections` list (`z_min`, `z_max`, `turns`, optional `section_id`) or
    the overall `z_min`, `z_max` and `turns` with a number of equal `discs` separated
    by `gap`. All lengths are in meters.

    Args:
        description: Phase description
        settings: Harmonic count, tank clearance and quadrature settings for every coil

    Raises:
        ValueError: If an entry is missing or describes invalid geometry

    Returns:
        The phase, with coils in the order given
    """
    try:
        core = Core(**description["core"])
        ids = SectionIdAllocator()
        coils = []
        for entry in description["coils"]:
            coils.append(
                Coil(
                    coil_id=entry["coil_id"],
                    name=entry["name"],
                    current_direction=entry["current_direction"],
                    inner_radius=entry["inner_radius"],
                    outer_radius=entry["outer_radius"],
                    current=entry["current"],
                    core=core,
                    sections=_coil_sections(entry, ids),
                    settings=settings,
                )
            )
    except KeyError as err:
        raise ValueError(f"Phase description is missing entry {err}") from err

    logger.info(
        f"Loaded phase {description.get('name', '')!r} with {len(coils)} coils, "
        f"{sum(len(c.sections) for c in coils)} sections"
    )
    return Phase(core, coils)
