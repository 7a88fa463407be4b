"""End-to-end workflow: leakage reactance of a two-winding phase, then disc-level detail and some exploratory plots"""

import numpy as np
import matplotlib.pyplot as plt

import winding_inductance
from winding_inductance import Settings

# Don't spam the terminal if this is running on a build server
show_prog = plt.get_backend().lower() != "agg"

winding_inductance.setup_logging()

# Load the example design
description = winding_inductance.load_example_description()
base_va = description["per_phase_va"]  # [VA]
frequency = description["frequency"]  # [Hz]

# Fewer harmonics than the default keeps this example quick;
# the leakage reactance is already converged to a few digits here
settings = Settings(n_harmonics=60)
phase = winding_inductance.phase_from_description(description, settings)
lv, hv = phase.coils

# Whole-coil inductance matrix and leakage reactance
print("Building whole-coil model\n")
m = phase.rebuild(show_prog=show_prog)
print(m)
print(f"\nLeakage reactance: {phase.leakage_reactance_pu(base_va, hv.current, frequency):.4f} pu")
print(f"Positive-definite: {bool(phase.wait_for_validation(timeout=60.0))}")

# Same windings, divided into discs with small clearances between them
print("\nBuilding disc-level model\n")
phase.split_sections(lv, 8, gap=0.005)
phase.split_sections(hv, 8, gap=0.005)
m_discs = phase.recalculate_inductance_matrix(show_prog=show_prog)
status = phase.wait_for_validation(timeout=60.0)
print(f"{m_discs.rows} sections, positive-definite: {bool(status)} {status.message}")
print(f"Leakage reactance: {phase.leakage_reactance_pu(base_va, hv.current, frequency):.4f} pu")

# Compare against an air-core filament model of the same sections
m_air = winding_inductance.air_core_inductance_matrix(phase.sections, show_prog=show_prog)
energy_air = winding_inductance.stored_energy(m_air, phase.currents())  # [J]
print(f"Leakage inductance, harmonic: {phase.leakage_inductance(hv.current):.4e} H")
print(f"Leakage inductance, air-core: {2.0 * energy_air / hv.current**2:.4e} H")

# Leakage vector potential on a coarse grid in the window
core = phase.core
rs = np.linspace(core.radius, hv.outer_radius + 0.05, 12)  # [m]
zs = np.linspace(0.0, core.real_window_height, 20)  # [m]
rmesh, zmesh = np.meshgrid(rs, zs, indexing="ij")
a_phi = np.zeros_like(rmesh)  # [Wb/m]
for coil in phase.coils:
    ampere_sign = coil.current_direction
    for i, r in enumerate(rs):
        for j, z in enumerate(zs):
            a_phi[i, j] += ampere_sign * coil.vector_potential(r, z)
flux = 2.0 * np.pi * rmesh * a_phi  # [Wb]

plt.figure(figsize=(5, 6.5))
plt.contour(rmesh, zmesh, flux, levels=20, cmap="viridis")
plt.colorbar(label="Flux [Wb]")
for coil in phase.coils:
    for s in coil.sections:
        plt.fill(
            [coil.inner_radius, coil.outer_radius, coil.outer_radius, coil.inner_radius],
            [s.z_min, s.z_min, s.z_max, s.z_max],
            color="tab:orange",
            alpha=0.5,
        )
plt.axvline(core.radius, color="k")
plt.title("Leakage Flux")
plt.xlabel("R [m]")
plt.ylabel("Z [m]")
plt.tight_layout()

plt.matshow(m_discs.to_array())
plt.colorbar()
plt.title("Section Inductances [H]")

plt.matshow(m_discs.to_array() - m_air)
plt.colorbar()
plt.title("Harmonic minus Air-Core Inductances [H]")

plt.show()
