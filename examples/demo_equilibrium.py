"""

.. _demo-equilibrium:

===================================
Equilibrium Emittances of a Ring
===================================

This example shows how to use the `~.equibs.ode.run_until_converged` function
to find the equilibrium emittances and bunch length of a ring under radiation
damping, quantum excitation and Intra-Beam Scattering, and how the different
analytical IBS models compare for this equilibrium.

We will demonstrate using a toy damping ring made of identical cells of a
bend and a drift, for a positron beam at 2.55 GeV.
"""
# sphinx_gallery_thumbnail_number = 1
import logging

import matplotlib.pyplot as plt
import numpy as np

from equibs import ConsoleReporter, OpticsParameters, RingParameters, run_fixed_steps, run_until_converged, write_csv

logging.basicConfig(level=logging.WARNING, format="%(levelname)-8s | %(name)s | %(message)s")

###############################################################################
# Let's start by defining the ring. The summary header mimics the one of a
# ``TWISS`` call in ``MAD-X``, and the optics columns are given for each
# element as a simple dictionary of arrays:

n_cells = 100
betx, bety, dx, dy = 10.0, 10.0, 0.5, 0.01
gammatr = 1 / np.sqrt(dx * 2 * np.pi / 1000)
electron_mass_GeV = 0.51099895e-3

header = {
    "GAMMA": 5000,
    "PC": np.sqrt(5000**2 - 1) * electron_mass_GeV,
    "GAMMATR": gammatr,
    "MASS": electron_mass_GeV,
    "CHARGE": 1,
    "LENGTH": 1000.0,
    "Q1": 1000 / (2 * np.pi) / betx,
}
ring = RingParameters(header, harmonics=[1667], voltages=[1e6])

lengths = np.concatenate([[0.0], np.tile([1.0, 9.0], n_cells)])
angles = np.concatenate([[0.0], np.tile([2 * np.pi / n_cells, 0.0], n_cells)])
twiss = {
    "s": np.cumsum(lengths),
    "l": lengths,
    "angle": angles,
    "k1l": np.zeros(lengths.size),
    "betx": np.full(lengths.size, betx),
    "bety": np.full(lengths.size, bety),
    "alfx": np.zeros(lengths.size),
    "alfy": np.zeros(lengths.size),
    "dx": np.full(lengths.size, dx),
    "dy": np.full(lengths.size, dy),
    "dpx": np.zeros(lengths.size),
    "dpy": np.zeros(lengths.size),
}
optics = OpticsParameters(twiss)

###############################################################################
# Integrating Until Convergence
# -----------------------------
# The integration starts from the provided emittances and bunch length, and
# stops once their relative changes between two steps are below the threshold.
# A `~.equibs.reporting.ConsoleReporter` prints the radiation equilibrium, the
# initial growth rates and the final state, with a progress bar in between.

result = run_until_converged(
    ring,
    optics,
    model="nagaitsev",
    epsx=5e-8,
    epsy=5e-11,
    sigma_s=5e-3,
    n_part=4.4e9,
    coupling_percent=1,
    threshold=1e-5,
    reporter=ConsoleReporter(),
)
print(f"Converged: {result.converged} after {result.steps} steps")

###############################################################################
# The trajectory can be exported to a CSV file, and plotted:

write_csv("equilibrium_trajectory.csv", result.trajectory)
time_ms = 1e3 * np.array(result.trajectory.time)

fig, (axx, axy, axz) = plt.subplots(3, 1, sharex=True, figsize=(8, 9))
axx.plot(time_ms, 1e9 * np.array(result.trajectory.epsx), lw=2)
axy.plot(time_ms, 1e12 * np.array(result.trajectory.epsy), lw=2)
axz.plot(time_ms, 1e3 * np.array(result.trajectory.sigma_s), lw=2)
axx.axhline(1e9 * result.equilibrium.epsx, ls="--", color="gray", label="Radiation only")
axy.axhline(1e12 * result.equilibrium.epsy_coupled, ls="--", color="gray")
axz.axhline(1e3 * result.equilibrium.sigma_s, ls="--", color="gray")

axx.set_ylabel(r"$\varepsilon_x$ [nm]")
axy.set_ylabel(r"$\varepsilon_y$ [pm]")
axz.set_ylabel(r"$\sigma_s$ [mm]")
axz.set_xlabel("Time [ms]")
axx.legend()
fig.align_ylabels((axx, axy, axz))
plt.tight_layout()
plt.show()

###############################################################################
# Comparing Models
# ----------------
# Any of the analytical models can be used, by id or by name. Let's compare
# the equilibrium horizontal emittance from a few of them, starting each time
# from the same state:

models = ["piwinski-smooth", "nagaitsev", "nagaitsev-tailcut", "bjorken-mtingwa", "conte-martini"]
equilibria = {}
for model in models:
    outcome = run_until_converged(ring, optics, model, 5e-8, 5e-11, 5e-3, n_part=4.4e9, coupling_percent=1)
    equilibria[model] = outcome.trajectory.epsx[-1]
    print(f"{model:<20} : {outcome.trajectory.epsx[-1]:.6e} m (converged: {outcome.converged})")

fig, ax = plt.subplots(figsize=(8, 4))
ax.bar(list(equilibria), 1e9 * np.array(list(equilibria.values())))
ax.set_ylabel(r"Equilibrium $\varepsilon_x$ [nm]")
plt.tight_layout()
plt.show()

###############################################################################
# Fixed Number of Steps
# ---------------------
# One can also integrate for a fixed number of steps with a given step size,
# for instance with the relaxation update rule, which halves its step size
# whenever IBS growth outruns radiation damping in any plane:

fixed = run_fixed_steps(
    ring, optics, "nagaitsev", 5e-8, 5e-11, 5e-3, n_steps=200, step_size=1e-3, n_part=4.4e9, method="rlx"
)
print(f"Final horizontal emittance after {fixed.steps} steps: {fixed.trajectory.epsx[-1]:.6e} m")
