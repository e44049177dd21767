"""
Additional tools for testing, all fixtures defined here are discovered by and available to all tests automatically.
The rings used throughout the tests are toy rings built from cells of a bend and a drift with constant optics
functions, so that the expected values of most quantities are known in closed form and no MAD-X is needed.
"""
import numpy as np
import pytest

from helpers import ConstantRatesModel, bend_drift_optics, ring_header

from equibs.inputs import OpticsParameters, RingParameters

# ----- Toy smooth ring ----- #
# gamma = 100 positrons in a 1000 m ring, optics functions from the smooth approximation

SMOOTH_CIRCUMFERENCE = 1000.0
SMOOTH_TUNE = 10.0
SMOOTH_GAMMATR = 10.0
SMOOTH_RADIUS = SMOOTH_CIRCUMFERENCE / (2 * np.pi)


@pytest.fixture(scope="session")
def smooth_ring() -> RingParameters:
    """The toy smooth ring with a single RF system at h = 1 and V = 1 MV."""
    header = ring_header(gamma=100, gammatr=SMOOTH_GAMMATR, length=SMOOTH_CIRCUMFERENCE, tune=SMOOTH_TUNE)
    return RingParameters(header, harmonics=[1], voltages=[1e6])


@pytest.fixture(scope="session")
def smooth_optics() -> OpticsParameters:
    """Optics of the toy smooth ring: beta = R / Q and D = R / gammatr^2 everywhere."""
    twiss = bend_drift_optics(
        n_cells=100,
        bend_length=1.0,
        drift_length=9.0,
        betx=SMOOTH_RADIUS / SMOOTH_TUNE,
        bety=SMOOTH_RADIUS / SMOOTH_TUNE,
        dx=SMOOTH_RADIUS / SMOOTH_GAMMATR**2,
    )
    return OpticsParameters(twiss)


@pytest.fixture(scope="session")
def scenario_optics() -> OpticsParameters:
    """
    Toy optics for the smooth ring header where radiation damping dominates IBS at equilibrium: short
    strong bends with a gradient giving Jx = 1, and large dispersion in both planes. Damping times are
    of about 9 s horizontally and vertically, 4.5 s longitudinally.
    """
    bend_length = 1e-3
    curvature = 2 * np.pi / 100 / bend_length
    twiss = bend_drift_optics(
        n_cells=100,
        bend_length=bend_length,
        drift_length=SMOOTH_CIRCUMFERENCE / 100 - bend_length,
        betx=1.0,
        bety=1.0,
        dx=50.0,
        dy=50.0,
        bend_k1=-0.5 * curvature**2,  # cancels I4
    )
    return OpticsParameters(twiss)


# ----- Toy damping ring ----- #
# gamma = 5000 positrons (2.55 GeV), damping times of about 70 ms, some vertical dispersion

DR_BETA = 10.0
DR_DISPERSION = 0.5
DR_GAMMATR = 1 / np.sqrt(DR_DISPERSION * 2 * np.pi / 1000)  # from momentum compaction I1 / C


@pytest.fixture(scope="session")
def damping_ring() -> RingParameters:
    """The toy damping ring with a single 500 MHz RF system at V = 1 MV."""
    header = ring_header(gamma=5000, gammatr=DR_GAMMATR, length=1000.0, tune=1000 / (2 * np.pi) / DR_BETA)
    return RingParameters(header, harmonics=[1667], voltages=[1e6])


@pytest.fixture(scope="session")
def damping_ring_optics() -> OpticsParameters:
    """Optics of the toy damping ring, with a small vertical dispersion."""
    twiss = bend_drift_optics(
        n_cells=100, bend_length=1.0, drift_length=9.0, betx=DR_BETA, bety=DR_BETA, dx=DR_DISPERSION, dy=0.01
    )
    return OpticsParameters(twiss)


# ----- Stub models ----- #


@pytest.fixture(scope="function")
def constant_rates_model() -> ConstantRatesModel:
    """An IBS model with growth rates of 1/s in all planes."""
    return ConstantRatesModel(1.0, 1.0, 1.0)


@pytest.fixture(scope="function")
def zero_rates_model() -> ConstantRatesModel:
    """An IBS model without any growth."""
    return ConstantRatesModel(0.0, 0.0, 0.0)
