"""
Utility functions and stub models for the tests, to build toy rings without MAD-X.
"""
from typing import Dict

import numpy as np

from equibs.analytical import IBSGrowthRates

ELECTRON_MASS_GEV = 0.51099895e-3

# ----- Helpers to build toy rings ----- #


def ring_header(
    gamma: float, gammatr: float, length: float, tune: float, mass_GeV: float = ELECTRON_MASS_GEV, charge: float = 1.0
) -> Dict[str, float]:
    """A TWISS summary header as given by MAD-X, for the provided parameters."""
    return {
        "GAMMA": gamma,
        "PC": np.sqrt(gamma**2 - 1) * mass_GeV,
        "GAMMATR": gammatr,
        "MASS": mass_GeV,
        "CHARGE": charge,
        "LENGTH": length,
        "Q1": tune,
    }


def bend_drift_optics(
    n_cells: int,
    bend_length: float,
    drift_length: float,
    betx: float,
    bety: float,
    dx: float,
    dy: float = 0.0,
    bend_k1: float = 0.0,
) -> Dict[str, np.ndarray]:
    """
    TWISS columns of a ring made of `n_cells` cells of a bend and a drift, with constant optics
    functions. Positions are given at the exit of elements, after a start marker at s = 0. The bends
    can carry a gradient `bend_k1`, in [m^-2].
    """
    lengths = np.concatenate([[0.0], np.tile([bend_length, drift_length], n_cells)])
    angles = np.concatenate([[0.0], np.tile([2 * np.pi / n_cells, 0.0], n_cells)])
    size = lengths.size
    return {
        "s": np.cumsum(lengths),
        "l": lengths,
        "angle": angles,
        "k1l": np.concatenate([[0.0], np.tile([bend_k1 * bend_length, 0.0], n_cells)]),
        "betx": np.full(size, betx),
        "bety": np.full(size, bety),
        "alfx": np.zeros(size),
        "alfy": np.zeros(size),
        "dx": np.full(size, dx),
        "dy": np.full(size, dy),
        "dpx": np.zeros(size),
        "dpy": np.zeros(size),
    }


# ----- Stub IBS models ----- #


class ConstantRatesModel:
    """An IBS model always returning the same amplitude growth rates, counting its calls."""

    def __init__(self, Tx: float = 1.0, Ty: float = 1.0, Tz: float = 1.0) -> None:
        self.rates = IBSGrowthRates(Tx, Ty, Tz)
        self.calls = 0

    def growth_rates(self, epsx, epsy, sigma_delta, bunch_length) -> IBSGrowthRates:
        self.calls += 1
        return self.rates
