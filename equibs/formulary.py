"""
.. _equibs-formulary:

Formulary
---------

Module with commonly used formulae to compute quantities of interest needed in the rest of the package:
relativistic kinematics, particle constants and the optics functions entering IBS and radiation integrals.
"""
from __future__ import annotations  # important for sphinx to alias ArrayLike

import logging

import numpy as np

from numpy.typing import ArrayLike
from scipy.constants import c, e, epsilon_0, hbar

LOGGER = logging.getLogger(__name__)

# ----- Relativistic kinematics and particle constants ----- #


def beta_from_gamma(gamma: float) -> float:
    """Relativistic beta from the relativistic gamma."""
    return np.sqrt(1.0 - 1.0 / gamma**2)


def classical_radius(charge: float, mass_eV: float) -> float:
    r"""
    .. versionadded:: 0.1.0

    Classical radius of a particle, :math:`r_0 = q^2 e^2 / (4 \pi \varepsilon_0 m c^2)`. Since the
    rest mass is given in [eV], one factor of the elementary charge cancels out.

    Args:
        charge (float): particle charge, in units of the elementary charge.
        mass_eV (float): particle rest mass in [eV].

    Returns:
        The classical particle radius in [m].
    """
    return charge**2 * e / (4 * np.pi * epsilon_0 * mass_eV)


def slip_factor(gamma: float, gamma_transition: float) -> float:
    """Slip factor of the machine, in the convention where it is positive above transition."""
    return 1 / gamma_transition**2 - 1 / gamma**2


def quantum_constant(mass_eV: float) -> float:
    r"""
    .. versionadded:: 0.1.0

    The quantum excitation constant :math:`C_q = \frac{55}{32 \sqrt{3}} \frac{\hbar c}{m c^2}`,
    which is about :math:`3.832 \times 10^{-13}` m for electrons.

    Args:
        mass_eV (float): particle rest mass in [eV].

    Returns:
        The constant in [m].
    """
    hbar_c_eVm = hbar * c / e  # hbar * c in [eV.m]
    return 55 / (32 * np.sqrt(3)) * hbar_c_eVm / mass_eV


# ----- Optics functions ----- #


def phi(beta: ArrayLike, alpha: ArrayLike, dx: ArrayLike, dpx: ArrayLike) -> ArrayLike:
    """
    .. versionadded:: 0.1.0

    Phi parameter of Eq (15) in :cite:`PRAB:Nagaitsev:IBS_formulas_fast_numerical_evaluation`.

    Args:
        beta (ArrayLike): beta-functions through the machine.
        alpha (ArrayLike): alpha-functions through the machine.
        dx (ArrayLike): dispersion function through the machine.
        dpx (ArrayLike): dpx function through the machine.

    Returns:
        An array of phi values through the machine.
    """
    return dpx + alpha * dx / beta


def dispersion_invariant(beta: ArrayLike, alpha: ArrayLike, dx: ArrayLike, dpx: ArrayLike) -> ArrayLike:
    r"""
    .. versionadded:: 0.1.0

    The dispersion invariant (or curly-H function) through the machine, computed as
    :math:`\mathcal{H} = \left( D^2 + \beta^2 \Phi^2 \right) / \beta`, which is identical to
    :math:`\gamma D^2 + 2 \alpha D D^{\prime} + \beta D^{\prime 2}`.

    Args:
        beta (ArrayLike): beta-functions through the machine.
        alpha (ArrayLike): alpha-functions through the machine.
        dx (ArrayLike): dispersion function through the machine.
        dpx (ArrayLike): dpx function through the machine.

    Returns:
        An array of H values through the machine.
    """
    return (dx**2 + beta**2 * phi(beta, alpha, dx, dpx) ** 2) / beta


# ----- Some helpers on simple calculations ----- #


def relative_change(initial_value: float, final_value: float) -> float:
    """Calculate the relative change between two values."""
    return (final_value - initial_value) / initial_value
