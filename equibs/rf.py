r"""
.. _equibs-rf:

RF Bucket
---------

Module with functionality related to the longitudinal motion in the RF bucket: synchronous phase,
synchrotron tune and the mapping between bunch length and energy spread of a matched bunch.

All energy spreads in this module are relative energy spreads :math:`\sigma_E / E`, and angular
frequencies are given in [rad/s]. The RF systems are taken from the provided `RingParameters`,
the first system defining the reference harmonic :math:`h_0`.

.. note::
    The bunch length mapping uses the linear synchrotron motion approximation,
    :math:`\sigma_s = c \left| \eta \right| \sigma_E / (\beta \Omega_s)`, with :math:`\Omega_s`
    the angular synchrotron frequency derived from all the RF systems at the synchronous phase.
"""
from __future__ import annotations

from logging import getLogger

import numpy as np

from scipy.constants import c
from scipy.optimize import newton

from equibs.inputs import RingParameters

LOGGER = getLogger(__name__)


def synchronous_phase(
    ring: RingParameters,
    energy_loss: float,
    target: float = 0.0,
    initial_guess: float = np.deg2rad(173.0),
    tolerance: float = 1e-6,
) -> float:
    r"""
    .. versionadded:: 0.1.0

    Determines the synchronous phase, as the root of
    :math:`\sum_i q V_i \sin \left( h_i / h_0 \phi \right) - U_0 = \mathrm{target}`.
    The default initial guess lies above transition, where the stable phase is close to
    :math:`\pi`.

    Args:
        ring (RingParameters): the ring parameters, holding the RF systems.
        energy_loss (float): the energy lost per turn by the reference particle, in [eV].
        target (float): the energy to be gained per turn on top of compensating the losses,
            in [eV]. Defaults to 0.
        initial_guess (float): the starting point of the root finding, in [rad].
        tolerance (float): the absolute tolerance on the phase for the root finding.

    Returns:
        The synchronous phase in [rad].
    """
    LOGGER.debug("Solving for the synchronous phase")
    ratios = ring.harmonics / ring.harmonics[0]
    amplitudes = ring.particle_charge * ring.voltages

    def energy_gain(phase: float) -> float:
        return np.sum(amplitudes * np.sin(ratios * phase)) - energy_loss - target

    def energy_gain_slope(phase: float) -> float:
        return np.sum(amplitudes * ratios * np.cos(ratios * phase))

    return float(newton(energy_gain, initial_guess, fprime=energy_gain_slope, tol=tolerance))


def synchrotron_tune(ring: RingParameters, energy_loss: float, phase: float) -> float:
    r"""
    .. versionadded:: 0.1.0

    Computes the small amplitude synchrotron tune of the reference particle as
    :math:`Q_s = \sqrt{\left| \eta \sum_i h_i q V_i \cos \left( h_i / h_0 \phi_s \right) \right| / (2 \pi \beta p c)}`.

    Args:
        ring (RingParameters): the ring parameters, holding the RF systems.
        energy_loss (float): the energy lost per turn by the reference particle, in [eV]. Only
            used for the stability check, through the provided phase.
        phase (float): the synchronous phase in [rad].

    Returns:
        The synchrotron tune.
    """
    ratios = ring.harmonics / ring.harmonics[0]
    focusing = np.sum(ring.harmonics * ring.particle_charge * ring.voltages * np.cos(ratios * phase))
    if ring.slip_factor * focusing > 0:
        LOGGER.warning(
            f"The synchronous phase {np.rad2deg(phase):.2f} deg with an energy loss of {energy_loss:.4e} eV is "
            "not on the stable side of the RF wave, the synchrotron tune is that of the small amplitude "
            "motion around an unstable point."
        )
    return float(np.sqrt(np.abs(ring.slip_factor * focusing) / (2 * np.pi * ring.beta_rel * ring.momentum_eV)))


def synchrotron_frequency(ring: RingParameters, energy_loss: float) -> float:
    """Angular synchrotron frequency, in [rad/s], with the synchronous phase solved from the RF systems."""
    phase = synchronous_phase(ring, energy_loss)
    return synchrotron_tune(ring, energy_loss, phase) * ring.omega0


def bunch_length_from_energy_spread(sigma_e: float, ring: RingParameters, omega_s: float) -> float:
    """
    .. versionadded:: 0.1.0

    Bunch length of a matched bunch with the given relative energy spread.

    Args:
        sigma_e (float): the relative energy spread.
        ring (RingParameters): the ring parameters.
        omega_s (float): the angular synchrotron frequency in [rad/s].

    Returns:
        The bunch length in [m].
    """
    return c * abs(ring.slip_factor) * sigma_e / (ring.beta_rel * omega_s)


def energy_spread_from_bunch_length(sigma_s: float, ring: RingParameters, omega_s: float) -> float:
    """
    .. versionadded:: 0.1.0

    Relative energy spread of a matched bunch with the given bunch length, for a known synchrotron
    frequency. This is the exact inverse of `bunch_length_from_energy_spread`.

    Args:
        sigma_s (float): the bunch length in [m].
        ring (RingParameters): the ring parameters.
        omega_s (float): the angular synchrotron frequency in [rad/s].

    Returns:
        The relative energy spread.
    """
    return sigma_s * ring.beta_rel * omega_s / (c * abs(ring.slip_factor))


def energy_spread_from_rf(sigma_s: float, ring: RingParameters, energy_loss: float) -> float:
    """
    .. versionadded:: 0.1.0

    Relative energy spread of a matched bunch with the given bunch length, with the synchrotron
    frequency derived from the RF systems of the ring at the synchronous phase for the given
    energy loss per turn.

    Args:
        sigma_s (float): the bunch length in [m].
        ring (RingParameters): the ring parameters, holding the RF systems.
        energy_loss (float): the energy lost per turn by the reference particle, in [eV].

    Returns:
        The relative energy spread.
    """
    omega_s = synchrotron_frequency(ring, energy_loss)
    return energy_spread_from_bunch_length(sigma_s, ring, omega_s)
