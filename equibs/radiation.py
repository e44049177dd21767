r"""
.. _equibs-radiation:

Radiation Damping
-----------------

Module with functionality to compute the effects of synchrotron radiation: the radiation integrals
of the lattice, the energy lost per turn, the damping times and the equilibrium beam properties
reached under radiation damping and quantum excitation alone.

The radiation integrals are computed element by element, for the bending elements of the lattice only,
following :cite:`BOOK:Wolski:Beam_dynamics` (chapter 7):

.. math::

    I_1 = \sum D_x h L, \quad I_2 = \sum h^2 L, \quad I_3 = \sum \left| h \right|^3 L,

    I_{4x} = \sum D_x h \left( h^2 + 2 k_1 \right) L, \quad I_{5x,y} = \sum \mathcal{H}_{x,y} \left| h \right|^3 L,

where :math:`h = \theta / L` is the curvature of the element and :math:`k_1` its normalized quadrupolar
gradient.
"""
from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger

import numpy as np

from equibs.formulary import dispersion_invariant, quantum_constant
from equibs.inputs import OpticsParameters, RingParameters
from equibs.rf import bunch_length_from_energy_spread

LOGGER = getLogger(__name__)

# ----- Dataclasses to store results ----- #


@dataclass
class RadiationIntegrals:
    """
    .. versionadded:: 0.1.0

    Container dataclass for the synchrotron radiation integrals of a lattice.

    Args:
        I1 (float): first radiation integral, in [m].
        I2 (float): second radiation integral, in [m^-1].
        I3 (float): third radiation integral, in [m^-2].
        I4x (float): horizontal fourth radiation integral, in [m^-1].
        I5x (float): horizontal fifth radiation integral, in [m^-1].
        I5y (float): vertical fifth radiation integral, in [m^-1].
    """

    I1: float
    I2: float
    I3: float
    I4x: float
    I5x: float
    I5y: float


@dataclass
class DampingTimes:
    """
    .. versionadded:: 0.1.0

    Container dataclass for the radiation damping times of the amplitudes.

    Args:
        tau_x (float): horizontal damping time, in [s].
        tau_y (float): vertical damping time, in [s].
        tau_s (float): longitudinal damping time, in [s].
    """

    tau_x: float
    tau_y: float
    tau_s: float


@dataclass
class RadiationEquilibrium:
    """
    .. versionadded:: 0.1.0

    Container dataclass for the damping times and the equilibrium beam properties from synchrotron
    radiation and quantum excitation only.

    Args:
        tau_x (float): horizontal damping time, in [s].
        tau_y (float): vertical damping time, in [s].
        tau_s (float): longitudinal damping time, in [s].
        epsx (float): horizontal equilibrium geometric emittance, in [m].
        epsy (float): vertical equilibrium geometric emittance from vertical dispersion, in [m].
            This is the floor below which the vertical emittance cannot be damped.
        sigma_e2 (float): square of the equilibrium relative energy spread.
        sigma_s (float): equilibrium bunch length, in [m].
    """

    tau_x: float
    tau_y: float
    tau_s: float
    epsx: float
    epsy: float
    sigma_e2: float
    sigma_s: float


# ----- Computations ----- #


def radiation_integrals(optics: OpticsParameters) -> RadiationIntegrals:
    """
    .. versionadded:: 0.1.0

    Computes the synchrotron radiation integrals from the bending elements of the lattice, which are the
    ones with a non-zero length and bending angle.

    Args:
        optics (OpticsParameters): the optics parameters of the lattice.

    Returns:
        A `RadiationIntegrals` object.
    """
    LOGGER.debug("Computing radiation integrals from the bending elements")
    bends = (optics.angle != 0) & (optics.l > 0)
    length = optics.l[bends]
    h = optics.angle[bends] / length  # curvature 1 / rho
    k1 = optics.k1l[bends] / length
    dx = optics.dx[bends]
    hx = dispersion_invariant(optics.betx[bends], optics.alfx[bends], dx, optics.dpx[bends])
    hy = dispersion_invariant(optics.bety[bends], optics.alfy[bends], optics.dy[bends], optics.dpy[bends])
    return RadiationIntegrals(
        I1=float(np.sum(dx * h * length)),
        I2=float(np.sum(h**2 * length)),
        I3=float(np.sum(np.abs(h) ** 3 * length)),
        I4x=float(np.sum(dx * h * (h**2 + 2 * k1) * length)),
        I5x=float(np.sum(hx * np.abs(h) ** 3 * length)),
        I5y=float(np.sum(hy * np.abs(h) ** 3 * length)),
    )


def energy_loss_per_turn(ring: RingParameters, integrals: RadiationIntegrals) -> float:
    r"""
    .. versionadded:: 0.1.0

    Energy radiated per turn by the reference particle, :math:`U_0 = \frac{2}{3} r_0 m c^2 \gamma^4 I_2`.

    Args:
        ring (RingParameters): the ring parameters.
        integrals (RadiationIntegrals): the radiation integrals of the lattice.

    Returns:
        The energy loss per turn in [eV].
    """
    return (
        2 / 3 * ring.particle_classical_radius_m * ring.particle_mass_eV * ring.gamma_rel**4 * integrals.I2
    )


def damping_times(ring: RingParameters, integrals: RadiationIntegrals) -> DampingTimes:
    r"""
    .. versionadded:: 0.1.0

    Computes the radiation damping times of the amplitudes, as :math:`\tau = 2 E T_0 / (J U_0)` with
    :math:`J_x = 1 - I_4 / I_2`, :math:`J_y = 1` and :math:`J_s = 2 + I_4 / I_2` the damping partition
    numbers.

    Args:
        ring (RingParameters): the ring parameters.
        integrals (RadiationIntegrals): the radiation integrals of the lattice.

    Raises:
        ValueError: if the lattice has no bending (no radiation), or if any of the damping times
            is not strictly positive and finite (anti-damping).

    Returns:
        A `DampingTimes` object.
    """
    if integrals.I2 <= 0:
        LOGGER.error("Radiation integral I2 is zero, no radiation damping in this lattice.")
        raise ValueError("The lattice has no bending elements, the radiation damping times are undefined.")

    u0 = energy_loss_per_turn(ring, integrals)
    damping_factor = 2 * ring.total_energy_eV / (ring.revolution_frequency * u0)
    jx = 1 - integrals.I4x / integrals.I2
    jy = 1.0
    js = 2 + integrals.I4x / integrals.I2
    LOGGER.debug(f"Damping partition numbers: Jx = {jx:.4f}, Jy = {jy:.4f}, Js = {js:.4f}")

    with np.errstate(divide="ignore"):
        taus = damping_factor / np.array([jx, jy, js])
    if not np.all(np.isfinite(taus) & (taus > 0)):
        LOGGER.error(f"Invalid damping times {taus}, see raised error message.")
        raise ValueError(
            f"Damping times must be strictly positive, got {taus} (partition numbers {jx:.4f}, {jy:.4f}, {js:.4f})."
        )
    return DampingTimes(*map(float, taus))


def radiation_equilibrium(
    ring: RingParameters, integrals: RadiationIntegrals, omega_s: float
) -> RadiationEquilibrium:
    r"""
    .. versionadded:: 0.1.0

    Computes the damping times and the equilibrium beam properties reached under radiation damping and
    quantum excitation only:

    .. math::

        \varepsilon_{x,y} = C_q \gamma^2 \frac{I_{5x,y}}{J_{x,y} I_2}, \quad
        \sigma_E^2 = C_q \gamma^2 \frac{I_3}{J_s I_2}.

    Args:
        ring (RingParameters): the ring parameters.
        integrals (RadiationIntegrals): the radiation integrals of the lattice.
        omega_s (float): the angular synchrotron frequency in [rad/s], used to determine the
            equilibrium bunch length.

    Returns:
        A `RadiationEquilibrium` object.
    """
    LOGGER.debug("Computing radiation damping equilibrium")
    taus = damping_times(ring, integrals)
    cq_gamma2 = quantum_constant(ring.particle_mass_eV) * ring.gamma_rel**2
    jx = 1 - integrals.I4x / integrals.I2
    js = 2 + integrals.I4x / integrals.I2
    sigma_e2 = cq_gamma2 * integrals.I3 / (js * integrals.I2)
    return RadiationEquilibrium(
        tau_x=taus.tau_x,
        tau_y=taus.tau_y,
        tau_s=taus.tau_s,
        epsx=cq_gamma2 * integrals.I5x / (jx * integrals.I2),
        epsy=cq_gamma2 * integrals.I5y / integrals.I2,
        sigma_e2=sigma_e2,
        sigma_s=bunch_length_from_energy_spread(np.sqrt(sigma_e2), ring, omega_s),
    )
