r"""
.. _equibs-analytical:

IBS: Analytical Calculations
----------------------------

Module with functionality to perform analytical IBS calculations, according to Nagaitsev's formalism, to the
Bjorken & Mtingwa formalism and its variants (Conte & Martini, ``MAD-X``). User-facing classes are provided
which allow to compute the growth rates based on ring parameters and machine optics, and all share the same
`AnalyticalIBS` interface so that they can be used interchangeably by the equilibrium integrators.

The formalism from which formulas and calculations are implemented can be found in
:cite:p:`PRAB:Nagaitsev:IBS_formulas_fast_numerical_evaluation` and :cite:`CERN:Antoniou:Revision_IBS_MADX`,
respectively.

.. important::
    All growth rates returned in this package are amplitude growth rates, in [1/s]. For the transverse planes
    this is :math:`1 / \sigma_{x,y} \, d \sigma_{x,y} / dt = 1 / (2 \varepsilon_{x,y}) \, d \varepsilon_{x,y} / dt`,
    and for the longitudinal plane :math:`1 / \sigma_{\delta} \, d \sigma_{\delta} / dt`.

.. warning::
    Please note that these analytical implementations make the following assumptions. Should your scenario not
    satisfy them, the results might not be accurate:

        - It is assumed that beam profiles are Gaussian,
        - It is assumed that no betatron coupling is present in the machine (or very little, in the order of :math:`\left| C^{-} \right| \le 10^{-4}`).
"""
from __future__ import annotations  # important for sphinx to alias ArrayLike

import warnings

from abc import ABC, abstractmethod
from dataclasses import astuple, dataclass
from logging import getLogger
from typing import Callable, Dict, Tuple

import numpy as np

from numpy.typing import ArrayLike
from scipy.constants import c, hbar
from scipy.integrate import quad, quad_vec, simpson
from scipy.interpolate import interp1d
from scipy.special import elliprd

from equibs.formulary import phi
from equibs.inputs import OpticsParameters, RingParameters
from equibs.radiation import DampingTimes, damping_times, radiation_integrals

LOGGER = getLogger(__name__)

# ----- Dataclasses to store results ----- #


@dataclass
class NagaitsevIntegrals:
    """
    .. versionadded:: 0.1.0

    Container dataclass for Nagaitsev integrals results.

    Args:
        Ix (float): horizontal Nagaitsev integral.
        Iy (float): vertical Nagaitsev integral.
        Iz (float): longitudinal Nagaitsev integral.
    """

    Ix: float
    Iy: float
    Iz: float


@dataclass
class IBSGrowthRates:
    """
    .. versionadded:: 0.1.0

    Container dataclass for IBS amplitude growth rates results. Negative values denote damping.

    Args:
        Tx (float): horizontal IBS amplitude growth rate, in [1/s].
        Ty (float): vertical IBS amplitude growth rate, in [1/s].
        Tz (float): longitudinal IBS amplitude growth rate, in [1/s].
    """

    Tx: float
    Ty: float
    Tz: float


# ----- Abstract Base Class to Inherit from ----- #


class AnalyticalIBS(ABC):
    r"""
    .. versionadded:: 0.1.0

    Abstract base class for analytical IBS calculations, from which all
    implementations inherit.

    Attributes:
        ring (RingParameters): the ring parameters to use for the calculations.
        optics (OpticsParameters): the optics parameters to use for the calculations.
        n_part (float): the number of particles in the bunch.
        ibs_growth_rates (IBSGrowthRates): the computed IBS growth rates. This self-updates
            when they are computed with the `growth_rates` method.
    """

    def __init__(self, ring: RingParameters, optics: OpticsParameters, n_part: float) -> None:
        self.ring: RingParameters = ring
        self.optics: OpticsParameters = optics
        self.n_part: float = n_part
        # This one self-updates when computed, but can be overwritten by the user
        self.ibs_growth_rates: IBSGrowthRates = None
        # Private attribute tracking the number of growth rates computations
        self._number_of_growth_rates_computations: int = 0
        # Optics averages do not change during the lifetime of the instance
        self._average_optics: Dict[str, float] = {}

    def __str__(self) -> str:
        has_growth_rates = isinstance(
            self.ibs_growth_rates, IBSGrowthRates
        )  # False if default for value of None
        return (
            f"{self.__class__.__name__} object for analytical IBS calculations.\n"
            f"IBS growth rates computed: {has_growth_rates}"
        )

    def __repr__(self) -> str:
        return self.__str__()

    def _lattice_average(self, values: ArrayLike) -> float:
        """
        Average of a quantity over the ring. The quantity is interpolated through the lattice and
        integrated over the whole ring, which accounts for element lengths and is not skewed by some
        very high peaks in the optics as a simple np.mean would be.
        """
        interpolated = interp1d(self.optics.s, values)
        with warnings.catch_warnings():  # Catch and ignore the scipy.integrate.IntegrationWarning
            warnings.simplefilter("ignore", category=UserWarning)
            integral = quad(interpolated, self.optics.s[0], self.optics.s[-1])[0]
        return float(integral / self.optics.circumference)

    def _optics_average(self, name: str) -> float:
        """Cached average of the named optics function over the ring."""
        if name not in self._average_optics:
            LOGGER.debug(f"Computing average of '{name}' over the ring")
            self._average_optics[name] = self._lattice_average(getattr(self.optics, name))
        return self._average_optics[name]

    def _beam_sizes(self, geom_epsx: float, geom_epsy: float, sigma_delta: float) -> Tuple[float, float]:
        """Average horizontal and vertical beam sizes in [m], including the dispersive contribution."""
        dispersive_spread = sigma_delta * self.ring.beta_rel**2
        sigma_x = np.sqrt(
            geom_epsx * self._optics_average("betx") + (self._optics_average("dx") * dispersive_spread) ** 2
        )
        sigma_y = np.sqrt(
            geom_epsy * self._optics_average("bety") + (self._optics_average("dy") * dispersive_spread) ** 2
        )
        return sigma_x, sigma_y

    def _impact_parameters(
        self, geom_epsx: float, geom_epsy: float, sigma_delta: float, bunch_length: float
    ) -> Tuple[float, float]:
        """
        Minimum and maximum impact parameters for the Coulomb logarithm, in [cm]. This is the
        calculation done by ``MAD-X`` in the `twclog` subroutine of `MAD-X/src/ibsdb.f90`.
        """
        # ----------------------------------------------------------------------------------------------
        # Calculate transverse temperature as 2*P*X, i.e. assume the transverse energy is temperature/2
        # fmt: off
        Etrans = (
            5e8
            * (self.ring.gamma_rel
               * self.ring.total_energy_eV * 1e-9  # total energy needed in GeV
               - self.ring.particle_mass_eV * 1e-9  # particle mass needed in GeV
            )
            * (geom_epsx / self._optics_average("betx"))
        )
        # fmt: on
        TempeV = 2.0 * Etrans
        # ----------------------------------------------------------------------------------------------
        # Calculate beam volume to get density (in cm^{-3}) then Debye length
        sigma_x, sigma_y = self._beam_sizes(geom_epsx, geom_epsy, sigma_delta)
        sigma_x_cm, sigma_y_cm, sigma_t_cm = 100 * sigma_x, 100 * sigma_y, 100 * bunch_length
        volume = 8.0 * np.sqrt(np.pi**3) * sigma_x_cm * sigma_y_cm * sigma_t_cm
        density = self.n_part / volume
        debyul = 743.4 * np.sqrt(TempeV / density) / abs(self.ring.particle_charge)  # abs for negative charges!
        # ----------------------------------------------------------------------------------------------
        # Calculate 'rmin' as larger of classical distance of closest approach or quantum mechanical
        # diffraction limit from nuclear radius
        rmincl = 1.44e-7 * self.ring.particle_charge**2 / TempeV
        rminqm = hbar * c * 1e5 / (2.0 * np.sqrt(2e-3 * Etrans * self.ring.particle_mass_eV * 1e-9))
        return max(rmincl, rminqm), min(sigma_x_cm, debyul)

    def coulomb_log(self, epsx: float, epsy: float, sigma_delta: float, bunch_length: float) -> float:
        r"""
        .. versionadded:: 0.1.0

        Calculates the Coulomb logarithm based on the ring parameters and optics the class
        was initiated with. For a good introductory resource on the Coulomb Log, see:
        https://docs.plasmapy.org/en/stable/notebooks/formulary/coulomb.html.

        .. note::
            This function follows the formulae in :cite:`AIP:Anderson:Physics_Vade_Mecum`. The
            Coulomb log is computed as :math:`\ln \left( \Lambda \right) = \ln(r_{max} / r_{min})`.
            Here :math:`r_{max}` denotes the smaller of :math:`\sigma_x` and the Debye length; while
            :math:`r_{min}` is the larger of the classical distance of closest approach and the
            quantum diffraction limit from the nuclear radius. It is the calculation that is done by
            ``MAD-X`` (see the `twclog` subroutine in the `MAD-X/src/ibsdb.f90` source file).

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.
            bunch_length (float): bunch length in [m].

        Returns:
            The dimensionless Coulomb logarithm :math:`\ln \left( \Lambda \right)`.
        """
        LOGGER.debug("Computing Coulomb logarithm for defined ring and optics parameters")
        bmin, bmax = self._impact_parameters(epsx, epsy, sigma_delta, bunch_length)
        return float(np.log(bmax / bmin))

    @abstractmethod
    def growth_rates(self, epsx: float, epsy: float, sigma_delta: float, bunch_length: float) -> IBSGrowthRates:
        r"""
        Method to compute the IBS growth rates.

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.
            bunch_length (float): the bunch length in [m].

        Returns:
            An `IBSGrowthRates` object with the computed amplitude growth rates for each plane.
        """
        raise NotImplementedError(
            "This method should be implemented in all child classes, but it hasn't been for this one."
        )

    def _store(self, result: IBSGrowthRates) -> IBSGrowthRates:
        """Self-update the instance's attributes and then return the results."""
        self.ibs_growth_rates = result
        self._number_of_growth_rates_computations += 1
        return result


class _TailCutCoulombLog:
    r"""
    .. versionadded:: 0.2.0

    Mixin replacing the Coulomb logarithm of an `AnalyticalIBS` class by its tail-cut version. In a
    radiation-damped beam, scattering events so rare that they happen less than once per damping time
    only populate the tails of the distribution and do not contribute to the core beam sizes. They are
    excluded by raising the minimum impact parameter to the one for which a particle undergoes a single
    collision per damping time, in the beam frame:

    .. math::

        b_{\mathrm{tail}} = \left( \pi n v \tau / \gamma \right)^{-1/2},

    with :math:`n = N / \left( (2 \pi)^{3/2} \sigma_x \sigma_y \gamma \sigma_s \right)` the particle density and
    :math:`v = \beta \gamma c \sqrt{\varepsilon_x / \bar{\beta}_x}` the transverse velocity spread in the beam
    frame, and :math:`\tau` the horizontal radiation damping time of the ring.

    Attributes:
        damping_times (DampingTimes): the radiation damping times of the ring, computed at instanciation.
    """

    def __init__(self, ring: RingParameters, optics: OpticsParameters, n_part: float) -> None:
        super().__init__(ring, optics, n_part)
        self.damping_times: DampingTimes = damping_times(ring, radiation_integrals(optics))

    def tail_cut_impact_parameter(self, epsx: float, epsy: float, sigma_delta: float, bunch_length: float) -> float:
        """Minimum impact parameter for one collision per damping time, in [m]."""
        gamma = self.ring.gamma_rel
        sigma_x, sigma_y = self._beam_sizes(epsx, epsy, sigma_delta)
        density = self.n_part / ((2 * np.pi) ** 1.5 * sigma_x * sigma_y * gamma * bunch_length)
        velocity = self.ring.beta_rel * gamma * c * np.sqrt(epsx / self._optics_average("betx"))
        return float(1 / np.sqrt(np.pi * density * velocity * self.damping_times.tau_x / gamma))

    def coulomb_log(self, epsx: float, epsy: float, sigma_delta: float, bunch_length: float) -> float:
        r"""
        .. versionadded:: 0.2.0

        Calculates the tail-cut Coulomb logarithm, :math:`\ln \left( r_{max} / \max(r_{min}, b_{\mathrm{tail}}) \right)`,
        which is floored at zero.

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.
            bunch_length (float): bunch length in [m].

        Returns:
            The dimensionless tail-cut Coulomb logarithm.
        """
        LOGGER.debug("Computing tail-cut Coulomb logarithm for defined ring and optics parameters")
        bmin, bmax = self._impact_parameters(epsx, epsy, sigma_delta, bunch_length)
        btail = 100 * self.tail_cut_impact_parameter(epsx, epsy, sigma_delta, bunch_length)  # in [cm]
        return float(max(np.log(bmax / max(bmin, btail)), 0.0))


# ----- Nagaitsev formalism ----- #


class NagaitsevIBS(AnalyticalIBS):
    r"""
    .. versionadded:: 0.1.0

    A single class to compute Nagaitsev integrals (see
    :cite:`PRAB:Nagaitsev:IBS_formulas_fast_numerical_evaluation`)
    and IBS growth rates. It initiates from a `RingParameters` and an `OpticsParameters` objects,
    and the number of particles in the bunch.

    Attributes:
        ring (RingParameters): the ring parameters to use for the calculations.
        optics (OpticsParameters): the optics parameters to use for the calculations.
        n_part (float): the number of particles in the bunch.
        elliptic_integrals (NagaitsevIntegrals): the computed elliptic integrals. This
            self-updates when they are computed with the `integrals` method.
        ibs_growth_rates (IBSGrowthRates): the computed IBS growth rates. This self-updates
            when they are computed with the `growth_rates` method.
    """

    def __init__(self, ring: RingParameters, optics: OpticsParameters, n_part: float) -> None:
        super().__init__(ring, optics, n_part)
        # This self-updates when computed, but can be overwritten by the user
        self.elliptic_integrals: NagaitsevIntegrals = None

    def __str__(self) -> str:
        has_integrals = isinstance(self.elliptic_integrals, NagaitsevIntegrals)
        return super().__str__().replace("\n", f"\nElliptic integrals computed: {has_integrals}\n")

    def integrals(self, epsx: float, epsy: float, sigma_delta: float) -> NagaitsevIntegrals:
        r"""
        .. versionadded:: 0.1.0

        Computes the Nagaitsev integrals, named :math:`I_x, I_y` and :math:`I_z` in this code base.
        These correspond to the integrals inside of Eq (32), (31) and (30) in
        :cite:`PRAB:Nagaitsev:IBS_formulas_fast_numerical_evaluation`, respectively.
        The instance attribute `self.elliptic_integrals` is automatically updated
        with the results of this method.

        .. hint::
            The calculation is done according to the following steps, which are related to different
            equations in :cite:`PRAB:Nagaitsev:IBS_formulas_fast_numerical_evaluation`:

                - Computes various intermediate terms and then :math:`a_x, a_y, a_s, a_1` and :math:`a_2` constants from Eq (18-21).
                - Computes the eigenvalues :math:`\lambda_1, \lambda_2` of the :math:`\bf{A}` matrix (:math:`\bf{L}` matrix in B&M) from Eq (22-24).
                - Computes the :math:`R_1, R_2` and :math:`R_3` terms from Eq (25-27) with the forms of Eq (5-6).
                - Computes the :math:`S_p, S_x` and :math:`S_{xp}` terms from Eq (33-35).
                - Computes and returns the integrals terms in Eq (30-32).

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.

        Returns:
            A `NagaitsevIntegrals` object with the computed integrals for each plane.
        """
        LOGGER.debug("Computing Nagaitsev integrals for defined ring and optics parameters")
        # fmt: off
        # All of the following (when type annotated as np.ndarray), hold one value per element in the lattice
        gamma: float = self.ring.gamma_rel
        betx, bety, dx = self.optics.betx, self.optics.bety, self.optics.dx
        # ----------------------------------------------------------------------------------------------
        # Computing necessary intermediate terms for the following lines
        sigx: np.ndarray = np.sqrt(betx * epsx + (dx * sigma_delta)**2)
        sigy: np.ndarray = np.sqrt(bety * epsy + (self.optics.dy * sigma_delta)**2)
        phix: np.ndarray = phi(betx, self.optics.alfx, dx, self.optics.dpx)
        # Computing the constants from Eq (18-21) in Nagaitsev paper
        ax: np.ndarray = betx / epsx
        ay: np.ndarray = bety / epsy
        a_s: np.ndarray = ax * (dx**2 / betx**2 + phix**2) + 1 / sigma_delta**2
        a1: np.ndarray = (ax + gamma**2 * a_s) / 2.0
        a2: np.ndarray = (ax - gamma**2 * a_s) / 2.0
        sqrt_term = np.sqrt(a2**2 + gamma**2 * ax**2 * phix**2)  # square root term in Eq (22-23) and Eq (33-35)
        # ----------------------------------------------------------------------------------------------
        # These are from Eq (22-24) in Nagaitsev paper, eigen values of A matrix (L matrix in B&M)
        lambda_1: np.ndarray = ay
        lambda_2: np.ndarray = a1 + sqrt_term
        lambda_3: np.ndarray = a1 - sqrt_term
        # ----------------------------------------------------------------------------------------------
        # These are the R_D terms to compute, from Eq (25-27) in Nagaitsev paper (at each element of the lattice)
        R1: np.ndarray = elliprd(1 / lambda_2, 1 / lambda_3, 1 / lambda_1) / lambda_1
        R2: np.ndarray = elliprd(1 / lambda_3, 1 / lambda_1, 1 / lambda_2) / lambda_2
        R3: np.ndarray = 3 * np.sqrt(lambda_1 * lambda_2 / lambda_3) - lambda_1 * R1 / lambda_3 - lambda_2 * R2 / lambda_3
        # ----------------------------------------------------------------------------------------------
        # This are the terms from Eq (33-35) in Nagaitsev paper
        Sp: np.ndarray = (2 * R1 - R2 * (1 - 3 * a2 / sqrt_term) - R3 * (1 + 3 * a2 / sqrt_term)) * 0.5 * gamma**2
        Sx: np.ndarray = (2 * R1 - R2 * (1 + 3 * a2 / sqrt_term) - R3 * (1 - 3 * a2 / sqrt_term)) * 0.5
        Sxp: np.ndarray = 3 * gamma**2 * phix**2 * ax * (R3 - R2) / sqrt_term
        # ----------------------------------------------------------------------------------------------
        # These are the integrands of the integrals in Eq (30-32) in Nagaitsev paper
        weight: np.ndarray = 1 / (self.optics.circumference * sigx * sigy)
        Ix_integrand = betx * weight * (Sx + Sp * (dx**2 / betx**2 + phix**2) + Sxp)
        Iy_integrand = bety * weight * (R2 + R3 - 2 * R1)
        Iz_integrand = Sp * weight
        # fmt: on
        # ----------------------------------------------------------------------------------------------
        # Integrating the integrands above accross the ring, identical to np.trapz but closer to MAD-X values
        ds = np.diff(self.optics.s)
        result = NagaitsevIntegrals(
            float(np.sum(Ix_integrand[:-1] * ds)),
            float(np.sum(Iy_integrand[:-1] * ds)),
            float(np.sum(Iz_integrand[:-1] * ds)),
        )
        self.elliptic_integrals = result
        return result

    def growth_rates(self, epsx: float, epsy: float, sigma_delta: float, bunch_length: float) -> IBSGrowthRates:
        r"""
        .. versionadded:: 0.1.0

        Computes the ``IBS`` amplitude growth rates, named :math:`T_x, T_y` and :math:`T_z` in this
        code base, from Nagaitsev integrals. These are half of the :math:`1 / \tau` terms, for each
        plane, of Eq (28) in :cite:`PRAB:Nagaitsev:IBS_formulas_fast_numerical_evaluation`, which refer
        to the emittances and the square of the momentum spread. The Nagaitsev integrals are
        recomputed for the provided beam, and the instance attribute `self.ibs_growth_rates` is
        automatically updated with the results of this method when it is called.

        .. warning::
            This calculation does not take into account vertical dispersion. Should you have any in
            your lattice, please use the `MadxIBS` class instead, which supports it fully.

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.
            bunch_length (float): the bunch length in [m].

        Returns:
            An `IBSGrowthRates` object with the computed amplitude growth rates for each plane.
        """
        Ix, Iy, Iz = astuple(self.integrals(epsx, epsy, sigma_delta))
        LOGGER.debug("Computing IBS growth rates for defined ring and optics parameters")
        # ----------------------------------------------------------------------------------------------
        # Get the Coulomb logarithm and the rest of the constant term in Eq (30-32)
        coulomb_logarithm = self.coulomb_log(epsx, epsy, sigma_delta, bunch_length)
        rest_of_constant_term = (
            self.n_part * self.ring.particle_classical_radius_m**2 * c
            / (12 * np.pi * self.ring.beta_rel**3 * self.ring.gamma_rel**5 * bunch_length)
        )  # fmt: skip
        full_constant_term = rest_of_constant_term * coulomb_logarithm
        # ----------------------------------------------------------------------------------------------
        # Eq (28) gives the rates of eps_x, eps_y and sigma_delta^2, halve them for amplitudes
        Tx = float(Ix * full_constant_term / epsx) / 2
        Ty = float(Iy * full_constant_term / epsy) / 2
        Tz = float(Iz * full_constant_term / sigma_delta**2) / 2
        return self._store(IBSGrowthRates(Tx, Ty, Tz))


class NagaitsevTailCutIBS(_TailCutCoulombLog, NagaitsevIBS):
    """
    .. versionadded:: 0.2.0

    The `NagaitsevIBS` calculation with a tail-cut Coulomb logarithm, which excludes the rare
    scattering events happening less than once per radiation damping time.
    """


# ----- Bjorken & Mtingwa formalism and its variants ----- #


class BjorkenMtingwaIBS(AnalyticalIBS):
    r"""
    .. versionadded:: 0.1.0

    A single class to compute the IBS growth rates according to the `Bjorken & Mtingwa` formalism,
    with horizontal dispersion only. The integrals and terms follow the ``MAD-X`` note
    :cite:`CERN:Antoniou:Revision_IBS_MADX` with the vertical dispersion set to zero. It initiates
    from a `RingParameters` and an `OpticsParameters` objects, and the number of particles in the bunch.

    The integrals of Eq (8) in the note are computed element by element with an adaptive vectorised
    quadrature on logarithmic sub-intervals, then averaged over the ring. Subclasses change the frame of
    the dispersion, include the vertical dispersion or integrate with Simpson's rule instead, through
    class attributes.

    Attributes:
        ring (RingParameters): the ring parameters to use for the calculations.
        optics (OpticsParameters): the optics parameters to use for the calculations.
        n_part (float): the number of particles in the bunch.
        ibs_growth_rates (IBSGrowthRates): the computed IBS growth rates. This self-updates
            when they are computed with the `growth_rates` method.
    """

    # Whether vertical dispersion enters the calculation
    vertical_dispersion: bool = False
    # Whether the dispersion is scaled by beta_rel to go from the pt frame (MAD-X, xsuite) to the delta frame
    scale_dispersion: bool = True
    # Adaptive quadrature on each sub-interval, otherwise Simpson's rule on log-spaced points
    adaptive_integration: bool = True
    # Number of log-spaced points per sub-interval for Simpson's rule
    simpson_points: int = 65

    def _dispersion(self) -> Tuple[ArrayLike, ArrayLike, ArrayLike, ArrayLike]:
        """Dx, Dy, Dpx and Dpy in the frame of the calculation."""
        factor = self.ring.beta_rel if self.scale_dispersion else 1.0
        Dx, Dpx = self.optics.dx * factor, self.optics.dpx * factor
        if self.vertical_dispersion:
            return Dx, self.optics.dy * factor, Dpx, self.optics.dpy * factor
        return Dx, np.zeros_like(Dx), Dpx, np.zeros_like(Dpx)

    def _table_terms(self, geom_epsx: float, geom_epsy: float, sigma_delta: float) -> Dict[str, ArrayLike]:
        r"""
        .. versionadded:: 0.1.0

        Computes the terms of Table 1 in the ``MAD-X`` note, one value per element in the lattice. The
        plane-dependent constants in brackets of Eq (8) are folded into the numerator terms, which keeps
        the horizontal terms finite where the dispersion invariant vanishes.

        Returns:
            A dictionary with the ``a, b, c`` terms of the common denominator and the ``Ax, Bx, Ay, By,
            Az, Bz`` numerator terms, where for instance :math:`A_x = \gamma^2 \mathcal{H}_x / \varepsilon_x \, a_x`.
        """
        # fmt: off
        # We define new shorter names for a lot of arrays, for clarity of the expressions below
        betx, bety = self.optics.betx, self.optics.bety
        Dx, Dy, Dpx, Dpy = self._dispersion()
        g2: float = self.ring.gamma_rel**2
        s2: float = 1 / sigma_delta**2
        X: np.ndarray = betx / geom_epsx  # beta_x / eps_x term
        Y: np.ndarray = bety / geom_epsy  # beta_y / eps_y term
        # ----------------------------------------------------------------------------------------------
        # Computing Phi_{x,y} and H_{x,y} as defined in Eq (6) and Eq (7) of the note
        phix2: np.ndarray = phi(betx, self.optics.alfx, Dx, Dpx)**2
        phiy2: np.ndarray = phi(bety, self.optics.alfy, Dy, Dpy)**2
        hx: np.ndarray = (Dx**2 + betx**2 * phix2) / betx / geom_epsx  # H_x / eps_x
        hy: np.ndarray = (Dy**2 + bety**2 * phiy2) / bety / geom_epsy  # H_y / eps_y
        ry: np.ndarray = hy * geom_epsy / bety  # H_y / beta_y
        total: np.ndarray = hx + hy + s2
        dispersive: np.ndarray = Dx**2 / (geom_epsx * betx) + Dy**2 / (geom_epsy * bety) + s2
        phi_terms: np.ndarray = X**2 * phix2 + Y**2 * phiy2
        # ----------------------------------------------------------------------------------------------
        return {
            "a": g2 * total + X + Y,
            "b": (X + Y) * g2 * dispersive + X * Y * g2 * (phix2 + phiy2) + X * Y,
            "c": X * Y * g2 * dispersive,
            "Ax": (
                g2 * hx * (2 * g2 * total - 2 * X - Y)
                - g2 * X * hy
                + X * (2 * X - Y - g2 * s2 + 6 * g2 * X * phix2)
            ),
            "Bx": (
                g2 * hx * ((X + Y) * g2 * total - g2 * phi_terms + X * (X - 4 * Y))
                + X * (g2 * s2 * (X - 2 * Y) + X * Y + 6 * X * Y * g2 * phix2 + g2 * (2 * Y**2 * phiy2 - X**2 * phix2))
                + g2 * X * hy * (X - 2 * Y)
            ),
            "Ay": Y * (
                -g2 * (hx + 2 * hy + X * ry + s2)
                + 2 * g2**2 * ry * (hy + hx + s2)
                - (X - 2 * Y)
                + 6 * Y * g2 * phiy2
            ),
            "By": Y * (
                g2 * (Y - 2 * X) * (hx + s2)
                + g2 * hy * (Y - 4 * X)
                + X * Y
                + g2 * (2 * X**2 * phix2 - Y**2 * phiy2)
                + g2**2 * ry * (X + Y) * total
                - g2**2 * ry * phi_terms
                + 6 * g2 * phiy2 * X * Y
            ),
            "Az": g2 * s2 * (2 * g2 * total - X - Y),
            "Bz": g2 * s2 * ((X + Y) * g2 * total - 2 * X * Y - g2 * phi_terms),
        }
        # fmt: on

    def _integrate(self, func: Callable[[ArrayLike], ArrayLike], integration_intervals: int) -> ArrayLike:
        """
        Integrates the provided vectorised function of lambda from 1 to 10**(integration_intervals - 1),
        decade by decade, adding the intermediate result of each sub-interval to the final result.
        """
        decades = np.arange(0, int(integration_intervals))
        result: np.ndarray = np.zeros(self.optics.s.size)
        for start, end in zip(10.0 ** decades[:-1], 10.0 ** decades[1:]):
            if self.adaptive_integration:
                result += quad_vec(func, start, end)[0]
            else:
                lambdas = np.geomspace(start, end, self.simpson_points)
                result += simpson(func(lambdas[:, np.newaxis]), x=lambdas, axis=0)
        return result

    def growth_rates(
        self,
        epsx: float,
        epsy: float,
        sigma_delta: float,
        bunch_length: float,
        integration_intervals: int = 17,
    ) -> IBSGrowthRates:
        r"""
        .. versionadded:: 0.1.0

        Computes the ``IBS`` amplitude growth rates, named :math:`T_x, T_y` and :math:`T_z` in this code
        base. These are half of the :math:`1 / \tau` terms of Eq (8) in :cite:`CERN:Antoniou:Revision_IBS_MADX`,
        for each plane :math:`x, y` and :math:`z`, which refer to the emittances and the square of the
        momentum spread. The instance attribute `self.ibs_growth_rates` is automatically updated with the
        results of this method when it is called.

        .. hint::
            The calculation is done according to the following steps, which are related to different
            equations in :cite:`CERN:Antoniou:Revision_IBS_MADX`:

                - Computes the various terms from Table 1 of the MAD-X note, with the bracket terms of Eq (8) folded in.
                - Computes the Coulomb logarithm and the common constant term (first fraction) of Eq (8).
                - Integrates over all decade sub-intervals, getting growth rates at each element in the lattice.
                - Averages the results over the full circumference of the machine.

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.
            bunch_length (float): the bunch length in [m].
            integration_intervals (int): the number of sub-intervals boundaries to use when integrating the
                integrands of Eq (8) of the MAD-X note. Please DO NOT change this parameter unless
                you know exactly what you are doing, as you might affect convergence. Defaults to 17.

        Returns:
            An `IBSGrowthRates` object with the computed amplitude growth rates for each plane.
        """
        terms = self._table_terms(epsx, epsy, sigma_delta)
        a, b, c_ = terms["a"], terms["b"], terms["c"]

        def integrand(numerator_a: ArrayLike, numerator_b: ArrayLike) -> Callable[[ArrayLike], ArrayLike]:
            def func(_lambda: ArrayLike) -> ArrayLike:
                numerator = np.sqrt(_lambda) * (numerator_a * _lambda + numerator_b)
                denominator = (_lambda**3 + a * _lambda**2 + b * _lambda + c_) ** (3 / 2)
                return numerator / denominator

            return func

        # ----------------------------------------------------------------------------------------------
        # Common constant term of Eq (8) in the MAD-X note (first fraction), where the m^3 terms of the
        # 6-dimensional phase space volume cancel out
        LOGGER.debug("Computing common constant term of Eq (8) of the MAD-X note")
        coulomb_logarithm = self.coulomb_log(epsx, epsy, sigma_delta, bunch_length)
        common_constant_term = (
            self.ring.particle_classical_radius_m**2 * c * self.n_part * coulomb_logarithm
            / (8 * np.pi * self.ring.beta_rel**3 * self.ring.gamma_rel**4 * epsx * epsy * sigma_delta * bunch_length)
        )  # fmt: skip
        # ----------------------------------------------------------------------------------------------
        # Integrals at each element in the lattice, then averages over the ring
        LOGGER.debug("Computing integrals of Eq (8) of the MAD-X note - at each element in the lattice")
        rates = []
        for plane in ("x", "y", "z"):
            func = integrand(terms[f"A{plane}"], terms[f"B{plane}"])
            local_rates = common_constant_term * self._integrate(func, integration_intervals)
            rates.append(self._lattice_average(local_rates) / 2)  # emittance rates to amplitude rates
        return self._store(IBSGrowthRates(*rates))


class BjorkenMtingwaSimpsonIBS(BjorkenMtingwaIBS):
    """
    .. versionadded:: 0.2.0

    The `BjorkenMtingwaIBS` calculation, with the integrals evaluated by Simpson's rule on
    logarithmically spaced points of each decade sub-interval.
    """

    adaptive_integration = False


class BjorkenMtingwaTailCutIBS(_TailCutCoulombLog, BjorkenMtingwaIBS):
    """
    .. versionadded:: 0.2.0

    The `BjorkenMtingwaIBS` calculation with a tail-cut Coulomb logarithm.
    """


class ConteMartiniIBS(BjorkenMtingwaIBS):
    """
    .. versionadded:: 0.2.0

    The `Conte & Martini` formulation of the IBS growth rates, which extends `Bjorken & Mtingwa`
    to the derivatives of the horizontal dispersion. The dispersion functions are used as given,
    in the delta frame, without any scaling by the relativistic beta.
    """

    scale_dispersion = False


class ConteMartiniTailCutIBS(_TailCutCoulombLog, ConteMartiniIBS):
    """
    .. versionadded:: 0.2.0

    The `ConteMartiniIBS` calculation with a tail-cut Coulomb logarithm.
    """


class MadxIBS(BjorkenMtingwaIBS):
    r"""
    .. versionadded:: 0.1.0

    The IBS growth rates as implemented in ``MAD-X``, which corrected `Bjorken & Mtingwa` in order
    to take in consideration the vertical dispersion (see the relevant note about the changes at
    :cite:`CERN:Antoniou:Revision_IBS_MADX`). As in ``MAD-X``, the integrals are evaluated with
    Simpson's rule on each decade sub-interval.

    .. note::
        If possible, when creating the `OpticsParameters` to initiate this class, please do so
        by providing the ``TWISS`` values calculated at the center of elements. This is done by
        giving the flag `centre=true` to the ``TWISS`` command in ``MAD-X``, for instance. If
        this isn't done, a warning will be issued that one might observe some slight discrepancies
        against ``MAD-X`` result values.
    """

    vertical_dispersion = True
    adaptive_integration = False

    def growth_rates(
        self,
        epsx: float,
        epsy: float,
        sigma_delta: float,
        bunch_length: float,
        integration_intervals: int = 17,
    ) -> IBSGrowthRates:
        # We warn the user in case the TWISS was not centered - but keep going
        if self.optics._is_centered is False:
            LOGGER.warning("Twiss was not calculated at center of elements")
            warnings.warn(
                "The provided Twiss was calculated at the exit of the elements, but a centered version is "
                "desired. You might notice some discrepancies with the results from MAD-X itself."
            )
        return super().growth_rates(epsx, epsy, sigma_delta, bunch_length, integration_intervals)


class MadxTailCutIBS(_TailCutCoulombLog, MadxIBS):
    """
    .. versionadded:: 0.2.0

    The `MadxIBS` calculation with a tail-cut Coulomb logarithm.
    """


class MadxAdaptiveIBS(MadxIBS):
    """
    .. versionadded:: 0.2.0

    The `MadxIBS` calculation, with the integrals evaluated by an adaptive vectorised quadrature
    on each decade sub-interval instead of Simpson's rule.
    """

    adaptive_integration = True
