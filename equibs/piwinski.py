r"""
.. _equibs-piwinski:

IBS: Piwinski Formalism
-----------------------

Module with the IBS growth rates according to Piwinski's formalism, in the form given by
:cite:`SLAC:Bane:Intrabeam_scattering_analysis`. For each element of the lattice:

.. math::

    \frac{1}{T_p} &= A \left< \frac{\sigma_h^2}{\sigma_p^2} f(a, b, q) \right>, \\
    \frac{1}{T_x} &= A \left< f \left( \frac{1}{a}, \frac{b}{a}, \frac{q}{a} \right) + \frac{D_x^2 \sigma_h^2}{\beta_x \varepsilon_x} f(a, b, q) \right>, \\
    \frac{1}{T_y} &= A \left< f \left( \frac{1}{b}, \frac{a}{b}, \frac{q}{b} \right) \right>,

with :math:`A = r_0^2 c N / (64 \pi^2 \beta^3 \gamma^4 \varepsilon_x \varepsilon_y \sigma_s \sigma_p)`,
:math:`1 / \sigma_h^2 = 1 / \sigma_p^2 + D_x^2 / (\beta_x \varepsilon_x)`,
:math:`a = \sigma_h / \gamma \sqrt{\beta_x / \varepsilon_x}`, :math:`b = \sigma_h / \gamma \sqrt{\beta_y / \varepsilon_y}`
and :math:`q = \sigma_h \beta \sqrt{2 d / r_0}`, where :math:`d` is the vertical beam size. The averages are
taken around the ring. These rates are amplitude growth rates.
"""
from __future__ import annotations  # important for sphinx to alias ArrayLike

from logging import getLogger
from typing import Tuple

import numpy as np

from numpy.typing import ArrayLike
from scipy.constants import c
from scipy.integrate import quad_vec

from equibs.analytical import AnalyticalIBS, IBSGrowthRates
from equibs.formulary import dispersion_invariant

LOGGER = getLogger(__name__)

EULER_GAMMA = 0.5772156649015329


def piwinski_function(a: ArrayLike, b: ArrayLike, q: ArrayLike) -> ArrayLike:
    r"""
    .. versionadded:: 0.2.0

    The scattering function of Piwinski's formalism, evaluated for all provided values at once:

    .. math::

        f(a, b, q) = 8 \pi \int_0^1 \frac{1 - 3 u^2}{P Q} \left[ 2 \ln \left( \frac{q}{2}
        \left( \frac{1}{P} + \frac{1}{Q} \right) \right) - 0.577... \right] du,

    with :math:`P^2 = a^2 + (1 - a^2) u^2` and :math:`Q^2 = b^2 + (1 - b^2) u^2`.

    Args:
        a (ArrayLike): the :math:`a` parameter values.
        b (ArrayLike): the :math:`b` parameter values.
        q (ArrayLike): the :math:`q` parameter values.

    Returns:
        The function values, with the broadcast shape of the inputs.
    """
    a, b, q = np.broadcast_arrays(*map(np.atleast_1d, (a, b, q)))

    def integrand(u: float) -> ArrayLike:
        P = np.sqrt(a**2 + (1 - a**2) * u**2)
        Q = np.sqrt(b**2 + (1 - b**2) * u**2)
        return (1 - 3 * u**2) / (P * Q) * (2 * np.log(q / 2 * (1 / P + 1 / Q)) - EULER_GAMMA)

    return 8 * np.pi * quad_vec(integrand, 0, 1)[0]


class PiwinskiLatticeIBS(AnalyticalIBS):
    r"""
    .. versionadded:: 0.2.0

    Piwinski's formalism computed element by element through the lattice, with the
    dispersive contribution :math:`D_x^2 / \beta_x` to the horizontal beam size.
    """

    def _lattice_functions(self) -> Tuple[ArrayLike, ArrayLike, ArrayLike]:
        """betx, bety and the D^2/beta term through the machine."""
        return self.optics.betx, self.optics.bety, self.optics.dx**2 / self.optics.betx

    def _average(self, values: ArrayLike) -> float:
        return self._lattice_average(values)

    def growth_rates(self, epsx: float, epsy: float, sigma_delta: float, bunch_length: float) -> IBSGrowthRates:
        r"""
        .. versionadded:: 0.2.0

        Computes the ``IBS`` amplitude growth rates according to Piwinski's formalism. The instance
        attribute `self.ibs_growth_rates` is automatically updated with the results of this method
        when it is called.

        Args:
            epsx (float): horizontal geometric emittance in [m].
            epsy (float): vertical geometric emittance in [m].
            sigma_delta (float): momentum spread.
            bunch_length (float): the bunch length in [m].

        Returns:
            An `IBSGrowthRates` object with the computed amplitude growth rates for each plane.
        """
        LOGGER.debug(f"Computing Piwinski IBS growth rates with {self.__class__.__name__}")
        betx, bety, dispersive = self._lattice_functions()
        gamma, beta, r0 = self.ring.gamma_rel, self.ring.beta_rel, self.ring.particle_classical_radius_m
        # ----------------------------------------------------------------------------------------------
        # Local parameters of the scattering function
        sigma_h = 1 / np.sqrt(1 / sigma_delta**2 + dispersive / epsx)
        sigma_y = np.sqrt(bety * epsy)
        a = sigma_h / gamma * np.sqrt(betx / epsx)
        b = sigma_h / gamma * np.sqrt(bety / epsy)
        q = sigma_h * beta * np.sqrt(2 * sigma_y / r0)
        f_long = piwinski_function(a, b, q)
        # ----------------------------------------------------------------------------------------------
        factor = (
            r0**2 * c * self.n_part
            / (64 * np.pi**2 * beta**3 * gamma**4 * epsx * epsy * bunch_length * sigma_delta)
        )  # fmt: skip
        Tz = factor * self._average(sigma_h**2 / sigma_delta**2 * f_long)
        Tx = factor * self._average(
            piwinski_function(1 / a, b / a, q / a) + dispersive * sigma_h**2 / epsx * f_long
        )
        Ty = factor * self._average(piwinski_function(1 / b, a / b, q / b))
        return self._store(IBSGrowthRates(float(Tx), float(Ty), float(Tz)))


class PiwinskiSmoothIBS(PiwinskiLatticeIBS):
    r"""
    .. versionadded:: 0.2.0

    Piwinski's formalism in the smooth ring approximation: the optics functions are replaced by
    their average values :math:`\beta_{x,y} = R / Q_{x,y}` and :math:`D_x = R / \gamma_{tr}^2`, where
    :math:`R` is the average radius of the machine. The lattice details of the optics are not used.
    """

    def _lattice_functions(self) -> Tuple[ArrayLike, ArrayLike, ArrayLike]:
        radius = self.ring.circumference / (2 * np.pi)
        betx = np.atleast_1d(radius / self.ring.tune_x)
        bety = np.atleast_1d(radius / self.ring.tune_y)
        dx = radius / self.ring.gamma_transition**2
        return betx, bety, dx**2 / betx

    def _average(self, values: ArrayLike) -> float:
        return float(np.mean(values))


class PiwinskiModifiedIBS(PiwinskiLatticeIBS):
    r"""
    .. versionadded:: 0.2.0

    The modified Piwinski formalism, where the :math:`D_x^2 / \beta_x` terms are replaced by the
    dispersion invariant :math:`\mathcal{H}_x`, which accounts for the derivative of the dispersion.
    """

    def _lattice_functions(self) -> Tuple[ArrayLike, ArrayLike, ArrayLike]:
        hx = dispersion_invariant(self.optics.betx, self.optics.alfx, self.optics.dx, self.optics.dpx)
        return self.optics.betx, self.optics.bety, hx
