r"""
.. _equibs-ode:

Equilibrium Integration
-----------------------

Module with the integrators evolving the horizontal and vertical emittances, the bunch length and the
energy spread of a bunch under radiation damping, quantum excitation and intra-beam scattering, until
they reach an equilibrium or for a fixed number of steps.

Two update rules are available:

    - the derivative rule (``"der"``), a forward Euler step of the damped and driven equations
      :math:`d \varepsilon / dt = -2 (\varepsilon - \varepsilon_{eq}) / \tau + 2 T \varepsilon` for the
      transverse planes and :math:`d \sigma_E / dt = -(\sigma_E - \sigma_{E,eq}) / \tau_s + T_z \sigma_E`
      for the energy spread,
    - the relaxation rule (``"rlx"``), which relaxes each quantity towards its equilibrium value scaled
      by the factor :math:`1 / (1 - \tau T)` from the ratio of damping time to growth time.

In both cases the bunch length is derived from the new energy spread through the RF bucket, and is
never integrated on its own. The IBS growth rates are recomputed at every step from the current state.

.. note::
    A trajectory holding a non-finite or non-positive value is returned with its ``physical`` flag
    unset, and a `NonPhysicalStateWarning` is emitted. Non-finite values are not recovered from, they
    propagate through the following samples until the end of the integration.
"""
from __future__ import annotations

import warnings

from dataclasses import dataclass, field
from logging import getLogger
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from equibs.analytical import AnalyticalIBS, IBSGrowthRates
from equibs.dispatch import ibs_model
from equibs.formulary import relative_change
from equibs.inputs import OpticsParameters, RingParameters
from equibs.radiation import energy_loss_per_turn, radiation_equilibrium, radiation_integrals
from equibs.reporting import NullReporter, Reporter
from equibs.rf import (
    bunch_length_from_energy_spread,
    energy_spread_from_bunch_length,
    energy_spread_from_rf,
    synchronous_phase,
    synchrotron_tune,
)

LOGGER = getLogger(__name__)

# Accepted names of the update rules, mapped to their short form
METHODS = {"rlx": "rlx", "relaxation": "rlx", "der": "der", "derivative": "der"}
DEFAULT_METHOD: str = "der"
DEFAULT_THRESHOLD: float = 1e-4
THRESHOLD_BOUNDS = (1e-6, 1.0)
COUPLING_BOUNDS = (0.0, 100.0)
MAX_STEPS: int = 10_000
MAX_TAU: float = 1.0  # [s], cap of the stability bound used for the step budget


class NonPhysicalStateWarning(UserWarning):
    """Issued when an integration produced non-finite or non-positive beam properties."""


# ----- Dataclasses to store results ----- #


@dataclass(frozen=True)
class EquilibriumConstants:
    """
    .. versionadded:: 0.1.0

    Container dataclass for the constants of an integration, computed once at the start of a run.

    Args:
        tau_x (float): horizontal radiation damping time, in [s].
        tau_y (float): vertical radiation damping time, in [s].
        tau_s (float): longitudinal radiation damping time, in [s].
        epsx (float): horizontal radiation equilibrium emittance, in [m].
        epsy (float): vertical radiation equilibrium emittance from vertical dispersion, in [m].
        sigma_e2 (float): square of the radiation equilibrium relative energy spread.
        sigma_s (float): radiation equilibrium bunch length, in [m].
        omega_s (float): angular synchrotron frequency, in [rad/s].
        slip_factor (float): slip factor of the machine.
        omega0 (float): angular revolution frequency, in [rad/s].
        energy_loss (float): energy lost per turn by the reference particle, in [eV].
        synchronous_phase (float): the synchronous phase, in [rad].
        coupling (float): fraction of the horizontal emittance transferred to the vertical plane.
        epsy_coupled (float): the effective vertical target emittance, the larger of the coupled
            horizontal equilibrium and the vertical dispersion floor, in [m].
        sigma_e_adiabatic (float): relative energy spread matched to the equilibrium bunch length with
            the adiabatic formula, for cross-checking.
        sigma_e_rf (float): relative energy spread matched to the equilibrium bunch length through
            the RF systems, for cross-checking.
    """

    tau_x: float
    tau_y: float
    tau_s: float
    epsx: float
    epsy: float
    sigma_e2: float
    sigma_s: float
    omega_s: float
    slip_factor: float
    omega0: float
    energy_loss: float
    synchronous_phase: float
    coupling: float
    epsy_coupled: float
    sigma_e_adiabatic: float
    sigma_e_rf: float

    @property
    def damping_times(self) -> np.ndarray:
        return np.array([self.tau_x, self.tau_y, self.tau_s])


@dataclass
class Trajectory:
    """
    .. versionadded:: 0.1.0

    Append-only record of the beam properties through an integration, one sample per step with
    the seed as first sample.

    Args:
        time (List[float]): time of each sample, in [s].
        epsx (List[float]): horizontal geometric emittances, in [m].
        epsy (List[float]): vertical geometric emittances, in [m].
        sigma_s (List[float]): bunch lengths, in [m].
        sigma_e (List[float]): relative energy spreads.
    """

    time: List[float] = field(default_factory=list)
    epsx: List[float] = field(default_factory=list)
    epsy: List[float] = field(default_factory=list)
    sigma_s: List[float] = field(default_factory=list)
    sigma_e: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return min(len(self.time), len(self.epsx), len(self.epsy), len(self.sigma_s), len(self.sigma_e))

    @property
    def sigma_e2(self) -> List[float]:
        """Squares of the relative energy spreads."""
        return [value**2 for value in self.sigma_e]

    def append(self, time: float, epsx: float, epsy: float, sigma_s: float, sigma_e: float) -> None:
        self.time.append(float(time))
        self.epsx.append(float(epsx))
        self.epsy.append(float(epsy))
        self.sigma_s.append(float(sigma_s))
        self.sigma_e.append(float(sigma_e))

    def relative_changes(self) -> np.ndarray:
        """Absolute relative changes of epsx, epsy and sigma_s between the last two samples."""
        if len(self) < 2:
            return np.full(3, np.inf)
        previous = np.array([self.epsx[-2], self.epsy[-2], self.sigma_s[-2]])
        current = np.array([self.epsx[-1], self.epsy[-1], self.sigma_s[-1]])
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.abs(relative_change(previous, current))

    def is_finite(self) -> bool:
        """Whether the last sample only holds finite values."""
        last = [self.epsx[-1], self.epsy[-1], self.sigma_s[-1], self.sigma_e[-1]]
        return bool(np.all(np.isfinite(last)))

    def is_physical(self) -> bool:
        """Whether all samples hold finite and strictly positive beam properties."""
        values = np.array([self.epsx, self.epsy, self.sigma_s, self.sigma_e], dtype=float)
        return bool(np.all(np.isfinite(values) & (values > 0)))


@dataclass
class ODEResult:
    """
    .. versionadded:: 0.1.0

    Container dataclass for the outcome of an integration.

    Args:
        trajectory (Trajectory): all the samples of the integration, seed included.
        growth_rates (IBSGrowthRates): the last computed IBS amplitude growth rates.
        equilibrium (EquilibriumConstants): the constants of the integration.
        method (str): the update rule used, ``"rlx"`` or ``"der"``.
        steps (int): the number of completed steps.
        max_steps (int): the step budget of the integration.
        converged (bool): whether the convergence criterion was met. Always `False` for
            fixed-steps integrations, which do not check for convergence.
        physical (bool): whether all samples hold finite and strictly positive values.
    """

    trajectory: Trajectory
    growth_rates: IBSGrowthRates
    equilibrium: EquilibriumConstants
    method: str
    steps: int
    max_steps: int
    converged: bool
    physical: bool


# ----- Input sanitizing ----- #


def sanitize_method(method: str) -> str:
    """
    .. versionadded:: 0.1.0

    Normalizes the name of the update rule. Unknown names fall back to the derivative rule.

    Args:
        method (str): ``"rlx"`` (or ``"relaxation"``) or ``"der"`` (or ``"derivative"``),
            case-insensitive.

    Returns:
        The short name of the update rule, ``"rlx"`` or ``"der"``.
    """
    short = METHODS.get(str(method).lower())
    if short is None:
        LOGGER.warning(f"Unknown integration method '{method}', falling back to '{DEFAULT_METHOD}'.")
        return DEFAULT_METHOD
    return short


def sanitize_threshold(threshold: float) -> float:
    """Relative convergence threshold, replaced by the default when outside of [1e-6, 1]."""
    low, high = THRESHOLD_BOUNDS
    if not low <= threshold <= high:
        LOGGER.warning(
            f"Convergence threshold {threshold} is outside of [{low}, {high}], using {DEFAULT_THRESHOLD} instead."
        )
        return DEFAULT_THRESHOLD
    return float(threshold)


def sanitize_coupling(coupling_percent: float) -> float:
    """
    .. versionadded:: 0.1.0

    Clamps the coupling percentage into [0, 100] and converts it to a fraction.

    Args:
        coupling_percent (float): the percentage of horizontal emittance transferred to the
            vertical plane.

    Returns:
        The coupling fraction, between 0 and 1.
    """
    low, high = COUPLING_BOUNDS
    clamped = float(np.clip(coupling_percent, low, high))
    if clamped != coupling_percent:
        LOGGER.warning(f"Coupling of {coupling_percent}% is outside of [{low}, {high}], using {clamped}% instead.")
    return clamped / 100


# ----- Setup shared by the integrators ----- #


def equilibrium_constants(
    ring: RingParameters, optics: OpticsParameters, coupling_percent: float = 0.0
) -> EquilibriumConstants:
    """
    .. versionadded:: 0.1.0

    Computes the constants of an integration: radiation damping times and equilibria, RF bucket
    properties and the effective vertical target emittance.

    Args:
        ring (RingParameters): the ring parameters.
        optics (OpticsParameters): the optics parameters.
        coupling_percent (float): the percentage of horizontal emittance transferred to the vertical
            plane, clamped into [0, 100]. Defaults to 0.

    Returns:
        An `EquilibriumConstants` object.
    """
    LOGGER.debug("Computing equilibrium constants")
    integrals = radiation_integrals(optics)
    energy_loss = energy_loss_per_turn(ring, integrals)
    phase = synchronous_phase(ring, energy_loss)
    omega_s = synchrotron_tune(ring, energy_loss, phase) * ring.omega0
    radiation = radiation_equilibrium(ring, integrals, omega_s)
    coupling = sanitize_coupling(coupling_percent)
    return EquilibriumConstants(
        tau_x=radiation.tau_x,
        tau_y=radiation.tau_y,
        tau_s=radiation.tau_s,
        epsx=radiation.epsx,
        epsy=radiation.epsy,
        sigma_e2=radiation.sigma_e2,
        sigma_s=radiation.sigma_s,
        omega_s=omega_s,
        slip_factor=ring.slip_factor,
        omega0=ring.omega0,
        energy_loss=energy_loss,
        synchronous_phase=phase,
        coupling=coupling,
        epsy_coupled=max(coupling * radiation.epsx, radiation.epsy),
        sigma_e_adiabatic=energy_spread_from_bunch_length(radiation.sigma_s, ring, omega_s),
        sigma_e_rf=energy_spread_from_rf(radiation.sigma_s, ring, energy_loss),
    )


def _resolve_model(
    model: Union[int, str, AnalyticalIBS], ring: RingParameters, optics: OpticsParameters, n_part: Optional[float]
) -> AnalyticalIBS:
    """Returns the model instance, dispatching ids and names."""
    if hasattr(model, "growth_rates"):
        return model
    if n_part is None or n_part <= 0:
        LOGGER.error(f"Invalid number of particles '{n_part}' to instanciate model '{model}'.")
        raise ValueError("A strictly positive number of particles is needed to select a model by id or name.")
    return ibs_model(model, ring, optics, n_part)


def _seed(
    ring: RingParameters, eq: EquilibriumConstants, epsx: float, epsy: float, sigma_s: float
) -> Trajectory:
    """Trajectory with its first sample, the energy spread matched to the bunch length in the RF bucket."""
    if not all(value > 0 for value in (epsx, epsy, sigma_s)):
        LOGGER.error("Non-positive initial beam properties, see raised error message.")
        raise ValueError(
            f"Initial emittances and bunch length must be strictly positive, got {epsx}, {epsy} and {sigma_s}."
        )
    sigma_e = energy_spread_from_rf(sigma_s, ring, eq.energy_loss)
    LOGGER.debug(f"Seeded energy spread {sigma_e:.6e} from bunch length {sigma_s:.6e} m")
    trajectory = Trajectory()
    trajectory.append(0.0, epsx, epsy, sigma_s, sigma_e)
    return trajectory


def _evaluate(model: AnalyticalIBS, ring: RingParameters, trajectory: Trajectory) -> IBSGrowthRates:
    """IBS amplitude growth rates at the last sample of the trajectory."""
    sigma_delta = trajectory.sigma_e[-1] / ring.beta_rel**2
    return model.growth_rates(trajectory.epsx[-1], trajectory.epsy[-1], sigma_delta, trajectory.sigma_s[-1])


def _rates_array(rates: IBSGrowthRates) -> np.ndarray:
    return np.array([rates.Tx, rates.Ty, rates.Tz], dtype=float)


def _shortest_time(eq: EquilibriumConstants, rates: IBSGrowthRates) -> float:
    """Shortest of the damping times and the IBS growth times, a zero rate having an infinite time."""
    with np.errstate(divide="ignore"):
        growth_times = np.abs(1 / _rates_array(rates))
    return float(np.min(np.concatenate([eq.damping_times, growth_times])))


def step_budget(eq: EquilibriumConstants, rates: IBSGrowthRates, max_steps: int = MAX_STEPS) -> int:
    """
    .. versionadded:: 0.1.0

    Number of steps after which a convergence-driven integration stops, as ``10 * tau_max / dt``
    with ``tau_max`` the longest of the damping times, the growth times and 1 second, capped at
    1 second, and ``dt`` the shortest of the damping times and the growth times.

    Args:
        eq (EquilibriumConstants): the constants of the integration.
        rates (IBSGrowthRates): the IBS growth rates at the seed.
        max_steps (int): the hard ceiling of the budget. Defaults to 10 000.

    Returns:
        The step budget, at least 1.
    """
    with np.errstate(divide="ignore"):
        growth_times = np.abs(1 / _rates_array(rates))
    tau_max = min(float(np.max(np.concatenate([eq.damping_times, [1.0], growth_times]))), MAX_TAU)
    trial_step = _shortest_time(eq, rates)
    return max(1, min(int(10 * tau_max / trial_step), int(max_steps)))


# ----- Update rules ----- #


def _relaxation_ratios(eq: EquilibriumConstants, rates: IBSGrowthRates) -> np.ndarray:
    return eq.damping_times * _rates_array(rates)


def _relaxation_step(
    trajectory: Trajectory, eq: EquilibriumConstants, rates: IBSGrowthRates, dt: float
) -> np.ndarray:
    """New epsx, epsy and sigma_e relaxed towards their equilibria scaled by 1 / (1 - tau * T)."""
    with np.errstate(divide="ignore"):
        fx, fy, fs = 1 / (1 - _relaxation_ratios(eq, rates))
    epsx, epsy, sigma_e = trajectory.epsx[-1], trajectory.epsy[-1], trajectory.sigma_e[-1]
    # without coupling the horizontal factor must not leak into the vertical plane, even if non-finite
    coupled_factor = (1 - eq.coupling) * fy + (eq.coupling * fx if eq.coupling else 0.0)
    return np.array(
        [
            epsx + dt * (fx * eq.epsx - epsx),
            epsy + dt * (coupled_factor * eq.epsy_coupled - epsy),
            sigma_e + dt * (fs * np.sqrt(eq.sigma_e2) - sigma_e),
        ]
    )


def _derivative_step(
    trajectory: Trajectory, eq: EquilibriumConstants, rates: IBSGrowthRates, dt: float
) -> np.ndarray:
    """New epsx, epsy and sigma_e from a forward Euler step of the damped and driven equations."""
    epsx, epsy, sigma_e = trajectory.epsx[-1], trajectory.epsy[-1], trajectory.sigma_e[-1]
    dex_dt = -2 * (epsx - eq.epsx) / eq.tau_x + 2 * rates.Tx * epsx
    dey_dt = -2 * (epsy - eq.epsy_coupled) / eq.tau_y + 2 * rates.Ty * epsy
    dse_dt = -(sigma_e - np.sqrt(eq.sigma_e2)) / eq.tau_s + rates.Tz * sigma_e
    return np.array([epsx + dt * dex_dt, epsy + dt * dey_dt, sigma_e + dt * dse_dt])


UPDATE_RULES = {"rlx": _relaxation_step, "der": _derivative_step}

# ----- Stepping core ----- #


def _integrate(
    ring: RingParameters,
    model: AnalyticalIBS,
    trajectory: Trajectory,
    eq: EquilibriumConstants,
    method: str,
    step_size: Callable[[IBSGrowthRates, IBSGrowthRates], float],
    done: Callable[[int, Trajectory], bool],
    reporter: Reporter,
    seed_rates: IBSGrowthRates,
) -> Tuple[IBSGrowthRates, int]:
    """
    Advances the trajectory until the `done` predicate is met, and returns the last growth rates and
    the number of completed steps. At each step the growth rates are computed at the current state,
    the step size is derived from the previous and current rates, then one sample is appended.
    """
    update = UPDATE_RULES[method]
    previous_rates, rates = seed_rates, seed_rates
    step = 0
    finite = True
    while not done(step, trajectory):
        if step > 0:
            rates = _evaluate(model, ring, trajectory)
        dt = step_size(previous_rates, rates)
        epsx, epsy, sigma_e = update(trajectory, eq, rates, dt)
        sigma_s = bunch_length_from_energy_spread(sigma_e, ring, eq.omega_s)
        trajectory.append(trajectory.time[-1] + dt, epsx, epsy, sigma_s, sigma_e)
        previous_rates = rates
        step += 1
        reporter.on_step(step, trajectory, rates)
        if finite and not trajectory.is_finite():
            LOGGER.warning(f"Non-finite beam properties from step {step} onwards.")
            finite = False
    return rates, step


def _finalize(result: ODEResult, reporter: Reporter) -> ODEResult:
    if not result.physical:
        LOGGER.warning("The integration produced non-finite or non-positive beam properties.")
        warnings.warn(
            f"The trajectory holds non-physical values after {result.steps} steps with the '{result.method}' "
            "method, check the step size and the model inputs.",
            NonPhysicalStateWarning,
        )
    reporter.on_finish(result)
    return result


def run_until_converged(
    ring: RingParameters,
    optics: OpticsParameters,
    model: Union[int, str, AnalyticalIBS],
    epsx: float,
    epsy: float,
    sigma_s: float,
    n_part: Optional[float] = None,
    coupling_percent: float = 0.0,
    threshold: float = DEFAULT_THRESHOLD,
    method: str = DEFAULT_METHOD,
    max_steps: int = MAX_STEPS,
    reporter: Optional[Reporter] = None,
) -> ODEResult:
    r"""
    .. versionadded:: 0.1.0

    Integrates the beam properties until the relative changes of both emittances and of the bunch
    length between two consecutive samples are all at or below the threshold, or until the step
    budget (see `step_budget`) is exhausted. At least one step is always made. Each step size is
    half of the shortest of the damping times and the growth times from the previous step.

    .. note::
        Exhausting the budget is not an error, as an equilibrium does not exist for all
        configurations. It is reported by the ``converged`` flag of the result.

    Args:
        ring (RingParameters): the ring parameters.
        optics (OpticsParameters): the optics parameters.
        model (Union[int, str, AnalyticalIBS]): the IBS model, as an id or name given to `ibs_model`,
            or an instance with a `growth_rates` method.
        epsx (float): initial horizontal geometric emittance in [m].
        epsy (float): initial vertical geometric emittance in [m].
        sigma_s (float): initial bunch length in [m]. The initial energy spread is matched to it.
        n_part (float): the number of particles in the bunch, needed when the model is given by id or name.
        coupling_percent (float): the percentage of horizontal emittance transferred to the vertical
            plane, clamped into [0, 100]. Defaults to 0.
        threshold (float): the relative change threshold for convergence. Values outside of [1e-6, 1]
            are replaced by 1e-4. Defaults to 1e-4.
        method (str): the update rule, ``"der"`` or ``"rlx"``. Defaults to ``"der"``.
        max_steps (int): the hard ceiling of the step budget. Defaults to 10 000.
        reporter (Reporter): an optional observer of the integration.

    Returns:
        An `ODEResult` object.
    """
    reporter = reporter or NullReporter()
    method = sanitize_method(method)
    threshold = sanitize_threshold(threshold)
    model = _resolve_model(model, ring, optics, n_part)
    eq = equilibrium_constants(ring, optics, coupling_percent)
    trajectory = _seed(ring, eq, epsx, epsy, sigma_s)

    seed_rates = _evaluate(model, ring, trajectory)
    budget = step_budget(eq, seed_rates, max_steps)
    LOGGER.info(f"Integrating until convergence with '{method}' method, in at most {budget} steps")
    reporter.on_start(eq, seed_rates, budget)

    def converged(traj: Trajectory) -> bool:
        return bool(np.all(traj.relative_changes() <= threshold))  # NaN never counts as converged

    rates, steps = _integrate(
        ring,
        model,
        trajectory,
        eq,
        method,
        step_size=lambda previous, _: _shortest_time(eq, previous) / 2,
        done=lambda step, traj: step > 0 and (step >= budget or converged(traj)),
        reporter=reporter,
        seed_rates=seed_rates,
    )
    result = ODEResult(
        trajectory=trajectory,
        growth_rates=rates,
        equilibrium=eq,
        method=method,
        steps=steps,
        max_steps=budget,
        converged=converged(trajectory),
        physical=trajectory.is_physical(),
    )
    LOGGER.info(f"Integration finished after {steps} steps, converged: {result.converged}")
    return _finalize(result, reporter)


def run_fixed_steps(
    ring: RingParameters,
    optics: OpticsParameters,
    model: Union[int, str, AnalyticalIBS],
    epsx: float,
    epsy: float,
    sigma_s: float,
    n_steps: int,
    step_size: float,
    n_part: Optional[float] = None,
    coupling_percent: float = 0.0,
    method: str = DEFAULT_METHOD,
    reporter: Optional[Reporter] = None,
) -> ODEResult:
    """
    .. versionadded:: 0.1.0

    Integrates the beam properties for exactly `n_steps` steps, without any convergence check,
    so that the result always holds ``n_steps + 1`` samples, non-physical ones included.
    The step size is held constant, except with the relaxation rule where it is halved, for this
    step and the following ones, every time the ratio of damping time to growth time reaches 1 in
    any plane.

    Args:
        ring (RingParameters): the ring parameters.
        optics (OpticsParameters): the optics parameters.
        model (Union[int, str, AnalyticalIBS]): the IBS model, as an id or name given to `ibs_model`,
            or an instance with a `growth_rates` method.
        epsx (float): initial horizontal geometric emittance in [m].
        epsy (float): initial vertical geometric emittance in [m].
        sigma_s (float): initial bunch length in [m]. The initial energy spread is matched to it.
        n_steps (int): the number of steps to make.
        step_size (float): the step size, in [s].
        n_part (float): the number of particles in the bunch, needed when the model is given by id or name.
        coupling_percent (float): the percentage of horizontal emittance transferred to the vertical
            plane, clamped into [0, 100]. Defaults to 0.
        method (str): the update rule, ``"der"`` or ``"rlx"``. Defaults to ``"der"``.
        reporter (Reporter): an optional observer of the integration.

    Returns:
        An `ODEResult` object.
    """
    if int(n_steps) != n_steps or n_steps < 0 or not step_size > 0:
        LOGGER.error(f"Invalid number of steps '{n_steps}' or step size '{step_size}'.")
        raise ValueError(
            f"The number of steps must be a non-negative integer and the step size strictly positive, "
            f"got {n_steps} and {step_size}."
        )
    n_steps = int(n_steps)
    reporter = reporter or NullReporter()
    method = sanitize_method(method)
    model = _resolve_model(model, ring, optics, n_part)
    eq = equilibrium_constants(ring, optics, coupling_percent)
    trajectory = _seed(ring, eq, epsx, epsy, sigma_s)

    seed_rates = _evaluate(model, ring, trajectory)
    LOGGER.info(f"Integrating for {n_steps} steps of {step_size:.4e} s with '{method}' method")
    reporter.on_start(eq, seed_rates, n_steps)
    dt = float(step_size)

    def fixed_step(_: IBSGrowthRates, rates: IBSGrowthRates) -> float:
        nonlocal dt
        if method == "rlx" and np.any(_relaxation_ratios(eq, rates) >= 1):
            dt /= 2
            LOGGER.debug(f"Relaxation ratio reached 1, step size halved to {dt:.4e} s")
        return dt

    rates, steps = _integrate(
        ring,
        model,
        trajectory,
        eq,
        method,
        step_size=fixed_step,
        done=lambda step, _: step >= n_steps,
        reporter=reporter,
        seed_rates=seed_rates,
    )
    result = ODEResult(
        trajectory=trajectory,
        growth_rates=rates,
        equilibrium=eq,
        method=method,
        steps=steps,
        max_steps=n_steps,
        converged=False,
        physical=trajectory.is_physical(),
    )
    return _finalize(result, reporter)
