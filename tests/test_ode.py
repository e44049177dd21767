"""
Tests for the equilibrium integrators. Most use stub IBS models with constant growth rates on the toy
damping ring, so that the behaviour of the integration itself is checked independently of the physics
of the models. The concrete scenario at the end uses the Nagaitsev formalism.
"""
import logging

import numpy as np
import pytest

from helpers import ConstantRatesModel

from equibs.analytical import IBSGrowthRates
from equibs.ode import (
    NonPhysicalStateWarning,
    ODEResult,
    Trajectory,
    equilibrium_constants,
    run_fixed_steps,
    run_until_converged,
    sanitize_coupling,
    sanitize_method,
    sanitize_threshold,
    step_budget,
)
from equibs.rf import bunch_length_from_energy_spread, energy_spread_from_rf

DR_SEED = dict(epsx=5e-8, epsy=5e-11, sigma_s=5e-3)

# ----- Input sanitizing ----- #


@pytest.mark.parametrize(
    "method, expected",
    [("rlx", "rlx"), ("RELAXATION", "rlx"), ("der", "der"), ("Derivative", "der"), ("rk4", "der")],
)
def test_sanitize_method(method, expected):
    assert sanitize_method(method) == expected


def test_sanitize_method_warns_on_fallback(caplog):
    sanitize_method("euler")
    assert "Unknown integration method 'euler'" in caplog.text


@pytest.mark.parametrize(
    "threshold, expected", [(1e-3, 1e-3), (1e-6, 1e-6), (1.0, 1.0), (2.0, 1e-4), (1e-9, 1e-4), (-1, 1e-4)]
)
def test_sanitize_threshold(threshold, expected):
    assert sanitize_threshold(threshold) == expected


@pytest.mark.parametrize("percent, expected", [(-5, 0.0), (0, 0.0), (10, 0.1), (100, 1.0), (150, 1.0)])
def test_sanitize_coupling(percent, expected):
    assert np.isclose(sanitize_coupling(percent), expected)


# ----- Equilibrium constants ----- #


def test_equilibrium_constants(damping_ring, damping_ring_optics):
    eq = equilibrium_constants(damping_ring, damping_ring_optics, coupling_percent=10)
    assert np.isclose(eq.coupling, 0.1)
    assert eq.epsy_coupled == max(0.1 * eq.epsx, eq.epsy)
    assert np.allclose(eq.damping_times, [eq.tau_x, eq.tau_y, eq.tau_s])
    assert 0.01 < eq.tau_x < 1  # tens of milliseconds for this ring
    assert np.isclose(eq.sigma_s, bunch_length_from_energy_spread(np.sqrt(eq.sigma_e2), damping_ring, eq.omega_s))
    with pytest.raises(AttributeError):  # frozen
        eq.tau_x = 1.0


def test_energy_spread_diagnostics(damping_ring, damping_ring_optics):
    eq = equilibrium_constants(damping_ring, damping_ring_optics)
    # both are computed back from the equilibrium bunch length, and must agree with the radiation equilibrium
    assert np.isclose(eq.sigma_e_adiabatic, np.sqrt(eq.sigma_e2), rtol=1e-9)
    assert np.isclose(eq.sigma_e_rf, np.sqrt(eq.sigma_e2), rtol=1e-6)


def test_vertical_target_floor(damping_ring, damping_ring_optics):
    uncoupled = equilibrium_constants(damping_ring, damping_ring_optics, coupling_percent=0)
    assert uncoupled.epsy_coupled == uncoupled.epsy  # the vertical dispersion floor


# ----- Trajectory ----- #


def test_trajectory_records():
    trajectory = Trajectory()
    trajectory.append(0.0, 1.0, 2.0, 3.0, 4.0)
    assert len(trajectory) == 1
    assert np.all(np.isinf(trajectory.relative_changes()))
    trajectory.append(1.0, 2.0, 2.0, 1.5, 2.0)
    assert len(trajectory) == 2
    assert np.allclose(trajectory.relative_changes(), [1.0, 0.0, 0.5])
    assert trajectory.sigma_e2 == [16.0, 4.0]
    assert trajectory.is_physical()
    trajectory.append(2.0, -1.0, 2.0, 1.5, 2.0)
    assert trajectory.is_finite()
    assert not trajectory.is_physical()


# ----- Fixed steps integration ----- #


@pytest.mark.parametrize("method", ["der", "rlx"])
@pytest.mark.parametrize("n_steps", [0, 1, 7])
def test_fixed_steps_lengths(method, n_steps, damping_ring, damping_ring_optics, constant_rates_model):
    result = run_fixed_steps(
        damping_ring, damping_ring_optics, constant_rates_model, n_steps=n_steps, step_size=1e-3, method=method, **DR_SEED
    )
    assert isinstance(result, ODEResult)
    trajectory = result.trajectory
    assert result.steps == n_steps
    assert result.converged is False
    for sequence in (trajectory.time, trajectory.epsx, trajectory.epsy, trajectory.sigma_s, trajectory.sigma_e):
        assert len(sequence) == n_steps + 1
    assert np.allclose(np.diff(trajectory.time), 1e-3)
    assert constant_rates_model.calls == n_steps + (1 if n_steps == 0 else 0)  # rates at the seed are reused


def test_fixed_steps_relaxation_halves_step(damping_ring, damping_ring_optics):
    eq = equilibrium_constants(damping_ring, damping_ring_optics)
    model = ConstantRatesModel(Tx=2 / eq.tau_x, Ty=0.0, Tz=0.0)  # ratio of 2 in the horizontal plane
    result = run_fixed_steps(damping_ring, damping_ring_optics, model, n_steps=3, step_size=1e-3, method="rlx", **DR_SEED)
    assert np.allclose(np.diff(result.trajectory.time), [5e-4, 2.5e-4, 1.25e-4])


def test_fixed_steps_derivative_keeps_step(damping_ring, damping_ring_optics):
    eq = equilibrium_constants(damping_ring, damping_ring_optics)
    model = ConstantRatesModel(Tx=2 / eq.tau_x, Ty=0.0, Tz=0.0)
    result = run_fixed_steps(damping_ring, damping_ring_optics, model, n_steps=3, step_size=1e-3, method="der", **DR_SEED)
    assert np.allclose(np.diff(result.trajectory.time), 1e-3)


def test_fixed_steps_derivative_update(damping_ring, damping_ring_optics, constant_rates_model):
    """One forward Euler step of the damped and driven equations."""
    result = run_fixed_steps(
        damping_ring, damping_ring_optics, constant_rates_model, n_steps=1, step_size=1e-3, method="der", **DR_SEED
    )
    eq, trajectory = result.equilibrium, result.trajectory
    expected_epsx = DR_SEED["epsx"] + 1e-3 * (-2 * (DR_SEED["epsx"] - eq.epsx) / eq.tau_x + 2 * DR_SEED["epsx"])
    expected_sige = trajectory.sigma_e[0] + 1e-3 * (
        -(trajectory.sigma_e[0] - np.sqrt(eq.sigma_e2)) / eq.tau_s + trajectory.sigma_e[0]
    )
    assert np.isclose(trajectory.epsx[1], expected_epsx, rtol=1e-12)
    assert np.isclose(trajectory.sigma_e[1], expected_sige, rtol=1e-12)


def test_fixed_steps_invalid_inputs_raise(damping_ring, damping_ring_optics, constant_rates_model):
    with pytest.raises(ValueError, match="number of steps"):
        run_fixed_steps(damping_ring, damping_ring_optics, constant_rates_model, n_steps=-1, step_size=1e-3, **DR_SEED)
    with pytest.raises(ValueError, match="step size"):
        run_fixed_steps(damping_ring, damping_ring_optics, constant_rates_model, n_steps=3, step_size=0.0, **DR_SEED)
    with pytest.raises(ValueError, match="strictly positive"):
        run_fixed_steps(
            damping_ring, damping_ring_optics, constant_rates_model, 0.0, 5e-11, 5e-3, n_steps=3, step_size=1e-3
        )


def test_model_id_requires_particles(damping_ring, damping_ring_optics):
    with pytest.raises(ValueError, match="number of particles"):
        run_fixed_steps(damping_ring, damping_ring_optics, 4, n_steps=1, step_size=1e-3, **DR_SEED)


def test_model_by_id(damping_ring, damping_ring_optics):
    result = run_fixed_steps(damping_ring, damping_ring_optics, 4, n_steps=2, step_size=1e-3, n_part=1e10, **DR_SEED)
    assert len(result.trajectory) == 3
    assert result.physical


# ----- Convergence-driven integration ----- #


def test_converges_with_constant_rates(damping_ring, damping_ring_optics, constant_rates_model):
    result = run_until_converged(damping_ring, damping_ring_optics, constant_rates_model, threshold=1e-4, **DR_SEED)
    assert result.converged
    assert result.physical
    assert np.all(result.trajectory.relative_changes() <= 1e-4)
    assert len(result.trajectory) == result.steps + 1
    # With constant rates, the fixed point of the derivative equations is known
    eq = result.equilibrium
    assert np.isclose(result.trajectory.epsx[-1], eq.epsx / (1 - eq.tau_x * 1.0), rtol=1e-3)


def test_step_budget_bounds_the_trajectory(damping_ring, damping_ring_optics, constant_rates_model):
    result = run_until_converged(
        damping_ring, damping_ring_optics, constant_rates_model, threshold=1e-6, max_steps=5, **DR_SEED
    )
    assert result.max_steps == 5
    assert result.steps == 5
    assert len(result.trajectory) == 6
    assert not result.converged


def test_step_budget(damping_ring, damping_ring_optics):
    eq = equilibrium_constants(damping_ring, damping_ring_optics)
    rates = IBSGrowthRates(1.0, 1.0, 1.0)
    shortest = min(eq.tau_x, eq.tau_y, eq.tau_s)
    assert step_budget(eq, rates) == int(10 / shortest)
    assert step_budget(eq, IBSGrowthRates(0.0, 0.0, 0.0)) == int(10 / shortest)  # zero rates are infinite times
    assert step_budget(eq, IBSGrowthRates(1e6, 0.0, 0.0)) == 10_000  # hard ceiling
    assert step_budget(eq, rates, max_steps=3) == 3


def test_convergence_step_size_is_half_shortest_time(damping_ring, damping_ring_optics, constant_rates_model):
    result = run_until_converged(damping_ring, damping_ring_optics, constant_rates_model, **DR_SEED)
    eq = result.equilibrium
    shortest = min(eq.tau_x, eq.tau_y, eq.tau_s, 1.0)
    assert np.allclose(np.diff(result.trajectory.time), shortest / 2)


def test_determinism(damping_ring, damping_ring_optics):
    first = run_until_converged(damping_ring, damping_ring_optics, ConstantRatesModel(), **DR_SEED)
    second = run_until_converged(damping_ring, damping_ring_optics, ConstantRatesModel(), **DR_SEED)
    assert first.trajectory == second.trajectory
    assert first.steps == second.steps


@pytest.mark.parametrize("given, clamped", [(-5, 0), (150, 100)])
def test_coupling_clamping(given, clamped, damping_ring, damping_ring_optics):
    reference = run_fixed_steps(
        damping_ring, damping_ring_optics, ConstantRatesModel(), n_steps=5, step_size=1e-3, coupling_percent=clamped, **DR_SEED
    )
    result = run_fixed_steps(
        damping_ring, damping_ring_optics, ConstantRatesModel(), n_steps=5, step_size=1e-3, coupling_percent=given, **DR_SEED
    )
    assert result.trajectory == reference.trajectory


def test_threshold_clamping(damping_ring, damping_ring_optics):
    reference = run_until_converged(damping_ring, damping_ring_optics, ConstantRatesModel(), threshold=1e-4, **DR_SEED)
    result = run_until_converged(damping_ring, damping_ring_optics, ConstantRatesModel(), threshold=2.0, **DR_SEED)
    assert result.trajectory == reference.trajectory


def test_invalid_method_falls_back_to_derivative(damping_ring, damping_ring_optics, caplog):
    caplog.set_level(logging.WARNING)
    result = run_fixed_steps(
        damping_ring, damping_ring_optics, ConstantRatesModel(), n_steps=2, step_size=1e-3, method="leapfrog", **DR_SEED
    )
    reference = run_fixed_steps(
        damping_ring, damping_ring_optics, ConstantRatesModel(), n_steps=2, step_size=1e-3, method="der", **DR_SEED
    )
    assert result.method == "der"
    assert result.trajectory == reference.trajectory
    assert "falling back to 'der'" in caplog.text


# ----- Behaviours at equilibrium ----- #


@pytest.mark.parametrize("method", ["der", "rlx"])
def test_schemes_stay_at_equilibrium(method, damping_ring, damping_ring_optics, zero_rates_model):
    eq = equilibrium_constants(damping_ring, damping_ring_optics)
    result = run_fixed_steps(
        damping_ring,
        damping_ring_optics,
        zero_rates_model,
        epsx=eq.epsx,
        epsy=eq.epsy_coupled,
        sigma_s=eq.sigma_s,
        n_steps=3,
        step_size=1e-3,
        method=method,
    )
    trajectory = result.trajectory
    assert np.allclose(trajectory.epsx, eq.epsx, rtol=1e-9, atol=0)
    assert np.allclose(trajectory.epsy, eq.epsy_coupled, rtol=1e-9, atol=0)
    assert np.allclose(trajectory.sigma_s, eq.sigma_s, rtol=1e-9, atol=0)
    assert np.allclose(trajectory.sigma_e2, eq.sigma_e2, rtol=1e-9, atol=0)


@pytest.mark.parametrize("method", ["der", "rlx"])
def test_bunch_length_consistency(method, damping_ring, damping_ring_optics, constant_rates_model):
    result = run_fixed_steps(
        damping_ring, damping_ring_optics, constant_rates_model, n_steps=10, step_size=1e-3, method=method, **DR_SEED
    )
    eq, trajectory = result.equilibrium, result.trajectory
    for sigma_s, sigma_e in zip(trajectory.sigma_s, trajectory.sigma_e):
        assert np.isclose(bunch_length_from_energy_spread(sigma_e, damping_ring, eq.omega_s), sigma_s, rtol=1e-12)
        assert np.isclose(energy_spread_from_rf(sigma_s, damping_ring, eq.energy_loss), sigma_e, rtol=1e-9)


# ----- Non-physical states ----- #


def test_non_physical_trajectory_warns(damping_ring, damping_ring_optics, zero_rates_model, caplog):
    eq = equilibrium_constants(damping_ring, damping_ring_optics)
    # A relaxation step much larger than 1 overshoots the equilibrium to negative emittances
    with pytest.warns(NonPhysicalStateWarning):
        result = run_fixed_steps(
            damping_ring,
            damping_ring_optics,
            zero_rates_model,
            epsx=10 * eq.epsx,
            epsy=eq.epsy_coupled,
            sigma_s=eq.sigma_s,
            n_steps=2,
            step_size=3.0,
            method="rlx",
        )
    assert not result.physical
    assert result.trajectory.epsx[1] < 0
    assert "non-finite or non-positive" in caplog.text


def test_non_finite_state_propagates(damping_ring, damping_ring_optics, caplog):
    model = ConstantRatesModel(Tx=np.inf, Ty=0.0, Tz=0.0)
    with pytest.warns(NonPhysicalStateWarning):
        result = run_fixed_steps(damping_ring, damping_ring_optics, model, n_steps=5, step_size=1e-3, **DR_SEED)
    assert result.steps == 5
    assert len(result.trajectory) == 6  # all samples are kept
    assert not np.isfinite(result.trajectory.epsx[1])
    assert result.physical is False
    assert caplog.text.count("Non-finite beam properties from step 1 onwards") == 1


def test_non_finite_relaxation_factor_stays_in_its_plane(damping_ring, damping_ring_optics):
    model = ConstantRatesModel(Tx=np.nan, Ty=0.0, Tz=0.0)
    with pytest.warns(NonPhysicalStateWarning):
        result = run_fixed_steps(
            damping_ring, damping_ring_optics, model, n_steps=5, step_size=1e-3, method="rlx", **DR_SEED
        )
    trajectory = result.trajectory
    assert len(trajectory) == 6
    assert result.physical is False
    assert np.all(np.isnan(trajectory.epsx[1:]))
    assert np.all(np.isfinite(trajectory.epsy)) and np.all(np.isfinite(trajectory.sigma_s))


# ----- Concrete scenario ----- #


def test_smooth_ring_scenario_converges(smooth_ring, scenario_optics):
    """Toy ring at gamma = 100 with Nagaitsev growth rates, integrated until convergence."""
    result = run_until_converged(
        smooth_ring,
        scenario_optics,
        model=4,
        epsx=1e-9,
        epsy=1e-11,
        sigma_s=0.01,
        n_part=1e11,
        coupling_percent=0,
        threshold=1e-3,
        method="der",
    )
    trajectory = result.trajectory
    assert result.converged
    assert result.physical
    assert len(trajectory) <= 10_001
    assert len(trajectory) <= result.max_steps + 1
    assert np.all(trajectory.relative_changes() <= 1e-3)
    finals = [trajectory.epsx[-1], trajectory.epsy[-1], trajectory.sigma_s[-1]]
    assert np.all(np.isfinite(finals)) and np.all(np.array(finals) > 0)
