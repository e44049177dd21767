"""
Tests for the reporters and the CSV export of trajectories.
"""
import io
import logging

import numpy as np
import pytest

from equibs.ode import Trajectory, run_fixed_steps
from equibs.reporting import CSV_HEADER, ConsoleReporter, LoggingReporter, NullReporter, format_line, write_csv

DR_SEED = dict(epsx=5e-8, epsy=5e-11, sigma_s=5e-3)


def test_format_line():
    line = format_line("Tau_x", 0.0123, "s")
    label, rest = line.split(" : ")
    assert label == "Tau_x".ljust(20)
    assert rest == "%20.6e (s)" % 0.0123
    assert float(rest.split("(")[0]) == pytest.approx(0.0123)


def test_console_reporter(damping_ring, damping_ring_optics, constant_rates_model):
    stream = io.StringIO()
    run_fixed_steps(
        damping_ring,
        damping_ring_optics,
        constant_rates_model,
        n_steps=4,
        step_size=1e-3,
        reporter=ConsoleReporter(stream=stream),
        **DR_SEED,
    )
    output = stream.getvalue()
    for label in ("Energy loss", "Synchronous phase", "Tau_x", "Eq. ex", "Initial Tx", "Final ex", "Final Tz"):
        assert label in output
    assert "Integrating" in output  # the progress bar


def test_start_summary_reports_energy_spread_checks(damping_ring, damping_ring_optics, constant_rates_model):
    stream = io.StringIO()
    result = run_fixed_steps(
        damping_ring,
        damping_ring_optics,
        constant_rates_model,
        n_steps=1,
        step_size=1e-3,
        reporter=ConsoleReporter(stream=stream, progress=False),
        **DR_SEED,
    )
    lines = stream.getvalue().splitlines()
    eq = result.equilibrium
    assert format_line("Eq. sige adiabatic", eq.sigma_e_adiabatic, "1") in lines
    assert format_line("Eq. sige RF check", eq.sigma_e_rf, "1") in lines


def test_console_reporter_without_progress(damping_ring, damping_ring_optics, constant_rates_model):
    stream = io.StringIO()
    reporter = ConsoleReporter(stream=stream, progress=False)
    run_fixed_steps(
        damping_ring, damping_ring_optics, constant_rates_model, n_steps=2, step_size=1e-3, reporter=reporter, **DR_SEED
    )
    assert "Integrating" not in stream.getvalue()
    assert reporter._bar is None


def test_logging_reporter(damping_ring, damping_ring_optics, constant_rates_model, caplog):
    caplog.set_level(logging.INFO, logger="equibs.reporting")
    run_fixed_steps(
        damping_ring,
        damping_ring_optics,
        constant_rates_model,
        n_steps=2,
        step_size=1e-3,
        reporter=LoggingReporter(),
        **DR_SEED,
    )
    assert "Tau_s" in caplog.text
    assert "Step budget" in caplog.text
    assert "Final sigs" in caplog.text


def test_null_reporter_is_silent(damping_ring, damping_ring_optics, constant_rates_model, capsys):
    run_fixed_steps(
        damping_ring,
        damping_ring_optics,
        constant_rates_model,
        n_steps=2,
        step_size=1e-3,
        reporter=NullReporter(),
        **DR_SEED,
    )
    captured = capsys.readouterr()
    assert captured.out == ""


# ----- CSV export ----- #


def test_write_csv(tmp_path):
    trajectory = Trajectory()
    trajectory.append(0.0, 1e-9, 1e-11, 1e-2, 1e-3)
    trajectory.append(1e-3, 2e-9, 2e-11, 2e-2, 2e-3)
    path = write_csv(tmp_path / "trajectory.csv", trajectory)

    lines = path.read_text().splitlines()
    assert lines[0] == CSV_HEADER == "t,ex,ey,sigs"
    assert len(lines) == 3
    data = np.loadtxt(path, delimiter=",", skiprows=1)
    assert data.shape == (2, 4)
    assert np.allclose(data[1], [1e-3, 2e-9, 2e-11, 2e-2])


def test_write_csv_truncates_to_shortest_sequence(tmp_path):
    trajectory = Trajectory(
        time=[0.0, 1.0, 2.0], epsx=[1.0, 2.0, 3.0], epsy=[1.0, 2.0], sigma_s=[1.0, 2.0, 3.0], sigma_e=[1.0, 2.0, 3.0]
    )
    path = write_csv(str(tmp_path / "short.csv"), trajectory)
    data = np.loadtxt(path, delimiter=",", skiprows=1)
    assert data.shape == (2, 4)


def test_write_csv_single_sample(tmp_path):
    trajectory = Trajectory()
    trajectory.append(0.0, 1e-9, 1e-11, 1e-2, 1e-3)
    path = write_csv(tmp_path / "seed.csv", trajectory)
    assert len(path.read_text().splitlines()) == 2
