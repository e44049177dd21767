"""
.. _equibs-reporting:

Reporting
---------

Module with the observers of an integration and the export of its results. The integrators call a
`Reporter` once at the start, once per step and once at the end of a run, and never write to the
console themselves. Reporters are injected by the caller: `ConsoleReporter` prints a summary and a
progress bar, `LoggingReporter` sends the same summary lines to the logging system, and `NullReporter`
(the default) ignores everything.
"""
from __future__ import annotations

import logging
import sys

from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, TYPE_CHECKING, List, Optional, Tuple, Union

import numpy as np

from tqdm import tqdm

if TYPE_CHECKING:
    from equibs.analytical import IBSGrowthRates
    from equibs.ode import EquilibriumConstants, ODEResult, Trajectory

LOGGER = logging.getLogger(__name__)

CSV_HEADER = "t,ex,ey,sigs"


def format_line(label: str, value: float, units: str) -> str:
    """Single-line diagnostic of a labeled scalar, as ``label : value (units)``."""
    return "%-20s : %20.6e (%s)" % (label, value, units)


def _start_lines(constants: EquilibriumConstants, rates: IBSGrowthRates) -> List[str]:
    """Summary of the equilibrium constants and seed growth rates, one line per quantity."""
    quantities: List[Tuple[str, float, str]] = [
        ("Energy loss", constants.energy_loss, "eV"),
        ("Synchronous phase", np.rad2deg(constants.synchronous_phase), "deg"),
        ("Omega_s", constants.omega_s, "rad/s"),
        ("Tau_x", constants.tau_x, "s"),
        ("Tau_y", constants.tau_y, "s"),
        ("Tau_s", constants.tau_s, "s"),
        ("Eq. ex", constants.epsx, "m"),
        ("Eq. ey", constants.epsy, "m"),
        ("Eq. ey coupled", constants.epsy_coupled, "m"),
        ("Eq. sige", np.sqrt(constants.sigma_e2), "1"),
        ("Eq. sigs", constants.sigma_s, "m"),
        ("Eq. sige adiabatic", constants.sigma_e_adiabatic, "1"),
        ("Eq. sige RF check", constants.sigma_e_rf, "1"),
        ("Initial Tx", rates.Tx, "1/s"),
        ("Initial Ty", rates.Ty, "1/s"),
        ("Initial Tz", rates.Tz, "1/s"),
    ]
    return [format_line(*quantity) for quantity in quantities]


def _finish_lines(result: ODEResult) -> List[str]:
    """Summary of the final state of an integration, one line per quantity."""
    trajectory = result.trajectory
    quantities: List[Tuple[str, float, str]] = [
        ("Steps", result.steps, "1"),
        ("Final time", trajectory.time[-1], "s"),
        ("Final ex", trajectory.epsx[-1], "m"),
        ("Final ey", trajectory.epsy[-1], "m"),
        ("Final sigs", trajectory.sigma_s[-1], "m"),
        ("Final sige", trajectory.sigma_e[-1], "1"),
        ("Final Tx", result.growth_rates.Tx, "1/s"),
        ("Final Ty", result.growth_rates.Ty, "1/s"),
        ("Final Tz", result.growth_rates.Tz, "1/s"),
    ]
    return [format_line(*quantity) for quantity in quantities]


class Reporter(ABC):
    """
    .. versionadded:: 0.1.0

    Abstract base class for the observers of an integration.
    """

    @abstractmethod
    def on_start(self, constants: EquilibriumConstants, rates: IBSGrowthRates, max_steps: int) -> None:
        """Called once the equilibrium constants and the growth rates at the seed are known."""

    @abstractmethod
    def on_step(self, step: int, trajectory: Trajectory, rates: IBSGrowthRates) -> None:
        """Called after each appended sample."""

    @abstractmethod
    def on_finish(self, result: ODEResult) -> None:
        """Called with the `ODEResult` at the end of the integration."""


class NullReporter(Reporter):
    """A reporter that ignores everything."""

    def on_start(self, constants: EquilibriumConstants, rates: IBSGrowthRates, max_steps: int) -> None:
        pass

    def on_step(self, step: int, trajectory: Trajectory, rates: IBSGrowthRates) -> None:
        pass

    def on_finish(self, result: ODEResult) -> None:
        pass


class ConsoleReporter(Reporter):
    """
    .. versionadded:: 0.1.0

    Writes the equilibrium summary and the final state to a stream, and shows a progress bar bounded
    by the step budget of the integration.

    Args:
        stream (IO[str]): the stream to write to. Defaults to the standard output.
        progress (bool): whether to show a progress bar. Defaults to `True`.
    """

    def __init__(self, stream: Optional[IO[str]] = None, progress: bool = True) -> None:
        self.stream: IO[str] = stream if stream is not None else sys.stdout
        self.progress: bool = progress
        self._bar: Optional[tqdm] = None

    def _write(self, lines: List[str]) -> None:
        for line in lines:
            self.stream.write(line + "\n")
        self.stream.flush()

    def on_start(self, constants: EquilibriumConstants, rates: IBSGrowthRates, max_steps: int) -> None:
        self._write(_start_lines(constants, rates))
        if self.progress:
            self._bar = tqdm(total=max_steps, desc="Integrating", unit="step", file=self.stream)

    def on_step(self, step: int, trajectory: Trajectory, rates: IBSGrowthRates) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def on_finish(self, result: ODEResult) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
        self._write(_finish_lines(result))


class LoggingReporter(Reporter):
    """
    .. versionadded:: 0.1.0

    Sends the equilibrium summary and the final state to the logging system, and the state at each
    step at the DEBUG level.

    Args:
        level (int): the logging level of the summary lines. Defaults to ``logging.INFO``.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        self.level: int = level

    def on_start(self, constants: EquilibriumConstants, rates: IBSGrowthRates, max_steps: int) -> None:
        for line in _start_lines(constants, rates):
            LOGGER.log(self.level, line)
        LOGGER.log(self.level, format_line("Step budget", max_steps, "1"))

    def on_step(self, step: int, trajectory: Trajectory, rates: IBSGrowthRates) -> None:
        LOGGER.debug(
            f"Step {step}: ex = {trajectory.epsx[-1]:.6e}, ey = {trajectory.epsy[-1]:.6e}, "
            f"sigs = {trajectory.sigma_s[-1]:.6e}"
        )

    def on_finish(self, result: ODEResult) -> None:
        for line in _finish_lines(result):
            LOGGER.log(self.level, line)


def write_csv(path: Union[str, Path], trajectory: Trajectory) -> Path:
    """
    .. versionadded:: 0.1.0

    Exports the trajectory to a CSV file with header ``t,ex,ey,sigs`` and one row per sample. The
    rows are truncated to the shortest of the four sequences.

    Args:
        path (Union[str, Path]): the file to write to.
        trajectory (Trajectory): the trajectory to export.

    Returns:
        The path to the written file.
    """
    path = Path(path)
    columns = (trajectory.time, trajectory.epsx, trajectory.epsy, trajectory.sigma_s)
    rows = min(len(column) for column in columns)
    data = np.column_stack([np.asarray(column[:rows], dtype=float) for column in columns])
    LOGGER.debug(f"Writing {rows} samples to '{path}'")
    np.savetxt(path, data.reshape(rows, 4), delimiter=",", header=CSV_HEADER, comments="", fmt="%.12e")
    return path
