"""
.. _equibs-config:

Run Configuration
-----------------

Module with a container dataclass for the settings of an integration, which can be loaded from a
``YAML`` file. A configuration file holds a flat mapping, for instance:

.. code-block:: yaml

    model: nagaitsev
    n_part: 1.0e+11
    epsx: 1.0e-9
    epsy: 1.0e-11
    sigma_s: 0.01
    threshold: 1.0e-3
    method: der
    output: trajectory.csv

When ``n_steps`` and ``step_size`` are given, a fixed number of steps is made instead of
integrating until convergence.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from logging import getLogger
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from equibs.inputs import OpticsParameters, RingParameters
from equibs.ode import (
    DEFAULT_METHOD,
    DEFAULT_THRESHOLD,
    MAX_STEPS,
    ODEResult,
    run_fixed_steps,
    run_until_converged,
)
from equibs.reporting import Reporter, write_csv

LOGGER = getLogger(__name__)


@dataclass
class RunConfig:
    """
    .. versionadded:: 0.1.0

    Container dataclass for the settings of an integration.

    Args:
        model (Union[int, str]): the IBS model id or name, see `ibs_model`.
        n_part (float): the number of particles in the bunch.
        epsx (float): initial horizontal geometric emittance in [m].
        epsy (float): initial vertical geometric emittance in [m].
        sigma_s (float): initial bunch length in [m].
        coupling_percent (float): the percentage of horizontal emittance transferred to the vertical
            plane. Defaults to 0.
        threshold (float): the relative change threshold for convergence. Defaults to 1e-4.
        method (str): the update rule, ``"der"`` or ``"rlx"``. Defaults to ``"der"``.
        max_steps (int): the hard ceiling of the step budget. Defaults to 10 000.
        n_steps (int): if given, the number of steps of a fixed-steps integration.
        step_size (float): the step size of a fixed-steps integration, in [s].
        output (str): if given, the path of the CSV file to export the trajectory to.
    """

    model: Union[int, str]
    n_part: float
    epsx: float
    epsy: float
    sigma_s: float
    coupling_percent: float = 0.0
    threshold: float = DEFAULT_THRESHOLD
    method: str = DEFAULT_METHOD
    max_steps: int = MAX_STEPS
    n_steps: Optional[int] = None
    step_size: Optional[float] = None
    output: Optional[str] = None

    @classmethod
    def from_dict(cls, settings: Mapping[str, Any]) -> RunConfig:
        """Builds the configuration from a mapping, unknown keys raise a `KeyError`."""
        known = {config_field.name for config_field in fields(cls)}
        unknown = sorted(set(settings) - known)
        if unknown:
            LOGGER.error(f"Unknown configuration keys {unknown}.")
            raise KeyError(f"Unknown keys in the run configuration: {unknown}. Valid keys are {sorted(known)}.")
        return cls(**settings)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> RunConfig:
        """
        .. versionadded:: 0.1.0

        Loads the configuration from a ``YAML`` file holding a flat mapping of settings.

        Args:
            path (Union[str, Path]): the configuration file.

        Returns:
            A `RunConfig` object.
        """
        LOGGER.debug(f"Loading run configuration from '{path}'")
        with Path(path).open("r") as config_file:
            settings = yaml.safe_load(config_file)
        if not isinstance(settings, Mapping):
            LOGGER.error(f"Invalid configuration file '{path}'.")
            raise ValueError(f"The configuration file '{path}' must hold a mapping of settings.")
        return cls.from_dict(settings)

    def to_dict(self) -> dict:
        return asdict(self)

    def run(
        self, ring: RingParameters, optics: OpticsParameters, reporter: Optional[Reporter] = None
    ) -> ODEResult:
        """
        .. versionadded:: 0.1.0

        Runs the configured integration, a fixed-steps one if `n_steps` is set and one until
        convergence otherwise, then exports the trajectory if `output` is set.

        Args:
            ring (RingParameters): the ring parameters.
            optics (OpticsParameters): the optics parameters.
            reporter (Reporter): an optional observer of the integration.

        Returns:
            The `ODEResult` of the integration.
        """
        beam = dict(epsx=self.epsx, epsy=self.epsy, sigma_s=self.sigma_s)
        if self.n_steps is not None:
            if self.step_size is None:
                LOGGER.error("A step size is needed for a fixed-steps integration.")
                raise ValueError("The 'step_size' setting is required when 'n_steps' is given.")
            result = run_fixed_steps(
                ring,
                optics,
                self.model,
                n_steps=self.n_steps,
                step_size=self.step_size,
                n_part=self.n_part,
                coupling_percent=self.coupling_percent,
                method=self.method,
                reporter=reporter,
                **beam,
            )
        else:
            result = run_until_converged(
                ring,
                optics,
                self.model,
                n_part=self.n_part,
                coupling_percent=self.coupling_percent,
                threshold=self.threshold,
                method=self.method,
                max_steps=self.max_steps,
                reporter=reporter,
                **beam,
            )
        if self.output is not None:
            LOGGER.info(f"Exporting trajectory to '{self.output}'")
            write_csv(self.output, result.trajectory)
        return result
