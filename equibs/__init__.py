"""
equibs package
~~~~~~~~~~~~~~

equibs is a library to compute the equilibrium beam properties of a storage ring under
radiation damping, quantum excitation and Intra-Beam Scattering. It provides a bank of
analytical IBS growth rates models and integrators evolving the beam until equilibrium.

:copyright: (c) 2023 Felix Soubelet.
:license: Apache-2.0, see LICENSE file for more details.
"""
from .analytical import (
    BjorkenMtingwaIBS,
    BjorkenMtingwaSimpsonIBS,
    BjorkenMtingwaTailCutIBS,
    ConteMartiniIBS,
    ConteMartiniTailCutIBS,
    IBSGrowthRates,
    MadxAdaptiveIBS,
    MadxIBS,
    MadxTailCutIBS,
    NagaitsevIBS,
    NagaitsevTailCutIBS,
)
from .config import RunConfig
from .dispatch import ibs_model
from .inputs import OpticsParameters, RingParameters
from .ode import NonPhysicalStateWarning, ODEResult, Trajectory, run_fixed_steps, run_until_converged
from .piwinski import PiwinskiLatticeIBS, PiwinskiModifiedIBS, PiwinskiSmoothIBS
from .reporting import ConsoleReporter, LoggingReporter, NullReporter, write_csv
from .version import VERSION

__title__ = "equibs"
__description__ = "Equilibrium beam properties under radiation damping and Intra-Beam Scattering."
__url__ = "https://github.com/fsoubelet/equibs"
__version__ = VERSION
__author__ = "Felix Soubelet"
__author_email__ = "felix.soubelet@cern.ch"
__license__ = "Apache-2.0"

# Expose chosen elements at the top-level of the package
# One can then directly import equibs.RingParameters for instance
__all__ = [
    "ibs_model",
    "run_until_converged",
    "run_fixed_steps",
    "RingParameters",
    "OpticsParameters",
    "RunConfig",
    "ODEResult",
    "Trajectory",
    "IBSGrowthRates",
    "NonPhysicalStateWarning",
    "ConsoleReporter",
    "LoggingReporter",
    "NullReporter",
    "write_csv",
    "PiwinskiSmoothIBS",
    "PiwinskiLatticeIBS",
    "PiwinskiModifiedIBS",
    "NagaitsevIBS",
    "NagaitsevTailCutIBS",
    "MadxIBS",
    "MadxTailCutIBS",
    "MadxAdaptiveIBS",
    "BjorkenMtingwaIBS",
    "BjorkenMtingwaSimpsonIBS",
    "BjorkenMtingwaTailCutIBS",
    "ConteMartiniIBS",
    "ConteMartiniTailCutIBS",
]
