"""
.. _equibs-dispatch:

Model Dispatch
--------------

This module provides a single function, `ibs_model`, to ease the class instantiation for the user. The function
returns an instance of the relevant IBS modelling class based on the desired model, given either by its integer
id or by its name.
"""
from logging import getLogger
from typing import Dict, Type, Union

from equibs.analytical import (
    AnalyticalIBS,
    BjorkenMtingwaIBS,
    BjorkenMtingwaSimpsonIBS,
    BjorkenMtingwaTailCutIBS,
    ConteMartiniIBS,
    ConteMartiniTailCutIBS,
    MadxAdaptiveIBS,
    MadxIBS,
    MadxTailCutIBS,
    NagaitsevIBS,
    NagaitsevTailCutIBS,
)
from equibs.inputs import OpticsParameters, RingParameters
from equibs.piwinski import PiwinskiLatticeIBS, PiwinskiModifiedIBS, PiwinskiSmoothIBS

LOGGER = getLogger(__name__)

# The model ids and their names, in order
MODELS: Dict[int, Type[AnalyticalIBS]] = {
    1: PiwinskiSmoothIBS,
    2: PiwinskiLatticeIBS,
    3: PiwinskiModifiedIBS,
    4: NagaitsevIBS,
    5: NagaitsevTailCutIBS,
    6: MadxIBS,
    7: MadxTailCutIBS,
    8: BjorkenMtingwaSimpsonIBS,
    9: BjorkenMtingwaIBS,
    10: BjorkenMtingwaTailCutIBS,
    11: ConteMartiniIBS,
    12: ConteMartiniTailCutIBS,
    13: MadxAdaptiveIBS,
}

MODEL_NAMES: Dict[str, int] = {
    "piwinski-smooth": 1,
    "piwinski-lattice": 2,
    "piwinski-modified": 3,
    "nagaitsev": 4,
    "nagaitsev-tailcut": 5,
    "madx": 6,
    "madx-tailcut": 7,
    "bjorken-mtingwa-simpson": 8,
    "bjorken-mtingwa": 9,
    "b&m": 9,
    "bjorken-mtingwa-tailcut": 10,
    "conte-martini": 11,
    "conte-martini-tailcut": 12,
    "madx-adaptive": 13,
}


def ibs_model(
    selector: Union[int, str], ring: RingParameters, optics: OpticsParameters, n_part: float
) -> AnalyticalIBS:
    """
    .. versionadded:: 0.1.0

    A dispatch function to return the appropriate IBS modelling class based on the desired model.

    Args:
        selector (Union[int, str]): the desired IBS model, either as an integer id from 1 to 13 or
            as a name (case-insensitive). See the ``MODELS`` and ``MODEL_NAMES`` mappings of this
            module for the valid options.
        ring (RingParameters): the ring parameters to use for the calculations. They will be used
            to initialize the relevant IBS class.
        optics (OpticsParameters): the optics parameters to use for the calculations. They will be
            used to initialize the relevant IBS class.
        n_part (float): the number of particles in the bunch.

    Raises:
        ValueError: if the selector matches no model.

    Returns:
        An instance of the relevant IBS modelling class, all of which share the `AnalyticalIBS`
        interface. For instance, ``4`` or ``"nagaitsev"`` give a `NagaitsevIBS` instance.

    Example:
        .. code-block:: python

            from equibs import ibs_model, RingParameters, OpticsParameters

            # Here is where you would define your inputs
            ring = RingParameters(...)
            optics = OpticsParameters(...)

            # Get the proper modelling class based on the demanded model
            NAGAITSEV_IBS = ibs_model(4, ring, optics, n_part=1e11)  # a NagaitsevIBS instance
            BM_IBS = ibs_model("b&m", ring, optics, n_part=1e11)  # a BjorkenMtingwaIBS instance
    """
    # ----------------------------------------------------------------------------------------------
    # Resolve names to ids, booleans are not valid ids
    model_id = MODEL_NAMES.get(selector.lower()) if isinstance(selector, str) else selector
    if isinstance(model_id, bool) or model_id not in MODELS:
        LOGGER.error(f"Invalid IBS model selector '{selector}' demanded.")
        raise ValueError(
            f"Unknown IBS model '{selector}' demanded. The valid options are the ids {list(MODELS)} "
            f"or the names (case-insensitive) {list(MODEL_NAMES)}."
        )
    # ----------------------------------------------------------------------------------------------
    model_class = MODELS[model_id]
    LOGGER.debug(f"Dispatching IBS model {model_id} to {model_class.__name__}")
    return model_class(ring, optics, n_part)
