"""
Tests for the model dispatch function: every id and name gives the right class, and unknown
selectors fail fast.
"""
import logging

import numpy as np
import pytest

from equibs.analytical import AnalyticalIBS, BjorkenMtingwaIBS, NagaitsevIBS
from equibs.dispatch import MODEL_NAMES, MODELS, ibs_model


@pytest.mark.filterwarnings("ignore::UserWarning")  # MAD-X variants warn about the non-centered optics
@pytest.mark.parametrize("model_id", sorted(MODELS))
def test_every_model_gives_finite_rates(model_id, damping_ring, damping_ring_optics):
    IBS = ibs_model(model_id, damping_ring, damping_ring_optics, n_part=1e10)
    assert isinstance(IBS, MODELS[model_id])
    assert isinstance(IBS, AnalyticalIBS)
    rates = IBS.growth_rates(5e-9, 5e-11, 1e-3, 5e-3)
    assert np.all(np.isfinite([rates.Tx, rates.Ty, rates.Tz]))


@pytest.mark.parametrize("name, expected", [("nagaitsev", NagaitsevIBS), ("NAGAITSEV", NagaitsevIBS), ("B&M", BjorkenMtingwaIBS)])
def test_dispatch_by_name(name, expected, damping_ring, damping_ring_optics):
    assert type(ibs_model(name, damping_ring, damping_ring_optics, n_part=1e10)) is expected


def test_every_name_maps_to_a_model():
    assert set(MODEL_NAMES.values()) == set(MODELS)


@pytest.mark.parametrize("selector", [0, 14, -1, "fancy", True])
def test_invalid_selector_raises(selector, damping_ring, damping_ring_optics, caplog):
    caplog.set_level(logging.ERROR)
    with pytest.raises(ValueError, match="Unknown IBS model"):
        ibs_model(selector, damping_ring, damping_ring_optics, n_part=1e10)
    assert f"Invalid IBS model selector '{selector}'" in caplog.text
