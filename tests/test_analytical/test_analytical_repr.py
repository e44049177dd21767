"""
Tests in here check the REPRs of the analytical classes, before and after computing growth rates.
"""
import pytest

from equibs.analytical import BjorkenMtingwaIBS, NagaitsevIBS
from equibs.piwinski import PiwinskiSmoothIBS


def test_nagaitsev_repr(damping_ring, damping_ring_optics):
    IBS = NagaitsevIBS(damping_ring, damping_ring_optics, 1e10)
    # --------------------------------------------------------------------
    # Check the repr (which calls __str__) without having calculated integrals nor growth rates
    assert "NagaitsevIBS object for analytical IBS calculations." in IBS.__repr__()
    assert "Elliptic integrals computed: False" in IBS.__repr__()
    assert "IBS growth rates computed: False" in IBS.__repr__()
    # --------------------------------------------------------------------
    # Check the repr after computing the growth rates
    IBS.growth_rates(5e-9, 5e-11, 1e-3, 5e-3)  # values don't matter
    assert "Elliptic integrals computed: True" in IBS.__repr__()
    assert "IBS growth rates computed: True" in IBS.__repr__()


@pytest.mark.parametrize("ibs_class", [BjorkenMtingwaIBS, PiwinskiSmoothIBS])
def test_analytical_repr(ibs_class, damping_ring, damping_ring_optics):
    IBS = ibs_class(damping_ring, damping_ring_optics, 1e10)
    assert f"{ibs_class.__name__} object for analytical IBS calculations." in IBS.__repr__()
    assert "IBS growth rates computed: False" in IBS.__repr__()
    IBS.growth_rates(5e-9, 5e-11, 1e-3, 5e-3)  # values don't matter
    assert "IBS growth rates computed: True" in IBS.__repr__()
