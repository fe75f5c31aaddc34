import math

import numpy as np
import pytest

from tkengine.clearance import (HEPATIC_MODELS, apply_clint_adjustment, apply_clint_pvalue, hepatic_bioavailability,
                                hepatic_clearance, parse_clint, renal_clearance, require_positive_fup,
                                scale_clint)
from tkengine.errors import DomainError, NumericalWarning


def test_scale_clint_to_litres_per_hour_per_kg():
    """1 uL/min/10^6 cells * 110e6 cells/g * 0.0245 L/kg liver * 1050 g/L -> L/h/kg."""
    assert np.isclose(scale_clint(1.0, 0.0245), 110.0 * 0.0245 * 1.05 * 1000.0 * 60.0 / 1e6)


def test_well_stirred_formula():
    q, fu, cl = 1.5, 0.2, 3.0
    assert np.isclose(hepatic_clearance(cl, q, fu, rblood2plasma=1.0), q * fu * cl / (q + fu * cl))
    # Without the blood:plasma correction Rb2p has no effect
    assert hepatic_clearance(cl, q, fu, rblood2plasma=2.0, well_stirred_correction=False) == \
        hepatic_clearance(cl, q, fu, rblood2plasma=1.0)


def test_unscaled_and_parallel_tube():
    assert hepatic_clearance(3.0, 1.5, 0.2, model="unscaled") == pytest.approx(0.6)
    pt = hepatic_clearance(3.0, 1.5, 0.2, model="parallel-tube")
    assert np.isclose(pt, 1.5 * (1.0 - math.exp(-0.2 * 3.0 / 1.5)))


def test_unknown_hepatic_model():
    with pytest.raises(DomainError):
        hepatic_clearance(1.0, 1.0, 0.5, model="dispersion")


@pytest.mark.parametrize("model", HEPATIC_MODELS)
def test_non_restrictive_never_reduces_clearance(model):
    """With fup < 1, letting bound chemical be metabolized can only add clearance."""
    for fup in (0.01, 0.2, 0.7, 0.999):
        for cl in (0.0, 0.1, 5.0, 200.0):
            restrictive = hepatic_clearance(cl, 1.4, fup, 1.1, model=model, restrictive=True)
            permissive = hepatic_clearance(cl, 1.4, fup, 1.1, model=model, restrictive=False)
            assert permissive >= restrictive


def test_renal_clearance_is_unbound_filtration():
    assert renal_clearance(0.11, 0.25) == pytest.approx(0.0275)


def test_hepatic_bioavailability_bounds():
    assert hepatic_bioavailability(0.0, 1.4, 0.2) == 1.0
    f = hepatic_bioavailability(10.0, 1.4, 0.2, rblood2plasma=0.9)
    assert 0.0 < f < 1.0
    assert np.isclose(f, 1.4 / (1.4 + 0.2 * 10.0 / 0.9))


def test_clint_pvalue_threshold():
    with pytest.warns(NumericalWarning):
        assert apply_clint_pvalue(12.0, 0.3) == 0.0
    assert apply_clint_pvalue(12.0, 0.01) == 12.0
    assert apply_clint_pvalue(12.0, None) == 12.0
    # Configurable cutoff
    assert apply_clint_pvalue(12.0, 0.3, threshold=0.5) == 12.0


def test_parse_clint_distribution():
    m = parse_clint((5.0, 1.0, 10.0, 0.01))
    assert m.point == 5.0 and m.pvalue == 0.01
    assert m.distribution == (5.0, 1.0, 10.0, 0.01)
    # A separately tabulated p-value wins
    assert parse_clint((5.0, 1.0, 10.0, 0.01), pvalue=0.2).pvalue == 0.2
    assert parse_clint(7.0).distribution is None
    with pytest.raises(DomainError):
        parse_clint((1.0, 2.0))


def test_clint_adjustment_divides_by_fu_hep():
    assert apply_clint_adjustment(9.0, 0.9) == pytest.approx(10.0)
    with pytest.raises(DomainError):
        apply_clint_adjustment(9.0, 0.0)


def test_zero_fup_rejected():
    with pytest.raises(DomainError):
        require_positive_fup(0.0)
    assert require_positive_fup(0.3) == 0.3
