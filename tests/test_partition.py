import math

import numpy as np
import pytest

from tkengine.errors import MissingParameterError, NumericalWarning
from tkengine.partition import (POW_CAP, PartitionInputs, calc_dow, calc_ionization, calc_logpd, is_base,
                                lump_tissues, predict_membrane_affinity, predict_partitioning_schmitt,
                                truncate_pow)
from tkengine.physiology import default_physiology


def test_pow_truncation_is_idempotent():
    """Anything above 1e6 is used as exactly 1e6, and truncating twice changes nothing."""
    with pytest.warns(NumericalWarning):
        once = truncate_pow(3.2e8)
    assert once == POW_CAP
    assert truncate_pow(once) == once
    assert truncate_pow(150.0) == 150.0


def test_missing_pow_is_an_error():
    with pytest.raises(MissingParameterError):
        truncate_pow(None)
    with pytest.raises(MissingParameterError):
        truncate_pow(float("nan"))


def test_ionization_fractions_sum_to_one():
    for donors, accepts in [((), ()), ((4.5,), ()), ((), (9.5,)), ((3.0,), (9.0,)), ((2.0, 10.0), (7.0,))]:
        ion = calc_ionization(7.4, donors, accepts)
        total = ion.fraction_neutral + ion.fraction_positive + ion.fraction_negative + ion.fraction_zwitter
        assert np.isclose(total, 1.0)
        assert np.isclose(ion.fraction_charged, 1.0 - ion.fraction_neutral)


def test_neutral_acid_base_classification():
    neutral = calc_ionization(7.4)
    assert neutral.fraction_neutral == 1.0

    acid = calc_ionization(7.4, pka_donor=(4.5,))
    assert acid.fraction_negative > 0.99
    assert not is_base(7.4, pka_donor=(4.5,))

    assert is_base(7.4, pka_accept=(9.5,))
    assert not is_base(7.4, pka_accept=(5.0,))


def test_zwitterion_counted_separately():
    """Acid pKa 3 and base pKa 9: at pH 7.4 the dominant form carries both charges."""
    ion = calc_ionization(7.4, pka_donor=(3.0,), pka_accept=(9.0,))
    assert ion.fraction_zwitter > 0.9
    assert ion.fraction_neutral < 1e-3


def test_dow_of_a_neutral_is_pow():
    assert calc_dow(100.0, 7.4) == 100.0
    # Fully ionised acid partitions at alpha
    assert np.isclose(calc_dow(100.0, 7.4, pka_donor=(1.0,)), 100.0 * 0.001, rtol=1e-3)


def test_logpd_uses_logp_for_bases():
    assert np.isclose(calc_logpd(1000.0, 7.4, pka_accept=(9.5,)), 3.0)
    assert calc_logpd(1000.0, 7.4, pka_donor=(4.5,)) < 3.0


def test_membrane_affinity_regression():
    assert np.isclose(predict_membrane_affinity(1.0), 10 ** 1.294)


def test_schmitt_coefficients_positive_and_finite():
    phys = default_physiology("Human")
    inputs = PartitionInputs(funbound_plasma=0.2, pow=100.0, pka_donor=(), pka_accept=(),
                             ma=predict_membrane_affinity(100.0))
    ks = predict_partitioning_schmitt(inputs, phys)
    assert set(ks) == set(phys.tissues)
    assert all(math.isfinite(k) and k >= 0 for k in ks.values())
    # Adipose is the lipid-rich tissue
    assert ks["adipose"] == max(ks.values())


def test_schmitt_tighter_binding_raises_interstitial_term():
    phys = default_physiology("Human")
    loose = PartitionInputs(funbound_plasma=0.9, pow=10.0, pka_donor=(), pka_accept=(), ma=50.0)
    tight = PartitionInputs(funbound_plasma=0.01, pow=10.0, pka_donor=(), pka_accept=(), ma=50.0)
    k_loose = predict_partitioning_schmitt(loose, phys, tissues=["muscle"])["muscle"]
    k_tight = predict_partitioning_schmitt(tight, phys, tissues=["muscle"])["muscle"]
    assert k_tight > k_loose


def test_schmitt_requires_positive_fup():
    phys = default_physiology("Human")
    inputs = PartitionInputs(funbound_plasma=0.0, pow=10.0, pka_donor=(), pka_accept=(), ma=50.0)
    with pytest.raises(MissingParameterError):
        predict_partitioning_schmitt(inputs, phys)


def test_lump_tissues_collects_the_rest():
    phys = default_physiology("Human")
    inputs = PartitionInputs(funbound_plasma=0.2, pow=100.0, pka_donor=(), pka_accept=(), ma=100.0)
    ks = predict_partitioning_schmitt(inputs, phys)
    keep = ("gut", "liver", "kidney", "lung")
    lumped, vols = lump_tissues(ks, phys, keep)

    assert set(lumped) == set(keep) | {"rest"}
    expected_rest = sum(t.volume for n, t in phys.tissues.items() if n not in keep)
    assert np.isclose(vols["rest"], expected_rest)
    # Volume-weighted mean lies between the extremes it absorbed
    absorbed = [ks[n] for n, t in phys.tissues.items() if n not in keep and t.volume > 0]
    assert min(absorbed) <= lumped["rest"] <= max(absorbed)
