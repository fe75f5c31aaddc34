import pytest

from tkengine.errors import DomainError, MissingParameterError
from tkengine.units import MOLAR_VOLUME_AIR, Quantity, conversion_factor, convert_units


def test_mass_to_moles():
    assert convert_units(1.0, "mg", "umol", mw=200.0) == pytest.approx(5.0)
    assert convert_units(5.0, "umol", "mg", mw=200.0) == pytest.approx(1.0)


def test_per_kg_doses():
    assert convert_units(1.0, "mg/kg", "umol", mw=200.0, bw=70.0) == pytest.approx(350.0)
    assert convert_units(1.0, "mg/kg", "umol/kg", mw=200.0, bw=70.0) == pytest.approx(5.0)


def test_concentrations():
    assert convert_units(2.0, "uM", "mg/L", mw=150.0) == pytest.approx(0.3)
    assert convert_units(MOLAR_VOLUME_AIR, "ppmv", "uM") == pytest.approx(1.0)
    assert conversion_factor("uM", "ppmv") == pytest.approx(MOLAR_VOLUME_AIR)


def test_unit_spelling_is_forgiving():
    assert convert_units(1.0, "µmol", "UMOL") == 1.0
    assert convert_units(1.0, "uM", "umol/L") == 1.0


def test_conversion_errors():
    with pytest.raises(DomainError):
        convert_units(1.0, "mg", "mg/L", mw=100.0)
    with pytest.raises(DomainError):
        convert_units(1.0, "furlongs", "mg")
    with pytest.raises(MissingParameterError):
        convert_units(1.0, "mg", "umol")
    with pytest.raises(MissingParameterError):
        convert_units(1.0, "mg/kg", "mg", mw=100.0)


def test_quantity_carries_its_unit():
    q = Quantity(10.0, "mg").to("umol", mw=250.0)
    assert q.unit == "umol"
    assert float(q) == pytest.approx(40.0)
