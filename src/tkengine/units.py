# src/tkengine/units.py
"""
Unit conversion at the model boundary.

Inside the models amounts are umol, concentrations uM (umol/L) and time hours.
Caller-facing units are converted here and nowhere else.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import DomainError, MissingParameterError

# L/mol for an ideal gas at 25 C and 1 atm
MOLAR_VOLUME_AIR = 24.45

AMOUNT_UNITS = ("umol", "mg", "umol/kg", "mg/kg")
CONCENTRATION_UNITS = ("um", "mg/l", "ppmv")

_ALIASES = {
    "µmol": "umol", "micromol": "umol",
    "µm": "um", "umol/l": "um", "micromolar": "um",
    "mg/kg bw": "mg/kg",
}


def normalize_unit(unit: str) -> str:
    u = unit.strip().lower()
    u = _ALIASES.get(u, u)
    if u not in AMOUNT_UNITS and u not in CONCENTRATION_UNITS:
        raise DomainError(f"Unsupported unit '{unit}'.")
    return u


def _to_base(value: float, unit: str, mw: Optional[float], bw: Optional[float]) -> float:
    """Amounts go to umol, concentrations to uM."""
    if unit in ("umol", "um"):
        return value
    if unit in ("mg", "mg/l"):
        return value / _need(mw, "mw", unit) * 1000.0
    if unit == "umol/kg":
        return value * _need(bw, "bw", unit)
    if unit == "mg/kg":
        return value * _need(bw, "bw", unit) / _need(mw, "mw", unit) * 1000.0
    if unit == "ppmv":
        return value / MOLAR_VOLUME_AIR
    raise DomainError(f"Unsupported unit '{unit}'.")


def _from_base(value: float, unit: str, mw: Optional[float], bw: Optional[float]) -> float:
    if unit in ("umol", "um"):
        return value
    if unit in ("mg", "mg/l"):
        return value * _need(mw, "mw", unit) / 1000.0
    if unit == "umol/kg":
        return value / _need(bw, "bw", unit)
    if unit == "mg/kg":
        return value * _need(mw, "mw", unit) / 1000.0 / _need(bw, "bw", unit)
    if unit == "ppmv":
        return value * MOLAR_VOLUME_AIR
    raise DomainError(f"Unsupported unit '{unit}'.")


def convert_units(value: float, input_units: str, output_units: str,
                  mw: Optional[float] = None, bw: Optional[float] = None) -> float:
    """
    Convert `value` between two amount units or two concentration units.

    mw : molecular weight (g/mol), needed whenever mg is involved
    bw : body weight (kg), needed whenever a per-kg unit is involved

    Mixing an amount with a concentration is rejected.
    """
    src = normalize_unit(input_units)
    dst = normalize_unit(output_units)
    if (src in AMOUNT_UNITS) != (dst in AMOUNT_UNITS):
        raise DomainError(f"Cannot convert {input_units} to {output_units}.")
    if src == dst:
        return float(value)
    return float(_from_base(_to_base(float(value), src, mw, bw), dst, mw, bw))


def conversion_factor(input_units: str, output_units: str,
                      mw: Optional[float] = None, bw: Optional[float] = None) -> float:
    return convert_units(1.0, input_units, output_units, mw=mw, bw=bw)


@dataclass(frozen=True)
class Quantity:
    """A value tagged with its unit."""
    value: float
    unit: str

    def to(self, unit: str, *, mw: Optional[float] = None, bw: Optional[float] = None) -> "Quantity":
        return Quantity(convert_units(self.value, self.unit, unit, mw=mw, bw=bw), unit)

    def __float__(self) -> float:
        return float(self.value)


def _need(x: Optional[float], name: str, unit: str) -> float:
    if x is None:
        raise MissingParameterError(f"{name} is required to convert {unit}.")
    return float(x)
