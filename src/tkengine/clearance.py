# src/tkengine/clearance.py
"""
In vitro to whole-organ clearance.

Clint arrives in uL/min/10^6 hepatocytes and leaves as L/h/kg BW.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .errors import DomainError, MissingParameterError, warn_clamped
from .types import HepaticModel, Param, ParameterSet

HEPATIC_MODELS = ("well-stirred", "parallel-tube", "unscaled")


@dataclass(frozen=True)
class ClintMeasurement:
    """Parsed intrinsic clearance: point estimate plus optional CI and p-value."""
    point: float
    lower: Optional[float] = None
    upper: Optional[float] = None
    pvalue: Optional[float] = None

    @property
    def distribution(self) -> Optional[Tuple[float, ...]]:
        if self.lower is None and self.upper is None:
            return None
        return (self.point, self.lower, self.upper, self.pvalue if self.pvalue is not None else math.nan)


def parse_clint(raw: Union[float, Tuple[float, ...]], pvalue: Optional[float] = None) -> ClintMeasurement:
    """
    Accept a scalar or a (median, l95, u95, pvalue) tuple.

    A separately tabulated p-value wins over the fourth tuple element.
    """
    if isinstance(raw, tuple):
        if len(raw) != 4:
            raise DomainError(f"Clint distribution must have 4 values, got {len(raw)}.")
        median, lower, upper, p = raw
        if pvalue is None and not math.isnan(p):
            pvalue = p
        return ClintMeasurement(point=float(median), lower=lower, upper=upper, pvalue=pvalue)
    return ClintMeasurement(point=float(raw), pvalue=pvalue)


def apply_clint_pvalue(clint: float, pvalue: Optional[float], threshold: float = 0.05) -> float:
    """A clearance that is not statistically different from zero is zero (not metabolized)."""
    if pvalue is not None and not math.isnan(pvalue) and pvalue > threshold:
        warn_clamped(f"Clint p-value {pvalue:.3g} above {threshold}; Clint set to zero.")
        return 0.0
    return clint


def apply_clint_adjustment(clint: float, fu_hep: float) -> float:
    """Divide out binding in the hepatocyte incubation."""
    if fu_hep <= 0:
        raise DomainError("fu_hep must be positive.")
    return clint / fu_hep


def scale_clint(clint: float, vliverc: float, million_cells_per_gliver: float = 110.0,
                liver_density: float = 1.05) -> float:
    """
    uL/min/10^6 cells -> L/h/kg BW.

    vliverc : liver volume, L/kg BW; liver_density in g/mL
    """
    return clint * million_cells_per_gliver * vliverc * liver_density * 1000.0 * 60.0 / 1e6


def hepatic_clearance(clint_scaled: float, q_liver: float, fup: float,
                      rblood2plasma: float = 1.0, model: HepaticModel = "well-stirred",
                      restrictive: bool = True, well_stirred_correction: bool = True) -> float:
    """
    Whole-liver clearance, L/h/kg BW.

    restrictive=False replaces fup by 1: everything in the liver, bound or not,
    is available to the enzymes.

    well-stirred : Q*fu*Cl / (Q + fu*Cl/Rb2p)   (Rb2p only when well_stirred_correction)
    parallel-tube: Q*(1 - exp(-fu*Cl/(Q*Rb2p)))
    unscaled     : fu*Cl
    """
    if model not in HEPATIC_MODELS:
        raise DomainError(f"Unknown hepatic model '{model}' (choose from {', '.join(HEPATIC_MODELS)}).")
    fu = fup if restrictive else 1.0
    if model == "unscaled":
        return fu * clint_scaled
    if q_liver <= 0:
        raise DomainError("Liver blood flow must be positive.")
    if model == "parallel-tube":
        return q_liver * (1.0 - math.exp(-fu * clint_scaled / (q_liver * rblood2plasma)))
    rb2p = rblood2plasma if well_stirred_correction else 1.0
    return q_liver * fu * clint_scaled / (q_liver + fu * clint_scaled / rb2p)


def renal_clearance(q_gfr: float, fup: float) -> float:
    """Glomerular filtration of unbound chemical. Not affected by the restrictive switch."""
    return q_gfr * fup


def hepatic_bioavailability(clmetabolism: float, q_liver: float, fup: float,
                            rblood2plasma: float = 1.0, restrictive: bool = True) -> float:
    """Fraction of an oral dose escaping first-pass hepatic extraction (1 - ER)."""
    fu = fup if restrictive else 1.0
    return q_liver / (q_liver + fu * clmetabolism / rblood2plasma)


def calc_hep_clearance(params: ParameterSet, model: HepaticModel = "well-stirred",
                       restrictive: bool = True, well_stirred_correction: bool = True) -> float:
    """Hepatic clearance (L/h/kg BW) from a parameter set holding Clint and physiology."""
    clint_scaled = scale_clint(params[Param.CLINT], params[Param.VLIVERC],
                               params[Param.MILLION_CELLS_PER_GLIVER], params[Param.LIVER_DENSITY])
    q_liver = params[Param.QTOTAL_LIVERC] / params[Param.BW] ** 0.25
    return hepatic_clearance(clint_scaled, q_liver, params[Param.FUNBOUND_PLASMA],
                             params.get(Param.RBLOOD2PLASMA, 1.0), model=model,
                             restrictive=restrictive, well_stirred_correction=well_stirred_correction)


def calc_total_clearance(params: ParameterSet, model: HepaticModel = "well-stirred",
                         restrictive: bool = True, well_stirred_correction: bool = True) -> float:
    """Hepatic plus renal clearance, L/h/kg BW."""
    q_gfr = params[Param.QGFRC] / params[Param.BW] ** 0.25
    return (calc_hep_clearance(params, model, restrictive, well_stirred_correction)
            + renal_clearance(q_gfr, params[Param.FUNBOUND_PLASMA]))


def require_positive_fup(fup: Optional[float]) -> float:
    if fup is None:
        raise MissingParameterError("Funbound.plasma is required.")
    if fup == 0:
        raise DomainError("Fraction unbound plasma cannot be zero.")
    return fup
