# src/tkengine/steady_state.py
"""
Closed-form steady-state concentrations and the scalar summaries built on
the same parameter sets (Vdist, elimination rate, half-life).
"""
from __future__ import annotations

import logging
import math
from typing import Mapping, Optional

from .clearance import require_positive_fup
from .errors import DomainError, MissingParameterError
from .models.registry import resolve_parameters
from .parameterize import calc_vdist_from_coefficients, elimination_rate, partition_inputs_from_params
from .partition import predict_partitioning_schmitt
from .physiology import default_physiology
from .types import ConcentrationType, ModelOptions, Param, ParameterSet, Route
from .units import convert_units, normalize_unit

logger = logging.getLogger(__name__)

CONCENTRATION_TYPES = ("plasma", "blood", "tissue", "free_plasma")


def daily_dose_rate(daily_dose: float, dose_units: str, mw: float, bw: float) -> float:
    """Daily dose in any amount unit -> umol/h/kg BW."""
    return convert_units(daily_dose, dose_units, "umol/kg", mw=mw, bw=bw) / 24.0


def convert_css(css_um: float, params: ParameterSet, concentration: ConcentrationType = "plasma",
                tissue: Optional[str] = None, output_units: str = "uM", store=None) -> float:
    """
    Turn a plasma Css (uM) into the requested concentration type.

    blood       : * Rblood2plasma
    free_plasma : * fup
    tissue      : * Kt2pu * fup, with Kt2pu from the Schmitt method

    Each is a multiplication of the same plasma value, never a new solve.
    """
    if concentration not in CONCENTRATION_TYPES:
        raise DomainError(f"Unknown concentration type '{concentration}' "
                          f"(choose from {', '.join(CONCENTRATION_TYPES)}).")
    if concentration == "blood":
        css_um = css_um * params[Param.RBLOOD2PLASMA]
    elif concentration == "free_plasma":
        css_um = css_um * params[Param.FUNBOUND_PLASMA]
    elif concentration == "tissue":
        if not tissue:
            raise MissingParameterError("A tissue name is required for tissue concentrations.")
        css_um = css_um * tissue_partition(params, tissue, store) * params[Param.FUNBOUND_PLASMA]
    elif tissue:
        logger.info("Tissue '%s' ignored for %s concentrations.", tissue, concentration)

    unit = normalize_unit(output_units)
    if unit not in ("um", "mg/l"):
        raise DomainError(f"Steady-state concentrations are reported in uM or mg/L, not {output_units}.")
    return convert_units(css_um, "uM", output_units, mw=params[Param.MW])


def tissue_partition(params: ParameterSet, tissue: str, store=None) -> float:
    """Kt2pu for one tissue from the phys-chem inputs every parameter set carries."""
    physiology = store.get_physiology(params.species) if store is not None else default_physiology(params.species)
    inputs = partition_inputs_from_params(params.values, physiology)
    return predict_partitioning_schmitt(inputs, physiology, tissues=[tissue])[tissue]


def calc_analytic_css(model: str = "3compartmentss", *, store=None, parameters: Optional[ParameterSet] = None,
                      chem_cas: Optional[str] = None, chem_name: Optional[str] = None,
                      dtxsid: Optional[str] = None, options: Optional[ModelOptions] = None,
                      overrides: Optional[Mapping] = None, daily_dose: float = 1.0,
                      dose_units: str = "mg/kg", route: Route = "oral", exposure: float = 0.0,
                      exposure_units: str = "ppmv", concentration: ConcentrationType = "plasma",
                      tissue: Optional[str] = None, output_units: str = "uM") -> float:
    """
    Analytic steady-state concentration for constant dosing.

    daily_dose : amount per day (dose_units, default mg/kg/day) spread evenly over 24 h
    exposure   : constant inhaled concentration (gas_pbtk only), in exposure_units

    Fup = 0 is rejected before any division.
    """
    options = options or ModelOptions()
    topology, params = resolve_parameters(model, store, parameters, chem_cas, chem_name, dtxsid,
                                          options, overrides)
    require_positive_fup(params[Param.FUNBOUND_PLASMA])

    rate = daily_dose_rate(daily_dose, dose_units, params[Param.MW], params[Param.BW])
    inhaled = convert_units(exposure, exposure_units, "uM", mw=params[Param.MW]) if exposure else 0.0
    if inhaled and "inhalation" not in topology.routes:
        raise DomainError(f"The {topology.name} model has no inhalation exposure.")

    css = topology.analytic_css(params, rate, route=route, exposure=inhaled, options=options)
    logger.debug("%s analytic Css %.4g uM (%s, %.4g umol/h/kg).", topology.name, css, route, rate)
    return convert_css(css, params, concentration, tissue, output_units, store)


def calc_oral_equiv(conc: float, model: str = "3compartmentss", *, store=None,
                    parameters: Optional[ParameterSet] = None, chem_cas: Optional[str] = None,
                    chem_name: Optional[str] = None, dtxsid: Optional[str] = None,
                    options: Optional[ModelOptions] = None, overrides: Optional[Mapping] = None,
                    route: Route = "oral", concentration: ConcentrationType = "plasma",
                    tissue: Optional[str] = None, input_units: str = "uM", output_units: str = "mg/kg") -> float:
    """
    Daily dose that produces `conc` at steady state (reverse dosimetry).

    Css is linear in dose, so the equivalent dose is conc / Css(1 mg/kg/day).
    `conc` is in uM or mg/L; the result is per day in mg/kg or umol/kg.
    """
    if normalize_unit(input_units) not in ("um", "mg/l"):
        raise DomainError(f"Concentrations are given in uM or mg/L, not {input_units}.")
    if normalize_unit(output_units) not in ("mg/kg", "umol/kg"):
        raise DomainError(f"Equivalent doses are reported in mg/kg or umol/kg per day, not {output_units}.")
    if conc < 0:
        raise DomainError(f"conc must be >= 0 (got {conc}).")
    options = options or ModelOptions()
    _, params = resolve_parameters(model, store, parameters, chem_cas, chem_name, dtxsid, options, overrides)
    css = calc_analytic_css(model, store=store, parameters=params, options=options, daily_dose=1.0,
                            dose_units="mg/kg", route=route, concentration=concentration, tissue=tissue,
                            output_units=input_units)
    if css <= 0:
        raise DomainError(f"Steady-state concentration per 1 mg/kg/day is {css:g}; no equivalent dose exists.")
    return convert_units(conc / css, "mg/kg", output_units, mw=params[Param.MW], bw=params[Param.BW])


# --------------------------
# Scalar summaries
# --------------------------
def _summary_params(store, parameters, chem_cas, chem_name, dtxsid, options, overrides):
    """Caller's set as-is, or a fresh one-compartment set (which carries Vdist and kelim)."""
    if parameters is not None:
        return dict(parameters.values), parameters.species
    _, params = resolve_parameters("1compartment", store, None, chem_cas, chem_name, dtxsid, options, overrides)
    return dict(params.values), params.species


def calc_vdist(*, store=None, parameters: Optional[ParameterSet] = None, chem_cas: Optional[str] = None,
               chem_name: Optional[str] = None, dtxsid: Optional[str] = None,
               options: Optional[ModelOptions] = None, overrides: Optional[Mapping] = None) -> float:
    """Volume of distribution, L/kg BW."""
    options = options or ModelOptions()
    values, species = _summary_params(store, parameters, chem_cas, chem_name, dtxsid, options, overrides)
    return _vdist(values, species, store)


def _vdist(values, species, store) -> float:
    if Param.VDIST in values:
        return float(values[Param.VDIST])
    physiology = store.get_physiology(species) if store is not None else default_physiology(species)
    fup = require_positive_fup(values[Param.FUNBOUND_PLASMA])
    coefficients = predict_partitioning_schmitt(partition_inputs_from_params(values, physiology), physiology)
    return calc_vdist_from_coefficients(coefficients, physiology, fup)


def calc_elimination_rate(*, store=None, parameters: Optional[ParameterSet] = None,
                          chem_cas: Optional[str] = None, chem_name: Optional[str] = None,
                          dtxsid: Optional[str] = None, options: Optional[ModelOptions] = None,
                          overrides: Optional[Mapping] = None) -> float:
    """First-order elimination rate kelim, 1/h."""
    options = options or ModelOptions()
    values, species = _summary_params(store, parameters, chem_cas, chem_name, dtxsid, options, overrides)
    if Param.KELIM in values:
        return float(values[Param.KELIM])
    values[Param.VDIST] = _vdist(values, species, store)
    return elimination_rate(values, options)


def calc_half_life(**kwargs) -> float:
    """Elimination half-life in hours, ln 2 / kelim."""
    kelim = calc_elimination_rate(**kwargs)
    if kelim <= 0:
        raise DomainError("Elimination rate must be positive to define a half-life.")
    return math.log(2.0) / kelim
