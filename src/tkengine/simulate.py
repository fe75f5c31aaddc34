# src/tkengine/simulate.py
"""
High-level wrappers around solve_model, one per dynamic topology, plus the
time-to-steady-state search.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .dosing import ForcingSeries, dosing_schedule, make_cyclic_forcings
from .errors import DomainError
from .metrics import daily_average
from .models.registry import resolve_parameters
from .solvers import solve_model
from .steady_state import calc_analytic_css
from .types import ModelOptions, Route, SimulationResult

logger = logging.getLogger(__name__)


def _schedule(kwargs, dose, daily_dose, doses_per_day, dosing_matrix, route, dose_units):
    if "dosing" in kwargs:
        if any(v is not None for v in (dose, daily_dose, dosing_matrix)):
            raise DomainError("Pass either a dosing schedule or dose/daily_dose/dosing_matrix, not both.")
        return kwargs.pop("dosing")
    if dose is None and daily_dose is None and dosing_matrix is None:
        dose = 1.0
    return dosing_schedule(route, initial_dose=dose, dosing_matrix=dosing_matrix, daily_dose=daily_dose,
                           doses_per_day=doses_per_day, units=dose_units)


def solve_1comp(*, dose: Optional[float] = None, daily_dose: Optional[float] = None,
                doses_per_day: Optional[int] = None, dosing_matrix: Optional[Sequence[Tuple[float, float]]] = None,
                route: Route = "oral", dose_units: str = "mg/kg", **kwargs) -> SimulationResult:
    """
    One-compartment time course. With no dosing arguments a single 1 mg/kg
    dose is given at t=0.
    """
    dosing = _schedule(kwargs, dose, daily_dose, doses_per_day, dosing_matrix, route, dose_units)
    return solve_model("1compartment", dosing=dosing, **kwargs)


def solve_pbtk(*, dose: Optional[float] = None, daily_dose: Optional[float] = None,
               doses_per_day: Optional[int] = None, dosing_matrix: Optional[Sequence[Tuple[float, float]]] = None,
               route: Route = "oral", dose_units: str = "mg/kg", **kwargs) -> SimulationResult:
    """Full PBTK time course; same dosing arguments as solve_1comp."""
    dosing = _schedule(kwargs, dose, daily_dose, doses_per_day, dosing_matrix, route, dose_units)
    return solve_model("pbtk", dosing=dosing, **kwargs)


def solve_gas_pbtk(*, exp_conc: Optional[float] = None, period: float = 24.0, exp_duration: float = 12.0,
                   exp_start_time: float = 0.0, exposure_units: str = "ppmv",
                   forcings: Optional[ForcingSeries] = None, dose: Optional[float] = None,
                   daily_dose: Optional[float] = None, doses_per_day: Optional[int] = None,
                   dosing_matrix: Optional[Sequence[Tuple[float, float]]] = None,
                   route: Route = "oral", dose_units: str = "mg/kg", days: float = 10.0,
                   **kwargs) -> SimulationResult:
    """
    Inhalation PBTK time course.

    By default the chemical is inhaled at `exp_conc` (1 ppmv unless given) for
    `exp_duration` hours of every `period` hours; pass `forcings` for any other
    exposure pattern. An oral or iv dose replaces the inhaled exposure: the
    model runs one route at a time, so a dose together with a non-zero
    `exp_conc` or with `forcings` raises DomainError.
    """
    dosing = None
    if "dosing" in kwargs or any(v is not None for v in (dose, daily_dose, dosing_matrix)):
        if forcings is not None or (exp_conc is not None and exp_conc != 0):
            raise DomainError("solve_gas_pbtk takes either an inhaled exposure or a dose, not both.")
        dosing = _schedule(kwargs, dose, daily_dose, doses_per_day, dosing_matrix, route, dose_units)
    elif forcings is None:
        if kwargs.get("times") is not None:
            days = max(days, float(np.max(kwargs["times"])) / 24.0)
        forcings = make_cyclic_forcings(1.0 if exp_conc is None else exp_conc, period, exp_duration, days,
                                        exp_start_time=exp_start_time, units=exposure_units)
    return solve_model("gas_pbtk", dosing=dosing, forcings=forcings, days=days, **kwargs)


@dataclass(frozen=True)
class CssResult:
    """
    avg_css    : average plasma concentration on the day the target was reached (uM)
    max_css    : peak plasma concentration on that day (uM)
    the_day    : first day whose average reached `fraction` of the analytic Css, or None
    target_css : analytic plasma Css (uM)
    """
    avg_css: float
    max_css: float
    the_day: Optional[int]
    target_css: float


def calc_css(model: str = "pbtk", *, store=None, parameters=None, chem_cas: Optional[str] = None,
             chem_name: Optional[str] = None, dtxsid: Optional[str] = None,
             options: Optional[ModelOptions] = None, overrides=None, daily_dose: float = 1.0,
             doses_per_day: int = 3, dose_units: str = "mg/kg", route: Route = "oral",
             fraction: float = 0.9, days: int = 21, max_days: int = 365, **solver_kwargs) -> CssResult:
    """
    Simulate repeated daily dosing until the daily average plasma concentration
    reaches `fraction` of the analytic steady state.

    The horizon starts at `days` and doubles up to `max_days`.
    """
    if not (0 < fraction < 1):
        raise DomainError(f"fraction must be between 0 and 1 (got {fraction}).")
    options = options or ModelOptions()
    _, params = resolve_parameters(model, store, parameters, chem_cas, chem_name, dtxsid, options, overrides)
    target = calc_analytic_css(model, store=store, parameters=params, options=options,
                               daily_dose=daily_dose, dose_units=dose_units, route=route)
    schedule = dosing_schedule(route, daily_dose=daily_dose, doses_per_day=doses_per_day, units=dose_units)

    horizon = days
    while True:
        result = solve_model(model, store=store, parameters=params, options=options, dosing=schedule,
                             days=horizon, output_units="uM", **solver_kwargs)
        averages = daily_average(result)
        reached = np.nonzero(averages >= fraction * target)[0]
        if reached.size or horizon >= max_days:
            break
        horizon = min(horizon * 2, max_days)

    if reached.size:
        day = int(reached[0])
    else:
        day = len(averages) - 1
        logger.warning("Daily average did not reach %.0f%% of Css (%.4g uM) within %d days.",
                       100 * fraction, target, max_days)
    plasma = result.column("Cplasma" if "Cplasma" in result.columns else "Ccompartment")
    in_day = (result.time >= 24.0 * day) & (result.time <= 24.0 * (day + 1))
    return CssResult(avg_css=float(averages[day]), max_css=float(np.max(plasma[in_day])),
                     the_day=day + 1 if reached.size else None, target_css=float(target))
