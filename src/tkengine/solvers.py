# src/tkengine/solvers.py
from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

import numpy as np
from scipy.integrate import solve_ivp

from .dosing import BolusSchedule, DosingSchedule, ForcingSeries
from .errors import DomainError, IntegrationError
from .models.registry import resolve_parameters
from .types import ModelOptions, Param, ParameterSet, SimulationResult
from .units import conversion_factor, normalize_unit

logger = logging.getLogger(__name__)

ODE_METHODS = ("LSODA", "RK45", "RK23", "DOP853", "Radau", "BDF")
# Two times closer than this (hours) are the same instant
TIME_ATOL = 1e-9


def solve_model(model, *, store=None, parameters: Optional[ParameterSet] = None,
                chem_cas: Optional[str] = None, chem_name: Optional[str] = None, dtxsid: Optional[str] = None,
                options: Optional[ModelOptions] = None, overrides: Optional[Mapping] = None,
                dosing: Optional[DosingSchedule] = None, forcings: Optional[ForcingSeries] = None,
                days: float = 10.0, tsteps: int = 4, times: Optional[Sequence[float]] = None,
                initial_values: Optional[Mapping[str, float]] = None, initial_value_units: str = "umol",
                output_units: str = "uM", amount_units: str = "umol",
                method: str = "LSODA", rtol: float = 1e-8, atol: float = 1e-12) -> SimulationResult:
    """
    Integrate a dynamic topology over a dosing schedule.

    Boluses (and the breakpoints of a forcing series) split the horizon into
    segments; each segment is integrated with scipy's solve_ivp and boluses
    are applied as instantaneous jumps at their times. The reported state at
    a dose time is the state just after the dose.

    dosing         : BolusSchedule, DailyDoseSchedule or ForcingSeries
    forcings       : inhaled concentration series (gas_pbtk); cannot be combined with `dosing`
    days, tsteps   : default output grid, `tsteps` points per hour over `days` days
    times          : explicit output times in hours (overrides days/tsteps)
    initial_values : state name -> starting amount in `initial_value_units`
    output_units   : concentration columns, "uM" or "mg/L"
    amount_units   : amount columns, "umol" or "mg"

    Returns a SimulationResult with amounts, concentrations and the plasma AUC
    (integrated as a state, not computed afterwards).
    """
    options = options or ModelOptions()
    topology, params = resolve_parameters(model, store, parameters, chem_cas, chem_name, dtxsid,
                                          options, overrides)
    if not topology.is_dynamic:
        raise DomainError(f"The {topology.name} model has no dynamic form; use calc_analytic_css.")
    if method not in ODE_METHODS:
        raise DomainError(f"Unknown ODE method '{method}' (choose from {', '.join(ODE_METHODS)}).")

    if isinstance(dosing, ForcingSeries):
        if forcings is not None:
            raise DomainError("Inhalation exposure given both as dosing and as forcings.")
        dosing, forcings = None, dosing
    if dosing is not None and forcings is not None:
        raise DomainError("Give either an inhaled exposure or an oral/iv schedule, not both.")
    if forcings is not None and "inhalation" not in topology.routes:
        raise DomainError(f"The {topology.name} model has no inhalation route.")

    mw = params[Param.MW]
    bw = params[Param.BW]
    s = topology.scale(params)
    t_grid = _time_grid(days, tsteps, times)
    t0, t_end = float(t_grid[0]), float(t_grid[-1])

    y0 = _initial_state(topology, initial_values, initial_value_units, mw, bw)
    jumps = _bolus_jumps(topology, params, dosing, t_end / 24.0, mw, bw)
    early = [t for t, _, _ in jumps if t < t0 and not _same_time(t, t0)]
    if early:
        raise DomainError(f"Dose at {min(early):g} h falls before the first output time ({t0:g} h).")
    if forcings is not None:
        forcings = forcings.scaled(conversion_factor(forcings.units, "uM", mw=mw))

    # Segment boundaries: grid ends, dose times and forcing breakpoints
    boundaries = {t0, t_end}
    boundaries.update(t for t, _, _ in jumps if t0 < t <= t_end)
    if forcings is not None:
        boundaries.update(t for t in forcings.times if t0 < t < t_end)
    boundaries = sorted(boundaries)

    def apply_jumps(y, at):
        for t, idx, amount in jumps:
            if _same_time(t, at):
                y[idx] += amount
        return y

    y = apply_jumps(np.array(y0, dtype=float), t0)
    t_out = [t0]
    y_out = [y.copy()]

    prev = boundaries[0]
    for curr in boundaries[1:]:
        if curr <= prev:
            continue
        inhaled = forcings.value_at(prev) if forcings is not None else 0.0

        def rhs(t, state, _c=inhaled):
            return topology.derivatives(t, state, s, _c)

        t_eval_seg = t_grid[(t_grid > prev) & (t_grid <= curr)]
        if t_eval_seg.size == 0 or t_eval_seg[-1] != curr:
            t_eval_seg = np.append(t_eval_seg, curr)
        logger.debug("Integrating %s over [%g, %g] h (%d points).", topology.name, prev, curr, t_eval_seg.size)
        sol = solve_ivp(rhs, t_span=(prev, curr), y0=y, method=method, t_eval=t_eval_seg,
                        rtol=rtol, atol=atol)
        if not sol.success:
            raise IntegrationError(f"Integration failed on [{prev:g}, {curr:g}] h: {sol.message}")

        y = apply_jumps(sol.y[:, -1].copy(), curr)
        for k, t in enumerate(sol.t):
            if np.any(_same_time(t, t_grid)):
                t_out.append(float(t))
                y_out.append(y.copy() if k == len(sol.t) - 1 else sol.y[:, k])
        prev = curr

    states = np.asarray(y_out, dtype=float).T
    return _result(topology, s, np.asarray(t_out), states, output_units, amount_units, mw)


def _same_time(a, b):
    return np.isclose(a, b, rtol=0.0, atol=TIME_ATOL)


def _time_grid(days: float, tsteps: int, times: Optional[Sequence[float]]) -> np.ndarray:
    if times is not None:
        grid = np.asarray(times, dtype=float)
        if grid.size < 2 or np.any(np.diff(grid) <= 0):
            raise DomainError("Output times must be at least two strictly increasing values.")
        return grid
    if not (days > 0):
        raise DomainError(f"days must be > 0 (got {days}).")
    if not (isinstance(tsteps, int) and tsteps > 0):
        raise DomainError(f"tsteps must be a positive integer (got {tsteps}).")
    n = int(round(days * 24 * tsteps))
    return np.linspace(0.0, days * 24.0, n + 1)


def _initial_state(topology, initial_values, units, mw, bw) -> np.ndarray:
    y0 = np.zeros(len(topology.state_names))
    for name, value in (initial_values or {}).items():
        if name not in topology.state_names:
            raise DomainError(f"Unknown state '{name}' for the {topology.name} model "
                              f"(have {', '.join(topology.state_names)}).")
        # AUC starts in uM*h; everything else is an amount
        factor = 1.0 if name == "AUC" else conversion_factor(units, "umol", mw=mw, bw=bw)
        y0[topology.state_names.index(name)] = value * factor
    return y0


def _bolus_jumps(topology, params, dosing, days, mw, bw):
    """(time, state index, umol) for every bolus, already scaled by the route's dose fraction."""
    if dosing is None:
        return []
    events: BolusSchedule = dosing.events(days)
    if events.route not in topology.dose_states:
        raise DomainError(f"The {topology.name} model cannot take {events.route} boluses.")
    idx = topology.state_names.index(topology.dose_states[events.route])
    factor = conversion_factor(events.units, "umol", mw=mw, bw=bw) * topology.dose_fraction(params, events.route)
    return [(float(t), idx, float(a) * factor) for t, a in zip(events.times, events.amounts)]


def _result(topology, s, t, states, output_units, amount_units, mw) -> SimulationResult:
    amount_unit = normalize_unit(amount_units)
    if amount_unit not in ("umol", "mg"):
        raise DomainError(f"Amounts are reported in umol or mg, not {amount_units}.")
    conc_unit = normalize_unit(output_units)
    if conc_unit not in ("um", "mg/l"):
        raise DomainError(f"Concentrations are reported in uM or mg/L, not {output_units}.")
    a_factor = conversion_factor("umol", amount_units, mw=mw)
    c_factor = conversion_factor("uM", output_units, mw=mw)

    columns = []
    data = []
    units = {"time": "h"}
    for i, name in enumerate(topology.state_names):
        columns.append(name)
        if name == "AUC":
            data.append(states[i] * c_factor)
            units[name] = f"{output_units}*h"
        else:
            data.append(states[i] * a_factor)
            units[name] = amount_units
    for name, values in topology.observe(states, s).items():
        columns.append(name)
        if name in topology.column_units:
            data.append(np.asarray(values, dtype=float))
            units[name] = topology.column_units[name]
        else:
            data.append(np.asarray(values, dtype=float) * c_factor)
            units[name] = output_units
    return SimulationResult(model=topology.name, time=t, columns=tuple(columns),
                            values=np.column_stack(data) if data else np.empty((t.size, 0)), units=units)
