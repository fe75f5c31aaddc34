# src/tkengine/dosing.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DomainError
from .types import Route


@dataclass(frozen=True)
class BolusSchedule:
    """
    Instantaneous doses.

    times   : hours, non-decreasing
    amounts : dose sizes in `units` (mg/kg, mg, umol/kg or umol)
    route   : "oral" doses go to the gut lumen, "iv" doses to the blood
    """
    times: Tuple[float, ...]
    amounts: Tuple[float, ...]
    route: Route = "oral"
    units: str = "mg/kg"

    def __post_init__(self):
        if len(self.times) != len(self.amounts):
            raise DomainError("Bolus times and amounts must have the same length.")
        for t, a in zip(self.times, self.amounts):
            _validate_non_negative("time", t)
            _validate_non_negative("amount", a)
        if list(self.times) != sorted(self.times):
            raise DomainError("Bolus times must be in increasing order.")

    def events(self, days: float) -> "BolusSchedule":
        return self


@dataclass(frozen=True)
class DailyDoseSchedule:
    """
    `daily_dose` split evenly into `doses_per_day` boluses, the first at `start_h`.
    """
    daily_dose: float
    doses_per_day: int
    route: Route = "oral"
    units: str = "mg/kg"
    start_h: float = 0.0

    def __post_init__(self):
        _validate_non_negative("daily_dose", self.daily_dose)
        _validate_positive_int("doses_per_day", self.doses_per_day)
        _validate_non_negative("start_h", self.start_h)

    def events(self, days: float) -> BolusSchedule:
        """Expand into explicit boluses over a `days`-long simulation."""
        interval = 24.0 / self.doses_per_day
        times = np.arange(self.start_h, days * 24.0, interval, dtype=float)
        amount = self.daily_dose / self.doses_per_day
        return BolusSchedule(times=tuple(float(t) for t in times),
                             amounts=tuple(amount for _ in times),
                             route=self.route, units=self.units)


@dataclass(frozen=True)
class ForcingSeries:
    """
    Step function of an external exposure (inhaled air concentration).

    The value at t is the last `values[i]` with `times[i] <= t`; zero before
    the first time.
    """
    times: Tuple[float, ...]
    values: Tuple[float, ...]
    units: str = "ppmv"

    def __post_init__(self):
        if len(self.times) != len(self.values):
            raise DomainError("Forcing times and values must have the same length.")
        if list(self.times) != sorted(self.times):
            raise DomainError("Forcing times must be in increasing order.")
        for v in self.values:
            _validate_non_negative("forcing value", v)

    def value_at(self, t: float) -> float:
        idx = int(np.searchsorted(self.times, t, side="right")) - 1
        return float(self.values[idx]) if idx >= 0 else 0.0

    def scaled(self, factor: float) -> "ForcingSeries":
        return ForcingSeries(times=self.times, values=tuple(v * factor for v in self.values), units=self.units)


DosingSchedule = Union[BolusSchedule, DailyDoseSchedule, ForcingSeries]


def single_dose(amount: float, start_h: float = 0.0, route: Route = "oral", units: str = "mg/kg") -> BolusSchedule:
    """
    Create a schedule with exactly one dose.
    Examples:
      - 1 mg/kg oral at t=0 h
      - 5 umol iv at t=4 h
    """
    _validate_positive("amount", amount)
    _validate_non_negative("start_h", start_h)
    return BolusSchedule(times=(float(start_h),), amounts=(float(amount),), route=route, units=units)


def from_explicit_schedule(entries: Sequence[Tuple[float, float]], route: Route = "oral",
                           units: str = "mg/kg") -> BolusSchedule:
    """
    Build a schedule from manual (time_h, amount) entries, the rows of a dosing matrix.
    Example: entries=[(0.0, 1.0), (24.0, 1.0), (48.0, 1.0)]
    """
    rows = sorted((float(t), float(a)) for t, a in entries)
    return BolusSchedule(times=tuple(t for t, _ in rows), amounts=tuple(a for _, a in rows),
                         route=route, units=units)


def daily_dosing(daily_dose: float, doses_per_day: int = 1, route: Route = "oral",
                 units: str = "mg/kg", start_h: float = 0.0) -> DailyDoseSchedule:
    return DailyDoseSchedule(daily_dose=float(daily_dose), doses_per_day=doses_per_day,
                             route=route, units=units, start_h=float(start_h))


def make_cyclic_forcings(exp_conc: float, period: float, exp_duration: float, days: float,
                         exp_start_time: float = 0.0, units: str = "ppmv") -> Optional[ForcingSeries]:
    """
    Repeating exposure: `exp_conc` for `exp_duration` hours out of every `period`
    hours, starting at `exp_start_time`, for a `days`-long simulation.

    Returns None when there is nothing to inhale (exp_conc == 0). period == 0
    (which allows only exp_duration == 0) means a constant exposure from the
    start time onward.
    """
    _validate_non_negative("exp_conc", exp_conc)
    _validate_non_negative("period", period)
    _validate_non_negative("exp_duration", exp_duration)
    _validate_non_negative("exp_start_time", exp_start_time)
    if exp_duration > period:
        raise DomainError(f"Exposure duration ({exp_duration} h) cannot exceed the period ({period} h).")
    if exp_conc == 0:
        return None
    if period == 0 or exp_duration == period:
        return ForcingSeries(times=(float(exp_start_time),), values=(float(exp_conc),), units=units)

    n_cycles = max(int(math.ceil((days * 24.0 - exp_start_time) / period)), 0)
    times = []
    values = []
    for k in range(n_cycles):
        on = exp_start_time + k * period
        times.extend([on, on + exp_duration])
        values.extend([float(exp_conc), 0.0])
    return ForcingSeries(times=tuple(times), values=tuple(values), units=units)


def dosing_schedule(route: Route = "oral", *, initial_dose: Optional[float] = None,
                    dosing_matrix: Optional[Sequence[Tuple[float, float]]] = None,
                    daily_dose: Optional[float] = None, doses_per_day: Optional[int] = None,
                    forcings: Optional[ForcingSeries] = None, units: str = "mg/kg") -> Optional[DosingSchedule]:
    """
    Pick the one dosing mode the caller asked for.

    Asking for more than one (e.g. a dosing matrix and a daily dose) is an
    error; asking for none returns None (no input).
    """
    requested = [name for name, value in (("initial_dose", initial_dose), ("dosing_matrix", dosing_matrix),
                                          ("daily_dose", daily_dose), ("forcings", forcings))
                 if value is not None]
    if len(requested) > 1:
        raise DomainError(f"Choose one dosing mode, got {', '.join(requested)}.")
    if doses_per_day is not None and daily_dose is None:
        raise DomainError("doses_per_day requires daily_dose.")
    if initial_dose is not None:
        return BolusSchedule(times=(0.0,), amounts=(float(initial_dose),), route=route, units=units)
    if dosing_matrix is not None:
        return from_explicit_schedule(dosing_matrix, route=route, units=units)
    if daily_dose is not None:
        return daily_dosing(daily_dose, doses_per_day or 1, route=route, units=units)
    return forcings


# --------------------------
# Small input validators
# --------------------------
def _validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise DomainError(f"{name} must be > 0 (got {x}).")

def _validate_non_negative(name: str, x: float) -> None:
    if not (x >= 0):
        raise DomainError(f"{name} must be >= 0 (got {x}).")

def _validate_positive_int(name: str, x: int) -> None:
    if not (isinstance(x, int) and x > 0):
        raise DomainError(f"{name} must be a positive integer (got {x}).")
