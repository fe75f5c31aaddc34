import numpy as np
import pytest

from tkengine.dosing import (BolusSchedule, DailyDoseSchedule, ForcingSeries, daily_dosing, dosing_schedule,
                             from_explicit_schedule, make_cyclic_forcings, single_dose)
from tkengine.errors import DomainError


def test_cyclic_forcing_two_days():
    """5 ppmv for 12 h of every 24 h over two days."""
    f = make_cyclic_forcings(exp_conc=5.0, period=24.0, exp_duration=12.0, days=2, exp_start_time=0.0)
    assert f.times == (0.0, 12.0, 24.0, 36.0)
    assert f.values == (5.0, 0.0, 5.0, 0.0)
    assert f.units == "ppmv"


def test_cyclic_forcing_duration_longer_than_period():
    with pytest.raises(DomainError):
        make_cyclic_forcings(exp_conc=5.0, period=24.0, exp_duration=30.0, days=2)
    # Also a ValueError for callers that only know the builtin hierarchy
    with pytest.raises(ValueError):
        make_cyclic_forcings(exp_conc=5.0, period=24.0, exp_duration=30.0, days=2)


def test_cyclic_forcing_with_late_start():
    f = make_cyclic_forcings(exp_conc=2.0, period=24.0, exp_duration=8.0, days=2, exp_start_time=6.0)
    assert f.times == (6.0, 14.0, 30.0, 38.0)


def test_cyclic_forcing_degenerate_cases():
    assert make_cyclic_forcings(exp_conc=0.0, period=24.0, exp_duration=6.0, days=3) is None
    constant = make_cyclic_forcings(exp_conc=3.0, period=0.0, exp_duration=0.0, days=3, exp_start_time=2.0)
    assert constant.times == (2.0,)
    assert constant.value_at(1.0) == 0.0
    assert constant.value_at(50.0) == 3.0


def test_constant_exposure_cannot_have_a_duration():
    with pytest.raises(DomainError):
        make_cyclic_forcings(exp_conc=5.0, period=0.0, exp_duration=12.0, days=2)


def test_forcing_is_a_step_function():
    f = ForcingSeries(times=(0.0, 12.0), values=(5.0, 0.0))
    assert f.value_at(0.0) == 5.0
    assert f.value_at(11.99) == 5.0
    assert f.value_at(12.0) == 0.0
    assert f.scaled(2.0).values == (10.0, 0.0)


def test_single_and_explicit_schedules():
    s = single_dose(1.0)
    assert s.times == (0.0,) and s.amounts == (1.0,) and s.route == "oral"
    m = from_explicit_schedule([(48.0, 2.0), (0.0, 1.0), (24.0, 1.5)], route="iv", units="umol")
    assert m.times == (0.0, 24.0, 48.0)
    assert m.amounts == (1.0, 1.5, 2.0)
    with pytest.raises(DomainError):
        single_dose(-1.0)


def test_bolus_schedule_validation():
    with pytest.raises(DomainError):
        BolusSchedule(times=(0.0, 1.0), amounts=(1.0,))
    with pytest.raises(DomainError):
        BolusSchedule(times=(5.0, 1.0), amounts=(1.0, 1.0))


def test_daily_dosing_expands_into_boluses():
    events = daily_dosing(3.0, doses_per_day=3).events(days=2)
    assert np.allclose(events.times, [0.0, 8.0, 16.0, 24.0, 32.0, 40.0])
    assert np.allclose(events.amounts, 1.0)
    with pytest.raises(DomainError):
        DailyDoseSchedule(daily_dose=1.0, doses_per_day=0)


def test_only_one_dosing_mode():
    with pytest.raises(DomainError):
        dosing_schedule("oral", initial_dose=1.0, daily_dose=2.0)
    with pytest.raises(DomainError):
        dosing_schedule("oral", dosing_matrix=[(0.0, 1.0)], initial_dose=1.0)
    with pytest.raises(DomainError):
        dosing_schedule("oral", doses_per_day=2)
    assert dosing_schedule("oral") is None
    assert isinstance(dosing_schedule("iv", daily_dose=1.0, doses_per_day=2), DailyDoseSchedule)
