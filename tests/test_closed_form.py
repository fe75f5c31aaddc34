import numpy as np
import pytest

from conftest import amounts
from tkengine.dosing import BolusSchedule, make_cyclic_forcings, single_dose
from tkengine.errors import DomainError
from tkengine.metrics import auc_trapz, cmax, cmax_tmax, daily_average, final_auc, tmax
from tkengine.models.registry import resolve_parameters
from tkengine.simulate import solve_1comp, solve_gas_pbtk, solve_pbtk
from tkengine.solvers import solve_model
from tkengine.steady_state import calc_analytic_css
from tkengine.types import Param


def test_iv_bolus_exponential_decay(one_comp_params):
    """
    For a 1-compartment model with linear elimination, an IV bolus follows:
      C(t) = C0 * exp(-k t),  where C0 = dose / (Vdist * BW).
    1 mg/kg of a 200 g/mol chemical in a 70 kg body is 350 umol; Vdist 140 L gives C0 = 2.5 uM.
    """
    res = solve_1comp(parameters=one_comp_params, dose=1.0, route="iv", days=2)
    t = res.time
    C = res.column("Ccompartment")
    C_expected = 2.5 * np.exp(-0.1 * t)

    assert np.isclose(C[0], 2.5)
    assert np.allclose(C, C_expected, rtol=1e-5, atol=1e-8)
    assert res.units["Ccompartment"] == "uM"
    assert res.units["AUC"] == "uM*h"


def test_auc_state_matches_analytic(one_comp_params):
    res = solve_1comp(parameters=one_comp_params, dose=1.0, route="iv", days=2)
    t_end = res.time[-1]
    expected = 2.5 / 0.1 * (1.0 - np.exp(-0.1 * t_end))
    assert np.isclose(final_auc(res), expected, rtol=1e-5)
    # Trapezoids on a 15-minute grid land close to the integrated state
    assert np.isclose(auc_trapz(res), final_auc(res), rtol=1e-3)


def test_oral_dose_peaks_after_absorption(one_comp_params):
    res = solve_1comp(parameters=one_comp_params, dose=1.0, route="oral", days=1)
    c, t = cmax_tmax(res)
    assert c == cmax(res)
    assert t == tmax(res)
    assert 0.0 < t < 24.0
    # ka = 2.18, ke = 0.1: peak at ln(ka/ke)/(ka - ke)
    assert np.isclose(t, np.log(2.18 / 0.1) / (2.18 - 0.1), atol=0.25)


def test_no_dose_stays_at_zero(one_comp_params):
    res = solve_model("1compartment", parameters=one_comp_params, days=1)
    assert np.all(res.values == 0.0)


def test_dose_time_reports_post_dose_state(one_comp_params):
    schedule = BolusSchedule(times=(0.0, 12.0), amounts=(1.0, 1.0), route="iv")
    res = solve_1comp(parameters=one_comp_params, dosing=schedule, days=1)
    at_12 = res.column("Ccompartment")[np.argmin(np.abs(res.time - 12.0))]
    assert np.isclose(at_12, 2.5 * np.exp(-1.2) + 2.5, rtol=1e-5)


def test_mg_per_litre_output(one_comp_params):
    um = solve_1comp(parameters=one_comp_params, dose=1.0, route="iv", days=1)
    mg = solve_1comp(parameters=one_comp_params, dose=1.0, route="iv", days=1,
                     output_units="mg/L", amount_units="mg")
    assert np.allclose(mg.column("Ccompartment"), um.column("Ccompartment") * 200.0 / 1000.0)
    assert np.allclose(mg.column("Acompartment"), um.column("Acompartment") * 200.0 / 1000.0)
    assert mg.units["AUC"] == "mg/L*h"


def test_initial_values(one_comp_params):
    res = solve_model("1compartment", parameters=one_comp_params, days=1,
                      initial_values={"Acompartment": 350.0})
    assert np.isclose(res.column("Ccompartment")[0], 2.5)
    with pytest.raises(DomainError):
        solve_model("1compartment", parameters=one_comp_params, initial_values={"Aliver": 1.0})


def test_explicit_output_times(one_comp_params):
    res = solve_1comp(parameters=one_comp_params, dose=1.0, route="iv", times=[0.0, 1.0, 5.0, 10.0])
    assert np.allclose(res.time, [0.0, 1.0, 5.0, 10.0])
    assert np.allclose(res.column("Ccompartment"), 2.5 * np.exp(-0.1 * res.time), rtol=1e-5)


def test_default_grid(one_comp_params):
    res = solve_1comp(parameters=one_comp_params, days=2, tsteps=4)
    assert res.time.size == 2 * 24 * 4 + 1
    assert res.time[-1] == 48.0


def test_solver_argument_errors(table, one_comp_params):
    with pytest.raises(DomainError):
        solve_model("1compartment", parameters=one_comp_params, method="Euler")
    with pytest.raises(DomainError):
        solve_model("3compartmentss", store=table, chem_name="Neutralol")
    with pytest.raises(DomainError):
        solve_model("1compartment", parameters=one_comp_params, days=0)
    with pytest.raises(DomainError):
        solve_model("1compartment", parameters=one_comp_params,
                    forcings=make_cyclic_forcings(1.0, 24.0, 8.0, days=1))


def test_results_are_read_only(one_comp_params):
    res = solve_1comp(parameters=one_comp_params, dose=1.0, days=1)
    with pytest.raises(ValueError):
        res.values[0, 0] = 1.0
    frame = res.to_frame()
    assert list(frame.columns) == ["time", *res.columns]
    assert len(frame) == res.time.size


def test_pbtk_iv_mass_balance(table):
    """Every umol given is somewhere: a tissue, the tubules or metabolized."""
    res = solve_pbtk(store=table, chem_name="Neutralol", dose=1.0, route="iv", days=2)
    total = amounts(res)
    assert np.allclose(total, 350.0, rtol=1e-5)
    assert res.column("Ametabolized")[-1] > 0
    assert res.column("Atubules")[-1] > 0


def test_pbtk_oral_absorbs_fabsgut(table):
    res = solve_pbtk(store=table, chem_name="Neutralol", dose=1.0, route="oral", days=1)
    _, params = resolve_parameters("pbtk", table, chem_name="Neutralol")
    assert np.allclose(amounts(res), 350.0 * params[Param.FABSGUT], rtol=1e-5)


def test_pbtk_approaches_analytic_css(table):
    """Daily average plasma concentration approaches the closed-form Css."""
    css = calc_analytic_css("pbtk", store=table, chem_name="Neutralol", daily_dose=1.0, route="iv")
    schedule = BolusSchedule(times=tuple(float(h) for h in range(0, 20 * 24)),
                             amounts=tuple(1.0 / 24.0 for _ in range(20 * 24)), route="iv")
    res = solve_pbtk(store=table, chem_name="Neutralol", dosing=schedule, days=20, tsteps=1)
    assert np.isclose(daily_average(res)[-1], css, rtol=0.05)


def test_gas_mass_balance(table):
    """Chemical in the body equals what was inhaled minus what was exhaled."""
    res = solve_gas_pbtk(store=table, chem_name="Volatilene", exp_conc=10.0, period=24.0,
                         exp_duration=8.0, days=2)
    body = amounts(res, exclude=("AUC", "Ainh", "Aexh"))
    assert np.allclose(body, res.column("Ainh") - res.column("Aexh"), rtol=1e-5, atol=1e-8)
    assert res.column("Ainh")[-1] > 0
    assert res.units["Calvppmv"] == "ppmv"


def test_gas_exposure_switches_off(table):
    res = solve_gas_pbtk(store=table, chem_name="Volatilene", exp_conc=10.0, period=24.0,
                         exp_duration=8.0, days=1)
    inhaled = res.column("Ainh")
    after = res.time >= 8.0
    # Nothing more is inhaled once the exposure window closes
    assert np.allclose(inhaled[after], inhaled[after][0])
    assert inhaled[np.argmin(np.abs(res.time - 4.0))] < inhaled[after][0]


def test_gas_model_takes_oral_doses_instead(table):
    res = solve_gas_pbtk(store=table, chem_name="Volatilene", dose=1.0, days=1)
    assert res.column("Ainh")[-1] == 0.0
    assert res.column("Cplasma").max() > 0

    zero = solve_gas_pbtk(store=table, chem_name="Volatilene", exp_conc=0.0, dose=1.0, days=1)
    assert np.allclose(zero.values, res.values)


def test_gas_model_runs_one_route_at_a_time(table):
    with pytest.raises(DomainError):
        solve_gas_pbtk(store=table, chem_name="Volatilene", exp_conc=5.0, dose=1.0, days=1)
    with pytest.raises(DomainError):
        solve_gas_pbtk(store=table, chem_name="Volatilene", dose=1.0, days=1,
                       forcings=make_cyclic_forcings(5.0, 24.0, 8.0, days=1))
    with pytest.raises(DomainError):
        solve_model("gas_pbtk", store=table, chem_name="Volatilene", days=1,
                    dosing=single_dose(1.0), forcings=make_cyclic_forcings(5.0, 24.0, 8.0, days=1))


def test_gas_exposure_covers_explicit_times(table):
    res = solve_gas_pbtk(store=table, chem_name="Volatilene", exp_conc=10.0, period=24.0,
                         exp_duration=8.0, days=1, times=np.linspace(0.0, 48.0, 97))
    inhaled = res.column("Ainh")
    # Second day's window opens at 24 h
    assert inhaled[np.argmin(np.abs(res.time - 30.0))] > inhaled[np.argmin(np.abs(res.time - 24.0))]


def test_single_dose_schedule_in_umol(one_comp_params):
    res = solve_model("1compartment", parameters=one_comp_params, days=1,
                      dosing=single_dose(350.0, route="iv", units="umol"))
    assert np.isclose(res.column("Ccompartment")[0], 2.5)


def test_daily_doses_continue_over_explicit_times(one_comp_params):
    """Output times past `days` still receive the scheduled daily doses."""
    res = solve_1comp(parameters=one_comp_params, daily_dose=1.0, doses_per_day=1, route="iv",
                      times=np.linspace(0.0, 480.0, 481))
    conc = res.column("Ccompartment")
    assert conc[np.argmin(np.abs(res.time - 264.0))] >= 2.5
    # Doses at 0, 24, ..., 456 h: twenty of 350 umol each
    given = res.column("Acompartment")[-1] + res.column("Ametabolized")[-1]
    assert np.isclose(given, 20 * 350.0, rtol=1e-5)


def test_dose_before_first_output_time(one_comp_params):
    with pytest.raises(DomainError):
        solve_1comp(parameters=one_comp_params, dose=1.0, route="iv", times=[1.0, 2.0, 3.0])
    schedule = BolusSchedule(times=(1.0,), amounts=(1.0,), route="iv")
    res = solve_1comp(parameters=one_comp_params, dosing=schedule, times=[1.0, 2.0, 3.0])
    assert np.isclose(res.column("Ccompartment")[0], 2.5)


def test_off_grid_dose_near_large_grid_time(one_comp_params):
    """A dose 1 ms after a grid point is not reported at that grid point."""
    schedule = BolusSchedule(times=(1000.0 + 1e-3 / 3600.0,), amounts=(1.0,), route="iv")
    res = solve_1comp(parameters=one_comp_params, dosing=schedule, times=[0.0, 1000.0, 1001.0])
    assert res.time.size == 3
    assert res.column("Ccompartment")[1] == 0.0
    assert np.isclose(res.column("Ccompartment")[2], 2.5 * np.exp(-0.1), rtol=1e-4)
