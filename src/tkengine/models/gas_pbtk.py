# src/tkengine/models/gas_pbtk.py
"""
PBTK model with a lung/air interface for inhaled volatiles.

The lung compartment exchanges with alveolar air: inhaled chemical enters at
Qalv*Cinh and leaves in exhaled air at Qalv*C_lung_blood/Kblood2air.
Hepatic metabolism is linear (Clmetabolism) unless vmax > 0, in which case it
is Michaelis-Menten on the unbound liver concentration.
"""
from __future__ import annotations

import logging

import numpy as np

from ..errors import DomainError
from ..parameterize import invitro_property
from ..types import Param
from ..units import MOLAR_VOLUME_AIR
from .base import GLYCEROL_LOG_HENRY, register
from .pbtk import PBTK

logger = logging.getLogger(__name__)

# Ideal gas constant, atm*m3/(mol*K), and body temperature in K
GAS_CONSTANT = 8.205736e-5
BODY_TEMPERATURE = 310.15


def calc_kair2water(log_henry: float, temperature: float = BODY_TEMPERATURE) -> float:
    """Dimensionless air:water partition coefficient from log10 Henry's constant (atm*m3/mol)."""
    return 10 ** log_henry / (GAS_CONSTANT * temperature)


def calc_kblood2air(log_henry: float, rblood2plasma: float, funbound_plasma: float) -> float:
    """Blood:air partition coefficient, Kwater2air * Rb2p / fup."""
    return rblood2plasma / funbound_plasma / calc_kair2water(log_henry)


def calc_qalv(breath_rate: float, tidal_volume: float, dead_space: float) -> float:
    """Alveolar ventilation, L/h: breaths/min * (VT - VD) * 60."""
    return breath_rate * (tidal_volume - dead_space) * 60.0


@register
class GasPBTK(PBTK):
    name = "gas_pbtk"
    param_names = PBTK.param_names + (Param.LOG_HENRY, Param.QALVC, Param.KBLOOD2AIR, Param.VMAX, Param.KM)
    state_names = PBTK.state_names + ("Ainh", "Aexh")
    routes = ("oral", "iv", "inhalation")
    column_units = {"Calvppmv": "ppmv"}

    def check_physchem(self, props):
        """Volatility is the point of this model; only very low Henry's constants are suspicious."""
        log_henry = props.require("log_henry")
        if log_henry <= GLYCEROL_LOG_HENRY:
            logger.warning("%s has a Henry's law constant below that of glycerol (log10 %.2f); "
                           "it is unlikely to be volatile.",
                           props.identity.name or props.identity.cas, log_henry)

    def parameterize(self, store, identity, options, overrides=None):
        props, physiology = self._chemical(store, identity, options, overrides)
        log_henry = props.require("log_henry")
        values, distributions = self._pbtk_values(store, identity, props, physiology, options, overrides)

        vmax = invitro_property(store, identity, "vmax", options, overrides)
        km = invitro_property(store, identity, "km", options, overrides)
        qalv = calc_qalv(physiology.breath_rate, physiology.tidal_volume, physiology.dead_space)
        values.update({
            Param.LOG_HENRY: log_henry,
            Param.QALVC: qalv / physiology.bw ** 0.75,
            Param.KBLOOD2AIR: calc_kblood2air(log_henry, values[Param.RBLOOD2PLASMA],
                                              values[Param.FUNBOUND_PLASMA]),
            Param.VMAX: float(vmax) if vmax is not None else 0.0,
            Param.KM: float(km) if km is not None else 1.0,
        })
        return self._finish(physiology.species, values, distributions, overrides)

    def scale(self, params):
        s = super().scale(params)
        bw = params[Param.BW]
        s.update({
            "Qalv": params[Param.QALVC] * bw ** 0.75,
            "Kblood2air": params[Param.KBLOOD2AIR],
            "vmax": params[Param.VMAX] * bw ** 0.75,
            "km": params[Param.KM],
        })
        return s

    def _metabolism(self, c_liver, s):
        if s["vmax"] > 0:
            c_free = c_liver / s["Kliver2pu"]
            return s["vmax"] * c_free / (s["km"] + c_free)
        return super()._metabolism(c_liver, s)

    def derivatives(self, t, y, s, forcing=0.0):
        """`forcing` is the inhaled air concentration in uM."""
        d, lung_out = self._flows(t, y, s)
        inhaled = s["Qalv"] * forcing
        exhaled = s["Qalv"] * lung_out / s["Kblood2air"]
        d[4] += inhaled - exhaled
        d[11] = inhaled
        d[12] = exhaled
        return d

    def observe(self, y, s):
        c = super().observe(y, s)
        c_alv = y[4] / s["Vlung"] * s["Rb2p"] / (s["Klung2pu"] * s["fup"]) / s["Kblood2air"]
        c["Calv"] = c_alv
        c["Calvppmv"] = np.asarray(c_alv) * MOLAR_VOLUME_AIR
        return c

    def analytic_css(self, params, dose_rate, route="oral", exposure=0.0, options=None):
        """
        C_art = (R*F + Qalv*Cinh) / (D + Qalv/Kblood2air)

        exposure is the constant inhaled concentration in uM; route "inhalation"
        means no oral or iv input.
        """
        self._check_route(route)
        if params[Param.VMAX] > 0:
            raise DomainError("Saturable (Michaelis-Menten) metabolism has no closed-form steady state; "
                              "simulate with solve_gas_pbtk instead.")
        s = self.scale(params)
        d, escape = self._elimination(s)
        rate = 0.0 if route == "inhalation" else dose_rate * params[Param.BW]
        fraction = params[Param.FABSGUT] * escape if route == "oral" else 1.0
        c_art = (rate * fraction + s["Qalv"] * exposure) / (d + s["Qalv"] / s["Kblood2air"])
        return c_art / s["Rb2p"]
