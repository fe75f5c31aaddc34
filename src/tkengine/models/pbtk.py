# src/tkengine/models/pbtk.py
"""
Flow-limited whole-body PBTK model.

Compartments: gut lumen, gut, liver, veins, lung, arteries, kidney and a
lumped rest of body, plus the renal tubules, metabolized and plasma AUC
accumulators. Amounts in umol, flows in L/h, volumes in L.

Chemical leaves a tissue in blood at C_t * Rb2p / (K_t2pu * fup).
"""
from __future__ import annotations

import numpy as np

from ..clearance import require_positive_fup
from ..parameterize import (calc_vdist_from_coefficients, partition_inputs_from_params,
                            steady_state_values)
from ..partition import lump_tissues, predict_partitioning_schmitt
from ..types import Param
from .base import Topology, register

# Tissues kept as their own compartment; everything else is lumped into "rest".
PBTK_TISSUES = ("gut", "liver", "kidney", "lung")
# Share of the blood volume held in the arteries
ARTERIAL_FRACTION = 1.0 / 3.0

_PBTK_PARAMS = (
    Param.BW, Param.MW, Param.FUNBOUND_PLASMA, Param.RBLOOD2PLASMA, Param.HEMATOCRIT,
    Param.CLMETABOLISMC, Param.KGUTABS, Param.FABSGUT,
    Param.QCARDIACC, Param.QGFRC, Param.QGUTF, Param.QLIVERF, Param.QKIDNEYF,
    Param.VARTC, Param.VVENC, Param.VGUTC, Param.VLIVERC, Param.VKIDNEYC, Param.VLUNGC, Param.VRESTC,
    Param.KGUT2PU, Param.KLIVER2PU, Param.KKIDNEY2PU, Param.KLUNG2PU, Param.KREST2PU,
    Param.POW, Param.PKA_DONOR, Param.PKA_ACCEPT, Param.MA, Param.VDIST,
)


@register
class PBTK(Topology):
    name = "pbtk"
    param_names = _PBTK_PARAMS
    state_names = ("Agutlumen", "Agut", "Aliver", "Aven", "Alung", "Aart", "Arest", "Akidney",
                   "Atubules", "Ametabolized", "AUC")
    dose_states = {"oral": "Agutlumen", "iv": "Aven"}

    # --------------------------
    # Parameters
    # --------------------------
    def parameterize(self, store, identity, options, overrides=None):
        props, physiology = self._chemical(store, identity, options, overrides)
        values, distributions = self._pbtk_values(store, identity, props, physiology, options, overrides)
        return self._finish(physiology.species, values, distributions, overrides)

    def _pbtk_values(self, store, identity, props, physiology, options, overrides):
        values, distributions = steady_state_values(store, identity, props, physiology, options, overrides)
        coefficients = predict_partitioning_schmitt(partition_inputs_from_params(values, physiology), physiology)
        ks, vols = lump_tissues(coefficients, physiology, keep=PBTK_TISSUES)

        blood = physiology.plasma_volume / (1.0 - physiology.hematocrit)
        values.update({
            Param.QGUTF: physiology.tissue("gut").flow,
            Param.QLIVERF: physiology.tissue("liver").flow,
            Param.QKIDNEYF: physiology.tissue("kidney").flow,
            Param.VARTC: blood * ARTERIAL_FRACTION,
            Param.VVENC: blood * (1.0 - ARTERIAL_FRACTION),
            Param.VGUTC: vols["gut"],
            Param.VLIVERC: vols["liver"],
            Param.VKIDNEYC: vols["kidney"],
            Param.VLUNGC: vols["lung"],
            Param.VRESTC: vols["rest"],
            Param.KGUT2PU: ks["gut"],
            Param.KLIVER2PU: ks["liver"],
            Param.KKIDNEY2PU: ks["kidney"],
            Param.KLUNG2PU: ks["lung"],
            Param.KREST2PU: ks["rest"],
            Param.VDIST: calc_vdist_from_coefficients(coefficients, physiology, values[Param.FUNBOUND_PLASMA]),
        })
        return values, distributions

    # --------------------------
    # Dynamics
    # --------------------------
    def scale(self, params):
        bw = params[Param.BW]
        q_c = params[Param.QCARDIACC] * bw ** 0.75
        q_gut = params[Param.QGUTF] * q_c
        q_liver = params[Param.QLIVERF] * q_c
        q_kidney = params[Param.QKIDNEYF] * q_c
        return {
            "fup": require_positive_fup(params[Param.FUNBOUND_PLASMA]),
            "Rb2p": params[Param.RBLOOD2PLASMA],
            "kgutabs": params[Param.KGUTABS],
            "Clmetabolism": params[Param.CLMETABOLISMC] * bw,
            "Qcardiac": q_c,
            "Qgut": q_gut,
            "Qliver": q_liver,
            "Qkidney": q_kidney,
            "Qrest": q_c - q_gut - q_liver - q_kidney,
            "Qgfr": params[Param.QGFRC] * bw ** 0.75,
            "Vart": params[Param.VARTC] * bw,
            "Vven": params[Param.VVENC] * bw,
            "Vgut": params[Param.VGUTC] * bw,
            "Vliver": params[Param.VLIVERC] * bw,
            "Vkidney": params[Param.VKIDNEYC] * bw,
            "Vlung": params[Param.VLUNGC] * bw,
            "Vrest": params[Param.VRESTC] * bw,
            "Kgut2pu": params[Param.KGUT2PU],
            "Kliver2pu": params[Param.KLIVER2PU],
            "Kkidney2pu": params[Param.KKIDNEY2PU],
            "Klung2pu": params[Param.KLUNG2PU],
            "Krest2pu": params[Param.KREST2PU],
        }

    def _concentrations(self, y, s):
        return {
            "Cgut": y[1] / s["Vgut"],
            "Cliver": y[2] / s["Vliver"],
            "Cven": y[3] / s["Vven"],
            "Clung": y[4] / s["Vlung"],
            "Cart": y[5] / s["Vart"],
            "Crest": y[6] / s["Vrest"],
            "Ckidney": y[7] / s["Vkidney"],
        }

    def _metabolism(self, c_liver, s):
        return s["Clmetabolism"] * c_liver / s["Kliver2pu"] / s["fup"]

    def _flows(self, t, y, s):
        """Shared tissue mass balances; returns derivatives and the lung outflow concentration."""
        c = self._concentrations(y, s)
        fup, rb2p = s["fup"], s["Rb2p"]

        def out(conc, partition):
            return c[conc] * rb2p / (s[partition] * fup)

        gut_out = out("Cgut", "Kgut2pu")
        liver_out = out("Cliver", "Kliver2pu")
        kidney_out = out("Ckidney", "Kkidney2pu")
        rest_out = out("Crest", "Krest2pu")
        lung_out = out("Clung", "Klung2pu")

        metabolism = self._metabolism(c["Cliver"], s)
        filtration = s["Qgfr"] * c["Ckidney"] / s["Kkidney2pu"]

        d = np.zeros(len(y))
        d[0] = -s["kgutabs"] * y[0]
        d[1] = s["kgutabs"] * y[0] + s["Qgut"] * (c["Cart"] - gut_out)
        d[2] = (s["Qliver"] * c["Cart"] + s["Qgut"] * gut_out
                - (s["Qliver"] + s["Qgut"]) * liver_out - metabolism)
        d[3] = ((s["Qliver"] + s["Qgut"]) * liver_out + s["Qkidney"] * kidney_out
                + s["Qrest"] * rest_out - s["Qcardiac"] * c["Cven"])
        d[4] = s["Qcardiac"] * (c["Cven"] - lung_out)
        d[5] = s["Qcardiac"] * (lung_out - c["Cart"])
        d[6] = s["Qrest"] * (c["Cart"] - rest_out)
        d[7] = s["Qkidney"] * (c["Cart"] - kidney_out) - filtration
        d[8] = filtration
        d[9] = metabolism
        d[10] = c["Cven"] / rb2p
        return d, lung_out

    def derivatives(self, t, y, s, forcing=0.0):
        d, _ = self._flows(t, y, s)
        return d

    def observe(self, y, s):
        c = self._concentrations(y, s)
        c["Cplasma"] = c["Cven"] / s["Rb2p"]
        return c

    def dose_fraction(self, params, route):
        return params[Param.FABSGUT] if route == "oral" else 1.0

    # --------------------------
    # Steady state
    # --------------------------
    def _elimination(self, s):
        """
        Whole-body blood clearance D (L/h) of the liver and kidney branches and
        the hepatic escape fraction QL/(QL + a).
        """
        rb2p = s["Rb2p"]
        q_l = s["Qliver"] + s["Qgut"]
        a = s["Clmetabolism"] / rb2p
        g = s["Qgfr"] * s["fup"] / rb2p
        d = q_l * a / (q_l + a) + s["Qkidney"] * g / (s["Qkidney"] + g)
        return d, q_l / (q_l + a)

    def analytic_css(self, params, dose_rate, route="oral", exposure=0.0, options=None):
        """
        At steady state the arterial blood concentration solves
            R*F = C_art * D
        with F = Fabsgut * QL/(QL + a) for oral input and 1 for iv input.
        """
        self._check_route(route)
        s = self.scale(params)
        d, escape = self._elimination(s)
        rate = dose_rate * params[Param.BW]
        fraction = params[Param.FABSGUT] * escape if route == "oral" else 1.0
        return rate * fraction / d / s["Rb2p"]
