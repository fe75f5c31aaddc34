# src/tkengine/models/one_compartment.py
import numpy as np

from ..parameterize import (calc_vdist_from_coefficients, elimination_rate, partition_inputs_from_params,
                            steady_state_values)
from ..partition import predict_partitioning_schmitt
from ..types import Param
from .base import Topology, register


@register
class OneCompartment(Topology):
    """
    One-compartment model with first-order absorption and elimination.
    Four states:
      Agutlumen     = chemical in the gut lumen (umol)
      Acompartment  = chemical in the body (umol)
      Ametabolized  = cumulative amount eliminated (umol)
      AUC           = plasma area under the curve (uM*h)

    An oral dose enters the lumen already scaled by Fabsgut*Fhep, so first-pass
    loss is applied at the dose rather than inside the right-hand side.
    """
    name = "1compartment"
    param_names = (
        Param.BW, Param.MW, Param.VDIST, Param.KELIM, Param.KGUTABS,
        Param.FABSGUT, Param.HEPATIC_BIOAVAILABILITY,
        Param.FUNBOUND_PLASMA, Param.RBLOOD2PLASMA,
        Param.POW, Param.PKA_DONOR, Param.PKA_ACCEPT, Param.MA,
    )
    state_names = ("Agutlumen", "Acompartment", "Ametabolized", "AUC")
    dose_states = {"oral": "Agutlumen", "iv": "Acompartment"}

    def parameterize(self, store, identity, options, overrides=None):
        props, physiology = self._chemical(store, identity, options, overrides)
        values, distributions = steady_state_values(store, identity, props, physiology, options, overrides)
        coefficients = predict_partitioning_schmitt(partition_inputs_from_params(values, physiology), physiology)
        values[Param.VDIST] = calc_vdist_from_coefficients(coefficients, physiology, values[Param.FUNBOUND_PLASMA])
        values[Param.KELIM] = elimination_rate(values, options)
        return self._finish(physiology.species, values, distributions, overrides)

    def scale(self, params):
        return {
            "kgutabs": params[Param.KGUTABS],
            "kelim": params[Param.KELIM],
            "Vdist": params[Param.VDIST] * params[Param.BW],
        }

    def derivatives(self, t, y, s, forcing=0.0):
        A_gutlumen, A_c, _, _ = y
        C_c = A_c / s["Vdist"]

        dA_gutlumen = -s["kgutabs"] * A_gutlumen
        dA_c = s["kgutabs"] * A_gutlumen - s["kelim"] * A_c
        dA_met = s["kelim"] * A_c
        dAUC = C_c
        return np.array([dA_gutlumen, dA_c, dA_met, dAUC])

    def observe(self, y, s):
        return {"Ccompartment": y[1] / s["Vdist"]}

    def plasma_column(self):
        return "Ccompartment"

    def dose_fraction(self, params, route):
        if route == "oral":
            return params[Param.FABSGUT] * params[Param.HEPATIC_BIOAVAILABILITY]
        return 1.0

    def analytic_css(self, params, dose_rate, route="oral", exposure=0.0, options=None):
        """Css = R*F / (kelim*Vdist)."""
        self._check_route(route)
        return dose_rate * self.dose_fraction(params, route) / (params[Param.KELIM] * params[Param.VDIST])
