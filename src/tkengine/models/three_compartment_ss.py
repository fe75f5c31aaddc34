# src/tkengine/models/three_compartment_ss.py
from ..clearance import calc_hep_clearance, require_positive_fup
from ..parameterize import steady_state_values
from ..types import ModelOptions, Param
from .base import Topology, register


@register
class ThreeCompartmentSS(Topology):
    """
    Gut, liver and rest of body at steady state: algebraic only.

        Css = R * Fabsgut * Fhep / (Qgfr*fup + Cl_hepatic)

    Fabsgut and Fhep apply to oral input only.
    """
    name = "3compartmentss"
    param_names = (
        Param.BW, Param.MW, Param.CLINT, Param.VLIVERC, Param.MILLION_CELLS_PER_GLIVER,
        Param.LIVER_DENSITY, Param.QTOTAL_LIVERC, Param.QGFRC,
        Param.FUNBOUND_PLASMA, Param.RBLOOD2PLASMA,
        Param.CACO2_PAB, Param.FABS, Param.FGUT, Param.FABSGUT, Param.HEPATIC_BIOAVAILABILITY,
        Param.POW, Param.PKA_DONOR, Param.PKA_ACCEPT, Param.MA,
    )

    def parameterize(self, store, identity, options, overrides=None):
        props, physiology = self._chemical(store, identity, options, overrides)
        values, distributions = steady_state_values(store, identity, props, physiology, options, overrides)
        return self._finish(physiology.species, values, distributions, overrides)

    def analytic_css(self, params, dose_rate, route="oral", exposure=0.0, options=None):
        self._check_route(route)
        options = options or ModelOptions()
        fup = require_positive_fup(params[Param.FUNBOUND_PLASMA])
        cl_hep = calc_hep_clearance(params, model=options.hepatic_model,
                                    restrictive=options.restrictive_clearance,
                                    well_stirred_correction=options.well_stirred_correction)
        cl_renal = params[Param.QGFRC] / params[Param.BW] ** 0.25 * fup
        fraction = 1.0
        if route == "oral":
            fraction = params[Param.FABSGUT] * params[Param.HEPATIC_BIOAVAILABILITY]
        return dose_rate * fraction / (cl_renal + cl_hep)
