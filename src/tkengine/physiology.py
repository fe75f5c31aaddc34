# src/tkengine/physiology.py
"""
Built-in species physiology and tissue composition.

Composition (cellular/interstitial split, cell water/lipid/protein and lipid
classes, intracellular pH) follows the Schmitt (2008) tissue table and is
shared between species. Volumes (L/kg BW) and flows (fraction of cardiac
output) are species specific.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping

from .errors import UnknownSpecies
from .types import PhysiologyProfile, TissueComposition

# f_cell, f_int, f_water, f_lipid, f_protein, f_neutral_lipid, f_neutral_phospholipid, f_acidic_phospholipid, pH
_COMPOSITION = {
    "adipose":         (0.860, 0.135, 0.100, 0.800, 0.100, 0.990, 0.008, 0.002, 7.10),
    "bone":            (0.900, 0.100, 0.450, 0.070, 0.280, 0.700, 0.250, 0.050, 7.00),
    "brain":           (0.840, 0.160, 0.780, 0.110, 0.110, 0.200, 0.600, 0.200, 7.10),
    "gut":             (0.870, 0.130, 0.750, 0.050, 0.200, 0.600, 0.330, 0.070, 7.00),
    "heart":           (0.860, 0.140, 0.770, 0.030, 0.200, 0.300, 0.550, 0.150, 7.10),
    "kidney":          (0.840, 0.160, 0.760, 0.040, 0.200, 0.200, 0.650, 0.150, 7.22),
    "liver":           (0.840, 0.160, 0.720, 0.050, 0.230, 0.350, 0.500, 0.150, 7.23),
    "lung":            (0.700, 0.300, 0.790, 0.030, 0.180, 0.300, 0.550, 0.150, 6.60),
    "muscle":          (0.880, 0.120, 0.760, 0.020, 0.220, 0.350, 0.500, 0.150, 6.81),
    "skin":            (0.600, 0.400, 0.650, 0.050, 0.300, 0.600, 0.330, 0.070, 7.00),
    "spleen":          (0.800, 0.200, 0.780, 0.020, 0.200, 0.200, 0.600, 0.200, 7.00),
    "red blood cells": (1.000, 0.000, 0.660, 0.005, 0.335, 0.300, 0.550, 0.150, 7.22),
}

# species -> tissue -> (volume L/kg, flow fraction of cardiac output)
_SIZES = {
    "Human": {
        "adipose": (0.2142, 0.052), "bone": (0.0856, 0.050), "brain": (0.0200, 0.114),
        "gut": (0.0171, 0.160), "heart": (0.0047, 0.040), "kidney": (0.0044, 0.190),
        "liver": (0.0245, 0.065), "lung": (0.0076, 0.0), "muscle": (0.4000, 0.170),
        "skin": (0.0371, 0.058), "spleen": (0.0026, 0.030),
    },
    "Rat": {
        "adipose": (0.0700, 0.070), "bone": (0.0730, 0.122), "brain": (0.0057, 0.020),
        "gut": (0.0270, 0.131), "heart": (0.0033, 0.049), "kidney": (0.0073, 0.141),
        "liver": (0.0366, 0.021), "lung": (0.0050, 0.0), "muscle": (0.4040, 0.278),
        "skin": (0.1900, 0.058), "spleen": (0.0020, 0.020),
    },
    "Mouse": {
        "adipose": (0.0700, 0.070), "bone": (0.1070, 0.110), "brain": (0.0165, 0.033),
        "gut": (0.0422, 0.141), "heart": (0.0050, 0.066), "kidney": (0.0167, 0.091),
        "liver": (0.0549, 0.020), "lung": (0.0073, 0.0), "muscle": (0.3840, 0.159),
        "skin": (0.1650, 0.058), "spleen": (0.0035, 0.011),
    },
    "Dog": {
        "adipose": (0.1350, 0.070), "bone": (0.0830, 0.050), "brain": (0.0085, 0.020),
        "gut": (0.0350, 0.180), "heart": (0.0080, 0.046), "kidney": (0.0055, 0.173),
        "liver": (0.0329, 0.046), "lung": (0.0082, 0.0), "muscle": (0.4570, 0.217),
        "skin": (0.0900, 0.060), "spleen": (0.0027, 0.018),
    },
}

# bw, hematocrit, plasma volume (mL/kg), Qcardiac, Qgfr (L/h/kg^0.75), plasma lipid, breaths/min, VT (L), VD (L)
_WHOLE_BODY = {
    "Human": (70.0, 0.44, 42.86, 15.6, 0.3099, 0.00359, 12.0, 0.75, 0.15),
    "Rat":   (0.25, 0.46, 31.20, 14.0, 0.2000, 0.00296, 102.0, 0.0021, 0.0008),
    "Mouse": (0.02, 0.45, 48.80, 15.8, 0.3200, 0.00292, 163.0, 0.00015, 0.00005),
    "Dog":   (10.0, 0.42, 51.50, 12.9, 0.3600, 0.00321, 20.0, 0.25, 0.06),
}


def _build(species: str) -> PhysiologyProfile:
    bw, hct, pv, qc, qgfr, flipid, fr, vt, vd = _WHOLE_BODY[species]
    tissues: Dict[str, TissueComposition] = {}
    for tissue, comp in _COMPOSITION.items():
        volume, flow = _SIZES[species].get(tissue, (0.0, 0.0))
        tissues[tissue] = TissueComposition(*comp, volume=volume, flow=flow)
    return PhysiologyProfile(
        species=species, bw=bw, hematocrit=hct, plasma_volume=pv / 1000.0,
        q_cardiac=qc, q_gfr=qgfr, plasma_lipid=flipid, tissues=tissues,
        breath_rate=fr, tidal_volume=vt, dead_space=vd,
    )


DEFAULT_PHYSIOLOGY: Mapping[str, PhysiologyProfile] = MappingProxyType({s: _build(s) for s in _WHOLE_BODY})


def default_physiology(species: str) -> PhysiologyProfile:
    """Case-insensitive lookup in the built-in tables."""
    for name, profile in DEFAULT_PHYSIOLOGY.items():
        if name.lower() == species.lower():
            return profile
    raise UnknownSpecies(f"Physiological PK data for {species} not found.")
