# src/tkengine/parameterize.py
"""
Chemical + physiology -> model parameters.

Every call re-resolves from the store; nothing is cached between calls.
Caller overrides (keyed by property name, e.g. {"logp": 3.2,
"funbound_plasma": 0.1}) win over the store.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from .absorption import DEFAULT_KGUTABS, resolve_fabsgut
from .binding import calc_fup_correction, calc_hep_fu_from_pow, calc_rblood2plasma
from .clearance import (apply_clint_adjustment, apply_clint_pvalue, hepatic_bioavailability,
                        hepatic_clearance, parse_clint, renal_clearance, scale_clint)
from .errors import MissingParameterError, MissingProperty, warn_clamped
from .partition import PartitionInputs, predict_membrane_affinity, predict_partitioning_schmitt
from .store import INVITRO_PARAMS, PHYSCHEM_COLUMNS, PropertyStore
from .types import ChemicalIdentity, ChemicalProperties, ModelOptions, Param, PhysiologyProfile

logger = logging.getLogger(__name__)


# --------------------------
# Store access
# --------------------------
def resolve_identity(store: PropertyStore, chem_cas: Optional[str] = None, chem_name: Optional[str] = None,
                     dtxsid: Optional[str] = None) -> ChemicalIdentity:
    return store.resolve_identity(cas=chem_cas, name=chem_name, dtxsid=dtxsid)


def chemical_properties(store: PropertyStore, identity: ChemicalIdentity,
                        overrides: Optional[Mapping] = None) -> ChemicalProperties:
    """Phys-chem record for one chemical; absent values stay None."""
    overrides = dict(overrides or {})
    if "pow" in overrides and "logp" not in overrides:
        overrides["logp"] = math.log10(overrides["pow"])
    if "ma" in overrides and "log_ma" not in overrides:
        overrides["log_ma"] = math.log10(overrides["ma"])

    fields = {}
    for name in PHYSCHEM_COLUMNS:
        if name in overrides:
            value = overrides[name]
        else:
            try:
                value = store.get_property(name, identity)
            except MissingProperty:
                value = None
        if name in ("pka_donor", "pka_accept") and isinstance(value, (int, float)):
            value = () if math.isnan(value) else (float(value),)
        fields[name] = value
    fields["chemical_class"] = tuple(fields["chemical_class"] or ())
    return ChemicalProperties(identity=identity, **fields)


def invitro_property(store: PropertyStore, identity: ChemicalIdentity, name: str,
                     options: ModelOptions, overrides: Optional[Mapping] = None,
                     species: Optional[str] = None):
    """
    Species-specific in vitro value, or None when unavailable.

    Human data stand in for another species only when `default_to_human` is set.
    """
    if overrides and name in overrides:
        return overrides[name]
    species = species or options.species
    try:
        return store.get_property(name, identity, species)
    except MissingProperty:
        if options.default_to_human and species.lower() != "human":
            try:
                value = store.get_property(name, identity, "Human")
            except MissingProperty:
                return None
            logger.info("Human %s substituted for %s.", name, species)
            return value
        return None


# --------------------------
# Plasma binding
# --------------------------
@dataclass(frozen=True)
class FupResult:
    funbound_plasma: float
    unadjusted: float
    adjustment: float
    distribution: Optional[Tuple[float, ...]] = None


def floor_fup(fup: float, minimum: float) -> float:
    if fup < minimum:
        warn_clamped(f"Funbound.plasma of {fup:.3g} raised to the floor of {minimum:.3g}.")
        return minimum
    return fup


def resolve_fup(store: PropertyStore, identity: ChemicalIdentity, props: ChemicalProperties,
                physiology: PhysiologyProfile, options: ModelOptions,
                overrides: Optional[Mapping] = None) -> FupResult:
    """
    In vitro fup, optionally lipid-corrected, then floored.

    The floor is applied after the correction, never before.
    """
    species = "Human" if options.force_human_fup else options.species
    raw = invitro_property(store, identity, "funbound_plasma", options, overrides, species=species)
    if raw is None:
        raise MissingParameterError(f"Funbound.plasma is not available for {_label(identity)} in {species}.")
    distribution = tuple(raw) if isinstance(raw, tuple) else None
    point = float(raw[0]) if isinstance(raw, tuple) else float(raw)

    adjustment = 1.0
    fup = point
    if options.adjusted_funbound_plasma and point > 0:
        flipid = physiology.plasma_lipid
        if options.force_human_fup and physiology.species.lower() != "human":
            flipid = store.get_physiology("Human").plasma_lipid
        adjustment = calc_fup_correction(point, flipid, pow_=10 ** props.require("logp"),
                                         pka_donor=props.require("pka_donor"),
                                         pka_accept=props.require("pka_accept"),
                                         plasma_ph=physiology.plasma_ph)
        fup = point * adjustment

    minimum = options.minimum_funbound_plasma
    return FupResult(funbound_plasma=floor_fup(fup, minimum),
                     unadjusted=floor_fup(point, minimum),
                     adjustment=adjustment, distribution=distribution)


# --------------------------
# Partitioning
# --------------------------
def membrane_affinity(props: ChemicalProperties) -> float:
    if props.log_ma is not None:
        return 10 ** props.log_ma
    ma = predict_membrane_affinity(10 ** props.require("logp"))
    logger.info("Membrane affinity for %s predicted from logP (%.3g).", _label(props.identity), ma)
    return ma


def partition_inputs(props: ChemicalProperties, fup: float, physiology: PhysiologyProfile) -> PartitionInputs:
    return PartitionInputs(funbound_plasma=fup,
                           pow=10 ** props.require("logp"),
                           pka_donor=tuple(props.require("pka_donor")),
                           pka_accept=tuple(props.require("pka_accept")),
                           ma=membrane_affinity(props),
                           plasma_ph=physiology.plasma_ph)


def partition_inputs_from_params(values: Mapping, physiology: PhysiologyProfile) -> PartitionInputs:
    """Rebuild Schmitt inputs from an assembled parameter mapping."""
    return PartitionInputs(funbound_plasma=values[Param.FUNBOUND_PLASMA],
                           pow=values[Param.POW],
                           pka_donor=tuple(values[Param.PKA_DONOR]),
                           pka_accept=tuple(values[Param.PKA_ACCEPT]),
                           ma=values[Param.MA],
                           plasma_ph=physiology.plasma_ph)


def calc_vdist_from_coefficients(coefficients: Mapping[str, float], physiology: PhysiologyProfile,
                                 fup: float) -> float:
    """
    Steady-state volume of distribution, L/kg BW.

    Vdist = Vplasma + Vrbc*Krbc2pu*fup + sum(V_t*K_t2pu*fup)
    """
    hct = physiology.hematocrit
    v_rbc = physiology.plasma_volume * hct / (1.0 - hct)
    vdist = physiology.plasma_volume + v_rbc * coefficients["red blood cells"] * fup
    for name, k in coefficients.items():
        comp = physiology.tissue(name)
        if comp.volume > 0:
            vdist += comp.volume * k * fup
    return vdist


def available_rblood2plasma(store: PropertyStore, identity: ChemicalIdentity, options: ModelOptions,
                            physiology: PhysiologyProfile, partition: Optional[PartitionInputs] = None,
                            overrides: Optional[Mapping] = None,
                            unadjusted_fup: Optional[float] = None) -> float:
    """
    Measured species Rblood2plasma, else measured human value, else the
    Schmitt red-blood-cell prediction.
    """
    measured = invitro_property(store, identity, "rblood2plasma",
                                options.replace(default_to_human=False), overrides)
    if measured is not None:
        return float(measured)
    if options.species.lower() != "human":
        human = invitro_property(store, identity, "rblood2plasma",
                                 options.replace(default_to_human=False), species="Human")
        if human is not None:
            logger.info("Human in vivo measured Rblood2plasma substituted for %s.", options.species)
            return float(human)
    if partition is None:
        raise MissingParameterError(f"Rblood2plasma is not available for {_label(identity)} "
                                    f"and cannot be predicted without partitioning inputs.")
    krbc2pu = predict_partitioning_schmitt(partition, physiology, tissues=["red blood cells"])["red blood cells"]
    fup = partition.funbound_plasma if options.adjusted_funbound_plasma or unadjusted_fup is None else unadjusted_fup
    value = calc_rblood2plasma(physiology.hematocrit, krbc2pu, fup)
    logger.info("%s Rblood2plasma calculated from red blood cell partitioning (%.3g).",
                options.species, value)
    return value


# --------------------------
# Steady-state parameter block
# --------------------------
def steady_state_values(store: PropertyStore, identity: ChemicalIdentity, props: ChemicalProperties,
                        physiology: PhysiologyProfile, options: ModelOptions,
                        overrides: Optional[Mapping] = None) -> Tuple[Dict[Param, object], Dict[Param, tuple]]:
    """
    Everything the three-compartment steady-state model needs, plus the
    Schmitt inputs so tissue concentrations can be derived later without
    another store lookup.
    """
    fup = resolve_fup(store, identity, props, physiology, options, overrides)
    partition = partition_inputs(props, fup.funbound_plasma, physiology)

    raw_clint = invitro_property(store, identity, "clint", options, overrides)
    if raw_clint is None:
        raise MissingParameterError(f"Clint is not available for {_label(identity)} in {options.species}.")
    pvalue = invitro_property(store, identity, "clint_pvalue", options, overrides)
    measurement = parse_clint(raw_clint, pvalue=pvalue)
    clint = apply_clint_pvalue(measurement.point, measurement.pvalue, options.clint_pvalue_threshold)

    fu_hep = calc_hep_fu_from_pow(partition.pow, partition.pka_donor, partition.pka_accept)
    if options.adjusted_clint:
        clint = apply_clint_adjustment(clint, fu_hep)

    rb2p = available_rblood2plasma(store, identity, options, physiology, partition, overrides,
                                   unadjusted_fup=fup.unadjusted)

    liver = physiology.tissue("liver")
    gut = physiology.tissue("gut")
    qtotal_liverc = physiology.q_cardiac * (liver.flow + gut.flow)
    q_liver = qtotal_liverc / physiology.bw ** 0.25
    clint_scaled = scale_clint(clint, liver.volume, physiology.million_cells_per_gliver,
                               physiology.liver_density)
    fhep = hepatic_bioavailability(clint_scaled, q_liver, fup.funbound_plasma, rb2p,
                                   restrictive=options.restrictive_clearance)

    pab = invitro_property(store, identity, "caco2_pab", options, overrides)
    fabs_invivo = invitro_property(store, identity, "fabs", options, overrides)
    fgut_invivo = invitro_property(store, identity, "fgut", options, overrides)
    fabs, fgut, pab_used = resolve_fabsgut(options.caco2, pab, fabs_invivo, fgut_invivo)

    values = {
        Param.BW: physiology.bw,
        Param.MW: props.require("mw"),
        Param.POW: partition.pow,
        Param.PKA_DONOR: partition.pka_donor,
        Param.PKA_ACCEPT: partition.pka_accept,
        Param.MA: partition.ma,
        Param.LOG_HENRY: props.log_henry,
        Param.CLINT: clint,
        Param.CLINT_PVALUE: measurement.pvalue if measurement.pvalue is not None else math.nan,
        Param.FUNBOUND_PLASMA: fup.funbound_plasma,
        Param.UNADJUSTED_FUNBOUND_PLASMA: fup.unadjusted,
        Param.FUNBOUND_PLASMA_ADJUSTMENT: fup.adjustment,
        Param.FHEP_ASSAY_CORRECTION: fu_hep,
        Param.RBLOOD2PLASMA: rb2p,
        Param.HEMATOCRIT: physiology.hematocrit,
        Param.PLASMA_VOL: physiology.plasma_volume,
        Param.LIVER_DENSITY: physiology.liver_density,
        Param.MILLION_CELLS_PER_GLIVER: physiology.million_cells_per_gliver,
        Param.VLIVERC: liver.volume,
        Param.QTOTAL_LIVERC: qtotal_liverc,
        Param.QGFRC: physiology.q_gfr,
        Param.QCARDIACC: physiology.q_cardiac,
        Param.CLMETABOLISMC: clint_scaled * (fup.funbound_plasma if options.restrictive_clearance else 1.0),
        Param.HEPATIC_BIOAVAILABILITY: fhep,
        Param.CACO2_PAB: pab_used,
        Param.FABS: fabs,
        Param.FGUT: fgut,
        Param.FABSGUT: fabs * fgut,
        Param.KGUTABS: DEFAULT_KGUTABS,
    }
    distributions = {}
    if measurement.distribution is not None:
        distributions[Param.CLINT] = measurement.distribution
    if fup.distribution is not None:
        distributions[Param.FUNBOUND_PLASMA] = fup.distribution
    return values, distributions


def elimination_rate(values: Mapping, options: ModelOptions) -> float:
    """kelim = (hepatic + renal clearance) / Vdist, 1/h."""
    bw = values[Param.BW]
    fup = values[Param.FUNBOUND_PLASMA]
    clint_scaled = scale_clint(values[Param.CLINT], values[Param.VLIVERC],
                               values[Param.MILLION_CELLS_PER_GLIVER], values[Param.LIVER_DENSITY])
    cl_hep = hepatic_clearance(clint_scaled, values[Param.QTOTAL_LIVERC] / bw ** 0.25, fup,
                               values[Param.RBLOOD2PLASMA], model=options.hepatic_model,
                               restrictive=options.restrictive_clearance,
                               well_stirred_correction=options.well_stirred_correction)
    cl_renal = renal_clearance(values[Param.QGFRC] / bw ** 0.25, fup)
    return (cl_hep + cl_renal) / values[Param.VDIST]


def apply_overrides(values: Mapping, overrides: Optional[Mapping] = None) -> Dict[Param, object]:
    """
    Caller-supplied model parameters replace assembled ones.

    In vitro names (clint, funbound_plasma, ...) are inputs that already went
    through the corrections, so they are not written back verbatim. Unknown
    names are ignored.
    """
    merged = {Param(k): v for k, v in values.items()}
    for key, value in (overrides or {}).items():
        if key in INVITRO_PARAMS:
            continue
        try:
            merged[Param(key)] = value
        except ValueError:
            continue
    return merged


def _label(identity: ChemicalIdentity) -> str:
    return identity.name or identity.cas or identity.dtxsid or "chemical"
