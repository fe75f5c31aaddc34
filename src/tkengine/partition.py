# src/tkengine/partition.py
"""
Tissue:plasma partitioning.

Ionization -> distribution coefficient -> Schmitt (2008) tissue composition
model. Every function here is pure; the only side channel is the
NumericalWarning raised when Pow is capped.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import MissingParameterError, warn_clamped
from .types import PhysiologyProfile

logger = logging.getLogger(__name__)

# Octanol:water partitioning above 1:1e6 would take longer to reach than an assay lasts.
POW_CAP = 1e6
# Ratio of charged to neutral octanol partitioning
ALPHA = 0.001
# Interstitial protein concentration relative to plasma
INTERSTITIAL_PROTEIN_RATIO = 0.37


@dataclass(frozen=True)
class Ionization:
    """Fractions of each charge state at one pH (they sum to one)."""
    fraction_neutral: float
    fraction_charged: float
    fraction_positive: float
    fraction_negative: float
    fraction_zwitter: float


@dataclass(frozen=True)
class PartitionInputs:
    """
    Chemical-side inputs of the Schmitt model.

    funbound_plasma : fup used for the interstitial binding term (already adjusted/floored)
    pow             : octanol:water partition coefficient (capped at POW_CAP on use)
    ma              : membrane affinity (phospholipid:water)
    """
    funbound_plasma: float
    pow: float
    pka_donor: Tuple[float, ...]
    pka_accept: Tuple[float, ...]
    ma: float
    plasma_ph: float = 7.4
    alpha: float = ALPHA


def truncate_pow(pow_: float) -> float:
    """Cap Pow at 1e6; applying it twice changes nothing."""
    if pow_ is None or (isinstance(pow_, float) and math.isnan(pow_)):
        raise MissingParameterError("Pow (octanol:water partition coefficient) is required.")
    if pow_ > POW_CAP:
        warn_clamped(f"Pow of {pow_:.3g} capped at {POW_CAP:.0e}.")
        return POW_CAP
    return float(pow_)


def _as_pkas(values) -> Tuple[float, ...]:
    if values is None:
        return ()
    if isinstance(values, (int, float)):
        return () if math.isnan(values) else (float(values),)
    return tuple(float(v) for v in values if not math.isnan(float(v)))


def calc_ionization(ph: float, pka_donor: Optional[Sequence[float]] = None,
                    pka_accept: Optional[Sequence[float]] = None) -> Ionization:
    """
    Charge-state fractions from the ordered dissociation ladder.

    At very low pH every acceptor is protonated (+1 each) and every donor is
    neutral. Walking up the sorted pKa list, each dissociation removes one
    proton. Species j carries charge n_accept - j, and
        log10(fraction_j) = j*pH - sum(pKa_1..pKa_j) + const.
    A charge-zero species that has lost a donor proton while still holding an
    acceptor proton is a zwitterion rather than a neutral molecule.
    """
    donors = sorted(_as_pkas(pka_donor))
    accepts = sorted(_as_pkas(pka_accept))
    ladder = sorted([(p, "donor") for p in donors] + [(p, "accept") for p in accepts])
    n_accept = len(accepts)

    log_terms = [0.0]
    running = 0.0
    for j, (pka, _) in enumerate(ladder, start=1):
        running += pka
        log_terms.append(j * ph - running)
    log_terms = np.asarray(log_terms)
    weights = np.exp((log_terms - log_terms.max()) * math.log(10.0))
    fractions = weights / weights.sum()

    neutral = zwitter = positive = negative = 0.0
    for j, frac in enumerate(fractions):
        charge = n_accept - j
        if charge > 0:
            positive += frac
        elif charge < 0:
            negative += frac
        else:
            lost_donor = any(kind == "donor" for _, kind in ladder[:j])
            if lost_donor:
                zwitter += frac
            else:
                neutral += frac

    return Ionization(fraction_neutral=float(neutral),
                      fraction_charged=float(1.0 - neutral),
                      fraction_positive=float(positive),
                      fraction_negative=float(negative),
                      fraction_zwitter=float(zwitter))


def calc_dow(pow_: float, ph: float, pka_donor=None, pka_accept=None,
             alpha: float = ALPHA, fraction_charged: Optional[float] = None) -> float:
    """Distribution coefficient: neutral species partition fully, charged ones at `alpha`."""
    if fraction_charged is None:
        fraction_charged = calc_ionization(ph, pka_donor, pka_accept).fraction_charged
    return float(pow_) * ((1.0 - fraction_charged) + alpha * fraction_charged)


def is_base(ph: float, pka_donor=None, pka_accept=None) -> bool:
    """Basic at `ph` when the cationic species dominate."""
    return calc_ionization(ph, pka_donor, pka_accept).fraction_positive > 0.5


def predict_membrane_affinity(pow_: float) -> float:
    """Yun & Edginton (2013) regression, used when no measured log MA exists."""
    return 10 ** (1.294 + 0.304 * math.log10(pow_))


def calc_logpd(pow_: float, ph: float, pka_donor=None, pka_accept=None) -> float:
    """
    log10 of the partition coefficient relevant to binding assays: logD for
    neutrals and acids, logP for bases.
    """
    pow_ = truncate_pow(pow_)
    if is_base(ph, pka_donor, pka_accept):
        return math.log10(pow_)
    return math.log10(calc_dow(pow_, ph, pka_donor, pka_accept))


def predict_partitioning_schmitt(inputs: PartitionInputs, physiology: PhysiologyProfile,
                                 tissues: Optional[Iterable[str]] = None) -> Dict[str, float]:
    """
    Tissue:unbound-plasma partition coefficient (Kt2pu) for each tissue.

    K_cell = kappa * (FW + FL*(Fn_L*K_nl + Fn_PL*K_npl + Fa_PL*K_apl) + FP*K_p)
    K_int  = 1 + 0.37*(1/fup - 1)
    K      = F_int*K_int + F_cell*K_cell

    kappa is the ion-trapping ratio f_neutral(plasma) / f_neutral(cell).
    """
    fup = inputs.funbound_plasma
    if fup is None or fup <= 0:
        raise MissingParameterError("A positive funbound_plasma is required for partitioning.")
    pow_ = truncate_pow(inputs.pow)
    ma = inputs.ma
    plasma_ion = calc_ionization(inputs.plasma_ph, inputs.pka_donor, inputs.pka_accept)
    k_protein = 0.163 + 0.0221 * ma
    k_int = 1.0 + INTERSTITIAL_PROTEIN_RATIO * (1.0 / fup - 1.0)

    names = list(tissues) if tissues is not None else list(physiology.tissues)
    out: Dict[str, float] = {}
    for name in names:
        comp = physiology.tissue(name)
        ion = calc_ionization(comp.ph, inputs.pka_donor, inputs.pka_accept)
        k_neutral_lipid = pow_ * (ion.fraction_neutral + inputs.alpha * ion.fraction_charged)
        k_neutral_pl = ma * (ion.fraction_neutral + 0.05 * ion.fraction_charged)
        k_acidic_pl = ma * (ion.fraction_neutral + 20.0 * ion.fraction_positive
                            + 0.05 * ion.fraction_negative + ion.fraction_zwitter)
        kappa = plasma_ion.fraction_neutral / max(ion.fraction_neutral, np.finfo(float).tiny)

        k_cell = kappa * (comp.f_water
                          + comp.f_lipid * (comp.f_neutral_lipid * k_neutral_lipid
                                            + comp.f_neutral_phospholipid * k_neutral_pl
                                            + comp.f_acidic_phospholipid * k_acidic_pl)
                          + comp.f_protein * k_protein)
        out[name] = float(comp.f_int * k_int + comp.f_cell * k_cell)
    return out


def lump_tissues(coefficients: Mapping[str, float], physiology: PhysiologyProfile,
                 keep: Sequence[str]) -> Tuple[Dict[str, float], Dict[str, float]]:
    """
    Collapse every tissue not in `keep` into a single "rest" compartment.

    Returns (partition coefficients, volumes in L/kg) for the kept tissues plus
    "rest", whose coefficient is the volume-weighted mean of what it absorbed.
    Tissues without a volume (red blood cells) are ignored.
    """
    ks: Dict[str, float] = {}
    vols: Dict[str, float] = {}
    rest_v = 0.0
    rest_kv = 0.0
    for name, k in coefficients.items():
        comp = physiology.tissue(name)
        if comp.volume <= 0:
            continue
        if name in keep:
            ks[name] = k
            vols[name] = comp.volume
        else:
            rest_v += comp.volume
            rest_kv += comp.volume * k
    missing = [name for name in keep if name not in ks]
    if missing:
        raise MissingParameterError(f"No partition coefficient for: {', '.join(missing)}.")
    ks["rest"] = rest_kv / rest_v if rest_v > 0 else 0.0
    vols["rest"] = rest_v
    return ks, vols
