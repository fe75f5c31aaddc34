# src/tkengine/binding.py
"""
Binding corrections for in vitro measurements.

- Kilford et al. (2008) fraction unbound in the hepatocyte incubation (fu_hep)
- Pearce et al. (2017) lipid-binding correction of in vitro fup
- blood:plasma concentration ratio from red-blood-cell partitioning
"""
from __future__ import annotations

import math
from typing import Optional, Union

import numpy as np

from .errors import DomainError, MissingParameterError, warn_clamped
from .partition import POW_CAP, calc_dow, calc_logpd

ArrayLike = Union[float, np.ndarray]

# Cell:incubation volume ratio of a standard hepatocyte assay
DEFAULT_VR = 0.005


def calc_hep_fu(logpd: ArrayLike, vr: float = DEFAULT_VR) -> ArrayLike:
    """
    Fraction of chemical unbound in the hepatocyte assay.

        fu_hep = 1 / (1 + 125*Vr*10^(0.072*logPD^2 + 0.067*logPD - 1.126))

    logpd : logD for neutrals and acids, logP for bases (see partition.calc_logpd)

    Values that land outside [0, 1] are forced to 1, never to 0.
    """
    x = np.asarray(logpd, dtype=float)
    with np.errstate(over="ignore"):
        fu = 1.0 / (1.0 + 125.0 * vr * np.power(10.0, 0.072 * x ** 2 + 0.067 * x - 1.126))
    out_of_range = (fu < 0) | (fu > 1)
    if np.any(out_of_range):
        warn_clamped("fu_hep outside [0, 1] set to 1.")
        fu = np.where(out_of_range, 1.0, fu)
    return float(fu) if np.ndim(fu) == 0 else fu


def calc_hep_fu_from_pow(pow_: float, pka_donor=None, pka_accept=None,
                         ph: float = 7.4, vr: float = DEFAULT_VR) -> float:
    if pow_ is None:
        raise MissingParameterError("Pow is required to calculate fu_hep.")
    return calc_hep_fu(calc_logpd(pow_, ph, pka_donor, pka_accept), vr=vr)


def calc_fup_correction(fup: Optional[float], flipid: float, dow: Optional[float] = None,
                        pow_: Optional[float] = None, pka_donor=None, pka_accept=None,
                        plasma_ph: float = 7.4) -> float:
    """
    Ratio fup_corrected / fup_invitro for lipid binding absent in the assay.

        fup_corrected = 1 / (Dow*F_lipid + 1/fup)

    dow     : distribution coefficient at plasma pH; computed from `pow_` and the
              pKa values when not given. Capped at 1e6 either way.
    flipid  : plasma neutral lipid + 30% phospholipid volume fraction
    """
    if fup is None:
        raise MissingParameterError("Funbound.plasma is required for the fup correction.")
    if fup <= 0:
        raise DomainError("Fraction unbound plasma must be positive to correct it.")
    if dow is None:
        if pow_ is None:
            raise MissingParameterError("Either Dow or Pow is required for the fup correction.")
        dow = calc_dow(min(pow_, POW_CAP), plasma_ph, pka_donor, pka_accept)
    if dow > POW_CAP:
        warn_clamped(f"Dow of {dow:.3g} capped at {POW_CAP:.0e}.")
        dow = POW_CAP

    fup_corrected = 1.0 / (dow * flipid + 1.0 / fup)
    return fup_corrected / fup


def calc_rblood2plasma(hematocrit: float, krbc2pu: float, funbound_plasma: float) -> float:
    """Blood:plasma ratio, 1 - Hct + Hct*Krbc2pu*fup. No red cells means exactly 1."""
    if hematocrit == 0:
        return 1.0
    if any(v is None or (isinstance(v, float) and math.isnan(v)) for v in (krbc2pu, funbound_plasma)):
        raise MissingParameterError("Krbc2pu and funbound_plasma are required for Rblood2plasma.")
    return 1.0 - hematocrit + hematocrit * krbc2pu * funbound_plasma
