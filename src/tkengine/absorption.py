# src/tkengine/absorption.py
"""Oral absorption: fraction absorbed (Fabs) and fraction escaping gut metabolism (Fgut)."""
from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

from .errors import DomainError
from .types import CacoOptions

logger = logging.getLogger(__name__)

# First-order gut absorption rate, 1/h
DEFAULT_KGUTABS = 2.18


def caco2_to_peff(pab: float) -> float:
    """Human jejunal permeability (1e-4 cm/s) from Caco-2 Pab (1e-6 cm/s)."""
    if pab <= 0:
        raise DomainError("Caco-2 Pab must be positive.")
    return 10 ** (0.4926 * math.log10(pab) - 0.1454)


def calc_fabs_oral(pab: float) -> float:
    """Compartmental absorption and transit estimate, 1 - (1 + 0.54*Peff)^-7."""
    return 1.0 - (1.0 + 0.54 * caco2_to_peff(pab)) ** -7


def resolve_fabsgut(options: CacoOptions, pab: Optional[float] = None,
                    fabs_invivo: Optional[float] = None,
                    fgut_invivo: Optional[float] = None) -> Tuple[float, float, float]:
    """
    Decide Fabs and Fgut for an oral dose.

    In vivo values win unless `overwrite_invivo`; otherwise Fabs comes from
    Caco-2 (measured or default Pab) when `use_for_fabs`, else 1. Fgut has no
    in vitro predictor here and is 1 unless measured in vivo.

    Returns (fabs, fgut, pab_used).
    """
    pab_used = pab if pab is not None else options.default_pab
    if options.keep_100:
        return 1.0, 1.0, pab_used

    if fabs_invivo is not None and not options.overwrite_invivo:
        fabs = fabs_invivo
    elif options.use_for_fabs:
        fabs = calc_fabs_oral(pab_used)
        logger.info("Fabs of %.3f predicted from Caco-2 Pab %.3g.", fabs, pab_used)
    else:
        fabs = 1.0

    fgut = fgut_invivo if (fgut_invivo is not None and not options.overwrite_invivo) else 1.0
    return float(fabs), float(fgut), float(pab_used)
