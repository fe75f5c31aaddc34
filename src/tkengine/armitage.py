# src/tkengine/armitage.py
"""
Armitage et al. (2014) mass balance of a chemical in an in vitro assay well.

The nominal concentration added to the medium is shared between water, the
headspace, serum albumin, serum lipids, dissolved organic matter, the cells
and the well plastic. What stays in water is the free concentration the
cells actually see; anything above the aqueous solubility precipitates.

Concentrations are umol/L (uM), amounts umol, volumes L.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .errors import DomainError, MissingParameterError
from .parameterize import chemical_properties
from .partition import calc_ionization
from .types import ChemicalProperties

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]

# J/(mol*K)
GAS_CONSTANT = 8.3144621
# atm*m3/(mol*K); turns a Henry's law constant at 25 C into an air:water ratio
GAS_CONSTANT_ATM = 8.2057338e-5
T_HENRY = 298.15
# Internal energies of phase change, J/mol
DU_OW = -20000.0
DU_AW = 60000.0
DU_MW = DU_OW
# L of albumin per kg
ALBUMIN_VOLUME = 0.733

COMPARTMENTS = ("water", "air", "albumin", "serum_lipid", "dom", "cells", "plastic", "precipitate")


@dataclass(frozen=True)
class WellGeometry:
    """
    One assay well.

    sarea      : plastic surface wetted by the medium, m2
    v_total    : well volume, uL
    v_working  : medium volume, uL
    cell_yield : number of cells in the well
    """
    sarea: float
    v_total: float
    v_working: float
    cell_yield: float = 0.0

    def __post_init__(self):
        for name in ("sarea", "v_total", "v_working", "cell_yield"):
            value = getattr(self, name)
            if not (value >= 0):
                raise DomainError(f"{name} must be >= 0 (got {value}).")
        if self.v_working <= 0:
            raise DomainError("The well needs a positive working volume.")
        if self.v_working > self.v_total:
            raise DomainError(f"Working volume ({self.v_working} uL) exceeds the well volume ({self.v_total} uL).")

    @classmethod
    def from_dimensions(cls, diameter: float, v_total: float, v_working: float, cell_yield: float = 0.0,
                        square: bool = False, bottom: bool = True, plastic: bool = True) -> "WellGeometry":
        """Well whose wetted area is estimated from its diameter (mm)."""
        sarea = estimate_sarea(diameter, v_working, square=square, bottom=bottom) if plastic else 0.0
        return cls(sarea=sarea, v_total=v_total, v_working=v_working, cell_yield=cell_yield)


def estimate_sarea(diameter: float, v_working: float, square: bool = False, bottom: bool = True) -> float:
    """
    Plastic area in contact with `v_working` uL of medium, in m2.

    Cylindrical wells: 2*pi*r*h (+ pi*r^2 for the bottom).
    Square wells (side = diameter): 4*d*h (+ d^2).
    """
    if not (diameter > 0):
        raise DomainError(f"diameter must be > 0 (got {diameter}).")
    if square:
        height = v_working / diameter ** 2
        area = 4.0 * diameter * height + (diameter ** 2 if bottom else 0.0)
    else:
        radius = diameter / 2.0
        height = v_working / (math.pi * radius ** 2)
        area = 2.0 * math.pi * radius * height + (math.pi * radius ** 2 if bottom else 0.0)
    # mm2 -> m2
    return area / 1e6


@dataclass(frozen=True)
class AssayConditions:
    """
    Medium and cell composition of the assay.

    tsys            : incubation temperature, C
    tref            : reference temperature of the phys-chem data, K
    pseudooct,
    memblip, nlom   : storage lipid, membrane lipid and non-lipid organic matter fractions of a cell
    p_nlom, p_dom,
    p_cells         : octanol equivalence of non-lipid organic matter, DOM and cell lipids
    csalt           : ionic strength of the medium, M
    celldensity     : kg/L
    cellmass        : ng per cell
    f_oc            : organic carbon fraction of DOM
    conc_ser_alb    : albumin in serum, g/L
    conc_ser_lip    : lipid in serum, g/L
    vdom            : volume of dissolved organic matter, uL
    ph              : medium pH, used when ionized species are kept out of partitioning
    kbsa2           : use the two-slope albumin:water regression
    swat2           : use the general solubility equation for solubility
    """
    tsys: float = 37.0
    tref: float = 298.15
    pseudooct: float = 0.01
    memblip: float = 0.04
    nlom: float = 0.20
    p_nlom: float = 0.035
    p_dom: float = 0.05
    p_cells: float = 1.0
    csalt: float = 0.15
    celldensity: float = 1.0
    cellmass: float = 3.0
    f_oc: float = 1.0
    conc_ser_alb: float = 24.0
    conc_ser_lip: float = 1.9
    vdom: float = 0.0
    ph: float = 7.0
    kbsa2: bool = False
    swat2: bool = False

    def __post_init__(self):
        if self.pseudooct + self.memblip + self.nlom > 1:
            raise DomainError("Cell lipid and organic fractions add up to more than 1.")


@dataclass(frozen=True)
class InVitroDistribution:
    """
    Result of one Armitage evaluation (arrays when several nominal
    concentrations were evaluated at once).

    cfree         : free concentration in the medium water, uM
    eta_free      : cfree / nominal concentration
    activity      : chemical activity relative to the subcooled liquid solubility
    saturated     : the water concentration hit the solubility limit
    concentrations: compartment -> uM (plastic in umol/m2)
    amounts       : compartment -> umol
    """
    nomconc: ArrayLike
    cfree: ArrayLike
    eta_free: ArrayLike
    activity: ArrayLike
    saturated: ArrayLike
    concentrations: Dict[str, ArrayLike] = field(default_factory=dict)
    amounts: Dict[str, ArrayLike] = field(default_factory=dict)

    @property
    def total(self) -> ArrayLike:
        return sum(self.amounts[c] for c in COMPARTMENTS)

    @property
    def fractions(self) -> Dict[str, ArrayLike]:
        total = self.total
        return {c: self.amounts[c] / total for c in COMPARTMENTS}

    def to_frame(self) -> pd.DataFrame:
        """One row per nominal concentration."""
        data = {"nomconc": np.atleast_1d(self.nomconc), "cfree": np.atleast_1d(self.cfree),
                "eta_free": np.atleast_1d(self.eta_free), "activity": np.atleast_1d(self.activity),
                "saturated": np.atleast_1d(self.saturated)}
        for name, value in self.fractions.items():
            data[f"x_{name}"] = np.atleast_1d(value)
        return pd.DataFrame(data)


def armitage_eval(nomconc: ArrayLike, well: WellGeometry, fbsf: float, *, store=None,
                  chem_cas: Optional[str] = None, chem_name: Optional[str] = None, dtxsid: Optional[str] = None,
                  properties: Optional[ChemicalProperties] = None, overrides: Optional[Mapping] = None,
                  conditions: Optional[AssayConditions] = None,
                  restrict_ion_partitioning: bool = False) -> InVitroDistribution:
    """
    Free concentration in an assay well for nominal concentration(s) `nomconc` (uM).

    fbsf       : fraction of fetal bovine serum in the medium
    properties : phys-chem record to use instead of a store lookup; needs
                 logp, log_henry, log_wsol (log10 mol/L) and mp (C)
    restrict_ion_partitioning : only the neutral fraction at the medium pH
                 partitions out of water
    """
    conditions = conditions or AssayConditions()
    if not (0 <= fbsf <= 1):
        raise DomainError(f"fbsf must be between 0 and 1 (got {fbsf}).")
    nom = np.asarray(nomconc, dtype=float)
    if np.any(nom <= 0):
        raise DomainError("Nominal concentrations must be > 0.")
    if properties is None:
        if store is None:
            raise MissingParameterError("A property store or a phys-chem record is required.")
        identity = store.resolve_identity(cas=chem_cas, name=chem_name, dtxsid=dtxsid)
        properties = chemical_properties(store, identity, overrides)

    gkow = float(properties.require("logp"))
    gkaw = float(properties.require("log_henry")) - math.log10(T_HENRY * GAS_CONSTANT_ATM)
    # log10 mol/L -> log10 umol/L
    gswat = float(properties.require("log_wsol")) + 6.0
    mp = float(properties.require("mp")) + 273.15

    if restrict_ion_partitioning:
        f_neutral = calc_ionization(conditions.ph, properties.pka_donor, properties.pka_accept).fraction_neutral
    else:
        f_neutral = 1.0

    c = conditions
    tsys = c.tsys + 273.15
    tcor = ((1.0 / tsys) - (1.0 / c.tref)) / (2.303 * GAS_CONSTANT)
    cellwat = 1.0 - (c.pseudooct + c.memblip + c.nlom)

    # Volumes, L
    v_bm = well.v_working / 1e6
    v_well = well.v_total / 1e6
    v_cells = well.cell_yield * (c.cellmass / 1e6) / c.celldensity / 1e6
    v_air = v_well - v_bm - v_cells
    if v_air < 0:
        raise DomainError("Medium and cells do not fit in the well.")
    v_alb = v_bm * fbsf * ALBUMIN_VOLUME * c.conc_ser_alb / 1000.0
    v_slip = v_bm * fbsf * c.conc_ser_lip / 1000.0
    v_dom = c.vdom / 1e6
    v_m = v_bm - v_alb - v_slip - v_dom
    if v_m <= 0:
        raise DomainError("Serum and organic matter leave no medium water.")

    f_ratio = 10 ** (0.01 * (tsys - mp)) if mp > tsys else 1.0

    # General solubility equation (log10 umol/L), from the uncorrected log Kow
    gs1 = 6.5 - gkow + DU_OW * tcor
    gss = 6.5 - 0.01 * ((mp - 273.15) - 25.0) - gkow + DU_OW * tcor if mp > T_HENRY else None

    kmw = 10 ** (1.01 * gkow + 0.12 - DU_MW * tcor)
    gkow = gkow - DU_OW * tcor
    kow = 10 ** gkow
    kaw = 10 ** (gkaw - DU_AW * tcor)
    swat = 10 ** (gswat + DU_OW * tcor)
    kpl = 10 ** (0.97 * gkow - 6.94)
    kcw = c.p_cells * c.pseudooct * kow + c.memblip * kmw + c.p_nlom * c.nlom * kow + cellwat
    if c.kbsa2:
        kbsa = 10 ** (1.08 * gkow - 0.7) if gkow < 4.5 else 10 ** (0.37 * gkow + 2.56)
    else:
        kbsa = 10 ** (0.71 * gkow + 0.42)

    salting = 10 ** (-(0.04 * gkow + 0.114) * c.csalt)
    swat *= salting
    swat_l = swat / f_ratio
    kow, kaw, kcw, kbsa = (f_neutral * k / salting for k in (kow, kaw, kcw, kbsa))
    if c.swat2:
        s1 = 10 ** gs1 * salting
        swat = 10 ** gss * salting if gss is not None else s1
        swat_l = s1

    m_tot = nom * v_bm
    capacity = (kaw * v_air + v_m + kbsa * v_alb + c.p_cells * kow * v_slip
                + kow * c.p_dom * c.f_oc * v_dom + kcw * v_cells + 1000.0 * kpl * well.sarea)
    cwat = m_tot / capacity
    saturated = cwat > swat
    cwat_s = np.minimum(cwat, swat)
    if np.any(saturated):
        logger.info("Water concentration exceeds the solubility (%.4g uM); the excess precipitates.", swat)

    conc = {
        "water": cwat_s,
        "air": kaw * cwat_s,
        "albumin": kbsa * cwat_s,
        "serum_lipid": kow * cwat_s * c.p_cells,
        "dom": kow * cwat_s * c.p_dom * c.f_oc,
        "cells": kcw * cwat_s,
        "plastic": kpl * cwat_s * 1000.0,
    }
    volumes = {"water": v_m, "air": v_air, "albumin": v_alb, "serum_lipid": v_slip, "dom": v_dom,
               "cells": v_cells, "plastic": well.sarea}
    for name in ("air", "albumin", "serum_lipid", "dom", "cells"):
        if volumes[name] <= 0:
            conc[name] = np.zeros_like(cwat_s)
    amounts = {name: conc[name] * volumes[name] for name in volumes}
    amounts["precipitate"] = np.where(saturated, m_tot - sum(amounts.values()), 0.0)

    def out(x):
        return float(x) if np.ndim(x) == 0 else x

    return InVitroDistribution(
        nomconc=out(nom), cfree=out(cwat_s), eta_free=out(cwat_s / nom), activity=out(cwat_s / swat_l),
        saturated=bool(saturated) if np.ndim(saturated) == 0 else saturated,
        concentrations={k: out(v) for k, v in conc.items()},
        amounts={k: out(v) for k, v in amounts.items()},
    )
