# src/tkengine/types.py
from __future__ import annotations

from dataclasses import dataclass, field, replace as _dc_replace
from enum import Enum
from types import MappingProxyType
from typing import Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import MissingParameterError

# We keep *all* time in HOURS and all amounts in UMOL internally.
Route = Literal["oral", "iv", "inhalation"]
ConcentrationType = Literal["plasma", "blood", "tissue", "free_plasma"]
HepaticModel = Literal["well-stirred", "parallel-tube", "unscaled"]

ParamValue = Union[float, Tuple[float, ...]]


@dataclass(frozen=True)
class ChemicalIdentity:
    """
    The three identifiers a chemical can be known by.

    cas    : CAS registry number, e.g. "80-05-7"
    name   : common name, e.g. "Bisphenol A"
    dtxsid : EPA CompTox identifier, e.g. "DTXSID7020182"
    """
    cas: Optional[str] = None
    name: Optional[str] = None
    dtxsid: Optional[str] = None

    def is_empty(self) -> bool:
        return self.cas is None and self.name is None and self.dtxsid is None


@dataclass(frozen=True)
class ChemicalProperties:
    """
    Physico-chemical description of one chemical, read once per call.

    Any field may be None when the store has no value; consumers raise
    MissingParameterError when they actually need it.

    pka_donor / pka_accept : tuples of pKa values; an empty tuple means the
                             chemical was checked and has no such group.
    log_henry              : log10 Henry's law constant (atm*m3/mol)
    log_ma                 : log10 membrane affinity (phospholipid:water)
    chemical_class         : class labels (e.g. ("PFAS",)) used for exclusions
    """
    identity: ChemicalIdentity
    mw: Optional[float] = None
    logp: Optional[float] = None
    pka_donor: Optional[Tuple[float, ...]] = None
    pka_accept: Optional[Tuple[float, ...]] = None
    log_henry: Optional[float] = None
    log_wsol: Optional[float] = None
    mp: Optional[float] = None
    log_ma: Optional[float] = None
    chemical_class: Tuple[str, ...] = ()

    def require(self, attr: str):
        value = getattr(self, attr)
        if value is None:
            label = self.identity.name or self.identity.cas or self.identity.dtxsid
            raise MissingParameterError(f"{attr} is not available for {label}.")
        return value


@dataclass(frozen=True)
class TissueComposition:
    """
    Composition and size of one tissue, as used by the Schmitt method.

    f_cell, f_int        : cellular and interstitial volume fractions of the tissue
    f_water, f_lipid,
    f_protein            : water/lipid/protein volume fractions of the cells
    f_neutral_lipid,
    f_neutral_phospholipid,
    f_acidic_phospholipid: shares of the cell lipid in each lipid class
    ph                   : intracellular pH
    volume               : L/kg BW (0 for tissues without an organ volume, e.g. red blood cells)
    flow                 : fraction of cardiac output
    """
    f_cell: float
    f_int: float
    f_water: float
    f_lipid: float
    f_protein: float
    f_neutral_lipid: float
    f_neutral_phospholipid: float
    f_acidic_phospholipid: float
    ph: float
    volume: float = 0.0
    flow: float = 0.0


@dataclass(frozen=True)
class PhysiologyProfile:
    """
    Species physiology. Read-only at solve time.

    bw             : average body weight (kg)
    plasma_volume  : L/kg BW
    q_cardiac      : cardiac output, L/h/kg^0.75
    q_gfr          : glomerular filtration rate, L/h/kg^0.75
    plasma_lipid   : plasma effective neutral-lipid volume fraction
    breath_rate    : breaths/min; tidal_volume and dead_space in L
    """
    species: str
    bw: float
    hematocrit: float
    plasma_volume: float
    q_cardiac: float
    q_gfr: float
    plasma_lipid: float
    tissues: Mapping[str, TissueComposition]
    plasma_ph: float = 7.4
    liver_density: float = 1.05
    million_cells_per_gliver: float = 110.0
    breath_rate: float = 12.0
    tidal_volume: float = 0.75
    dead_space: float = 0.15

    def __post_init__(self):
        object.__setattr__(self, "tissues", MappingProxyType(dict(self.tissues)))

    def tissue(self, name: str) -> TissueComposition:
        try:
            return self.tissues[name]
        except KeyError:
            raise MissingParameterError(f"Tissue '{name}' is not available for {self.species}.") from None


class Param(str, Enum):
    """Every scalar a model topology may require, by name."""
    BW = "bw"
    MW = "mw"
    POW = "pow"
    PKA_DONOR = "pka_donor"
    PKA_ACCEPT = "pka_accept"
    MA = "ma"
    LOG_HENRY = "log_henry"
    CLINT = "clint"
    CLINT_PVALUE = "clint_pvalue"
    FUNBOUND_PLASMA = "funbound_plasma"
    UNADJUSTED_FUNBOUND_PLASMA = "unadjusted_funbound_plasma"
    FUNBOUND_PLASMA_ADJUSTMENT = "funbound_plasma_adjustment"
    FHEP_ASSAY_CORRECTION = "fhep_assay_correction"
    RBLOOD2PLASMA = "rblood2plasma"
    HEMATOCRIT = "hematocrit"
    PLASMA_VOL = "plasma_vol"
    LIVER_DENSITY = "liver_density"
    MILLION_CELLS_PER_GLIVER = "million_cells_per_gliver"
    CLMETABOLISMC = "clmetabolismc"
    HEPATIC_BIOAVAILABILITY = "hepatic_bioavailability"
    CACO2_PAB = "caco2_pab"
    FABS = "fabs"
    FGUT = "fgut"
    FABSGUT = "fabsgut"
    KGUTABS = "kgutabs"
    VDIST = "vdist"
    KELIM = "kelim"
    QCARDIACC = "qcardiacc"
    QGFRC = "qgfrc"
    QTOTAL_LIVERC = "qtotal_liverc"
    QGUTF = "qgutf"
    QLIVERF = "qliverf"
    QKIDNEYF = "qkidneyf"
    VARTC = "vartc"
    VVENC = "vvenc"
    VGUTC = "vgutc"
    VLIVERC = "vliverc"
    VKIDNEYC = "vkidneyc"
    VLUNGC = "vlungc"
    VRESTC = "vrestc"
    KGUT2PU = "kgut2pu"
    KLIVER2PU = "kliver2pu"
    KKIDNEY2PU = "kkidney2pu"
    KLUNG2PU = "klung2pu"
    KREST2PU = "krest2pu"
    QALVC = "qalvc"
    KBLOOD2AIR = "kblood2air"
    VMAX = "vmax"
    KM = "km"


@dataclass(frozen=True)
class ParameterSet:
    """
    Immutable, validated parameter mapping for one model topology.

    model         : topology tag the set was built for (e.g. "pbtk")
    species       : species the physiology came from
    values        : Param -> scalar (pKa entries are tuples)
    distributions : pass-through uncertainty tuples, e.g. Param.CLINT -> (median, l95, u95, pvalue)
    """
    model: str
    species: str
    values: Mapping[Param, ParamValue]
    distributions: Mapping[Param, Tuple[float, ...]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType({Param(k): v for k, v in self.values.items()}))
        object.__setattr__(self, "distributions",
                           MappingProxyType({Param(k): tuple(v) for k, v in self.distributions.items()}))

    @classmethod
    def build(cls, model: str, species: str, values: Mapping, required: Sequence[Param],
              distributions: Optional[Mapping] = None) -> "ParameterSet":
        """Keep only `required` names and fail if any of them is absent or None."""
        present = {Param(k): v for k, v in values.items()}
        missing = [p.value for p in required if present.get(p) is None]
        if missing:
            raise MissingParameterError(f"Missing parameters for model '{model}': {', '.join(missing)}.")
        return cls(model=model, species=species,
                   values={p: present[p] for p in required},
                   distributions=distributions or {})

    def __getitem__(self, key) -> ParamValue:
        try:
            return self.values[Param(key)]
        except (KeyError, ValueError):
            raise MissingParameterError(f"Parameter '{key}' is not part of this '{self.model}' set.") from None

    def __contains__(self, key) -> bool:
        try:
            return Param(key) in self.values
        except ValueError:
            return False

    def get(self, key, default=None):
        return self[key] if key in self else default

    def replace(self, **changes) -> "ParameterSet":
        """Return a copy with some values changed (keyword names are Param values)."""
        merged = dict(self.values)
        merged.update({Param(k): v for k, v in changes.items()})
        return _dc_replace(self, values=merged)


@dataclass(frozen=True)
class CacoOptions:
    """
    Caco-2 absorption switches.

    default_pab : apparent permeability used when none is measured (1.6, in units of 1e-6 cm/s)
    use_for_fabs: predict Fabs from Caco-2 when no in vivo Fabs is available
    overwrite_invivo : ignore in vivo Fabs/Fgut even when they exist
    keep_100    : force Fabs = Fgut = 1
    """
    default_pab: float = 1.6
    use_for_fabs: bool = True
    overwrite_invivo: bool = False
    keep_100: bool = False


@dataclass(frozen=True)
class ModelOptions:
    """Policy switches shared by every parameterizer."""
    species: str = "Human"
    default_to_human: bool = False
    force_human_fup: bool = False
    adjusted_funbound_plasma: bool = True
    adjusted_clint: bool = True
    restrictive_clearance: bool = True
    well_stirred_correction: bool = True
    hepatic_model: HepaticModel = "well-stirred"
    clint_pvalue_threshold: float = 0.05
    minimum_funbound_plasma: float = 1e-4
    class_exclude: bool = True
    physchem_exclude: bool = True
    caco2: CacoOptions = field(default_factory=CacoOptions)

    def replace(self, **changes) -> "ModelOptions":
        return _dc_replace(self, **changes)


@dataclass(frozen=True)
class SimulationResult:
    """
    Time course of one simulation.

    time    : hours, shape (n,)
    columns : names of the columns in `values` (amounts, concentrations, AUC)
    values  : shape (n, len(columns))
    units   : column name -> unit string ("h" for time)
    steady_state : optional analytic Css values keyed by concentration type
    """
    model: str
    time: np.ndarray
    columns: Tuple[str, ...]
    values: np.ndarray
    units: Mapping[str, str]
    steady_state: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        t = np.array(self.time, dtype=float)
        v = np.array(self.values, dtype=float)
        t.setflags(write=False)
        v.setflags(write=False)
        object.__setattr__(self, "time", t)
        object.__setattr__(self, "values", v)
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "units", MappingProxyType(dict(self.units)))
        object.__setattr__(self, "steady_state", MappingProxyType(dict(self.steady_state)))

    def column(self, name: str) -> np.ndarray:
        try:
            return self.values[:, self.columns.index(name)]
        except ValueError:
            raise KeyError(f"No column '{name}' in result (have {', '.join(self.columns)}).") from None

    def to_frame(self):
        import pandas as pd
        frame = pd.DataFrame(self.values, columns=list(self.columns))
        frame.insert(0, "time", self.time)
        frame.attrs["units"] = dict(self.units)
        return frame
