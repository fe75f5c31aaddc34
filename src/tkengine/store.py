# src/tkengine/store.py
"""
Read-only chemical property store.

The models only ever talk to a `PropertyStore`; `ChemicalTable` is the
in-memory implementation over a pandas DataFrame. Nothing here is cached:
every call re-reads the frame, so a table derived with `with_chemical`
takes effect on the next call.
"""
from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping, Optional, Protocol, Tuple, Union

import pandas as pd

from .errors import AmbiguousIdentity, ChemicalNotFound, IdentityError, MissingProperty, UnknownSpecies
from .physiology import DEFAULT_PHYSIOLOGY, default_physiology
from .types import ChemicalIdentity, PhysiologyProfile

logger = logging.getLogger(__name__)

PropertyValue = Union[float, str, Tuple[float, ...], Tuple[str, ...]]

ID_COLUMNS = ("cas", "name", "dtxsid")
PHYSCHEM_COLUMNS = ("mw", "logp", "pka_donor", "pka_accept", "log_henry",
                    "log_wsol", "mp", "log_ma", "chemical_class")
INVITRO_PARAMS = ("clint", "clint_pvalue", "funbound_plasma", "rblood2plasma",
                  "caco2_pab", "fabs", "fgut", "vmax", "km")
# Columns that hold comma-separated lists rather than a single number
_LIST_COLUMNS = ("pka_donor", "pka_accept")
_DIST_PARAMS = ("clint", "funbound_plasma")


class PropertyStore(Protocol):
    def resolve_identity(self, cas: Optional[str] = None, name: Optional[str] = None,
                         dtxsid: Optional[str] = None) -> ChemicalIdentity: ...

    def get_property(self, name: str, identity: ChemicalIdentity,
                     species: str = "Human") -> PropertyValue: ...

    def get_physiology(self, species: str) -> PhysiologyProfile: ...


class ChemicalTable:
    """
    Property store backed by a DataFrame with one row per chemical.

    frame      : columns `cas`, `name`, `dtxsid`, the phys-chem columns and any
                 number of species-prefixed in vitro columns, e.g. `human_clint`,
                 `rat_funbound_plasma`.
    physiology : optional species -> PhysiologyProfile overrides; the built-in
                 tables are used for anything not listed.
    """

    def __init__(self, frame: pd.DataFrame,
                 physiology: Optional[Mapping[str, PhysiologyProfile]] = None):
        missing = [c for c in ID_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Chemical table is missing identifier columns: {', '.join(missing)}.")
        self._frame = frame.copy()
        self._physiology = dict(physiology or {})

    @classmethod
    def from_records(cls, records: Iterable[Mapping], **kwargs) -> "ChemicalTable":
        frame = pd.DataFrame.from_records(list(records))
        for col in ID_COLUMNS:
            if col not in frame.columns:
                frame[col] = None
        return cls(frame, **kwargs)

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame.copy()

    def with_chemical(self, **row) -> "ChemicalTable":
        """New table with `row` added, replacing any row with the same CAS."""
        frame = self._frame
        if row.get("cas") is not None:
            frame = frame[frame["cas"] != row["cas"]]
        frame = pd.concat([frame, pd.DataFrame([row])], ignore_index=True)
        return ChemicalTable(frame, physiology=self._physiology)

    # --------------------------
    # Identity
    # --------------------------
    def resolve_identity(self, cas: Optional[str] = None, name: Optional[str] = None,
                         dtxsid: Optional[str] = None) -> ChemicalIdentity:
        if cas is None and name is None and dtxsid is None:
            raise IdentityError("chem_cas, chem_name, or dtxsid must be specified.")

        hits = {}
        if cas is not None:
            hits["cas"] = set(self._frame.index[self._frame["cas"] == cas])
        if name is not None:
            names = self._frame["name"].astype(str).str.lower()
            hits["name"] = set(self._frame.index[names == str(name).lower()])
        if dtxsid is not None:
            hits["dtxsid"] = set(self._frame.index[self._frame["dtxsid"] == dtxsid])

        rows = set().union(*hits.values())
        if not rows:
            raise ChemicalNotFound(f"No chemical found for {_describe(cas, name, dtxsid)}.")
        unmatched = [k for k, v in hits.items() if not v]
        if len(rows) > 1 or unmatched:
            raise AmbiguousIdentity(f"Identifiers {_describe(cas, name, dtxsid)} do not refer to one chemical.")

        row = self._frame.loc[rows.pop()]
        return ChemicalIdentity(cas=_clean_str(row["cas"]), name=_clean_str(row["name"]),
                                dtxsid=_clean_str(row["dtxsid"]))

    # --------------------------
    # Properties
    # --------------------------
    def get_property(self, name: str, identity: ChemicalIdentity,
                     species: str = "Human") -> PropertyValue:
        row = self._row(identity)
        if name in PHYSCHEM_COLUMNS:
            column = name
        elif name in INVITRO_PARAMS:
            column = f"{species.lower()}_{name}"
        else:
            raise MissingProperty(f"Unknown property '{name}'.", name=name, reason="not_applicable")

        if column not in self._frame.columns:
            raise MissingProperty(f"{name} is not tabulated for {species}.", name=name,
                                  reason="not_applicable")
        raw = row[column]
        if _is_missing(raw):
            raise MissingProperty(f"{name} is not available for {_label(identity)} in {species}.",
                                  name=name, reason="absent")
        return _parse(name, raw)

    def get_physiology(self, species: str) -> PhysiologyProfile:
        for key, profile in self._physiology.items():
            if key.lower() == species.lower():
                return profile
        try:
            return default_physiology(species)
        except UnknownSpecies:
            known = sorted(set(DEFAULT_PHYSIOLOGY) | set(self._physiology))
            raise UnknownSpecies(f"Physiological PK data for {species} not found "
                                 f"(available: {', '.join(known)}).") from None

    def _row(self, identity: ChemicalIdentity) -> pd.Series:
        for col in ("dtxsid", "cas"):
            value = getattr(identity, col)
            if value is not None:
                match = self._frame[self._frame[col] == value]
                if len(match):
                    return match.iloc[0]
        if identity.name is not None:
            match = self._frame[self._frame["name"].astype(str).str.lower() == identity.name.lower()]
            if len(match):
                return match.iloc[0]
        raise ChemicalNotFound(f"No chemical found for {_label(identity)}.")


# --------------------------
# Cell parsing
# --------------------------
def _parse(name: str, raw) -> PropertyValue:
    if name in _LIST_COLUMNS:
        text = str(raw).strip()
        if not text:
            return ()
        return tuple(float(x) for x in text.split(",") if x.strip())
    if name == "chemical_class":
        return tuple(s.strip() for s in str(raw).split(",") if s.strip())
    if name in _DIST_PARAMS and isinstance(raw, str) and "," in raw:
        return tuple(float(x) if x.strip().upper() != "NA" else math.nan for x in raw.split(","))
    return float(raw)


def _is_missing(raw) -> bool:
    if raw is None:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        return True
    return bool(pd.isna(raw)) if not isinstance(raw, (str, tuple, list)) else False


def _clean_str(value) -> Optional[str]:
    return None if _is_missing(value) else str(value)


def _label(identity: ChemicalIdentity) -> str:
    return identity.name or identity.cas or identity.dtxsid or "unnamed chemical"


def _describe(cas, name, dtxsid) -> str:
    parts = [f"{k}={v}" for k, v in (("cas", cas), ("name", name), ("dtxsid", dtxsid)) if v is not None]
    return ", ".join(parts)
