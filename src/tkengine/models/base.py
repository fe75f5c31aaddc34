# src/tkengine/models/base.py
"""
One class per compartmental topology, registered by tag.

A topology knows which parameters it needs, how to build them, its state
vector and right-hand side, and its closed-form steady state.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Dict, Mapping, Optional, Tuple, Type

import numpy as np

from ..errors import ApplicabilityError, DomainError
from ..parameterize import apply_overrides, chemical_properties
from ..types import ChemicalIdentity, ChemicalProperties, ModelOptions, Param, ParameterSet, Route

# log10 Henry's constant (atm*m3/mol) at or above which a chemical is too volatile
# for a model without an air compartment.
VOLATILE_LOG_HENRY = -4.5
# Glycerol, generally considered non-volatile
GLYCEROL_LOG_HENRY = -7.80388


class Topology(ABC):
    """
    name             : registry tag
    param_names      : every Param the ParameterSet must carry
    state_names      : ODE state vector order (empty for algebraic-only models)
    routes           : administration routes the model accepts
    dose_states      : route -> state receiving a bolus
    excluded_classes : chemical classes outside the domain of applicability
    column_units     : derived columns reported in a fixed unit (e.g. exhaled air in ppmv)
    """
    name: ClassVar[str]
    param_names: ClassVar[Tuple[Param, ...]]
    state_names: ClassVar[Tuple[str, ...]] = ()
    routes: ClassVar[Tuple[str, ...]] = ("oral", "iv")
    dose_states: ClassVar[Mapping[str, str]] = {}
    excluded_classes: ClassVar[Tuple[str, ...]] = ("PFAS",)
    column_units: ClassVar[Mapping[str, str]] = {}

    # --------------------------
    # Applicability
    # --------------------------
    def check_applicability(self, props: ChemicalProperties, options: ModelOptions) -> None:
        """Fail fast, before any parameter is assembled."""
        if options.class_exclude:
            hit = set(c.upper() for c in props.chemical_class) & set(c.upper() for c in self.excluded_classes)
            if hit:
                raise ApplicabilityError(
                    f"{_label(props)} is in chemical class {', '.join(sorted(hit))}, "
                    f"which is outside the domain of the {self.name} model. "
                    f"Set class_exclude=False to run it anyway.",
                    model=self.name, reason="class")
        if options.physchem_exclude:
            self.check_physchem(props)

    def check_physchem(self, props: ChemicalProperties) -> None:
        if props.log_henry is not None and props.log_henry >= VOLATILE_LOG_HENRY:
            raise ApplicabilityError(
                f"{_label(props)} is volatile (log10 Henry's constant {props.log_henry:.2f} >= "
                f"{VOLATILE_LOG_HENRY}); use the gas_pbtk model or set physchem_exclude=False.",
                model=self.name, reason="physchem")

    # --------------------------
    # Parameters
    # --------------------------
    @abstractmethod
    def parameterize(self, store, identity: ChemicalIdentity, options: ModelOptions,
                     overrides: Optional[Mapping] = None) -> ParameterSet:
        ...

    def validate(self, params: ParameterSet) -> ParameterSet:
        """Check a caller-built set against this topology's contract."""
        return ParameterSet.build(self.name, params.species, params.values, self.param_names,
                                  distributions=params.distributions)

    # --------------------------
    # Dynamics
    # --------------------------
    @property
    def is_dynamic(self) -> bool:
        return bool(self.state_names)

    def scale(self, params: ParameterSet) -> Dict[str, float]:
        """Whole-body (BW-scaled) constants used inside the right-hand side."""
        raise DomainError(f"The {self.name} model has no dynamic form; use the steady-state solver.")

    def derivatives(self, t: float, y: np.ndarray, s: Mapping[str, float], forcing: float = 0.0) -> np.ndarray:
        raise DomainError(f"The {self.name} model has no dynamic form; use the steady-state solver.")

    def observe(self, y: np.ndarray, s: Mapping[str, float]) -> Dict[str, np.ndarray]:
        """Derived concentrations (uM) for states y with shape (n_states, n_times)."""
        return {}

    def dose_fraction(self, params: ParameterSet, route: Route) -> float:
        """Share of an administered bolus that reaches the dose state."""
        return 1.0

    def plasma_column(self) -> str:
        return "Cplasma"

    # --------------------------
    # Steady state
    # --------------------------
    @abstractmethod
    def analytic_css(self, params: ParameterSet, dose_rate: float, route: Route = "oral",
                     exposure: float = 0.0, options: Optional[ModelOptions] = None) -> float:
        """
        Plasma Css in uM.

        dose_rate : umol/h/kg BW of oral or iv input
        exposure  : inhaled air concentration, uM (gas model only)
        options   : clearance switches (hepatic model, restrictive, well-stirred correction)
        """

    def _check_route(self, route: Route) -> None:
        if route not in self.routes:
            raise DomainError(f"The {self.name} model does not accept route '{route}' "
                              f"(choose from {', '.join(self.routes)}).")

    def _chemical(self, store, identity: ChemicalIdentity, options: ModelOptions,
                  overrides: Optional[Mapping] = None):
        """Properties and physiology for one call, after the applicability gate."""
        props = chemical_properties(store, identity, overrides)
        self.check_applicability(props, options)
        return props, store.get_physiology(options.species)

    def _finish(self, species: str, values: Dict, distributions: Mapping,
                overrides: Optional[Mapping] = None) -> ParameterSet:
        values = apply_overrides(values, overrides)
        return ParameterSet.build(self.name, species, values, self.param_names, distributions=distributions)


MODELS: Dict[str, Topology] = {}


def register(cls: Type[Topology]) -> Type[Topology]:
    MODELS[cls.name] = cls()
    return cls


def get_model(name) -> Topology:
    if isinstance(name, Topology):
        return name
    try:
        return MODELS[name]
    except KeyError:
        raise DomainError(f"Unknown model '{name}' (available: {', '.join(sorted(MODELS))}).") from None


def _label(props: ChemicalProperties) -> str:
    ident = props.identity
    return ident.name or ident.cas or ident.dtxsid or "Chemical"
