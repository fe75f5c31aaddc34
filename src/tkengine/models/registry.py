# src/tkengine/models/registry.py
"""Importing this module registers every built-in topology in MODELS."""
from __future__ import annotations

import logging
from typing import Mapping, Optional, Tuple

from ..errors import MissingParameterError
from ..types import ModelOptions, ParameterSet
from . import gas_pbtk, one_compartment, pbtk, three_compartment_ss  # noqa: F401
from .base import MODELS, Topology, get_model

logger = logging.getLogger(__name__)

__all__ = ["MODELS", "Topology", "get_model", "resolve_parameters"]


def resolve_parameters(model, store=None, parameters: Optional[ParameterSet] = None,
                       chem_cas: Optional[str] = None, chem_name: Optional[str] = None,
                       dtxsid: Optional[str] = None, options: Optional[ModelOptions] = None,
                       overrides: Optional[Mapping] = None) -> Tuple[Topology, ParameterSet]:
    """
    Topology plus a validated ParameterSet for one call.

    A caller-built ParameterSet wins over chemical identifiers; with neither
    there is nothing to solve.
    """
    topology = get_model(model)
    if parameters is not None:
        if chem_cas or chem_name or dtxsid:
            logger.info("ParameterSet supplied; chemical identifiers ignored.")
        return topology, topology.validate(parameters)

    if not (chem_cas or chem_name or dtxsid):
        raise MissingParameterError("Supply a chemical identifier (chem_cas, chem_name or dtxsid) "
                                    "or a ParameterSet.")
    if store is None:
        raise MissingParameterError("A property store is required to parameterize from a chemical identifier.")
    identity = store.resolve_identity(cas=chem_cas, name=chem_name, dtxsid=dtxsid)
    return topology, topology.parameterize(store, identity, options or ModelOptions(), overrides)
