import numpy as np
import pytest

from tkengine.models.registry import get_model
from tkengine.store import ChemicalTable
from tkengine.types import ModelOptions, Param, ParameterSet

CHEMICALS = [
    # Neutral, non-volatile, measured in human and rat
    dict(cas="100-00-1", name="Neutralol", dtxsid="DTXSID0000001", mw=200.0, logp=2.0,
         pka_donor="", pka_accept="", log_henry=-9.0, chemical_class="", log_wsol=-3.0, mp=120.0,
         human_clint=10.0, human_clint_pvalue=0.0, human_funbound_plasma=0.2,
         rat_clint=12.0, rat_funbound_plasma=0.25),
    # Weak acid with a Clint distribution
    dict(cas="100-00-2", name="Acidine", dtxsid="DTXSID0000002", mw=250.0, logp=3.0,
         pka_donor="4.5", pka_accept="", log_henry=-10.0, chemical_class="", log_wsol=-4.0, mp=150.0,
         human_clint="5,1,10,0.01", human_funbound_plasma=0.05),
    # Base with a measured blood:plasma ratio, human data only
    dict(cas="100-00-3", name="Basamine", dtxsid="DTXSID0000003", mw=300.0, logp=2.5,
         pka_donor="", pka_accept="9.5", log_henry=-11.0, chemical_class="",
         human_clint=20.0, human_funbound_plasma=0.3, human_rblood2plasma=1.2),
    # Perfluorinated acid
    dict(cas="100-00-4", name="Perfluorotestanoic acid", dtxsid="DTXSID0000004", mw=414.0, logp=4.0,
         pka_donor="1.0", pka_accept="", log_henry=-8.0, chemical_class="PFAS",
         human_clint=0.0, human_funbound_plasma=0.01),
    # Volatile solvent
    dict(cas="100-00-5", name="Volatilene", dtxsid="DTXSID0000005", mw=92.0, logp=2.3,
         pka_donor="", pka_accept="", log_henry=-2.5, chemical_class="",
         human_clint=15.0, human_funbound_plasma=0.5),
    # Almost entirely bound; exercises the fup floor
    dict(cas="100-00-6", name="Tightbound", dtxsid="DTXSID0000006", mw=350.0, logp=1.0,
         pka_donor="", pka_accept="", log_henry=-12.0, chemical_class="",
         human_clint=1.0, human_funbound_plasma=1e-6),
    # Clint not distinguishable from zero
    dict(cas="100-00-7", name="Stablene", dtxsid="DTXSID0000007", mw=180.0, logp=1.5,
         pka_donor="", pka_accept="", log_henry=-9.5, chemical_class="",
         human_clint=3.0, human_clint_pvalue=0.4, human_funbound_plasma=0.6),
]


@pytest.fixture
def table():
    return ChemicalTable.from_records(CHEMICALS)


@pytest.fixture
def options():
    return ModelOptions()


@pytest.fixture
def one_comp_params():
    """Hand-built one-compartment set: Vdist 2 L/kg, kelim 0.1 1/h."""
    values = {
        Param.BW: 70.0, Param.MW: 200.0, Param.VDIST: 2.0, Param.KELIM: 0.1,
        Param.KGUTABS: 2.18, Param.FABSGUT: 1.0, Param.HEPATIC_BIOAVAILABILITY: 1.0,
        Param.FUNBOUND_PLASMA: 0.5, Param.RBLOOD2PLASMA: 1.0,
        Param.POW: 10.0, Param.PKA_DONOR: (), Param.PKA_ACCEPT: (), Param.MA: 10.0,
    }
    return ParameterSet.build("1compartment", "Human", values, get_model("1compartment").param_names)


def amounts(result, exclude=("AUC",)):
    """Sum of every amount column except the listed ones."""
    cols = [c for c in result.columns if c.startswith("A") and c not in exclude]
    return np.sum([result.column(c) for c in cols], axis=0)
