import pytest

from tkengine.errors import AmbiguousIdentity, ChemicalNotFound, IdentityError, MissingProperty, UnknownSpecies
from tkengine.physiology import DEFAULT_PHYSIOLOGY
from tkengine.types import ChemicalIdentity


def test_resolve_by_any_identifier(table):
    by_cas = table.resolve_identity(cas="100-00-1")
    by_name = table.resolve_identity(name="neutralol")
    by_dtxsid = table.resolve_identity(dtxsid="DTXSID0000001")
    assert by_cas == by_name == by_dtxsid
    assert by_cas == ChemicalIdentity(cas="100-00-1", name="Neutralol", dtxsid="DTXSID0000001")


def test_identity_failures(table):
    with pytest.raises(IdentityError):
        table.resolve_identity()
    with pytest.raises(ChemicalNotFound):
        table.resolve_identity(cas="999-99-9")
    with pytest.raises(AmbiguousIdentity):
        table.resolve_identity(cas="100-00-1", name="Acidine")
    with pytest.raises(AmbiguousIdentity):
        table.resolve_identity(cas="100-00-1", dtxsid="DTXSID9999999")


def test_properties_are_parsed(table):
    neutral = table.resolve_identity(name="Neutralol")
    acid = table.resolve_identity(name="Acidine")
    pfas = table.resolve_identity(cas="100-00-4")

    assert table.get_property("pka_donor", neutral) == ()
    assert table.get_property("pka_donor", acid) == (4.5,)
    assert table.get_property("chemical_class", pfas) == ("PFAS",)
    assert table.get_property("clint", acid) == (5.0, 1.0, 10.0, 0.01)
    assert table.get_property("funbound_plasma", neutral, "Rat") == 0.25


def test_missing_property_reasons(table):
    basamine = table.resolve_identity(name="Basamine")
    with pytest.raises(MissingProperty) as absent:
        table.get_property("funbound_plasma", basamine, "Rat")
    assert absent.value.reason == "absent"

    with pytest.raises(MissingProperty) as not_applicable:
        table.get_property("funbound_plasma", basamine, "Dog")
    assert not_applicable.value.reason == "not_applicable"


def test_with_chemical_returns_a_new_table(table):
    updated = table.with_chemical(cas="100-00-1", name="Neutralol", dtxsid="DTXSID0000001", mw=210.0,
                                  logp=2.0, pka_donor="", pka_accept="", human_funbound_plasma=0.3)
    ident = table.resolve_identity(cas="100-00-1")
    assert table.get_property("mw", ident) == 200.0
    assert updated.get_property("mw", ident) == 210.0
    assert len(updated.frame) == len(table.frame)


def test_physiology_lookup(table):
    assert table.get_physiology("human") is DEFAULT_PHYSIOLOGY["Human"]
    with pytest.raises(UnknownSpecies):
        table.get_physiology("Hamster")


def test_builtin_physiology_is_consistent():
    for species, phys in DEFAULT_PHYSIOLOGY.items():
        assert phys.species == species
        assert 0 < phys.hematocrit < 1
        flows = sum(t.flow for t in phys.tissues.values())
        assert flows < 1.0
        assert phys.tissue("liver").volume > 0
