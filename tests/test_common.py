"""Tests for the prebuilt fragments."""

import pytest
from rdkit import Chem

from smilestree import FusedRing, Linear, Ring, common, parse


def rdkit_is_valid(smiles: str) -> bool:
    """Check if SMILES is valid according to RDKit."""
    return Chem.MolFromSmiles(smiles) is not None


class TestFragments:
    """Fragment text."""

    @pytest.mark.parametrize(
        "name,smiles",
        [
            ("methyl", "C"),
            ("ethyl", "CC"),
            ("isopropyl", "C(C)C"),
            ("tbutyl", "C(C)(C)C"),
            ("carboxyl", "C(=O)O"),
            ("nitro", "[N+](=O)[O-]"),
            ("cyano", "C#N"),
            ("chloro", "Cl"),
            ("benzene", "c1ccccc1"),
            ("cyclohexane", "C1CCCCC1"),
            ("pyridine", "n1ccccc1"),
            ("pyrrole", "[nH]1cccc1"),
            ("furan", "o1cccc1"),
            ("thiophene", "s1cccc1"),
            ("naphthalene", "c1ccc2ccccc2c1"),
            ("indole", "c1ccc2[nH]ccc2c1"),
            ("quinoline", "c1ccc2ncccc2c1"),
        ],
    )
    def test_smiles(self, name, smiles):
        fragment = getattr(common, name)
        assert fragment.smiles == smiles
        assert rdkit_is_valid(smiles)

    def test_all_exported(self):
        for name in common.__all__:
            assert hasattr(common, name)

    def test_types(self):
        assert isinstance(common.methyl, Linear)
        assert isinstance(common.benzene, Ring)
        assert isinstance(common.naphthalene, FusedRing)


class TestComposition:
    """Fragments combine through tree operations."""

    def test_toluene(self):
        assert common.benzene.attach(1, common.methyl).smiles == "c1(C)ccccc1"

    def test_benzoic_acid(self):
        acid = common.benzene.attach(1, common.carboxyl)
        assert acid.smiles == "c1(C(=O)O)ccccc1"
        assert rdkit_is_valid(acid.smiles)

    def test_methylnaphthalene(self):
        tree = common.naphthalene.attach_to_ring(1, 1, common.methyl)
        assert tree.smiles == "c1(C)ccc2ccccc2c1"

    def test_fragments_unchanged(self):
        common.benzene.attach(1, common.methyl)
        assert common.benzene.smiles == "c1ccccc1"

    def test_parsed_equals_fragment(self):
        assert parse("c1ccccc1") == common.benzene
        assert parse("n1ccccc1") == common.pyridine
