"""Tests for the fused ring layout engine.

Engine output is checked both as exact text and, through RDKit, as the
intended ring system.
"""

import pytest
from rdkit import Chem

from smilestree import FusedRing, OperationError, Ring, SerializeError, parse
from smilestree.layout import compute_layout, ring_markers, slot_parents


def rdkit_canonical(smiles: str) -> str:
    mol = Chem.MolFromSmiles(smiles)
    if mol is None:
        raise ValueError(f"RDKit could not parse: {smiles}")
    return Chem.MolToSmiles(mol)


def rdkit_ring_sizes(smiles: str) -> list[int]:
    mol = Chem.MolFromSmiles(smiles)
    return sorted(len(ring) for ring in mol.GetRingInfo().AtomRings())


class TestComputeLayout:
    """Placement of rings by offset."""

    def test_naphthalene_positions(self):
        placed, layout = compute_layout([
            Ring(atoms="c", size=6, ring_number=1),
            Ring(atoms="c", size=6, ring_number=2, offset=3),
        ])
        assert placed[0].positions == (0, 1, 2, 3, 8, 9)
        assert placed[1].positions == (3, 4, 5, 6, 7, 8)
        assert len(layout) == 10
        assert layout.classes == {1: "base", 2: "extending"}

    def test_naphthalene_text(self):
        fused = FusedRing.build([
            Ring(atoms="c", size=6, ring_number=1),
            Ring(atoms="c", size=6, ring_number=2, offset=3),
        ])
        assert fused.smiles == "c1ccc2ccccc2c1"

    def test_fused_on_closing_bond(self):
        """A ring on the base ring's closing bond extends after its last atom."""
        fused = FusedRing.build([
            Ring(atoms="c", size=6, ring_number=1),
            Ring(atoms="c", size=6, ring_number=2, offset=5),
        ])
        assert fused.smiles == "c12ccccc1cccc2"
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("c1ccc2ccccc2c1")

    def test_spiro(self):
        fused = FusedRing.build([
            Ring(atoms="C", size=6, ring_number=1),
            Ring(atoms="C", size=5, ring_number=2, offset=3, branch_depths=(0, 1, 1, 1, 1)),
        ])
        assert fused.smiles == "C1CCC2(CCCC2)CC1"
        assert fused.layout.classes[2] == "spiro"

    def test_chained_ring(self):
        """A ring past the base ring fuses onto the ring covering its offset."""
        fused = FusedRing.build([
            Ring(atoms="c", size=6, ring_number=1),
            Ring(atoms="c", size=6, ring_number=2, offset=3),
            Ring(atoms="c", size=6, ring_number=3, offset=6),
        ])
        assert fused.layout.classes == {1: "base", 2: "extending", 3: "chained"}
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("c1ccc2cc3ccccc3cc2c1")

    def test_inside_ring_sizes(self):
        fused = FusedRing.build([
            Ring(atoms="C", size=10, ring_number=1),
            Ring(atoms="C", size=6, ring_number=2, offset=2),
        ])
        assert fused.layout.classes[2] == "inside"
        assert rdkit_ring_sizes(fused.smiles) == [6, 10]

    def test_bonds_follow_rings(self):
        fused = FusedRing.build([
            Ring(atoms="C", size=6, ring_number=1, bonds=("=", None, None, None, None, None)),
            Ring(atoms="C", size=5, ring_number=2, offset=3),
        ])
        mol = Chem.MolFromSmiles(fused.smiles)
        doubles = [b for b in mol.GetBonds() if b.GetBondTypeAsDouble() == 2.0]
        assert len(doubles) == 1

    def test_round_trips_through_parser(self):
        fused = FusedRing.build([
            Ring(atoms="c", size=6, ring_number=1),
            Ring(atoms="c", size=6, ring_number=2, offset=3),
            Ring(atoms="c", size=6, ring_number=3, offset=6),
        ])
        text = fused.smiles
        assert parse(text).smiles == text


class TestLayoutErrors:
    """Impossible placements raise OperationError."""

    def test_duplicate_ring_numbers(self):
        with pytest.raises(OperationError):
            compute_layout([Ring(atoms="C", size=6), Ring(atoms="C", size=6, offset=3)])

    def test_no_covering_ring(self):
        with pytest.raises(OperationError):
            compute_layout([
                Ring(atoms="C", size=6, ring_number=1),
                Ring(atoms="C", size=6, ring_number=2, offset=8),
            ])

    def test_two_rings_on_one_bond(self):
        with pytest.raises(OperationError):
            compute_layout([
                Ring(atoms="C", size=6, ring_number=1),
                Ring(atoms="C", size=6, ring_number=2, offset=3),
                Ring(atoms="C", size=5, ring_number=3, offset=3),
            ])

    def test_base_needs_offset_zero(self):
        with pytest.raises(OperationError):
            compute_layout([Ring(atoms="C", size=6, offset=2)])

    def test_empty(self):
        with pytest.raises(OperationError):
            compute_layout([])


class TestSlotParents:
    """Parent slots from depths and branch starts."""

    def test_chain(self):
        assert slot_parents([0, 0, 0], set()) == [None, 0, 1]

    def test_branch(self):
        # C(C)C: slot 1 branches off slot 0, slot 2 continues slot 0
        assert slot_parents([0, 1, 0], {1}) == [None, 0, 0]

    def test_sibling_branches(self):
        # C(C)(C)C
        assert slot_parents([0, 1, 1, 0], {1, 2}) == [None, 0, 0, 0]

    def test_orphan_branch(self):
        with pytest.raises(SerializeError):
            slot_parents([0, 2], {1})


class TestRingMarkers:
    """Marker order per slot."""

    def test_parsed_order_kept(self):
        tree = parse("c12ccccc1cccc2")
        markers = ring_markers(tree)
        assert [tree.rings[index].ring_number for index, _ in markers[0]] == [1, 2]

    def test_opens_and_closes(self):
        tree = parse("c1ccc2ccccc2c1")
        markers = ring_markers(tree)
        assert set(markers) == {0, 3, 8, 9}
        assert all(opening for _, opening in markers[0])
        assert not any(opening for _, opening in markers[9])
