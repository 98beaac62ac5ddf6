"""Tests for the SMILES writer."""

import pytest

from smilestree import (
    DepthError,
    FusedLayout,
    FusedRing,
    Linear,
    Molecule,
    Ring,
    SerializeError,
    SmilesWriter,
    parse,
    serialize,
    to_smiles,
)


class TestSimpleNodes:
    """Chains, rings and molecules."""

    def test_linear(self):
        assert serialize(Linear(["C", "C", "O"])) == "CCO"

    def test_alias(self):
        assert to_smiles(Ring(atoms="C", size=3)) == "C1CC1"

    def test_writer_class(self):
        assert SmilesWriter(Linear(["N"])).to_smiles() == "N"

    def test_nested_attachment(self):
        inner = Linear(["C", "C"]).attach(1, Linear(["F"]))
        assert serialize(Linear(["C"]).attach(1, inner)) == "C(C(F)C)"

    def test_ring_leading_bond(self):
        biphenyl = Ring(atoms="c", size=6).attach(
            4, Ring(atoms="c", size=6, ring_number=2, leading_bond="-")
        )
        assert biphenyl.smiles == "c1ccc(-c2ccccc2)cc1"

    def test_molecule_joins_components(self):
        assert serialize(Molecule((Linear(["C"]), Ring(atoms="C", size=3)))) == "CC1CC1"

    def test_three_digit_ring_number(self):
        assert Ring(atoms="C", size=3, ring_number=100).smiles == "C%100CC%100"


class TestFusedOffsetLayout:
    """Rings laid over one atom sequence by offset."""

    def test_fuse(self):
        fused = Ring(atoms="C", size=10).fuse(2, Ring(atoms="C", size=6, ring_number=2))
        assert fused.smiles == "C1CC2CCCCC2CC1"

    def test_substitution_in_second_ring(self):
        fused = Ring(atoms="C", size=6).fuse(
            4, Ring(atoms="C", size=6, ring_number=2).substitute(4, "N")
        )
        assert fused.smiles == "C1CCCC2C1CNCC2"

    def test_gap(self):
        fused = FusedRing((
            Ring(atoms="C", size=6, ring_number=1),
            Ring(atoms="C", size=6, ring_number=2, offset=8),
        ))
        with pytest.raises(SerializeError):
            fused.smiles

    def test_ring_number_collision(self):
        fused = FusedRing((
            Ring(atoms="C", size=6, ring_number=1),
            Ring(atoms="C", size=6, ring_number=1, offset=2),
        ))
        with pytest.raises(SerializeError):
            fused.smiles


class TestInterleavedLayout:
    """Fused rings written from their layout."""

    def test_parsed_systems(self, fused_smiles):
        for smiles in fused_smiles:
            assert serialize(parse(smiles)) == smiles

    def test_two_digit_ring_number_before_digit(self):
        """%12 directly followed by a single digit is written as %(12)."""
        fused = FusedRing(
            (
                Ring(atoms="C", size=3, ring_number=12, positions=(0, 1, 2)),
                Ring(atoms="C", size=3, ring_number=3, positions=(0, 3, 4)),
            ),
            FusedLayout(all_positions=tuple(range(5)), ring_order={0: (12, 3)}),
        )
        written = fused.smiles
        assert written.startswith("C%(12)3")
        assert "%123" not in written

    def test_parenthesised_ring_number_input(self):
        smiles = "C%(10)1CCCC1CCCC%(10)"
        written = serialize(parse(smiles))
        assert written == "C%(10)1CCCC1CCCC%10"
        assert parse(written) == parse(smiles)

    def test_tail_then_continuation(self):
        """A branch chain cannot continue past a slot that ends in a tail."""
        fused = FusedRing(
            (Ring(atoms="C", size=3, positions=(0, 1, 2)),),
            FusedLayout(
                all_positions=tuple(range(4)),
                branch_depths={1: 1, 2: 1},
                branch_starts=frozenset({1}),
                tails={1: Linear(["O"])},
                atom_values={3: "C"},
            ),
        )
        with pytest.raises(SerializeError):
            fused.smiles

    def test_tail(self):
        fused = FusedRing(
            (Ring(atoms="C", size=3, positions=(0, 1, 2)),),
            FusedLayout(
                all_positions=tuple(range(3)),
                branch_depths={1: 1, 2: 1},
                branch_starts=frozenset({1}),
                tails={2: Linear(["O"])},
            ),
        )
        assert fused.smiles == "C1(CC1O)"

    def test_loose_atom_needs_value(self):
        fused = FusedRing(
            (Ring(atoms="C", size=3, positions=(0, 1, 2)),),
            FusedLayout(all_positions=tuple(range(4))),
        )
        with pytest.raises(SerializeError):
            fused.smiles


class TestWriterErrors:
    """Structural errors in hand-built trees."""

    def test_ring_closed_before_dot(self):
        mol = Molecule(
            (Linear(["C"]).attach(1, Ring(atoms="C", size=3)), Linear(["O"])),
            disconnected=True,
        )
        assert mol.smiles == "C(C1CC1).O"

    def test_nested_ring_number_reuse(self):
        benzene = Ring(atoms="c", size=6)
        with pytest.raises(SerializeError):
            benzene.attach(1, benzene).smiles

    def test_nested_ring_distinct_numbers(self):
        benzene = Ring(atoms="c", size=6)
        phenyl = Ring(atoms="c", size=6, ring_number=2)
        assert benzene.attach(1, phenyl).smiles == "c1(c2ccccc2)ccccc1"

    def test_depth_limit(self):
        node = Linear(["C"])
        for _ in range(30):
            node = Linear(["C"]).attach(1, node)
        with pytest.raises(DepthError):
            serialize(node, max_depth=10)
        assert serialize(node).count("(") == 30
