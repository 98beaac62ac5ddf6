"""Tests for the tree-to-code decompiler.

Generated code is executed and the rebuilt tree compared with the input.
"""

import pytest

from smilestree import (
    Decompiler,
    Linear,
    Molecule,
    OperationError,
    Ring,
    common,
    decompile,
    parse,
)
from smilestree.decompiler import PRELUDE


def rebuild(node, **options):
    """Decompile ``node``, run the code, and return the rebuilt tree."""
    decompiler = Decompiler(**options)
    code = decompiler.decompile(node)
    namespace = {}
    exec(PRELUDE + "\n" + code, namespace)
    return namespace[decompiler.result_var]


class TestGeneratedCode:
    """Shape of the generated source."""

    def test_substituted_ring(self):
        code = decompile(Ring(atoms="c", size=6).substitute(1, "n"))
        assert code == "v1 = Ring(atoms='c', size=6)\nv2 = v1.substitute(1, 'n')"

    def test_linear(self):
        assert decompile(Linear(["C", "O"])) == "v1 = Linear(['C', 'O'])"

    def test_linear_with_bonds(self):
        assert decompile(Linear(["C", "O"], ["="])) == "v1 = Linear(['C', 'O'], [None, '='])"

    def test_children_first(self):
        code = decompile(Linear(["C", "C"]).attach(2, Linear(["O"])))
        assert code.splitlines() == [
            "v1 = Linear(['C', 'C'])",
            "v2 = Linear(['O'])",
            "v3 = v1.attach(2, v2)",
        ]

    def test_var_prefix(self):
        code = decompile(Ring(atoms="C", size=3), var_prefix="mol")
        assert code.startswith("mol1 = ")

    def test_invalid_prefix(self):
        with pytest.raises(OperationError):
            decompile(Ring(atoms="C", size=3), var_prefix="1x")

    def test_disconnected(self):
        code = decompile(parse("[Na+].[Cl-]"))
        assert code.splitlines()[-1] == "v3 = Molecule([v1, v2], disconnected=True)"

    def test_fuse_call(self):
        fused = Ring(atoms="C", size=10).fuse(2, Ring(atoms="C", size=6, ring_number=2))
        assert ".fuse(2, " in decompile(fused)

    def test_to_code_method(self):
        ring = Ring(atoms="c", size=6)
        assert ring.to_code() == decompile(ring)

    def test_result_var(self):
        decompiler = Decompiler()
        decompiler.decompile(Linear(["C"]).attach(1, Linear(["O"])))
        assert decompiler.result_var == "v3"


class TestRebuild:
    """Executing generated code reproduces the tree."""

    def test_api_trees(self):
        trees = [
            Ring(atoms="c", size=6).substitute(1, "n"),
            Linear(["C", "C", "C"]).attach(2, Linear(["O"], ["="])),
            Ring(atoms="C", size=10).fuse(2, Ring(atoms="C", size=6, ring_number=2)),
            Molecule((Linear(["C"]), Ring(atoms="c", size=6))),
            common.naphthalene,
        ]
        for tree in trees:
            assert rebuild(tree) == tree

    def test_parsed_trees(self, complex_smiles, fused_smiles):
        for smiles in complex_smiles + fused_smiles:
            tree = parse(smiles)
            rebuilt = rebuild(tree)
            assert rebuilt.smiles == smiles

    def test_parsed_tree_equality(self):
        tree = parse("CN1C=NC2=C1C(=O)N(C(=O)N2C)C")
        assert rebuild(tree) == tree

    def test_without_metadata(self):
        tree = parse("c1ccc2ccccc2c1")
        code = decompile(tree, include_metadata=False)
        assert "FusedRing.build" in code
        assert "positions" not in code
        assert rebuild(tree, include_metadata=False).smiles == "c1ccc2ccccc2c1"

    def test_without_metadata_keeps_layout(self):
        """Rings the layout engine places differently keep their layout."""
        smiles = "c1ccc2c(c1)[nH]c1ccccc12"
        tree = parse(smiles)
        rebuilt = rebuild(tree, include_metadata=False)
        assert rebuilt == tree
        assert rebuilt.smiles == smiles

    @pytest.mark.parametrize(
        "smiles",
        [
            "C1(C(C1C2CCC2))CC",
            "C12CCC(=O)C=C1CCC1C2CCC1",
            "C1CC(N(C1)C(=O)C)",
        ],
    )
    def test_without_metadata_keeps_tails(self, smiles):
        """Chains held by the layout survive a rebuild without metadata."""
        tree = parse(smiles)
        assert rebuild(tree, include_metadata=False).smiles == tree.smiles

    def test_without_metadata_parsed_trees(self, all_smiles, same_as_rdkit):
        for smiles in all_smiles:
            written = rebuild(parse(smiles), include_metadata=False).smiles
            assert same_as_rdkit(written, smiles), smiles
