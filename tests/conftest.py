"""Test configuration and fixtures for smilestree tests."""

import pytest

# RDKit is used as an independent chemistry oracle
from rdkit import Chem


def rdkit_canonical(smiles: str) -> str:
    """Get RDKit canonical SMILES for comparison.

    Args:
        smiles: Input SMILES string.

    Returns:
        RDKit's canonical SMILES.
    """
    mol = Chem.MolFromSmiles(smiles)
    if mol is None:
        raise ValueError(f"RDKit could not parse: {smiles}")
    return Chem.MolToSmiles(mol, canonical=True)


def same_molecule(first: str, second: str) -> bool:
    """True when RDKit reads both strings as the same molecule."""
    return rdkit_canonical(first) == rdkit_canonical(second)


@pytest.fixture
def same_as_rdkit():
    """The :func:`same_molecule` helper as a fixture."""
    return same_molecule


@pytest.fixture
def simple_smiles() -> list[str]:
    """Basic valid SMILES strings for smoke testing."""
    return [
        "C",
        "CC",
        "CCC",
        "CCO",
        "C=C",
        "C#C",
        "C=O",
        "C#N",
        "ClCCBr",
    ]


@pytest.fixture
def ring_smiles() -> list[str]:
    """SMILES with a single ring closure."""
    return [
        "C1CC1",
        "C1CCC1",
        "C1CCCC1",
        "C1CCCCC1",
        "c1ccccc1",
        "n1ccccc1",
        "c1cc[nH]c1",
    ]


@pytest.fixture
def fused_smiles() -> list[str]:
    """Fused, bridged and spiro ring systems."""
    return [
        "c1ccc2ccccc2c1",
        "C1CC2CCCCC2C1",
        "C12CC1CC2",
        "c12ccccc1cccc2",
        "C1CCC2(CC1)CCCC2",
        "c1ccc2[nH]ccc2c1",
        "c1ccc2c(c1)[nH]c1ccccc12",
    ]


@pytest.fixture
def branched_smiles() -> list[str]:
    """SMILES with branches, including nested ones."""
    return [
        "CC(C)C",
        "CC(=O)C",
        "CC(C)(C)C",
        "CC(C(C)(C)C)C",
        "CC(C(C(C)C)C)C",
        "C1CC(CC1)(C)",
    ]


@pytest.fixture
def charged_smiles() -> list[str]:
    """SMILES with charged atoms."""
    return [
        "[O-]",
        "[NH4+]",
        "[NH3+]C",
        "[O-]C=O",
        "CC([O-])=O",
        "[N+](=O)[O-]",
    ]


@pytest.fixture
def stereo_smiles() -> list[str]:
    """SMILES with chirality and directional bonds."""
    return [
        "C[C@H](O)F",
        "F[C@@H](Cl)Br",
        "C[C@H]1CCCCC1",
        "F/C=C/F",
        r"F/C=C\F",
    ]


@pytest.fixture
def multi_component_smiles() -> list[str]:
    """SMILES with multiple disconnected components."""
    return [
        "[Na+].[Cl-]",
        "O.O",
        "CO.OC",
        "c1ccccc1.c1ccccc1",
    ]


@pytest.fixture
def high_ring_closure_smiles() -> list[str]:
    """SMILES with two-digit ring closure numbers."""
    return [
        "C%10CC%10",
        "C%42CC%42",
        "C%99CC%99",
    ]


@pytest.fixture
def complex_smiles() -> list[str]:
    """Complex real-world molecules."""
    return [
        # Aspirin
        "CC(=O)OC1=CC=CC=C1C(=O)O",
        # Caffeine
        "CN1C=NC2=C1C(=O)N(C(=O)N2C)C",
        # Ibuprofen
        "CC(C)Cc1ccc(cc1)C(C)C(=O)O",
        # Acetaminophen
        "CC(=O)Nc1ccc(O)cc1",
        # Anthracene
        "c1ccc2cc3ccccc3cc2c1",
        # Pyrene
        "c1cc2ccc3cccc4ccc(c1)c2c34",
        # Biphenyl
        "c1ccc(-c2ccccc2)cc1",
        # Propylbenzene
        "CCCc1ccccc1",
    ]


@pytest.fixture
def all_smiles(
    simple_smiles,
    ring_smiles,
    fused_smiles,
    branched_smiles,
    charged_smiles,
    stereo_smiles,
    multi_component_smiles,
    high_ring_closure_smiles,
    complex_smiles,
) -> list[str]:
    """Every fixture list above, concatenated."""
    return (
        simple_smiles
        + ring_smiles
        + fused_smiles
        + branched_smiles
        + charged_smiles
        + stereo_smiles
        + multi_component_smiles
        + high_ring_closure_smiles
        + complex_smiles
    )
