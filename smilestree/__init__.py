"""
smilestree - SMILES to structural tree and back.

Parses SMILES strings into trees of chains, rings and fused ring systems
that can be edited with immutable operations and written back to SMILES
text, exactly as they were written.

    >>> from smilestree import parse
    >>> tree = parse("CC(=O)C")
    >>> tree.smiles
    'CC(=O)C'

Submodules:
    smilestree.layout     - Fused ring layout engine
    smilestree.roundtrip  - Round-trip validation
    smilestree.decompiler - Tree to Python construction code
    smilestree.common     - Prebuilt fragments
"""

__version__ = "0.1.0"
__author__ = "Vladimir Lekić"

# Tree nodes
from smilestree.nodes import FusedLayout, FusedRing, Linear, Molecule, Node, Ring, repeat

# Parsing and writing
from smilestree.parser import parse, SmilesParser
from smilestree.writer import serialize, to_smiles, SmilesWriter
from smilestree.tokenizer import Token, TokenKind, tokenize

# Round trips and code generation
from smilestree.roundtrip import (
    RoundTripResult,
    RoundTripStatus,
    is_valid_round_trip,
    normalize,
    parse_with_validation,
    stabilizes,
    validate_round_trip,
)
from smilestree.decompiler import Decompiler, decompile

# Exceptions
from smilestree.exceptions import (
    DepthError,
    LexError,
    OperationError,
    ParseError,
    RoundTripError,
    SerializeError,
    SmilesError,
)

# Element data
from smilestree.elements import BondSymbol, ORGANIC_SUBSET, AROMATIC_SUBSET

# Submodules
from smilestree import common, layout

__all__ = [
    # Nodes
    "FusedLayout", "FusedRing", "Linear", "Molecule", "Node", "Ring", "repeat",
    # Parsing
    "parse", "SmilesParser", "Token", "TokenKind", "tokenize",
    # Writing
    "serialize", "to_smiles", "SmilesWriter",
    # Round trips
    "RoundTripResult", "RoundTripStatus", "is_valid_round_trip", "normalize",
    "parse_with_validation", "stabilizes", "validate_round_trip",
    # Code generation
    "Decompiler", "decompile",
    # Exceptions
    "DepthError", "LexError", "OperationError", "ParseError",
    "RoundTripError", "SerializeError", "SmilesError",
    # Elements
    "BondSymbol", "ORGANIC_SUBSET", "AROMATIC_SUBSET",
    # Submodules
    "common", "layout",
]
