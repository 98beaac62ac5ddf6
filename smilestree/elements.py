"""
Lexical element tables.

This module provides the character classes the tokenizer and writer use to
recognise atoms and bonds outside brackets. Bracket contents are opaque and
never looked up here.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, FrozenSet


class BondSymbol(str, Enum):
    """Bond markers that may precede an atom or a ring-bond number."""

    SINGLE = "-"
    DOUBLE = "="
    TRIPLE = "#"
    AROMATIC = ":"
    UP = "/"
    DOWN = "\\"

    def __str__(self) -> str:
        return self.value


# Daylight "organic subset" - atoms that can appear without brackets
ORGANIC_SUBSET: Final[FrozenSet[str]] = frozenset({
    "B", "C", "N", "O", "P", "S", "F", "Cl", "Br", "I",
})

# Aromatic element symbols allowed in lowercase form outside brackets
AROMATIC_SUBSET: Final[FrozenSet[str]] = frozenset({
    "b", "c", "n", "o", "p", "s",
})

# Two-letter elements in organic subset (need special handling in tokenizer)
TWO_LETTER_ORGANIC: Final[FrozenSet[str]] = frozenset({"Cl", "Br"})

BOND_CHARS: Final[FrozenSet[str]] = frozenset(member.value for member in BondSymbol)

# Largest ring-bond number the notation can express (%NNN)
MAX_RING_NUMBER: Final[int] = 999


def is_atom_value(value: str) -> bool:
    """Check whether ``value`` is a single well-formed atom token.
    
    Used to validate atom values supplied through the construction API.
    """
    if not value:
        return False
    if value.startswith("["):
        return (
            len(value) > 2
            and value.endswith("]")
            and "[" not in value[1:]
            and "]" not in value[:-1]
        )
    return value in ORGANIC_SUBSET or value in AROMATIC_SUBSET


# Default cap on branch nesting and tree recursion
DEFAULT_MAX_DEPTH: Final[int] = 1024
