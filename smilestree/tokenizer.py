"""
SMILES tokenizer.

Scans a SMILES string left to right into a lazy stream of typed tokens.
Bracket atoms are returned whole; their contents are not interpreted.

    >>> [t.text for t in tokenize("CC(=O)Cl")]
    ['C', 'C', '(', '=', 'O', ')', 'Cl']
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from smilestree.elements import (
    AROMATIC_SUBSET,
    BOND_CHARS,
    ORGANIC_SUBSET,
    TWO_LETTER_ORGANIC,
)
from smilestree.exceptions import LexError


class TokenKind(Enum):
    """Token categories produced by :func:`tokenize`."""
    
    ATOM = "atom"
    BOND = "bond"
    BRANCH_OPEN = "branch_open"
    BRANCH_CLOSE = "branch_close"
    RING_BOND = "ring_bond"
    DOT = "dot"


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexical token.
    
    Attributes:
        kind: Token category.
        text: Exact source text of the token.
        position: Offset of the token's first character.
        number: Ring-bond number for RING_BOND tokens, else None.
    """
    
    kind: TokenKind
    text: str
    position: int
    number: int | None = None


_DIGITS = "0123456789"

_PUNCTUATION: dict[str, TokenKind] = {
    "(": TokenKind.BRANCH_OPEN,
    ")": TokenKind.BRANCH_CLOSE,
    ".": TokenKind.DOT,
}


class _Scanner:
    """Character cursor over a SMILES string with lookahead."""
    
    __slots__ = ("_string", "_pos")
    
    def __init__(self, string: str) -> None:
        self._string = string
        self._pos = 0
    
    @property
    def position(self) -> int:
        """Current position in the string."""
        return self._pos
    
    def peek(self, offset: int = 0) -> str | None:
        """Look at character at current position + offset without consuming."""
        pos = self._pos + offset
        if pos >= len(self._string):
            return None
        return self._string[pos]
    
    def next(self) -> str | None:
        """Consume and return the next character, or None at end."""
        if self._pos >= len(self._string):
            return None
        char = self._string[self._pos]
        self._pos += 1
        return char
    
    def is_eof(self) -> bool:
        """Check if at end of string."""
        return self._pos >= len(self._string)
    
    def error(self, message: str, position: int | None = None) -> LexError:
        return LexError(
            message,
            self._string,
            self._pos if position is None else position,
        )


def tokenize(smiles: str) -> Iterator[Token]:
    """Lazily tokenize a SMILES string.
    
    Args:
        smiles: SMILES string.
    
    Yields:
        Tokens in source order.
    
    Raises:
        LexError: On an unclosed bracket, a malformed ``%`` ring bond,
            whitespace or an unrecognized character.
    """
    scanner = _Scanner(smiles)
    
    while not scanner.is_eof():
        start = scanner.position
        char = scanner.peek()
        assert char is not None
        
        if char == "[":
            yield _read_bracket_atom(scanner)
            continue
        
        if char in BOND_CHARS:
            scanner.next()
            yield Token(TokenKind.BOND, char, start)
            continue
        
        if char in _PUNCTUATION:
            scanner.next()
            yield Token(_PUNCTUATION[char], char, start)
            continue
        
        if char in _DIGITS or char == "%":
            yield _read_ring_bond(scanner)
            continue
        
        if char.isspace():
            raise scanner.error("Whitespace is not allowed in SMILES")
        
        yield _read_organic_atom(scanner)


def _read_bracket_atom(scanner: _Scanner) -> Token:
    """Read ``[...]`` as one opaque atom token."""
    start = scanner.position
    scanner.next()  # consume '['
    chars = ["["]
    
    while True:
        char = scanner.next()
        if char is None:
            raise scanner.error("Unclosed bracket atom", start)
        if char == "[":
            raise scanner.error("Nested '[' inside bracket atom", scanner.position - 1)
        chars.append(char)
        if char == "]":
            break
    
    if len(chars) == 2:
        raise scanner.error("Empty bracket atom", start)
    return Token(TokenKind.ATOM, "".join(chars), start)


def _read_ring_bond(scanner: _Scanner) -> Token:
    """Read a ring-bond number (1-9, %NN, %NNN or %(N))."""
    start = scanner.position
    char = scanner.next()
    
    if char != "%":
        if char == "0":
            raise scanner.error("Ring-bond number 0 is not allowed", start)
        return Token(TokenKind.RING_BOND, char, start, int(char))
    
    if scanner.peek() == "(":
        scanner.next()
        digits = _read_digits(scanner, limit=None)
        if not digits or scanner.next() != ")":
            raise scanner.error("Malformed '%(N)' ring bond", start)
        text = f"%({digits})"
        return Token(TokenKind.RING_BOND, text, start, int(digits))
    
    digits = _read_digits(scanner, limit=3)
    if len(digits) < 2:
        raise scanner.error("Expected two or three digits after '%'", start)
    
    number = int(digits)
    if number == 0:
        raise scanner.error("Ring-bond number 0 is not allowed", start)
    return Token(TokenKind.RING_BOND, "%" + digits, start, number)


def _read_digits(scanner: _Scanner, limit: int | None) -> str:
    """Consume up to ``limit`` digits (unbounded when None)."""
    digits = ""
    while limit is None or len(digits) < limit:
        char = scanner.peek()
        if char is None or char not in _DIGITS:
            break
        digits += char
        scanner.next()
    return digits


def _read_organic_atom(scanner: _Scanner) -> Token:
    """Read an unbracketed atom from the organic or aromatic subset."""
    start = scanner.position
    char = scanner.next()
    assert char is not None
    
    # Check for two-letter symbol
    second = scanner.peek()
    if second is not None and char + second in TWO_LETTER_ORGANIC:
        scanner.next()
        return Token(TokenKind.ATOM, char + second, start)
    
    if char in ORGANIC_SUBSET or char in AROMATIC_SUBSET:
        return Token(TokenKind.ATOM, char, start)
    
    raise scanner.error(f"Unexpected character: '{char}'", start)


def used_ring_numbers(smiles: str) -> set[int]:
    """Return every ring-bond number written in a SMILES string.
    
    Example:
        >>> sorted(used_ring_numbers("c1ccc2ccccc2c1"))
        [1, 2]
    """
    return {
        token.number
        for token in tokenize(smiles)
        if token.kind is TokenKind.RING_BOND and token.number is not None
    }


def next_ring_number(smiles: str) -> int:
    """Return the smallest ring-bond number not yet used in ``smiles``."""
    used = used_ring_numbers(smiles)
    number = 1
    while number in used:
        number += 1
    return number
