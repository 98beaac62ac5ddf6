"""Tests for the SMILES tokenizer."""

import pytest

from smilestree import LexError, Token, TokenKind, tokenize
from smilestree.tokenizer import next_ring_number, used_ring_numbers


def kinds(smiles: str) -> list[TokenKind]:
    return [token.kind for token in tokenize(smiles)]


def texts(smiles: str) -> list[str]:
    return [token.text for token in tokenize(smiles)]


class TestTokenKinds:
    """Each character class maps to one token kind."""

    def test_simple_chain(self):
        assert kinds("CCO") == [TokenKind.ATOM] * 3

    def test_branch_and_bond(self):
        assert kinds("CC(=O)C") == [
            TokenKind.ATOM,
            TokenKind.ATOM,
            TokenKind.BRANCH_OPEN,
            TokenKind.BOND,
            TokenKind.ATOM,
            TokenKind.BRANCH_CLOSE,
            TokenKind.ATOM,
        ]

    def test_bond_symbols(self):
        bonds = [t.text for t in tokenize("C-C=C#C:C/C\\C") if t.kind is TokenKind.BOND]
        assert bonds == ["-", "=", "#", ":", "/", "\\"]

    def test_dot(self):
        assert kinds("C.C") == [TokenKind.ATOM, TokenKind.DOT, TokenKind.ATOM]

    def test_ring_bond_digit(self):
        tokens = list(tokenize("C1CC1"))
        assert tokens[1] == Token(TokenKind.RING_BOND, "1", 1, 1)
        assert tokens[4].number == 1

    def test_positions(self):
        """Token positions are character offsets of the first character."""
        assert [t.position for t in tokenize("ClC[NH3+]C")] == [0, 2, 3, 9]

    def test_tokenize_is_lazy(self):
        stream = tokenize("CC X")
        assert next(stream).text == "C"


class TestAtoms:
    """Atom tokens."""

    def test_two_letter_halogens(self):
        assert texts("ClCCBr") == ["Cl", "C", "C", "Br"]

    def test_aromatic_atoms(self):
        assert texts("c1ccncc1") == ["c", "1", "c", "c", "n", "c", "c", "1"]

    def test_bracket_atom_is_opaque(self):
        assert texts("[NH3+]") == ["[NH3+]"]
        assert texts("C[C@@H](O)F")[1] == "[C@@H]"

    def test_bracket_atom_isotope(self):
        assert texts("[13CH4]") == ["[13CH4]"]


class TestRingBonds:
    """Ring-bond number forms."""

    def test_two_digit(self):
        token = list(tokenize("C%42"))[1]
        assert token.text == "%42"
        assert token.number == 42

    def test_three_digit(self):
        token = list(tokenize("C%123"))[1]
        assert token.number == 123

    def test_parenthesised(self):
        token = list(tokenize("C%(7)"))[1]
        assert token.text == "%(7)"
        assert token.number == 7

    def test_adjacent_digits_are_separate_bonds(self):
        assert [t.number for t in tokenize("C12") if t.kind is TokenKind.RING_BOND] == [1, 2]

    def test_used_ring_numbers(self):
        assert used_ring_numbers("c1ccc2ccccc2c1") == {1, 2}
        assert used_ring_numbers("CCO") == set()

    def test_next_ring_number(self):
        assert next_ring_number("CCO") == 1
        assert next_ring_number("C1CC2CC1C2") == 3
        assert next_ring_number("C2CC2") == 1


class TestLexErrors:
    """Malformed input raises LexError with the offending offset."""

    @pytest.mark.parametrize(
        "smiles,position",
        [
            ("C C", 1),
            ("C[CH", 1),
            ("C%1C", 1),
            ("C0", 1),
            ("X", 0),
            ("C[]", 1),
            ("C%(", 1),
            ("C$C", 1),
        ],
    )
    def test_error_position(self, smiles, position):
        with pytest.raises(LexError) as info:
            list(tokenize(smiles))
        assert info.value.position == position

    def test_message_has_caret(self):
        with pytest.raises(LexError) as info:
            list(tokenize("CC X"))
        assert "at offset 2" in str(info.value)
        assert str(info.value).endswith("^")
