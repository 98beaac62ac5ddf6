"""
SMILES string parser.

This module turns a SMILES string into an atom table (a spanning tree of
atoms plus the ring closures that complete the graph) and hands the table
to :mod:`smilestree.assemble`, which builds the structural tree.

Supported notation:
    - Organic subset atoms (B, C, N, O, P, S, F, Cl, Br, I)
    - Aromatic atoms (b, c, n, o, p, s)
    - Bracket atoms, kept verbatim
    - Bond markers ``- = # : / \\``
    - Branches (parentheses), nested to any depth up to ``max_depth``
    - Ring bonds (1-9, %NN, %NNN, %(N)) and ring-number reuse
    - Disconnected components (dot separator)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from smilestree.elements import DEFAULT_MAX_DEPTH
from smilestree.exceptions import DepthError, ParseError
from smilestree.tokenizer import Token, TokenKind, tokenize

if TYPE_CHECKING:
    from smilestree.nodes import Node

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RingMarker:
    """A ring-bond number as written after an atom."""

    number: int
    bond: str | None
    position: int
    closure: int = -1


@dataclass(slots=True)
class ParsedAtom:
    """One atom of the atom table.

    Attributes:
        index: Atom index, equal to its order of appearance.
        value: Atom text as written.
        position: Offset of the atom in the source string.
        bond: Bond marker written before the atom, if any.
        parent: Index of the preceding atom in the spanning tree.
        depth: Number of enclosing branches.
        chain: Index of the chain the atom belongs to.
        component: Index of the dot-separated component.
        markers: Ring-bond markers in written order.
        branches: Chains opened from this atom, in text order.
        next: Following atom on the same chain.
    """

    index: int
    value: str
    position: int
    bond: str | None
    parent: int | None
    depth: int
    chain: int
    component: int
    markers: list[RingMarker] = field(default_factory=list)
    branches: list[int] = field(default_factory=list)
    next: int | None = None


@dataclass(slots=True)
class ParsedChain:
    """A run of atoms joined without parentheses."""

    index: int
    anchor: int | None
    depth: int
    atoms: list[int] = field(default_factory=list)


@dataclass(slots=True)
class Closure:
    """A ring bond pairing an opening and a closing marker."""

    number: int
    opener: int
    closer: int
    bond: str | None


@dataclass(slots=True)
class MoleculeGraph:
    """Atom table produced by :class:`SmilesParser`."""

    smiles: str
    atoms: list[ParsedAtom] = field(default_factory=list)
    chains: list[ParsedChain] = field(default_factory=list)
    closures: list[Closure] = field(default_factory=list)
    components: list[int] = field(default_factory=list)


@dataclass
class _ParserState:
    """Mutable state for the SMILES parser."""

    # Ring bonds waiting for a partner: number -> (atom, marker)
    open_rings: dict[int, tuple[int, RingMarker]] = field(default_factory=dict)

    # Enclosing branches: (anchor atom, outer chain, '(' offset)
    branch_stack: list[tuple[int, int, int]] = field(default_factory=list)

    prev_atom: int | None = None
    chain: int | None = None
    component: int = 0
    pending_bond: Token | None = None
    last_dot: Token | None = None


class SmilesParser:
    """SMILES string parser.

    Example:
        >>> parser = SmilesParser("CC(=O)C")
        >>> graph = parser.parse_graph()
        >>> [atom.value for atom in graph.atoms]
        ['C', 'C', 'O', 'C']

    For convenience, use the module-level `parse()` function:
        >>> from smilestree import parse
        >>> tree = parse("CCO")
    """

    def __init__(self, smiles: str, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        """Initialize parser with SMILES string.

        Args:
            smiles: SMILES string to parse.
            max_depth: Deepest branch nesting accepted.
        """
        if not isinstance(smiles, str):
            raise ParseError(f"Expected a string, got {type(smiles).__name__}")
        self._smiles = smiles
        self._max_depth = max_depth
        self._graph = MoleculeGraph(smiles)
        self._state = _ParserState()

    def parse(self) -> Node:
        """Parse the SMILES string into a structural tree.

        Raises:
            LexError: On characters the tokenizer rejects.
            ParseError: If the SMILES syntax is invalid.
            DepthError: If branches nest deeper than ``max_depth``.
        """
        from smilestree.assemble import build_tree
        return build_tree(self.parse_graph(), max_depth=self._max_depth)

    def parse_graph(self) -> MoleculeGraph:
        """Parse the SMILES string into an atom table."""
        if not self._smiles:
            raise ParseError("Empty SMILES string", self._smiles, 0)

        handlers = {
            TokenKind.ATOM: self._parse_atom,
            TokenKind.BOND: self._parse_bond,
            TokenKind.BRANCH_OPEN: self._parse_branch_open,
            TokenKind.BRANCH_CLOSE: self._parse_branch_close,
            TokenKind.RING_BOND: self._parse_ring_bond,
            TokenKind.DOT: self._parse_dot,
        }
        for token in tokenize(self._smiles):
            handlers[token.kind](token)

        self._finish()
        logger.debug(
            "parsed %r: %d atoms, %d chains, %d ring bonds",
            self._smiles,
            len(self._graph.atoms),
            len(self._graph.chains),
            len(self._graph.closures),
        )
        return self._graph

    def _error(self, message: str, position: int) -> ParseError:
        return ParseError(message, self._smiles, position)

    def _new_chain(self, anchor: int | None) -> int:
        graph = self._graph
        chain = ParsedChain(len(graph.chains), anchor, len(self._state.branch_stack))
        graph.chains.append(chain)
        return chain.index

    def _parse_atom(self, token: Token) -> None:
        state = self._state
        graph = self._graph

        if state.chain is None:
            state.chain = self._new_chain(None)
            graph.components.append(state.chain)

        chain = graph.chains[state.chain]
        if state.prev_atom is not None:
            parent = state.prev_atom
        else:
            parent = chain.anchor

        atom = ParsedAtom(
            index=len(graph.atoms),
            value=token.text,
            position=token.position,
            bond=state.pending_bond.text if state.pending_bond else None,
            parent=parent,
            depth=chain.depth,
            chain=chain.index,
            component=state.component,
        )
        graph.atoms.append(atom)
        if state.prev_atom is not None:
            graph.atoms[state.prev_atom].next = atom.index
        chain.atoms.append(atom.index)

        state.prev_atom = atom.index
        state.pending_bond = None

    def _parse_bond(self, token: Token) -> None:
        state = self._state
        if state.pending_bond is not None:
            raise self._error("Consecutive bond markers", token.position)
        if state.prev_atom is None and not state.branch_stack:
            raise self._error("Bond marker without a preceding atom", token.position)
        state.pending_bond = token

    def _parse_branch_open(self, token: Token) -> None:
        state = self._state
        if state.pending_bond is not None:
            raise self._error("Bond marker before '('", state.pending_bond.position)
        if state.prev_atom is None:
            raise self._error("Branch without a preceding atom", token.position)
        if len(state.branch_stack) >= self._max_depth:
            raise DepthError(
                f"Branches nest too deeply at offset {token.position}",
                self._max_depth,
            )

        assert state.chain is not None
        state.branch_stack.append((state.prev_atom, state.chain, token.position))
        state.chain = self._new_chain(state.prev_atom)
        self._graph.atoms[state.prev_atom].branches.append(state.chain)
        state.prev_atom = None

    def _parse_branch_close(self, token: Token) -> None:
        state = self._state
        if not state.branch_stack:
            raise self._error("Unbalanced ')'", token.position)
        if state.pending_bond is not None:
            raise self._error("Bond marker before ')'", state.pending_bond.position)
        if state.prev_atom is None:
            raise self._error("Empty branch", token.position)

        anchor, outer_chain, _ = state.branch_stack.pop()
        state.prev_atom = anchor
        state.chain = outer_chain

    def _parse_ring_bond(self, token: Token) -> None:
        state = self._state
        graph = self._graph
        if state.prev_atom is None:
            raise self._error("Ring bond without a preceding atom", token.position)

        assert token.number is not None
        bond = state.pending_bond.text if state.pending_bond else None
        state.pending_bond = None
        atom = graph.atoms[state.prev_atom]
        marker = RingMarker(token.number, bond, token.position)
        atom.markers.append(marker)

        if token.number not in state.open_rings:
            state.open_rings[token.number] = (atom.index, marker)
            return

        opener_index, opener_marker = state.open_rings.pop(token.number)
        opener = graph.atoms[opener_index]
        if opener_index == atom.index:
            raise self._error(
                f"Ring bond {token.number} closes on the atom that opened it",
                token.position,
            )
        if opener.component != atom.component:
            raise self._error(
                f"Ring bond {token.number} spans a '.' separator",
                token.position,
            )
        if opener_marker.bond and bond and opener_marker.bond != bond:
            raise self._error(
                f"Conflicting bond markers on ring bond {token.number}",
                token.position,
            )
        pair = {opener_index, atom.index}
        if any({other.opener, other.closer} == pair for other in graph.closures):
            raise self._error(
                f"Ring bond {token.number} duplicates an existing bond",
                token.position,
            )

        closure = Closure(token.number, opener_index, atom.index, opener_marker.bond or bond)
        opener_marker.closure = marker.closure = len(graph.closures)
        graph.closures.append(closure)

    def _parse_dot(self, token: Token) -> None:
        state = self._state
        if state.branch_stack:
            raise self._error("'.' inside a branch", token.position)
        if state.pending_bond is not None:
            raise self._error("Bond marker before '.'", state.pending_bond.position)
        if state.prev_atom is None:
            raise self._error("Empty component", token.position)

        state.prev_atom = None
        state.chain = None
        state.component += 1
        state.last_dot = token

    def _finish(self) -> None:
        state = self._state
        if state.pending_bond is not None:
            raise self._error("Dangling bond marker", state.pending_bond.position)
        if state.branch_stack:
            raise self._error("Unclosed branch", state.branch_stack[-1][2])
        if state.open_rings:
            number, (_, marker) = min(
                state.open_rings.items(), key=lambda item: item[1][1].position
            )
            raise self._error(f"Unclosed ring bond {number}", marker.position)
        if state.prev_atom is None:
            position = state.last_dot.position if state.last_dot else len(self._smiles)
            raise self._error("Empty component", position)


def parse(smiles: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Parse a SMILES string into a structural tree.

    Args:
        smiles: SMILES string.
        max_depth: Deepest branch nesting accepted.

    Returns:
        The root node (Linear, Ring, FusedRing or Molecule).

    Raises:
        LexError: On characters the tokenizer rejects.
        ParseError: If the SMILES syntax is invalid.
        DepthError: If branches nest deeper than ``max_depth``.

    Example:
        >>> parse("c1ccccc1").size
        6
    """
    return SmilesParser(smiles, max_depth).parse()
