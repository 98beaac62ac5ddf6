"""
Tree assembly: atom table to structural tree.

Each ring bond closes one ring, traced along the spanning tree from the
opening atom to the closing atom. Rings whose atoms overlap are grouped
into ring systems; a system that is a plain run of one chain becomes a
:class:`Ring`, anything else becomes a :class:`FusedRing` whose layout
records exactly how the system was written. Atoms outside ring systems
become :class:`Linear` runs.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from smilestree.elements import DEFAULT_MAX_DEPTH
from smilestree.exceptions import DepthError, ParseError
from smilestree.nodes import FusedLayout, FusedRing, Linear, Molecule, Node, Ring
from smilestree.parser import Closure, MoleculeGraph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _TracedRing:
    """A ring closed by one ring bond."""

    closure: Closure
    span: frozenset[int]
    atoms: list[int]


@dataclass(slots=True)
class _RingSystem:
    """Rings sharing atoms, with their atoms in text order."""

    rings: list[_TracedRing]
    atoms: list[int]


def find_ring_systems(rings: list[_TracedRing]) -> list[_RingSystem]:
    """Group rings into systems of rings that share at least one atom.

    Spiro rings (one shared atom) join a system as well as fused rings.
    """
    if not rings:
        return []

    n = len(rings)
    parent = list(range(n))

    def find(x: int) -> int:
        if parent[x] != x:
            parent[x] = find(parent[x])
        return parent[x]

    def union(x: int, y: int) -> None:
        px, py = find(x), find(y)
        if px != py:
            parent[px] = py

    for i in range(n):
        for j in range(i + 1, n):
            if rings[i].span & rings[j].span:
                union(i, j)

    groups: dict[int, list[_TracedRing]] = {}
    for i in range(n):
        groups.setdefault(find(i), []).append(rings[i])

    systems = []
    for members in groups.values():
        atoms: set[int] = set()
        for ring in members:
            atoms |= ring.span
        systems.append(_RingSystem(members, sorted(atoms)))
    return systems


class _TreeBuilder:
    """Builds the structural tree for one parsed SMILES string."""

    def __init__(self, graph: MoleculeGraph, max_depth: int) -> None:
        self._graph = graph
        self._atoms = graph.atoms
        self._max_depth = max_depth
        self._system_of: dict[int, _RingSystem] = {}
        self._closure_bonds = {
            frozenset((c.opener, c.closer)): c.bond for c in graph.closures
        }

    def build(self) -> Node:
        graph = self._graph
        rings = [self._trace_ring(closure) for closure in graph.closures]
        systems = find_ring_systems(rings)
        for system in systems:
            for atom in system.atoms:
                self._system_of[atom] = system
        logger.debug(
            "%d ring bonds form %d ring systems", len(rings), len(systems)
        )

        components = [
            self._build_chain(graph.chains[chain].atoms[0], 0)
            for chain in graph.components
        ]
        if len(components) == 1:
            return components[0]
        return Molecule(tuple(components), disconnected=True)

    # -- ring tracing -----------------------------------------------------

    def _ancestors(self, atom: int) -> list[int]:
        path = [atom]
        parent = self._atoms[atom].parent
        while parent is not None:
            path.append(parent)
            parent = self._atoms[parent].parent
        return path

    def _tree_path(self, start: int, end: int) -> list[int]:
        """Atoms on the spanning-tree path from ``start`` to ``end``."""
        up_start = self._ancestors(start)
        up_end = self._ancestors(end)
        on_end = {atom: i for i, atom in enumerate(up_end)}
        for i, atom in enumerate(up_start):
            if atom in on_end:
                return up_start[:i + 1] + up_end[:on_end[atom]][::-1]
        raise AssertionError("ring bond endpoints are not connected")

    def _trace_ring(self, closure: Closure) -> _TracedRing:
        """Trace the ring a ring bond closes.

        The ring follows the tree path from opener to closer but takes
        shortcuts through other ring bonds whose ends both lie further along
        the path, so that each ring bond yields its smallest ring.
        """
        path = self._tree_path(closure.opener, closure.closer)
        index = {atom: i for i, atom in enumerate(path)}
        pair = {closure.opener, closure.closer}

        jumps: dict[int, list[int]] = {}
        for other in self._graph.closures:
            if {other.opener, other.closer} == pair:
                continue
            if other.opener in index and other.closer in index:
                i, j = sorted((index[other.opener], index[other.closer]))
                if j > i + 1:
                    jumps.setdefault(i, []).append(j)

        atoms: list[int] = []
        last = len(path) - 1
        i = 0
        while True:
            atoms.append(path[i])
            if i == last:
                break
            step = i + 1
            for j in sorted(jumps.get(i, ()), reverse=True):
                if len(atoms) + last - j + 1 >= 3:
                    step = j
                    break
            i = step

        if len(atoms) < 3:
            marker = next(
                m for m in self._atoms[closure.closer].markers
                if m.number == closure.number
            )
            raise ParseError(
                f"Ring bond {closure.number} duplicates an existing bond",
                self._graph.smiles,
                marker.position,
            )
        return _TracedRing(closure, frozenset(path), atoms)

    # -- chains -----------------------------------------------------------

    def _build_chain(self, first: int, depth: int) -> Node:
        """Build the node for the chain starting at atom ``first``."""
        if depth > self._max_depth:
            raise DepthError("Tree nests too deeply", self._max_depth)

        atoms = self._atoms
        parts: list[Node] = []
        run: list[int] = []
        atom: int | None = first
        while atom is not None:
            system = self._system_of.get(atom)
            if system is None:
                run.append(atom)
                atom = atoms[atom].next
                continue
            assert system.atoms[0] == atom
            if run:
                parts.append(self._build_linear(run, depth))
                run = []
            parts.append(self._build_system(system, depth))
            root_depth = atoms[atom].depth
            last = [a for a in system.atoms if atoms[a].depth == root_depth][-1]
            atom = atoms[last].next
        if run:
            parts.append(self._build_linear(run, depth))

        if len(parts) == 1:
            return parts[0]
        return Molecule(tuple(parts))

    def _build_branches(self, atom: int, depth: int) -> tuple[Node, ...]:
        chains = self._graph.chains
        return tuple(
            self._build_chain(chains[chain].atoms[0], depth + 1)
            for chain in self._atoms[atom].branches
        )

    def _build_linear(self, run: list[int], depth: int) -> Linear:
        atoms = self._atoms
        attachments = {}
        for position, atom in enumerate(run, start=1):
            branches = self._build_branches(atom, depth)
            if branches:
                attachments[position] = branches
        return Linear(
            tuple(atoms[a].value for a in run),
            tuple(atoms[a].bond for a in run),
            attachments,
        )

    # -- ring systems -----------------------------------------------------

    def _edge_bond(self, x: int, y: int) -> str | None:
        atoms = self._atoms
        if atoms[y].parent == x:
            return atoms[y].bond
        if atoms[x].parent == y:
            return atoms[x].bond
        return self._closure_bonds.get(frozenset((x, y)))

    def _build_system(self, system: _RingSystem, depth: int) -> Ring | FusedRing:
        atoms = self._atoms
        chains = self._graph.chains
        slots = system.atoms
        root = slots[0]
        members = set(slots)
        slot_of = {atom: slot for slot, atom in enumerate(slots)}
        depths = {
            slot: atoms[atom].depth - atoms[root].depth
            for slot, atom in enumerate(slots)
        }

        traced = sorted(
            system.rings,
            key=lambda r: (slot_of[r.closure.opener], slot_of[r.closure.closer]),
        )
        ring_slots = [[slot_of[a] for a in ring.atoms] for ring in traced]

        # Which ring owns each slot's attachments
        owner: dict[int, tuple[int, int]] = {}
        for index, positions in enumerate(ring_slots):
            for position, slot in enumerate(positions, start=1):
                owner.setdefault(slot, (index, position))

        ring_attachments: list[dict[int, tuple[Node, ...]]] = [{} for _ in traced]
        loose_attachments: dict[int, tuple[Node, ...]] = {}
        late: dict[int, int] = {}
        tails: dict[int, Node] = {}
        for slot, atom in enumerate(slots):
            nodes: list[Node] = []
            seen_ring_branch = False
            late_count = 0
            for chain in atoms[atom].branches:
                head = chains[chain].atoms[0]
                if head in members:
                    seen_ring_branch = True
                    continue
                nodes.append(self._build_chain(head, depth + 1))
                if seen_ring_branch:
                    late_count += 1
            if nodes:
                if slot in owner:
                    index, position = owner[slot]
                    ring_attachments[index][position] = tuple(nodes)
                else:
                    loose_attachments[slot] = tuple(nodes)
            if late_count:
                late[slot] = late_count

            following = atoms[atom].next
            if depths[slot] > 0 and following is not None and following not in members:
                tails[slot] = self._build_chain(following, depth + 1)

        rings = []
        for index, ring in enumerate(traced):
            values = [atoms[a].value for a in ring.atoms]
            base = Counter(values).most_common(1)[0][0]
            bonds = [self._edge_bond(x, y) for x, y in zip(ring.atoms, ring.atoms[1:])]
            bonds.append(ring.closure.bond)
            positions = ring_slots[index]
            rings.append(Ring(
                atoms=base,
                size=len(values),
                ring_number=ring.closure.number,
                offset=positions[0],
                substitutions={p: v for p, v in enumerate(values, start=1) if v != base},
                attachments=ring_attachments[index],
                bonds=tuple(bonds),
                positions=tuple(positions),
                branch_depths=tuple(depths[slot] for slot in positions),
            ))

        leading_bond = atoms[root].bond
        if len(rings) == 1 and not any(depths.values()):
            ring = rings[0]
            logger.debug("ring %d: plain ring of %d atoms", ring.ring_number, ring.size)
            return Ring(
                atoms=ring.atoms,
                size=ring.size,
                ring_number=ring.ring_number,
                substitutions=ring.substitutions,
                attachments=ring.attachments,
                bonds=ring.bonds,
                leading_bond=leading_bond,
            )

        atom_values = {}
        for slot, atom in enumerate(slots):
            resolved = _resolve_value(rings, owner, slot)
            if resolved != atoms[atom].value:
                atom_values[slot] = atoms[atom].value

        layout = FusedLayout(
            all_positions=tuple(range(len(slots))),
            branch_depths=depths,
            branch_starts=frozenset(
                slot for slot, atom in enumerate(slots)
                if slot > 0 and atoms[atom].chain != atoms[atoms[atom].parent].chain
            ),
            ring_order={
                slot: tuple(m.number for m in atoms[atom].markers)
                for slot, atom in enumerate(slots)
                if atoms[atom].markers
            },
            atom_values=atom_values,
            bonds={
                slot: atoms[atom].bond
                for slot, atom in enumerate(slots)
                if slot > 0 and atoms[atom].bond
            },
            tails=tails,
            late_attachments=late,
            attachments=loose_attachments,
        )
        logger.debug(
            "fused system: %d rings over %d slots, %d branch starts",
            len(rings),
            len(slots),
            len(layout.branch_starts),
        )
        return FusedRing(tuple(rings), layout, leading_bond)


def _resolve_value(
    rings: list[Ring],
    owner: dict[int, tuple[int, int]],
    slot: int,
) -> str | None:
    """Atom value the writer derives for ``slot`` from the rings alone."""
    for ring in rings:
        assert ring.positions is not None
        if slot in ring.positions:
            position = ring.positions.index(slot) + 1
            if position in ring.substitutions:
                return ring.substitutions[position]
    if slot not in owner:
        return None
    return rings[owner[slot][0]].atoms


def build_tree(graph: MoleculeGraph, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Build the structural tree for a parsed atom table.

    Args:
        graph: Atom table from :class:`~smilestree.parser.SmilesParser`.
        max_depth: Deepest node nesting accepted.

    Returns:
        The root node.

    Raises:
        ParseError: If a ring bond duplicates an existing bond.
        DepthError: If the tree nests deeper than ``max_depth``.
    """
    return _TreeBuilder(graph, max_depth).build()
