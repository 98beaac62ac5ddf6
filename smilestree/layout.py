"""
Fused ring layout engine.

Computes an interleaved linearization for a set of rings placed by offset:
the base ring (offset 0) is written as a chain, and every further ring is
fused onto a bond of the ring hosting it. Fusing a ring on a bond inserts
the ring's new atoms between the bond's two atoms, so the shared bond is
closed by the new ring's ring-bond number.

Rings with an offset past the base ring are chained: they fuse onto the
most recently placed ring whose offset range covers their offset. A ring
whose ``branch_depths`` hint is ``[0, >0, ...]`` is spiro: it shares one
atom and its other atoms are written as a branch.

The helpers :func:`slot_parents` and :func:`ring_markers` read a layout
back and are shared with the writer.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from smilestree.exceptions import OperationError, SerializeError
from smilestree.nodes import FusedLayout, Ring

if TYPE_CHECKING:
    from smilestree.nodes import FusedRing, Node

logger = logging.getLogger(__name__)


def slot_parents(depths: Sequence[int], starts: Iterable[int]) -> list[int | None]:
    """Chain parent of every slot of a linearization.

    Args:
        depths: Branch depth of each slot, in emission order.
        starts: Slots that open a branch.

    Returns:
        Parent slot per slot (None for slot 0).

    Raises:
        SerializeError: If the depths cannot be written with parentheses.
    """
    starts = set(starts)
    parents: list[int | None] = []
    last: list[int] = []
    for slot, depth in enumerate(depths):
        if slot == 0:
            if depth != 0:
                raise SerializeError("Slot 0 must be at depth 0")
            parents.append(None)
            last = [0]
            continue
        if slot in starts:
            if not 1 <= depth <= len(last):
                raise SerializeError(f"Branch at slot {slot} has no parent at depth {depth - 1}")
            parents.append(last[depth - 1])
        else:
            if depth >= len(last):
                raise SerializeError(f"Slot {slot} at depth {depth} continues no chain")
            parents.append(last[depth])
        last = last[:depth] + [slot]
    return parents


def ring_markers(fused: FusedRing) -> dict[int, list[tuple[int, bool]]]:
    """Ring-bond markers of an interleaved fused ring, per slot.

    A ring opens at its first position and closes at its last. Markers
    listed in the layout's ``ring_order`` keep that order (a close before an
    open of the same number); the rest follow, opens first, by ring number.

    Returns:
        ``{slot: [(ring index, is_open), ...]}`` in emission order.
    """
    layout = fused.layout
    assert layout is not None
    rings = fused.rings

    pending: dict[int, list[tuple[int, bool]]] = {}
    for index, ring in enumerate(rings):
        assert ring.positions is not None
        first, last = ring.positions[0], ring.positions[-1]
        pending.setdefault(min(first, last), []).append((index, True))
        pending.setdefault(max(first, last), []).append((index, False))

    markers = {}
    for slot in sorted(pending):
        remaining = pending[slot]
        ordered = []
        for number in layout.ring_order.get(slot, ()):
            matching = [m for m in remaining if rings[m[0]].ring_number == number]
            if not matching:
                continue
            closing = [m for m in matching if not m[1]]
            chosen = closing[0] if closing else matching[0]
            ordered.append(chosen)
            remaining = [m for m in remaining if m != chosen]
        remaining.sort(key=lambda m: (not m[1], rings[m[0]].ring_number))
        markers[slot] = ordered + remaining
    return markers


class _Linearization:
    """Atoms in emission order with their depths and branch starts."""

    def __init__(self, size: int) -> None:
        self.seq = list(range(size))
        self.depth = {atom: 0 for atom in self.seq}
        self.starts: set[int] = set()
        self._next_atom = size

    def new_atoms(self, count: int) -> list[int]:
        atoms = list(range(self._next_atom, self._next_atom + count))
        self._next_atom += count
        return atoms

    def insert(self, index: int, atoms: list[int], depth: int) -> None:
        self.seq[index:index] = atoms
        for atom in atoms:
            self.depth[atom] = depth

    def subtree_end(self, index: int) -> int:
        """Index just past the branches hanging off ``seq[index]``."""
        depth = self.depth[self.seq[index]]
        end = index + 1
        while end < len(self.seq) and self.depth[self.seq[end]] > depth:
            end += 1
        return end

    def parents(self) -> dict[int, int | None]:
        slot_of_start = {self.seq.index(atom) for atom in self.starts}
        parents = slot_parents([self.depth[a] for a in self.seq], slot_of_start)
        return {
            atom: None if parent is None else self.seq[parent]
            for atom, parent in zip(self.seq, parents)
        }


def _fusion_class(ring: Ring, base_size: int, chained: bool) -> str:
    if ring.is_spiro_hint:
        return "spiro"
    if chained:
        return "chained"
    end = ring.offset + ring.size - 1
    last = base_size - 1
    if end > last:
        return "start-sharing" if ring.offset == 0 else "extending"
    if end == last:
        return "endpoint"
    return "inside"


def compute_layout(rings: Sequence[Ring]) -> tuple[tuple[Ring, ...], FusedLayout]:
    """Lay out rings placed by offset as one interleaved linearization.

    Args:
        rings: Rings with offsets. The first ring at offset 0 is the base;
            ring numbers must be distinct.

    Returns:
        The rings with ``positions`` filled in, and the layout.

    Raises:
        OperationError: If an offset is out of range, two rings would share
            one bond, or a chained ring has no ring to fuse onto.

    Example:
        >>> placed, layout = compute_layout([
        ...     Ring(atoms="c", size=6, ring_number=1),
        ...     Ring(atoms="c", size=6, ring_number=2, offset=3),
        ... ])
        >>> placed[1].positions
        (3, 4, 5, 6, 7, 8)
    """
    op = "FusedRing.build"
    rings = tuple(rings)
    if not rings:
        raise OperationError("no rings to lay out", op, rings)
    for ring in rings:
        if not isinstance(ring, Ring):
            raise OperationError(f"expected Ring, got {type(ring).__name__}", op, ring)
    numbers = [ring.ring_number for ring in rings]
    if len(set(numbers)) != len(numbers):
        raise OperationError("ring numbers must be distinct; renumber first", op, numbers)

    order = sorted(range(len(rings)), key=lambda i: rings[i].offset)
    base_index = order[0]
    base = rings[base_index]
    if base.offset != 0:
        raise OperationError(f"the base ring must have offset 0, got {base.offset}", op, base.offset)
    size = base.size

    # Decide every ring's host before placing anything
    hosts: dict[int, int] = {}
    placed: list[int] = []
    for index in order[1:]:
        ring = rings[index]
        if ring.offset < size:
            hosts[index] = base_index
        else:
            covering = [
                j for j in placed
                if rings[j].offset <= ring.offset <= rings[j].offset + rings[j].size - 1
            ]
            if not covering:
                raise OperationError(
                    f"ring {ring.ring_number} at offset {ring.offset} lies past the base "
                    f"ring and no fused ring covers that offset",
                    op,
                    ring.offset,
                )
            hosts[index] = covering[-1]
        placed.append(index)
    hosting = {host for host in hosts.values() if host != base_index}

    lin = _Linearization(size)
    cycles: dict[int, list[int]] = {base_index: list(range(size))}
    classes = {base.ring_number: "base"}
    shared_bonds: set[frozenset[int]] = set()

    for index in order[1:]:
        ring = rings[index]
        host = hosts[index]
        host_cycle = cycles[host]
        position = ring.offset - rings[host].offset
        kind = _fusion_class(ring, size, host != base_index)
        classes[ring.ring_number] = kind
        logger.debug(
            "ring %d (size %d, offset %d): %s on ring %d",
            ring.ring_number, ring.size, ring.offset, kind, rings[host].ring_number,
        )

        if kind == "spiro":
            shared = host_cycle[position]
            new = lin.new_atoms(ring.size - 1)
            lin.insert(lin.subtree_end(lin.seq.index(shared)), new, lin.depth[shared] + 1)
            lin.starts.add(new[0])
            cycles[index] = [shared] + new
            continue

        a = host_cycle[position]
        b = host_cycle[(position + 1) % len(host_cycle)]
        bond = frozenset((a, b))
        if bond in shared_bonds:
            raise OperationError(
                f"ring {ring.ring_number} would share a bond another ring already shares",
                op,
                ring.offset,
            )
        shared_bonds.add(bond)

        parents = lin.parents()
        if parents[b] == a or parents[a] == b:
            first, second = (a, b) if parents[b] == a else (b, a)
            at = lin.seq.index(second)
            if kind == "extending" and index in hosting:
                # Remaining host atoms go in a branch so the chained ring
                # can continue from this ring's new atoms
                start = lin.subtree_end(at)
                end = start
                while end < len(lin.seq) and lin.depth[lin.seq[end]] >= lin.depth[second]:
                    if lin.depth[lin.seq[end]] == lin.depth[second] and lin.seq[end] in lin.starts:
                        break
                    end += 1
                remainder = lin.seq[start:end]
                for atom in remainder:
                    lin.depth[atom] += 1
                if remainder:
                    lin.starts.add(remainder[0])
                new = lin.new_atoms(ring.size - 2)
                lin.insert(end, new, lin.depth[second])
                cycles[index] = [first, second] + new
            else:
                new = lin.new_atoms(ring.size - 2)
                lin.insert(at, new, lin.depth[second])
                if second in lin.starts:
                    lin.starts.discard(second)
                    lin.starts.add(new[0])
                cycles[index] = [first] + new + [second]
            continue

        # Closing bond of the host: extend after the later atom
        early, late = sorted((a, b), key=lin.seq.index)
        if any(parents[atom] == late and atom not in lin.starts for atom in lin.seq):
            raise OperationError(
                f"ring {ring.ring_number} cannot fuse at offset {ring.offset}",
                op,
                ring.offset,
            )
        new = lin.new_atoms(ring.size - 2)
        lin.insert(lin.subtree_end(lin.seq.index(late)), new, lin.depth[late])
        cycles[index] = [early, late] + new

    return _finish_layout(rings, cycles, lin, classes)


def _finish_layout(
    rings: tuple[Ring, ...],
    cycles: dict[int, list[int]],
    lin: _Linearization,
    classes: dict[int, str],
) -> tuple[tuple[Ring, ...], FusedLayout]:
    slot_of = {atom: slot for slot, atom in enumerate(lin.seq)}
    depths = {slot: lin.depth[atom] for slot, atom in enumerate(lin.seq)}
    starts = frozenset(slot_of[atom] for atom in lin.starts)
    parents = slot_parents([depths[s] for s in range(len(lin.seq))], starts)

    # One bond marker per physical bond: first ring that sets it wins
    edge_bonds: dict[frozenset[int], str] = {}
    for index, ring in enumerate(rings):
        cycle = [slot_of[atom] for atom in cycles[index]]
        for t, bond in enumerate(ring.bonds):
            if bond is not None:
                edge = frozenset((cycle[t], cycle[(t + 1) % len(cycle)]))
                edge_bonds.setdefault(edge, bond)

    placed = []
    for index, ring in enumerate(rings):
        positions = tuple(slot_of[atom] for atom in cycles[index])
        closing = edge_bonds.get(frozenset((positions[0], positions[-1])))
        placed.append(dataclasses.replace(
            ring,
            positions=positions,
            bonds=ring.bonds[:-1] + (closing,),
            leading_bond=None,
        ))

    bonds = {}
    for slot, parent in enumerate(parents):
        if parent is not None and frozenset((slot, parent)) in edge_bonds:
            bonds[slot] = edge_bonds[frozenset((slot, parent))]

    opens: dict[int, list[int]] = {}
    closes: dict[int, list[int]] = {}
    for ring in placed:
        opens.setdefault(ring.positions[0], []).append(ring.ring_number)
        closes.setdefault(ring.positions[-1], []).append(ring.ring_number)
    ring_order = {
        slot: tuple(sorted(opens.get(slot, ()))) + tuple(sorted(closes.get(slot, ())))
        for slot in set(opens) | set(closes)
    }

    # Later rings' substitutions on shared atoms
    atom_values = {}
    for slot in depths:
        holders = [ring for ring in placed if slot in ring.positions]
        for ring in holders:
            position = ring.positions.index(slot) + 1
            if position in ring.substitutions:
                if ring is not holders[0]:
                    atom_values[slot] = ring.substitutions[position]
                break

    layout = FusedLayout(
        all_positions=tuple(range(len(lin.seq))),
        branch_depths=depths,
        branch_starts=starts,
        ring_order=ring_order,
        atom_values=atom_values,
        bonds=bonds,
        classes=classes,
    )
    return tuple(placed), layout


def append_sequential_rings(
    fused: FusedRing,
    seq_rings: tuple[Ring, ...],
    *,
    chain_atoms: tuple[Iterable[str] | None, ...] | None = None,
    depths: tuple[int, ...] | None = None,
    atom_attachments: Mapping[int, Node | Iterable[Node]] | None = None,
) -> FusedRing:
    """Append rings after the last slot of an interleaved fused ring.

    Each ring is preceded by its linker atoms (if any) and written at its
    depth; a depth one deeper than the previous slot opens a branch.
    """
    op = "FusedRing.add_sequential_rings"
    layout = fused.layout
    assert layout is not None
    if chain_atoms is not None and len(chain_atoms) != len(seq_rings):
        raise OperationError("chain_atoms needs one entry per ring", op, chain_atoms)
    if depths is not None and len(depths) != len(seq_rings):
        raise OperationError("depths needs one entry per ring", op, depths)

    count = len(layout)
    branch_depths = dict(layout.branch_depths)
    starts = set(layout.branch_starts)
    atom_values = dict(layout.atom_values)
    bonds = dict(layout.bonds)
    ring_order = dict(layout.ring_order)
    classes = dict(layout.classes)
    rings = list(fused.rings)
    used = {ring.ring_number for ring in rings}
    previous = branch_depths[count - 1]

    for index, ring in enumerate(seq_rings):
        if not isinstance(ring, Ring):
            raise OperationError(f"expected Ring, got {type(ring).__name__}", op, ring)
        depth = depths[index] if depths is not None else 0
        if isinstance(depth, bool) or not isinstance(depth, int) or not 0 <= depth <= previous + 1:
            raise OperationError(f"depth {depth!r} cannot follow depth {previous}", op, depth)

        first = count
        linkers = tuple(chain_atoms[index] or ()) if chain_atoms is not None else ()
        for value in linkers:
            atom_values[count] = value
            branch_depths[count] = depth
            count += 1

        positions = tuple(range(count, count + ring.size))
        for slot in positions:
            branch_depths[slot] = depth
        if depth > previous:
            starts.add(first)

        number = ring.ring_number
        if number in used:
            number = max(used) + 1
        used.add(number)

        if ring.leading_bond is not None:
            bonds[positions[0]] = ring.leading_bond
        for t, bond in enumerate(ring.bonds[:-1]):
            if bond is not None:
                bonds[positions[t + 1]] = bond
        ring_order[positions[0]] = (number,)
        ring_order[positions[-1]] = (number,)
        classes[number] = "sequential"

        rings.append(dataclasses.replace(
            ring,
            ring_number=number,
            offset=positions[0],
            positions=positions,
            branch_depths=(depth,) * ring.size,
            leading_bond=None,
        ))
        count += ring.size
        previous = depth

    attachments: dict[int, Any] = dict(layout.attachments)
    for slot, nodes in (atom_attachments or {}).items():
        if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot < count:
            raise OperationError(f"slot {slot!r} out of range 0..{count - 1}", op, slot)
        extra = (nodes,) if not isinstance(nodes, Iterable) else tuple(nodes)
        attachments[slot] = attachments.get(slot, ()) + extra

    new_layout = FusedLayout(
        all_positions=tuple(range(count)),
        branch_depths=branch_depths,
        branch_starts=frozenset(starts),
        ring_order=ring_order,
        atom_values=atom_values,
        bonds=bonds,
        tails=layout.tails,
        late_attachments=layout.late_attachments,
        attachments=attachments,
        classes=classes,
    )

    parents = slot_parents([branch_depths[s] for s in range(count)], new_layout.branch_starts)
    for slot in new_layout.tails:
        if any(parent == slot and child not in new_layout.branch_starts
               for child, parent in enumerate(parents)):
            raise OperationError(
                f"slot {slot} already continues into an inline chain",
                op,
                slot,
            )
    return dataclasses.replace(fused, rings=tuple(rings), layout=new_layout)
