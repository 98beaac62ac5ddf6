"""
SMILES string writer.

This module converts structural trees back to SMILES strings. Fused rings
without a layout are written by laying their rings over one atom sequence
by offset; fused rings with a layout are written by walking the layout's
slots, opening and closing parentheses as the branch depth changes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from smilestree.elements import DEFAULT_MAX_DEPTH, MAX_RING_NUMBER
from smilestree.exceptions import DepthError, SerializeError
from smilestree.layout import ring_markers, slot_parents
from smilestree.nodes import FusedRing, Linear, Molecule, Node, Ring


_NO_PENDING: Final[tuple[tuple[Node, ...], Node | None]] = ((), None)


class SmilesWriter:
    """SMILES string writer for structural trees.

    Example:
        >>> from smilestree import parse
        >>> SmilesWriter(parse("CC(=O)C")).to_smiles()
        'CC(=O)C'
    """

    def __init__(self, node: Node, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        """Initialize writer.

        Args:
            node: Tree to write.
            max_depth: Deepest node nesting accepted.
        """
        self._node = node
        self._max_depth = max_depth
        self._out: list[str] = []
        self._open_rings: set[int] = set()

    def to_smiles(self) -> str:
        """Generate the SMILES string.

        Raises:
            SerializeError: On ring-number collisions or inconsistent
                fused-ring metadata.
            DepthError: If the tree nests deeper than ``max_depth``.
        """
        self._out = []
        self._open_rings = set()
        self._write(self._node, 0)
        if self._open_rings:
            raise SerializeError(f"Ring bonds never closed: {sorted(self._open_rings)}")
        return "".join(self._out)

    def _write(self, node: Node, depth: int) -> None:
        if depth > self._max_depth:
            raise DepthError("Tree nests too deeply", self._max_depth)

        if isinstance(node, Linear):
            self._write_linear(node, depth)
        elif isinstance(node, Ring):
            self._write_ring(node, depth)
        elif isinstance(node, FusedRing):
            if node.layout is None:
                self._write_offset_fused(node, depth)
            else:
                self._write_interleaved(node, depth)
        elif isinstance(node, Molecule):
            self._write_molecule(node, depth)
        else:
            raise SerializeError(f"Cannot serialize {type(node).__name__}")

    def _write_branches(self, nodes: tuple[Node, ...], depth: int) -> None:
        for node in nodes:
            self._out.append("(")
            self._write(node, depth + 1)
            self._out.append(")")

    def _write_marker(self, number: int, bond: str | None, opening: bool) -> None:
        if opening:
            if number in self._open_rings:
                raise SerializeError(f"Ring bond {number} opened while still open")
            self._open_rings.add(number)
        else:
            if number not in self._open_rings:
                raise SerializeError(f"Ring bond {number} closed but never opened")
            self._open_rings.discard(number)

        text = _ring_number_to_smiles(number)
        if opening and bond:
            self._out.append(bond)
        elif len(text) == 1 and self._out and _is_two_digit_marker(self._out[-1]):
            # %NN followed by a digit would read as %NNd
            self._out[-1] = f"%({self._out[-1][1:]})"
        self._out.append(text)

    def _write_molecule(self, node: Molecule, depth: int) -> None:
        for index, component in enumerate(node.components):
            if node.disconnected and index:
                if self._open_rings:
                    raise SerializeError(
                        f"Ring bonds {sorted(self._open_rings)} span a '.' separator"
                    )
                self._out.append(".")
            self._write(component, depth + 1)

    def _write_linear(self, node: Linear, depth: int) -> None:
        for index, atom in enumerate(node.atoms):
            if node.bonds[index]:
                self._out.append(node.bonds[index])
            self._out.append(atom)
            self._write_branches(node.attachments.get(index + 1, ()), depth)

    def _write_ring(self, node: Ring, depth: int) -> None:
        if node.leading_bond:
            self._out.append(node.leading_bond)
        for position in range(1, node.size + 1):
            if position > 1 and node.bonds[position - 2]:
                self._out.append(node.bonds[position - 2])
            self._out.append(node.substitutions.get(position, node.atoms))
            if position == 1:
                self._write_marker(node.ring_number, node.bonds[-1], True)
            if position == node.size:
                self._write_marker(node.ring_number, None, False)
            self._write_branches(node.attachments.get(position, ()), depth)

    def _write_offset_fused(self, node: FusedRing, depth: int) -> None:
        """Write rings laid over one atom sequence by offset.

        Shared slots are written once. The first ring (by offset) holding
        a slot supplies its base atom; an explicit substitution from any
        holding ring wins over a base atom.
        """
        rings = sorted(node.rings, key=lambda r: r.offset)
        total = max(ring.offset + ring.size for ring in rings)

        holders: list[list[Ring]] = [[] for _ in range(total)]
        for ring in rings:
            for slot in range(ring.offset, ring.offset + ring.size):
                holders[slot].append(ring)
        for slot, held in enumerate(holders):
            if not held:
                raise SerializeError(f"No ring covers slot {slot} of the fused ring")

        if node.leading_bond:
            self._out.append(node.leading_bond)
        for slot in range(total):
            held = holders[slot]
            if slot > 0:
                for ring in held:
                    if ring.offset < slot and ring.bonds[slot - 1 - ring.offset]:
                        self._out.append(ring.bonds[slot - 1 - ring.offset])
                        break

            value = held[0].atoms
            for ring in held:
                position = slot - ring.offset + 1
                if position in ring.substitutions:
                    value = ring.substitutions[position]
                    break
            self._out.append(value)

            opening = sorted(
                (r for r in held if r.offset == slot), key=lambda r: r.ring_number
            )
            closing = sorted(
                (r for r in held if r.offset + r.size - 1 == slot), key=lambda r: r.ring_number
            )
            for ring in opening:
                self._write_marker(ring.ring_number, ring.bonds[-1], True)
            for ring in closing:
                self._write_marker(ring.ring_number, None, False)

            for ring in held:
                self._write_branches(
                    ring.attachments.get(slot - ring.offset + 1, ()), depth
                )

    def _write_interleaved(self, node: FusedRing, depth: int) -> None:
        """Write a fused ring by walking its layout slot by slot."""
        layout = node.layout
        assert layout is not None
        count = len(layout)
        depths = [layout.branch_depths[slot] for slot in range(count)]
        slot_parents(depths, layout.branch_starts)
        markers = ring_markers(node)

        held: list[list[tuple[Ring, int]]] = [[] for _ in range(count)]
        for ring in node.rings:
            assert ring.positions is not None
            for position, slot in enumerate(ring.positions, start=1):
                held[slot].append((ring, position))

        out = self._out
        pending: dict[int, tuple[tuple[Node, ...], Node | None]] = {}
        current = 0

        def flush(level: int) -> None:
            late, tail = pending.pop(level, _NO_PENDING)
            self._write_branches(late, depth)
            if tail is not None:
                self._write(tail, depth + 1)

        def close_to(level: int) -> None:
            nonlocal current
            while current > level:
                flush(current)
                out.append(")")
                current -= 1

        if node.leading_bond:
            out.append(node.leading_bond)
        for slot in range(count):
            level = depths[slot]
            if slot in layout.branch_starts:
                close_to(level - 1)
                out.append("(")
                current = level
            else:
                close_to(level)
                if pending.get(level, _NO_PENDING)[1] is not None:
                    raise SerializeError(f"Slot {slot} continues a chain that ends in a tail")
                flush(level)

            bond = layout.bonds.get(slot)
            if bond and slot > 0:
                out.append(bond)
            out.append(_slot_value(layout.atom_values, held[slot], slot))

            for index, is_open in markers.get(slot, ()):
                ring = node.rings[index]
                self._write_marker(ring.ring_number, ring.bonds[-1] if is_open else None, is_open)

            attachments: tuple[Node, ...] = ()
            for ring, position in held[slot]:
                attachments += ring.attachments.get(position, ())
            attachments += layout.attachments.get(slot, ())
            late = min(layout.late_attachments.get(slot, 0), len(attachments))
            split = len(attachments) - late
            self._write_branches(attachments[:split], depth)
            pending[level] = (attachments[split:], layout.tails.get(slot))

        close_to(0)
        flush(0)


def _slot_value(
    atom_values: Mapping[int, str],
    held: list[tuple[Ring, int]],
    slot: int,
) -> str:
    """Atom value of a slot: override, then substitution, then base atom."""
    value = atom_values.get(slot)
    if value is not None:
        return value
    for ring, position in held:
        if position in ring.substitutions:
            return ring.substitutions[position]
    if not held:
        raise SerializeError(f"Slot {slot} belongs to no ring and has no atom value")
    return held[0][0].atoms


def _is_two_digit_marker(text: str) -> bool:
    return len(text) == 3 and text[0] == "%"


def _ring_number_to_smiles(n: int) -> str:
    """Format ring closure digit."""
    if 1 <= n <= 9:
        return str(n)
    if 10 <= n <= MAX_RING_NUMBER:
        return f"%{n}"
    raise SerializeError(f"Ring bond number {n} is outside 1..{MAX_RING_NUMBER}")


def serialize(node: Node, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """Convert a structural tree to a SMILES string.

    Args:
        node: Tree to write.
        max_depth: Deepest node nesting accepted.

    Returns:
        SMILES string.

    Example:
        >>> serialize(Ring(atoms="c", size=6).substitute(1, "n"))
        'n1ccccc1'
    """
    return SmilesWriter(node, max_depth).to_smiles()


to_smiles = serialize
