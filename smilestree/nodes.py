"""
Structural model: the SMILES tree.

This module defines the four node variants (Linear, Ring, FusedRing and
Molecule) and the plain-data layout record attached to interleaved fused
rings. Nodes are frozen dataclasses; every operation returns a new node and
shares untouched children with the original.

    >>> benzene = Ring(atoms="c", size=6)
    >>> benzene.substitute(1, "n").smiles
    'n1ccccc1'
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from smilestree.elements import BOND_CHARS, MAX_RING_NUMBER, is_atom_value
from smilestree.exceptions import OperationError

if TYPE_CHECKING:
    from typing import Self


def _empty_mapping() -> Mapping[Any, Any]:
    return MappingProxyType({})


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _check_position(operation: str, position: Any, size: int) -> int:
    """Validate a 1-based position against ``size``."""
    if isinstance(position, bool) or not isinstance(position, int) or not 1 <= position <= size:
        raise OperationError(
            f"position {position!r} out of range 1..{size}",
            operation,
            position,
        )
    return position


def _check_atom(operation: str, value: Any) -> str:
    if not isinstance(value, str) or not is_atom_value(value):
        raise OperationError(f"invalid atom value {value!r}", operation, value)
    return value


def _check_bond(operation: str, bond: Any) -> str | None:
    if bond is not None and bond not in BOND_CHARS:
        raise OperationError(f"invalid bond marker {bond!r}", operation, bond)
    return bond


def _check_node(operation: str, node: Any) -> Node:
    if not isinstance(node, NODE_TYPES):
        raise OperationError(
            f"expected a Linear, Ring, FusedRing or Molecule, got {type(node).__name__}",
            operation,
            node,
        )
    return node


def _as_node_tuple(operation: str, nodes: Any) -> tuple[Node, ...]:
    """Accept a single node or an iterable of nodes."""
    if isinstance(nodes, NODE_TYPES):
        return (nodes,)
    if not isinstance(nodes, Iterable) or isinstance(nodes, str):
        raise OperationError(f"expected node(s), got {nodes!r}", operation, nodes)
    return tuple(_check_node(operation, node) for node in nodes)


def _freeze_attachments(
    operation: str,
    attachments: Mapping[int, Any] | None,
    size: int,
) -> Mapping[int, tuple[Node, ...]]:
    frozen: dict[int, tuple[Node, ...]] = {}
    for position, nodes in (attachments or {}).items():
        _check_position(operation, position, size)
        nodes = _as_node_tuple(operation, nodes)
        if nodes:
            frozen[position] = nodes
    return MappingProxyType(dict(sorted(frozen.items())))


def _with_attachment(
    attachments: Mapping[int, tuple[Node, ...]],
    position: int,
    node: Node,
) -> Mapping[int, tuple[Node, ...]]:
    updated = dict(attachments)
    updated[position] = updated.get(position, ()) + (node,)
    return MappingProxyType(dict(sorted(updated.items())))


def _check_slots(operation: str, slots: Any, size: int, name: str) -> tuple[int, ...] | None:
    if slots is None:
        return None
    slots = tuple(slots)
    if len(slots) != size or any(
        isinstance(s, bool) or not isinstance(s, int) or s < 0 for s in slots
    ):
        raise OperationError(
            f"{name} must hold {size} non-negative integers",
            operation,
            slots,
        )
    return slots


# ---------------------------------------------------------------------------
# Layout metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FusedLayout:
    """Linearization metadata of an interleaved fused ring system.

    Slots are the 0-based emission positions of the system's atoms. Every
    mapping is keyed by slot unless stated otherwise.

    Attributes:
        all_positions: Slots in emission order (always ``0..n-1``).
        branch_depths: Branch depth of each slot relative to slot 0.
        branch_starts: Slots that open a parenthesised branch.
        ring_order: Ring numbers written at a slot, in written order.
        atom_values: Atom values that override the ring-derived value.
        bonds: Bond marker written before a slot's atom.
        tails: Chain continuing inline after a slot, inside its branch.
        late_attachments: How many of a slot's trailing attachments are
            written after its ring-path branches.
        attachments: Attachments on slots no ring owns, or added per slot.
        classes: Ring number to fusion class, for engine-built layouts.
    """

    all_positions: tuple[int, ...]
    branch_depths: Mapping[int, int] = field(default_factory=_empty_mapping)
    branch_starts: frozenset[int] = frozenset()
    ring_order: Mapping[int, tuple[int, ...]] = field(default_factory=_empty_mapping)
    atom_values: Mapping[int, str] = field(default_factory=_empty_mapping)
    bonds: Mapping[int, str] = field(default_factory=_empty_mapping)
    tails: Mapping[int, Node] = field(default_factory=_empty_mapping)
    late_attachments: Mapping[int, int] = field(default_factory=_empty_mapping)
    attachments: Mapping[int, tuple[Node, ...]] = field(default_factory=_empty_mapping)
    classes: Mapping[int, str] = field(default_factory=_empty_mapping)

    def __post_init__(self) -> None:
        op = "FusedLayout"
        positions = tuple(self.all_positions)
        if not positions or positions != tuple(range(len(positions))):
            raise OperationError(
                "all_positions must be the contiguous slots 0..n-1",
                op,
                positions,
            )
        size = len(positions)

        def in_range(slot: Any) -> int:
            if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot < size:
                raise OperationError(f"slot {slot!r} out of range 0..{size - 1}", op, slot)
            return slot

        depths = {slot: 0 for slot in positions}
        for slot, depth in self.branch_depths.items():
            if not isinstance(depth, int) or depth < 0:
                raise OperationError(f"invalid branch depth {depth!r}", op, slot)
            depths[in_range(slot)] = depth
        if depths[0] != 0:
            raise OperationError("slot 0 must be at depth 0", op, depths[0])

        starts = frozenset(in_range(slot) for slot in self.branch_starts)
        if 0 in starts:
            raise OperationError("slot 0 cannot start a branch", op, 0)

        ring_order = {
            in_range(slot): tuple(numbers)
            for slot, numbers in self.ring_order.items()
            if numbers
        }
        atom_values = {
            in_range(slot): _check_atom(op, value)
            for slot, value in self.atom_values.items()
        }
        bonds = {
            in_range(slot): _check_bond(op, bond)
            for slot, bond in self.bonds.items()
            if bond is not None
        }
        tails = {
            in_range(slot): _check_node(op, node)
            for slot, node in self.tails.items()
        }
        late = {
            in_range(slot): count
            for slot, count in self.late_attachments.items()
            if count
        }
        attachments = {}
        for slot, nodes in self.attachments.items():
            nodes = _as_node_tuple(op, nodes)
            if nodes:
                attachments[in_range(slot)] = nodes

        object.__setattr__(self, "all_positions", positions)
        object.__setattr__(self, "branch_depths", MappingProxyType(depths))
        object.__setattr__(self, "branch_starts", starts)
        object.__setattr__(self, "ring_order", MappingProxyType(dict(sorted(ring_order.items()))))
        object.__setattr__(self, "atom_values", MappingProxyType(dict(sorted(atom_values.items()))))
        object.__setattr__(self, "bonds", MappingProxyType(dict(sorted(bonds.items()))))
        object.__setattr__(self, "tails", MappingProxyType(dict(sorted(tails.items()))))
        object.__setattr__(self, "late_attachments", MappingProxyType(dict(sorted(late.items()))))
        object.__setattr__(self, "attachments", MappingProxyType(dict(sorted(attachments.items()))))
        object.__setattr__(self, "classes", MappingProxyType(dict(self.classes)))

    def __len__(self) -> int:
        return len(self.all_positions)

    @classmethod
    def from_slots(cls, slots: Iterable[Mapping[str, Any]]) -> FusedLayout:
        """Build a layout from per-slot descriptions.

        Each entry is a mapping with ``position`` and ``depth`` and the
        optional keys ``value``, ``bond``, ``rings`` (ring numbers written at
        the slot) and ``branch_start``.

        Example:
            >>> FusedLayout.from_slots([
            ...     {"position": 0, "depth": 0, "rings": [1]},
            ...     {"position": 1, "depth": 0},
            ... ]).branch_depths[1]
            0
        """
        entries = sorted(slots, key=lambda entry: entry["position"])
        depths: dict[int, int] = {}
        starts: set[int] = set()
        ring_order: dict[int, tuple[int, ...]] = {}
        values: dict[int, str] = {}
        bonds: dict[int, str] = {}

        for entry in entries:
            slot = entry["position"]
            depths[slot] = entry.get("depth", 0)
            if entry.get("branch_start"):
                starts.add(slot)
            elif slot > 0 and depths[slot] > depths.get(slot - 1, 0):
                starts.add(slot)
            if entry.get("rings"):
                ring_order[slot] = tuple(entry["rings"])
            if entry.get("value") is not None:
                values[slot] = entry["value"]
            if entry.get("bond") is not None:
                bonds[slot] = entry["bond"]

        return cls(
            all_positions=tuple(entry["position"] for entry in entries),
            branch_depths=depths,
            branch_starts=frozenset(starts),
            ring_order=ring_order,
            atom_values=values,
            bonds=bonds,
        )

    def replace(self, **changes: Any) -> FusedLayout:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_positions": list(self.all_positions),
            "branch_depths": {str(k): v for k, v in self.branch_depths.items()},
            "branch_starts": sorted(self.branch_starts),
            "ring_order": {str(k): list(v) for k, v in self.ring_order.items()},
            "atom_values": {str(k): v for k, v in self.atom_values.items()},
            "bonds": {str(k): v for k, v in self.bonds.items()},
            "tails": {str(k): v.to_dict() for k, v in self.tails.items()},
            "late_attachments": {str(k): v for k, v in self.late_attachments.items()},
            "attachments": {
                str(k): [node.to_dict() for node in v] for k, v in self.attachments.items()
            },
            "classes": {str(k): v for k, v in self.classes.items()},
        }


# ---------------------------------------------------------------------------
# Shared node behaviour
# ---------------------------------------------------------------------------

class _NodeMixin:
    """Behaviour common to every node variant."""

    __slots__ = ()

    @property
    def smiles(self) -> str:
        """SMILES text of this node."""
        from smilestree.writer import serialize
        return serialize(self)  # type: ignore[arg-type]

    def to_code(self, var_prefix: str = "v", include_metadata: bool = True) -> str:
        """Python source that rebuilds this node with the public constructors."""
        from smilestree.decompiler import decompile
        return decompile(self, var_prefix=var_prefix, include_metadata=include_metadata)  # type: ignore[arg-type]

    def clone(self) -> Self:
        """Structural copy that shares the (immutable) children."""
        return dataclasses.replace(self)  # type: ignore[type-var]

    def with_leading_bond(self, bond: str | None) -> Self:
        """Return a copy bonded to its predecessor with ``bond``."""
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Linear
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Linear(_NodeMixin):
    """An unbranched chain of atoms with optional branch attachments.

    Attributes:
        atoms: Atom values in chain order.
        bonds: Bond marker written before each atom. ``bonds[0]`` is the
            leading bond to whatever precedes the chain. The constructor
            also accepts one bond fewer than atoms (bonds between
            consecutive atoms only).
        attachments: Branches keyed by 1-based atom position.

    Example:
        >>> Linear(["C", "C", "O"]).smiles
        'CCO'
        >>> Linear(["C", "C"], ["="]).smiles
        'C=C'
    """

    atoms: tuple[str, ...]
    bonds: tuple[str | None, ...] = ()
    attachments: Mapping[int, tuple[Node, ...]] = field(default_factory=_empty_mapping)

    def __post_init__(self) -> None:
        op = "Linear"
        if isinstance(self.atoms, str):
            raise OperationError("atoms must be a sequence of atom values", op, self.atoms)
        atoms = tuple(_check_atom(op, atom) for atom in self.atoms)
        if not atoms:
            raise OperationError("a chain needs at least one atom", op, atoms)

        bonds = tuple(self.bonds or ())
        if not bonds:
            bonds = (None,) * len(atoms)
        elif len(bonds) == len(atoms) - 1:
            bonds = (None,) + bonds
        elif len(bonds) != len(atoms):
            raise OperationError(
                f"expected {len(atoms) - 1} or {len(atoms)} bonds, got {len(bonds)}",
                op,
                bonds,
            )
        bonds = tuple(_check_bond(op, bond) for bond in bonds)

        object.__setattr__(self, "atoms", atoms)
        object.__setattr__(self, "bonds", bonds)
        object.__setattr__(
            self, "attachments", _freeze_attachments(op, self.attachments, len(atoms))
        )

    def __len__(self) -> int:
        return len(self.atoms)

    @property
    def leading_bond(self) -> str | None:
        return self.bonds[0]

    def with_leading_bond(self, bond: str | None) -> Linear:
        return dataclasses.replace(self, bonds=(bond,) + self.bonds[1:])

    def attach(self, position: int, subtree: Node) -> Linear:
        """Attach ``subtree`` as a branch on the atom at ``position``.

        Attachments at the same position keep insertion order.

        Raises:
            OperationError: If the position is out of range or the subtree
                is not a node.
        """
        _check_position("Linear.attach", position, len(self.atoms))
        _check_node("Linear.attach", subtree)
        return dataclasses.replace(
            self, attachments=_with_attachment(self.attachments, position, subtree)
        )

    def branch(self, position: int, *subtrees: Node) -> Linear:
        """Attach several branches at one position, in order."""
        result = self
        for subtree in subtrees:
            result = result.attach(position, subtree)
        return result

    def branch_at(self, branch_map: Mapping[int, Node | Iterable[Node]]) -> Linear:
        """Attach branches at several positions (``{position: subtree(s)}``)."""
        result = self
        for position, subtrees in branch_map.items():
            result = result.branch(position, *_as_node_tuple("Linear.branch_at", subtrees))
        return result

    def concat(self, other: Node) -> Linear | Molecule:
        """Append ``other`` after this chain.

        Two chains merge into one Linear (the other chain's leading bond
        becomes the joining bond); anything else yields a Molecule.
        """
        _check_node("Linear.concat", other)
        if not isinstance(other, Linear):
            return Molecule((self, other))
        shift = len(self.atoms)
        attachments = dict(self.attachments)
        for position, nodes in other.attachments.items():
            attachments[position + shift] = nodes
        return Linear(self.atoms + other.atoms, self.bonds + other.bonds, attachments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "linear",
            "atoms": list(self.atoms),
            "bonds": list(self.bonds),
            "attachments": _attachments_dict(self.attachments),
        }


# ---------------------------------------------------------------------------
# Ring
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Ring(_NodeMixin):
    """A single ring of ``size`` atoms sharing one base atom value.

    Attributes:
        atoms: Base atom value for every position.
        size: Number of ring atoms (>= 3).
        ring_number: Ring-bond number used for the closure.
        offset: Placement inside a fused system.
        substitutions: Per-position atom values overriding the base.
        attachments: Branches keyed by 1-based ring position.
        bonds: ``size`` bond markers; ``bonds[i]`` joins positions i+1 and
            i+2 and the last entry is the closure bond.
        leading_bond: Bond into position 1 from the preceding atom.
        positions: Global slot of each position in a fused linearization.
        branch_depths: Per-position branch-depth hints.
    """

    atoms: str
    size: int
    ring_number: int = 1
    offset: int = 0
    substitutions: Mapping[int, str] = field(default_factory=_empty_mapping)
    attachments: Mapping[int, tuple[Node, ...]] = field(default_factory=_empty_mapping)
    bonds: tuple[str | None, ...] = ()
    leading_bond: str | None = None
    positions: tuple[int, ...] | None = None
    branch_depths: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        op = "Ring"
        _check_atom(op, self.atoms)
        size = self.size
        if isinstance(size, bool) or not isinstance(size, int) or size < 3:
            raise OperationError(f"ring size must be an integer >= 3, got {size!r}", op, size)
        number = self.ring_number
        if isinstance(number, bool) or not isinstance(number, int) or not 1 <= number <= MAX_RING_NUMBER:
            raise OperationError(
                f"ring number must be in 1..{MAX_RING_NUMBER}, got {number!r}",
                op,
                number,
            )
        if isinstance(self.offset, bool) or not isinstance(self.offset, int) or self.offset < 0:
            raise OperationError(f"offset must be >= 0, got {self.offset!r}", op, self.offset)

        substitutions = {}
        for position, value in (self.substitutions or {}).items():
            _check_position(op, position, size)
            if _check_atom(op, value) != self.atoms:
                substitutions[position] = value

        bonds = tuple(self.bonds or ())
        if not bonds:
            bonds = (None,) * size
        elif len(bonds) == size - 1:
            bonds = bonds + (None,)
        elif len(bonds) != size:
            raise OperationError(
                f"expected {size - 1} or {size} bonds, got {len(bonds)}",
                op,
                bonds,
            )
        bonds = tuple(_check_bond(op, bond) for bond in bonds)
        _check_bond(op, self.leading_bond)

        positions = _check_slots(op, self.positions, size, "positions")
        if positions is not None and len(set(positions)) != size:
            raise OperationError("positions must be distinct", op, positions)

        object.__setattr__(self, "substitutions", MappingProxyType(dict(sorted(substitutions.items()))))
        object.__setattr__(self, "attachments", _freeze_attachments(op, self.attachments, size))
        object.__setattr__(self, "bonds", bonds)
        object.__setattr__(self, "positions", positions)
        object.__setattr__(
            self, "branch_depths", _check_slots(op, self.branch_depths, size, "branch_depths")
        )

    def __len__(self) -> int:
        return self.size

    def atom_at(self, position: int) -> str:
        """Atom value at a 1-based position."""
        _check_position("Ring.atom_at", position, self.size)
        return self.substitutions.get(position, self.atoms)

    def with_leading_bond(self, bond: str | None) -> Ring:
        return dataclasses.replace(self, leading_bond=bond)

    @property
    def is_spiro_hint(self) -> bool:
        """True when ``branch_depths`` mark a single shared slot (``[0, >0, ...]``)."""
        depths = self.branch_depths
        return depths is not None and depths[0] == 0 and all(d > 0 for d in depths[1:])

    def attach(self, position: int, subtree: Node) -> Ring:
        """Attach ``subtree`` as a branch on the ring atom at ``position``.

        Raises:
            OperationError: If the position is out of range or the subtree
                is not a node.
        """
        _check_position("Ring.attach", position, self.size)
        _check_node("Ring.attach", subtree)
        return dataclasses.replace(
            self, attachments=_with_attachment(self.attachments, position, subtree)
        )

    def substitute(self, position: int, atom: str) -> Ring:
        """Replace the atom at ``position``.

        Substituting the base atom removes the entry, so substituting and
        then restoring yields a ring equal to the original.
        """
        _check_position("Ring.substitute", position, self.size)
        _check_atom("Ring.substitute", atom)
        substitutions = dict(self.substitutions)
        if atom == self.atoms:
            substitutions.pop(position, None)
        else:
            substitutions[position] = atom
        return dataclasses.replace(self, substitutions=substitutions)

    def substitute_multiple(self, substitution_map: Mapping[int, str]) -> Ring:
        """Apply ``substitute`` for each ``{position: atom}`` entry in turn."""
        result = self
        for position, atom in substitution_map.items():
            result = result.substitute(position, atom)
        return result

    def fuse(self, offset: int, other: Ring) -> FusedRing:
        """Fuse ``other`` onto this ring at ``offset``.

        The result uses the offset layout: both rings are laid over one atom
        sequence, this ring at offset 0 and ``other`` at ``offset``.

        Example:
            >>> big = Ring(atoms="C", size=10, ring_number=1)
            >>> big.fuse(2, Ring(atoms="C", size=6, ring_number=2)).smiles
            'C1CC2CCCCC2CC1'
        """
        if not isinstance(other, Ring):
            raise OperationError("can only fuse a Ring", "Ring.fuse", other)
        if isinstance(offset, bool) or not isinstance(offset, int) or not 0 <= offset < self.size:
            raise OperationError(
                f"offset {offset!r} out of range 0..{self.size - 1}",
                "Ring.fuse",
                offset,
            )
        if offset == 0 and other.size == self.size:
            raise OperationError(
                "a ring of the same size at offset 0 closes the same bond twice",
                "Ring.fuse",
                offset,
            )
        number = other.ring_number
        if number == self.ring_number:
            number = self.ring_number + 1
        first = dataclasses.replace(self, offset=0, positions=None, leading_bond=None)
        second = dataclasses.replace(
            other, offset=offset, ring_number=number, positions=None, leading_bond=None
        )
        return FusedRing((first, second), leading_bond=self.leading_bond)

    def concat(self, other: Node) -> Molecule:
        """Wrap this ring and ``other`` in a Molecule."""
        _check_node("Ring.concat", other)
        return Molecule((self, other))

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": "ring",
            "atoms": self.atoms,
            "size": self.size,
            "ring_number": self.ring_number,
            "offset": self.offset,
            "substitutions": {str(k): v for k, v in self.substitutions.items()},
            "attachments": _attachments_dict(self.attachments),
            "bonds": list(self.bonds),
            "leading_bond": self.leading_bond,
        }
        if self.positions is not None:
            data["positions"] = list(self.positions)
        if self.branch_depths is not None:
            data["branch_depths"] = list(self.branch_depths)
        return data


# ---------------------------------------------------------------------------
# FusedRing
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FusedRing(_NodeMixin):
    """Rings that share atoms, written as one linearization.

    Without a layout the rings are laid over a single atom sequence by
    offset (the form :meth:`Ring.fuse` builds). With a layout every ring
    carries ``positions`` and the writer reproduces the interleaved order
    the layout describes; use :meth:`build` to compute one.

    Attributes:
        rings: Member rings, base ring first.
        layout: Interleaved linearization, or None for the offset layout.
        leading_bond: Bond into the first slot from the preceding atom.
    """

    rings: tuple[Ring, ...]
    layout: FusedLayout | None = None
    leading_bond: str | None = None

    def __post_init__(self) -> None:
        op = "FusedRing"
        rings = tuple(self.rings)
        if not rings:
            raise OperationError("a fused ring needs at least one ring", op, rings)
        for ring in rings:
            if not isinstance(ring, Ring):
                raise OperationError(f"expected Ring, got {type(ring).__name__}", op, ring)
        if self.layout is not None:
            if not isinstance(self.layout, FusedLayout):
                raise OperationError("layout must be a FusedLayout", op, self.layout)
            count = len(self.layout)
            for ring in rings:
                if ring.positions is None:
                    raise OperationError(
                        f"ring {ring.ring_number} has no positions for the layout",
                        op,
                        ring.ring_number,
                    )
                if max(ring.positions) >= count:
                    raise OperationError(
                        f"ring {ring.ring_number} positions exceed {count} slots",
                        op,
                        ring.positions,
                    )
        _check_bond(op, self.leading_bond)
        object.__setattr__(self, "rings", rings)

    @classmethod
    def build(
        cls,
        rings: Iterable[Ring],
        layout: FusedLayout | None = None,
        leading_bond: str | None = None,
    ) -> FusedRing:
        """Build an interleaved fused ring.

        When ``layout`` is None the layout engine computes the
        linearization from the rings' offsets; otherwise the rings must
        already carry positions matching ``layout``.

        Example:
            >>> FusedRing.build([
            ...     Ring(atoms="c", size=6, ring_number=1),
            ...     Ring(atoms="c", size=6, ring_number=2, offset=3),
            ... ]).smiles
            'c1ccc2ccccc2c1'
        """
        rings = tuple(rings)
        if layout is None:
            from smilestree.layout import compute_layout
            rings, layout = compute_layout(rings)
        return cls(rings, layout, leading_bond)

    def with_leading_bond(self, bond: str | None) -> FusedRing:
        return dataclasses.replace(self, leading_bond=bond)

    def with_layout(self) -> FusedRing:
        """Return this system with an engine-computed layout if it has none."""
        if self.layout is not None:
            return self
        return FusedRing.build(self.rings, leading_bond=self.leading_bond)

    @property
    def ring_numbers(self) -> tuple[int, ...]:
        return tuple(ring.ring_number for ring in self.rings)

    def _ring_index(self, operation: str, number: int) -> int:
        for index, ring in enumerate(self.rings):
            if ring.ring_number == number:
                return index
        raise OperationError(f"no ring numbered {number!r}", operation, number)

    def get_ring(self, number: int) -> Ring:
        """Return the first member ring with ring number ``number``."""
        return self.rings[self._ring_index("FusedRing.get_ring", number)]

    def branch_crossing_rings(self) -> tuple[int, ...]:
        """Ring numbers whose open and close slots sit at different depths."""
        if self.layout is None:
            return ()
        depths = self.layout.branch_depths
        return tuple(
            ring.ring_number
            for ring in self.rings
            if ring.positions is not None
            and depths[ring.positions[0]] != depths[ring.positions[-1]]
        )

    def _slot_of(self, ring: Ring, position: int) -> int:
        if ring.positions is not None:
            return ring.positions[position - 1]
        return ring.offset + position - 1

    def _rings_holding(self, slot: int) -> list[tuple[int, int]]:
        """(ring index, 1-based position) of every ring holding ``slot``."""
        held = []
        for index, ring in enumerate(self.rings):
            for position in range(1, ring.size + 1):
                if self._slot_of(ring, position) == slot:
                    held.append((index, position))
                    break
        return held

    def _engine_placeable(self) -> bool:
        """True when the layout engine can rebuild the layout from the rings alone."""
        layout = self.layout
        if layout is None:
            return True
        if layout.tails or layout.attachments or layout.late_attachments:
            return False
        return all(
            layout.classes.get(ring.ring_number) not in (None, "sequential")
            for ring in self.rings
        )

    def add_ring(self, offset: int, ring: Ring) -> FusedRing:
        """Append ``ring`` at ``offset``.

        On an offset-layout system the ring must overlap the existing atom
        sequence. On an interleaved system the linearization is recomputed
        by the layout engine from every ring's offset, which is only
        possible when the engine built the layout and every atom belongs to
        a ring.

        Raises:
            OperationError: If the layout was read from SMILES or carries
                chains outside the rings (tails, slot attachments or
                sequential rings). Use :meth:`add_sequential_rings` there.
        """
        op = "FusedRing.add_ring"
        if not isinstance(ring, Ring):
            raise OperationError("can only add a Ring", op, ring)
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise OperationError(f"invalid offset {offset!r}", op, offset)
        if self.layout is not None and not self._engine_placeable():
            raise OperationError(
                "ring offsets of this fused ring cannot be re-placed by the layout engine",
                op,
                offset,
            )
        number = ring.ring_number
        if number in self.ring_numbers:
            number = max(self.ring_numbers) + 1
        added = dataclasses.replace(
            ring, offset=offset, ring_number=number, positions=None, leading_bond=None
        )
        if self.layout is None:
            end = max(r.offset + r.size for r in self.rings)
            if offset >= end:
                raise OperationError(
                    f"offset {offset} leaves a gap after slot {end - 1}",
                    op,
                    offset,
                )
            if any(r.offset == offset and r.size == ring.size for r in self.rings):
                raise OperationError(
                    f"ring {number} would close the same bond as an existing ring",
                    op,
                    offset,
                )
            return dataclasses.replace(self, rings=self.rings + (added,))
        bare = tuple(dataclasses.replace(r, positions=None) for r in self.rings)
        return FusedRing.build(bare + (added,), leading_bond=self.leading_bond)

    def substitute_in_ring(self, number: int, position: int, atom: str) -> FusedRing:
        """Substitute ``atom`` at ``position`` of ring ``number``.

        A slot shared with other rings is one atom, so every ring holding
        the slot is updated.
        """
        op = "FusedRing.substitute_in_ring"
        index = self._ring_index(op, number)
        target = self.rings[index]
        _check_position(op, position, target.size)
        _check_atom(op, atom)
        slot = self._slot_of(target, position)

        rings = list(self.rings)
        for held_index, held_position in self._rings_holding(slot):
            rings[held_index] = rings[held_index].substitute(held_position, atom)

        layout = self.layout
        if layout is not None and slot in layout.atom_values:
            values = dict(layout.atom_values)
            del values[slot]
            layout = layout.replace(atom_values=values)
        return dataclasses.replace(self, rings=tuple(rings), layout=layout)

    def attach_to_ring(self, number: int, position: int, subtree: Node) -> FusedRing:
        """Attach ``subtree`` at ``position`` of ring ``number``."""
        op = "FusedRing.attach_to_ring"
        index = self._ring_index(op, number)
        target = self.rings[index]
        _check_position(op, position, target.size)
        _check_node(op, subtree)

        rings = list(self.rings)
        rings[index] = target.attach(position, subtree)

        layout = self.layout
        slot = self._slot_of(target, position)
        if layout is not None and slot in layout.late_attachments:
            # Keep the new branch after the ones already written late
            late = dict(layout.late_attachments)
            late[slot] += 1
            layout = layout.replace(late_attachments=late)
        return dataclasses.replace(self, rings=tuple(rings), layout=layout)

    def renumber(self, start: int = 1) -> FusedRing:
        """Reassign ring numbers ``start, start+1, ...`` in ring order."""
        op = "FusedRing.renumber"
        if isinstance(start, bool) or not isinstance(start, int) or start < 1:
            raise OperationError(f"invalid start {start!r}", op, start)
        if start + len(self.rings) - 1 > MAX_RING_NUMBER:
            raise OperationError(f"start {start} exceeds ring-number range", op, start)

        rings = tuple(
            dataclasses.replace(ring, ring_number=start + index)
            for index, ring in enumerate(self.rings)
        )
        layout = self.layout
        if layout is not None:
            from smilestree.layout import ring_markers
            ring_order = {
                slot: tuple(start + index for index, _ in markers)
                for slot, markers in ring_markers(self).items()
            }
            classes = {
                start + index: layout.classes[ring.ring_number]
                for index, ring in enumerate(self.rings)
                if ring.ring_number in layout.classes
            }
            layout = layout.replace(ring_order=ring_order, classes=classes)
        return dataclasses.replace(self, rings=rings, layout=layout)

    def add_sequential_rings(
        self,
        seq_rings: Iterable[Ring],
        *,
        chain_atoms: Iterable[Iterable[str] | None] | None = None,
        depths: Iterable[int] | None = None,
        atom_attachments: Mapping[int, Node | Iterable[Node]] | None = None,
    ) -> FusedRing:
        """Append rings that follow the fused core in the linearization.

        Args:
            seq_rings: Rings to append, in order.
            chain_atoms: Per ring, linker atom values written before it.
            depths: Per ring, branch depth relative to the first slot.
            atom_attachments: Attachments keyed by global slot.

        Returns:
            A new interleaved FusedRing.
        """
        from smilestree.layout import append_sequential_rings
        return append_sequential_rings(
            self.with_layout(),
            tuple(seq_rings),
            chain_atoms=None if chain_atoms is None else tuple(chain_atoms),
            depths=None if depths is None else tuple(depths),
            atom_attachments=atom_attachments,
        )

    def add_sequential_atom_attachment(self, slot: int, subtree: Node) -> FusedRing:
        """Attach ``subtree`` at a global slot of the linearization."""
        op = "FusedRing.add_sequential_atom_attachment"
        fused = self.with_layout()
        layout = fused.layout
        assert layout is not None
        if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot < len(layout):
            raise OperationError(f"slot {slot!r} out of range 0..{len(layout) - 1}", op, slot)
        _check_node(op, subtree)
        attachments = dict(layout.attachments)
        attachments[slot] = attachments.get(slot, ()) + (subtree,)
        return dataclasses.replace(fused, layout=layout.replace(attachments=attachments))

    def concat(self, other: Node) -> Molecule:
        _check_node("FusedRing.concat", other)
        return Molecule((self, other))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "fused_ring",
            "rings": [ring.to_dict() for ring in self.rings],
            "leading_bond": self.leading_bond,
            "layout": None if self.layout is None else self.layout.to_dict(),
        }


# ---------------------------------------------------------------------------
# Molecule
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Molecule(_NodeMixin):
    """Components concatenated in emission order.

    Attributes:
        components: Child nodes in order.
        disconnected: When True the components are separate fragments
            written with ``.`` between them.
    """

    components: tuple[Node, ...] = ()
    disconnected: bool = False

    def __post_init__(self) -> None:
        components = tuple(_check_node("Molecule", node) for node in self.components)
        object.__setattr__(self, "components", components)

    def __len__(self) -> int:
        return len(self.components)

    def _check_index(self, operation: str, index: Any) -> int:
        count = len(self.components)
        if isinstance(index, bool) or not isinstance(index, int) or not -count <= index < count:
            raise OperationError(f"component index {index!r} out of range", operation, index)
        return index

    def with_leading_bond(self, bond: str | None) -> Molecule:
        if not self.components:
            raise OperationError("empty molecule has no leading atom", "Molecule.with_leading_bond")
        first = self.components[0].with_leading_bond(bond)
        return dataclasses.replace(self, components=(first,) + self.components[1:])

    def append(self, component: Node) -> Molecule:
        _check_node("Molecule.append", component)
        return dataclasses.replace(self, components=self.components + (component,))

    def prepend(self, component: Node) -> Molecule:
        _check_node("Molecule.prepend", component)
        return dataclasses.replace(self, components=(component,) + self.components)

    def concat(self, other: Node) -> Molecule:
        """Append ``other``, splicing its components in when it is a Molecule of the same kind."""
        _check_node("Molecule.concat", other)
        if isinstance(other, Molecule) and other.disconnected == self.disconnected:
            return dataclasses.replace(self, components=self.components + other.components)
        return self.append(other)

    def get_component(self, index: int) -> Node:
        return self.components[self._check_index("Molecule.get_component", index)]

    def replace_component(self, index: int, node: Node) -> Molecule:
        index = self._check_index("Molecule.replace_component", index)
        _check_node("Molecule.replace_component", node)
        components = list(self.components)
        components[index] = node
        return dataclasses.replace(self, components=tuple(components))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "molecule",
            "components": [node.to_dict() for node in self.components],
            "disconnected": self.disconnected,
        }


Node = Linear | Ring | FusedRing | Molecule
NODE_TYPES: tuple[type, ...] = (Linear, Ring, FusedRing, Molecule)


def _attachments_dict(attachments: Mapping[int, tuple[Node, ...]]) -> dict[str, list[dict[str, Any]]]:
    return {
        str(position): [node.to_dict() for node in nodes]
        for position, nodes in attachments.items()
    }


def repeat(node: Node, count: int) -> Node:
    """Concatenate ``count`` copies of ``node``.

    Chains merge into a single Linear; other nodes become a Molecule.

    Example:
        >>> repeat(Linear(["C", "O"]), 3).smiles
        'COCOCO'
    """
    _check_node("repeat", node)
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise OperationError(f"count must be >= 1, got {count!r}", "repeat", count)
    if isinstance(node, Linear):
        result: Linear | Molecule = node
        for _ in range(count - 1):
            result = result.concat(node)
        return result
    return Molecule((node,) * count)
