"""
Decompiler: structural tree to Python construction code.

The generated code rebuilds the tree with the public constructors and
operations, one assignment per line, children before their parents:

    >>> from smilestree import Ring
    >>> print(decompile(Ring(atoms="c", size=6).substitute(1, "n")))
    v1 = Ring(atoms='c', size=6)
    v2 = v1.substitute(1, 'n')

With ``include_metadata`` (the default) ring positions and fused-ring
layouts are written out, so executing the code reproduces the tree exactly.
Without it, fused rings are rebuilt from their rings alone wherever the
layout engine writes them the same way; the others keep their layout.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Final

from smilestree.exceptions import OperationError, SerializeError
from smilestree.nodes import FusedLayout, FusedRing, Linear, Molecule, Node, Ring
from smilestree.writer import serialize

logger = logging.getLogger(__name__)

# Import line that makes decompiled code executable on its own
PRELUDE: Final[str] = "from smilestree import FusedLayout, FusedRing, Linear, Molecule, Ring"


class Decompiler:
    """Generates construction code for a tree.

    Attributes:
        result_var: Variable holding the rebuilt root after the last call
            to :meth:`decompile`.
    """

    def __init__(self, var_prefix: str = "v", include_metadata: bool = True) -> None:
        if not var_prefix.isidentifier():
            raise OperationError(f"invalid variable prefix {var_prefix!r}", "decompile", var_prefix)
        self._prefix = var_prefix
        self._include_metadata = include_metadata
        self._lines: list[str] = []
        self._counter = 0
        self.result_var: str | None = None

    def decompile(self, node: Node) -> str:
        """Return Python source that rebuilds ``node``."""
        self._lines = []
        self._counter = 0
        self.result_var = self._emit(node)
        return "\n".join(self._lines)

    def _assign(self, expression: str) -> str:
        self._counter += 1
        name = f"{self._prefix}{self._counter}"
        self._lines.append(f"{name} = {expression}")
        return name

    def _emit(self, node: Node) -> str:
        if isinstance(node, Linear):
            return self._emit_linear(node)
        if isinstance(node, Ring):
            return self._emit_ring(node)
        if isinstance(node, FusedRing):
            return self._emit_fused(node)
        if isinstance(node, Molecule):
            return self._emit_molecule(node)
        raise OperationError(f"cannot decompile {type(node).__name__}", "decompile", node)

    def _emit_attachments(self, name: str, attachments) -> str:
        for position, nodes in attachments.items():
            for child in nodes:
                child_name = self._emit(child)
                name = self._assign(f"{name}.attach({position}, {child_name})")
        return name

    def _emit_linear(self, node: Linear) -> str:
        args = repr(list(node.atoms))
        if any(node.bonds):
            args += f", {list(node.bonds)!r}"
        return self._emit_attachments(self._assign(f"Linear({args})"), node.attachments)

    def _emit_ring(self, node: Ring, metadata: bool | None = None) -> str:
        if metadata is None:
            metadata = self._include_metadata
        args = [f"atoms={node.atoms!r}", f"size={node.size}"]
        if node.ring_number != 1:
            args.append(f"ring_number={node.ring_number}")
        if node.offset:
            args.append(f"offset={node.offset}")
        if any(node.bonds):
            args.append(f"bonds={node.bonds!r}")
        if node.leading_bond:
            args.append(f"leading_bond={node.leading_bond!r}")
        if metadata and node.positions is not None:
            args.append(f"positions={node.positions!r}")
        if node.branch_depths is not None and (metadata or node.is_spiro_hint):
            args.append(f"branch_depths={node.branch_depths!r}")

        name = self._assign(f"Ring({', '.join(args)})")
        for position, atom in node.substitutions.items():
            name = self._assign(f"{name}.substitute({position}, {atom!r})")
        return self._emit_attachments(name, node.attachments)

    def _emit_molecule(self, node: Molecule) -> str:
        names = [self._emit(component) for component in node.components]
        args = f"[{', '.join(names)}]"
        if node.disconnected:
            args += ", disconnected=True"
        return self._assign(f"Molecule({args})")

    def _emit_fused(self, node: FusedRing) -> str:
        if node.layout is not None:
            if self._include_metadata:
                return self._emit_with_layout(node)
            return self._emit_rebuilt(node)

        rings = node.rings
        if (
            len(rings) == 2
            and rings[0].offset == 0
            and 0 <= rings[1].offset < rings[0].size
            and rings[0].ring_number != rings[1].ring_number
        ):
            first = self._emit_ring(rings[0])
            second = self._emit_ring(dataclasses.replace(rings[1], offset=0))
            name = self._assign(f"{first}.fuse({rings[1].offset}, {second})")
        else:
            names = [self._emit_ring(ring) for ring in rings]
            name = self._assign(f"FusedRing(rings=({', '.join(names)},))")
        if node.leading_bond:
            name = self._assign(f"{name}.with_leading_bond({node.leading_bond!r})")
        return name

    def _emit_with_layout(self, node: FusedRing) -> str:
        assert node.layout is not None
        ring_names = [self._emit_ring(ring, metadata=True) for ring in node.rings]
        layout_name = self._emit_layout(node.layout)
        args = f"rings=({', '.join(ring_names)},), layout={layout_name}"
        if node.leading_bond:
            args += f", leading_bond={node.leading_bond!r}"
        return self._assign(f"FusedRing({args})")

    def _emit_rebuilt(self, node: FusedRing) -> str:
        """Rebuild an interleaved system from its rings alone.

        The engine-built system is used only when it writes the same SMILES
        as ``node``; otherwise the layout is emitted after all, since chains
        held by the layout (tails, slot attachments, sequential rings) and
        parser slot offsets have no ring-only form.
        """
        bare = tuple(
            dataclasses.replace(
                ring,
                positions=None,
                branch_depths=ring.branch_depths if ring.is_spiro_hint else None,
            )
            for ring in node.rings
        )
        try:
            rebuilt = FusedRing.build(bare, leading_bond=node.leading_bond)
            same = serialize(rebuilt) == serialize(node)
        except (OperationError, SerializeError) as exc:
            logger.debug("layout engine cannot rebuild the fused ring: %s", exc)
            same = False
        if not same:
            logger.debug("fused ring of %d rings keeps its layout", len(node.rings))
            return self._emit_with_layout(node)

        names = [self._emit_ring(ring) for ring in bare]
        name = self._assign(f"FusedRing.build([{', '.join(names)}])")
        if node.leading_bond:
            name = self._assign(f"{name}.with_leading_bond({node.leading_bond!r})")
        return name

    def _emit_layout(self, layout: FusedLayout) -> str:
        args = [f"all_positions=tuple(range({len(layout)}))"]
        depths = {slot: depth for slot, depth in layout.branch_depths.items() if depth}
        if depths:
            args.append(f"branch_depths={depths!r}")
        if layout.branch_starts:
            args.append(f"branch_starts=frozenset({sorted(layout.branch_starts)!r})")
        for field_name in ("ring_order", "atom_values", "bonds", "late_attachments", "classes"):
            value = dict(getattr(layout, field_name))
            if value:
                args.append(f"{field_name}={value!r}")
        if layout.tails:
            tails = {slot: self._emit(tail) for slot, tail in layout.tails.items()}
            args.append("tails={" + ", ".join(f"{s}: {n}" for s, n in tails.items()) + "}")
        if layout.attachments:
            entries = []
            for slot, nodes in layout.attachments.items():
                names = [self._emit(child) for child in nodes]
                entries.append(f"{slot}: ({', '.join(names)},)")
            args.append("attachments={" + ", ".join(entries) + "}")
        return self._assign(f"FusedLayout({', '.join(args)})")


def decompile(node: Node, var_prefix: str = "v", include_metadata: bool = True) -> str:
    """Return Python source that rebuilds ``node``.

    Args:
        node: Tree to decompile.
        var_prefix: Prefix of the generated variable names.
        include_metadata: Write ring positions and fused-ring layouts.

    Returns:
        Source code; the last assignment holds the rebuilt tree.
    """
    return Decompiler(var_prefix, include_metadata).decompile(node)
