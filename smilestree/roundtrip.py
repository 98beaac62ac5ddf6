"""
Round-trip validation.

Parses a SMILES string, writes it back, and parses and writes the result a
second time. A string is *perfect* when the first output equals the input,
and *stabilized* when only the second output equals the first (the writer
moved a ring-bond marker or bond to its canonical place).
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum

from smilestree.elements import DEFAULT_MAX_DEPTH
from smilestree.exceptions import RoundTripError
from smilestree.nodes import Node
from smilestree.parser import parse
from smilestree.writer import serialize

logger = logging.getLogger(__name__)


class RoundTripStatus(str, Enum):
    """Outcome of :func:`validate_round_trip`."""

    PERFECT = "perfect"
    STABILIZED = "stabilized"
    UNSTABLE = "unstable"

    def __str__(self) -> str:
        return self.value


_RECOMMENDATIONS = {
    RoundTripStatus.PERFECT: "SMILES round-trips perfectly. No action needed.",
    RoundTripStatus.STABILIZED: "SMILES stabilizes on second parse. Use the normalized form: {first}",
    RoundTripStatus.UNSTABLE: "SMILES does not stabilize after two round-trips. Please report it as a bug.",
}


@dataclass(frozen=True, slots=True)
class RoundTripResult:
    """Result of a two-pass round trip.

    Attributes:
        original: Input SMILES.
        first: Output of parsing and writing ``original``.
        second: Output of parsing and writing ``first``.
        status: Perfect, stabilized or unstable.
        tree: Tree parsed from ``original``.
    """

    original: str
    first: str
    second: str
    status: RoundTripStatus
    tree: Node

    @property
    def perfect(self) -> bool:
        return self.status is RoundTripStatus.PERFECT

    @property
    def stabilizes(self) -> bool:
        return self.status is not RoundTripStatus.UNSTABLE

    @property
    def recommendation(self) -> str:
        return _RECOMMENDATIONS[self.status].format(first=self.first)


def validate_round_trip(smiles: str, max_depth: int = DEFAULT_MAX_DEPTH) -> RoundTripResult:
    """Parse and write ``smiles`` twice and classify the result.

    Raises:
        LexError, ParseError, DepthError: If ``smiles`` does not parse.
        SerializeError: If the parsed tree cannot be written.

    Example:
        >>> validate_round_trip("CC(=O)C").status
        <RoundTripStatus.PERFECT: 'perfect'>
    """
    tree = parse(smiles, max_depth)
    first = serialize(tree, max_depth)
    if first == smiles:
        status = RoundTripStatus.PERFECT
        second = first
    else:
        second = serialize(parse(first, max_depth), max_depth)
        status = RoundTripStatus.STABILIZED if second == first else RoundTripStatus.UNSTABLE
    logger.debug("round trip of %r: %s", smiles, status.value)
    return RoundTripResult(smiles, first, second, status, tree)


def is_valid_round_trip(smiles: str) -> bool:
    """True when ``smiles`` round-trips perfectly."""
    return validate_round_trip(smiles).perfect


def stabilizes(smiles: str) -> bool:
    """True when ``smiles`` round-trips perfectly or after one pass."""
    return validate_round_trip(smiles).stabilizes


def normalize(smiles: str) -> str:
    """Return the written form of ``smiles`` after one round trip.

    Use :func:`stabilizes` first when the result must be a fixed point.

    Example:
        >>> normalize("C1CCCCC=1")
        'C=1CCCCC1'
    """
    return serialize(parse(smiles))


def parse_with_validation(
    smiles: str,
    *,
    silent: bool = False,
    strict: bool = False,
) -> Node:
    """Parse ``smiles`` and check that it round-trips.

    Args:
        smiles: SMILES string.
        silent: Suppress the warning for imperfect round trips.
        strict: Also raise when the round trip is not perfect.

    Returns:
        The parsed tree.

    Raises:
        RoundTripError: In strict mode, if the round trip is not perfect.
    """
    result = validate_round_trip(smiles)
    if result.perfect:
        return result.tree

    if result.stabilizes:
        if not silent:
            warnings.warn(
                f"SMILES round-trip notice: {smiles!r} is written as {result.first!r}. "
                "Use the normalized form for consistent results."
            )
        if strict:
            raise RoundTripError(
                f"Round trip not perfect: {smiles!r} -> {result.first!r}",
                smiles,
                result.first,
            )
        return result.tree

    if not silent:
        warnings.warn(
            f"SMILES round-trip error: {smiles!r} -> {result.first!r} -> "
            f"{result.second!r}. {result.recommendation}"
        )
    if strict:
        raise RoundTripError(f"SMILES does not stabilize. {result.recommendation}", smiles, result.second)
    return result.tree
