"""
Command-line interface.

    smilestree roundtrip "c1ccc2ccccc2c1"
    smilestree validate "C1CCCCC=1"
    smilestree tree "CC(=O)C"
    smilestree decompile --no-metadata "c1ccccc1"

Errors are reported as one line on stderr and mapped to exit codes:
2 for lexical and parse errors, 3 for serialization errors, 4 for invalid
tree operations and 5 when the depth cap is exceeded.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from smilestree import __version__
from smilestree.decompiler import PRELUDE, decompile
from smilestree.elements import DEFAULT_MAX_DEPTH
from smilestree.exceptions import EXIT_OK, SmilesError, exit_code_for
from smilestree.parser import parse
from smilestree.roundtrip import RoundTripStatus, validate_round_trip

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smilestree",
        description="Translate SMILES strings to structural trees and back.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log parse and layout decisions to stderr",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=DEFAULT_MAX_DEPTH,
        help="Deepest branch nesting accepted (default: %(default)s)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    roundtrip = commands.add_parser("roundtrip", help="Parse and write back each SMILES")
    roundtrip.add_argument("smiles", nargs="+", help="Input SMILES strings")

    validate = commands.add_parser("validate", help="Report the round-trip status of each SMILES")
    validate.add_argument("smiles", nargs="+", help="Input SMILES strings")

    tree = commands.add_parser("tree", help="Print each parsed tree as JSON")
    tree.add_argument("smiles", nargs="+", help="Input SMILES strings")

    code = commands.add_parser("decompile", help="Print Python code that rebuilds each tree")
    code.add_argument(
        "--no-metadata",
        dest="include_metadata",
        action="store_false",
        help="Omit ring positions and fused-ring layouts",
    )
    code.add_argument("--prefix", default="v", help="Variable name prefix (default: %(default)s)")
    code.add_argument("smiles", nargs="+", help="Input SMILES strings")
    return parser


def _run(args: argparse.Namespace, smiles: str) -> int:
    if args.command == "roundtrip":
        result = validate_round_trip(smiles, args.max_depth)
        print(result.first)
        return EXIT_OK

    if args.command == "validate":
        result = validate_round_trip(smiles, args.max_depth)
        print(f"{result.status.value}\t{smiles}\t{result.first}")
        if not result.perfect:
            print(f"  {result.recommendation}")
        if result.status is RoundTripStatus.UNSTABLE:
            return 1
        return EXIT_OK

    tree = parse(smiles, args.max_depth)
    if args.command == "tree":
        print(json.dumps(tree.to_dict(), indent=2))
    else:
        print(PRELUDE)
        print(decompile(tree, var_prefix=args.prefix, include_metadata=args.include_metadata))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit code.

    With several SMILES arguments every string is processed and the exit
    code of the last failure is returned.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    status = EXIT_OK
    for smiles in args.smiles:
        try:
            code = _run(args, smiles)
        except SmilesError as exc:
            logger.debug("%s failed for %r", args.command, smiles, exc_info=True)
            print(f"error: {str(exc).splitlines()[0]}", file=sys.stderr)
            code = exit_code_for(exc)
        if code != EXIT_OK:
            status = code
    return status


if __name__ == "__main__":
    sys.exit(main())
