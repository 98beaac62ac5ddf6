"""
Custom exceptions for smilestree.

This module defines the exception hierarchy raised by the tokenizer, parser,
tree operations and writer, together with the process exit codes the
command-line wrapper maps them to.
"""

from __future__ import annotations

from typing import Any, Final


class SmilesError(Exception):
    """Base exception for all smilestree errors."""
    
    pass


class _PositionedError(SmilesError):
    """Error tied to a character offset in a SMILES string.
    
    Attributes:
        position: Character position in the SMILES string where error occurred.
        smiles: The original SMILES string being read.
        message: Description of what went wrong.
    """
    
    def __init__(
        self,
        message: str,
        smiles: str | None = None,
        position: int | None = None,
    ) -> None:
        self.message = message
        self.smiles = smiles
        self.position = position
        
        # Build detailed error message
        parts = [message]
        if position is not None:
            parts.append(f" at offset {position}")
        if smiles is not None and position is not None:
            parts.append(f"\n  {smiles}")
            parts.append(f"\n  {' ' * position}^")
        elif smiles is not None:
            parts.append(f" in: {smiles}")
        
        super().__init__("".join(parts))


class LexError(_PositionedError):
    """Malformed token: unterminated bracket, short ``%`` escape, unknown character."""


class ParseError(_PositionedError):
    """Error during SMILES parsing.
    
    Raised for unbalanced branches, unpaired ring bonds, consecutive bond
    markers and ring bonds without a preceding atom.
    """


class DepthError(SmilesError):
    """Recursion cap exceeded while parsing or writing.
    
    Attributes:
        limit: The depth limit that was exceeded.
    """
    
    def __init__(self, message: str, limit: int | None = None) -> None:
        self.message = message
        self.limit = limit
        if limit is not None:
            message = f"{message} (limit {limit})"
        super().__init__(message)


class OperationError(SmilesError):
    """Invalid tree operation.
    
    Attributes:
        operation: Name of the operation that failed.
        argument: The offending argument.
    """
    
    def __init__(
        self,
        message: str,
        operation: str | None = None,
        argument: Any = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.argument = argument
        if operation is not None:
            message = f"{operation}: {message}"
        super().__init__(message)


class SerializeError(SmilesError):
    """Structurally impossible tree handed to the writer."""
    
    pass


class RoundTripError(SmilesError):
    """Strict round-trip validation failed.
    
    Attributes:
        original: The input SMILES.
        output: The SMILES produced from it.
    """
    
    def __init__(self, message: str, original: str, output: str) -> None:
        self.message = message
        self.original = original
        self.output = output
        super().__init__(message)


# Process exit codes for the command-line wrapper
EXIT_OK: Final[int] = 0
EXIT_CODES: Final[dict[type[SmilesError], int]] = {
    LexError: 2,
    ParseError: 2,
    SerializeError: 3,
    OperationError: 4,
    DepthError: 5,
}


def exit_code_for(error: SmilesError) -> int:
    """Return the exit code for an error, falling back to 1 for unmapped types."""
    for cls in type(error).__mro__:
        if cls in EXIT_CODES:
            return EXIT_CODES[cls]
    return 1
