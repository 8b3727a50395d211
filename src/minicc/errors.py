"""
minicc Error Hierarchy
======================

This module defines the root of the exception hierarchy for minicc.
All exceptions raised by the toolchain inherit from MiniCError, allowing
callers to catch every minicc failure with a single except clause.

Exception Hierarchy
-------------------
MiniCError (base)
├── CompileError (minicc.compiler.errors)
│   ├── LexError - character the lexer cannot classify
│   ├── LiteralOverflowError - integer literal wider than 64 bits
│   └── ParseError - token that fits no grammar alternative
└── EmulatorError (minicc.emulator.machine)
    - fault while executing generated assembly

Design Philosophy
-----------------
Compile errors capture the source location (filename, line, column) of
the offending character or token. Messages follow this format:

    filename:line:column: error: description
        source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass


# =============================================================================
# Base Exception Class
# =============================================================================

class MiniCError(Exception):
    """
    Base exception for all minicc errors.

        try:
            compile_c("return 1 +;")
        except MiniCError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Tokens and syntax nodes carry one of these so diagnostics can point
    at the exact character that triggered them.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"
