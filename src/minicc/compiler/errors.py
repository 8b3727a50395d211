"""
Compiler Error Hierarchy
========================

This module defines the exceptions raised by the lexer, parser and code
generator. All of them inherit from CompileError, which itself inherits
from MiniCError.

Exception Hierarchy
-------------------
CompileError (base for all compilation errors)
├── LexError - the lexer met a character it cannot classify
│   └── InvalidCharacterError - character outside the language
├── LiteralOverflowError - integer literal exceeds the 64-bit signed range
└── ParseError - token sequence does not match the grammar
    ├── UnexpectedTokenError - token fits none of the alternatives
    ├── MissingTokenError - required token (';', ')', ...) absent
    ├── InvalidLValueError - assignment target is not a variable
    └── NestingTooDeepError - nesting beyond the parser limit

Every error is fatal: it is raised where it is detected and aborts the
whole compilation. Nothing is collected or recovered from.

Example:
    prog.c:1:10: error: unexpected token ';'
        return 1 +;
                 ^
    hint: expected expression
"""

from typing import Optional

from minicc.errors import MiniCError, SourceLocation


# =============================================================================
# Base Compile Exception
# =============================================================================

class CompileError(MiniCError):
    """
    Base exception for all compilation errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

            prog.c:1:8: error: invalid character '@' (0x40)
                return @;
                       ^
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        # Source context with caret pointer
        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Lexical Errors
# =============================================================================

class LexError(CompileError):
    """
    Lexical error in source text.

    Raised when the lexer cannot turn the characters at the current
    position into a token:
        - a character outside the language
        - '!' not followed by '='
    """
    pass


class InvalidCharacterError(LexError):
    """Character that does not start any token."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"invalid character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


class LiteralOverflowError(CompileError):
    """
    Integer literal that does not fit in a 64-bit signed integer.

    The largest accepted literal is 9223372036854775807.
    """

    def __init__(
        self,
        literal: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.literal = literal
        super().__init__(
            f"integer literal '{literal}' is too large",
            location=location,
            hint="literals must fit in a 64-bit signed integer",
            source_line=source_line,
        )


# =============================================================================
# Syntax Errors (Parser)
# =============================================================================

class ParseError(CompileError):
    """
    Syntax error in the token stream.

    Raised by the parser on the first token that matches none of the
    alternatives expected at its position, and by the code generator
    when an assignment target turns out not to be a variable.
    """
    pass


class UnexpectedTokenError(ParseError):
    """Token that does not fit the grammar at its position."""

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """Required token (like ';' or ')') not found where expected."""

    def __init__(
        self,
        expected: str,
        found: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.found = found

        message = f"expected {expected}"
        if found is not None:
            message += f" before '{found}'"

        super().__init__(
            message,
            location=location,
            source_line=source_line,
        )


class InvalidLValueError(ParseError):
    """
    Invalid left-hand side of assignment.

    Only a variable can be assigned to:
        - 42 = x         // literal
        - (a + b) = x    // expression result
    """

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "expression is not assignable (not an lvalue)",
            location=location,
            hint="left side of assignment must be a variable",
            source_line=source_line,
        )


class NestingTooDeepError(ParseError):
    """Parentheses, assignments or statements nested beyond the parser's limit."""

    def __init__(
        self,
        limit: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.limit = limit
        super().__init__(
            "program nested too deeply",
            location=location,
            hint=f"at most {limit} levels of nesting are supported",
            source_line=source_line,
        )
