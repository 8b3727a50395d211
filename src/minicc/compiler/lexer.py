"""
Lexer (Tokenizer)
=================

This module converts minicc source text into a stream of tokens for
the parser. Scanning never backtracks and looks at most one character
past the current match.

Token Categories
----------------
- Keywords: return, if, else, while, for
- Identifiers: a letter or underscore, then letters, ASCII digits and
  underscores. Any Unicode letter counts as a letter
- Numbers: decimal digits, 64-bit signed range
- Operators: + - * / = == != < <= > >=
- Delimiters: ( ) { } ;

Whitespace separates tokens and is never represented. There is no
standalone '!' operator: '!' must be followed by '='.

Example Usage
-------------
>>> from minicc.compiler.lexer import Lexer
>>> for token in Lexer("a = 3;", "prog.c").tokenize():
...     print(token)
Token(IDENTIFIER, 'a', 1:1)
Token(ASSIGN, '=', 1:3)
Token(NUMBER, 3, 1:5)
Token(SEMICOLON, ';', 1:6)
Token(EOF, 1:7)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from minicc.errors import SourceLocation
from minicc.compiler.errors import (
    LexError,
    InvalidCharacterError,
    LiteralOverflowError,
)


# Largest value a NUMBER token may carry
INT64_MAX = 2**63 - 1


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the minicc language."""

    EOF = auto()            # End of input

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Variable names
    NUMBER = auto()         # Decimal integer literals

    # === Keywords ===
    RETURN = auto()         # return
    IF = auto()             # if
    ELSE = auto()           # else
    WHILE = auto()          # while
    FOR = auto()            # for

    # === Arithmetic Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /

    # === Comparison Operators ===
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    LE = auto()             # <=
    GT = auto()             # >
    GE = auto()             # >=

    # === Assignment ===
    ASSIGN = auto()         # =

    # === Delimiters ===
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    SEMICOLON = auto()      # ;


# =============================================================================
# Keyword Mapping
# =============================================================================

KEYWORDS: dict[str, TokenType] = {
    "return": TokenType.RETURN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "for": TokenType.FOR,
}

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ";": TokenType.SEMICOLON,
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from the source text.

    Attributes:
        type: The TokenType classification
        value: Identifier/keyword/operator text, integer value for
            numbers, None for EOF
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | None
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, {self.value}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    @property
    def text(self) -> str:
        """Printable form of the token for diagnostics."""
        if self.type == TokenType.EOF:
            return "end of input"
        return str(self.value)


# =============================================================================
# Character Classes
# =============================================================================

def _is_identifier_start(char: str) -> bool:
    return char == "_" or char.isalpha()


def _is_identifier_char(char: str) -> bool:
    # Digits inside identifiers are ASCII only, like number literals
    return char == "_" or char.isalpha() or (char != "" and char in string.digits)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes minicc source text.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    The token sequence always ends with exactly one EOF token. The first
    character that cannot start a token raises a LexError.

    Attributes:
        source: The source text being tokenized
        filename: Name of the source file (for error reporting)
    """

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename

        # Current position in source
        self._pos = 0
        self._line = 1
        self._column = 1

        # Start of the current line, for error context
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source text.

        Yields:
            Token objects, ending with a single EOF token

        Raises:
            LexError: On a character that cannot start a token
            LiteralOverflowError: On an integer literal above INT64_MAX
        """
        while True:
            self._skip_whitespace()

            if self._at_end():
                break

            yield self._scan_token()

        yield self._make_token(TokenType.EOF, None, self._line, self._column)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Character at current position + offset, or '' past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        """Consume the next character if it equals expected."""
        if self._peek() == expected:
            self._advance()
            return True
        return False

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self._peek().isspace():
            self._advance()

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | None,
        line: int,
        column: int,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=line,
            column=column,
            filename=self.filename,
        )

    def _get_current_line(self) -> str:
        """Current line of source text for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if _is_identifier_start(char):
            return self._scan_identifier(start_line, start_column)

        if char in string.digits:
            return self._scan_number(start_line, start_column)

        return self._scan_operator(start_line, start_column)

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """
        Scan an identifier or keyword.

        The maximal run of letters, digits and underscores is captured
        first, then checked against the keyword table.
        """
        chars = []
        while _is_identifier_char(self._peek()):
            chars.append(self._advance())

        name = "".join(chars)

        if name in KEYWORDS:
            return self._make_token(KEYWORDS[name], name, start_line, start_column)

        return self._make_token(TokenType.IDENTIFIER, name, start_line, start_column)

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        """Scan a decimal literal that must fit in a 64-bit signed integer."""
        chars = []
        while self._peek() and self._peek() in string.digits:
            chars.append(self._advance())

        text = "".join(chars)
        value = int(text)
        if value > INT64_MAX:
            raise LiteralOverflowError(
                text,
                SourceLocation(self.filename, start_line, start_column),
                self._get_current_line(),
            )

        return self._make_token(TokenType.NUMBER, value, start_line, start_column)

    def _scan_operator(self, start_line: int, start_column: int) -> Token:
        """Scan an operator or delimiter, with one character of lookahead."""
        char = self._advance()

        if char in SINGLE_CHAR_TOKENS:
            return self._make_token(SINGLE_CHAR_TOKENS[char], char, start_line, start_column)

        if char == "=":
            if self._match("="):
                return self._make_token(TokenType.EQ, "==", start_line, start_column)
            return self._make_token(TokenType.ASSIGN, "=", start_line, start_column)

        if char == "!":
            if self._match("="):
                return self._make_token(TokenType.NE, "!=", start_line, start_column)
            found = self._peek()
            raise LexError(
                f"expected '=' after '!', found {repr(found) if found else 'end of input'}",
                SourceLocation(self.filename, self._line, self._column),
                hint="there is no logical-not operator; use '!=' or '== 0'",
                source_line=self._get_current_line(),
            )

        if char == "<":
            if self._match("="):
                return self._make_token(TokenType.LE, "<=", start_line, start_column)
            return self._make_token(TokenType.LT, "<", start_line, start_column)

        if char == ">":
            if self._match("="):
                return self._make_token(TokenType.GE, ">=", start_line, start_column)
            return self._make_token(TokenType.GT, ">", start_line, start_column)

        raise InvalidCharacterError(
            char,
            SourceLocation(self.filename, start_line, start_column),
            self._get_current_line(),
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize source text into a list ending with the EOF token."""
    return list(Lexer(source, filename).tokenize())
