"""
Recursive Descent Parser
========================

This module implements a recursive descent parser for minicc. It takes
the token list from the lexer and builds one syntax tree per top-level
statement, resolving variables to frame offsets as it goes.

Grammar (EBNF)
--------------
program     ::= stmt* EOF
stmt        ::= 'return' expr ';'
              | 'if' '(' expr ')' stmt ('else' stmt)?
              | 'while' '(' expr ')' stmt
              | 'for' '(' expr? ';' expr? ';' expr? ')' stmt
              | '{' stmt* '}'
              | ';'
              | expr ';'

Expression Precedence (lowest to highest)
-----------------------------------------
1. assignment      =          (right-associative)
2. equality        == !=
3. relational      < <= > >=  ('>' and '>=' become '<' and '<=' swapped)
4. additive        + -
5. multiplicative  * /
6. unary           + -        (-x becomes 0 - x)
7. primary         NUMBER, IDENTIFIER, '(' expr ')'

The parser makes a single forward pass with one token of look-ahead.
The first token that matches no alternative raises a ParseError; there
is no error recovery.
Statements, parentheses and chained assignments nest at most
MAX_NESTING_DEPTH levels deep.

Example Usage
-------------
>>> from minicc.compiler.parser import parse_source
>>> program = parse_source("a = 1; b = a + 2; return b;")
>>> len(program.statements), program.local_count
(3, 2)
"""

import logging
from typing import Callable, Optional

from minicc.errors import SourceLocation
from minicc.compiler.lexer import Lexer, Token, TokenType
from minicc.compiler.ast import (
    ASTNode,
    ProgramNode,
    BlockStatement,
    IfStatement,
    WhileStatement,
    ForStatement,
    ReturnStatement,
    Expression,
    BinaryExpression,
    LocalVariable,
    NumberLiteral,
    BinaryOperator,
)
from minicc.compiler.errors import (
    UnexpectedTokenError,
    MissingTokenError,
    NestingTooDeepError,
)


logger = logging.getLogger(__name__)

# Width of one variable slot in the stack frame, in bytes
SLOT_SIZE = 8

# Deepest nesting of statements, parentheses and chained assignments.
MAX_NESTING_DEPTH = 64


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """
    Maps variable names to frame offsets.

    Offsets are handed out in order of first appearance: the first
    variable gets SLOT_SIZE, the second 2 * SLOT_SIZE, and so on. Once
    assigned, an offset never changes. All variables share one flat
    frame; there are no declarations and no nested scopes.
    """

    def __init__(self, slot_size: int = SLOT_SIZE):
        self.slot_size = slot_size
        self._offsets: dict[str, int] = {}

    def resolve(self, name: str) -> int:
        """Return the offset for name, allocating the next slot on first use."""
        offset = self._offsets.get(name)
        if offset is None:
            offset = (len(self._offsets) + 1) * self.slot_size
            self._offsets[name] = offset
            logger.debug(f"Allocated '{name}' at offset {offset}")
        return offset

    def lookup(self, name: str) -> Optional[int]:
        """Return the offset for name without allocating, or None."""
        return self._offsets.get(name)

    def items(self) -> list[tuple[str, int]]:
        """(name, offset) pairs in allocation order."""
        return list(self._offsets.items())

    @property
    def frame_size(self) -> int:
        """Bytes needed to hold every variable, before alignment."""
        return len(self._offsets) * self.slot_size

    def __len__(self) -> int:
        return len(self._offsets)

    def __contains__(self, name: str) -> bool:
        return name in self._offsets


# =============================================================================
# Parser
# =============================================================================

class Parser:
    """
    Recursive descent parser for minicc.

    Attributes:
        tokens: Token list from the lexer, ending with EOF
        filename: Source filename for error reporting
        symbols: Symbol table filled in while parsing
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source_lines: Optional[list[str]] = None,
        max_depth: int = MAX_NESTING_DEPTH,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from the lexer
            filename: Source filename for error messages
            source_lines: Original source lines for error context
            max_depth: Deepest nesting accepted before NestingTooDeepError
        """
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines or []
        self.symbols = SymbolTable()

        # Current position in token stream
        self._pos = 0

        # Current nesting depth
        self.max_depth = max_depth
        self._depth = 0

    def parse(self) -> ProgramNode:
        """
        Parse the whole token stream.

        Returns:
            ProgramNode holding the statement forest and symbol table

        Raises:
            ParseError: On the first token that does not fit the grammar
        """
        statements = []

        while not self._at_end():
            statements.append(self._parse_statement())

        logger.debug(
            f"Parsed {len(statements)} statements, {len(self.symbols)} variables"
        )

        return ProgramNode(
            location=SourceLocation(self.filename, 1, 1),
            statements=statements,
            symbols=self.symbols,
        )

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        if self._pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self._pos]

    def _advance(self) -> Token:
        token = self._peek()
        if token.type != TokenType.EOF:
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Consume the current token if it is one of types."""
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, description: str) -> Token:
        """
        Consume a token of the given type or fail.

        Raises:
            MissingTokenError: If the current token is of another type
        """
        if self._check(token_type):
            return self._advance()

        current = self._peek()
        raise MissingTokenError(
            description,
            found=current.text,
            location=current.location,
            source_line=self._get_source_line(current.line),
        )

    def _get_source_line(self, line: int) -> Optional[str]:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    def _enter_nested(self, token: Token) -> None:
        """
        Count one more level of nesting, opened at token.

        Raises:
            NestingTooDeepError: Past max_depth levels
        """
        self._depth += 1
        if self._depth > self.max_depth:
            raise NestingTooDeepError(
                self.max_depth,
                location=token.location,
                source_line=self._get_source_line(token.line),
            )

    def _leave_nested(self) -> None:
        self._depth -= 1

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def _parse_statement(self) -> ASTNode:
        """Parse any statement."""
        self._enter_nested(self._peek())
        try:
            return self._parse_statement_kind()
        finally:
            self._leave_nested()

    def _parse_statement_kind(self) -> ASTNode:
        token = self._peek()

        if token.type == TokenType.RETURN:
            return self._parse_return_statement()
        if token.type == TokenType.IF:
            return self._parse_if_statement()
        if token.type == TokenType.WHILE:
            return self._parse_while_statement()
        if token.type == TokenType.FOR:
            return self._parse_for_statement()
        if token.type == TokenType.LBRACE:
            return self._parse_block()
        if token.type == TokenType.SEMICOLON:
            # Empty statement
            self._advance()
            return BlockStatement(location=token.location)

        return self._parse_expression_statement()

    def _parse_return_statement(self) -> ReturnStatement:
        location = self._advance().location
        value = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")
        return ReturnStatement(location=location, value=value)

    def _parse_if_statement(self) -> IfStatement:
        location = self._advance().location
        self._expect(TokenType.LPAREN, "'('")
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN, "')'")

        then_branch = self._parse_statement()

        # Greedy: an else always belongs to the innermost open if
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._parse_statement()

        return IfStatement(
            location=location,
            condition=condition,
            then_branch=then_branch,
            else_branch=else_branch,
        )

    def _parse_while_statement(self) -> WhileStatement:
        location = self._advance().location
        self._expect(TokenType.LPAREN, "'('")
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN, "')'")

        body = self._parse_statement()

        return WhileStatement(location=location, condition=condition, body=body)

    def _parse_for_statement(self) -> ForStatement:
        location = self._advance().location
        self._expect(TokenType.LPAREN, "'('")

        initializer = None
        if not self._check(TokenType.SEMICOLON):
            initializer = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")

        update = None
        if not self._check(TokenType.RPAREN):
            update = self._parse_expression()
        self._expect(TokenType.RPAREN, "')'")

        body = self._parse_statement()

        return ForStatement(
            location=location,
            initializer=initializer,
            condition=condition,
            update=update,
            body=body,
        )

    def _parse_block(self) -> BlockStatement:
        """Parse a block statement { ... }."""
        location = self._advance().location

        statements = []
        while not self._check(TokenType.RBRACE) and not self._at_end():
            statements.append(self._parse_statement())

        self._expect(TokenType.RBRACE, "'}'")

        return BlockStatement(location=location, statements=statements)

    def _parse_expression_statement(self) -> Expression:
        expression = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")
        return expression

    # =========================================================================
    # Expression Parsing (Operator Precedence)
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expression:
        """Parse assignment expression (right-associative)."""
        expr = self._parse_equality()

        assign = self._match(TokenType.ASSIGN)
        if assign:
            self._enter_nested(assign)
            try:
                value = self._parse_assignment()
            finally:
                self._leave_nested()
            return BinaryExpression(
                location=expr.location,
                operator=BinaryOperator.ASSIGN,
                left=expr,
                right=value,
            )

        return expr

    def _parse_equality(self) -> Expression:
        return self._parse_binary(
            self._parse_relational,
            {
                TokenType.EQ: BinaryOperator.EQUAL,
                TokenType.NE: BinaryOperator.NOT_EQUAL,
            },
        )

    def _parse_relational(self) -> Expression:
        """
        Parse relational expression (< <= > >=).

        'a > b' is built as 'b < a' and 'a >= b' as 'b <= a', so only two
        comparison directions ever reach the code generator.
        """
        expr = self._parse_additive()

        while True:
            if self._match(TokenType.LT):
                expr = self._make_binary(BinaryOperator.LESS, expr, self._parse_additive())
            elif self._match(TokenType.LE):
                expr = self._make_binary(BinaryOperator.LESS_EQ, expr, self._parse_additive())
            elif self._match(TokenType.GT):
                right = self._parse_additive()
                expr = self._make_binary(BinaryOperator.LESS, right, expr, expr.location)
            elif self._match(TokenType.GE):
                right = self._parse_additive()
                expr = self._make_binary(BinaryOperator.LESS_EQ, right, expr, expr.location)
            else:
                return expr

    def _parse_additive(self) -> Expression:
        return self._parse_binary(
            self._parse_multiplicative,
            {
                TokenType.PLUS: BinaryOperator.ADD,
                TokenType.MINUS: BinaryOperator.SUBTRACT,
            },
        )

    def _parse_multiplicative(self) -> Expression:
        return self._parse_binary(
            self._parse_unary,
            {
                TokenType.STAR: BinaryOperator.MULTIPLY,
                TokenType.SLASH: BinaryOperator.DIVIDE,
            },
        )

    def _parse_binary(
        self,
        operand_parser: Callable[[], Expression],
        operators: dict[TokenType, BinaryOperator],
    ) -> Expression:
        """
        Generic left-associative binary expression parser.

        Args:
            operand_parser: Function to parse operands
            operators: Map of token types to binary operators
        """
        expr = operand_parser()

        while self._peek().type in operators:
            op_token = self._advance()
            right = operand_parser()
            expr = self._make_binary(operators[op_token.type], expr, right)

        return expr

    def _make_binary(
        self,
        operator: BinaryOperator,
        left: Expression,
        right: Expression,
        location: Optional[SourceLocation] = None,
    ) -> BinaryExpression:
        return BinaryExpression(
            location=location or left.location,
            operator=operator,
            left=left,
            right=right,
        )

    def _parse_unary(self) -> Expression:
        """Parse unary + and -; -x is built as 0 - x."""
        token = self._peek()

        if self._match(TokenType.PLUS):
            return self._parse_primary()

        if self._match(TokenType.MINUS):
            operand = self._parse_primary()
            return self._make_binary(
                BinaryOperator.SUBTRACT,
                NumberLiteral(location=token.location, value=0),
                operand,
            )

        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        """Parse primary expression (number, variable, parenthesized)."""
        token = self._peek()

        if token.type == TokenType.NUMBER:
            self._advance()
            return NumberLiteral(location=token.location, value=token.value)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            offset = self.symbols.resolve(token.value)
            return LocalVariable(location=token.location, name=token.value, offset=offset)

        if token.type == TokenType.LPAREN:
            self._advance()
            self._enter_nested(token)
            try:
                expr = self._parse_expression()
            finally:
                self._leave_nested()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        raise UnexpectedTokenError(
            token.text,
            expected="expression",
            location=token.location,
            source_line=self._get_source_line(token.line),
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> ProgramNode:
    """
    Lex and parse source text in one call.

    Raises:
        CompileError: If lexing or parsing fails
    """
    tokens = list(Lexer(source, filename).tokenize())
    parser = Parser(tokens, filename, source.split("\n"))
    return parser.parse()
