"""
Parser Test Suite
=================

Tests for the minicc parser: statement forms, operator precedence and
associativity, symbol-table allocation and syntax errors.
"""

import pytest

from minicc.compiler.parser import (
    Parser,
    SymbolTable,
    parse_source,
    SLOT_SIZE,
    MAX_NESTING_DEPTH,
)
from minicc.compiler.lexer import tokenize
from minicc.compiler.ast import (
    ASTPrinter,
    ASTVisitor,
    BinaryExpression,
    BinaryOperator,
    BlockStatement,
    ForStatement,
    IfStatement,
    LocalVariable,
    NumberLiteral,
    ProgramNode,
    ReturnStatement,
    WhileStatement,
)
from minicc.compiler.errors import (
    ParseError,
    UnexpectedTokenError,
    MissingTokenError,
    NestingTooDeepError,
)


def parse_expr(text: str):
    """Parse a single expression statement and return its tree."""
    program = parse_source(f"{text};", "test.c")
    assert len(program.statements) == 1
    return program.statements[0]


def render(text: str) -> str:
    """Fully parenthesized form of a single expression."""
    return ASTPrinter()._expr_str(parse_expr(text))


# =============================================================================
# Symbol Table
# =============================================================================

class TestSymbolTable:
    """Tests for variable offset allocation."""

    def test_first_use_allocates(self):
        table = SymbolTable()
        assert table.resolve("a") == 8
        assert table.resolve("b") == 16
        assert table.resolve("c") == 24

    def test_repeat_use_keeps_offset(self):
        table = SymbolTable()
        table.resolve("a")
        table.resolve("b")
        assert table.resolve("a") == 8
        assert len(table) == 2

    def test_lookup_does_not_allocate(self):
        table = SymbolTable()
        assert table.lookup("x") is None
        assert "x" not in table
        assert len(table) == 0

    def test_items_in_order(self):
        table = SymbolTable()
        for name in ["z", "y", "z", "x"]:
            table.resolve(name)
        assert table.items() == [("z", 8), ("y", 16), ("x", 24)]
        assert table.frame_size == 3 * SLOT_SIZE


# =============================================================================
# Statements
# =============================================================================

class TestParserStatements:
    """Tests for statement forms."""

    def test_empty_program(self):
        program = parse_source("", "test.c")
        assert isinstance(program, ProgramNode)
        assert program.statements == []
        assert program.local_count == 0

    def test_expression_statement(self):
        program = parse_source("1;", "test.c")
        assert isinstance(program.statements[0], NumberLiteral)
        assert program.statements[0].value == 1

    def test_return(self):
        program = parse_source("return 42;", "test.c")
        stmt = program.statements[0]
        assert isinstance(stmt, ReturnStatement)
        assert isinstance(stmt.value, NumberLiteral)
        assert stmt.value.value == 42

    def test_if_without_else(self):
        stmt = parse_source("if (1) 2;", "test.c").statements[0]
        assert isinstance(stmt, IfStatement)
        assert stmt.else_branch is None
        assert isinstance(stmt.then_branch, NumberLiteral)

    def test_if_with_else(self):
        stmt = parse_source("if (1) 2; else 3;", "test.c").statements[0]
        assert isinstance(stmt, IfStatement)
        assert stmt.else_branch.value == 3

    def test_dangling_else_binds_innermost(self):
        stmt = parse_source("if (a) if (b) 1; else 2;", "test.c").statements[0]
        assert stmt.else_branch is None
        inner = stmt.then_branch
        assert isinstance(inner, IfStatement)
        assert inner.else_branch.value == 2

    def test_while(self):
        stmt = parse_source("while (i < 10) i = i + 1;", "test.c").statements[0]
        assert isinstance(stmt, WhileStatement)
        assert stmt.condition.operator == BinaryOperator.LESS
        assert stmt.body.operator == BinaryOperator.ASSIGN

    def test_for_all_clauses(self):
        stmt = parse_source("for (i = 0; i < 3; i = i + 1) a = i;", "test.c").statements[0]
        assert isinstance(stmt, ForStatement)
        assert stmt.initializer.operator == BinaryOperator.ASSIGN
        assert stmt.condition.operator == BinaryOperator.LESS
        assert stmt.update.operator == BinaryOperator.ASSIGN

    def test_for_no_clauses(self):
        stmt = parse_source("for (;;) return 1;", "test.c").statements[0]
        assert stmt.initializer is None
        assert stmt.condition is None
        assert stmt.update is None
        assert isinstance(stmt.body, ReturnStatement)

    def test_empty_statement(self):
        stmt = parse_source("for (i = 0; i < 10; i = i + 1) ;", "test.c").statements[0]
        assert isinstance(stmt.body, BlockStatement)
        assert stmt.body.statements == []

    def test_block(self):
        program = parse_source("{ a = 1; { b = 2; } return a; }", "test.c")
        block = program.statements[0]
        assert isinstance(block, BlockStatement)
        assert len(block.statements) == 3
        assert isinstance(block.statements[1], BlockStatement)

    def test_empty_block(self):
        block = parse_source("{}", "test.c").statements[0]
        assert isinstance(block, BlockStatement)
        assert block.statements == []

    def test_statement_count(self):
        program = parse_source("a = 1; b = a + 2; return b;", "test.c")
        assert len(program.statements) == 3
        assert program.local_count == 2


# =============================================================================
# Expressions
# =============================================================================

class TestParserExpressions:
    """Tests for precedence, associativity and normalizations."""

    @pytest.mark.parametrize("source,expected", [
        ("1 + 2 * 3", "(1 + (2 * 3))"),
        ("(1 + 2) * 3", "((1 + 2) * 3)"),
        ("1 - 2 - 3", "((1 - 2) - 3)"),
        ("8 / 4 / 2", "((8 / 4) / 2)"),
        ("1 + 2 == 3", "((1 + 2) == 3)"),
        ("1 < 2 == 3 < 4", "((1 < 2) == (3 < 4))"),
        ("1 != 2 != 3", "((1 != 2) != 3)"),
        ("1 <= 2 + 3", "(1 <= (2 + 3))"),
    ])
    def test_precedence(self, source, expected):
        assert render(source) == expected

    def test_assignment_right_associative(self):
        assert render("a = b = 3") == "(a@8 = (b@16 = 3))"

    def test_greater_than_swaps_operands(self):
        expr = parse_expr("a > b")
        assert expr.operator == BinaryOperator.LESS
        assert expr.left.name == "b"
        assert expr.right.name == "a"

    def test_greater_equal_swaps_operands(self):
        expr = parse_expr("1 >= 2")
        assert expr.operator == BinaryOperator.LESS_EQ
        assert expr.left.value == 2
        assert expr.right.value == 1

    def test_unary_minus(self):
        expr = parse_expr("-5")
        assert isinstance(expr, BinaryExpression)
        assert expr.operator == BinaryOperator.SUBTRACT
        assert expr.left.value == 0
        assert expr.right.value == 5

    def test_unary_plus_is_identity(self):
        expr = parse_expr("+5")
        assert isinstance(expr, NumberLiteral)
        assert expr.value == 5

    def test_unary_binds_tighter(self):
        assert render("-2 * 3") == "((0 - 2) * 3)"
        assert render("-(1 + 2)") == "(0 - (1 + 2))"

    def test_variable_offsets(self):
        program = parse_source("a = 1; b = 2; a = b;", "test.c")
        last = program.statements[2]
        assert isinstance(last.left, LocalVariable)
        assert last.left.offset == 8
        assert last.right.offset == 16
        assert program.local_count == 2

    def test_variables_in_nested_blocks_share_frame(self):
        program = parse_source("{ x = 1; { y = 2; } } z = 3;", "test.c")
        assert program.symbols.items() == [("x", 8), ("y", 16), ("z", 24)]

    def test_non_variable_target_parses(self):
        """The lvalue check happens during code generation."""
        expr = parse_expr("1 = 2")
        assert expr.operator == BinaryOperator.ASSIGN
        assert isinstance(expr.left, NumberLiteral)


# =============================================================================
# Syntax Errors
# =============================================================================

class TestParserErrors:
    """Tests for syntax error reporting."""

    def test_missing_semicolon(self):
        with pytest.raises(MissingTokenError) as exc_info:
            parse_source("return 1", "test.c")
        assert "';'" in str(exc_info.value)
        assert "end of input" in str(exc_info.value)

    def test_missing_operand(self):
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse_source("return 1 +;", "test.c")
        error = exc_info.value
        assert error.found == ";"
        assert error.expected == "expression"
        assert error.location.column == 11

    def test_missing_rparen(self):
        with pytest.raises(MissingTokenError, match=r"expected '\)'"):
            parse_source("if (1 2;", "test.c")

    def test_unclosed_block(self):
        with pytest.raises(MissingTokenError, match="'}'"):
            parse_source("{ a = 1;", "test.c")

    def test_stray_rbrace(self):
        with pytest.raises(UnexpectedTokenError):
            parse_source("}", "test.c")

    def test_else_without_if(self):
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse_source("else 1;", "test.c")
        assert exc_info.value.found == "else"

    def test_keyword_as_variable(self):
        with pytest.raises(ParseError):
            parse_source("while = 1;", "test.c")

    def test_error_shows_source_line(self):
        with pytest.raises(ParseError) as exc_info:
            parse_source("a = 1;\nb = (2;", "test.c")
        message = str(exc_info.value)
        assert message.startswith("test.c:2:7: error:")
        assert "b = (2;" in message

    def test_parser_from_token_list(self):
        tokens = tokenize("return 0;", "test.c")
        program = Parser(tokens, "test.c").parse()
        assert isinstance(program.statements[0], ReturnStatement)

    def test_carriage_return_is_not_line_break(self):
        # A lone '\r' is whitespace, so the error stays on line 1
        source = "a = 1;\rreturn (2;"
        with pytest.raises(MissingTokenError) as exc_info:
            parse_source(source, "test.c")
        error = exc_info.value
        assert (error.location.line, error.location.column) == (1, 17)
        assert error.source_line == source

    def test_form_feed_line_context(self):
        with pytest.raises(MissingTokenError) as exc_info:
            parse_source("a = 1;\x0c\nb = (2;", "test.c")
        error = exc_info.value
        assert error.location.line == 2
        assert error.source_line == "b = (2;"


# =============================================================================
# Nesting Limits
# =============================================================================

class TestNestingDepth:
    """Tests for the nesting depth guard."""

    def test_parentheses_at_limit(self):
        depth = MAX_NESTING_DEPTH - 1
        program = parse_source("return " + "(" * depth + "1" + ")" * depth + ";", "test.c")
        assert isinstance(program.statements[0].value, NumberLiteral)

    def test_parentheses_over_limit(self):
        source = "return " + "(" * 150 + "1" + ")" * 150 + ";"
        with pytest.raises(NestingTooDeepError) as exc_info:
            parse_source(source, "test.c")
        error = exc_info.value
        assert error.limit == MAX_NESTING_DEPTH
        # Reported at the first parenthesis past the limit
        assert error.location.column == 8 + MAX_NESTING_DEPTH - 1
        assert error.source_line == source
        assert "nested too deeply" in str(error)
        assert f"at most {MAX_NESTING_DEPTH} levels" in str(error)

    def test_nested_statements_over_limit(self):
        with pytest.raises(NestingTooDeepError):
            parse_source("while (1) " * 100 + ";", "test.c")

    def test_chained_assignment_over_limit(self):
        with pytest.raises(NestingTooDeepError):
            parse_source("a = " * 100 + "1;", "test.c")

    def test_long_chain_is_not_nesting(self):
        program = parse_source("return " + " + ".join(["1"] * 3000) + ";", "test.c")
        node = program.statements[0].value
        length = 0
        while isinstance(node, BinaryExpression):
            assert node.operator == BinaryOperator.ADD
            node = node.left
            length += 1
        assert length == 2999

    def test_depth_resets_between_statements(self):
        statement = "return " + "(" * 50 + "1" + ")" * 50 + ";"
        program = parse_source(statement * 10, "test.c")
        assert len(program.statements) == 10

    def test_custom_limit(self):
        tokens = tokenize("return ((1));", "test.c")
        with pytest.raises(NestingTooDeepError):
            Parser(tokens, "test.c", max_depth=2).parse()
        tokens = tokenize("return ((1));", "test.c")
        assert Parser(tokens, "test.c", max_depth=3).parse().statements


# =============================================================================
# AST Utilities
# =============================================================================

class TestASTPrinter:
    """Tests for the AST pretty printer and visitor."""

    def test_print_program(self):
        program = parse_source("a = 1; if (a < 2) return a; else { }", "test.c")
        text = ASTPrinter().print(program)
        assert text.splitlines() == [
            "Program (1 locals)",
            "  Expr: (a@8 = 1)",
            "  If (a@8 < 2)",
            "    Then:",
            "      Return a@8",
            "    Else:",
            "      Block",
        ]

    def test_print_loops(self):
        program = parse_source("for (;i < 3;) while (1) ;", "test.c")
        text = ASTPrinter().print(program)
        assert "For (; (i@8 < 3); )" in text
        assert "While 1" in text

    def test_visitor_walks_all_nodes(self):
        class CountLiterals(ASTVisitor):
            def __init__(self):
                self.count = 0

            def visit_NumberLiteral(self, node):
                self.count += 1

        program = parse_source("a = 1 + 2; if (3) { return 4; } else -5;", "test.c")
        counter = CountLiterals()
        counter.visit(program)
        # -5 contributes the implicit 0 as well
        assert counter.count == 6

    def test_print_long_chain(self):
        program = parse_source("a = 1; " + "a" + " * 2" * 2000 + ";", "test.c")
        line = ASTPrinter().print(program).splitlines()[-1]
        assert line.startswith("  Expr: " + "(" * 2000 + "a@8 * 2)")
        assert line.endswith(" * 2)")
