"""
Abstract Syntax Tree (AST) Definitions
======================================

This module defines the syntax nodes produced by the parser and
consumed by the code generator.

Node Hierarchy
--------------
ASTNode (base)
├── ProgramNode - statement forest plus the symbol table
├── Statements
│   ├── BlockStatement - compound statement { ... }
│   ├── IfStatement - if with optional else
│   ├── WhileStatement - while loop
│   ├── ForStatement - for loop, every clause optional
│   └── ReturnStatement - return expr;
└── Expressions
    ├── BinaryExpression - arithmetic, comparison and assignment
    ├── LocalVariable - variable reference with its frame offset
    └── NumberLiteral - integer constant

An expression used as a statement is stored directly in the forest;
there is no wrapper node.

Design Notes
------------
- Each non-leaf node exclusively owns its children: the AST is a strict
  tree with no sharing and no cycles.
- Absent parts (else branch, for clauses) are None, never placeholder nodes.
- '>' and '>=' never appear: the parser rewrites them as '<' and '<='
  with swapped operands, and unary minus as 0 - x.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, TYPE_CHECKING

from minicc.errors import SourceLocation

if TYPE_CHECKING:
    from minicc.compiler.parser import SymbolTable


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location of the node's first token
    """
    location: SourceLocation

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}@{self.location.line}:{self.location.column}"


@dataclass
class Expression(ASTNode):
    """Base class for nodes that leave one value on the evaluation stack."""
    pass


@dataclass
class Statement(ASTNode):
    """Base class for nodes that produce no value."""
    pass


# =============================================================================
# Expression Nodes
# =============================================================================

class BinaryOperator(Enum):
    """Binary operator types."""
    # Arithmetic
    ADD = auto()        # +
    SUBTRACT = auto()   # -
    MULTIPLY = auto()   # *
    DIVIDE = auto()     # /

    # Comparison ('>' and '>=' are normalized away by the parser)
    EQUAL = auto()      # ==
    NOT_EQUAL = auto()  # !=
    LESS = auto()       # <
    LESS_EQ = auto()    # <=

    # Assignment (right-associative)
    ASSIGN = auto()     # =


OPERATOR_SYMBOLS: dict[BinaryOperator, str] = {
    BinaryOperator.ADD: "+",
    BinaryOperator.SUBTRACT: "-",
    BinaryOperator.MULTIPLY: "*",
    BinaryOperator.DIVIDE: "/",
    BinaryOperator.EQUAL: "==",
    BinaryOperator.NOT_EQUAL: "!=",
    BinaryOperator.LESS: "<",
    BinaryOperator.LESS_EQ: "<=",
    BinaryOperator.ASSIGN: "=",
}


@dataclass
class NumberLiteral(Expression):
    """
    Integer literal expression.

    Attributes:
        value: The integer value (64-bit signed range)
    """
    value: int = 0


@dataclass
class LocalVariable(Expression):
    """
    Variable reference.

    Attributes:
        name: The variable name
        offset: Distance below the frame base of the variable's 8-byte slot
    """
    name: str = ""
    offset: int = 0


@dataclass
class BinaryExpression(Expression):
    """
    Binary operation expression (left op right).

    For ASSIGN, left is the assignment target; only a LocalVariable is
    accepted, which the code generator checks.

    Attributes:
        operator: The binary operator
        left: Left operand expression
        right: Right operand expression
    """
    operator: BinaryOperator = None
    left: Expression = None
    right: Expression = None


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class ReturnStatement(Statement):
    """
    Return statement.

    Attributes:
        value: The expression whose value becomes the program result
    """
    value: Expression = None


@dataclass
class IfStatement(Statement):
    """
    If statement with optional else clause.

    Attributes:
        condition: The condition expression
        then_branch: Statement executed if condition is non-zero
        else_branch: Optional statement executed if condition is zero
    """
    condition: Expression = None
    then_branch: ASTNode = None
    else_branch: Optional[ASTNode] = None


@dataclass
class WhileStatement(Statement):
    """
    While loop statement.

    Attributes:
        condition: Loop condition, tested before every iteration
        body: Loop body statement
    """
    condition: Expression = None
    body: ASTNode = None


@dataclass
class ForStatement(Statement):
    """
    For loop statement.

    Attributes:
        initializer: Optional expression evaluated once before the loop
        condition: Optional loop condition; None loops until a return
        update: Optional expression evaluated after every iteration
        body: Loop body statement
    """
    initializer: Optional[Expression] = None
    condition: Optional[Expression] = None
    update: Optional[Expression] = None
    body: ASTNode = None


@dataclass
class BlockStatement(Statement):
    """
    Block statement enclosed in braces.

    Attributes:
        statements: Statements in program order
    """
    statements: list[ASTNode] = field(default_factory=list)


# =============================================================================
# Program Root Node
# =============================================================================

@dataclass
class ProgramNode(ASTNode):
    """
    Result of one parse: the top-level statements and the variables
    they mention.

    Attributes:
        statements: Top-level statement trees in program order
        symbols: The symbol table built during the parse
    """
    statements: list[ASTNode] = field(default_factory=list)
    symbols: Optional["SymbolTable"] = field(default=None, compare=False)

    @property
    def local_count(self) -> int:
        """Number of distinct variables, used to size the stack frame."""
        return len(self.symbols) if self.symbols is not None else 0


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Subclasses override visit_* methods for the node types they care
    about; everything else falls through to generic_visit, which walks
    the children.

    Usage:
        class CountReturns(ASTVisitor):
            def __init__(self):
                self.count = 0

            def visit_ReturnStatement(self, node):
                self.count += 1
                self.generic_visit(node)
    """

    def visit(self, node: ASTNode) -> Any:
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ASTNode) -> None:
        """Visit all child nodes, in field order."""
        for field_value in node.__dict__.values():
            if isinstance(field_value, ASTNode):
                self.visit(field_value)
            elif isinstance(field_value, list):
                for item in field_value:
                    if isinstance(item, ASTNode):
                        self.visit(item)


# =============================================================================
# AST Pretty Printer
# =============================================================================

class ASTPrinter(ASTVisitor):
    """
    Pretty printer for AST debugging.

    Usage:
        printer = ASTPrinter()
        print(printer.print(program))
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node: ASTNode) -> str:
        """Print the AST and return it as a string."""
        self.output = []
        self.indent_level = 0
        self.visit(node)
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def _nested(self, node: ASTNode) -> None:
        self.indent_level += 1
        self.visit(node)
        self.indent_level -= 1

    def visit_ProgramNode(self, node: ProgramNode):
        self._emit(f"Program ({node.local_count} locals)")
        for stmt in node.statements:
            self._nested(stmt)

    def visit_BlockStatement(self, node: BlockStatement):
        self._emit("Block")
        for stmt in node.statements:
            self._nested(stmt)

    def visit_IfStatement(self, node: IfStatement):
        self._emit(f"If {self._expr_str(node.condition)}")
        self.indent_level += 1
        self._emit("Then:")
        self._nested(node.then_branch)
        if node.else_branch is not None:
            self._emit("Else:")
            self._nested(node.else_branch)
        self.indent_level -= 1

    def visit_WhileStatement(self, node: WhileStatement):
        self._emit(f"While {self._expr_str(node.condition)}")
        self._nested(node.body)

    def visit_ForStatement(self, node: ForStatement):
        init = self._expr_str(node.initializer)
        cond = self._expr_str(node.condition)
        update = self._expr_str(node.update)
        self._emit(f"For ({init}; {cond}; {update})")
        self._nested(node.body)

    def visit_ReturnStatement(self, node: ReturnStatement):
        self._emit(f"Return {self._expr_str(node.value)}")

    def visit_BinaryExpression(self, node: BinaryExpression):
        self._emit(f"Expr: {self._expr_str(node)}")

    def visit_LocalVariable(self, node: LocalVariable):
        self._emit(f"Expr: {self._expr_str(node)}")

    def visit_NumberLiteral(self, node: NumberLiteral):
        self._emit(f"Expr: {self._expr_str(node)}")

    def _expr_str(self, expr: Optional[Expression]) -> str:
        """Convert an expression to a fully parenthesized string."""
        if expr is None:
            return ""
        if isinstance(expr, NumberLiteral):
            return str(expr.value)
        if isinstance(expr, LocalVariable):
            return f"{expr.name}@{expr.offset}"
        if isinstance(expr, BinaryExpression):
            # Left-nested chains are unwound in a loop
            spine = []
            node: Expression = expr
            while isinstance(node, BinaryExpression):
                spine.append(node)
                node = node.left

            text = self._expr_str(node)
            for binary in reversed(spine):
                op_str = OPERATOR_SYMBOLS.get(binary.operator, "?")
                text = f"({text} {op_str} {self._expr_str(binary.right)})"
            return text
        return f"<{type(expr).__name__}>"
