"""
x86-64 Code Generator
=====================

This module generates x86-64 assembly (GNU assembler, Intel syntax)
from the syntax forest built by the parser.

Code Generation Strategy
------------------------
The generator uses a stack-machine evaluation model:

1. Every expression leaves exactly one 64-bit value on the machine stack
2. Operators pop their operands (right first, then left) into RDI/RAX,
   combine them in RAX and push the result
3. Variables live in 8-byte slots below RBP; their address is RBP - offset
4. An expression used as a statement has its value popped into RAX and
   discarded, which also makes it the program result if nothing returns

No register allocation is attempted. The generated code is simple and
uniform at the price of extra memory traffic.

Register Usage
--------------
| Register | Usage                                         |
|----------|-----------------------------------------------|
| RAX      | Left operand, result, lvalue address, return  |
| RDI      | Right operand, value being stored             |
| RBP      | Frame base                                    |
| RSP      | Top of the evaluation stack                   |

Stack Frame Layout
------------------
    +----------------+ <- RSP on entry
    | Return address |
    +----------------+
    | Saved RBP      |
    +----------------+ <- RBP
    | Variable 1     |  RBP - 8
    | Variable 2     |  RBP - 16
    | ...            |
    +----------------+ <- RSP after prologue (16-byte aligned size)
    | Temp values    |  expression evaluation
    +----------------+

Labels
------
Control constructs take one number from a shared counter and derive
their labels from it: .Lelse{n} and .Lend{n} for if, .Lbegin{n} and
.Lend{n} for loops.

Usage
-----
>>> from minicc.compiler.parser import parse_source
>>> from minicc.compiler.codegen import CodeGenerator
>>> print(CodeGenerator().generate(parse_source("return 42;")))
.intel_syntax noprefix
.global main
main:
  push rbp
  mov rbp, rsp
  push 42
  pop rax
  mov rsp, rbp
  pop rbp
  ret
  mov rsp, rbp
  pop rbp
  ret
"""

import logging
from typing import Optional

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
from minicc.compiler.errors import CompileError, InvalidLValueError


logger = logging.getLogger(__name__)

# Condition-code suffix of the SETcc instruction for each comparison
COMPARISON_SET = {
    BinaryOperator.EQUAL: "sete",
    BinaryOperator.NOT_EQUAL: "setne",
    BinaryOperator.LESS: "setl",
    BinaryOperator.LESS_EQ: "setle",
}

# 'push imm' takes a sign-extended 32-bit immediate
PUSH_IMMEDIATE_MIN = -(2**31)
PUSH_IMMEDIATE_MAX = 2**31 - 1

ARITHMETIC_INSTRUCTIONS = {
    BinaryOperator.ADD: "add",
    BinaryOperator.SUBTRACT: "sub",
    BinaryOperator.MULTIPLY: "imul",
}


class CodeGenerator:
    """
    Generates x86-64 assembly from a parsed program.

    The generator walks each statement tree and emits instructions for
    every node. It owns the label counter, so a fresh instance should be
    used per compilation; generate() also resets it.

    Attributes:
        entry_point: Global symbol the program is emitted under
        stack_alignment: The frame size is rounded up to a multiple of this
        output_comments: Annotate the output with '#' comments
    """

    def __init__(
        self,
        entry_point: str = "main",
        stack_alignment: int = 16,
        output_comments: bool = False,
    ):
        self.entry_point = entry_point
        self.stack_alignment = stack_alignment
        self.output_comments = output_comments

        self._output: list[str] = []
        self._label_counter: int = 0

    def generate(self, program: ProgramNode) -> str:
        """
        Generate assembly for a whole program.

        Args:
            program: Parse result holding statements and symbol table

        Returns:
            Complete assembly source, one instruction per line

        Raises:
            InvalidLValueError: If an assignment target is not a variable
        """
        self._output = []
        self._label_counter = 0

        frame_size = self.frame_size(program.local_count)

        self._emit_header()
        self._emit_prologue(frame_size)

        for stmt in program.statements:
            self._generate_statement(stmt)

        # Falling off the end returns the last discarded value
        self._emit_epilogue()

        logger.debug(
            f"Generated {len(self._output)} lines, frame {frame_size} bytes, "
            f"{self._label_counter} label groups"
        )

        return "\n".join(self._output) + "\n"

    def frame_size(self, local_count: int) -> int:
        """Bytes reserved for local_count 8-byte slots, aligned."""
        size = 8 * local_count
        align = self.stack_alignment
        if align > 1:
            size = (size + align - 1) // align * align
        return size

    # =========================================================================
    # Assembly Output Methods
    # =========================================================================

    def _emit(self, line: str) -> None:
        self._output.append(line)

    def _emit_comment(self, comment: str) -> None:
        if self.output_comments:
            self._emit(f"  # {comment}")

    def _emit_label(self, label: str) -> None:
        self._emit(f"{label}:")

    def _emit_instruction(self, mnemonic: str, operands: str = "") -> None:
        if operands:
            self._emit(f"  {mnemonic} {operands}")
        else:
            self._emit(f"  {mnemonic}")

    def _new_label_id(self) -> int:
        """Draw the next number from the label counter."""
        self._label_counter += 1
        return self._label_counter

    # =========================================================================
    # Framing
    # =========================================================================

    def _emit_header(self) -> None:
        self._emit(".intel_syntax noprefix")
        self._emit(f".global {self.entry_point}")
        self._emit_label(self.entry_point)

    def _emit_prologue(self, frame_size: int) -> None:
        self._emit_instruction("push", "rbp")
        self._emit_instruction("mov", "rbp, rsp")
        if frame_size:
            self._emit_instruction("sub", f"rsp, {frame_size}")

    def _emit_epilogue(self) -> None:
        self._emit_instruction("mov", "rsp, rbp")
        self._emit_instruction("pop", "rbp")
        self._emit_instruction("ret")

    # =========================================================================
    # Statement Code Generation
    # =========================================================================

    def _generate_statement(self, stmt: ASTNode) -> None:
        """Generate code for any statement, leaving the stack balanced."""
        if isinstance(stmt, Expression):
            self._generate_expression(stmt)
            # Discard the statement's value
            self._emit_instruction("pop", "rax")
        elif isinstance(stmt, ReturnStatement):
            self._generate_return(stmt)
        elif isinstance(stmt, IfStatement):
            self._generate_if(stmt)
        elif isinstance(stmt, WhileStatement):
            self._generate_while(stmt)
        elif isinstance(stmt, ForStatement):
            self._generate_for(stmt)
        elif isinstance(stmt, BlockStatement):
            self._generate_block(stmt)
        else:
            raise CompileError(
                f"cannot generate code for {type(stmt).__name__}",
                getattr(stmt, "location", None),
            )

    def _generate_block(self, block: BlockStatement) -> None:
        for stmt in block.statements:
            self._generate_statement(stmt)

    def _generate_return(self, stmt: ReturnStatement) -> None:
        """Return in place: the epilogue is emitted right here."""
        self._emit_comment("return")
        self._generate_expression(stmt.value)
        self._emit_instruction("pop", "rax")
        self._emit_epilogue()

    def _generate_condition_jump(self, condition: Expression, target: str) -> None:
        """Evaluate condition and jump to target when it is zero."""
        self._generate_expression(condition)
        self._emit_instruction("pop", "rax")
        self._emit_instruction("cmp", "rax, 0")
        self._emit_instruction("je", target)

    def _generate_if(self, stmt: IfStatement) -> None:
        label_id = self._new_label_id()
        end_label = f".Lend{label_id}"

        self._emit_comment("if condition")

        if stmt.else_branch is None:
            self._generate_condition_jump(stmt.condition, end_label)
            self._generate_statement(stmt.then_branch)
            self._emit_label(end_label)
            return

        else_label = f".Lelse{label_id}"
        self._generate_condition_jump(stmt.condition, else_label)
        self._generate_statement(stmt.then_branch)
        self._emit_instruction("jmp", end_label)
        self._emit_label(else_label)
        self._generate_statement(stmt.else_branch)
        self._emit_label(end_label)

    def _generate_while(self, stmt: WhileStatement) -> None:
        label_id = self._new_label_id()
        begin_label = f".Lbegin{label_id}"
        end_label = f".Lend{label_id}"

        self._emit_label(begin_label)
        self._emit_comment("while condition")
        self._generate_condition_jump(stmt.condition, end_label)
        self._generate_statement(stmt.body)
        self._emit_instruction("jmp", begin_label)
        self._emit_label(end_label)

    def _generate_for(self, stmt: ForStatement) -> None:
        label_id = self._new_label_id()
        begin_label = f".Lbegin{label_id}"
        end_label = f".Lend{label_id}"

        if stmt.initializer is not None:
            self._emit_comment("for init")
            self._generate_statement(stmt.initializer)

        self._emit_label(begin_label)

        if stmt.condition is not None:
            self._emit_comment("for condition")
            self._generate_condition_jump(stmt.condition, end_label)

        self._generate_statement(stmt.body)

        if stmt.update is not None:
            self._emit_comment("for update")
            self._generate_statement(stmt.update)

        self._emit_instruction("jmp", begin_label)
        self._emit_label(end_label)

    # =========================================================================
    # Expression Code Generation
    # =========================================================================

    def _generate_expression(self, expr: Optional[Expression]) -> None:
        """Generate code that pushes the value of expr."""
        if isinstance(expr, NumberLiteral):
            self._generate_literal(expr.value)
        elif isinstance(expr, LocalVariable):
            self._generate_address(expr)
            self._emit_instruction("pop", "rax")
            self._emit_instruction("mov", "rax, [rax]")
            self._emit_instruction("push", "rax")
        elif isinstance(expr, BinaryExpression):
            if expr.operator == BinaryOperator.ASSIGN:
                self._generate_assignment(expr)
            else:
                self._generate_binary(expr)
        else:
            raise CompileError(
                f"cannot generate code for {type(expr).__name__}",
                getattr(expr, "location", None),
            )

    def _generate_literal(self, value: int) -> None:
        if PUSH_IMMEDIATE_MIN <= value <= PUSH_IMMEDIATE_MAX:
            self._emit_instruction("push", str(value))
        else:
            self._emit_instruction("mov", f"rax, {value}")
            self._emit_instruction("push", "rax")

    def _generate_address(self, expr: Expression) -> None:
        """
        Push the address of an lvalue.

        Raises:
            InvalidLValueError: If expr is not a variable
        """
        if not isinstance(expr, LocalVariable):
            raise InvalidLValueError(expr.location)

        self._emit_instruction("mov", "rax, rbp")
        self._emit_instruction("sub", f"rax, {expr.offset}")
        self._emit_instruction("push", "rax")

    def _generate_assignment(self, expr: BinaryExpression) -> None:
        """Store right into left and push the stored value."""
        self._generate_address(expr.left)
        self._generate_expression(expr.right)

        self._emit_instruction("pop", "rdi")
        self._emit_instruction("pop", "rax")
        self._emit_instruction("mov", "[rax], rdi")
        self._emit_instruction("push", "rdi")

    def _generate_binary(self, expr: BinaryExpression) -> None:
        """
        Evaluate left then right, combine them and push the result.

        Left-nested chains such as 1 + 2 + 3 + ... are walked down their
        left spine in a loop, so their length is not bounded by the
        Python recursion limit.
        """
        spine = []
        node: Expression = expr
        while isinstance(node, BinaryExpression) and node.operator != BinaryOperator.ASSIGN:
            spine.append(node)
            node = node.left

        self._generate_expression(node)
        for binary in reversed(spine):
            self._generate_expression(binary.right)
            self._emit_operator(binary)

    def _emit_operator(self, expr: BinaryExpression) -> None:
        """Pop right and left operands, combine them and push the result."""
        self._emit_instruction("pop", "rdi")
        self._emit_instruction("pop", "rax")

        op = expr.operator
        if op in ARITHMETIC_INSTRUCTIONS:
            self._emit_instruction(ARITHMETIC_INSTRUCTIONS[op], "rax, rdi")
        elif op == BinaryOperator.DIVIDE:
            # Sign-extend RAX into RDX:RAX before the signed divide
            self._emit_instruction("cqo")
            self._emit_instruction("idiv", "rdi")
        elif op in COMPARISON_SET:
            self._emit_instruction("cmp", "rax, rdi")
            self._emit_instruction(COMPARISON_SET[op], "al")
            self._emit_instruction("movzb", "rax, al")
        else:
            raise CompileError(f"unsupported operator {op.name}", expr.location)

        self._emit_instruction("push", "rax")
