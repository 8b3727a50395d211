"""
Code Generator Test Suite
=========================

Tests for the x86-64 code generator: framing, instruction selection,
labels and lvalue checking.
"""

import pytest

from minicc.compiler.codegen import CodeGenerator
from minicc.compiler.parser import parse_source
from minicc.compiler.errors import InvalidLValueError, ParseError


def generate(source: str, **kwargs) -> str:
    return CodeGenerator(**kwargs).generate(parse_source(source, "test.c"))


def instructions(source: str, **kwargs) -> list[str]:
    """Non-label, non-directive lines, stripped."""
    return [
        line.strip()
        for line in generate(source, **kwargs).splitlines()
        if line.startswith("  ")
    ]


# =============================================================================
# Framing
# =============================================================================

class TestFraming:
    """Tests for header, prologue and epilogue."""

    def test_return_constant(self):
        assert generate("return 42;") == (
            ".intel_syntax noprefix\n"
            ".global main\n"
            "main:\n"
            "  push rbp\n"
            "  mov rbp, rsp\n"
            "  push 42\n"
            "  pop rax\n"
            "  mov rsp, rbp\n"
            "  pop rbp\n"
            "  ret\n"
            "  mov rsp, rbp\n"
            "  pop rbp\n"
            "  ret\n"
        )

    def test_empty_program(self):
        lines = generate("").splitlines()
        assert lines == [
            ".intel_syntax noprefix",
            ".global main",
            "main:",
            "  push rbp",
            "  mov rbp, rsp",
            "  mov rsp, rbp",
            "  pop rbp",
            "  ret",
        ]

    @pytest.mark.parametrize("source,frame", [
        ("return 0;", None),
        ("a = 1;", 16),
        ("a = 1; b = 2;", 16),
        ("a = 1; b = 2; c = 3;", 32),
        ("a; b; c; d; e;", 48),
    ])
    def test_frame_size(self, source, frame):
        lines = instructions(source)
        subs = [line for line in lines if line.startswith("sub rsp,")]
        if frame is None:
            assert subs == []
        else:
            assert subs == [f"sub rsp, {frame}"]

    def test_frame_size_alignment_option(self):
        gen = CodeGenerator(stack_alignment=8)
        assert gen.frame_size(3) == 24
        assert CodeGenerator(stack_alignment=1).frame_size(0) == 0
        assert CodeGenerator().frame_size(1) == 16

    def test_custom_entry_point(self):
        text = generate("return 0;", entry_point="start")
        assert ".global start\nstart:\n" in text
        assert "main" not in text

    def test_comments(self):
        text = generate("if (1) return 2;", output_comments=True)
        assert "  # if condition" in text
        assert "  # return" in text
        assert "#" not in generate("if (1) return 2;")


# =============================================================================
# Expressions
# =============================================================================

class TestExpressionCode:
    """Tests for instruction selection."""

    @pytest.mark.parametrize("op,expected", [
        ("+", ["add rax, rdi"]),
        ("-", ["sub rax, rdi"]),
        ("*", ["imul rax, rdi"]),
        ("/", ["cqo", "idiv rdi"]),
        ("==", ["cmp rax, rdi", "sete al", "movzb rax, al"]),
        ("!=", ["cmp rax, rdi", "setne al", "movzb rax, al"]),
        ("<", ["cmp rax, rdi", "setl al", "movzb rax, al"]),
        ("<=", ["cmp rax, rdi", "setle al", "movzb rax, al"]),
    ])
    def test_binary_operators(self, op, expected):
        lines = instructions(f"return 7 {op} 2;")
        body = lines[2:]
        assert body[:4] == ["push 7", "push 2", "pop rdi", "pop rax"]
        assert body[4:4 + len(expected)] == expected
        assert body[4 + len(expected)] == "push rax"

    def test_greater_than_uses_swapped_setl(self):
        lines = instructions("return 7 > 2;")
        assert lines[2:4] == ["push 2", "push 7"]
        assert "setl al" in lines

    def test_no_setg_emitted(self):
        text = generate("a = 1 > 2; b = 3 >= 4;")
        assert "setg" not in text
        assert "setle al" in text

    @pytest.mark.parametrize("literal", [0, 1, 2147483647])
    def test_small_literal_pushed_directly(self, literal):
        lines = instructions(f"return {literal};")
        assert lines[2:4] == [f"push {literal}", "pop rax"]

    def test_negated_literal_at_boundary(self):
        # -2147483648 is 0 - 2147483648, and the operand itself is out of range
        lines = instructions("return -2147483648;")
        assert lines[2:5] == ["push 0", "mov rax, 2147483648", "push rax"]

    @pytest.mark.parametrize("literal", [2147483648, 4294967296, 9223372036854775807])
    def test_large_literal_through_rax(self, literal):
        lines = instructions(f"return {literal};")
        assert lines[2:4] == [f"mov rax, {literal}", "push rax"]
        assert f"push {literal}" not in lines

    def test_literal_boundary(self):
        lines = instructions("return 2147483647 + 2147483648;")
        assert lines[2:5] == ["push 2147483647", "mov rax, 2147483648", "push rax"]

    def test_long_chain_matches_short_chain_shape(self):
        short = instructions("return 1 + 2 + 3;")
        long = instructions("return " + " + ".join(["1"] * 1500) + ";")
        assert short[2:9] == ["push 1", "push 2", "pop rdi", "pop rax", "add rax, rdi", "push rax", "push 3"]
        assert long[2:9] == ["push 1", "push 1", "pop rdi", "pop rax", "add rax, rdi", "push rax", "push 1"]
        assert long.count("add rax, rdi") == 1499

    def test_chain_with_assignment_operand(self):
        lines = instructions("return (a = 2) + 3;")
        assert lines[3:6] == ["mov rax, rbp", "sub rax, 8", "push rax"]
        assert lines.count("add rax, rdi") == 1

    def test_variable_load(self):
        lines = instructions("a = 5; return a;")
        load = ["mov rax, rbp", "sub rax, 8", "push rax", "pop rax", "mov rax, [rax]", "push rax"]
        text = "\n".join(lines)
        assert "\n".join(load) in text

    def test_assignment(self):
        lines = instructions("b = 1; a = 5;")
        store = [
            "mov rax, rbp", "sub rax, 16", "push rax",
            "push 5",
            "pop rdi", "pop rax", "mov [rax], rdi", "push rdi",
            "pop rax",
        ]
        assert lines[-len(store) - 3:-3] == store

    def test_expression_statement_discarded(self):
        lines = instructions("1; 2;")
        assert lines[2:6] == ["push 1", "pop rax", "push 2", "pop rax"]

    def test_invalid_lvalue(self):
        with pytest.raises(InvalidLValueError) as exc_info:
            generate("1 = 2;")
        assert exc_info.value.location.column == 1

    def test_invalid_lvalue_expression(self):
        with pytest.raises(ParseError, match="not assignable"):
            generate("a = 1; (a + 1) = 2;")


# =============================================================================
# Control Flow
# =============================================================================

class TestControlFlowCode:
    """Tests for labels and jumps."""

    def test_if_without_else(self):
        text = generate("if (1) 2;")
        assert "  cmp rax, 0\n  je .Lend1\n" in text
        assert ".Lend1:" in text
        assert ".Lelse" not in text

    def test_if_else(self):
        text = generate("if (1) 2; else 3;")
        assert "  je .Lelse1\n" in text
        assert "  jmp .Lend1\n.Lelse1:\n" in text
        assert text.count(".Lend1:") == 1

    def test_while(self):
        lines = generate("while (0) 1;").splitlines()
        begin = lines.index(".Lbegin1:")
        end = lines.index(".Lend1:")
        assert lines[end - 1] == "  jmp .Lbegin1"
        assert "  je .Lend1" in lines[begin:end]

    def test_for_layout(self):
        lines = generate("for (i = 0; i < 2; i = i + 1) ;").splitlines()
        begin = lines.index(".Lbegin1:")
        end = lines.index(".Lend1:")
        # Initializer runs once, before the loop label, and is discarded
        assert lines[begin - 1] == "  pop rax"
        assert lines[end - 1] == "  jmp .Lbegin1"
        assert lines[end - 2] == "  pop rax"

    def test_for_without_condition_has_no_exit_test(self):
        text = generate("for (;;) return 1;")
        assert "je" not in text
        assert ".Lend1:" in text

    def test_labels_unique(self):
        text = generate("if (1) 1; while (0) 0; for (;0;) ; if (1) 2; else 3;")
        labels = [line for line in text.splitlines() if line.endswith(":")]
        assert len(labels) == len(set(labels))
        assert ".Lend4:" in labels

    def test_nested_labels(self):
        text = generate("while (1) if (0) 1; else 2;")
        assert ".Lbegin1:" in text
        assert ".Lelse2:" in text

    def test_generate_resets_labels(self):
        gen = CodeGenerator()
        program = parse_source("if (1) 2;", "test.c")
        assert gen.generate(program) == gen.generate(program)

    def test_every_label_has_one_definition(self):
        text = generate("for (i = 0; i < 3; i = i + 1) { if (i == 1) a = 1; else a = 2; }")
        lines = text.splitlines()
        for line in lines:
            if line.strip().startswith(("jmp", "je")):
                target = line.split()[-1]
                assert lines.count(f"{target}:") == 1
