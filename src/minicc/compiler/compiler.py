"""
Compiler Main Module
====================

This module provides the main compiler interface. It runs the three
stages in order:

    Source → Lex → Parse → Generate → Assembly

Usage
-----
Command line:
    $ mcc "a = 3; return a * 2;" -o prog.s

Programmatic:
    >>> from minicc.compiler import compile_c
    >>> asm = compile_c("return 42;")

The generated assembly can be assembled and linked with a host C
toolchain (`cc -o prog prog.s`); the program's exit status is its result.

Error Handling
--------------
The first error aborts the compilation: the CompileError raised by the
failing stage propagates unchanged and no assembly is returned.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from minicc.compiler.lexer import Lexer, Token
from minicc.compiler.parser import Parser
from minicc.compiler.codegen import CodeGenerator
from minicc.compiler.ast import ProgramNode


logger = logging.getLogger(__name__)


_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        output_comments: Annotate the generated assembly with comments
        entry_point: Global symbol the program is emitted under
        stack_alignment: The stack frame is rounded up to a multiple of this
    """
    output_comments: bool = False
    entry_point: str = "main"
    stack_alignment: int = 16

    def __post_init__(self):
        if self.stack_alignment < 8 or self.stack_alignment % 8:
            raise ValueError(
                f"stack_alignment must be a positive multiple of 8, got {self.stack_alignment}"
            )
        if not self.entry_point:
            raise ValueError("entry_point must not be empty")

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """
        Create CompilerOptions from environment variables.

        Environment variables (all optional):
            MINICC_OUTPUT_COMMENTS: "1"/"true"/"yes"/"on" to annotate output
            MINICC_ENTRY_POINT: entry-point symbol name
            MINICC_STACK_ALIGNMENT: frame alignment in bytes
        """
        kwargs = {}

        if value := os.environ.get("MINICC_OUTPUT_COMMENTS"):
            kwargs["output_comments"] = value.strip().lower() in _TRUE_VALUES

        if value := os.environ.get("MINICC_ENTRY_POINT"):
            kwargs["entry_point"] = value.strip()

        if value := os.environ.get("MINICC_STACK_ALIGNMENT"):
            kwargs["stack_alignment"] = int(value)

        return cls(**kwargs)


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        filename: Source filename
        success: True if compilation succeeded
        assembly: Generated assembly code
        ast: The parsed program
        token_count: Number of tokens lexed (including EOF)
        variable_count: Number of distinct variables
    """
    filename: str = ""
    success: bool = False
    assembly: str = ""
    ast: Optional[ProgramNode] = None
    token_count: int = 0
    variable_count: int = 0


class MiniCCompiler:
    """
    Main interface for compiling minicc source to assembly.

    Every call to compile_source() builds fresh lexer, parser and
    generator instances, so one compiler object can be reused for many
    programs without state leaking between them.

    Example:
        compiler = MiniCCompiler()
        result = compiler.compile_source("return 1 + 2;")
        print(result.assembly)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile source text to assembly.

        Args:
            source: Program text
            filename: Source filename for error messages

        Returns:
            CompilerResult containing the assembly and diagnostics data

        Raises:
            CompileError: If any stage fails
        """
        result = CompilerResult(filename=filename)

        tokens = self._lex(source, filename)
        result.token_count = len(tokens)

        ast = self._parse(tokens, filename, source.split("\n"))
        result.ast = ast
        result.variable_count = ast.local_count

        result.assembly = self._generate(ast)
        result.success = True

        logger.debug(
            f"Compiled {filename}: {result.token_count} tokens, "
            f"{len(ast.statements)} statements, {result.variable_count} variables"
        )
        return result

    def compile_file(self, filepath: str | Path) -> CompilerResult:
        """
        Compile a source file to assembly.

        Raises:
            CompileError: If compilation fails
            FileNotFoundError: If the source file does not exist
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding="utf-8")
        return self.compile_source(source, str(filepath))

    def _lex(self, source: str, filename: str) -> list[Token]:
        tokens = list(Lexer(source, filename).tokenize())
        logger.debug(f"Lexed {len(tokens)} tokens")
        return tokens

    def _parse(self, tokens: list[Token], filename: str, source_lines: list[str]) -> ProgramNode:
        return Parser(tokens, filename, source_lines).parse()

    def _generate(self, ast: ProgramNode) -> str:
        generator = CodeGenerator(
            entry_point=self.options.entry_point,
            stack_alignment=self.options.stack_alignment,
            output_comments=self.options.output_comments,
        )
        return generator.generate(ast)


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_c(
    source: str,
    filename: str = "<input>",
    options: Optional[CompilerOptions] = None,
) -> str:
    """
    Compile source text to assembly.

    Raises:
        CompileError: If compilation fails

    Example:
        >>> asm = compile_c("a = b = 3; return a + b;")
    """
    return MiniCCompiler(options).compile_source(source, filename).assembly


def compile_file(
    filepath: str | Path,
    output_path: Optional[str | Path] = None,
    options: Optional[CompilerOptions] = None,
) -> str:
    """
    Compile a source file, optionally writing the assembly to output_path.

    Raises:
        CompileError: If compilation fails
        FileNotFoundError: If the source file does not exist
    """
    result = MiniCCompiler(options).compile_file(filepath)

    if output_path:
        Path(output_path).write_text(result.assembly, encoding="utf-8")

    return result.assembly
