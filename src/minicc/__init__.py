"""
minicc - A Minimal C-Subset Compiler for x86-64
===============================================

This package compiles programs written in a tiny C-like language into
x86-64 assembly (GNU assembler, Intel syntax) that runs as a stand-alone
`main` function.

A program is a sequence of statements over implicitly declared 64-bit
integer variables. Its result is the value of the first `return` that
executes, which becomes the process exit status when the program is
assembled and linked natively.

Main Components
---------------
- **compiler**: lexer, parser, code generator and pipeline driver (mcc)
    Converts program text into assembly

- **emulator**: stack-machine executor
    Runs the generated assembly and reports the program result

Quick Start
-----------
Compile a program:
    >>> from minicc import compile_c
    >>> asm = compile_c("a = 3; b = 5 * 6 - 8; return a + b / 2;")

Compile and run on the emulator:
    >>> from minicc import run_source
    >>> run_source("a = 3; b = 5 * 6 - 8; return a + b / 2;")
    14

Or use the command-line tool:
    $ mcc "return 42;" -o prog.s
    $ cc -o prog prog.s && ./prog; echo $?
    42

Version History
---------------
1.0.0 - Initial release with compiler, emulator and mcc
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from minicc.errors import MiniCError, SourceLocation
from minicc.compiler import (
    MiniCCompiler,
    CompilerOptions,
    CompilerResult,
    CompileError,
    LexError,
    ParseError,
    compile_c,
    compile_file,
)
from minicc.emulator import Machine, EmulatorError, run_source

__all__ = [
    # Version
    "__version__",
    # Errors
    "MiniCError",
    "SourceLocation",
    "CompileError",
    "LexError",
    "ParseError",
    "EmulatorError",
    # Compiler
    "MiniCCompiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_c",
    "compile_file",
    # Emulator
    "Machine",
    "run_source",
]
