"""
minicc Compiler
===============

Lexer, parser and code generator for a small C-like language, emitting
x86-64 assembly that evaluates expressions on the machine stack.

Pipeline
--------
    Source → Lexer → Parser → AST → Code Generator → Assembly

Usage
-----
>>> from minicc.compiler import compile_c
>>> print(compile_c("for (i = 0; i < 5; i = i + 1) ; return i;"))

Language Subset
---------------
- 64-bit signed integers only
- Operators: + - * / == != < <= > >= =, unary + and -
- Statements: expression, return, if/else, while, for, { blocks }
- Variables spring into existence on first mention

Not supported:
- Functions, types, pointers, arrays
- Comments, logical operators, '!'
"""

from minicc.compiler.compiler import (
    MiniCCompiler,
    CompilerOptions,
    CompilerResult,
    compile_c,
    compile_file,
)
from minicc.compiler.errors import (
    CompileError,
    LexError,
    InvalidCharacterError,
    LiteralOverflowError,
    ParseError,
    UnexpectedTokenError,
    MissingTokenError,
    InvalidLValueError,
    NestingTooDeepError,
)
from minicc.compiler.lexer import Lexer, Token, TokenType, tokenize
from minicc.compiler.parser import Parser, SymbolTable, parse_source, SLOT_SIZE
from minicc.compiler.codegen import CodeGenerator
from minicc.compiler.ast import (
    ASTNode,
    ASTPrinter,
    ProgramNode,
    BlockStatement,
    IfStatement,
    WhileStatement,
    ForStatement,
    ReturnStatement,
    BinaryExpression,
    BinaryOperator,
    LocalVariable,
    NumberLiteral,
)

__all__ = [
    # Main API
    "MiniCCompiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_c",
    "compile_file",
    # Errors
    "CompileError",
    "LexError",
    "InvalidCharacterError",
    "LiteralOverflowError",
    "ParseError",
    "UnexpectedTokenError",
    "MissingTokenError",
    "InvalidLValueError",
    "NestingTooDeepError",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # Parser
    "Parser",
    "SymbolTable",
    "parse_source",
    "SLOT_SIZE",
    # Code Generator
    "CodeGenerator",
    # AST Nodes
    "ASTNode",
    "ASTPrinter",
    "ProgramNode",
    "BlockStatement",
    "IfStatement",
    "WhileStatement",
    "ForStatement",
    "ReturnStatement",
    "BinaryExpression",
    "BinaryOperator",
    "LocalVariable",
    "NumberLiteral",
]
