"""
minicc Command-Line Interface
=============================

This package provides the command-line tool for minicc:

- **mcc**: compiler, with AST/token dumps and an emulator run mode

The tool is a Click-based CLI application; errors are reported through
the shared handler in minicc.cli.errors.
"""

__all__ = ["mcc"]
