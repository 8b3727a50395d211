"""
minicc Test Configuration
=========================

Shared fixtures for the minicc test suite.

It provides:
- compile_and_run: compile a program and execute it on the emulator
- native_cc: path of a host C compiler able to build x86-64 code, if any
"""

import platform
import shutil
from typing import Callable

import pytest

from minicc.compiler import compile_c
from minicc.emulator import Machine


@pytest.fixture
def compile_and_run() -> Callable[[str], int]:
    """
    Fixture: compile source text and return the program result.

    Usage:
        def test_add(compile_and_run):
            assert compile_and_run("return 1 + 2;") == 3
    """
    def _run(source: str) -> int:
        return Machine(compile_c(source)).run()

    return _run


@pytest.fixture(scope="session")
def native_cc() -> str:
    """
    Fixture: host C compiler for assembling generated code.

    Skips the requesting test unless running on x86-64 Linux with cc or
    gcc on PATH.
    """
    if platform.system() != "Linux" or platform.machine() not in ("x86_64", "AMD64"):
        pytest.skip("native tests need an x86-64 Linux host")

    for name in ("cc", "gcc", "clang"):
        path = shutil.which(name)
        if path:
            return path

    pytest.skip("no host C compiler found")
