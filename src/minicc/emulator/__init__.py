"""
minicc Emulator
===============

Runs generated assembly on a small x86-64 stack-machine model, so
programs can be checked without assembling and linking them natively.

>>> from minicc.emulator import Machine
>>> from minicc.compiler import compile_c
>>> Machine(compile_c("return 2 * (3 + 4);")).run()
14
"""

from minicc.emulator.machine import (
    Machine,
    Instruction,
    EmulatorError,
    run_assembly,
    run_source,
    to_signed,
    DEFAULT_MAX_STEPS,
)

__all__ = [
    "Machine",
    "Instruction",
    "EmulatorError",
    "run_assembly",
    "run_source",
    "to_signed",
    "DEFAULT_MAX_STEPS",
]
