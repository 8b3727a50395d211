"""
Stack Machine Emulator
======================

Executes the x86-64 assembly produced by the code generator without a
native toolchain. Only the instruction subset the generator emits is
understood; anything else is a fault.

Machine Model
-------------
- 64-bit registers: RAX, RDI, RDX, RBP, RSP (AL is the low byte of RAX)
- Values are stored unsigned and wrap modulo 2**64; arithmetic is
  two's-complement, division truncates toward zero
- Memory is a sparse map of 8-byte words covering the stack only.
  A word that was never written reads as zero
- A single comparison result stands in for the flags register

Supported Instructions
----------------------
    push src          pop reg           mov dst, src
    add reg, src      sub reg, src      imul reg, src
    cqo               idiv src          cmp reg, src
    sete al           setne al          setl al          setle al
    movzb rax, al     jmp label         je label         ret

Operands are registers, signed decimal immediates, or [reg] memory
references. Directives (.intel_syntax, .global) and '#' comments are
accepted and ignored apart from .global, which names the entry point.

Example:
    >>> from minicc.emulator import run_source
    >>> run_source("a = 6; return a * 7;")
    42
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from minicc.errors import MiniCError


logger = logging.getLogger(__name__)

MASK64 = (1 << 64) - 1

# Top of the emulated stack; RSP starts here and grows down
STACK_TOP = 0x7FFF_0000_0000
DEFAULT_STACK_SIZE = 1 << 20
DEFAULT_MAX_STEPS = 1_000_000

# Range of the sign-extended 32-bit immediate accepted by push
PUSH_IMMEDIATE_MIN = -(2**31)
PUSH_IMMEDIATE_MAX = 2**31 - 1

# Return address pushed before entry; returning to it halts the machine
HALT_ADDRESS = 0xDEAD_0000

REGISTERS = ("rax", "rdi", "rdx", "rbp", "rsp")


def _is_immediate(operand: str) -> bool:
    return operand.lstrip("-").isdigit()


def to_signed(value: int) -> int:
    """Interpret a 64-bit unsigned value as two's-complement."""
    value &= MASK64
    return value - (1 << 64) if value & (1 << 63) else value


class EmulatorError(MiniCError):
    """
    Fault raised while loading or executing assembly.

    Attributes:
        line: 1-indexed assembly line of the faulting instruction, if known
    """

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class Instruction:
    """One decoded assembly instruction."""
    mnemonic: str
    operands: tuple[str, ...]
    line: int

    def __str__(self) -> str:
        if self.operands:
            return f"{self.mnemonic} {', '.join(self.operands)}"
        return self.mnemonic


# =============================================================================
# Machine
# =============================================================================

class Machine:
    """
    Executes generated assembly and reports the value left in RAX.

    Example:
        >>> machine = Machine(assembly)
        >>> machine.run()
        3

    Attributes:
        instructions: Decoded program, in source order
        labels: Label name to instruction index
        entry_point: Label where execution starts
        max_steps: Instruction budget for one run
        steps: Instructions executed by the last run
    """

    def __init__(
        self,
        assembly: str,
        entry_point: Optional[str] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        stack_size: int = DEFAULT_STACK_SIZE,
    ):
        self.max_steps = max_steps
        self.stack_size = stack_size
        self.instructions: list[Instruction] = []
        self.labels: dict[str, int] = {}

        global_symbol = self._load(assembly)
        self.entry_point = entry_point or global_symbol or "main"
        if self.entry_point not in self.labels:
            raise EmulatorError(f"entry point '{self.entry_point}' is not defined")

        self.registers: dict[str, int] = {}
        self.memory: dict[int, int] = {}
        self.steps = 0
        self._pc = 0
        self._halted = False
        # Signed operands of the last cmp
        self._compared: tuple[int, int] = (0, 0)

        self._handlers: dict[str, Callable[[Instruction], None]] = {
            "push": self._op_push,
            "pop": self._op_pop,
            "mov": self._op_mov,
            "add": self._op_add,
            "sub": self._op_sub,
            "imul": self._op_imul,
            "cqo": self._op_cqo,
            "idiv": self._op_idiv,
            "cmp": self._op_cmp,
            "sete": self._op_setcc,
            "setne": self._op_setcc,
            "setl": self._op_setcc,
            "setle": self._op_setcc,
            "movzb": self._op_movzb,
            "jmp": self._op_jmp,
            "je": self._op_je,
            "ret": self._op_ret,
        }

    # =========================================================================
    # Loading
    # =========================================================================

    def _load(self, assembly: str) -> Optional[str]:
        """Decode assembly text; return the .global symbol if any."""
        global_symbol = None

        for line_number, raw in enumerate(assembly.splitlines(), start=1):
            text = raw.split("#", 1)[0].strip()
            if not text:
                continue

            if text.endswith(":"):
                name = text[:-1].strip()
                if name in self.labels:
                    raise EmulatorError(f"duplicate label '{name}'", line_number)
                self.labels[name] = len(self.instructions)
                continue

            if text.startswith("."):
                directive, _, argument = text.partition(" ")
                if directive in (".global", ".globl"):
                    global_symbol = argument.strip()
                continue

            mnemonic, _, rest = text.partition(" ")
            operands = tuple(op.strip() for op in rest.split(",")) if rest.strip() else ()
            self.instructions.append(Instruction(mnemonic.lower(), operands, line_number))

        logger.debug(
            f"Loaded {len(self.instructions)} instructions, {len(self.labels)} labels"
        )
        return global_symbol

    # =========================================================================
    # Execution
    # =========================================================================

    def reset(self) -> None:
        """Clear registers and memory and point at the entry label."""
        self.registers = {name: 0 for name in REGISTERS}
        self.memory = {}
        self.registers["rsp"] = STACK_TOP
        self.steps = 0
        self._halted = False
        self._compared = (0, 0)
        self._push(HALT_ADDRESS)
        self._pc = self.labels[self.entry_point]

    def run(self) -> int:
        """
        Execute from the entry point until it returns.

        Returns:
            RAX at the final ret, as a signed 64-bit integer

        Raises:
            EmulatorError: On any fault or when max_steps is exceeded
        """
        self.reset()

        while not self._halted:
            if self._pc >= len(self.instructions):
                raise EmulatorError("execution ran past the end of the program")
            if self.steps >= self.max_steps:
                raise EmulatorError(f"step limit of {self.max_steps} exceeded")

            instruction = self.instructions[self._pc]
            self._pc += 1
            self.steps += 1
            self._execute(instruction)

        result = to_signed(self.registers["rax"])
        logger.debug(f"Halted after {self.steps} steps, rax = {result}")
        return result

    def _execute(self, instruction: Instruction) -> None:
        handler = self._handlers.get(instruction.mnemonic)
        if handler is None:
            raise EmulatorError(
                f"unknown instruction '{instruction.mnemonic}'", instruction.line
            )
        try:
            handler(instruction)
        except EmulatorError as e:
            if e.line is None:
                raise EmulatorError(str(e), instruction.line) from e
            raise

    # =========================================================================
    # Operand Access
    # =========================================================================

    def _expect_operands(self, instruction: Instruction, count: int) -> tuple[str, ...]:
        if len(instruction.operands) != count:
            raise EmulatorError(
                f"'{instruction.mnemonic}' takes {count} operand(s), "
                f"got {len(instruction.operands)}",
                instruction.line,
            )
        return instruction.operands

    def _address(self, operand: str) -> Optional[int]:
        """Effective address of a [reg] operand, or None for other forms."""
        if operand.startswith("[") and operand.endswith("]"):
            return self._read_register(operand[1:-1].strip())
        return None

    def _read_register(self, name: str) -> int:
        if name == "al":
            return self.registers["rax"] & 0xFF
        if name not in self.registers:
            raise EmulatorError(f"unknown register '{name}'")
        return self.registers[name]

    def _write_register(self, name: str, value: int) -> None:
        if name == "al":
            self.registers["rax"] = (self.registers["rax"] & ~0xFF & MASK64) | (value & 0xFF)
            return
        if name not in self.registers:
            raise EmulatorError(f"unknown register '{name}'")
        self.registers[name] = value & MASK64

    def _read(self, operand: str) -> int:
        """Value of a register, immediate or memory operand."""
        address = self._address(operand)
        if address is not None:
            return self._load_word(address)
        try:
            return int(operand, 10) & MASK64
        except ValueError:
            return self._read_register(operand)

    def _write(self, operand: str, value: int) -> None:
        address = self._address(operand)
        if address is not None:
            self._store_word(address, value)
        else:
            self._write_register(operand, value)

    def _check_address(self, address: int) -> None:
        if not STACK_TOP - self.stack_size <= address <= STACK_TOP - 8:
            raise EmulatorError(f"memory access out of range at 0x{address:X}")
        if address % 8:
            raise EmulatorError(f"unaligned memory access at 0x{address:X}")

    def _load_word(self, address: int) -> int:
        self._check_address(address)
        return self.memory.get(address, 0)

    def _store_word(self, address: int, value: int) -> None:
        self._check_address(address)
        self.memory[address] = value & MASK64

    def _push(self, value: int) -> None:
        rsp = (self.registers["rsp"] - 8) & MASK64
        self._store_word(rsp, value)
        self.registers["rsp"] = rsp

    def _pop(self) -> int:
        rsp = self.registers["rsp"]
        value = self._load_word(rsp)
        self.registers["rsp"] = (rsp + 8) & MASK64
        return value

    def _jump(self, label: str) -> None:
        if label not in self.labels:
            raise EmulatorError(f"undefined label '{label}'")
        self._pc = self.labels[label]

    # =========================================================================
    # Instruction Handlers
    # =========================================================================

    def _op_push(self, instruction: Instruction) -> None:
        (src,) = self._expect_operands(instruction, 1)
        if _is_immediate(src) and not PUSH_IMMEDIATE_MIN <= int(src) <= PUSH_IMMEDIATE_MAX:
            raise EmulatorError(f"push immediate {src} does not fit in 32 bits")
        self._push(self._read(src))

    def _op_pop(self, instruction: Instruction) -> None:
        (dst,) = self._expect_operands(instruction, 1)
        self._write(dst, self._pop())

    def _op_mov(self, instruction: Instruction) -> None:
        dst, src = self._expect_operands(instruction, 2)
        self._write(dst, self._read(src))

    def _op_add(self, instruction: Instruction) -> None:
        dst, src = self._expect_operands(instruction, 2)
        self._write(dst, self._read(dst) + self._read(src))

    def _op_sub(self, instruction: Instruction) -> None:
        dst, src = self._expect_operands(instruction, 2)
        self._write(dst, self._read(dst) - self._read(src))

    def _op_imul(self, instruction: Instruction) -> None:
        dst, src = self._expect_operands(instruction, 2)
        self._write(dst, to_signed(self._read(dst)) * to_signed(self._read(src)))

    def _op_cqo(self, instruction: Instruction) -> None:
        self._expect_operands(instruction, 0)
        negative = self.registers["rax"] & (1 << 63)
        self.registers["rdx"] = MASK64 if negative else 0

    def _op_idiv(self, instruction: Instruction) -> None:
        """Signed divide RDX:RAX by src; quotient to RAX, remainder to RDX."""
        (src,) = self._expect_operands(instruction, 1)
        divisor = to_signed(self._read(src))
        if divisor == 0:
            raise EmulatorError("division by zero")

        dividend = (self.registers["rdx"] << 64) | self.registers["rax"]
        if dividend & (1 << 127):
            dividend -= 1 << 128

        # Truncate toward zero, unlike Python's floor division
        quotient = abs(dividend) // abs(divisor)
        if (dividend < 0) != (divisor < 0):
            quotient = -quotient
        remainder = dividend - quotient * divisor

        if not -(1 << 63) <= quotient < (1 << 63):
            raise EmulatorError("division overflow")

        self.registers["rax"] = quotient & MASK64
        self.registers["rdx"] = remainder & MASK64

    def _op_cmp(self, instruction: Instruction) -> None:
        left, right = self._expect_operands(instruction, 2)
        self._compared = (to_signed(self._read(left)), to_signed(self._read(right)))

    def _op_setcc(self, instruction: Instruction) -> None:
        (dst,) = self._expect_operands(instruction, 1)
        left, right = self._compared
        outcome = {
            "sete": left == right,
            "setne": left != right,
            "setl": left < right,
            "setle": left <= right,
        }[instruction.mnemonic]
        self._write(dst, int(outcome))

    def _op_movzb(self, instruction: Instruction) -> None:
        dst, src = self._expect_operands(instruction, 2)
        self._write(dst, self._read(src) & 0xFF)

    def _op_jmp(self, instruction: Instruction) -> None:
        (label,) = self._expect_operands(instruction, 1)
        self._jump(label)

    def _op_je(self, instruction: Instruction) -> None:
        (label,) = self._expect_operands(instruction, 1)
        left, right = self._compared
        if left == right:
            self._jump(label)

    def _op_ret(self, instruction: Instruction) -> None:
        self._expect_operands(instruction, 0)
        address = self._pop()
        if address != HALT_ADDRESS:
            raise EmulatorError(f"return to unknown address 0x{address:X}")
        self._halted = True


# =============================================================================
# Convenience Functions
# =============================================================================

def run_assembly(assembly: str, max_steps: int = DEFAULT_MAX_STEPS) -> int:
    """Execute assembly text and return the program result."""
    return Machine(assembly, max_steps=max_steps).run()


def run_source(source: str, max_steps: int = DEFAULT_MAX_STEPS) -> int:
    """
    Compile source text and execute it.

    Raises:
        CompileError: If compilation fails
        EmulatorError: If execution faults
    """
    from minicc.compiler import compile_c

    return run_assembly(compile_c(source), max_steps=max_steps)
