"""
MiniCPU: Register File

Register model:
  R0..R7 : 8-bit general registers
  PC     : 16-bit program counter

Conventions (enforced by the code generator, not by the hardware):
  R0, R1 : scratch operands for ALU ops; base address hi/lo for LOADX/STOREX
  R2     : carry/underflow flag written by SUB; index for LOADX/STOREX
  R3     : constant 1, so `JNZ R3, target` is an unconditional jump
  R4     : data register for LOADX/STOREX
  R5, R6 : array bounds-check scratch
"""

from typing import List

NUM_REGS = 8

REG_CARRY = 2
REG_ONE = 3
REG_INDEXED = 4


class Registers:
    """MiniCPU register set."""

    __slots__ = ('R', 'PC', 'halted', 'steps')

    def __init__(self):
        self.R: List[int] = [0] * NUM_REGS
        self.PC: int = 0
        self.halted: bool = False
        self.steps: int = 0

    @property
    def carry(self) -> bool:
        return bool(self.R[REG_CARRY])

    def reset(self, pc: int = 0):
        """Clear all registers and the halted flag."""
        self.R = [0] * NUM_REGS
        self.PC = pc & 0xFFFF
        self.halted = False
        self.steps = 0

    def display(self) -> str:
        """Single-line register dump for trace output."""
        regs = ' '.join(f'R{i}={v:02X}' for i, v in enumerate(self.R))
        return f"PC={self.PC:04X} {regs}"

    def __repr__(self):
        return f"Registers({self.display()})"
