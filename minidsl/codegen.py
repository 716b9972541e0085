"""
MiniCPU Code Generator for MiniDSL.

Translates the IR list into a MiniCPU bytecode image in a single linear
scan. Forward jumps are emitted with a $0000 placeholder and recorded as a
Patch; after the scan every patch is overwritten with the label's absolute
address (big-endian). A jump to a label that was never defined is a
CodeGenError.

Register usage convention:
  - R0, R1: scratch operands; base address hi/lo for LOADX/STOREX
  - R2: carry flag from SUB; index for LOADX/STOREX
  - R3: constant 1 (prologue), so `JNZ R3, L` is an unconditional jump
  - R4: data register for LOADX/STOREX
  - R5, R6: runtime array bounds check

Memory layout:
  - $2000-$7FFF: code (origin configurable)
  - $8000-$FEFF: data, bump-allocated per CodeGenerator
  - $FF00: console output register
  - $FF01: console input register

Scalars are allocated one byte on first reference. Arrays reserve their
full length at declaration. A variable array index is checked at run time
against the declared length; out-of-range indices jump to a shared stub
that executes `TRAP $01`.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from minicpu.cpu.decoder import (
    OP_HALT, OP_LOAD, OP_LOADI, OP_STORE, OP_STOREI, OP_ADD, OP_SUB,
    OP_JNZ, OP_JZ, OP_IN, OP_LOADX, OP_STOREX, OP_TRAP, TRAP_BOUNDS,
    JUMP_TARGET_OFFSET,
)
from minicpu.cpu.regs import REG_CARRY, REG_ONE, REG_INDEXED
from minicpu.mem.memory import CODE_START, CODE_END, DATA_START, DATA_END, OUTPUT_PORT

from .ir import IROp, Instruction, Literal, Variable, Label, Operand

logger = logging.getLogger(__name__)

MAX_ARRAY_LEN = 256

BOUNDS_FAULT_LABEL = "__bounds_fault__"

# Scratch registers
R0, R1 = 0, 1
R_BOUND, R_INDEX = 5, 6


class CodeGenError(Exception):
    def __init__(self, message: str, instr: Optional[Instruction] = None):
        self.instr = instr
        if instr is not None and instr.line:
            super().__init__(f"Code generation error at L{instr.line}: {message}")
        else:
            super().__init__(f"Code generation error: {message}")


@dataclass
class Patch:
    """A jump whose 16-bit target is still a placeholder."""
    offset: int        # byte offset of the target's high byte in the image
    label: str
    line: int = 0


class CodeGenerator:
    """Generates MiniCPU bytecode from IR."""

    def __init__(self, origin: int = CODE_START):
        if not 0 <= origin <= CODE_END:
            raise CodeGenError(f"origin ${origin:04X} is outside the code region")
        self.origin = origin
        self._reset()

    def _reset(self):
        self.code = bytearray()
        self.labels: Dict[str, int] = {}
        self.variables: Dict[str, int] = {}
        self.arrays: Dict[str, Tuple[int, int]] = {}   # name -> (base, length)
        self.patches: List[Patch] = []
        self._data_cursor = DATA_START
        self._needs_bounds_stub = False
        self._instr: Optional[Instruction] = None

    # ── Public API ────────────────────────────

    def generate(self, ir: List[Instruction]) -> bytearray:
        """Lower an IR list to a bytecode image loaded at self.origin."""
        self._reset()

        # Prologue: R3 = 1
        self._emit(OP_LOADI, REG_ONE, 1)

        for instr in ir:
            self._instr = instr
            self._gen_instruction(instr)
        self._instr = None

        if self._needs_bounds_stub:
            self._emit(OP_HALT)
            self._define_label(BOUNDS_FAULT_LABEL)
            self._emit(OP_TRAP, TRAP_BOUNDS)

        self._resolve_patches()

        end = self.origin + len(self.code) - 1
        if end > CODE_END:
            raise CodeGenError(f"program ends at ${end:04X}, past the code region (${CODE_END:04X})")

        logger.debug(f"generated {len(self.code)} bytes at ${self.origin:04X}, "
                     f"{len(self.variables)} variables, {len(self.arrays)} arrays")
        return self.code

    def symbol_table(self) -> Dict[str, int]:
        """All labels, variables and array bases by address."""
        table = dict(self.labels)
        table.update(self.variables)
        table.update({name: base for name, (base, _) in self.arrays.items()})
        return table

    # ── Errors ────────────────────────────────

    def _error(self, message: str) -> CodeGenError:
        return CodeGenError(message, self._instr)

    # ── Emission helpers ──────────────────────

    @property
    def pc(self) -> int:
        """Absolute address of the next byte to be emitted."""
        return self.origin + len(self.code)

    def _emit(self, *values: int):
        self.code.extend(values)

    @staticmethod
    def _addr_bytes(addr: int) -> Tuple[int, int]:
        return (addr >> 8) & 0xFF, addr & 0xFF

    def _emit_load(self, reg: int, addr: int):
        self._emit(OP_LOAD, reg, *self._addr_bytes(addr))

    def _emit_store(self, addr: int, reg: int):
        self._emit(OP_STORE, *self._addr_bytes(addr), reg)

    def _emit_storei(self, addr: int, imm: int):
        self._emit(OP_STOREI, *self._addr_bytes(addr), imm)

    def _emit_jump(self, opcode: int, reg: int, label: Label):
        start = len(self.code)
        self._emit(opcode, reg, 0x00, 0x00)
        line = self._instr.line if self._instr is not None else 0
        self.patches.append(Patch(start + JUMP_TARGET_OFFSET, label.name, line))

    def _emit_operand(self, reg: int, operand: Operand):
        """Get an operand into a register: LOADI for a literal, LOAD otherwise."""
        if isinstance(operand, Literal):
            self._emit(OP_LOADI, reg, self._literal(operand))
        elif isinstance(operand, Variable):
            self._emit_load(reg, self._scalar_addr(operand))
        else:
            raise self._error(f"operand {operand!r} cannot be loaded into a register")

    def _emit_base(self, base: int):
        hi, lo = self._addr_bytes(base)
        self._emit(OP_LOADI, R0, hi)
        self._emit(OP_LOADI, R1, lo)

    # ── Symbols ───────────────────────────────

    def _literal(self, lit: Literal) -> int:
        if not 0 <= lit.value <= 0xFF:
            raise self._error(f"literal {lit.value} does not fit in 8 bits")
        return lit.value

    def _alloc(self, size: int, name: str) -> int:
        base = self._data_cursor
        if base + size - 1 > DATA_END:
            raise self._error(f"data region exhausted allocating '{name}'")
        self._data_cursor += size
        return base

    def _scalar_addr(self, var: Variable) -> int:
        if var.name in self.arrays:
            raise self._error(f"array '{var.name}' used as a scalar")
        addr = self.variables.get(var.name)
        if addr is None:
            addr = self._alloc(1, var.name)
            self.variables[var.name] = addr
        return addr

    def _array(self, var: Variable) -> Tuple[int, int]:
        entry = self.arrays.get(var.name)
        if entry is None:
            raise self._error(f"array '{var.name}' used before declaration")
        return entry

    def _define_label(self, name: str):
        if name in self.labels:
            raise self._error(f"duplicate label '{name}'")
        self.labels[name] = self.pc
        logger.debug(f"label {name} = ${self.pc:04X}")

    def _resolve_patches(self):
        for patch in self.patches:
            addr = self.labels.get(patch.label)
            if addr is None:
                where = f"L{patch.line}: " if patch.line else ""
                raise CodeGenError(f"{where}undefined label '{patch.label}'")
            hi, lo = self._addr_bytes(addr)
            self.code[patch.offset] = hi
            self.code[patch.offset + 1] = lo
            logger.debug(f"patched +{patch.offset:04X} -> {patch.label} (${addr:04X})")

    # ── Array helpers ─────────────────────────

    def _check_index(self, name: str, length: int, index: Operand):
        """Literal indices are checked now, anything else at run time."""
        if isinstance(index, Literal):
            if self._literal(index) >= length:
                raise self._error(f"index {index.value} out of bounds for '{name}[{length}]'")
            return
        # R5 = len-1; R5 -= index; carry set means index > len-1
        self._emit(OP_LOADI, R_BOUND, length - 1)
        self._emit_operand(R_INDEX, index)
        self._emit(OP_SUB, R_BOUND, R_INDEX)
        self._emit_jump(OP_JNZ, REG_CARRY, Label(BOUNDS_FAULT_LABEL))
        self._needs_bounds_stub = True

    # ── Lowering ──────────────────────────────

    def _gen_instruction(self, instr: Instruction):
        op = instr.op

        if op == IROp.LOAD_CONST or op == IROp.STORE_CONST:
            self._emit_storei(self._scalar_addr(instr.result), self._literal(instr.arg1))

        elif op == IROp.LOAD_VAR or op == IROp.STORE:
            dst = self._scalar_addr(instr.result)
            if isinstance(instr.arg1, Literal):
                self._emit_storei(dst, self._literal(instr.arg1))
            else:
                self._emit_load(R0, self._scalar_addr(instr.arg1))
                self._emit_store(dst, R0)

        elif op == IROp.ADD or op == IROp.SUB:
            self._emit_operand(R0, instr.arg1)
            self._emit_operand(R1, instr.arg2)
            self._emit(OP_ADD if op == IROp.ADD else OP_SUB, R0, R1)
            self._emit_store(self._scalar_addr(instr.result), R0)

        elif op == IROp.IF_LEQ_GOTO:
            # R1 = b - a; carry clear <=> a <= b
            self._emit_operand(R0, instr.arg1)
            self._emit_operand(R1, instr.arg2)
            self._emit(OP_SUB, R1, R0)
            self._emit_jump(OP_JZ, REG_CARRY, instr.result)

        elif op == IROp.GOTO:
            self._emit_jump(OP_JNZ, REG_ONE, instr.result)

        elif op == IROp.LABEL:
            self._define_label(instr.result.name)

        elif op == IROp.OUT:
            if isinstance(instr.arg1, Literal):
                self._emit_storei(OUTPUT_PORT, self._literal(instr.arg1))
            else:
                self._emit_load(R0, self._scalar_addr(instr.arg1))
                self._emit_store(OUTPUT_PORT, R0)

        elif op == IROp.IN:
            self._emit(OP_IN, R0)
            self._emit_store(self._scalar_addr(instr.result), R0)

        elif op == IROp.HALT:
            self._emit(OP_HALT)

        elif op == IROp.ARRAY_DECL:
            self._gen_array_decl(instr)

        elif op == IROp.LOAD_INDEXED:
            base, length = self._array(instr.arg1)
            self._check_index(instr.arg1.name, length, instr.arg2)
            self._emit_base(base)
            self._emit_operand(REG_CARRY, instr.arg2)
            self._emit(OP_LOADX)
            self._emit_store(self._scalar_addr(instr.result), REG_INDEXED)

        elif op == IROp.STORE_INDEXED:
            base, length = self._array(instr.result)
            self._check_index(instr.result.name, length, instr.arg1)
            self._emit_operand(REG_INDEXED, instr.arg2)
            self._emit_base(base)
            self._emit_operand(REG_CARRY, instr.arg1)
            self._emit(OP_STOREX)

        else:
            raise self._error(f"unsupported IR op {op.value}")

    def _gen_array_decl(self, instr: Instruction):
        name = instr.arg1.name
        length = instr.arg2.value
        if name in self.arrays:
            raise self._error(f"array '{name}' redeclared")
        if name in self.variables:
            raise self._error(f"'{name}' already used as a scalar")
        if not 1 <= length <= MAX_ARRAY_LEN:
            raise self._error(f"array length {length} outside 1..{MAX_ARRAY_LEN}")
        base = self._alloc(length, name)
        self.arrays[name] = (base, length)
        logger.debug(f"array {name}[{length}] at ${base:04X}")


def generate(ir: List[Instruction], origin: int = CODE_START) -> bytearray:
    """Lower IR with a fresh CodeGenerator."""
    return CodeGenerator(origin=origin).generate(ir)
