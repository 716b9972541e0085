"""
MiniCPU: Opcode Decoder / ISA Table

This module is the instruction set contract shared by the code generator
(minidsl/codegen.py), the listing tool (minidsl/listing.py) and the
emulator core (minicpu/emu.py). Every opcode byte maps to
(mnemonic, operand_layout, total_size).

Operand layouts:
  INH        No operands                      HALT, LOADX, STOREX
  REG_ADDR   rd, addrHi, addrLo               LOAD, JNZ, JZ
  REG_IMM    rd, imm8                         LOADI
  ADDR_REG   addrHi, addrLo, rs               STORE
  ADDR_IMM   addrHi, addrLo, imm8             STOREI
  REG_REG    rd, rs                           ADD, SUB
  REG        rd                               IN
  IMM        imm8                             TRAP

All 16-bit addresses are big-endian.
"""

from typing import Dict, Tuple

# ──────────────────────────────────────────────
# Operand layout constants
# ──────────────────────────────────────────────

INH      = 'INH'
REG_ADDR = 'REG_ADDR'
REG_IMM  = 'REG_IMM'
ADDR_REG = 'ADDR_REG'
ADDR_IMM = 'ADDR_IMM'
REG_REG  = 'REG_REG'
REG      = 'REG'
IMM      = 'IMM'


# ──────────────────────────────────────────────
# Opcode bytes
# ──────────────────────────────────────────────

OP_HALT   = 0x00
OP_LOAD   = 0x01
OP_LOADI  = 0x02
OP_STORE  = 0x03
OP_STOREI = 0x04
OP_ADD    = 0x05
OP_SUB    = 0x06
OP_JNZ    = 0x07
OP_JZ     = 0x08
OP_IN     = 0x09
OP_LOADX  = 0x0A
OP_STOREX = 0x0B
OP_TRAP   = 0x0C

# TRAP codes
TRAP_BOUNDS = 0x01


# Format: opcode -> (mnemonic, operand_layout, total_size)
OPCODES: Dict[int, Tuple[str, str, int]] = {
    OP_HALT:   ('HALT',   INH,      1),
    OP_LOAD:   ('LOAD',   REG_ADDR, 4),
    OP_LOADI:  ('LOADI',  REG_IMM,  3),
    OP_STORE:  ('STORE',  ADDR_REG, 4),
    OP_STOREI: ('STOREI', ADDR_IMM, 4),
    OP_ADD:    ('ADD',    REG_REG,  3),
    OP_SUB:    ('SUB',    REG_REG,  3),
    OP_JNZ:    ('JNZ',    REG_ADDR, 4),
    OP_JZ:     ('JZ',     REG_ADDR, 4),
    OP_IN:     ('IN',     REG,      2),
    OP_LOADX:  ('LOADX',  INH,      1),
    OP_STOREX: ('STOREX', INH,      1),
    OP_TRAP:   ('TRAP',   IMM,      2),
}

# Reverse lookup: mnemonic -> opcode byte
MNEMONICS: Dict[str, int] = {mnem: op for op, (mnem, _, _) in OPCODES.items()}

# Offset of the 16-bit jump target inside JNZ/JZ (after opcode + register)
JUMP_TARGET_OFFSET = 2


class IllegalOpcode(Exception):
    """Raised when the byte at PC is not a defined opcode."""
    def __init__(self, opcode: int, pc: int):
        self.opcode = opcode
        self.pc = pc
        super().__init__(f"Unknown opcode 0x{opcode:02X} at ${pc:04X}")


def decode_opcode(opcode: int, pc: int = 0) -> Tuple[str, str, int]:
    """Look up an opcode byte.

    Returns (mnemonic, operand_layout, total_size). Raises IllegalOpcode
    for bytes outside the table.
    """
    entry = OPCODES.get(opcode)
    if entry is None:
        raise IllegalOpcode(opcode, pc)
    return entry


def instruction_size(opcode: int) -> int:
    """Total encoded size of an instruction (opcode byte included)."""
    return decode_opcode(opcode)[2]
