"""
Listing and hex dump of MiniCPU bytecode images.

Diagnostic output only; nothing here is fed back into the toolchain.

    ; MiniDSL listing  origin $2000  size 18 bytes
    ;
    ; IR:
    ;     __temp__0 = 5
    ;     x = __temp__0
    ;     ...
      ADDR  BYTES         INSTRUCTION
    ------------------------------------------------------------
    $2000  02 03 01      LOADI  R3, #1
    $2003  04 80 00 05   STOREI $8000, #5       ; __temp__0
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from minicpu.cpu.decoder import (
    OPCODES, INH, REG_ADDR, REG_IMM, ADDR_REG, ADDR_IMM, REG_REG, REG, IMM,
)
from minicpu.mem.memory import CODE_START, OUTPUT_PORT, INPUT_PORT

from .ir import Instruction, format_ir

Row = Tuple[int, bytes, str]

PORT_NAMES = {
    OUTPUT_PORT: "OUT",
    INPUT_PORT: "IN",
}


def _format_operands(layout: str, ops: bytes) -> Tuple[str, Optional[int]]:
    """Operand text and the 16-bit address referenced (if any)."""
    if layout == INH:
        return "", None
    if layout == REG_ADDR:
        addr = (ops[1] << 8) | ops[2]
        return f"R{ops[0]}, ${addr:04X}", addr
    if layout == REG_IMM:
        return f"R{ops[0]}, #{ops[1]}", None
    if layout == ADDR_REG:
        addr = (ops[0] << 8) | ops[1]
        return f"${addr:04X}, R{ops[2]}", addr
    if layout == ADDR_IMM:
        addr = (ops[0] << 8) | ops[1]
        return f"${addr:04X}, #{ops[2]}", addr
    if layout == REG_REG:
        return f"R{ops[0]}, R{ops[1]}", None
    if layout == REG:
        return f"R{ops[0]}", None
    if layout == IMM:
        return f"#${ops[0]:02X}", None
    return "", None


def disassemble(code: bytes, origin: int = CODE_START,
                symbols: Optional[Dict[str, int]] = None) -> List[Row]:
    """Decode an image into (address, bytes, text) rows.

    Unknown opcodes and truncated instructions are shown as `DB` bytes.
    When `symbols` (name -> address) is given, referenced addresses are
    annotated with their name.
    """
    by_addr: Dict[int, str] = dict(PORT_NAMES)
    if symbols:
        for name, addr in symbols.items():
            by_addr.setdefault(addr, name)

    rows: List[Row] = []
    pos = 0
    while pos < len(code):
        addr = origin + pos
        opcode = code[pos]
        entry = OPCODES.get(opcode)

        if entry is None:
            rows.append((addr, bytes(code[pos:pos + 1]), f"DB     ${opcode:02X}"))
            pos += 1
            continue

        mnem, layout, size = entry
        raw = bytes(code[pos:pos + size])
        if len(raw) < size:
            text = "DB     " + ", ".join(f"${b:02X}" for b in raw)
            rows.append((addr, raw, text))
            break

        operands, ref = _format_operands(layout, raw[1:])
        text = f"{mnem:<6} {operands}".rstrip()
        if ref is not None and ref in by_addr:
            text = f"{text:<22} ; {by_addr[ref]}"
        rows.append((addr, raw, text))
        pos += size

    return rows


def format_listing(code: bytes, origin: int = CODE_START,
                   ir: Optional[List[Instruction]] = None,
                   symbols: Optional[Dict[str, int]] = None) -> str:
    """Human-readable listing: header, optional IR block, disassembly."""
    lines = [f"; MiniDSL listing  origin ${origin:04X}  size {len(code)} bytes"]

    if ir:
        lines.append(";")
        lines.append("; IR:")
        for ir_line in format_ir(ir).splitlines():
            lines.append(f";   {ir_line}")

    lines.append(f"{'ADDR':>6}  {'BYTES':<12}  INSTRUCTION")
    lines.append("-" * 60)
    for addr, raw, text in disassemble(code, origin, symbols):
        hex_str = ' '.join(f'{b:02X}' for b in raw)
        lines.append(f"${addr:04X}  {hex_str:<12}  {text}")

    return '\n'.join(lines)


def hex_dump(code: bytes) -> str:
    """Space-separated uppercase hex bytes, e.g. `02 03 01 00`."""
    return ' '.join(f'{b:02X}' for b in code)
