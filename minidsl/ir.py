"""
Intermediate representation for MiniDSL.

The parser produces a flat, ordered list of quadruples
(op, arg1, arg2, result). Operands are a small tagged union:

  Literal(value)   an unsigned 8-bit constant
  Variable(name)   a named scalar, array, or compiler temporary (__temp__N)
  Label(name)      a jump target

Field usage per opcode:

  LOAD_CONST     arg1=Literal                        result=temp
  LOAD_VAR       arg1=Variable                       result=temp
  ADD / SUB      arg1=operand     arg2=operand       result=temp
  STORE          arg1=operand                        result=Variable
  STORE_CONST    arg1=Literal                        result=Variable
  IF_LEQ_GOTO    arg1=operand     arg2=operand       result=Label
  GOTO                                               result=Label
  LABEL                                              result=Label
  OUT            arg1=operand
  IN                                                 result=Variable
  HALT
  ARRAY_DECL     arg1=Variable    arg2=Literal(len)
  LOAD_INDEXED   arg1=Variable    arg2=index         result=temp
  STORE_INDEXED  arg1=index       arg2=value         result=Variable (array)

Instructions are immutable. `line` is the source line the instruction came
from and is ignored by equality.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Union


class IROp(enum.Enum):
    LOAD_CONST = "LOAD_CONST"
    LOAD_VAR = "LOAD_VAR"
    ADD = "ADD"
    SUB = "SUB"
    STORE = "STORE"
    STORE_CONST = "STORE_CONST"
    IF_LEQ_GOTO = "IF_LEQ_GOTO"
    GOTO = "GOTO"
    LABEL = "LABEL"
    OUT = "OUT"
    IN = "IN"
    HALT = "HALT"
    ARRAY_DECL = "ARRAY_DECL"
    LOAD_INDEXED = "LOAD_INDEXED"
    STORE_INDEXED = "STORE_INDEXED"


# ──────────────────────────────────────────────
# Operands
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Literal:
    value: int

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class Variable:
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Label:
    name: str

    def __str__(self):
        return self.name


Operand = Union[Literal, Variable, Label]

TEMP_PREFIX = "__temp__"


# ──────────────────────────────────────────────
# Instruction
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Instruction:
    op: IROp
    arg1: Optional[Operand] = None
    arg2: Optional[Operand] = None
    result: Optional[Operand] = None
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        op = self.op
        a, b, r = self.arg1, self.arg2, self.result
        if op in (IROp.LOAD_CONST, IROp.LOAD_VAR, IROp.STORE, IROp.STORE_CONST):
            return f"{r} = {a}"
        if op == IROp.ADD:
            return f"{r} = {a} + {b}"
        if op == IROp.SUB:
            return f"{r} = {a} - {b}"
        if op == IROp.IF_LEQ_GOTO:
            return f"if {a} <= {b} goto {r}"
        if op == IROp.GOTO:
            return f"goto {r}"
        if op == IROp.LABEL:
            return f"{r}:"
        if op == IROp.OUT:
            return f"out {a}"
        if op == IROp.IN:
            return f"in {r}"
        if op == IROp.HALT:
            return "halt"
        if op == IROp.ARRAY_DECL:
            return f"array {a}[{b}]"
        if op == IROp.LOAD_INDEXED:
            return f"{r} = {a}[{b}]"
        if op == IROp.STORE_INDEXED:
            return f"{r}[{a}] = {b}"
        return op.value


def format_ir(ir: List[Instruction]) -> str:
    """One instruction per line, labels flush left, the rest indented."""
    lines = []
    for instr in ir:
        if instr.op == IROp.LABEL:
            lines.append(str(instr))
        else:
            lines.append(f"    {instr}")
    return "\n".join(lines)
