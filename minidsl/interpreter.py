"""
IR interpreter: runs MiniDSL IR directly, without compiling to bytecode.

Semantics follow the MiniCPU backend: values are unsigned 8-bit and wrap
on ADD/SUB, `<=` is an unsigned compare, arrays have the declared length.
Input and output go through the same ConsolePeripheral the VM uses, so
clamping and end-of-input behave identically on both backends.

Unlike the VM (where memory starts zeroed), reading a variable that was
never assigned is an error here.

Execution is driven one instruction at a time by step(), which never
raises: errors come back inside the StepResult.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Union

from minicpu.periph.console import ConsolePeripheral, InputExhausted

from .ir import IROp, Instruction, Literal, Variable, Label, Operand

logger = logging.getLogger(__name__)

MAX_ARRAY_LEN = 256


class Status(enum.Enum):
    CONTINUE = "CONTINUE"
    HALTED = "HALTED"
    ERROR = "ERROR"


class InterpreterError(Exception):
    def __init__(self, message: str, instr: Optional[Instruction] = None):
        self.instr = instr
        if instr is not None and instr.line:
            super().__init__(f"Runtime error at L{instr.line}: {message}")
        else:
            super().__init__(f"Runtime error: {message}")


@dataclass
class StepResult:
    status: Status
    error: Optional[InterpreterError] = None

    @property
    def ok(self) -> bool:
        return self.status != Status.ERROR


class IRInterpreter:
    """Executes IR with persistent variables and arrays."""

    DEFAULT_MAX_STEPS = 1_000_000

    def __init__(self, input_fn: Optional[Callable[[], Union[str, int]]] = None,
                 output_fn: Optional[Callable[[int], None]] = None):
        self.console = ConsolePeripheral(input_fn=input_fn, echo=output_fn)
        self.variables: Dict[str, int] = {}
        self.arrays: Dict[str, List[int]] = {}
        self.program: List[Instruction] = []
        self.labels: Dict[str, int] = {}
        self._program_arrays: Set[str] = set()
        self.pc = 0
        self.steps = 0
        self.halted = False

    @property
    def output(self) -> List[int]:
        return list(self.console.output)

    def reset(self):
        """Forget all variables, arrays, output and the loaded program."""
        self.variables.clear()
        self.arrays.clear()
        self.console.reset()
        self.program = []
        self.labels = {}
        self._program_arrays = set()
        self.pc = 0
        self.steps = 0
        self.halted = False

    # ── Program execution ─────────────────────

    def load(self, ir: List[Instruction]):
        """Install a program, index its labels and declare its arrays.

        Arrays are declared in program order before execution starts, the
        same way the code generator reserves them, so a declaration that is
        jumped over still exists and one inside a loop is not redeclared.
        Variables and arrays from earlier statements are kept.
        """
        labels: Dict[str, int] = {}
        program_arrays: Set[str] = set()
        for i, instr in enumerate(ir):
            if instr.op == IROp.LABEL:
                name = instr.result.name
                if name in labels:
                    raise InterpreterError(f"duplicate label '{name}'", instr)
                labels[name] = i
            elif instr.op == IROp.ARRAY_DECL:
                self._declare_array(instr)
                program_arrays.add(instr.arg1.name)
            elif instr.op == IROp.LOAD_INDEXED:
                self._array(instr.arg1, instr)
            elif instr.op == IROp.STORE_INDEXED:
                self._array(instr.result, instr)
        self.program = list(ir)
        self.labels = labels
        self._program_arrays = program_arrays
        self.pc = 0
        self.halted = False

    def step(self) -> StepResult:
        """Execute the instruction at pc.

        Running off the end of the program counts as a halt.
        """
        if self.halted or self.pc >= len(self.program):
            self.halted = True
            return StepResult(Status.HALTED)

        instr = self.program[self.pc]
        self.pc += 1
        result = self.execute_statement(instr)
        if result.status != Status.CONTINUE:
            self.halted = True
        return result

    def run(self, ir: List[Instruction], max_steps: Optional[int] = None) -> StepResult:
        """Run a whole program.

        Returns the final StepResult. A CONTINUE status means the step
        budget ran out before the program halted.
        """
        if max_steps is None:
            max_steps = self.DEFAULT_MAX_STEPS
        try:
            self.load(ir)
        except InterpreterError as e:
            logger.error(str(e))
            return StepResult(Status.ERROR, e)

        for _ in range(max_steps):
            result = self.step()
            if result.status != Status.CONTINUE:
                return result

        logger.warning(f"step budget of {max_steps} exhausted at IR index {self.pc}")
        return StepResult(Status.CONTINUE)

    def execute_statement(self, instr: Instruction) -> StepResult:
        """Execute a single instruction against the current state."""
        try:
            status = self._execute(instr)
        except InterpreterError as e:
            logger.error(str(e))
            return StepResult(Status.ERROR, e)
        self.steps += 1
        return StepResult(status)

    # ── Operand access ────────────────────────

    def _literal(self, lit: Literal, instr: Instruction) -> int:
        if not 0 <= lit.value <= 0xFF:
            raise InterpreterError(f"literal {lit.value} does not fit in 8 bits", instr)
        return lit.value

    def _value(self, operand: Operand, instr: Instruction) -> int:
        if isinstance(operand, Literal):
            return self._literal(operand, instr)
        if isinstance(operand, Variable):
            if operand.name in self.arrays:
                raise InterpreterError(f"array '{operand.name}' used as a scalar", instr)
            if operand.name not in self.variables:
                raise InterpreterError(f"undefined variable '{operand.name}'", instr)
            return self.variables[operand.name]
        raise InterpreterError(f"operand {operand!r} has no value", instr)

    def _assign(self, var: Variable, value: int, instr: Instruction):
        if var.name in self.arrays:
            raise InterpreterError(f"array '{var.name}' used as a scalar", instr)
        self.variables[var.name] = value & 0xFF

    def _array(self, var: Variable, instr: Instruction) -> List[int]:
        cells = self.arrays.get(var.name)
        if cells is None:
            raise InterpreterError(f"undefined array '{var.name}'", instr)
        return cells

    def _index(self, cells: List[int], name: str, operand: Operand, instr: Instruction) -> int:
        index = self._value(operand, instr)
        if index >= len(cells):
            raise InterpreterError(f"index {index} out of bounds for '{name}[{len(cells)}]'", instr)
        return index

    def _declare_array(self, instr: Instruction):
        name, length = instr.arg1.name, instr.arg2.value
        if name in self.arrays:
            raise InterpreterError(f"array '{name}' redeclared", instr)
        if name in self.variables:
            raise InterpreterError(f"'{name}' already used as a scalar", instr)
        if not 1 <= length <= MAX_ARRAY_LEN:
            raise InterpreterError(f"array length {length} outside 1..{MAX_ARRAY_LEN}", instr)
        self.arrays[name] = [0] * length

    def _jump(self, label: Label, instr: Instruction):
        target = self.labels.get(label.name)
        if target is None:
            raise InterpreterError(f"undefined label '{label.name}'", instr)
        self.pc = target

    # ── Dispatch ──────────────────────────────

    def _execute(self, instr: Instruction) -> Status:
        op = instr.op
        a, b, r = instr.arg1, instr.arg2, instr.result

        if op == IROp.LOAD_CONST or op == IROp.STORE_CONST:
            self._assign(r, self._literal(a, instr), instr)
        elif op == IROp.LOAD_VAR or op == IROp.STORE:
            self._assign(r, self._value(a, instr), instr)
        elif op == IROp.ADD:
            self._assign(r, self._value(a, instr) + self._value(b, instr), instr)
        elif op == IROp.SUB:
            self._assign(r, self._value(a, instr) - self._value(b, instr), instr)
        elif op == IROp.IF_LEQ_GOTO:
            if self._value(a, instr) <= self._value(b, instr):
                self._jump(r, instr)
        elif op == IROp.GOTO:
            self._jump(r, instr)
        elif op == IROp.LABEL:
            pass
        elif op == IROp.OUT:
            self.console.emit(self._value(a, instr))
        elif op == IROp.IN:
            try:
                value = self.console.read_value()
            except InputExhausted as e:
                raise InterpreterError(str(e), instr) from e
            self._assign(r, value, instr)
        elif op == IROp.HALT:
            return Status.HALTED
        elif op == IROp.ARRAY_DECL:
            if a.name not in self._program_arrays:
                self._declare_array(instr)
        elif op == IROp.LOAD_INDEXED:
            cells = self._array(a, instr)
            index = self._index(cells, a.name, b, instr)
            self._assign(r, cells[index], instr)
        elif op == IROp.STORE_INDEXED:
            cells = self._array(r, instr)
            index = self._index(cells, r.name, a, instr)
            cells[index] = self._value(b, instr) & 0xFF
        else:
            raise InterpreterError(f"unsupported IR op {op.value}", instr)

        return Status.CONTINUE
