"""
Execution backends.

Both backends take the same IR and report the same ExecutionResult, so a
program can be checked for identical observable behaviour on each:

  VMBackend           IR -> CodeGenerator -> bytecode -> MiniCPUEmulator
  InterpreterBackend  IR -> IRInterpreter

Compile errors from the VM backend (CodeGenError) are raised to the
caller; nothing is executed. Runtime problems are reported in the result.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from minicpu.emu import MiniCPUEmulator, StopReason
from minicpu.mem.memory import CODE_START

from .codegen import CodeGenerator
from .interpreter import IRInterpreter, Status
from .ir import Instruction

InputFn = Optional[Callable[[], Union[str, int]]]
EchoFn = Optional[Callable[[int], None]]


class Outcome(enum.Enum):
    HALTED = "HALTED"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"


@dataclass
class ExecutionResult:
    output: List[int] = field(default_factory=list)
    outcome: Outcome = Outcome.HALTED
    message: str = ""


class Backend:
    """Common interface: execute(ir) -> ExecutionResult."""

    name = "backend"

    def execute(self, ir: List[Instruction]) -> ExecutionResult:
        raise NotImplementedError


class VMBackend(Backend):
    """Compile to bytecode and run it on a fresh MiniCPU."""

    name = "vm"

    STOP_OUTCOMES = {
        StopReason.HALT: Outcome.HALTED,
        StopReason.ILLEGAL: Outcome.ERROR,
        StopReason.FAULT: Outcome.ERROR,
        StopReason.TIMEOUT: Outcome.TIMEOUT,
    }

    def __init__(self, origin: int = CODE_START, max_steps: Optional[int] = None,
                 input_fn: InputFn = None, echo: EchoFn = None):
        self.origin = origin
        self.max_steps = max_steps
        self.input_fn = input_fn
        self.echo = echo
        self.emulator: Optional[MiniCPUEmulator] = None
        self.code: Optional[bytearray] = None

    def execute(self, ir: List[Instruction]) -> ExecutionResult:
        self.code = CodeGenerator(origin=self.origin).generate(ir)

        emu = MiniCPUEmulator(input_fn=self.input_fn, echo=self.echo)
        emu.load_program(self.code, self.origin)
        reason = emu.run(self.max_steps)
        self.emulator = emu

        return ExecutionResult(
            output=emu.output,
            outcome=self.STOP_OUTCOMES[reason],
            message=emu.error or "",
        )


class InterpreterBackend(Backend):
    """Run the IR directly on a fresh IRInterpreter."""

    name = "interp"

    def __init__(self, max_steps: Optional[int] = None,
                 input_fn: InputFn = None, echo: EchoFn = None):
        self.max_steps = max_steps
        self.input_fn = input_fn
        self.echo = echo
        self.interpreter: Optional[IRInterpreter] = None

    def execute(self, ir: List[Instruction]) -> ExecutionResult:
        interp = IRInterpreter(input_fn=self.input_fn, output_fn=self.echo)
        result = interp.run(ir, self.max_steps)
        self.interpreter = interp

        if result.status == Status.HALTED:
            return ExecutionResult(interp.output, Outcome.HALTED)
        if result.status == Status.ERROR:
            return ExecutionResult(interp.output, Outcome.ERROR, str(result.error))
        return ExecutionResult(interp.output, Outcome.TIMEOUT,
                               f"step budget exhausted after {interp.steps} steps")


BACKENDS = {
    VMBackend.name: VMBackend,
    InterpreterBackend.name: InterpreterBackend,
}
