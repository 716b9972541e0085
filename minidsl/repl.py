"""
Interactive MiniDSL shell.

Each input line is parsed and executed immediately on a persistent
IRInterpreter, so variables and arrays survive between lines. Jumps and
labels only make sense inside a whole program and are rejected here; load
a file with `.load` and run it with `.run` or `.runvm` instead.

Dot-commands:
  .help              show this help
  .exit              leave the shell
  .clear             forget variables, arrays and the loaded program
  .load <file>       parse a program file
  .run               run the loaded program on the IR interpreter
  .runvm [file]      compile and run on MiniCPU (loaded program or <file>)
  .ir                print the loaded program's IR
  .listing           print the bytecode listing of the loaded program
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Callable, List, Optional, Union

from .backends import InterpreterBackend, VMBackend, Outcome, ExecutionResult
from .codegen import CodeGenerator, CodeGenError
from .interpreter import IRInterpreter, Status
from .ir import IROp, Instruction, format_ir
from .lexer import Lexer, LexerError
from .listing import format_listing
from .parser import Parser, ParseError, parse_source

logger = logging.getLogger(__name__)

BANNER = "MiniDSL REPL 0.1 (type .help for commands, .exit to quit)"
PROMPT = ">>> "

CONTROL_FLOW = (IROp.GOTO, IROp.IF_LEQ_GOTO, IROp.LABEL)

HELP_TEXT = """\
Commands:
  .help              show this help
  .exit              leave the shell
  .clear             forget variables, arrays and the loaded program
  .load <file>       parse a program file
  .run               run the loaded program on the IR interpreter
  .runvm [file]      compile and run on MiniCPU (loaded program or <file>)
  .ir                print the loaded program's IR
  .listing           print the bytecode listing of the loaded program
Any other line is executed as MiniDSL statements (no goto/if/labels)."""


class Repl:
    """Line-oriented shell around the IR interpreter."""

    def __init__(self, read_line: Callable[[str], str] = input,
                 write: Callable[[str], None] = print,
                 program_input: Optional[Callable[[], Union[str, int]]] = None,
                 max_steps: Optional[int] = None):
        self.read_line = read_line
        self.write = write
        self.program_input = program_input
        self.max_steps = max_steps
        self.interpreter = self._new_interpreter()
        self.program: List[Instruction] = []
        self.program_path: Optional[str] = None

    def _new_interpreter(self) -> IRInterpreter:
        return IRInterpreter(input_fn=self.program_input,
                             output_fn=lambda value: self.write(str(value)))

    # ── Main loop ─────────────────────────────

    def run(self):
        self.write(BANNER)
        while True:
            try:
                line = self.read_line(PROMPT)
            except (EOFError, KeyboardInterrupt):
                break
            if not self.handle_line(line):
                break

    def handle_line(self, line: str) -> bool:
        """Process one line. Returns False when the shell should exit."""
        line = line.strip()
        if not line:
            return True
        if line.startswith("."):
            return self.handle_command(line)
        return self._execute_statements(line)

    def _execute_statements(self, line: str) -> bool:
        try:
            ir = self._parse_line(line)
        except (LexerError, ParseError) as e:
            self.write(f"Error: {e}")
            return True

        if any(instr.op in CONTROL_FLOW for instr in ir):
            self.write("Error: control flow not supported in the REPL (use .load and .run)")
            return True

        for instr in ir:
            result = self.interpreter.execute_statement(instr)
            if result.status == Status.ERROR:
                self.write(f"Error: {result.error}")
                return True
            if result.status == Status.HALTED:
                self.write("Program halted.")
                return False
        return True

    def _parse_line(self, line: str) -> List[Instruction]:
        parser = Parser(Lexer(line).tokenize())
        ir: List[Instruction] = []
        while not parser.at_end():
            ir.extend(parser.parse_statement())
        return ir

    # ── Dot-commands ──────────────────────────

    def handle_command(self, line: str) -> bool:
        parts = line.split(maxsplit=1)
        cmd = parts[0]
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == ".exit":
            return False
        elif cmd == ".help":
            self.write(HELP_TEXT)
        elif cmd == ".clear":
            self.interpreter = self._new_interpreter()
            self.program = []
            self.program_path = None
            self.write("Session cleared.")
        elif cmd == ".load":
            self._cmd_load(arg)
        elif cmd == ".run":
            self._cmd_run()
        elif cmd == ".runvm":
            self._cmd_runvm(arg)
        elif cmd == ".ir":
            if self._require_program():
                self.write(format_ir(self.program))
        elif cmd == ".listing":
            self._cmd_listing()
        else:
            self.write(f"Unknown command: {cmd} (try .help)")
        return True

    def _require_program(self) -> bool:
        if not self.program:
            self.write("Error: no program loaded, use .load <file> first")
            return False
        return True

    def _read_program(self, path: str) -> Optional[List[Instruction]]:
        try:
            source = Path(path).read_text()
        except OSError as e:
            self.write(f"Error: cannot read {path}: {e.strerror or e}")
            return None
        try:
            return parse_source(source)
        except (LexerError, ParseError) as e:
            self.write(f"Error: {e}")
            return None

    def _cmd_load(self, path: str):
        if not path:
            self.write("Error: .load needs a file name")
            return
        ir = self._read_program(path)
        if ir is None:
            return
        self.program = ir
        self.program_path = path
        logger.debug(f"loaded {path}: {len(ir)} IR instructions")
        self.write(f"Loaded {path}: {len(ir)} IR instructions")

    def _report(self, result: ExecutionResult):
        if result.outcome == Outcome.HALTED:
            self.write("Program halted.")
        elif result.outcome == Outcome.TIMEOUT:
            self.write(f"Stopped: {result.message}")
        else:
            self.write(f"Error: {result.message}")

    def _cmd_run(self):
        if not self._require_program():
            return
        backend = InterpreterBackend(max_steps=self.max_steps, input_fn=self.program_input,
                                     echo=lambda value: self.write(str(value)))
        self._report(backend.execute(self.program))

    def _cmd_runvm(self, path: str):
        if path:
            ir = self._read_program(path)
            if ir is None:
                return
        elif self._require_program():
            ir = self.program
        else:
            return

        backend = VMBackend(max_steps=self.max_steps, input_fn=self.program_input,
                            echo=lambda value: self.write(str(value)))
        try:
            result = backend.execute(ir)
        except CodeGenError as e:
            self.write(f"Error: {e}")
            return
        self._report(result)

    def _cmd_listing(self):
        if not self._require_program():
            return
        gen = CodeGenerator()
        try:
            code = gen.generate(self.program)
        except CodeGenError as e:
            self.write(f"Error: {e}")
            return
        self.write(format_listing(code, gen.origin, self.program, gen.symbol_table()))


def main():
    Repl().run()
