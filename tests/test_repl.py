"""
Interactive shell tests. The shell is driven through its read_line/write
callbacks, no terminal involved.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from minidsl.repl import Repl, BANNER, HELP_TEXT, PROMPT

COUNT_PROGRAM = "let i = 0; loop: out i; i = i + 1; if i <= 2 goto loop; halt;"


def _reader(lines):
    """read_line stand-in that raises EOFError once the lines run out."""
    pending = list(lines)
    prompts = []

    def read_line(prompt):
        prompts.append(prompt)
        if not pending:
            raise EOFError
        return pending.pop(0)

    read_line.prompts = prompts
    return read_line


@pytest.fixture
def shell():
    written = []
    repl = Repl(read_line=_reader([]), write=written.append)
    return repl, written


@pytest.fixture
def program_file(tmp_path):
    path = tmp_path / "count.mdsl"
    path.write_text(COUNT_PROGRAM)
    return str(path)


# ─── Statements ─────────────────────

class TestStatements:
    def test_state_persists_between_lines(self, shell):
        repl, written = shell
        assert repl.handle_line("let x = 3;")
        assert repl.handle_line("out x + 1;")
        assert written == ["4"]

    def test_several_statements_on_one_line(self, shell):
        repl, written = shell
        repl.handle_line("let a[2]; a[1] = 9; out a[1];")
        assert written == ["9"]

    def test_blank_line_is_ignored(self, shell):
        repl, written = shell
        assert repl.handle_line("   ")
        assert written == []

    def test_control_flow_rejected(self, shell):
        repl, written = shell
        assert repl.handle_line("top: out 1;")
        assert written == ["Error: control flow not supported in the REPL (use .load and .run)"]

    def test_rejected_line_runs_nothing(self, shell):
        repl, written = shell
        repl.handle_line("out 1; goto x;")
        assert repl.interpreter.output == []

    def test_parse_error_keeps_session(self, shell):
        repl, written = shell
        repl.handle_line("let x = 1;")
        assert repl.handle_line("let = ;")
        assert written[-1].startswith("Error: Parse error")
        repl.handle_line("out x;")
        assert written[-1] == "1"

    def test_lexer_error_keeps_session(self, shell):
        repl, written = shell
        assert repl.handle_line("let x = ²;")
        assert written == ["Error: Lexer error at L1:9: Unexpected character: '²'"]
        repl.handle_line("out 3;")
        assert written[-1] == "3"

    def test_runtime_error_keeps_session(self, shell):
        repl, written = shell
        assert repl.handle_line("out y;")
        assert "undefined variable 'y'" in written[-1]
        repl.handle_line("out 2;")
        assert written[-1] == "2"

    def test_halt_ends_session(self, shell):
        repl, written = shell
        assert not repl.handle_line("halt;")
        assert written == ["Program halted."]

    def test_in_uses_program_input(self):
        written = []
        repl = Repl(read_line=_reader([]), write=written.append,
                    program_input=iter(["6"]).__next__)
        repl.handle_line("in n; out n;")
        assert written == ["6"]


# ─── Dot-commands ─────────────────────

class TestCommands:
    def test_help(self, shell):
        repl, written = shell
        assert repl.handle_line(".help")
        assert written == [HELP_TEXT]

    def test_exit(self, shell):
        repl, _ = shell
        assert not repl.handle_line(".exit")

    def test_unknown_command(self, shell):
        repl, written = shell
        repl.handle_line(".frobnicate")
        assert written == ["Unknown command: .frobnicate (try .help)"]

    @pytest.mark.parametrize("cmd", [".run", ".runvm", ".ir", ".listing"])
    def test_program_commands_need_a_program(self, shell, cmd):
        repl, written = shell
        repl.handle_line(cmd)
        assert written == ["Error: no program loaded, use .load <file> first"]

    def test_load_needs_a_file_name(self, shell):
        repl, written = shell
        repl.handle_line(".load")
        assert written == ["Error: .load needs a file name"]

    def test_load_missing_file(self, shell, tmp_path):
        repl, written = shell
        repl.handle_line(f".load {tmp_path / 'missing.mdsl'}")
        assert written[0].startswith("Error: cannot read")
        assert repl.program == []

    def test_load_bad_source(self, shell, tmp_path):
        path = tmp_path / "bad.mdsl"
        path.write_text("let x = ;")
        repl, written = shell
        repl.handle_line(f".load {path}")
        assert written[0].startswith("Error: Parse error")

    def test_load_and_run(self, shell, program_file):
        repl, written = shell
        repl.handle_line(f".load {program_file}")
        assert written[0] == f"Loaded {program_file}: {len(repl.program)} IR instructions"
        repl.handle_line(".run")
        assert written[1:] == ["0", "1", "2", "Program halted."]

    def test_runvm_loaded_program(self, shell, program_file):
        repl, written = shell
        repl.handle_line(f".load {program_file}")
        repl.handle_line(".runvm")
        assert written[1:] == ["0", "1", "2", "Program halted."]

    def test_runvm_with_file_argument(self, shell, program_file):
        repl, written = shell
        repl.handle_line(f".runvm {program_file}")
        assert written == ["0", "1", "2", "Program halted."]
        assert repl.program == []

    def test_runvm_compile_error(self, shell, tmp_path):
        path = tmp_path / "bad.mdsl"
        path.write_text("goto nowhere;")
        repl, written = shell
        repl.handle_line(f".runvm {path}")
        assert "undefined label 'nowhere'" in written[0]

    def test_run_reports_runtime_error(self, shell, tmp_path):
        path = tmp_path / "oob.mdsl"
        path.write_text("let a[1]; let i = 1; a[i] = 1;")
        repl, written = shell
        repl.handle_line(f".load {path}")
        repl.handle_line(".run")
        assert written[-1].startswith("Error: Runtime error")
        repl.handle_line(".runvm")
        assert "out of bounds" in written[-1]

    def test_run_reports_timeout(self, tmp_path):
        path = tmp_path / "spin.mdsl"
        path.write_text("top: goto top;")
        written = []
        repl = Repl(read_line=_reader([]), write=written.append, max_steps=10)
        repl.handle_line(f".load {path}")
        repl.handle_line(".run")
        assert written[-1].startswith("Stopped:")

    def test_ir(self, shell, program_file):
        repl, written = shell
        repl.handle_line(f".load {program_file}")
        repl.handle_line(".ir")
        assert "loop:" in written[-1].splitlines()
        assert "halt" in written[-1]

    def test_listing(self, shell, program_file):
        repl, written = shell
        repl.handle_line(f".load {program_file}")
        repl.handle_line(".listing")
        assert written[-1].startswith("; MiniDSL listing  origin $2000")
        assert "; OUT" in written[-1]

    def test_clear(self, shell, program_file):
        repl, written = shell
        repl.handle_line("let x = 1;")
        repl.handle_line(f".load {program_file}")
        repl.handle_line(".clear")
        assert written[-1] == "Session cleared."
        assert repl.program == []
        repl.handle_line("out x;")
        assert "undefined variable 'x'" in written[-1]


# ─── Main loop ─────────────────────

class TestLoop:
    def test_banner_then_lines_until_eof(self):
        written = []
        reader = _reader(["let x = 2;", "out x;"])
        Repl(read_line=reader, write=written.append).run()
        assert written == [BANNER, "2"]
        assert reader.prompts == [PROMPT] * 3

    def test_exit_stops_reading(self):
        written = []
        reader = _reader([".exit", "out 1;"])
        Repl(read_line=reader, write=written.append).run()
        assert written == [BANNER]
        assert reader.prompts == [PROMPT]

    def test_keyboard_interrupt_stops(self):
        def read_line(prompt):
            raise KeyboardInterrupt
        written = []
        Repl(read_line=read_line, write=written.append).run()
        assert written == [BANNER]
