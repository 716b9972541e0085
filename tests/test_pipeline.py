"""
End-to-end tests: source -> IR -> bytecode -> MiniCPU, and the same IR on
the IR interpreter. Both backends must agree on output and outcome.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from minicpu import MiniCPUEmulator, StopReason
from minidsl import compile_source
from minidsl.backends import VMBackend, InterpreterBackend, Outcome, ExecutionResult
from minidsl.codegen import CodeGenError
from minidsl.parser import parse_source


def _vm(code: str, inputs=None, **kwargs) -> ExecutionResult:
    input_fn = iter(inputs).__next__ if inputs is not None else None
    return VMBackend(input_fn=input_fn, **kwargs).execute(parse_source(code))


def _interp(code: str, inputs=None, **kwargs) -> ExecutionResult:
    input_fn = iter(inputs).__next__ if inputs is not None else None
    return InterpreterBackend(input_fn=input_fn, **kwargs).execute(parse_source(code))


COUNT_LOOP = "let i = 0; loop: out i; i = i + 1; if i <= 3 goto loop; halt;"

ARRAY_SUM = "let arr[3]; arr[0] = 10; arr[1] = 20; arr[2] = arr[0] + arr[1]; out arr[2];"


# ─── Concrete scenarios ─────────────────────

class TestScenarios:
    def test_let_out_halt_on_cpu(self):
        code = compile_source("let x = 5; out x; halt;")
        assert code[-1] == 0x00
        emu = MiniCPUEmulator()
        emu.load_program(code)
        assert emu.run() == StopReason.HALT
        assert emu.output == [5]
        assert emu.halted

    def test_counting_loop(self):
        result = _vm(COUNT_LOOP)
        assert result.outcome == Outcome.HALTED
        assert result.output == [0, 1, 2, 3]

    def test_array_sum(self):
        result = _vm(ARRAY_SUM)
        assert result.outcome == Outcome.HALTED
        assert result.output == [30]

    def test_array_elements_land_in_data_region(self):
        backend = VMBackend()
        backend.execute(parse_source(ARRAY_SUM))
        mem = backend.emulator.mem
        assert [mem.read8(0x8000 + i) for i in range(3)] == [10, 20, 30]


# ─── Backend equivalence ─────────────────────

PROGRAMS = [
    ("let x = 5; out x; halt;", None),
    (COUNT_LOOP, None),
    (ARRAY_SUM, None),
    ("let a = 200; let b = 100; out a + b; out b - a; halt;", None),
    ("in n; let i = 0; top: out i; i = i + 1; if i <= n goto top; halt;", ["4"]),
    ("let a[5]; let i = 0; fill: a[i] = i + i; i = i + 1; if i <= 4 goto fill; "
     "i = 4; show: out a[i]; if i <= 0 goto done; i = i - 1; goto show; done: halt;", None),
    ("let x = 3; if 5 <= x goto big; out 0; goto end; big: out 1; end: halt;", None),
    ("let x = (10 - 3) - (2 + 1); out x;", None),
    ("in a; in b; out a + b;", ["250", "300"]),
    ("goto s; let a[3]; s: a[0] = 1; out a[0]; halt;", None),
]


class TestBackendEquivalence:
    @pytest.mark.parametrize("source,inputs", PROGRAMS)
    def test_same_output(self, source, inputs):
        vm = _vm(source, inputs)
        interp = _interp(source, inputs)
        assert vm.outcome == interp.outcome == Outcome.HALTED
        assert vm.output == interp.output

    def test_runtime_bounds_error_on_both(self):
        source = "let a[2]; let i = 2; a[i] = 1; out 9;"
        vm = _vm(source)
        interp = _interp(source)
        assert vm.outcome == interp.outcome == Outcome.ERROR
        assert "out of bounds" in vm.message
        assert "out of bounds" in interp.message
        assert vm.output == interp.output == []

    def test_last_valid_index_is_accepted(self):
        source = "let a[2]; let i = 1; a[i] = 7; out a[i];"
        assert _vm(source).output == _interp(source).output == [7]

    def test_input_exhausted_on_both(self):
        assert _vm("in x;", []).outcome == Outcome.ERROR
        assert _interp("in x;", []).outcome == Outcome.ERROR

    def test_timeout_on_both(self):
        source = "top: goto top;"
        assert _vm(source, max_steps=100).outcome == Outcome.TIMEOUT
        assert _interp(source, max_steps=100).outcome == Outcome.TIMEOUT


# ─── Compile errors stop execution ─────────────────────

class TestCompileErrors:
    def test_vm_backend_raises_before_running(self):
        backend = VMBackend()
        with pytest.raises(CodeGenError):
            backend.execute(parse_source("goto missing;"))
        assert backend.emulator is None

    def test_custom_origin(self):
        result = _vm(COUNT_LOOP, origin=0x4000)
        assert result.output == [0, 1, 2, 3]


# ─── compile_source outputs ─────────────────────

class TestCompileSource:
    def test_binary_is_bytes(self):
        assert isinstance(compile_source("halt;"), bytes)

    def test_hex(self):
        assert compile_source("halt;", output="hex") == "02 03 01 00"

    def test_ir(self):
        ir = compile_source("halt;", output="ir")
        assert len(ir) == 1

    def test_listing(self):
        text = compile_source("let x = 1; out x;", output="listing")
        assert "LOADI  R3, #1" in text
        assert "; OUT" in text

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            compile_source("halt;", output="s19")
