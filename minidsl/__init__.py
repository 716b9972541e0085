"""
MiniDSL compiler toolchain for the MiniCPU virtual machine
==========================================================
A tiny imperative language (variables, + and -, conditional jumps, byte
arrays, console input/output) compiled to MiniCPU bytecode.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌───────────┐    ┌───────────┐
    │  Source  │───>│  Lexer   │───>│  Parser  │───>│  CodeGen  │───>│  MiniCPU  │
    │ (.mdsl)  │    │ (tokens) │    │   (IR)   │    │ (bytecode)│    │   (run)   │
    └──────────┘    └──────────┘    └──────────┘    └───────────┘    └───────────┘
                                         │
                                         └──────────> IR interpreter (run)

    - lexer.py:        hand-written scanner with one token of lookahead
    - parser.py:       precedence climbing straight to IR (no AST)
    - ir.py:           quadruples with Literal / Variable / Label operands
    - codegen.py:      single-pass emitter with label backpatching
    - interpreter.py:  executes IR directly (alternate backend)
    - backends.py:     execute(ir) -> ExecutionResult for either backend
    - listing.py:      disassembly listing and hex dump
    - repl.py:         interactive shell
"""

__version__ = "0.1.0"

from typing import List, Union

from minicpu.mem.memory import CODE_START

from .lexer import Lexer, LexerError, Token, TokenType
from .ir import IROp, Instruction, Literal, Variable, Label, format_ir
from .parser import Parser, ParseError, parse_source
from .codegen import CodeGenerator, CodeGenError
from .interpreter import IRInterpreter, InterpreterError, Status, StepResult
from .backends import Backend, VMBackend, InterpreterBackend, ExecutionResult, Outcome
from .listing import disassemble, format_listing, hex_dump

OUTPUT_FORMATS = ("binary", "ir", "listing", "hex")


def compile_source(source: str, *, origin: int = CODE_START,
                   output: str = "binary") -> Union[bytes, str, List[Instruction]]:
    """Compile MiniDSL source.

    Full pipeline: Lexer -> Parser -> IR -> CodeGenerator.

    Args:
        source: MiniDSL program text.
        origin: Load address of the bytecode (default $2000).
        output: 'binary' (default), 'ir', 'listing' or 'hex'.

    Returns:
        Raw bytecode (bytes), the IR list, listing text, or hex dump text.
    """
    if output not in OUTPUT_FORMATS:
        raise ValueError(f"unknown output format {output!r}")

    ir = Parser(Lexer(source).tokenize()).parse()
    if output == "ir":
        return ir

    gen = CodeGenerator(origin=origin)
    code = gen.generate(ir)

    if output == "listing":
        return format_listing(code, origin, ir, gen.symbol_table())
    if output == "hex":
        return hex_dump(code)
    return bytes(code)
