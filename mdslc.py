#!/usr/bin/env python3
"""
mdslc: MiniDSL compiler / runner CLI

Usage:
    python mdslc.py <input.mdsl> [-o output.bin] [--format bin|hex|listing]
                                 [--origin 0x2000] [--tokens] [--ir]
                                 [--run | --interp] [--input 1,2,3]
                                 [--max-steps N] [--verbose] [--log-file F]
    python mdslc.py                  # interactive REPL

Output format is auto-detected from file extension:
    .bin  → raw bytecode (default)
    .hex  → space-separated hex bytes
    .lst  → listing with addresses, bytes, disassembly and IR

Examples:
    python mdslc.py count.mdsl -o count.bin
    python mdslc.py count.mdsl --run
    python mdslc.py arrays.mdsl --interp --input 3,4
    python mdslc.py count.mdsl -o count.lst --verbose

Exit codes: 0 ok, 1 compile / input / runtime errors, 2 internal error.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from minidsl import __version__, compile_source
from minidsl.backends import BACKENDS, Outcome
from minidsl.codegen import CodeGenError
from minidsl.lexer import Lexer, LexerError
from minidsl.ir import format_ir
from minidsl.parser import Parser, ParseError
from minidsl.repl import Repl
from minicpu.mem.memory import CODE_START

logger = logging.getLogger("mdslc")

EXTENSION_FORMATS = {
    ".bin": "binary",
    ".hex": "hex",
    ".lst": "listing",
}

FORMAT_CHOICES = {
    "bin": "binary",
    "hex": "hex",
    "listing": "listing",
}


LOGGER_NAMES = ("mdslc", "minidsl", "minicpu")


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """
    Attach console (and optionally file) handlers to the toolchain loggers.

    Console output goes through rich's RichHandler on stderr: WARNING and
    up by default, everything with --verbose. A --log-file captures DEBUG+
    regardless of verbosity.
    """
    console_level = logging.DEBUG if verbose else logging.WARNING

    ch = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=False,
        show_path=False,
        markup=False,
    )
    handlers: List[logging.Handler] = [ch]

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        handlers.append(fh)

    for name in LOGGER_NAMES:
        log = logging.getLogger(name)
        for old in list(log.handlers):
            log.removeHandler(old)
            old.close()
        log.setLevel(logging.DEBUG if (verbose or log_file) else logging.INFO)
        for handler in handlers:
            log.addHandler(handler)


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...), $ prefix, or decimal."""
    value = value.strip()
    if value.startswith("0x") or value.startswith("0X"):
        return int(value, 16)
    if value.startswith("$"):
        return int(value[1:], 16)
    return int(value)


def parse_input_values(value: str) -> List[int]:
    """Parse a comma-separated list of program input values."""
    return [parse_int_arg(v) for v in value.split(",") if v.strip()]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdslc",
        description="MiniDSL compiler for the MiniCPU virtual machine",
        epilog="With no input file, starts the interactive REPL.",
    )
    parser.add_argument("input_file", nargs="?", metavar="input", help="Input MiniDSL source file")
    parser.add_argument("-o", "--output", help="Output file (default: hex dump to stdout)")
    parser.add_argument("--format", choices=list(FORMAT_CHOICES), default=None,
                        help="Output format (auto-detected from -o extension if not set)")
    parser.add_argument("--origin", type=parse_int_arg, default=CODE_START,
                        help="Code origin address (hex, e.g. 0x2000)")
    parser.add_argument("--tokens", action="store_true",
                        help="Dump token stream and exit (debug)")
    parser.add_argument("--ir", action="store_true",
                        help="Dump IR and exit (debug)")
    run_group = parser.add_mutually_exclusive_group()
    run_group.add_argument("--run", action="store_true",
                           help="Compile and run on the MiniCPU virtual machine")
    run_group.add_argument("--interp", action="store_true",
                           help="Run on the IR interpreter")
    parser.add_argument("--input", dest="program_input", type=parse_input_values, default=None,
                        help="Comma-separated program input (default: read stdin)")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Step budget when running (default: 1000000)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging to stderr")
    parser.add_argument("--log-file", default=None,
                        help="Also write DEBUG logs to this file")
    parser.add_argument("--version", action="version",
                        version=f"mdslc {__version__}")
    return parser


def _output_format(args) -> str:
    if args.format:
        return FORMAT_CHOICES[args.format]
    if args.output:
        ext = os.path.splitext(args.output)[1].lower()
        return EXTENSION_FORMATS.get(ext, "binary")
    return "hex"


def _run_program(source: str, args) -> int:
    ir = Parser(Lexer(source).tokenize()).parse()

    input_fn = iter(args.program_input).__next__ if args.program_input is not None else None
    backend_cls = BACKENDS["vm" if args.run else "interp"]
    if args.run:
        backend = backend_cls(origin=args.origin, max_steps=args.max_steps,
                              input_fn=input_fn, echo=print)
    else:
        backend = backend_cls(max_steps=args.max_steps, input_fn=input_fn, echo=print)

    result = backend.execute(ir)
    logger.info(f"{backend.name}: {result.outcome.value}, {len(result.output)} output values")

    if result.outcome == Outcome.HALTED:
        return 0
    if result.outcome == Outcome.TIMEOUT:
        print(f"Timeout: {result.message}", file=sys.stderr)
    else:
        print(f"Runtime error: {result.message}", file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)
    if args.input_file is None:
        Repl().run()
        return 0

    try:
        with open(args.input_file, "r", encoding="utf-8") as f:
            source = f.read()
    except FileNotFoundError:
        print(f"Error: File not found: {args.input_file}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading {args.input_file}: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"[mdslc] Input:  {args.input_file}", file=sys.stderr)
        print(f"[mdslc] Origin: ${args.origin:04X}", file=sys.stderr)

    try:
        if args.tokens:
            for tok in Lexer(source).tokenize():
                print(tok)
            return 0

        if args.ir:
            print(format_ir(Parser(Lexer(source).tokenize()).parse()))
            return 0

        if args.run or args.interp:
            return _run_program(source, args)

        out_format = _output_format(args)
        result = compile_source(source, origin=args.origin, output=out_format)

        if args.output:
            if out_format == "binary":
                with open(args.output, "wb") as f:
                    f.write(result)
            else:
                with open(args.output, "w", encoding="utf-8") as f:
                    f.write(result)
                    if not result.endswith("\n"):
                        f.write("\n")
            if args.verbose:
                print(f"[mdslc] Output: {args.output} ({out_format})", file=sys.stderr)
        elif out_format == "binary":
            sys.stdout.buffer.write(result)
        else:
            print(result)

    except (LexerError, ParseError, CodeGenError) as e:
        print(str(e), file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Internal compiler error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
