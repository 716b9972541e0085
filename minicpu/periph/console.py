"""
MiniCPU: Memory-Mapped Console Peripheral

Register map:
  $FF00  OUT: write-only; every byte written is one output event
  $FF01  IN : holds the last value delivered to an IN instruction

Output events are recorded in `output` for programmatic inspection and,
when an `echo` callable is supplied, forwarded to it (the CLI prints each
value on its own line).

Input is pulled on demand by the IN instruction. Values queued with
inject_input() are consumed first; after that the `input_fn` callable is
asked for a line of text. The default input_fn blocks on standard input.
"""

import logging
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Union

from ..mem.memory import INPUT_PORT, OUTPUT_PORT

logger = logging.getLogger(__name__)


class InputExhausted(Exception):
    """The input source has no more values (EOF)."""


def _stdin_input() -> str:
    return input("in> ")


class ConsolePeripheral:
    """Console output/input registers."""

    def __init__(self, input_fn: Optional[Callable[[], Union[str, int]]] = None,
                 echo: Optional[Callable[[int], None]] = None):
        self.input_fn = input_fn or _stdin_input
        self.echo = echo
        self.output: List[int] = []
        self._input_queue: Deque[int] = deque()
        self._last_input = 0

    def register(self, memory):
        """Wire the console registers into the memory I/O system."""
        memory.register_io_handler(OUTPUT_PORT, None, self._write_out)
        memory.register_io_handler(INPUT_PORT, self._read_in, self._write_in)

    # --- $FF00 OUT ---

    def _write_out(self, addr: int, value: int):
        self.emit(value)

    def emit(self, value: int):
        """Record one output event."""
        value &= 0xFF
        self.output.append(value)
        logger.debug(f"console out: {value}")
        if self.echo is not None:
            self.echo(value)

    # --- $FF01 IN ---

    def _read_in(self, addr: int) -> int:
        return self._last_input

    def _write_in(self, addr: int, value: int):
        self._last_input = value & 0xFF

    # --- Used by the IN instruction ---

    def read_value(self) -> int:
        """Block until one integer is available and return it clamped to 0..255.

        Raises InputExhausted when the source reports EOF.
        """
        if self._input_queue:
            value = self._input_queue.popleft()
        else:
            value = self._pull()

        if value < 0 or value > 0xFF:
            logger.warning(f"input {value} out of 8-bit range, clamping")
            value = max(0, min(0xFF, value))
        self._last_input = value
        return value

    def _pull(self) -> int:
        while True:
            try:
                raw = self.input_fn()
            except (EOFError, StopIteration):
                raise InputExhausted("input source exhausted")
            if isinstance(raw, int):
                return raw
            try:
                return int(str(raw).strip())
            except ValueError:
                logger.warning(f"invalid input {raw!r}, expected an integer")

    def inject_input(self, values: Iterable[int]):
        """Queue integers to be returned by subsequent IN instructions."""
        for value in values:
            self._input_queue.append(int(value))

    def reset(self):
        self.output.clear()
        self._input_queue.clear()
        self._last_input = 0
