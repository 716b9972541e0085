"""
MiniCPU Virtual Machine: Main Emulator Class

Integrates:
  - Register file (cpu/regs.py)
  - 64K memory map (mem/memory.py)
  - Opcode table (cpu/decoder.py)
  - Console peripheral at $FF00/$FF01 (periph/console.py)

Execution model:
  1. Fetch opcode byte at PC (PC post-increments)
  2. Decode the fixed operand layout for that opcode
  3. Execute the handler -> update registers / memory
  4. Stop if the handler reported a StopReason

Termination reasons:
  - HALT:     HALT instruction executed
  - ILLEGAL:  undefined opcode (controlled halt with diagnostic)
  - FAULT:    checked bounds violation (register index, indexed address,
              PC past end of memory), bounds TRAP, or input exhausted
  - TIMEOUT:  step budget used up in run()

step() and run() never raise for guest program errors; the reason is
returned and the diagnostic text is kept in `error`.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from .cpu.decoder import (
    decode_opcode, IllegalOpcode, TRAP_BOUNDS,
    INH, REG_ADDR, REG_IMM, ADDR_REG, ADDR_IMM, REG_REG, REG, IMM,
)
from .cpu.regs import Registers, NUM_REGS, REG_CARRY, REG_INDEXED
from .mem.memory import Memory, MemoryFault, MEM_SIZE, CODE_START
from .periph.console import ConsolePeripheral, InputExhausted

logger = logging.getLogger(__name__)


class StopReason(Enum):
    HALT = 'HALT'
    ILLEGAL = 'ILLEGAL'
    FAULT = 'FAULT'
    TIMEOUT = 'TIMEOUT'


class VMFault(Exception):
    """Checked runtime violation inside one instruction."""


TRAP_MESSAGES = {
    TRAP_BOUNDS: "array index out of bounds",
}


class MiniCPUEmulator:
    """MiniCPU virtual machine.

    Usage:
        emu = MiniCPUEmulator(input_fn=lambda: "7")
        emu.load_program(code)             # loads at $2000, PC = $2000
        reason = emu.run(max_steps=10_000)
        print(emu.output)                  # [5]
    """

    DEFAULT_MAX_STEPS = 1_000_000

    def __init__(self, input_fn: Optional[Callable[[], Union[str, int]]] = None,
                 echo: Optional[Callable[[int], None]] = None):
        self.regs = Registers()
        self.mem = Memory()

        self.console = ConsolePeripheral(input_fn=input_fn, echo=echo)
        self.console.register(self.mem)

        self.stop_reason: Optional[StopReason] = None
        self.error: Optional[str] = None
        self.entry: int = CODE_START

        self._trace = False
        self._trace_output: List[str] = []

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_program(self, code: bytes, base_addr: int = CODE_START):
        """Load a bytecode image at base_addr and point PC at it."""
        self.mem.load_binary(bytes(code), base_addr)
        self.entry = base_addr
        self.regs.reset(base_addr)
        self.stop_reason = None
        self.error = None

    def load_binary(self, path_or_data, base_addr: int = CODE_START):
        """Load a raw .bin file (or bytes) as the program image."""
        if isinstance(path_or_data, (str, Path)):
            data = Path(path_or_data).read_bytes()
        else:
            data = bytes(path_or_data)
        self.load_program(data, base_addr)

    # ══════════════════════════════════════════════
    # Status
    # ══════════════════════════════════════════════

    @property
    def halted(self) -> bool:
        return self.regs.halted

    @property
    def output(self) -> List[int]:
        """All values written to the output register since load."""
        return list(self.console.output)

    def _stop(self, reason: StopReason, message: Optional[str] = None) -> StopReason:
        self.regs.halted = True
        self.stop_reason = reason
        self.error = message
        if reason is StopReason.HALT:
            logger.debug(f"halted at ${self.regs.PC:04X} after {self.regs.steps} steps")
        else:
            logger.error(f"{reason.value}: {message}")
        return reason

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns a StopReason if stopped, else None."""
        if self.regs.halted:
            return self.stop_reason or StopReason.HALT

        pc = self.regs.PC
        try:
            opcode = self._fetch8()
            mnem, layout, _ = decode_opcode(opcode, pc)
        except IllegalOpcode as e:
            return self._stop(StopReason.ILLEGAL, str(e))
        except (VMFault, MemoryFault) as e:
            return self._stop(StopReason.FAULT, f"{e} at ${pc:04X}")

        try:
            operands = self._decode_operands(layout)
            if self._trace:
                self._trace_output.append(f"${pc:04X}: {mnem:6s} {self.regs.display()}")
            logger.debug(f"${pc:04X}: {mnem} {operands}")
            result = self._dispatch[mnem](operands)
        except (VMFault, MemoryFault) as e:
            return self._stop(StopReason.FAULT, f"{mnem} at ${pc:04X}: {e}")
        except InputExhausted as e:
            return self._stop(StopReason.FAULT, f"IN at ${pc:04X}: {e}")

        self.regs.steps += 1
        return result

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run until halted or until max_steps instructions have executed."""
        if max_steps is None:
            max_steps = self.DEFAULT_MAX_STEPS

        for _ in range(max_steps):
            reason = self.step()
            if reason is not None:
                return reason

        self.stop_reason = StopReason.TIMEOUT
        self.error = f"step budget of {max_steps} exhausted at ${self.regs.PC:04X}"
        logger.warning(self.error)
        return StopReason.TIMEOUT

    # ══════════════════════════════════════════════
    # Operand decoding
    # ══════════════════════════════════════════════

    def _decode_operands(self, layout: str) -> tuple:
        """Fetch the operand bytes for a layout.

        Returns:
          INH:       ()
          REG_ADDR:  (reg, addr)
          REG_IMM:   (reg, imm)
          ADDR_REG:  (addr, reg)
          ADDR_IMM:  (addr, imm)
          REG_REG:   (rd, rs)
          REG:       (reg,)
          IMM:       (imm,)
        """
        if layout == INH:
            return ()
        elif layout == REG_ADDR:
            reg = self._fetch8()
            return (reg, self._fetch16())
        elif layout == REG_IMM:
            reg = self._fetch8()
            return (reg, self._fetch8())
        elif layout == ADDR_REG:
            addr = self._fetch16()
            return (addr, self._fetch8())
        elif layout == ADDR_IMM:
            addr = self._fetch16()
            return (addr, self._fetch8())
        elif layout == REG_REG:
            rd = self._fetch8()
            return (rd, self._fetch8())
        elif layout in (REG, IMM):
            return (self._fetch8(),)
        else:
            raise ValueError(f"Unknown operand layout: {layout}")

    def _fetch8(self) -> int:
        """Fetch byte at PC, advance PC."""
        if self.regs.PC >= MEM_SIZE:
            raise VMFault("program counter ran past end of memory")
        val = self.mem.read8(self.regs.PC)
        self.regs.PC += 1
        return val

    def _fetch16(self) -> int:
        """Fetch big-endian word at PC, advance PC by 2."""
        if self.regs.PC + 1 >= MEM_SIZE:
            raise VMFault("program counter ran past end of memory")
        val = self.mem.read16(self.regs.PC)
        self.regs.PC += 2
        return val

    @staticmethod
    def _check_reg(index: int) -> int:
        if index >= NUM_REGS:
            raise VMFault(f"register R{index} does not exist")
        return index

    def _indexed_address(self) -> int:
        """(R0:R1) + R2, without wraparound."""
        r = self.regs.R
        addr = ((r[0] << 8) | r[1]) + r[2]
        if addr >= MEM_SIZE:
            raise VMFault(f"indexed address 0x{addr:X} out of range")
        return addr

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    #
    # Handler signature: handler(operands) -> Optional[StopReason]

    def _build_dispatch(self) -> dict:
        return {
            'HALT':   self._op_halt,
            'LOAD':   self._op_load,
            'LOADI':  self._op_loadi,
            'STORE':  self._op_store,
            'STOREI': self._op_storei,
            'ADD':    self._op_add,
            'SUB':    self._op_sub,
            'JNZ':    self._op_jnz,
            'JZ':     self._op_jz,
            'IN':     self._op_in,
            'LOADX':  self._op_loadx,
            'STOREX': self._op_storex,
            'TRAP':   self._op_trap,
        }

    def _op_halt(self, ops):
        return self._stop(StopReason.HALT)

    def _op_load(self, ops):
        rd, addr = ops
        self.regs.R[self._check_reg(rd)] = self.mem.read8(addr)

    def _op_loadi(self, ops):
        rd, imm = ops
        self.regs.R[self._check_reg(rd)] = imm

    def _op_store(self, ops):
        addr, rs = ops
        self.mem.write8(addr, self.regs.R[self._check_reg(rs)])

    def _op_storei(self, ops):
        addr, imm = ops
        self.mem.write8(addr, imm)

    def _op_add(self, ops):
        rd, rs = self._check_reg(ops[0]), self._check_reg(ops[1])
        self.regs.R[rd] = (self.regs.R[rd] + self.regs.R[rs]) & 0xFF

    def _op_sub(self, ops):
        """Rd = Rd - Rs (8-bit wrap); R2 = 1 when Rd < Rs before the subtract."""
        rd, rs = self._check_reg(ops[0]), self._check_reg(ops[1])
        minuend = self.regs.R[rd]
        subtrahend = self.regs.R[rs]
        self.regs.R[rd] = (minuend - subtrahend) & 0xFF
        self.regs.R[REG_CARRY] = 1 if minuend < subtrahend else 0

    def _op_jnz(self, ops):
        reg, target = ops
        if self.regs.R[self._check_reg(reg)] != 0:
            self.regs.PC = target

    def _op_jz(self, ops):
        reg, target = ops
        if self.regs.R[self._check_reg(reg)] == 0:
            self.regs.PC = target

    def _op_in(self, ops):
        """Blocking read from the console into Rd; mirrored to $FF01."""
        rd = self._check_reg(ops[0])
        self.regs.R[rd] = self.console.read_value()

    def _op_loadx(self, ops):
        self.regs.R[REG_INDEXED] = self.mem.read8(self._indexed_address())

    def _op_storex(self, ops):
        self.mem.write8(self._indexed_address(), self.regs.R[REG_INDEXED])

    def _op_trap(self, ops):
        code = ops[0]
        text = TRAP_MESSAGES.get(code, "software trap")
        return self._stop(StopReason.FAULT, f"TRAP 0x{code:02X} at ${self.regs.PC - 2:04X}: {text}")

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Record one line per executed instruction."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def reset(self):
        """Full reset: registers, memory, console."""
        self.regs.reset(self.entry)
        self.mem.clear()
        self.console.reset()
        self.stop_reason = None
        self.error = None
        self._trace_output.clear()
