# MiniCPU: 8-bit register / 16-bit address virtual machine
# Part of the MiniDSL toolchain
#
# Layout:
#   cpu/decoder.py   opcode table shared with the code generator
#   cpu/regs.py      R0..R7 + PC
#   mem/memory.py    64K memory map with I/O routing
#   periph/console.py  output ($FF00) / input ($FF01) registers
#   emu.py           fetch-decode-execute loop

from .emu import MiniCPUEmulator, StopReason, VMFault
from .mem.memory import (
    CODE_START, CODE_END, DATA_START, DATA_END, OUTPUT_PORT, INPUT_PORT,
)

__all__ = [
    'MiniCPUEmulator', 'StopReason', 'VMFault',
    'CODE_START', 'CODE_END', 'DATA_START', 'DATA_END',
    'OUTPUT_PORT', 'INPUT_PORT',
]
