"""
MiniCPU: 64K Memory Map with I/O Routing

Memory map (shared by the code generator and hand-written programs):
  $0000–$1FFF  Reserved (kernel / loader area)
  $2000–$7FFF  Code region (default program origin $2000)
  $8000–$FEFF  Data region (bump-allocated variables and arrays)
  $FF00        Console output register: every byte written is emitted
  $FF01        Console input register: last value read by IN

Memory is a flat bytearray. Reads and writes to registered I/O addresses
are routed to peripheral handler callbacks; everything else is plain RAM.
Unlike real hardware there is no wraparound: an address outside the
16-bit space raises MemoryFault.
"""

from typing import Callable, Dict, List, Optional


MEM_SIZE = 0x10000

CODE_START  = 0x2000
CODE_END    = 0x7FFF
DATA_START  = 0x8000
DATA_END    = 0xFEFF
OUTPUT_PORT = 0xFF00
INPUT_PORT  = 0xFF01


class MemoryFault(Exception):
    """Access outside the 64K address space."""
    def __init__(self, addr: int, what: str = "access"):
        self.addr = addr
        super().__init__(f"Memory {what} out of range: 0x{addr:X}")


class MemoryRegion:
    """A named region in the 64K address space."""
    def __init__(self, name: str, start: int, end: int):
        self.name = name
        self.start = start
        self.end = end  # inclusive

    def contains(self, addr: int) -> bool:
        return self.start <= addr <= self.end


class Memory:
    """64K byte-addressable memory with I/O handler routing."""

    REGIONS = [
        MemoryRegion('RESERVED', 0x0000, CODE_START - 1),
        MemoryRegion('CODE',     CODE_START, CODE_END),
        MemoryRegion('DATA',     DATA_START, DATA_END),
        MemoryRegion('IO',       OUTPUT_PORT, 0xFFFF),
    ]

    def __init__(self):
        self._mem = bytearray(MEM_SIZE)

        # addr -> read_fn(addr) -> int / write_fn(addr, value) -> None
        self._io_read_handlers: Dict[int, Callable] = {}
        self._io_write_handlers: Dict[int, Callable] = {}

    @staticmethod
    def _check(addr: int, what: str):
        if not 0 <= addr < MEM_SIZE:
            raise MemoryFault(addr, what)

    # --- Core read/write ---

    def read8(self, addr: int) -> int:
        """Read an 8-bit value, routing through an I/O handler if one is registered."""
        self._check(addr, "read")
        if addr in self._io_read_handlers:
            return self._io_read_handlers[addr](addr) & 0xFF
        return self._mem[addr]

    def write8(self, addr: int, value: int):
        """Write an 8-bit value.

        Raw memory is always updated so that I/O registers stay
        inspectable; a registered write handler is then notified.
        """
        self._check(addr, "write")
        value &= 0xFF
        self._mem[addr] = value
        if addr in self._io_write_handlers:
            self._io_write_handlers[addr](addr, value)

    def read16(self, addr: int) -> int:
        """Read 16-bit value (big-endian)."""
        hi = self.read8(addr)
        lo = self.read8(addr + 1)
        return (hi << 8) | lo

    # --- Bulk load ---

    def load_binary(self, data: bytes, base_addr: int):
        """Copy an image into memory at base_addr, bypassing I/O handlers."""
        end = base_addr + len(data)
        if base_addr < 0 or end > MEM_SIZE:
            raise MemoryFault(end - 1, "load")
        self._mem[base_addr:end] = bytes(data)

    def clear(self):
        self._mem[:] = bytes(MEM_SIZE)

    # --- I/O handler registration ---

    def register_io_handler(self, addr: int,
                            read_fn: Optional[Callable] = None,
                            write_fn: Optional[Callable] = None):
        """Register read/write handlers for a memory-mapped I/O address.

        Args:
            addr: I/O register address
            read_fn: Callable(addr) -> int (8-bit value)
            write_fn: Callable(addr, value) -> None
        """
        if read_fn:
            self._io_read_handlers[addr] = read_fn
        if write_fn:
            self._io_write_handlers[addr] = write_fn

    def region_of(self, addr: int) -> Optional[str]:
        for region in self.REGIONS:
            if region.contains(addr):
                return region.name
        return None

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 256) -> str:
        """Produce a hex dump of memory for debugging."""
        lines: List[str] = []
        for offset in range(0, length, 16):
            addr = start + offset
            if addr >= MEM_SIZE:
                break
            row = self._mem[addr:min(addr + 16, MEM_SIZE)]
            hex_bytes = ' '.join(f'{b:02X}' for b in row)
            ascii_bytes = ''.join(chr(b) if 0x20 <= b < 0x7F else '.' for b in row)
            lines.append(f'{addr:04X}  {hex_bytes:<47}  {ascii_bytes}')
        return '\n'.join(lines)
