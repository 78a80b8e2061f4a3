"""
Memory Subsystem for CHIP-8 VM
==============================

Memory Map:
    $000-$04F  Reserved for the interpreter
    $050-$09F  Hexadecimal font (16 glyphs x 5 bytes)
    $0A0-$1FF  Reserved for the interpreter
    $200-$FFE  Program image and working storage

The address space is a single linear store of $FFF bytes. Unlike the
legacy interpreter, which wrapped addresses modulo the memory size, every
access is bounds-checked and an out-of-range address is a fatal error.
"""

import logging
from typing import List

from ..errors import AddressOutOfRangeError, ProgramTooLargeError

logger = logging.getLogger(__name__)


# =============================================================================
# FONT DATA
# =============================================================================
# 4x5 glyphs for the hexadecimal digits 0-F, one byte per row with the
# pixels in the high nibble. FX29 computes glyph addresses from FONT_OFFSET.

FONT_OFFSET = 0x50
FONT_GLYPH_SIZE = 5

FONT_DATA = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


class Memory:
    """
    Linear, bounds-checked byte store.

    Owns the program image and the interpreter font table. The font is
    written at construction time so it is resident before any instruction
    executes.

    Attributes:
        SIZE: Number of addressable bytes ($FFF)
        PROGRAM_START: Load address of program images ($200)
        MAX_PROGRAM_SIZE: Largest accepted image ($FFF - $200)

    Example:
        >>> mem = Memory()
        >>> mem.load(bytes([0x60, 0x05]))
        >>> hex(mem.read_word(0x200))
        '0x6005'
    """

    SIZE = 0xFFF
    PROGRAM_START = 0x200
    MAX_PROGRAM_SIZE = SIZE - PROGRAM_START

    def __init__(self):
        """Initialize zeroed memory with the font table resident."""
        self._data = bytearray(self.SIZE)
        self._program_size = 0
        self.init_fonts()

    def __len__(self) -> int:
        return self.SIZE

    @property
    def program_size(self) -> int:
        """Size in bytes of the currently loaded program image."""
        return self._program_size

    # ========================================
    # Loading
    # ========================================

    def init_fonts(self) -> None:
        """Write the 16 hexadecimal glyphs at FONT_OFFSET."""
        self._data[FONT_OFFSET:FONT_OFFSET + len(FONT_DATA)] = FONT_DATA

    def load(self, rom: bytes) -> None:
        """
        Copy a program image into memory at PROGRAM_START.

        Args:
            rom: Raw program bytes

        Raises:
            ProgramTooLargeError: If the image would extend past $FFE
        """
        if len(rom) > self.MAX_PROGRAM_SIZE:
            raise ProgramTooLargeError(len(rom), self.MAX_PROGRAM_SIZE)

        start = self.PROGRAM_START
        self._data[start:start + len(rom)] = rom
        self._program_size = len(rom)
        logger.info(f"Loaded {len(rom)} byte program at ${start:03X}")

    def reset(self) -> None:
        """Clear all memory and restore the font table."""
        self._data = bytearray(self.SIZE)
        self._program_size = 0
        self.init_fonts()

    # ========================================
    # Access
    # ========================================

    def _check(self, address: int) -> None:
        if not 0 <= address < self.SIZE:
            raise AddressOutOfRangeError(address)

    def read(self, address: int) -> int:
        """
        Read byte from memory.

        Raises:
            AddressOutOfRangeError: If address is outside [$000, $FFF)
        """
        self._check(address)
        return self._data[address]

    def write(self, address: int, value: int) -> None:
        """
        Write byte to memory (value truncated to 8 bits).

        Raises:
            AddressOutOfRangeError: If address is outside [$000, $FFF)
        """
        self._check(address)
        self._data[address] = value & 0xFF

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word (used for instruction fetch)."""
        hi = self.read(address)
        lo = self.read(address + 1)
        return (hi << 8) | lo

    def read_bytes(self, address: int, count: int) -> bytes:
        """Read `count` consecutive bytes, bounds-checking every address."""
        if count <= 0:
            return b""
        self._check(address)
        self._check(address + count - 1)
        return bytes(self._data[address:address + count])

    # ========================================
    # Snapshot Support
    # ========================================

    def get_snapshot_data(self) -> List[int]:
        """Get memory contents for snapshot (program size + raw bytes)."""
        result = [
            (self._program_size >> 8) & 0xFF,
            self._program_size & 0xFF,
        ]
        result.extend(self._data)
        return result

    def apply_snapshot_data(self, data: List[int], offset: int = 0) -> int:
        """Restore memory from snapshot. Returns bytes consumed."""
        if len(data) - offset < 2 + self.SIZE:
            raise ValueError("Snapshot truncated in memory section")
        self._program_size = (data[offset] << 8) | data[offset + 1]
        start = offset + 2
        self._data = bytearray(data[start:start + self.SIZE])
        return 2 + self.SIZE
