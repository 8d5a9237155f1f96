"""
4KB CHIP-8 address space.

Layout:
    0x000-0x1FF  interpreter area, only the font lives here
    0x050-0x09F  16 hex glyphs, 5 bytes each
    0x200-0xFFF  program image and scratch data
"""

import logging
from typing import Union

import numpy as np

from .constants import (
    CHIP8_FONT, FONT_START, FONT_SIZE, MEMORY_SIZE, PROGRAM_START, MAX_PROGRAM_SIZE
)
from .errors import EmptyProgramError, LoadError, ProgramTooLargeError

logger = logging.getLogger(__name__)

ProgramImage = Union[bytes, bytearray, memoryview, np.ndarray]


def as_program_bytes(data: ProgramImage) -> bytes:
    """Normalise a ROM image to bytes"""
    if isinstance(data, np.ndarray):
        if data.dtype != np.uint8:
            if data.dtype.kind not in "iu":
                raise LoadError(f"ROM array must hold integers, got dtype {data.dtype}")
            if data.size and (data.min() < 0 or data.max() > 0xFF):
                raise LoadError("ROM array values must lie in 0-255")
        return data.astype(np.uint8).tobytes()
    return bytes(data)


class Memory:
    """Flat byte store with bounds checking"""

    def __init__(self):
        self.data = np.zeros(MEMORY_SIZE, dtype=np.uint8)

    def __len__(self) -> int:
        return MEMORY_SIZE

    def clear(self):
        self.data.fill(0)

    @staticmethod
    def in_range(address: int, length: int = 1) -> bool:
        """True if [address, address + length) lies inside memory"""
        return 0 <= address and address + length <= MEMORY_SIZE

    def load_font_set(self):
        """Write the 80-byte font table sequentially starting at FONT_START"""
        self.data[FONT_START:FONT_START + FONT_SIZE] = CHIP8_FONT

    def load_program(self, data: ProgramImage) -> int:
        """
        Copy a ROM image to PROGRAM_START.

        Args:
            data: Raw program bytes (bytes-like or uint8 array)

        Returns:
            Number of bytes loaded
        """
        rom_bytes = as_program_bytes(data)
        if not rom_bytes:
            raise EmptyProgramError()
        if len(rom_bytes) > MAX_PROGRAM_SIZE:
            raise ProgramTooLargeError(len(rom_bytes), MAX_PROGRAM_SIZE)

        self.data[PROGRAM_START:PROGRAM_START + len(rom_bytes)] = np.frombuffer(rom_bytes, dtype=np.uint8)
        logger.debug("Loaded ROM: %d bytes, first instruction 0x%04X",
                     len(rom_bytes), self.read_word(PROGRAM_START))
        return len(rom_bytes)

    def read(self, address: int) -> int:
        if not self.in_range(address):
            raise IndexError(f"address 0x{address:04X} outside memory")
        return int(self.data[address])

    def read_word(self, address: int) -> int:
        """Big-endian 16-bit read"""
        if not self.in_range(address, 2):
            raise IndexError(f"word at 0x{address:04X} outside memory")
        return (int(self.data[address]) << 8) | int(self.data[address + 1])

    def read_block(self, address: int, length: int) -> np.ndarray:
        if not self.in_range(address, length):
            raise IndexError(f"block 0x{address:04X}+{length} outside memory")
        return self.data[address:address + length].copy()

    def write(self, address: int, value: int):
        if not self.in_range(address):
            raise IndexError(f"address 0x{address:04X} outside memory")
        self.data[address] = value & 0xFF

    def write_block(self, address: int, values) -> None:
        values = np.asarray(values, dtype=np.uint8)
        if not self.in_range(address, len(values)):
            raise IndexError(f"block 0x{address:04X}+{len(values)} outside memory")
        self.data[address:address + len(values)] = values
