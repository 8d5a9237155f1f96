"""
ROM file loading.
"""

import logging
import os
from typing import Union

from .constants import MAX_PROGRAM_SIZE
from .errors import EmptyProgramError, ProgramTooLargeError

logger = logging.getLogger(__name__)


def load_rom_file(filename: Union[str, os.PathLike]) -> bytes:
    """
    Read a ROM file from disk.

    The size is checked before reading so an oversized file is rejected
    without pulling it into memory.
    """
    size = os.path.getsize(filename)
    if size == 0:
        raise EmptyProgramError()
    if size > MAX_PROGRAM_SIZE:
        raise ProgramTooLargeError(size, MAX_PROGRAM_SIZE)

    with open(filename, 'rb') as f:
        rom_bytes = f.read(MAX_PROGRAM_SIZE + 1)

    # The file may have changed between the stat and the read
    if not rom_bytes:
        raise EmptyProgramError()
    if len(rom_bytes) > MAX_PROGRAM_SIZE:
        raise ProgramTooLargeError(len(rom_bytes), MAX_PROGRAM_SIZE)

    logger.debug("Read %d bytes from %s", len(rom_bytes), filename)
    return rom_bytes
