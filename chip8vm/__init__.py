"""
chip8vm - CHIP-8 virtual machine core.
"""

from .constants import (
    MEMORY_SIZE, DISPLAY_WIDTH, DISPLAY_HEIGHT, PROGRAM_START, MAX_PROGRAM_SIZE, FONT_START
)
from .errors import (
    Chip8Error, ConfigError, LoadError, EmptyProgramError, ProgramTooLargeError,
    ExecutionError, UnknownOpcodeError, StackOverflowError, StackUnderflowError, MemoryAccessError
)
from .interpreter import Chip8Interpreter, StepResult, AwaitingKey, Instruction, decode
from .quirks import QuirkProfile, PROFILES
from .rom import load_rom_file
from .timers import Timers, TimerClock

__version__ = "0.1.0"
