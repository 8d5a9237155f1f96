"""
Exception hierarchy for the CHIP-8 core.

Load-time errors reject a ROM image before execution starts. Execution
errors carry the faulting opcode, its address and the stack depth so the
host can report why a ROM stopped.
"""

from typing import Optional


class Chip8Error(Exception):
    """Base class for every error raised by the emulator"""


class ConfigError(Chip8Error, ValueError):
    """Invalid quirk profile name or host input"""


class LoadError(Chip8Error):
    """ROM image could not be loaded into memory"""


class EmptyProgramError(LoadError):
    def __init__(self):
        super().__init__("ROM is empty")


class ProgramTooLargeError(LoadError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"ROM too large: {size} bytes, max {limit}")


class ExecutionError(Chip8Error):
    """Fault raised while executing an instruction"""

    description = "execution fault"

    def __init__(self, opcode: Optional[int], pc: int, stack_depth: int, detail: str = ""):
        self.opcode = opcode
        self.pc = pc
        self.stack_depth = stack_depth
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        op = f"0x{self.opcode:04X}" if self.opcode is not None else "----"
        msg = f"{self.description} at PC=0x{self.pc:03X} (opcode {op}, stack depth {self.stack_depth})"
        if self.detail:
            msg += f": {self.detail}"
        return msg


class UnknownOpcodeError(ExecutionError):
    description = "unknown opcode"


class StackOverflowError(ExecutionError):
    description = "stack overflow"


class StackUnderflowError(ExecutionError):
    description = "stack underflow"


class MemoryAccessError(ExecutionError):
    description = "invalid memory access"

    def __init__(self, opcode: Optional[int], pc: int, stack_depth: int, address: int, detail: str = ""):
        self.address = address
        super().__init__(opcode, pc, stack_depth, detail or f"address 0x{address:04X}")
