"""
CHIP-8 register file: V0-VF, index register, program counter and call stack.
"""

import numpy as np

from .constants import REGISTER_COUNT, STACK_SIZE, PROGRAM_START, FLAG_REGISTER
from .errors import StackOverflowError, StackUnderflowError


class RegisterFile:
    """
    Sixteen 8-bit data registers plus the control registers.

    VF doubles as the carry/borrow/collision flag; any flag-setting
    opcode overwrites whatever value a program kept there.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.v = np.zeros(REGISTER_COUNT, dtype=np.uint8)
        # Regular Python ints so address arithmetic never wraps silently
        self.index = 0
        self.pc = PROGRAM_START
        self.sp = 0
        self.stack = np.zeros(STACK_SIZE, dtype=np.uint16)

    def __getitem__(self, reg: int) -> int:
        return int(self.v[reg])

    def __setitem__(self, reg: int, value: int):
        self.v[reg] = value & 0xFF

    @property
    def flag(self) -> int:
        return int(self.v[FLAG_REGISTER])

    @flag.setter
    def flag(self, value: int):
        self.v[FLAG_REGISTER] = 1 if value else 0

    @property
    def stack_full(self) -> bool:
        return self.sp >= STACK_SIZE

    @property
    def stack_empty(self) -> bool:
        return self.sp == 0

    def push(self, address: int):
        if self.stack_full:
            raise StackOverflowError(None, self.pc, self.sp)
        self.stack[self.sp] = address
        self.sp += 1

    def pop(self) -> int:
        if self.stack_empty:
            raise StackUnderflowError(None, self.pc, self.sp)
        self.sp -= 1
        return int(self.stack[self.sp])

    def call_stack(self) -> list:
        """Return addresses currently on the stack, oldest first"""
        return [int(addr) for addr in self.stack[:self.sp]]
