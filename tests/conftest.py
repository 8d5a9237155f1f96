import numpy as np
import pytest

from chip8vm import Chip8Interpreter, QuirkProfile


class FixedRandom:
    """Random source returning a fixed sequence of bytes"""

    def __init__(self, *values):
        self.values = list(values)

    def integers(self, low, high):
        return self.values.pop(0)


def program(*words: int) -> bytes:
    """Pack 16-bit opcodes big-endian into a ROM image"""
    return b''.join(word.to_bytes(2, 'big') for word in words)


def make_chip8(*words: int, quirks: QuirkProfile = None, rng=None) -> Chip8Interpreter:
    chip8 = Chip8Interpreter(quirks=quirks, rng=rng if rng is not None else np.random.default_rng(0))
    chip8.load_program(program(*words))
    return chip8


def run_steps(chip8: Chip8Interpreter, count: int):
    for _ in range(count):
        chip8.step()


@pytest.fixture
def chip8():
    return Chip8Interpreter(rng=np.random.default_rng(0))
