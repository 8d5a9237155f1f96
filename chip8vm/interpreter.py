"""
CHIP-8 interpreter core.

Single-instance, synchronous emulator: the host calls step() for every
instruction and tick_timers() at 60Hz, writes key states with
set_key_state() and reads the framebuffer and timers back.
Faults are raised as typed exceptions; nothing is silently skipped.
"""

import logging
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import numpy as np

from .constants import (
    DISPLAY_WIDTH, DISPLAY_HEIGHT, FONT_START, FONT_GLYPH_SIZE, PROGRAM_START, ADDRESS_MASK
)
from .display import Framebuffer
from .errors import (
    ExecutionError, MemoryAccessError, StackOverflowError, StackUnderflowError, UnknownOpcodeError
)
from .keypad import Keypad
from .memory import Memory, ProgramImage
from .quirks import QuirkProfile, DEFAULT_QUIRKS
from .registers import RegisterFile
from .timers import Timers

logger = logging.getLogger(__name__)

# Decoded instruction fields
Instruction = namedtuple('Instruction', ['opcode', 'x', 'y', 'n', 'kk', 'nnn'])


def decode(opcode: int) -> Instruction:
    """Split a 16-bit opcode into its nibble fields"""
    opcode = int(opcode)
    return Instruction(
        opcode=opcode,
        x=(opcode & 0x0F00) >> 8,
        y=(opcode & 0x00F0) >> 4,
        n=opcode & 0x000F,
        kk=opcode & 0x00FF,
        nnn=opcode & 0x0FFF,
    )


class StepResult(Enum):
    EXECUTED = "executed"
    WAITING = "waiting"    # suspended on FX0A, PC still points at it


@dataclass(frozen=True)
class AwaitingKey:
    """Pending FX0A: the register that receives the next pressed key"""
    register: int


class Chip8Interpreter:
    """
    Owns memory, registers, timers, framebuffer and keypad and runs the
    fetch-decode-execute cycle over them.
    """

    def __init__(self, quirks: Optional[QuirkProfile] = None, rng=None,
                 debug_file: Optional[str] = None, trace_limit: int = 20):
        """
        Args:
            quirks: Behaviour profile, defaults to plain CHIP-8
            rng: Random source for CXNN, anything with integers(low, high)
                 (numpy.random.Generator). Seed it for reproducible runs.
            debug_file: Also write the instruction trace to this file
            trace_limit: Number of leading instructions logged at DEBUG
        """
        self.quirks = quirks or DEFAULT_QUIRKS
        self.rng = rng if rng is not None else np.random.default_rng()
        self.trace_limit = trace_limit

        self.debug_file = debug_file
        self.log = logger
        self._debug_handler = None
        if debug_file:
            # One logger per instance; the trace goes to the file only
            self.log = logger.getChild(f"trace.{id(self):x}")
            self.log.setLevel(logging.DEBUG)
            self.log.propagate = False
            self._debug_handler = logging.FileHandler(debug_file, mode='w', encoding='utf-8')
            self._debug_handler.setFormatter(logging.Formatter('%(message)s'))
            self.log.addHandler(self._debug_handler)

        self.memory = Memory()
        self.registers = RegisterFile()
        self.timers = Timers()
        self.display = Framebuffer()
        self.keypad = Keypad()

        # Primary dispatch on the high nibble; families 0, 8, E and F
        # select again on their low bits.
        self._handlers = {
            0x0: self._op_system,
            0x1: self._op_jump,
            0x2: self._op_call,
            0x3: self._op_skip_eq_imm,
            0x4: self._op_skip_ne_imm,
            0x5: self._op_skip_eq_reg,
            0x6: self._op_load_imm,
            0x7: self._op_add_imm,
            0x8: self._op_alu,
            0x9: self._op_skip_ne_reg,
            0xA: self._op_load_index,
            0xB: self._op_jump_offset,
            0xC: self._op_random,
            0xD: self._op_draw,
            0xE: self._op_key,
            0xF: self._op_misc,
        }
        self._system_ops = {
            0x00E0: self._op_clear_screen,
            0x00EE: self._op_return,
        }
        self._alu_ops = {
            0x0: self._alu_load,
            0x1: self._alu_or,
            0x2: self._alu_and,
            0x3: self._alu_xor,
            0x4: self._alu_add,
            0x5: self._alu_sub,
            0x6: self._alu_shift_right,
            0x7: self._alu_sub_reverse,
            0xE: self._alu_shift_left,
        }
        self._key_ops = {
            0x9E: self._op_skip_key_pressed,
            0xA1: self._op_skip_key_not_pressed,
        }
        self._misc_ops = {
            0x07: self._op_read_delay,
            0x0A: self._op_wait_key,
            0x15: self._op_set_delay,
            0x18: self._op_set_sound,
            0x1E: self._op_add_index,
            0x29: self._op_font_char,
            0x33: self._op_bcd,
            0x55: self._op_store_registers,
            0x65: self._op_load_registers,
        }

        self.reset()

    def reset(self):
        """Power-on state: zeroed memory with the font loaded, PC at 0x200"""
        self.memory.clear()
        self.registers.reset()
        self.timers.reset()
        self.display.clear()
        self.keypad.reset()
        self.load_font_set()

        self.pending: Optional[AwaitingKey] = None
        self.fault: Optional[ExecutionError] = None
        self._opcode: Optional[int] = None
        self._instruction_pc = PROGRAM_START

        # Instrumentation
        self.stats = {
            'instructions_executed': 0,
            'display_clears': 0,
            'sprite_draws': 0,
            'sprite_collisions': 0,
            'memory_reads': 0,
            'memory_writes': 0,
            'timer_sets': 0,
            'timer_ticks': 0,
            'key_checks': 0,
            'blocking_key_waits': 0,
            'jumps_taken': 0,
            'subroutine_calls': 0,
            'returns': 0,
            'random_generations': 0,
        }

    def close(self):
        """Detach the debug file handler, if any"""
        if self._debug_handler is not None:
            self.log.removeHandler(self._debug_handler)
            self._debug_handler.close()
            self._debug_handler = None
            logging.Logger.manager.loggerDict.pop(self.log.name, None)
            self.log = logger

    # ------------------------------------------------------------------
    # Host interface
    # ------------------------------------------------------------------

    def load_font_set(self):
        self.memory.load_font_set()

    def load_program(self, data: ProgramImage) -> int:
        """Copy a ROM image to 0x200, returns its size"""
        size = self.memory.load_program(data)
        self.log.info("Loaded ROM: %d bytes", size)
        return size

    def set_key_state(self, key: int, pressed: bool):
        self.keypad.set_key(key, pressed)

    def tick_timers(self):
        """One 60Hz tick"""
        self.timers.tick()
        self.stats['timer_ticks'] += 1

    @property
    def delay_timer(self) -> int:
        return self.timers.delay

    @property
    def sound_timer(self) -> int:
        return self.timers.sound

    @property
    def sound_active(self) -> bool:
        return self.timers.sound_active

    @property
    def waiting_for_key(self) -> bool:
        return self.pending is not None

    @property
    def faulted(self) -> bool:
        return self.fault is not None

    def get_display(self) -> np.ndarray:
        """Current display state as a (32, 64) array"""
        return self.display.snapshot()

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()

    def format_stats(self) -> str:
        lines = ["CHIP-8 Emulator Statistics:", "-" * 30]
        for key, value in self.stats.items():
            lines.append(f"{key:25s}: {value}")
        return '\n'.join(lines)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def step(self) -> StepResult:
        """
        Execute one instruction.

        Returns StepResult.WAITING without fetching while a key wait is
        pending. Raises an ExecutionError subclass on a fault; once
        faulted, every further call re-raises it until reset().
        """
        if self.fault is not None:
            raise self.fault

        if self.pending is not None:
            return self._resume_key_wait()

        regs = self.registers
        pc = regs.pc
        self._instruction_pc = pc
        self._opcode = None

        try:
            if not self.memory.in_range(pc, 2):
                raise MemoryAccessError(None, pc, regs.sp, pc, "program counter outside memory")

            instruction = decode(self.memory.read_word(pc))
            self._opcode = instruction.opcode
            regs.pc = pc + 2

            if self.stats['instructions_executed'] < self.trace_limit:
                self._trace(instruction)
            self.stats['instructions_executed'] += 1

            self._handlers[instruction.opcode >> 12](instruction)
        except ExecutionError as fault:
            self.fault = fault
            self.log.error("ERROR: %s", fault)
            raise

        if self.pending is not None:
            return StepResult.WAITING
        return StepResult.EXECUTED

    def run(self, max_cycles: int = 1000, timer_interval: int = 16) -> int:
        """
        Run a fixed number of step() calls without a wall clock.

        Timers tick once every timer_interval calls (about 1000
        instructions per second against the 60Hz timer rate when the
        interval is 16). Waiting steps count as cycles. Returns the number
        of step() calls made; faults propagate.
        """
        for cycle in range(max_cycles):
            self.step()
            if timer_interval and (cycle + 1) % timer_interval == 0:
                self.tick_timers()
        return max_cycles

    def _trace(self, instruction: Instruction):
        self.log.debug("Executing: 0x%04X at PC=0x%03X", instruction.opcode, self._instruction_pc)
        self.log.debug("  Opcode: 0x%X, x=%d, y=%d, n=%d, kk=0x%02X, nnn=0x%03X",
                       instruction.opcode >> 12, instruction.x, instruction.y,
                       instruction.n, instruction.kk, instruction.nnn)
        self.log.debug("  Registers: %s", [int(v) for v in self.registers.v])
        self.log.debug("  I=0x%03X, SP=%d", self.registers.index, self.registers.sp)

    def _fault(self, error_cls, detail: str = "") -> ExecutionError:
        return error_cls(self._opcode, self._instruction_pc, self.registers.sp, detail)

    def _unknown(self, instruction: Instruction):
        raise self._fault(UnknownOpcodeError)

    def _check_read(self, address: int, length: int):
        if not self.memory.in_range(address, length):
            raise MemoryAccessError(self._opcode, self._instruction_pc, self.registers.sp, address,
                                    f"read of {length} bytes at 0x{address:04X} past end of memory")

    def _check_write(self, address: int, length: int):
        if address < PROGRAM_START:
            raise MemoryAccessError(self._opcode, self._instruction_pc, self.registers.sp, address,
                                    f"write to reserved interpreter area at 0x{address:04X}")
        if not self.memory.in_range(address, length):
            raise MemoryAccessError(self._opcode, self._instruction_pc, self.registers.sp, address,
                                    f"write of {length} bytes at 0x{address:04X} past end of memory")

    def _skip_if(self, condition: bool):
        if condition:
            self.registers.pc += 2

    # 0x0 family -------------------------------------------------------

    def _op_system(self, ins: Instruction):
        # 0NNN machine-code calls are not emulated
        self._system_ops.get(ins.opcode, self._unknown)(ins)

    def _op_clear_screen(self, ins: Instruction):
        self.display.clear()
        self.stats['display_clears'] += 1

    def _op_return(self, ins: Instruction):
        if self.registers.stack_empty:
            raise self._fault(StackUnderflowError, "return with empty stack")
        self.registers.pc = self.registers.pop()
        self.stats['returns'] += 1

    # Flow control -----------------------------------------------------

    def _op_jump(self, ins: Instruction):
        self.registers.pc = ins.nnn
        self.stats['jumps_taken'] += 1

    def _op_call(self, ins: Instruction):
        if self.registers.stack_full:
            raise self._fault(StackOverflowError, "call with full stack")
        self.registers.push(self.registers.pc)
        self.registers.pc = ins.nnn
        self.stats['subroutine_calls'] += 1

    def _op_jump_offset(self, ins: Instruction):
        self.registers.pc = ins.nnn + self.registers[0]
        self.stats['jumps_taken'] += 1

    def _op_skip_eq_imm(self, ins: Instruction):
        self._skip_if(self.registers[ins.x] == ins.kk)

    def _op_skip_ne_imm(self, ins: Instruction):
        self._skip_if(self.registers[ins.x] != ins.kk)

    def _op_skip_eq_reg(self, ins: Instruction):
        if ins.n != 0:
            self._unknown(ins)
        self._skip_if(self.registers[ins.x] == self.registers[ins.y])

    def _op_skip_ne_reg(self, ins: Instruction):
        if ins.n != 0:
            self._unknown(ins)
        self._skip_if(self.registers[ins.x] != self.registers[ins.y])

    # Register loads ---------------------------------------------------

    def _op_load_imm(self, ins: Instruction):
        self.registers[ins.x] = ins.kk

    def _op_add_imm(self, ins: Instruction):
        # No carry flag
        self.registers[ins.x] = self.registers[ins.x] + ins.kk

    def _op_load_index(self, ins: Instruction):
        self.registers.index = ins.nnn

    def _op_random(self, ins: Instruction):
        random_byte = int(self.rng.integers(0, 256))
        self.registers[ins.x] = random_byte & ins.kk
        self.stats['random_generations'] += 1

    # 0x8 family: operands are read before VF is written, so VF as a
    # destination ends up holding the flag.

    def _op_alu(self, ins: Instruction):
        self._alu_ops.get(ins.n, self._unknown)(ins)

    def _alu_load(self, ins: Instruction):
        self.registers[ins.x] = self.registers[ins.y]

    def _alu_or(self, ins: Instruction):
        self.registers[ins.x] = self.registers[ins.x] | self.registers[ins.y]

    def _alu_and(self, ins: Instruction):
        self.registers[ins.x] = self.registers[ins.x] & self.registers[ins.y]

    def _alu_xor(self, ins: Instruction):
        self.registers[ins.x] = self.registers[ins.x] ^ self.registers[ins.y]

    def _alu_add(self, ins: Instruction):
        vx_val = self.registers[ins.x]
        vy_val = self.registers[ins.y]
        result = vx_val + vy_val
        self.registers[ins.x] = result
        self.registers.flag = result > 0xFF

    def _alu_sub(self, ins: Instruction):
        vx_val = self.registers[ins.x]
        vy_val = self.registers[ins.y]
        self.registers[ins.x] = vx_val - vy_val
        self.registers.flag = vx_val >= vy_val

    def _alu_sub_reverse(self, ins: Instruction):
        vx_val = self.registers[ins.x]
        vy_val = self.registers[ins.y]
        self.registers[ins.x] = vy_val - vx_val
        self.registers.flag = vy_val >= vx_val

    def _shift_source(self, ins: Instruction) -> int:
        return self.registers[ins.y if self.quirks.shift_uses_vy else ins.x]

    def _alu_shift_right(self, ins: Instruction):
        value = self._shift_source(ins)
        self.registers[ins.x] = value >> 1
        self.registers.flag = value & 0x1

    def _alu_shift_left(self, ins: Instruction):
        value = self._shift_source(ins)
        self.registers[ins.x] = value << 1
        self.registers.flag = value & 0x80

    # Display ----------------------------------------------------------

    def _op_draw(self, ins: Instruction):
        vx = self.registers[ins.x] % DISPLAY_WIDTH
        vy = self.registers[ins.y] % DISPLAY_HEIGHT
        index = self.registers.index

        self._check_read(index, ins.n)
        sprite = self.memory.read_block(index, ins.n)
        self.stats['memory_reads'] += ins.n

        collision = self.display.draw_sprite(vx, vy, sprite, wrap=self.quirks.sprite_wrap)
        self.registers.flag = collision
        self.stats['sprite_draws'] += 1
        if collision:
            self.stats['sprite_collisions'] += 1

    # Keypad -----------------------------------------------------------

    def _op_key(self, ins: Instruction):
        self.stats['key_checks'] += 1
        self._key_ops.get(ins.kk, self._unknown)(ins)

    def _op_skip_key_pressed(self, ins: Instruction):
        self._skip_if(self.keypad.is_pressed(self.registers[ins.x]))

    def _op_skip_key_not_pressed(self, ins: Instruction):
        self._skip_if(not self.keypad.is_pressed(self.registers[ins.x]))

    def _op_wait_key(self, ins: Instruction):
        # Rewind so PC keeps pointing at FX0A until a key arrives
        self.registers.pc -= 2
        self.keypad.clear_presses()
        self.pending = AwaitingKey(ins.x)
        self.stats['blocking_key_waits'] += 1

    def _resume_key_wait(self) -> StepResult:
        key = self.keypad.take_press()
        if key is None:
            return StepResult.WAITING

        self.registers[self.pending.register] = key
        self.registers.pc += 2
        self.pending = None
        return StepResult.EXECUTED

    # 0xF family -------------------------------------------------------

    def _op_misc(self, ins: Instruction):
        self._misc_ops.get(ins.kk, self._unknown)(ins)

    def _op_read_delay(self, ins: Instruction):
        self.registers[ins.x] = self.timers.delay

    def _op_set_delay(self, ins: Instruction):
        self.timers.set_delay(self.registers[ins.x])
        self.stats['timer_sets'] += 1

    def _op_set_sound(self, ins: Instruction):
        self.timers.set_sound(self.registers[ins.x])
        self.stats['timer_sets'] += 1

    def _op_add_index(self, ins: Instruction):
        total = self.registers.index + self.registers[ins.x]
        self.registers.index = total & ADDRESS_MASK
        if self.quirks.index_overflow_flag:
            self.registers.flag = total > ADDRESS_MASK

    def _op_font_char(self, ins: Instruction):
        digit = self.registers[ins.x] & 0xF
        self.registers.index = FONT_START + digit * FONT_GLYPH_SIZE

    def _op_bcd(self, ins: Instruction):
        value = self.registers[ins.x]
        index = self.registers.index
        self._check_write(index, 3)
        self.memory.write_block(index, [value // 100, (value // 10) % 10, value % 10])
        self.stats['memory_writes'] += 3

    def _op_store_registers(self, ins: Instruction):
        index = self.registers.index
        self._check_write(index, ins.x + 1)
        self.memory.write_block(index, self.registers.v[:ins.x + 1])
        self.stats['memory_writes'] += ins.x + 1

    def _op_load_registers(self, ins: Instruction):
        index = self.registers.index
        self._check_read(index, ins.x + 1)
        self.registers.v[:ins.x + 1] = self.memory.read_block(index, ins.x + 1)
        self.stats['memory_reads'] += ins.x + 1
