import logging

import numpy as np
import pytest

from chip8vm import Chip8Interpreter, QuirkProfile, StepResult, decode
from chip8vm.constants import FONT_START

from conftest import FixedRandom, make_chip8, run_steps


def test_decode_fields():
    ins = decode(0xD12F)
    assert (ins.x, ins.y, ins.n, ins.kk, ins.nnn) == (1, 2, 0xF, 0x2F, 0x12F)


def test_construction_loads_font():
    chip8 = Chip8Interpreter()
    assert chip8.memory.read(FONT_START) == 0xF0
    assert chip8.registers.pc == 0x200
    assert chip8.pending is None


def test_step_advances_pc_by_two():
    chip8 = make_chip8(0x6005, 0x6106)
    assert chip8.step() is StepResult.EXECUTED
    assert chip8.registers.pc == 0x202
    assert chip8.registers[0] == 5


# Flow control -----------------------------------------------------------

def test_jump():
    chip8 = make_chip8(0x1234)
    chip8.step()
    assert chip8.registers.pc == 0x234


def test_call_then_return_resumes_after_call():
    chip8 = make_chip8(
        0x2206,  # 200: CALL 206
        0x6001,  # 202: LD V0, 1
        0x1204,  # 204: JP 204
        0x00EE,  # 206: RET
    )
    chip8.step()
    assert chip8.registers.pc == 0x206
    assert chip8.registers.call_stack() == [0x202]
    chip8.step()
    assert chip8.registers.pc == 0x202
    assert chip8.registers.sp == 0
    chip8.step()
    assert chip8.registers[0] == 1


def test_jump_with_v0_offset():
    chip8 = make_chip8(0x6010, 0xB300)
    run_steps(chip8, 2)
    assert chip8.registers.pc == 0x310


@pytest.mark.parametrize("words, skipped", [
    ((0x6042, 0x3042), True),
    ((0x6042, 0x3043), False),
    ((0x6042, 0x4043), True),
    ((0x6042, 0x4042), False),
    ((0x6007, 0x6107, 0x5010), True),
    ((0x6007, 0x6108, 0x5010), False),
    ((0x6007, 0x6108, 0x9010), True),
    ((0x6007, 0x6107, 0x9010), False),
])
def test_conditional_skips(words, skipped):
    chip8 = make_chip8(*words)
    run_steps(chip8, len(words))
    expected = 0x200 + 2 * len(words) + (2 if skipped else 0)
    assert chip8.registers.pc == expected


# Register arithmetic ----------------------------------------------------

def test_add_immediate_wraps_without_flag():
    chip8 = make_chip8(0x6FFF, 0x60F0, 0x7020, 0x6F05, 0x7F01)
    run_steps(chip8, 3)
    assert chip8.registers[0] == 0x10
    assert chip8.registers[0xF] == 0xFF
    run_steps(chip8, 2)
    assert chip8.registers[0xF] == 6


def test_register_logic_ops():
    chip8 = make_chip8(0x603C, 0x610F, 0x8210, 0x8201, 0x8312, 0x8303, 0x8402, 0x8413)
    chip8.registers[3] = 0x3C
    run_steps(chip8, 3)
    assert chip8.registers[2] == 0x0F
    chip8.step()
    assert chip8.registers[2] == 0x3F        # 0x0F | 0x3C
    chip8.step()
    assert chip8.registers[3] == 0x3C & 0x0F
    chip8.step()
    assert chip8.registers[3] == 0x0C ^ 0x3C


def _alu(vx, vy, op):
    chip8 = make_chip8(0x6000 | vx, 0x6100 | vy, 0x8010 | op)
    run_steps(chip8, 3)
    return chip8.registers[0], chip8.registers[0xF]


@pytest.mark.parametrize("vx", [0, 1, 0x7F, 0x80, 0xFE, 0xFF])
@pytest.mark.parametrize("vy", [0, 1, 0x80, 0xFF])
def test_add_carry_and_subtract_borrow_flags(vx, vy):
    assert _alu(vx, vy, 0x4) == ((vx + vy) & 0xFF, int(vx + vy > 0xFF))
    assert _alu(vx, vy, 0x5) == ((vx - vy) & 0xFF, int(vx >= vy))
    assert _alu(vx, vy, 0x7) == ((vy - vx) & 0xFF, int(vy >= vx))


def test_flag_wins_when_vf_is_destination():
    chip8 = make_chip8(0x6FFF, 0x6102, 0x8F14)
    run_steps(chip8, 3)
    assert chip8.registers[0xF] == 1


def test_shifts_use_vx_by_default():
    chip8 = make_chip8(0x6005, 0x61F0, 0x8016, 0x6281, 0x821E)
    run_steps(chip8, 3)
    assert chip8.registers[0] == 0x02
    assert chip8.registers[0xF] == 1
    run_steps(chip8, 2)
    assert chip8.registers[2] == 0x02
    assert chip8.registers[0xF] == 1


def test_shifts_use_vy_with_cosmac_quirk():
    chip8 = make_chip8(0x6005, 0x61F0, 0x8016, 0x801E, quirks=QuirkProfile.named('cosmac'))
    run_steps(chip8, 3)
    assert chip8.registers[0] == 0x78
    assert chip8.registers[0xF] == 0
    chip8.step()
    assert chip8.registers[0] == 0xE0
    assert chip8.registers[0xF] == 1


def test_random_is_masked():
    chip8 = make_chip8(0xC00F, 0xC1F0, rng=FixedRandom(0xAB, 0xAB))
    run_steps(chip8, 2)
    assert chip8.registers[0] == 0x0B
    assert chip8.registers[1] == 0xA0


def test_random_is_reproducible_with_seed():
    first = make_chip8(0xC0FF, rng=np.random.default_rng(42))
    second = make_chip8(0xC0FF, rng=np.random.default_rng(42))
    first.step()
    second.step()
    assert first.registers[0] == second.registers[0]


# Index register and memory ----------------------------------------------

def test_index_add_wraps_in_12_bits():
    chip8 = make_chip8(0xAFFF, 0x6002, 0x6F07, 0xF01E)
    run_steps(chip8, 4)
    assert chip8.registers.index == 0x001
    assert chip8.registers[0xF] == 7


def test_index_add_overflow_flag_quirk():
    chip8 = make_chip8(0xAFFF, 0x6002, 0xF01E, 0xA100, 0xF01E,
                       quirks=QuirkProfile.named('amiga'))
    run_steps(chip8, 3)
    assert chip8.registers[0xF] == 1
    run_steps(chip8, 2)
    assert chip8.registers.index == 0x102
    assert chip8.registers[0xF] == 0


def test_font_character_address():
    chip8 = make_chip8(0x601A, 0xF029)
    run_steps(chip8, 2)
    assert chip8.registers.index == FONT_START + 0xA * 5


def test_bcd():
    chip8 = make_chip8(0x609D, 0xA300, 0xF033)  # V0 = 157
    run_steps(chip8, 3)
    assert list(chip8.memory.read_block(0x300, 3)) == [1, 5, 7]


def test_store_and_load_registers_leave_index_unchanged():
    chip8 = make_chip8(0x6011, 0x6122, 0x6233, 0xA400, 0xF255,
                       0x6000, 0x6100, 0x6200, 0xF165)
    run_steps(chip8, 5)
    assert list(chip8.memory.read_block(0x400, 4)) == [0x11, 0x22, 0x33, 0]
    assert chip8.registers.index == 0x400
    run_steps(chip8, 4)
    assert chip8.registers[0] == 0x11
    assert chip8.registers[1] == 0x22
    assert chip8.registers[2] == 0
    assert chip8.registers.index == 0x400


# Display ----------------------------------------------------------------

def test_clear_screen():
    chip8 = make_chip8(0x6000, 0xF029, 0xD005, 0x00E0)
    run_steps(chip8, 3)
    assert chip8.get_display().any()
    chip8.step()
    assert not chip8.get_display().any()


def test_draw_twice_restores_screen_and_flags_collision():
    chip8 = make_chip8(
        0xA20A,  # LD I, sprite
        0x600C,  # LD V0, 12
        0x6108,  # LD V1, 8
        0xD015,  # DRW V0, V1, 5
        0xD015,  # DRW V0, V1, 5
        0xF090, 0x9090, 0xF000,
    )
    run_steps(chip8, 3)
    before = chip8.get_display()
    chip8.step()
    assert chip8.registers[0xF] == 0
    assert chip8.get_display()[8, 12:16].all()
    chip8.step()
    assert chip8.registers[0xF] == 1
    assert np.array_equal(chip8.get_display(), before)


def test_draw_position_wraps_but_sprite_clips():
    chip8 = make_chip8(0x6046, 0x6122, 0xA20A, 0xD011, 0x1208, 0xFF00)
    run_steps(chip8, 4)
    display = chip8.get_display()
    # 70 % 64 = 6, 34 % 32 = 2
    assert display[2, 6:14].all()
    assert display.sum() == 8


def test_draw_clips_at_right_edge():
    chip8 = make_chip8(0x603C, 0x6100, 0xA20A, 0xD011, 0x1208, 0xFF00)
    run_steps(chip8, 4)
    display = chip8.get_display()
    assert display[0, 60:].all()
    assert not display[0, :4].any()


def test_draw_wraps_with_quirk():
    chip8 = make_chip8(0x603C, 0x6100, 0xA20A, 0xD011, 0x1208, 0xFF00,
                       quirks=QuirkProfile.named('wrap'))
    run_steps(chip8, 4)
    assert chip8.get_display()[0, :4].all()


# Timers -----------------------------------------------------------------

def test_timers_set_and_read():
    chip8 = make_chip8(0x6003, 0xF015, 0xF018, 0xF107)
    run_steps(chip8, 3)
    assert chip8.delay_timer == 3
    assert chip8.sound_timer == 3
    assert chip8.sound_active
    for _ in range(3):
        chip8.tick_timers()
    assert chip8.delay_timer == 0
    chip8.tick_timers()
    assert chip8.delay_timer == 0
    assert not chip8.sound_active
    chip8.step()
    assert chip8.registers[1] == 0


def test_timers_do_not_depend_on_steps():
    chip8 = make_chip8(0x6005, 0xF015, 0x1204)
    run_steps(chip8, 2)
    run_steps(chip8, 100)
    assert chip8.delay_timer == 5
    chip8.tick_timers()
    assert chip8.delay_timer == 4


def test_run_ticks_timers_on_interval():
    chip8 = make_chip8(0x600A, 0xF015, 0x1204)
    chip8.run(max_cycles=34, timer_interval=16)
    assert chip8.delay_timer == 8


# Keypad -----------------------------------------------------------------

def test_skip_if_key_pressed():
    chip8 = make_chip8(0x6005, 0xE09E, 0x0000, 0xE0A1)
    chip8.set_key_state(5, True)
    run_steps(chip8, 2)
    assert chip8.registers.pc == 0x206
    chip8.step()
    assert chip8.registers.pc == 0x208


def test_skip_if_key_not_pressed():
    chip8 = make_chip8(0x6005, 0xE0A1)
    run_steps(chip8, 2)
    assert chip8.registers.pc == 0x206


def test_key_wait_suspends_until_press():
    chip8 = make_chip8(0x6001, 0xF30A, 0x6402)
    chip8.step()

    assert chip8.step() is StepResult.WAITING
    assert chip8.registers.pc == 0x202
    assert chip8.waiting_for_key
    for _ in range(5):
        assert chip8.step() is StepResult.WAITING
        assert chip8.registers.pc == 0x202

    chip8.set_key_state(0xB, True)
    assert chip8.step() is StepResult.EXECUTED
    assert chip8.registers[3] == 0xB
    assert chip8.registers.pc == 0x204
    assert not chip8.waiting_for_key

    chip8.step()
    assert chip8.registers[4] == 2


def test_key_wait_ignores_key_already_held():
    chip8 = make_chip8(0xF00A)
    chip8.set_key_state(7, True)
    assert chip8.step() is StepResult.WAITING
    assert chip8.step() is StepResult.WAITING

    chip8.set_key_state(7, False)
    assert chip8.step() is StepResult.WAITING
    chip8.set_key_state(7, True)
    assert chip8.step() is StepResult.EXECUTED
    assert chip8.registers[0] == 7


def test_key_wait_sees_press_released_between_steps():
    chip8 = make_chip8(0xF20A)
    chip8.step()
    chip8.set_key_state(0xE, True)
    chip8.set_key_state(0xE, False)
    assert chip8.step() is StepResult.EXECUTED
    assert chip8.registers[2] == 0xE


# Instrumentation and reset ----------------------------------------------

def test_stats_and_reset():
    chip8 = make_chip8(0x2204, 0x0000, 0x00E0, 0x00EE)
    run_steps(chip8, 3)
    stats = chip8.get_stats()
    assert stats['instructions_executed'] == 3
    assert stats['subroutine_calls'] == 1
    assert stats['display_clears'] == 1
    assert stats['returns'] == 1
    assert 'instructions_executed' in chip8.format_stats()

    chip8.reset()
    assert chip8.get_stats()['instructions_executed'] == 0
    assert chip8.registers.pc == 0x200
    assert chip8.memory.read(0x200) == 0
    assert chip8.memory.read(FONT_START) == 0xF0


def test_debug_file_trace(tmp_path):
    log_path = tmp_path / "trace.log"
    chip8 = Chip8Interpreter(debug_file=str(log_path), trace_limit=2)
    chip8.load_program(bytes([0x60, 0x01, 0x61, 0x02, 0x62, 0x03]))
    for _ in range(3):
        chip8.step()
    chip8.close()

    trace = log_path.read_text(encoding='utf-8')
    assert "Executing: 0x6001 at PC=0x200" in trace
    assert "Executing: 0x6102 at PC=0x202" in trace
    assert "0x6203" not in trace


def test_presses_without_key_wait_are_not_kept():
    chip8 = make_chip8(0x1200)
    for _ in range(10000):
        chip8.set_key_state(5, True)
        chip8.set_key_state(5, False)
        chip8.step()
    assert chip8.keypad.latched_presses == 0


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def test_debug_file_trace_stays_out_of_root_handlers(tmp_path):
    handler = RecordingHandler()
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        chip8 = Chip8Interpreter(debug_file=str(tmp_path / "trace.log"), trace_limit=1)
        chip8.load_program(bytes([0x60, 0x01]))
        chip8.step()
        chip8.close()
    finally:
        root.removeHandler(handler)

    assert not any("Executing" in message for message in handler.messages)
    assert "Executing: 0x6001" in (tmp_path / "trace.log").read_text(encoding='utf-8')


def test_debug_loggers_are_per_instance(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    first = Chip8Interpreter(debug_file=str(tmp_path / "a" / "trace.log"))
    second = Chip8Interpreter(debug_file=str(tmp_path / "b" / "trace.log"))
    assert first.log is not second.log

    first.close()
    second.close()
    assert first.log is logging.getLogger('chip8vm.interpreter')
