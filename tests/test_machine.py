import random

import pytest

from chip8vm import (
    CapacityExceeded, DecodeFailure, Machine, MachineConfig, StackOverflow,
    StackUnderflow, TimerMode,
)
from chip8vm.constants import FONT_4X5, MEMORY_SIZE, PROGRAM_START

from conftest import program, run


# ==================== RESET & LOADING ====================

def test_reset_installs_font_at_zero(machine):
    assert machine.memory[:len(FONT_4X5)] == FONT_4X5
    assert machine.pc == 0x200
    assert machine.sp == 0
    assert machine.v == [0] * 16
    assert not any(machine.framebuffer)


def test_reset_clears_previous_state(machine):
    run(machine, 0x6A42, 0xA123)
    machine.set_key(3, True)
    machine.reset()
    assert machine.v[0xA] == 0
    assert machine.i == 0
    assert machine.pc == PROGRAM_START
    assert machine.keys == [False] * 16


def test_load_image_at_full_capacity(machine):
    machine.load_image(bytes([0xAB]) * (MEMORY_SIZE - PROGRAM_START))
    assert machine.memory[PROGRAM_START] == 0xAB
    assert machine.memory[MEMORY_SIZE - 1] == 0xAB


def test_load_image_one_byte_too_large(machine):
    before = bytes(machine.memory)
    with pytest.raises(CapacityExceeded) as info:
        machine.load_image(bytes(MEMORY_SIZE - PROGRAM_START + 1))
    assert info.value.capacity == MEMORY_SIZE - PROGRAM_START
    assert bytes(machine.memory) == before


def test_load_image_accepts_any_content(machine):
    machine.load_image(b"\xff\xff\x00\x00")
    assert machine.memory[0x200:0x204] == b"\xff\xff\x00\x00"


def test_load_hex_matches_load_image(machine):
    machine.load_hex("6005 7003\n1204")
    assert machine.memory[0x200:0x206] == program(0x6005, 0x7003, 0x1204)


def test_load_hex_rejects_garbage(machine):
    with pytest.raises(ValueError):
        machine.load_hex("60G5")


def test_load_rom_resets_and_names(machine):
    machine.v[0] = 9
    machine.load_rom(program(0x00E0), "pong.ch8")
    assert machine.v[0] == 0
    assert machine.rom_name == "pong.ch8"
    assert machine.rom_size == 2


def test_set_key_ignores_out_of_range(machine):
    machine.set_key(0xF, True)
    machine.set_key(16, True)
    machine.set_key(-1, True)
    assert machine.keys == [False] * 15 + [True]


# ==================== SCENARIOS ====================

def test_load_then_add_immediate():
    machine = Machine()
    machine.load_image(bytes([0x60, 0x05, 0x70, 0x03]))
    machine.step()
    machine.step()
    assert machine.v[0] == 8
    assert machine.pc == 0x204


def test_add_immediate_wraps_without_flag(machine):
    machine.v[0xF] = 7
    run(machine, 0x61FF, 0x7102)
    assert machine.v[1] == 1
    assert machine.v[0xF] == 7


# ==================== ALU ====================

BYTE_PAIRS = [(0, 0), (1, 0), (0, 1), (0x7F, 0x80), (0x80, 0x80), (0xFF, 0x01), (0xFF, 0xFF), (200, 100)]


def _alu(machine, word, a, b):
    machine.v[1] = a
    machine.v[2] = b
    run(machine, word)
    return machine.v[1], machine.v[0xF]


@pytest.mark.parametrize("a,b", BYTE_PAIRS)
def test_add_sets_carry(machine, a, b):
    result, flag = _alu(machine, 0x8124, a, b)
    assert result == (a + b) % 256
    assert flag == (1 if a + b > 255 else 0)


@pytest.mark.parametrize("a,b", BYTE_PAIRS)
def test_sub_sets_not_borrow(machine, a, b):
    result, flag = _alu(machine, 0x8125, a, b)
    assert result == (a - b) % 256
    assert flag == (1 if a >= b else 0)


@pytest.mark.parametrize("a,b", BYTE_PAIRS)
def test_subn_sets_not_borrow(machine, a, b):
    result, flag = _alu(machine, 0x8127, a, b)
    assert result == (b - a) % 256
    assert flag == (1 if b >= a else 0)


@pytest.mark.parametrize("a", [0x00, 0x01, 0x80, 0xFE, 0xFF])
def test_shr(machine, a):
    result, flag = _alu(machine, 0x8126, a, 0xAA)
    assert result == a >> 1
    assert flag == a & 1


@pytest.mark.parametrize("a", [0x00, 0x01, 0x80, 0x7F, 0xFF])
def test_shl(machine, a):
    result, flag = _alu(machine, 0x812E, a, 0xAA)
    assert result == (a << 1) & 0xFF
    assert flag == a >> 7


@pytest.mark.parametrize("word,expected", [
    (0x8120, 0x0F),
    (0x8121, 0x3F),
    (0x8122, 0x0C),
    (0x8123, 0x33),
])
def test_bitwise_ops_leave_flag_alone(machine, word, expected):
    machine.v[0xF] = 5
    result, flag = _alu(machine, word, 0x3C, 0x0F)
    assert result == expected
    assert flag == 5


def test_flag_register_as_destination_holds_flag(machine):
    machine.v[0xF] = 0xFF
    machine.v[1] = 0x02
    run(machine, 0x8F14)
    assert machine.v[0xF] == 1


# ==================== CONTROL FLOW ====================

@pytest.mark.parametrize("words,setup,pc", [
    ((0x3012,), {0: 0x12}, 0x204),
    ((0x3012,), {0: 0x13}, 0x202),
    ((0x4012,), {0: 0x13}, 0x204),
    ((0x4012,), {0: 0x12}, 0x202),
    ((0x5010,), {0: 3, 1: 3}, 0x204),
    ((0x5010,), {0: 3, 1: 4}, 0x202),
    ((0x9010,), {0: 3, 1: 4}, 0x204),
    ((0x9010,), {0: 3, 1: 3}, 0x202),
])
def test_skips(machine, words, setup, pc):
    for reg, value in setup.items():
        machine.v[reg] = value
    run(machine, *words)
    assert machine.pc == pc


def test_jump(machine):
    run(machine, 0x1ABC)
    assert machine.pc == 0xABC


def test_jump_indexed_adds_v0(machine):
    machine.v[0] = 0x10
    run(machine, 0xB300)
    assert machine.pc == 0x310


def test_sys_is_ignored(machine):
    run(machine, 0x0123)
    assert machine.pc == 0x202


def test_call_pushes_current_pc_and_ret_resumes_after_it(machine):
    machine.load_image(program(0x2300))
    machine.memory[0x300:0x302] = program(0x00EE)
    machine.step()
    assert machine.pc == 0x300
    assert machine.sp == 1
    assert machine.stack[0] == 0x200
    machine.step()
    assert machine.pc == 0x202
    assert machine.sp == 0


def test_sixteen_nested_calls_unwind_exactly(machine):
    # main: CALL 0x300; JP self
    machine.load_image(program(0x2300, 0x1202))
    # 0x300: V0 += 1; skip call when V0 == 16; CALL 0x300; RET
    machine.memory[0x300:0x308] = program(0x7001, 0x3010, 0x2300, 0x00EE)

    deepest = 0
    for _ in range(500):
        machine.step()
        deepest = max(deepest, machine.sp)
        if machine.pc == 0x202:
            break
    assert deepest == 16
    assert machine.sp == 0
    assert machine.pc == 0x202
    assert machine.v[0] == 16


def test_call_with_full_stack_overflows(machine):
    machine.load_image(program(0x2300))
    machine.sp = 16
    with pytest.raises(StackOverflow) as info:
        machine.step()
    assert info.value.pc == 0x200
    assert machine.pc == 0x200
    assert machine.sp == 16


def test_ret_with_empty_stack_underflows(machine):
    machine.load_image(program(0x00EE))
    with pytest.raises(StackUnderflow):
        machine.step()
    assert machine.pc == 0x200
    assert machine.sp == 0


# ==================== DECODE FAILURE ====================

def test_unknown_opcode_reports_word_and_pc(machine):
    machine.load_image(program(0x6001, 0xFFFF))
    machine.step()
    machine.delay_timer = 5
    with pytest.raises(DecodeFailure) as info:
        machine.step()
    assert info.value.word == 0xFFFF
    assert info.value.pc == 0x202
    assert "0xFFFF" in str(info.value)
    # No advance, no timer tick
    assert machine.pc == 0x202
    assert machine.delay_timer == 5


# ==================== INDEX & MEMORY ====================

def test_set_and_add_index(machine):
    machine.v[3] = 0x10
    run(machine, 0xA123, 0xF31E)
    assert machine.i == 0x133


def test_add_index_wraps_at_16_bits(machine):
    machine.i = 0xFFFF
    machine.v[0] = 2
    run(machine, 0xF01E)
    assert machine.i == 0x0001


@pytest.mark.parametrize("value", range(16))
def test_glyph_address(machine, value):
    machine.v[4] = value
    run(machine, 0xF429)
    assert machine.i == 5 * value


@pytest.mark.parametrize("value,digits", [(255, b"\x02\x05\x05"), (7, b"\x00\x00\x07"), (100, b"\x01\x00\x00")])
def test_bcd_store(machine, value, digits):
    machine.v[2] = value
    machine.i = 0x400
    run(machine, 0xF233)
    assert machine.memory[0x400:0x403] == digits
    assert machine.i == 0x400


def test_register_block_store(machine):
    machine.v[:4] = [1, 2, 3, 4]
    machine.i = 0x400
    run(machine, 0xF255)
    assert machine.memory[0x400:0x404] == b"\x01\x02\x03\x00"
    assert machine.i == 0x403


def test_register_block_load(machine):
    machine.memory[0x400:0x404] = b"\x09\x08\x07\x06"
    machine.i = 0x400
    run(machine, 0xF365)
    assert machine.v[:5] == [9, 8, 7, 6, 0]
    assert machine.i == 0x404


def test_memory_access_wraps_at_4k(machine):
    machine.v[0] = 123
    machine.i = 0xFFF
    run(machine, 0xF033)
    assert machine.memory[0xFFF] == 1
    assert machine.memory[0x000] == 2
    assert machine.memory[0x001] == 3


def test_random_is_masked(machine):
    run(machine, 0xC50F)
    assert machine.v[5] <= 0x0F


def test_random_is_reproducible_with_seeded_rng():
    a = Machine(rng=random.Random(7))
    b = Machine(rng=random.Random(7))
    run(a, 0xC0FF, 0xC1FF)
    run(b, 0xC0FF, 0xC1FF)
    assert a.v[:2] == b.v[:2]


# ==================== INPUT ====================

def test_skip_if_key_pressed(machine):
    machine.v[0] = 0xA
    machine.set_key(0xA, True)
    run(machine, 0xE09E)
    assert machine.pc == 0x204


def test_skip_if_key_not_pressed(machine):
    machine.v[0] = 0xA
    run(machine, 0xE0A1)
    assert machine.pc == 0x204


def test_key_wait_busy_loops_until_key(machine):
    machine.load_image(program(0xF30A))
    for _ in range(5):
        machine.step()
        assert machine.pc == 0x200
        assert machine.waiting_for_key
    machine.set_key(7, True)
    machine.step()
    assert machine.pc == 0x202
    assert machine.v[3] == 7
    assert not machine.waiting_for_key


def test_key_wait_picks_lowest_key(machine):
    machine.set_key(9, True)
    machine.set_key(4, True)
    run(machine, 0xF00A)
    assert machine.v[0] == 4


# ==================== TIMERS ====================

def test_timer_registers(machine):
    machine.v[1] = 30
    run(machine, 0xF115, 0xF207)
    # Set to 30, ticked to 29 after the write, read 29, ticked to 28
    assert machine.v[2] == 29
    assert machine.delay_timer == 28


def test_tone_raised_for_one_cycle_only(machine):
    machine.load_image(program(0x6003, 0xF018, 0x1204))
    tones = []
    for _ in range(6):
        machine.step()
        tones.append(machine.tone_requested)
    # ST=3 set on step 2 and ticked to 2; reaches 0 on step 4
    assert tones == [False, False, False, True, False, False]
    assert machine.sound_timer == 0


def test_decoupled_timers_only_tick_on_request():
    machine = Machine(MachineConfig(timer_mode=TimerMode.DECOUPLED))
    machine.sound_timer = 1
    machine.delay_timer = 3
    run(machine, 0x6000, 0x6100)
    assert machine.delay_timer == 3
    assert machine.sound_timer == 1
    assert machine.tick_timers() is True
    assert machine.delay_timer == 2
    assert machine.tick_timers() is False


# ==================== SNAPSHOTS ====================

def test_state_round_trip(machine):
    run(machine, 0x6A42, 0xA300, 0x2400)
    state = machine.get_state()
    other = Machine()
    other.load_state(state)
    assert other.v == machine.v
    assert other.i == 0x300
    assert other.pc == 0x400
    assert other.stack[0] == 0x204
    assert other.memory == machine.memory


def test_dump_state_lists_registers(machine):
    machine.v[0xA] = 0x42
    text = machine.dump_state()
    assert "PC: $0200" in text
    assert "VA=$42" in text
