import logging
import threading

import pytest

import chip8.cpu
from chip8.addresses import FONT_START, PROGRAM_COUNTER_START
from chip8.exception import (
    KeyWaitCancelledException, MemoryAccessException, StackOverflowException,
    StackUnderflowException,
)
from chip8.font import FONT


def run(cpu, *operands):
    for operand in operands:
        cpu.cpu_execute_instruction(operand)


# Fetch and program loading


@pytest.mark.parametrize("instruction, expected", [
    (b'\x00\x00', 0x0000),
    (b'\xAF\xFA', 0xAFFA),
    (b'\x12\x34', 0x1234),
])
def test_fetch_is_big_endian_and_advances_pc(cpu, instruction, expected):
    cpu.cpu_load_rom(instruction)
    assert cpu.cpu_fetch() == expected
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START + 2


def test_load_rom_end_to_end(cpu):
    cpu.cpu_load_rom(bytes([0x6A, 0x02]))
    assert cpu.cpu_execute_instruction() == 0x6A02
    assert cpu.cpu_registers['v'][0xA] == 2
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START + 2


def test_load_rom_too_large_raises(cpu):
    with pytest.raises(MemoryAccessException):
        cpu.cpu_load_rom(bytes(len(cpu.cpu_memory) - PROGRAM_COUNTER_START + 1))


def test_font_loaded_at_font_start(cpu):
    assert cpu.cpu_memory[FONT_START:FONT_START + 5] == bytes(FONT[0])
    assert cpu.cpu_memory[FONT_START + 75:FONT_START + 80] == bytes(FONT[0xF])


def test_fetch_past_end_of_memory_raises(cpu):
    cpu.cpu_registers['pc'] = len(cpu.cpu_memory) - 1
    with pytest.raises(MemoryAccessException):
        cpu.cpu_fetch()


# Flow control


def test_clear_screen(cpu):
    cpu.cpu_display.set_pixel(1, 1)
    run(cpu, 0x00E0)
    assert not any(cpu.cpu_display.grid)


def test_jump(cpu):
    run(cpu, 0x1ABC)
    assert cpu.cpu_registers['pc'] == 0xABC


def test_call_and_return(cpu):
    cpu.cpu_registers['pc'] = 0x202
    run(cpu, 0x2400)
    assert cpu.cpu_registers['pc'] == 0x400
    assert len(cpu.cpu_stack) == 1
    run(cpu, 0x00EE)
    assert cpu.cpu_registers['pc'] == 0x202
    assert cpu.cpu_stack.is_empty()


def test_return_with_empty_stack_raises(cpu):
    with pytest.raises(StackUnderflowException):
        run(cpu, 0x00EE)


def test_call_overflow_raises(cpu):
    with pytest.raises(StackOverflowException):
        run(cpu, *([0x2300] * 17))


def test_jump_plus_v0(cpu):
    cpu.cpu_registers['v'][0] = 0x10
    cpu.cpu_registers['v'][1] = 0x80
    run(cpu, 0xB300)
    assert cpu.cpu_registers['pc'] == 0x310


@pytest.mark.parametrize("operand, vx, vy, skipped", [
    (0x3122, 0x22, 0, True),
    (0x3122, 0x21, 0, False),
    (0x4122, 0x21, 0, True),
    (0x4122, 0x22, 0, False),
    (0x5120, 0x07, 0x07, True),
    (0x5120, 0x07, 0x08, False),
    (0x9120, 0x07, 0x08, True),
    (0x9120, 0x07, 0x07, False),
])
def test_skips(cpu, operand, vx, vy, skipped):
    cpu.cpu_registers['v'][1] = vx
    cpu.cpu_registers['v'][2] = vy
    run(cpu, operand)
    expected = PROGRAM_COUNTER_START + (2 if skipped else 0)
    assert cpu.cpu_registers['pc'] == expected


# Registers and arithmetic


def test_load_and_add_immediate_wraps(cpu):
    cpu.cpu_registers['v'][0xF] = 0x7
    run(cpu, 0x63F0, 0x7320)
    assert cpu.cpu_registers['v'][3] == 0x10
    assert cpu.cpu_registers['v'][0xF] == 0x7


@pytest.mark.parametrize("operand, expected", [
    (0x8120, 0x0F),
    (0x8121, 0xFF),
    (0x8122, 0x00),
    (0x8123, 0xFF),
])
def test_logical_operations(cpu, operand, expected):
    cpu.cpu_registers['v'][1] = 0xF0
    cpu.cpu_registers['v'][2] = 0x0F
    run(cpu, operand)
    assert cpu.cpu_registers['v'][1] == expected


def test_add_with_carry(cpu):
    cpu.cpu_registers['v'][1] = 0xFF
    cpu.cpu_registers['v'][2] = 0x01
    run(cpu, 0x8124)
    assert cpu.cpu_registers['v'][1] == 0x00
    assert cpu.cpu_registers['v'][0xF] == 1


def test_add_without_carry_clears_flag(cpu):
    cpu.cpu_registers['v'][0xF] = 1
    cpu.cpu_registers['v'][1] = 0x10
    cpu.cpu_registers['v'][2] = 0x01
    run(cpu, 0x8124)
    assert cpu.cpu_registers['v'][1] == 0x11
    assert cpu.cpu_registers['v'][0xF] == 0


def test_subtract_with_borrow(cpu):
    cpu.cpu_registers['v'][1] = 0x01
    cpu.cpu_registers['v'][2] = 0x02
    run(cpu, 0x8125)
    assert cpu.cpu_registers['v'][1] == 0xFF
    assert cpu.cpu_registers['v'][0xF] == 0


def test_subtract_equal_values_sets_no_borrow(cpu):
    cpu.cpu_registers['v'][1] = 0x05
    cpu.cpu_registers['v'][2] = 0x05
    run(cpu, 0x8125)
    assert cpu.cpu_registers['v'][1] == 0x00
    assert cpu.cpu_registers['v'][0xF] == 1


def test_subtract_reversed(cpu):
    cpu.cpu_registers['v'][1] = 0x02
    cpu.cpu_registers['v'][2] = 0x05
    run(cpu, 0x8127)
    assert cpu.cpu_registers['v'][1] == 0x03
    assert cpu.cpu_registers['v'][0xF] == 1

    cpu.cpu_registers['v'][1] = 0x06
    run(cpu, 0x8127)
    assert cpu.cpu_registers['v'][1] == 0xFF
    assert cpu.cpu_registers['v'][0xF] == 0


def test_shift_right_uses_vy(cpu):
    cpu.cpu_registers['v'][2] = 0x05
    run(cpu, 0x8126)
    assert cpu.cpu_registers['v'][1] == 0x02
    assert cpu.cpu_registers['v'][2] == 0x05
    assert cpu.cpu_registers['v'][0xF] == 1


def test_shift_left_uses_vy(cpu):
    cpu.cpu_registers['v'][2] = 0x81
    run(cpu, 0x812E)
    assert cpu.cpu_registers['v'][1] == 0x02
    assert cpu.cpu_registers['v'][0xF] == 1

    cpu.cpu_registers['v'][2] = 0x01
    run(cpu, 0x812E)
    assert cpu.cpu_registers['v'][1] == 0x02
    assert cpu.cpu_registers['v'][0xF] == 0


def test_flag_wins_when_target_is_vf(cpu):
    cpu.cpu_registers['v'][0xF] = 0xFF
    cpu.cpu_registers['v'][1] = 0x01
    run(cpu, 0x8F14)
    assert cpu.cpu_registers['v'][0xF] == 1


def test_random_is_masked(cpu, monkeypatch):
    monkeypatch.setattr(chip8.cpu, 'randint', lambda low, high: 0xAB)
    run(cpu, 0xC30F)
    assert cpu.cpu_registers['v'][3] == 0x0B


# Index and memory


def test_load_index(cpu):
    run(cpu, 0xA123)
    assert cpu.cpu_registers['index'] == 0x123


def test_add_to_index(cpu):
    cpu.cpu_registers['v'][0xF] = 0
    cpu.cpu_registers['v'][2] = 0x10
    run(cpu, 0xA100, 0xF21E)
    assert cpu.cpu_registers['index'] == 0x110
    assert cpu.cpu_registers['v'][0xF] == 0


def test_add_to_index_overflow_sets_flag(cpu):
    cpu.cpu_registers['v'][2] = 0x02
    run(cpu, 0xAFFF, 0xF21E)
    assert cpu.cpu_registers['index'] == 0x1001
    assert cpu.cpu_registers['v'][0xF] == 1


def test_add_to_index_leaves_flag_unchanged(cpu):
    cpu.cpu_registers['v'][0xF] = 1
    run(cpu, 0xA100, 0xF01E)
    assert cpu.cpu_registers['v'][0xF] == 1


def test_font_character_address(cpu):
    cpu.cpu_registers['v'][4] = 0x1A
    run(cpu, 0xF429)
    assert cpu.cpu_registers['index'] == FONT_START + 0xA * 5


def test_bcd(cpu):
    cpu.cpu_registers['v'][5] = 123
    run(cpu, 0xA300, 0xF533)
    assert list(cpu.cpu_memory[0x300:0x303]) == [1, 2, 3]

    cpu.cpu_registers['v'][5] = 7
    run(cpu, 0xF533)
    assert list(cpu.cpu_memory[0x300:0x303]) == [0, 0, 7]


def test_store_and_read_registers(cpu):
    for register in range(4):
        cpu.cpu_registers['v'][register] = register + 1
    run(cpu, 0xA400, 0xF255)
    assert list(cpu.cpu_memory[0x400:0x404]) == [1, 2, 3, 0]
    assert cpu.cpu_registers['index'] == 0x400

    cpu.cpu_registers['v'] = bytearray(16)
    run(cpu, 0xF165)
    assert list(cpu.cpu_registers['v'][:3]) == [1, 2, 0]


def test_block_store_out_of_bounds_raises(cpu):
    cpu.cpu_registers['index'] = len(cpu.cpu_memory) - 2
    before = bytes(cpu.cpu_memory)
    with pytest.raises(MemoryAccessException):
        run(cpu, 0xF355)
    assert bytes(cpu.cpu_memory) == before


def test_bcd_out_of_bounds_raises(cpu):
    cpu.cpu_registers['index'] = len(cpu.cpu_memory) - 1
    with pytest.raises(MemoryAccessException):
        run(cpu, 0xF033)


# Drawing


def test_draw_font_glyph(cpu):
    run(cpu, 0xA050, 0xD015)
    display = cpu.cpu_display
    # Glyph "0" top row is 0xF0
    assert [display.get_pixel(x, 0) for x in range(8)] == [1, 1, 1, 1, 0, 0, 0, 0]
    assert [display.get_pixel(x, 1) for x in range(8)] == [1, 0, 0, 1, 0, 0, 0, 0]
    assert cpu.cpu_registers['v'][0xF] == 0


def test_draw_twice_erases_and_collides(cpu):
    cpu.cpu_registers['v'][1] = 10
    cpu.cpu_registers['v'][2] = 5
    run(cpu, 0xA050, 0xD125)
    assert any(cpu.cpu_display.grid)
    assert cpu.cpu_registers['v'][0xF] == 0

    run(cpu, 0xD125)
    assert not any(cpu.cpu_display.grid)
    assert cpu.cpu_registers['v'][0xF] == 1


def test_draw_wraps_columns_and_rows(cpu):
    cpu.cpu_memory[0x300] = 0xFF
    cpu.cpu_memory[0x301] = 0x80
    cpu.cpu_registers['v'][1] = 60
    cpu.cpu_registers['v'][2] = 31
    run(cpu, 0xA300, 0xD122)
    display = cpu.cpu_display
    for x in (60, 61, 62, 63, 0, 1, 2, 3):
        assert display.get_pixel(x, 31) == 1
    assert display.get_pixel(4, 31) == 0
    assert display.get_pixel(60, 0) == 1


def test_draw_origin_is_taken_modulo_screen(cpu):
    cpu.cpu_memory[0x300] = 0x80
    cpu.cpu_registers['v'][1] = 64 + 5
    cpu.cpu_registers['v'][2] = 32 + 3
    run(cpu, 0xA300, 0xD121)
    assert cpu.cpu_display.get_pixel(5, 3) == 1


def test_draw_past_memory_raises(cpu):
    cpu.cpu_registers['index'] = len(cpu.cpu_memory) - 2
    with pytest.raises(MemoryAccessException):
        run(cpu, 0xD005)


# Timers and keys


def test_timer_instructions(cpu):
    cpu.cpu_registers['v'][1] = 0x30
    cpu.cpu_registers['v'][2] = 0x40
    run(cpu, 0xF115, 0xF218)
    assert cpu.cpu_timers.delay == 0x30
    assert cpu.cpu_timers.sound == 0x40

    cpu.cpu_decrement_timers()
    run(cpu, 0xF307)
    assert cpu.cpu_registers['v'][3] == 0x2F
    assert cpu.cpu_timers.sound == 0x3F


def test_skip_if_key_pressed(cpu, clock):
    cpu.cpu_registers['v'][1] = 0x7
    run(cpu, 0xE19E)
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START

    cpu.cpu_keys.add(0x7)
    run(cpu, 0xE19E)
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START + 2


def test_skip_if_key_not_pressed(cpu, clock):
    cpu.cpu_registers['v'][1] = 0x7
    cpu.cpu_keys.add(0x7)
    run(cpu, 0xE1A1)
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START

    clock.advance(1)
    run(cpu, 0xE1A1)
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START + 2


def _wait_until_waiting(cpu):
    for _ in range(500):
        if cpu.cpu_keys.channel.is_waiting():
            return
        threading.Event().wait(0.01)
    raise AssertionError("CPU never blocked on a key")


def test_wait_for_keypress_blocks_until_key(cpu):
    cpu.cpu_load_rom(bytes([0xF3, 0x0A]))
    worker = threading.Thread(target=cpu.cpu_execute_instruction)
    worker.start()
    _wait_until_waiting(cpu)
    assert cpu.cpu_registers['v'][3] == 0

    cpu.cpu_keys.press(0xB)
    worker.join(timeout=5)
    assert cpu.cpu_registers['v'][3] == 0xB
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START + 2


def test_cancelled_key_wait_leaves_instruction_pending(cpu):
    cpu.cpu_stop()
    cpu.cpu_load_rom(bytes([0xF3, 0x0A]))
    with pytest.raises(KeyWaitCancelledException):
        cpu.cpu_execute_instruction()
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START


# Decode failures and the run loop


@pytest.mark.parametrize("operand", [0x0123, 0x5121, 0x8128, 0x9121, 0xE1FF, 0xF1FF])
def test_unknown_opcode_is_skipped(cpu, caplog, operand):
    before = bytes(cpu.cpu_registers['v'])
    with caplog.at_level(logging.WARNING, logger='chip8.cpu'):
        assert cpu.cpu_execute_instruction(operand) == operand
    assert bytes(cpu.cpu_registers['v']) == before
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START
    assert 'Unknown op-code' in caplog.text


def test_unknown_opcode_in_rom_advances_pc(cpu):
    cpu.cpu_load_rom(bytes([0x51, 0x2F, 0x6A, 0x02]))
    cpu.cpu_execute_instruction()
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START + 2
    cpu.cpu_execute_instruction()
    assert cpu.cpu_registers['v'][0xA] == 2


def test_run_halts_on_fault(cpu):
    cpu.cpu_frequency = 10000
    # 6A02 then return with an empty stack
    cpu.cpu_load_rom(bytes([0x6A, 0x02, 0x00, 0xEE]))
    stop_event = threading.Event()
    cpu.cpu_run(stop_event)
    assert stop_event.is_set()
    assert isinstance(cpu.cpu_error, StackUnderflowException)
    assert cpu.cpu_registers['v'][0xA] == 2


def test_run_stops_when_key_wait_cancelled(cpu):
    cpu.cpu_load_rom(bytes([0xF0, 0x0A]))
    stop_event = threading.Event()
    worker = threading.Thread(target=cpu.cpu_run, args=(stop_event,))
    worker.start()
    _wait_until_waiting(cpu)

    stop_event.set()
    cpu.cpu_stop()
    worker.join(timeout=5)
    assert not worker.is_alive()
    assert cpu.cpu_error is None
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START


def test_reset(cpu):
    run(cpu, 0x6A02, 0xA123, 0x2300)
    cpu.cpu_display.set_pixel(0, 0)
    cpu.cpu_reset()
    assert not any(cpu.cpu_registers['v'])
    assert cpu.cpu_registers['pc'] == PROGRAM_COUNTER_START
    assert cpu.cpu_registers['index'] == 0
    assert cpu.cpu_stack.is_empty()
    assert not any(cpu.cpu_display.grid)


def test_str_dumps_registers(cpu):
    run(cpu, 0x6A02)
    dump = str(cpu)
    assert 'VA:  2' in dump
    assert 'I:    0' in dump
