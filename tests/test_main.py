import pytest

from chip8.cpu import DEFAULT_FREQUENCY
from chip8.main import KEY_MAPPINGS, parse_arguments, screen_cpu_connector


def test_key_mappings_cover_keypad():
    assert sorted(KEY_MAPPINGS.values()) == list(range(0x10))


def test_parse_arguments_defaults():
    args = parse_arguments(['game.ch8'])
    assert args.rom == 'game.ch8'
    assert args.frequency == DEFAULT_FREQUENCY
    assert (args.rows, args.cols) == (32, 64)
    assert not args.verbose


def test_parse_arguments_rejects_zero_frequency():
    with pytest.raises(SystemExit):
        parse_arguments(['game.ch8', '-f', '0'])


def test_missing_rom_returns_error(tmp_path):
    args = parse_arguments([str(tmp_path / 'missing.ch8')])
    assert screen_cpu_connector(args) == 1


def test_oversized_rom_returns_error(tmp_path):
    rom = tmp_path / 'huge.ch8'
    rom.write_bytes(bytes(4096))
    args = parse_arguments([str(rom)])
    assert screen_cpu_connector(args) == 1
