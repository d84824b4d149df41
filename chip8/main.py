import argparse
import logging
import sys
import threading

import pygame

from chip8.cpu import CPU, DEFAULT_FREQUENCY
from chip8.display import DEFAULT_COLS, DEFAULT_ROWS
from chip8.exception import Chip8Exception
from chip8.screen import SCREEN_NAME, Screen
from chip8.timers import TimerThread

logger = logging.getLogger(__name__)

# How many frames per second to paint the display
DEFAULT_FPS = 60

# Sets which keys on the keyboard map to the Chip 8 keys. The left hand side
# of a QWERTY keyboard is laid out like the hexadecimal keypad:
#
#     1 2 3 4        1 2 3 C
#     Q W E R   ->   4 5 6 D
#     A S D F        7 8 9 E
#     Z X C V        A 0 B F
#
KEY_MAPPINGS = {
    pygame.K_1: 0x1,
    pygame.K_2: 0x2,
    pygame.K_3: 0x3,
    pygame.K_4: 0xC,
    pygame.K_q: 0x4,
    pygame.K_w: 0x5,
    pygame.K_e: 0x6,
    pygame.K_r: 0xD,
    pygame.K_a: 0x7,
    pygame.K_s: 0x8,
    pygame.K_d: 0x9,
    pygame.K_f: 0xE,
    pygame.K_z: 0xA,
    pygame.K_x: 0x0,
    pygame.K_c: 0xB,
    pygame.K_v: 0xF,
}


def deliver_held_keys(keys):
    """
    Re-deliver every mapped key that is still held down so it stays pressed
    past the debounce window.

    :param keys: the Keys instance of the running CPU
    """
    keys_pressed = pygame.key.get_pressed()
    held = [code for pygame_key, code in KEY_MAPPINGS.items() if keys_pressed[pygame_key]]
    if held:
        keys.add(*held)


def screen_cpu_connector(args):
    """
    Runs the main emulator loop with the specified arguments.

    :param args: the parsed command-line arguments
    :return: the process exit status
    """
    try:
        with open(args.rom, 'rb') as rom_file:
            rom = rom_file.read()
    except OSError as error:
        logger.error("Unable to read ROM %s: %s", args.rom, error)
        return 1
    logger.info("Loaded ROM %s (%d bytes)", args.rom, len(rom))

    project_cpu = CPU(rows=args.rows, cols=args.cols, frequency=args.frequency)
    project_cpu.cpu_load_font()
    try:
        project_cpu.cpu_load_rom(rom)
    except Chip8Exception as error:
        logger.error("Unable to load ROM %s: %s", args.rom, error)
        return 1

    pygame.init()
    project_screen = Screen(ratio=args.scale, screen_height=args.rows, screen_width=args.cols)
    project_screen.init_display()

    stop_event = threading.Event()
    timer_thread = TimerThread(project_cpu.cpu_timers, stop_event=stop_event)
    cpu_thread = threading.Thread(
        target=project_cpu.cpu_run, args=(stop_event,), name='chip8-cpu', daemon=True)
    timer_thread.start()
    cpu_thread.start()

    clock = pygame.time.Clock()
    beeping = False
    try:
        while not stop_event.is_set():
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    stop_event.set()
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        stop_event.set()
                    elif event.key in KEY_MAPPINGS:
                        project_cpu.cpu_keys.press(KEY_MAPPINGS[event.key])

            deliver_held_keys(project_cpu.cpu_keys)

            # The sound timer only drives a marker in the window title
            sounding = project_cpu.cpu_timers.sound > 0
            if sounding != beeping:
                beeping = sounding
                project_screen.set_caption(SCREEN_NAME + (' *BEEP*' if beeping else ''))

            project_screen.paint(project_cpu.cpu_display)
            clock.tick(args.fps)
    finally:
        stop_event.set()
        project_cpu.cpu_stop()
        cpu_thread.join()
        timer_thread.join()
        project_screen.close()
        pygame.quit()

    if project_cpu.cpu_error is not None:
        return 1
    return 0


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="Starts a simple Chip 8 emulator"
                    )
    parser.add_argument(
        "rom", help="the ROM file to load on startup")
    parser.add_argument(
        "-s", help="the scale factor to apply to the display "
                   "(default is 10)", type=int, default=10, dest="scale")
    parser.add_argument(
        "-f", help="the number of instructions to execute per second "
                   "(default is {})".format(DEFAULT_FREQUENCY),
        type=int, default=DEFAULT_FREQUENCY, dest="frequency")
    parser.add_argument(
        "-r", help="the number of frames per second to paint "
                   "(default is {})".format(DEFAULT_FPS),
        type=int, default=DEFAULT_FPS, dest="fps")
    parser.add_argument(
        "--rows", help="the height of the display in pixels",
        type=int, default=DEFAULT_ROWS)
    parser.add_argument(
        "--cols", help="the width of the display in pixels",
        type=int, default=DEFAULT_COLS)
    parser.add_argument(
        "-v", help="log every executed instruction",
        action="store_true", dest="verbose")
    args = parser.parse_args(argv)
    if args.frequency <= 0 or args.fps <= 0 or args.scale <= 0:
        parser.error("scale, frequency and fps must be positive")
    if args.rows <= 0 or args.cols <= 0:
        parser.error("rows and cols must be positive")
    return args


def main(argv=None):
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s]:  %(message)s", stream=sys.stdout)
    sys.exit(screen_cpu_connector(args))


if __name__ == "__main__":
    main()
