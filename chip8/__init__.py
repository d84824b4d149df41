from chip8.cpu import CPU
from chip8.display import Display
from chip8.keys import Keys
from chip8.stack import Stack
from chip8.timers import Timers, TimerThread

__version__ = '0.1.0'
