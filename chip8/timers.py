import logging
import threading

logger = logging.getLogger(__name__)

# Both timers count down at 60 Hz regardless of the instruction rate
TIMER_FREQUENCY = 60


class Timers(object):
    """
    The delay and sound timers. Both are single bytes written by the CPU and
    decremented by the timer thread, so every access goes through a lock.
    """
    def __init__(self):
        self.lock = threading.Lock()
        self._delay = 0
        self._sound = 0

    @property
    def delay(self):
        with self.lock:
            return self._delay

    @delay.setter
    def delay(self, value):
        with self.lock:
            self._delay = value & 0xFF

    @property
    def sound(self):
        with self.lock:
            return self._sound

    @sound.setter
    def sound(self, value):
        with self.lock:
            self._sound = value & 0xFF

    def decrement(self):
        """
        Decrement both the sound and delay timer.
        """
        with self.lock:
            if self._delay != 0:
                self._delay -= 1

            if self._sound != 0:
                self._sound -= 1

    def reset(self):
        with self.lock:
            self._delay = 0
            self._sound = 0


class TimerThread(threading.Thread):
    """
    Ticks a Timers instance at a fixed real-time rate until stopped.
    """
    def __init__(self, timers, frequency=TIMER_FREQUENCY, stop_event=None):
        threading.Thread.__init__(self, name='chip8-timers', daemon=True)
        self.timers = timers
        self.interval = 1.0 / frequency
        self.stop_event = stop_event or threading.Event()

    def run(self):
        logger.debug("Timer thread started at %.1f Hz", 1.0 / self.interval)
        while not self.stop_event.wait(self.interval):
            self.timers.decrement()
        logger.debug("Timer thread stopped")

    def stop(self):
        self.stop_event.set()
