import logging
import threading
import time

from chip8.exception import KeyWaitCancelledException

logger = logging.getLogger(__name__)

# How long (in seconds) a single key press is treated as held down
KEY_TTL = 0.05

# Number of keys on the hexadecimal keypad
NUM_KEYS = 0x10


class KeyChannel(object):
    """
    A single-slot rendezvous between the input source and the CPU while it
    executes Fx0A. A key offered while nobody is waiting is refused, so the
    caller can fall back to the debounced key set.
    """
    def __init__(self):
        self.condition = threading.Condition()
        self.waiting = False
        self.cancelled = False
        self.key = None

    def offer(self, key):
        """
        Hand a key to a pending waiter.

        :param key: the key code pressed
        :return: True if a waiter took the key
        """
        with self.condition:
            if not self.waiting or self.key is not None:
                return False
            self.key = key
            self.condition.notify()
            return True

    def take(self):
        """
        Block until a key is offered, and return it. Raises
        KeyWaitCancelledException if cancel() is called while waiting or
        before the wait started.
        """
        with self.condition:
            self.waiting = True
            try:
                while self.key is None:
                    if self.cancelled:
                        raise KeyWaitCancelledException()
                    self.condition.wait()
                key, self.key = self.key, None
                return key
            finally:
                self.waiting = False

    def is_waiting(self):
        with self.condition:
            return self.waiting

    def cancel(self):
        with self.condition:
            self.cancelled = True
            self.condition.notify_all()

    def reset(self):
        with self.condition:
            self.cancelled = False
            self.key = None


class Keys(object):
    """
    The debounced set of pressed keys. Every press is recorded with the time
    it arrived and counts as pressed for KEY_TTL seconds afterwards. Stale
    entries are only swept out when the set is queried, so a key that is held
    down has to be delivered again by the input source to stay pressed.
    """
    def __init__(self, ttl=KEY_TTL, clock=time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self.pressed = set()
        self.lock = threading.Lock()
        self.channel = KeyChannel()

    def __len__(self):
        with self.lock:
            return len(self.pressed)

    def add(self, *codes):
        """
        Record each of the key codes as pressed now.
        """
        now = self.clock()
        with self.lock:
            for code in codes:
                self.pressed.add((code, now))

    def contains(self, code):
        """
        Check whether the key is currently pressed, dropping every entry
        that has outlived the TTL along the way.

        :param code: the key code to look for
        :return: True if a live entry for the key exists
        """
        now = self.clock()
        found = False
        with self.lock:
            for entry in list(self.pressed):
                entry_code, timestamp = entry
                if now - timestamp > self.ttl:
                    self.pressed.discard(entry)
                elif entry_code == code:
                    found = True
        return found

    def press(self, code):
        """
        Deliver a key press from the input source. A pending Fx0A wait gets
        the key directly; otherwise it goes into the debounced set.
        """
        if self.channel.offer(code):
            logger.debug("Key %X delivered to waiting CPU", code)
            return
        self.add(code)

    def wait_for_key(self):
        """
        Block until the next key press arrives and return its code.
        """
        return self.channel.take()

    def clear(self):
        with self.lock:
            self.pressed = set()
