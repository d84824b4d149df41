import pytest

from chip8.cpu import CPU


class FakeClock(object):
    """
    A controllable stand-in for time.monotonic.
    """
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cpu(clock):
    machine = CPU(clock=clock)
    machine.cpu_load_font()
    return machine
