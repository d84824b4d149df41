class Chip8Exception(Exception):
    """
    Base class for every fault raised by the Chip 8 machine.
    """


class UnknownOpCodeException(Chip8Exception):
    """
    A class to raise unknown op code exceptions.
    """
    def __init__(self, op_code):
        Chip8Exception.__init__(self, "Unknown op-code: {:04X}".format(op_code))
        self.op_code = op_code


class StackUnderflowException(Chip8Exception):
    """
    Raised when a return is executed with nothing on the stack.
    """
    def __init__(self):
        Chip8Exception.__init__(self, "Stack underflow: return with empty stack")


class StackOverflowException(Chip8Exception):
    """
    Raised when a subroutine call would exceed the stack capacity.
    """
    def __init__(self, capacity):
        Chip8Exception.__init__(
            self, "Stack overflow: capacity of {} addresses exceeded".format(capacity))
        self.capacity = capacity


class MemoryAccessException(Chip8Exception):
    """
    Raised when a program reads or writes outside of the allocated memory.
    """
    def __init__(self, address, length=1, memory_size=None):
        message = "Memory access out of bounds: {:X} (+{})".format(address, length)
        if memory_size is not None:
            message += " with {} bytes of memory".format(memory_size)
        Chip8Exception.__init__(self, message)
        self.address = address
        self.length = length


class KeyWaitCancelledException(Chip8Exception):
    """
    Raised in the execution loop when a pending wait for a key press is
    cancelled because the machine is shutting down.
    """
    def __init__(self):
        Chip8Exception.__init__(self, "Key wait cancelled")
