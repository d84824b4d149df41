import threading

from chip8.exception import StackOverflowException, StackUnderflowException

# Conventional depth of the Chip 8 call stack
STACK_CAPACITY = 16


class Stack(object):
    """
    A bounded LIFO of return addresses used by the CALL (2nnn) and
    RET (00EE) instructions. Pushing past the capacity or popping an empty
    stack is a fault of the running program and raises immediately.
    """
    def __init__(self, capacity=STACK_CAPACITY):
        self.capacity = capacity
        self.addresses = []
        self.lock = threading.Lock()

    def __len__(self):
        with self.lock:
            return len(self.addresses)

    def __repr__(self):
        with self.lock:
            return 'Stack({})'.format(
                ', '.join('{:03X}'.format(address) for address in self.addresses))

    def is_empty(self):
        return len(self) == 0

    def push(self, address):
        """
        Push an address onto the top of the stack.

        :param address: the return address to save
        """
        with self.lock:
            if len(self.addresses) >= self.capacity:
                raise StackOverflowException(self.capacity)
            self.addresses.append(address)

    def pop(self):
        """
        Remove the address at the top of the stack and return it.

        :return: the most recently pushed address
        """
        with self.lock:
            if not self.addresses:
                raise StackUnderflowException()
            return self.addresses.pop()

    def clear(self):
        with self.lock:
            self.addresses = []
