import logging
import time
from random import randint

from chip8.addresses import (
    ADDRESS_SPACE_LIMIT, CLEAR_SCREEN, FONT_GLYPH_SIZE, FONT_START, MAX_MEMORY,
    N_MASK, NN_MASK, NNN_MASK, OPCODE_MASK, PROGRAM_COUNTER_START,
    RETURN_FROM_SUBROUTINE, X_MASK, Y_MASK,
)
from chip8.display import DEFAULT_COLS, DEFAULT_ROWS, Display
from chip8.exception import (
    Chip8Exception, KeyWaitCancelledException, MemoryAccessException,
    UnknownOpCodeException,
)
from chip8.font import FONT
from chip8.keys import Keys
from chip8.stack import Stack
from chip8.timers import Timers

logger = logging.getLogger(__name__)

# The number of instructions to execute per second
DEFAULT_FREQUENCY = 500

# The total number of registers in the Chip 8 CPU
NUM_REGISTERS = 0x10

# Width in pixels of every sprite row
SPRITE_WIDTH = 8

# C L A S S E S ###############################################################


class CPU(object):
    """
    A class to emulate a Chip 8 CPU. There are several good resources out on
    the web that describe the internals of the Chip 8 CPU. For example:

        http://devernay.free.fr/hacks/chip8/C8TECH10.HTM
        http://michael.toren.net/mirrors/chip8/chip8def.htm

    To summarize these sources, the Chip 8 has:

        * 16 x 8-bit general purpose registers (V0 - VF**)
        * 1 x 16-bit index register (I)
        * 1 x 16-bit program counter (PC)
        * a 16 entry call stack
        * 1 x 8-bit delay timer (DT)
        * 1 x 8-bit sound timer (ST)

    ** VF is a special register - it is used to store the carry, borrow and
       collision flags

    The CPU owns all of the machine state: memory, registers, the stack, the
    display it draws into, the debounced keypad and the timers. Nothing is
    shared between two CPU instances.
    """
    def __init__(self, rows=DEFAULT_ROWS, cols=DEFAULT_COLS,
                 frequency=DEFAULT_FREQUENCY, memory_size=MAX_MEMORY,
                 clock=time.monotonic):
        """
        Initialize the Chip8 CPU.

        :param rows: the height of the display in pixels
        :param cols: the width of the display in pixels
        :param frequency: the number of instructions to execute per second
        :param memory_size: the number of bytes of memory to allocate
        :param clock: the time source used to debounce key presses
        """
        self.cpu_timers = Timers()

        # Defines the general purpose, index and program counter registers.
        self.cpu_registers = {
            'v': bytearray(NUM_REGISTERS),
            'index': 0,
            'pc': 0,
        }

        # The operation_lookup table is executed according to the most
        # significant nibble of the operand (e.g. operand 8nnn would call
        # self.cpu_execute_logical_instruction)
        self.cpu_operation_lookup = {
            0x0: self.cpu_clear_return,                  # 00E0 / 00EE
            0x1: self.cpu_jump_to_address,               # 1nnn - JUMP nnn
            0x2: self.cpu_jump_to_subroutine,            # 2nnn - CALL nnn
            0x3: self.cpu_skip_if_reg_equal_val,         # 3snn - SKE  Vs, nn
            0x4: self.cpu_skip_if_reg_not_equal_val,     # 4snn - SKNE Vs, nn
            0x5: self.cpu_skip_if_reg_equal_reg,         # 5st0 - SKE  Vs, Vt
            0x6: self.cpu_move_value_to_reg,             # 6snn - LOAD Vs, nn
            0x7: self.cpu_add_value_to_reg,              # 7snn - ADD  Vs, nn
            0x8: self.cpu_execute_logical_instruction,   # see subfunctions below
            0x9: self.cpu_skip_if_reg_not_equal_reg,     # 9st0 - SKNE Vs, Vt
            0xA: self.cpu_load_index_reg_with_value,     # Annn - LOAD I, nnn
            0xB: self.cpu_jump_to_address_plus_reg,      # Bnnn - JUMP V0 + nnn
            0xC: self.cpu_generate_random_number,        # Ctnn - RAND Vt, nn
            0xD: self.cpu_draw_sprite,                   # Dxyn - DRAW Vx, Vy, n
            0xE: self.cpu_keyboard_routines,             # see subfunctions below
            0xF: self.cpu_misc_routines,                 # see subfunctions below
        }

        # This set of operations is invoked when the operand loaded into the
        # CPU starts with 8 (e.g. operand 8st0 would call
        # self.cpu_move_reg_into_reg)
        self.cpu_logical_operation_lookup = {
            0x0: self.cpu_move_reg_into_reg,             # 8ts0 - LOAD Vt, Vs
            0x1: self.cpu_logical_or,                    # 8ts1 - OR   Vt, Vs
            0x2: self.cpu_logical_and,                   # 8ts2 - AND  Vt, Vs
            0x3: self.cpu_exclusive_or,                  # 8ts3 - XOR  Vt, Vs
            0x4: self.cpu_add_reg_to_reg,                # 8ts4 - ADD  Vt, Vs
            0x5: self.cpu_subtract_reg_from_reg,         # 8ts5 - SUB  Vt, Vs
            0x6: self.cpu_right_shift_reg,               # 8ts6 - SHR  Vt, Vs
            0x7: self.cpu_subtract_reg_from_reg1,        # 8ts7 - SUBN Vt, Vs
            0xE: self.cpu_left_shift_reg,                # 8tsE - SHL  Vt, Vs
        }

        # This set of operations is invoked when the operand loaded into the
        # CPU starts with F (e.g. operand Ft07 would call
        # self.cpu_move_delay_timer_into_reg)
        self.cpu_misc_routine_lookup = {
            0x07: self.cpu_move_delay_timer_into_reg,    # Ft07 - LOAD Vt, DELAY
            0x0A: self.cpu_wait_for_keypress,            # Ft0A - KEYD Vt
            0x15: self.cpu_move_reg_into_delay_timer,    # Fs15 - LOAD DELAY, Vs
            0x18: self.cpu_move_reg_into_sound_timer,    # Fs18 - LOAD SOUND, Vs
            0x1E: self.cpu_add_reg_into_index,           # Fs1E - ADD  I, Vs
            0x29: self.cpu_load_index_with_reg_sprite,   # Fs29 - LOAD I, Vs
            0x33: self.cpu_store_bcd_in_memory,          # Fs33 - BCD
            0x55: self.cpu_store_regs_in_memory,         # Fs55 - STOR [I], Vs
            0x65: self.cpu_read_regs_from_memory,        # Fs65 - LOAD Vs, [I]
        }
        self.cpu_operand = 0
        self.cpu_frequency = frequency
        self.cpu_error = None
        self.cpu_memory = bytearray(memory_size)
        self.cpu_stack = Stack()
        self.cpu_display = Display(rows, cols)
        self.cpu_keys = Keys(clock=clock)
        self.cpu_reset()

    def __str__(self):
        val = 'PC: {:4X}  OP: {:4X}\n'.format(
            self.cpu_registers['pc'] - 2, self.cpu_operand)
        for index in range(NUM_REGISTERS):
            val += 'V{:X}: {:2X}\n'.format(index, self.cpu_registers['v'][index])
        val += 'I: {:4X}\n'.format(self.cpu_registers['index'])
        val += 'DT: {:2X}  ST: {:2X}\n'.format(
            self.cpu_timers.delay, self.cpu_timers.sound)
        val += repr(self.cpu_stack)
        return val

    def cpu_check_memory(self, cpu_address, cpu_length=1):
        """
        Raise MemoryAccessException unless the cpu_length bytes starting at
        cpu_address all lie inside memory.
        """
        if cpu_address < 0 or cpu_address + cpu_length > len(self.cpu_memory):
            raise MemoryAccessException(cpu_address, cpu_length, len(self.cpu_memory))

    def cpu_fetch(self):
        """
        Read the big-endian instruction word pointed to by the program
        counter, and advance the program counter past it.

        :return: the 16-bit instruction word
        """
        cpu_pc = self.cpu_registers['pc']
        self.cpu_check_memory(cpu_pc, 2)
        cpu_operand = (self.cpu_memory[cpu_pc] << 8) | self.cpu_memory[cpu_pc + 1]
        self.cpu_registers['pc'] = cpu_pc + 2
        return cpu_operand

    def cpu_execute_instruction(self, cpu_operator_param=None):
        """
        Execute the next instruction pointed to by the program counter.
        For testing purposes, pass the operand directly to the
        function. When the operand is not passed directly to the
        function, the program counter is increased by 2.

        An operand that does not decode to a known instruction is logged and
        skipped. Faults of the running program (stack underflow or overflow,
        memory out of bounds) are raised to the caller.

        :param cpu_operator_param: the operand to execute
        :return: returns the operand executed
        """
        if cpu_operator_param is not None:
            self.cpu_operand = cpu_operator_param
        else:
            self.cpu_operand = self.cpu_fetch()
        logger.debug("%03X: %04X", self.cpu_registers['pc'] - 2, self.cpu_operand)

        cpu_operation = (self.cpu_operand & OPCODE_MASK) >> 12
        try:
            self.cpu_operation_lookup[cpu_operation]()
        except UnknownOpCodeException as error:
            logger.warning("%s at %03X, skipping", error, self.cpu_registers['pc'] - 2)
        return self.cpu_operand

    def cpu_execute_logical_instruction(self):
        """
        Execute the logical instruction based upon the current operand.
        """
        cpu_operation = self.cpu_operand & N_MASK
        try:
            cpu_routine = self.cpu_logical_operation_lookup[cpu_operation]
        except KeyError:
            raise UnknownOpCodeException(self.cpu_operand)
        cpu_routine()

    def cpu_keyboard_routines(self):
        """
        Run the specified keyboard routine based upon the operand. These
        operations are:

            Es9E - SKPR Vs
            EsA1 - SKUP Vs

        0x9E will check to see if the key specified in the source register is
        pressed, and if it is, skips the next instruction. Operation 0xA1 will
        again check for the specified keypress in the source register, and
        if it is NOT pressed, will skip the next instruction. The register
        calculations are as follows:

           Bits:  15-12    11-8      7-4      3-0
                  unused   source  9 or A    E or 1
        """
        cpu_operation = self.cpu_operand & NN_MASK
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_key_to_check = self.cpu_registers['v'][cpu_source]

        # Skip if the key specified in the source register is pressed
        if cpu_operation == 0x9E:
            if self.cpu_keys.contains(cpu_key_to_check):
                self.cpu_registers['pc'] += 2

        # Skip if the key specified in the source register is not pressed
        elif cpu_operation == 0xA1:
            if not self.cpu_keys.contains(cpu_key_to_check):
                self.cpu_registers['pc'] += 2

        else:
            raise UnknownOpCodeException(self.cpu_operand)

    def cpu_misc_routines(self):
        """
        Will execute one of the routines specified in misc_routines.
        """
        cpu_operation = self.cpu_operand & NN_MASK
        try:
            cpu_routine = self.cpu_misc_routine_lookup[cpu_operation]
        except KeyError:
            raise UnknownOpCodeException(self.cpu_operand)
        cpu_routine()

    def cpu_clear_return(self):
        """
        Opcodes starting with a 0 are one of the following instructions:

            00E0 - Clear the display
            00EE - Return from subroutine

        Any other 0nnn operand (a call to a machine code routine on the
        original hardware) is not supported.
        """
        cpu_operation = self.cpu_operand & NNN_MASK

        if cpu_operation == CLEAR_SCREEN:
            self.cpu_display.clear()

        elif cpu_operation == RETURN_FROM_SUBROUTINE:
            self.cpu_registers['pc'] = self.cpu_stack.pop()

        else:
            raise UnknownOpCodeException(self.cpu_operand)

    def cpu_jump_to_address(self):
        """
        1nnn - JUMP nnn

        Jump to address. The address to jump to is calculated using the bits
        taken from the operand as follows:

           Bits:  15-12    11-8      7-4      3-0
                  unused  address  address  address
        """
        self.cpu_registers['pc'] = self.cpu_operand & NNN_MASK

    def cpu_jump_to_subroutine(self):
        """
        2nnn - CALL nnn

        Jump to subroutine. Save the current program counter on the stack. The
        subroutine to jump to is taken from the operand as follows:

           Bits:  15-12    11-8      7-4      3-0
                  unused  address  address  address
        """
        self.cpu_stack.push(self.cpu_registers['pc'])
        self.cpu_registers['pc'] = self.cpu_operand & NNN_MASK

    def cpu_skip_if_reg_equal_val(self):
        """
        3snn - SKE Vs, nn

        Skip if register contents equal to constant value. The calculation for
        the register and constant is performed on the operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   source  constant  constant

        The program counter is updated to skip the next instruction by
        advancing it by 2 bytes.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        if self.cpu_registers['v'][cpu_source] == (self.cpu_operand & NN_MASK):
            self.cpu_registers['pc'] += 2

    def cpu_skip_if_reg_not_equal_val(self):
        """
        4snn - SKNE Vs, nn

        Skip if register contents not equal to constant value.

           Bits:  15-12     11-8      7-4       3-0
                  unused   source  constant  constant
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        if self.cpu_registers['v'][cpu_source] != (self.cpu_operand & NN_MASK):
            self.cpu_registers['pc'] += 2

    def cpu_skip_if_reg_equal_reg(self):
        """
        5st0 - SKE Vs, Vt

        Skip if source register is equal to target register. The calculation
        for the registers to use is performed on the operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   source    target      0
        """
        if self.cpu_operand & N_MASK != 0:
            raise UnknownOpCodeException(self.cpu_operand)
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_target = (self.cpu_operand & Y_MASK) >> 4
        if self.cpu_registers['v'][cpu_source] == self.cpu_registers['v'][cpu_target]:
            self.cpu_registers['pc'] += 2

    def cpu_move_value_to_reg(self):
        """
        6snn - LOAD Vs, nn

        Move the constant value into the specified register.

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    value     value
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['v'][cpu_target] = self.cpu_operand & NN_MASK

    def cpu_add_value_to_reg(self):
        """
        7snn - ADD Vs, nn

        Add the constant value to the specified register, wrapping at 256.
        The carry flag is not touched.

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    value     value
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        temp = self.cpu_registers['v'][cpu_target] + (self.cpu_operand & NN_MASK)
        self.cpu_registers['v'][cpu_target] = temp & 0xFF

    def cpu_move_reg_into_reg(self):
        """
        8ts0 - LOAD Vt, Vs

        Move the value of the source register into the value of the target
        register. The calculation for the registers is performed on the
        operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      0
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] = self.cpu_registers['v'][cpu_source]

    def cpu_logical_or(self):
        """
        8ts1 - OR   Vt, Vs
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] |= self.cpu_registers['v'][cpu_source]

    def cpu_logical_and(self):
        """
        8ts2 - AND  Vt, Vs
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] &= self.cpu_registers['v'][cpu_source]

    def cpu_exclusive_or(self):
        """
        8ts3 - XOR  Vt, Vs
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] ^= self.cpu_registers['v'][cpu_source]

    def cpu_add_reg_to_reg(self):
        """
        8ts4 - ADD  Vt, Vs

        Add the value in the source register to the value in the target
        register, and store the result in the target register. The register
        calculations are as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      4

        VF is set to 1 when a carry is generated and to 0 otherwise. The flag
        is written after the result.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        temp = self.cpu_registers['v'][cpu_target] + self.cpu_registers['v'][cpu_source]
        self.cpu_registers['v'][cpu_target] = temp & 0xFF
        self.cpu_registers['v'][0xF] = 1 if temp > 0xFF else 0

    def cpu_subtract_reg_from_reg(self):
        """
        8ts5 - SUB  Vt, Vs

        Subtract the value in the source register from the value in the target
        register, and store the result in the target register. The register
        calculations are as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      5

        If a borrow is NOT generated (Vt >= Vs before the subtraction), VF is
        set to 1, otherwise it is set to 0.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_source_reg = self.cpu_registers['v'][cpu_source]
        cpu_target_reg = self.cpu_registers['v'][cpu_target]
        self.cpu_registers['v'][cpu_target] = (cpu_target_reg - cpu_source_reg) & 0xFF
        self.cpu_registers['v'][0xF] = 1 if cpu_target_reg >= cpu_source_reg else 0

    def cpu_right_shift_reg(self):
        """
        8ts6 - SHR  Vt, Vs

        Shift the source register 1 bit to the right and store the result in
        the target register. Bit 0 of the source is shifted into VF.

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      6
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_source_reg = self.cpu_registers['v'][cpu_source]
        self.cpu_registers['v'][cpu_target] = cpu_source_reg >> 1
        self.cpu_registers['v'][0xF] = cpu_source_reg & 0x1

    def cpu_subtract_reg_from_reg1(self):
        """
        8ts7 - SUBN Vt, Vs

        Subtract the value in the target register from the value in the source
        register, and store the result in the target register. If a borrow is
        NOT generated (Vs >= Vt before the subtraction), VF is set to 1,
        otherwise it is set to 0.

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      7
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_source_reg = self.cpu_registers['v'][cpu_source]
        cpu_target_reg = self.cpu_registers['v'][cpu_target]
        self.cpu_registers['v'][cpu_target] = (cpu_source_reg - cpu_target_reg) & 0xFF
        self.cpu_registers['v'][0xF] = 1 if cpu_source_reg >= cpu_target_reg else 0

    def cpu_left_shift_reg(self):
        """
        8tsE - SHL  Vt, Vs

        Shift the source register 1 bit to the left and store the result in
        the target register. Bit 7 of the source is shifted into VF.

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      E
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_source_reg = self.cpu_registers['v'][cpu_source]
        self.cpu_registers['v'][cpu_target] = (cpu_source_reg << 1) & 0xFF
        self.cpu_registers['v'][0xF] = (cpu_source_reg & 0x80) >> 7

    def cpu_skip_if_reg_not_equal_reg(self):
        """
        9st0 - SKNE Vs, Vt

        Skip if source register is not equal to target register.

           Bits:  15-12     11-8      7-4       3-0
                  unused   source    target      0
        """
        if self.cpu_operand & N_MASK != 0:
            raise UnknownOpCodeException(self.cpu_operand)
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_target = (self.cpu_operand & Y_MASK) >> 4
        if self.cpu_registers['v'][cpu_source] != self.cpu_registers['v'][cpu_target]:
            self.cpu_registers['pc'] += 2

    def cpu_load_index_reg_with_value(self):
        """
        Annn - LOAD I, nnn

        Load index register with constant value.

           Bits:  15-12     11-8      7-4       3-0
                  unused   constant  constant  constant
        """
        self.cpu_registers['index'] = self.cpu_operand & NNN_MASK

    def cpu_jump_to_address_plus_reg(self):
        """
        Bnnn - JUMP V0 + nnn

        Load the program counter with the address in the operand plus the
        value of register V0.

           Bits:  15-12     11-8      7-4       3-0
                  unused   address  address  address
        """
        self.cpu_registers['pc'] = (self.cpu_operand & NNN_MASK) + self.cpu_registers['v'][0]

    def cpu_generate_random_number(self):
        """
        Ctnn - RAND Vt, nn

        A random number between 0 and 255 is generated. The contents of it are
        then ANDed with the constant value passed in the operand. The result is
        stored in the target register. The register and constant values are
        calculated as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused    target    value    value
        """
        cpu_value = self.cpu_operand & NN_MASK
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['v'][cpu_target] = cpu_value & randint(0, 255)

    def cpu_draw_sprite(self):
        """
        Dxyn - DRAW x, y, num_bytes

        Draws the sprite pointed to in the index register at the specified
        x and y coordinates. Drawing is done via an XOR routine, meaning that
        if the target pixel is already turned on, and a pixel is set to be
        turned on at that same location via the draw, then the pixel is turned
        off. Each sprite is 8 bits (1 byte) wide, most significant bit on the
        left. The num_bytes parameter sets how tall the sprite is. Consecutive
        bytes in the memory pointed to by the index register make up the rows
        of the sprite. For example, assume that the index register pointed
        to the following 7 bytes:

                       bit 7 6 5 4 3 2 1 0

           byte 0          0 1 1 1 1 1 0 0
           byte 1          0 1 0 0 0 0 0 0
           byte 2          0 1 0 0 0 0 0 0
           byte 3          0 1 1 1 1 1 0 0
           byte 4          0 1 0 0 0 0 0 0
           byte 5          0 1 0 0 0 0 0 0
           byte 6          0 1 1 1 1 1 0 0

        This would draw a character on the screen that looks like an 'E'.

        The starting position is taken modulo the screen size, and every
        column and row of the sprite then wraps around the edges of the screen
        on its own. If drawing turns any set pixel off, VF is set to 1,
        otherwise it is set to 0.

           Bits:  15-12     11-8      7-4       3-0
                  unused    x_source  y_source  num_bytes
        """
        cpu_x_source = (self.cpu_operand & X_MASK) >> 8
        cpu_y_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_num_bytes = self.cpu_operand & N_MASK
        cpu_index = self.cpu_registers['index']
        self.cpu_check_memory(cpu_index, cpu_num_bytes)

        cpu_display = self.cpu_display
        cpu_x_pos = self.cpu_registers['v'][cpu_x_source] % cpu_display.cols
        cpu_y_pos = self.cpu_registers['v'][cpu_y_source] % cpu_display.rows
        cpu_collision = False

        for cpu_y_index in range(cpu_num_bytes):
            cpu_sprite_byte = self.cpu_memory[cpu_index + cpu_y_index]
            cpu_y_coord = (cpu_y_pos + cpu_y_index) % cpu_display.rows

            for cpu_x_index in range(SPRITE_WIDTH):
                if cpu_sprite_byte & (0x80 >> cpu_x_index):
                    cpu_x_coord = (cpu_x_pos + cpu_x_index) % cpu_display.cols
                    if cpu_display.set_pixel(cpu_x_coord, cpu_y_coord):
                        cpu_collision = True

        self.cpu_registers['v'][0xF] = 1 if cpu_collision else 0

    def cpu_move_delay_timer_into_reg(self):
        """
        Ft07 - LOAD Vt, DELAY

        Move the value of the delay timer into the target register.

           Bits:  15-12     11-8      7-4       3-0
                  unused    target     0         7
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['v'][cpu_target] = self.cpu_timers.delay

    def cpu_wait_for_keypress(self):
        """
        Ft0A - KEYD Vt

        Stop execution until a key is pressed. Move the value of the key
        pressed into the specified register. The register calculation is
        as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused    target     0         A

        If the wait is cancelled, the program counter is moved back onto this
        instruction so it is still pending when execution resumes.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        try:
            cpu_key_pressed = self.cpu_keys.wait_for_key()
        except KeyWaitCancelledException:
            self.cpu_registers['pc'] -= 2
            raise
        self.cpu_registers['v'][cpu_target] = cpu_key_pressed & 0xFF

    def cpu_move_reg_into_delay_timer(self):
        """
        Fs15 - LOAD DELAY, Vs
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_timers.delay = self.cpu_registers['v'][cpu_source]

    def cpu_move_reg_into_sound_timer(self):
        """
        Fs18 - LOAD SOUND, Vs
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_timers.sound = self.cpu_registers['v'][cpu_source]

    def cpu_load_index_with_reg_sprite(self):
        """
        Fs29 - LOAD I, Vs

        Load the index with the address of the font glyph for the low nibble
        of the source register. All glyphs are 5 bytes long and start at
        FONT_START.

           Bits:  15-12     11-8      7-4       3-0
                  unused    source     2         9
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_char = self.cpu_registers['v'][cpu_source] & 0x0F
        self.cpu_registers['index'] = FONT_START + cpu_char * FONT_GLYPH_SIZE

    def cpu_add_reg_into_index(self):
        """
        Fs1E - ADD  I, Vs

        Add the value of the register into the index register value. If the
        index moves beyond the 12-bit address space, VF is set to 1; otherwise
        VF is left alone.

           Bits:  15-12     11-8      7-4       3-0
                  unused    source     1         E
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index'] + self.cpu_registers['v'][cpu_source]
        self.cpu_registers['index'] = cpu_index & 0xFFFF
        if cpu_index > ADDRESS_SPACE_LIMIT:
            self.cpu_registers['v'][0xF] = 1

    def cpu_store_bcd_in_memory(self):
        """
        Fs33 - BCD

        Take the value stored in source and place the digits in the following
        locations:

            hundreds   -> self.memory[index]
            tens       -> self.memory[index + 1]
            ones       -> self.memory[index + 2]

        For example, if the value is 123, then the following values will be
        placed at the specified locations:

             1 -> self.memory[index]
             2 -> self.memory[index + 1]
             3 -> self.memory[index + 2]

        The register calculation is as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused    source     3         3
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index']
        self.cpu_check_memory(cpu_index, 3)
        cpu_value = self.cpu_registers['v'][cpu_source]
        self.cpu_memory[cpu_index] = cpu_value // 100
        self.cpu_memory[cpu_index + 1] = (cpu_value // 10) % 10
        self.cpu_memory[cpu_index + 2] = cpu_value % 10

    def cpu_store_regs_in_memory(self):
        """
        Fs55 - STOR [I], Vs

        Store the V registers V0 through Vs in the memory pointed to by the
        index register. The index register itself is not changed.

           Bits:  15-12     11-8      7-4       3-0
                  unused    source     5         5

        For example, to store all of the V registers, the source register
        would be 'F'.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index']
        self.cpu_check_memory(cpu_index, cpu_source + 1)
        self.cpu_memory[cpu_index:cpu_index + cpu_source + 1] = \
            self.cpu_registers['v'][:cpu_source + 1]

    def cpu_read_regs_from_memory(self):
        """
        Fs65 - LOAD Vs, [I]

        Read the V registers V0 through Vs from the memory pointed to by the
        index register. The index register itself is not changed.

           Bits:  15-12     11-8      7-4       3-0
                  unused    source     6         5
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index']
        self.cpu_check_memory(cpu_index, cpu_source + 1)
        self.cpu_registers['v'][:cpu_source + 1] = \
            self.cpu_memory[cpu_index:cpu_index + cpu_source + 1]

    def cpu_reset(self):
        """
        Reset the CPU by blanking out all registers, emptying the stack,
        zeroing the timers and display, and resetting the program counter to
        its starting value. Memory is left as it is.
        """
        self.cpu_registers['v'] = bytearray(NUM_REGISTERS)
        self.cpu_registers['pc'] = PROGRAM_COUNTER_START
        self.cpu_registers['index'] = 0
        self.cpu_operand = 0
        self.cpu_error = None
        self.cpu_stack.clear()
        self.cpu_timers.reset()
        self.cpu_display.clear()
        self.cpu_keys.clear()
        self.cpu_keys.channel.reset()

    def cpu_load_rom(self, cpu_romdata, cpu_offset=PROGRAM_COUNTER_START):
        """
        Copy a program into memory verbatim.

        :param cpu_romdata: the raw bytes of the program
        :param cpu_offset: the location in memory at which to load the ROM
        """
        self.cpu_check_memory(cpu_offset, len(cpu_romdata))
        self.cpu_memory[cpu_offset:cpu_offset + len(cpu_romdata)] = cpu_romdata
        logger.debug("Loaded %d bytes at %03X", len(cpu_romdata), cpu_offset)

    def cpu_load_font(self, cpu_font=FONT):
        """
        Copy the font glyphs into memory starting at FONT_START.

        :param cpu_font: a sequence of 5-byte glyphs, one per hex digit
        """
        cpu_font_data = bytes(cpu_byte for cpu_glyph in cpu_font for cpu_byte in cpu_glyph)
        self.cpu_load_rom(cpu_font_data, FONT_START)

    def cpu_decrement_timers(self):
        """
        Decrement both the sound and delay timer.
        """
        self.cpu_timers.decrement()

    def cpu_run(self, stop_event):
        """
        Execute instructions at cpu_frequency per second until stop_event is
        set. A fault of the running program is logged together with the
        machine state, kept in cpu_error, and sets stop_event.

        :param stop_event: a threading.Event used to stop the loop
        """
        cpu_delay = 1.0 / self.cpu_frequency
        logger.info("CPU running at %d instructions per second", self.cpu_frequency)
        while not stop_event.is_set():
            try:
                self.cpu_execute_instruction()
            except KeyWaitCancelledException:
                logger.debug("Key wait cancelled, CPU stopping")
                break
            except Chip8Exception as error:
                logger.error("CPU halted: %s\n%s", error, self)
                self.cpu_error = error
                stop_event.set()
                break
            stop_event.wait(cpu_delay)

    def cpu_stop(self):
        """
        Wake the CPU if it is blocked waiting for a key so cpu_run can return.
        """
        self.cpu_keys.channel.cancel()
