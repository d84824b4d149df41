# Masks used to pull the operand fields out of a 16-bit instruction word.
#
#    Bits:  15-12     11-8      7-4       3-0
#           opcode     x         y         n
#
OPCODE_MASK = 0xF000
X_MASK = 0x0F00
Y_MASK = 0x00F0
N_MASK = 0x000F
NN_MASK = 0x00FF
NNN_MASK = 0x0FFF

# Sub-operations of the 0nnn group
CLEAR_SCREEN = 0x0E0
RETURN_FROM_SUBROUTINE = 0x0EE

# The total amount of memory to allocate for the emulator
MAX_MEMORY = 4096

# Highest address reachable by a 12-bit operand
ADDRESS_SPACE_LIMIT = 0x0FFF

# Where the program counter should originally point
PROGRAM_COUNTER_START = 0x200

# Where the font glyphs live, and how many bytes make up one glyph
FONT_START = 0x050
FONT_GLYPH_SIZE = 5
