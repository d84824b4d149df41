# The original Chip 8 screen is 64 x 32 with 2 colors
DEFAULT_ROWS = 32
DEFAULT_COLS = 64


class Display(object):
    """
    The monochrome framebuffer the CPU draws into. The grid is stored flat
    and row-major, one byte per pixel, each either 0 (off) or 1 (on). The
    display never paints itself; a renderer reads the grid once per frame.
    """
    def __init__(self, rows=DEFAULT_ROWS, cols=DEFAULT_COLS):
        self.rows = rows
        self.cols = cols
        self.grid = bytearray(rows * cols)

    def set_pixel(self, x, y):
        """
        Toggle the pixel at x, y. Coordinates are brought into range with a
        single wraparound step, so callers must already be within one span
        of the screen.

        :param x: the x coordinate of the pixel
        :param y: the y coordinate of the pixel
        :return: True if a set pixel was turned off
        """
        if x >= self.cols:
            x -= self.cols
        if x < 0:
            x += self.cols
        if y >= self.rows:
            y -= self.rows
        if y < 0:
            y += self.rows

        index = x + y * self.cols
        self.grid[index] ^= 1
        return self.grid[index] == 0

    def get_pixel(self, x, y):
        """
        Returns whether the pixel is on (1) or off (0) at x, y.
        """
        return self.grid[x + y * self.cols]

    def clear(self):
        """
        Turns off all the pixels.
        """
        self.grid = bytearray(self.rows * self.cols)
