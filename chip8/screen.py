from pygame import display, HWSURFACE, DOUBLEBUF, Color, draw

from chip8.display import DEFAULT_COLS, DEFAULT_ROWS

SCREEN_NAME = 'CHIP8 Emulator'

# The depth of the screen is the number of bits used to represent the color
# of a pixel.
SCREEN_DEPTH = 8

# The colors of the pixels to draw. The Chip 8 supports two colors: 0 (off)
# and 1 (on). The format of the colors is in RGBA format.
PIXEL_COLORS = {
    0: Color(0, 0, 0, 255),
    1: Color(250, 250, 250, 255)
}


class Screen(object):
    """
    Paints a Display framebuffer onto a pygame window. The original Chip 8
    screen was 64 x 32 with 2 colors, which is scaled up by an integer ratio
    to be visible on a modern monitor.
    """
    def __init__(self, ratio, screen_height=DEFAULT_ROWS, screen_width=DEFAULT_COLS):
        """
        :param ratio: the scaling factor to apply to the screen
        :param screen_height: the height of the screen in Chip 8 pixels
        :param screen_width: the width of the screen in Chip 8 pixels
        """
        self.screen_height = screen_height
        self.screen_width = screen_width
        self.scaling_ratio = ratio
        self.screen_surface = None

    def init_display(self):
        """
        Attempts to initialize a screen with the specified height and width.
        The screen will by default be of depth SCREEN_DEPTH, and will be
        double-buffered in hardware (if possible).
        """
        display.init()
        self.screen_surface = display.set_mode(
            ((self.screen_width * self.scaling_ratio),
             (self.screen_height * self.scaling_ratio)),
            HWSURFACE | DOUBLEBUF,
            SCREEN_DEPTH)
        self.set_caption(SCREEN_NAME)
        self.clear_screen()
        display.flip()

    @staticmethod
    def set_caption(caption):
        display.set_caption(caption)

    def draw_screen_pixel(self, x_axis_position, y_axis_position, pixel_color):
        """
        Turn a pixel on or off at the specified location on the screen. Note
        that the pixel will not automatically be drawn on the screen, you
        must call update_screen() to flip the drawing buffer to the display.
        The coordinate system starts with (0, 0) being in the top left of the
        screen.

        :param x_axis_position: the x coordinate to place the pixel
        :param y_axis_position: the y coordinate to place the pixel
        :param pixel_color: the color of the pixel to draw
        """
        x_axis_base_position = x_axis_position * self.scaling_ratio
        y_axis_base_position = y_axis_position * self.scaling_ratio
        draw.rect(self.screen_surface,
                  PIXEL_COLORS[pixel_color],
                  (x_axis_base_position, y_axis_base_position, self.scaling_ratio, self.scaling_ratio))

    def clear_screen(self):
        """
        Turns off all the pixels on the screen (writes color 0 to all pixels).
        """
        self.screen_surface.fill(PIXEL_COLORS[0])

    def paint(self, framebuffer):
        """
        Copy every lit pixel of a Display onto the drawing buffer and flip it
        to the window.

        :param framebuffer: the Display to paint
        """
        self.clear_screen()
        grid = framebuffer.grid
        for y_axis_position in range(framebuffer.rows):
            row_start = y_axis_position * framebuffer.cols
            for x_axis_position in range(framebuffer.cols):
                if grid[row_start + x_axis_position]:
                    self.draw_screen_pixel(x_axis_position, y_axis_position, 1)
        self.update_screen()

    @staticmethod
    def update_screen():
        """
        Updates the display by swapping the back buffer and screen buffer.
        According to the pygame documentation, the flip should wait for a
        vertical retrace when both HWSURFACE and DOUBLEBUF are set on the
        surface.
        """
        display.flip()

    @staticmethod
    def close():
        display.quit()
