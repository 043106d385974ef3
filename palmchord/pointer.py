"""Moving the screen pointer along with the hand."""

from typing import Tuple

Range = Tuple[float, float]


def map_to_screen(
    x: float,
    y: float,
    x_range: Range,
    y_range: Range,
    screen_size: Tuple[int, int] = (1920, 1020),
) -> Tuple[int, int]:
    """
    Pixel coordinates of a position of the tracking box. Not clamped: a hand out
    of the box gives a point out of the screen.

    >>> map_to_screen(0, 360, (-300, 300), (500, 220))
    (960, 510)
    """
    width, height = screen_size
    screen_x = (x - x_range[0]) / (x_range[1] - x_range[0]) * width
    screen_y = (y - y_range[0]) / (y_range[1] - y_range[0]) * height
    return int(screen_x), int(screen_y)


class PointerSink:
    """Base of pointer sinks. Subclasses implement ``move_to``."""

    def move_to(self, x: int, y: int):
        raise NotImplementedError


class PynputPointer(PointerSink):
    """Moves the system mouse pointer, with ``pynput``."""

    def __init__(self):
        # pynput connects to the display server on import
        from pynput.mouse import Controller

        self._mouse = Controller()

    def move_to(self, x: int, y: int):
        self._mouse.position = (x, y)
