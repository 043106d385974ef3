"""Smoothing of raw hand positions."""

import math
import logging
from collections import deque
from typing import Tuple

from palmchord.util import div_toward_zero

logger = logging.getLogger(__name__)

Position = Tuple[int, int, int]

DFLT_WINDOW = 3
ORIGIN = (0, 0, 0)


class MovingAverage:
    """
    Moving average over the last ``window`` positions.

    >>> ma = MovingAverage(window=3)
    >>> ma.current_position()
    (0, 0, 0)
    >>> for x in (10, 20, 31, 40):
    ...     ma.add_sample(x, -x, 0)
    >>> ma.current_position()  # mean of the last 3, truncated toward zero
    (30, -30, 0)
    """

    def __init__(self, window: int = DFLT_WINDOW):
        if window < 1:
            raise ValueError(f"window must be at least 1, got {window}")
        self.window = window
        self.samples = deque(maxlen=window)

    def add_sample(self, x: int, y: int, z: int):
        self.samples.append((int(x), int(y), int(z)))

    def current_position(self) -> Position:
        if not self.samples:
            return ORIGIN
        count = len(self.samples)
        return tuple(
            div_toward_zero(sum(s[axis] for s in self.samples), count)
            for axis in range(3)
        )

    def __len__(self):
        return len(self.samples)


def is_valid_position(x, y, z) -> bool:
    """
    >>> is_valid_position(1.0, 2.0, 3.0)
    True
    >>> is_valid_position(1.0, float('nan'), 3.0)
    False
    """
    return all(math.isfinite(v) for v in (x, y, z))


def smooth_sample(sample, smoother: MovingAverage) -> Position:
    """
    Feed a sample's coordinates to ``smoother`` and return the smoothed position.

    An invalid sample (a non-finite coordinate) is not inserted: the origin is
    returned instead, so that it doesn't poison the average.
    """
    if not is_valid_position(sample.x, sample.y, sample.z):
        logger.debug("Ignoring invalid sample: %s", sample)
        return ORIGIN
    # int() truncates toward zero
    smoother.add_sample(int(sample.x), int(sample.y), int(sample.z))
    return smoother.current_position()
