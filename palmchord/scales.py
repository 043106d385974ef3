"""Scales, quantization and chords.

Everything here works with MIDI pitches (ints in [0, 127]). A scale is a plain
tuple of strictly ascending pitches:

>>> scale = build_scale(42, MINOR_INTERVALS, 3)
>>> len(scale), scale[0], scale[-1]
(21, 42, 76)
>>> nearest_in_scale(50, scale)  # 49 and 51 are equally close: lowest wins
49
>>> build_chord(scale_index(49, scale), scale)
(59, 49, 52, 56)
"""

from bisect import bisect_left
from typing import Sequence, Tuple

import numpy as np

from palmchord.config import ConfigurationError, MINOR_INTERVALS, DFLT_CHORD_OFFSETS
from palmchord.util import round_half_away, clamp, midi_to_note_name

DFLT_BASE_PITCH = 42
OCTAVE_SIZE = 12

Scale = Tuple[int, ...]
Range = Tuple[float, float]

# -------------------------------------------------------------------------------
# Scale construction
# -------------------------------------------------------------------------------


def build_scale(
    base_pitch: int = DFLT_BASE_PITCH,
    intervals: Sequence[int] = MINOR_INTERVALS,
    octaves: int = 3,
) -> Scale:
    """
    Scale of ``octaves`` octaves starting at ``base_pitch``.

    >>> build_scale(60, (0, 2, 4, 5, 7, 9, 11), 1)
    (60, 62, 64, 65, 67, 69, 71)
    """
    return tuple(
        base_pitch + OCTAVE_SIZE * octave + interval
        for octave in range(octaves)
        for interval in intervals
    )


def validate_scale(scale: Sequence[int]) -> Scale:
    """
    Return ``scale`` as a tuple, or raise ``ConfigurationError`` if it can't be
    used for quantization.

    >>> validate_scale([42, 44, 45])
    (42, 44, 45)
    >>> validate_scale([44, 42])
    Traceback (most recent call last):
      ...
    palmchord.config.ConfigurationError: Scale is not strictly ascending: (44, 42)
    """
    scale = tuple(scale)
    if not scale:
        raise ConfigurationError("Scale is empty")
    if any(a >= b for a, b in zip(scale, scale[1:])):
        raise ConfigurationError(f"Scale is not strictly ascending: {scale}")
    if scale[0] < 0 or scale[-1] > 127:
        raise ConfigurationError(f"Scale leaves the MIDI range: {scale}")
    return scale


def scale_note_names(scale: Sequence[int]):
    return [midi_to_note_name(pitch) for pitch in scale]


# -------------------------------------------------------------------------------
# Range mapping
# -------------------------------------------------------------------------------


class MidiRangeMapper:
    """
    A callable class that maps a sensor value onto a MIDI value.
    Precomputes scaling factors for better performance.

    ``source_range`` is mapped onto ``[base, base + dest_range]``, rounded and
    clamped to ``[0, 127]``. The source range may be inverted (min > max).

    >>> mapper = MidiRangeMapper((-300, 300), 21, base=42)
    >>> mapper(-300), mapper(-500), mapper(300)
    (42, 35, 63)
    >>> mapper(-2000)  # Far below range: clamped to MIDI
    0
    >>> MidiRangeMapper((500, 220), 127, base=42)(220)  # Above 127
    127
    """

    def __init__(self, source_range: Range, dest_range: float, *, base=DFLT_BASE_PITCH):
        """
        Initialize the mapper.

        Args:
            source_range: The range of the input value (min, max)
            dest_range: Width of the destination range
            base: The destination value ``min`` maps to
        """
        self.source_min, self.source_max = source_range
        self.dest_range = dest_range
        self.base = base

        source_span = self.source_max - self.source_min
        if source_span == 0:
            raise ConfigurationError(
                f"Can't map from a range with no width: {source_range}"
            )
        # Precompute frequently used values
        self._scale_factor = dest_range / source_span
        self._offset = -self.source_min * self._scale_factor + base

    def __call__(self, value: float) -> int:
        mapped = value * self._scale_factor + self._offset
        return clamp(round_half_away(mapped), 0, 127)


def map_linear(
    value: float,
    source_min: float,
    source_max: float,
    dest_range: float,
    *,
    base: int = DFLT_BASE_PITCH,
) -> int:
    """
    Functional form of ``MidiRangeMapper``.

    >>> map_linear(-300, -300, 300, 21)
    42
    >>> map_linear(300, -300, 300, 21)
    63
    """
    return MidiRangeMapper((source_min, source_max), dest_range, base=base)(value)


# -------------------------------------------------------------------------------
# Quantization
# -------------------------------------------------------------------------------


def nearest_in_scale(pitch: int, scale: Sequence[int]) -> int:
    """
    The member of ``scale`` closest to ``pitch``. Exact ties go to the lower
    pitch (the first one in ascending order).

    >>> nearest_in_scale(46, (42, 44, 45, 47))
    45
    >>> nearest_in_scale(0, (42, 44))
    42
    """
    if len(scale) == 0:
        raise ConfigurationError("Can't quantize to an empty scale")
    scale_arr = np.asarray(scale)
    # argmin returns the first occurrence of the minimum
    return int(scale_arr[np.argmin(np.abs(scale_arr - pitch))])


def scale_index(pitch: int, scale: Sequence[int]) -> int:
    """
    Position of ``pitch`` in ``scale``.

    >>> scale_index(45, (42, 44, 45, 47))
    2
    """
    idx = bisect_left(scale, pitch)
    if idx == len(scale) or scale[idx] != pitch:
        raise ValueError(f"{pitch} is not in the scale")
    return idx


# -------------------------------------------------------------------------------
# Chords
# -------------------------------------------------------------------------------


def build_chord(
    root_index: int,
    scale: Sequence[int],
    offsets: Sequence[int] = DFLT_CHORD_OFFSETS,
) -> Tuple[int, ...]:
    """
    The pitches found at ``root_index + offset`` in ``scale``, in ``offsets`` order.

    Indices beyond the top of the scale are clamped to its last pitch, so a root
    near the top gives a smaller chord instead of an error.

    >>> scale = build_scale(42, MINOR_INTERVALS, 3)
    >>> build_chord(0, scale)
    (52, 42, 45, 49)
    >>> build_chord(19, scale)
    (76, 75)
    """
    last = len(scale) - 1
    pitches = (scale[clamp(root_index + offset, 0, last)] for offset in offsets)
    # clamping can repeat pitches; keep the first occurrence
    return tuple(dict.fromkeys(pitches))
