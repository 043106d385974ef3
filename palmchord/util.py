"""Utils for palmchord."""

import math

pkg_name = 'palmchord'


def return_none(*args, **kwargs):
    """
    An empty function that returns None no matter the arguments.
    Often used as a "do nothing" general callback function.
    """
    return None


# --------------------------------------------------------------------------------------
# Numeric utils


def round_half_away(value: float) -> int:
    """
    Round to the nearest integer, halves going away from zero.

    >>> round_half_away(2.5)
    3
    >>> round_half_away(-2.5)
    -3
    >>> round_half_away(2.4999)
    2
    """
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def div_toward_zero(numerator: int, denominator: int) -> int:
    """
    Integer division truncating toward zero (``//`` floors instead).

    >>> div_toward_zero(7, 2)
    3
    >>> div_toward_zero(-7, 2)
    -3
    """
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def clamp(value, low, high):
    """
    >>> clamp(200, 0, 127)
    127
    >>> clamp(-3, 0, 127)
    0
    """
    return max(low, min(high, value))


# --------------------------------------------------------------------------------------
# Note names

NOTE_NAMES = ('C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B')


def midi_to_note_name(pitch: int) -> str:
    """
    Name of a MIDI pitch, with octave (MIDI 60 is C4).

    >>> midi_to_note_name(42)
    'F#2'
    >>> midi_to_note_name(60)
    'C4'
    """
    if not 0 <= pitch <= 127:
        raise ValueError(f"Not a MIDI pitch: {pitch}")
    return f"{NOTE_NAMES[pitch % 12]}{pitch // 12 - 1}"
