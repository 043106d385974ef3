"""Configuration of a palmchord session.

All the knobs of the instrument live in a single frozen dataclass,
:class:`PalmChordConfig`. It is validated once, at construction, so that
everything that could go wrong with the numbers (an empty or out-of-range scale,
a tracking box with zero width, durations in the wrong order...) fails before
any MIDI message is sent.

>>> cfg = PalmChordConfig()
>>> cfg.base_pitch, cfg.scale_octaves, cfg.midi_channel
(42, 3, 2)
>>> cfg.with_overrides(base_pitch=50).base_pitch
50
"""

import json
import math
from dataclasses import dataclass, fields, replace, asdict
from typing import Tuple, Dict, Any

MINOR_INTERVALS = (0, 2, 3, 5, 7, 9, 10)
DFLT_CHORD_OFFSETS = (6, 0, 2, 4)

# Controller numbers
CC_MODULATION = 1
CC_CUTOFF = 74
CC_REVERB = 91
CC_DEPTH = 92
CC_ALL_NOTES_OFF = 123


class ConfigurationError(ValueError):
    """Raised at startup when the configuration can't produce a playable setup."""


@dataclass(frozen=True)
class PalmChordConfig:
    # Scale
    base_pitch: int = 42  # F#2
    scale_octaves: int = 3
    scale_intervals: Tuple[int, ...] = MINOR_INTERVALS
    chord_offsets: Tuple[int, ...] = DFLT_CHORD_OFFSETS

    # Smoothing
    moving_average_window: int = 3

    # MIDI
    midi_channel: int = 2
    attack: int = 70
    decay: int = 100
    sustain: int = 80
    envelope_ccs: Tuple[int, int, int, int] = (1, 2, 3, 4)
    expression_ccs: bool = True

    # Timing
    base_delay_ms: float = 1000
    min_rate: float = 0.1
    max_rate: float = 0.8
    min_duration_ms: int = 100
    max_duration_ms: int = 5000

    # Gestures
    pinch_threshold: float = 10.0
    gesture_cooldown_sec: float = 1

    # Tracking box (sensor units, millimeters for a Leap-like device).
    # min_y > max_y on purpose: the hand going up lowers the value.
    min_x: float = -300.0
    max_x: float = 300.0
    min_y: float = 500.0
    max_y: float = 220.0
    min_z: float = -100.0
    max_z: float = 0.0

    # Pointer
    screen_width: int = 1920
    screen_height: int = 1020

    def __post_init__(self):
        # JSON gives lists; keep the tuples hashable and immutable
        for name in ('scale_intervals', 'chord_offsets', 'envelope_ccs'):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        self.validate()

    def validate(self):
        _check_midi_value('base_pitch', self.base_pitch)
        for name in ('attack', 'decay', 'sustain'):
            _check_midi_value(name, getattr(self, name))
        for cc in self.envelope_ccs:
            _check_midi_value('envelope_ccs', cc)
        if len(self.envelope_ccs) != 4:
            raise ConfigurationError(
                f"envelope_ccs needs 4 controllers, got {self.envelope_ccs}"
            )
        if not 1 <= self.midi_channel <= 16:
            raise ConfigurationError(
                f"midi_channel must be in [1, 16], got {self.midi_channel}"
            )
        if self.scale_octaves < 1:
            raise ConfigurationError("scale_octaves must be at least 1")
        if self.moving_average_window < 1:
            raise ConfigurationError("moving_average_window must be at least 1")
        if not self.scale_intervals:
            raise ConfigurationError("scale_intervals is empty")
        if not self.chord_offsets:
            raise ConfigurationError("chord_offsets is empty")
        intervals = self.scale_intervals
        if any(a >= b for a, b in zip(intervals, intervals[1:])) or not (
            0 <= intervals[0] and intervals[-1] < 12
        ):
            raise ConfigurationError(
                f"scale_intervals must ascend strictly within an octave: {intervals}"
            )
        top = self.base_pitch + 12 * (self.scale_octaves - 1) + intervals[-1]
        if top > 127:
            raise ConfigurationError(
                f"The scale reaches pitch {top}, above 127. "
                "Lower base_pitch or scale_octaves."
            )
        if not 0 < self.min_duration_ms <= self.max_duration_ms:
            raise ConfigurationError(
                "Durations must satisfy 0 < min_duration_ms <= max_duration_ms, "
                f"got {self.min_duration_ms}, {self.max_duration_ms}"
            )
        if not 0 <= self.min_rate <= self.max_rate:
            raise ConfigurationError("Rates must satisfy 0 <= min_rate <= max_rate")
        if self.base_delay_ms < 0:
            raise ConfigurationError("base_delay_ms can't be negative")
        if self.gesture_cooldown_sec < 0:
            raise ConfigurationError("gesture_cooldown_sec can't be negative")
        for axis in 'xyz':
            lo, hi = getattr(self, f'min_{axis}'), getattr(self, f'max_{axis}')
            if not (math.isfinite(lo) and math.isfinite(hi)) or lo == hi:
                raise ConfigurationError(
                    f"The {axis} tracking range [{lo}, {hi}] has no width"
                )
        if self.screen_width <= 0 or self.screen_height <= 0:
            raise ConfigurationError("Screen dimensions must be positive")

    @property
    def x_range(self):
        return self.min_x, self.max_x

    @property
    def y_range(self):
        return self.min_y, self.max_y

    @property
    def z_range(self):
        return self.min_z, self.max_z

    def with_overrides(self, **overrides) -> 'PalmChordConfig':
        """A copy with some fields changed. ``None`` values are ignored."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'PalmChordConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**d)

    @classmethod
    def from_json(cls, filepath) -> 'PalmChordConfig':
        with open(filepath) as f:
            return cls.from_dict(json.load(f))


def _check_midi_value(name, value):
    if not 0 <= value <= 127:
        raise ConfigurationError(f"{name} must be in [0, 127], got {value}")
