"""Pinch gestures: pinching cycles through the instruments (MIDI programs)."""

import math
import logging
from dataclasses import dataclass
from typing import Optional

from palmchord.midi import MidiSink, change_instrument

logger = logging.getLogger(__name__)

DFLT_PINCH_THRESHOLD = 10.0
DFLT_COOLDOWN_SEC = 1.0


@dataclass
class GestureState:
    last_trigger_time: Optional[float] = None
    current_program: int = 0


class PinchDebouncer:
    """
    Turns a pinch (thumb-index distance under ``threshold``) into a program change,
    at most once per ``cooldown`` seconds.

    >>> from palmchord.midi import RecordingSink
    >>> debouncer = PinchDebouncer(RecordingSink(), channel=2)
    >>> debouncer.on_pinch(5.0, now=0.0)
    1
    >>> debouncer.on_pinch(5.0, now=0.5) is None  # still cooling down
    True
    >>> debouncer.on_pinch(50.0, now=2.0) is None  # not a pinch
    True
    >>> debouncer.on_pinch(5.0, now=2.0)
    2
    """

    def __init__(
        self,
        sink: MidiSink,
        *,
        channel: int = 2,
        threshold: float = DFLT_PINCH_THRESHOLD,
        cooldown: float = DFLT_COOLDOWN_SEC,
        state: Optional[GestureState] = None,
    ):
        self.sink = sink
        self.channel = channel
        self.threshold = threshold
        self.cooldown = cooldown
        self.state = state or GestureState()

    @property
    def program(self) -> int:
        return self.state.current_program

    def is_pinching(self, distance: float) -> bool:
        return math.isfinite(distance) and distance < self.threshold

    def cooled_down(self, now: float) -> bool:
        last = self.state.last_trigger_time
        return last is None or now - last >= self.cooldown

    def on_pinch(self, distance: float, now: float) -> Optional[int]:
        """The new program if ``distance`` triggered a change, else ``None``."""
        if not (self.is_pinching(distance) and self.cooled_down(now)):
            return None
        program = (self.state.current_program + 1) % 128
        change_instrument(self.sink, self.channel, program)
        self.state.current_program = program
        self.state.last_trigger_time = now
        logger.info("Pinch: switched to program %s", program)
        return program
