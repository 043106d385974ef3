"""Note lifetimes: which pitches are sounding, and when they must stop.

A pitch is either idle or sounding. ``note_on`` makes pitches sound until an
expiry time derived from the velocity (louder notes are shorter), and
``expire_due`` must be called regularly to send the matching note-offs. A pitch
is never sounding twice: re-triggering it sends its note-off first.

>>> from palmchord.midi import RecordingSink
>>> sink = RecordingSink()
>>> scheduler = NoteScheduler(sink, channel=1)
>>> event = scheduler.note_on([60, 64], velocity=127, program=0, now=10.0)
>>> scheduler.expires_at(60)
10.1
>>> scheduler.expire_due(10.05)
[]
>>> scheduler.expire_due(10.1)
[60, 64]
>>> scheduler.sounding
()
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from palmchord.midi import (
    MidiSink,
    send_safely,
    note_on,
    note_off,
    control_change,
    program_change,
)
from palmchord.util import clamp, round_half_away

logger = logging.getLogger(__name__)

DFLT_MIN_DURATION_MS = 100
DFLT_MAX_DURATION_MS = 5000
DFLT_ENVELOPE_CCS = (1, 2, 3, 4)


@dataclass(frozen=True)
class Envelope:
    attack: int = 70
    decay: int = 100
    sustain: int = 80
    release: int = 0

    def controller_values(self, controllers: Sequence[int] = DFLT_ENVELOPE_CCS):
        """``(controller, value)`` pairs in attack, decay, sustain, release order."""
        values = (self.attack, self.decay, self.sustain, self.release)
        return list(zip(controllers, values))


@dataclass(frozen=True)
class NoteEvent:
    pitches: Tuple[int, ...]
    velocity: int
    program: int
    envelope: Envelope
    issued_at: float
    expires_at: float

    @property
    def duration_ms(self) -> float:
        return (self.expires_at - self.issued_at) * 1000


def duration_ms(
    velocity: int,
    min_duration_ms: int = DFLT_MIN_DURATION_MS,
    max_duration_ms: int = DFLT_MAX_DURATION_MS,
) -> int:
    """
    How long a note of ``velocity`` lasts: inversely linear, from
    ``max_duration_ms`` at velocity 0 to ``min_duration_ms`` at 127.

    >>> duration_ms(0), duration_ms(64), duration_ms(127)
    (5000, 2531, 100)
    """
    velocity = clamp(int(velocity), 0, 127)
    span = max_duration_ms - min_duration_ms
    return clamp(max_duration_ms - velocity * span // 127, min_duration_ms, max_duration_ms)


def duration_to_cc(
    duration: float,
    min_duration_ms: int = DFLT_MIN_DURATION_MS,
    max_duration_ms: int = DFLT_MAX_DURATION_MS,
) -> int:
    """
    Express a duration as a controller value, ``min_duration_ms`` being 0 and
    ``max_duration_ms`` being 127.

    >>> duration_to_cc(100), duration_to_cc(5000), duration_to_cc(2550)
    (0, 127, 64)
    """
    span = max_duration_ms - min_duration_ms
    if span <= 0:
        return 0
    return clamp(round_half_away((duration - min_duration_ms) * 127 / span), 0, 127)


class NoteScheduler:
    """
    Tracks sounding pitches and their expiry times, and sends the MIDI messages
    for their starts and ends on ``channel``.

    Times are in seconds (``time.monotonic()`` or anything consistent with it).
    Failed sends are logged and skipped: the state moves on as if they'd been
    delivered.
    """

    def __init__(
        self,
        sink: MidiSink,
        *,
        channel: int = 2,
        min_duration_ms: int = DFLT_MIN_DURATION_MS,
        max_duration_ms: int = DFLT_MAX_DURATION_MS,
        envelope_ccs: Sequence[int] = DFLT_ENVELOPE_CCS,
    ):
        self.sink = sink
        self.channel = channel
        self.min_duration_ms = min_duration_ms
        self.max_duration_ms = max_duration_ms
        self.envelope_ccs = tuple(envelope_ccs)
        self._expiry: Dict[int, float] = {}

    def duration_ms(self, velocity: int) -> int:
        return duration_ms(velocity, self.min_duration_ms, self.max_duration_ms)

    @property
    def sounding(self) -> Tuple[int, ...]:
        return tuple(sorted(self._expiry))

    def is_sounding(self, pitch: int) -> bool:
        return pitch in self._expiry

    def expires_at(self, pitch: int) -> Optional[float]:
        return self._expiry.get(pitch)

    def note_on(
        self,
        pitches: Iterable[int],
        velocity: int,
        program: int,
        envelope: Optional[Envelope] = None,
        *,
        now: float,
    ) -> NoteEvent:
        """
        Start ``pitches``: retire the ones already sounding, then send the program
        change, the envelope controllers and a note-on per pitch, in that order.
        """
        pitches = tuple(dict.fromkeys(pitches))
        velocity = clamp(int(velocity), 0, 127)
        envelope = envelope or Envelope()
        expires_at = now + self.duration_ms(velocity) / 1000

        for pitch in pitches:
            if pitch in self._expiry:
                logger.debug("Retriggering %s: sending its note-off first", pitch)
                self._retire(pitch)

        send_safely(self.sink, program_change(self.channel, program))
        for controller, value in envelope.controller_values(self.envelope_ccs):
            send_safely(self.sink, control_change(self.channel, controller, value))
        for pitch in pitches:
            send_safely(self.sink, note_on(self.channel, pitch, velocity))
            self._expiry[pitch] = expires_at

        return NoteEvent(
            pitches=pitches,
            velocity=velocity,
            program=program,
            envelope=envelope,
            issued_at=now,
            expires_at=expires_at,
        )

    def expire_due(self, now: float) -> List[int]:
        """Send note-offs for (and forget) the pitches whose time is up."""
        due = sorted(pitch for pitch, t in self._expiry.items() if t <= now)
        for pitch in due:
            self._retire(pitch)
        return due

    def release_all(self) -> List[int]:
        """Send note-offs for every sounding pitch."""
        pitches = self.sounding
        for pitch in pitches:
            self._retire(pitch)
        return list(pitches)

    def forget_all(self) -> List[int]:
        """Stop tracking every pitch, without sending anything (for when the
        channel was silenced some other way, by an instrument change for example).
        """
        pitches = self.sounding
        self._expiry.clear()
        return list(pitches)

    def _retire(self, pitch: int):
        del self._expiry[pitch]
        send_safely(self.sink, note_off(self.channel, pitch, 0))
