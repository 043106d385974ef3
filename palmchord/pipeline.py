"""The per-sample pipeline, from hand samples to MIDI messages.

Each step: smooth the position, move the pointer, and, if the rate gate is open,
turn the position into a chord (pitch from x, velocity from y, modulation depth
from z) and play it. Then stop the notes whose time is up, and check for a pinch.

All the state that lives across steps is held by a :class:`Session`, so that a
pipeline is entirely determined by its config and the samples it's fed:

>>> from palmchord.midi import RecordingSink
>>> from palmchord.sources import Sample
>>> pipeline = PalmChordPipeline(PalmChordConfig(), RecordingSink())
>>> result = pipeline.step(Sample(-300, 500, -100, timestamp=0.0))
>>> result.root, result.chord, result.velocity
(42, (52, 42, 45, 49), 42)
>>> pipeline.step(Sample(-300, 500, -100, timestamp=5.0)).emitted  # didn't move
False
"""

import math
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from palmchord.config import (
    PalmChordConfig,
    CC_CUTOFF,
    CC_REVERB,
    CC_DEPTH,
    CC_MODULATION,
)
from palmchord.gestures import PinchDebouncer
from palmchord.midi import MidiSink, send_safely, control_change, change_instrument
from palmchord.pointer import PointerSink, map_to_screen
from palmchord.scales import (
    MidiRangeMapper,
    build_scale,
    validate_scale,
    nearest_in_scale,
    scale_index,
    build_chord,
)
from palmchord.scheduler import NoteScheduler, Envelope, duration_to_cc
from palmchord.smoothing import MovingAverage, smooth_sample, is_valid_position
from palmchord.sources import Sample, SampleSource, SourceExhausted, DFLT_TIMEOUT_MS
from palmchord.util import clamp, return_none

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------------
# Rate gate
# -------------------------------------------------------------------------------


def emission_delay_ms(
    tilt: float, base_delay_ms: float = 1000, min_rate: float = 0.1, max_rate: float = 0.8
) -> float:
    """
    Minimum time between two chords: the flatter the hand, the longer.

    >>> emission_delay_ms(0.0), emission_delay_ms(0.5), emission_delay_ms(-1.0)
    (800.0, 500.0, 100.0)
    """
    if not math.isfinite(tilt):
        tilt = 0.0
    rate = clamp(1.0 - abs(tilt), min_rate, max_rate)
    return base_delay_ms * rate


def rate_gate_open(
    now: float, last_emission: Optional[float], delay_ms: float, moved: bool
) -> bool:
    """
    >>> rate_gate_open(1.0, 0.5, 400, moved=True)
    True
    >>> rate_gate_open(1.0, 0.8, 400, moved=True)
    False
    >>> rate_gate_open(0.18, 0.08, 100, moved=True)  # exactly 100 ms
    True
    >>> rate_gate_open(1.0, None, 400, moved=False)
    False
    """
    if not moved:
        return False
    if last_emission is None:
        return True
    # compare whole milliseconds: in float seconds, 0.18 - 0.08 is under 0.1
    return round((now - last_emission) * 1000) >= round(delay_ms)


# -------------------------------------------------------------------------------
# Session and results
# -------------------------------------------------------------------------------


@dataclass
class Session:
    """Everything a pipeline remembers from one step to the next."""

    smoother: MovingAverage
    scheduler: NoteScheduler
    debouncer: PinchDebouncer
    last_emission: Optional[float] = None
    last_position: Tuple[int, int] = (0, 0)


@dataclass
class StepResult:
    timestamp: float
    position: Tuple[int, int, int]
    valid_sample: bool = True
    screen: Optional[Tuple[int, int]] = None
    delay_ms: float = 0.0
    emitted: bool = False
    pitch: Optional[int] = None
    root: Optional[int] = None
    chord: Tuple[int, ...] = ()
    velocity: Optional[int] = None
    depth: Optional[int] = None
    duration_ms: Optional[int] = None
    released: List[int] = field(default_factory=list)
    program_change: Optional[int] = None


# -------------------------------------------------------------------------------
# Pipeline
# -------------------------------------------------------------------------------


class PalmChordPipeline:
    """
    Plays chords from hand samples.

    Args:
        config: The instrument's settings
        sink: Where MIDI messages go
        pointer: If given, the pointer follows the hand
        clock: Gives the current time (seconds) when a source times out
        on_step: Called with the ``StepResult`` of every step
    """

    def __init__(
        self,
        config: PalmChordConfig = PalmChordConfig(),
        sink: Optional[MidiSink] = None,
        *,
        pointer: Optional[PointerSink] = None,
        clock: Callable[[], float] = time.monotonic,
        on_step: Optional[Callable[[StepResult], None]] = None,
    ):
        if sink is None:
            raise ValueError("A MIDI sink is needed")
        self.config = config
        self.sink = sink
        self.pointer = pointer
        self.clock = clock
        self.on_step = on_step or return_none

        self.scale = validate_scale(
            build_scale(config.base_pitch, config.scale_intervals, config.scale_octaves)
        )
        n = len(self.scale)
        base = config.base_pitch
        self.pitch_mapper = MidiRangeMapper(config.x_range, n, base=base)
        self.velocity_mapper = MidiRangeMapper(config.y_range, 127, base=base)
        self.depth_mapper = MidiRangeMapper(config.z_range, n, base=base)

        self.session = self.new_session()

    def new_session(self) -> Session:
        config = self.config
        return Session(
            smoother=MovingAverage(config.moving_average_window),
            scheduler=NoteScheduler(
                self.sink,
                channel=config.midi_channel,
                min_duration_ms=config.min_duration_ms,
                max_duration_ms=config.max_duration_ms,
                envelope_ccs=config.envelope_ccs,
            ),
            debouncer=PinchDebouncer(
                self.sink,
                channel=config.midi_channel,
                threshold=config.pinch_threshold,
                cooldown=config.gesture_cooldown_sec,
            ),
        )

    @property
    def program(self) -> int:
        return self.session.debouncer.program

    def start(self):
        """Put the channel in a known state: silent, on the current program."""
        change_instrument(self.sink, self.config.midi_channel, self.program)

    def step(self, sample: Sample) -> StepResult:
        config = self.config
        session = self.session
        now = sample.timestamp

        x, y, z = smooth_sample(sample, session.smoother)
        result = StepResult(
            timestamp=now,
            position=(x, y, z),
            valid_sample=is_valid_position(sample.x, sample.y, sample.z),
        )

        if self.pointer is not None:
            result.screen = map_to_screen(
                x,
                y,
                config.x_range,
                config.y_range,
                (config.screen_width, config.screen_height),
            )
            self.pointer.move_to(*result.screen)

        result.delay_ms = emission_delay_ms(
            sample.tilt, config.base_delay_ms, config.min_rate, config.max_rate
        )
        moved = (x, y) != session.last_position
        if rate_gate_open(now, session.last_emission, result.delay_ms, moved):
            self._play(result, now)
            result.emitted = True
            session.last_emission = now

        result.released = session.scheduler.expire_due(now)
        result.program_change = session.debouncer.on_pinch(sample.pinch, now)
        if result.program_change is not None:
            # the instrument change silenced the channel
            session.scheduler.forget_all()
        session.last_position = (x, y)

        self.on_step(result)
        return result

    def _play(self, result: StepResult, now: float):
        config = self.config
        x, y, z = result.position
        channel = config.midi_channel
        scheduler = self.session.scheduler

        result.pitch = self.pitch_mapper(x)
        result.velocity = self.velocity_mapper(y)
        result.depth = self.depth_mapper(z)
        result.root = nearest_in_scale(result.pitch, self.scale)
        result.chord = build_chord(
            scale_index(result.root, self.scale), self.scale, config.chord_offsets
        )
        result.duration_ms = scheduler.duration_ms(result.velocity)
        release = duration_to_cc(
            result.duration_ms, config.min_duration_ms, config.max_duration_ms
        )
        envelope = Envelope(config.attack, config.decay, config.sustain, release)

        scheduler.note_on(result.chord, result.velocity, self.program, envelope, now=now)
        if config.expression_ccs:
            for controller, value in (
                (CC_CUTOFF, result.velocity),
                (CC_REVERB, result.velocity),
                (CC_DEPTH, release),
                (CC_MODULATION, result.depth),
            ):
                send_safely(self.sink, control_change(channel, controller, value))
        logger.debug(
            "Chord %s (root %s) velocity %s for %s ms",
            result.chord,
            result.root,
            result.velocity,
            result.duration_ms,
        )

    def tick(self, now: float) -> List[int]:
        """Stop the notes that are due, without a new sample."""
        return self.session.scheduler.expire_due(now)

    def release_all(self) -> List[int]:
        return self.session.scheduler.release_all()

    def run(
        self,
        source: SampleSource,
        *,
        max_steps: Optional[int] = None,
        stop_event=None,
        timeout_ms: float = DFLT_TIMEOUT_MS,
    ) -> int:
        """
        Feed the samples of ``source`` through the pipeline until ``stop_event``
        (anything with an ``is_set()`` method) is set, ``max_steps`` samples or
        timeouts went by, or the source is exhausted.
        Sounding notes are released on the way out. Returns the number of steps.
        """
        logger.info("Playing on MIDI channel %s", self.config.midi_channel)
        self.start()
        n_steps = 0
        try:
            while max_steps is None or n_steps < max_steps:
                if stop_event is not None and stop_event.is_set():
                    break
                try:
                    sample = source.next(timeout_ms)
                except SourceExhausted:
                    break
                n_steps += 1
                if sample is None:
                    self.tick(self.clock())
                else:
                    self.step(sample)
        finally:
            released = self.release_all()
            logger.info(
                "Stopped after %s steps (released %s notes)", n_steps, len(released)
            )
        return n_steps
