"""Utility functions for running palmchord."""

import json
import logging
from dataclasses import asdict
from functools import partial
from typing import Callable, Dict, Optional, TypeVar, Union

import argh

from palmchord.config import PalmChordConfig
from palmchord.midi import MidiSink, RecordingSink, open_midi_sink, list_output_ports
from palmchord.pipeline import PalmChordPipeline, StepResult
from palmchord.pointer import PointerSink
from palmchord.scales import build_scale
from palmchord.sources import (
    SampleSource,
    SourceExhausted,
    ReplaySource,
    IterableSource,
    RecordingSource,
    linear_sweep,
)
from palmchord.util import midi_to_note_name

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# -------------------------------------------------------------------------------
# Object resolution
# -------------------------------------------------------------------------------

T = TypeVar('T')


def resolve_object(
    obj: Union[str, T],
    *,
    object_map: Dict[str, T],
    expected_type: type = None,
    error_message: str = None,
) -> T:
    """
    Resolves an object by either returning it directly if it's of the correct type,
    or looking it up in a mapping if it's a string.

    Args:
        obj: The object to resolve. Can be a string (to be looked up in object_map)
             or the object itself (if it's already of type T).
        object_map: A dictionary mapping strings to objects of type T.
        expected_type: (Optional) The expected type of the resolved object.
        error_message: (Optional) A custom error message to use if a ValueError
                       or TypeError is raised.

    Raises:
        TypeError: If obj is not a string or of the expected type.
        ValueError: If obj is a string but is not found in object_map.

    >>> resolve_object('sweep', object_map={'sweep': 1})
    1
    >>> resolve_object('nope', object_map={'sweep': 1})
    Traceback (most recent call last):
      ...
    ValueError: Unknown object identifier: nope
    """
    if isinstance(obj, str):
        if obj in object_map:
            resolved_obj = object_map[obj]
        else:
            msg = error_message or f"Unknown object identifier: {obj}"
            raise ValueError(msg)
    elif expected_type is None or isinstance(obj, expected_type):
        resolved_obj = obj
    else:
        msg = error_message or f"Expected type {expected_type}, got {type(obj)}"
        raise TypeError(msg)

    if expected_type and not isinstance(resolved_obj, expected_type):
        msg = (
            error_message
            or f"Resolved object should be of type {expected_type}, got {type(resolved_obj)}"
        )
        raise TypeError(msg)

    return resolved_obj


# -------------------------------------------------------------------------------
# Sample sources
# -------------------------------------------------------------------------------


def camera_source(config: PalmChordConfig, *, show: bool = True, **kwargs):
    """Webcam hand tracking. Imported here: OpenCV and MediaPipe are heavy."""
    from palmchord.hand_features import CameraHandSource

    scale = build_scale(config.base_pitch, config.scale_intervals, config.scale_octaves)
    return CameraHandSource(config, show=show, scale=scale, **kwargs)


def replay_source(config: PalmChordConfig, *, replay_file=None, realtime=True, **kwargs):
    """Samples recorded with ``--record``."""
    if not replay_file:
        raise ValueError("The replay source needs a replay_file")
    return ReplaySource.from_jsonl(replay_file, realtime=realtime)


def sweep_source(config: PalmChordConfig, *, n_steps=32, interval=1.0, **kwargs):
    """A hand moving across the whole tracking box, left to right."""
    start = (config.min_x, config.min_y, config.min_z)
    stop = (config.max_x, config.max_y, config.max_z)
    return IterableSource(linear_sweep(start, stop, n_steps, interval=interval))


source_funcs = {
    'camera': camera_source,
    'replay': replay_source,
    'sweep': sweep_source,
}

resolve_source = partial(resolve_object, object_map=source_funcs)


# -------------------------------------------------------------------------------
# Logging utilities
# -------------------------------------------------------------------------------


def setup_logging(level: Union[str, int] = 'INFO'):
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


def print_json_if_possible(x):
    """Prints the input (as JSON if possible) and adds a newline."""
    try:
        x = json.dumps(x)
    except (TypeError, ValueError):
        pass
    print(x)
    print()


def step_report(result: StepResult) -> dict:
    """The values of a step, with note names, ready for printing."""
    report = asdict(result)
    if result.root is not None:
        report['root_name'] = midi_to_note_name(result.root)
        report['chord_names'] = [midi_to_note_name(p) for p in result.chord]
    return report


def preview_features(result: StepResult) -> dict:
    """The few values worth showing on the camera preview."""
    features = {'position': result.position, 'wait (ms)': result.delay_ms}
    if result.emitted:
        features['chord'] = ' '.join(midi_to_note_name(p) for p in result.chord)
        features['velocity'] = result.velocity
        features['duration (ms)'] = result.duration_ms
    return features


def _chain(*funcs):
    funcs = [f for f in funcs if f is not None]

    def chained(x):
        for func in funcs:
            func(x)

    return chained


# -------------------------------------------------------------------------------
# Main run function
# -------------------------------------------------------------------------------

DFLT_SOURCE = 'camera'


def run_palmchord(
    *,
    config: Optional[PalmChordConfig] = None,
    source: Union[str, Callable, SampleSource] = DFLT_SOURCE,
    sink: Optional[MidiSink] = None,
    pointer: Optional[PointerSink] = None,
    log_steps: Optional[Callable] = None,
    max_steps: Optional[int] = None,
    stop_event=None,
    record: Optional[str] = None,
    **source_kwargs,
) -> int:
    """
    Play chords from a sample source until it's exhausted, stopped, or interrupted.

    Args:
        config: Instrument settings (defaults if None)
        source: A SampleSource, or the name (or factory) of one (see ``source_funcs``)
        sink: Where MIDI goes. None opens the first MIDI output port.
        pointer: Pointer to move along with the hand (or None)
        log_steps: Called with a report (dict) of every step (or None)
        max_steps: Stop after that many steps
        stop_event: Stop when this ``threading.Event`` is set
        record: Filepath to record the samples to, for later replay
        source_kwargs: Passed on to the source factory

    Returns:
        The number of steps played
    """
    config = config or PalmChordConfig()
    if not isinstance(source, SampleSource):
        source_factory = resolve_source(source)
        source = source_factory(config, **source_kwargs)
    preview = source if hasattr(source, 'features') else None
    if record:
        source = RecordingSource(source, record)
    own_sink = sink is None
    if own_sink:
        sink = open_midi_sink()

    def _update_preview(result):
        preview.features = preview_features(result)

    on_step = _chain(
        (lambda result: log_steps(step_report(result))) if log_steps else None,
        _update_preview if preview is not None else None,
    )

    pipeline = PalmChordPipeline(config, sink, pointer=pointer, on_step=on_step)
    try:
        return pipeline.run(source, max_steps=max_steps, stop_event=stop_event)
    finally:
        source.close()
        if own_sink:
            sink.close()


# -------------------------------------------------------------------------------
# Command line interface
# -------------------------------------------------------------------------------


@argh.arg('--max-steps', type=int)
@argh.arg('--base-pitch', type=int)
@argh.arg('--midi-channel', type=int)
@argh.arg('--base-delay-ms', type=float)
def palmchord_cli(
    source: str = DFLT_SOURCE,
    replay_file: str = None,
    port: str = None,
    list_ports: bool = False,
    dry_run: bool = False,
    max_steps: int = None,
    config: str = None,
    base_pitch: int = None,
    midi_channel: int = None,
    base_delay_ms: float = None,
    no_pointer: bool = False,
    no_preview: bool = False,
    log_steps: bool = False,
    log_level: str = 'INFO',
    record: str = None,
):
    """
    Play chords with your hand.

    Args:
        source: Where samples come from: camera, replay or sweep
        replay_file: Samples to replay (JSON lines, as written by --record)
        port: Part of the name of the MIDI output port to use
        list_ports: List the MIDI output ports and exit
        dry_run: Log MIDI messages instead of sending them
        max_steps: Stop after that many steps
        config: JSON file of settings (see PalmChordConfig)
        base_pitch: Lowest pitch of the scale
        midi_channel: MIDI channel (1 to 16)
        base_delay_ms: Longest wait between chords, in milliseconds
        no_pointer: Don't move the mouse pointer with the hand
        no_preview: Don't show the camera preview
        log_steps: Print what every step did, as JSON
        log_level: Logging level (DEBUG, INFO, WARNING...)
        record: Record the samples to this file
    """
    setup_logging(log_level)

    if list_ports:
        print("Available MIDI output ports:")
        for name in list_output_ports():
            print(f"  - {name}")
        return

    cfg = PalmChordConfig.from_json(config) if config else PalmChordConfig()
    cfg = cfg.with_overrides(
        base_pitch=base_pitch, midi_channel=midi_channel, base_delay_ms=base_delay_ms
    )

    source_kwargs = {}
    if source == 'camera':
        source_kwargs['show'] = not no_preview
    elif source == 'replay':
        source_kwargs['replay_file'] = replay_file

    sink = RecordingSink(log=True) if dry_run else open_midi_sink(port)
    try:
        pointer = None
        if not no_pointer:
            from palmchord.pointer import PynputPointer

            pointer = PynputPointer()

        run_palmchord(
            config=cfg,
            source=source,
            sink=sink,
            pointer=pointer,
            log_steps=print_json_if_possible if log_steps else None,
            max_steps=max_steps,
            record=record,
            **source_kwargs,
        )
    except SourceExhausted as e:
        # raised before the first sample, e.g. by a camera that won't open
        logger.error("Could not start playing: %s", e)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        sink.close()
