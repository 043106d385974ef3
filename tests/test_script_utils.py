import json
import logging

import pytest

from palmchord.config import PalmChordConfig
from palmchord.midi import RecordingSink
from palmchord.pipeline import StepResult
from palmchord.script_utils import (
    palmchord_cli,
    preview_features,
    resolve_source,
    run_palmchord,
    step_report,
    sweep_source,
)
from palmchord.sources import iter_recorded_samples


def test_resolve_source():
    assert resolve_source('sweep') is sweep_source
    with pytest.raises(ValueError):
        resolve_source('webcam')


def test_step_report_names_the_notes():
    result = StepResult(timestamp=0.0, position=(0, 0, 0), root=42, chord=(52, 42))
    report = step_report(result)
    assert report['root_name'] == 'F#2'
    assert report['chord_names'] == ['E3', 'F#2']
    json.dumps(report)


def test_preview_features():
    quiet = StepResult(timestamp=0.0, position=(1, 2, 3), delay_ms=800.0)
    assert 'chord' not in preview_features(quiet)
    played = StepResult(
        timestamp=0.0, position=(1, 2, 3), emitted=True, chord=(42, 45), velocity=9
    )
    assert preview_features(played)['chord'] == 'F#2 A2'


def test_run_palmchord_with_a_sweep(tmp_path):
    reports = []
    sink = RecordingSink()
    record = tmp_path / 'sweep.jsonl'
    n_steps = run_palmchord(
        config=PalmChordConfig(),
        source='sweep',
        sink=sink,
        log_steps=reports.append,
        record=str(record),
        n_steps=8,
    )
    assert n_steps == 8
    assert len(reports) == 8
    assert reports[0]['root_name'] == 'F#2'
    assert len(list(iter_recorded_samples(record))) == 8


def test_replay_needs_a_file():
    with pytest.raises(ValueError):
        run_palmchord(source='replay', sink=RecordingSink())


def test_cli_dry_run(capsys):
    palmchord_cli(
        'sweep', dry_run=True, no_pointer=True, max_steps=4, log_steps=True
    )
    out = capsys.readouterr().out
    assert '"root_name": "F#2"' in out


def test_cli_replay(tmp_path, capsys):
    record = tmp_path / 'rec.jsonl'
    run_palmchord(
        source='sweep',
        sink=RecordingSink(),
        record=str(record),
        n_steps=3,
        interval=0.01,
    )
    palmchord_cli(
        'replay',
        replay_file=str(record),
        dry_run=True,
        no_pointer=True,
        log_steps=True,
    )
    out = capsys.readouterr().out
    assert out.count('"emitted"') == 3


class ClosingSink(RecordingSink):
    closed = False

    def close(self):
        self.closed = True


def test_cli_closes_the_port_when_the_pointer_fails(monkeypatch):
    from palmchord import pointer, script_utils

    sink = ClosingSink()

    class NoDisplayPointer:
        def __init__(self):
            raise RuntimeError("no display")

    monkeypatch.setattr(script_utils, 'open_midi_sink', lambda port=None: sink)
    monkeypatch.setattr(pointer, 'PynputPointer', NoDisplayPointer)
    with pytest.raises(RuntimeError, match="no display"):
        palmchord_cli('sweep', port='synth', max_steps=2)
    assert sink.closed


def test_cli_reports_a_camera_that_will_not_open(monkeypatch, caplog):
    from palmchord import script_utils
    from palmchord.sources import SourceExhausted

    sink = ClosingSink()

    def unavailable_camera(config, **kwargs):
        raise SourceExhausted("Could not open camera 0")

    monkeypatch.setattr(script_utils, 'open_midi_sink', lambda port=None: sink)
    monkeypatch.setitem(script_utils.source_funcs, 'camera', unavailable_camera)
    with caplog.at_level(logging.ERROR, logger='palmchord.script_utils'):
        palmchord_cli('camera', no_pointer=True)
    assert "Could not open camera 0" in caplog.text
    assert sink.closed
    assert sink.messages == []
