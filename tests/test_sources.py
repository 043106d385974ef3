import math

import pytest

from palmchord import sources
from palmchord.sources import (
    IterableSource,
    RecordingSource,
    ReplaySource,
    Sample,
    SourceExhausted,
    iter_recorded_samples,
    linear_sweep,
    record_samples,
)


def test_iterable_source_runs_out():
    source = IterableSource([Sample(1, 2, 3), None])
    assert source.next() == Sample(1, 2, 3)
    assert source.next() is None
    with pytest.raises(SourceExhausted):
        source.next()


def test_recorded_samples_replay_identically(tmp_path):
    samples = [
        Sample(1.5, 2.0, -3.0, tilt=0.2, pinch=4.0, timestamp=0.0),
        Sample(math.nan, 0.0, 0.0, timestamp=0.1),
        Sample(0.0, 0.0, 0.0, timestamp=0.2),  # pinch is inf
    ]
    filepath = tmp_path / 'samples.jsonl'
    assert record_samples(samples, filepath) == 3
    replayed = list(iter_recorded_samples(filepath))
    assert replayed[0] == samples[0]
    assert math.isnan(replayed[1].x)
    assert replayed[2].pinch == math.inf


def test_recording_source_skips_timeouts(tmp_path):
    filepath = tmp_path / 'rec.jsonl'
    inner = IterableSource([Sample(1, 1, 1, timestamp=1.0), None, Sample(2, 2, 2)])
    with RecordingSource(inner, filepath) as source:
        for _ in range(3):
            source.next()
    replay = ReplaySource.from_jsonl(filepath)
    assert replay.next().x == 1
    assert replay.next().x == 2
    with pytest.raises(SourceExhausted):
        replay.next()


def test_realtime_replay_keeps_the_pace(monkeypatch):
    sleeps = []
    monkeypatch.setattr(sources.time, 'monotonic', lambda: 0.0)
    monkeypatch.setattr(sources.time, 'sleep', sleeps.append)
    source = ReplaySource(
        [Sample(0, 0, 0, timestamp=100.0), Sample(0, 0, 0, timestamp=100.5)],
        realtime=True,
    )
    source.next()
    source.next()
    assert sleeps == [0.0, 0.5]


def test_linear_sweep():
    samples = list(linear_sweep((0, 10, 0), (10, 0, -4), 5, interval=0.5, t0=2.0))
    assert [s.x for s in samples] == [0.0, 2.5, 5.0, 7.5, 10.0]
    assert samples[-1].y == 0.0
    assert samples[-1].z == -4.0
    assert samples[-1].timestamp == 4.0
    with pytest.raises(ValueError):
        list(linear_sweep((0, 0, 0), (1, 1, 1), 1))
