"""Where hand samples come from.

A sample source has a ``next(timeout_ms)`` method returning the next
:class:`Sample`, ``None`` if nothing came in within ``timeout_ms``, and raising
:class:`SourceExhausted` when no more samples will ever come.

>>> source = IterableSource([Sample(0, 0, 0, timestamp=1.0)])
>>> source.next()
Sample(x=0, y=0, z=0, tilt=0.0, pinch=inf, timestamp=1.0)
>>> source.next()
Traceback (most recent call last):
  ...
palmchord.sources.SourceExhausted: No more samples
"""

import json
import math
import time
from dataclasses import dataclass, asdict
from typing import Iterable, Iterator, Optional

DFLT_TIMEOUT_MS = 100


@dataclass(frozen=True)
class Sample:
    """One tracking frame: palm position, tilt (-1 to 1) and pinch distance."""

    x: float
    y: float
    z: float
    tilt: float = 0.0
    pinch: float = math.inf
    timestamp: float = 0.0


class SourceExhausted(Exception):
    """Raised by a source that has no more samples to give."""


class SampleSource:
    """Base of sample sources. Subclasses implement ``next``."""

    def next(self, timeout_ms: float = DFLT_TIMEOUT_MS) -> Optional[Sample]:
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class IterableSource(SampleSource):
    """Serves the samples of an iterable, in order. Never times out."""

    def __init__(self, samples: Iterable[Sample]):
        self._samples = iter(samples)

    def next(self, timeout_ms: float = DFLT_TIMEOUT_MS) -> Optional[Sample]:
        try:
            return next(self._samples)
        except StopIteration:
            raise SourceExhausted("No more samples") from None


# -------------------------------------------------------------------------------
# Recording and replaying
# -------------------------------------------------------------------------------


def sample_to_jsonable(sample: Sample) -> dict:
    d = asdict(sample)
    # JSON has no inf or nan
    return {k: (v if math.isfinite(v) else None) for k, v in d.items()}


def sample_from_jsonable(d: dict) -> Sample:
    defaults = {'x': math.nan, 'y': math.nan, 'z': math.nan, 'pinch': math.inf}
    d = {k: (defaults.get(k, 0.0) if v is None else v) for k, v in d.items()}
    return Sample(**d)


def record_samples(samples: Iterable[Sample], filepath) -> int:
    """Write ``samples`` to ``filepath``, one JSON object per line."""
    n = 0
    with open(filepath, 'w') as f:
        for sample in samples:
            f.write(json.dumps(sample_to_jsonable(sample)) + '\n')
            n += 1
    return n


def iter_recorded_samples(filepath) -> Iterator[Sample]:
    with open(filepath) as f:
        for line in f:
            if line.strip():
                yield sample_from_jsonable(json.loads(line))


class ReplaySource(IterableSource):
    """
    Replays recorded samples. With ``realtime=True``, waits between samples as
    long as the recording did, so the rate gate behaves as it did live.
    """

    def __init__(self, samples: Iterable[Sample], *, realtime: bool = False):
        super().__init__(samples)
        self.realtime = realtime
        self._first_timestamp = None
        self._started_at = None

    @classmethod
    def from_jsonl(cls, filepath, *, realtime: bool = False):
        return cls(iter_recorded_samples(filepath), realtime=realtime)

    def next(self, timeout_ms: float = DFLT_TIMEOUT_MS) -> Optional[Sample]:
        sample = super().next(timeout_ms)
        if self.realtime:
            if self._first_timestamp is None:
                self._first_timestamp = sample.timestamp
                self._started_at = time.monotonic()
            due = self._started_at + (sample.timestamp - self._first_timestamp)
            time.sleep(max(0.0, due - time.monotonic()))
        return sample


class RecordingSource(SampleSource):
    """Wraps a source, appending every sample it serves to ``filepath``."""

    def __init__(self, source: SampleSource, filepath):
        self.source = source
        self._file = open(filepath, 'w')

    def next(self, timeout_ms: float = DFLT_TIMEOUT_MS) -> Optional[Sample]:
        sample = self.source.next(timeout_ms)
        if sample is not None:
            self._file.write(json.dumps(sample_to_jsonable(sample)) + '\n')
        return sample

    def close(self):
        self._file.close()
        self.source.close()


# -------------------------------------------------------------------------------
# Synthetic samples
# -------------------------------------------------------------------------------


def linear_sweep(
    start,
    stop,
    n_steps: int,
    *,
    interval: float = 1.0,
    t0: float = 0.0,
    tilt: float = 0.0,
    pinch: float = math.inf,
) -> Iterator[Sample]:
    """
    Samples moving in a straight line from ``start`` to ``stop`` (``(x, y, z)``
    triples), ``interval`` seconds apart.

    >>> [s.x for s in linear_sweep((0, 0, 0), (10, 0, 0), 3)]
    [0.0, 5.0, 10.0]
    """
    if n_steps < 2:
        raise ValueError("A sweep needs at least 2 steps")
    for i in range(n_steps):
        frac = i / (n_steps - 1)
        x, y, z = (a + (b - a) * frac for a, b in zip(start, stop))
        yield Sample(x, y, z, tilt=tilt, pinch=pinch, timestamp=t0 + i * interval)
