import logging

import pytest

from palmchord.midi import ProtocolSendError, RecordingSink
from palmchord.scheduler import (
    Envelope,
    NoteScheduler,
    duration_ms,
    duration_to_cc,
)

T = 10.0


class FlakySink(RecordingSink):
    """Fails every send, but remembers what it was asked to send."""

    def send(self, status, data1, data2=None):
        super().send(status, data1, data2)
        raise ProtocolSendError("offline")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def scheduler(sink):
    return NoteScheduler(sink, channel=2)


def note_ons(messages):
    return [m for m in messages if m[0] & 0xF0 == 0x90]


def note_offs(messages):
    return [m for m in messages if m[0] & 0xF0 == 0x80]


@pytest.mark.parametrize(
    "velocity, expected", [(0, 5000), (64, 2531), (127, 100), (200, 100), (-5, 5000)]
)
def test_duration_is_inversely_linear(velocity, expected):
    assert duration_ms(velocity) == expected


def test_duration_to_cc():
    assert duration_to_cc(100) == 0
    assert duration_to_cc(5000) == 127
    assert duration_to_cc(10_000) == 127
    assert duration_to_cc(100, 100, 100) == 0


def test_loudest_note_expires_after_min_duration(scheduler):
    scheduler.note_on({60}, velocity=127, program=0, now=T)
    assert scheduler.expire_due(T + 0.099) == []
    assert scheduler.is_sounding(60)
    assert scheduler.expire_due(T + 100 / 1000) == [60]
    assert not scheduler.is_sounding(60)


def test_quietest_note_lasts_max_duration(scheduler):
    event = scheduler.note_on([60], velocity=0, program=0, now=T)
    assert event.expires_at == T + 5.0
    assert scheduler.expire_due(T + 4.9) == []
    assert scheduler.expire_due(T + 5.0) == [60]


def test_messages_of_a_note_on(scheduler, sink):
    envelope = Envelope(attack=1, decay=2, sustain=3, release=4)
    scheduler.note_on([52, 42, 45], velocity=90, program=5, envelope=envelope, now=T)
    assert sink.messages == [
        (0xC1, 5),
        (0xB1, 1, 1),
        (0xB1, 2, 2),
        (0xB1, 3, 3),
        (0xB1, 4, 4),
        (0x91, 52, 90),
        (0x91, 42, 90),
        (0x91, 45, 90),
    ]


def test_retrigger_sends_note_off_first(scheduler, sink):
    scheduler.note_on([60, 64], velocity=10, program=0, now=T)
    sink.clear()
    scheduler.note_on([64, 67], velocity=100, program=0, now=T + 1)
    assert sink.messages[0] == (0x81, 64, 0)
    assert note_ons(sink.messages) == [(0x91, 64, 100), (0x91, 67, 100)]
    # 60 isn't part of the new chord: it keeps sounding until its own expiry
    assert scheduler.sounding == (60, 64, 67)
    assert scheduler.expires_at(64) == scheduler.expires_at(67)


def test_a_pitch_is_never_on_twice(scheduler, sink):
    for i, chord in enumerate([[60, 64], [64, 60], [60], [60, 60, 62]]):
        scheduler.note_on(chord, velocity=50, program=0, now=T + i)
    scheduler.release_all()
    on = set()
    for msg in sink.messages:
        if msg[0] & 0xF0 == 0x90:
            assert msg[1] not in on
            on.add(msg[1])
        elif msg[0] & 0xF0 == 0x80:
            on.discard(msg[1])
    assert on == set()


def test_duplicate_pitches_in_a_chord(scheduler, sink):
    event = scheduler.note_on([60, 60, 64], velocity=50, program=0, now=T)
    assert event.pitches == (60, 64)
    assert len(note_ons(sink.messages)) == 2


def test_expire_due_when_idle(scheduler, sink):
    assert scheduler.expire_due(T) == []
    assert sink.messages == []


def test_release_all(scheduler, sink):
    scheduler.note_on([60, 64], velocity=0, program=0, now=T)
    sink.clear()
    assert scheduler.release_all() == [60, 64]
    assert sink.messages == [(0x81, 60, 0), (0x81, 64, 0)]
    assert scheduler.sounding == ()


def test_failed_sends_are_logged_and_state_moves_on(caplog):
    sink = FlakySink()
    scheduler = NoteScheduler(sink, channel=2)
    with caplog.at_level(logging.WARNING, logger='palmchord.midi'):
        scheduler.note_on([60, 64], velocity=127, program=0, now=T)
    assert "Dropped MIDI message" in caplog.text
    assert len(note_ons(sink.messages)) == 2
    assert scheduler.sounding == (60, 64)
    assert scheduler.expire_due(T + 0.1) == [60, 64]
    assert len(note_offs(sink.messages)) == 2


def test_forget_all_sends_nothing(scheduler, sink):
    scheduler.note_on([60, 64], velocity=0, program=0, now=T)
    sink.clear()
    assert scheduler.forget_all() == [60, 64]
    assert scheduler.sounding == ()
    assert scheduler.expire_due(T + 10) == []
    assert sink.messages == []
