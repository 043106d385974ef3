import logging

import mido
import pytest

from palmchord import midi
from palmchord.midi import (
    MidoSink,
    ProtocolSendError,
    RecordingSink,
    change_instrument,
    control_change,
    note_off,
    note_on,
    open_midi_sink,
    program_change,
    send_safely,
)


class DummyPort:
    def __init__(self, name='dummy'):
        self.name = name
        self.sent = []
        self.closed = False

    def send(self, msg):
        self.sent.append(msg)

    def close(self):
        self.closed = True


class BrokenPort(DummyPort):
    def send(self, msg):
        raise OSError("device unplugged")


class FailingSink(RecordingSink):
    """Records what it was asked to send, and fails on note-ons."""

    def send(self, status, data1, data2=None):
        super().send(status, data1, data2)
        if status & 0xF0 == midi.NOTE_ON:
            raise ProtocolSendError("nope")


def test_encoding_on_channel_2():
    assert program_change(2, 5) == (0xC1, 5)
    assert note_on(2, 60, 100) == (0x91, 60, 100)
    assert note_off(2, 60) == (0x81, 60, 0)
    assert control_change(2, 74, 42) == (0xB1, 74, 42)


def test_channel_16_is_the_last():
    assert note_on(16, 60, 1)[0] == 0x9F
    with pytest.raises(ValueError):
        note_on(17, 60, 1)
    with pytest.raises(ValueError):
        note_on(0, 60, 1)


@pytest.mark.parametrize("value", [-1, 128])
def test_data_bytes_are_checked(value):
    with pytest.raises(ValueError):
        note_on(1, value, 64)
    with pytest.raises(ValueError):
        control_change(1, 1, value)


def test_change_instrument_silences_then_switches():
    sink = RecordingSink()
    change_instrument(sink, 2, 3)
    msgs = sink.messages
    assert msgs[:127] == [(0x81, pitch, 0) for pitch in range(127)]
    assert msgs[127] == (0xB1, 123, 0)
    assert msgs[128] == (0xC1, 3)
    assert len(msgs) == 129


def test_send_safely_logs_failures(caplog):
    sink = FailingSink()
    with caplog.at_level(logging.WARNING, logger='palmchord.midi'):
        assert send_safely(sink, note_on(1, 60, 100)) is False
    assert "Dropped MIDI message" in caplog.text
    assert send_safely(sink, note_off(1, 60)) is True
    assert len(sink.messages) == 2


def test_mido_sink_sends_mido_messages():
    port = DummyPort()
    with MidoSink(port) as sink:
        sink.send(*note_on(2, 60, 100))
        sink.send(*program_change(2, 7))
    first, second = port.sent
    assert first.type == 'note_on'
    assert (first.channel, first.note, first.velocity) == (1, 60, 100)
    assert second.type == 'program_change'
    assert second.program == 7
    assert port.closed


def test_mido_sink_wraps_port_errors():
    sink = MidoSink(BrokenPort())
    with pytest.raises(ProtocolSendError):
        sink.send(*note_on(1, 60, 100))


def test_recording_sink_logs_when_asked(caplog):
    sink = RecordingSink(log=True)
    with caplog.at_level(logging.INFO, logger='palmchord.midi'):
        sink.send(*note_on(1, 60, 90))
    assert "note_on" in caplog.text
    sink.clear()
    assert sink.messages == []


def test_open_midi_sink_matches_name(monkeypatch):
    monkeypatch.setattr(mido, 'get_output_names', lambda: ['Foo Synth', 'Bar Synth'])
    monkeypatch.setattr(mido, 'open_output', DummyPort)
    assert open_midi_sink('bar').port.name == 'Bar Synth'
    assert open_midi_sink('nothing like it').port.name == 'Foo Synth'
    assert open_midi_sink().port.name == 'Foo Synth'


def test_open_midi_sink_without_ports(monkeypatch):
    monkeypatch.setattr(mido, 'get_output_names', lambda: [])
    with pytest.raises(RuntimeError):
        open_midi_sink()
