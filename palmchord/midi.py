"""MIDI output: message encoding and sinks.

Messages are handled as raw byte tuples, ``(status, data1[, data2])``, with the
channel (1 to 16) folded into the status byte:

>>> note_on(2, 60, 100)
(145, 60, 100)
>>> program_change(1, 5)
(192, 5)

A sink is anything with a ``send(status, data1, data2=None)`` method that raises
``ProtocolSendError`` when the message could not be delivered. Delivery is best
effort: :func:`send_safely` logs and drops failed messages.
"""

import logging
from typing import Optional, Tuple, List

import mido

from palmchord.config import CC_ALL_NOTES_OFF

logger = logging.getLogger(__name__)

Message = Tuple[int, ...]

NOTE_OFF = 0x80
NOTE_ON = 0x90
CONTROL_CHANGE = 0xB0
PROGRAM_CHANGE = 0xC0


class ProtocolSendError(RuntimeError):
    """Raised by a sink when a message could not be sent."""


# -------------------------------------------------------------------------------
# Encoding
# -------------------------------------------------------------------------------


def status_byte(base_status: int, channel: int) -> int:
    if not 1 <= channel <= 16:
        raise ValueError(f"MIDI channel must be in [1, 16], got {channel}")
    return base_status | (channel - 1)


def _data(value) -> int:
    value = int(value)
    if not 0 <= value <= 127:
        raise ValueError(f"MIDI data bytes must be in [0, 127], got {value}")
    return value


def program_change(channel: int, program: int) -> Message:
    return (status_byte(PROGRAM_CHANGE, channel), _data(program))


def note_on(channel: int, pitch: int, velocity: int) -> Message:
    return (status_byte(NOTE_ON, channel), _data(pitch), _data(velocity))


def note_off(channel: int, pitch: int, velocity: int = 0) -> Message:
    return (status_byte(NOTE_OFF, channel), _data(pitch), _data(velocity))


def control_change(channel: int, controller: int, value: int) -> Message:
    """
    >>> control_change(2, 123, 0)
    (177, 123, 0)
    """
    return (status_byte(CONTROL_CHANGE, channel), _data(controller), _data(value))


# -------------------------------------------------------------------------------
# Sinks
# -------------------------------------------------------------------------------


class MidiSink:
    """Base of MIDI sinks. Subclasses implement ``send``."""

    def send(self, status: int, data1: int, data2: Optional[int] = None):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class RecordingSink(MidiSink):
    """
    Keeps every message it's sent, and optionally logs it (handy for dry runs).

    >>> sink = RecordingSink()
    >>> sink.send(*note_on(1, 60, 90))
    >>> sink.messages
    [(144, 60, 90)]
    """

    def __init__(self, *, log: bool = False):
        self.messages: List[Message] = []
        self.log = log

    def send(self, status, data1, data2=None):
        msg = (status, data1) if data2 is None else (status, data1, data2)
        self.messages.append(msg)
        if self.log:
            logger.info("MIDI out: %s", mido.Message.from_bytes(list(msg)))

    def clear(self):
        self.messages.clear()


class MidoSink(MidiSink):
    """Sends messages to a ``mido`` output port."""

    def __init__(self, port):
        self.port = port

    def send(self, status, data1, data2=None):
        data = [status, data1] if data2 is None else [status, data1, data2]
        try:
            self.port.send(mido.Message.from_bytes(data))
        except Exception as e:
            # Backends raise all sorts of things; normalize at this boundary
            raise ProtocolSendError(f"Could not send {data}: {e}") from e

    def close(self):
        self.port.close()


def list_output_ports() -> List[str]:
    return mido.get_output_names()


def open_midi_sink(name_hint: Optional[str] = None) -> MidoSink:
    """
    Open the first output port whose name contains ``name_hint``
    (case insensitive), or the first port there is.
    """
    names = list_output_ports()
    if not names:
        raise RuntimeError("No MIDI output ports found")
    if name_hint:
        for name in names:
            if name_hint.lower() in name.lower():
                logger.info("Opening MIDI output %r", name)
                return MidoSink(mido.open_output(name))
        logger.warning("No MIDI output matches %r, using %r", name_hint, names[0])
    else:
        logger.info("Opening MIDI output %r", names[0])
    return MidoSink(mido.open_output(names[0]))


# -------------------------------------------------------------------------------
# Sending
# -------------------------------------------------------------------------------


def send_safely(sink: MidiSink, message: Message) -> bool:
    """Send ``message``, logging (not raising) a failure. Returns success."""
    try:
        sink.send(*message)
    except ProtocolSendError as e:
        logger.warning("Dropped MIDI message %s: %s", message, e)
        return False
    return True


def change_instrument(sink: MidiSink, channel: int, program: int):
    """
    Silence the channel, then switch it to ``program``.

    >>> sink = RecordingSink()
    >>> change_instrument(sink, 2, 7)
    >>> len(sink.messages), sink.messages[0], sink.messages[-2:]
    (129, (129, 0, 0), [(177, 123, 0), (193, 7)])
    """
    for pitch in range(127):
        send_safely(sink, note_off(channel, pitch, 0))
    send_safely(sink, control_change(channel, CC_ALL_NOTES_OFF, 0))
    send_safely(sink, program_change(channel, program))
