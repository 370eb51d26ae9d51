"""Incremental Firmata decoder.

Bytes are fed one at a time (or in chunks of any size) and typed messages are
delivered synchronously to subscribed callbacks as soon as the byte that
completes them arrives. All state needed to resume lives on the decoder, so
chunk boundaries never change the events produced.

Framing::

    fixed:  [cmd|chan] [data] [data]        DIGITAL/ANALOG_MESSAGE, REPORT_VERSION, SET_PIN_MODE
            [cmd|chan] [data]               REPORT_ANALOG / REPORT_DIGITAL
    sysex:  0xF0 [sub-command] [data ...] 0xF7
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Iterable

from .codec import decode_analog_message, decode_digital_message
from .commands import channel_of, classify_command
from .constants import MAX_SYSEX_SIZE, Command
from .parser import (
    AnalogPinUpdate,
    DigitalPortUpdate,
    FirmwareReport,
    PinModeSet,
    ReportToggle,
    Sysex,
    parse_sysex,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]

# Data bytes expected after each fixed-length command byte
FIXED_LENGTHS = {
    Command.DIGITAL_MESSAGE: 2,
    Command.ANALOG_MESSAGE: 2,
    Command.REPORT_VERSION: 2,
    Command.SET_PIN_MODE: 2,
    Command.REPORT_DIGITAL: 1,
    Command.REPORT_ANALOG: 1,
}


class DecoderState(Enum):
    IDLE = "idle"
    AWAITING_FIXED = "awaiting_fixed"
    AWAITING_SYSEX_END = "awaiting_sysex_end"


class Decoder:
    """Turns a Firmata byte stream into message objects.

    Usage::

        decoder = Decoder()
        decoder.subscribe(AnalogPinUpdate, lambda msg: print(msg.value))
        decoder.feed_bytes(serial_port.read(64))
    """

    def __init__(self, max_sysex_size: int = MAX_SYSEX_SIZE) -> None:
        self._max_sysex_size = max_sysex_size
        self._pending = bytearray()
        self._remaining = 0
        self._last_command: Command | None = None
        self._state = DecoderState.IDLE
        self._handlers: dict[type, list[Handler]] = {}
        self._catch_all: list[Handler] = []
        self.dropped_sysex = 0

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def pending(self) -> bytes:
        """Snapshot of the bytes of the message currently being assembled."""
        return bytes(self._pending)

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def last_command(self) -> Command | None:
        return self._last_command

    def reset(self) -> None:
        """Drop any partial message. Subscriptions are kept."""
        self._pending.clear()
        self._remaining = 0
        self._last_command = None
        self._state = DecoderState.IDLE

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, kind: type, callback: Handler) -> None:
        """Call ``callback(message)`` for every decoded message of type ``kind``.

        Callbacks run in registration order, inline with :meth:`feed`.
        """
        self._handlers.setdefault(kind, []).append(callback)

    def subscribe_all(self, callback: Handler) -> None:
        """Call ``callback(message)`` for every decoded message."""
        self._catch_all.append(callback)

    def unsubscribe(self, kind: type | None, callback: Handler) -> None:
        """Remove a callback added with :meth:`subscribe` (or, with ``kind=None``,
        :meth:`subscribe_all`). Unknown callbacks are ignored."""
        handlers = self._catch_all if kind is None else self._handlers.get(kind, [])
        if callback in handlers:
            handlers.remove(callback)

    def _emit(self, message: Any) -> None:
        for handler in list(self._handlers.get(type(message), ())):
            handler(message)
        for handler in list(self._catch_all):
            handler(message)

    # -- decoding ------------------------------------------------------------

    def feed_bytes(self, data: Iterable[int]) -> None:
        """Feed every byte of ``data`` in order."""
        for b in data:
            self.feed(b)

    def feed(self, byte: int) -> None:
        """Consume a single byte."""
        byte &= 0xFF
        if byte & 0x80:
            self._on_command(byte)
        else:
            self._on_data(byte)

    def _on_command(self, byte: int) -> None:
        command = classify_command(byte)
        if command is None:
            logger.debug("Ignoring unknown command byte 0x%02X", byte)
            return

        if command == Command.SYSTEM_RESET:
            logger.debug("System reset received")
            self.reset()
        elif command == Command.SYSEX_START:
            self._start(command, byte)
            self._state = DecoderState.AWAITING_SYSEX_END
        elif command == Command.SYSEX_END:
            self._finish_sysex()
        else:
            self._start(command, byte)
            self._remaining = FIXED_LENGTHS[command]
            self._state = DecoderState.AWAITING_FIXED

    def _start(self, command: Command, byte: int) -> None:
        self._pending.clear()
        self._pending.append(byte)
        self._last_command = command
        self._remaining = 0

    def _on_data(self, byte: int) -> None:
        if self._state == DecoderState.AWAITING_SYSEX_END:
            if len(self._pending) >= self._max_sysex_size:
                self.dropped_sysex += 1
                logger.warning(
                    "Sysex message exceeded %d bytes without an end marker, dropping",
                    self._max_sysex_size,
                )
                self.reset()
                return
            self._pending.append(byte)
        elif self._state == DecoderState.AWAITING_FIXED:
            self._pending.append(byte)
            self._remaining -= 1
            if self._remaining == 0:
                frame = bytes(self._pending)
                command = self._last_command
                self.reset()
                self._dispatch_fixed(command, frame)
        # stray data byte outside any message: nothing to attach it to

    def _dispatch_fixed(self, command: Command | None, frame: bytes) -> None:
        if command == Command.DIGITAL_MESSAGE:
            msg = decode_digital_message(frame)
            if msg is not None:
                self._emit(DigitalPortUpdate(port=msg.port, values=msg.values))
        elif command == Command.ANALOG_MESSAGE:
            msg = decode_analog_message(frame)
            if msg is not None:
                self._emit(AnalogPinUpdate(pin=msg.pin, value=msg.value))
        elif command == Command.SET_PIN_MODE:
            self._emit(PinModeSet(pin=frame[1], mode=frame[2]))
        elif command == Command.REPORT_VERSION:
            self._emit(FirmwareReport(major=frame[1], minor=frame[2]))
        elif command in (Command.REPORT_ANALOG, Command.REPORT_DIGITAL):
            kind = "analog" if command == Command.REPORT_ANALOG else "digital"
            self._emit(
                ReportToggle(kind=kind, channel=channel_of(frame[0]), enabled=bool(frame[1]))
            )

    def _finish_sysex(self) -> None:
        if self._state != DecoderState.AWAITING_SYSEX_END or len(self._pending) < 2:
            # end marker without a start (or without a sub-command)
            self.reset()
            return
        message = Sysex(command=self._pending[1], payload=bytes(self._pending[2:]))
        self.reset()
        self._emit(message)
        parsed = parse_sysex(message)
        if parsed is not None:
            self._emit(parsed)
        else:
            logger.debug("No decoded form for %r", message)
