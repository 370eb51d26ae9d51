"""Differential Firmata encoder.

The encoder keeps the last value written to every digital port and analog
pin, and the offset of that port's/pin's frame in its staging buffer. A
repeated write of the same value emits nothing; a changed value overwrites
the existing 3-byte frame in place instead of appending a new one. The
staging buffer therefore grows only with the number of distinct ports and
pins touched between flushes::

    write_analog_pin(1, 10)   ->  E1 0A 00
    write_analog_pin(2, 20)   ->  E1 0A 00  E2 14 00
    write_analog_pin(1, 30)   ->  E1 1E 00  E2 14 00     (patched, not appended)

Control messages (queries, resets, configuration) are always appended.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .codec import FRAME_SIZE, encode_analog_message, encode_digital_message
from .commands import (
    build_extended_analog,
    build_i2c_config,
    build_i2c_request,
    build_report_analog,
    build_report_digital,
    build_request_analog_mapping,
    build_request_capability_report,
    build_request_firmware_information,
    build_request_firmware_version,
    build_request_pin_state,
    build_servo_config,
    build_set_pin_mode,
    build_set_sampling_interval,
    build_string_data,
    build_system_reset,
)
from .constants import (
    DEFAULT_BITS_PER_PORT,
    DEFAULT_SAMPLING_INTERVAL,
    MAX_ANALOG_PINS,
    MAX_DIGITAL_PINS,
    MAX_DIGITAL_PORTS,
    I2CMode,
)

logger = logging.getLogger(__name__)


class Encoder:
    """Builds an outgoing Firmata byte stream for one board.

    Usage::

        encoder = Encoder()
        encoder.write_digital_pin(13, 1)
        encoder.write_analog_pin(3, 512)
        transport.write(encoder.flush())

    Args:
        bits_per_port: Pins per digital port (8 for standard boards, up to 14).
    """

    def __init__(self, bits_per_port: int = DEFAULT_BITS_PER_PORT) -> None:
        if not 1 <= bits_per_port <= 14:
            raise ValueError(f"bits_per_port must be 1-14, got {bits_per_port}")
        self.bits_per_port = bits_per_port
        self._buffer = bytearray()

        self._digital_pins = [[0] * bits_per_port for _ in range(MAX_DIGITAL_PORTS)]
        self._port_offsets: list[int | None] = [None] * MAX_DIGITAL_PORTS

        self._analog_pins = [0] * MAX_ANALOG_PINS
        self._pin_offsets: list[int | None] = [None] * MAX_ANALOG_PINS

        self._sampling_interval = DEFAULT_SAMPLING_INTERVAL

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return (
            f"Encoder({len(self._buffer)}): "
            f"{self._buffer.hex(' ') if self._buffer else '(empty)'}"
        )

    # -- output --------------------------------------------------------------

    @property
    def pending(self) -> bytes:
        """The bytes waiting to be sent, without draining them."""
        return bytes(self._buffer)

    def has_unflushed_changes(self) -> bool:
        return bool(self._buffer)

    def flush(self) -> bytes:
        """Return the pending bytes and start a fresh staging buffer.

        Frame offsets are released, since the frames they pointed at have been
        handed off; cached pin values are kept, so writing an unchanged value
        after a flush is still a no-op.
        """
        data = bytes(self._buffer)
        self._buffer.clear()
        self._port_offsets = [None] * MAX_DIGITAL_PORTS
        self._pin_offsets = [None] * MAX_ANALOG_PINS
        logger.debug("Flushed %d bytes", len(data))
        return data

    def _append(self, frame: bytes) -> None:
        self._buffer += frame

    def _patch_or_append(self, offsets: list[int | None], index: int, frame: bytes) -> None:
        offset = offsets[index]
        if offset is None:
            offsets[index] = len(self._buffer)
            self._buffer += frame
        else:
            self._buffer[offset : offset + FRAME_SIZE] = frame

    # -- digital -------------------------------------------------------------

    def port_values(self, port: int) -> tuple[int, ...]:
        """The cached pin values of a digital port."""
        return tuple(self._digital_pins[port])

    def _set_digital(self, pin: int, value: int) -> int | None:
        """Update the cache for one pin; return its port if the value changed."""
        port, bit = divmod(pin, self.bits_per_port)
        value = 1 if value else 0
        if self._digital_pins[port][bit] == value:
            return None
        self._digital_pins[port][bit] = value
        return port

    def _write_port(self, port: int) -> None:
        frame = encode_digital_message(port, self._digital_pins[port])
        self._patch_or_append(self._port_offsets, port, frame)

    def write_digital_pin(self, pin: int, value: int) -> None:
        """Set one digital pin (any truthy ``value`` is high).

        Raises:
            ValueError: If the pin lies outside the addressable ports.
        """
        limit = min(MAX_DIGITAL_PINS, MAX_DIGITAL_PORTS * self.bits_per_port)
        if not 0 <= pin < limit:
            raise ValueError(f"Digital pin must be 0-{limit - 1}, got {pin}")
        port = self._set_digital(pin, value)
        if port is not None:
            self._write_port(port)

    def write_digital_pins(self, values: Sequence[int]) -> None:
        """Set digital pins ``0..len(values)-1`` in one pass.

        Each changed port is written once, after all of its pins have been
        applied. Values beyond the addressable pins are dropped.
        """
        limit = min(len(values), MAX_DIGITAL_PINS, MAX_DIGITAL_PORTS * self.bits_per_port)
        changed: set[int] = set()
        for pin in range(limit):
            port = pin // self.bits_per_port
            if self._set_digital(pin, values[pin]) is not None:
                changed.add(port)
            if pin % self.bits_per_port == self.bits_per_port - 1 and port in changed:
                self._write_port(port)
                changed.discard(port)
        # final partial port
        for port in changed:
            self._write_port(port)

    # -- analog --------------------------------------------------------------

    def analog_value(self, pin: int) -> int:
        return self._analog_pins[pin]

    def write_analog_pin(self, pin: int, value: int) -> None:
        """Set one analog (PWM/servo) pin to a 14-bit value.

        Raises:
            ValueError: If the pin is not 0-15 or the value does not fit 14 bits.
        """
        if not 0 <= pin < MAX_ANALOG_PINS:
            raise ValueError(f"Analog pin must be 0-{MAX_ANALOG_PINS - 1}, got {pin}")
        if not 0 <= value <= 0x3FFF:
            raise ValueError(f"Analog value must be 0-16383, got {value}")
        if self._analog_pins[pin] == value:
            return
        self._analog_pins[pin] = value
        self._patch_or_append(self._pin_offsets, pin, encode_analog_message(pin, value))

    def write_analog_pins(self, values: Sequence[int]) -> None:
        """Set analog pins ``0..len(values)-1``; pins beyond 15 are dropped.

        Every value is checked before any pin is written, so a bad value
        leaves the whole batch unapplied.

        Raises:
            ValueError: If any value does not fit 14 bits.
        """
        count = min(len(values), MAX_ANALOG_PINS)
        for pin in range(count):
            if not 0 <= values[pin] <= 0x3FFF:
                raise ValueError(
                    f"Analog value for pin {pin} must be 0-16383, got {values[pin]}"
                )
        for pin in range(count):
            self.write_analog_pin(pin, values[pin])

    # -- control messages ----------------------------------------------------

    def system_reset(self) -> None:
        self._append(build_system_reset())

    def request_firmware_version(self) -> None:
        self._append(build_request_firmware_version())

    def request_firmware_information(self) -> None:
        self._append(build_request_firmware_information())

    def request_capability_report(self) -> None:
        self._append(build_request_capability_report())

    def request_analog_mapping(self) -> None:
        self._append(build_request_analog_mapping())

    def request_pin_state(self, pin: int) -> None:
        self._append(build_request_pin_state(pin))

    def set_pin_mode(self, pin: int, mode: int) -> None:
        self._append(build_set_pin_mode(pin, mode))

    def report_analog(self, pin: int, enabled: bool = True) -> None:
        self._append(build_report_analog(pin, enabled))

    def report_digital(self, port: int, enabled: bool = True) -> None:
        self._append(build_report_digital(port, enabled))

    def extended_analog(self, pin: int, value: int) -> None:
        self._append(build_extended_analog(pin, value))

    def servo_config(self, pin: int, min_pulse: int = 544, max_pulse: int = 2400) -> None:
        self._append(build_servo_config(pin, min_pulse, max_pulse))

    def string_data(self, text: str) -> None:
        self._append(build_string_data(text))

    def i2c_request(
        self,
        address: int,
        mode: I2CMode = I2CMode.READ_ONCE,
        data: list[int] | None = None,
        ten_bit_address: bool = False,
    ) -> None:
        self._append(build_i2c_request(address, mode, data, ten_bit_address))

    def i2c_config(self, delay_us: int = 0) -> None:
        self._append(build_i2c_config(delay_us))

    def set_sampling_interval(self, interval_ms: int) -> None:
        """Append a SAMPLING_INTERVAL message, clamped to 1-16383 ms."""
        self._sampling_interval = min(max(1, int(interval_ms)), 0x3FFF)
        self._append(build_set_sampling_interval(self._sampling_interval))

    @property
    def sampling_interval(self) -> int:
        """The last sampling interval sent, in ms."""
        return self._sampling_interval

    @sampling_interval.setter
    def sampling_interval(self, interval_ms: int) -> None:
        self.set_sampling_interval(interval_ms)

    @property
    def sample_rate(self) -> float:
        """The sampling rate in Hz implied by :attr:`sampling_interval`."""
        return 1000 / self._sampling_interval

    @sample_rate.setter
    def sample_rate(self, hertz: float) -> None:
        if hertz <= 0:
            raise ValueError(f"Sample rate must be positive, got {hertz}")
        self.set_sampling_interval(int(1000 / hertz))
