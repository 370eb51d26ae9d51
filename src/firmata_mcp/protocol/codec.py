"""7-bit value packing and channelled message encoding.

Every data byte on the wire has its high bit cleared, so 14-bit quantities
travel as two bytes, least significant group first::

    +-----------+------------------+------------------+
    | Command   | LSB (bits 0-6)   | MSB (bits 7-13)  |
    | 1xxx cccc | 0xxx xxxx        | 0xxx xxxx        |
    +-----------+------------------+------------------+

``cccc`` is the port (digital message) or pin (analog message).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .constants import BITS_PER_PORT, Command

FRAME_SIZE = 3


def lsb(value: int) -> int:
    """Bits 0-6 of ``value``."""
    return value & 0x7F


def msb(value: int) -> int:
    """Bits 7-13 of ``value``."""
    return (value >> 7) & 0x7F


def to_bytes(value: int) -> tuple[int, int]:
    """Split a value into its (LSB, MSB) 7-bit pair."""
    return lsb(value), msb(value)


def from_bytes(low: int, high: int) -> int:
    """Join a 7-bit LSB/MSB pair back into a 14-bit value (0-0x3FFF).

    Anything above 14 bits is lost; callers clamp before encoding.
    """
    return ((high & 0x7F) << 7) | (low & 0x7F)


def to_7bit(values: Sequence[int]) -> bytes:
    """Encode each value as an LSB/MSB pair."""
    out = bytearray()
    for value in values:
        out.append(lsb(value))
        out.append(msb(value))
    return bytes(out)


def from_7bit(data: bytes) -> list[int]:
    """Decode consecutive LSB/MSB pairs. Odd-length input decodes to ``[]``."""
    if len(data) % 2:
        return []
    return [from_bytes(data[i], data[i + 1]) for i in range(0, len(data), 2)]


def from_7bit_as_bytes(data: bytes) -> bytes:
    """Like :func:`from_7bit`, keeping only the low byte of each value."""
    return bytes(value & 0xFF for value in from_7bit(data))


def pack_port_state(values: Sequence[int]) -> int:
    """Pack pin values into a port bitmask; bit *i* is ``values[i] & 1``."""
    state = 0
    for i, value in enumerate(values):
        state |= (value & 0x01) << i
    return state


def unpack_port_state(state: int) -> tuple[int, ...]:
    """Unpack a port bitmask into a 14-wide tuple of 0/1 values."""
    return tuple((state >> i) & 0x01 for i in range(BITS_PER_PORT))


@dataclass
class DigitalMessage:
    """A decoded DIGITAL_MESSAGE frame."""

    port: int
    values: tuple[int, ...]


@dataclass
class AnalogMessage:
    """A decoded ANALOG_MESSAGE frame."""

    pin: int
    value: int


def encode_digital_message(port: int, values: Sequence[int]) -> bytes:
    """Encode a port's pin values as a 3-byte DIGITAL_MESSAGE frame."""
    state = pack_port_state(values)
    return bytes([Command.DIGITAL_MESSAGE | (port & 0x0F), lsb(state), msb(state)])


def encode_analog_message(pin: int, value: int) -> bytes:
    """Encode a 14-bit value as a 3-byte ANALOG_MESSAGE frame."""
    return bytes([Command.ANALOG_MESSAGE | (pin & 0x0F), lsb(value), msb(value)])


def decode_digital_message(data: bytes) -> DigitalMessage | None:
    """Decode a DIGITAL_MESSAGE frame.

    Returns:
        A ``DigitalMessage``, or ``None`` if fewer than 3 bytes are given.
    """
    if len(data) < FRAME_SIZE:
        return None
    return DigitalMessage(
        port=data[0] & 0x0F,
        values=unpack_port_state(from_bytes(data[1], data[2])),
    )


def decode_analog_message(data: bytes) -> AnalogMessage | None:
    """Decode an ANALOG_MESSAGE frame.

    Returns:
        An ``AnalogMessage``, or ``None`` if fewer than 3 bytes are given.
    """
    if len(data) < FRAME_SIZE:
        return None
    return AnalogMessage(pin=data[0] & 0x0F, value=from_bytes(data[1], data[2]))
