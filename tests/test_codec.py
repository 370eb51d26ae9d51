"""Tests for 7-bit packing and channelled message encoding."""

from firmata_mcp.protocol.codec import (
    FRAME_SIZE,
    decode_analog_message,
    decode_digital_message,
    encode_analog_message,
    encode_digital_message,
    from_7bit,
    from_7bit_as_bytes,
    from_bytes,
    lsb,
    msb,
    pack_port_state,
    to_7bit,
    to_bytes,
    unpack_port_state,
)
from firmata_mcp.protocol.constants import BITS_PER_PORT, Command


def test_lsb_fixed_values():
    """LSB keeps only bits 0-6."""
    assert lsb(0x0000) == 0x00
    assert lsb(0x00FF) == 0x7F
    assert lsb(0xFF7F) == 0x7F


def test_msb_fixed_values():
    """MSB keeps bits 7-13."""
    assert msb(0x0000) == 0x00
    assert msb(0x3FFF) == 0x7F
    assert msb(0x1FFF) == 0x3F


def test_lsb_msb_always_7bit():
    """Both halves stay below 0x80 for any 16-bit input."""
    for value in range(0, 0x10000, 97):
        assert 0 <= lsb(value) <= 0x7F
        assert 0 <= msb(value) <= 0x7F


def test_from_bytes_masks_high_bits():
    """High bits of either byte are ignored."""
    assert from_bytes(0xFF, 0xFF) == 0x3FFF


def test_to_bytes_clamps_to_14_bits():
    """Values above 14 bits lose their top bits."""
    assert to_bytes(0xFFFF) == (0x7F, 0x7F)
    assert to_bytes(0) == (0, 0)


def test_14bit_roundtrip():
    """Every 14-bit value survives splitting and joining."""
    for value in range(0x4000):
        assert from_bytes(lsb(value), msb(value)) == value


def test_pack_port_state():
    """Bit i of the state is values[i] & 1."""
    assert pack_port_state([1, 0, 1, 0, 0, 0, 0, 1]) == 0b10000101
    assert pack_port_state([3, 2]) == 0b01


def test_unpack_port_state_is_14_wide():
    """Unpacked ports are always 14 values wide, zero padded."""
    values = unpack_port_state(0b101)
    assert len(values) == BITS_PER_PORT
    assert values[:3] == (1, 0, 1)
    assert set(values[3:]) == {0}


def test_encode_digital_message_8_pins():
    """Port 1, all eight pins high."""
    msg = encode_digital_message(1, [1] * 8)
    assert msg == bytes([0x91, 0x7F, 0x01])


def test_encode_digital_message_14_pins():
    """Port 1, all fourteen pins high."""
    msg = encode_digital_message(1, [1] * 14)
    assert len(msg) == FRAME_SIZE
    assert msg[0] == Command.DIGITAL_MESSAGE | 1
    assert msg[1:] == bytes([0x7F, 0x7F])


def test_decode_digital_message_14_pins():
    """Decoding a 14-pin port returns every value."""
    decoded = decode_digital_message(encode_digital_message(1, [1] * 14))
    assert decoded is not None
    assert decoded.port == 1
    assert decoded.values == (1,) * 14


def test_encode_analog_message():
    """Pin 1, value 255."""
    msg = encode_analog_message(1, 255)
    assert msg == bytes([0xE1, 0x7F, 0x01])
    decoded = decode_analog_message(msg)
    assert decoded is not None
    assert decoded.pin == 1
    assert decoded.value == 255


def test_decode_short_messages_fail():
    """Fewer than 3 bytes cannot be decoded."""
    assert decode_digital_message(bytes([0x91, 0x7F])) is None
    assert decode_analog_message(bytes([0xE1])) is None
    assert decode_analog_message(b"") is None


def test_to_7bit_lsb_first():
    """Each value becomes an LSB/MSB pair."""
    assert to_7bit([0x1FF, 3]) == bytes([0x7F, 0x03, 0x03, 0x00])


def test_from_7bit_odd_length_is_empty():
    """An odd number of bytes cannot be paired."""
    assert from_7bit(bytes([1, 2, 3])) == []
    assert from_7bit_as_bytes(bytes([1])) == b""


def test_from_7bit_as_bytes_keeps_low_byte():
    """Characters are the low byte of each 14-bit value."""
    assert from_7bit_as_bytes(bytes([0x41, 0x00, 0x42, 0x02])) == b"AB"
