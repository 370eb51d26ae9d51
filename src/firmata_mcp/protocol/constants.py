"""Firmata command bytes, sysex sub-commands, pin modes and protocol limits."""

from __future__ import annotations

from enum import IntEnum


class Command(IntEnum):
    """Top-level (high-bit) command bytes."""

    DIGITAL_MESSAGE = 0x90
    REPORT_ANALOG = 0xC0
    REPORT_DIGITAL = 0xD0
    ANALOG_MESSAGE = 0xE0
    SYSEX_START = 0xF0
    SET_PIN_MODE = 0xF4
    SYSEX_END = 0xF7
    REPORT_VERSION = 0xF9
    SYSTEM_RESET = 0xFF


class SysexCommand(IntEnum):
    """Sub-commands carried in the second byte of a sysex frame."""

    RESERVED_COMMAND = 0x00
    ANALOG_MAPPING_QUERY = 0x69
    ANALOG_MAPPING_RESPONSE = 0x6A
    CAPABILITY_QUERY = 0x6B
    CAPABILITY_RESPONSE = 0x6C
    PIN_STATE_QUERY = 0x6D
    PIN_STATE_RESPONSE = 0x6E
    EXTENDED_ANALOG = 0x6F
    SERVO_CONFIG = 0x70
    STRING_DATA = 0x71
    SHIFT_DATA = 0x75
    I2C_REQUEST = 0x76
    I2C_REPLY = 0x77
    I2C_CONFIG = 0x78
    REPORT_FIRMWARE = 0x79
    SAMPLING_INTERVAL = 0x7A
    SYSEX_NON_REALTIME = 0x7E
    SYSEX_REALTIME = 0x7F


class PinMode(IntEnum):
    """Pin modes as used by SET_PIN_MODE and the capability report."""

    INPUT = 0x00
    OUTPUT = 0x01
    ANALOG = 0x02
    PWM = 0x03
    SERVO = 0x04
    SHIFT = 0x05
    I2C = 0x06


class I2CMode(IntEnum):
    """Read/write bits (4-3) of an I2C request."""

    WRITE = 0b00
    READ_ONCE = 0b01
    READ_CONTINUOUSLY = 0b10
    STOP_READING = 0b11


CHANNELLED_COMMANDS = frozenset({
    Command.DIGITAL_MESSAGE,
    Command.REPORT_ANALOG,
    Command.REPORT_DIGITAL,
    Command.ANALOG_MESSAGE,
})

# Terminates one pin's record in a capability response; also "no analog
# channel" in an analog mapping response.
CAPABILITY_PIN_END = 0x7F

MAX_CHANNEL = 0x0F
BITS_PER_PORT = 14            # width of an unpacked port report on the wire
DEFAULT_BITS_PER_PORT = 8     # pins per port on the host side
MAX_DIGITAL_PORTS = 16
MAX_DIGITAL_PINS = 128
MAX_ANALOG_PINS = 16
MAX_SYSEX_SIZE = 1024
DEFAULT_SAMPLING_INTERVAL = 19  # ms, StandardFirmata default
