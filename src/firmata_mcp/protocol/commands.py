"""Command classification and control frame builders.

Channelled commands carry a port or pin number (0-15) in their low nibble.
Every other command byte, including the sysex sub-commands, is compared
verbatim.
"""

from __future__ import annotations

from .codec import lsb, msb, to_7bit
from .constants import (
    CHANNELLED_COMMANDS,
    MAX_CHANNEL,
    Command,
    I2CMode,
    PinMode,
    SysexCommand,
)


def classify_command(data: int) -> Command | None:
    """Map a raw command byte to its :class:`Command`.

    Channelled commands are matched with the channel nibble masked out,
    everything else is matched verbatim. Returns ``None`` for bytes that are
    not a known command (including data bytes).
    """
    if not data & 0x80:
        return None
    base = data & 0xF0
    if base in CHANNELLED_COMMANDS:
        return Command(base)
    try:
        return Command(data)
    except ValueError:
        return None


def channel_of(data: int) -> int:
    """Return the channel (port or pin) nibble of a channelled command byte."""
    return data & 0x0F


def pin_mode_name(mode: int) -> str:
    """Human-readable name of a pin mode, or its hex value if unknown."""
    try:
        return PinMode(mode).name
    except ValueError:
        return f"0x{mode:02X}"


# ─── CONTROL FRAME BUILDERS ───────────────────────────────────────────

def build_sysex(command: int, payload: bytes = b"") -> bytes:
    """Wrap a sub-command and its 7-bit payload in sysex start/end markers."""
    if not 0 <= command <= 0x7F:
        raise ValueError(f"Sysex command must be 0x00-0x7F, got 0x{command:X}")
    for b in payload:
        if b & 0x80:
            raise ValueError(f"Sysex payload byte 0x{b:02X} has the high bit set")
    return bytes([Command.SYSEX_START, command]) + bytes(payload) + bytes(
        [Command.SYSEX_END]
    )


def build_system_reset() -> bytes:
    """Build a single-byte SYSTEM_RESET command."""
    return bytes([Command.SYSTEM_RESET])


def build_request_firmware_version() -> bytes:
    """Build a REPORT_VERSION query (protocol version)."""
    return bytes([Command.REPORT_VERSION])


def build_request_firmware_information() -> bytes:
    """Build a REPORT_FIRMWARE sysex query (firmware name and version)."""
    return build_sysex(SysexCommand.REPORT_FIRMWARE)


def build_request_capability_report() -> bytes:
    return build_sysex(SysexCommand.CAPABILITY_QUERY)


def build_request_analog_mapping() -> bytes:
    return build_sysex(SysexCommand.ANALOG_MAPPING_QUERY)


def build_request_pin_state(pin: int) -> bytes:
    """Build a PIN_STATE_QUERY for a single pin.

    Args:
        pin: Pin number 0-127.
    """
    if not 0 <= pin <= 0x7F:
        raise ValueError(f"Pin must be 0-127, got {pin}")
    return build_sysex(SysexCommand.PIN_STATE_QUERY, bytes([pin]))


def build_set_sampling_interval(interval_ms: int) -> bytes:
    """Build a SAMPLING_INTERVAL sysex.

    Intervals below 1 ms are clamped to 1; the wire value is 14 bits wide.
    """
    interval = min(max(1, int(interval_ms)), 0x3FFF)
    return build_sysex(
        SysexCommand.SAMPLING_INTERVAL, bytes([lsb(interval), msb(interval)])
    )


def build_set_pin_mode(pin: int, mode: int) -> bytes:
    """Build a SET_PIN_MODE command.

    Args:
        pin: Pin number 0-127.
        mode: A :class:`PinMode` value.
    """
    if not 0 <= pin <= 0x7F:
        raise ValueError(f"Pin must be 0-127, got {pin}")
    if not 0 <= mode <= 0x7F:
        raise ValueError(f"Pin mode must be 0-127, got {mode}")
    return bytes([Command.SET_PIN_MODE, pin, mode])


def build_report_analog(pin: int, enabled: bool) -> bytes:
    """Build a REPORT_ANALOG toggle for one analog pin (0-15)."""
    if not 0 <= pin <= MAX_CHANNEL:
        raise ValueError(f"Analog pin must be 0-15, got {pin}")
    return bytes([Command.REPORT_ANALOG | pin, 1 if enabled else 0])


def build_report_digital(port: int, enabled: bool) -> bytes:
    """Build a REPORT_DIGITAL toggle for one digital port (0-15)."""
    if not 0 <= port <= MAX_CHANNEL:
        raise ValueError(f"Digital port must be 0-15, got {port}")
    return bytes([Command.REPORT_DIGITAL | port, 1 if enabled else 0])


def build_extended_analog(pin: int, value: int) -> bytes:
    """Build an EXTENDED_ANALOG write, for pins above 15 or values above 14 bits.

    The value is sent as 7-bit groups, least significant first; at least two
    groups are always sent.
    """
    if not 0 <= pin <= 0x7F:
        raise ValueError(f"Pin must be 0-127, got {pin}")
    if value < 0:
        raise ValueError(f"Value must be non-negative, got {value}")
    groups = [value & 0x7F, (value >> 7) & 0x7F]
    value >>= 14
    while value:
        groups.append(value & 0x7F)
        value >>= 7
    return build_sysex(SysexCommand.EXTENDED_ANALOG, bytes([pin] + groups))


def build_servo_config(pin: int, min_pulse: int, max_pulse: int) -> bytes:
    """Build a SERVO_CONFIG sysex (pulse widths in microseconds, 14 bits each)."""
    if not 0 <= pin <= 0x7F:
        raise ValueError(f"Pin must be 0-127, got {pin}")
    if not 0 <= min_pulse <= max_pulse <= 0x3FFF:
        raise ValueError(
            f"Pulse range must satisfy 0 <= min <= max <= 16383, "
            f"got {min_pulse}..{max_pulse}"
        )
    payload = bytes([pin, lsb(min_pulse), msb(min_pulse), lsb(max_pulse), msb(max_pulse)])
    return build_sysex(SysexCommand.SERVO_CONFIG, payload)


def build_string_data(text: str) -> bytes:
    """Build a STRING_DATA sysex, 14 bits per character."""
    codes = [ord(c) for c in text]
    if any(c > 0x3FFF for c in codes):
        raise ValueError("String data characters must fit in 14 bits")
    return build_sysex(SysexCommand.STRING_DATA, to_7bit(codes))


def build_i2c_request(
    address: int,
    mode: I2CMode = I2CMode.READ_ONCE,
    data: list[int] | None = None,
    ten_bit_address: bool = False,
) -> bytes:
    """Build an I2C_REQUEST sysex.

    Layout: address LSB, then ``{5: 10-bit mode}{4-3: read/write}{2-0: address
    MSB}``, then each data value as an LSB/MSB pair.

    Args:
        address: Slave address (7-bit, or 10-bit with ``ten_bit_address``).
        mode: Read/write mode.
        data: Bytes to write, or register/length values for reads.
        ten_bit_address: Use 10-bit addressing.
    """
    limit = 0x3FF if ten_bit_address else 0x7F
    if not 0 <= address <= limit:
        raise ValueError(f"I2C address must be 0-{limit}, got {address}")
    flags = (int(mode) & 0x03) << 3
    if ten_bit_address:
        flags |= 0x20
        flags |= (address >> 7) & 0x07
    payload = bytes([address & 0x7F, flags]) + to_7bit(list(data or []))
    return build_sysex(SysexCommand.I2C_REQUEST, payload)


def build_i2c_config(delay_us: int) -> bytes:
    """Build an I2C_CONFIG sysex carrying the read delay."""
    if not 0 <= delay_us <= 0x3FFF:
        raise ValueError(f"I2C delay must be 0-16383, got {delay_us}")
    return build_sysex(SysexCommand.I2C_CONFIG, bytes([lsb(delay_us), msb(delay_us)]))
