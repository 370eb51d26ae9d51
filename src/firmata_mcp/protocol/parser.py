"""Decoded message types and sysex payload parsing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .codec import from_7bit, from_7bit_as_bytes
from .commands import pin_mode_name
from .constants import CAPABILITY_PIN_END, SysexCommand

if TYPE_CHECKING:
    from ..models.capability import CapabilityReport


@dataclass(frozen=True)
class DigitalPortUpdate:
    """DIGITAL_MESSAGE: the state of one 14-pin-wide port."""

    port: int
    values: tuple[int, ...]


@dataclass(frozen=True)
class AnalogPinUpdate:
    """ANALOG_MESSAGE: a 14-bit value for one analog pin."""

    pin: int
    value: int


@dataclass(frozen=True)
class PinModeSet:
    """SET_PIN_MODE: pin ``pin`` switched to ``mode``."""

    pin: int
    mode: int

    def __repr__(self) -> str:
        return f"PinModeSet(pin={self.pin}, mode={pin_mode_name(self.mode)})"


@dataclass(frozen=True)
class FirmwareReport:
    """REPORT_VERSION (name empty) or REPORT_FIRMWARE (with name)."""

    major: int
    minor: int
    name: str = ""

    @property
    def version(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class ReportToggle:
    """REPORT_ANALOG / REPORT_DIGITAL: reporting switched on or off."""

    kind: str  # "analog" or "digital"
    channel: int
    enabled: bool


@dataclass(frozen=True)
class Sysex:
    """A complete sysex frame, start/end markers stripped."""

    command: int
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"Sysex(command=0x{self.command:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


@dataclass(frozen=True)
class SamplingIntervalReport:
    """SAMPLING_INTERVAL: the board's reporting interval in ms."""

    interval: int


@dataclass(frozen=True)
class CapabilityResponse:
    """CAPABILITY_RESPONSE."""

    report: CapabilityReport


@dataclass(frozen=True)
class AnalogMappingResponse:
    """ANALOG_MAPPING_RESPONSE: analog channel per pin, ``None`` if not analog."""

    mapping: tuple[int | None, ...]

    def channels(self) -> dict[int, int]:
        """Analog channel -> pin number."""
        return {ch: pin for pin, ch in enumerate(self.mapping) if ch is not None}


@dataclass(frozen=True)
class PinStateResponse:
    """PIN_STATE_RESPONSE: a pin's mode and last written state."""

    pin: int
    mode: int
    state: int


@dataclass(frozen=True)
class StringData:
    """STRING_DATA: a text message from the board."""

    text: str


def parse_firmware_report(payload: bytes) -> FirmwareReport | None:
    """Parse a REPORT_FIRMWARE payload.

    The payload holds major and minor version bytes followed by the firmware
    name, one character per 7-bit LSB/MSB pair.
    """
    if len(payload) < 2:
        return None
    name = from_7bit_as_bytes(payload[2:]).decode("ascii", errors="replace")
    return FirmwareReport(major=payload[0], minor=payload[1], name=name)


def parse_sampling_interval(payload: bytes) -> SamplingIntervalReport | None:
    """Parse a SAMPLING_INTERVAL payload (one 14-bit value)."""
    values = from_7bit(payload[:2])
    if not values:
        return None
    return SamplingIntervalReport(interval=values[0])


def parse_capability_response(payload: bytes) -> CapabilityResponse:
    """Parse a CAPABILITY_RESPONSE payload."""
    from ..models.capability import CapabilityReport

    return CapabilityResponse(report=CapabilityReport.from_payload(payload))


def parse_analog_mapping(payload: bytes) -> AnalogMappingResponse:
    """Parse an ANALOG_MAPPING_RESPONSE payload."""
    return AnalogMappingResponse(
        mapping=tuple(None if b == CAPABILITY_PIN_END else b for b in payload)
    )


def parse_pin_state(payload: bytes) -> PinStateResponse | None:
    """Parse a PIN_STATE_RESPONSE payload.

    Layout: pin, mode, then the state as 7-bit groups, least significant
    first (one or more).
    """
    if len(payload) < 3:
        return None
    state = 0
    for shift, group in enumerate(payload[2:]):
        state |= (group & 0x7F) << (7 * shift)
    return PinStateResponse(pin=payload[0], mode=payload[1], state=state)


def parse_string_data(payload: bytes) -> StringData | None:
    """Parse a STRING_DATA payload (14 bits per character)."""
    if len(payload) % 2:
        return None
    return StringData(text="".join(chr(v) for v in from_7bit(payload)))


SYSEX_PARSERS = {
    SysexCommand.REPORT_FIRMWARE: parse_firmware_report,
    SysexCommand.SAMPLING_INTERVAL: parse_sampling_interval,
    SysexCommand.CAPABILITY_RESPONSE: parse_capability_response,
    SysexCommand.ANALOG_MAPPING_RESPONSE: parse_analog_mapping,
    SysexCommand.PIN_STATE_RESPONSE: parse_pin_state,
    SysexCommand.STRING_DATA: parse_string_data,
}


def parse_sysex(message: Sysex):
    """Dispatch a sysex frame to its payload parser.

    Returns the parsed message, or ``None`` if the sub-command has no parser
    or the payload is malformed.
    """
    parser = SYSEX_PARSERS.get(message.command)
    if parser is None:
        return None
    return parser(message.payload)

