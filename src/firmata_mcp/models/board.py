"""Last known state of a board, kept up to date from decoder events."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..protocol.commands import pin_mode_name
from ..protocol.decoder import Decoder
from ..protocol.parser import (
    AnalogMappingResponse,
    AnalogPinUpdate,
    CapabilityResponse,
    DigitalPortUpdate,
    FirmwareReport,
    PinModeSet,
    PinStateResponse,
    SamplingIntervalReport,
    StringData,
)
from .capability import CapabilityReport


@dataclass
class BoardState:
    """Aggregated view of everything a board has reported.

    Usage::

        board = BoardState()
        board.attach(decoder)
        decoder.feed_bytes(data)
        board.analog[0]
    """

    firmware_name: str = ""
    firmware_version: str = ""
    protocol_version: str = ""
    sampling_interval: int | None = None
    digital: dict[int, tuple[int, ...]] = field(default_factory=dict)
    analog: dict[int, int] = field(default_factory=dict)
    pin_modes: dict[int, int] = field(default_factory=dict)
    pin_states: dict[int, int] = field(default_factory=dict)
    analog_mapping: dict[int, int] = field(default_factory=dict)
    capabilities: CapabilityReport | None = None
    messages: list[str] = field(default_factory=list)

    def attach(self, decoder: Decoder) -> None:
        """Subscribe to every message type this model tracks."""
        decoder.subscribe(DigitalPortUpdate, self._on_digital)
        decoder.subscribe(AnalogPinUpdate, self._on_analog)
        decoder.subscribe(PinModeSet, self._on_pin_mode)
        decoder.subscribe(FirmwareReport, self._on_firmware)
        decoder.subscribe(SamplingIntervalReport, self._on_sampling_interval)
        decoder.subscribe(CapabilityResponse, self._on_capabilities)
        decoder.subscribe(AnalogMappingResponse, self._on_analog_mapping)
        decoder.subscribe(PinStateResponse, self._on_pin_state)
        decoder.subscribe(StringData, self._on_string)

    def digital_pin(self, pin: int, bits_per_port: int = 8) -> int | None:
        """Last reported value of one digital pin, if its port has reported."""
        port, bit = divmod(pin, bits_per_port)
        values = self.digital.get(port)
        if values is None:
            return None
        return values[bit]

    def _on_digital(self, msg: DigitalPortUpdate) -> None:
        self.digital[msg.port] = msg.values

    def _on_analog(self, msg: AnalogPinUpdate) -> None:
        self.analog[msg.pin] = msg.value

    def _on_pin_mode(self, msg: PinModeSet) -> None:
        self.pin_modes[msg.pin] = msg.mode

    def _on_firmware(self, msg: FirmwareReport) -> None:
        if msg.name:
            self.firmware_name = msg.name
            self.firmware_version = msg.version
        else:
            self.protocol_version = msg.version

    def _on_sampling_interval(self, msg: SamplingIntervalReport) -> None:
        self.sampling_interval = msg.interval

    def _on_capabilities(self, msg: CapabilityResponse) -> None:
        self.capabilities = msg.report

    def _on_analog_mapping(self, msg: AnalogMappingResponse) -> None:
        self.analog_mapping = msg.channels()

    def _on_pin_state(self, msg: PinStateResponse) -> None:
        self.pin_modes[msg.pin] = msg.mode
        self.pin_states[msg.pin] = msg.state

    def _on_string(self, msg: StringData) -> None:
        self.messages.append(msg.text)

    def to_dict(self) -> dict:
        return {
            "firmware": {
                "name": self.firmware_name,
                "version": self.firmware_version,
                "protocol_version": self.protocol_version,
            },
            "sampling_interval": self.sampling_interval,
            "digital": {str(port): list(values) for port, values in self.digital.items()},
            "analog": {str(pin): value for pin, value in self.analog.items()},
            "pin_modes": {
                str(pin): pin_mode_name(mode) for pin, mode in self.pin_modes.items()
            },
            "pin_states": {str(pin): state for pin, state in self.pin_states.items()},
            "analog_mapping": {
                f"A{channel}": pin for channel, pin in self.analog_mapping.items()
            },
            "capabilities": self.capabilities.to_dict() if self.capabilities else None,
            "messages": list(self.messages),
        }
