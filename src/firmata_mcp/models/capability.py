"""Capability report model: which modes each pin supports, and at what resolution.

A CAPABILITY_RESPONSE payload is a run of per-pin records::

    mode, resolution, mode, resolution, ..., 0x7F   <- pin 0
    mode, resolution, ..., 0x7F                     <- pin 1
    0x7F                                            <- pin 2 (no modes)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..protocol.commands import pin_mode_name
from ..protocol.constants import CAPABILITY_PIN_END, PinMode


@dataclass
class PinCapability:
    """One supported (mode, resolution) pair."""

    mode: int
    resolution: int

    def to_dict(self) -> dict:
        return {
            "mode": pin_mode_name(self.mode),
            "resolution": self.resolution,
        }


@dataclass
class CapabilityReport:
    """Parsed CAPABILITY_RESPONSE, with per-category pin counts.

    ``digital_pins`` counts INPUT and OUTPUT entries together and is halved,
    since firmware lists both modes for every digital pin.
    """

    pins: list[list[PinCapability]] = field(default_factory=list)
    digital_pins: int = 0
    analog_pins: int = 0
    servo_pins: int = 0
    pwm_pins: int = 0
    shift_pins: int = 0
    i2c_pins: int = 0

    @property
    def pin_count(self) -> int:
        return len(self.pins)

    @classmethod
    def from_payload(cls, data: bytes) -> CapabilityReport:
        """Build a report from a CAPABILITY_RESPONSE payload.

        A record cut short by the end of the payload is kept with the pairs
        read so far; a trailing unpaired mode byte is ignored.
        """
        report = cls()
        modes_seen = 0
        i = 0
        while i < len(data):
            record: list[PinCapability] = []
            while i < len(data) and data[i] != CAPABILITY_PIN_END:
                if i + 1 >= len(data):
                    i += 1
                    break
                mode, resolution = data[i], data[i + 1]
                i += 2
                record.append(PinCapability(mode=mode, resolution=resolution))
                if mode in (PinMode.INPUT, PinMode.OUTPUT):
                    modes_seen += 1
                elif mode == PinMode.ANALOG:
                    report.analog_pins += 1
                elif mode == PinMode.SERVO:
                    report.servo_pins += 1
                elif mode == PinMode.PWM:
                    report.pwm_pins += 1
                elif mode == PinMode.SHIFT:
                    report.shift_pins += 1
                elif mode == PinMode.I2C:
                    report.i2c_pins += 1
            # skip the terminator
            i += 1
            report.pins.append(record)
        report.digital_pins = modes_seen // 2
        return report

    def supports(self, pin: int, mode: int) -> bool:
        """Whether ``pin`` advertises ``mode``."""
        if not 0 <= pin < len(self.pins):
            return False
        return any(cap.mode == mode for cap in self.pins[pin])

    def format(self, glue: str = "\n") -> str:
        """Render the report as human-readable text."""
        lines = []
        for number, record in enumerate(self.pins, start=1):
            lines.append(f"Pin {number}:")
            for cap in record:
                lines.append(
                    f"  Mode: {pin_mode_name(cap.mode)}({cap.resolution} bit)"
                )
        lines.append(f"Total number of pins: {self.pin_count}")
        lines.append(
            f"{self.digital_pins} digital, {self.analog_pins} analog, "
            f"{self.servo_pins} servo, {self.pwm_pins} pwm and "
            f"{self.i2c_pins} i2c pins"
        )
        return glue.join(lines)

    def to_dict(self) -> dict:
        return {
            "pin_count": self.pin_count,
            "digital_pins": self.digital_pins,
            "analog_pins": self.analog_pins,
            "servo_pins": self.servo_pins,
            "pwm_pins": self.pwm_pins,
            "shift_pins": self.shift_pins,
            "i2c_pins": self.i2c_pins,
            "pins": [[cap.to_dict() for cap in record] for record in self.pins],
        }
