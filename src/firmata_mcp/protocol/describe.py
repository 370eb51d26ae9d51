"""Human-readable rendering of an outgoing Firmata byte stream.

Used for logging and for inspecting what the encoder is about to send.
Truncated trailing messages are rendered as far as they go.
"""

from __future__ import annotations

from .codec import from_bytes
from .commands import channel_of, classify_command, pin_mode_name
from .constants import Command, SysexCommand


def _describe_sysex(command: int, payload: bytes) -> str:
    if command == SysexCommand.SAMPLING_INTERVAL and len(payload) >= 2:
        return f"SamplingInterval: {from_bytes(payload[0], payload[1])}"
    if command == SysexCommand.EXTENDED_ANALOG and len(payload) >= 3:
        value = 0
        for shift, group in enumerate(payload[1:]):
            value |= (group & 0x7F) << (7 * shift)
        return f"Extended Analog Message for pin {payload[0]}: {value}"
    if command == SysexCommand.REPORT_FIRMWARE:
        return "ReportFirmwareVersion"
    if command == SysexCommand.PIN_STATE_QUERY and payload:
        return f"PinStateQuery for pin {payload[0]}"
    try:
        name = SysexCommand(command).name
    except ValueError:
        name = f"0x{command:02X}"
    if payload:
        return f"{name} {payload.hex(' ')}"
    return name


def describe_bytes(data: bytes, glue: str = "\n") -> str:
    """Describe each command in ``data``, one per line.

    Data bytes that do not belong to a recognised command are skipped.
    """
    lines: list[str] = []
    i = 0
    n = len(data)
    while i < n:
        b = data[i]
        i += 1
        command = classify_command(b)
        if command is None:
            continue

        if command == Command.SYSEX_START:
            end = data.find(bytes([Command.SYSEX_END]), i)
            body = data[i:] if end < 0 else data[i:end]
            i = n if end < 0 else end + 1
            if body:
                lines.append(f"Sysex ({_describe_sysex(body[0], bytes(body[1:]))})")
            else:
                lines.append("Sysex ()")
        elif command == Command.SYSTEM_RESET:
            lines.append("Reset!")
        elif command == Command.REPORT_VERSION:
            lines.append("Report version")
        elif command == Command.SET_PIN_MODE:
            args = data[i : i + 2]
            i += len(args)
            if len(args) == 2:
                lines.append(f"Set PinMode of pin {args[0]} to {pin_mode_name(args[1])}")
            else:
                lines.append("Set PinMode (truncated)")
        elif command in (Command.REPORT_DIGITAL, Command.REPORT_ANALOG):
            kind = "DIGITAL" if command == Command.REPORT_DIGITAL else "ANALOG"
            target = "port" if command == Command.REPORT_DIGITAL else "pin"
            arg = data[i : i + 1]
            i += len(arg)
            state = arg[0] if arg else "?"
            lines.append(
                f"{kind} Pin Reporting for {target} {channel_of(b)} set to: {state}"
            )
        elif command in (Command.DIGITAL_MESSAGE, Command.ANALOG_MESSAGE):
            args = data[i : i + 2]
            i += len(args)
            value = from_bytes(args[0], args[1]) if len(args) == 2 else None
            if command == Command.DIGITAL_MESSAGE:
                shown = format(value, "b") if value is not None else "?"
                lines.append(f"Digital message for port {channel_of(b)}: {shown}")
            else:
                shown = str(value) if value is not None else "?"
                lines.append(f"Analog message for pin {channel_of(b)}: {shown}")
        # a stray SYSEX_END has nothing to describe
    return glue.join(lines)
