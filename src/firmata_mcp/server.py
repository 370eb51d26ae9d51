"""MCP server entry point for Firmata boards.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .models.board import BoardState
from .protocol.constants import (
    MAX_ANALOG_PINS,
    MAX_CHANNEL,
    MAX_DIGITAL_PINS,
    PinMode,
)
from .protocol.decoder import Decoder
from .protocol.describe import describe_bytes
from .protocol.encoder import Encoder
from .protocol.parser import (
    AnalogMappingResponse,
    CapabilityResponse,
    FirmwareReport,
    PinStateResponse,
)
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection, list_ports

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "firmata",
    instructions="Control Firmata-enabled microcontroller boards over a serial port.",
)

# Global connection state
_connection: SerialConnection | None = None
_decoder = Decoder()
_encoder = Encoder()
_board = BoardState()
_board.attach(_decoder)


def _get_connection() -> SerialConnection:
    """Get the active serial connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to a board. Use the 'connect' tool first."
        )
    return _connection


def _send(conn: SerialConnection) -> int:
    """Send everything the encoder has staged."""
    return conn.write(_encoder.flush())


def _reset_session() -> None:
    global _decoder, _encoder, _board
    _decoder = Decoder()
    _encoder = Encoder()
    _board = BoardState()
    _board.attach(_decoder)


def _request_firmware(conn: SerialConnection) -> FirmwareReport | None:
    """Ask for REPORT_FIRMWARE, ignoring any bare REPORT_VERSION seen meanwhile."""
    _encoder.request_firmware_information()
    return conn.send_and_receive(
        _encoder.flush(), _decoder, until=FirmwareReport, accept=lambda msg: bool(msg.name)
    )


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def list_serial_ports() -> dict[str, Any]:
    """List serial ports that may have a Firmata board attached."""
    return {
        "ports": [
            {"port": p.port, "description": p.description} for p in list_ports()
        ]
    }


@mcp.tool()
def connect(port: str, baudrate: int = DEFAULT_BAUDRATE) -> dict[str, Any]:
    """Open a serial connection to a Firmata board.

    Requests the firmware name and version to confirm the board is running
    Firmata.

    Args:
        port: Serial port path, e.g. /dev/ttyACM0 or COM3.
        baudrate: Serial speed (StandardFirmata uses 57600).
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.port_info.port,
        }

    _reset_session()
    _connection = SerialConnection(port, baudrate)
    info = _connection.open()

    response = _request_firmware(_connection)

    result: dict[str, Any] = {
        "connected": True,
        "port": info.port,
        "baudrate": info.baudrate,
    }
    if response is not None:
        result["firmware"] = response.name
        result["version"] = response.version

    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection to the board."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── QUERY TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def get_firmware() -> dict[str, Any]:
    """Retrieve the firmware name and version (REPORT_FIRMWARE)."""
    conn = _get_connection()
    response = _request_firmware(conn)
    if response is None:
        return {"error": "No response from board"}
    return {"name": response.name, "version": response.version}


@mcp.tool()
def get_capabilities() -> dict[str, Any]:
    """Retrieve the supported modes and resolutions of every pin."""
    conn = _get_connection()
    _encoder.request_capability_report()
    response = conn.send_and_receive(
        _encoder.flush(), _decoder, until=CapabilityResponse
    )
    if response is None:
        return {"error": "No response from board"}
    result = response.report.to_dict()
    result["summary"] = response.report.format()
    return result


@mcp.tool()
def get_analog_mapping() -> dict[str, Any]:
    """Retrieve which pin number each analog channel (A0, A1, ...) maps to."""
    conn = _get_connection()
    _encoder.request_analog_mapping()
    response = conn.send_and_receive(
        _encoder.flush(), _decoder, until=AnalogMappingResponse
    )
    if response is None:
        return {"error": "No response from board"}
    return {"mapping": {f"A{ch}": pin for ch, pin in response.channels().items()}}


@mcp.tool()
def get_pin_state(pin: int) -> dict[str, Any]:
    """Read a pin's current mode and last written state.

    Args:
        pin: Pin number (0-127).
    """
    if not 0 <= pin < MAX_DIGITAL_PINS:
        return {"error": f"Pin must be 0-{MAX_DIGITAL_PINS - 1}"}

    conn = _get_connection()
    _encoder.request_pin_state(pin)
    response = conn.send_and_receive(_encoder.flush(), _decoder, until=PinStateResponse)
    if response is None:
        return {"error": "No response from board"}
    return {
        "pin": response.pin,
        "mode": _mode_name(response.mode),
        "state": response.state,
    }


# ─── PIN CONTROL TOOLS ───────────────────────────────────────────────

def _mode_name(mode: int) -> str:
    try:
        return PinMode(mode).name.lower()
    except ValueError:
        return f"0x{mode:02X}"


@mcp.tool()
def set_pin_mode(pin: int, mode: str) -> dict[str, Any]:
    """Configure a pin's mode.

    Args:
        pin: Pin number (0-127).
        mode: One of input, output, analog, pwm, servo, shift, i2c.
    """
    if not 0 <= pin < MAX_DIGITAL_PINS:
        return {"error": f"Pin must be 0-{MAX_DIGITAL_PINS - 1}"}
    try:
        pin_mode = PinMode[mode.upper()]
    except KeyError:
        return {"error": f"Unknown mode '{mode}'. Valid: {[m.name.lower() for m in PinMode]}"}

    conn = _get_connection()
    _encoder.set_pin_mode(pin, pin_mode)
    _send(conn)
    _board.pin_modes[pin] = pin_mode
    return {"pin": pin, "mode": pin_mode.name.lower()}


@mcp.tool()
def digital_write(pin: int, value: bool) -> dict[str, Any]:
    """Drive a digital output pin high or low.

    Unchanged values are not re-sent.

    Args:
        pin: Pin number (0-127).
        value: True for high, False for low.
    """
    if not 0 <= pin < MAX_DIGITAL_PINS:
        return {"error": f"Pin must be 0-{MAX_DIGITAL_PINS - 1}"}

    conn = _get_connection()
    _encoder.write_digital_pin(pin, 1 if value else 0)
    sent = _send(conn)
    return {"pin": pin, "value": bool(value), "bytes_sent": sent}


@mcp.tool()
def analog_write(pin: int, value: int) -> dict[str, Any]:
    """Write a PWM/servo value to an analog-message pin.

    Args:
        pin: Pin number (0-15).
        value: 14-bit value (0-16383); PWM pins typically use 0-255.
    """
    if not 0 <= pin < MAX_ANALOG_PINS:
        return {"error": f"Pin must be 0-{MAX_ANALOG_PINS - 1}"}
    if not 0 <= value <= 0x3FFF:
        return {"error": "Value must be 0-16383"}

    conn = _get_connection()
    _encoder.write_analog_pin(pin, value)
    sent = _send(conn)
    return {"pin": pin, "value": value, "bytes_sent": sent}


@mcp.tool()
def set_reporting(kind: str, channel: int, enabled: bool) -> dict[str, Any]:
    """Turn continuous reporting of an analog pin or digital port on or off.

    Args:
        kind: "analog" (channel is an analog pin) or "digital" (channel is a port).
        channel: Analog pin or digital port number (0-15).
        enabled: True to start reporting, False to stop.
    """
    if kind not in ("analog", "digital"):
        return {"error": "Kind must be 'analog' or 'digital'"}
    if not 0 <= channel <= MAX_CHANNEL:
        return {"error": "Channel must be 0-15"}

    conn = _get_connection()
    if kind == "analog":
        _encoder.report_analog(channel, enabled)
    else:
        _encoder.report_digital(channel, enabled)
    _send(conn)
    return {"kind": kind, "channel": channel, "enabled": enabled}


@mcp.tool()
def read_inputs(window_ms: int = 200) -> dict[str, Any]:
    """Collect reports the board sends during a short window.

    Args:
        window_ms: How long to listen, in milliseconds.
    """
    conn = _get_connection()
    received = conn.poll(_decoder, window_s=max(0, window_ms) / 1000)
    state = _board.to_dict()
    return {
        "bytes_received": received,
        "digital": state["digital"],
        "analog": state["analog"],
    }


@mcp.tool()
def set_sampling_interval(interval_ms: int) -> dict[str, Any]:
    """Set how often the board reports analog and I2C data.

    Args:
        interval_ms: Interval in milliseconds (values below 1 become 1).
    """
    conn = _get_connection()
    _encoder.set_sampling_interval(interval_ms)
    _send(conn)
    return {"interval_ms": _encoder.sampling_interval}


@mcp.tool()
def system_reset() -> dict[str, Any]:
    """Reset the board's Firmata state (pin modes, reporting).

    The board drops its outputs, so the cached pin values and modes are
    discarded too and the next write of any value is sent.
    """
    global _encoder
    conn = _get_connection()
    _encoder.system_reset()
    _send(conn)
    _encoder = Encoder(_encoder.bits_per_port)
    _board.pin_modes.clear()
    _board.pin_states.clear()
    return {"reset": True}


@mcp.tool()
def describe_stream(hex_bytes: str) -> dict[str, Any]:
    """Decode a hex string of Firmata bytes into readable commands.

    Args:
        hex_bytes: Bytes as hex, e.g. "91 7f 01".
    """
    try:
        data = bytes.fromhex(hex_bytes)
    except ValueError as e:
        return {"error": f"Invalid hex: {e}"}
    return {"description": describe_bytes(data).splitlines()}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("firmata://device/info")
def resource_device_info() -> str:
    """Port, baud rate and firmware of the connected board."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})

    info = _connection.port_info
    return json.dumps({
        "connected": True,
        "port": info.port,
        "baudrate": info.baudrate,
        "firmware": _board.firmware_name,
        "version": _board.firmware_version,
    })


@mcp.resource("firmata://board/state")
def resource_board_state() -> str:
    """Everything the board has reported so far."""
    return json.dumps(_board.to_dict())


@mcp.resource("firmata://catalog/pin-modes")
def resource_pin_modes() -> str:
    """Pin modes with their wire values."""
    modes = [{"id": int(m), "name": m.name.lower()} for m in PinMode]
    return json.dumps({"pin_modes": modes})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def blink_led(pin: int = 13, times: int = 3) -> str:
    """Guide the AI through blinking an LED to verify the board works.

    Args:
        pin: LED pin (13 on most Arduino boards).
        times: Number of blinks.
    """
    return f"""Verify the connected board by blinking the LED on pin {pin} {times} times.
Steps:
- Use get_firmware to confirm the board runs Firmata
- Use set_pin_mode to make pin {pin} an output
- Alternate digital_write(pin={pin}, value=true) and value=false
- Report the firmware name and whether each write was sent"""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
