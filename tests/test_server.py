"""Tests for the MCP tool layer, with FastMCP and the board connection mocked."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from firmata_mcp.models.capability import CapabilityReport
from firmata_mcp.protocol.parser import (
    AnalogMappingResponse,
    CapabilityResponse,
    FirmwareReport,
    PinStateResponse,
)
from firmata_mcp.transport.serial_connection import PortInfo


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            # Remove cached server module so it re-imports with our mock
            sys.modules.pop("firmata_mcp.server", None)
            import firmata_mcp.server as server_mod

    return server_mod


def test_connect_requests_firmware():
    """connect opens the port and reports the firmware."""
    server = _get_server_module()

    mock_conn = MagicMock()
    mock_conn.open.return_value = PortInfo(port="/dev/ttyACM0", baudrate=57600)
    mock_conn.send_and_receive.return_value = FirmwareReport(2, 5, "StandardFirmata")

    with patch.object(server, "SerialConnection", return_value=mock_conn):
        result = server.connect("/dev/ttyACM0")

    assert result["connected"] is True
    assert result["firmware"] == "StandardFirmata"
    assert result["version"] == "2.5"
    sent = mock_conn.send_and_receive.call_args[0][0]
    assert sent == bytes([0xF0, 0x79, 0xF7])

    assert server.disconnect() == {"disconnected": True}
    mock_conn.close.assert_called_once()


def test_tools_require_connection():
    """Tools fail clearly before connect."""
    server = _get_server_module()
    with pytest.raises(RuntimeError, match="connect"):
        server.get_firmware()


def test_digital_write_sends_port_frame():
    """digital_write sends the pin's port, and nothing for a repeat."""
    server = _get_server_module()
    mock_conn = MagicMock()
    mock_conn.write.side_effect = len

    with patch.object(server, "_get_connection", return_value=mock_conn):
        first = server.digital_write(13, True)
        second = server.digital_write(13, True)

    mock_conn.write.assert_any_call(bytes([0x91, 0x20, 0x00]))
    assert first["bytes_sent"] == 3
    assert second["bytes_sent"] == 0


def test_analog_write_validates():
    """Out-of-range analog writes are rejected before sending."""
    server = _get_server_module()
    mock_conn = MagicMock()

    with patch.object(server, "_get_connection", return_value=mock_conn):
        assert "error" in server.analog_write(16, 10)
        assert "error" in server.analog_write(3, 0x4000)
        server.analog_write(1, 255)

    mock_conn.write.assert_called_once_with(bytes([0xE1, 0x7F, 0x01]))


def test_set_pin_mode():
    """Pin modes are given by name."""
    server = _get_server_module()
    mock_conn = MagicMock()

    with patch.object(server, "_get_connection", return_value=mock_conn):
        result = server.set_pin_mode(13, "output")
        bad = server.set_pin_mode(13, "laser")

    assert result == {"pin": 13, "mode": "output"}
    assert "error" in bad
    mock_conn.write.assert_called_once_with(bytes([0xF4, 13, 0x01]))


def test_set_reporting():
    """Reporting toggles go to the right channel."""
    server = _get_server_module()
    mock_conn = MagicMock()

    with patch.object(server, "_get_connection", return_value=mock_conn):
        server.set_reporting("analog", 2, True)
        server.set_reporting("digital", 1, False)
        assert "error" in server.set_reporting("pwm", 1, True)

    assert mock_conn.write.call_args_list[0][0][0] == bytes([0xC2, 0x01])
    assert mock_conn.write.call_args_list[1][0][0] == bytes([0xD1, 0x00])


def test_set_sampling_interval_clamps():
    """Non-positive intervals are sent as 1 ms."""
    server = _get_server_module()
    mock_conn = MagicMock()

    with patch.object(server, "_get_connection", return_value=mock_conn):
        result = server.set_sampling_interval(0)

    assert result == {"interval_ms": 1}
    mock_conn.write.assert_called_once_with(bytes([0xF0, 0x7A, 0x01, 0x00, 0xF7]))


def test_get_capabilities():
    """The capability report is returned with a text summary."""
    server = _get_server_module()
    report = CapabilityReport.from_payload(bytes([0x00, 0x01, 0x01, 0x01, 0x7F]))
    mock_conn = MagicMock()
    mock_conn.send_and_receive.return_value = CapabilityResponse(report=report)

    with patch.object(server, "_get_connection", return_value=mock_conn):
        result = server.get_capabilities()

    assert result["pin_count"] == 1
    assert "Total number of pins: 1" in result["summary"]


def test_get_analog_mapping_and_pin_state():
    """Mapping and pin state replies are rendered for the caller."""
    server = _get_server_module()
    mock_conn = MagicMock()
    mock_conn.send_and_receive.side_effect = [
        AnalogMappingResponse(mapping=(None, 0)),
        PinStateResponse(pin=13, mode=1, state=1),
    ]

    with patch.object(server, "_get_connection", return_value=mock_conn):
        mapping = server.get_analog_mapping()
        state = server.get_pin_state(13)

    assert mapping == {"mapping": {"A0": 1}}
    assert state == {"pin": 13, "mode": "output", "state": 1}


def test_no_response_is_an_error():
    """A silent board gives an error result."""
    server = _get_server_module()
    mock_conn = MagicMock()
    mock_conn.send_and_receive.return_value = None

    with patch.object(server, "_get_connection", return_value=mock_conn):
        assert "error" in server.get_firmware()


def test_describe_stream():
    """Hex input is decoded into readable lines."""
    server = _get_server_module()
    assert server.describe_stream("91 7f 01") == {
        "description": ["Digital message for port 1: 11111111"]
    }
    assert "error" in server.describe_stream("zz")


def test_resources():
    """Resources report disconnected state and the pin mode catalog."""
    server = _get_server_module()
    assert json.loads(server.resource_device_info()) == {"connected": False}
    modes = json.loads(server.resource_pin_modes())["pin_modes"]
    assert {"id": 1, "name": "output"} in modes
    state = json.loads(server.resource_board_state())
    assert state["digital"] == {}


def test_blink_prompt_mentions_pin():
    """The prompt names the requested pin."""
    server = _get_server_module()
    assert "pin 7" in server.blink_led(pin=7, times=2)


def test_system_reset_forgets_written_values():
    """After a reset, writing the same value again reaches the board."""
    server = _get_server_module()
    mock_conn = MagicMock()
    mock_conn.write.side_effect = len

    with patch.object(server, "_get_connection", return_value=mock_conn):
        server.set_pin_mode(13, "output")
        server.digital_write(13, True)
        assert server.system_reset() == {"reset": True}
        again = server.digital_write(13, True)

    assert again["bytes_sent"] == 3
    assert mock_conn.write.call_args_list[-2][0][0] == bytes([0xFF])
    assert mock_conn.write.call_args_list[-1][0][0] == bytes([0x91, 0x20, 0x00])
    assert json.loads(server.resource_board_state())["pin_modes"] == {}


def test_firmware_request_skips_bare_version_report():
    """Only a named firmware report answers get_firmware."""
    server = _get_server_module()
    mock_conn = MagicMock()
    mock_conn.send_and_receive.return_value = FirmwareReport(2, 5, "StandardFirmata")

    with patch.object(server, "_get_connection", return_value=mock_conn):
        assert server.get_firmware() == {"name": "StandardFirmata", "version": "2.5"}

    accept = mock_conn.send_and_receive.call_args.kwargs["accept"]
    assert not accept(FirmwareReport(2, 5))
    assert accept(FirmwareReport(2, 5, "StandardFirmata"))
