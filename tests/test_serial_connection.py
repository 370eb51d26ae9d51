"""Tests for the pyserial transport, with the serial port mocked."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import serial

from firmata_mcp.protocol.decoder import Decoder
from firmata_mcp.protocol.parser import AnalogPinUpdate, FirmwareReport
from firmata_mcp.transport.serial_connection import SerialConnection, list_ports


def _open_connection(mock_serial: MagicMock) -> SerialConnection:
    conn = SerialConnection("/dev/ttyACM0", settle_s=0)
    with patch("serial.Serial", return_value=mock_serial) as mock_cls:
        conn.open()
    mock_cls.assert_called_once_with("/dev/ttyACM0", 57600, timeout=0.1)
    return conn


def test_open_and_close():
    """Opening clears stale input; closing releases the port."""
    mock_serial = MagicMock()
    conn = _open_connection(mock_serial)
    assert conn.connected
    assert conn.port_info.port == "/dev/ttyACM0"
    mock_serial.reset_input_buffer.assert_called_once()

    conn.close()
    assert not conn.connected
    mock_serial.close.assert_called_once()


def test_open_failure_raises_connection_error():
    """pyserial errors surface as ConnectionError."""
    conn = SerialConnection("/dev/missing", settle_s=0)
    with patch("serial.Serial", side_effect=serial.SerialException("no such port")):
        with pytest.raises(ConnectionError):
            conn.open()
    assert not conn.connected


def test_write_requires_connection():
    """Writing before open() fails."""
    conn = SerialConnection("/dev/ttyACM0")
    with pytest.raises(ConnectionError):
        conn.write(b"\xff")


def test_write_sends_and_flushes():
    """Bytes are written and flushed."""
    mock_serial = MagicMock()
    mock_serial.write.return_value = 3
    conn = _open_connection(mock_serial)
    assert conn.write(bytes([0xE1, 0x7F, 0x01])) == 3
    mock_serial.write.assert_called_once_with(bytes([0xE1, 0x7F, 0x01]))
    mock_serial.flush.assert_called_once()


def test_write_empty_is_skipped():
    """Nothing is sent for an empty buffer."""
    mock_serial = MagicMock()
    conn = _open_connection(mock_serial)
    assert conn.write(b"") == 0
    mock_serial.write.assert_not_called()


def test_poll_feeds_decoder():
    """poll() feeds everything that arrives to the decoder."""
    mock_serial = MagicMock()
    mock_serial.in_waiting = 3
    mock_serial.read.side_effect = [bytes([0xE1, 0x7F, 0x01]), b""]
    conn = _open_connection(mock_serial)

    decoder = Decoder()
    events = []
    decoder.subscribe_all(events.append)
    assert conn.poll(decoder) == 3
    assert events == [AnalogPinUpdate(pin=1, value=255)]


def test_poll_stops_at_window_while_board_streams():
    """A board that never goes quiet does not keep poll() running."""
    mock_serial = MagicMock()
    mock_serial.in_waiting = 3
    mock_serial.read.return_value = bytes([0xE0, 0x10, 0x00])
    conn = _open_connection(mock_serial)

    decoder = Decoder()
    updates = []
    decoder.subscribe(AnalogPinUpdate, updates.append)
    total = conn.poll(decoder, window_s=0.05)

    assert total >= 3
    assert total % 3 == 0
    assert len(updates) == total // 3
    assert updates[0] == AnalogPinUpdate(pin=0, value=16)


def test_send_and_receive_returns_first_match():
    """The reply message of the requested type is returned."""
    mock_serial = MagicMock()
    mock_serial.in_waiting = 3
    mock_serial.read.side_effect = [bytes([0xF9, 0x02, 0x05])]
    conn = _open_connection(mock_serial)

    decoder = Decoder()
    reply = conn.send_and_receive(b"\xf9", decoder, until=FirmwareReport)
    assert reply == FirmwareReport(major=2, minor=5)
    mock_serial.write.assert_called_once_with(b"\xf9")


def test_send_and_receive_accept_filter():
    """Messages rejected by ``accept`` do not end the wait."""
    firmware = bytes([0xF0, 0x79, 0x02, 0x05, 0x46, 0x00, 0x57, 0x00, 0xF7])
    mock_serial = MagicMock()
    mock_serial.in_waiting = 3
    mock_serial.read.side_effect = [bytes([0xF9, 0x02, 0x05]), firmware]
    conn = _open_connection(mock_serial)

    reply = conn.send_and_receive(
        b"\xf0\x79\xf7", Decoder(), until=FirmwareReport, accept=lambda msg: bool(msg.name)
    )
    assert reply == FirmwareReport(major=2, minor=5, name="FW")


def test_send_and_receive_timeout():
    """No reply within the window gives None and leaves no subscription."""
    mock_serial = MagicMock()
    mock_serial.in_waiting = 0
    mock_serial.read.return_value = b""
    conn = _open_connection(mock_serial)

    decoder = Decoder()
    reply = conn.send_and_receive(b"\xf9", decoder, until=FirmwareReport, window_s=0.05)
    assert reply is None

    events = []
    decoder.subscribe(FirmwareReport, events.append)
    decoder.feed_bytes([0xF9, 0x02, 0x05])
    assert len(events) == 1


def test_list_ports():
    """Serial ports are listed with their descriptions."""
    port = MagicMock(device="/dev/ttyACM0", description="Arduino Uno")
    with patch("serial.tools.list_ports.comports", return_value=[port]):
        ports = list_ports()
    assert len(ports) == 1
    assert ports[0].port == "/dev/ttyACM0"
    assert ports[0].description == "Arduino Uno"
