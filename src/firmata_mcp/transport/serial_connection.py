"""Serial connection to a Firmata board, built on pyserial.

StandardFirmata talks at 57600 baud over the board's USB-serial bridge. Most
boards reset when the port is opened, so :meth:`SerialConnection.open` waits
``settle_s`` before the first exchange.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from ..protocol.decoder import Decoder

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 57600
READ_TIMEOUT_S = 0.1
RESPONSE_WINDOW_S = 1.0
SETTLE_S = 2.0
READ_CHUNK = 256


@dataclass
class PortInfo:
    """Identification of the opened serial port."""

    port: str = ""
    baudrate: int = DEFAULT_BAUDRATE
    description: str = ""


def list_ports() -> list[PortInfo]:
    """Enumerate serial ports that could host a board."""
    from serial.tools import list_ports as _list_ports

    return [
        PortInfo(port=p.device, description=p.description or "")
        for p in _list_ports.comports()
    ]


class SerialConnection:
    """Manages the serial link to a Firmata board.

    Usage::

        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
        conn.write(encoder.flush())
        conn.poll(decoder)
        conn.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout_s: float = READ_TIMEOUT_S,
        settle_s: float = SETTLE_S,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._timeout_s = timeout_s
        self._settle_s = settle_s
        self._serial = None
        self._connected = False
        self._port_info = PortInfo(port=port, baudrate=baudrate)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def port_info(self) -> PortInfo:
        return self._port_info

    def open(self) -> PortInfo:
        """Open the serial port.

        Returns:
            PortInfo describing the opened port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        import serial

        try:
            self._serial = serial.Serial(
                self._port, self._baudrate, timeout=self._timeout_s
            )
        except (serial.SerialException, OSError) as e:
            raise ConnectionError(
                f"Could not open Firmata board on {self._port} "
                f"at {self._baudrate} baud. "
                f"Ensure the board is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        self._connected = True
        if self._settle_s:
            time.sleep(self._settle_s)
        self._serial.reset_input_buffer()

        logger.info("Connected to %s at %d baud", self._port, self._baudrate)
        return self._port_info

    def close(self) -> None:
        """Close the serial port."""
        if not self._connected:
            return

        try:
            self._serial.close()
        except Exception as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write raw bytes to the board.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to board")
        if not data:
            return 0
        written = self._serial.write(data) or 0
        self._serial.flush()
        logger.debug("Sent %d bytes: %s", written, data.hex(" "))
        return written

    def read(self, size: int = READ_CHUNK) -> bytes:
        """Read whatever is available, up to ``size`` bytes.

        Returns ``b""`` if nothing arrived within the read timeout.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to board")

        waiting = self._serial.in_waiting
        data = self._serial.read(min(size, waiting) if waiting else 1)
        return bytes(data)

    def poll(self, decoder: Decoder, window_s: float = 0.0) -> int:
        """Feed incoming bytes to ``decoder``.

        Reads at least once, then until ``window_s`` seconds have passed,
        whether or not data is still arriving.

        Returns:
            The number of bytes fed.
        """
        deadline = time.monotonic() + window_s
        total = 0
        while True:
            data = self.read()
            if data:
                decoder.feed_bytes(data)
                total += len(data)
            if time.monotonic() >= deadline:
                break
        return total

    def send_and_receive(
        self,
        data: bytes,
        decoder: Decoder,
        until: type | None = None,
        window_s: float = RESPONSE_WINDOW_S,
        accept: Callable[[Any], bool] | None = None,
    ):
        """Send ``data`` and feed the reply to ``decoder``.

        Args:
            data: Bytes to send.
            decoder: Decoder that receives the reply bytes.
            until: Stop as soon as a message of this type is decoded.
            window_s: Give up after this many seconds.
            accept: Only count ``until`` messages for which this returns true.

        Returns:
            The first message of type ``until``, or ``None`` if none arrived
            (always ``None`` when ``until`` is not given).
        """
        received = []

        def _collect(message) -> None:
            if accept is None or accept(message):
                received.append(message)

        if until is not None:
            decoder.subscribe(until, _collect)
        try:
            self.write(data)
            deadline = time.monotonic() + window_s
            while time.monotonic() < deadline:
                chunk = self.read()
                if chunk:
                    decoder.feed_bytes(chunk)
                if received:
                    return received[0]
        finally:
            if until is not None:
                decoder.unsubscribe(until, _collect)
        return None
