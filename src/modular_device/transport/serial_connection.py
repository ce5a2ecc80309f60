"""Serial line transport to a modular device.

Devices enumerate as a USB CDC serial port (``/dev/ttyACM0``, ``COM4``, ...)
and exchange one terminator-delimited ASCII line per message, 9600 8N1 by
default. Opening the port resets most Arduino-class boards, so callers wait
``settle_delay`` seconds before the first request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import serial

from ..errors import (
    LinkReadError,
    LinkTimeout,
    LinkUnavailable,
    LinkWriteError,
    MalformedResponse,
)

logger = logging.getLogger(__name__)

BAUD_RATE = 9600
BYTESIZE = serial.EIGHTBITS
STOPBITS = serial.STOPBITS_ONE
TIMEOUT = 1.0
TERMINATOR = b"\n"
SETTLE_DELAY = 2.0


@dataclass
class SerialSettings:
    """Line settings for a serial connection."""

    baudrate: int = BAUD_RATE
    bytesize: int = BYTESIZE
    stopbits: float = STOPBITS
    timeout: float = TIMEOUT
    terminator: bytes = TERMINATOR
    settle_delay: float = SETTLE_DELAY


class SerialConnection:
    """Owns one serial port and exchanges terminator-delimited lines.

    Usage::

        with SerialConnection("/dev/ttyACM0") as conn:
            conn.write("[0]")
            line = conn.read_line()
    """

    def __init__(self, port: str, settings: SerialSettings | None = None) -> None:
        self._port = port
        self._settings = settings or SerialSettings()
        self._serial: serial.Serial | None = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def settings(self) -> SerialSettings:
        return self._settings

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        """Claim the serial port.

        Raises:
            LinkUnavailable: If the port does not exist or is in use.
        """
        if self.is_open:
            return

        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._settings.baudrate,
                bytesize=self._settings.bytesize,
                parity=serial.PARITY_NONE,
                stopbits=self._settings.stopbits,
                timeout=self._settings.timeout,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            self._serial = None
            raise LinkUnavailable(
                f"Could not open serial port {self._port}: {e}"
            ) from e

        logger.info(
            "Opened %s at %d baud", self._port, self._settings.baudrate
        )

    def close(self) -> None:
        """Release the serial port. Safe to call when already closed."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing %s: %s", self._port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._port)

    def write(self, line: str) -> None:
        """Send one line; the terminator is appended here.

        Raises:
            LinkWriteError: If the port is not open or the write fails.
        """
        if not self.is_open:
            raise LinkWriteError(f"Serial port {self._port} is not open")

        data = line.encode("ascii") + self._settings.terminator
        logger.debug("TX > %s", line)
        try:
            self._serial.write(data)
            self._serial.flush()
        except (serial.SerialException, OSError) as e:
            raise LinkWriteError(f"Write to {self._port} failed: {e}") from e

    def read_line(self, timeout: float | None = None) -> str:
        """Block until one full line arrives.

        Args:
            timeout: Seconds to wait; defaults to the configured timeout.

        Returns:
            The received line without its terminator.

        Raises:
            LinkTimeout: If no terminator arrived before the timeout.
            LinkReadError: If the port is not open or the read fails.
            MalformedResponse: If the line is not valid UTF-8.
        """
        if not self.is_open:
            raise LinkReadError(f"Serial port {self._port} is not open")

        terminator = self._settings.terminator
        wait = self._settings.timeout if timeout is None else timeout
        try:
            if self._serial.timeout != wait:
                self._serial.timeout = wait
            raw = self._serial.read_until(terminator)
        except (serial.SerialException, OSError) as e:
            raise LinkReadError(f"Read from {self._port} failed: {e}") from e

        if not raw.endswith(terminator):
            if raw:
                logger.debug("RX < partial line: %r", raw)
            raise LinkTimeout(
                f"No response from {self._port} within {wait:.2f}s"
            )

        try:
            line = raw[: -len(terminator)].decode("utf-8").rstrip("\r")
        except UnicodeDecodeError as e:
            raise MalformedResponse(
                f"Response from {self._port} is not valid text", raw
            ) from e
        logger.debug("RX < %s", line)
        return line

    def __enter__(self) -> SerialConnection:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self) -> None:
        # The port may still be open if close() was never called
        if getattr(self, "_serial", None) is not None:
            self.close()
