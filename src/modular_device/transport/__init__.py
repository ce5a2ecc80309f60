"""Transport layer: serial port ownership and line I/O."""

from .serial_connection import SerialConnection, SerialSettings
