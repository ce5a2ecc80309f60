"""Host-side client for serial-attached modular device firmware."""

from .device import ModularDevice
from .errors import (
    DeviceError,
    DeviceNotOpen,
    DiscoveryFailed,
    IdMismatch,
    LinkError,
    LinkReadError,
    LinkTimeout,
    LinkUnavailable,
    LinkWriteError,
    MalformedResponse,
    MissingEchoedId,
    MissingResult,
    MissingStatus,
    ModularDeviceError,
    ProtocolError,
    UnknownCommand,
    UnsupportedArgumentType,
)
from .protocol.parser import Dialect
from .transport.serial_connection import SerialConnection, SerialSettings

__version__ = "0.1.0"
