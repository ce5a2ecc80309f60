"""Exception hierarchy for link, protocol, and device failures.

Every exception raised by this package derives from :class:`ModularDeviceError`
and carries a short ``kind`` tag so that callers (and the MCP server) can
report failures without matching on class names.
"""

from __future__ import annotations

from typing import Any, ClassVar

from .models.messages import ErrorRecord


class ModularDeviceError(Exception):
    """Base exception for all device-related errors."""

    kind: ClassVar[str] = "error"

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(kind=self.kind, message=str(self))


# ─── LINK ERRORS ──────────────────────────────────────────────────────

class LinkError(ModularDeviceError):
    """Raised for faults in the serial link itself."""

    kind = "link_error"


class LinkUnavailable(LinkError, ConnectionError):
    """Raised when the serial endpoint cannot be claimed."""

    kind = "link_unavailable"


class LinkWriteError(LinkError):
    """Raised when a request line cannot be written."""

    kind = "link_write_error"


class DeviceNotOpen(LinkWriteError):
    """Raised when a call is issued on a closed connection."""

    kind = "device_not_open"


class LinkReadError(LinkError):
    """Raised on I/O failure while reading a response line."""

    kind = "link_read_error"


class LinkTimeout(LinkError, TimeoutError):
    """Raised when no complete response line arrives in time."""

    kind = "link_timeout"


# ─── PROTOCOL ERRORS ──────────────────────────────────────────────────

class ProtocolError(ModularDeviceError):
    """Raised when a response violates the wire protocol."""

    kind = "protocol_error"


class MalformedResponse(ProtocolError):
    """Raised when a response line is not a JSON object."""

    kind = "malformed_response"

    def __init__(self, message: str, line: str | bytes = "") -> None:
        super().__init__(message)
        self.line = line


class MissingEchoedId(ProtocolError):
    kind = "missing_echoed_id"


class MissingStatus(ProtocolError):
    kind = "missing_status"


class MissingResult(ProtocolError):
    kind = "missing_result"


class IdMismatch(ProtocolError):
    """Raised when the echoed id differs from the id that was sent."""

    kind = "id_mismatch"

    def __init__(self, sent: int, received: Any) -> None:
        super().__init__(
            f"Response id {received!r} does not match request id {sent}"
        )
        self.sent = sent
        self.received = received


# ─── DEVICE AND CALLER ERRORS ─────────────────────────────────────────

class DeviceError(ModularDeviceError):
    """Raised when the device explicitly reports that a call failed."""

    kind = "device_error"

    def __init__(self, message: str = "", code: Any = "", data: Any = "") -> None:
        super().__init__(
            f"(from device) message: {message}, data: {data}, code: {code}"
        )
        self.message = message
        self.code = code
        self.data = data

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            kind=self.kind,
            message=self.message,
            code=self.code,
            data=self.data,
        )


class UnsupportedArgumentType(ModularDeviceError, TypeError):
    """Raised when an argument cannot be serialized onto the wire."""

    kind = "unsupported_argument_type"

    def __init__(self, position: int, argument: Any, reason: str = "") -> None:
        detail = reason or f"unsupported type {type(argument).__name__}"
        super().__init__(f"Argument {position}: {detail}")
        self.position = position
        self.argument = argument


class UnknownCommand(ModularDeviceError):
    """Raised when a name is absent from the discovered command table."""

    kind = "unknown_command"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command {name!r}")
        self.name = name


class DiscoveryFailed(ModularDeviceError):
    """Raised when a reserved discovery call fails while opening.

    The underlying error is available as ``__cause__``.
    """

    kind = "discovery_failed"

    def __init__(self, step: str, reason: str = "") -> None:
        message = f"Discovery of {step} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.step = step
