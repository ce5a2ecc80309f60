"""Response correlation and result shaping.

Two firmware families answer with different field names:

- ``Dialect.STATUS``: ``{"method_id": 3, "status": 0, ...fields}``
- ``Dialect.RESULT``: ``{"id": 3, "result": ...}`` or ``{"id": 3, "error": {...}}``

:func:`correlate` validates a decoded response against the request id for
the selected dialect and returns the success payload or raises a classified
error.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from ..errors import (
    DeviceError,
    IdMismatch,
    MissingEchoedId,
    MissingResult,
    MissingStatus,
)


class Dialect(str, Enum):
    """Reply dialect spoken by a firmware family."""

    STATUS = "status"
    RESULT = "result"


# Field names escaped by firmware that uses them as mapping keys
ESCAPED_FIELD_NAMES = {
    "x0x2D_": "-",
    "x0x2B_": "+",
}


def _check_echoed_id(response: dict[str, Any], field: str, request_id: int) -> None:
    if field not in response:
        raise MissingEchoedId(f"Device response does not contain {field!r}")
    echoed = response[field]
    # JSON true would otherwise compare equal to id 1
    if isinstance(echoed, bool) or echoed != request_id:
        raise IdMismatch(request_id, response[field])


def _correlate_status(
    response: dict[str, Any],
    request_id: int,
    success_code: int | None,
) -> dict[str, Any]:
    _check_echoed_id(response, "method_id", request_id)
    if "status" not in response:
        raise MissingStatus("Device response does not contain 'status'")

    status = response["status"]
    # No success code is known while the response code table is fetched
    if success_code is not None and status != success_code:
        message = response.get("error_message")
        if message is None:
            message = "device responded with error, but error message is missing"
        raise DeviceError(message=message, code=status)

    return {
        key: value
        for key, value in response.items()
        if key not in ("method_id", "status")
    }


def _correlate_result(
    response: dict[str, Any],
    request_id: int,
    success_code: int | None,
) -> Any:
    _check_echoed_id(response, "id", request_id)

    if "error" in response:
        error = response["error"]
        if not isinstance(error, dict):
            raise DeviceError(message=str(error))
        raise DeviceError(
            message=error.get("message", ""),
            code=error.get("code", ""),
            data=error.get("data", ""),
        )

    if "result" not in response:
        raise MissingResult("Device response does not contain 'result'")
    return response["result"]


_CORRELATORS: dict[Dialect, Callable[[dict[str, Any], int, int | None], Any]] = {
    Dialect.STATUS: _correlate_status,
    Dialect.RESULT: _correlate_result,
}


def correlate(
    response: dict[str, Any],
    request_id: int,
    dialect: Dialect = Dialect.RESULT,
    success_code: int | None = None,
) -> Any:
    """Validate a decoded response and extract its success payload.

    Args:
        response: Object returned by :func:`~.framing.parse_response`.
        request_id: Command id of the request that produced the response.
        dialect: Reply dialect spoken by the device.
        success_code: Status value meaning success (status dialect only).
            ``None`` skips the status comparison.

    Returns:
        The response fields minus ``method_id``/``status`` (status dialect)
        or the ``result`` value (result dialect).

    Raises:
        MissingEchoedId, MissingStatus, MissingResult: Required field absent.
        IdMismatch: The echoed id differs from ``request_id``.
        DeviceError: The device reported a failure.
    """
    return _CORRELATORS[Dialect(dialect)](response, request_id, success_code)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, tuple, dict)) and len(value) == 0)


def unescape_field_name(name: str) -> str:
    return ESCAPED_FIELD_NAMES.get(name, name)


def shape_result(payload: Any) -> Any:
    """Convert a success payload into a caller-friendly return value.

    - no fields: ``None``
    - one field: that field's value
    - several fields: the payload, or the list of field names when every
      value is empty (introspection replies)

    Non-mapping payloads are returned unchanged.
    """
    if not isinstance(payload, dict):
        return payload
    if not payload:
        return None
    if len(payload) == 1:
        return next(iter(payload.values()))
    if not all(_is_empty(value) for value in payload.values()):
        return payload
    return [unescape_field_name(name) for name in payload]
