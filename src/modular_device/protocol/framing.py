"""Request line builder and response line parser.

Request layout (one ASCII line, terminator appended by the transport)::

    [<command id>, <arg 1>, <arg 2>, ...]

- Command id: unsigned 16-bit decimal literal
- Numeric scalar: bare decimal literal, e.g. ``5`` or ``2.5``
- Numeric sequence: compact JSON array with no whitespace, e.g. ``[1,2,3]``
- String: inserted verbatim, never quoted (may be a pre-serialized JSON value)

Responses are one JSON object per line.
"""

from __future__ import annotations

import json
import math
from typing import Any

from ..errors import MalformedResponse, UnsupportedArgumentType
from ..models.messages import Request

MAX_COMMAND_ID = 0xFFFF
ARG_SEPARATOR = ", "


def _is_number(value: Any) -> bool:
    # bool is an int subclass but has no decimal-literal wire form
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and not math.isfinite(value))


def _is_number_sequence(value: Any) -> bool:
    if not isinstance(value, (list, tuple)):
        return False
    return all(
        _is_number(item) or _is_number_sequence(item) for item in value
    )


def encode_argument(arg: Any, position: int = 1) -> str:
    """Encode a single request argument as its wire token.

    Args:
        arg: Numeric scalar, numeric sequence, or raw string.
        position: 1-based argument position, used in error messages.

    Raises:
        UnsupportedArgumentType: If the argument has no wire form.
    """
    if _is_number(arg):
        return repr(arg) if isinstance(arg, float) else str(arg)

    if isinstance(arg, (list, tuple)):
        if not _is_number_sequence(arg):
            raise UnsupportedArgumentType(
                position, arg, "sequences may only contain finite numbers"
            )
        return json.dumps(arg, separators=(",", ":"))

    if isinstance(arg, str):
        if "\n" in arg or "\r" in arg:
            raise UnsupportedArgumentType(
                position, arg, "string arguments must not contain line breaks"
            )
        if not arg.isascii():
            raise UnsupportedArgumentType(
                position, arg, "string arguments must be ASCII"
            )
        return arg

    raise UnsupportedArgumentType(position, arg)


def build_request(command_id: int, args: tuple[Any, ...] | list[Any] = ()) -> str:
    """Build the wire line for a remote call.

    Args:
        command_id: Firmware-assigned command id (0-65535).
        args: Ordered call arguments.

    Returns:
        The request line without a terminator, e.g. ``"[3, 5]"``.
    """
    if isinstance(command_id, bool) or not isinstance(command_id, int):
        raise ValueError(f"Command id must be an integer, got {command_id!r}")
    if not 0 <= command_id <= MAX_COMMAND_ID:
        raise ValueError(
            f"Command id must be 0-{MAX_COMMAND_ID}, got {command_id}"
        )
    tokens = [str(int(command_id))]
    tokens.extend(
        encode_argument(arg, position) for position, arg in enumerate(args, start=1)
    )
    return "[" + ARG_SEPARATOR.join(tokens) + "]"


def _split_top_level(body: str) -> list[str]:
    """Split on commas that are not nested inside brackets, braces or quotes."""
    tokens: list[str] = []
    depth = 0
    in_string = False
    escaped = False
    start = 0
    for i, char in enumerate(body):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in "[{":
            depth += 1
        elif char in "]}":
            depth -= 1
        elif char == "," and depth == 0:
            tokens.append(body[start:i])
            start = i + 1
    tokens.append(body[start:])
    return [token.strip() for token in tokens]


def _decode_token(token: str) -> Any:
    try:
        return int(token)
    except ValueError:
        pass
    try:
        value = float(token)
    except ValueError:
        pass
    else:
        # "nan" and "inf" are raw tokens, never encoded numbers
        if math.isfinite(value):
            return value
    if token.startswith("["):
        try:
            return json.loads(token)
        except ValueError:
            return token
    return token


def parse_request(line: str) -> Request:
    """Parse a request line back into a :class:`Request`.

    Numbers become ``int``/``float``, bracketed arrays become lists, and every
    other token is kept as the raw string it was sent as.

    Raises:
        ValueError: If the line is not a bracketed request.
    """
    text = line.strip()
    if not (text.startswith("[") and text.endswith("]")) or len(text) < 3:
        raise ValueError(f"Not a request line: {line!r}")

    tokens = _split_top_level(text[1:-1])
    try:
        command_id = int(tokens[0])
    except ValueError as e:
        raise ValueError(f"Invalid command id in request: {tokens[0]!r}") from e

    return Request(
        command_id=command_id,
        args=tuple(_decode_token(token) for token in tokens[1:]),
    )


def parse_response(line: str | bytes) -> dict[str, Any]:
    """Parse one response line as a JSON object.

    Args:
        line: A received line, with or without its terminator.

    Returns:
        The decoded object. Field presence is not checked here.

    Raises:
        MalformedResponse: If the line is empty, not valid JSON, or not an
            object.
    """
    if isinstance(line, bytes):
        try:
            text = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedResponse("Response is not valid text", line) from e
    else:
        text = line

    text = text.strip()
    if not text:
        raise MalformedResponse("Empty response line", line)

    try:
        response = json.loads(text)
    except ValueError as e:
        raise MalformedResponse(f"Unable to parse device response: {e}", line) from e

    if not isinstance(response, dict):
        raise MalformedResponse(
            f"Device response must be a JSON object, got {type(response).__name__}",
            line,
        )
    return response
