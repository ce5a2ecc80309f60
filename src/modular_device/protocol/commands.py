"""Reserved command ids and the device-discovered command table.

Apart from a few reserved ids that every firmware build answers, command
ids are assigned by the firmware and learned at connect time by asking the
device for its name-to-id mapping.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import IntEnum
from types import MappingProxyType
from typing import Any

from ..models.messages import CommandDescriptor
from .framing import MAX_COMMAND_ID


class ReservedCommand(IntEnum):
    """Command ids that are fixed by convention."""

    GET_DEVICE_INFO = 0
    GET_COMMANDS = 1
    # Only answered by status-code firmware
    GET_RESPONSE_CODES = 2


# Key of the success entry in the status-code response code table
RESPONSE_SUCCESS_KEY = "rsp_success"


def _validate_id_mapping(payload: Any, what: str) -> dict[str, int]:
    if not isinstance(payload, Mapping):
        raise ValueError(
            f"{what} must be a mapping, got {type(payload).__name__}"
        )
    mapping: dict[str, int] = {}
    for name, value in payload.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{what} entry {name!r} is not an integer: {value!r}")
        mapping[str(name)] = value
    return mapping


class CommandTable(Mapping):
    """Immutable mapping from command name to command id.

    Built once per connection from the discovery reply; never mutated.
    """

    def __init__(self, ids: Mapping[str, int] | None = None) -> None:
        self._ids = MappingProxyType(dict(ids or {}))

    @classmethod
    def from_payload(cls, payload: Any) -> CommandTable:
        """Build a table from a discovery reply payload.

        Args:
            payload: Flat mapping of command name to integer id (0-65535).

        Raises:
            ValueError: If the payload is not a flat name-to-id mapping.
        """
        ids = _validate_id_mapping(payload, "Command table")
        for name, command_id in ids.items():
            if not 0 <= command_id <= MAX_COMMAND_ID:
                raise ValueError(
                    f"Command {name!r} id must be 0-{MAX_COMMAND_ID}, got {command_id}"
                )
        return cls(ids)

    def __getitem__(self, name: str) -> int:
        return self._ids[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"CommandTable({dict(self._ids)!r})"

    def descriptors(self) -> list[CommandDescriptor]:
        """Return the table as descriptors, ordered by id."""
        return sorted(
            (CommandDescriptor(name, command_id) for name, command_id in self._ids.items()),
            key=lambda d: (d.id, d.name),
        )

    def names(self) -> list[str]:
        return sorted(self._ids)


def build_response_codes(payload: Any) -> dict[str, int]:
    """Validate a response code table reply (status-code dialect)."""
    codes = _validate_id_mapping(payload, "Response code table")
    if RESPONSE_SUCCESS_KEY not in codes:
        raise ValueError(
            f"Response code table has no {RESPONSE_SUCCESS_KEY!r} entry"
        )
    return codes
