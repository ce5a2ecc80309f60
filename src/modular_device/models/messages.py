"""Request, command descriptor, and error record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CommandDescriptor:
    """A firmware command: human-readable name and its numeric id."""

    name: str
    id: int


@dataclass
class Request:
    """A single remote call: command id plus ordered arguments."""

    command_id: int
    args: tuple[Any, ...] = field(default_factory=tuple)

    def __repr__(self) -> str:
        return f"Request(command_id={self.command_id}, args={list(self.args)!r})"


@dataclass
class ErrorRecord:
    """Classified failure, reported by the device or synthesized locally."""

    kind: str
    message: str = ""
    code: Any = ""
    data: Any = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind, "error": self.message}
        if self.code not in ("", None):
            result["code"] = self.code
        if self.data not in ("", None):
            result["data"] = self.data
        return result
