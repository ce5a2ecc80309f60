"""Client for modular device firmware.

The device describes its own command set: right after the port is opened,
the client asks for the name-to-id table and from then on any discovered
command can be called by name::

    with ModularDevice("/dev/ttyACM0") as dev:
        print(dev.list_commands())
        dev.call("setValue", 5)
        value = dev.call("getValue")

Calls are strictly one at a time. Share a device between threads only
behind a single lock.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from .errors import DeviceNotOpen, DiscoveryFailed, ModularDeviceError, UnknownCommand
from .protocol.commands import (
    RESPONSE_SUCCESS_KEY,
    CommandTable,
    ReservedCommand,
    build_response_codes,
)
from .protocol.framing import build_request, parse_response
from .protocol.parser import Dialect, correlate, shape_result
from .transport.serial_connection import SerialConnection, SerialSettings

logger = logging.getLogger(__name__)


class ModularDevice:
    """A serial-attached device whose commands are discovered at open time.

    Args:
        port: Serial port name, e.g. ``/dev/ttyACM0`` or ``COM4``.
        dialect: Reply dialect spoken by the firmware.
        settings: Line settings; defaults to 9600 8N1 with a 2 s settle delay.
        transport: Pre-built transport, used instead of opening ``port``.
    """

    def __init__(
        self,
        port: str | None = None,
        dialect: Dialect | str = Dialect.RESULT,
        settings: SerialSettings | None = None,
        transport: SerialConnection | None = None,
    ) -> None:
        self._settings = settings or SerialSettings()
        if transport is None:
            if port is None:
                raise ValueError("Either a port or a transport is required")
            transport = SerialConnection(port, self._settings)
        self._transport = transport
        self._dialect = Dialect(dialect)
        self._commands = CommandTable()
        self._response_codes: dict[str, int] = {}
        self._device_info: Any = None

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return (
            f"ModularDevice(dialect={self._dialect.value}, {state}, "
            f"commands={len(self._commands)})"
        )

    # ─── STATE ────────────────────────────────────────────────────────

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def is_open(self) -> bool:
        return self._transport.is_open

    @property
    def commands(self) -> CommandTable:
        """The discovered command table (empty until opened)."""
        return self._commands

    @property
    def command_ids(self) -> Mapping[str, int]:
        return MappingProxyType(dict(self._commands))

    @property
    def response_codes(self) -> Mapping[str, int]:
        """Response codes reported by status-code firmware."""
        return MappingProxyType(self._response_codes)

    @property
    def device_info(self) -> Any:
        """Device information cached at open (status-code firmware only)."""
        return self._device_info

    # ─── LIFECYCLE ────────────────────────────────────────────────────

    def open(self) -> None:
        """Open the link, wait for the board to settle, and discover commands.

        Raises:
            LinkUnavailable: If the port cannot be claimed.
            DiscoveryFailed: If a discovery call fails. The link stays open.
        """
        if self.is_open:
            return

        self._transport.open()
        time.sleep(self._settings.settle_delay)

        self._commands = CommandTable()
        self._response_codes = {}
        self._device_info = None
        self._discover()

    def close(self) -> None:
        """Close the link. Safe to call when already closed."""
        self._transport.close()

    def __enter__(self) -> ModularDevice:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self) -> None:
        transport = getattr(self, "_transport", None)
        if transport is not None:
            transport.close()

    def _discover(self) -> None:
        if self._dialect is Dialect.STATUS:
            self._response_codes = self._discover_step(
                "response codes",
                ReservedCommand.GET_RESPONSE_CODES,
                build_response_codes,
            )
            self._device_info = self._discover_step(
                "device info", ReservedCommand.GET_DEVICE_INFO, lambda payload: payload
            )

        self._commands = self._discover_step(
            "commands", ReservedCommand.GET_COMMANDS, CommandTable.from_payload
        )
        logger.info(
            "Discovered %d commands: %s",
            len(self._commands),
            ", ".join(self._commands.names()),
        )

    def _discover_step(
        self,
        step: str,
        command_id: ReservedCommand,
        build: Callable[[Any], Any],
    ) -> Any:
        try:
            return build(self._request(command_id))
        except (ModularDeviceError, ValueError) as e:
            raise DiscoveryFailed(step, str(e)) from e

    # ─── CALLS ────────────────────────────────────────────────────────

    def _success_code(self) -> int | None:
        if self._dialect is not Dialect.STATUS:
            return None
        return self._response_codes.get(RESPONSE_SUCCESS_KEY)

    def _request(self, command_id: int, args: tuple[Any, ...] = ()) -> Any:
        if not self.is_open:
            raise DeviceNotOpen("Connection must be open to call the device")

        line = build_request(command_id, args)
        command_id = int(command_id)
        self._transport.write(line)
        response = parse_response(self._transport.read_line(self._settings.timeout))
        return correlate(response, command_id, self._dialect, self._success_code())

    def invoke(self, command_id: int, *args: Any) -> Any:
        """Call a command by numeric id and return the raw success payload."""
        return self._request(command_id, args)

    def call(self, name: str, *args: Any) -> Any:
        """Call a discovered command by name.

        Args:
            name: Command name as reported by the device.
            *args: Numbers, number sequences, or raw string fragments.

        Returns:
            The shaped result; see :func:`~.protocol.parser.shape_result`.

        Raises:
            DeviceNotOpen: If the connection is closed.
            UnknownCommand: If ``name`` was not discovered. Nothing is sent.
        """
        if not self.is_open:
            raise DeviceNotOpen("Connection must be open to call the device")
        try:
            command_id = self._commands[name]
        except KeyError:
            raise UnknownCommand(name) from None

        logger.debug("Calling %s (id %d) with %d args", name, command_id, len(args))
        return shape_result(self._request(command_id, args))

    def get_device_info(self) -> Any:
        """Ask the device for its identification (name, model, firmware...)."""
        info = self.invoke(ReservedCommand.GET_DEVICE_INFO)
        if self._dialect is Dialect.STATUS:
            self._device_info = info
        return info

    def list_commands(self) -> list[str]:
        """Return the discovered command names, sorted."""
        return self._commands.names()
