"""MCP server entry point for modular devices.

Exposes the device's self-described commands as MCP tools using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from mcp.server.fastmcp import FastMCP

from .device import ModularDevice
from .errors import ModularDeviceError
from .protocol.parser import Dialect
from .transport.serial_connection import BAUD_RATE, SerialSettings

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "modular-device",
    instructions=(
        "Control a serial-attached modular device. Connect first, then use "
        "list_commands to see what the firmware offers and call_command to "
        "run one."
    ),
)

# Global connection state; tool handlers may run on worker threads
_device: ModularDevice | None = None
_lock = threading.Lock()


def _get_device() -> ModularDevice:
    """Get the open device, raising if not connected."""
    if _device is None or not _device.is_open:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _device


def _error(e: ModularDeviceError) -> dict[str, Any]:
    return e.to_record().to_dict()


def _wire_argument(arg: Any) -> Any:
    # Objects travel as pre-serialized JSON fragments
    if isinstance(arg, dict):
        return json.dumps(arg, separators=(",", ":"))
    return arg


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str,
    dialect: str = Dialect.RESULT.value,
    baudrate: int = BAUD_RATE,
) -> dict[str, Any]:
    """Open a serial connection to a modular device and discover its commands.

    Args:
        port: Serial port, e.g. /dev/ttyACM0 or COM4.
        dialect: Reply dialect, "result" or "status".
        baudrate: Line speed (default 9600).
    """
    global _device
    with _lock:
        if _device is not None and _device.is_open:
            return {
                "connected": True,
                "message": "Already connected",
                "commands": len(_device.commands),
            }

        try:
            device = ModularDevice(
                port,
                dialect=Dialect(dialect),
                settings=SerialSettings(baudrate=baudrate),
            )
        except ValueError:
            return {"error": f"Unknown dialect {dialect!r}. Valid: {[d.value for d in Dialect]}"}

        try:
            device.open()
        except ModularDeviceError as e:
            # A failed discovery leaves the port open; do not leak it
            device.close()
            return _error(e)

        _device = device
        result: dict[str, Any] = {
            "connected": True,
            "port": port,
            "dialect": device.dialect.value,
            "commands": device.list_commands(),
        }
        if device.device_info is not None:
            result["device_info"] = device.device_info
        return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection to the device."""
    global _device
    with _lock:
        if _device is not None:
            _device.close()
            _device = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Retrieve device identification (name, model number, serial number, firmware)."""
    with _lock:
        device = _get_device()
        try:
            return {"device_info": device.get_device_info()}
        except ModularDeviceError as e:
            return _error(e)


# ─── COMMAND TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def list_commands() -> dict[str, Any]:
    """List the commands reported by the device firmware, with their ids."""
    with _lock:
        device = _get_device()
        return {
            "commands": [
                {"name": d.name, "id": d.id} for d in device.commands.descriptors()
            ]
        }


@mcp.tool()
def call_command(name: str, args: list[Any] | None = None) -> dict[str, Any]:
    """Call a device command by name.

    Args:
        name: Command name from list_commands.
        args: Positional arguments: numbers, lists of numbers, or strings.
              Objects are sent as compact JSON.
    """
    with _lock:
        device = _get_device()
        try:
            result = device.call(name, *[_wire_argument(a) for a in args or []])
        except ModularDeviceError as e:
            logger.info("Command %s failed: %s", name, e)
            return _error(e)
        return {"command": name, "result": result}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("modular-device://commands")
def resource_commands() -> str:
    """Discovered command table (name to id)."""
    with _lock:
        if _device is None:
            return json.dumps({"commands": {}})
        return json.dumps({"commands": dict(_device.commands)})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
