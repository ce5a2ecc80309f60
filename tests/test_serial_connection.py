"""Tests for the serial line transport."""

from unittest.mock import MagicMock, PropertyMock, call, patch

import pytest
import serial

from modular_device.errors import (
    LinkReadError,
    LinkTimeout,
    LinkUnavailable,
    LinkWriteError,
    MalformedResponse,
)
from modular_device.protocol.framing import parse_response
from modular_device.transport.serial_connection import (
    SerialConnection,
    SerialSettings,
)

SERIAL_CLS = "modular_device.transport.serial_connection.serial.Serial"


def _mock_port() -> MagicMock:
    port = MagicMock()
    port.is_open = True
    return port


def test_open_uses_settings():
    """The port is opened 8N1 with the configured speed and timeout."""
    port = _mock_port()
    with patch(SERIAL_CLS, return_value=port) as serial_cls:
        conn = SerialConnection("/dev/ttyACM0", SerialSettings(baudrate=115200, timeout=0.5))
        conn.open()

    serial_cls.assert_called_once_with(
        port="/dev/ttyACM0",
        baudrate=115200,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=0.5,
    )
    assert conn.is_open


def test_open_twice_is_noop():
    with patch(SERIAL_CLS, return_value=_mock_port()) as serial_cls:
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
        conn.open()
    assert serial_cls.call_count == 1


def test_open_failure_raises_link_unavailable():
    with patch(SERIAL_CLS, side_effect=serial.SerialException("port busy")):
        conn = SerialConnection("/dev/ttyACM0")
        with pytest.raises(LinkUnavailable) as excinfo:
            conn.open()

    assert isinstance(excinfo.value, ConnectionError)
    assert isinstance(excinfo.value.__cause__, serial.SerialException)
    assert not conn.is_open


def test_close_is_idempotent():
    """Closing twice releases the port once and never raises."""
    port = _mock_port()
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    conn.close()
    conn.close()
    port.close.assert_called_once()
    assert not conn.is_open


def test_close_never_opened():
    conn = SerialConnection("/dev/ttyACM0")
    conn.close()
    assert not conn.is_open


def test_close_error_still_releases(caplog):
    port = _mock_port()
    port.close.side_effect = serial.SerialException("gone")
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    conn.close()
    assert not conn.is_open
    assert "Error closing" in caplog.text


def test_context_manager_closes_on_error():
    port = _mock_port()
    with patch(SERIAL_CLS, return_value=port):
        with pytest.raises(RuntimeError):
            with SerialConnection("/dev/ttyACM0") as conn:
                assert conn.is_open
                raise RuntimeError("boom")
    port.close.assert_called_once()


def test_write_appends_terminator():
    port = _mock_port()
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    conn.write("[3, 5]")
    port.write.assert_called_once_with(b"[3, 5]\n")
    port.flush.assert_called_once()


def test_write_custom_terminator():
    port = _mock_port()
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0", SerialSettings(terminator=b"\r\n"))
        conn.open()
    conn.write("[0]")
    port.write.assert_called_once_with(b"[0]\r\n")


def test_write_when_closed():
    conn = SerialConnection("/dev/ttyACM0")
    with pytest.raises(LinkWriteError):
        conn.write("[0]")


def test_write_failure():
    port = _mock_port()
    port.write.side_effect = serial.SerialTimeoutException("write timeout")
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    with pytest.raises(LinkWriteError):
        conn.write("[0]")


def test_read_line_strips_terminator():
    port = _mock_port()
    port.read_until.return_value = b'{"id": 1, "result": {}}\r\n'
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    assert conn.read_line() == '{"id": 1, "result": {}}'
    port.read_until.assert_called_once_with(b"\n")


def test_read_line_applies_timeout():
    port = _mock_port()
    port.read_until.return_value = b"{}\n"
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    conn.read_line(timeout=0.25)
    assert port.timeout == 0.25


def test_read_line_keeps_matching_timeout():
    """The port is not reconfigured when the timeout is already in effect."""
    port = _mock_port()
    port.read_until.return_value = b"{}\n"
    timeout = PropertyMock(return_value=1.0)
    type(port).timeout = timeout
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0", SerialSettings(timeout=1.0))
        conn.open()
    conn.read_line()
    conn.read_line(timeout=1.0)
    assert call(1.0) not in timeout.call_args_list


def test_read_line_invalid_utf8():
    """A corrupted reply is malformed, never silently replaced."""
    port = _mock_port()
    port.read_until.return_value = b'{"id": 4, "result": "\xff\xfe"}\n'
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    with pytest.raises(MalformedResponse) as excinfo:
        parse_response(conn.read_line())
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)
    assert conn.is_open


def test_read_line_valid_utf8():
    port = _mock_port()
    port.read_until.return_value = '{"id": 0, "result": {"name": "Küvette"}}\n'.encode("utf-8")
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    assert parse_response(conn.read_line()) == {"id": 0, "result": {"name": "Küvette"}}


@pytest.mark.parametrize("raw", [b"", b'{"id": 1, "res'])
def test_read_line_timeout(raw):
    """Nothing, or a line without its terminator, means the read timed out."""
    port = _mock_port()
    port.read_until.return_value = raw
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    with pytest.raises(LinkTimeout) as excinfo:
        conn.read_line()
    assert isinstance(excinfo.value, TimeoutError)
    assert conn.is_open


def test_read_line_io_error():
    port = _mock_port()
    port.read_until.side_effect = serial.SerialException("device reports readiness but returned no data")
    with patch(SERIAL_CLS, return_value=port):
        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
    with pytest.raises(LinkReadError):
        conn.read_line()


def test_read_line_when_closed():
    conn = SerialConnection("/dev/ttyACM0")
    with pytest.raises(LinkReadError):
        conn.read_line()
