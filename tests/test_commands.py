"""Tests for reserved command ids and the command table."""

import pytest

from modular_device.models import CommandDescriptor
from modular_device.protocol.commands import (
    RESPONSE_SUCCESS_KEY,
    CommandTable,
    ReservedCommand,
    build_response_codes,
)


def test_reserved_command_values():
    """Reserved ids are fixed by convention across firmware builds."""
    assert ReservedCommand.GET_DEVICE_INFO == 0
    assert ReservedCommand.GET_COMMANDS == 1
    assert ReservedCommand.GET_RESPONSE_CODES == 2


def test_table_from_payload():
    table = CommandTable.from_payload({"getInfo": 0, "enumerate": 1})
    assert table == {"getInfo": 0, "enumerate": 1}
    assert table["enumerate"] == 1
    assert "getInfo" in table
    assert len(table) == 2


def test_table_is_read_only():
    """The table cannot be modified once built."""
    table = CommandTable.from_payload({"setValue": 3})
    with pytest.raises(TypeError):
        table["setValue"] = 4
    assert not hasattr(table, "__setitem__")


def test_table_does_not_alias_payload():
    payload = {"setValue": 3}
    table = CommandTable.from_payload(payload)
    payload["other"] = 9
    assert "other" not in table


def test_empty_table():
    table = CommandTable()
    assert len(table) == 0
    assert table.names() == []


def test_table_names_sorted():
    table = CommandTable.from_payload({"zeta": 0, "alpha": 5, "mid": 2})
    assert table.names() == ["alpha", "mid", "zeta"]


def test_table_descriptors_ordered_by_id():
    table = CommandTable.from_payload({"zeta": 0, "alpha": 5, "mid": 2})
    assert table.descriptors() == [
        CommandDescriptor("zeta", 0),
        CommandDescriptor("mid", 2),
        CommandDescriptor("alpha", 5),
    ]


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [1, 2],
        "getInfo",
        {"getInfo": "0"},
        {"getInfo": 1.5},
        {"getInfo": True},
        {"getInfo": -1},
        {"big": 70000},
        {"big": 0x10000},
        {"nested": {"a": 1}},
    ],
)
def test_table_rejects_bad_payloads(payload):
    with pytest.raises(ValueError):
        CommandTable.from_payload(payload)


def test_table_accepts_largest_wire_id():
    table = CommandTable.from_payload({"last": 0xFFFF})
    assert table["last"] == 65535


def test_response_codes_require_success_entry():
    codes = build_response_codes({RESPONSE_SUCCESS_KEY: 0, "rsp_error": 1})
    assert codes[RESPONSE_SUCCESS_KEY] == 0
    with pytest.raises(ValueError):
        build_response_codes({"rsp_error": 1})
