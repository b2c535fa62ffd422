"""Tests for the MCP server tools."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from ld2412_mcp.models.target import TargetData
from ld2412_mcp.protocol.commands import (
    build_read_firmware_version,
    build_set_resolution,
    Resolution,
)
from ld2412_mcp.protocol.parser import Acknowledgement


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        # Remove cached server module so it re-imports with our mock
        sys.modules.pop("ld2412_mcp.server", None)
        import ld2412_mcp.server as server_mod

    return server_mod


@pytest.fixture
def server():
    server_mod = _get_server_module()
    yield server_mod
    server_mod._connection = None


def _connected(server_mod, ack: Acknowledgement | None = None) -> MagicMock:
    conn = MagicMock()
    conn.connected = True
    conn.send_and_receive.return_value = ack
    server_mod._connection = conn
    return conn


def test_tools_require_connection(server):
    result = server.get_firmware_version()
    assert "error" in result
    assert "connect" in result["error"]


def test_read_target_data_requires_connection(server):
    assert "error" in server.read_target_data()


def test_connect_rejects_unknown_baud(server):
    assert "error" in server.connect("/dev/ttyUSB0", 12345)


def test_connect_reports_open_failure(server):
    with patch.object(server, "SerialConnection") as conn_cls:
        conn_cls.return_value.open.side_effect = ConnectionError("busy")
        result = server.connect("/dev/ttyUSB9")
    assert result == {"error": "busy"}
    assert server._connection is None


def test_get_firmware_version(server):
    ack = Acknowledgement(
        command=0x01A0,
        data=bytes.fromhex("00 00 00 01 10 01 10 18 04 24"),
    )
    conn = _connected(server, ack)
    result = server.get_firmware_version()
    conn.send_and_receive.assert_called_once_with(build_read_firmware_version())
    assert result["version"] == "V1.10.24041810"
    assert result["firmware_type"] == 0x0100


def test_set_resolution(server):
    conn = _connected(server, Acknowledgement(command=0x0101, data=b"\x00\x00"))
    assert server.set_resolution("25cm") == {"success": True}
    conn.send_and_receive.assert_called_once_with(build_set_resolution(Resolution.CM_25))


def test_set_resolution_unknown_name(server):
    _connected(server)
    assert "error" in server.set_resolution("10cm")


def test_failed_status_is_reported(server):
    _connected(server, Acknowledgement(command=0x01FE, data=b"\x01\x00"))
    result = server.end_configuration()
    assert "status 1" in result["error"]


def test_wrong_acknowledgement_is_reported(server):
    _connected(server, Acknowledgement(command=0x01A0, data=b"\x00\x00"))
    assert "Unexpected" in server.reboot()["error"]


def test_no_response_is_reported(server):
    _connected(server, None)
    assert "No response" in server.factory_reset()["error"]


def test_set_baud_rate_unknown(server):
    conn = _connected(server)
    assert "error" in server.set_baud_rate(1234)
    conn.send_and_receive.assert_not_called()


def test_get_mac_address(server):
    ack = Acknowledgement(
        command=0x01A5,
        data=bytes.fromhex("00 00 8F 27 2E B8 0F 65"),
    )
    _connected(server, ack)
    assert server.get_mac_address() == {"mac_address": "8F:27:2E:B8:0F:65"}


def test_get_basic_parameters(server):
    ack = Acknowledgement(
        command=0x0112,
        data=bytes([0, 0, 1, 12, 0x2C, 0x01, 1]),
    )
    _connected(server, ack)
    assert server.get_basic_parameters() == {
        "min_distance": 1,
        "max_distance": 12,
        "unoccupied_duration": 300,
        "polarity": 1,
    }


def test_get_motion_sensitivity(server):
    ack = Acknowledgement(command=0x0113, data=b"\x00\x00" + bytes(range(14)))
    _connected(server, ack)
    assert server.get_motion_sensitivity() == {"sensitivity": list(range(14))}


def test_read_target_data(server):
    conn = _connected(server)
    report = TargetData.from_intraframe(bytes.fromhex("02 AA 01 64 00 32 C8 00 1E 55 05"))
    conn.read_target_data.return_value = report
    result = server.read_target_data()
    assert result["basic_target_data"]["state"] == "motion"
    assert result["engineering_mode_data"] is None


def test_disconnect(server):
    conn = _connected(server)
    assert server.disconnect() == {"disconnected": True}
    conn.close.assert_called_once()
    assert server._connection is None


def test_opcode_resource(server):
    table = json.loads(server.resource_opcodes())
    assert table["enable_configuration"] == "0x00FF"
    assert len(table) == 22


def test_lost_connection_during_command_is_reported(server):
    conn = _connected(server)
    conn.send_and_receive.side_effect = ConnectionError("Write to /dev/ttyUSB0 failed: unplugged")
    assert "unplugged" in server.end_configuration()["error"]
    assert "unplugged" in server.get_firmware_version()["error"]


def test_lost_connection_during_target_read_is_reported(server):
    conn = _connected(server)
    conn.read_target_data.side_effect = ConnectionError("Read from /dev/ttyUSB0 failed: unplugged")
    assert "unplugged" in server.read_target_data()["error"]
