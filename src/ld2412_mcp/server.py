"""MCP server entry point for the HLK-LD2412 radar.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .protocol.commands import (
    BAUD_RATE_CODES,
    CommandOpcode,
    LightSensorMode,
    Resolution,
    build_background_correction,
    build_disable_engineering_mode,
    build_enable_configuration,
    build_enable_engineering_mode,
    build_end_configuration,
    build_factory_reset,
    build_read_background_correction,
    build_read_basic_parameters,
    build_read_firmware_version,
    build_read_light_sensor_mode,
    build_read_mac_address,
    build_read_motion_sensitivity,
    build_read_resolution,
    build_read_static_sensitivity,
    build_reboot,
    build_set_basic_parameters,
    build_set_baud_rate,
    build_set_bluetooth,
    build_set_light_sensor_mode,
    build_set_motion_sensitivity,
    build_set_resolution,
    build_set_static_sensitivity,
)
from .protocol.errors import ProtocolError
from .protocol.parser import Acknowledgement
from .transport.serial_connection import (
    DEFAULT_BAUDRATE,
    DEFAULT_PORT,
    SerialConnection,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "ld2412",
    instructions="MCP server for the HLK-LD2412 24 GHz presence radar",
)

# Global connection state
_connection: SerialConnection | None = None

RESOLUTION_NAMES = {
    "75cm": Resolution.CM_75,
    "50cm": Resolution.CM_50,
    "25cm": Resolution.CM_25,
}

LIGHT_MODE_NAMES = {
    "off": LightSensorMode.OFF,
    "below": LightSensorMode.BELOW_THRESHOLD,
    "above": LightSensorMode.ABOVE_THRESHOLD,
}


def _get_connection() -> SerialConnection:
    """Get the active serial connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _connection


def _command(frame: bytes, opcode: CommandOpcode) -> Acknowledgement:
    """Send a command frame and return its successful acknowledgement.

    Raises:
        RuntimeError: If the radar does not answer, answers another
            command, or reports a failure status.
    """
    conn = _get_connection()
    try:
        ack = conn.send_and_receive(frame)
    except ConnectionError as e:
        raise RuntimeError(str(e)) from e
    if ack is None:
        raise RuntimeError(f"No response to {opcode.name}")
    if not ack.acknowledges(opcode):
        raise RuntimeError(
            f"Unexpected acknowledgement 0x{ack.command:04X} for {opcode.name}"
        )
    if not ack.succeeded:
        raise RuntimeError(f"{opcode.name} failed with status {ack.status}")
    return ack


def _simple(frame: bytes, opcode: CommandOpcode) -> dict[str, Any]:
    try:
        _command(frame, opcode)
    except (RuntimeError, ProtocolError, ValueError) as e:
        return {"error": str(e)}
    return {"success": True}


def _format_firmware(data: bytes) -> dict[str, Any]:
    """Firmware ACK: status(2) type(2) major(2) minor(4)."""
    if len(data) < 10:
        return {"raw": data.hex(" ")}
    minor = "".join(f"{b:02x}" for b in reversed(data[6:10]))
    return {
        "firmware_type": int.from_bytes(data[2:4], "little"),
        "version": f"V{data[5]}.{data[4]:02x}.{minor}",
    }


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str = DEFAULT_PORT, baudrate: int = DEFAULT_BAUDRATE) -> dict[str, Any]:
    """Open the serial connection to the radar.

    Args:
        port: Serial device (default /dev/ttyUSB0).
        baudrate: UART speed the radar is configured for (default 115200).
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.port,
        }

    if baudrate not in BAUD_RATE_CODES:
        return {"error": f"Unsupported baud rate {baudrate}"}

    _connection = SerialConnection(port, baudrate)
    try:
        _connection.open()
    except ConnectionError as e:
        _connection = None
        return {"error": str(e)}

    return {"connected": True, "port": port, "baudrate": baudrate}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── CONFIGURATION SESSION ────────────────────────────────────────────

@mcp.tool()
def enable_configuration() -> dict[str, Any]:
    """Enter configuration mode. Required before any other command."""
    try:
        ack = _command(
            build_enable_configuration(), CommandOpcode.ENABLE_CONFIGURATION
        )
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    result: dict[str, Any] = {"success": True}
    if len(ack.data) >= 6:
        result["protocol_version"] = int.from_bytes(ack.data[2:4], "little")
        result["buffer_size"] = int.from_bytes(ack.data[4:6], "little")
    return result


@mcp.tool()
def end_configuration() -> dict[str, Any]:
    """Leave configuration mode and resume target reporting."""
    return _simple(build_end_configuration(), CommandOpcode.END_CONFIGURATION)


# ─── DEVICE INFORMATION ───────────────────────────────────────────────

@mcp.tool()
def get_firmware_version() -> dict[str, Any]:
    """Read the firmware type and version."""
    try:
        ack = _command(build_read_firmware_version(), CommandOpcode.FIRMWARE_VERSION)
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    return _format_firmware(ack.data)


@mcp.tool()
def get_mac_address() -> dict[str, Any]:
    """Read the Bluetooth MAC address."""
    try:
        ack = _command(build_read_mac_address(), CommandOpcode.MAC_ADDRESS)
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    if len(ack.data) < 8:
        return {"error": "Short MAC address response", "raw": ack.data.hex(" ")}
    return {"mac_address": ":".join(f"{b:02X}" for b in ack.data[2:8])}


# ─── DETECTION PARAMETERS ─────────────────────────────────────────────

@mcp.tool()
def set_resolution(resolution: str) -> dict[str, Any]:
    """Set the distance covered by each range gate.

    Args:
        resolution: One of "75cm", "50cm", "25cm".
    """
    if resolution not in RESOLUTION_NAMES:
        return {"error": f"Unknown resolution '{resolution}'. Valid: {list(RESOLUTION_NAMES)}"}
    return _simple(
        build_set_resolution(RESOLUTION_NAMES[resolution]), CommandOpcode.RESOLUTION
    )


@mcp.tool()
def get_resolution() -> dict[str, Any]:
    """Read the current range gate resolution."""
    try:
        ack = _command(build_read_resolution(), CommandOpcode.READ_RESOLUTION)
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    if len(ack.data) < 3:
        return {"error": "Short resolution response", "raw": ack.data.hex(" ")}
    code = ack.data[2]
    names = {v: k for k, v in RESOLUTION_NAMES.items()}
    return {"resolution": names.get(code, f"unknown (0x{code:02X})")}


@mcp.tool()
def set_basic_parameters(
    min_distance: int,
    max_distance: int,
    unoccupied_duration: int,
    polarity: int = 0,
) -> dict[str, Any]:
    """Set the detection range, unoccupied hold time and OUT pin polarity.

    Args:
        min_distance: Nearest range gate reported.
        max_distance: Farthest range gate reported.
        unoccupied_duration: Seconds to keep reporting presence after the
            last detection.
        polarity: 0 = OUT high on detection, 1 = OUT low on detection.
    """
    try:
        frame = build_set_basic_parameters(
            min_distance, max_distance, unoccupied_duration, polarity
        )
    except ValueError as e:
        return {"error": str(e)}
    return _simple(frame, CommandOpcode.BASIC_PARAMETERS)


@mcp.tool()
def get_basic_parameters() -> dict[str, Any]:
    """Read the detection range, unoccupied hold time and OUT polarity."""
    try:
        ack = _command(build_read_basic_parameters(), CommandOpcode.READ_BASIC_PARAMETERS)
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    data = ack.data
    if len(data) < 7:
        return {"error": "Short parameter response", "raw": data.hex(" ")}
    return {
        "min_distance": data[2],
        "max_distance": data[3],
        "unoccupied_duration": int.from_bytes(data[4:6], "little"),
        "polarity": data[6],
    }


@mcp.tool()
def set_motion_sensitivity(values: list[int]) -> dict[str, Any]:
    """Set the motion threshold for each of the 14 range gates (0-100)."""
    try:
        frame = build_set_motion_sensitivity(values)
    except ValueError as e:
        return {"error": str(e)}
    return _simple(frame, CommandOpcode.MOTION_SENSITIVITY)


@mcp.tool()
def set_static_sensitivity(values: list[int]) -> dict[str, Any]:
    """Set the static threshold for each of the 14 range gates (0-100)."""
    try:
        frame = build_set_static_sensitivity(values)
    except ValueError as e:
        return {"error": str(e)}
    return _simple(frame, CommandOpcode.STATIC_SENSITIVITY)


def _read_sensitivity(frame: bytes, opcode: CommandOpcode) -> dict[str, Any]:
    try:
        ack = _command(frame, opcode)
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    if len(ack.data) < 16:
        return {"error": "Short sensitivity response", "raw": ack.data.hex(" ")}
    return {"sensitivity": list(ack.data[2:16])}


@mcp.tool()
def get_motion_sensitivity() -> dict[str, Any]:
    """Read the motion threshold of each range gate."""
    return _read_sensitivity(
        build_read_motion_sensitivity(), CommandOpcode.READ_MOTION_SENSITIVITY
    )


@mcp.tool()
def get_static_sensitivity() -> dict[str, Any]:
    """Read the static threshold of each range gate."""
    return _read_sensitivity(
        build_read_static_sensitivity(), CommandOpcode.READ_STATIC_SENSITIVITY
    )


@mcp.tool()
def set_engineering_mode(enabled: bool) -> dict[str, Any]:
    """Switch target reports between engineering (per-gate) and basic format."""
    if enabled:
        return _simple(
            build_enable_engineering_mode(), CommandOpcode.ENABLE_ENGINEERING_MODE
        )
    return _simple(
        build_disable_engineering_mode(), CommandOpcode.DISABLE_ENGINEERING_MODE
    )


@mcp.tool()
def start_background_correction() -> dict[str, Any]:
    """Start background noise calibration. Keep the area empty meanwhile."""
    return _simple(build_background_correction(), CommandOpcode.BACKGROUND_CORRECTION)


@mcp.tool()
def get_background_correction() -> dict[str, Any]:
    """Check whether background noise calibration is running."""
    try:
        ack = _command(
            build_read_background_correction(), CommandOpcode.READ_BACKGROUND_CORRECTION
        )
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    if len(ack.data) < 4:
        return {"error": "Short calibration response", "raw": ack.data.hex(" ")}
    return {"running": int.from_bytes(ack.data[2:4], "little") == 0x0001}


@mcp.tool()
def set_light_sensor_mode(mode: str, threshold: int = 0x80) -> dict[str, Any]:
    """Configure ambient light gating of the OUT pin.

    Args:
        mode: One of "off", "below", "above".
        threshold: Light level compared against (0-255).
    """
    if mode not in LIGHT_MODE_NAMES:
        return {"error": f"Unknown mode '{mode}'. Valid: {list(LIGHT_MODE_NAMES)}"}
    try:
        frame = build_set_light_sensor_mode(LIGHT_MODE_NAMES[mode], threshold)
    except ValueError as e:
        return {"error": str(e)}
    return _simple(frame, CommandOpcode.LIGHT_SENSOR_MODE)


@mcp.tool()
def get_light_sensor_mode() -> dict[str, Any]:
    """Read the ambient light gating configuration."""
    try:
        ack = _command(
            build_read_light_sensor_mode(), CommandOpcode.READ_LIGHT_SENSOR_MODE
        )
    except (RuntimeError, ProtocolError) as e:
        return {"error": str(e)}
    if len(ack.data) < 4:
        return {"error": "Short light sensor response", "raw": ack.data.hex(" ")}
    names = {v: k for k, v in LIGHT_MODE_NAMES.items()}
    return {
        "mode": names.get(ack.data[2], f"unknown (0x{ack.data[2]:02X})"),
        "threshold": ack.data[3],
    }


# ─── MODULE MANAGEMENT ────────────────────────────────────────────────

@mcp.tool()
def set_baud_rate(baudrate: int) -> dict[str, Any]:
    """Change the UART baud rate. Applies after reboot; reconnect afterwards."""
    try:
        frame = build_set_baud_rate(baudrate)
    except ProtocolError as e:
        return {"error": str(e)}
    return _simple(frame, CommandOpcode.BAUD_RATE)


@mcp.tool()
def set_bluetooth(enabled: bool) -> dict[str, Any]:
    """Turn Bluetooth on or off. Applies after reboot."""
    return _simple(build_set_bluetooth(enabled), CommandOpcode.BLUETOOTH)


@mcp.tool()
def factory_reset() -> dict[str, Any]:
    """Restore factory settings. Applies after reboot."""
    return _simple(build_factory_reset(), CommandOpcode.FACTORY_RESET)


@mcp.tool()
def reboot() -> dict[str, Any]:
    """Restart the radar module."""
    return _simple(build_reboot(), CommandOpcode.REBOOT)


# ─── TARGET DATA ──────────────────────────────────────────────────────

@mcp.tool()
def read_target_data(timeout_s: float = 1.0) -> dict[str, Any]:
    """Read and decode the next target report.

    Includes per-gate energies when engineering mode is enabled.
    """
    try:
        conn = _get_connection()
    except RuntimeError as e:
        return {"error": str(e)}
    try:
        data = conn.read_target_data(timeout_s)
    except ConnectionError as e:
        return {"error": str(e)}
    if data is None:
        return {"error": "No target report received"}
    return data.to_dict()


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("ld2412://device/status")
def resource_device_status() -> str:
    """Current connection status."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "port": _connection.port,
        "baudrate": _connection.baudrate,
    })


@mcp.resource("ld2412://protocol/opcodes")
def resource_opcodes() -> str:
    """Command opcode table."""
    return json.dumps(
        {op.name.lower(): f"0x{op.value:04X}" for op in CommandOpcode},
        indent=2,
    )


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
