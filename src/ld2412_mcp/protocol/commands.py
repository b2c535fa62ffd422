"""Command opcodes and high-level command builders.

Each builder returns a complete command/ACK frame ready to be written
to the serial port. The radar echoes ``opcode | 0x0100`` in its
acknowledgement.
"""

from __future__ import annotations

from enum import IntEnum

from .errors import UnknownBaudRateError
from .framing import build_command_frame

GATE_COUNT = 14


class CommandOpcode(IntEnum):
    """Command words understood by the LD2412."""

    ENABLE_CONFIGURATION = 0x00FF
    END_CONFIGURATION = 0x00FE
    RESOLUTION = 0x0001
    READ_RESOLUTION = 0x0011
    BASIC_PARAMETERS = 0x0002
    READ_BASIC_PARAMETERS = 0x0012
    ENABLE_ENGINEERING_MODE = 0x0062
    DISABLE_ENGINEERING_MODE = 0x0063
    MOTION_SENSITIVITY = 0x0003
    READ_MOTION_SENSITIVITY = 0x0013
    STATIC_SENSITIVITY = 0x0004
    READ_STATIC_SENSITIVITY = 0x0014
    BACKGROUND_CORRECTION = 0x000B
    READ_BACKGROUND_CORRECTION = 0x001B
    LIGHT_SENSOR_MODE = 0x000C
    READ_LIGHT_SENSOR_MODE = 0x001C
    FIRMWARE_VERSION = 0x00A0
    BAUD_RATE = 0x00A1
    FACTORY_RESET = 0x00A2
    REBOOT = 0x00A3
    BLUETOOTH = 0x00A4
    MAC_ADDRESS = 0x00A5


class Resolution(IntEnum):
    """Distance covered by each range gate."""

    CM_75 = 0x00
    CM_50 = 0x01
    CM_25 = 0x03


class LightSensorMode(IntEnum):
    """How the ambient light reading gates the OUT pin."""

    OFF = 0x00
    BELOW_THRESHOLD = 0x01
    ABOVE_THRESHOLD = 0x02


# Application baud rate -> protocol code
BAUD_RATE_CODES: dict[int, int] = {
    9600: 0x0001,
    19200: 0x0002,
    38400: 0x0003,
    57600: 0x0004,
    115200: 0x0005,
    230400: 0x0006,
    256000: 0x0007,
    460800: 0x0008,
}


def build_command(opcode: CommandOpcode | int, payload: bytes = b"") -> bytes:
    """Build a command frame for any opcode."""
    return build_command_frame(int(opcode), payload)


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be 0-255, got {value}")


# ─── CONFIGURATION SESSION ───────────────────────────────────────────

def build_enable_configuration() -> bytes:
    """Enter configuration mode. Other commands are ignored until this is sent."""
    return build_command(CommandOpcode.ENABLE_CONFIGURATION, b"\x01\x00")


def build_end_configuration() -> bytes:
    """Leave configuration mode and resume reporting."""
    return build_command(CommandOpcode.END_CONFIGURATION)


# ─── RANGE AND DETECTION PARAMETERS ──────────────────────────────────

def build_set_resolution(resolution: Resolution | int) -> bytes:
    """Set the distance resolution of each range gate.

    Args:
        resolution: One of :class:`Resolution`.
    """
    resolution = Resolution(resolution)
    return build_command(
        CommandOpcode.RESOLUTION, bytes([resolution]) + b"\x00" * 5
    )


def build_read_resolution() -> bytes:
    return build_command(CommandOpcode.READ_RESOLUTION)


def build_set_basic_parameters(
    min_distance: int,
    max_distance: int,
    unoccupied_duration: int,
    polarity: int,
) -> bytes:
    """Set detection range, unoccupied hold time and OUT pin polarity.

    Args:
        min_distance: Nearest range gate to report (0-255).
        max_distance: Farthest range gate to report (0-255).
        unoccupied_duration: Seconds to hold "occupied" after the last
            detection (0-65535).
        polarity: 0 for OUT high on detection, 1 for OUT low.
    """
    _check_byte("min_distance", min_distance)
    _check_byte("max_distance", max_distance)
    if not 0 <= unoccupied_duration <= 0xFFFF:
        raise ValueError(
            f"unoccupied_duration must be 0-65535, got {unoccupied_duration}"
        )
    if polarity not in (0, 1):
        raise ValueError(f"polarity must be 0 or 1, got {polarity}")
    payload = (
        bytes([min_distance, max_distance])
        + unoccupied_duration.to_bytes(2, "little")
        + bytes([polarity, 0x00])
    )
    return build_command(CommandOpcode.BASIC_PARAMETERS, payload)


def build_read_basic_parameters() -> bytes:
    return build_command(CommandOpcode.READ_BASIC_PARAMETERS)


def build_enable_engineering_mode() -> bytes:
    """Switch target reports to the engineering (per-gate) format."""
    return build_command(CommandOpcode.ENABLE_ENGINEERING_MODE)


def build_disable_engineering_mode() -> bytes:
    """Switch target reports back to the basic format."""
    return build_command(CommandOpcode.DISABLE_ENGINEERING_MODE)


def _sensitivity_payload(values: bytes | list[int]) -> bytes:
    if len(values) != GATE_COUNT:
        raise ValueError(
            f"Sensitivity needs {GATE_COUNT} gate values, got {len(values)}"
        )
    for value in values:
        _check_byte("Sensitivity", value)
    return bytes(values)


def build_set_motion_sensitivity(values: bytes | list[int]) -> bytes:
    """Set the motion energy threshold of each of the 14 gates."""
    return build_command(
        CommandOpcode.MOTION_SENSITIVITY, _sensitivity_payload(values)
    )


def build_read_motion_sensitivity() -> bytes:
    return build_command(CommandOpcode.READ_MOTION_SENSITIVITY)


def build_set_static_sensitivity(values: bytes | list[int]) -> bytes:
    """Set the static energy threshold of each of the 14 gates."""
    return build_command(
        CommandOpcode.STATIC_SENSITIVITY, _sensitivity_payload(values)
    )


def build_read_static_sensitivity() -> bytes:
    return build_command(CommandOpcode.READ_STATIC_SENSITIVITY)


def build_background_correction() -> bytes:
    """Start background noise calibration. Keep the area empty while it runs."""
    return build_command(CommandOpcode.BACKGROUND_CORRECTION)


def build_read_background_correction() -> bytes:
    """Query whether background noise calibration is still running."""
    return build_command(CommandOpcode.READ_BACKGROUND_CORRECTION)


def build_set_light_sensor_mode(
    mode: LightSensorMode | int, threshold: int = 0x80
) -> bytes:
    """Configure ambient light gating of the OUT pin.

    Args:
        mode: One of :class:`LightSensorMode`.
        threshold: Light level compared against (0-255).
    """
    mode = LightSensorMode(mode)
    _check_byte("threshold", threshold)
    return build_command(
        CommandOpcode.LIGHT_SENSOR_MODE, bytes([mode, threshold])
    )


def build_read_light_sensor_mode() -> bytes:
    return build_command(CommandOpcode.READ_LIGHT_SENSOR_MODE)


# ─── MODULE MANAGEMENT ───────────────────────────────────────────────

def build_read_firmware_version() -> bytes:
    return build_command(CommandOpcode.FIRMWARE_VERSION)


def build_set_baud_rate(baud: int) -> bytes:
    """Change the UART baud rate. Takes effect after a reboot.

    Raises:
        UnknownBaudRateError: If ``baud`` is not in :data:`BAUD_RATE_CODES`.
    """
    if baud not in BAUD_RATE_CODES:
        raise UnknownBaudRateError(baud)
    return build_command(
        CommandOpcode.BAUD_RATE, BAUD_RATE_CODES[baud].to_bytes(2, "little")
    )


def build_factory_reset() -> bytes:
    """Restore factory settings. Takes effect after a reboot."""
    return build_command(CommandOpcode.FACTORY_RESET)


def build_reboot() -> bytes:
    return build_command(CommandOpcode.REBOOT)


def build_set_bluetooth(enabled: bool) -> bytes:
    """Turn the Bluetooth radio on or off. Takes effect after a reboot."""
    return build_command(
        CommandOpcode.BLUETOOTH, b"\x01\x00" if enabled else b"\x00\x00"
    )


def build_read_mac_address() -> bytes:
    return build_command(CommandOpcode.MAC_ADDRESS, b"\x01\x00")
