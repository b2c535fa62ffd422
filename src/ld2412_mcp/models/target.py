"""Target report models: decode the intraframe of a target-report frame.

Intraframe layout::

    +----------+------+------------------+------+-------------+
    | Datatype | 0xAA |   Target bytes   | 0x55 | Calibration |
    | 1 byte   |      | 7 (basic)        |      | 1 byte      |
    |          |      | 38 (engineering) |      | signed      |
    +----------+------+------------------+------+-------------+

Target bytes (offsets relative to the first target byte)::

    0      state
    1-2    moving target distance (cm, LE)
    3      moving target energy
    4-5    stationary target distance (cm, LE)
    6      stationary target energy
    -- engineering mode only --
    7-8    diagnostic bytes
    9-22   moving energy per gate
    23-36  stationary energy per gate
    37     ambient light
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import ClassVar

from ..protocol.errors import (
    FrameMalformedError,
    UnknownDiscriminatorError,
    UnknownTargetStateError,
)

DATATYPE_ENGINEERING = 0x01
DATATYPE_BASIC = 0x02
HEAD_MARKER = 0xAA
TAIL_MARKER = 0x55
GATE_COUNT = 14

# Offsets within the target bytes
OFF_STATE = 0
OFF_MOVING = 1
OFF_STATIONARY = 4
OFF_DIAGNOSTIC = 7
OFF_MOVING_GATES = 9
OFF_STATIONARY_GATES = OFF_MOVING_GATES + GATE_COUNT
OFF_LIGHT = OFF_STATIONARY_GATES + GATE_COUNT


class TargetState(IntEnum):
    """Detection phase reported in the state byte."""

    UNTARGETED = 0x00
    MOTION = 0x01
    STATIONARY = 0x02
    MOTION_AND_STATIONARY = 0x03
    BACKGROUND_NOISE_DETECTING = 0x04
    BACKGROUND_NOISE_DETECTION_SUCCEEDED = 0x05
    BACKGROUND_NOISE_DETECTION_FAILED = 0x06

    @classmethod
    def from_byte(cls, value: int) -> TargetState:
        try:
            return cls(value)
        except ValueError:
            raise UnknownTargetStateError(value) from None


@dataclass(frozen=True)
class Target:
    """A single detected target."""

    SIZE: ClassVar[int] = 3

    distance: int  # cm
    energy: int

    @classmethod
    def from_bytes(cls, data: bytes) -> Target:
        return cls(
            distance=int.from_bytes(data[0:2], "little"),
            energy=data[2],
        )


@dataclass(frozen=True)
class BasicTargetData:
    """State plus the strongest moving and stationary targets."""

    SIZE: ClassVar[int] = 7

    state: TargetState
    moving_target: Target
    stationary_target: Target

    @classmethod
    def from_bytes(cls, data: bytes) -> BasicTargetData:
        if len(data) < cls.SIZE:
            raise FrameMalformedError(
                f"Basic target data needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(
            state=TargetState.from_byte(data[OFF_STATE]),
            moving_target=Target.from_bytes(data[OFF_MOVING : OFF_MOVING + 3]),
            stationary_target=Target.from_bytes(
                data[OFF_STATIONARY : OFF_STATIONARY + 3]
            ),
        )

    def to_dict(self) -> dict:
        return {
            "state": self.state.name.lower(),
            "moving_target": asdict(self.moving_target),
            "stationary_target": asdict(self.stationary_target),
        }


@dataclass(frozen=True)
class EngineeringModeData:
    """Per-gate energies appended to reports in engineering mode."""

    SIZE: ClassVar[int] = 31

    b1: int
    b2: int
    moving_gate_energies: tuple[int, ...]
    stationary_gate_energies: tuple[int, ...]
    light: int

    @classmethod
    def from_target_bytes(cls, data: bytes) -> EngineeringModeData:
        """Decode from the full 38 target bytes of an engineering report."""
        if len(data) < OFF_LIGHT + 1:
            raise FrameMalformedError(
                f"Engineering data needs {OFF_LIGHT + 1} bytes, got {len(data)}"
            )
        return cls(
            b1=data[OFF_DIAGNOSTIC],
            b2=data[OFF_DIAGNOSTIC + 1],
            moving_gate_energies=tuple(
                data[OFF_MOVING_GATES:OFF_STATIONARY_GATES]
            ),
            stationary_gate_energies=tuple(
                data[OFF_STATIONARY_GATES:OFF_LIGHT]
            ),
            light=data[OFF_LIGHT],
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["moving_gate_energies"] = list(self.moving_gate_energies)
        d["stationary_gate_energies"] = list(self.stationary_gate_energies)
        return d


BASIC_TARGET_SIZE = BasicTargetData.SIZE
ENGINEERING_TARGET_SIZE = BasicTargetData.SIZE + EngineeringModeData.SIZE


@dataclass(frozen=True)
class TargetData:
    """A fully decoded target report."""

    basic_target_data: BasicTargetData
    engineering_mode_data: EngineeringModeData | None = None
    calibration: int = 0  # signed; meaning undocumented

    @classmethod
    def from_intraframe(cls, data: bytes) -> TargetData:
        """Decode the body of a target-report frame.

        Raises:
            FrameMalformedError: If the markers or target byte count are wrong.
            UnknownDiscriminatorError: If the datatype is neither basic nor
                engineering.
            UnknownTargetStateError: If the state byte is undefined.
        """
        if len(data) < 4:
            raise FrameMalformedError(
                f"Intraframe too short: {len(data)} bytes"
            )
        if data[1] != HEAD_MARKER or data[-2] != TAIL_MARKER:
            raise FrameMalformedError(
                f"Intraframe markers missing: {bytes(data).hex(' ')}"
            )

        datatype = data[0]
        target_bytes = data[2:-2]
        calibration = int.from_bytes(data[-1:], "little", signed=True)

        if datatype == DATATYPE_BASIC:
            expected = BASIC_TARGET_SIZE
        elif datatype == DATATYPE_ENGINEERING:
            expected = ENGINEERING_TARGET_SIZE
        else:
            raise UnknownDiscriminatorError(datatype)

        if len(target_bytes) != expected:
            raise FrameMalformedError(
                f"Data type 0x{datatype:02X} needs {expected} target bytes, "
                f"got {len(target_bytes)}"
            )

        engineering = None
        if datatype == DATATYPE_ENGINEERING:
            engineering = EngineeringModeData.from_target_bytes(target_bytes)

        return cls(
            basic_target_data=BasicTargetData.from_bytes(target_bytes),
            engineering_mode_data=engineering,
            calibration=calibration,
        )

    def to_dict(self) -> dict:
        return {
            "basic_target_data": self.basic_target_data.to_dict(),
            "engineering_mode_data": (
                self.engineering_mode_data.to_dict()
                if self.engineering_mode_data is not None
                else None
            ),
            "calibration": self.calibration,
        }
