"""Response parsing for device messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..models.target import TargetData
from .errors import FrameMalformedError
from .framing import CommandAckFrame, TargetFrame, parse_frame

logger = logging.getLogger(__name__)

ACK_FLAG = 0x0100


@dataclass(frozen=True)
class Acknowledgement:
    """A command acknowledgement. ``data`` is left uninterpreted."""

    command: int
    data: bytes

    @property
    def status(self) -> int | None:
        """Leading status word (0 = success), if the payload has one."""
        if len(self.data) < 2:
            return None
        return int.from_bytes(self.data[:2], "little")

    @property
    def succeeded(self) -> bool:
        return self.status == 0

    def acknowledges(self, opcode: int) -> bool:
        """Whether this is the reply to a command sent with ``opcode``."""
        return self.command == (int(opcode) | ACK_FLAG)

    def __repr__(self) -> str:
        return (
            f"Acknowledgement(command=0x{self.command:04X}, "
            f"data={self.data.hex(' ') if self.data else '(empty)'})"
        )


def parse_target_data(data: bytes) -> TargetData:
    """Parse a complete target-report frame.

    Raises:
        FrameMalformedError: If ``data`` is not a target-report frame or its
            intraframe is misshapen.
        LengthMismatchError: If the length field disagrees with the body.
        UnknownDiscriminatorError: If the datatype byte is unknown.
        UnknownTargetStateError: If the state byte is undefined.
    """
    frame = parse_frame(data)
    if not isinstance(frame, TargetFrame):
        raise FrameMalformedError("Not a target report frame")
    return TargetData.from_intraframe(frame.payload)


def parse_acknowledgement(data: bytes) -> Acknowledgement:
    """Parse a complete command/ACK frame.

    Raises:
        FrameMalformedError: If ``data`` is not a command/ACK frame.
        LengthMismatchError: If the length field disagrees with the body.
    """
    frame = parse_frame(data)
    if not isinstance(frame, CommandAckFrame):
        raise FrameMalformedError("Not a command acknowledgement frame")
    return Acknowledgement(command=frame.opcode, data=frame.payload)


def parse_response(data: bytes) -> Acknowledgement | TargetData | None:
    """Auto-dispatch a frame to the matching decoder.

    Returns ``None`` if the bytes are not a recognized frame. Decoding
    errors propagate.
    """
    frame = parse_frame(data)
    if isinstance(frame, CommandAckFrame):
        return Acknowledgement(command=frame.opcode, data=frame.payload)
    if isinstance(frame, TargetFrame):
        return TargetData.from_intraframe(frame.payload)
    logger.debug("Unrecognized frame: %s", bytes(data).hex(" "))
    return None
