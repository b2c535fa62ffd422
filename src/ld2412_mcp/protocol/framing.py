"""Envelope builder and parser for LD2412 serial frames.

Two envelopes share the same outline, a 4-byte header, a little-endian
length, a body and a 4-byte footer::

    Command / ACK (host <-> radar)
    +-------------+--------+--------+----------------+-------------+
    | FD FC FB FA | Length | Opcode |    Payload     | 04 03 02 01 |
    | 4 bytes     | 2 bytes| 2 bytes| Length - 2     | 4 bytes     |
    +-------------+--------+--------+----------------+-------------+

    Target report (radar -> host)
    +-------------+--------+-----------------------------+-------------+
    | F4 F3 F2 F1 | Length |         Intraframe          | F8 F7 F6 F5 |
    | 4 bytes     | 2 bytes| Length bytes                | 4 bytes     |
    +-------------+--------+-----------------------------+-------------+

- Length: little-endian u16. For command/ACK frames it counts the opcode
  plus payload; for target reports it counts the intraframe exactly.
- Opcode: little-endian u16 command word.

Only command/ACK frames can be built. Target reports are produced by the
radar and only ever parsed.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import LengthMismatchError, UnsupportedOperationError

COMMAND_HEADER = b"\xFD\xFC\xFB\xFA"
COMMAND_FOOTER = b"\x04\x03\x02\x01"
TARGET_HEADER = b"\xF4\xF3\xF2\xF1"
TARGET_FOOTER = b"\xF8\xF7\xF6\xF5"

OPCODE_SIZE = 2
MAX_PAYLOAD = 0xFFFF - OPCODE_SIZE
# header(4) + length(2) + footer(4)
ENVELOPE_OVERHEAD = 10


@dataclass(frozen=True)
class CommandAckFrame:
    """A command sent to the radar, or the radar's acknowledgement."""

    opcode: int
    payload: bytes = b""

    def encode(self) -> bytes:
        """Serialize this frame to wire bytes."""
        if not 0 <= self.opcode <= 0xFFFF:
            raise ValueError(f"Opcode must be 0-0xFFFF, got {self.opcode}")
        if len(self.payload) > MAX_PAYLOAD:
            raise ValueError(
                f"Payload must be at most {MAX_PAYLOAD} bytes, "
                f"got {len(self.payload)}"
            )
        length = (len(self.payload) + OPCODE_SIZE).to_bytes(2, "little")
        opcode = self.opcode.to_bytes(2, "little")
        return COMMAND_HEADER + length + opcode + bytes(self.payload) + COMMAND_FOOTER

    def __repr__(self) -> str:
        return (
            f"CommandAckFrame(opcode=0x{self.opcode:04X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


@dataclass(frozen=True)
class TargetFrame:
    """A periodic detection report. Decode-only."""

    payload: bytes

    def __repr__(self) -> str:
        return f"TargetFrame(payload={self.payload.hex(' ')})"


Frame = CommandAckFrame | TargetFrame


def build_frame(frame: CommandAckFrame) -> bytes:
    """Serialize a command frame.

    Raises:
        UnsupportedOperationError: If ``frame`` is not a ``CommandAckFrame``.
    """
    if not isinstance(frame, CommandAckFrame):
        raise UnsupportedOperationError(
            f"Only command frames can be encoded, got {type(frame).__name__}"
        )
    return frame.encode()


def build_command_frame(opcode: int, payload: bytes = b"") -> bytes:
    """Build the wire bytes for ``opcode`` with ``payload``."""
    return CommandAckFrame(opcode=opcode, payload=bytes(payload)).encode()


def _unwrap(data: bytes, header: bytes, footer: bytes) -> tuple[int, bytes] | None:
    """Return (declared length, body) if ``data`` has this header and footer."""
    if len(data) < ENVELOPE_OVERHEAD:
        return None
    if data[:4] != header or data[-4:] != footer:
        return None
    declared = int.from_bytes(data[4:6], "little")
    return declared, data[6:-4]


def parse_frame(data: bytes) -> Frame | None:
    """Classify and unwrap one complete frame.

    Args:
        data: Bytes believed to hold exactly one frame.

    Returns:
        A ``CommandAckFrame`` or ``TargetFrame``, or ``None`` if the bytes
        match neither envelope.

    Raises:
        LengthMismatchError: If the envelope matches but the length field
            disagrees with the body.
    """
    data = bytes(data)

    unwrapped = _unwrap(data, COMMAND_HEADER, COMMAND_FOOTER)
    if unwrapped is not None:
        declared, body = unwrapped
        if len(body) < OPCODE_SIZE:
            raise LengthMismatchError(
                declared,
                len(body),
                f"Command frame too short for an opcode: {len(body)} body bytes, "
                f"length field says {declared}",
            )
        if declared != len(body):
            raise LengthMismatchError(declared, len(body))
        opcode = int.from_bytes(body[:2], "little")
        return CommandAckFrame(opcode=opcode, payload=body[2:])

    unwrapped = _unwrap(data, TARGET_HEADER, TARGET_FOOTER)
    if unwrapped is not None:
        declared, intraframe = unwrapped
        if declared != len(intraframe):
            raise LengthMismatchError(declared, len(intraframe))
        return TargetFrame(payload=intraframe)

    return None
