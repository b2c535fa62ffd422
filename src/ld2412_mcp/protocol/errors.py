"""Errors raised by the LD2412 protocol codec.

Every error here describes bad input (usually bytes from the device) and
is recoverable: callers decide whether to drop, log or resynchronize.
"""

from __future__ import annotations


class ProtocolError(Exception):
    """Base error for the LD2412 protocol codec."""


class FrameMalformedError(ProtocolError):
    """Raised when bytes do not have the shape of the expected frame."""


class LengthMismatchError(ProtocolError):
    """Raised when a frame's length field disagrees with its contents."""

    def __init__(
        self, declared: int, actual: int, message: str | None = None
    ) -> None:
        super().__init__(
            message or f"Length field says {declared} bytes, frame carries {actual}"
        )
        self.declared = declared
        self.actual = actual


class UnknownDiscriminatorError(ProtocolError):
    """Raised when a target report has an unknown data type byte."""

    def __init__(self, datatype: int) -> None:
        super().__init__(f"Unknown target data type 0x{datatype:02X}")
        self.datatype = datatype


class UnknownTargetStateError(ProtocolError):
    """Raised when a target report carries an undefined state byte."""

    def __init__(self, value: int) -> None:
        super().__init__(f"Unknown target state 0x{value:02X}")
        self.value = value


class UnknownBaudRateError(ProtocolError, ValueError):
    """Raised when a baud rate has no protocol code."""

    def __init__(self, baud: int) -> None:
        super().__init__(f"Unsupported baud rate {baud}")
        self.baud = baud


class UnsupportedOperationError(ProtocolError, TypeError):
    """Raised when asked to encode a frame kind the host never sends."""
