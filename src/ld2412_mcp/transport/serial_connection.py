"""UART connection to the HLK-LD2412 radar.

The radar streams target reports continuously and answers commands with
acknowledgement frames on the same line. Bytes are accumulated from a
frame header until the length field says the frame is complete, then
handed to the protocol parser.
"""

from __future__ import annotations

import logging
import time

import serial

from ..models.target import TargetData
from ..protocol.errors import ProtocolError
from ..protocol.framing import (
    COMMAND_FOOTER,
    COMMAND_HEADER,
    ENVELOPE_OVERHEAD,
    TARGET_FOOTER,
    TARGET_HEADER,
)
from ..protocol.parser import Acknowledgement, parse_response

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 115200
READ_TIMEOUT_S = 1.0
READ_CHUNK = 64
COMMAND_DELAY_S = 0.1

HEADER_SIZE = 4
# Largest frame the radar sends is an engineering report (52 bytes)
MAX_FRAME_SIZE = 256

ENVELOPES = (
    (TARGET_HEADER, TARGET_FOOTER),
    (COMMAND_HEADER, COMMAND_FOOTER),
)


class FrameAccumulator:
    """Split a byte stream into complete frames.

    A frame starts at a command or target header, its length field says
    where it ends, and it must end with the footer of the same kind.
    Bytes that cannot start a frame are discarded, so the buffer never
    holds more than ``MAX_FRAME_SIZE`` bytes.

    Usage::

        acc = FrameAccumulator()
        for frame in acc.feed(chunk):
            parse_response(frame)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def _find_header(self) -> tuple[int, bytes] | None:
        """Offset of the earliest header and the footer it pairs with."""
        best = None
        for header, footer in ENVELOPES:
            index = self._buffer.find(header)
            if index != -1 and (best is None or index < best[0]):
                best = (index, footer)
        return best

    def feed(self, data: bytes) -> list[bytes]:
        """Append ``data`` and return every frame completed by it."""
        self._buffer.extend(data)
        frames: list[bytes] = []
        while True:
            found = self._find_header()
            if found is None:
                # Keep a possible partial header
                keep = HEADER_SIZE - 1
                if len(self._buffer) > keep:
                    del self._buffer[: len(self._buffer) - keep]
                return frames

            start, footer = found
            del self._buffer[:start]
            if len(self._buffer) < HEADER_SIZE + 2:
                return frames

            declared = int.from_bytes(
                self._buffer[HEADER_SIZE : HEADER_SIZE + 2], "little"
            )
            size = ENVELOPE_OVERHEAD + declared
            if size > MAX_FRAME_SIZE:
                logger.debug("Skipping header with length field %d", declared)
                del self._buffer[:1]
                continue
            if len(self._buffer) < size:
                return frames

            if self._buffer[size - len(footer) : size] != footer:
                logger.debug("Skipping header without matching footer")
                del self._buffer[:1]
                continue

            frames.append(bytes(self._buffer[:size]))
            del self._buffer[:size]


class SerialConnection:
    """Manages the serial connection to the radar.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        ack = conn.send_and_receive(build_enable_configuration())
        report = conn.read_target_data()
        conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
    ) -> None:
        self._port_name = port
        self._baudrate = baudrate
        self._serial: serial.Serial | None = None
        self._accumulator = FrameAccumulator()
        self._pending: list[bytes] = []

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port(self) -> str:
        return self._port_name

    @property
    def baudrate(self) -> int:
        return self._baudrate

    def open(self) -> None:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        try:
            self._serial = serial.Serial(
                self._port_name, self._baudrate, timeout=0.1
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open {self._port_name} at {self._baudrate} baud: {e}"
            ) from e

        self._serial.reset_input_buffer()
        self._accumulator.clear()
        self._pending.clear()
        logger.info("Connected to %s at %d baud", self._port_name, self._baudrate)

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write a command frame to the radar.

        Raises:
            ConnectionError: If not connected or the write fails.
        """
        if not self.connected:
            raise ConnectionError("Not connected to device")
        logger.debug("TX %s", data.hex(" "))
        try:
            written = self._serial.write(data)
            self._serial.flush()
        except serial.SerialException as e:
            raise ConnectionError(f"Write to {self._port_name} failed: {e}") from e
        return written

    def read_frame(self, timeout_s: float = READ_TIMEOUT_S) -> bytes | None:
        """Read bytes until one complete frame is available.

        Returns:
            The raw frame, or None if the timeout expired first.

        Raises:
            ConnectionError: If not connected or the read fails.
        """
        if not self.connected:
            raise ConnectionError("Not connected to device")

        deadline = time.monotonic() + timeout_s
        while not self._pending:
            if time.monotonic() >= deadline:
                return None
            try:
                chunk = self._serial.read(READ_CHUNK)
            except serial.SerialException as e:
                raise ConnectionError(
                    f"Read from {self._port_name} failed: {e}"
                ) from e
            if chunk:
                self._pending.extend(self._accumulator.feed(chunk))

        frame = self._pending.pop(0)
        logger.debug("RX %s", frame.hex(" "))
        return frame

    def _read_until(self, kind: type, timeout_s: float):
        deadline = time.monotonic() + timeout_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            frame = self.read_frame(remaining)
            if frame is None:
                return None
            try:
                result = parse_response(frame)
            except ProtocolError as e:
                logger.warning("Dropping bad frame: %s", e)
                continue
            if isinstance(result, kind):
                return result

    def send_and_receive(
        self,
        data: bytes,
        timeout_s: float = READ_TIMEOUT_S,
    ) -> Acknowledgement | None:
        """Send a command frame and wait for its acknowledgement.

        Target reports arriving in the meantime are skipped.

        Returns:
            The acknowledgement, or None if none arrived in time.
        """
        self.write(data)
        time.sleep(COMMAND_DELAY_S)
        return self._read_until(Acknowledgement, timeout_s)

    def read_target_data(
        self, timeout_s: float = READ_TIMEOUT_S
    ) -> TargetData | None:
        """Read the next decodable target report, or None on timeout."""
        return self._read_until(TargetData, timeout_s)
