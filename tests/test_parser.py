"""Tests for target report and acknowledgement parsing."""

import pytest

from ld2412_mcp.models.target import (
    BasicTargetData,
    EngineeringModeData,
    Target,
    TargetData,
    TargetState,
)
from ld2412_mcp.protocol.commands import CommandOpcode, build_enable_configuration
from ld2412_mcp.protocol.errors import (
    FrameMalformedError,
    LengthMismatchError,
    UnknownDiscriminatorError,
    UnknownTargetStateError,
)
from ld2412_mcp.protocol.framing import TARGET_FOOTER, TARGET_HEADER
from ld2412_mcp.protocol.parser import (
    Acknowledgement,
    parse_acknowledgement,
    parse_response,
    parse_target_data,
)

BASIC_INTRAFRAME = bytes.fromhex("02 AA 02 64 00 32 C8 00 1E 55 05")


def _wrap(intraframe: bytes) -> bytes:
    """Wrap an intraframe in a target-report envelope."""
    return TARGET_HEADER + len(intraframe).to_bytes(2, "little") + intraframe + TARGET_FOOTER


def _engineering_intraframe(state: int = 0x03, calibration: int = 0xFE) -> bytes:
    basic = bytes([state, 0x78, 0x00, 0x40, 0x2C, 0x01, 0x20])
    diagnostic = bytes([0x0D, 0x0C])
    moving = bytes(range(10, 24))
    stationary = bytes(range(40, 54))
    light = bytes([0x99])
    return b"\x01\xAA" + basic + diagnostic + moving + stationary + light + bytes([0x55, calibration])


def test_parse_basic_report():
    """Basic report decodes targets and leaves engineering data absent."""
    data = parse_target_data(_wrap(BASIC_INTRAFRAME))
    assert data.basic_target_data == BasicTargetData(
        state=TargetState.STATIONARY,
        moving_target=Target(distance=100, energy=50),
        stationary_target=Target(distance=200, energy=30),
    )
    assert data.engineering_mode_data is None
    assert data.calibration == 5


def test_parse_engineering_report():
    data = parse_target_data(_wrap(_engineering_intraframe()))
    basic = data.basic_target_data
    assert basic.state == TargetState.MOTION_AND_STATIONARY
    assert basic.moving_target == Target(distance=120, energy=64)
    assert basic.stationary_target == Target(distance=300, energy=32)

    eng = data.engineering_mode_data
    assert eng is not None
    assert eng.b1 == 0x0D
    assert eng.b2 == 0x0C
    assert eng.moving_gate_energies == tuple(range(10, 24))
    assert eng.stationary_gate_energies == tuple(range(40, 54))
    assert eng.light == 0x99


def test_calibration_is_signed():
    data = parse_target_data(_wrap(_engineering_intraframe(calibration=0xFE)))
    assert data.calibration == -2


def test_every_state_decodes():
    for value in range(7):
        intraframe = bytearray(BASIC_INTRAFRAME)
        intraframe[2] = value
        assert parse_target_data(_wrap(bytes(intraframe))).basic_target_data.state == value


def test_unknown_state():
    intraframe = bytearray(BASIC_INTRAFRAME)
    intraframe[2] = 0x07
    with pytest.raises(UnknownTargetStateError) as exc_info:
        parse_target_data(_wrap(bytes(intraframe)))
    assert exc_info.value.value == 0x07


def test_unknown_discriminator():
    intraframe = bytearray(BASIC_INTRAFRAME)
    intraframe[0] = 0x03
    with pytest.raises(UnknownDiscriminatorError) as exc_info:
        parse_target_data(_wrap(bytes(intraframe)))
    assert exc_info.value.datatype == 0x03


def test_missing_head_marker():
    intraframe = bytearray(BASIC_INTRAFRAME)
    intraframe[1] = 0xAB
    with pytest.raises(FrameMalformedError):
        parse_target_data(_wrap(bytes(intraframe)))


def test_missing_tail_marker():
    intraframe = bytearray(BASIC_INTRAFRAME)
    intraframe[-2] = 0x56
    with pytest.raises(FrameMalformedError):
        parse_target_data(_wrap(bytes(intraframe)))


def test_short_intraframe():
    with pytest.raises(FrameMalformedError):
        parse_target_data(_wrap(b"\x02\xAA\x55"))


def test_basic_datatype_with_engineering_length():
    """Datatype and target byte count must agree."""
    intraframe = bytearray(_engineering_intraframe())
    intraframe[0] = 0x02
    with pytest.raises(FrameMalformedError):
        parse_target_data(_wrap(bytes(intraframe)))


def test_engineering_datatype_with_basic_length():
    intraframe = bytearray(BASIC_INTRAFRAME)
    intraframe[0] = 0x01
    with pytest.raises(FrameMalformedError):
        parse_target_data(_wrap(bytes(intraframe)))


def test_target_length_mismatch():
    data = bytearray(_wrap(BASIC_INTRAFRAME))
    data[4] = 0x0A
    with pytest.raises(LengthMismatchError):
        parse_target_data(bytes(data))


def test_target_parser_rejects_ack():
    with pytest.raises(FrameMalformedError):
        parse_target_data(build_enable_configuration())


def test_target_parser_rejects_garbage():
    with pytest.raises(FrameMalformedError):
        parse_target_data(b"\x00\x01\x02")


def test_parse_acknowledgement():
    data = bytes.fromhex("FD FC FB FA 04 00 11 00 AA BB 04 03 02 01")
    ack = parse_acknowledgement(data)
    assert ack == Acknowledgement(command=0x0011, data=b"\xAA\xBB")


def test_parse_acknowledgement_length_mismatch():
    data = bytes.fromhex("FD FC FB FA 05 00 11 00 AA BB 04 03 02 01")
    with pytest.raises(LengthMismatchError):
        parse_acknowledgement(data)


def test_ack_parser_rejects_target_report():
    with pytest.raises(FrameMalformedError):
        parse_acknowledgement(_wrap(BASIC_INTRAFRAME))


def test_acknowledgement_status():
    ack = parse_acknowledgement(
        bytes.fromhex("FD FC FB FA 08 00 FF 01 00 00 01 00 40 00 04 03 02 01")
    )
    assert ack.acknowledges(CommandOpcode.ENABLE_CONFIGURATION)
    assert not ack.acknowledges(CommandOpcode.END_CONFIGURATION)
    assert ack.status == 0
    assert ack.succeeded


def test_acknowledgement_failure_status():
    ack = Acknowledgement(command=0x01FE, data=b"\x01\x00")
    assert ack.status == 1
    assert not ack.succeeded


def test_acknowledgement_without_status():
    ack = Acknowledgement(command=0x01FE, data=b"")
    assert ack.status is None
    assert not ack.succeeded


def test_parse_response_dispatch():
    assert isinstance(parse_response(_wrap(BASIC_INTRAFRAME)), TargetData)
    assert isinstance(parse_response(build_enable_configuration()), Acknowledgement)
    assert parse_response(b"\x01\x02\x03") is None


def test_target_data_to_dict():
    d = parse_target_data(_wrap(_engineering_intraframe())).to_dict()
    assert d["basic_target_data"]["state"] == "motion_and_stationary"
    assert d["basic_target_data"]["moving_target"] == {"distance": 120, "energy": 64}
    assert d["engineering_mode_data"]["moving_gate_energies"] == list(range(10, 24))
    assert d["calibration"] == -2


def test_basic_to_dict_has_no_engineering_data():
    d = parse_target_data(_wrap(BASIC_INTRAFRAME)).to_dict()
    assert d["engineering_mode_data"] is None


def test_engineering_data_too_short():
    with pytest.raises(FrameMalformedError):
        EngineeringModeData.from_target_bytes(bytes(20))


def test_models_are_immutable():
    target = Target(distance=1, energy=2)
    with pytest.raises(AttributeError):
        target.distance = 5
