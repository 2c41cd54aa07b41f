from __future__ import annotations

import pytest

from fcctl.core import msp
from fcctl.core.errors import FrameProtocolError
from fcctl.core.identity import apply_identity_frame
from fcctl.core.model import DeviceIdentity, Frame


def _board_payload(board_id: str = "OBF4", target: str | None = None) -> bytes:
    # board id, hw revision (u16), osd type (u8), vcp (u8)
    payload = board_id.encode() + bytes(4)
    if target is not None:
        payload += bytes([len(target)]) + target.encode()
    return payload


def test_variant_is_payload_text() -> None:
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.FC_VARIANT, b"INAV"))
    assert identity.variant == "INAV"


def test_version_reads_three_bytes_in_order() -> None:
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.FC_VERSION, bytes([1, 9, 2])))
    assert identity.version == (1, 9, 2)


def test_board_info_without_target_name() -> None:
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.BOARD_INFO, b"OBF4"))
    assert identity.board_id == "OBF4"
    assert identity.target_name is None


def test_board_info_with_target_name() -> None:
    payload = _board_payload(target="OMNIBUSF4")
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.BOARD_INFO, payload))
    assert identity.board_id == "OBF4"
    assert identity.target_name == "OMNIBUSF4"


def test_board_info_truncated_target_name_is_ignored() -> None:
    payload = _board_payload(target="OMNIBUSF4")[:-1]
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.BOARD_INFO, payload))
    assert identity.board_id == "OBF4"
    assert identity.target_name is None


def test_board_info_without_target_name_keeps_detected_one() -> None:
    identity = DeviceIdentity(board_id="OBF4", target_name="OMNIBUSF4")
    identity = apply_identity_frame(identity, Frame(msp.BOARD_INFO, _board_payload("OBF5")))
    assert identity.board_id == "OBF5"
    assert identity.target_name == "OMNIBUSF4"


def test_board_info_zero_length_target_name() -> None:
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.BOARD_INFO, _board_payload(target="")))
    assert identity.target_name == ""


def test_board_info_shorter_than_board_id_is_protocol_error() -> None:
    with pytest.raises(FrameProtocolError):
        apply_identity_frame(DeviceIdentity(), Frame(msp.BOARD_INFO, b"OB"))


def test_build_info_fixed_width_fields() -> None:
    payload = b"Feb 26 2018" + b"14:05:31" + b"5c8c7e1a"
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.BUILD_INFO, payload))
    assert identity.build_date == "Feb 26 2018"
    assert identity.build_time == "14:05:31"
    assert identity.build_revision == "5c8c7e1a"


def test_build_info_seven_character_revision() -> None:
    payload = b"Feb 26 2018" + b"14:05:31" + b"5c8c7e1"
    identity = apply_identity_frame(DeviceIdentity(), Frame(msp.BUILD_INFO, payload))
    assert identity.build_revision == "5c8c7e1"


def test_other_frames_leave_identity_untouched() -> None:
    identity = DeviceIdentity(variant="INAV")
    assert apply_identity_frame(identity, Frame(msp.API_VERSION, bytes([0, 1, 40]))) is identity


def test_identity_complete_requires_variant_version_and_board() -> None:
    identity = DeviceIdentity()
    identity = apply_identity_frame(identity, Frame(msp.FC_VARIANT, b"INAV"))
    assert not identity.is_complete
    identity = apply_identity_frame(identity, Frame(msp.FC_VERSION, bytes([1, 9, 0])))
    assert not identity.is_complete
    identity = apply_identity_frame(identity, Frame(msp.BOARD_INFO, b"OBF4"))
    assert identity.is_complete
    assert identity.summary() == "INAV 1.9.0 (board OBF4)"


def test_summary_includes_target_name() -> None:
    identity = DeviceIdentity(variant="INAV", version=(2, 0, 1), board_id="OBF4", target_name="OMNIBUSF4")
    assert identity.summary() == "INAV 2.0.1 (board OBF4, target OMNIBUSF4)"
