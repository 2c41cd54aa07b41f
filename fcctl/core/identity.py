"""Incremental assembly of the board identity from MSP info replies."""

from __future__ import annotations

from dataclasses import replace

from fcctl.core import msp
from fcctl.core.errors import FrameProtocolError
from fcctl.core.model import DeviceIdentity, Frame

BOARD_ID_LENGTH = 4
# Board id, then HW revision (u16), OSD type (u8) and VCP flag (u8), then
# the length-prefixed target name on recent firmwares.
TARGET_NAME_LENGTH_OFFSET = 8
BUILD_DATE_LENGTH = 11
BUILD_TIME_LENGTH = 8

IDENTITY_FRAMES = frozenset({msp.FC_VARIANT, msp.FC_VERSION, msp.BOARD_INFO, msp.BUILD_INFO})


def _text(data: bytes) -> str:
    return data.decode("ascii", errors="replace")


def parse_target_name(payload: bytes) -> str | None:
    if len(payload) <= TARGET_NAME_LENGTH_OFFSET:
        return None
    length = payload[TARGET_NAME_LENGTH_OFFSET]
    start = TARGET_NAME_LENGTH_OFFSET + 1
    if len(payload) < start + length:
        return None
    return _text(payload[start : start + length])


def apply_identity_frame(identity: DeviceIdentity, frame: Frame) -> DeviceIdentity:
    """Return `identity` updated with the fields carried by `frame`.

    Frames that carry no identity fields return `identity` unchanged. Raises
    FrameProtocolError when a payload is too short for its fixed fields.
    """
    payload = frame.payload
    if frame.code == msp.FC_VARIANT:
        return replace(identity, variant=_text(payload))
    if frame.code == msp.FC_VERSION:
        return replace(identity, version=(frame.byte(0), frame.byte(1), frame.byte(2)))
    if frame.code == msp.BOARD_INFO:
        if len(payload) < BOARD_ID_LENGTH:
            raise FrameProtocolError(f"board info payload too short ({len(payload)} bytes)")
        target_name = parse_target_name(payload)
        return replace(
            identity,
            board_id=_text(payload[:BOARD_ID_LENGTH]),
            target_name=identity.target_name if target_name is None else target_name,
        )
    if frame.code == msp.BUILD_INFO:
        time_end = BUILD_DATE_LENGTH + BUILD_TIME_LENGTH
        if len(payload) < time_end:
            raise FrameProtocolError(f"build info payload too short ({len(payload)} bytes)")
        # Revision is 8 characters on INAV, 7 on Betaflight/Cleanflight.
        return replace(
            identity,
            build_date=_text(payload[:BUILD_DATE_LENGTH]),
            build_time=_text(payload[BUILD_DATE_LENGTH:time_end]),
            build_revision=_text(payload[time_end:]),
        )
    return identity
