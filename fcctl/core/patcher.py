"""Debug trace enablement policy for feature flags and serial port functions."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, replace

from fcctl.core import msp
from fcctl.core.errors import FrameProtocolError
from fcctl.core.model import Command, DeviceIdentity, EndOfFrame, Frame, SerialPortEntry

DEBUG_TRACE_VARIANT = "INAV"
DEBUG_TRACE_MIN_VERSION = (1, 9, 0)
_BOTH_FUNCTIONS = msp.SERIAL_FUNCTION_MSP | msp.SERIAL_FUNCTION_DEBUG_TRACE
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeaturePatch:
    features: int
    commands: tuple[Command, ...] = ()
    message: str | None = None


@dataclass(frozen=True)
class SerialPortPatch:
    ports: tuple[SerialPortEntry, ...]
    commands: tuple[Command, ...] = ()
    message: str | None = None


def should_enable_debug_trace(identity: DeviceIdentity, requested: bool) -> bool:
    # Only INAV 1.9+ supports DEBUG_TRACE for now.
    return requested and identity.variant == DEBUG_TRACE_VARIANT and identity.version >= DEBUG_TRACE_MIN_VERSION


def read_features(frame: Frame) -> int:
    try:
        (features,) = frame.reader().read(msp.FEATURE_MASK)
    except EndOfFrame:
        raise FrameProtocolError(f"feature payload too short ({len(frame.payload)} bytes)") from None
    return features


def read_serial_ports(frame: Frame) -> tuple[SerialPortEntry, ...]:
    reader = frame.reader()
    ports: list[SerialPortEntry] = []
    while True:
        try:
            values = reader.read(msp.SERIAL_CONFIG_ENTRY)
        except EndOfFrame:
            return tuple(ports)
        ports.append(SerialPortEntry(*values))


def encode_serial_ports(ports: tuple[SerialPortEntry, ...]) -> bytes:
    return b"".join(
        struct.pack(
            msp.SERIAL_CONFIG_ENTRY,
            p.identifier,
            p.function_mask,
            p.msp_baud_index,
            p.gps_baud_index,
            p.telemetry_baud_index,
            p.peripheral_baud_index,
        )
        for p in ports
    )


def patch_features(features: int, identity: DeviceIdentity, requested: bool) -> FeaturePatch:
    if features & msp.FEATURE_DEBUG_TRACE or not should_enable_debug_trace(identity, requested):
        return FeaturePatch(features=features)
    updated = features | msp.FEATURE_DEBUG_TRACE
    LOGGER.info("Setting FEATURE_DEBUG_TRACE, feature mask 0x%08x -> 0x%08x", features, updated)
    return FeaturePatch(
        features=updated,
        commands=(
            Command(msp.SET_FEATURE, struct.pack(msp.FEATURE_MASK, updated)),
            Command(msp.EEPROM_WRITE),
        ),
        message="Enabling FEATURE_DEBUG_TRACE",
    )


def patch_serial_ports(
    ports: tuple[SerialPortEntry, ...],
    identity: DeviceIdentity,
    requested: bool,
) -> SerialPortPatch:
    if not should_enable_debug_trace(identity, requested):
        return SerialPortPatch(ports=ports)
    if any(p.function_mask & _BOTH_FUNCTIONS == _BOTH_FUNCTIONS for p in ports):
        return SerialPortPatch(ports=ports)

    # DEBUG_TRACE only works on one port: use the first MSP one.
    for index, port in enumerate(ports):
        if port.function_mask & msp.SERIAL_FUNCTION_MSP:
            patched = replace(port, function_mask=port.function_mask | msp.SERIAL_FUNCTION_DEBUG_TRACE)
            updated = ports[:index] + (patched,) + ports[index + 1 :]
            return SerialPortPatch(
                ports=updated,
                commands=(
                    Command(msp.SET_CF_SERIAL_CONFIG, encode_serial_ports(updated)),
                    Command(msp.EEPROM_WRITE),
                ),
                message=f"Enabling FUNCTION_DEBUG_TRACE on serial port {port.identifier}",
            )

    LOGGER.warning("No serial port has MSP enabled, leaving serial configuration untouched")
    return SerialPortPatch(
        ports=ports,
        message="Warning: no MSP serial port found, FUNCTION_DEBUG_TRACE not enabled",
    )
