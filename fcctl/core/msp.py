"""MSP message codes and flag bits used by the session."""

from __future__ import annotations

API_VERSION = 1
FC_VARIANT = 2
FC_VERSION = 3
BOARD_INFO = 4
BUILD_INFO = 5
FEATURE = 36
SET_FEATURE = 37
CF_SERIAL_CONFIG = 54
SET_CF_SERIAL_CONFIG = 55
REBOOT = 68
EEPROM_WRITE = 250
DEBUGMSG = 253

FEATURE_DEBUG_TRACE = 1 << 31

SERIAL_FUNCTION_MSP = 1 << 0
SERIAL_FUNCTION_DEBUG_TRACE = 1 << 15

# identifier(u8) function_mask(u16) msp/gps/telemetry/peripheral baud indexes(u8)
SERIAL_CONFIG_ENTRY = "<BHBBBB"
FEATURE_MASK = "<I"

INFO_REQUESTS = (
    API_VERSION,
    FC_VARIANT,
    FC_VERSION,
    BOARD_INFO,
    BUILD_INFO,
    FEATURE,
    CF_SERIAL_CONFIG,
)

# Frames that only acknowledge a command we sent.
ACKNOWLEDGEMENTS = frozenset({SET_FEATURE, SET_CF_SERIAL_CONFIG, EEPROM_WRITE})
