"""Core data models shared by the session, patcher, flasher and CLI."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO


class EndOfFrame(Exception):
    """Signals that a frame payload holds no further entries."""


class FrameReader:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload
        self._offset = 0

    def read(self, fmt: str) -> tuple[int, ...]:
        size = struct.calcsize(fmt)
        if self._offset + size > len(self._payload):
            raise EndOfFrame
        values = struct.unpack_from(fmt, self._payload, self._offset)
        self._offset += size
        return values


@dataclass(frozen=True)
class Frame:
    """One decoded protocol message."""

    code: int
    payload: bytes = b""

    def byte(self, index: int) -> int:
        if index < len(self.payload):
            return self.payload[index]
        return 0

    def reader(self) -> FrameReader:
        return FrameReader(self.payload)


@dataclass(frozen=True)
class Command:
    code: int
    payload: bytes = b""


@dataclass(frozen=True)
class DeviceIdentity:
    variant: str = ""
    version: tuple[int, int, int] = (0, 0, 0)
    board_id: str = ""
    target_name: str | None = None
    build_date: str = ""
    build_time: str = ""
    build_revision: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.variant) and self.version[0] != 0 and bool(self.board_id)

    def summary(self) -> str:
        major, minor, patch = self.version
        target = f", target {self.target_name}" if self.target_name else ""
        return f"{self.variant} {major}.{minor}.{patch} (board {self.board_id}{target})"


@dataclass(frozen=True)
class SerialPortEntry:
    identifier: int
    function_mask: int
    msp_baud_index: int = 0
    gps_baud_index: int = 0
    telemetry_baud_index: int = 0
    peripheral_baud_index: int = 0


@dataclass(frozen=True)
class SessionState:
    """Everything learned from the board during one connection.

    Handlers never mutate a state; they return a replacement, and the
    session keeps the single authoritative copy. `revision` grows by one on
    every replacement and restarts at zero on reconnect.
    """

    identity: DeviceIdentity = field(default_factory=DeviceIdentity)
    features: int = 0
    serial_ports: tuple[SerialPortEntry, ...] = ()
    revision: int = 0

    @property
    def has_detected_target_name(self) -> bool:
        return bool(self.identity.target_name)


@dataclass(frozen=True)
class SessionOptions:
    port: str
    baud_rate: int = 115200
    enable_debug_trace: bool = False
    stdout: TextIO | None = field(default=None, compare=False, repr=False)
    codec: str | None = None
    source_dir: Path = Path(".")
    target: str | None = None
    retry_interval_s: float = 0.001


@dataclass(frozen=True)
class DfuDescriptor:
    alt: str
    serial: str
    flash_offset: str
    line: str


@dataclass(frozen=True)
class FlashJob:
    target_name: str
    source_dir: Path
    binary_path: Path
    device: DfuDescriptor
