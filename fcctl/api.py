"""Stable public API for building tooling on top of fcctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

from fcctl.core.dfu import device_lines, parse_descriptor
from fcctl.core.errors import (
    BinaryNotFoundError,
    CodecResolutionError,
    ConfigLoadError,
    ConfigValidationError,
    DescriptorParseError,
    DeviceWaitTimeoutError,
    DisconnectedError,
    EmptyTargetError,
    FcctlError,
    FlashError,
    FrameProtocolError,
    SessionFatalError,
    ToolInvocationError,
    TransportConnectError,
    TransportError,
)
from fcctl.core.flash import DFU_UTIL, FlashOrchestrator
from fcctl.core.model import (
    DeviceIdentity,
    DfuDescriptor,
    FlashJob,
    Frame,
    SerialPortEntry,
    SessionOptions,
    SessionState,
)
from fcctl.core.session import Session, connect
from fcctl.core.tools import capture_tool
from fcctl.transports.base import Codec, CodecFactory
from fcctl.transports.registry import load_codec_factory

__all__ = [
    "FcctlError",
    "BinaryNotFoundError",
    "CodecResolutionError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DescriptorParseError",
    "DeviceWaitTimeoutError",
    "DisconnectedError",
    "EmptyTargetError",
    "FlashError",
    "FrameProtocolError",
    "SessionFatalError",
    "ToolInvocationError",
    "TransportError",
    "TransportConnectError",
    "Codec",
    "CodecFactory",
    "DeviceIdentity",
    "DfuDescriptor",
    "FlashJob",
    "Frame",
    "SerialPortEntry",
    "SessionOptions",
    "SessionState",
    "Client",
]


class Client:
    """Public client for one flight controller.

    A `Client` wraps codec lookup, the reconnecting session and the DFU
    flasher behind a stable API intended for third-party tools.
    """

    def __init__(
        self,
        options: SessionOptions,
        *,
        codec_factory: CodecFactory | None = None,
    ) -> None:
        self.options = options
        self._codec_factory = codec_factory
        self._session: Session | None = None

    def __enter__(self) -> Client:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def state(self) -> SessionState:
        return self._require_session().state

    def connect(self) -> None:
        if self._session is not None:
            return
        factory = self._codec_factory or load_codec_factory(self.options.codec)
        self._session = connect(self.options, factory)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def run(self, on_frame: Callable[[Frame], None] | None = None) -> NoReturn:
        self._require_session().receive_loop(on_frame)

    def wait_for_identity(self, timeout_s: float = 5.0) -> DeviceIdentity:
        session = self._require_session()
        session.pump(lambda state: state.identity.is_complete, timeout_s=timeout_s)
        return session.state.identity

    def reboot(self) -> None:
        self._require_session().reboot()

    def flash(self, *, target: str | None = None, source_dir: Path | None = None) -> FlashJob:
        orchestrator = FlashOrchestrator(self._require_session())
        return orchestrator.flash(source_dir or self.options.source_dir, target or self.options.target)

    @staticmethod
    def list_dfu_devices() -> list[DfuDescriptor]:
        devices: list[DfuDescriptor] = []
        for line in device_lines(capture_tool([DFU_UTIL, "--list"])):
            try:
                devices.append(parse_descriptor(line))
            except DescriptorParseError:
                continue
        return devices

    def _require_session(self) -> Session:
        if self._session is None:
            raise SessionFatalError("Client is not connected. Call connect() first.")
        return self._session
