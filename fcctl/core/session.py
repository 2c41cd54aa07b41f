"""Session with a flight controller: receive loop, reconnection and frame dispatch."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import NoReturn

from fcctl.core import msp
from fcctl.core.errors import (
    DisconnectedError,
    FrameProtocolError,
    SessionFatalError,
    TransportConnectError,
)
from fcctl.core.identity import IDENTITY_FRAMES, apply_identity_frame
from fcctl.core.model import Command, Frame, SessionOptions, SessionState
from fcctl.core.patcher import (
    patch_features,
    patch_serial_ports,
    read_features,
    read_serial_ports,
)
from fcctl.transports.base import Codec, CodecFactory

LOGGER = logging.getLogger(__name__)


class Session:
    """A connection to one flight controller.

    The session owns the codec and the authoritative `SessionState`. When the
    board goes away the receive loop closes the stale codec and keeps trying
    to open the port again until it succeeds, then starts over with an empty
    state and asks the board for its info again.
    """

    def __init__(
        self,
        options: SessionOptions,
        codec_factory: CodecFactory,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.options = options
        self.state = SessionState()
        self.reconnects = 0
        self._codec_factory = codec_factory
        self._codec: Codec | None = None
        self._sleep = sleep
        self._clock = clock

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        return self._codec is not None

    def open(self) -> None:
        self._codec = self._open_codec()
        self._request_info()

    def close(self) -> None:
        codec, self._codec = self._codec, None
        if codec is None:
            return
        try:
            codec.close()
        except OSError as exc:
            LOGGER.debug("Closing %s failed: %s", self.options.port, exc)

    def reconnect(self) -> None:
        self.close()
        attempts = 0
        while True:
            attempts += 1
            try:
                codec = self._open_codec()
            except TransportConnectError as exc:
                LOGGER.debug("Reconnect attempt %d to %s failed: %s", attempts, self.options.port, exc)
                self._sleep(self.options.retry_interval_s)
                continue

            LOGGER.info("Reconnected to %s after %d attempt(s)", self.options.port, attempts)
            self._print(f"Reconnected to {self.options.port} @ {self.options.baud_rate}bps")
            self.state = SessionState()
            self.reconnects += 1
            self._codec = codec
            try:
                self._request_info()
            except DisconnectedError:
                self._on_disconnect()
                self.close()
                self._sleep(self.options.retry_interval_s)
                continue
            return

    def receive_loop(self, on_frame: Callable[[Frame], None] | None = None) -> NoReturn:
        """Read and dispatch frames forever.

        Disconnections and recoverable protocol errors are handled here; any
        other failure is raised as SessionFatalError.
        """
        while True:
            frame = self._receive_one()
            if frame is None:
                continue
            self._dispatch(frame)
            if on_frame is not None:
                on_frame(frame)

    def pump(self, until: Callable[[SessionState], bool], timeout_s: float) -> bool:
        """Process frames until `until(state)` holds or `timeout_s` elapses."""
        deadline = self._clock() + timeout_s
        while not until(self.state):
            if self._clock() >= deadline:
                return False
            frame = self._receive_one()
            if frame is not None:
                self._dispatch(frame)
        return True

    def reboot(self) -> None:
        self._write(Command(msp.REBOOT))

    def reboot_into_bootloader(self) -> None:
        self._require_codec().reboot_into_bootloader()

    def handle_frame(self, frame: Frame) -> None:
        code = frame.code
        if code == msp.API_VERSION:
            self._print(f"MSP API version {frame.byte(1)}.{frame.byte(2)} (protocol {frame.byte(0)})")
        elif code in IDENTITY_FRAMES:
            self._handle_identity(frame)
        elif code == msp.FEATURE:
            try:
                features = read_features(frame)
            except FrameProtocolError as exc:
                LOGGER.warning("Ignoring MSP frame %d: %s", code, exc)
                return
            patch = patch_features(features, self.state.identity, self.options.enable_debug_trace)
            self._update(features=patch.features)
            self._apply_patch(patch.message, patch.commands)
        elif code == msp.CF_SERIAL_CONFIG:
            patch = patch_serial_ports(read_serial_ports(frame), self.state.identity, self.options.enable_debug_trace)
            self._update(serial_ports=patch.ports)
            self._apply_patch(patch.message, patch.commands)
        elif code == msp.REBOOT:
            self._print("Rebooting board...")
        elif code == msp.DEBUGMSG:
            text = frame.payload.decode("ascii", errors="replace").strip(" \r\n\t\x00")
            self._print(f"[DEBUG] {text}")
        elif code in msp.ACKNOWLEDGEMENTS:
            pass
        else:
            self._print(f"Unhandled MSP frame {code} with payload {list(frame.payload)}")

    def _handle_identity(self, frame: Frame) -> None:
        try:
            identity = apply_identity_frame(self.state.identity, frame)
        except FrameProtocolError as exc:
            LOGGER.warning("Ignoring MSP frame %d: %s", frame.code, exc)
            return
        self._update(identity=identity)
        if frame.code == msp.BUILD_INFO:
            self._print(f"Build {identity.build_revision} (built on {identity.build_date} @ {identity.build_time})")
        elif identity.is_complete:
            self._print(identity.summary())

    def _apply_patch(self, message: str | None, commands: tuple[Command, ...]) -> None:
        if message:
            self._print(message)
        for command in commands:
            self._write(command)

    def _update(self, **changes: object) -> None:
        self.state = replace(self.state, revision=self.state.revision + 1, **changes)

    def _receive_one(self) -> Frame | None:
        try:
            return self._require_codec().read_frame()
        except DisconnectedError:
            self._on_disconnect()
        except FrameProtocolError as exc:
            LOGGER.warning("MSP error on %s: %s", self.options.port, exc)
            self._print(str(exc))
            return None
        except SessionFatalError:
            raise
        except Exception as exc:
            raise SessionFatalError(f"Reading from {self.options.port} failed: {exc}") from exc

        self._recover()
        return None

    def _dispatch(self, frame: Frame) -> None:
        try:
            self.handle_frame(frame)
        except DisconnectedError:
            self._on_disconnect()
            self._recover()
        except Exception as exc:
            raise SessionFatalError(f"Handling MSP frame {frame.code} failed: {exc}") from exc

    def _on_disconnect(self) -> None:
        LOGGER.info("Board on %s disconnected", self.options.port)
        self._print("Board disconnected, trying to reconnect...")

    def _recover(self) -> None:
        try:
            self.reconnect()
        except Exception as exc:
            raise SessionFatalError(f"Reconnecting to {self.options.port} failed: {exc}") from exc

    def _open_codec(self) -> Codec:
        try:
            return self._codec_factory(self.options.port, self.options.baud_rate)
        except TransportConnectError:
            raise
        except OSError as exc:
            raise TransportConnectError(f"Could not open {self.options.port}: {exc}") from exc

    def _request_info(self) -> None:
        for code in msp.INFO_REQUESTS:
            self._write(Command(code))

    def _write(self, command: Command) -> None:
        self._require_codec().write_command(command.code, command.payload)

    def _require_codec(self) -> Codec:
        if self._codec is None:
            raise SessionFatalError(f"Session on {self.options.port} is closed")
        return self._codec

    def _print(self, message: str) -> None:
        print(message, file=self.options.stdout)


def connect(
    options: SessionOptions,
    codec_factory: CodecFactory,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Session:
    """Open a session and request the board info.

    Raises TransportConnectError when the port cannot be opened.
    """
    session = Session(options, codec_factory, sleep=sleep, clock=clock)
    session.open()
    LOGGER.info("Connected to %s @ %dbps", options.port, options.baud_rate)
    return session
