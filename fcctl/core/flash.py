"""Build a firmware target and flash it to the board through its DFU bootloader."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TextIO

from fcctl.core.dfu import INTERNAL_FLASH_MARKER, device_lines, find_internal_flash, parse_descriptor
from fcctl.core.errors import BinaryNotFoundError, DeviceWaitTimeoutError, EmptyTargetError
from fcctl.core.model import DeviceIdentity, FlashJob
from fcctl.core.session import Session
from fcctl.core.tools import capture_tool, require_tool, run_tool

DFU_UTIL = "dfu-util"
BUILD_COMMAND = ("make", "binary")
TARGET_ENV = "TARGET"
OUTPUT_DIR = "obj"
BINARY_SUFFIX = ".bin"
DEVICE_WAIT_TIMEOUT_S = 30.0
DEVICE_POLL_INTERVAL_S = 0.1
LOGGER = logging.getLogger(__name__)


class FlashStep(Enum):
    RESOLVE_TARGET = "resolve target"
    BUILD = "build"
    LOCATE_BINARY = "locate binary"
    REBOOT_TO_BOOTLOADER = "reboot to bootloader"
    WAIT_FOR_DEVICE = "wait for device"
    PARSE_DESCRIPTOR = "parse descriptor"
    FLASH = "flash"


def resolve_target(explicit: str | None, identity: DeviceIdentity) -> str:
    if explicit:
        return explicit
    if identity.target_name:
        return identity.target_name
    raise EmptyTargetError("empty target name")


def locate_binary(output_dir: Path, target_name: str) -> Path:
    """Return the newest `*<target_name>.bin` in `output_dir`."""
    try:
        entries = list(output_dir.iterdir())
    except OSError as exc:
        raise BinaryNotFoundError(f"could not list build output {output_dir}: {exc}") from exc

    newest: Path | None = None
    newest_mtime = 0.0
    for path in entries:
        if path.suffix != BINARY_SUFFIX or not path.stem.endswith(target_name):
            continue
        mtime = path.stat().st_mtime
        if newest is None or mtime > newest_mtime:
            newest, newest_mtime = path, mtime
    if newest is None:
        raise BinaryNotFoundError(f"could not find binary for target {target_name}")
    return newest


class FlashOrchestrator:
    def __init__(
        self,
        session: Session,
        *,
        stdout: TextIO | None = None,
        dfu_util: str = DFU_UTIL,
        wait_timeout_s: float = DEVICE_WAIT_TIMEOUT_S,
        poll_interval_s: float = DEVICE_POLL_INTERVAL_S,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.step: FlashStep | None = None
        self._stdout = stdout or session.options.stdout
        self._dfu_util = dfu_util
        self._wait_timeout_s = wait_timeout_s
        self._poll_interval_s = poll_interval_s
        self._sleep = sleep
        self._clock = clock

    def flash(self, source_dir: Path, target_name: str | None = None) -> FlashJob:
        """Build `target_name` in `source_dir` and flash it.

        Any failure aborts the remaining steps; `step` tells which one failed.
        """
        self._enter(FlashStep.RESOLVE_TARGET)
        target = resolve_target(target_name, self.session.state.identity)
        dfu_util = require_tool(self._dfu_util)

        self._enter(FlashStep.BUILD)
        self._print(f"Building binary for {target}...")
        self.build(source_dir, target)

        self._enter(FlashStep.LOCATE_BINARY)
        binary = locate_binary(source_dir / OUTPUT_DIR, target)

        self._enter(FlashStep.REBOOT_TO_BOOTLOADER)
        self._print("Rebooting board in DFU mode...")
        self.session.reboot_into_bootloader()

        self._enter(FlashStep.WAIT_FOR_DEVICE)
        self.wait_for_device(dfu_util)

        self._enter(FlashStep.PARSE_DESCRIPTOR)
        line = find_internal_flash(self.list_devices(dfu_util))
        device = parse_descriptor(line or "")

        self._enter(FlashStep.FLASH)
        self._print(f"Flashing {binary.name} via DFU to offset {device.flash_offset}...")
        run_tool(
            [
                dfu_util,
                "-a",
                device.alt,
                "-S",
                device.serial,
                "-s",
                f"{device.flash_offset}:leave",
                "-D",
                str(binary),
            ]
        )
        self.step = None
        return FlashJob(target_name=target, source_dir=source_dir, binary_path=binary, device=device)

    def build(self, source_dir: Path, target: str) -> None:
        env = dict(os.environ)
        env[TARGET_ENV] = target
        run_tool(BUILD_COMMAND, cwd=source_dir, env=env)

    def list_devices(self, dfu_util: str | None = None) -> list[str]:
        return device_lines(capture_tool([dfu_util or self._dfu_util, "--list"]))

    def wait_for_device(self, dfu_util: str | None = None) -> str:
        """Poll the DFU listing until an internal flash device shows up."""
        deadline = self._clock() + self._wait_timeout_s
        polls = 0
        while self._clock() < deadline:
            polls += 1
            for line in self.list_devices(dfu_util):
                if INTERNAL_FLASH_MARKER in line:
                    LOGGER.debug("DFU device found after %d poll(s): %s", polls, line)
                    return line
            self._sleep(self._poll_interval_s)
        raise DeviceWaitTimeoutError(
            f"timed out after {self._wait_timeout_s:g}s while waiting for board in DFU mode"
        )

    def _enter(self, step: FlashStep) -> None:
        LOGGER.debug("Flash step: %s", step.value)
        self.step = step

    def _print(self, message: str) -> None:
        print(message, file=self._stdout)
