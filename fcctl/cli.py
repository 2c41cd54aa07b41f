"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from fcctl.core.config_loader import build_options, load_config
from fcctl.core.dfu import INTERNAL_FLASH_MARKER, device_lines, parse_descriptor
from fcctl.core.errors import FcctlError
from fcctl.core.flash import DFU_UTIL, FlashOrchestrator
from fcctl.core.model import SessionOptions, SessionState
from fcctl.core.session import Session, connect
from fcctl.core.tools import capture_tool, require_tool
from fcctl.transports.registry import load_codec_factory

app = typer.Typer(help="Flight controller session monitor and DFU flasher")

PortOption = typer.Option(None, "--port", "-p", help="Serial port of the flight controller")
BaudOption = typer.Option(None, "--baud", "-b", help="Serial baud rate")
DebugTraceOption = typer.Option(False, "--debug-trace", help="Enable DEBUG_TRACE on supported boards")
CodecOption = typer.Option(None, "--codec", help="Installed frame codec to use")
ConfigOption = typer.Option(None, "--config", help="Path to config.yaml")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug details")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_options(
    config: Path | None,
    *,
    port: str | None,
    baud: int | None,
    debug_trace: bool | None,
    codec: str | None,
    source_dir: Path | None = None,
    target: str | None = None,
) -> SessionOptions:
    file_config = load_config(config)
    if file_config.source is not None:
        logging.getLogger(__name__).debug("Using config %s", file_config.source)
    return build_options(
        file_config,
        port=port,
        baud_rate=baud,
        enable_debug_trace=debug_trace,
        codec=codec,
        source_dir=source_dir,
        target=target,
    )


def _connect(options: SessionOptions) -> Session:
    return connect(options, load_codec_factory(options.codec))


def _identity_settled(state: SessionState) -> bool:
    # Older firmwares send board info without a target name.
    return state.has_detected_target_name or bool(state.identity.board_id)


@app.command("monitor")
def monitor(
    port: str | None = PortOption,
    baud: int | None = BaudOption,
    debug_trace: bool = DebugTraceOption,
    codec: str | None = CodecOption,
    config: Path | None = ConfigOption,
) -> None:
    """Connect to the board and print what it reports, reconnecting as needed."""
    try:
        options = _build_options(config, port=port, baud=baud, debug_trace=debug_trace or None, codec=codec)
        with _connect(options) as session:
            typer.echo(f"Connected to {options.port} @ {options.baud_rate}bps")
            session.receive_loop()
    except FcctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("flash")
def flash(
    target: str | None = typer.Option(None, "--target", "-t", help="Target to build (defaults to the board's)"),
    source_dir: Path | None = typer.Option(None, "--source-dir", "-s", help="Firmware source tree"),
    detect_timeout: float = typer.Option(5.0, "--detect-timeout", help="Seconds to wait for the board's target name"),
    port: str | None = PortOption,
    baud: int | None = BaudOption,
    codec: str | None = CodecOption,
    config: Path | None = ConfigOption,
) -> None:
    """Build the firmware for a target and flash it through DFU."""
    try:
        options = _build_options(
            config,
            port=port,
            baud=baud,
            debug_trace=None,
            codec=codec,
            source_dir=source_dir,
            target=target,
        )
        with _connect(options) as session:
            if not options.target:
                session.pump(_identity_settled, timeout_s=detect_timeout)
            job = FlashOrchestrator(session).flash(options.source_dir, options.target)
        typer.echo(f"Flashed {job.binary_path.name} ({job.target_name}) to device {job.device.serial}")
    except FcctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("reboot")
def reboot(
    port: str | None = PortOption,
    baud: int | None = BaudOption,
    codec: str | None = CodecOption,
    config: Path | None = ConfigOption,
) -> None:
    """Reboot the board."""
    try:
        options = _build_options(config, port=port, baud=baud, debug_trace=None, codec=codec)
        with _connect(options) as session:
            session.reboot()
        typer.echo(f"Reboot sent to {options.port}")
    except FcctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("dfu-list")
def dfu_list() -> None:
    """List boards currently in DFU mode."""
    try:
        lines = device_lines(capture_tool([require_tool(DFU_UTIL), "--list"]))
        if not lines:
            typer.echo("No DFU devices found")
            return

        for line in lines:
            if INTERNAL_FLASH_MARKER not in line:
                typer.echo(f"  {line}")
                continue
            device = parse_descriptor(line)
            typer.echo(f"alt={device.alt} serial={device.serial} offset={device.flash_offset}")
    except FcctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
