"""Lookup of frame codec factories registered by installed distributions."""

from __future__ import annotations

import logging
from importlib.metadata import EntryPoint, entry_points

from fcctl.core.errors import CodecResolutionError
from fcctl.transports.base import CodecFactory

ENTRY_POINT_GROUP = "fcctl.codecs"
LOGGER = logging.getLogger(__name__)


def _registered() -> dict[str, EntryPoint]:
    return {ep.name: ep for ep in entry_points(group=ENTRY_POINT_GROUP)}


def available_codecs() -> tuple[str, ...]:
    return tuple(sorted(_registered()))


def load_codec_factory(name: str | None = None) -> CodecFactory:
    registered = _registered()
    if not registered:
        raise CodecResolutionError(
            f"No frame codec installed. Install a package providing the '{ENTRY_POINT_GROUP}' entry point."
        )

    if name is None:
        if len(registered) > 1:
            available = ", ".join(sorted(registered))
            raise CodecResolutionError(f"Multiple codecs installed: {available}. Use --codec to choose one.")
        name = next(iter(registered))

    entry_point = registered.get(name)
    if entry_point is None:
        available = ", ".join(sorted(registered))
        raise CodecResolutionError(f"Unknown codec '{name}'. Available: {available}")

    try:
        factory = entry_point.load()
    except Exception as exc:
        raise CodecResolutionError(f"Could not load codec '{name}': {exc}") from exc
    LOGGER.debug("Using codec %s from %s", name, entry_point.value)
    return factory
