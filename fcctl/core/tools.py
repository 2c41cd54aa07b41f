"""Invocation of external build and DFU tools."""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from fcctl.core.errors import ToolInvocationError

LOGGER = logging.getLogger(__name__)


def require_tool(name: str) -> str:
    path = shutil.which(name)
    if path is None:
        raise ToolInvocationError(f"'{name}' was not found in PATH")
    return path


def run_tool(
    cmd: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> None:
    """Run `cmd` with inherited stdio; raise ToolInvocationError unless it exits 0."""
    LOGGER.debug("Running %s", " ".join(cmd))
    try:
        subprocess.run(list(cmd), check=True, cwd=cwd, env=env)
    except subprocess.CalledProcessError as exc:
        raise ToolInvocationError(f"'{' '.join(cmd)}' exited with status {exc.returncode}") from exc
    except OSError as exc:
        raise ToolInvocationError(f"Could not run '{cmd[0]}': {exc}") from exc


def capture_tool(cmd: Sequence[str]) -> str:
    """Run `cmd` and return its standard output."""
    try:
        result = subprocess.run(
            list(cmd),
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise ToolInvocationError(f"Could not run '{cmd[0]}': {exc}") from exc
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        detail = f": {stderr}" if stderr else ""
        raise ToolInvocationError(f"'{' '.join(cmd)}' exited with status {result.returncode}{detail}")
    return result.stdout
