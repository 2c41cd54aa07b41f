"""Parsing of dfu-util device listings."""

from __future__ import annotations

from collections.abc import Iterable
from itertools import takewhile

from fcctl.core.errors import DescriptorParseError
from fcctl.core.model import DfuDescriptor

DFU_DEVICE_PREFIX = "Found DFU: "
INTERNAL_FLASH_MARKER = "@Internal Flash  /"


def device_lines(output: str) -> list[str]:
    """Return the device descriptors of a `dfu-util --list` output, prefix stripped."""
    lines: list[str] = []
    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith(DFU_DEVICE_PREFIX):
            lines.append(line[len(DFU_DEVICE_PREFIX) :])
    return lines


def find_internal_flash(lines: Iterable[str]) -> str | None:
    for line in lines:
        if INTERNAL_FLASH_MARKER in line:
            return line
    return None


def _find_key(line: str, key: str) -> int:
    """Index just past `key` where it starts a field, or -1."""
    start = 0
    while True:
        pos = line.find(key, start)
        if pos < 0:
            return -1
        if pos == 0 or not (line[pos - 1].isalnum() or line[pos - 1] == "_"):
            return pos + len(key)
        start = pos + 1


def _alt(line: str) -> str:
    pos = _find_key(line, "alt=")
    if pos < 0:
        return ""
    return "".join(takewhile(str.isdigit, line[pos:]))


def _serial(line: str) -> str:
    pos = _find_key(line, 'serial="')
    if pos < 0:
        return ""
    value, closed, _ = line[pos:].partition('"')
    return value if closed else ""


def _flash_offset(line: str) -> str:
    _, marker, rest = line.partition(INTERNAL_FLASH_MARKER)
    if not marker:
        return ""
    offset, closed, _ = rest.partition("/")
    return offset.strip() if closed else ""


def parse_descriptor(line: str) -> DfuDescriptor:
    """Extract alt setting, serial and internal flash offset from a descriptor line.

    A line looks like:
    [0483:df11] ver=2200, devnum=17, cfg=1, intf=0, path="20-1", alt=0,
    name="@Internal Flash  /0x08000000/04*016Kg,01*064Kg,07*128Kg", serial="3276365D3336"
    """
    fields = {"alt": _alt(line), "serial": _serial(line), "offset": _flash_offset(line)}
    missing = tuple(name for name, value in fields.items() if not value)
    if missing:
        raise DescriptorParseError(line, missing)
    return DfuDescriptor(alt=fields["alt"], serial=fields["serial"], flash_offset=fields["offset"], line=line)
