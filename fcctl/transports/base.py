"""Frame codec interfaces."""

from __future__ import annotations

from typing import Callable, Protocol

from fcctl.core.model import Frame


class Codec(Protocol):
    def write_command(self, code: int, payload: bytes = b"") -> None:
        """Encode and send one command frame."""

    def read_frame(self) -> Frame:
        """Block until one frame is decoded.

        Raises DisconnectedError on end of transport and FrameProtocolError on
        a recoverable decode error. Anything else is treated as fatal.
        """

    def reboot_into_bootloader(self) -> None:
        """Send the zero-payload reboot-to-bootloader command."""

    def close(self) -> None:
        """Release the underlying port."""


# Opens `port` at `baud_rate`; raises TransportConnectError or OSError on failure.
CodecFactory = Callable[[str, int], Codec]
