"""Domain-specific errors for fcctl."""


class FcctlError(Exception):
    """Base error for fcctl."""


class ConfigValidationError(FcctlError):
    """Raised when a config file does not conform to schema or semantics."""


class ConfigLoadError(FcctlError):
    """Raised when reading the config file fails."""


class CodecResolutionError(FcctlError):
    """Raised when no frame codec can be selected for a session."""


class TransportError(FcctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the serial port cannot be opened."""


class DisconnectedError(TransportError):
    """Raised by a codec when the transport reached end of stream."""


class FrameProtocolError(TransportError):
    """Raised by a codec on a recoverable decode error (bad checksum, error reply)."""


class SessionFatalError(FcctlError):
    """Raised when the receive loop hits a failure it cannot recover from."""


class FlashError(FcctlError):
    """Base error for the firmware flashing sequence."""


class EmptyTargetError(FlashError):
    """Raised when no target name was given nor detected from the board."""


class ToolInvocationError(FlashError):
    """Raised when an external tool is missing, fails to launch or exits nonzero."""


class BinaryNotFoundError(FlashError):
    """Raised when the build produced no binary for the target."""


class DeviceWaitTimeoutError(FlashError):
    """Raised when no bootloader device shows up before the deadline."""


class DescriptorParseError(FlashError):
    """Raised when a DFU descriptor line lacks one or more required fields."""

    def __init__(self, line: str, missing: tuple[str, ...]) -> None:
        self.line = line
        self.missing = missing
        fields = ", ".join(missing)
        super().__init__(f"could not determine flash parameters ({fields}) from {line!r}")
