"""Flight controller session monitor and DFU flasher."""

__version__ = "0.1.0"
