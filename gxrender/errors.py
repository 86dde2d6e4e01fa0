"""Fatal errors, log reporting and small bit-twiddling helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional


class FatalError(RuntimeError):
    """Raised where the renderer cannot continue with the given state."""


class LogLevel(IntEnum):
    """Severity of a reported message."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


LogCallback = Callable[[LogLevel, str], None]


@dataclass
class _LogSettings:
    callback: Optional[LogCallback] = None


_settings = _LogSettings()


def set_log_callback(callback: Optional[LogCallback]) -> Optional[LogCallback]:
    """Install the function that receives reported messages; return the previous one."""
    previous = _settings.callback
    _settings.callback = callback
    return previous


@dataclass(frozen=True)
class Reporter:
    """Named source of log messages."""

    name: str

    def report(self, level: LogLevel, message: str) -> None:
        """Pass a message to the log callback.

        A message at FATAL level raises FatalError after it has been passed on.
        """
        level = LogLevel(level)
        callback = _settings.callback
        if callback is not None:
            callback(level, message)
        if level is LogLevel.FATAL:
            raise FatalError(message)


def align(value: int, alignment: int) -> int:
    """Round ``value`` up to a multiple of the power-of-two ``alignment``."""
    if alignment <= 0 or alignment & (alignment - 1):
        raise ValueError(f"alignment must be a positive power of two, got {alignment}")
    return (value + alignment - 1) & ~(alignment - 1)


def swap32(value: int) -> int:
    """Reverse the byte order of a 32-bit unsigned value."""
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"value {value} does not fit in 32 bits")
    return int.from_bytes(value.to_bytes(4, "little"), "big")