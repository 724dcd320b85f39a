"""
Exceptions raised by the fatcarve components.

Components never terminate the process themselves. They raise one of
the errors below and leave it to the front-end (CLI or GUI) to report
the message and decide how to exit. Each class carries the exit status
the CLI uses for it.
"""

from __future__ import annotations

from typing import Optional


class RecoveryError(Exception):
    """Base class for every error raised by fatcarve."""

    exit_code = 1

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message = message
        self.path = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class ConfigError(RecoveryError):
    """An override value could not be parsed or is not supported."""

    exit_code = 2


class GeometryError(RecoveryError):
    """The boot sector and device do not yield a usable geometry."""

    exit_code = 3


class MissingSignatureError(GeometryError):
    """The 55 AA boot signature is absent and no override allows it."""


class DeviceIOError(RecoveryError):
    """Opening, seeking or reading the source device failed."""

    def __init__(self, message: str, path: Optional[str] = None,
                 offset: Optional[int] = None) -> None:
        self.offset = offset
        super().__init__(message, path)


class OutputIOError(RecoveryError):
    """Writing or closing a carved output file failed."""
