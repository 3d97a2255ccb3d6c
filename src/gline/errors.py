"""Exception types raised by the editor."""

from __future__ import annotations


class GlineError(Exception):
    """Base class for editor errors."""


class ConfigError(GlineError):
    """Raised when options cannot be parsed or validated."""


class SessionClosedError(GlineError):
    """Raised when a terminal session is mutated again."""


class ProviderError(GlineError):
    """A prediction, explanation, idle summary or prompt call failed."""

    def __init__(self, source: str, cause: BaseException) -> None:
        self.source = source
        self.cause = cause
        message = str(cause) or type(cause).__name__
        super().__init__(message)
