from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    AUTH_ERROR = 3
    AZ_ERROR = 4
    RUNTIME_ERROR = 5


class InventoryError(Exception):
    """Base error for inventory reporting."""


class ConfigError(InventoryError):
    """Raised for configuration or argument issues."""


class AuthResolutionError(InventoryError):
    """Raised when no usable az login/subscription can be resolved."""


class AzCliError(InventoryError):
    """Raised when an az CLI invocation fails or prints unparseable output."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class AzCliNotFound(AzCliError):
    """Raised when the az executable cannot be located."""


class ExportError(InventoryError):
    """Raised when exporting report artifacts fails."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, AuthResolutionError):
        return int(ExitCode.AUTH_ERROR)
    if isinstance(exc, AzCliError):
        return int(ExitCode.AZ_ERROR)
    if isinstance(exc, (ExportError, InventoryError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def is_login_error(exc: AzCliError) -> bool:
    """
    Return True if the az failure looks like a missing or expired login.
    """
    text = (exc.stderr or str(exc)).lower()
    return "az login" in text or "please run 'az login'" in text or "refresh token" in text
