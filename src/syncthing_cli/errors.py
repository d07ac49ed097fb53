"""Exceptions raised by the CLI, the config resolver and the API client."""

from __future__ import annotations

from typing import Optional


class CliError(Exception):
    """Raised when the CLI encounters an expected error condition."""

    exit_code = 1


class ConfigError(CliError):
    """No usable API key or host could be resolved."""

    exit_code = 2


class RequestError(CliError):
    """The daemon could not be reached (connection refused, timeout, ...)."""

    exit_code = 3


class ResponseError(CliError):
    """The daemon answered with a non-success status or an unparseable body."""

    exit_code = 4

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
