"""
Provider Errors

Architectural Intent:
- Single exception hierarchy for everything the provider raises
- HTTP failures are classified by status code so callers can branch on type
  (404 means "gone", 409 and 5xx are worth retrying)
- Wait failures double as builtin TimeoutError / ValueError where that is
  what a caller would naturally catch
"""

from __future__ import annotations
from typing import Any, Optional, Sequence


class StratusError(Exception):
    """Base class for all provider errors."""


class ValidationError(StratusError, ValueError):
    """A resource declaration does not satisfy its schema."""


class ProviderError(StratusError):
    """A resource operation failed."""


class ApiError(StratusError):
    """The cloud API answered with a non-success status code."""

    def __init__(
        self,
        status_code: int,
        method: str = "",
        url: str = "",
        body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.method = method
        self.url = url
        self.body = body
        super().__init__(self._format())

    def _format(self) -> str:
        detail = f": {self.body}" if self.body else ""
        return (
            f"Expected HTTP response code [2xx] when accessing "
            f"[{self.method} {self.url}], but got {self.status_code} instead{detail}"
        )


class NotFoundError(ApiError):
    """HTTP 404."""


class ConflictError(ApiError):
    """HTTP 409."""


class ServerError(ApiError):
    """HTTP 5xx."""


def api_error_for(
    status_code: int, method: str = "", url: str = "", body: Any = None
) -> ApiError:
    """Build the most specific ApiError subclass for a status code."""
    if status_code == 404:
        return NotFoundError(status_code, method, url, body)
    if status_code == 409:
        return ConflictError(status_code, method, url, body)
    if status_code >= 500:
        return ServerError(status_code, method, url, body)
    return ApiError(status_code, method, url, body)


class WaitTimeoutError(StratusError, TimeoutError):
    """The deadline elapsed before the resource reached a target state."""

    def __init__(
        self,
        timeout: float,
        last_state: Optional[str] = None,
        target: Sequence[str] = (),
        last_error: Optional[BaseException] = None,
    ) -> None:
        self.timeout = timeout
        self.last_state = last_state
        self.target = tuple(target)
        self.last_error = last_error
        message = (
            f"timeout while waiting for state to become "
            f"'{', '.join(self.target)}' (last state: '{last_state or ''}', "
            f"timeout: {timeout:g}s)"
        )
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)


class UnexpectedStateError(StratusError):
    """The resource reached a status that is neither pending nor target."""

    def __init__(self, state: str, target: Sequence[str]) -> None:
        self.state = state
        self.target = tuple(target)
        super().__init__(
            f"unexpected state '{state}', wanted target '{', '.join(self.target)}'"
        )


class WaitNotFoundError(StratusError):
    """The refresh function kept returning no resource."""

    def __init__(self, checks: int) -> None:
        self.checks = checks
        super().__init__(f"couldn't find resource ({checks} retries)")
