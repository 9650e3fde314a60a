"""
Centralized exception hierarchy for emverify.

All exceptions raised by the library derive from EmverifyError so callers can
catch the whole family with one clause, while adapters raise the most specific
subclass they can identify.

Hierarchy:
    EmverifyError
    ├── GitHostError
    │   ├── AuthenticationError
    │   ├── AccessDeniedError
    │   ├── NotFoundError
    │   ├── ConflictError
    │   ├── RateLimitError
    │   └── NetworkError
    ├── JobServerError
    │   ├── JobBusyError
    │   └── ServerJobError
    ├── ConfigError
    │   ├── MissingConfigError
    │   └── ConfigFileError
    └── UnsupportedFileError
"""

from __future__ import annotations

from typing import Any


__all__ = [
    "AccessDeniedError",
    "AuthenticationError",
    "ConfigError",
    "ConfigFileError",
    "ConflictError",
    "EmverifyError",
    "GitHostError",
    "JobBusyError",
    "JobServerError",
    "MissingConfigError",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "ServerJobError",
    "UnsupportedFileError",
]


class EmverifyError(Exception):
    """
    Base exception for all emverify errors.

    Attributes:
        message: Human-readable error message.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# =============================================================================
# Git hosting errors
# =============================================================================


class GitHostError(EmverifyError):
    """Error talking to the git-hosting REST API."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.path = path
        self.status_code = status_code


class AuthenticationError(GitHostError):
    """Missing or invalid credential. Fatal: the user must reconfigure."""


class AccessDeniedError(GitHostError):
    """The credential is valid but lacks access to the repository."""


class NotFoundError(GitHostError):
    """The requested object does not exist on the remote."""


class ConflictError(GitHostError):
    """
    The remote rejected a write because its state moved on.

    Raised for ref creation races (already exists) and for non-fast-forward
    ref updates.
    """


class RateLimitError(GitHostError):
    """The API rate limit was exhausted."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, path=path, status_code=429, cause=cause)
        self.retry_after = retry_after


class NetworkError(GitHostError):
    """
    Transient transport failure (connection, timeout, 5xx).

    Retrying a sync is safe because the engine re-diffs before writing.
    """


# =============================================================================
# Job server errors
# =============================================================================


class JobServerError(EmverifyError):
    """Error talking to the verification job server."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class JobBusyError(JobServerError):
    """A job is already active on this client; rejected without a request."""

    def __init__(self, job_id: str | None = None):
        super().__init__("Another command is already executing.")
        self.job_id = job_id


class ServerJobError(JobServerError):
    """A job reached a terminal failure reported by the server."""

    def __init__(self, message: str, stage: str, errors: list[Any] | None = None):
        super().__init__(message)
        self.stage = stage
        self.errors = errors or []


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigError(EmverifyError):
    """Invalid or missing configuration."""


class MissingConfigError(ConfigError):
    """A required configuration key is missing."""

    def __init__(self, key: str, hint: str | None = None):
        message = f"Missing required configuration: {key}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)
        self.key = key


class ConfigFileError(ConfigError):
    """A configuration file could not be read or parsed."""

    def __init__(self, path: str, message: str, cause: BaseException | None = None):
        super().__init__(f"{path}: {message}", cause=cause)
        self.path = path


# =============================================================================
# Workspace errors
# =============================================================================


class UnsupportedFileError(EmverifyError):
    """The file cannot be checked (wrong extension, missing, outside workspace)."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot check {path}: {reason}")
        self.path = path
        self.reason = reason
