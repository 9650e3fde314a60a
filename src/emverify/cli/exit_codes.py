"""
Exit codes for the emverify CLI.

Follows the usual conventions: 0 success, 1 general error, 2 usage errors
(argparse), 130 interrupted by SIGINT.
"""

from enum import IntEnum

from emverify.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConfigError,
    ConflictError,
    JobBusyError,
    JobServerError,
    NetworkError,
    ServerJobError,
    UnsupportedFileError,
)


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 3
    CONNECTION_ERROR = 4
    AUTH_ERROR = 5
    FILE_NOT_FOUND = 6
    VALIDATION_ERROR = 7
    CONFLICT = 8
    BUSY = 9
    JOB_FAILED = 10
    CANCELLED = 11
    SIGINT = 130

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExitCode":
        """Pick the exit code for an exception that ended the run."""
        if isinstance(exc, KeyboardInterrupt):
            return cls.SIGINT
        if isinstance(exc, ConfigError):
            return cls.CONFIG_ERROR
        if isinstance(exc, (AuthenticationError, AccessDeniedError)):
            return cls.AUTH_ERROR
        if isinstance(exc, ConflictError):
            return cls.CONFLICT
        if isinstance(exc, NetworkError):
            return cls.CONNECTION_ERROR
        if isinstance(exc, JobBusyError):
            return cls.BUSY
        if isinstance(exc, ServerJobError):
            return cls.JOB_FAILED
        if isinstance(exc, JobServerError):
            return cls.CONNECTION_ERROR
        if isinstance(exc, UnsupportedFileError):
            return cls.VALIDATION_ERROR
        if isinstance(exc, FileNotFoundError):
            return cls.FILE_NOT_FOUND
        if isinstance(exc, ValueError):
            return cls.VALIDATION_ERROR
        return cls.ERROR
