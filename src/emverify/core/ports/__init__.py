"""
Ports - Abstract interfaces for external dependencies.

Ports define the contracts that adapters must implement.
This enables dependency inversion and easy testing.
"""

from .config_provider import (
    AppConfig,
    ConfigProviderPort,
    FormatConfig,
    GitHubConfig,
    JobServerConfig,
    LintConfig,
    SyncConfig,
    parse_repository,
)
from .git_host import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    GitHostError,
    GitHostPort,
    NetworkError,
    NotFoundError,
    RateLimitError,
)
from .job_server import JobBusyError, JobServerError, JobServerPort, ServerJobError


__all__ = [
    # Ports
    "ConfigProviderPort",
    "GitHostPort",
    "JobServerPort",
    # Configuration
    "AppConfig",
    "FormatConfig",
    "GitHubConfig",
    "JobServerConfig",
    "LintConfig",
    "SyncConfig",
    "parse_repository",
    # Git host exceptions
    "AccessDeniedError",
    "AuthenticationError",
    "ConflictError",
    "GitHostError",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    # Job server exceptions
    "JobBusyError",
    "JobServerError",
    "ServerJobError",
]
