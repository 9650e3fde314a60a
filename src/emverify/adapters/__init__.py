"""
Adapters - Concrete implementations of ports.

- github: GitHub REST implementation of GitHostPort
- jobserver: aiohttp implementation of JobServerPort
- config: Configuration providers (file, environment)
- workspace: Local filesystem access
"""

from .config import EnvironmentConfigProvider, FileConfigProvider
from .github import GitHubAdapter, GitHubApiClient
from .jobserver import JobServerClient
from .workspace import LocalWorkspace


__all__ = [
    "EnvironmentConfigProvider",
    "FileConfigProvider",
    "GitHubAdapter",
    "GitHubApiClient",
    "JobServerClient",
    "LocalWorkspace",
]
