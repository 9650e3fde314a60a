"""
Configuration Provider Port - Abstract interface for configuration.

Implementations:
- EnvironmentConfigProvider: Load from env vars, .env and a config file
- FileConfigProvider: Load from YAML/TOML config files
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


DEFAULT_BRANCH = "verifier"
DEFAULT_COMMIT_MESSAGE = "Commit with GitHub API"
DEFAULT_SERVER_URL = "http://localhost:3000/api/v0.1"

_REPOSITORY_PATTERNS = (
    re.compile(r"^git@[^:]+:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^https?://[^/]+/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^/?(?P<owner>[^/\s:]+)/(?P<repo>[^/\s:]+?)(?:\.git)?/?$"),
)


def parse_repository(value: str) -> tuple[str, str]:
    """
    Split a repository reference into (owner, repo).

    Accepts ``owner/repo``, ``/owner/repo``, an https URL or an ssh remote.

    Raises:
        ValueError: If the value is not a recognisable repository reference.
    """
    value = value.strip()
    for pattern in _REPOSITORY_PATTERNS:
        match = pattern.match(value)
        if match:
            return match.group("owner"), match.group("repo")
    raise ValueError(f"Not a repository reference: '{value}' (expected owner/repo)")


@dataclass
class GitHubConfig:
    """Configuration for the repository hosting the shadow branch."""

    token: str = ""
    owner: str = ""
    repo: str = ""
    base_url: str = "https://api.github.com"
    web_url: str = "https://github.com"

    @property
    def repository_url(self) -> str:
        """Browser URL of the repository."""
        return f"{self.web_url.rstrip('/')}/{self.owner}/{self.repo}"

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return bool(self.token and self.owner and self.repo)


@dataclass
class JobServerConfig:
    """Configuration for the verification job server."""

    base_url: str = DEFAULT_SERVER_URL
    poll_interval: float = 1.0
    queue_grace_period: float = 5.0
    timeout: float = 30.0


@dataclass
class SyncConfig:
    """Configuration for shadow-branch sync."""

    branch: str = DEFAULT_BRANCH
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    # Workspace-relative paths pushed with every non-empty change set
    always_include: list[str] = field(default_factory=lambda: ["mml.ini"])
    combine_deletions: bool = True
    dry_run: bool = False
    state_file: str | None = None  # None = <workspace>/.emverify/changes.json


@dataclass
class LintConfig:
    """User settings sent to the linter endpoint."""

    max_proof_line_number: int = 1000
    max_nesting_depth: int = 10

    def to_settings(self) -> dict[str, Any]:
        return {
            "MAX_PROOF_LINE_NUMBER": str(self.max_proof_line_number),
            "MAX_NESTING_DEPTH": str(self.max_nesting_depth),
        }


@dataclass
class FormatConfig:
    """User settings sent to the formatter endpoint."""

    max_line_length: int = 80
    standard_indentation_width: int = 2
    environ_directive_indentation_width: int = 1
    environ_line_indentation_width: int = 6
    cut_center_space: dict[str, bool] = field(
        default_factory=lambda: {": __label": True, "__label :": True}
    )
    cut_left_space: list[str] = field(
        default_factory=lambda: [":", ",", ";", ")", "]", "}", "sch", "def"]
    )
    cut_right_space: list[str] = field(default_factory=lambda: [";", "(", "[", "{"])

    def to_settings(self) -> dict[str, Any]:
        return {
            "MAX_LINE_LENGTH": str(self.max_line_length),
            "STANDARD_INDENTATION_WIDTH": str(self.standard_indentation_width),
            "ENVIRON_DIRECTIVE_INDENTATION_WIDTH": str(self.environ_directive_indentation_width),
            "ENVIRON_LINE_INDENTATION_WIDTH": str(self.environ_line_indentation_width),
            "CUT_CENTER_SPACE": dict(self.cut_center_space),
            "CUT_LEFT_SPACE": list(self.cut_left_space),
            "CUT_RIGHT_SPACE": list(self.cut_right_space),
        }


@dataclass
class AppConfig:
    """Complete application configuration."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    job_server: JobServerConfig = field(default_factory=JobServerConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    lint: LintConfig = field(default_factory=LintConfig)
    format: FormatConfig = field(default_factory=FormatConfig)

    workspace_root: str = "."
    file_extension: str = ".miz"

    @property
    def state_file(self) -> Path:
        """Where the change tracker persists its pending set."""
        if self.sync.state_file:
            return Path(self.sync.state_file).expanduser()
        return Path(self.workspace_root).expanduser() / ".emverify" / "changes.json"

    def validate(self) -> list[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.github.token:
            errors.append("Missing GitHub token (EMVERIFY_GITHUB_TOKEN)")
        if not self.github.owner or not self.github.repo:
            errors.append("Missing repository (EMVERIFY_REPOSITORY, as owner/repo)")
        if not self.job_server.base_url:
            errors.append("Missing job server URL (EMVERIFY_SERVER_URL)")
        if not self.sync.branch:
            errors.append("Sync branch name must not be empty")
        if self.job_server.poll_interval <= 0:
            errors.append("Poll interval must be positive")
        if self.job_server.queue_grace_period < 0:
            errors.append("Queue grace period must not be negative")

        return errors


class ConfigProviderPort(ABC):
    """
    Abstract interface for configuration providers.

    Configuration can come from various sources:
    - Environment variables
    - .env files
    - YAML/TOML config files
    - Command line arguments
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def load(self) -> AppConfig:
        """
        Load configuration from source.

        Returns:
            Complete application configuration
        """
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a specific configuration value.

        Args:
            key: Configuration key (dot notation supported)
            default: Default value if not found

        Returns:
            Configuration value
        """
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """
        Validate loaded configuration.

        Returns:
            List of validation errors
        """
        ...
