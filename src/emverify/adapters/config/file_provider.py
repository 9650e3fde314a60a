"""
File Configuration Provider - Load configuration from YAML or TOML files.

Supported files, searched in the current directory and then the home
directory:
- .emverify.yaml / .emverify.yml
- .emverify.toml
- pyproject.toml ([tool.emverify] section)

Example .emverify.yaml:

    github:
      token: ghp_...
      repository: owner/repo
    server:
      url: http://localhost:3000/api/v0.1
    sync:
      branch: verifier
      always_include: [mml.ini]
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import yaml

from emverify.core.ports.config_provider import (
    AppConfig,
    ConfigProviderPort,
    FormatConfig,
    GitHubConfig,
    JobServerConfig,
    LintConfig,
    SyncConfig,
    parse_repository,
)


CONFIG_FILE_NAMES = (
    ".emverify.yaml",
    ".emverify.yml",
    ".emverify.toml",
    "pyproject.toml",
)

# CLI override name -> dotted config key
OVERRIDE_KEYS = {
    "token": "github.token",
    "repository": "github.repository",
    "api_url": "github.api_url",
    "server_url": "server.url",
    "poll_interval": "server.poll_interval",
    "branch": "sync.branch",
    "commit_message": "sync.commit_message",
    "combine_deletions": "sync.combine_deletions",
    "dry_run": "sync.dry_run",
    "state_file": "sync.state_file",
    "workspace": "workspace",
}

logger = logging.getLogger("emverify.config")


def get_nested(data: dict[str, Any], key: str, default: Any = None) -> Any:
    """Read a dotted key from nested dicts."""
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def set_nested(data: dict[str, Any], key: str, value: Any) -> None:
    """Write a dotted key into nested dicts, creating levels as needed."""
    parts = key.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``."""
    result = {k: merge_dicts(v, {}) if isinstance(v, dict) else v for k, v in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def apply_overrides(data: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Layer CLI overrides on top of loaded data. None values are ignored."""
    result = merge_dicts(data, {})
    for name, value in overrides.items():
        if value is None:
            continue
        set_nested(result, OVERRIDE_KEYS.get(name, name), value)
    return result


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def build_app_config(data: dict[str, Any]) -> AppConfig:
    """
    Build an AppConfig from a nested configuration dict.

    Raises:
        ValueError: If a value has the wrong shape (e.g., a bad repository).
    """
    github_data = data.get("github") or {}
    owner = str(github_data.get("owner") or "")
    repo = str(github_data.get("repo") or "")
    repository = github_data.get("repository")
    if repository:
        owner, repo = parse_repository(str(repository))

    github = GitHubConfig(
        token=str(github_data.get("token") or ""),
        owner=owner,
        repo=repo,
        base_url=str(github_data.get("api_url") or GitHubConfig.base_url),
        web_url=str(github_data.get("web_url") or GitHubConfig.web_url),
    )

    server_data = data.get("server") or {}
    job_server = JobServerConfig(
        base_url=str(server_data.get("url") or JobServerConfig.base_url),
        poll_interval=float(server_data.get("poll_interval", JobServerConfig.poll_interval)),
        queue_grace_period=float(
            server_data.get("queue_grace_period", JobServerConfig.queue_grace_period)
        ),
        timeout=float(server_data.get("timeout", JobServerConfig.timeout)),
    )

    sync_data = data.get("sync") or {}
    defaults = SyncConfig()
    always_include = sync_data.get("always_include", defaults.always_include)
    if isinstance(always_include, str):
        always_include = [p.strip() for p in always_include.split(",") if p.strip()]
    sync = SyncConfig(
        branch=str(sync_data.get("branch") or defaults.branch),
        commit_message=str(sync_data.get("commit_message") or defaults.commit_message),
        always_include=list(always_include or []),
        combine_deletions=_as_bool(sync_data.get("combine_deletions"), defaults.combine_deletions),
        dry_run=_as_bool(sync_data.get("dry_run"), defaults.dry_run),
        state_file=sync_data.get("state_file") or None,
    )

    lint_data = data.get("lint") or {}
    lint = LintConfig(
        max_proof_line_number=int(
            lint_data.get("max_proof_line_number", LintConfig.max_proof_line_number)
        ),
        max_nesting_depth=int(lint_data.get("max_nesting_depth", LintConfig.max_nesting_depth)),
    )

    format_data = data.get("format") or {}
    format_config = FormatConfig()
    for field_name in (
        "max_line_length",
        "standard_indentation_width",
        "environ_directive_indentation_width",
        "environ_line_indentation_width",
    ):
        if field_name in format_data:
            setattr(format_config, field_name, int(format_data[field_name]))
    for field_name in ("cut_center_space", "cut_left_space", "cut_right_space"):
        if field_name in format_data:
            setattr(format_config, field_name, format_data[field_name])

    return AppConfig(
        github=github,
        job_server=job_server,
        sync=sync,
        lint=lint,
        format=format_config,
        workspace_root=str(data.get("workspace") or "."),
        file_extension=str(data.get("file_extension") or ".miz"),
    )


class FileConfigProvider(ConfigProviderPort):
    """
    Configuration provider that loads from YAML or TOML files.

    Searches the standard locations when no explicit path is given.
    CLI overrides are applied on top of the file contents.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        cli_overrides: dict[str, Any] | None = None,
        search_paths: list[Path] | None = None,
    ):
        """
        Initialize the file config provider.

        Args:
            config_path: Explicit config file path (skips the search)
            cli_overrides: Command line overrides (highest priority)
            search_paths: Directories to search (default: cwd, then home)
        """
        self._explicit_path = config_path
        self._cli_overrides = cli_overrides or {}
        self._search_paths = search_paths
        self._config_file_path: Path | None = None
        self._data: dict[str, Any] | None = None
        self._errors: list[str] = []

    @property
    def name(self) -> str:
        if self._config_file_path:
            return f"File ({self._config_file_path.name})"
        return "File"

    @property
    def config_file_path(self) -> Path | None:
        """The file configuration was loaded from, if any."""
        if self._data is None:
            self.load_data()
        return self._config_file_path

    # -------------------------------------------------------------------------
    # Discovery and parsing
    # -------------------------------------------------------------------------

    def find_config_file(self) -> Path | None:
        """Locate the config file to use, or None."""
        if self._explicit_path is not None:
            return Path(self._explicit_path)

        directories = self._search_paths or [Path.cwd(), Path.home()]
        for directory in directories:
            for file_name in CONFIG_FILE_NAMES:
                candidate = directory / file_name
                if not candidate.is_file():
                    continue
                if file_name == "pyproject.toml" and not self._has_tool_section(candidate):
                    continue
                return candidate
        return None

    @staticmethod
    def _has_tool_section(path: Path) -> bool:
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            return False
        return "emverify" in data.get("tool", {})

    def load_data(self) -> dict[str, Any]:
        """
        Read the raw configuration dict from the config file.

        Parse errors are collected for ``validate`` rather than raised.
        """
        if self._data is not None:
            return self._data

        self._errors = []
        data: dict[str, Any] = {}
        path = self.find_config_file()

        if path is not None:
            if not path.is_file():
                self._errors.append(f"Config file not found: {path}")
            else:
                self._config_file_path = path
                data = self._parse_file(path)

        self._data = data
        return data

    def _parse_file(self, path: Path) -> dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            self._errors.append(f"Cannot read config file {path}: {e}")
            return {}

        if path.suffix in (".yaml", ".yml"):
            try:
                loaded = yaml.safe_load(text) or {}
            except yaml.YAMLError as e:
                self._errors.append(f"Invalid YAML syntax in {path}: {e}")
                return {}
        else:
            try:
                loaded = tomllib.loads(text)
            except tomllib.TOMLDecodeError as e:
                self._errors.append(f"Invalid TOML syntax in {path}: {e}")
                return {}
            if path.name == "pyproject.toml":
                loaded = loaded.get("tool", {}).get("emverify", {})

        if not isinstance(loaded, dict):
            self._errors.append(f"Config file {path} must contain a mapping at the top level")
            return {}

        logger.debug(f"Loaded configuration from {path}")
        return loaded

    # -------------------------------------------------------------------------
    # ConfigProviderPort Implementation
    # -------------------------------------------------------------------------

    def load(self) -> AppConfig:
        data = apply_overrides(self.load_data(), self._cli_overrides)
        return build_app_config(data)

    def get(self, key: str, default: Any = None) -> Any:
        data = apply_overrides(self.load_data(), self._cli_overrides)
        return get_nested(data, key, default)

    def validate_file(self) -> list[str]:
        """Errors from locating and parsing the file only."""
        self.load_data()
        return list(self._errors)

    def validate(self) -> list[str]:
        errors = self.validate_file()
        if errors:
            return errors
        try:
            config = self.load()
        except ValueError as e:
            return [str(e)]
        return config.validate()
