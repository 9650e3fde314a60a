"""
Environment Configuration Provider - Load configuration from every source.

Precedence, lowest to highest:
1. Config file (.emverify.yaml, .emverify.toml, pyproject.toml)
2. .env file in the current directory
3. Environment variables
4. CLI overrides
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from emverify.core.ports.config_provider import AppConfig, ConfigProviderPort

from .file_provider import (
    FileConfigProvider,
    apply_overrides,
    build_app_config,
    get_nested,
    merge_dicts,
    set_nested,
)


# Environment variable -> dotted config key. Later entries win.
ENV_KEYS: tuple[tuple[str, str], ...] = (
    ("GITHUB_TOKEN", "github.token"),
    ("EMVERIFY_GITHUB_TOKEN", "github.token"),
    ("EMVERIFY_REPOSITORY", "github.repository"),
    ("EMVERIFY_GITHUB_API_URL", "github.api_url"),
    ("EMVERIFY_SERVER_URL", "server.url"),
    ("EMVERIFY_POLL_INTERVAL", "server.poll_interval"),
    ("EMVERIFY_BRANCH", "sync.branch"),
    ("EMVERIFY_COMMIT_MESSAGE", "sync.commit_message"),
    ("EMVERIFY_DRY_RUN", "sync.dry_run"),
    ("EMVERIFY_STATE_FILE", "sync.state_file"),
    ("EMVERIFY_WORKSPACE", "workspace"),
)

# Hints appended to validation errors, keyed by a word in the error
_HINTS = {
    "token": "set github.token in the config file, or the EMVERIFY_GITHUB_TOKEN environment variable",
    "repository": "set github.repository in the config file, or the EMVERIFY_REPOSITORY environment variable",
    "server": "set server.url in the config file, or the EMVERIFY_SERVER_URL environment variable",
}


def parse_env_file(path: Path) -> dict[str, str]:
    """
    Parse a .env file into a dict.

    Supports ``KEY=value``, ``export KEY=value``, comments and quoted values.
    """
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        values[key.strip()] = value
    return values


class EnvironmentConfigProvider(ConfigProviderPort):
    """
    Configuration provider combining file, .env, environment and CLI values.
    """

    def __init__(
        self,
        config_file: Path | None = None,
        env_file: Path | None = None,
        cli_overrides: dict[str, Any] | None = None,
        environ: dict[str, str] | None = None,
    ):
        """
        Initialize the environment config provider.

        Args:
            config_file: Explicit config file path (default: search)
            env_file: Explicit .env path (default: ./.env)
            cli_overrides: Command line overrides (highest priority)
            environ: Environment mapping (default: os.environ)
        """
        self._file_provider = FileConfigProvider(config_path=config_file)
        self._env_file = env_file
        self._cli_overrides = cli_overrides or {}
        self._environ = environ if environ is not None else os.environ
        self.logger = logging.getLogger("EnvironmentConfigProvider")
        self._data: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        path = self._file_provider.config_file_path
        if path is not None:
            return f"Environment + {path.name}"
        return "Environment"

    def _env_file_values(self) -> dict[str, str]:
        path = self._env_file or Path.cwd() / ".env"
        if not path.is_file():
            return {}
        self.logger.debug(f"Reading {path}")
        return parse_env_file(path)

    def _collect(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        data = merge_dicts(self._file_provider.load_data(), {})

        for source in (self._env_file_values(), self._environ):
            for env_name, key in ENV_KEYS:
                value = source.get(env_name)
                if value:
                    set_nested(data, key, value)

        self._data = apply_overrides(data, self._cli_overrides)
        return self._data

    # -------------------------------------------------------------------------
    # ConfigProviderPort Implementation
    # -------------------------------------------------------------------------

    def load(self) -> AppConfig:
        return build_app_config(self._collect())

    def get(self, key: str, default: Any = None) -> Any:
        return get_nested(self._collect(), key, default)

    def validate(self) -> list[str]:
        errors = self._file_provider.validate_file()
        if errors:
            return errors
        try:
            config = self.load()
        except ValueError as e:
            return [str(e)]

        result = []
        for error in config.validate():
            lowered = error.lower()
            hint = next((h for word, h in _HINTS.items() if word in lowered), None)
            result.append(f"{error}: {hint}" if hint else error)
        return result
