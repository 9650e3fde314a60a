"""
Tests for configuration providers: files, .env, environment and CLI layers.
"""

from pathlib import Path
from textwrap import dedent

import pytest

from emverify.adapters.config import EnvironmentConfigProvider, FileConfigProvider
from emverify.adapters.config.environment import parse_env_file
from emverify.adapters.config.file_provider import (
    apply_overrides,
    build_app_config,
    get_nested,
    merge_dicts,
)


@pytest.fixture(autouse=True)
def isolated_search_paths(tmp_path, monkeypatch):
    """Keep config discovery away from the real cwd and home directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


# =============================================================================
# Helpers
# =============================================================================


class TestNestedHelpers:
    def test_get_nested(self):
        data = {"github": {"token": "t"}}
        assert get_nested(data, "github.token") == "t"
        assert get_nested(data, "github.owner", "none") == "none"
        assert get_nested(data, "github.token.x") is None

    def test_merge_dicts_is_deep(self):
        merged = merge_dicts({"sync": {"branch": "a", "dry_run": False}}, {"sync": {"branch": "b"}})
        assert merged == {"sync": {"branch": "b", "dry_run": False}}

    def test_apply_overrides_skips_none(self):
        data = apply_overrides(
            {"sync": {"branch": "verifier"}},
            {"branch": None, "server_url": "http://x", "workspace": "/w"},
        )
        assert data == {
            "sync": {"branch": "verifier"},
            "server": {"url": "http://x"},
            "workspace": "/w",
        }


class TestBuildAppConfig:
    def test_defaults(self):
        config = build_app_config({})

        assert config.sync.branch == "verifier"
        assert config.sync.commit_message == "Commit with GitHub API"
        assert config.sync.always_include == ["mml.ini"]
        assert config.sync.combine_deletions is True
        assert config.job_server.poll_interval == 1.0
        assert config.job_server.queue_grace_period == 5.0
        assert config.file_extension == ".miz"

    def test_repository_reference(self):
        config = build_app_config({"github": {"repository": "https://github.com/acme/mizar.git"}})
        assert (config.github.owner, config.github.repo) == ("acme", "mizar")

    def test_string_values_from_environment(self):
        config = build_app_config(
            {
                "server": {"poll_interval": "0.5"},
                "sync": {"dry_run": "true", "always_include": "mml.ini, mml.vct"},
            }
        )
        assert config.job_server.poll_interval == 0.5
        assert config.sync.dry_run is True
        assert config.sync.always_include == ["mml.ini", "mml.vct"]

    def test_format_settings(self):
        config = build_app_config({"format": {"max_line_length": 100}})
        assert config.format.to_settings()["MAX_LINE_LENGTH"] == "100"

    def test_bad_repository(self):
        with pytest.raises(ValueError):
            build_app_config({"github": {"repository": "nonsense"}})


# =============================================================================
# File provider
# =============================================================================


class TestFileConfigProvider:
    def test_load_yaml(self, tmp_path):
        config_file = tmp_path / ".emverify.yaml"
        config_file.write_text(
            dedent(
                """
                github:
                  token: ghp_file
                  repository: owner/repo
                server:
                  url: http://jobs.test
                sync:
                  branch: shadow
                  combine_deletions: false
                """
            )
        )

        provider = FileConfigProvider(search_paths=[tmp_path])
        config = provider.load()

        assert provider.config_file_path == config_file
        assert provider.name == "File (.emverify.yaml)"
        assert config.github.token == "ghp_file"
        assert config.job_server.base_url == "http://jobs.test"
        assert config.sync.branch == "shadow"
        assert config.sync.combine_deletions is False

    def test_load_toml(self, tmp_path):
        config_file = tmp_path / ".emverify.toml"
        config_file.write_text('[sync]\nbranch = "from-toml"\n')

        config = FileConfigProvider(config_path=config_file).load()
        assert config.sync.branch == "from-toml"

    def test_pyproject_section(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[tool.emverify.sync]\nbranch = "pp"\n')
        assert FileConfigProvider(search_paths=[tmp_path]).load().sync.branch == "pp"

    def test_pyproject_without_section_is_skipped(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')
        provider = FileConfigProvider(search_paths=[tmp_path])
        assert provider.find_config_file() is None

    def test_cli_overrides_win(self, tmp_path):
        config_file = tmp_path / ".emverify.yaml"
        config_file.write_text("sync:\n  branch: file\n")

        provider = FileConfigProvider(config_path=config_file, cli_overrides={"branch": "cli"})
        assert provider.load().sync.branch == "cli"
        assert provider.get("sync.branch") == "cli"

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / ".emverify.yaml"
        config_file.write_text("github: [unclosed\n")

        errors = FileConfigProvider(config_path=config_file).validate()
        assert len(errors) == 1
        assert "Invalid YAML syntax" in errors[0]

    def test_invalid_toml(self, tmp_path):
        config_file = tmp_path / ".emverify.toml"
        config_file.write_text("[sync\n")

        errors = FileConfigProvider(config_path=config_file).validate()
        assert "Invalid TOML syntax" in errors[0]

    def test_missing_explicit_file(self, tmp_path):
        errors = FileConfigProvider(config_path=tmp_path / "nope.yaml").validate_file()
        assert errors == [f"Config file not found: {tmp_path / 'nope.yaml'}"]

    def test_validate_complete_config(self, tmp_path):
        config_file = tmp_path / ".emverify.yaml"
        config_file.write_text("github:\n  token: t\n  repository: o/r\n")
        assert FileConfigProvider(config_path=config_file).validate() == []


# =============================================================================
# Environment provider
# =============================================================================


class TestParseEnvFile:
    def test_parse(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            dedent(
                """
                # comment
                EMVERIFY_REPOSITORY=owner/repo
                export EMVERIFY_BRANCH="quoted"
                EMVERIFY_SERVER_URL='http://x'
                not a pair
                """
            )
        )

        assert parse_env_file(env_file) == {
            "EMVERIFY_REPOSITORY": "owner/repo",
            "EMVERIFY_BRANCH": "quoted",
            "EMVERIFY_SERVER_URL": "http://x",
        }


class TestEnvironmentConfigProvider:
    @pytest.fixture
    def no_env_file(self, tmp_path) -> Path:
        return tmp_path / "missing.env"

    def test_environment_values(self, no_env_file, tmp_path):
        (tmp_path / "none.yaml").write_text("{}\n")
        provider = EnvironmentConfigProvider(
            config_file=tmp_path / "none.yaml",
            env_file=no_env_file,
            environ={
                "EMVERIFY_GITHUB_TOKEN": "ghp_env",
                "EMVERIFY_REPOSITORY": "owner/repo",
                "EMVERIFY_POLL_INTERVAL": "2",
            },
        )
        config = provider.load()

        assert config.github.token == "ghp_env"
        assert config.github.owner == "owner"
        assert config.job_server.poll_interval == 2.0

    def test_specific_token_beats_generic(self, no_env_file):
        provider = EnvironmentConfigProvider(
            env_file=no_env_file,
            environ={"GITHUB_TOKEN": "generic", "EMVERIFY_GITHUB_TOKEN": "specific"},
        )
        assert provider.get("github.token") == "specific"

    def test_generic_token_alone(self, no_env_file):
        provider = EnvironmentConfigProvider(env_file=no_env_file, environ={"GITHUB_TOKEN": "g"})
        assert provider.get("github.token") == "g"

    def test_precedence(self, tmp_path):
        config_file = tmp_path / ".emverify.yaml"
        config_file.write_text("sync:\n  branch: file\n  commit_message: from file\n")
        env_file = tmp_path / ".env"
        env_file.write_text("EMVERIFY_BRANCH=dotenv\nEMVERIFY_COMMIT_MESSAGE=from dotenv\n")

        provider = EnvironmentConfigProvider(
            config_file=config_file,
            env_file=env_file,
            environ={"EMVERIFY_BRANCH": "environ"},
            cli_overrides={"branch": None},
        )
        config = provider.load()

        assert config.sync.branch == "environ"
        assert config.sync.commit_message == "from dotenv"

        cli = EnvironmentConfigProvider(
            config_file=config_file,
            env_file=env_file,
            environ={"EMVERIFY_BRANCH": "environ"},
            cli_overrides={"branch": "cli"},
        )
        assert cli.load().sync.branch == "cli"

    def test_validate_adds_hints(self, no_env_file):
        provider = EnvironmentConfigProvider(env_file=no_env_file, environ={})
        errors = provider.validate()

        token_error = next(e for e in errors if "token" in e.lower())
        assert "EMVERIFY_GITHUB_TOKEN" in token_error
        assert "github.token" in token_error

    def test_validate_bad_repository(self, no_env_file):
        provider = EnvironmentConfigProvider(
            env_file=no_env_file,
            environ={"EMVERIFY_GITHUB_TOKEN": "t", "EMVERIFY_REPOSITORY": "bad"},
        )
        errors = provider.validate()
        assert len(errors) == 1
        assert "owner/repo" in errors[0]

    def test_name(self, tmp_path, no_env_file):
        config_file = tmp_path / ".emverify.toml"
        config_file.write_text("")
        provider = EnvironmentConfigProvider(config_file=config_file, env_file=no_env_file)
        assert provider.name == "Environment + .emverify.toml"
