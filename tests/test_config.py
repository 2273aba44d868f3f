"""Tests for oneup.config: env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the standalone
server bootstrap path: validate_config() and load_config().
"""

import logging
from pathlib import Path

import pytest

from oneup.config import Config, load_config, validate_config
from oneup.exercises import DEFAULT_EXERCISES, ExerciseDefinition

ENV_VARS = (
    "ONEUP_DATABASE_URL",
    "ONEUP_AUTH_TOKEN",
    "ONEUP_UID",
    "ONEUP_DATA_FILE",
    "ONEUP_REQUEST_TIMEOUT",
    "ONEUP_AUTO_SYNC",
    "ONEUP_CONFLICT_STRATEGY",
    "ONEUP_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# -------------------------------------------------------------------------
# Config
# -------------------------------------------------------------------------


class TestConfig:
    """Tests for derived Config properties."""

    def test_defaults_are_offline(self):
        config = Config()
        assert config.cloud_enabled is False
        assert config.exercises == DEFAULT_EXERCISES

    def test_cloud_needs_url_and_uid(self):
        assert not Config(database_url="https://x.firebaseio.com").cloud_enabled
        assert not Config(uid="u1").cloud_enabled
        assert Config(
            database_url="https://x.firebaseio.com", uid="u1"
        ).cloud_enabled

    def test_data_path_expands_home(self):
        config = Config(data_file="~/progress.json")
        assert config.data_path == Path.home() / "progress.json"


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config(): URL format, timeout and strategy checks."""

    def test_valid_config(self):
        config = Config(
            database_url="https://oneup-default-rtdb.firebaseio.com",
            uid="u1",
        )
        validate_config(config)  # should not raise

    def test_offline_config_valid(self):
        validate_config(Config())

    def test_invalid_url_no_scheme(self):
        config = Config(database_url="oneup.firebaseio.com", uid="u1")
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(config)

    def test_empty_host_url(self):
        """URL with scheme but no hostname should be rejected."""
        config = Config(database_url="https://", uid="u1")
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(config)

    def test_trailing_slash_and_whitespace_stripped(self):
        config = Config(
            database_url="  https://oneup.firebaseio.com/  ", uid="u1"
        )
        validate_config(config)
        assert config.database_url == "https://oneup.firebaseio.com"

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError, match="must be greater than 0"):
            validate_config(Config(request_timeout=0))

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Invalid conflict strategy"):
            validate_config(Config(conflict_strategy="newest"))

    def test_url_without_uid_warns(self, caplog):
        config = Config(database_url="https://oneup.firebaseio.com")
        with caplog.at_level(logging.WARNING, logger="oneup.config"):
            validate_config(config)
        assert "cloud sync disabled" in caplog.text

    def test_plain_http_warns(self, caplog):
        config = Config(database_url="http://localhost:9000", uid="u1")
        with caplog.at_level(logging.WARNING, logger="oneup.config"):
            validate_config(config)
        assert "not using HTTPS" in caplog.text

    def test_https_no_warning(self, caplog):
        config = Config(database_url="https://oneup.firebaseio.com", uid="u1")
        with caplog.at_level(logging.WARNING, logger="oneup.config"):
            validate_config(config)
        assert caplog.text == ""


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config(): env var loading, CLI overrides, boolean parsing."""

    def test_defaults(self, clean_env):
        config = load_config()
        assert config.database_url is None
        assert config.conflict_strategy == "merge"
        assert config.request_timeout == 30.0
        assert config.auto_sync is False
        assert config.debug is False

    def test_load_from_env_vars(self, clean_env):
        clean_env.setenv("ONEUP_DATABASE_URL", "https://env.firebaseio.com")
        clean_env.setenv("ONEUP_AUTH_TOKEN", "secret")
        clean_env.setenv("ONEUP_UID", "env-user")
        clean_env.setenv("ONEUP_DATA_FILE", "/tmp/env.json")
        clean_env.setenv("ONEUP_CONFLICT_STRATEGY", "remote-wins")

        config = load_config()

        assert config.database_url == "https://env.firebaseio.com"
        assert config.auth_token == "secret"
        assert config.uid == "env-user"
        assert config.data_file == "/tmp/env.json"
        assert config.conflict_strategy == "remote-wins"
        assert config.cloud_enabled

    def test_cli_args_override_env(self, clean_env):
        clean_env.setenv("ONEUP_DATABASE_URL", "https://env.firebaseio.com")
        clean_env.setenv("ONEUP_UID", "env-user")

        config = load_config(
            database_url="https://cli.firebaseio.com", uid="cli-user"
        )

        assert config.database_url == "https://cli.firebaseio.com"
        assert config.uid == "cli-user"

    def test_env_overrides_yaml(self, clean_env):
        clean_env.setenv("ONEUP_UID", "env-user")
        config = load_config(
            yaml_fallbacks={"uid": "yaml-user", "data_file": "/tmp/y.json"}
        )
        assert config.uid == "env-user"
        assert config.data_file == "/tmp/y.json"

    def test_yaml_only_fields(self, clean_env):
        config = load_config(
            yaml_fallbacks={
                "display_name": "Alex",
                "photo_url": "https://img/a.png",
                "request_timeout": 5,
            }
        )
        assert config.display_name == "Alex"
        assert config.photo_url == "https://img/a.png"
        assert config.request_timeout == 5.0

    @pytest.mark.parametrize(
        "value, expected",
        [("true", True), ("1", True), ("YES", True), ("off", False), ("0", False)],
    )
    def test_auto_sync_env_parsing(self, clean_env, value, expected):
        clean_env.setenv("ONEUP_AUTO_SYNC", value)
        assert load_config().auto_sync is expected

    def test_auto_sync_env_false_beats_yaml(self, clean_env):
        clean_env.setenv("ONEUP_AUTO_SYNC", "false")
        assert load_config(yaml_fallbacks={"auto_sync": True}).auto_sync is False

    def test_auto_sync_cli_flag_wins(self, clean_env):
        clean_env.setenv("ONEUP_AUTO_SYNC", "false")
        assert load_config(auto_sync=True).auto_sync is True

    def test_debug_from_env(self, clean_env):
        clean_env.setenv("ONEUP_DEBUG", "on")
        assert load_config().debug is True

    def test_timeout_from_env(self, clean_env):
        clean_env.setenv("ONEUP_REQUEST_TIMEOUT", "2.5")
        assert load_config(yaml_fallbacks={"request_timeout": 9}).request_timeout == 2.5

    def test_invalid_timeout_env(self, clean_env):
        clean_env.setenv("ONEUP_REQUEST_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="Invalid ONEUP_REQUEST_TIMEOUT"):
            load_config()

    def test_invalid_strategy_env(self, clean_env):
        clean_env.setenv("ONEUP_CONFLICT_STRATEGY", "newest")
        with pytest.raises(ValueError, match="Invalid conflict strategy"):
            load_config()

    def test_custom_exercises(self, clean_env):
        exercises = (ExerciseDefinition(id="burpees", multiplier=0.25),)
        assert load_config(exercises=exercises).exercises == exercises
