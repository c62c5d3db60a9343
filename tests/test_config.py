"""
Tests for configuration loading, environment overrides and the config CLI.
"""

import json

import pytest
from typer.testing import CliRunner

from notionsh.cli import app
from notionsh.config import (
    AppConfig,
    ConfigError,
    apply_env_overrides,
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
)

runner = CliRunner()


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point the config lookup at a temp dir and clear related environment variables."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    for name in ("NOTION_API_KEY", "NOTION_ROOT_PAGE_ID", "CACHE_TTL_SECONDS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class TestConfigPath:

    def test_xdg_config_home(self, config_home):
        assert get_config_path() == config_home / "notionsh" / "config.json"

    def test_history_defaults_beside_config(self, config_home):
        assert AppConfig().history_path() == config_home / "notionsh" / "history"


class TestEnvOverrides:

    def test_defaults(self):
        config = apply_env_overrides(AppConfig(), {})
        assert config.notion.api_key is None
        assert config.cache.ttl_seconds == 60
        assert config.logging.level == "INFO"
        assert config.shell.home == "/pages"

    def test_all_variables(self):
        config = apply_env_overrides(AppConfig(), {
            "NOTION_API_KEY": "secret_abc",
            "NOTION_ROOT_PAGE_ID": "root-id",
            "CACHE_TTL_SECONDS": "120",
            "LOG_LEVEL": "debug",
        })
        assert config.notion.api_key == "secret_abc"
        assert config.notion.root_page_id == "root-id"
        assert config.cache.ttl_seconds == 120
        assert config.logging.level == "DEBUG"

    def test_blank_values_ignored(self):
        """Given blank variables, the file values are kept."""
        config = AppConfig()
        config.notion.api_key = "from-file"
        apply_env_overrides(config, {"NOTION_API_KEY": "  ", "NOTION_ROOT_PAGE_ID": ""})
        assert config.notion.api_key == "from-file"
        assert config.notion.root_page_id is None

    @pytest.mark.parametrize("value", ["abc", "0", "-5", "1.5"])
    def test_bad_ttl(self, value):
        with pytest.raises(ConfigError):
            apply_env_overrides(AppConfig(), {"CACHE_TTL_SECONDS": value})

    def test_require_api_key(self):
        with pytest.raises(ConfigError, match="NOTION_API_KEY"):
            AppConfig().require_api_key()


class TestLoadSave:

    def test_round_trip(self, config_home):
        config = AppConfig()
        config.notion.api_key = "secret_abc"
        config.cache.ttl_seconds = 90
        path = save_config(config)

        loaded = load_config(environ={})
        assert path == get_config_path()
        assert loaded.notion.api_key == "secret_abc"
        assert loaded.cache.ttl_seconds == 90

    def test_env_wins_over_file(self, config_home):
        config = AppConfig()
        config.cache.ttl_seconds = 90
        save_config(config)

        loaded = load_config(environ={"CACHE_TTL_SECONDS": "15"})
        assert loaded.cache.ttl_seconds == 15

    def test_missing_file_gives_defaults(self, config_home):
        assert load_config(environ={}).cache.ttl_seconds == 60

    def test_corrupt_file_gives_defaults(self, config_home):
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        assert load_config(environ={}).notion.api_key is None

    def test_partial_file(self, config_home):
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"notion": {"root_page_id": "r1"}}))

        loaded = load_config(environ={})
        assert loaded.notion.root_page_id == "r1"
        assert loaded.notion.max_retries == 5

    def test_ensure_config_exists(self, config_home):
        path = ensure_config_exists()
        assert json.loads(path.read_text())["cache"]["ttl_seconds"] == 60


class TestConfigCommand:

    def test_set_values(self, config_home):
        result = runner.invoke(app, ["config", "--set-api-key", "secret_abcdefgh", "--set-ttl", "30"])

        assert result.exit_code == 0
        stored = json.loads(get_config_path().read_text())
        assert stored["notion"]["api_key"] == "secret_abcdefgh"
        assert stored["cache"]["ttl_seconds"] == 30

    def test_environment_not_persisted(self, config_home, monkeypatch):
        monkeypatch.setenv("NOTION_API_KEY", "from-env")
        result = runner.invoke(app, ["config", "--set-ttl", "30"])

        assert result.exit_code == 0
        assert json.loads(get_config_path().read_text())["notion"]["api_key"] is None

    def test_show_masks_key(self, config_home):
        runner.invoke(app, ["config", "--set-api-key", "secret_abcdefgh"])
        result = runner.invoke(app, ["config", "--show"])

        assert result.exit_code == 0
        assert "secr...efgh" in result.stdout
        assert "secret_abcdefgh" not in result.stdout

    def test_invalid_ttl(self, config_home):
        result = runner.invoke(app, ["config", "--set-ttl", "0"])
        assert result.exit_code == 2

    def test_shell_without_api_key(self, config_home):
        result = runner.invoke(app, ["shell"])
        assert result.exit_code == 2
