"""
Configuration management for notionsh.

Handles loading and saving user configuration from:
- XDG config directory: $XDG_CONFIG_HOME/notionsh/config.json
  (usually ~/.config/notionsh/config.json)
- Fallback: ~/.notionsh/config.json

Environment variables override the file:
NOTION_API_KEY, NOTION_ROOT_PAGE_ID, CACHE_TTL_SECONDS, LOG_LEVEL.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from notionsh.notion.gateway import NOTION_API_URL, NOTION_VERSION

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Invalid or incomplete configuration."""
    pass


@dataclass
class NotionConfig:
    """Notion API access."""
    api_key: Optional[str] = None
    root_page_id: Optional[str] = None
    base_url: str = NOTION_API_URL
    notion_version: str = NOTION_VERSION
    timeout: float = 30.0
    max_retries: int = 5
    retry_base_delay: float = 0.25


@dataclass
class CacheConfig:
    """Index and content cache settings."""
    ttl_seconds: int = 60


@dataclass
class ShellConfig:
    """Shell defaults."""
    home: str = "/pages"
    history_file: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    """Main notionsh configuration."""
    notion: NotionConfig = field(default_factory=NotionConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "notion": asdict(self.notion),
            "cache": asdict(self.cache),
            "shell": asdict(self.shell),
            "logging": asdict(self.logging),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create from dictionary."""
        return cls(
            notion=NotionConfig(**data.get("notion", {})),
            cache=CacheConfig(**data.get("cache", {})),
            shell=ShellConfig(**data.get("shell", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def require_api_key(self) -> str:
        """API key, or ConfigError if none is configured."""
        if not self.notion.api_key:
            raise ConfigError(
                "NOTION_API_KEY is required (set the environment variable "
                "or run: notionsh config --set-api-key <token>)"
            )
        return self.notion.api_key

    def history_path(self) -> Path:
        """Shell history file, defaulting to one beside the config file."""
        if self.shell.history_file:
            return Path(self.shell.history_file).expanduser()
        return get_config_path().parent / "history"


def get_config_path() -> Path:
    """
    Get configuration file path.

    1. $XDG_CONFIG_HOME/notionsh/config.json
    2. ~/.config/notionsh/config.json if ~/.config exists
    3. Fallback: ~/.notionsh/config.json

    Returns:
        Path to config file
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "notionsh" / "config.json"

    default_config_home = Path.home() / ".config"
    if default_config_home.exists():
        return default_config_home / "notionsh" / "config.json"

    return Path.home() / ".notionsh" / "config.json"


def _env_value(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def apply_env_overrides(config: AppConfig, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Override file settings with environment variables (blank values are ignored).

    Raises:
        ConfigError: CACHE_TTL_SECONDS is not a positive integer
    """
    environ = os.environ if environ is None else environ

    api_key = _env_value(environ, "NOTION_API_KEY")
    if api_key:
        config.notion.api_key = api_key

    root_page_id = _env_value(environ, "NOTION_ROOT_PAGE_ID")
    if root_page_id:
        config.notion.root_page_id = root_page_id

    ttl = _env_value(environ, "CACHE_TTL_SECONDS")
    if ttl:
        try:
            ttl_seconds = int(ttl)
        except ValueError:
            raise ConfigError(f"CACHE_TTL_SECONDS must be a positive integer, got {ttl!r}")
        if ttl_seconds <= 0:
            raise ConfigError(f"CACHE_TTL_SECONDS must be a positive integer, got {ttl!r}")
        config.cache.ttl_seconds = ttl_seconds

    level = _env_value(environ, "LOG_LEVEL")
    if level:
        config.logging.level = level.upper()

    return config


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load configuration from file, then apply environment overrides.

    Args:
        path: Config file (default: get_config_path())
        environ: Environment mapping (default: os.environ)

    Returns:
        AppConfig instance with loaded values or defaults
    """
    config_path = path or get_config_path()
    config = AppConfig()

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                data = json.load(f)
            config = AppConfig.from_dict(data)
        except (json.JSONDecodeError, OSError, TypeError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}; using defaults")

    return apply_env_overrides(config, environ)


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    """
    Save configuration to file.

    Args:
        config: Configuration to save
        path: Destination (default: get_config_path())

    Returns:
        Path written
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def ensure_config_exists(path: Optional[Path] = None) -> Path:
    """
    Ensure configuration file exists, creating with defaults if not.

    Returns:
        Path to config file
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        save_config(AppConfig(), config_path)

    return config_path
