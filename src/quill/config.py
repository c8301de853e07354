"""TOML configuration file support for Quill.

Loads configuration from:
1. System: /etc/quill/config.toml
2. User: ~/.config/quill/config.toml (XDG_CONFIG_HOME)
3. Local: ./.quill.toml (project-specific)
4. Environment variables (highest priority)

Configuration is merged in order, with later sources overriding earlier ones.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

APP_NAME = "quill"


def _xdg_dir(env_var: str, default_subdir: str) -> Path:
    if env_var in os.environ:
        return Path(os.environ[env_var]) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def user_config_file() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / "config.toml"


@dataclass
class GeneralConfig:
    """General configuration settings."""

    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    log_max_bytes: int = 1_000_000
    log_backup_count: int = 3


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = "127.0.0.1"
    port: int = 8020
    reload: bool = False


@dataclass
class LLMConfig:
    """LLM provider configuration."""

    provider: str = "ollama"  # ollama, anthropic, openai, openrouter, kilo, google
    model: str | None = None
    timeout: float = 60.0
    temperature: float = 0.7
    ollama_url: str = "http://127.0.0.1:11434"
    openai_base_url: str = "https://api.openai.com/v1"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    kilo_base_url: str = "https://api.kilo.ai/v1"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"


@dataclass
class SearchConfig:
    """Web search configuration."""

    tavily_api_key: str | None = None
    tavily_url: str = "https://api.tavily.com/search"
    max_results: int = 5
    timeout: float = 15.0


@dataclass
class CacheConfig:
    """In-process stage cache: TTLs in seconds and the entry bound per cache."""

    structure_ttl: int = 600
    style_ttl: int = 3600
    max_entries: int = 256


@dataclass
class StorageConfig:
    """Local storage configuration."""

    data_dir: Path = field(default_factory=lambda: _xdg_dir("XDG_DATA_HOME", ".local/share"))
    max_versions: int = 50

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / "quill.db"

    @property
    def log_path(self) -> Path:
        return Path(self.data_dir) / "quill.log"


@dataclass
class Config:
    """Complete Quill configuration."""

    general: GeneralConfig = field(default_factory=GeneralConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def load(cls, sources: list[Path] | None = None) -> "Config":
        """Load configuration from all sources."""
        config = cls()

        if sources is None:
            sources = [
                Path("/etc/quill/config.toml"),
                user_config_file(),
                Path.cwd() / ".quill.toml",
            ]

        for source in sources:
            if source.exists():
                config = config._merge_from_file(source)

        return config._apply_env_overrides()

    def _merge_from_file(self, path: Path) -> "Config":
        """Merge configuration from a TOML file."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            # Log but don't fail on config errors
            logger.warning("Failed to load config from %s: %s", path, e)
            return self
        return self._merge_dict(data)

    def _merge_dict(self, data: dict[str, Any]) -> "Config":
        """Merge a dictionary into the configuration."""
        for section_name in ("general", "server", "llm", "search", "cache", "storage"):
            if isinstance(data.get(section_name), dict):
                section = getattr(self, section_name)
                setattr(self, section_name, _merge_dataclass(section, data[section_name]))
        return self

    def _apply_env_overrides(self) -> "Config":
        """Apply environment variable overrides."""
        env_mappings = {
            "QUILL_LOG_LEVEL": ("general", "log_level"),
            "QUILL_LOG_FORMAT": ("general", "log_format"),
            "QUILL_HOST": ("server", "host"),
            "QUILL_PORT": ("server", "port", int),
            "QUILL_RELOAD": ("server", "reload", _parse_bool),
            "QUILL_LLM_PROVIDER": ("llm", "provider"),
            "QUILL_LLM_MODEL": ("llm", "model"),
            "QUILL_LLM_TIMEOUT": ("llm", "timeout", float),
            "QUILL_LLM_TEMPERATURE": ("llm", "temperature", float),
            "QUILL_OLLAMA_URL": ("llm", "ollama_url"),
            "TAVILY_API_KEY": ("search", "tavily_api_key"),
            "QUILL_SEARCH_MAX_RESULTS": ("search", "max_results", int),
            "QUILL_CACHE_STRUCTURE_TTL": ("cache", "structure_ttl", int),
            "QUILL_CACHE_STYLE_TTL": ("cache", "style_ttl", int),
            "QUILL_CACHE_MAX_ENTRIES": ("cache", "max_entries", int),
            "QUILL_DATA_DIR": ("storage", "data_dir", Path),
            "QUILL_MAX_VERSIONS": ("storage", "max_versions", int),
        }

        for env_var, mapping in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_name = mapping[0]
                field_name = mapping[1]
                converter = mapping[2] if len(mapping) > 2 else str

                section = getattr(self, section_name)
                try:
                    setattr(section, field_name, converter(value))  # type: ignore[operator]
                except (ValueError, TypeError):
                    logger.warning("Ignoring invalid value for %s: %r", env_var, value)

        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary (secrets redacted)."""
        data = asdict(self)
        data["storage"]["data_dir"] = str(self.storage.data_dir)
        if data["search"].get("tavily_api_key"):
            data["search"]["tavily_api_key"] = "***"
        return data


def _merge_dataclass(obj: Any, data: dict[str, Any]) -> Any:
    """Merge dictionary values into a dataclass instance."""
    for key, value in data.items():
        if hasattr(obj, key):
            current_value = getattr(obj, key)
            if isinstance(current_value, bool) and isinstance(value, str):
                value = _parse_bool(value)
            elif isinstance(current_value, int) and isinstance(value, str):
                value = int(value)
            elif isinstance(current_value, float) and isinstance(value, (str, int)):
                value = float(value)
            elif isinstance(current_value, Path) and isinstance(value, str):
                value = Path(value).expanduser()
            setattr(obj, key, value)
    return obj


def _parse_bool(value: str) -> bool:
    """Parse a boolean from string."""
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


DEFAULT_CONFIG_TEMPLATE = """\
# Quill Configuration
#
# This file uses TOML format: https://toml.io/
# Environment variables (QUILL_*) override these settings.

[general]
# Log level: DEBUG, INFO, WARNING, ERROR
log_level = "INFO"

# Log format: "text" or "json"
log_format = "text"

[server]
host = "127.0.0.1"
port = 8020

[llm]
# One of: ollama, anthropic, openai, openrouter, kilo, google
provider = "ollama"
# model = "llama3.2"
timeout = 60.0
temperature = 0.7

[search]
# Tavily web search (leave unset to disable retrieval)
# tavily_api_key = "tvly-..."
max_results = 5

[cache]
structure_ttl = 600
style_ttl = 3600
max_entries = 256

[storage]
max_versions = 50
"""


def write_default_config(path: Path | None = None) -> Path:
    """Write the default configuration file and return its path."""
    if path is None:
        path = user_config_file()

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    return path


# Global configuration instance - loaded on first access
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reload_config() -> Config:
    """Reload configuration from disk."""
    global _config
    _config = Config.load()
    return _config
