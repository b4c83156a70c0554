"""
Application configuration persisted as a JSON document.

The file lives at ``$AGENTIC_CLI_CONFIG`` when set, else
``$AGENTIC_CLI_HOME/config.json``, else ``~/.agentic_cli/config.json``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from agentic_cli.errors import ConfigurationError

__all__ = ["ProviderConfig", "AppConfig", "ConfigManager", "default_config_path"]

CONFIG_FILE_NAME = "config.json"


def default_config_path() -> Path:
    explicit = os.getenv("AGENTIC_CLI_CONFIG", "").strip()
    if explicit:
        return Path(os.path.expanduser(explicit))
    home = os.getenv("AGENTIC_CLI_HOME", "").strip()
    base = Path(os.path.expanduser(home)) if home else Path.home() / ".agentic_cli"
    return base / CONFIG_FILE_NAME


@dataclass(slots=True)
class ProviderConfig:
    """Settings used to configure one provider instance."""
    provider_type: str
    instance_name: str = "default"
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    timeout: float = 60.0
    max_retries: int = 2
    # Google only: authenticate through Vertex AI instead of an API key
    vertex_ai: bool = False
    vertex_project: Optional[str] = None
    vertex_location: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderConfig":
        """Build from a dict, ignoring keys this class does not know."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if not values.get("provider_type"):
            raise ConfigurationError("Provider configuration needs a provider_type")
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(slots=True)
class AppConfig:
    default_provider: Optional[str] = None
    # alias -> provider settings (ProviderConfig fields)
    providers: dict[str, dict[str, Any]] = field(default_factory=dict)
    # MCP server defaults: name, version, instructions, tool_prefix
    mcp: dict[str, Any] = field(default_factory=dict)
    # role name -> {provider, model, temperature, max_tokens}
    roles: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        sections = {}
        for key in ("providers", "mcp", "roles"):
            value = data.get(key) or {}
            if not isinstance(value, dict):
                raise ConfigurationError(f"'{key}' must be a JSON object")
            sections[key] = dict(value)
        return cls(default_provider=data.get("default_provider"), **sections)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"default_provider": self.default_provider, "providers": self.providers}
        if self.mcp:
            data["mcp"] = self.mcp
        if self.roles:
            data["roles"] = self.roles
        return data


class ConfigManager:
    """Loads, caches and saves the application's JSON configuration."""

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = Path(path) if path is not None else default_config_path()
        self.logger = logger or logging.getLogger(__name__)
        self._config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        """
        Load the configuration, creating the file with defaults when missing.

        Unreadable or invalid JSON is logged and replaced by defaults in memory;
        the broken file is left untouched.
        """
        if self._config is not None:
            return self._config
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ConfigurationError("configuration root must be a JSON object")
            self._config = AppConfig.from_dict(data)
        except FileNotFoundError:
            self.logger.info(f"Config file not found at {self.path}. Initializing with defaults.")
            self._config = AppConfig()
            self.save()
        except (OSError, ValueError, ConfigurationError) as exc:
            self.logger.error(f"Error reading config file {self.path}: {exc}")
            self._config = AppConfig()
        return self._config

    def save(self, config: AppConfig | None = None) -> None:
        if config is not None:
            self._config = config
        if self._config is None:
            self._config = AppConfig()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._config.to_dict(), indent=2), encoding="utf-8")
        self.logger.debug(f"Configuration saved to {self.path}")

    def get(self, key: str, default: Any = None) -> Any:
        config = self.load()
        return getattr(config, key, default) if key in AppConfig.__slots__ else default

    def set(self, key: str, value: Any) -> None:
        if key not in AppConfig.__slots__:
            raise ConfigurationError(f"Unknown configuration key: {key}")
        config = self.load()
        setattr(config, key, value)
        self.save()

    def get_provider_config(self, alias: str) -> ProviderConfig | None:
        """
        Return the ProviderConfig stored under *alias*.

        ``provider_type`` defaults to the alias itself, so an entry keyed
        ``openai`` needs no explicit type.
        """
        entry = self.load().providers.get(alias)
        if entry is None:
            return None
        data = {"provider_type": alias, **entry}
        return ProviderConfig.from_dict(data)

    def set_provider_config(self, alias: str, config: ProviderConfig) -> None:
        data = config.to_dict()
        # Keys belong in the keychain
        data.pop("api_key", None)
        self.load().providers[alias] = data
        self.save()
