"""
toolrelay Configuration - Configuration loading and validation.

This module provides the Config class for managing toolrelay configuration
from global (~/.toolrelay/config.yaml) and local (.toolrelay/config.yaml)
files, with environment variable overrides on top.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError


class ConfigError(Exception):
    """Raised when there's a configuration error."""

    pass


class ModelConfig(BaseModel):
    """Configuration for the model backend."""

    api_url: str = "http://localhost:11434"
    model: str = "llama3.2:3b"
    timeout: float = 120.0


class ProvidersConfig(BaseModel):
    """Configuration for capability provider processes."""

    paths: List[str] = Field(default_factory=list)
    bundle_patterns: List[str] = Field(
        default_factory=lambda: ["*/build/index.js", "*/server.py"]
    )
    node_command: str = "node"
    python_command: Optional[str] = None
    request_timeout: float = 60.0
    env: Dict[str, str] = Field(default_factory=dict)


class HttpConfig(BaseModel):
    """Configuration for the HTTP façade."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=0, le=65535)


class ToolRelayConfig(BaseModel):
    """Complete toolrelay configuration schema."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "OLLAMA_API_URL": ("model", "api_url"),
    "OLLAMA_MODEL": ("model", "model"),
    "TOOLRELAY_PORT": ("http", "port"),
}


class Config:
    """
    toolrelay configuration manager.

    Handles loading, merging, and validating configuration from:
    - Global: ~/.toolrelay/config.yaml
    - Local: .toolrelay/config.yaml (project-specific)
    - Environment: OLLAMA_API_URL, OLLAMA_MODEL, TOOLRELAY_PORT
    - Overrides: values passed by the caller (CLI options)

    Later sources take precedence.

    Example:
        >>> config = Config.load()
        >>> config.merged.model.model
        'llama3.2:3b'
    """

    GLOBAL_CONFIG_DIR = Path.home() / ".toolrelay"
    LOCAL_CONFIG_DIR = Path(".toolrelay")

    def __init__(
        self,
        global_config: Optional[Dict[str, Any]] = None,
        local_config: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize Config.

        Args:
            global_config: Global configuration dictionary.
            local_config: Local (project) configuration dictionary.
            environ: Environment to read overrides from (defaults to none).
            overrides: Highest-precedence values, e.g. from the command line.
        """
        self._global_config = global_config or {}
        self._local_config = local_config or {}
        self._environ = environ or {}
        self._overrides = overrides or {}
        self._merged: Optional[ToolRelayConfig] = None

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "Config":
        """
        Load configuration from default locations.

        Args:
            path: Explicit config file; replaces the local config lookup.
            overrides: Highest-precedence values.

        Returns:
            Config instance with loaded configuration.
        """
        global_config = cls._load_yaml(cls.GLOBAL_CONFIG_DIR / "config.yaml")
        if path is not None and not Path(path).exists():
            raise ConfigError(f"Config file not found: {path}")
        local_config = cls._load_yaml(Path(path) if path else cls._find_local_config())

        return cls(
            global_config=global_config,
            local_config=local_config,
            environ=dict(os.environ),
            overrides=overrides,
        )

    @classmethod
    def _load_yaml(cls, path: Optional[Path]) -> Dict[str, Any]:
        """Load YAML file if it exists."""
        if path is None or not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @classmethod
    def _find_local_config(cls) -> Optional[Path]:
        """Find the local config file by walking up the directory tree."""
        current = Path.cwd()
        while current != current.parent:
            config_path = current / cls.LOCAL_CONFIG_DIR / "config.yaml"
            if config_path.exists():
                return config_path
            current = current.parent
        return None

    def _env_config(self) -> Dict[str, Any]:
        """Translate known environment variables into a config dictionary."""
        result: Dict[str, Any] = {}
        for var, (section, key) in ENV_OVERRIDES.items():
            value = self._environ.get(var)
            if value:
                result.setdefault(section, {})[key] = value
        return result

    def get_merged_config(self) -> Dict[str, Any]:
        """Get the merged configuration as a dictionary."""
        merged = self._deep_merge(self._global_config.copy(), self._local_config)
        merged = self._deep_merge(merged, self._env_config())
        merged = self._deep_merge(merged, self._overrides)
        return merged

    @property
    def merged(self) -> ToolRelayConfig:
        """Get the validated merged configuration."""
        if self._merged is None:
            try:
                self._merged = ToolRelayConfig(**self.get_merged_config())
            except ValidationError as e:
                raise ConfigError(f"Invalid configuration: {e}")
        return self._merged

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
