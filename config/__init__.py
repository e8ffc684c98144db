"""
Configuration Module for Invoice Lens.

This module provides centralized configuration management using YAML files.
Rasterization budgets, provider endpoints, model names and export options
are all controlled through settings.yaml; credentials are never stored in
the file, only the names of the environment variables that hold them.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


# Environment variable that points at an alternative settings file
CONFIG_PATH_ENV = "INVOICE_LENS_CONFIG"


class ConfigurationManager:
    """
    Centralized configuration management for Invoice Lens.

    Loads settings.yaml once per process and provides dotted-key access
    to its values.

    Attributes:
        config_path (Path): Path to the configuration file.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("input.raster.byte_budget")
        716800
        >>> config.get("providers.order")
        ['anthropic', 'gemini']
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        """
        Singleton pattern to ensure only one configuration instance exists.

        Args:
            config_path: Optional path to configuration file.

        Returns:
            ConfigurationManager instance.
        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file. Defaults to
                        $INVOICE_LENS_CONFIG, then config/settings.yaml.
        """
        if self._initialized:
            return

        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_ENV)

        if config_path is None:
            self.config_path = Path(__file__).parent / "settings.yaml"
        else:
            self.config_path = Path(config_path)

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            yaml.YAMLError: If configuration file is invalid.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """
        Resolve relative paths in the ``paths`` section against the
        current working directory, so exports land where the CLI was run.
        """
        base = Path.cwd()

        if 'paths' in self._config:
            for key, value in self._config['paths'].items():
                if value and not Path(value).is_absolute():
                    self._config['paths'][key] = str(base / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "providers.order").
            default: Default value if key doesn't exist.

        Returns:
            Configuration value or default.

        Example:
            >>> config.get("providers.gemini.model")
            "gemini-2.5-flash"
            >>> config.get("nonexistent.key", "default_value")
            "default_value"
        """
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_all(self) -> Dict[str, Any]:
        """Return a shallow copy of the complete configuration dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """
        Reset the singleton instance.
        Used by tests and by the CLI when --config points elsewhere.
        """
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get configuration values.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


def get_secret(env_name: Optional[str]) -> Optional[str]:
    """
    Read a credential from the environment.

    Blank values are treated as unset so an exported-but-empty variable
    does not count as a configured provider.

    Args:
        env_name: Name of the environment variable.

    Returns:
        The stripped value, or None when unset or blank.
    """
    if not env_name:
        return None
    value = os.environ.get(env_name, "").strip()
    return value or None


__all__ = ['ConfigurationManager', 'get_config', 'get_secret', 'CONFIG_PATH_ENV']
