"""Configuration loader for the ACME DNS server.

This module handles loading configuration from files, environment variables
and command-line overrides, with validation.
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..exceptions import ConfigError
from .schema import (
    ACMEDNSConfig,
    DNSConfig,
    LoggingConfig,
    ServerConfig,
    create_default_config,
)

ENV_PREFIX = "ACME_DNS_"

# Keys whose environment values are comma-separated lists
_LIST_KEYS = {("server", "dns_addresses"), ("server", "control_addresses")}


class ConfigLoader:
    """Configuration loader.

    Precedence, lowest first: defaults, config file, environment, overrides.
    """

    def __init__(
        self,
        config_file: Optional[str] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            overrides: Section/key overrides, typically from the command line
            environ: Environment mapping, defaults to ``os.environ``
        """
        self.config_file = config_file
        self.overrides = overrides or {}
        self.environ = os.environ if environ is None else environ
        self._config: Optional[ACMEDNSConfig] = None

    def load_config(self) -> ACMEDNSConfig:
        """Load configuration from all sources.

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigError: If a source cannot be read or the result is invalid
        """
        config_dict = asdict(create_default_config())

        if self.config_file:
            file_config = self._load_from_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)
        config_dict = self._merge_configs(config_dict, self.overrides)

        try:
            self._config = self._dict_to_config(config_dict)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

        return self._config

    def get_config(self) -> Optional[ACMEDNSConfig]:
        """Get current configuration."""
        return self._config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file.

        Raises:
            ConfigError: If the file is missing or cannot be parsed
        """
        path = Path(file_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        try:
            if path.suffix.lower() == ".json":
                result = json.loads(content)
            else:
                result = yaml.safe_load(content)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot parse configuration file {file_path}: {exc}")

        if result is None:
            return {}
        if not isinstance(result, dict):
            raise ConfigError(f"Configuration root must be a mapping: {file_path}")
        return result

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> ACMEDNSConfig:
        """Convert dictionary to configuration object.

        Raises:
            ValueError: If configuration is invalid
            TypeError: If a section contains unknown keys
        """
        unknown = set(config_dict) - {"server", "dns", "logging"}
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        return ACMEDNSConfig(
            server=ServerConfig(**config_dict.get("server", {})),
            dns=DNSConfig(**config_dict.get("dns", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
        )

    def _merge_configs(
        self, base: Dict[str, Any], override: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merge two configuration dictionaries, override wins."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables use the format ACME_DNS_<SECTION>_<KEY>
        For example: ACME_DNS_SERVER_DNS_ADDRESSES=0.0.0.0:53,[::]:53
        """
        for env_key, env_value in self.environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            key_parts = env_key[len(ENV_PREFIX) :].lower().split("_")
            if len(key_parts) < 2:
                continue

            section = key_parts[0]
            config_key = "_".join(key_parts[1:])

            if not isinstance(config_dict.get(section), dict):
                continue

            if (section, config_key) in _LIST_KEYS:
                value: Any = [s.strip() for s in env_value.split(",") if s.strip()]
            else:
                value = self._convert_env_value(env_value)

            config_dict[section][config_key] = value

        return config_dict

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable value to appropriate Python type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value
