"""Unified configuration loading for the search orchestrator and its entrypoints."""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.error_handling import ConfigurationError


DEFAULT_CONFIG_PATH = "config/settings.json"


class ConfigLoader:
    """Centralized configuration loader with caching and validation."""

    ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._config_cache: Dict[str, Dict[str, Any]] = {}
        self._missing_env_vars: set[str] = set()

    def load_config(self, config_path: str) -> Dict[str, Any]:
        """Load and cache JSON configuration with unified error handling.

        Args:
            config_path: Path to configuration file

        Returns:
            Configuration dictionary

        Raises:
            ConfigurationError: If file not found or JSON invalid
        """
        config_path = str(config_path)
        if config_path in self._config_cache:
            return self._config_cache[config_path]

        config_file = Path(config_path)
        if not config_file.exists():
            error_msg = f"Configuration file not found: {config_path}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg)

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            error_msg = f"Invalid JSON in configuration {config_path}: {e}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg) from e
        except IOError as e:
            error_msg = f"Error reading configuration {config_path}: {e}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg) from e

        config = self._substitute_env_variables(config)

        for message in self.validate_config_structure(config):
            self.logger.warning("Configuration validation warning: %s", message)

        self._config_cache[config_path] = config
        self.logger.debug("Configuration loaded successfully: %s", config_path)
        return config

    def get_nested_value(
        self, config: Dict[str, Any], key_path: str, default: Any = None
    ) -> Any:
        """Get nested configuration value using dot notation.

        Example:
            >>> config = {'search': {'load_timeout_seconds': 15}}
            >>> loader.get_nested_value(config, 'search.load_timeout_seconds')
            15
        """
        value = config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def validate_required_keys(self, config: Dict[str, Any], required_keys: List[str]) -> None:
        """Validate that all required configuration keys are present.

        Raises:
            ConfigurationError: If any required key is missing
        """
        missing_keys = [
            key_path
            for key_path in required_keys
            if self.get_nested_value(config, key_path) is None
        ]
        if missing_keys:
            error_msg = f"Missing required configuration keys: {missing_keys}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg, {"missing": missing_keys})

    def clear_cache(self, config_path: Optional[str] = None) -> None:
        """Clear configuration cache for one file, or for all of them."""
        if config_path:
            self._config_cache.pop(str(config_path), None)
        else:
            self._config_cache.clear()
            self._missing_env_vars.clear()
        self.logger.debug("Configuration cache cleared: %s", config_path or "all")

    def _substitute_env_variables(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._substitute_env_variables(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._substitute_env_variables(item) for item in value]
        if isinstance(value, str):
            def replace(match: re.Match[str]) -> str:
                env_name = match.group(1)
                env_value = os.getenv(env_name)
                if env_value is None:
                    if env_name not in self._missing_env_vars:
                        self.logger.warning(
                            "Environment variable %s is not set; substituting empty string",
                            env_name,
                        )
                        self._missing_env_vars.add(env_name)
                    return ""
                return env_value

            return self.ENV_PATTERN.sub(replace, value)
        return value

    def validate_config_structure(self, config: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        expected_sections = ("search", "browser", "suppliers")

        for key in expected_sections:
            value = config.get(key)
            if value is None:
                errors.append(f"Missing configuration section '{key}'")
            elif not isinstance(value, dict):
                errors.append(f"Section '{key}' must be an object in configuration")

        suppliers = config.get("suppliers")
        if isinstance(suppliers, dict):
            for supplier_id, entry in suppliers.items():
                if not isinstance(entry, dict):
                    errors.append(f"Supplier '{supplier_id}' must be an object")
                    continue
                template = entry.get("search_url")
                if template is not None and "{query}" not in template:
                    errors.append(
                        f"Supplier '{supplier_id}' search_url has no '{{query}}' placeholder"
                    )

        return errors


# Global instance for application-wide use
config_loader = ConfigLoader()


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration using the global config loader instance."""
    return config_loader.load_config(config_path)

