"""
Configuration management for the Markdown exporter.

This module handles loading and accessing configuration values from config.yaml.
Values missing from the file fall back to the built-in defaults, so a partial
file only needs to name what it changes.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


class ConfigManager:
    """
    Manages configuration loading and access for the exporter.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        defaults = self._get_default_config()
        try:
            if not self.config_path.exists():
                logging.debug(f"Configuration file not found, using defaults: {self.config_path}")
                self._config = defaults
                return

            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            if not isinstance(loaded, dict):
                raise ValueError(f"Expected a mapping at the top of {self.config_path}")

            self._config = _merge(defaults, loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, ValueError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = defaults

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "logseq": {
                "api_url": "http://127.0.0.1:12315",
                "api_token": "",
                "timeout": 30.0
            },
            "export": {
                "include_tags": False,
                "include_properties": False,
                "preserve_block_refs": True,
                "flatten_nested": True,
                "remove_logseq_syntax": True,
                "resolve_plain_uuids": True,
                "include_page_name": True,
                "asset_path": "assets/",
                "debug": False
            },
            "frontmatter": {
                "tag_properties": ["tags", "blogTags"],
                "system_properties": ["block/tags", "block/alias"]
            },
            "paths": {
                "output_dir": "export",
                "log_file": "logseq_markdown.log"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "export.asset_path")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("logseq.api_url")  # Returns "http://127.0.0.1:12315"
            config.get("export.flatten_nested")  # Returns True
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def export_options(self, **overrides: Any):
        """
        Build export options from the ``export`` section.

        Args:
            **overrides: Option values that take precedence over the file

        Returns:
            An ExportOptions instance
        """
        from .models import ExportOptions

        values = dict(self.get_section("export"))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ExportOptions(**values)

    # Convenience properties for commonly used values

    @property
    def api_url(self) -> str:
        """Get the Logseq HTTP API server URL."""
        return self.get("logseq.api_url", "http://127.0.0.1:12315")

    @property
    def api_token(self) -> str:
        """Get the Logseq HTTP API token."""
        return self.get("logseq.api_token", "") or ""

    @property
    def api_timeout(self) -> float:
        """Get the API request timeout."""
        return self.get("logseq.timeout", 30.0)

    @property
    def output_directory(self) -> str:
        """Get the export output directory."""
        return self.get("paths.output_dir", "export")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "logseq_markdown.log")

    @property
    def tag_properties(self) -> List[str]:
        """Get the property labels merged into the frontmatter tags list."""
        return self.get("frontmatter.tag_properties", ["tags", "blogTags"])

    @property
    def system_properties(self) -> List[str]:
        """Get the system property keys allowed into frontmatter."""
        return self.get("frontmatter.system_properties", ["block/tags", "block/alias"])


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


# Global configuration instance
config = ConfigManager()


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """
    Get the global configuration instance.

    Args:
        config_path: Load this file into the global instance first

    Returns:
        The global ConfigManager instance
    """
    global config
    if config_path is not None:
        config = ConfigManager(config_path)
    return config
