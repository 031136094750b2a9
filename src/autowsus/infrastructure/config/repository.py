"""
Configuration repository for loading and saving the maintenance config.

This module provides the infrastructure layer for configuration persistence.
It handles file I/O, JSONC comment stripping and pydantic validation.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from autowsus.domain.config import MaintenanceSettings
from autowsus.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "maintenance_config"

# Strings are matched first so '//' inside a UNC path or URL survives
_JSONC_TOKENS = re.compile(r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*.*?\*/)', re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _strip_comments(jsonc_content: str) -> str:
    """Strip // and /* */ comments and trailing commas from JSONC content."""
    without_comments = _JSONC_TOKENS.sub(lambda m: m.group(1) or "", jsonc_content)
    return _TRAILING_COMMA.sub(r"\1", without_comments)


class ConfigRepository:
    """
    Repository for configuration file operations.

    Looks for maintenance_config.json, then maintenance_config.jsonc, in the
    config directory. A missing file yields default settings.
    """

    def __init__(self, config_dir: Path):
        """
        Initialize the config repository.

        Args:
            config_dir: Directory holding maintenance_config.json(c)
        """
        self.config_dir = Path(config_dir)

    def config_path(self, filename: str = CONFIG_FILENAME) -> Path | None:
        """Return the first existing config file, or None."""
        for ext in (".json", ".jsonc"):
            candidate = self.config_dir / f"{filename}{ext}"
            if candidate.exists():
                return candidate
        return None

    def load_json_file(self, filename: str = CONFIG_FILENAME) -> Dict[str, Any]:
        """
        Load a JSON or JSONC file.

        Returns:
            Parsed object; empty when the file does not exist

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        path = self.config_path(filename)
        if path is None:
            logger.info("No %s.json(c) in %s, using defaults", filename, self.config_dir)
            return {}

        try:
            content = path.read_text(encoding="utf-8-sig")
            data = json.loads(_strip_comments(content))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to parse config file %s: %s", path, e)
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")
        logger.debug("Loaded config from %s", path)
        return data

    def save_json_file(self, data: Dict[str, Any], filename: str = CONFIG_FILENAME) -> Path:
        """Write data as indented JSON and return the path."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.config_dir / f"{filename}.json"
        filepath.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Saved config file: %s", filepath)
        return filepath

    def load_settings(self) -> MaintenanceSettings:
        """
        Load and validate maintenance settings.

        Raises:
            ConfigurationError: If the file is malformed or fails validation
        """
        data = self.load_json_file()
        try:
            return MaintenanceSettings.model_validate(data)
        except ValidationError as e:
            logger.error("Invalid maintenance configuration: %s", e)
            raise ConfigurationError(f"Invalid maintenance configuration: {e}") from e
