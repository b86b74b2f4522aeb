"""
Configuration loader for config.json.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import AppConfig


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def _format_validation_error(config_path: Path, error: ValidationError) -> str:
    """Render pydantic errors as one line per offending field."""
    lines = []
    for item in error.errors():
        field = " -> ".join(str(x) for x in item["loc"])
        lines.append(f"  - {field}: {item['msg']}")
    return f"Configuration validation failed in {config_path}:\n" + "\n".join(lines)


def _write_json(config: AppConfig, config_path: Path, comment: Optional[str] = None) -> None:
    data = config.model_dump()
    if comment:
        data = {"_comment": comment, **data}
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from JSON file.

    A missing file is created with default values so the operator has
    something to edit.

    Args:
        path: Path to config.json. Defaults to config.json in the working directory.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigurationError: If the file is unreadable or fails validation.
    """
    config_path = Path(path or DEFAULT_CONFIG_FILE)

    if not config_path.exists():
        logger.info(f"Config file not found: {config_path}. Creating with default configuration.")
        config = AppConfig()
        try:
            _write_json(config, config_path, "VINU Roof Driver Configuration (auto-generated)")
            logger.info(f"Created default config file: {config_path}")
        except IOError as e:
            logger.warning(f"Failed to create default config file: {e}")
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    except IOError as e:
        raise ConfigurationError(f"Failed to read {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path} must contain a JSON object")

    # The generated file carries a comment key that is not part of the model
    raw.pop("_comment", None)

    try:
        config = AppConfig(**raw)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(config_path, e)) from e

    logger.info(f"Configuration loaded from {config_path}")
    return config


def save_config(config: AppConfig, path: Optional[str] = None) -> None:
    """
    Save configuration to JSON file.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    config_path = Path(path or DEFAULT_CONFIG_FILE)
    try:
        _write_json(config, config_path)
    except IOError as e:
        raise ConfigurationError(f"Failed to write {config_path}: {e}") from e
    logger.info(f"Configuration saved to {config_path}")
