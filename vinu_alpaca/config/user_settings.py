"""
Persisted driver settings (the profile store).

Holds the values the operator picks between runs: serial port,
operation timeout and trace flag. Values are exchanged as strings
through get_value/set_value, the same way a driver profile stores them.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import UserSettings


logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "user_settings.json"

# Profile keys
PORT_KEY = "port"
TIMEOUT_KEY = "timeout"
TRACE_KEY = "trace_enabled"

PROFILE_KEYS = (PORT_KEY, TIMEOUT_KEY, TRACE_KEY)


def _to_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class UserSettingsManager:
    """
    Manages loading and saving of user settings.

    Settings are saved as soon as they change.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Initialize settings manager.

        Args:
            path: Path to settings file. If None, uses default location.
        """
        self._path = Path(path or DEFAULT_SETTINGS_FILE)
        self._settings = self._load()

    def _load(self) -> UserSettings:
        """Load settings from file, or fall back to defaults."""
        if not self._path.exists():
            logger.info(f"User settings file not found: {self._path}. Using defaults.")
            return UserSettings()

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            settings = UserSettings.model_validate(data)
            logger.info(f"User settings loaded from {self._path}")
            return settings
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in {self._path}: {e}. Using defaults.")
        except ValidationError as e:
            logger.warning(f"Invalid settings in {self._path}: {e}. Using defaults.")
        except IOError as e:
            logger.warning(f"Failed to read {self._path}: {e}. Using defaults.")
        return UserSettings()

    def save(self) -> bool:
        """
        Save current settings to file.

        Returns:
            True if saved successfully, False otherwise.
        """
        data = self._settings.model_dump()

        # Unset values fall back to config.json, so they are not written
        data = {key: value for key, value in data.items() if value is not None}

        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump({"_comment": "VINU Roof Driver - User Settings", **data}, f, indent=2)
            logger.debug(f"User settings saved to {self._path}")
            return True
        except IOError as e:
            logger.error(f"Failed to save settings to {self._path}: {e}")
            return False

    @property
    def settings(self) -> UserSettings:
        """Get current settings (read-only access)."""
        return self._settings

    def get_value(self, key: str, default: str = "") -> str:
        """
        Read a profile value as a string.

        Args:
            key: One of PROFILE_KEYS.
            default: Returned when the value was never stored.

        Raises:
            KeyError: If key is not a profile key.
        """
        if key not in PROFILE_KEYS:
            raise KeyError(f"Unknown settings key: {key}")

        value = getattr(self._settings, key)
        if value is None:
            return default
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def set_value(self, key: str, value: str) -> None:
        """
        Write a profile value given as a string and persist it.

        Raises:
            KeyError: If key is not a profile key.
            ValueError: If the value cannot be converted or is out of range.
        """
        if key == PORT_KEY:
            converted = str(value)
        elif key == TIMEOUT_KEY:
            converted = int(value)
            if converted < 1 or converted > 300:
                raise ValueError(f"timeout must be 1-300, got {converted}")
        elif key == TRACE_KEY:
            converted = _to_bool(value)
        else:
            raise KeyError(f"Unknown settings key: {key}")

        if getattr(self._settings, key) != converted:
            setattr(self._settings, key, converted)
            self.save()
            logger.info(f"Saved {key}: {converted}")

    @property
    def use_simulator(self) -> Optional[bool]:
        """Get simulator mode preference. None means use config.json."""
        return self._settings.use_simulator

    @use_simulator.setter
    def use_simulator(self, value: bool) -> None:
        """Set simulator mode preference and save."""
        if self._settings.use_simulator != value:
            self._settings.use_simulator = value
            self.save()
            mode = "simulator" if value else "hardware"
            logger.info(f"Saved use_simulator: {value} (mode: {mode})")
