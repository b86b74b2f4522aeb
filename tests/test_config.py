import json

import pytest

from vinu_alpaca.config.loader import ConfigurationError, load_config, save_config
from vinu_alpaca.config.models import AppConfig
from vinu_alpaca.config.user_settings import UserSettingsManager


def test_missing_config_is_created_with_defaults(tmp_path):
    path = tmp_path / "config.json"

    config = load_config(str(path))

    assert config.serial.port == "COM3"
    assert config.dome.operation_timeout_seconds == 30
    assert path.exists()
    # The generated file must load back despite its comment key
    assert load_config(str(path)) == config


def test_invalid_values_are_reported_per_field(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"dome": {"operation_timeout_seconds": 0}}))

    with pytest.raises(ConfigurationError) as excinfo:
        load_config(str(path))
    assert "dome -> operation_timeout_seconds" in str(excinfo.value)


def test_unknown_sections_are_rejected(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"telescope": {}}))

    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_broken_json_is_a_configuration_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_save_round_trips(tmp_path):
    path = str(tmp_path / "config.json")
    config = AppConfig()
    config.simulator.enabled = True
    config.logging.level = "DEBUG"

    save_config(config, path)

    assert load_config(path) == config


def test_settings_values_are_strings(tmp_path):
    settings = UserSettingsManager(str(tmp_path / "user_settings.json"))

    assert settings.get_value("port", "COM3") == "COM3"
    settings.set_value("timeout", "60")
    settings.set_value("trace_enabled", "True")

    assert settings.get_value("timeout") == "60"
    assert settings.get_value("trace_enabled") == "true"


def test_unknown_settings_key(tmp_path):
    settings = UserSettingsManager(str(tmp_path / "user_settings.json"))
    with pytest.raises(KeyError):
        settings.get_value("zero_offset")
    with pytest.raises(KeyError):
        settings.set_value("zero_offset", "0")


def test_out_of_range_timeout_is_refused(tmp_path):
    settings = UserSettingsManager(str(tmp_path / "user_settings.json"))
    with pytest.raises(ValueError):
        settings.set_value("timeout", "301")


def test_corrupt_settings_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "user_settings.json"
    path.write_text("[]")

    settings = UserSettingsManager(str(path))

    assert settings.get_value("port", "none") == "none"
    assert settings.use_simulator is None


def test_mode_preference_persists(tmp_path):
    path = str(tmp_path / "user_settings.json")
    UserSettingsManager(path).use_simulator = True
    assert UserSettingsManager(path).use_simulator is True
