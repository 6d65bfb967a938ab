import pytest
import yaml
from pydantic import ValidationError

from settings import DriverSettings, load_driver_section, load_settings


def test_defaults():
    settings = DriverSettings()
    assert settings.poll_interval == 60
    assert settings.settle_delay == 1
    assert settings.default_log_level == "INFO"


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "nope.yaml") == DriverSettings()


def test_driver_section_loaded(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("driver:\n  poll_interval: 30\n  default_log_level: debug\n")
    settings = load_settings(path)
    assert settings.poll_interval == 30
    assert settings.default_log_level == "DEBUG"


def test_other_sections_ignored(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("zigbee:\n  channel: 15\ndriver:\n  settle_delay: 2\n")
    assert load_driver_section(path) == {"settle_delay": 2}


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_driver_section(path) == {}
    assert load_settings(path) == DriverSettings()


def test_invalid_values_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("driver:\n  poll_interval: 0\n")
    with pytest.raises(ValidationError):
        load_settings(path)


@pytest.mark.parametrize("text", ["- a\n- b\n", "driver: 5\n"])
def test_non_mapping_rejected(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    with pytest.raises(ValueError):
        load_driver_section(path)


def test_broken_yaml_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("driver: [unclosed\n")
    with pytest.raises(yaml.YAMLError):
        load_driver_section(path)
