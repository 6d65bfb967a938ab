"""
Driver settings.
Loaded from config/config.yaml (section `driver`) and validated with pydantic.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("settings")

DEFAULT_CONFIG_PATH = Path("./config/config.yaml")
DRIVER_SECTION = "driver"


class DriverSettings(BaseModel):
    driver_version: str = "0.0.2"
    # Fallback poll of measurement attributes (seconds)
    poll_interval: float = Field(default=60.0, gt=0)
    # One-shot re-read for devices that need to settle after init/added
    settle_delay: float = Field(default=1.0, ge=0)
    # Confirmation read after a switch command
    confirm_delay: float = Field(default=1.0, ge=0)
    default_log_level: str = "INFO"

    @field_validator("default_log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def load_driver_section(filepath: Path) -> Dict[str, Any]:
    """
    Reads the `driver` section of a YAML config file.

    Returns an empty dict for an empty file or a file without the section.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the YAML cannot be parsed.
        ValueError: If the file or the section is not a mapping.
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found at: {filepath}")

    try:
        with open(filepath, 'r') as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file {filepath}: {e}")
        raise

    if not isinstance(config_data, dict):
        raise ValueError(f"{filepath}: top level must be a mapping, got {type(config_data).__name__}")

    section = config_data.get(DRIVER_SECTION) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{filepath}: '{DRIVER_SECTION}' must be a mapping, got {type(section).__name__}")
    return section


def load_settings(path: Optional[Union[str, Path]] = None) -> DriverSettings:
    """Load settings, falling back to defaults if the file is missing."""
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        section = load_driver_section(path)
    except FileNotFoundError:
        logger.info(f"No config at {path}, using default driver settings")
        return DriverSettings()

    return DriverSettings(**section)
