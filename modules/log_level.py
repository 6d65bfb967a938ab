"""
Per-device log level policy.

The `logLevel` preference (ERROR/WARN/INFO/DEBUG, case-insensitive) gates what
a device logs; anything unrecognised means INFO.
"""
import logging
from typing import Any, Iterable, Optional

LOG_LEVEL_PREF = "logLevel"

LOG_LEVEL_ORDER = {
    "ERROR": 1,
    "WARN": 2,
    "INFO": 3,
    "DEBUG": 4,
}

PYTHON_LEVELS = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

# Loggers whose level follows the device preference
DRIVER_LOGGERS = ("device", "core", "transport", "handlers", "modules")


def normalize_log_level(level: Any, default: str = "INFO") -> str:
    if not isinstance(level, str):
        return default
    level = level.upper()
    if level == "WARNING":
        level = "WARN"
    if level in LOG_LEVEL_ORDER:
        return level
    return default


class LogLevelPolicy:

    def __init__(self, platform_device=None, default: str = "INFO"):
        self.platform_device = platform_device
        self.default = normalize_log_level(default)

    @property
    def level(self) -> str:
        prefs = getattr(self.platform_device, "preferences", None) or {}
        return normalize_log_level(prefs.get(LOG_LEVEL_PREF), self.default)

    def should_log(self, level: str) -> bool:
        return LOG_LEVEL_ORDER[normalize_log_level(level)] <= LOG_LEVEL_ORDER[self.level]

    def apply(self, logger_names: Optional[Iterable[str]] = None) -> str:
        """Push the current level onto the driver loggers."""
        level = self.level
        for name in logger_names or DRIVER_LOGGERS:
            logging.getLogger(name).setLevel(PYTHON_LEVELS[level])
        return level


class DeviceLogger(logging.LoggerAdapter):
    """
    LoggerAdapter prefixing messages with the device id and dropping
    records below the device's preferred level.
    """

    def __init__(self, logger: logging.Logger, device_id: str, policy: LogLevelPolicy):
        super().__init__(logger, {"device_id": device_id})
        self.policy = policy

    def process(self, msg, kwargs):
        return f"[{self.extra['device_id']}] {msg}", kwargs

    def isEnabledFor(self, level: int) -> bool:
        if level >= logging.ERROR:
            name = "ERROR"
        else:
            name = normalize_log_level(logging.getLevelName(level), default="DEBUG")
        if not self.policy.should_log(name):
            return False
        return self.logger.isEnabledFor(level)
