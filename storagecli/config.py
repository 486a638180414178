"""Configuration management for storage-cli"""

import logging
import os

from .errors import ConfigError

DEFAULT_HOME = os.path.join("~", ".storage-cli")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Config:
    """Configuration for the storage CLI"""

    def __init__(self):
        self.state_dir = os.path.expanduser(
            os.getenv("STORAGE_STATE_DIR", DEFAULT_HOME)
        )
        self.int_root = os.path.expanduser(
            os.getenv("STORAGE_INT_ROOT", os.path.join(self.state_dir, "int"))
        )
        # An empty STORAGE_EXT_ROOT means no card is inserted
        ext_root = os.getenv("STORAGE_EXT_ROOT", os.path.join(self.state_dir, "ext"))
        self.ext_root = os.path.expanduser(ext_root) if ext_root else None
        self.device_name = os.getenv("STORAGE_DEVICE_NAME") or None
        self.card_label = os.getenv("STORAGE_CARD_LABEL", "STORAGE")
        self.log_level = os.getenv("STORAGE_LOG_LEVEL", "WARNING").upper()
        self.history_file = os.path.join(self.state_dir, "history")

    @property
    def reset_flag_path(self) -> str:
        return os.path.join(self.state_dir, "factory_reset")

    @classmethod
    def from_args(cls, int_root: str = None, ext_root: str = None, log_level: str = None):
        """Create configuration from command line arguments"""
        config = cls()
        if int_root:
            config.int_root = os.path.expanduser(int_root)
        if ext_root is not None:
            config.ext_root = os.path.expanduser(ext_root) if ext_root else None
        if log_level:
            config.log_level = log_level.upper()
        return config.validate()

    def validate(self):
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"invalid log level: {self.log_level}")
        return self

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)

    def __repr__(self):
        return (
            f"Config(int_root={self.int_root}, ext_root={self.ext_root}, "
            f"log_level={self.log_level})"
        )
