"""Utility modules for the plugin mitigator."""

from .config import Config, get_config, init_config
from .logger import get_logger, setup_logging, reset_logging
from .exceptions import (
    MitigatorError,
    ConfigurationError,
    ProfileError,
    DatabaseError,
    HostError,
    HostUnavailableError,
)

__all__ = [
    "Config",
    "get_config",
    "init_config",
    "get_logger",
    "setup_logging",
    "reset_logging",
    "MitigatorError",
    "ConfigurationError",
    "ProfileError",
    "DatabaseError",
    "HostError",
    "HostUnavailableError",
]
