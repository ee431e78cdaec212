# src/config/__init__.py

from .config_manager import ConfigManager, ConfigurationError, LoggingConfig

__all__ = [
    'ConfigManager',
    'ConfigurationError',
    'LoggingConfig'
]
