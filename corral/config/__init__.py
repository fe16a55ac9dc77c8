"""
Configuration for Corral.

Usage:
    from corral.config import CorralSettings, load_settings
"""

from .settings import (
    CorralSettings,
    ConfigError,
    ENV_OVERRIDES,
    load_settings,
)

__all__ = [
    'CorralSettings',
    'ConfigError',
    'ENV_OVERRIDES',
    'load_settings',
]
