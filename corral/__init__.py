"""
Corral - per-instance AppArmor profile management
"""

__version__ = "1.0.0"

from .constants import (
    Paths,
    Permissions,
    ParserCommand,
)

from .config import CorralSettings, ConfigError, load_settings

from .apparmor import (
    AppArmorError,
    AppArmorIOError,
    AppArmorProfileManager,
    ExternalToolError,
    HostCapabilities,
    Instance,
    TemplateError,
    VersionParseError,
    detect_host_capabilities,
)

__all__ = [
    '__version__',
    'Paths',
    'Permissions',
    'ParserCommand',
    'CorralSettings',
    'ConfigError',
    'load_settings',
    'AppArmorError',
    'AppArmorIOError',
    'AppArmorProfileManager',
    'ExternalToolError',
    'HostCapabilities',
    'Instance',
    'TemplateError',
    'VersionParseError',
    'detect_host_capabilities',
]
