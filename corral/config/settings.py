"""
Corral Settings

The base configuration every lifecycle component is constructed with.
Nothing in the core reads paths from global state; they all come from a
CorralSettings instance.

Configuration Structure (YAML):
    apparmor:
      var_dir: /var/lib/corral
      profile_prefix: corral
      parser_binary: apparmor_parser
      securityfs_dir: /sys/kernel/security/apparmor
      proc_dir: /proc
      parser_timeout: null

The ``apparmor:`` wrapper is optional; a flat mapping is accepted too.

Environment overrides (applied after the file):
    CORRAL_VAR_DIR, CORRAL_PROFILE_PREFIX, CORRAL_PARSER,
    CORRAL_SECURITYFS_DIR, CORRAL_PROC_DIR, CORRAL_PARSER_TIMEOUT

Usage:
    from corral.config import load_settings

    settings = load_settings("/etc/corral/corral.yaml")
    print(settings.profiles_dir)
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..constants import DEFAULT_PROFILE_PREFIX, PARSER_BINARY, Paths

logger = logging.getLogger(__name__)

_PATHS = Paths()

ENV_OVERRIDES = {
    'CORRAL_VAR_DIR': 'var_dir',
    'CORRAL_PROFILE_PREFIX': 'profile_prefix',
    'CORRAL_PARSER': 'parser_binary',
    'CORRAL_SECURITYFS_DIR': 'securityfs_dir',
    'CORRAL_PROC_DIR': 'proc_dir',
    'CORRAL_PARSER_TIMEOUT': 'parser_timeout',
}


class ConfigError(ValueError):
    """Invalid or unreadable settings."""
    pass


@dataclass(frozen=True)
class CorralSettings:
    """Host-level configuration for profile management."""
    var_dir: str = _PATHS.VAR_DIR
    profile_prefix: str = DEFAULT_PROFILE_PREFIX
    parser_binary: str = PARSER_BINARY
    securityfs_dir: str = _PATHS.SECURITYFS_DIR
    proc_dir: str = _PATHS.PROC_DIR
    parser_timeout: Optional[float] = None

    def __post_init__(self):
        if not self.var_dir or not os.path.isabs(self.var_dir):
            raise ConfigError(f"var_dir must be an absolute path, got {self.var_dir!r}")
        if not self.profile_prefix or '/' in self.profile_prefix:
            raise ConfigError(f"Invalid profile_prefix: {self.profile_prefix!r}")
        if not self.parser_binary:
            raise ConfigError("parser_binary must not be empty")
        if self.parser_timeout is not None and self.parser_timeout <= 0:
            raise ConfigError("parser_timeout must be positive when set")

    # -- derived paths -------------------------------------------------------

    @property
    def apparmor_dir(self) -> Path:
        return Path(self.var_dir) / _PATHS.APPARMOR_SUBDIR

    @property
    def cache_dir(self) -> Path:
        return self.apparmor_dir / _PATHS.CACHE_SUBDIR

    @property
    def profiles_dir(self) -> Path:
        return self.apparmor_dir / _PATHS.PROFILES_SUBDIR

    @property
    def namespaces_dir(self) -> Path:
        return Path(self.securityfs_dir) / _PATHS.POLICY_NAMESPACES_SUBDIR

    @property
    def cgroup_ns_path(self) -> Path:
        return Path(self.proc_dir) / 'self' / 'ns' / 'cgroup'

    # -- construction --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CorralSettings':
        """Create settings from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")

        values: Dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            if key == 'parser_timeout':
                values[key] = _parse_timeout(value)
            else:
                values[key] = str(value)
        return cls(**values)

    def with_environment(self, environ: Optional[Mapping[str, str]] = None) -> 'CorralSettings':
        """Return a copy with CORRAL_* environment overrides applied."""
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for env_name, attr in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value is None or value == '':
                continue
            overrides[attr] = _parse_timeout(value) if attr == 'parser_timeout' else value
        if not overrides:
            return self
        logger.debug(f"Applying environment overrides: {sorted(overrides)}")
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _parse_timeout(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"parser_timeout must be a number, got {value!r}")


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> CorralSettings:
    """
    Load settings from an optional YAML file plus environment overrides.

    Args:
        path: YAML file to read. None skips the file entirely.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        CorralSettings

    Raises:
        ConfigError: unreadable file, malformed YAML or invalid values
    """
    data: Mapping[str, Any] = {}
    if path:
        try:
            with open(path, 'r') as f:
                document = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read settings file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Malformed settings file {path}: {e}") from e

        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")
        data = document['apparmor'] if 'apparmor' in document else document
        if not isinstance(data, dict):
            raise ConfigError(f"'apparmor' section in {path} must be a mapping")
        logger.info(f"Loaded settings from {path}")

    return CorralSettings.from_dict(data).with_environment(environ)
