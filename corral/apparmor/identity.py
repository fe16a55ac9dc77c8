"""
Profile and namespace names for an instance.

Short name:      <prefix>-<instance>             on-disk file, parser argument
Full name:       <prefix>-<instance>_<<qualifier>>  in-kernel profile name
Namespace name:  <prefix>-<instance>_<<qualifier>>  kernel policy namespace

The qualifier identifies this host's data directory so two managers on one
kernel never collide. The namespace flavour uses the directory with its
leading/trailing slashes trimmed and the rest turned into dashes, since "/"
is not allowed in namespace names; the full-name flavour uses the raw path.
Both go through the same length guard.
"""

import hashlib
from dataclasses import dataclass
from typing import Any

from ..config import CorralSettings
from ..constants import DEFAULT_PROJECT, MAX_POLICY_NAME_LENGTH, POLICY_NAME_OVERHEAD


def mk_apparmor_name(name: str) -> str:
    """Replace *name* by its SHA-256 hex digest if it would overflow a policy name."""
    if len(name) + POLICY_NAME_OVERHEAD >= MAX_POLICY_NAME_LENGTH:
        return hashlib.sha256(name.encode('utf-8')).hexdigest()
    return name


def project_instance_name(project: str, name: str) -> str:
    """Instances of the default project keep their bare name."""
    if not project or project == DEFAULT_PROJECT:
        return name
    return f"{project}_{name}"


def _var_dir(settings: CorralSettings) -> str:
    return settings.var_dir.rstrip('/') or '/'


def namespace_qualifier(settings: CorralSettings) -> str:
    trimmed = _var_dir(settings).strip('/').replace('/', '-')
    return mk_apparmor_name(trimmed)


def profile_qualifier(settings: CorralSettings) -> str:
    return mk_apparmor_name(_var_dir(settings))


def profile_short(settings: CorralSettings, instance: Any) -> str:
    name = project_instance_name(instance.project, instance.name)
    return f"{settings.profile_prefix}-{name}"


def profile_full(settings: CorralSettings, instance: Any) -> str:
    return f"{profile_short(settings, instance)}_<{profile_qualifier(settings)}>"


def namespace_name(settings: CorralSettings, instance: Any) -> str:
    return f"{profile_short(settings, instance)}_<{namespace_qualifier(settings)}>"


@dataclass(frozen=True)
class ProfileIdentity:
    """All names derived for one instance."""
    short_name: str
    full_name: str
    namespace: str

    @classmethod
    def for_instance(cls, settings: CorralSettings, instance: Any) -> 'ProfileIdentity':
        return cls(
            short_name=profile_short(settings, instance),
            full_name=profile_full(settings, instance),
            namespace=namespace_name(settings, instance),
        )
