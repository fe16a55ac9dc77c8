"""
AppArmor Module for Corral

Manages the lifecycle of per-instance AppArmor profiles.

Components:
- identity: profile, full and namespace names for an instance
- parser: apparmor_parser runner and version-gated feature detection
- template/renderer: profile text from instance config and host facts
- namespaces: kernel policy namespaces for stacked confinement
- profiles: change-gated writes and the load/unload/parse/delete lifecycle
- host: one-shot host capability detection

Usage:
    from corral.apparmor import (
        AppArmorProfileManager,
        Instance,
        detect_host_capabilities,
    )

    host = detect_host_capabilities(settings)
    manager = AppArmorProfileManager(settings)
    manager.load(host, Instance.from_config("default", "c1", config))
"""

from .errors import (
    AppArmorError,
    AppArmorIOError,
    ExternalToolError,
    TemplateError,
    VersionParseError,
)

from .version import DottedVersion

from .instance import Instance

from .host import (
    HostCapabilities,
    detect_host_capabilities,
)

from .identity import (
    ProfileIdentity,
    mk_apparmor_name,
    namespace_name,
    profile_full,
    profile_short,
    project_instance_name,
)

from .parser import ParserRunner

from .template import ProfileTemplateContext, render_profile_template

from .renderer import ProfileRenderer, indent_raw

from .namespaces import PolicyNamespaceManager

from .profiles import AppArmorProfileManager

__all__ = [
    # Errors
    'AppArmorError',
    'AppArmorIOError',
    'ExternalToolError',
    'TemplateError',
    'VersionParseError',
    # Values
    'DottedVersion',
    'Instance',
    'HostCapabilities',
    'detect_host_capabilities',
    # Identity
    'ProfileIdentity',
    'mk_apparmor_name',
    'namespace_name',
    'profile_full',
    'profile_short',
    'project_instance_name',
    # Parser
    'ParserRunner',
    # Rendering
    'ProfileTemplateContext',
    'render_profile_template',
    'ProfileRenderer',
    'indent_raw',
    # Lifecycle
    'PolicyNamespaceManager',
    'AppArmorProfileManager',
]
