"""Builds the AppArmor profile text for an instance."""

import logging
from typing import Any, Mapping, Optional

from ..config import CorralSettings
from ..constants import RAW_APPARMOR_KEY
from .host import HostCapabilities
from .identity import namespace_name, profile_full
from .parser import ParserRunner
from .template import ProfileTemplateContext, render_profile_template

logger = logging.getLogger(__name__)


def indent_raw(raw: Optional[str]) -> str:
    """
    Re-indent a user supplied raw.apparmor block.

    Surrounding newlines are dropped and every remaining line gets two
    leading spaces. The content itself is trusted and merged verbatim.
    """
    if not raw or not raw.strip('\n'):
        return ""
    return '\n'.join(f"  {line}" for line in raw.strip('\n').split('\n'))


class ProfileRenderer:
    """Turns instance configuration plus host facts into profile text."""

    def __init__(self, settings: CorralSettings, parser: ParserRunner):
        self.settings = settings
        self.parser = parser

    def context(self, host: HostCapabilities, instance: Any) -> ProfileTemplateContext:
        """Template input for *instance*; only raw.apparmor is read from its config."""
        config: Mapping[str, str] = getattr(instance, 'expanded_config', None) or {}

        return ProfileTemplateContext(
            name=profile_full(self.settings, instance),
            namespace=namespace_name(self.settings, instance),
            feature_unix=self.parser.supports('unix'),
            feature_cgns=host.cgroup_namespace,
            feature_stacking=host.namespace_stacking,
            nesting=bool(instance.nesting),
            unprivileged=not instance.privileged or host.running_in_userns,
            raw=indent_raw(config.get(RAW_APPARMOR_KEY)),
            shmounts_dir=f"{self.settings.var_dir.rstrip('/')}/shmounts",
        )

    def render(self, host: HostCapabilities, instance: Any) -> str:
        """Full profile text; raises TemplateError if rendering fails."""
        ctx = self.context(host, instance)
        logger.debug(f"Rendering AppArmor profile {ctx.name}")
        return render_profile_template(ctx)
