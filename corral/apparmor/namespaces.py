"""
Kernel policy namespaces for stacked confinement.

When the kernel supports stacking and we are not already inside a stacked
namespace, every instance gets its own policy namespace under
<securityfs>/policy/namespaces so it can load its own sub-profiles.
"""

import logging
import os
from pathlib import Path
from typing import Any

from ..config import CorralSettings
from ..constants import Permissions
from .errors import AppArmorIOError
from .host import HostCapabilities
from .identity import namespace_name

logger = logging.getLogger(__name__)


class PolicyNamespaceManager:
    """Creates and removes per-instance kernel policy namespaces."""

    def __init__(self, settings: CorralSettings):
        self.settings = settings

    def namespace_path(self, instance: Any) -> Path:
        return self.settings.namespaces_dir / namespace_name(self.settings, instance)

    def ensure(self, host: HostCapabilities, instance: Any) -> bool:
        """
        Create the instance's namespace directory.

        Returns True when stacking applies on this host (whether or not the
        directory already existed), False when it was a no-op.

        Raises:
            AppArmorIOError: creation failed for any reason but "exists"
        """
        if not host.namespace_stacking:
            return False

        path = self.namespace_path(instance)
        try:
            os.mkdir(path, Permissions.NAMESPACE_DIR)
            logger.info(f"Created AppArmor namespace {path}")
        except FileExistsError:
            logger.debug(f"AppArmor namespace {path} already exists")
        except OSError as e:
            raise AppArmorIOError(f"Failed to create AppArmor namespace {path}: {e}", path=str(path)) from e
        return True

    def teardown(self, host: HostCapabilities, instance: Any) -> bool:
        """
        Remove the instance's namespace directory, best-effort.

        Failures are logged and never raised; the namespace may already be
        gone or still be in use. Returns True only if the directory was removed.
        """
        if not host.namespace_stacking:
            return False

        path = self.namespace_path(instance)
        try:
            os.rmdir(path)
        except OSError as e:
            logger.error(
                "Error removing apparmor namespace",
                extra={'extra_data': {'err': str(e), 'ns': str(path)}},
            )
            return False

        logger.info(f"Removed AppArmor namespace {path}")
        return True
