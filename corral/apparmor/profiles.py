"""
AppArmor Profile Lifecycle for Instances

Keeps each instance's on-disk profile and its in-kernel copy in step with the
instance configuration across start, stop and delete.

States (not persisted):
    Absent   -> no profile file, nothing loaded
    Compiled -> profile file is current
    Loaded   -> compiled and present in the kernel

Operations:
    load    admin only: namespace, change-gated write, apparmor_parser -r
    unload  admin only: namespace teardown (best-effort), apparmor_parser -R
    parse   AppArmor available: apparmor_parser -Q, nothing written
    delete  admin only: drop cached binary and profile file, never fails

Every operation is idempotent. Hosts without AppArmor, or without the right
to manage it, get silent no-op success.

Concurrent calls for the same instance are not synchronized here; the
instance runtime serializes lifecycle transitions per instance.

Usage:
    from corral.apparmor import AppArmorProfileManager, detect_host_capabilities
    from corral.config import load_settings

    settings = load_settings()
    host = detect_host_capabilities(settings)
    manager = AppArmorProfileManager(settings)

    manager.load(host, instance)
    manager.unload(host, instance)
    manager.delete(host, instance)
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from ..config import CorralSettings
from ..constants import ParserCommand, Permissions
from .errors import AppArmorIOError, ExternalToolError
from .host import HostCapabilities
from .identity import ProfileIdentity, profile_short
from .namespaces import PolicyNamespaceManager
from .parser import ParserRunner
from .renderer import ProfileRenderer

logger = logging.getLogger(__name__)


class AppArmorProfileManager:
    """Load, unload, parse and delete per-instance AppArmor profiles."""

    def __init__(
        self,
        settings: CorralSettings,
        parser: Optional[ParserRunner] = None,
        renderer: Optional[ProfileRenderer] = None,
        namespaces: Optional[PolicyNamespaceManager] = None,
    ):
        self.settings = settings
        self.parser = parser or ParserRunner(settings)
        self.renderer = renderer or ProfileRenderer(settings, self.parser)
        self.namespaces = namespaces or PolicyNamespaceManager(settings)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def identity(self, instance: Any) -> ProfileIdentity:
        return ProfileIdentity.for_instance(self.settings, instance)

    def profile_path(self, instance: Any) -> Path:
        return self.settings.profiles_dir / profile_short(self.settings, instance)

    def profile_content(self, host: HostCapabilities, instance: Any) -> str:
        return self.renderer.render(host, instance)

    # ------------------------------------------------------------------
    # Change gate
    # ------------------------------------------------------------------

    def _read_current(self, path: Path) -> bytes:
        """Raw bytes on disk; a missing file reads as empty."""
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return b""
        except OSError as e:
            raise AppArmorIOError(f"Failed to read AppArmor profile {path}: {e}", path=str(path)) from e

    def _write(self, path: Path, content: bytes) -> None:
        for directory in (self.settings.cache_dir, self.settings.profiles_dir):
            try:
                os.makedirs(directory, mode=Permissions.STATE_DIR, exist_ok=True)
            except OSError as e:
                raise AppArmorIOError(
                    f"Failed to create directory {directory}: {e}", path=str(directory)
                ) from e

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, Permissions.PROFILE_FILE)
            try:
                view = memoryview(content)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            finally:
                os.close(fd)
        except OSError as e:
            raise AppArmorIOError(f"Failed to write AppArmor profile {path}: {e}", path=str(path)) from e

    def write_profile(self, host: HostCapabilities, instance: Any) -> bool:
        """
        Write the rendered profile only if its bytes differ from the file on disk.

        The parser's binary cache is keyed on the profile's mtime. The comparison
        is byte for byte, so a damaged or non-UTF-8 file is simply overwritten.

        Returns:
            True if the file was (re)written, False if it was already current
        """
        path = self.profile_path(instance)
        current = self._read_current(path)
        updated = self.renderer.render(host, instance).encode('utf-8')

        if current == updated:
            logger.debug(f"AppArmor profile {path} unchanged")
            return False

        self._write(path, updated)
        logger.info(f"Wrote AppArmor profile {path}")
        return True

    # ------------------------------------------------------------------
    # Parser invocation
    # ------------------------------------------------------------------

    def _run(self, host: HostCapabilities, command: ParserCommand, instance: Any) -> None:
        if not host.apparmor_available:
            return

        try:
            self.parser.apply(command, self.profile_path(instance))
        except ExternalToolError as e:
            logger.error(
                "Running apparmor",
                extra={'extra_data': {'action': command.value, 'output': e.output, 'err': str(e)}},
            )
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, host: HostCapabilities, instance: Any) -> None:
        """Make sure the instance's policy is compiled and loaded so it can boot."""
        if not host.apparmor_admin:
            return

        self.namespaces.ensure(host, instance)
        self.write_profile(host, instance)
        self._run(host, ParserCommand.LOAD, instance)

    def unload(self, host: HostCapabilities, instance: Any) -> None:
        """Unload the policy (and namespace) to free kernel memory; disk is left alone."""
        if not host.apparmor_admin:
            return

        self.namespaces.teardown(host, instance)
        self._run(host, ParserCommand.UNLOAD, instance)

    def parse(self, host: HostCapabilities, instance: Any) -> None:
        """Check the on-disk profile compiles without loading it."""
        if not host.apparmor_available:
            return

        self._run(host, ParserCommand.PARSE, instance)

    def delete(self, host: HostCapabilities, instance: Any) -> None:
        """Remove the profile from the cache and disk, ignoring anything missing."""
        if not host.apparmor_admin:
            return

        # A never-started instance has neither a profile nor a cache entry.
        short = profile_short(self.settings, instance)
        for path in (self.parser.cache_dir() / short, self.profile_path(instance)):
            try:
                os.remove(path)
                logger.info(f"Removed {path}")
            except OSError as e:
                logger.debug(f"Not removing {path}: {e}")
