"""
Host Capability Detection

Collects every host fact the profile lifecycle branches on into one
immutable value, computed once when the host state is initialized and then
passed explicitly to render/load/unload/parse.

Detected capabilities:
- apparmor_available: kernel support, parser binary present, not disabled
- apparmor_admin: we may load per-instance profiles (CAP_MAC_ADMIN)
- apparmor_stacking: kernel supports policy namespace stacking
- apparmor_stacked: we already run inside a stacked namespace
- apparmor_confined: we are ourselves confined by a profile
- running_in_userns: we run inside a non-initial user namespace
- cgroup_namespace: the kernel exposes cgroup namespaces
"""

import logging
import os
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..config import CorralSettings
from ..constants import CAP_MAC_ADMIN, INITIAL_USERNS_UID_MAP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostCapabilities:
    """Immutable snapshot of host AppArmor support."""
    apparmor_available: bool = False
    apparmor_admin: bool = False
    apparmor_stacking: bool = False
    apparmor_stacked: bool = False
    apparmor_confined: bool = False
    running_in_userns: bool = False
    cgroup_namespace: bool = False

    @property
    def namespace_stacking(self) -> bool:
        """Whether instances get their own policy namespace on this host."""
        return self.apparmor_stacking and not self.apparmor_stacked

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _read_text(path: Path) -> Optional[str]:
    try:
        with open(path, 'r') as f:
            return f.read()
    except OSError:
        return None


def running_in_userns(proc_dir: Path) -> bool:
    """True unless uid_map is the identity map of the initial user namespace."""
    content = _read_text(proc_dir / 'self' / 'uid_map')
    if content is None:
        return False
    lines = [' '.join(line.split()) for line in content.strip().splitlines()]
    return lines != [INITIAL_USERNS_UID_MAP]


def have_mac_admin(proc_dir: Path) -> bool:
    """Check CAP_MAC_ADMIN in the effective capability set."""
    content = _read_text(proc_dir / 'self' / 'status')
    if content is None:
        return False
    for line in content.splitlines():
        if line.startswith('CapEff:'):
            try:
                mask = int(line.split(':', 1)[1].strip(), 16)
            except ValueError:
                return False
            return bool(mask & (1 << CAP_MAC_ADMIN))
    return False


def apparmor_can_stack(securityfs_dir: Path) -> bool:
    """Stacking needs domain/stack == yes and domain version >= 1.2."""
    stack = _read_text(securityfs_dir / 'features' / 'domain' / 'stack')
    if stack is None or stack.strip() != 'yes':
        return False

    content = _read_text(securityfs_dir / 'features' / 'domain' / 'version')
    if content is None:
        return False

    parts = content.strip().split('.')
    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        logger.warning(f"Unknown apparmor domain version: {content.strip()!r}")
        return False

    return major >= 1 and minor >= 2


def apparmor_stacked(securityfs_dir: Path) -> bool:
    return (_read_text(securityfs_dir / '.ns_stacked') or '').strip() == 'yes'


def apparmor_confined(proc_dir: Path) -> bool:
    label = (_read_text(proc_dir / 'self' / 'attr' / 'current') or '').strip()
    # Labels look like "profile_name (enforce)"
    label = label.split(' (', 1)[0]
    return label not in ('', 'unconfined')


def detect_host_capabilities(
    settings: CorralSettings,
    environ: Optional[Mapping[str, str]] = None,
) -> HostCapabilities:
    """Probe the host once and return its capabilities."""
    environ = os.environ if environ is None else environ
    securityfs = Path(settings.securityfs_dir)
    proc = Path(settings.proc_dir)

    available = False
    if environ.get('CORRAL_SECURITY_APPARMOR', '').lower() == 'false':
        logger.warning("AppArmor support has been manually disabled")
    elif not securityfs.is_dir():
        logger.warning("AppArmor support has been disabled because of lack of kernel support")
    elif shutil.which(settings.parser_binary) is None:
        logger.warning(
            f"AppArmor support has been disabled because '{settings.parser_binary}' couldn't be found"
        )
    else:
        available = True

    userns = running_in_userns(proc)
    stacking = apparmor_can_stack(securityfs)
    stacked = apparmor_stacked(securityfs)

    admin = False
    if not have_mac_admin(proc):
        if available:
            logger.warning("Per-instance AppArmor profiles are disabled because the mac_admin capability is missing")
    elif userns and not stacked:
        if available:
            logger.warning(
                "Per-instance AppArmor profiles are disabled because we are running "
                "in an unprivileged container without stacking"
            )
    else:
        admin = True

    confined = apparmor_confined(proc)
    if confined and available:
        logger.warning("Per-instance AppArmor profiles may be restricted because we are already confined")

    capabilities = HostCapabilities(
        apparmor_available=available,
        apparmor_admin=admin,
        apparmor_stacking=stacking,
        apparmor_stacked=stacked,
        apparmor_confined=confined,
        running_in_userns=userns,
        cgroup_namespace=settings.cgroup_ns_path.exists(),
    )
    logger.info(f"Detected host AppArmor capabilities: {capabilities.as_dict()}")
    return capabilities
