"""
AppArmor profile template for instances.

The outer template only holds named placeholders; every conditional block is
produced by a section builder from a ProfileTemplateContext. Output must be a
pure function of the context: the compiler cache upstream is keyed on file
mtime, and the change gate only rewrites the file when the text differs.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from .errors import TemplateError


@dataclass(frozen=True)
class ProfileTemplateContext:
    """Everything the template may branch on."""
    name: str
    namespace: str
    feature_unix: bool = False
    feature_cgns: bool = False
    feature_stacking: bool = False
    nesting: bool = False
    unprivileged: bool = True
    raw: str = ""
    shmounts_dir: str = "/var/lib/corral/shmounts"

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


PROFILE_TEMPLATE = '''#include <tunables/global>
profile "{name}" flags=(attach_disconnected,mediate_deleted) {{
{base}
{unix}
{cgroup}
{nesting}
{privilege}
{stacking}
{raw}}}
'''


def _block(lines: List[str]) -> str:
    return '\n'.join(f"  {line}" if line else '' for line in lines)


def build_base(ctx: ProfileTemplateContext) -> str:
    return _block([
        "### Base profile",
        "capability,",
        "dbus,",
        "file,",
        "network,",
        "umount,",
        "",
        "# Hide common denials",
        "deny mount options=(ro, remount) -> /,",
        "deny mount options=(ro, remount, silent) -> /,",
        "",
        "# Allow common virtual filesystems to be mounted",
        "mount fstype=binfmt_misc -> /proc/sys/fs/binfmt_misc/,",
        "mount fstype=devpts,",
        "mount fstype=fuse.*,",
        "mount fstype=mqueue,",
        "mount fstype=proc,",
        "mount fstype=pstore -> /sys/fs/pstore/,",
        "mount fstype=sysfs,",
        "mount fstype=tmpfs,",
        "",
        "# Deny access to the host kernel's sensitive interfaces",
        "deny /proc/kcore rwklx,",
        "deny /proc/sysrq-trigger rwklx,",
        "deny /proc/sys/[^kn]*{,/**} wklx,",
        "deny /proc/sys/kernel/[^smhd]*{,/**} wklx,",
        "deny /sys/[^fdck]*{,/**} wklx,",
        "deny /sys/firmware/efi/efivars/** rwklx,",
        "deny /sys/kernel/security/** rwklx,",
    ])


def build_unix(ctx: ProfileTemplateContext) -> str:
    if not ctx.feature_unix:
        return ""
    return _block([
        "",
        "### Feature: unix",
        "# Allow receive via unix sockets from anywhere",
        "unix (receive),",
        "",
        "# Allow all unix in the instance",
        "unix peer=(label=@{profile_name}),",
        "",
        "# Allow receiving signals from anywhere and signalling ourselves",
        "signal (receive),",
        "signal peer=@{profile_name},",
        "",
        "# Allow other processes to read our /proc entries",
        "ptrace (readby),",
        "ptrace (tracedby),",
        "ptrace peer=@{profile_name},",
    ])


def build_cgroup(ctx: ProfileTemplateContext) -> str:
    if ctx.feature_cgns:
        return _block([
            "",
            "### Feature: cgroup namespace",
            "mount fstype=cgroup -> /sys/fs/cgroup/**,",
            "mount fstype=cgroup2 -> /sys/fs/cgroup/**,",
        ])
    return _block([
        "",
        "### Configuration: cgroup",
        "mount fstype=cgroup -> /sys/fs/cgroup/**,",
        "mount options=(rw,nosuid,nodev,noexec,remount,bind) -> /sys/fs/cgroup/**,",
    ])


def build_nesting(ctx: ProfileTemplateContext) -> str:
    if not ctx.nesting:
        return ""
    shmounts = ctx.shmounts_dir.rstrip('/')
    lines = [
        "",
        "### Feature: nesting",
        "pivot_root,",
        "ptrace,",
        "signal,",
        "",
        "deny /dev/.lxc/proc/** rw,",
        "deny /dev/.lxc/sys/** rw,",
        "",
        f"mount {shmounts}/ -> {shmounts}/,",
        f"mount none -> {shmounts}/,",
        "mount fstype=proc -> /usr/lib/*/lxc/**,",
        "mount fstype=sysfs -> /usr/lib/*/lxc/**,",
        "mount options=(rw,bind),",
        "mount options=(rw,rbind),",
        "mount options=(rw,make-rshared),",
        "",
        "# Allow nested instances to use their own profiles",
        "change_profile -> *,",
    ]
    return _block(lines)


def build_privilege(ctx: ProfileTemplateContext) -> str:
    if not ctx.unprivileged:
        return _block([
            "",
            "### Feature: privileged",
            "# Privileged instances cannot remount or bind-mount freely",
            "deny mount fstype=debugfs -> /var/lib/ureadahead/debugfs/,",
            "deny /dev/mem rwklx,",
            "deny /dev/kmem rwklx,",
            "deny /dev/port rwklx,",
        ])
    return _block([
        "",
        "### Feature: unprivileged",
        "pivot_root,",
        "",
        "# Allow modifying mount propagation",
        "mount options=(rw,make-slave) -> **,",
        "mount options=(rw,make-rslave) -> **,",
        "mount options=(rw,make-shared) -> **,",
        "mount options=(rw,make-rshared) -> **,",
        "mount options=(rw,make-private) -> **,",
        "mount options=(rw,make-rprivate) -> **,",
        "mount options=(rw,make-unbindable) -> **,",
        "mount options=(rw,make-runbindable) -> **,",
        "",
        "# Allow all bind-mounts",
        "mount options=(rw,bind),",
        "mount options=(rw,rbind),",
        "",
        "# Allow common combinations of bind/remount",
        "mount options=(ro,remount,bind),",
        "mount options=(ro,remount,bind,nosuid,nodev),",
        "mount options=(ro,remount,bind,noexec,nodev),",
        "mount options=(rw,remount,bind),",
        "",
        "# Allow remounting things read-only",
        "mount options=(ro,remount),",
    ])


def build_stacking(ctx: ProfileTemplateContext) -> str:
    if ctx.feature_stacking:
        return _block([
            "",
            "### Feature: apparmor stacking",
            "### Configuration: apparmor profile loading (in namespace)",
            "deny /sys/k[^e]*{,/**} wklx,",
            "deny /sys/ke[^r]*{,/**} wklx,",
            "deny /sys/ker[^n]*{,/**} wklx,",
            "deny /sys/kern[^e]*{,/**} wklx,",
            "deny /sys/kerne[^l]*{,/**} wklx,",
            "deny /sys/kernel/[^s]*{,/**} wklx,",
            "deny /sys/kernel/security/[^a]*{,/**} wklx,",
            "deny /sys/kernel/security/a[^p]*{,/**} wklx,",
            "deny /sys/kernel/security/apparmor/{,**} wklx,",
            "",
            f'change_profile -> ":{ctx.namespace}:*",',
            f'change_profile -> ":{ctx.namespace}://*",',
        ])
    return _block([
        "",
        "### Configuration: apparmor profile loading (no stacking)",
        "deny /sys/k*{,/**} wklx,",
    ])


def build_raw(ctx: ProfileTemplateContext) -> str:
    if not ctx.raw:
        return ""
    # raw is already indented by the renderer
    return f"\n  ### Configuration: raw.apparmor\n{ctx.raw}\n"


SECTION_BUILDERS = {
    'base': build_base,
    'unix': build_unix,
    'cgroup': build_cgroup,
    'nesting': build_nesting,
    'privilege': build_privilege,
    'stacking': build_stacking,
    'raw': build_raw,
}


def render_profile_template(ctx: ProfileTemplateContext, template: str = PROFILE_TEMPLATE) -> str:
    """Render *template* for *ctx*, raising TemplateError on any failure."""
    try:
        sections = {key: builder(ctx) for key, builder in SECTION_BUILDERS.items()}
        return template.format(name=ctx.name, namespace=ctx.namespace, **sections)
    except (KeyError, IndexError, ValueError, AttributeError, TypeError) as e:
        raise TemplateError(f"Failed to render AppArmor profile {ctx.name!r}: {e}") from e
