"""
Centralized constants for Corral.

Every path default, permission mode and parser flag used by the profile
lifecycle lives here so components never hardcode them inline.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


# =============================================================================
# FILE PERMISSION CONSTANTS
# =============================================================================

class Permissions(IntEnum):
    """
    File permission modes used for profile storage.

    Rendered profiles may embed instance specific rules, so everything written
    under the AppArmor state directory is owner-only.
    """

    PROFILE_FILE = 0o600                # rendered profile text
    STATE_DIR = 0o700                   # cache/ and profiles/
    NAMESPACE_DIR = 0o755               # kernel policy namespace


# =============================================================================
# PATH CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Paths:
    """
    Default filesystem locations.

    These are defaults only; CorralSettings carries the values actually used
    and can be overridden from YAML or the environment.
    """
    VAR_DIR: str = "/var/lib/corral"
    ETC_BASE: str = "/etc/corral"
    CONFIG_FILE: str = f"{ETC_BASE}/corral.yaml"

    # Relative to VAR_DIR
    APPARMOR_SUBDIR: str = "security/apparmor"
    CACHE_SUBDIR: str = "cache"
    PROFILES_SUBDIR: str = "profiles"

    # Kernel interfaces
    SECURITYFS_DIR: str = "/sys/kernel/security/apparmor"
    POLICY_NAMESPACES_SUBDIR: str = "policy/namespaces"
    PROC_DIR: str = "/proc"


# =============================================================================
# APPARMOR PARSER
# =============================================================================

class ParserCommand(Enum):
    """apparmor_parser modes, combined with -W (write cache) and -L (cache dir)."""
    LOAD = "r"      # load, replacing any existing profile
    UNLOAD = "R"    # remove from the kernel
    PARSE = "Q"     # parse only, skip kernel load


PARSER_BINARY = "apparmor_parser"
DEFAULT_PROFILE_PREFIX = "corral"

# Parser releases that introduced features we key off.
UNIX_MEDIATION_MIN_VERSION = "2.10.95"
CACHE_DIR_QUERY_MIN_VERSION = "2.13"

FEATURE_MIN_VERSIONS = {
    "unix": UNIX_MEDIATION_MIN_VERSION,
}

# Kernel limit on policy names and the fixed framing reserved around the
# host qualifier. Qualifiers that would not fit are replaced by their hash.
MAX_POLICY_NAME_LENGTH = 253
POLICY_NAME_OVERHEAD = 7

# Instance configuration keys
RAW_APPARMOR_KEY = "raw.apparmor"
NESTING_KEY = "security.nesting"
PRIVILEGED_KEY = "security.privileged"

DEFAULT_PROJECT = "default"

# uid_map content of the initial user namespace
INITIAL_USERNS_UID_MAP = "0 0 4294967295"

CAP_MAC_ADMIN = 33

TRUE_STRINGS = ("1", "true", "yes", "on")
