"""
Pytest configuration and shared fixtures for Corral tests.

Provides temporary directory trees standing in for the variable-data
directory, securityfs and procfs, plus a fake apparmor_parser so no test
touches the real kernel or parser.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator, List, Optional, Sequence

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from corral.apparmor import (
    AppArmorProfileManager,
    ExternalToolError,
    HostCapabilities,
    Instance,
    ParserRunner,
)
from corral.config import CorralSettings


# ===========================================================================
# Fake Parser
# ===========================================================================

class FakeParser(ParserRunner):
    """ParserRunner that records invocations instead of running a binary."""

    def __init__(
        self,
        settings: CorralSettings,
        version: Optional[str] = "3.0.4",
        print_cache_dir: Optional[str] = None,
        fail_on: Sequence[str] = (),
    ):
        super().__init__(settings)
        self.version_string = version
        self.print_cache_dir = print_cache_dir
        self.fail_on = set(fail_on)
        self.calls: List[List[str]] = []

    def run(self, args: Sequence[str]) -> str:
        args = list(args)
        self.calls.append(args)
        command = [self.settings.parser_binary] + args

        if args[0] in self.fail_on:
            raise ExternalToolError(
                "Failed to run: apparmor_parser",
                command=command,
                returncode=1,
                output="AppArmor parser error: syntax error",
            )
        if args[0] == '--version':
            if self.version_string is None:
                raise ExternalToolError("apparmor_parser not found", command=command)
            return f"AppArmor parser version {self.version_string}\nCopyright (C) 1999-2008 Novell Inc.\n"
        if '--print-cache-dir' in args:
            return f"{self.print_cache_dir or self.settings.cache_dir}\n"
        return ""

    @property
    def profile_calls(self) -> List[List[str]]:
        """Only the load/unload/parse invocations."""
        return [c for c in self.calls if c[0] in ('-rWL', '-RWL', '-QWL')]


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="corral_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def securityfs_dir(temp_dir: Path) -> Path:
    path = temp_dir / "securityfs"
    (path / "policy" / "namespaces").mkdir(parents=True)
    return path


@pytest.fixture
def proc_dir(temp_dir: Path) -> Path:
    path = temp_dir / "proc"
    (path / "self" / "ns").mkdir(parents=True)
    (path / "self" / "attr").mkdir(parents=True)
    return path


@pytest.fixture
def settings(temp_dir: Path, securityfs_dir: Path, proc_dir: Path) -> CorralSettings:
    """Settings rooted entirely inside the temporary directory."""
    return CorralSettings(
        var_dir=str(temp_dir / "var" / "lib" / "corral"),
        securityfs_dir=str(securityfs_dir),
        proc_dir=str(proc_dir),
    )


# ===========================================================================
# Host Capability Fixtures
# ===========================================================================

@pytest.fixture
def admin_host() -> HostCapabilities:
    """AppArmor available and manageable, no stacking."""
    return HostCapabilities(apparmor_available=True, apparmor_admin=True)


@pytest.fixture
def stacking_host() -> HostCapabilities:
    """AppArmor manageable with namespace stacking."""
    return HostCapabilities(
        apparmor_available=True,
        apparmor_admin=True,
        apparmor_stacking=True,
        cgroup_namespace=True,
    )


@pytest.fixture
def unprivileged_host() -> HostCapabilities:
    """AppArmor present but we lack mac_admin."""
    return HostCapabilities(apparmor_available=True, apparmor_admin=False)


@pytest.fixture
def no_apparmor_host() -> HostCapabilities:
    return HostCapabilities()


# ===========================================================================
# Lifecycle Fixtures
# ===========================================================================

@pytest.fixture
def instance() -> Instance:
    return Instance(project="default", name="c1")


@pytest.fixture
def fake_parser(settings: CorralSettings) -> FakeParser:
    return FakeParser(settings)


@pytest.fixture
def manager(settings: CorralSettings, fake_parser: FakeParser) -> AppArmorProfileManager:
    return AppArmorProfileManager(settings, parser=fake_parser)


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Put the root logger back the way it was after a logging test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
