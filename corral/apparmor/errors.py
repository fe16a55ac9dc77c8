"""Exceptions raised by the AppArmor profile lifecycle."""

from typing import Optional, Sequence


class AppArmorError(Exception):
    """Base class for profile lifecycle errors."""
    pass


class ExternalToolError(AppArmorError):
    """apparmor_parser could not be run, exited non-zero, or printed garbage."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.returncode = returncode
        self.output = output


class VersionParseError(ExternalToolError):
    """A dotted version string could not be parsed."""
    pass


class AppArmorIOError(AppArmorError):
    """Filesystem failure outside the explicitly tolerated cases."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class TemplateError(AppArmorError):
    """The profile template could not be rendered."""
    pass
