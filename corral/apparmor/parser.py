"""
apparmor_parser integration.

Runs the external profile compiler and derives feature flags from its
version. Version-dependent answers degrade to the conservative choice
(feature unsupported, default cache directory) when the parser cannot be
queried, so a broken parser never blocks an instance from starting.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..config import CorralSettings
from ..constants import (
    CACHE_DIR_QUERY_MIN_VERSION,
    FEATURE_MIN_VERSIONS,
    ParserCommand,
)
from .errors import AppArmorError, ExternalToolError, VersionParseError
from .version import DottedVersion

logger = logging.getLogger(__name__)


class ParserRunner:
    """
    Thin wrapper around the apparmor_parser binary.

    No timeout is applied unless settings.parser_timeout is set; a hung
    parser blocks the caller.
    """

    def __init__(self, settings: CorralSettings):
        self.settings = settings
        self._version: Optional[DottedVersion] = None

    def run(self, args: Sequence[str]) -> str:
        """Run the parser with *args* and return its stdout."""
        command = [self.settings.parser_binary] + list(args)
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.settings.parser_timeout,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(
                f"{self.settings.parser_binary} not found", command=command
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(
                f"{self.settings.parser_binary} timed out after {self.settings.parser_timeout}s",
                command=command,
            ) from e
        except OSError as e:
            raise ExternalToolError(
                f"Failed to run {self.settings.parser_binary}: {e}", command=command
            ) from e

        output = (result.stdout or '') + (result.stderr or '')
        if result.returncode != 0:
            raise ExternalToolError(
                f"Failed to run: {' '.join(command)}: {output.strip()}",
                command=command,
                returncode=result.returncode,
                output=output,
            )
        return result.stdout or ''

    def version(self) -> DottedVersion:
        """Installed parser version, from the last token of its first output line."""
        if self._version is not None:
            return self._version

        output = self.run(['--version'])
        lines = output.split('\n')
        fields = lines[0].split() if lines else []
        if not fields:
            raise VersionParseError(
                f"Unexpected {self.settings.parser_binary} --version output",
                command=[self.settings.parser_binary, '--version'],
                output=output,
            )

        self._version = DottedVersion.parse(fields[-1])
        return self._version

    def _at_least(self, minimum: str) -> bool:
        return self.version() >= DottedVersion.parse(minimum)

    def supports(self, feature: str) -> bool:
        """Whether the installed parser understands *feature*; False on any error."""
        minimum = FEATURE_MIN_VERSIONS.get(feature)
        if minimum is None:
            return False

        try:
            return self._at_least(minimum)
        except AppArmorError as e:
            logger.error(f"Unable to get AppArmor version: {e}")
            return False

    def cache_dir(self) -> Path:
        """Directory the parser actually writes its binary cache into."""
        base = self.settings.cache_dir

        try:
            if not self._at_least(CACHE_DIR_QUERY_MIN_VERSION):
                return base
        except AppArmorError as e:
            logger.error(f"Unable to get AppArmor version: {e}")
            return base

        # Multiple policy cache directories were only added in 2.13.
        try:
            output = self.run(['-L', str(base), '--print-cache-dir'])
        except ExternalToolError as e:
            logger.error(f"Unable to get AppArmor cache directory: {e}")
            return base

        resolved = output.strip()
        return Path(resolved) if resolved else base

    def command_args(self, command: ParserCommand, profile_path: Union[str, Path]) -> List[str]:
        return [
            f"-{command.value}WL",
            str(self.settings.cache_dir),
            str(profile_path),
        ]

    def apply(self, command: ParserCommand, profile_path: Union[str, Path]) -> str:
        """Run one of the load/unload/parse modes against a profile file."""
        return self.run(self.command_args(command, profile_path))
