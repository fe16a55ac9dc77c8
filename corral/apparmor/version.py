"""
Dotted version numbers.

apparmor_parser reports versions like "2.13.3" or "2.10.95"; comparing them
as strings gets "2.9" vs "2.10" wrong, so they are held as integer tuples and
compared component-wise with missing trailing components treated as zero.
"""

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Tuple

from .errors import VersionParseError

_VERSION_RE = re.compile(r'^\d+(\.\d+)*$')


@total_ordering
@dataclass(frozen=True, eq=False)
class DottedVersion:
    """An ordered tuple of non-negative integers."""
    components: Tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> 'DottedVersion':
        """Parse "X.Y.Z" into a DottedVersion."""
        value = text.strip() if isinstance(text, str) else ""
        if not _VERSION_RE.match(value):
            raise VersionParseError(f"Invalid version string: {text!r}")
        return cls(tuple(int(part) for part in value.split('.')))

    def _padded(self, other: 'DottedVersion') -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        width = max(len(self.components), len(other.components))
        mine = self.components + (0,) * (width - len(self.components))
        theirs = other.components + (0,) * (width - len(other.components))
        return mine, theirs

    def compare(self, other: 'DottedVersion') -> int:
        """Return -1, 0 or 1 as self is older, equal or newer than other."""
        mine, theirs = self._padded(other)
        return (mine > theirs) - (mine < theirs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DottedVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: 'DottedVersion') -> bool:
        if not isinstance(other, DottedVersion):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        trimmed = list(self.components)
        while trimmed and trimmed[-1] == 0:
            trimmed.pop()
        return hash(tuple(trimmed))

    def __str__(self) -> str:
        return '.'.join(str(part) for part in self.components)
