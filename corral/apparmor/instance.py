"""
Instance description consumed by the profile lifecycle.

The instance runtime owns instances; this package only reads the handful of
attributes below. Any object exposing the same attributes can be passed to
the lifecycle functions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..constants import NESTING_KEY, PRIVILEGED_KEY, TRUE_STRINGS


def _is_true(value: Optional[str]) -> bool:
    return str(value or '').strip().lower() in TRUE_STRINGS


@dataclass(frozen=True)
class Instance:
    """A sandboxed compute instance as seen by the profile lifecycle."""
    project: str
    name: str
    nesting: bool = False
    privileged: bool = False
    expanded_config: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, project: str, name: str, config: Optional[Mapping[str, Any]] = None) -> 'Instance':
        """Build an Instance, deriving nesting/privileged from its config keys."""
        expanded = {str(k): '' if v is None else str(v) for k, v in (config or {}).items()}
        return cls(
            project=project,
            name=name,
            nesting=_is_true(expanded.get(NESTING_KEY)),
            privileged=_is_true(expanded.get(PRIVILEGED_KEY)),
            expanded_config=expanded,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'project': self.project,
            'name': self.name,
            'nesting': self.nesting,
            'privileged': self.privileged,
            'config': dict(self.expanded_config),
        }
