"""
Authenticated identity attached to requests by the gate.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Groups the registry grants to every logged-in user.
AUTHENTICATED_ROLES = ("$all", "$authenticated", "@all", "@authenticated", "all")


@dataclass
class RemoteUser:
    """Registry user resolved from a static access token."""

    name: str
    groups: List[str]
    real_groups: List[str]
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "groups": list(self.groups),
            "real_groups": list(self.real_groups),
            "error": self.error,
        }


def parse_groups(groups: Optional[str]) -> List[str]:
    """Split a space delimited group string, dropping blanks and repeats."""
    if not groups:
        return []
    parsed: List[str] = []
    for group in groups.split():
        group = group.strip()
        if group and group not in parsed:
            parsed.append(group)
    return parsed


def create_remote_user(name: str, groups: Optional[str] = None) -> RemoteUser:
    """Build the identity for ``name`` with membership ``{name} | groups``."""
    real_groups = [name]
    real_groups.extend(group for group in parse_groups(groups) if group != name)
    all_groups = real_groups + [role for role in AUTHENTICATED_ROLES if role not in real_groups]
    return RemoteUser(name=name, groups=all_groups, real_groups=real_groups)
