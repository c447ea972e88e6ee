"""
Static access token records and the immutable lookup table built from them.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from shared.logging import get_logger, mask_token
from .exceptions import InsecureTokenError

MIN_TOKEN_LENGTH = 16


class AccessTokenRecord(BaseModel):
    """A static credential mapped to a fixed registry identity."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    user: str
    # Registry configs spell this field ``pass``.
    secret: str = Field(default="", validation_alias=AliasChoices("secret", "pass"))
    groups: Optional[str] = None
    readonly: Optional[bool] = None


@dataclass(frozen=True)
class TokenSecurityViolation:
    """A configured token that fails the minimum strength check."""

    index: int
    user: str
    key_length: int
    min_length: int = MIN_TOKEN_LENGTH

    def as_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "user": self.user,
            "key_length": self.key_length,
            "min_length": self.min_length,
        }


class AccessTokenTable:
    """Read-only mapping from token key to :class:`AccessTokenRecord`."""

    def __init__(self, records: Iterable[AccessTokenRecord] = ()):
        self.logger = get_logger("token_gate.access_tokens")
        self._records: List[AccessTokenRecord] = list(records)

        by_key: Dict[str, AccessTokenRecord] = {}
        for record in self._records:
            if record.key in by_key:
                self.logger.warning(
                    "Duplicate static access token, later entry wins",
                    user=record.user,
                    previous_user=by_key[record.key].user,
                )
            by_key[record.key] = record
        self._by_key: Mapping[str, AccessTokenRecord] = MappingProxyType(by_key)

    @classmethod
    def from_config(cls, entries: Optional[Iterable[Any]]) -> "AccessTokenTable":
        """Build a table from raw config entries (dicts or records)."""
        records = [
            entry if isinstance(entry, AccessTokenRecord) else AccessTokenRecord.model_validate(entry)
            for entry in entries or []
        ]
        return cls(records)

    def lookup(self, key: str) -> Optional[AccessTokenRecord]:
        return self._by_key.get(key)

    def find_violations(self, min_length: int = MIN_TOKEN_LENGTH) -> List[TokenSecurityViolation]:
        """Return every configured token whose key is shorter than ``min_length``.

        This prevents trivially guessable tokens such as ``123`` or ``abc``.
        """
        return [
            TokenSecurityViolation(index=index, user=record.user, key_length=len(record.key), min_length=min_length)
            for index, record in enumerate(self._records)
            if len(record.key) < min_length
        ]

    def validate_security(self, min_length: int = MIN_TOKEN_LENGTH) -> None:
        """Raise :class:`InsecureTokenError` if any key is too short."""
        violations = self.find_violations(min_length)
        if violations:
            for violation in violations:
                self.logger.error(
                    "Insecure static access token",
                    user=violation.user,
                    index=violation.index,
                    key_length=violation.key_length,
                    min_length=min_length,
                )
            raise InsecureTokenError(violations)

    def describe(self) -> List[Dict[str, Any]]:
        """Log-safe summary of configured tokens."""
        return [
            {"user": record.user, "token": mask_token(record.key), "readonly": bool(record.readonly)}
            for record in self._by_key.values()
        ]

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)
