"""
Keywarden Key Records

Dataclasses for observed trust-store keys and declared key entries.

Fingerprints are the canonical identity of a key. The long (16 digit) and
short (8 digit) ids are always suffixes of the fingerprint and are derived,
never stored.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from keywarden.keys.errors import InvalidFingerprintError, InvalidKeyIdError


DEFAULT_KEYSERVER = "keyserver.ubuntu.com"

_FINGERPRINT_RE = re.compile(r"^[0-9A-F]{40}\Z")
_KEY_ID_RE = re.compile(r"^(?:[0-9A-F]{8}|[0-9A-F]{16}|[0-9A-F]{40})\Z")


class KeyType(str, Enum):
    """Public key algorithm, see /usr/share/doc/gnupg/DETAILS.gz."""
    RSA = "rsa"
    DSA = "dsa"
    ECC = "ecc"
    ECDSA = "ecdsa"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_algorithm_code(cls, code: str) -> "KeyType":
        return _ALGORITHM_CODES.get(code.strip(), cls.UNRECOGNIZED)


_ALGORITHM_CODES: Dict[str, KeyType] = {
    "1": KeyType.RSA,
    "17": KeyType.DSA,
    "18": KeyType.ECC,
    "19": KeyType.ECDSA,
}


class Presence(str, Enum):
    """Whether a key should be present in the trust store."""
    PRESENT = "present"
    ABSENT = "absent"


def normalize_key_id(value: str) -> str:
    """Strip an optional 0x prefix and upper-case a declared key id.

    Raises:
        InvalidKeyIdError: If the id is not 8, 16 or 40 hex digits
    """
    key_id = value.strip()
    if key_id[:2].lower() == "0x":
        key_id = key_id[2:]
    key_id = key_id.upper()
    if not _KEY_ID_RE.match(key_id):
        raise InvalidKeyIdError(value)
    return key_id


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class KeyRecord:
    """A key registered in the trust store."""

    fingerprint: str
    size: int
    type: KeyType
    created: datetime
    expiry: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.fingerprint, str):
            raise InvalidFingerprintError(repr(self.fingerprint))
        fingerprint = self.fingerprint.upper()
        if not _FINGERPRINT_RE.match(fingerprint):
            raise InvalidFingerprintError(self.fingerprint)
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "fingerprint", fingerprint)

    @property
    def long(self) -> str:
        return self.fingerprint[-16:]

    @property
    def short(self) -> str:
        return self.fingerprint[-8:]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the key has expired at ``now`` (defaults to current time)."""
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expiry

    @property
    def expired(self) -> bool:
        return self.is_expired()

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Serialise the record, with timestamps in ISO format."""
        return {
            "ensure": Presence.PRESENT.value,
            "id": self.fingerprint,
            "fingerprint": self.fingerprint,
            "long": self.long,
            "short": self.short,
            "size": self.size,
            "type": self.type.value,
            "created": _iso(self.created),
            "expiry": _iso(self.expiry),
            "expired": self.is_expired(now),
        }


@dataclass(frozen=True)
class DesiredEntry:
    """A key as declared by the operator."""

    id: str
    presence: Presence = Presence.PRESENT
    content: Optional[str] = None
    source: Optional[str] = None
    server: str = DEFAULT_KEYSERVER
    options: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "id", normalize_key_id(self.id))
        object.__setattr__(self, "presence", Presence(self.presence))

    @property
    def is_full_fingerprint(self) -> bool:
        return len(self.id) == 40

    @property
    def short(self) -> str:
        return self.id[-8:]

    @property
    def long(self) -> Optional[str]:
        return self.id[-16:] if len(self.id) >= 16 else None
