"""
Pydantic models for Keywarden declared state validation.

These models define the schema of the declared state file (keys.yaml):

    settings:
      apt_key_command: apt-key
    keys:
      6F6B15509CF8E59E6E469F327F438280EF8D349F:
        ensure: present
        source: http://apt.puppetlabs.com/pubkey.gpg

They check attribute syntax only. Whether content and source are both set is
decided per entry at plan time, so one bad entry never rejects the file.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from keywarden.keys.records import DEFAULT_KEYSERVER


KEY_ID_PATTERN = re.compile(r"\A(0x)?([0-9a-fA-F]{8}|[0-9a-fA-F]{16}|[0-9a-fA-F]{40})\Z")

SERVER_PATTERN = re.compile(
    r"\A((hkp|http|https)://)?([a-z\d])([a-z\d-]{0,61}\.)+[a-z\d]+(:\d{2,5})?\Z"
)

SOURCE_URL_PATTERN = re.compile(r"\A(https?|ftp)://")

DEFAULT_LOG_DB = Path.home() / ".keywarden" / "reconcile.db"


# ============================================================================
# Enums
# ============================================================================


class EnsureValue(str, Enum):
    """Valid ensure values for a declared key."""
    PRESENT = "present"
    ABSENT = "absent"


# ============================================================================
# Section Models
# ============================================================================


class KeywardenSettings(BaseModel):
    """Tool locations and limits for a reconciliation run."""
    apt_key_command: str = "apt-key"
    gpg_command: str = "/usr/bin/gpg"
    max_delete_attempts: int = Field(default=10, ge=1, le=1000)
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    log_enabled: bool = True
    log_db: Path = DEFAULT_LOG_DB

    model_config = {"extra": "forbid"}

    @field_validator("log_db", mode="before")
    @classmethod
    def expand_log_db(cls, v):
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class KeyDeclaration(BaseModel):
    """A single declared key (the id is the mapping key)."""
    ensure: EnsureValue = EnsureValue.PRESENT
    content: Optional[str] = None
    source: Optional[str] = None
    server: str = DEFAULT_KEYSERVER
    options: Optional[str] = None

    model_config = {"extra": "forbid"}

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        if not SERVER_PATTERN.match(v):
            raise ValueError(
                f"Invalid key server {v!r}: expected a domain name or hkp/http/https URL"
            )
        return v

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if SOURCE_URL_PATTERN.match(v) or Path(v).is_absolute():
            return v
        raise ValueError(
            f"Invalid source {v!r}: expected /path/to/file, ftp://, http:// or https://"
        )

    @field_validator("options")
    @classmethod
    def empty_options_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


# ============================================================================
# Root Model
# ============================================================================


class DeclaredStateFile(BaseModel):
    """Root model of a declared state file."""
    settings: KeywardenSettings = Field(default_factory=KeywardenSettings)
    keys: Dict[str, KeyDeclaration] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    @field_validator("settings", mode="before")
    @classmethod
    def coerce_empty_settings(cls, v):
        return {} if v is None else v

    @field_validator("keys", mode="before")
    @classmethod
    def coerce_empty_declarations(cls, v):
        """Accept ``KEYID:`` with no body as a present key from the default server."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): ({} if val is None else val) for k, val in v.items()}
        return v

    @field_validator("keys")
    @classmethod
    def validate_key_ids(cls, v: Dict[str, KeyDeclaration]) -> Dict[str, KeyDeclaration]:
        bad = [key_id for key_id in v if not KEY_ID_PATTERN.match(key_id)]
        if bad:
            raise ValueError(
                "Invalid key id(s) " + ", ".join(repr(b) for b in bad)
                + ": expected 8, 16 or 40 hex digits, optionally 0x-prefixed"
            )
        return v
