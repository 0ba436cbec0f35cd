"""
Keywarden key management errors.

Every failure that can stop a single declared entry derives from
KeyManagementError, so the reconciler can contain it to that entry.
"""
from __future__ import annotations

from typing import Optional, Sequence


class KeyManagementError(Exception):
    """Base class for errors raised while managing trust-store keys."""


class InvalidFingerprintError(KeyManagementError, ValueError):
    """Raised when a value is not a 40 digit hexadecimal fingerprint."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid key fingerprint {value!r}: expected 40 hex digits")


class InvalidKeyIdError(KeyManagementError, ValueError):
    """Raised when a declared key id is not 8, 16 or 40 hex digits."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Invalid key id {value!r}: expected 8, 16 or 40 hex digits, optionally 0x-prefixed"
        )


class VerificationMismatchError(KeyManagementError):
    """Raised when key material does not carry the declared fingerprint."""

    def __init__(self, claimed: str, extracted: Sequence[str]):
        self.claimed = claimed
        self.extracted = list(extracted)
        found = ", ".join(self.extracted) if self.extracted else "no fingerprint"
        super().__init__(
            f"The id {claimed} and the fingerprint from content/source do not match "
            f"(found: {found}). Please check there is not an error in the id or "
            f"check the content/source is legitimate."
        )


class VerificationUnavailableError(KeyManagementError):
    """Raised when the fingerprint extraction tool cannot be found."""

    def __init__(self, tool_path: str):
        self.tool_path = tool_path
        super().__init__(f"{tool_path} cannot be found for verification of the id.")


class ToolInvocationError(KeyManagementError):
    """Raised when an external command exits non-zero where success was required."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(
            f"Command '{' '.join(self.command)}' failed with exit code {returncode}{detail}"
        )


class SourceFetchError(KeyManagementError):
    """Raised when key material cannot be retrieved from its source."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not retrieve key from {source}: {reason}")


class RemovalError(KeyManagementError):
    """Raised when a key is still listed after the maximum number of deletions."""

    def __init__(self, short_id: str, attempts: int):
        self.short_id = short_id
        self.attempts = attempts
        super().__init__(
            f"Key {short_id} still present after {attempts} deletion attempts"
        )


class UnexpectedShapeError(KeyManagementError):
    """Raised when no installation path matches a declared entry."""

    def __init__(self, key_id: str, content: Optional[str], source: Optional[str]):
        self.key_id = key_id
        self.has_content = content is not None
        self.has_source = source is not None
        super().__init__(
            f"an unexpected condition occurred while trying to add the key: {key_id} "
            f"(content: {'set' if self.has_content else 'unset'}, "
            f"source: {source!r})"
        )


class ConfigError(KeyManagementError):
    """Raised when the declared state file cannot be loaded."""

    def __init__(self, path: str, problems: Sequence[str]):
        self.path = path
        self.problems = list(problems)
        joined = "\n  - ".join(self.problems)
        super().__init__(f"Invalid declared state in {path}:\n  - {joined}")
