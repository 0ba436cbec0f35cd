"""
Keywarden Fingerprint Verification

Confirms that key material supplied inline or fetched from a source really is
the key the operator declared, before it is imported into the trust store.

Security model:
    - The declared 40 digit fingerprint is the trust anchor.
    - Every primary key in the material must carry exactly that fingerprint.
      A bundle that smuggles in an extra key fails, as does material gpg
      cannot read at all.
    - Comparison is exact apart from hex letter case.
    - If gpg is missing the check is reported as unavailable, never as passed.
"""
from __future__ import annotations

import logging
from typing import List

from keywarden.keys.errors import (
    VerificationMismatchError,
    VerificationUnavailableError,
)
from keywarden.keys.listing import primary_fingerprints
from keywarden.keys.tools import GpgTool

logger = logging.getLogger(__name__)


def fingerprints_match(extracted: List[str], claimed: str) -> bool:
    """True if at least one fingerprint was extracted and all equal ``claimed``."""
    if not extracted:
        return False
    claimed = claimed.upper()
    return all(fingerprint.upper() == claimed for fingerprint in extracted)


class FingerprintVerifier:
    """Checks key files against a claimed fingerprint using gpg."""

    def __init__(self, gpg: GpgTool):
        self.gpg = gpg

    def available(self) -> bool:
        return self.gpg.available()

    def extract(self, material_path: str) -> List[str]:
        """Extract the primary key fingerprints contained in a key file."""
        return primary_fingerprints(self.gpg.show_fingerprints(material_path))

    def verify(self, material_path: str, claimed_fingerprint: str) -> bool:
        """
        Check that a key file carries the claimed fingerprint.

        Args:
            material_path: Path to the key material
            claimed_fingerprint: Declared 40 digit fingerprint

        Returns:
            True only on an exact (case-insensitive) match
        """
        return fingerprints_match(self.extract(material_path), claimed_fingerprint)

    def check(self, material_path: str, claimed_fingerprint: str) -> None:
        """Verify a key file, raising instead of returning False.

        Raises:
            VerificationUnavailableError: gpg cannot be found
            VerificationMismatchError: the material carries another fingerprint
        """
        if not self.available():
            raise VerificationUnavailableError(self.gpg.command)

        extracted = self.extract(material_path)
        if not fingerprints_match(extracted, claimed_fingerprint):
            raise VerificationMismatchError(claimed_fingerprint, extracted)
        logger.debug("Verified %s against key material", claimed_fingerprint)
