"""
Keywarden Key Listing Parser

Turns the colon-delimited output of

    apt-key adv --list-keys --with-colons --fingerprint --fixed-list-mode

into KeyRecords keyed by fingerprint. Field layout is documented in
/usr/share/doc/gnupg/DETAILS.gz:

    pub:-:4096:1:7F438280EF8D349F:1471554630:1629234630::-:::scSC:
    fpr:::::::::6F6B15509CF8E59E6E469F327F438280EF8D349F:
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple, Union

from keywarden.keys.errors import InvalidFingerprintError
from keywarden.keys.records import KeyRecord, KeyType

logger = logging.getLogger(__name__)

# pub line field indexes
_SIZE = 2
_ALGORITHM = 3
_CREATED = 5
_EXPIRY = 6


def decode_listing(raw: Union[str, bytes]) -> str:
    """Decode tool output as UTF-8, dropping invalid byte sequences."""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="ignore")
    return raw


def _epoch(value: str) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _fingerprint_field(fpr_line: str) -> str:
    fields = [f for f in fpr_line.split(":") if f]
    return fields[-1] if fields else ""


def iter_key_pairs(text: str) -> Iterator[Tuple[str, str]]:
    """Yield (pub_line, fpr_line) pairs from a colon listing.

    A fingerprint line is only paired with a public key line that is still
    waiting for one; fingerprint lines of sub-keys are ignored. Both sides
    reset once a pair is emitted. A public key line left waiting at the end
    of input is dropped.
    """
    pub_line: Optional[str] = None
    for line in text.splitlines():
        if line.startswith("pub"):
            pub_line = line
        elif line.startswith("fpr") and pub_line is not None:
            yield pub_line, line
            pub_line = None


def key_line_to_record(pub_line: str, fpr_line: str) -> KeyRecord:
    """Build a KeyRecord from one public key line and its fingerprint line.

    Raises:
        InvalidFingerprintError: If the fingerprint is not 40 hex digits
        ValueError: If numeric fields cannot be parsed
        OverflowError: If a timestamp is out of range
    """
    pub = pub_line.split(":")
    if len(pub) <= _EXPIRY:
        raise ValueError(f"Truncated public key line: {pub_line!r}")

    expiry_field = pub[_EXPIRY].strip()
    return KeyRecord(
        fingerprint=_fingerprint_field(fpr_line),
        size=int(pub[_SIZE]),
        type=KeyType.from_algorithm_code(pub[_ALGORITHM]),
        created=_epoch(pub[_CREATED]),
        expiry=_epoch(expiry_field) if expiry_field else None,
    )


def parse_key_listing(raw: Union[str, bytes]) -> Dict[str, KeyRecord]:
    """
    Parse a trust store listing into records keyed by fingerprint.

    Args:
        raw: Listing output, as text or undecoded bytes

    Returns:
        Dict mapping 40 digit fingerprint to KeyRecord, in listing order
    """
    records: Dict[str, KeyRecord] = {}
    for pub_line, fpr_line in iter_key_pairs(decode_listing(raw)):
        try:
            record = key_line_to_record(pub_line, fpr_line)
        except (InvalidFingerprintError, ValueError, OverflowError, OSError) as e:
            logger.debug("Skipping unparseable key entry: %s", e)
            continue
        records[record.fingerprint] = record
    return records


def listed_fingerprints(raw: Union[str, bytes]) -> List[str]:
    """Return the fingerprints of every primary key and sub-key in a listing."""
    fingerprints = []
    key_line_pending = False
    for line in decode_listing(raw).splitlines():
        if line.startswith(("pub", "sub")):
            key_line_pending = True
        elif line.startswith("fpr") and key_line_pending:
            key_line_pending = False
            fingerprint = _fingerprint_field(line).strip()
            if fingerprint:
                fingerprints.append(fingerprint.upper())
    return fingerprints


def primary_fingerprints(raw: Union[str, bytes]) -> List[str]:
    """Return the primary key fingerprints of a colon listing, in order."""
    fingerprints = []
    for _, fpr_line in iter_key_pairs(decode_listing(raw)):
        fingerprint = _fingerprint_field(fpr_line).strip()
        if fingerprint:
            fingerprints.append(fingerprint.upper())
    return fingerprints
