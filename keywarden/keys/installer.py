"""
Keywarden Key Installer

Adds a declared key to the trust store. Exactly one path applies per entry:

- keyserver: neither content nor source, fetched by id (the id is the trust
  anchor, no verification)
- content:   literal key material, verified then imported
- source:    key file at an absolute path or http/https/ftp URL, verified
             then imported

Verification only happens when the declared id is a full fingerprint.
Material is staged in a private temporary file that is removed on every
exit path.
"""
from __future__ import annotations

import logging
import os
import tempfile
import urllib.error
import urllib.request
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Union

import requests

from keywarden.keys.errors import (
    SourceFetchError,
    UnexpectedShapeError,
    VerificationUnavailableError,
)
from keywarden.keys.planner import Advisory
from keywarden.keys.records import DesiredEntry
from keywarden.keys.tools import AptKeyTool
from keywarden.keys.verifier import FingerprintVerifier

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


@dataclass
class InstallResult:
    """Result of a successful installation."""
    key_id: str
    method: str  # keyserver/content/source
    verified: bool = False
    advisories: List[Advisory] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)


@contextmanager
def temp_key_file(material: Union[str, bytes]) -> Iterator[str]:
    """Write key material to a private temporary file and yield its path.

    The file is closed and unlinked when the block exits, whether or not it
    raised.
    """
    data = material.encode("utf-8") if isinstance(material, str) else material
    handle = tempfile.NamedTemporaryFile(prefix="apt_key", delete=False)
    try:
        handle.write(data)
        handle.close()
        yield handle.name
    finally:
        handle.close()
        try:
            os.unlink(handle.name)
        except FileNotFoundError:
            pass


def fetch_source(source: str, timeout: float = DEFAULT_FETCH_TIMEOUT) -> bytes:
    """
    Retrieve key material from an absolute path or URL.

    Args:
        source: /absolute/path, http://, https:// or ftp:// location
        timeout: Network timeout in seconds

    Returns:
        Raw key material

    Raises:
        SourceFetchError: If the material cannot be read
    """
    lowered = source.lower()
    if lowered.startswith(("http://", "https://")):
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceFetchError(source, str(e)) from e
        return response.content

    if lowered.startswith("ftp://"):
        try:
            with urllib.request.urlopen(source, timeout=timeout) as response:
                return response.read()
        except (urllib.error.URLError, OSError) as e:
            raise SourceFetchError(source, str(e)) from e

    path = Path(source)
    if not path.is_absolute():
        raise SourceFetchError(source, "not an absolute path or http/https/ftp URL")
    try:
        return path.read_bytes()
    except OSError as e:
        raise SourceFetchError(source, e.strerror or str(e)) from e


class KeyInstaller:
    """Executes create actions against the trust store."""

    def __init__(
        self,
        apt_key: AptKeyTool,
        verifier: FingerprintVerifier,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ):
        self.apt_key = apt_key
        self.verifier = verifier
        self.fetch_timeout = fetch_timeout

    def create(self, entry: DesiredEntry) -> InstallResult:
        """
        Install a declared key.

        Raises:
            VerificationMismatchError: Material does not match the declared id
            ToolInvocationError: apt-key failed
            SourceFetchError: Source could not be read
            UnexpectedShapeError: No installation path matched
        """
        if entry.content is None and entry.source is None:
            return self._from_keyserver(entry)
        elif entry.content is not None:
            return self._from_material(entry, entry.content, "content")
        elif entry.source is not None:
            material = fetch_source(entry.source, timeout=self.fetch_timeout)
            return self._from_material(entry, material, "source")
        raise UnexpectedShapeError(entry.id, entry.content, entry.source)

    def _from_keyserver(self, entry: DesiredEntry) -> InstallResult:
        logger.info("Receiving %s from %s", entry.id, entry.server)
        self.apt_key.receive(entry.id, entry.server, entry.options)
        return InstallResult(key_id=entry.id, method="keyserver")

    def _from_material(
        self,
        entry: DesiredEntry,
        material: Union[str, bytes],
        method: str,
    ) -> InstallResult:
        result = InstallResult(key_id=entry.id, method=method)
        with temp_key_file(material) as key_file:
            if entry.is_full_fingerprint:
                try:
                    self.verifier.check(key_file, entry.id)
                    result.verified = True
                except VerificationUnavailableError as e:
                    logger.warning("%s: %s", entry.id, e)
                    result.advisories.append(Advisory.VERIFICATION_UNAVAILABLE)
                    result.messages.append(str(e))
            logger.info("Adding %s from %s", entry.id, method)
            self.apt_key.add(key_file)
        return result
