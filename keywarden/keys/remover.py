"""
Keywarden Key Remover

Deletes a key by its short id. The trust store can hold several entries that
share a short id (sub-keys, duplicate imports), so deletion repeats until the
listing no longer shows the id:

    DELETING -> CHECKING -> CONVERGED
                   |
                   +-> DELETING (still listed)
                   +-> GAVE_UP  (max_attempts deletions issued)

A listing that cannot be read counts as converged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from keywarden.keys.errors import RemovalError
from keywarden.keys.records import DesiredEntry
from keywarden.keys.tools import AptKeyTool

logger = logging.getLogger(__name__)

DEFAULT_MAX_DELETE_ATTEMPTS = 10


class RemovalState(str, Enum):
    CHECKING = "checking"
    DELETING = "deleting"
    CONVERGED = "converged"
    GAVE_UP = "gave_up"


@dataclass
class RemovalResult:
    """Result of a converged removal."""
    key_id: str
    short_id: str
    attempts: int
    state: RemovalState = RemovalState.CONVERGED


class KeyRemover:
    """Executes delete actions against the trust store."""

    def __init__(self, apt_key: AptKeyTool, max_attempts: int = DEFAULT_MAX_DELETE_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.apt_key = apt_key
        self.max_attempts = max_attempts

    def delete(self, entry: DesiredEntry) -> RemovalResult:
        """
        Remove every trust store entry matching the declared key's short id.

        Raises:
            ToolInvocationError: apt-key del failed
            RemovalError: The key was still listed after max_attempts deletions
        """
        short_id = entry.short
        attempts = 0
        state = RemovalState.DELETING

        while state not in (RemovalState.CONVERGED, RemovalState.GAVE_UP):
            if state == RemovalState.DELETING:
                self.apt_key.delete(short_id)
                attempts += 1
                state = RemovalState.CHECKING
            elif state == RemovalState.CHECKING:
                if self.apt_key.noop or not self.apt_key.key_exists(short_id):
                    state = RemovalState.CONVERGED
                elif attempts >= self.max_attempts:
                    state = RemovalState.GAVE_UP
                else:
                    logger.debug("%s still listed after %d deletions", short_id, attempts)
                    state = RemovalState.DELETING

        if state == RemovalState.GAVE_UP:
            raise RemovalError(short_id, attempts)

        logger.info("Deleted %s after %d attempt(s)", entry.id, attempts)
        return RemovalResult(key_id=entry.id, short_id=short_id, attempts=attempts)
