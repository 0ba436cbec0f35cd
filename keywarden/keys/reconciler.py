"""
Keywarden Reconciler

Drives one get/set cycle against the trust store:

1. get(): parse the current listing into observed KeyRecords
2. resolve short and long declared ids against the observed fingerprints
3. plan the per-entry actions
4. dispatch creates to the installer and deletes to the remover
5. report one EntryOutcome per declared entry to every reporter

Entries are processed one at a time in declaration order. A failure is
contained to its entry; the remaining entries are still processed. A
reporter that cannot record an outcome (locked or full log database) is
logged and skipped.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from keywarden.keys.errors import (
    KeyManagementError,
    SourceFetchError,
    ToolInvocationError,
    RemovalError,
    UnexpectedShapeError,
    VerificationMismatchError,
)
from keywarden.keys.installer import KeyInstaller
from keywarden.keys.listing import parse_key_listing
from keywarden.keys.planner import (
    SHORT_ID_WARNING,
    ActionKind,
    Advisory,
    PlannedAction,
    plan,
)
from keywarden.keys.records import DesiredEntry, KeyRecord
from keywarden.keys.remover import KeyRemover
from keywarden.keys.tools import AptKeyTool, CommandRunner, GpgTool
from keywarden.keys.verifier import FingerprintVerifier

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    """Final result of processing a declared entry."""
    SUCCESS_CREATE = "success_create"
    SUCCESS_DELETE = "success_delete"
    NOOP = "noop"
    FAILURE_VALIDATION = "failure_validation"
    FAILURE_VERIFICATION = "failure_verification"
    FAILURE_TOOL = "failure_tool"
    FAILURE_UNEXPECTED = "failure_unexpected"

    @property
    def is_failure(self) -> bool:
        return self.value.startswith("failure_")


@dataclass
class EntryOutcome:
    """What happened to one declared entry."""
    key_id: str
    kind: OutcomeKind
    action: ActionKind
    message: str = ""
    advisories: List[Advisory] = field(default_factory=list)
    details: Dict[str, object] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.kind.is_failure


class LoggingReporter:
    """Reports outcomes through the standard logging module."""

    ADVISORY_MESSAGES = {
        Advisory.SHORT_ID_COLLISION_RISK: SHORT_ID_WARNING,
        Advisory.VERIFICATION_UNAVAILABLE: "The fingerprint of the key material could not be verified.",
    }

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger("keywarden.report")

    def report(self, outcome: EntryOutcome) -> None:
        for advisory in outcome.advisories:
            self.log.warning("%s: %s", outcome.key_id, self.ADVISORY_MESSAGES[advisory])
        if outcome.failed:
            self.log.error("%s: %s", outcome.key_id, outcome.message)
        elif outcome.kind == OutcomeKind.NOOP:
            self.log.debug("%s: no change", outcome.key_id)
        else:
            self.log.info("%s: %s", outcome.key_id, outcome.message)


def resolve_observed(
    observed: Mapping[str, KeyRecord],
    desired: Mapping[str, DesiredEntry],
) -> Dict[str, KeyRecord]:
    """
    Extend the observed mapping with aliases for short and long declared ids.

    A declared id shorter than a fingerprint is aliased to an observed key
    only when exactly one observed fingerprint ends with it. Ambiguous ids
    stay unresolved.
    """
    view = dict(observed)
    for entry in desired.values():
        if entry.is_full_fingerprint or entry.id in view:
            continue
        matches = [r for fp, r in observed.items() if fp.endswith(entry.id)]
        if len(matches) == 1:
            view[entry.id] = matches[0]
        elif len(matches) > 1:
            logger.warning(
                "%s matches %d keys in the trust store; not resolving",
                entry.id, len(matches),
            )
    return view


class Reconciler:
    """Converges the trust store towards a declared set of keys."""

    def __init__(
        self,
        apt_key: AptKeyTool,
        installer: KeyInstaller,
        remover: KeyRemover,
        reporters: Optional[Sequence[object]] = None,
    ):
        self.apt_key = apt_key
        self.installer = installer
        self.remover = remover
        self.reporters = list(reporters) if reporters is not None else [LoggingReporter()]

    @classmethod
    def from_settings(
        cls,
        settings,
        noop: bool = False,
        reporters: Optional[Sequence[object]] = None,
        runner: Optional[CommandRunner] = None,
    ) -> "Reconciler":
        """Build a reconciler wired to real tools from a Settings object."""
        runner = runner or CommandRunner()
        apt_key = AptKeyTool(settings.apt_key_command, runner=runner, noop=noop)
        verifier = FingerprintVerifier(GpgTool(settings.gpg_command, runner=runner))
        installer = KeyInstaller(
            apt_key,
            verifier,
            fetch_timeout=settings.fetch_timeout_seconds,
        )
        remover = KeyRemover(
            apt_key,
            max_attempts=settings.max_delete_attempts,
        )
        return cls(apt_key, installer, remover, reporters=reporters)

    def get(self) -> Dict[str, KeyRecord]:
        """Return the keys currently in the trust store, keyed by fingerprint."""
        return parse_key_listing(self.apt_key.list_keys())

    def plan(
        self,
        desired: Mapping[str, DesiredEntry],
        observed: Optional[Mapping[str, KeyRecord]] = None,
    ) -> List[PlannedAction]:
        """Plan actions for ``desired`` against the trust store (or ``observed``)."""
        if observed is None:
            observed = self.get()
        return plan(resolve_observed(observed, desired), desired)

    def set(
        self,
        desired: Mapping[str, DesiredEntry],
        observed: Optional[Mapping[str, KeyRecord]] = None,
    ) -> List[EntryOutcome]:
        """
        Apply the declared state and report every entry's outcome.

        Args:
            desired: Declared entries keyed by id, in declaration order
            observed: Pre-fetched trust store state (fetched when omitted)

        Returns:
            One EntryOutcome per declared entry, in declaration order
        """
        outcomes = []
        for action in self.plan(desired, observed):
            outcome = self.apply(action)
            self._report(outcome)
            outcomes.append(outcome)
        return outcomes

    def _report(self, outcome: EntryOutcome) -> None:
        """Hand an outcome to every reporter; a failing reporter never stops the run."""
        for reporter in self.reporters:
            try:
                reporter.report(outcome)
            except (sqlite3.Error, OSError):
                logger.warning(
                    "%s could not record the outcome for %s",
                    type(reporter).__name__, outcome.key_id,
                    exc_info=True,
                )

    def apply(self, action: PlannedAction) -> EntryOutcome:
        """Execute one planned action, containing any failure to its entry."""
        entry = action.entry
        outcome = EntryOutcome(
            key_id=entry.id,
            kind=OutcomeKind.NOOP,
            action=action.kind,
            advisories=list(action.advisories),
        )

        if action.kind == ActionKind.VALIDATION_FAILURE:
            outcome.kind = OutcomeKind.FAILURE_VALIDATION
            outcome.message = action.reason or "validation failed"
            return outcome

        if action.kind == ActionKind.NOOP:
            return outcome

        try:
            if action.kind == ActionKind.CREATE:
                result = self.installer.create(entry)
                outcome.kind = OutcomeKind.SUCCESS_CREATE
                outcome.message = f"created from {result.method}"
                outcome.advisories.extend(result.advisories)
                outcome.details = {"method": result.method, "verified": result.verified}
            elif action.kind == ActionKind.DELETE:
                result = self.remover.delete(entry)
                outcome.kind = OutcomeKind.SUCCESS_DELETE
                outcome.message = f"deleted {result.short_id}"
                outcome.details = {"attempts": result.attempts}
        except VerificationMismatchError as e:
            outcome.kind = OutcomeKind.FAILURE_VERIFICATION
            outcome.message = str(e)
            outcome.details = {"claimed": e.claimed, "extracted": e.extracted}
        except UnexpectedShapeError as e:
            outcome.kind = OutcomeKind.FAILURE_UNEXPECTED
            outcome.message = str(e)
            outcome.details = {"has_content": e.has_content, "has_source": e.has_source}
        except (ToolInvocationError, SourceFetchError, RemovalError) as e:
            outcome.kind = OutcomeKind.FAILURE_TOOL
            outcome.message = str(e)
        except (KeyManagementError, OSError) as e:
            outcome.kind = OutcomeKind.FAILURE_UNEXPECTED
            outcome.message = f"{type(e).__name__}: {e}"
        return outcome


def summarize(outcomes: Sequence[EntryOutcome]) -> Dict[str, int]:
    """Count outcomes by kind."""
    counts: Dict[str, int] = {}
    for outcome in outcomes:
        counts[outcome.kind.value] = counts.get(outcome.kind.value, 0) + 1
    return counts
