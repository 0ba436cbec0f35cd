"""
Keywarden Reconciliation Planner

Decides, for every declared key, what has to happen to the trust store:

    observed | desired | action
    ---------+---------+-------------------------------
    yes      | absent  | delete
    yes      | present | noop (updating keys is not supported)
    no       | present | create
    no       | absent  | noop

Planning is pure: it reads the observed and desired mappings and returns a
list of actions in declaration order without touching either.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Tuple

from keywarden.keys.records import DesiredEntry, KeyRecord, Presence


CONTENT_SOURCE_EXCLUSIVE = "The properties content and source are mutually exclusive"

SHORT_ID_WARNING = (
    "The id should be a full fingerprint (40 characters) to avoid collision "
    "attacks, see the README for details."
)


class ActionKind(str, Enum):
    """What the reconciler should do with a declared entry."""
    NOOP = "noop"
    DELETE = "delete"
    CREATE = "create"
    VALIDATION_FAILURE = "validation_failure"


class Advisory(str, Enum):
    """Non-fatal notices attached to an entry."""
    SHORT_ID_COLLISION_RISK = "short_id_collision_risk"
    VERIFICATION_UNAVAILABLE = "verification_unavailable"


@dataclass(frozen=True)
class PlannedAction:
    """A planned change for one declared entry."""
    entry: DesiredEntry
    kind: ActionKind
    reason: Optional[str] = None
    advisories: Tuple[Advisory, ...] = field(default_factory=tuple)
    current: Optional[KeyRecord] = None

    @property
    def key_id(self) -> str:
        return self.entry.id


def plan_entry(
    observed: Mapping[str, KeyRecord],
    entry: DesiredEntry,
) -> PlannedAction:
    """Plan the action for a single declared entry."""
    advisories: Tuple[Advisory, ...] = ()
    if not entry.is_full_fingerprint:
        advisories = (Advisory.SHORT_ID_COLLISION_RISK,)

    if entry.content is not None and entry.source is not None:
        return PlannedAction(
            entry=entry,
            kind=ActionKind.VALIDATION_FAILURE,
            reason=CONTENT_SOURCE_EXCLUSIVE,
            advisories=advisories,
        )

    current = observed.get(entry.id)

    if current is not None and entry.presence == Presence.ABSENT:
        kind = ActionKind.DELETE
    elif current is not None and entry.presence == Presence.PRESENT:
        # No updating implemented
        kind = ActionKind.NOOP
    elif current is None and entry.presence == Presence.PRESENT:
        kind = ActionKind.CREATE
    else:
        kind = ActionKind.NOOP

    return PlannedAction(entry=entry, kind=kind, advisories=advisories, current=current)


def plan(
    observed: Mapping[str, KeyRecord],
    desired: Mapping[str, DesiredEntry],
) -> List[PlannedAction]:
    """
    Plan actions converging ``observed`` towards ``desired``.

    Args:
        observed: Trust store keys keyed by fingerprint
        desired: Declared entries keyed by id, in declaration order

    Returns:
        One PlannedAction per declared entry, in declaration order
    """
    return [plan_entry(observed, entry) for entry in desired.values()]
