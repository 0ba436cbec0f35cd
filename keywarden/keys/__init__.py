"""
Keywarden key management core.

Parses the trust store listing, plans per-key actions against a declared
state and applies them through the installer and remover.
"""

from keywarden.keys.records import (
    DEFAULT_KEYSERVER,
    DesiredEntry,
    KeyRecord,
    KeyType,
    Presence,
)
from keywarden.keys.listing import parse_key_listing
from keywarden.keys.planner import ActionKind, Advisory, PlannedAction, plan
from keywarden.keys.reconciler import EntryOutcome, OutcomeKind, Reconciler

__all__ = [
    "DEFAULT_KEYSERVER",
    "DesiredEntry",
    "KeyRecord",
    "KeyType",
    "Presence",
    "parse_key_listing",
    "ActionKind",
    "Advisory",
    "PlannedAction",
    "plan",
    "EntryOutcome",
    "OutcomeKind",
    "Reconciler",
]
