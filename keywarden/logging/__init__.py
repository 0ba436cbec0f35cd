"""Keywarden audit logging."""

from keywarden.logging.reconcile_log import LogRedactor, ReconcileEvent, ReconcileLog

__all__ = ["LogRedactor", "ReconcileEvent", "ReconcileLog"]
