"""Keywarden configuration module."""

from .loader import DeclaredState, load_declared_state, parse_declared_state
from .models import DeclaredStateFile, KeyDeclaration, KeywardenSettings

__all__ = [
    "DeclaredState", "load_declared_state", "parse_declared_state",
    "DeclaredStateFile", "KeyDeclaration", "KeywardenSettings",
]
