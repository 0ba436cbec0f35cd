"""
Declared State Loading

Reads a declared state YAML file, validates it against the pydantic models
and turns it into DesiredEntry objects keyed by normalised id, preserving
declaration order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from keywarden.config.models import DeclaredStateFile, KeywardenSettings
from keywarden.keys.errors import ConfigError
from keywarden.keys.records import DesiredEntry, Presence


_NUMERIC_TAGS = {"tag:yaml.org,2002:int", "tag:yaml.org,2002:float"}


class _StateLoader(yaml.SafeLoader):
    """SafeLoader that keeps numeric-looking scalars as strings.

    Key ids such as 12345678 or 0xDEADBEEF must not be read as integers.
    """


_StateLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class DeclaredState:
    """A validated declared state: settings plus ordered desired entries."""
    settings: KeywardenSettings = field(default_factory=KeywardenSettings)
    entries: Dict[str, DesiredEntry] = field(default_factory=dict)
    path: Optional[Path] = None


def _format_pydantic_errors(error: PydanticValidationError) -> List[str]:
    problems = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location}: {err.get('msg', 'invalid value')}")
    return problems


def parse_declared_state(data: Any, source: str = "<memory>") -> DeclaredState:
    """
    Validate already-loaded declared state data.

    Args:
        data: Mapping with optional 'settings' and 'keys' sections
        source: Label used in error messages

    Raises:
        ConfigError: If the data does not match the schema
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(source, ["top level must be a mapping"])

    try:
        model = DeclaredStateFile.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(source, _format_pydantic_errors(e)) from e

    entries: Dict[str, DesiredEntry] = {}
    problems = []
    for key_id, declaration in model.keys.items():
        entry = DesiredEntry(
            id=key_id,
            presence=Presence(declaration.ensure.value),
            content=declaration.content,
            source=declaration.source,
            server=declaration.server,
            options=declaration.options,
        )
        if entry.id in entries:
            problems.append(f"keys.{key_id}: duplicate of an earlier declaration of {entry.id}")
            continue
        entries[entry.id] = entry

    if problems:
        raise ConfigError(source, problems)

    return DeclaredState(settings=model.settings, entries=entries)


def load_declared_state(path: Path) -> DeclaredState:
    """
    Load a declared state YAML file.

    Args:
        path: Path to the file

    Returns:
        DeclaredState with validated settings and entries

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.load(f, Loader=_StateLoader)
    except OSError as e:
        raise ConfigError(str(path), [e.strerror or str(e)]) from e
    except yaml.YAMLError as e:
        raise ConfigError(str(path), [f"YAML parse error: {e}"]) from e

    state = parse_declared_state(data, source=str(path))
    state.path = path
    return state
