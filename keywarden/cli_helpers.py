#!/usr/bin/env python3
"""
Keywarden CLI Helpers

Shared formatting utilities for consistent CLI output across all commands.
"""

from contextlib import contextmanager
from typing import Iterable, List, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from keywarden.keys.planner import ActionKind, PlannedAction
from keywarden.keys.records import KeyRecord
from keywarden.keys.reconciler import EntryOutcome, OutcomeKind

# Single shared Console instance for the entire CLI
console = Console()

OUTCOME_STYLES = {
    OutcomeKind.SUCCESS_CREATE: "green",
    OutcomeKind.SUCCESS_DELETE: "green",
    OutcomeKind.NOOP: "white",
    OutcomeKind.FAILURE_VALIDATION: "red",
    OutcomeKind.FAILURE_VERIFICATION: "red",
    OutcomeKind.FAILURE_TOOL: "red",
    OutcomeKind.FAILURE_UNEXPECTED: "red",
}

ACTION_STYLES = {
    ActionKind.CREATE: "green",
    ActionKind.DELETE: "yellow",
    ActionKind.NOOP: "white",
    ActionKind.VALIDATION_FAILURE: "red",
}


def print_success(message: str) -> None:
    """Print a success message with green checkmark."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]⚠[/yellow]  {message}")


def print_error(message: str, fix_hint: str = "") -> None:
    """Print an error message with red X and optional fix hint."""
    console.print(f"[red]✗[/red] {message}")
    if fix_hint:
        console.print(f"  [white]Hint: {fix_hint}[/white]")


def format_command_example(command: str, description: str) -> str:
    """Format a single command example line."""
    return f"  {command:<40s} {description}"


def build_examples_epilog(examples: List[Tuple[str, str]]) -> str:
    """Build a click epilog from (command, description) pairs."""
    lines = ["\b", "Examples:"]
    lines.extend(format_command_example(cmd, desc) for cmd, desc in examples)
    return "\n".join(lines) + "\n"


@contextmanager
def spinner(message: str):
    """
    Context manager for showing a Rich spinner during long operations.

    Args:
        message: Text to display next to the spinner.
    """
    with console.status(f"[bold cyan]{message}...", spinner="dots"):
        yield


def key_table(records: Iterable[KeyRecord]) -> Table:
    """Render trust store keys as a table."""
    table = Table(title="Trust store keys")
    table.add_column("Fingerprint", style="cyan", no_wrap=True)
    table.add_column("Short")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    table.add_column("Expiry")

    for record in records:
        if record.expiry is None:
            expiry = "[white]never[/white]"
        elif record.expired:
            expiry = f"[red]{record.expiry.date().isoformat()} (expired)[/red]"
        else:
            expiry = record.expiry.date().isoformat()
        table.add_row(
            record.fingerprint,
            record.short,
            record.type.value,
            str(record.size),
            record.created.date().isoformat(),
            expiry,
        )
    return table


def plan_table(actions: Sequence[PlannedAction]) -> Table:
    """Render planned actions as a table."""
    table = Table(title="Planned actions")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Action")
    table.add_column("Notes")

    for action in actions:
        style = ACTION_STYLES[action.kind]
        notes = [action.reason] if action.reason else []
        notes.extend(a.value for a in action.advisories)
        table.add_row(
            action.key_id,
            f"[{style}]{action.kind.value}[/{style}]",
            escape("; ".join(notes)),
        )
    return table


def outcome_table(outcomes: Sequence[EntryOutcome]) -> Table:
    """Render reconciliation outcomes as a table."""
    table = Table(title="Reconciliation results")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Outcome")
    table.add_column("Message")

    for outcome in outcomes:
        style = OUTCOME_STYLES[outcome.kind]
        message = outcome.message
        if outcome.advisories:
            message = "; ".join([message] + [a.value for a in outcome.advisories]).strip("; ")
        table.add_row(
            outcome.key_id,
            f"[{style}]{outcome.kind.value}[/{style}]",
            escape(message),
        )
    return table
