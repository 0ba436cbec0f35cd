#!/usr/bin/env python3
"""
Keywarden CLI - declarative APT trust-store keys.

Usage:
    keywarden list [--json]
    keywarden plan STATE_FILE
    keywarden apply STATE_FILE [--noop]
    keywarden history [--limit N] [--stats] [--verify]
"""

import json
import logging
from pathlib import Path

import click

from keywarden import __version__
from keywarden.cli_helpers import (
    build_examples_epilog,
    console,
    key_table,
    outcome_table,
    plan_table,
    print_error,
    print_success,
    print_warning,
    spinner,
)
from keywarden.keys.errors import ConfigError, ToolInvocationError


def _load_state(state_file: str):
    from keywarden.config import load_declared_state

    try:
        return load_declared_state(Path(state_file))
    except ConfigError as e:
        print_error(str(e), "Fix the declared state file and try again")
        raise SystemExit(2)


@click.group()
@click.version_option(version=__version__, prog_name="keywarden")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
def main(verbose: int):
    """Keywarden - manage APT trust-store keys declaratively."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command("list",
    epilog=build_examples_epilog([
        ("keywarden list", "Show keys in the APT trust store"),
        ("keywarden list --json", "Machine-readable output"),
    ])
)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.option("--apt-key", "apt_key_command", default="apt-key", show_default=True,
              help="apt-key command to query")
def list_keys(as_json: bool, apt_key_command: str):
    """List the keys currently in the trust store."""
    from keywarden.keys.listing import parse_key_listing
    from keywarden.keys.tools import AptKeyTool

    try:
        records = parse_key_listing(AptKeyTool(apt_key_command).list_keys())
    except ToolInvocationError as e:
        print_error(str(e), "Is apt installed and are you running as root?")
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records.values()], indent=2))
        return

    if not records:
        console.print("[white]No keys in the trust store.[/white]")
        return
    console.print(key_table(records.values()))


@main.command(
    epilog=build_examples_epilog([
        ("keywarden plan keys.yaml", "Show what apply would change"),
    ])
)
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
def plan(state_file: str):
    """Show the actions needed to converge the trust store."""
    from keywarden.keys.reconciler import Reconciler

    state = _load_state(state_file)
    reconciler = Reconciler.from_settings(state.settings, noop=True, reporters=[])

    try:
        with spinner("Reading trust store"):
            actions = reconciler.plan(state.entries)
    except ToolInvocationError as e:
        print_error(str(e), "Is apt installed and are you running as root?")
        raise SystemExit(1)

    if not actions:
        console.print("[white]No keys declared.[/white]")
        return
    console.print(plan_table(actions))


@main.command(
    epilog=build_examples_epilog([
        ("keywarden apply keys.yaml", "Converge the trust store"),
        ("keywarden apply keys.yaml --noop", "Log changes without making them"),
    ])
)
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--noop", is_flag=True, help="Report changes without modifying the trust store")
@click.option("--no-log", is_flag=True, help="Do not record outcomes in the reconcile log")
def apply(state_file: str, noop: bool, no_log: bool):
    """Add and remove keys so the trust store matches STATE_FILE."""
    from keywarden.keys.reconciler import LoggingReporter, Reconciler, summarize

    state = _load_state(state_file)

    reporters = [LoggingReporter()]
    audit = None
    if state.settings.log_enabled and not no_log and not noop:
        from keywarden.logging.reconcile_log import ReconcileLog
        audit = ReconcileLog(db_path=state.settings.log_db)
        reporters.append(audit)

    reconciler = Reconciler.from_settings(state.settings, noop=noop, reporters=reporters)

    if noop:
        print_warning("No-op mode: the trust store will not be modified")

    try:
        with spinner("Reconciling trust store"):
            outcomes = reconciler.set(state.entries)
    except ToolInvocationError as e:
        print_error(str(e), "Is apt installed and are you running as root?")
        raise SystemExit(1)
    finally:
        if audit is not None:
            audit.close()

    if outcomes:
        console.print(outcome_table(outcomes))

    counts = summarize(outcomes)
    failures = [o for o in outcomes if o.failed]
    if failures:
        print_error(f"{len(failures)} of {len(outcomes)} key(s) failed")
        raise SystemExit(1)

    changed = counts.get("success_create", 0) + counts.get("success_delete", 0)
    print_success(f"{len(outcomes)} key(s) checked, {changed} changed")


def _register_groups():
    from keywarden.cli_history import history
    main.add_command(history)


_register_groups()


if __name__ == "__main__":
    main()
