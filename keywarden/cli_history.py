#!/usr/bin/env python3
"""
Keywarden CLI - reconcile history command.

Extracted from cli.py to keep the main CLI module manageable.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from keywarden.cli_helpers import console, print_error, print_success


@click.command(
    epilog="""\b
Examples:
  keywarden history                      Show the last 20 outcomes
  keywarden history -n 50 --key EF8D349F Filter by key id
  keywarden history --stats --days 30    Outcome counts for the last 30 days
  keywarden history --verify             Check the log's hash chain
"""
)
@click.option("--limit", "-n", default=20, help="Number of events to show")
@click.option("--key", "key_id", help="Filter by key id")
@click.option("--run", "run_id", help="Filter by run id")
@click.option("--stats", is_flag=True, help="Show outcome statistics instead of events")
@click.option("--days", "-d", default=7, help="Number of days to analyze (with --stats)")
@click.option("--verify", is_flag=True, help="Verify the integrity of the log")
@click.option("--db", "db_path", type=click.Path(dir_okay=False), default=None,
              help="Reconcile log database (default ~/.keywarden/reconcile.db)")
def history(limit: int, key_id: Optional[str], run_id: Optional[str], stats: bool,
            days: int, verify: bool, db_path: Optional[str]):
    """Show recorded reconciliation outcomes."""
    from keywarden.logging.reconcile_log import ReconcileLog

    log = ReconcileLog(db_path=Path(db_path) if db_path else None)
    try:
        if verify:
            result = log.verify_chain()
            if result["valid"]:
                print_success(f"Reconcile log intact ({result['verified']} entries verified)")
                return
            print_error(
                f"Reconcile log tampered: chain broken at entry {result['broken_at']} "
                f"({len(result['errors'])} bad entries)"
            )
            raise SystemExit(1)

        if stats:
            stat_data = log.get_stats(days=days)
            console.print(Panel.fit(
                f"[cyan]Period:[/cyan] Last {days} days\n"
                f"[cyan]Runs:[/cyan] {stat_data['runs']}\n"
                f"[cyan]Total Events:[/cyan] {stat_data['total_events']}",
                title="Reconcile Statistics"
            ))
            if stat_data["by_outcome"]:
                table = Table(title="Outcomes")
                table.add_column("Outcome", style="cyan")
                table.add_column("Count", justify="right")
                for outcome, count in stat_data["by_outcome"].items():
                    table.add_row(outcome, str(count))
                console.print(table)
            return

        events = log.get_recent_events(
            limit=limit,
            key_id=key_id.upper() if key_id else None,
            run_id=run_id,
        )
    finally:
        log.close()

    if not events:
        console.print("[white]No reconcile events recorded.[/white]")
        return

    table = Table(title="Recent Reconcile Events")
    table.add_column("Time", style="white")
    table.add_column("Run")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Action")
    table.add_column("Outcome")
    table.add_column("Message")

    for event in events:
        outcome = event["outcome"]
        style = "red" if outcome.startswith("failure_") else "green"
        message = event.get("message") or ""
        if event.get("advisories_json"):
            message = "; ".join([message] + json.loads(event["advisories_json"])).strip("; ")
        table.add_row(
            event["timestamp"],
            event["run_id"],
            event["key_id"],
            event["action"],
            f"[{style}]{outcome}[/{style}]",
            escape(message),
        )
    console.print(table)
