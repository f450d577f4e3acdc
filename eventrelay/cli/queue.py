# ==============================================================================
# Queue Commands
# ==============================================================================
"""
Queue inspection and maintenance commands for the eventrelay CLI.

Commands:
    queue show   List the oldest queued events
    queue purge  Delete every queued event
"""

import json as _json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from eventrelay.cli.shared import C, I, open_tracker


# ==============================================================================
# Commands
# ==============================================================================


def queue_show(
    limit: Annotated[
        int, typer.Option("--limit", "-n", min=1, help="Number of events to show")
    ] = 20,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output events as JSON")
    ] = False,
) -> None:
    """Show the oldest queued events without removing them."""
    tracker = open_tracker()
    try:
        records = tracker.peek_queued_events(limit)
        total = tracker.queued_event_count()
    finally:
        tracker.close()

    if json_output:
        print(
            _json.dumps(
                {
                    "total": total,
                    "events": [
                        {"sequence": r.sequence, **r.event.to_store_record()} for r in records
                    ],
                }
            )
        )
        return

    if not records:
        print(f"{C.DIM}Queue is empty{C.RESET}")
        return

    console = Console()
    table = Table(
        title=f"Queued events ({len(records)} of {total})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Seq", justify="right")
    table.add_column("Time (UTC)")
    table.add_column("Kind")
    table.add_column("Session")
    table.add_column("Details")

    for record in records:
        event = record.event
        details = ", ".join(f"{k}={v}" for k, v in event.fields.items())
        session = event.session_id[:8] + ("*" if event.new_session else "")
        table.add_row(
            str(record.sequence),
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.kind.value,
            session,
            details,
        )

    print()
    console.print(table)
    print(f"  {C.DIM}* first event of a new session{C.RESET}")
    print()


def queue_purge(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete all queued events without sending them.

    Examples:
        eventrelay queue purge       # With confirmation prompt
        eventrelay queue purge -y    # Skip confirmation
    """
    if not confirm:
        typer.confirm("Delete all queued events?", abort=True)

    tracker = open_tracker()
    try:
        removed = tracker.delete_queued_events()
    finally:
        tracker.close()

    print(f"{C.BRIGHT_GREEN}{I.CHECK} Deleted {removed:,} queued events{C.RESET}")
