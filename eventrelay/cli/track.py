# ==============================================================================
# Track Commands
# ==============================================================================
"""
Commands that queue a single event from the command line.

Useful for smoke-testing an analytics server:

    eventrelay track view settings register
    eventrelay track event video play --label intro
    eventrelay dispatch
"""

from typing import Annotated, Optional

import typer

from eventrelay.cli.shared import C, I, open_tracker
from eventrelay.tracker import Tracker


def _report(kind: str, queued: bool, tracker: Tracker) -> None:
    if queued:
        print(
            f"{C.BRIGHT_GREEN}{I.CHECK} Queued {kind}{C.RESET} "
            f"({tracker.queued_event_count():,} events waiting)"
        )
        return

    reason = "opted out" if tracker.opt_out else "sampled out or queue full"
    print(f"{C.BRIGHT_YELLOW}{I.CROSS} {kind.capitalize()} not queued ({reason}){C.RESET}")
    raise typer.Exit(1)


# ==============================================================================
# Commands
# ==============================================================================


def track_view(
    screen: Annotated[list[str], typer.Argument(help="Screen name segments")],
) -> None:
    """Queue a screen view (segments form a hierarchical name)."""
    tracker = open_tracker()
    try:
        _report("screen view", tracker.send_view(screen), tracker)
    finally:
        tracker.close()


def track_event(
    category: Annotated[str, typer.Argument(help="Event category")],
    action: Annotated[str, typer.Argument(help="Event action")],
    label: Annotated[Optional[str], typer.Option("--label", "-l", help="Event label")] = None,
    value: Annotated[Optional[float], typer.Option("--value", "-v", help="Numeric event value")] = None,
) -> None:
    """Queue an event."""
    tracker = open_tracker()
    try:
        _report("event", tracker.send_event(category, action, label=label, value=value), tracker)
    finally:
        tracker.close()


def track_exception(
    description: Annotated[str, typer.Argument(help="Exception description")],
    fatal: Annotated[bool, typer.Option("--fatal", help="Mark the exception as fatal")] = False,
) -> None:
    """Queue an exception report."""
    tracker = open_tracker()
    try:
        _report("exception", tracker.send_exception(description, is_fatal=fatal), tracker)
    finally:
        tracker.close()


def track_goal(
    goal_id: Annotated[str, typer.Argument(help="Goal id")],
    revenue: Annotated[int, typer.Option("--revenue", "-r", help="Goal revenue")] = 0,
) -> None:
    """Queue a goal conversion."""
    tracker = open_tracker()
    try:
        _report("goal", tracker.send_goal(goal_id, revenue=revenue), tracker)
    finally:
        tracker.close()


def track_search(
    keyword: Annotated[str, typer.Argument(help="Search keyword")],
    category: Annotated[
        Optional[str], typer.Option("--category", "-c", help="Search category")
    ] = None,
    hits: Annotated[
        Optional[int], typer.Option("--hits", help="Number of search results")
    ] = None,
) -> None:
    """Queue a site search."""
    tracker = open_tracker()
    try:
        _report(
            "search",
            tracker.send_search(keyword, category=category, number_of_hits=hits),
            tracker,
        )
    finally:
        tracker.close()
