# ==============================================================================
# Status Command
# ==============================================================================
"""
Status command for the eventrelay CLI.

Displays queue depth, identity and dispatch configuration in either
formatted box output or JSON format for programmatic consumption.
"""

import json as json_module
from typing import Annotated, Any

import psycopg2
import redis
import typer

from eventrelay.cli.shared import (
    C,
    I,
    box_bottom,
    box_row,
    box_section,
    box_top,
    open_tracker,
)
from eventrelay.utils.config import get_settings


# ==============================================================================
# Data Collection
# ==============================================================================


def _collect_status() -> dict[str, Any]:
    """Collect tracker status data."""
    settings = get_settings()
    tracker = open_tracker()
    try:
        return {
            "endpoint": settings.tracker.tracking_url,
            "site_id": settings.tracker.site_id,
            "bulk_enabled": settings.tracker.authentication_token is not None,
            "storage_backend": settings.storage.backend,
            "visitor_id": tracker.visitor_id,
            "opt_out": tracker.opt_out,
            "sample_rate": tracker.sample_rate,
            "debug": tracker.debug,
            "queue": {
                "queued": tracker.queued_event_count(),
                "max_queued_events": tracker.max_number_of_queued_events,
            },
            "dispatch": {
                "interval": tracker.dispatch_interval,
                "events_per_request": tracker.events_per_request,
                "drain_policy": settings.dispatch.drain_policy,
            },
        }
    finally:
        tracker.close()


def _describe_interval(interval: float) -> str:
    if interval < 0:
        return "manual only"
    if interval == 0:
        return "after every event"
    return f"every {interval:g}s"


# ==============================================================================
# Command
# ==============================================================================


def show_status(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output status as JSON")
    ] = False,
) -> None:
    """Show queue depth, identity and dispatch settings."""
    try:
        data = _collect_status()
    except (redis.exceptions.RedisError, psycopg2.Error) as e:
        if json_output:
            print(json_module.dumps({"error": str(e)}))
        else:
            print(f"{C.BRIGHT_RED}{I.CROSS} Storage unavailable: {e}{C.RESET}")
        raise typer.Exit(1)

    if json_output:
        print(json_module.dumps(data, indent=2))
        return

    queue = data["queue"]
    dispatch = data["dispatch"]
    fill = queue["queued"] / queue["max_queued_events"] if queue["max_queued_events"] else 1.0
    queue_color = C.BRIGHT_RED if fill >= 1.0 else C.BRIGHT_YELLOW if fill >= 0.8 else C.BRIGHT_GREEN

    if data["opt_out"]:
        tracking = f"{C.BRIGHT_RED}{I.CROSS} opted out{C.RESET}"
    else:
        tracking = f"{C.BRIGHT_GREEN}{I.CHECK} enabled{C.RESET} ({data['sample_rate']}% sampled)"

    print()
    print(box_top("eventrelay status"))
    print(box_row())
    print(box_row(f"  Endpoint:    {C.WHITE}{data['endpoint']}{C.RESET}"))
    print(box_row(f"  Site:        {C.WHITE}{data['site_id']}{C.RESET}"))
    print(box_row(f"  Visitor:     {C.WHITE}{data['visitor_id']}{C.RESET}"))
    print(box_row(f"  Tracking:    {tracking}"))
    if data["debug"]:
        print(box_row(f"  {C.BRIGHT_YELLOW}{I.CIRCLE} Debug mode: events are logged, not sent{C.RESET}"))
    print(box_row())
    print(box_section("Queue"))
    print(
        box_row(
            f"  Queued:      {queue_color}{queue['queued']:,}{C.RESET}"
            f" / {queue['max_queued_events']:,} ({data['storage_backend']})"
        )
    )
    print(box_row())
    print(box_section("Dispatch"))
    print(box_row(f"  Schedule:    {C.WHITE}{_describe_interval(dispatch['interval'])}{C.RESET}"))
    print(
        box_row(
            f"  Batching:    {C.WHITE}{dispatch['events_per_request']} per request{C.RESET}"
            f" {I.ARROW} {'bulk' if data['bulk_enabled'] else 'single requests'}"
        )
    )
    print(box_row(f"  Policy:      {C.WHITE}{dispatch['drain_policy']}{C.RESET}"))
    print(box_row())
    print(box_bottom())
    print()
