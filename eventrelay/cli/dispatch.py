# ==============================================================================
# Dispatch Command
# ==============================================================================
"""
Manual dispatch command for the eventrelay CLI.

Runs one dispatch cycle on the background worker and, by default, waits for
it to finish before reporting what was delivered.
"""

from typing import Annotated

import typer

from eventrelay.cli.shared import C, I, open_tracker


def dispatch_run(
    wait: Annotated[
        bool, typer.Option("--wait/--no-wait", help="Wait for the cycle to finish")
    ] = True,
    timeout: Annotated[
        float, typer.Option("--timeout", "-t", help="Seconds to wait for the cycle")
    ] = 60.0,
) -> None:
    """Send queued events to the collection endpoint now."""
    tracker = open_tracker()
    try:
        queued = tracker.queued_event_count()
        if queued == 0:
            print(f"{C.DIM}Queue is empty, nothing to dispatch{C.RESET}")
            return

        if not tracker.dispatch():
            print(f"{C.BRIGHT_YELLOW}{I.CIRCLE} A dispatch cycle is already running{C.RESET}")
            return

        if not wait:
            print(f"{C.BRIGHT_GREEN}{I.CHECK} Dispatch started for {queued:,} queued events{C.RESET}")
            return

        if not tracker.wait_for_dispatch(timeout):
            print(f"{C.BRIGHT_YELLOW}{I.CIRCLE} Dispatch still running after {timeout:g}s{C.RESET}")
            raise typer.Exit(1)

        result = tracker.last_dispatch_result
    finally:
        tracker.close()

    if result is None or result.failed:
        delivered = result.delivered if result else 0
        remaining = result.remaining if result else queued
        print(
            f"{C.BRIGHT_RED}{I.CROSS} Dispatch failed after {delivered:,} events; "
            f"{remaining:,} remain queued{C.RESET}"
        )
        raise typer.Exit(1)

    print(
        f"{C.BRIGHT_GREEN}{I.CHECK} Delivered {result.delivered:,} events in "
        f"{result.requests} requests{C.RESET} ({result.remaining:,} remaining)"
    )
