# ==============================================================================
# eventrelay CLI
# ==============================================================================
"""
Command-line interface for the eventrelay tracker.

Usage:
    eventrelay --help
    eventrelay status
    eventrelay config show
    eventrelay opt-out on
    eventrelay track view settings register
    eventrelay track event video play --label intro
    eventrelay queue show --limit 10
    eventrelay queue purge -y
    eventrelay dispatch
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="eventrelay",
    help="Buffered analytics event tracker CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

track_app = typer.Typer(
    help="Queue tracking events",
    no_args_is_help=True,
)
app.add_typer(track_app, name="track")

# Register track commands from cli.track module
from eventrelay.cli.track import track_event, track_exception, track_goal, track_search, track_view

track_app.command("view")(track_view)
track_app.command("event")(track_event)
track_app.command("exception")(track_exception)
track_app.command("goal")(track_goal)
track_app.command("search")(track_search)

queue_app = typer.Typer(
    help="Queue inspection and maintenance",
    no_args_is_help=True,
)
app.add_typer(queue_app, name="queue")

# Register queue commands from cli.queue module
from eventrelay.cli.queue import queue_purge, queue_show

queue_app.command("show")(queue_show)
queue_app.command("purge")(queue_purge)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from eventrelay.cli.config import config_show, opt_out

config_app.command("show")(config_show)
app.command("opt-out")(opt_out)

# Dispatch command is imported from eventrelay.cli.dispatch
from eventrelay.cli.dispatch import dispatch_run

app.command("dispatch")(dispatch_run)

# Status command is imported from eventrelay.cli.status
from eventrelay.cli.status import show_status

app.command("status")(show_status)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
