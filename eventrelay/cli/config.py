# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the eventrelay CLI.

Commands for showing the effective configuration and for changing the
persisted opt-out preference.
"""

import json
from enum import Enum
from typing import Annotated, Optional

import typer

from eventrelay.cli.shared import C, I, open_tracker
from eventrelay.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()

    if json_output:
        config = {
            "tracker": {
                "tracking_url": settings.tracker.tracking_url,
                "site_id": settings.tracker.site_id,
                "authentication_token": settings.tracker.authentication_token,
                "is_prefixing_enabled": settings.tracker.is_prefixing_enabled,
                "debug": settings.tracker.debug,
                "sample_rate": settings.tracker.sample_rate,
                "include_location_information": settings.tracker.include_location_information,
                "session_timeout": settings.tracker.session_timeout,
                "session_start_on_launch": settings.tracker.session_start_on_launch,
                "app_name": settings.tracker.app_name,
                "app_version": settings.tracker.app_version,
                "platform": settings.tracker.platform,
                "bulk_encoding": settings.tracker.bulk_encoding,
            },
            "dispatch": settings.dispatch.model_dump(),
            "storage": settings.storage.model_dump(),
            "postgresql": {
                "host": settings.postgres.host,
                "port": settings.postgres.port,
                "database": settings.postgres.database,
                "schema": settings.postgres.schema_name,
                "user": settings.postgres.user,
                "password": settings.postgres.password,
                "sslmode": settings.postgres.sslmode,
            },
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": settings.valkey.password,
            },
            "log_level": settings.log_level,
        }
        print(json.dumps(config, indent=2))
        return

    token = "configured (bulk requests)" if settings.tracker.authentication_token else "not set"
    batches = settings.dispatch.max_batches_per_cycle
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Tracker{C.RESET}")
    print(f"  Endpoint:   {C.WHITE}{settings.tracker.tracking_url}{C.RESET}")
    print(f"  Site id:    {C.WHITE}{settings.tracker.site_id}{C.RESET}")
    print(f"  Token:      {C.WHITE}{token}{C.RESET}")
    print(f"  App:        {C.WHITE}{settings.tracker.app_name} {settings.tracker.app_version}{C.RESET}")
    print(f"  Sampling:   {C.WHITE}{settings.tracker.sample_rate}%{C.RESET}")
    print(f"  Session:    {C.WHITE}{settings.tracker.session_timeout:g}s timeout{C.RESET}")
    print(f"  Encoding:   {C.WHITE}{settings.tracker.bulk_encoding}{C.RESET}")
    print()

    print(f"{C.CYAN}Dispatch{C.RESET}")
    print(f"  Interval:   {C.WHITE}{settings.dispatch.interval:g}s{C.RESET}")
    print(f"  Queue cap:  {C.WHITE}{settings.dispatch.max_queued_events:,} events{C.RESET}")
    print(f"  Batch:      {C.WHITE}{settings.dispatch.events_per_request} per request{C.RESET}")
    print(
        f"  Policy:     {C.WHITE}{settings.dispatch.drain_policy}"
        f"{f' (max {batches} batches)' if batches else ''}{C.RESET}"
    )
    print()

    print(f"{C.CYAN}Storage{C.RESET}")
    print(f"  Backend:    {C.WHITE}{settings.storage.backend}{C.RESET}")
    print(f"  Prefix:     {C.WHITE}{settings.storage.key_prefix}{C.RESET}")
    print(f"  Valkey:     {C.WHITE}{settings.valkey.host}:{settings.valkey.port}{C.RESET}")
    if settings.storage.backend == "postgresql":
        print(
            f"  PostgreSQL: {C.WHITE}{settings.postgres.host}:{settings.postgres.port}/"
            f"{settings.postgres.database} ({settings.postgres.schema_name}){C.RESET}"
        )
    print()


class OptOutState(str, Enum):
    ON = "on"
    OFF = "off"


def opt_out(
    state: Annotated[
        Optional[OptOutState],
        typer.Argument(help="on to stop tracking, off to resume; omit to show"),
    ] = None,
) -> None:
    """Show or change the persisted opt-out preference."""
    tracker = open_tracker()
    try:
        if state is not None:
            tracker.opt_out = state is OptOutState.ON
        current = tracker.opt_out
    finally:
        tracker.close()

    if current:
        print(f"{C.BRIGHT_YELLOW}{I.CROSS} Opted out: events are not queued{C.RESET}")
    else:
        print(f"{C.BRIGHT_GREEN}{I.CHECK} Tracking enabled{C.RESET}")
