# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
Command implementations for the eventrelay CLI, one module per command group:

- status.py: tracker state at a glance
- queue.py: inspect or purge queued events
- dispatch.py: run a dispatch cycle by hand
- track.py: queue one event from the shell
- config.py: effective settings and the opt-out preference
"""

from eventrelay.cli.shared import (
    BOX_WIDTH,
    B,
    Box,
    C,
    Colors,
    I,
    Icons,
    box_bottom,
    box_row,
    box_section,
    box_top,
    configure_logging,
    open_tracker,
    visible_width,
)

__all__ = [
    "BOX_WIDTH",
    "B",
    "Box",
    "C",
    "Colors",
    "I",
    "Icons",
    "box_bottom",
    "box_row",
    "box_section",
    "box_top",
    "configure_logging",
    "open_tracker",
    "visible_width",
]
