# ==============================================================================
# CLI Shared Helpers
# ==============================================================================
"""
Pieces every command module needs: terminal styling, the boxed panel used
by `status`, and construction of a short-lived tracker.
"""

import logging
import re

from eventrelay.factory import create_tracker
from eventrelay.tracker import Tracker
from eventrelay.utils.config import get_settings

BOX_WIDTH = 68
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_ANSI = re.compile(r"\x1b\[[0-9;]*m")


# ==============================================================================
# Styling
# ==============================================================================


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"


class Box:
    H, V = "─", "│"
    TL, TR, BL, BR = "┌", "┐", "└", "┘"
    LT, RT = "├", "┤"


class Icons:
    CHECK = "✓"
    CROSS = "✗"
    CIRCLE = "●"
    ARROW = "→"


C, B, I = Colors, Box, Icons


# ==============================================================================
# Tracker Construction
# ==============================================================================


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or get_settings().log_level).upper(), format=LOG_FORMAT)


def open_tracker() -> Tracker:
    """
    Tracker for a single command invocation.

    No dispatch timer is armed; commands that send call `dispatch()` themselves.
    """
    configure_logging()
    return create_tracker(start=False)


# ==============================================================================
# Boxed Panel
# ==============================================================================


def visible_width(text: str) -> int:
    """Printed width of `text` once ANSI styling is stripped."""
    return len(_ANSI.sub("", text))


def _rule(left: str, right: str, label: str = "", width: int = BOX_WIDTH, centered: bool = False) -> str:
    span = width - 2
    if not label:
        return f"{C.CYAN}{left}{B.H * span}{right}{C.RESET}"
    label = f" {label} "
    lead = (span - len(label)) // 2 if centered else 1
    tail = span - lead - len(label)
    return (
        f"{C.CYAN}{left}{B.H * lead}{C.BOLD}{C.WHITE}{label}{C.RESET}"
        f"{C.CYAN}{B.H * tail}{right}{C.RESET}"
    )


def box_top(title: str, width: int = BOX_WIDTH) -> str:
    return _rule(B.TL, B.TR, title, width, centered=True)


def box_section(title: str, width: int = BOX_WIDTH) -> str:
    return _rule(B.LT, B.RT, title, width)


def box_bottom(width: int = BOX_WIDTH) -> str:
    return _rule(B.BL, B.BR, width=width)


def box_row(content: str = "", width: int = BOX_WIDTH) -> str:
    """Panel row padded to the right border; long content is not wrapped."""
    pad = max(width - 2 - visible_width(content), 0)
    return f"{C.CYAN}{B.V}{C.RESET}{content}{' ' * pad}{C.CYAN}{B.V}{C.RESET}"


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
