"""Named styles for frame rendering, emitted as ANSI spans via rich."""

from __future__ import annotations

from rich.color import ColorSystem
from rich.style import Style

THEME: dict[str, Style] = {
    "border": Style(color="color(62)"),
    "divider": Style(color="color(238)"),
    "prompt": Style(bold=True),
    "ghost": Style(color="color(240)"),
    "coach_tip": Style(color="color(240)"),
    "error": Style(color="color(9)"),
    "idle_summary": Style(color="color(75)"),
    "idle_hint": Style(color="color(241)"),
    "selected": Style(reverse=True),
    "cursor": Style(reverse=True),
    "ghost_cursor": Style(color="color(240)", reverse=True),
    "description": Style(color="color(245)"),
    "search_query": Style(color="color(240)"),
    "badge.agent": Style(color="color(213)", bold=True),
    "badge.shell": Style(color="color(39)", bold=True),
    "risk.low": Style(color="color(10)"),
    "risk.medium": Style(color="color(11)"),
    "risk.high": Style(color="color(9)", bold=True),
    "context": Style(color="color(110)"),
    "git.clean": Style(color="color(10)"),
    "git.dirty": Style(color="color(214)"),
    "git.conflict": Style(color="color(9)", bold=True),
    "resources": Style(color="color(244)"),
    "user_host": Style(color="color(244)"),
    "indicator.idle": Style(color="color(240)"),
    "indicator.in_flight": Style(color="color(220)"),
    "indicator.in_flight_dim": Style(color="color(136)"),
    "indicator.success": Style(color="color(10)"),
    "indicator.error": Style(color="color(9)"),
}


def paint(name: str, text: str) -> str:
    """Wrap ``text`` in the ANSI codes of style ``name``."""
    if not text:
        return ""
    return THEME[name].render(text, color_system=ColorSystem.EIGHT_BIT)
