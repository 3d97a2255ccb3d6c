"""Status segments drawn into the assistant box border.

Top edge: command badge and risk meter, then a context stripe (directory and
git state). Bottom edge: resource glance on the left, user@host centred.
"""

from __future__ import annotations

import enum
import os
import re

from gline.probes import GitStatus, Resources
from gline.text import display_width, truncate
from gline.theme import paint

AGENT_PREFIX = "#"
GIB = 1024**3


class Risk(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_HIGH_RISK = [
    re.compile(p)
    for p in (
        r"\brm\s+-\w*([rR]\w*f|f\w*[rR])",
        r"\brm\s+.*\s/\*?(\s|$)",
        r"\bmkfs(\.\w+)?\b",
        r"\bdd\s+.*\bof=/dev/",
        r">\s*/dev/(sd|nvme|hd)",
        r":\(\)\s*\{",
        r"\bchmod\s+-R\s+777\b",
        r"\b(shutdown|reboot|halt|poweroff)\b",
    )
]
_MEDIUM_RISK = [
    re.compile(p)
    for p in (
        r"^\s*sudo\b",
        r"\brm\b",
        r"\bmv\b",
        r"\bchmod\b",
        r"\bchown\b",
        r"\bkill(all)?\b",
        r"\bgit\s+push\s+.*(--force|-f)\b",
        r"\bgit\s+reset\s+--hard\b",
        r"\bgit\s+clean\b",
    )
]
_RISK_GLYPHS = {Risk.LOW: "●○○", Risk.MEDIUM: "●●○", Risk.HIGH: "●●●"}


def classify_risk(command: str) -> Risk:
    if any(p.search(command) for p in _HIGH_RISK):
        return Risk.HIGH
    if any(p.search(command) for p in _MEDIUM_RISK):
        return Risk.MEDIUM
    return Risk.LOW


def _format_gib(value: int) -> str:
    return f"{value / GIB:.1f}"


class BorderStatus:
    def __init__(self) -> None:
        self.input = ""
        self.user = ""
        self.host = ""
        self.directory = ""
        self.git: GitStatus | None = None
        self.resources: Resources | None = None

    def update_context(self, user: str, host: str, directory: str) -> None:
        self.user = user
        self.host = host
        self.directory = directory

    def update_input(self, text: str) -> None:
        self.input = text

    def update_git(self, status: GitStatus) -> None:
        self.git = status

    def update_resources(self, resources: Resources) -> None:
        self.resources = resources

    # Top edge

    def render_top_left(self) -> str:
        text = self.input.strip()
        if not text:
            return ""
        if text.startswith(AGENT_PREFIX):
            return paint("badge.agent", "🤖")
        risk = classify_risk(text)
        return paint("badge.shell", "$") + paint(f"risk.{risk.value}", _RISK_GLYPHS[risk])

    def top_left_width(self) -> int:
        return display_width(self.render_top_left())

    def _git_segment(self, compact: bool) -> str:
        git = self.git
        if git is None or not git.branch:
            return ""
        if git.conflict:
            style = "git.conflict"
        elif git.clean:
            style = "git.clean"
        else:
            style = "git.dirty"
        if compact:
            return paint(style, f"⎇ {git.branch}")
        marks = []
        if git.staged:
            marks.append(f"+{git.staged}")
        if git.unstaged:
            marks.append(f"~{git.unstaged}")
        if git.ahead:
            marks.append(f"↑{git.ahead}")
        if git.behind:
            marks.append(f"↓{git.behind}")
        if git.conflict:
            marks.append("!")
        suffix = f" {' '.join(marks)}" if marks else ""
        return paint(style, f"⎇ {git.branch}{suffix}")

    def render_top_context(self, available: int) -> str:
        """Context stripe for ``available`` columns, degrading to shorter forms."""
        if available <= 0:
            return ""
        directory = os.path.basename(self.directory.rstrip(os.sep)) or self.directory
        divider = paint("divider", "─")
        for compact in (False, True):
            parts = []
            if directory:
                parts.append(paint("context", f" {directory} "))
            git = self._git_segment(compact)
            if git:
                parts.append(paint("context", " ") + git + paint("context", " "))
            candidate = divider.join(parts)
            if display_width(candidate) <= available:
                return candidate
        git_only = self._git_segment(True)
        if git_only and display_width(git_only) <= available:
            return git_only
        return truncate(paint("context", directory), available)

    # Bottom edge

    def render_bottom_left(self) -> str:
        res = self.resources
        if res is None:
            return ""
        text = f" CPU {res.cpu_percent:.0f}% RAM {_format_gib(res.ram_used)}/{_format_gib(res.ram_total)}G "
        return paint("resources", text)

    def render_bottom_center(self) -> str:
        if not self.user and not self.host:
            return ""
        label = f"{self.user}@{self.host}" if self.user and self.host else self.user or self.host
        return paint("user_host", f" {label} ")
