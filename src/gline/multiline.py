"""Accumulate entered lines until they form one complete command."""

from __future__ import annotations

import logging

from gline.log_utils import log_event
from gline.syntax import CONTINUATION_HINT, ShellSyntaxOracle, SyntaxOracle

logger = logging.getLogger(__name__)


class MultilineAssembler:
    """Collects lines and asks a syntax oracle whether they are complete.

    The oracle decides completeness; the assembler only keeps the pending
    lines. An oracle failure counts as "incomplete" so no input is lost.
    """

    def __init__(self, oracle: SyntaxOracle | None = None) -> None:
        self._oracle: SyntaxOracle = oracle or ShellSyntaxOracle()
        self._lines: list[str] = []

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def is_open(self) -> bool:
        """True while an incomplete command is waiting for more lines."""
        return bool(self._lines)

    def add_line(self, line: str) -> tuple[bool, str]:
        self._lines.append(line)
        pending = "\n".join(self._lines)
        try:
            complete, hint = self._oracle.is_complete(pending)
        except Exception as exc:  # noqa: BLE001
            log_event(logger, "multiline.oracle_failed", level=logging.WARNING, error=str(exc))
            return False, CONTINUATION_HINT
        if complete:
            return True, ""
        return False, hint or CONTINUATION_HINT

    def get_complete_command(self) -> str:
        command = "\n".join(self._lines)
        self._lines.clear()
        if not command.strip():
            return ""
        return command

    def reset(self) -> None:
        self._lines.clear()
