"""Ctrl+R reverse search over history values."""

from __future__ import annotations

from typing import Sequence


class HistorySearch:
    """Filterable list of history entries with a selection cursor."""

    def __init__(self) -> None:
        self.active = False
        self.query = ""
        self.selected = 0
        self._items: list[str] = []
        self.matches: list[str] = []

    def open(self, items: Sequence[str]) -> None:
        seen: set[str] = set()
        self._items = []
        for item in items:
            if item and item not in seen:
                seen.add(item)
                self._items.append(item)
        self.active = True
        self.query = ""
        self._refilter()

    def close(self) -> None:
        self.active = False
        self.query = ""
        self.matches = []
        self.selected = 0

    def type(self, text: str) -> None:
        self.query += text
        self._refilter()

    def backspace(self) -> None:
        if self.query:
            self.query = self.query[:-1]
            self._refilter()

    def move(self, step: int) -> None:
        if self.matches:
            self.selected = max(0, min(self.selected + step, len(self.matches) - 1))

    def accept(self) -> str | None:
        choice = self.matches[self.selected] if self.matches else None
        self.close()
        return choice

    def _refilter(self) -> None:
        needle = self.query.lower()
        self.matches = [item for item in self._items if needle in item.lower()]
        self.selected = 0
