"""Tab completion: provider protocol and cycling state."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol, Sequence

from gline.buffer import LineBuffer


@dataclass(frozen=True)
class Candidate:
    value: str
    description: str = ""


class CompletionProvider(Protocol):
    def get_completions(self, word: str, preceding_args: Sequence[str]) -> list[Candidate]:
        ...


def split_for_completion(text: str, cursor: int) -> tuple[str, list[str], int]:
    """Return the word under the cursor, the words before it and its start index."""
    before = text[:cursor]
    start = len(before)
    while start > 0 and not before[start - 1].isspace():
        start -= 1
    return before[start:], before[:start].split(), start


class CompletionState:
    """Candidates offered by the last Tab press and the current selection."""

    def __init__(self) -> None:
        self.candidates: list[Candidate] = []
        self.selected = -1
        self._word_start = 0
        self._original_word = ""
        self._tail = ""

    @property
    def active(self) -> bool:
        return bool(self.candidates)

    def start(self, buffer: LineBuffer, provider: CompletionProvider) -> None:
        word, args, start = split_for_completion(buffer.value, buffer.cursor)
        candidates = provider.get_completions(word, args)
        self._word_start = start
        self._original_word = word
        self._tail = buffer.value[buffer.cursor :]
        if not candidates:
            self.reset()
            return
        if len(candidates) == 1:
            self._apply(buffer, candidates[0].value)
            self.reset()
            return
        self.candidates = list(candidates)
        self.selected = 0
        self._apply(buffer, self.candidates[0].value)

    def cycle(self, buffer: LineBuffer, step: int = 1) -> None:
        if not self.active:
            return
        self.selected = (self.selected + step) % len(self.candidates)
        self._apply(buffer, self.candidates[self.selected].value)

    def cancel(self, buffer: LineBuffer) -> None:
        if self.active:
            self._apply(buffer, self._original_word)
        self.reset()

    def reset(self) -> None:
        self.candidates = []
        self.selected = -1

    def current(self) -> Candidate | None:
        if 0 <= self.selected < len(self.candidates):
            return self.candidates[self.selected]
        return None

    def _apply(self, buffer: LineBuffer, word: str) -> None:
        head = buffer.value[: self._word_start]
        buffer.set_value(head + word + self._tail)
        buffer.set_cursor(len(head) + len(word))


class PathCompletionProvider:
    """Completes the word under the cursor against the filesystem."""

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd

    def get_completions(self, word: str, preceding_args: Sequence[str]) -> list[Candidate]:
        base = os.path.expanduser(word)
        directory, prefix = os.path.split(base)
        root = os.path.join(self._cwd or os.getcwd(), directory) if not os.path.isabs(directory) else directory
        try:
            names = sorted(os.listdir(root or "."))
        except OSError:
            return []
        head = word[: len(word) - len(prefix)]
        candidates = []
        for name in names:
            if not name.startswith(prefix) or (name.startswith(".") and not prefix.startswith(".")):
                continue
            suffix = "/" if os.path.isdir(os.path.join(root, name)) else ""
            candidates.append(Candidate(head + name + suffix))
        return candidates
