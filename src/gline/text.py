"""Display-width aware text helpers that skip embedded ANSI escapes."""

from __future__ import annotations

from typing import Iterator

from prompt_toolkit.utils import get_cwidth  # type: ignore

ESC = "\x1b"


def _segments(text: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(chunk, is_escape)`` pairs; escapes run from ESC to the next letter."""
    i = 0
    while i < len(text):
        if text[i] == ESC:
            j = i + 1
            while j < len(text) and not text[j].isalpha():
                j += 1
            yield text[i : j + 1], True
            i = j + 1
        else:
            yield text[i], False
            i += 1


def display_width(text: str) -> int:
    return sum(get_cwidth(chunk) for chunk, escape in _segments(text) if not escape)


def strip_ansi(text: str) -> str:
    return "".join(chunk for chunk, escape in _segments(text) if not escape)


def truncate(text: str, width: int) -> str:
    """Cut ``text`` to at most ``width`` columns without splitting a character or an escape."""
    if width <= 0:
        return ""
    out: list[str] = []
    used = 0
    full = False
    for chunk, escape in _segments(text):
        if escape:
            # Keep every escape so styles opened before the cut are still reset.
            out.append(chunk)
            continue
        if full:
            continue
        w = get_cwidth(chunk)
        if used + w > width:
            full = True
            continue
        out.append(chunk)
        used += w
    return "".join(out)


def pad_to_width(text: str, width: int) -> str:
    padding = max(0, width - display_width(text))
    return f"{text}{' ' * padding}" if padding else text


def _hard_split(word: str, width: int) -> list[str]:
    pieces: list[str] = []
    current: list[str] = []
    used = 0
    for chunk, escape in _segments(word):
        if escape:
            current.append(chunk)
            continue
        w = get_cwidth(chunk)
        if used + w > width and used > 0:
            pieces.append("".join(current))
            current = []
            used = 0
        current.append(chunk)
        used += w
    pieces.append("".join(current))
    return pieces


def _wrap_line(line: str, width: int) -> list[str]:
    if display_width(line) <= width:
        return [line]
    lines: list[str] = []
    current: str | None = None
    current_width = 0
    for word in line.split(" "):
        word_width = display_width(word)
        if current is not None and current_width + 1 + word_width <= width:
            current += " " + word
            current_width += 1 + word_width
            continue
        if current is not None:
            lines.append(current)
        pieces = _hard_split(word, width) if word_width > width else [word]
        lines.extend(pieces[:-1])
        current = pieces[-1]
        current_width = display_width(current)
    lines.append(current or "")
    return lines


def wordwrap(text: str, width: int) -> str:
    """Greedy word wrap by display width. Lines that already fit are left as is."""
    if width <= 0:
        return text
    wrapped: list[str] = []
    for line in text.split("\n"):
        wrapped.extend(_wrap_line(line, width))
    return "\n".join(wrapped)
