"""Single-line edit buffer with history, ghost suggestions and a kill ring."""

from __future__ import annotations

from typing import Callable, Iterable

from prompt_toolkit.keys import Keys  # type: ignore

KILL_RING_MAX = 30

_FORWARD = "forward"
_BACKWARD = "backward"


def meta_key(key: Keys | str) -> str:
    """Key name for Alt+``key``, which terminals send as Escape followed by ``key``."""
    value = key.value if isinstance(key, Keys) else key
    return f"{Keys.Escape.value} {value}"


# Keys whose chained use merges into the newest kill ring entry.
KILL_KEYS = frozenset(
    {
        Keys.ControlK.value,
        Keys.ControlU.value,
        Keys.ControlW.value,
        meta_key("d"),
        meta_key(Keys.Delete),
        meta_key(Keys.Backspace),
    }
)
YANK_KEYS = frozenset({Keys.ControlY.value, meta_key("y")})
INSERT_LAST_ARG_KEY = meta_key(".")


def _sanitize(text: str) -> str:
    # The buffer holds a single line; pasted tabs and newlines collapse to spaces.
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ").replace("\t", " ")


def _word_spans(text: str) -> list[tuple[int, int]]:
    spans = []
    start = None
    for i, ch in enumerate(text):
        if ch.isspace():
            if start is not None:
                spans.append((start, i))
                start = None
        elif start is None:
            start = i
    if start is not None:
        spans.append((start, len(text)))
    return spans


class LineBuffer:
    """Text and cursor for the line being edited.

    ``values[0]`` is the line the user is writing; the remaining entries are
    history values reachable with Up/Down. Editing a recalled history value
    copies it into slot 0.

    Consecutive kills in the same direction grow the newest kill ring entry:
    forward kills append to it and backward kills prepend. Alt+Y right after a
    yank replaces the yanked text with the next older entry.
    """

    def __init__(self, history_values: Iterable[str] = ()) -> None:
        self._values: list[str] = ["", *(_sanitize(v) for v in history_values)]
        self._index = 0
        self._pos = 0
        self._suggestions: list[str] = []
        self._matched: list[str] = []
        self._suggestion_index = 0
        self.suppressed_until_input = False
        self._kill_ring: list[str] = []
        self._kill_direction: str | None = None
        self._yank_span: tuple[int, int] | None = None
        self._yank_index = 0
        self._last_arg_span: tuple[int, int] | None = None
        self._last_arg_index = 0

        self._bindings: dict[str, Callable[[], None]] = {
            Keys.Left.value: self.cursor_left,
            Keys.ControlB.value: self.cursor_left,
            Keys.Right.value: self.cursor_right,
            Keys.ControlF.value: self.cursor_right,
            Keys.Home.value: self.cursor_start,
            Keys.ControlA.value: self.cursor_start,
            Keys.End.value: self.cursor_end,
            Keys.ControlE.value: self.cursor_end,
            Keys.ControlLeft.value: self.word_backward,
            meta_key("b"): self.word_backward,
            Keys.ControlRight.value: self.word_forward,
            meta_key("f"): self.word_forward,
            Keys.Backspace.value: self.delete_backward,
            Keys.Delete.value: self.delete_forward,
            Keys.ControlK.value: self.kill_to_end,
            Keys.ControlU.value: self.kill_to_start,
            Keys.ControlW.value: self.kill_word_backward,
            meta_key(Keys.Backspace): self.kill_word_backward,
            meta_key("d"): self.kill_word_forward,
            meta_key(Keys.Delete): self.kill_word_forward,
            Keys.ControlY.value: self.yank,
            meta_key("y"): self.yank_pop,
            Keys.ControlT.value: self.swap_characters,
            meta_key("t"): self.swap_words,
            INSERT_LAST_ARG_KEY: self.insert_last_arg,
            Keys.Up.value: self.history_previous,
            Keys.ControlP.value: self.history_previous,
            Keys.Down.value: self.history_next,
            Keys.ControlN.value: self.history_next,
        }

    # Value and cursor

    @property
    def value(self) -> str:
        return self._values[self._index]

    @property
    def cursor(self) -> int:
        return self._pos

    def set_value(self, text: str) -> None:
        self._values[0] = _sanitize(text)
        self._index = 0
        self._pos = len(self._values[0])
        self._reset_chains()
        self._update_suggestions()

    def set_cursor(self, pos: int) -> None:
        self._pos = max(0, min(pos, len(self.value)))

    def _write(self, text: str, pos: int) -> None:
        self._values[0] = text
        self._index = 0
        self._pos = max(0, min(pos, len(text)))

    def _reset_chains(self) -> None:
        self._kill_direction = None
        self._yank_span = None
        self._last_arg_span = None

    def handles(self, key: str) -> bool:
        return key == Keys.Any.value or key in self._bindings

    def apply_key(self, key: str, data: str = "") -> None:
        """Apply an editing key. Unknown keys are ignored."""
        kill = key in KILL_KEYS
        if self.suppressed_until_input and not kill:
            self.suppressed_until_input = False
        if key == Keys.Any.value:
            self.insert(data)
        else:
            action = self._bindings.get(key)
            if action is None:
                return
            action()
        if not kill:
            self._kill_direction = None
        if key not in YANK_KEYS:
            self._yank_span = None
        if key != INSERT_LAST_ARG_KEY:
            self._last_arg_span = None
        self._update_suggestions()

    def insert(self, text: str) -> None:
        text = _sanitize(text)
        if not text:
            return
        self.suppressed_until_input = False
        value = self.value
        self._write(value[: self._pos] + text + value[self._pos :], self._pos + len(text))

    def cursor_left(self) -> None:
        self._pos = max(0, self._pos - 1)

    def cursor_right(self) -> None:
        if self._pos < len(self.value):
            self._pos += 1
        elif self.can_accept_suggestion():
            self.accept_suggestion()

    def cursor_start(self) -> None:
        self._pos = 0

    def cursor_end(self) -> None:
        if self._pos >= len(self.value) and self.can_accept_suggestion():
            self.accept_suggestion()
            return
        self._pos = len(self.value)

    def word_backward(self) -> None:
        value = self.value
        i = self._pos
        while i > 0 and value[i - 1].isspace():
            i -= 1
        while i > 0 and not value[i - 1].isspace():
            i -= 1
        self._pos = i

    def word_forward(self) -> None:
        value = self.value
        i = self._pos
        while i < len(value) and value[i].isspace():
            i += 1
        while i < len(value) and not value[i].isspace():
            i += 1
        self._pos = i

    def delete_backward(self) -> None:
        if self._pos == 0:
            return
        value = self.value
        self._write(value[: self._pos - 1] + value[self._pos :], self._pos - 1)

    def delete_forward(self) -> None:
        value = self.value
        if self._pos >= len(value):
            return
        self._write(value[: self._pos] + value[self._pos + 1 :], self._pos)

    def swap_characters(self) -> None:
        value = self.value
        if len(value) < 2 or self._pos == 0:
            return
        pos = min(self._pos, len(value) - 1)
        chars = list(value)
        chars[pos - 1], chars[pos] = chars[pos], chars[pos - 1]
        self._write("".join(chars), pos + 1)


    def swap_words(self) -> None:
        """Swap the word before the cursor with the word at or after it."""
        spans = _word_spans(self.value)
        if len(spans) < 2:
            return
        second = next((i for i, (_, end) in enumerate(spans) if end > self._pos), len(spans) - 1)
        second = max(second, 1)
        (a_start, a_end), (b_start, b_end) = spans[second - 1], spans[second]
        value = self.value
        swapped = value[b_start:b_end] + value[a_end:b_start] + value[a_start:a_end]
        self._write(value[:a_start] + swapped + value[b_end:], b_end)

    # Kill ring

    def _record_kill(self, killed: str, direction: str) -> None:
        if not killed:
            return
        if self._kill_direction == direction and self._kill_ring:
            newest = self._kill_ring[0]
            self._kill_ring[0] = newest + killed if direction == _FORWARD else killed + newest
        else:
            self._kill_ring.insert(0, killed)
            del self._kill_ring[KILL_RING_MAX:]
        self._kill_direction = direction
        self.suppressed_until_input = True
        self._matched = []
        self._suggestion_index = 0

    def kill_to_end(self) -> None:
        value = self.value
        self._record_kill(value[self._pos :], _FORWARD)
        self._write(value[: self._pos], self._pos)

    def kill_to_start(self) -> None:
        value = self.value
        self._record_kill(value[: self._pos], _BACKWARD)
        self._write(value[self._pos :], 0)

    def kill_word_backward(self) -> None:
        end = self._pos
        self.word_backward()
        start = self._pos
        value = self.value
        self._record_kill(value[start:end], _BACKWARD)
        self._write(value[:start] + value[end:], start)

    def kill_word_forward(self) -> None:
        start = self._pos
        self.word_forward()
        end = self._pos
        value = self.value
        self._record_kill(value[start:end], _FORWARD)
        self._write(value[:start] + value[end:], start)

    def yank(self) -> None:
        if not self._kill_ring:
            return
        start = self._pos
        self.insert(self._kill_ring[0])
        self._yank_index = 0
        self._yank_span = (start, self._pos)

    def yank_pop(self) -> None:
        """Replace the text just yanked with the next older kill ring entry."""
        if self._yank_span is None or len(self._kill_ring) < 2:
            return
        start, end = self._yank_span
        self._yank_index = (self._yank_index + 1) % len(self._kill_ring)
        text = self._kill_ring[self._yank_index]
        value = self.value
        self._write(value[:start] + text + value[end:], start + len(text))
        self._yank_span = (start, start + len(text))

    @property
    def kill_ring(self) -> list[str]:
        return list(self._kill_ring)

    # History

    def insert_last_arg(self) -> None:
        """Insert the last word of a history value; repeating walks further back."""
        history = self.history_values
        if not history:
            return
        if self._last_arg_span is None:
            self._last_arg_index = 0
            start = end = self._pos
        else:
            self._last_arg_index = (self._last_arg_index + 1) % len(history)
            start, end = self._last_arg_span
        words = history[self._last_arg_index].split()
        arg = words[-1] if words else ""
        value = self.value
        self._write(value[:start] + arg + value[end:], start + len(arg))
        self._last_arg_span = (start, start + len(arg))

    def history_previous(self) -> None:
        if len(self._values) == 1:
            return
        self._index = min(self._index + 1, len(self._values) - 1)
        self._pos = len(self.value)

    def history_next(self) -> None:
        if len(self._values) == 1:
            return
        self._index = max(self._index - 1, 0)
        self._pos = len(self.value)

    @property
    def history_values(self) -> list[str]:
        return self._values[1:]

    # Ghost suggestions

    def set_suggestions(self, suggestions: Iterable[str]) -> None:
        self._suggestions = [s for s in suggestions if s]
        self._update_suggestions()

    def _update_suggestions(self) -> None:
        if self.suppressed_until_input or not self._suggestions:
            self._matched = []
            self._suggestion_index = 0
            return
        current = self.value.lower()
        matched = [s for s in self._suggestions if s.lower().startswith(current)]
        if matched != self._matched:
            self._suggestion_index = 0
        self._matched = matched

    @property
    def matched_suggestions(self) -> list[str]:
        return list(self._matched)

    def current_suggestion(self) -> str:
        if self._suggestion_index >= len(self._matched):
            return ""
        return self._matched[self._suggestion_index]

    def can_accept_suggestion(self) -> bool:
        return bool(self._matched)

    def accept_suggestion(self) -> None:
        suggestion = self.current_suggestion()
        if not suggestion:
            return
        value = self.value
        self._write(value + suggestion[len(value) :], len(suggestion))

    def ghost_text(self) -> str:
        """Untyped remainder of the current suggestion, shown after the cursor."""
        if self._pos != len(self.value):
            return ""
        suggestion = self.current_suggestion()
        return suggestion[len(self.value) :]
