"""Frame rendering: the input area and the assistant box beneath it.

Everything here is a pure function of the session and the viewport size.
Styled spans are ANSI escapes produced by :mod:`gline.theme`; widths are
measured with :mod:`gline.text` so escapes never count as columns.
"""

from __future__ import annotations

import re

from gline.completion import CompletionState
from gline.history_search import HistorySearch
from gline.session import Mode, Session
from gline.text import display_width, pad_to_width, truncate, wordwrap
from gline.theme import paint

CONTINUATION_PROMPT = "> "
INTERRUPT_MARKER = "^C"
IDLE_HEADER = "💭 Idle summary ready"
IDLE_HINT = "(Esc to dismiss)"
# Minimum fill kept around the bottom-centre segment before it is dropped.
BOTTOM_MARGIN = 10

_HELP_HEADER = re.compile(r"^\*\*[^*]+\*\* - ")


def _prompted(prompt: str, lines: list[str]) -> list[str]:
    return [(prompt if i == 0 else CONTINUATION_PROMPT) + line for i, line in enumerate(lines)]


# Input area


def _search_line(search: HistorySearch) -> str:
    prefix = "(reverse-i-search)"
    match = ""
    if search.matches:
        match = search.matches[search.selected]
    elif search.query:
        prefix = "(failed reverse-i-search)"
    return paint("search_query", f"{prefix}`{search.query}': {match}")


def _live_line(session: Session) -> str:
    if session.history_search.active:
        return _search_line(session.history_search)
    buffer = session.buffer
    value = buffer.value
    pos = buffer.cursor
    line = paint("prompt", session.prompt) + value[:pos]
    if pos < len(value):
        return line + paint("cursor", value[pos]) + value[pos + 1 :]
    ghost = buffer.ghost_text()
    if ghost:
        return line + paint("ghost_cursor", ghost[0]) + paint("ghost", ghost[1:])
    return line + paint("cursor", " ")


def render_input(session: Session) -> str:
    lines = _prompted(session.original_prompt, session.multiline.lines) if session.multiline.is_open else []
    lines.append(_live_line(session))
    return "\n".join(lines)


# Box content


def render_completions(state: CompletionState, height: int, width: int) -> str:
    """Candidate list, one column with descriptions or several columns without."""
    candidates = state.candidates
    if not candidates:
        return ""
    if height <= 0:
        height = 4

    has_descriptions = any(c.description for c in candidates)
    max_value_width = max(display_width(c.value) for c in candidates)
    item_width = max(10, max_value_width + 4)

    columns = 1
    if not has_descriptions and width > 0:
        columns = max(1, width // item_width)
    if len(candidates) <= height:
        columns = 1

    capacity = height * columns
    start = (max(state.selected, 0) // capacity) * capacity

    rows: list[str] = []
    for r in range(height):
        row = ""
        for c in range(columns):
            idx = start + c * height + r
            if idx >= len(candidates):
                continue
            candidate = candidates[idx]
            marker = "> " if idx == state.selected else "  "
            item = f" {marker}{candidate.value}"
            if has_descriptions:
                gap = max_value_width - display_width(candidate.value) + 2
                item += " " * gap + paint("description", candidate.description)
            elif c < columns - 1:
                item = pad_to_width(item, item_width) if display_width(item) < item_width else item + "  "
            if idx == state.selected:
                item = paint("selected", item)
            row += item
        rows.append(row)
    return "\n".join(rows)


def render_history(search: HistorySearch, height: int, width: int) -> str:
    if not search.active:
        return ""
    rows = max(1, height - 1)
    header = paint("search_query", f"History search: {search.query}")
    if not search.matches:
        return header + "\n" + paint("description", "  (no matches)")
    start = max(0, search.selected - rows + 1)
    lines = [header]
    for idx in range(start, min(len(search.matches), start + rows)):
        selected = idx == search.selected
        item = truncate(("> " if selected else "  ") + search.matches[idx], width)
        lines.append(paint("selected", item) if selected else item)
    return "\n".join(lines)


def _side_by_side(left: str, right: str, half_width: int, height: int) -> str:
    left_lines = left.split("\n")
    right_lines = wordwrap(right, max(1, half_width - 1)).split("\n")
    rows = []
    for i in range(height):
        l_part = left_lines[i] if i < len(left_lines) else ""
        r_part = right_lines[i] if i < len(right_lines) else ""
        rows.append(pad_to_width(truncate(l_part, half_width), half_width) + " " + r_part)
    return "\n".join(rows)


def _center(lines: list[str], height: int) -> list[str]:
    lines = lines[:height]
    missing = height - len(lines)
    if missing <= 0:
        return lines
    top = missing // 2
    return [""] * top + lines + [""] * (missing - top)


def box_height(session: Session, height: int, assistant_height: int) -> int:
    if session.history_search.active and height > 0:
        return max(assistant_height, height - 4)
    return assistant_height


def _content_lines(session: Session, width: int, available: int, content_width: int) -> tuple[list[str], bool]:
    """Wrapped content lines and whether they are a right-aligned coach tip."""
    preformatted = False
    is_explanation = False
    if session.last_error:
        content = paint("error", f"LLM Inference Error: {session.last_error}")
    else:
        help_text = session.help_text
        completion_width = max(0, width - 4)
        if help_text:
            completion_width //= 2
        completion_box = render_completions(session.completion, available, completion_width)
        history_box = render_history(session.history_search, available, max(0, width - 2))
        if history_box:
            content, preformatted = history_box, True
        elif completion_box and help_text:
            help_text = _HELP_HEADER.sub("", help_text)
            content, preformatted = _side_by_side(completion_box, help_text, completion_width, available), True
        elif completion_box:
            content, preformatted = completion_box, True
        elif help_text:
            content = help_text
        else:
            content, is_explanation = session.explanation or session.default_explanation, True

    coach_tip = is_explanation and bool(content) and content == session.default_explanation
    idle_summary = coach_tip and session.idle.shown
    if idle_summary:
        content = f"{paint('idle_summary', IDLE_HEADER)}\n{content}\n{paint('idle_hint', IDLE_HINT)}"

    lines = (content if preformatted else wordwrap(content, content_width)).split("\n")
    right_aligned = coach_tip and not idle_summary
    if right_aligned:
        lines = [paint("coach_tip", line) if line else line for line in lines]
    return _center(lines, available), right_aligned


# Borders


def _top_bar(session: Session, inner_width: int) -> str:
    border = session.border
    top_left = border.render_top_left()
    top_left_width = border.top_left_width()
    context = border.render_top_context(max(0, inner_width - top_left_width - 1))
    filler = max(0, inner_width - top_left_width - display_width(context))

    bar = paint("border", "╭") + top_left
    if context:
        bar += paint("divider", "─") + context
        if filler > 1:
            bar += paint("border", "─" * (filler - 1))
    elif filler > 0:
        bar += paint("border", "─" * filler)
    return bar + paint("border", "╮")


def _bottom_bar(session: Session, inner_width: int) -> str:
    border = session.border
    center = border.render_bottom_center()
    indicator = f" {session.indicator.view()} "
    indicator_width = 2 + session.indicator.width()
    left = truncate(border.render_bottom_left(), inner_width - indicator_width)
    left_width = display_width(left)

    show_center = bool(center) and inner_width > left_width + indicator_width + BOTTOM_MARGIN
    space = inner_width - left_width - indicator_width
    if show_center:
        space -= display_width(center)
        if space < 0:
            show_center = False
            space = inner_width - left_width - indicator_width

    bar = paint("border", "╰") + left
    if show_center:
        left_fill = space // 2
        bar += paint("border", "─" * left_fill) + center + paint("border", "─" * (space - left_fill))
    elif space > 0:
        bar += paint("border", "─" * space)
    return bar + indicator + paint("border", "╯")


def render_box(session: Session, width: int, height: int, assistant_height: int = 3) -> str:
    box_width = max(0, width - 2)
    inner_width = max(0, box_width - 2)
    content_width = inner_width - 2
    available = box_height(session, height, assistant_height)

    lines, right_aligned = _content_lines(session, width, available, content_width)
    side = paint("border", "│")
    rows = [_top_bar(session, inner_width)]
    for line in lines:
        if display_width(line) > content_width:
            line = truncate(line, content_width)
        padding = " " * max(0, content_width - display_width(line))
        body = padding + line if right_aligned else line + padding
        rows.append(f"{side} {body} {side}")
    rows.append(_bottom_bar(session, inner_width))
    return "\n".join(rows)


def render(session: Session, width: int, height: int, assistant_height: int = 3) -> str:
    """Live frame. A finished session renders nothing; see :func:`render_final`."""
    if not session.active:
        return ""
    return render_input(session) + "\n" + render_box(session, width, height, assistant_height)


def render_final(session: Session) -> str:
    """Transcript left on screen once the turn has ended."""
    if session.mode is Mode.INTERRUPTED:
        lines = _prompted(session.original_prompt, session.discarded_lines)
        lines.append(session.prompt + session.buffer.value + INTERRUPT_MARKER)
        return "\n".join(lines)
    return "\n".join(_prompted(session.original_prompt, (session.result or "").split("\n")))
