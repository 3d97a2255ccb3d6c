"""Heuristic completeness check for POSIX shell input.

This is not a parser. It only answers whether the text entered so far could be
a whole command or whether the user is still inside a quote, a bracket, a
compound command, a here-document or after a trailing continuation marker.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Protocol

CONTINUATION_HINT = ">"

_OPENERS = {"if": "fi", "case": "esac", "for": "done", "while": "done", "until": "done", "select": "done"}
_CLOSERS = {"fi", "esac", "done"}
_KEEP_COMMAND_POSITION = {"then", "do", "else", "elif", "!", "time"}
# After these openers the next word is a name or subject, not a command.
_NON_COMMAND_OPENERS = {"case", "for", "select"}
_TRAILING_OPERATORS = {"|", "&&", "||", "|&"}
_OPERATOR_CHARS = ";&|()<>"
_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_HEREDOC_RE = re.compile(r"<<(-?)[ \t]*(['\"]?)([^\s'\"();&|<>]+)\2")


class SyntaxOracle(Protocol):
    def is_complete(self, text: str) -> tuple[bool, str]:
        ...


@dataclass
class _ScanState:
    quote: str | None = None
    escape: bool = False
    depth: int = 0
    param_depth: int = 0
    # Paren depth at which each open `$((` or `((` started.
    arith: list[int] = field(default_factory=list)
    command_start: bool = True
    last_token: str = ""
    trailing_backslash: bool = False
    keywords: list[str] = field(default_factory=list)
    heredocs: list[tuple[str, bool]] = field(default_factory=list)
    word: list[str] = field(default_factory=list)

    def flush(self) -> None:
        if not self.word:
            return
        text = "".join(self.word)
        self.word.clear()
        self.last_token = text
        if not self.command_start:
            return
        if text in _OPENERS:
            self.keywords.append(_OPENERS[text])
            self.command_start = text not in _NON_COMMAND_OPENERS
        elif text in _CLOSERS:
            if self.keywords and self.keywords[-1] == text:
                self.keywords.pop()
            self.command_start = False
        elif text == "{":
            self.keywords.append("}")
        elif text == "}":
            if self.keywords and self.keywords[-1] == "}":
                self.keywords.pop()
            self.command_start = False
        elif text in _KEEP_COMMAND_POSITION or _ASSIGNMENT_RE.match(text):
            pass
        else:
            self.command_start = False


def _read_operator(line: str, index: int) -> str:
    two = line[index : index + 2]
    if two in {"&&", "||", ";;", ";&", "|&", "<<", ">>", "<&", ">&", "&>"}:
        return two
    return line[index]


def _scan_arithmetic(line: str, i: int, state: _ScanState) -> int:
    """Consume one character of an arithmetic expression, where `<<` is a shift."""
    ch = line[i]
    if ch == ")" and line[i + 1 : i + 2] == ")" and state.depth == state.arith[-1]:
        state.arith.pop()
        state.word.append("))")
        return i + 2
    if ch == "(":
        state.depth += 1
    elif ch == ")":
        state.depth = max(state.arith[-1], state.depth - 1)
    state.word.append(ch)
    return i + 1


def _scan_line(line: str, state: _ScanState) -> None:
    state.trailing_backslash = False
    i = 0
    while i < len(line):
        ch = line[i]
        if state.escape:
            state.escape = False
            state.word.append(ch)
            i += 1
            continue
        if state.quote == "'":
            if ch == "'":
                state.quote = None
            state.word.append(ch)
            i += 1
            continue
        if state.quote is not None:
            if ch == "\\":
                state.escape = True
            elif ch == state.quote:
                state.quote = None
            state.word.append(ch)
            i += 1
            continue
        if ch == "\\":
            if i == len(line) - 1:
                state.trailing_backslash = True
            else:
                state.escape = True
                state.word.append(ch)
            i += 1
            continue
        if ch in "'\"`":
            state.quote = ch
            state.word.append(ch)
            i += 1
            continue
        if state.arith:
            i = _scan_arithmetic(line, i, state)
            continue
        if ch == "#" and not state.word:
            break
        if line[i : i + 3] == "$((":
            state.arith.append(state.depth)
            state.word.append("$((")
            i += 3
            continue
        if ch == "$" and line[i + 1 : i + 2] in {"(", "{"}:
            if line[i + 1] == "(":
                state.depth += 1
            else:
                state.param_depth += 1
            state.word.append(line[i : i + 2])
            i += 2
            continue
        if ch == "}" and state.param_depth:
            state.param_depth -= 1
            state.word.append(ch)
            i += 1
            continue
        if ch in " \t":
            state.flush()
            i += 1
            continue
        if ch in _OPERATOR_CHARS:
            state.flush()
            op = _read_operator(line, i)
            if op == "(" and line[i + 1 : i + 2] == "(" and state.command_start:
                state.arith.append(state.depth)
                state.command_start = False
                state.last_token = "(("
                i += 2
                continue
            if op == "<<" and line[i + 2 : i + 3] != "<":
                match = _HEREDOC_RE.match(line, i)
                if match:
                    state.heredocs.append((match.group(3), match.group(1) == "-"))
                    state.last_token = match.group(3)
                    i = match.end()
                    continue
            if op == "(":
                state.depth += 1
                state.command_start = True
            elif op == ")":
                state.depth = max(0, state.depth - 1)
                state.command_start = True
            elif op in {";", "&", "|", "&&", "||", ";;", ";&", "|&"}:
                state.command_start = True
            state.last_token = op
            i += len(op)
            continue
        state.word.append(ch)
        i += 1
    if state.quote is None and not state.trailing_backslash:
        state.flush()
        if state.last_token not in _TRAILING_OPERATORS:
            state.command_start = True


class ShellSyntaxOracle:
    """Default completeness oracle for shell command lines."""

    def __init__(self, hint: str = CONTINUATION_HINT) -> None:
        self._hint = hint

    def is_complete(self, text: str) -> tuple[bool, str]:
        state = _ScanState()
        active_heredocs: list[tuple[str, bool]] = []
        for line in text.split("\n"):
            if active_heredocs:
                delimiter, strip_tabs = active_heredocs[0]
                candidate = line.lstrip("\t") if strip_tabs else line
                if candidate == delimiter:
                    active_heredocs.pop(0)
                continue
            _scan_line(line, state)
            if state.heredocs and state.quote is None:
                active_heredocs.extend(state.heredocs)
                state.heredocs.clear()

        incomplete = (
            state.quote is not None
            or state.trailing_backslash
            or state.depth > 0
            or state.param_depth > 0
            or bool(state.arith)
            or bool(state.keywords)
            or bool(active_heredocs)
            or state.last_token in _TRAILING_OPERATORS
        )
        if incomplete:
            return False, self._hint
        return True, ""
