from __future__ import annotations

from pathlib import Path
from typing import Sequence

from gline.buffer import LineBuffer
from gline.completion import Candidate, CompletionState, PathCompletionProvider, split_for_completion
from gline.history_search import HistorySearch


class _StaticProvider:
    def __init__(self, *values: str) -> None:
        self.values = values
        self.calls: list[tuple[str, list[str]]] = []

    def get_completions(self, word: str, preceding_args: Sequence[str]) -> list[Candidate]:
        self.calls.append((word, list(preceding_args)))
        return [Candidate(v) for v in self.values if v.startswith(word)]


def test_split_for_completion() -> None:
    assert split_for_completion("git ch", 6) == ("ch", ["git"], 4)
    assert split_for_completion("ls ", 3) == ("", ["ls"], 3)


def test_cycle_and_cancel_keep_the_tail() -> None:
    buffer = LineBuffer()
    buffer.set_value("git ch --all")
    buffer.set_cursor(6)
    provider = _StaticProvider("checkout", "cherry-pick")
    state = CompletionState()

    state.start(buffer, provider)
    assert provider.calls == [("ch", ["git"])]
    assert buffer.value == "git checkout --all"
    assert buffer.cursor == len("git checkout")

    state.cycle(buffer)
    assert buffer.value == "git cherry-pick --all"
    state.cycle(buffer, -1)
    assert state.current() == Candidate("checkout")

    state.cancel(buffer)
    assert buffer.value == "git ch --all"
    assert not state.active


def test_single_candidate_applies_without_menu() -> None:
    buffer = LineBuffer()
    buffer.set_value("git sta")
    state = CompletionState()
    state.start(buffer, _StaticProvider("status"))
    assert buffer.value == "git status"
    assert not state.active


def test_no_candidates_leaves_buffer() -> None:
    buffer = LineBuffer()
    buffer.set_value("xyz")
    state = CompletionState()
    state.start(buffer, _StaticProvider("abc"))
    assert buffer.value == "xyz"
    assert state.current() is None


def test_path_provider_lists_directory(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "setup.cfg").write_text("")
    (tmp_path / ".secret").write_text("")
    provider = PathCompletionProvider(str(tmp_path))

    assert provider.get_completions("s", []) == [Candidate("setup.cfg"), Candidate("src/")]
    assert provider.get_completions(".", []) == [Candidate(".secret")]
    assert provider.get_completions("missing/x", []) == []


def test_path_provider_keeps_directory_prefix(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("")
    provider = PathCompletionProvider(str(tmp_path))

    assert provider.get_completions("src/m", []) == [Candidate("src/main.py")]


def test_history_search_filters_and_deduplicates() -> None:
    search = HistorySearch()
    search.open(["git push", "ls", "git push", "git pull", ""])
    assert search.matches == ["git push", "ls", "git pull"]

    search.type("PU")
    assert search.matches == ["git push", "git pull"]
    search.move(1)
    search.move(5)
    assert search.selected == 1

    search.backspace()
    assert search.selected == 0
    assert search.accept() == "git push"
    assert not search.active


def test_history_search_without_matches() -> None:
    search = HistorySearch()
    search.open(["ls"])
    search.type("zzz")
    assert search.matches == []
    assert search.accept() is None
