"""Generation tokens and debouncing for asynchronous requests.

Every request is tagged with the generation current when it was issued. A
response is applied only if its tag still equals the current generation;
otherwise it is dropped. Nothing is ever cancelled out of band.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from gline.messages import Schedule

M = TypeVar("M")


class GenerationTracker:
    """Monotonically increasing token for one family of requests."""

    __slots__ = ("_current",)

    def __init__(self, start: int = 0) -> None:
        self._current = start

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current

    def __repr__(self) -> str:
        return f"GenerationTracker(current={self._current})"


class Debouncer:
    """Coalesce bursts of edits into a single delayed trigger.

    ``arm()`` returns a timer command tagged with the tracker's current
    generation. A later edit advances the tracker, so when an earlier timer
    fires ``should_fire`` reports it as stale.
    """

    def __init__(self, tracker: GenerationTracker, delay: float, message_factory: Callable[[int], M]) -> None:
        self._tracker = tracker
        self.delay = delay
        self._message_factory = message_factory

    def arm(self) -> Schedule:
        return Schedule(delay=self.delay, message=self._message_factory(self._tracker.current))

    def should_fire(self, token: int) -> bool:
        return self._tracker.is_current(token)
