"""Messages consumed by the session controller and commands it emits.

Host events (keys, resizes) and async results share one serial stream. Timer
and task results carry the generation they were issued under so the controller
can discard stale ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from gline.errors import ProviderError
    from gline.probes import GitStatus, Resources
    from gline.session import Outcome


class Message:
    """Marker base class for everything delivered to the controller."""


# Host events


@dataclass(frozen=True)
class KeyEvent(Message):
    """A key press. ``key`` is a prompt_toolkit key name, ``data`` the typed text."""

    key: str
    data: str = ""


@dataclass(frozen=True)
class ResizeEvent(Message):
    width: int
    height: int


# Timer and task results


@dataclass(frozen=True)
class AttemptPrediction(Message):
    generation: int


@dataclass(frozen=True)
class PredictionReady(Message):
    generation: int
    prediction: str
    input_context: str = ""


@dataclass(frozen=True)
class ExplanationReady(Message):
    generation: int
    explanation: str


@dataclass(frozen=True)
class ProviderFailed(Message):
    generation: int
    error: "ProviderError"


@dataclass(frozen=True)
class IdleCheck(Message):
    generation: int


@dataclass(frozen=True)
class IdleSummaryReady(Message):
    generation: int
    summary: str


@dataclass(frozen=True)
class PromptReady(Message):
    generation: int
    prompt: str


@dataclass(frozen=True)
class IndicatorTick(Message):
    pass


@dataclass(frozen=True)
class ResourceTick(Message):
    pass


@dataclass(frozen=True)
class ResourcesUpdated(Message):
    resources: Optional["Resources"]


@dataclass(frozen=True)
class GitStatusUpdated(Message):
    status: Optional["GitStatus"]


# Commands


class Command:
    """Marker base class for controller output."""


@dataclass(frozen=True)
class Schedule(Command):
    """Deliver ``message`` back to the controller after ``delay`` seconds."""

    delay: float
    message: Message


@dataclass(frozen=True)
class Spawn(Command):
    """Run ``run()`` as an independent task bounded by ``timeout``.

    The result re-enters the stream as ``on_result(value)``; a failure or
    timeout as ``on_error(exc)``. Either callback may return ``None`` to drop it.
    """

    name: str
    run: Callable[[], Awaitable[Any]]
    timeout: float
    on_result: Callable[[Any], Optional[Message]]
    on_error: Callable[[BaseException], Optional[Message]]


@dataclass(frozen=True)
class Finish(Command):
    """End the editing turn."""

    outcome: "Outcome"
    text: str
