from __future__ import annotations

from typing import Iterable, Sequence

from prompt_toolkit.keys import Keys  # type: ignore

from gline.buffer import LineBuffer
from gline.completion import CompletionProvider
from gline.config import EditorOptions, IdleOptions
from gline.controller import SessionController
from gline.messages import Command, KeyEvent, Message, Schedule, Spawn
from gline.multiline import MultilineAssembler
from gline.providers import Explainer, Predictor, PromptGenerator
from gline.session import Session


class FakeClock:
    """Deterministic monotonic clock for idle tests."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_controller(
    *,
    predictor: Predictor | None = None,
    explainer: Explainer | None = None,
    history: Sequence[str] = (),
    explanation: str = "Tip",
    prompt: str = "$ ",
    options: EditorOptions | None = None,
    idle: IdleOptions | None = None,
    prompt_generator: PromptGenerator | None = None,
    completion_provider: CompletionProvider | None = None,
    clock: FakeClock | None = None,
) -> SessionController:
    """Controller over a fresh session with probes disabled."""

    session = Session(
        buffer=LineBuffer(history),
        prompt=prompt,
        multiline=MultilineAssembler(),
        default_explanation=explanation,
    )
    return SessionController(
        session,
        predictor,
        explainer,
        options=options or EditorOptions(resource_update_interval=0),
        idle=idle,
        prompt_generator=prompt_generator,
        completion_provider=completion_provider,
        clock=clock or FakeClock(),
    )


def key(name: Keys | str, data: str = "") -> KeyEvent:
    return KeyEvent(name.value if isinstance(name, Keys) else name, data)


def typed(text: str) -> list[KeyEvent]:
    return [KeyEvent(Keys.Any.value, ch) for ch in text]


def feed(controller: SessionController, messages: Iterable[Message]) -> list[Command]:
    commands: list[Command] = []
    for msg in messages:
        commands.extend(controller.handle(msg))
    return commands


def spawns(commands: Iterable[Command], name: str | None = None) -> list[Spawn]:
    return [c for c in commands if isinstance(c, Spawn) and (name is None or c.name == name)]


def scheduled(commands: Iterable[Command], message_type: type) -> list[Message]:
    return [c.message for c in commands if isinstance(c, Schedule) and isinstance(c.message, message_type)]


async def complete(spawn: Spawn) -> Message | None:
    """Run a spawned task the way the host does and return the message it produces."""

    try:
        value = await spawn.run()
        return spawn.on_result(value)
    except Exception as exc:  # noqa: BLE001
        return spawn.on_error(exc)
