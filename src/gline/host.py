"""prompt_toolkit host for the editor and the ``edit_line`` entry point.

The host owns the message queue. Key presses, resizes, fired timers and
finished provider tasks are all posted to it, and a single consumer task feeds
them to the controller one at a time. Provider tasks never touch the session.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import Any, Callable, Iterable

from prompt_toolkit.application import Application  # type: ignore
from prompt_toolkit.formatted_text import ANSI  # type: ignore
from prompt_toolkit.input import Input  # type: ignore
from prompt_toolkit.key_binding import KeyBindings  # type: ignore
from prompt_toolkit.keys import Keys  # type: ignore
from prompt_toolkit.layout import Layout  # type: ignore
from prompt_toolkit.layout.containers import Window  # type: ignore
from prompt_toolkit.layout.controls import FormattedTextControl  # type: ignore
from prompt_toolkit.output import Output  # type: ignore
from prompt_toolkit.shortcuts import print_formatted_text  # type: ignore

from gline.buffer import LineBuffer, meta_key
from gline.completion import CompletionProvider
from gline.config import EditorOptions, IdleOptions
from gline.controller import SessionController
from gline.log_utils import log_context, log_event
from gline.messages import Command, Finish, KeyEvent, Message, ResizeEvent, Schedule, Spawn
from gline.multiline import MultilineAssembler
from gline.providers import Explainer, Predictor, PromptGenerator
from gline.render import render, render_final
from gline.session import EditResult, Session
from gline.syntax import SyntaxOracle

logger = logging.getLogger(__name__)

FORWARDED_KEYS = (
    Keys.Enter,
    Keys.ControlJ,
    Keys.Tab,
    Keys.BackTab,
    Keys.Escape,
    Keys.ControlC,
    Keys.ControlD,
    Keys.ControlR,
    Keys.ControlG,
    Keys.ControlL,
    Keys.Backspace,
    Keys.Delete,
    Keys.Left,
    Keys.Right,
    Keys.Up,
    Keys.Down,
    Keys.Home,
    Keys.End,
    Keys.ControlLeft,
    Keys.ControlRight,
    Keys.ControlA,
    Keys.ControlE,
    Keys.ControlB,
    Keys.ControlF,
    Keys.ControlK,
    Keys.ControlU,
    Keys.ControlW,
    Keys.ControlY,
    Keys.ControlT,
    Keys.ControlP,
    Keys.ControlN,
)

# Sent as Escape followed by the key; forwarded under their `meta_key` names.
META_KEYS = ("b", "f", "d", "y", "t", ".", Keys.Delete, Keys.Backspace)


class EditorHost:
    """Runs one editing turn of a :class:`SessionController` in the terminal."""

    def __init__(
        self,
        controller: SessionController,
        *,
        assistant_height: int = 3,
        input: Input | None = None,  # noqa: A002
        output: Output | None = None,
    ) -> None:
        self._controller = controller
        self._assistant_height = assistant_height
        self._queue: asyncio.Queue[Message] = asyncio.Queue()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._timers: list[asyncio.TimerHandle] = []
        self._app: Application[None] = Application(
            layout=Layout(Window(FormattedTextControl(self._frame), wrap_lines=False)),
            key_bindings=self._key_bindings(),
            full_screen=False,
            erase_when_done=True,
            input=input,
            output=output,
        )
        self._app.before_render += self._check_size

    @property
    def session(self) -> Session:
        return self._controller.session

    def post(self, msg: Message) -> None:
        self._queue.put_nowait(msg)

    # prompt_toolkit wiring

    def _key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        def forward(key: Keys) -> Callable[[Any], None]:
            def handler(event: Any) -> None:
                self.post(KeyEvent(key.value))

            return handler

        for key in FORWARDED_KEYS:
            kb.add(key)(forward(key))

        def forward_meta(key: Keys | str) -> Callable[[Any], None]:
            def handler(event: Any) -> None:
                self.post(KeyEvent(meta_key(key)))

            return handler

        for key in META_KEYS:
            kb.add(Keys.Escape, key)(forward_meta(key))

        @kb.add(Keys.Any)
        def _(event: Any) -> None:
            if event.data and event.data.isprintable():
                self.post(KeyEvent(Keys.Any.value, event.data))

        @kb.add(Keys.BracketedPaste)
        def _(event: Any) -> None:
            self.post(KeyEvent(Keys.Any.value, event.data))

        return kb

    def _frame(self) -> ANSI:
        width, height = self.session.viewport
        return ANSI(render(self.session, width, height, self._assistant_height))

    def _current_size(self) -> tuple[int, int]:
        size = self._app.output.get_size()
        return size.columns, size.rows

    def _check_size(self, _app: Any) -> None:
        size = self._current_size()
        if size != self.session.viewport:
            self.post(ResizeEvent(*size))

    # Command execution

    def _execute(self, commands: Iterable[Command]) -> None:
        loop = asyncio.get_running_loop()
        for command in commands:
            if isinstance(command, Schedule):
                self._timers = [t for t in self._timers if not t.cancelled() and t.when() > loop.time()]
                self._timers.append(loop.call_later(command.delay, self.post, command.message))
            elif isinstance(command, Spawn):
                task = asyncio.create_task(self._run_task(command), name=f"gline:{command.name}")
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            elif isinstance(command, Finish):
                if self._app.is_running and not self._app.is_done:
                    self._app.exit()

    async def _run_task(self, spawn: Spawn) -> None:
        try:
            value = await asyncio.wait_for(spawn.run(), timeout=spawn.timeout)
            msg = spawn.on_result(value)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = spawn.on_error(exc)
        if msg is not None:
            self.post(msg)

    async def _consume(self) -> None:
        while True:
            msg = await self._queue.get()
            self._execute(self._controller.handle(msg))
            self._app.invalidate()

    def _teardown(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            log_event(logger, "host.teardown", level=logging.DEBUG, cancelled=len(self._tasks))

    async def run(self) -> EditResult:
        self.session.viewport = self._current_size()
        self._execute(self._controller.start())
        consumer = asyncio.create_task(self._consume(), name="gline:consumer")
        try:
            await self._app.run_async()
        finally:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            self._teardown()
        print_formatted_text(ANSI(render_final(self.session)), output=self._app.output)
        return self.session.edit_result()


async def edit_line(
    prompt: str,
    history_values: Iterable[str] = (),
    explanation: str = "",
    predictor: Predictor | None = None,
    explainer: Explainer | None = None,
    idle: IdleOptions | None = None,
    prompt_generator: PromptGenerator | None = None,
    *,
    options: EditorOptions | None = None,
    completion_provider: CompletionProvider | None = None,
    oracle: SyntaxOracle | None = None,
    input: Input | None = None,  # noqa: A002
    output: Output | None = None,
) -> EditResult:
    """Edit one (possibly multi-line) command and return what the user committed.

    ``history_values`` are ordered most recent first. ``explanation`` is the
    default assistant content shown while there is nothing to explain. An
    interrupt is reported through ``EditResult.outcome``; terminal errors
    from prompt_toolkit propagate.
    """
    options = options or EditorOptions()
    session = Session(
        buffer=LineBuffer(history_values),
        prompt=prompt,
        multiline=MultilineAssembler(oracle),
        default_explanation=explanation,
    )
    controller = SessionController(
        session,
        predictor,
        explainer,
        options=options,
        idle=idle,
        prompt_generator=prompt_generator,
        completion_provider=completion_provider,
    )
    host = EditorHost(controller, assistant_height=options.assistant_height, input=input, output=output)
    with log_context(turn=uuid.uuid4().hex[:8]):
        return await host.run()
