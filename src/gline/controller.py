"""Session controller: the single consumer of editor messages.

``handle`` takes one message, mutates the session and returns the commands
the host must run (timers, provider tasks, end of turn). Provider results come
back as messages tagged with the generation they were issued under and are
applied only if that generation is still current.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from prompt_toolkit.keys import Keys  # type: ignore

from gline.completion import CompletionProvider
from gline.config import EditorOptions, IdleOptions
from gline.errors import ProviderError
from gline.generation import Debouncer
from gline.idle import IdleScheduler
from gline.indicator import TICK_INTERVAL, LLMStatus
from gline.log_utils import log_event
from gline.messages import (
    AttemptPrediction,
    Command,
    ExplanationReady,
    Finish,
    GitStatusUpdated,
    IdleCheck,
    IdleSummaryReady,
    IndicatorTick,
    KeyEvent,
    Message,
    PredictionReady,
    PromptReady,
    ProviderFailed,
    ResizeEvent,
    ResourcesUpdated,
    ResourceTick,
    Schedule,
    Spawn,
)
from gline.probes import get_git_status, get_resources
from gline.providers import Explainer, Predictor, PromptGenerator
from gline.session import Mode, Outcome, Session

logger = logging.getLogger(__name__)

AGENT_PREFIX = "#"

ENTER_KEYS = {Keys.Enter.value, Keys.ControlJ.value}


class SessionController:
    def __init__(
        self,
        session: Session,
        predictor: Predictor | None = None,
        explainer: Explainer | None = None,
        *,
        options: EditorOptions | None = None,
        idle: IdleOptions | None = None,
        prompt_generator: PromptGenerator | None = None,
        completion_provider: CompletionProvider | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.options = options or EditorOptions()
        self._predictor = predictor
        self._explainer = explainer
        self._prompt_generator = prompt_generator
        self._completion_provider = completion_provider
        self._clock = clock
        self._debouncer = Debouncer(session.predictions, self.options.debounce_delay, AttemptPrediction)
        self._idle = IdleScheduler(
            session,
            idle or IdleOptions(),
            deadline=self.options.idle_summary_deadline,
            clock=clock,
        )
        self._handlers: dict[type, Callable[[Any], list[Command]]] = {
            KeyEvent: self._on_key,
            ResizeEvent: self._on_resize,
            AttemptPrediction: self._on_attempt_prediction,
            PredictionReady: self._on_prediction,
            ExplanationReady: self._on_explanation,
            ProviderFailed: self._on_provider_failed,
            IdleCheck: self._on_idle_check,
            IdleSummaryReady: self._on_idle_summary,
            PromptReady: self._on_prompt,
            IndicatorTick: self._on_indicator_tick,
            ResourceTick: self._on_resource_tick,
            ResourcesUpdated: self._on_resources,
            GitStatusUpdated: self._on_git_status,
        }

    # Lifecycle

    def start(self) -> list[Command]:
        """Initial commands: null-state prediction, probes, prompt refresh, idle timer."""
        session = self.session
        options = self.options
        session.idle.last_input_time = self._clock()
        session.border.update_context(options.user, options.host, options.current_directory)
        if options.initial_value:
            session.buffer.set_value(options.initial_value)
            session.dirty = True
        session.border.update_input(session.buffer.value)
        session.explanation = session.default_explanation
        self._update_help()

        commands: list[Command] = []
        commands += self._request_prediction(session.prediction_gen)
        if options.current_directory:
            commands.append(self._git_status_task())
        if options.resource_update_interval > 0:
            commands.append(self._resource_task())
        if self._prompt_generator is not None:
            commands.append(self._prompt_task(self._prompt_generator))
        commands += self._idle.arm()
        return commands

    def handle(self, msg: Message) -> list[Command]:
        if not self.session.active:
            return []
        handler = self._handlers.get(type(msg))
        if handler is None:
            log_event(logger, "controller.unknown_message", level=logging.DEBUG, type=type(msg).__name__)
            return []
        return handler(msg)

    # Keys

    def _on_key(self, msg: KeyEvent) -> list[Command]:
        session = self.session
        buffer = session.buffer
        key = msg.key

        if session.history_search.active:
            return self._on_search_key(msg)

        if session.completion.active and key not in {Keys.Tab.value, Keys.BackTab.value, Keys.Escape.value}:
            session.completion.reset()

        if key == Keys.ControlC.value:
            return self._finish(Mode.INTERRUPTED, Outcome.INTERRUPTED, "")
        if key == Keys.ControlD.value:
            if not buffer.value.strip():
                return self._finish(Mode.COMMITTED, Outcome.END_OF_INPUT, "")
            return self._edit(buffer.delete_forward)
        if key in ENTER_KEYS:
            return self._on_enter()
        if key == Keys.Escape.value:
            if session.completion.active:
                return self._edit(lambda: session.completion.cancel(buffer))
            return self._idle.dismiss()
        if key == Keys.ControlL.value:
            return []
        if key == Keys.ControlR.value:
            session.history_search.open(buffer.history_values)
            return []
        if key == Keys.Tab.value:
            return self._complete(1)
        if key == Keys.BackTab.value:
            return self._complete(-1)
        if key == Keys.Backspace.value and not buffer.value:
            session.dirty = True
            session.predictions.advance()
            self._clear_prediction(restore_default=True)
            return []
        if buffer.handles(key):
            return self._edit(lambda: buffer.apply_key(key, msg.data))
        return []

    def _on_search_key(self, msg: KeyEvent) -> list[Command]:
        search = self.session.history_search
        key = msg.key
        if key in {Keys.Escape.value, Keys.ControlG.value, Keys.ControlC.value}:
            search.close()
        elif key in ENTER_KEYS:
            choice = search.accept()
            if choice is not None:
                return self._edit(lambda: self.session.buffer.set_value(choice))
        elif key in {Keys.Up.value, Keys.ControlP.value}:
            search.move(-1)
        elif key in {Keys.Down.value, Keys.ControlN.value, Keys.ControlR.value}:
            search.move(1)
        elif key == Keys.Backspace.value:
            search.backspace()
        elif key == Keys.Any.value:
            search.type(msg.data)
        return []

    def _complete(self, step: int) -> list[Command]:
        session = self.session
        provider = self._completion_provider
        if provider is None:
            return []
        if session.completion.active:
            return self._edit(lambda: session.completion.cycle(session.buffer, step))
        try:
            return self._edit(lambda: session.completion.start(session.buffer, provider))
        except Exception as exc:  # noqa: BLE001
            log_event(logger, "completion.failed", level=logging.WARNING, error=str(exc))
            session.completion.reset()
            return []

    def _on_enter(self) -> list[Command]:
        session = self.session
        buffer = session.buffer
        line = buffer.value
        complete, hint = session.multiline.add_line(line)
        if not complete:
            session.prompt = f"{hint} "
            return self._reset_line()

        command = session.multiline.get_complete_command()
        if not command and line:
            log_event(logger, "multiline.empty_command", level=logging.DEBUG)
            session.prompt = session.original_prompt
            return self._reset_line()
        return self._finish(Mode.COMMITTED, Outcome.COMMAND, command)

    def _reset_line(self) -> list[Command]:
        session = self.session
        session.buffer.set_value("")
        session.border.update_input("")
        session.predictions.advance()
        self._clear_prediction(restore_default=True)
        return self._idle.touch()

    def _finish(self, mode: Mode, outcome: Outcome, text: str) -> list[Command]:
        session = self.session
        session.prompts.advance()
        session.finish(text, mode, outcome)
        session.buffer.set_suggestions([])
        event = "session.interrupted" if mode is Mode.INTERRUPTED else "session.committed"
        log_event(logger, event, outcome=outcome.value, chars=len(text))
        return [Finish(outcome=outcome, text=text)]

    # Edits

    def _edit(self, action: Callable[[], None]) -> list[Command]:
        """Run a buffer mutation and react to what changed."""
        buffer = self.session.buffer
        old_value = buffer.value
        had_matches = bool(buffer.matched_suggestions)
        was_suppressed = buffer.suppressed_until_input

        action()

        cleared = had_matches and not buffer.matched_suggestions
        if buffer.value != old_value:
            return self._on_text_changed(cleared=cleared, was_suppressed=was_suppressed)
        if cleared:
            # Ghost text trimmed away without changing the text itself.
            self.session.predictions.advance()
            self._clear_prediction()
            if buffer.value:
                return [self._debouncer.arm()]
        return []

    def _on_text_changed(self, *, cleared: bool, was_suppressed: bool) -> list[Command]:
        session = self.session
        buffer = session.buffer
        value = buffer.value

        session.predictions.advance()
        session.border.update_input(value)
        session.last_error = ""
        commands = self._idle.touch()
        if value:
            session.dirty = True
        self._update_help()

        suppressed = buffer.suppressed_until_input
        lifted = was_suppressed and not suppressed
        if not value and session.dirty:
            self._clear_prediction(restore_default=True)
        elif suppressed:
            self._clear_prediction()
            if value:
                commands.append(self._debouncer.arm())
        elif value and session.prediction.startswith(value) and not cleared and not lifted:
            log_event(logger, "prediction.reused", level=logging.DEBUG, generation=session.prediction_gen)
        else:
            self._clear_prediction()
            commands.append(self._debouncer.arm())
        return commands

    def _clear_prediction(self, *, restore_default: bool = False) -> None:
        session = self.session
        session.prediction = ""
        session.explanation = session.default_explanation if restore_default else ""
        session.last_error = ""
        session.buffer.set_suggestions([])

    def _update_help(self) -> None:
        words = self.session.buffer.value.split()
        self.session.help_text = self.options.help_topics.get(words[0], "") if words else ""

    def _on_resize(self, msg: ResizeEvent) -> list[Command]:
        self.session.viewport = (msg.width, msg.height)
        return []

    # Prediction and explanation

    def _on_attempt_prediction(self, msg: AttemptPrediction) -> list[Command]:
        if not self._debouncer.should_fire(msg.generation):
            return []
        return self._request_prediction(msg.generation)

    def _request_prediction(self, generation: int) -> list[Command]:
        predictor = self._predictor
        text = self.session.buffer.value
        if predictor is None or text.strip().startswith(AGENT_PREFIX):
            return []

        def on_result(result: tuple[str, str]) -> Message:
            prediction, input_context = result
            return PredictionReady(generation, prediction or "", input_context or "")

        return [
            Spawn(
                name="prediction",
                run=lambda: predictor.predict(text),
                timeout=self.options.prediction_timeout,
                on_result=on_result,
                on_error=lambda exc: ProviderFailed(generation, ProviderError("prediction", exc)),
            ),
            *self._set_indicator(LLMStatus.IN_FLIGHT),
        ]

    def _on_prediction(self, msg: PredictionReady) -> list[Command]:
        session = self.session
        buffer = session.buffer
        if msg.generation != session.prediction_gen:
            log_event(
                logger,
                "prediction.discarded",
                level=logging.DEBUG,
                generation=msg.generation,
                current=session.prediction_gen,
            )
            return []

        session.prediction = msg.prediction
        session.last_prediction_input = msg.input_context
        session.last_prediction = msg.prediction
        buffer.set_suggestions([msg.prediction])
        log_event(logger, "prediction.applied", level=logging.DEBUG, generation=msg.generation)

        if not buffer.value.strip() and not msg.prediction:
            session.explanation = session.default_explanation
            return self._set_indicator(LLMStatus.SUCCESS)

        session.explanation = ""
        target = buffer.value if buffer.suppressed_until_input else msg.prediction
        explainer = self._explainer
        if explainer is None or not target.strip():
            return self._set_indicator(LLMStatus.SUCCESS)

        generation = msg.generation
        return [
            Spawn(
                name="explanation",
                run=lambda: explainer.explain(target),
                timeout=self.options.explanation_timeout,
                on_result=lambda text: ExplanationReady(generation, text or ""),
                on_error=lambda exc: ProviderFailed(generation, ProviderError("explanation", exc)),
            )
        ]

    def _on_explanation(self, msg: ExplanationReady) -> list[Command]:
        session = self.session
        if msg.generation != session.prediction_gen:
            log_event(
                logger,
                "explanation.discarded",
                level=logging.DEBUG,
                generation=msg.generation,
                current=session.prediction_gen,
            )
            return []
        session.explanation = msg.explanation
        return self._set_indicator(LLMStatus.SUCCESS)

    def _on_provider_failed(self, msg: ProviderFailed) -> list[Command]:
        session = self.session
        error = msg.error
        log_event(
            logger,
            f"{error.source}.failed",
            level=logging.WARNING,
            generation=msg.generation,
            error=str(error),
        )
        if msg.generation != session.prediction_gen:
            return []
        session.last_error = str(error)
        session.prediction = ""
        session.explanation = ""
        session.buffer.set_suggestions([])
        return self._set_indicator(LLMStatus.ERROR)

    # Indicator

    def _set_indicator(self, status: LLMStatus) -> list[Command]:
        indicator = self.session.indicator
        indicator.set_status(status)
        if status is LLMStatus.IN_FLIGHT and not indicator.ticking:
            indicator.ticking = True
            return [Schedule(delay=TICK_INTERVAL, message=IndicatorTick())]
        return []

    def _on_indicator_tick(self, msg: IndicatorTick) -> list[Command]:
        indicator = self.session.indicator
        if indicator.status is not LLMStatus.IN_FLIGHT:
            indicator.ticking = False
            return []
        indicator.advance()
        return [Schedule(delay=TICK_INTERVAL, message=IndicatorTick())]

    # Idle summary

    def _on_idle_check(self, msg: IdleCheck) -> list[Command]:
        return self._idle.on_check(msg)

    def _on_idle_summary(self, msg: IdleSummaryReady) -> list[Command]:
        self._idle.on_result(msg)
        return []

    # Prompt refresh

    def _prompt_task(self, generator: PromptGenerator) -> Spawn:
        generation = self.session.prompts.current

        def on_error(exc: BaseException) -> None:
            log_event(logger, "prompt.failed", level=logging.DEBUG, error=str(exc) or type(exc).__name__)
            return None

        return Spawn(
            name="prompt",
            run=generator,
            timeout=self.options.prompt_timeout,
            on_result=lambda prompt: PromptReady(generation, prompt or ""),
            on_error=on_error,
        )

    def _on_prompt(self, msg: PromptReady) -> list[Command]:
        session = self.session
        if msg.generation != session.prompts.current:
            log_event(logger, "prompt.discarded", level=logging.DEBUG, generation=msg.generation)
            return []
        if not msg.prompt.strip():
            return []
        prompt = msg.prompt if msg.prompt.endswith(" ") else f"{msg.prompt} "
        if not session.multiline.is_open:
            session.prompt = prompt
        session.original_prompt = prompt
        return []

    # Border probes

    def _git_status_task(self) -> Spawn:
        directory = self.options.current_directory

        def on_error(exc: BaseException) -> None:
            log_event(logger, "git_status.failed", level=logging.DEBUG, error=str(exc) or type(exc).__name__)
            return None

        return Spawn(
            name="git_status",
            run=lambda: get_git_status(directory),
            timeout=self.options.git_status_timeout,
            on_result=GitStatusUpdated,
            on_error=on_error,
        )

    def _on_git_status(self, msg: GitStatusUpdated) -> list[Command]:
        if msg.status is not None:
            self.session.border.update_git(msg.status)
        return []

    def _resource_task(self) -> Spawn:
        def on_error(exc: BaseException) -> Message:
            log_event(logger, "resources.failed", level=logging.DEBUG, error=str(exc) or type(exc).__name__)
            return ResourcesUpdated(None)

        return Spawn(
            name="resources",
            run=lambda: asyncio.to_thread(get_resources),
            timeout=max(self.options.resource_update_interval, 1.0),
            on_result=ResourcesUpdated,
            on_error=on_error,
        )

    def _on_resource_tick(self, msg: ResourceTick) -> list[Command]:
        return [self._resource_task()]

    def _on_resources(self, msg: ResourcesUpdated) -> list[Command]:
        if msg.resources is not None:
            self.session.border.update_resources(msg.resources)
        interval = self.options.resource_update_interval
        if interval <= 0:
            return []
        return [Schedule(delay=interval, message=ResourceTick())]
