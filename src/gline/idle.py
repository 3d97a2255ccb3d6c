"""Idle summary scheduling.

While the buffer stays empty for ``IdleOptions.timeout`` seconds the scheduler
asks the idle summary generator for content and shows it in place of the
default explanation. Every timer and request is tagged with the session's idle
generation, so any edit or dismissal makes outstanding work irrelevant.
"""

from __future__ import annotations

import logging
from typing import Callable

from gline.config import IdleOptions
from gline.log_utils import log_event
from gline.messages import Command, IdleCheck, IdleSummaryReady, Message, Schedule, Spawn
from gline.session import Session

logger = logging.getLogger(__name__)


class IdleScheduler:
    def __init__(
        self,
        session: Session,
        options: IdleOptions,
        *,
        deadline: float = 30.0,
        clock: Callable[[], float],
    ) -> None:
        self._session = session
        self._options = options
        self._deadline = deadline
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._options.enabled

    def arm(self) -> list[Command]:
        """Timer for the next idle check, tagged with the current idle generation."""
        if not self.enabled:
            return []
        return [Schedule(delay=self._options.timeout, message=IdleCheck(self._session.idle_gen))]

    def touch(self) -> list[Command]:
        """Record user activity: hide any summary, supersede pending work, rearm."""
        idle = self._session.idle
        idle.last_input_time = self._clock()
        idle.pending = False
        if idle.shown:
            idle.shown = False
            self._restore()
        self._session.idle_generations.advance()
        return self.arm()

    def dismiss(self) -> list[Command]:
        """Esc while a summary is shown. Returns no commands when nothing is shown."""
        if not self._session.idle.shown:
            return []
        log_event(logger, "idle.dismissed", level=logging.DEBUG)
        return self.touch()

    def on_check(self, msg: IdleCheck) -> list[Command]:
        session = self._session
        idle = session.idle
        if msg.generation != session.idle_gen:
            return []
        if not self.enabled or idle.shown or idle.pending:
            return []
        if session.buffer.value or session.multiline.is_open:
            return self.arm()
        if self._clock() - idle.last_input_time < self._options.timeout:
            return self.arm()

        generator = self._options.generator
        if generator is None:
            return []
        idle.pending = True
        generation = session.idle_gen
        log_event(
            logger,
            "idle.requested",
            level=logging.DEBUG,
            idle_for=round(self._clock() - idle.last_input_time, 2),
        )

        def on_error(exc: BaseException) -> Message:
            log_event(logger, "idle.failed", level=logging.DEBUG, error=str(exc) or type(exc).__name__)
            return IdleSummaryReady(generation, "")

        return [
            Spawn(
                name="idle_summary",
                run=generator,
                timeout=self._deadline,
                on_result=lambda summary: IdleSummaryReady(generation, summary or ""),
                on_error=on_error,
            )
        ]

    def on_result(self, msg: IdleSummaryReady) -> None:
        session = self._session
        idle = session.idle
        if msg.generation != session.idle_gen:
            log_event(logger, "idle.discarded", level=logging.DEBUG, generation=msg.generation, current=session.idle_gen)
            return
        idle.pending = False
        summary = msg.summary.strip()
        if not summary or session.buffer.value:
            return
        if idle.original_explanation is None:
            idle.original_explanation = session.default_explanation
        idle.shown = True
        session.default_explanation = summary
        session.explanation = summary
        log_event(logger, "idle.shown", chars=len(summary))

    def _restore(self) -> None:
        session = self._session
        original = session.idle.original_explanation
        if original is None:
            return
        session.default_explanation = original
        if not session.buffer.value:
            session.explanation = original
