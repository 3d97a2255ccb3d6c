from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest
from prompt_toolkit.keys import Keys  # type: ignore

from gline.completion import Candidate
from gline.config import EditorOptions
from gline.errors import ProviderError, SessionClosedError
from gline.indicator import LLMStatus
from gline.messages import (
    AttemptPrediction,
    ExplanationReady,
    Finish,
    PredictionReady,
    PromptReady,
    ProviderFailed,
    ResizeEvent,
)
from gline.render import render_final
from gline.session import Mode, Outcome
from gline.text import strip_ansi
from tests.utils import complete, feed, key, make_controller, scheduled, spawns, typed


def _predictor(prediction: str = "git status", context: str = "") -> AsyncMock:
    predictor = AsyncMock()
    predictor.predict.return_value = (prediction, context)
    return predictor


def _explainer(text: str = "Show the working tree status") -> AsyncMock:
    explainer = AsyncMock()
    explainer.explain.return_value = text
    return explainer


def test_start_requests_null_state_prediction() -> None:
    controller = make_controller(predictor=_predictor())
    commands = controller.start()

    requests = spawns(commands, "prediction")
    assert len(requests) == 1
    assert controller.session.prediction_gen == 0
    assert controller.session.explanation == "Tip"
    assert controller.session.indicator.status is LLMStatus.IN_FLIGHT


def test_start_without_predictor_issues_no_request() -> None:
    controller = make_controller()
    assert spawns(controller.start()) == []


@pytest.mark.asyncio
async def test_typing_burst_predicts_once_and_drops_stale_explanation() -> None:
    predictor = _predictor("git status", "git")
    explainer = _explainer()
    controller = make_controller(predictor=predictor, explainer=explainer)
    session = controller.session
    controller.start()

    timers = scheduled(feed(controller, typed("git")), AttemptPrediction)
    assert [t.generation for t in timers] == [1, 2, 3]

    requests = spawns(feed(controller, timers), "prediction")
    assert len(requests) == 1

    ready = await complete(requests[0])
    assert ready == PredictionReady(3, "git status", "git")
    predictor.predict.assert_awaited_once_with("git")

    explain = spawns(controller.handle(ready), "explanation")
    assert len(explain) == 1
    assert session.prediction == "git status"
    assert session.last_prediction_input == "git"
    assert session.buffer.ghost_text() == " status"

    feed(controller, typed("h"))
    assert session.prediction_gen == 4

    stale = await complete(explain[0])
    assert isinstance(stale, ExplanationReady)
    assert stale.generation == 3
    assert controller.handle(stale) == []
    assert session.explanation == ""
    assert session.prediction == ""


@pytest.mark.asyncio
async def test_explanation_applied_when_generation_matches() -> None:
    controller = make_controller(predictor=_predictor(), explainer=_explainer("Shows status"))
    session = controller.session
    controller.start()
    timers = scheduled(feed(controller, typed("git")), AttemptPrediction)
    request = spawns(controller.handle(timers[-1]), "prediction")[0]
    explain = spawns(controller.handle(await complete(request)), "explanation")[0]

    controller.handle(await complete(explain))

    assert session.explanation == "Shows status"
    assert session.indicator.status is LLMStatus.SUCCESS


def test_older_prediction_never_overwrites_newer() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    feed(controller, typed("gi"))

    controller.handle(PredictionReady(2, "git push"))
    controller.handle(PredictionReady(1, "gimp"))

    assert session.prediction == "git push"


def test_typing_into_existing_prediction_skips_new_request() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    feed(controller, typed("git"))
    controller.handle(PredictionReady(session.prediction_gen, "git status"))

    commands = feed(controller, typed(" st"))

    assert scheduled(commands, AttemptPrediction) == []
    assert session.prediction == "git status"


def test_accepting_suggestion_with_right_arrow() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    feed(controller, typed("git"))
    controller.handle(PredictionReady(session.prediction_gen, "git status"))

    commands = controller.handle(key(Keys.Right))

    assert session.buffer.value == "git status"
    assert scheduled(commands, AttemptPrediction) == []


def test_result_carries_last_prediction_context() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    feed(controller, typed("git s"))
    controller.handle(PredictionReady(session.prediction_gen, "git status", "<command>git s</command>"))

    commands = controller.handle(key(Keys.Enter))

    assert isinstance(commands[-1], Finish)
    result = session.edit_result()
    assert result.text == "git s"
    assert result.prompt == "$ "
    assert result.prediction == "git status"
    assert result.prediction_input == "<command>git s</command>"


def test_agent_commands_never_request_predictions() -> None:
    controller = make_controller(predictor=_predictor())
    controller.start()

    timers = scheduled(feed(controller, typed("#fix it")), AttemptPrediction)

    assert spawns(controller.handle(timers[-1])) == []


@pytest.mark.asyncio
async def test_prediction_failure_shows_error_until_next_edit() -> None:
    predictor = AsyncMock()
    predictor.predict.side_effect = RuntimeError("rate limited")
    controller = make_controller(predictor=predictor)
    session = controller.session
    controller.start()
    timers = scheduled(feed(controller, typed("ls")), AttemptPrediction)
    request = spawns(controller.handle(timers[-1]), "prediction")[0]

    failed = await complete(request)
    assert isinstance(failed, ProviderFailed)
    assert failed.error.source == "prediction"
    controller.handle(failed)

    assert session.last_error == "rate limited"
    assert session.indicator.status is LLMStatus.ERROR

    feed(controller, typed(" "))
    assert session.last_error == ""


def test_stale_failure_is_ignored() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    feed(controller, typed("ls"))

    controller.handle(ProviderFailed(1, ProviderError("prediction", RuntimeError("boom"))))

    assert session.last_error == ""


def test_clearing_buffer_restores_default_explanation() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    feed(controller, typed("l"))
    assert session.explanation == ""

    commands = controller.handle(key(Keys.Backspace))

    assert session.buffer.value == ""
    assert session.explanation == "Tip"
    assert scheduled(commands, AttemptPrediction) == []


def test_backspace_on_empty_buffer_bumps_generation_without_request() -> None:
    controller = make_controller(predictor=_predictor())
    session = controller.session
    controller.start()
    before = session.prediction_gen

    commands = controller.handle(key(Keys.Backspace))

    assert commands == []
    assert session.prediction_gen == before + 1
    assert session.dirty
    assert session.explanation == "Tip"


@pytest.mark.asyncio
async def test_kill_suppresses_ghost_and_explains_buffer() -> None:
    explainer = _explainer()
    controller = make_controller(predictor=_predictor(), explainer=explainer)
    session = controller.session
    controller.start()
    feed(controller, typed("git st"))
    controller.handle(PredictionReady(session.prediction_gen, "git status"))

    commands = controller.handle(key(Keys.ControlW))

    assert session.buffer.value == "git "
    assert session.buffer.suppressed_until_input
    assert session.prediction == ""
    timers = scheduled(commands, AttemptPrediction)
    assert len(timers) == 1

    explain = spawns(controller.handle(PredictionReady(timers[0].generation, "git status")), "explanation")
    assert session.buffer.ghost_text() == ""
    await complete(explain[0])
    explainer.explain.assert_awaited_once_with("git ")


def test_multiline_command_commits_joined_lines() -> None:
    controller = make_controller()
    session = controller.session
    controller.start()

    for line in ["for i in 1 2 3; do", "echo $i"]:
        controller.handle(key(Keys.Any, line))
        commands = controller.handle(key(Keys.Enter))
        assert not [c for c in commands if isinstance(c, Finish)]
        assert session.prompt == "> "
        assert session.buffer.value == ""

    controller.handle(key(Keys.Any, "done"))
    commands = controller.handle(key(Keys.Enter))

    assert Finish(Outcome.COMMAND, "for i in 1 2 3; do\necho $i\ndone") in commands
    assert session.mode is Mode.COMMITTED
    assert not session.multiline.is_open
    assert session.edit_result().prompt == "$ "


def test_enter_on_blank_line_commits_empty_command() -> None:
    controller = make_controller()
    controller.start()

    assert controller.handle(key(Keys.Enter)) == [Finish(Outcome.COMMAND, "")]


def test_whitespace_line_resets_instead_of_committing() -> None:
    controller = make_controller()
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "   "))

    assert controller.handle(key(Keys.Enter)) == []
    assert session.mode is Mode.ACTIVE
    assert session.buffer.value == ""


def test_interrupt_keeps_accumulated_lines_for_transcript() -> None:
    controller = make_controller()
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "if true; then"))
    controller.handle(key(Keys.Enter))
    controller.handle(key(Keys.Any, "echo 1"))

    commands = controller.handle(key(Keys.ControlC))

    assert commands == [Finish(Outcome.INTERRUPTED, "")]
    assert session.mode is Mode.INTERRUPTED
    assert session.result == ""
    assert not session.multiline.is_open
    assert strip_ansi(render_final(session)).split("\n") == ["$ if true; then", "> echo 1^C"]


def test_ctrl_d_on_blank_line_ends_input() -> None:
    controller = make_controller()
    controller.start()
    controller.handle(key(Keys.Any, "  "))

    commands = controller.handle(key(Keys.ControlD))

    assert commands == [Finish(Outcome.END_OF_INPUT, "")]
    result = controller.session.edit_result()
    assert result.end_of_input
    assert result.text == ""


def test_ctrl_d_with_text_deletes_under_cursor() -> None:
    controller = make_controller()
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "ab"))
    controller.handle(key(Keys.Left))

    controller.handle(key(Keys.ControlD))

    assert session.buffer.value == "a"
    assert session.active


def test_finished_session_ignores_messages_and_cannot_finish_twice() -> None:
    controller = make_controller()
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "ls"))
    controller.handle(key(Keys.Enter))

    assert controller.handle(key(Keys.Any, "x")) == []
    assert session.result == "ls"
    with pytest.raises(SessionClosedError):
        session.finish("other", Mode.COMMITTED, Outcome.COMMAND)


def test_tab_cycles_completions_and_escape_restores_word() -> None:
    provider = Mock()
    provider.get_completions.return_value = [Candidate("status"), Candidate("stash")]
    controller = make_controller(completion_provider=provider)
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "git st"))

    controller.handle(key(Keys.Tab))
    assert session.buffer.value == "git status"
    provider.get_completions.assert_called_once_with("st", ["git"])

    controller.handle(key(Keys.Tab))
    assert session.buffer.value == "git stash"

    controller.handle(key(Keys.BackTab))
    assert session.buffer.value == "git status"

    controller.handle(key(Keys.Escape))
    assert session.buffer.value == "git st"
    assert not session.completion.active


def test_single_completion_is_applied_directly() -> None:
    provider = Mock()
    provider.get_completions.return_value = [Candidate("checkout")]
    controller = make_controller(completion_provider=provider)
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "git che"))

    controller.handle(key(Keys.Tab))

    assert session.buffer.value == "git checkout"
    assert not session.completion.active


def test_enter_commits_the_highlighted_completion() -> None:
    provider = Mock()
    provider.get_completions.return_value = [Candidate("status"), Candidate("stash")]
    controller = make_controller(completion_provider=provider)
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "git st"))
    controller.handle(key(Keys.Tab))
    assert session.completion.active

    controller.handle(key(Keys.Enter))

    assert not session.completion.active
    assert session.result == "git status"
    assert session.outcome is Outcome.COMMAND


def test_history_search_selects_entry() -> None:
    controller = make_controller(history=["git status", "ls -la", "git push"])
    session = controller.session
    controller.start()

    controller.handle(key(Keys.ControlR))
    controller.handle(key(Keys.Any, "git"))
    assert session.history_search.matches == ["git status", "git push"]

    controller.handle(key(Keys.Down))
    controller.handle(key(Keys.Enter))

    assert session.buffer.value == "git push"
    assert not session.history_search.active
    assert session.active


def test_history_search_cancel_keeps_buffer() -> None:
    controller = make_controller(history=["git status"])
    session = controller.session
    controller.start()
    controller.handle(key(Keys.Any, "ls"))

    controller.handle(key(Keys.ControlR))
    controller.handle(key(Keys.ControlG))

    assert not session.history_search.active
    assert session.buffer.value == "ls"


def test_up_arrow_recalls_history() -> None:
    controller = make_controller(history=["make test", "make"])
    session = controller.session
    controller.start()

    controller.handle(key(Keys.Up))
    assert session.buffer.value == "make test"
    controller.handle(key(Keys.Up))
    assert session.buffer.value == "make"
    controller.handle(key(Keys.Down))
    assert session.buffer.value == "make test"


def test_help_topic_follows_first_word() -> None:
    options = EditorOptions(resource_update_interval=0, help_topics={"#!new": "Start a new chat"})
    controller = make_controller(options=options)
    session = controller.session
    controller.start()

    controller.handle(key(Keys.Any, "#!new"))
    assert session.help_text == "Start a new chat"
    controller.handle(key(Keys.ControlU))
    assert session.help_text == ""


@pytest.mark.asyncio
async def test_prompt_refresh_swaps_prompt_when_current() -> None:
    generator = AsyncMock(return_value="~/src >")
    controller = make_controller(prompt_generator=generator)
    session = controller.session

    task = spawns(controller.start(), "prompt")[0]
    controller.handle(await complete(task))

    assert session.prompt == "~/src > "
    assert session.original_prompt == "~/src > "


def test_stale_or_empty_prompt_keeps_cached_prompt() -> None:
    controller = make_controller(prompt_generator=AsyncMock(return_value=""))
    session = controller.session
    controller.start()

    controller.handle(PromptReady(0, ""))
    session.prompts.advance()
    controller.handle(PromptReady(0, "new >"))

    assert session.prompt == "$ "


def test_resize_updates_viewport() -> None:
    controller = make_controller()
    controller.start()

    controller.handle(ResizeEvent(120, 40))

    assert controller.session.viewport == (120, 40)
