"""``gline`` console script: a small REPL that echoes committed commands."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import socket
from typing import Any, Dict

from gline.completion import PathCompletionProvider
from gline.config import EditorOptions, IdleOptions, ModelSettings, load_options
from gline.errors import ConfigError
from gline.host import edit_line
from gline.log_utils import build_log_config, configure_logging, log_event
from gline.providers import (
    AgentExplainer,
    AgentIdleSummary,
    AgentPredictor,
    Explainer,
    HistoryPredictor,
    IdleSummaryGenerator,
    NoopExplainer,
    Predictor,
)

logger = logging.getLogger(__name__)

PROMPT = "gline>"
COACH_TIP = "Type a command. Tab completes, Ctrl+R searches history, Ctrl+D exits."


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Predictive line editor demo")
    parser.add_argument("--assistant-height", type=int, help="Lines inside the assistant box")
    parser.add_argument("--idle-timeout", type=float, help="Seconds before an idle summary (0 disables)")
    parser.add_argument("--model", help="pydantic-ai model for explanations and summaries")
    parser.add_argument("--fast-model", help="pydantic-ai model for predictions")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.assistant_height is not None:
        overrides["assistant_height"] = args.assistant_height
    if args.idle_timeout is not None:
        overrides["idle_summary_timeout"] = args.idle_timeout
    return overrides


def _fill_identity(options: EditorOptions) -> EditorOptions:
    return options.model_copy(
        update={
            "user": options.user or getpass.getuser(),
            "host": options.host or socket.gethostname(),
            "current_directory": options.current_directory or os.getcwd(),
        }
    )


async def run_repl(options: EditorOptions, models: ModelSettings) -> None:
    history: list[str] = []
    predictor: Predictor = HistoryPredictor(lambda: history)
    explainer: Explainer = NoopExplainer()
    idle_generator: IdleSummaryGenerator | None = None
    if models.model:
        predictor = AgentPredictor(models.prediction_model)
        explainer = AgentExplainer(models.model)
        idle_generator = AgentIdleSummary(models.model, lambda: list(reversed(history)))
    idle = IdleOptions(timeout=options.idle_summary_timeout, generator=idle_generator)
    completions = PathCompletionProvider()

    while True:
        result = await edit_line(
            f"{PROMPT} ",
            history,
            COACH_TIP,
            predictor,
            explainer,
            idle,
            options=options,
            completion_provider=completions,
        )
        if result.end_of_input:
            break
        if result.interrupted or not result.text.strip():
            continue
        history.insert(0, result.text)
        log_event(logger, "repl.command", chars=len(result.text))
        print(result.text)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(build_log_config())
    try:
        options = _fill_identity(load_options(_overrides(args)))
    except ConfigError as exc:
        print(f"gline: invalid configuration: {exc}")
        return 2
    models = ModelSettings.from_env()
    if args.model or args.fast_model:
        models = models.model_copy(
            update={"model": args.model or models.model, "fast_model": args.fast_model or models.fast_model}
        )
    try:
        asyncio.run(run_repl(options, models))
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
