"""Provider contracts consumed by the editor, plus default implementations.

The editor only needs four coroutines: predict the rest of a line, explain a
command, summarise recent activity while idle, and produce a prompt string.
The pydantic-ai adapters here are deliberately thin; anything smarter lives in
the caller.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol, Sequence

from pydantic import BaseModel, Field
from pydantic_ai import Agent as PydanticAgent  # type: ignore
from pydantic_ai.models import Model  # type: ignore

IdleSummaryGenerator = Callable[[], Awaitable[str]]
PromptGenerator = Callable[[], Awaitable[str]]

PREDICT_INSTRUCTIONS = (
    "You complete shell commands. You are given the partial command typed so far inside "
    "<command> tags. Reply with the single most likely full command, starting with exactly "
    "the text already typed."
)
EXPLAIN_INSTRUCTIONS = (
    "You explain shell commands. Given a command inside <command> tags, say concisely what it "
    "will do. If it has a syntax error, wrong arguments or is dangerous, put a short warning "
    "in the 'error' field."
)
IDLE_INSTRUCTIONS = (
    "You summarise a terminal session. Given the most recent commands, one per line, write two "
    "or three short sentences describing what the user has been working on and a likely next step."
)


class Predictor(Protocol):
    async def predict(self, text: str) -> tuple[str, str]:
        """Return ``(suggestion, input_context)`` for the current buffer."""
        ...


class Explainer(Protocol):
    async def explain(self, text: str) -> str:
        ...


class NoopPredictor:
    async def predict(self, text: str) -> tuple[str, str]:
        return "", ""


class NoopExplainer:
    async def explain(self, text: str) -> str:
        return ""


class PredictedCommand(BaseModel):
    predicted_command: str = Field("", description="The full predicted command line.")


class ExplainedCommand(BaseModel):
    explanation: str = Field("", description="What the command does.")
    error: str = Field("", description="Problems or dangers found in the command, if any.")


def format_explanation(result: ExplainedCommand) -> str:
    if result.error:
        return f"⚠️ {result.error}\n{result.explanation}".strip()
    return result.explanation


class AgentPredictor:
    """Predictor backed by a pydantic-ai agent with structured output."""

    def __init__(self, model: Model | str) -> None:
        self._agent: PydanticAgent[None, PredictedCommand] = PydanticAgent(
            model,
            output_type=PredictedCommand,
            instructions=PREDICT_INSTRUCTIONS,
        )

    async def predict(self, text: str) -> tuple[str, str]:
        if not text.strip():
            return "", ""
        prompt = f"<command>{text}</command>"
        result = await self._agent.run(prompt)
        return result.output.predicted_command, prompt


class AgentExplainer:
    def __init__(self, model: Model | str) -> None:
        self._agent: PydanticAgent[None, ExplainedCommand] = PydanticAgent(
            model,
            output_type=ExplainedCommand,
            instructions=EXPLAIN_INSTRUCTIONS,
        )

    async def explain(self, text: str) -> str:
        if not text.strip():
            return ""
        result = await self._agent.run(f"<command>{text}</command>")
        return format_explanation(result.output)


class AgentIdleSummary:
    """Idle summary generator over a callable returning recent commands."""

    def __init__(self, model: Model | str, recent_commands: Callable[[], Sequence[str]], limit: int = 20) -> None:
        self._agent: PydanticAgent[None, str] = PydanticAgent(model, instructions=IDLE_INSTRUCTIONS)
        self._recent_commands = recent_commands
        self._limit = limit

    async def __call__(self) -> str:
        commands = [c for c in self._recent_commands() if c.strip()][-self._limit :]
        if not commands:
            return ""
        result = await self._agent.run("\n".join(commands))
        return result.output.strip()


class HistoryPredictor:
    """Predicts the most recent history entry that extends the typed text."""

    def __init__(self, history: Callable[[], Sequence[str]]) -> None:
        self._history = history

    async def predict(self, text: str) -> tuple[str, str]:
        if not text.strip():
            return "", ""
        for entry in self._history():
            if entry.startswith(text) and entry != text:
                return entry, text
        return "", text
