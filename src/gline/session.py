"""Session state for one editing turn."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from gline.border import BorderStatus
from gline.buffer import LineBuffer
from gline.completion import CompletionState
from gline.errors import SessionClosedError
from gline.generation import GenerationTracker
from gline.history_search import HistorySearch
from gline.indicator import LLMIndicator
from gline.multiline import MultilineAssembler


class Mode(enum.Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    INTERRUPTED = "interrupted"


class Outcome(enum.Enum):
    COMMAND = "command"
    END_OF_INPUT = "end_of_input"
    INTERRUPTED = "interrupted"


@dataclass
class IdleState:
    shown: bool = False
    pending: bool = False
    last_input_time: float = 0.0
    original_explanation: str | None = None


@dataclass(frozen=True)
class EditResult:
    """What an editing turn produced."""

    text: str
    prompt: str
    outcome: Outcome
    prediction_input: str = ""
    prediction: str = ""

    @property
    def interrupted(self) -> bool:
        return self.outcome is Outcome.INTERRUPTED

    @property
    def end_of_input(self) -> bool:
        return self.outcome is Outcome.END_OF_INPUT


@dataclass
class Session:
    """Mutable state owned by the controller for the lifetime of one prompt."""

    buffer: LineBuffer
    prompt: str
    multiline: MultilineAssembler = field(default_factory=MultilineAssembler)
    original_prompt: str = ""
    mode: Mode = Mode.ACTIVE
    dirty: bool = False
    predictions: GenerationTracker = field(default_factory=GenerationTracker)
    idle_generations: GenerationTracker = field(default_factory=GenerationTracker)
    prompts: GenerationTracker = field(default_factory=GenerationTracker)
    prediction: str = ""
    explanation: str = ""
    default_explanation: str = ""
    last_error: str = ""
    help_text: str = ""
    idle: IdleState = field(default_factory=IdleState)
    result: str | None = None
    outcome: Outcome | None = None
    discarded_lines: list[str] = field(default_factory=list)
    last_prediction_input: str = ""
    last_prediction: str = ""
    viewport: tuple[int, int] = (80, 24)
    completion: CompletionState = field(default_factory=CompletionState)
    history_search: HistorySearch = field(default_factory=HistorySearch)
    indicator: LLMIndicator = field(default_factory=LLMIndicator)
    border: BorderStatus = field(default_factory=BorderStatus)

    def __post_init__(self) -> None:
        if not self.original_prompt:
            self.original_prompt = self.prompt

    @property
    def prediction_gen(self) -> int:
        return self.predictions.current

    @property
    def idle_gen(self) -> int:
        return self.idle_generations.current

    @property
    def active(self) -> bool:
        return self.mode is Mode.ACTIVE

    def finish(self, result: str, mode: Mode, outcome: Outcome) -> None:
        """Move into a terminal mode. ``result`` can be set only once."""
        if self.result is not None or not self.active:
            raise SessionClosedError(f"session already finished ({self.mode.value})")
        if mode is Mode.ACTIVE:
            raise ValueError("finish() needs a terminal mode")
        if mode is Mode.INTERRUPTED:
            self.discarded_lines = self.multiline.lines
        self.multiline.reset()
        self.result = result
        self.mode = mode
        self.outcome = outcome

    def edit_result(self) -> EditResult:
        if self.result is None or self.outcome is None:
            raise SessionClosedError("session is still active")
        return EditResult(
            text=self.result,
            prompt=self.original_prompt,
            outcome=self.outcome,
            prediction_input=self.last_prediction_input,
            prediction=self.last_prediction,
        )
