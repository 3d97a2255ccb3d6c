"""Editor options: defaults, ``config.json``, ``GLINE_*`` environment variables.

Later sources win: defaults < config file < environment (including a ``.env``
file in the config directory or cwd) < explicit overrides.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gline.errors import ConfigError
from gline.log_utils import log_event
from gline.paths import config_dir
from gline.providers import IdleSummaryGenerator

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
ENV_PREFIX = "GLINE_"


class EditorOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    assistant_height: int = Field(3, ge=1, description="Content lines inside the assistant box.")
    idle_summary_timeout: float = Field(0, ge=0, description="Seconds of idleness before a summary; 0 disables.")
    resource_update_interval: float = Field(5, ge=0, description="Seconds between CPU/RAM samples; 0 disables.")
    debounce_delay: float = Field(0.2, ge=0, description="Quiet period before a prediction is requested.")
    prediction_timeout: float = Field(10, gt=0)
    explanation_timeout: float = Field(10, gt=0)
    idle_summary_deadline: float = Field(30, gt=0)
    git_status_timeout: float = Field(1, gt=0)
    prompt_timeout: float = Field(2, gt=0)
    user: str = ""
    host: str = ""
    current_directory: str = ""
    initial_value: str = ""
    help_topics: Dict[str, str] = Field(default_factory=dict)


class ModelSettings(BaseModel):
    """pydantic-ai model names for the bundled LLM adapters."""

    model: str = Field("", description="Model for explanations and idle summaries, e.g. openai:gpt-4o-mini.")
    fast_model: str = Field("", description="Model for predictions; falls back to model.")

    @property
    def prediction_model(self) -> str:
        return self.fast_model or self.model

    @classmethod
    def from_env(cls) -> "ModelSettings":
        return cls(model=os.getenv(f"{ENV_PREFIX}MODEL", ""), fast_model=os.getenv(f"{ENV_PREFIX}FAST_MODEL", ""))


@dataclass(frozen=True)
class IdleOptions:
    """Idle summary wiring. Disabled unless both a timeout and a generator are set."""

    timeout: float = 0
    generator: IdleSummaryGenerator | None = None

    @property
    def enabled(self) -> bool:
        return self.timeout > 0 and self.generator is not None


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log_event(logger, "config.unreadable", level=logging.WARNING, path=str(path), error=str(exc))
        return {}
    if not isinstance(data, dict):
        log_event(logger, "config.not_an_object", level=logging.WARNING, path=str(path))
        return {}
    return data


def _read_environment() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name in EditorOptions.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if name == "help_topics":
            try:
                values[name] = json.loads(raw)
            except ValueError as exc:
                raise ConfigError(f"{ENV_PREFIX}HELP_TOPICS is not valid JSON: {exc}") from exc
        else:
            values[name] = raw
    return values


def load_options(overrides: Mapping[str, Any] | None = None, *, config_file: Path | None = None) -> EditorOptions:
    directory = config_dir()
    load_dotenv(directory / ".env", override=False)
    load_dotenv()

    data: Dict[str, Any] = {}
    data.update(_read_config_file(config_file or directory / CONFIG_FILE_NAME))
    data.update(_read_environment())
    if overrides:
        data.update(overrides)
    try:
        return EditorOptions.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
