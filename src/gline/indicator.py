"""LLM activity indicator shown in the bottom-right corner of the box."""

from __future__ import annotations

import enum

from gline.text import display_width
from gline.theme import paint

GLYPH = "⚡"
TICK_INTERVAL = 0.25


class LLMStatus(enum.Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCESS = "success"
    ERROR = "error"


class LLMIndicator:
    def __init__(self) -> None:
        self.status = LLMStatus.IDLE
        self.frame = 0
        self.ticking = False

    def set_status(self, status: LLMStatus) -> None:
        self.status = status
        if status is not LLMStatus.IN_FLIGHT:
            self.frame = 0

    def advance(self) -> None:
        self.frame += 1

    def view(self) -> str:
        if self.status is LLMStatus.IN_FLIGHT:
            style = "indicator.in_flight" if self.frame % 2 == 0 else "indicator.in_flight_dim"
        else:
            style = f"indicator.{self.status.value}"
        return paint(style, GLYPH)

    def width(self) -> int:
        return display_width(GLYPH)
