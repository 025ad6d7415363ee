# Shared value types for the analysis engine.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

NEUTRAL_SCORE = 0.5


class Classification(str, Enum):
    BOT = "bot"
    UNCERTAIN = "uncertain"
    HUMAN = "human"


@dataclass
class ChannelScores:
    """Bot-likelihood score per channel, each in [0, 1]; 0.5 is neutral."""

    pointer: float = NEUTRAL_SCORE
    touch: float = NEUTRAL_SCORE
    click: float = NEUTRAL_SCORE
    keyboard: float = NEUTRAL_SCORE
    timing: float = NEUTRAL_SCORE

    def to_dict(self) -> dict[str, Any]:
        return {
            "pointer": self.pointer,
            "touch": self.touch,
            "click": self.click,
            "keyboard": self.keyboard,
            "timing": self.timing,
        }
