"""
Agent State Module
==================

Per-agent mutable state and the Decision returned by one decision tick.

Author: Penguin AI Team
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from environment.action_space import Action


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to [low, high]."""
    return max(low, min(high, value))


@dataclass
class Position:
    """2D world coordinate."""
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class Performance:
    """Monotonic counters plus the rolling efficiency statistic."""
    fish_collected: int = 0
    yarn_collected: int = 0
    social_interactions: int = 0
    efficiency: float = 0.0


@dataclass
class AgentState:
    """
    Internal state of one agent.

    ``happiness`` and ``energy`` live in [0, 100] and are clamped on every
    write. ``memory`` holds the most recent action codes, newest first.
    """

    id: str
    position: Position = field(default_factory=Position)
    happiness: float = 50.0
    energy: float = 100.0
    current_action: Optional[Action] = None
    memory: List[int] = field(default_factory=lambda: [0] * 16)
    performance: Performance = field(default_factory=Performance)

    def __setattr__(self, name: str, value: Any):
        if name in ("happiness", "energy"):
            value = clamp(float(value), 0.0, 100.0)
        super().__setattr__(name, value)

    def push_memory(self, code: int, length: int = 16):
        """Record an action code at the front and truncate to length."""
        self.memory = ([int(code)] + list(self.memory))[:length]

    def copy(self) -> "AgentState":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position.to_dict(),
            "happiness": self.happiness,
            "energy": self.energy,
            "current_action": self.current_action.label if self.current_action is not None else None,
            "memory": list(self.memory),
            "performance": {
                "fish_collected": self.performance.fish_collected,
                "yarn_collected": self.performance.yarn_collected,
                "social_interactions": self.performance.social_interactions,
                "efficiency": self.performance.efficiency,
            },
        }


@dataclass
class Decision:
    """
    Output of one decision tick.

    Attributes:
        action: Chosen action
        target: Destination for move/collect, None otherwise
        confidence: Certainty in [0, 1]
        reasoning: Short rule-derived rationale
    """

    action: Action
    target: Optional[Position] = None
    confidence: float = 0.1
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.label,
            "target": self.target.to_dict() if self.target is not None else None,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


FALLBACK_REASONING = "fallback"


def fallback_decision() -> Decision:
    """Decision returned when a tick fails internally."""
    return Decision(action=Action.REST, target=None, confidence=0.1, reasoning=FALLBACK_REASONING)
