"""
Action Space Module
===================

Closed action set for penguin agents and the outcome data reported back
once an action has played out.

Action Space:
    Discrete: {move, collect, socialize, rest} with fixed indices 0..3

The index of an action is its position in the policy distribution and the
code pushed into an agent's short-term memory.

Author: Penguin AI Team
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Union


class Action(IntEnum):
    """Discrete action set. Values are the policy output indices."""

    MOVE = 0
    COLLECT = 1
    SOCIALIZE = 2
    REST = 3

    @property
    def label(self) -> str:
        """Lower-case name used on the wire ("move", "collect", ...)."""
        return self.name.lower()

    @property
    def status(self) -> "AgentStatus":
        """Controller state entered when this action is chosen."""
        return _ACTION_STATUS[self]

    @classmethod
    def from_index(cls, index: int) -> "Action":
        """
        Map a policy output index to an action.

        Raises:
            ValueError: If index is outside 0..3
        """
        try:
            return cls(int(index))
        except ValueError:
            raise ValueError(f"No action with index {index}") from None

    @classmethod
    def parse(cls, value: Union["Action", str, int]) -> "Action":
        """Accept an Action, its label, or its index."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown action: {value!r}") from None
        return cls.from_index(value)


NUM_ACTIONS = len(Action)


class AgentStatus(Enum):
    """Controller state machine: idle -> {moving, collecting, socializing, resting}."""

    IDLE = "idle"
    MOVING = "moving"
    COLLECTING = "collecting"
    SOCIALIZING = "socializing"
    RESTING = "resting"


_ACTION_STATUS = {
    Action.MOVE: AgentStatus.MOVING,
    Action.COLLECT: AgentStatus.COLLECTING,
    Action.SOCIALIZE: AgentStatus.SOCIALIZING,
    Action.REST: AgentStatus.RESTING,
}


@dataclass
class ActionOutcome:
    """
    What happened as a result of an action.

    Supplied by the outcome-resolution layer and consumed by the
    RewardCalculator. Every field is optional; absent means "did not happen".

    Attributes:
        fish_collected: Number of fish picked up
        yarn_collected: Number of yarn balls picked up
        social_success: A social interaction succeeded
        social_failure: A social interaction was rejected
        reached_target: The agent reached its move target
        distance: Distance travelled during the action
        new_area_explored: The agent entered an unvisited area
    """

    fish_collected: int = 0
    yarn_collected: int = 0
    social_success: bool = False
    social_failure: bool = False
    reached_target: bool = False
    distance: float = 0.0
    new_area_explored: bool = False

    # camelCase keys sent by the game client
    _ALIASES = {
        "fishCollected": "fish_collected",
        "yarnCollected": "yarn_collected",
        "socialSuccess": "social_success",
        "socialFailure": "social_failure",
        "reachedTarget": "reached_target",
        "newAreaExplored": "new_area_explored",
    }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ActionOutcome":
        """Build an outcome from a dict, accepting snake_case or camelCase keys."""
        if not data:
            return cls()

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in cls.__dataclass_fields__ and value is not None:
                kwargs[name] = value

        outcome = cls(**kwargs)
        outcome.fish_collected = max(0, int(outcome.fish_collected))
        outcome.yarn_collected = max(0, int(outcome.yarn_collected))
        outcome.distance = max(0.0, float(outcome.distance))
        return outcome
