"""
Environment Module
==================

Everything the decision core knows about the world around an agent.
    - action_space: Closed action set, controller states, action outcomes
    - state_encoder: 16-dimensional normalized state vector
    - reward: Shaped reward with achievement and penalty tables
"""

from .action_space import Action, AgentStatus, ActionOutcome, NUM_ACTIONS
from .state_encoder import EnvironmentSnapshot, EnvironmentFeatures, StateEncoder
from .reward import (
    RewardCalculator,
    RewardComponents,
    ACHIEVEMENT_REWARDS,
    PENALTY_REWARDS,
)

__all__ = [
    "Action",
    "AgentStatus",
    "ActionOutcome",
    "NUM_ACTIONS",
    "EnvironmentSnapshot",
    "EnvironmentFeatures",
    "StateEncoder",
    "RewardCalculator",
    "RewardComponents",
    "ACHIEVEMENT_REWARDS",
    "PENALTY_REWARDS",
]
