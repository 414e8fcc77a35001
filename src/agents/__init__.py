"""
Agents Module
=============

Decision-and-learning core for penguin agents.
    - agent_state: Per-agent state and the Decision type
    - experience_store: Fixed-capacity replay buffer
    - policy_model: Policy network with checkpoint persistence
    - action_selector: Adaptive epsilon-greedy selection
    - controller: Decision and learn ticks for one agent
    - pool: Multi-agent registry and scheduler
"""

from .errors import (
    PolicyError,
    ModelNotInitializedError,
    CheckpointLoadError,
    CheckpointSaveError,
    TrainingBatchError,
    ConfigurationError,
    AgentClosedError,
)
from .agent_state import AgentState, Decision, Performance, Position
from .experience_store import Experience, ExperienceBatch, ExperienceStore, verify_experience_store
from .policy_model import PolicyModel, PolicyNetwork
from .action_selector import ActionSelector, compute_epsilon
from .controller import AgentController
from .pool import AgentPool

__all__ = [
    # Errors
    "PolicyError",
    "ModelNotInitializedError",
    "CheckpointLoadError",
    "CheckpointSaveError",
    "TrainingBatchError",
    "ConfigurationError",
    "AgentClosedError",
    # State
    "AgentState",
    "Decision",
    "Performance",
    "Position",
    # Replay
    "Experience",
    "ExperienceBatch",
    "ExperienceStore",
    "verify_experience_store",
    # Policy
    "PolicyModel",
    "PolicyNetwork",
    "ActionSelector",
    "compute_epsilon",
    # Control
    "AgentController",
    "AgentPool",
]
