"""
Error types for the decision-and-learning core.

Propagation:
    - Prediction/training failures inside a decision tick are absorbed by
      the controller's fallback decision.
    - CheckpointLoadError during initialize() means "start fresh".
    - CheckpointSaveError is the only error surfaced to callers of save().
"""


class PolicyError(Exception):
    """Base class for policy model failures."""


class ModelNotInitializedError(PolicyError):
    """predict or train_on_batch called before initialize()."""


class CheckpointLoadError(PolicyError):
    """Checkpoint missing, unreadable, or incompatible."""


class CheckpointSaveError(PolicyError):
    """Checkpoint could not be written."""


class TrainingBatchError(PolicyError):
    """A training batch was rejected or failed to fit."""


class ConfigurationError(ValueError):
    """Component widths or settings do not fit together."""


class AgentClosedError(RuntimeError):
    """Tick requested on an agent that has been removed."""
