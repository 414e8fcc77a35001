"""
Training Module
===============

Configuration and headless simulation infrastructure.

Components:
    - config: Simulation configuration
    - metrics: Rolling statistics and run logs
    - trainer: Synthetic world and simulation loop

Example:
    >>> from training import Trainer, get_debug_config
    >>> trainer = Trainer(get_debug_config())
    >>> trainer.train()
"""

from .config import (
    SimulationConfig,
    WorldConfig,
    NetworkConfig,
    ReplayConfig,
    ExplorationConfig,
    get_debug_config,
    get_default_config
)

from .metrics import (
    MetricsLogger,
    RollingStats
)

from .trainer import Trainer, SyntheticWorld

__all__ = [
    # Config
    "SimulationConfig",
    "WorldConfig",
    "NetworkConfig",
    "ReplayConfig",
    "ExplorationConfig",
    "get_debug_config",
    "get_default_config",
    # Metrics
    "MetricsLogger",
    "RollingStats",
    # Trainer
    "Trainer",
    "SyntheticWorld"
]
