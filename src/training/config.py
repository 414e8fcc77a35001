"""
Simulation Configuration Module
===============================

Centralized configuration for the decision-and-learning core.

Author: Penguin AI Team
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict
import json
from pathlib import Path


@dataclass
class WorldConfig:
    """World geometry and normalization constants."""

    world_extent: float = 1000.0    # Position divisor for the state vector
    min_x: float = 50.0             # Target bounds
    max_x: float = 950.0
    min_y: float = 50.0
    max_y: float = 650.0

    distance_horizon: float = 500.0  # Distance mapped to "far" (1.0)
    crowd_cap: int = 10              # Penguins mapped to density 1.0
    item_cap: int = 20               # Items mapped to density 1.0

    move_radius: float = 150.0       # Max per-axis offset for move targets
    collect_radius: float = 100.0    # Max per-axis offset for collect targets


@dataclass
class NetworkConfig:
    """Policy network configuration."""

    input_dim: int = 16             # State vector width
    hidden_dim: int = 64            # Hidden layer size
    output_dim: int = 4             # {move, collect, socialize, rest}
    dropout: float = 0.3            # Dropout after the first hidden layer
    l2: float = 1e-4                # L2 penalty on hidden-layer weights
    learning_rate: float = 1e-3     # Adam learning rate

    reward_step: float = 0.1        # Target nudge per unit of reward
    probability_floor: float = 0.01  # Minimum target probability


@dataclass
class ReplayConfig:
    """Experience replay configuration."""

    capacity: int = 1000            # Hard bound on stored experiences
    batch_size: int = 32            # Samples per training batch
    min_replay_size: int = 32       # Store size before training starts
    efficiency_window: int = 10     # Non-zero rewards in the efficiency mean


@dataclass
class ExplorationConfig:
    """Adaptive epsilon-greedy configuration."""

    epsilon_start: float = 0.3      # Epsilon at zero efficiency
    epsilon_min: float = 0.01       # Floor
    efficiency_decay: float = 0.2   # Epsilon reduction per unit efficiency


@dataclass
class SimulationConfig:
    """Complete configuration."""

    # Sub-configs
    world: WorldConfig = field(default_factory=WorldConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    exploration: ExplorationConfig = field(default_factory=ExplorationConfig)

    # Agent defaults
    memory_length: int = 16
    initial_happiness: float = 50.0
    initial_energy: float = 100.0

    # Persistence
    checkpoint_dir: str = "models"
    base_model_name: str = "penguin-behavior-base"

    # Scheduling
    shared_model: bool = False      # One PolicyModel for all agents
    max_workers: int = 4            # Parallel decision ticks

    # Headless simulation
    num_agents: int = 4
    total_ticks: int = 2000
    log_interval: int = 100         # Log every N ticks
    save_interval: int = 500        # Checkpoint every N ticks
    global_training_interval: int = 0  # Global replay pass every N ticks (0 = off)
    experiment_name: str = "penguin_sim"
    output_dir: str = "outputs"

    # Reproducibility
    seed: int = 42

    # Device
    device: str = "cpu"             # "auto", "cpu", or "cuda"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: str):
        """Save configuration to JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> "SimulationConfig":
        """Load configuration from JSON. Unknown keys are ignored."""
        with open(path, "r") as f:
            data = json.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        """Build a config, keeping defaults for anything missing."""
        config = cls()

        for section in ("world", "network", "replay", "exploration"):
            if section in data:
                sub = getattr(config, section)
                for k, v in data[section].items():
                    if hasattr(sub, k):
                        setattr(sub, k, v)

        for k, v in data.items():
            if k in ("world", "network", "replay", "exploration"):
                continue
            if hasattr(config, k):
                setattr(config, k, v)

        return config


# =============================================================================
# PRESETS
# =============================================================================

def get_debug_config() -> SimulationConfig:
    """Small, fast config for debugging."""
    config = SimulationConfig()
    config.num_agents = 2
    config.total_ticks = 200
    config.log_interval = 20
    config.save_interval = 100
    config.global_training_interval = 50
    config.max_workers = 2
    config.replay.capacity = 200
    return config


def get_default_config() -> SimulationConfig:
    """Standard simulation run."""
    config = SimulationConfig()
    config.global_training_interval = 250
    return config
