"""
Metrics Logger Module
=====================

Rolling statistics and run logs for headless simulations.

Features:
    - Rolling statistics
    - CSV logging
    - JSON history and final stats

Author: Penguin AI Team
"""

import csv
import json
import time
from pathlib import Path
from typing import Dict, List, Optional
from collections import deque
import numpy as np


class RollingStats:
    """
    Mean and spread over the last ``window_size`` values.

    The spread of per-agent rewards shows whether the population is
    learning evenly; the spread of losses flags unstable replay batches.
    """

    def __init__(self, window_size: int = 100):
        self.window_size = window_size
        self._window = deque(maxlen=window_size)

    def add(self, value: float):
        self._window.append(float(value))

    def extend(self, values):
        for value in values:
            self.add(value)

    @property
    def mean(self) -> float:
        return float(np.mean(self._window)) if self._window else 0.0

    @property
    def std(self) -> float:
        """Population std; 0 until two values are in the window."""
        return float(np.std(self._window)) if len(self._window) > 1 else 0.0

    def __len__(self) -> int:
        return len(self._window)


class MetricsLogger:
    """
    Metrics logging for simulation runs.

    Tracks:
        - Rewards per learn tick
        - Agent efficiency
        - Training losses
        - Action mix
        - Fallback decisions

    Example:
        >>> logger = MetricsLogger("outputs", "run1")
        >>> logger.log_tick(rewards=[3.0, -1.0], efficiencies=[0.2, 0.1], actions=["rest", "move"])
        >>> logger.log_update(loss=1.28)
        >>> logger.log_progress(tick=100)
        >>> logger.save()
    """

    ACTIONS = ("move", "collect", "socialize", "rest")

    def __init__(
        self,
        output_dir: str,
        experiment_name: str = "experiment",
        window_size: int = 100
    ):
        """
        Initialize logger.

        Args:
            output_dir: Directory for log files
            experiment_name: Name of experiment
            window_size: Size of rolling statistics window
        """
        self.output_dir = Path(output_dir) / experiment_name
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.experiment_name = experiment_name
        self.window_size = window_size

        self.rewards = RollingStats(window_size)
        self.efficiencies = RollingStats(window_size)
        self.losses = RollingStats(window_size)
        self.action_counts: Dict[str, int] = {a: 0 for a in self.ACTIONS}

        self.history: Dict[str, List[float]] = {
            "tick": [],
            "reward": [],
            "efficiency": [],
            "loss": [],
            "fallbacks": [],
            "time_elapsed": []
        }

        self.total_ticks = 0
        self.total_updates = 0
        self.total_fallbacks = 0
        self.start_time = time.time()

        self._csv_file = None
        self._csv_writer = None
        self._init_csv()

    def _init_csv(self):
        """Initialize CSV logging."""
        csv_path = self.output_dir / "simulation_log.csv"
        self._csv_file = open(csv_path, "w", newline="")
        self._csv_writer = csv.DictWriter(
            self._csv_file,
            fieldnames=list(self.history.keys())
        )
        self._csv_writer.writeheader()

    def log_tick(
        self,
        rewards: List[float],
        efficiencies: List[float],
        actions: List[str],
        fallbacks: int = 0
    ):
        """
        Log one simulation tick across all agents.

        Args:
            rewards: Reward per agent
            efficiencies: Efficiency per agent after learning
            actions: Action label per agent
            fallbacks: Fallback decisions taken this tick
        """
        self.rewards.extend(rewards)
        if efficiencies:
            self.efficiencies.add(float(np.mean(efficiencies)))
        for a in actions:
            if a in self.action_counts:
                self.action_counts[a] += 1

        self.total_fallbacks += fallbacks
        self.total_ticks += 1

    def log_update(self, loss: float):
        """Log one training batch."""
        self.losses.add(loss)
        self.total_updates += 1

    def log_progress(self, tick: int):
        """Append a history row with the current rolling means."""
        record = {
            "tick": tick,
            "reward": self.rewards.mean,
            "efficiency": self.efficiencies.mean,
            "loss": self.losses.mean,
            "fallbacks": self.total_fallbacks,
            "time_elapsed": time.time() - self.start_time
        }

        for key, value in record.items():
            self.history[key].append(value)

        if self._csv_writer:
            self._csv_writer.writerow(record)
            self._csv_file.flush()

    def get_stats(self) -> Dict[str, float]:
        """Get current rolling statistics."""
        total_actions = max(1, sum(self.action_counts.values()))
        stats = {
            "reward_mean": self.rewards.mean,
            "reward_std": self.rewards.std,
            "efficiency_mean": self.efficiencies.mean,
            "loss_mean": self.losses.mean,
            "loss_std": self.losses.std,
            "total_ticks": self.total_ticks,
            "total_updates": self.total_updates,
            "total_fallbacks": self.total_fallbacks,
            "time_elapsed": time.time() - self.start_time
        }
        for action, count in self.action_counts.items():
            stats[f"{action}_fraction"] = count / total_actions
        return stats

    def format_stats(self, prefix: str = "") -> str:
        """One-line progress summary."""
        stats = self.get_stats()
        return (f"{prefix}Ticks: {self.total_ticks:,} | "
                f"Reward: {stats['reward_mean']:.2f}+/-{stats['reward_std']:.2f} | "
                f"Efficiency: {stats['efficiency_mean']:.3f} | "
                f"Loss: {stats['loss_mean']:.4f}+/-{stats['loss_std']:.4f} | "
                f"Updates: {self.total_updates}")

    def save(self):
        """Save all logs and history."""
        with open(self.output_dir / "history.json", "w") as f:
            json.dump(self.history, f, indent=2)

        with open(self.output_dir / "final_stats.json", "w") as f:
            json.dump(self.get_stats(), f, indent=2)

    def close(self):
        """Close file handles."""
        if self._csv_file:
            self._csv_file.close()
            self._csv_file = None

    def __del__(self):
        self.close()
