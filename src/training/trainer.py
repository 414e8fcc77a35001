"""
Trainer Module
==============

Headless simulation loop that exercises the decision-and-learning core
without a game client.

Each tick:
1. SyntheticWorld builds an environment snapshot for every agent
2. AgentPool runs the decision ticks in parallel
3. SyntheticWorld resolves each decision into an ActionOutcome
4. Rewards are computed by each agent's RewardCalculator and learned
5. Metrics are logged; checkpoints and global replay passes run periodically

Author: Penguin AI Team
"""

import logging
import math
import random
import time
import numpy as np
from pathlib import Path
from typing import Any, Dict, Optional

import torch

from environment.action_space import Action, ActionOutcome
from environment.state_encoder import EnvironmentSnapshot

from .config import SimulationConfig, WorldConfig
from .metrics import MetricsLogger


logger = logging.getLogger(__name__)


class SyntheticWorld:
    """
    Random stand-in for the game world.

    Snapshots and outcomes are loosely correlated (nearby fish make
    collecting succeed more often) so that learning has signal.
    """

    def __init__(self, world: Optional[WorldConfig] = None, rng: Optional[np.random.Generator] = None):
        self.world = world or WorldConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

    def random_position(self):
        from agents.agent_state import Position

        return Position(
            x=float(self.rng.uniform(self.world.min_x, self.world.max_x)),
            y=float(self.rng.uniform(self.world.min_y, self.world.max_y))
        )

    def snapshot(self) -> EnvironmentSnapshot:
        """Random environment; each distance is missing 10% of the time."""
        def maybe_distance():
            if self.rng.random() < 0.1:
                return None
            return float(self.rng.uniform(0.0, 800.0))

        return EnvironmentSnapshot(
            nearest_fish_distance=maybe_distance(),
            nearest_yarn_distance=maybe_distance(),
            nearest_agent_distance=maybe_distance(),
            agent_count=int(self.rng.integers(0, 12)),
            fish_count=int(self.rng.integers(0, 25)),
            yarn_count=int(self.rng.integers(0, 8)),
            mood=float(self.rng.uniform(40.0, 100.0)),
            turbo_mode=bool(self.rng.random() < 0.1),
            hour_of_day=float(self.rng.uniform(0.0, 24.0))
        )

    def resolve(self, decision, snapshot: EnvironmentSnapshot, position) -> ActionOutcome:
        """Turn a decision into what happened."""
        horizon = self.world.distance_horizon

        def closeness(distance):
            if distance is None:
                return 0.0
            return max(0.0, 1.0 - distance / horizon)

        if decision.action is Action.COLLECT:
            fish_p = closeness(snapshot.nearest_fish_distance)
            yarn_p = 0.3 * closeness(snapshot.nearest_yarn_distance)
            return ActionOutcome(
                fish_collected=int(self.rng.binomial(3, fish_p)),
                yarn_collected=int(self.rng.binomial(1, yarn_p))
            )

        if decision.action is Action.SOCIALIZE:
            success = self.rng.random() < 0.2 + 0.6 * closeness(snapshot.nearest_agent_distance)
            return ActionOutcome(social_success=success, social_failure=not success)

        if decision.action is Action.MOVE:
            distance = 0.0
            if decision.target is not None:
                distance = math.hypot(decision.target.x - position.x, decision.target.y - position.y)
            return ActionOutcome(
                reached_target=bool(self.rng.random() < 0.6),
                distance=distance,
                new_area_explored=bool(self.rng.random() < 0.2)
            )

        return ActionOutcome()


class Trainer:
    """
    Runs an AgentPool against a SyntheticWorld.

    Attributes:
        config: Simulation configuration
        pool: Agent pool
        world: Synthetic world
        metrics: Metrics logger

    Example:
        >>> config = get_debug_config()
        >>> trainer = Trainer(config)
        >>> results = trainer.train()
        >>> trainer.close()
    """

    def __init__(
        self,
        config: SimulationConfig = None,
        pool=None,
        seed: int = None
    ):
        """
        Initialize trainer.

        Args:
            config: Simulation configuration (uses defaults if None)
            pool: Pre-built AgentPool (creates and populates one if None)
            seed: Random seed (uses config.seed if None)
        """
        self.config = config or SimulationConfig()
        self.seed = seed if seed is not None else self.config.seed

        self._set_seeds(self.seed)
        self.world = SyntheticWorld(self.config.world, np.random.default_rng(self.seed))

        self.pool = pool or self._create_pool()

        self.output_dir = Path(self.config.output_dir) / self.config.experiment_name
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.metrics = MetricsLogger(
            output_dir=self.config.output_dir,
            experiment_name=self.config.experiment_name
        )

        self.config.save(self.output_dir / "config.json")

        self.total_ticks = 0

    def _set_seeds(self, seed: int):
        """Set random seeds for reproducibility."""
        random.seed(seed)
        np.random.seed(seed)
        torch.manual_seed(seed)

    def _create_pool(self):
        """Create and populate an AgentPool from config."""
        from agents.pool import AgentPool

        pool = AgentPool(self.config)
        for i in range(self.config.num_agents):
            pool.add_agent(f"penguin-{i}", position=self.world.random_position())
        return pool

    def step(self) -> Dict[str, Any]:
        """
        Run one tick for every agent.

        Returns:
            Dictionary with per-tick statistics
        """
        agent_ids = self.pool.agent_ids()
        snapshots = {agent_id: self.world.snapshot() for agent_id in agent_ids}

        calls_before = {a: self.pool.get(a).training_calls for a in agent_ids}
        fallbacks_before = {a: self.pool.get(a).fallback_count for a in agent_ids}
        decisions = self.pool.decide_all(snapshots)

        outcomes = {}
        for agent_id, decision in decisions.items():
            controller = self.pool.get(agent_id)
            position = controller.state.position
            outcomes[agent_id] = self.world.resolve(decision, snapshots[agent_id], position)
            if decision.target is not None and outcomes[agent_id].reached_target:
                controller.update_position(decision.target.x, decision.target.y)

        rewards = self.pool.learn_from_outcomes(outcomes)

        efficiencies = []
        fallbacks = 0
        for agent_id in decisions:
            controller = self.pool.get(agent_id)
            efficiencies.append(controller.state.performance.efficiency)
            fallbacks += controller.fallback_count - fallbacks_before[agent_id]
            if controller.training_calls > calls_before[agent_id] and controller.last_training_loss is not None:
                self.metrics.log_update(controller.last_training_loss)

        self.metrics.log_tick(
            rewards=list(rewards.values()),
            efficiencies=efficiencies,
            actions=[d.action.label for d in decisions.values()],
            fallbacks=fallbacks
        )
        self.total_ticks += 1

        return {
            "decisions": len(decisions),
            "mean_reward": float(np.mean(list(rewards.values()))) if rewards else 0.0,
            "fallbacks": fallbacks
        }

    def train(self, total_ticks: Optional[int] = None) -> Dict[str, Any]:
        """
        Main simulation loop.

        Args:
            total_ticks: Ticks to run (uses config.total_ticks if None)

        Returns:
            Final statistics
        """
        total_ticks = total_ticks or self.config.total_ticks
        start = time.time()

        logger.info("Starting simulation: %d agents, %d ticks, shared_model=%s",
                    len(self.pool), total_ticks, self.config.shared_model)

        for _ in range(total_ticks):
            self.step()
            tick = self.total_ticks

            if self.config.log_interval and tick % self.config.log_interval == 0:
                self.metrics.log_progress(tick)
                logger.info(self.metrics.format_stats(prefix=f"[{tick}] "))

            if self.config.global_training_interval and tick % self.config.global_training_interval == 0:
                losses = self.pool.global_training_pass()
                for loss in losses.values():
                    if loss is not None:
                        self.metrics.log_update(loss)

            if self.config.save_interval and tick % self.config.save_interval == 0:
                self.save_checkpoint()

        self.save_checkpoint()
        self.metrics.save()

        stats = self.metrics.get_stats()
        return {
            "total_ticks": self.total_ticks,
            "reward_mean": stats["reward_mean"],
            "efficiency_mean": stats["efficiency_mean"],
            "total_updates": stats["total_updates"],
            "time_elapsed": time.time() - start
        }

    def save_checkpoint(self):
        """Save policy checkpoints for the whole pool."""
        paths = self.pool.save_all()
        logger.info("Saved %d checkpoint(s) at tick %d", len(paths), self.total_ticks)
        return paths

    def close(self):
        self.pool.shutdown()
        self.metrics.close()
