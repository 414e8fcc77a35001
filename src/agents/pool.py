"""
Agent Pool Module
=================

Registry and scheduler for many agents.

Each agent gets its own AgentController, ExperienceStore and random
stream. Policy models are per-agent by default; with
``config.shared_model`` all agents share one PolicyModel whose lock keeps
inference and training from interleaving.

Decision and learn ticks for different agents run on a bounded thread
pool. Ticks for one agent are serialized by its controller. Removing an
agent closes its controller, so queued ticks for it are skipped.

Author: Penguin AI Team
"""

import logging
import threading
import numpy as np
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from training.config import SimulationConfig

from .agent_state import Decision, Position
from .controller import AgentController, build_policy_model
from .errors import AgentClosedError
from .policy_model import PolicyModel


logger = logging.getLogger(__name__)


class AgentPool:
    """
    Multi-agent registry with bounded parallel ticks.

    Example:
        >>> with AgentPool(config) as pool:
        ...     pool.add_agent("p1", Position(100, 100))
        ...     decisions = pool.decide_all({"p1": snapshot})
        ...     pool.learn_all({"p1": 4.0})
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()

        self._agents: Dict[str, AgentController] = {}
        self._registry_lock = threading.Lock()
        self._seed_seq = np.random.SeedSequence(self.config.seed)

        self.shared_model: Optional[PolicyModel] = None
        if self.config.shared_model:
            self.shared_model = build_policy_model(self.config)

        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers),
            thread_name_prefix="penguin-tick"
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_agent(
        self,
        agent_id: str,
        position: Optional[Position] = None,
        initialize: bool = True
    ) -> AgentController:
        """
        Register a new agent.

        Raises:
            ValueError: If agent_id is already registered
        """
        with self._registry_lock:
            if agent_id in self._agents:
                raise ValueError(f"Agent {agent_id} already registered")

            rng = np.random.default_rng(self._seed_seq.spawn(1)[0])
            controller = AgentController(
                agent_id,
                config=self.config,
                model=self.shared_model,
                rng=rng,
                position=position
            )
            self._agents[agent_id] = controller

        if initialize:
            controller.initialize()

        logger.info("Registered penguin %s", agent_id)
        return controller

    def remove_agent(self, agent_id: str) -> bool:
        """Unregister an agent and stop its ticks. Returns False if unknown."""
        with self._registry_lock:
            controller = self._agents.pop(agent_id, None)

        if controller is None:
            return False

        controller.close()
        logger.info("Removed penguin %s", agent_id)
        return True

    def get(self, agent_id: str) -> AgentController:
        return self._agents[agent_id]

    def agent_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._agents)

    def _controllers(self) -> List[AgentController]:
        with self._registry_lock:
            return list(self._agents.values())

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def submit_decide(self, agent_id: str, snapshot: Any = None) -> Future:
        """Schedule one decision tick; the future resolves to a Decision."""
        return self._executor.submit(self.get(agent_id).decide, snapshot)

    def submit_learn(self, agent_id: str, reward: float) -> Future:
        """Schedule one learn tick; the future resolves to the training loss or None."""
        return self._executor.submit(self.get(agent_id).learn, reward)

    def decide_all(
        self,
        snapshots: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Decision]:
        """
        One decision tick for every registered agent, in parallel.

        Agents removed while their tick was queued are left out.
        """
        snapshots = snapshots or {}
        futures = {
            c.agent_id: self._executor.submit(c.decide, snapshots.get(c.agent_id))
            for c in self._controllers()
        }
        return self._collect(futures)

    def learn_all(self, rewards: Mapping[str, float]) -> Dict[str, Optional[float]]:
        """One learn tick per agent in ``rewards``. Unknown ids are ignored."""
        futures = {}
        for agent_id, reward in rewards.items():
            controller = self._agents.get(agent_id)
            if controller is not None:
                futures[agent_id] = self._executor.submit(controller.learn, reward)
        return self._collect(futures)

    def learn_from_outcomes(self, outcomes: Mapping[str, Any]) -> Dict[str, float]:
        """Score and learn from each agent's outcome. Returns the rewards."""
        futures = {}
        for agent_id, outcome in outcomes.items():
            controller = self._agents.get(agent_id)
            if controller is not None:
                futures[agent_id] = self._executor.submit(controller.learn_from_outcome, outcome)
        return self._collect(futures)

    def _collect(self, futures: Dict[str, Future]) -> Dict[str, Any]:
        results = {}
        for agent_id, future in futures.items():
            try:
                results[agent_id] = future.result()
            except AgentClosedError:
                logger.debug("Skipped tick for removed penguin %s", agent_id)
        return results

    def global_training_pass(self) -> Dict[str, Optional[float]]:
        """
        One replay batch per agent, sequentially.

        Goes through each controller's lock, so it never races that
        agent's own learn tick.
        """
        losses = {}
        for controller in self._controllers():
            try:
                losses[controller.agent_id] = controller.train_from_replay()
            except AgentClosedError:
                continue
        return losses

    # ------------------------------------------------------------------
    # Persistence / lifecycle
    # ------------------------------------------------------------------

    def save_all(self) -> List[Path]:
        """Save the shared model, or every agent's own model."""
        if self.shared_model is not None:
            if not self.shared_model.is_initialized:
                return []
            return [self.shared_model.save(self.config.base_model_name)]

        return [c.save_model() for c in self._controllers() if c.model.is_initialized]

    def shutdown(self, wait: bool = True):
        """Stop the executor and close every controller."""
        self._executor.shutdown(wait=wait)
        for controller in self._controllers():
            controller.close()

    def __enter__(self) -> "AgentPool":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
