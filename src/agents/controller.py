"""
Agent Controller Module
=======================

Runs one decision tick and one learn tick for a single penguin agent and
owns the agent's mutable state.

Decision tick:
    snapshot → StateEncoder → PolicyModel.predict → ActionSelector
    → Decision + pending Experience + internal state update

Learn tick:
    reward → ExperienceStore.fill_latest_reward → performance update
    → PolicyModel.train_on_batch once the store holds min_replay_size records

Calls on one controller are serialized; different controllers are
independent unless they share a PolicyModel, whose own lock keeps
inference and training from interleaving.

Author: Penguin AI Team
"""

import logging
import math
import threading
import numpy as np
from collections import deque
from typing import Any, Mapping, Optional, Union

from environment.action_space import Action, ActionOutcome, AgentStatus
from environment.reward import RewardCalculator
from environment.state_encoder import EnvironmentSnapshot, StateEncoder
from training.config import SimulationConfig

from .action_selector import ActionSelector
from .agent_state import AgentState, Decision, Position, clamp, fallback_decision
from .errors import AgentClosedError, ConfigurationError, PolicyError
from .experience_store import ExperienceStore
from .policy_model import PolicyModel


logger = logging.getLogger(__name__)

CONFIDENCE_EFFICIENCY_BOOST = 0.2
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95

REST_ENERGY_GAIN = 5.0
ACTIVE_ENERGY_COST = 1.0
HAPPINESS_DRIFT = 1.0

# Reward thresholds for the performance counters
FISH_REWARD_THRESHOLD = 5.0
YARN_REWARD_THRESHOLD = 10.0


def build_policy_model(config: SimulationConfig) -> PolicyModel:
    """Create an uninitialized PolicyModel from config."""
    net = config.network
    return PolicyModel(
        input_dim=net.input_dim,
        hidden_dim=net.hidden_dim,
        output_dim=net.output_dim,
        dropout=net.dropout,
        l2=net.l2,
        learning_rate=net.learning_rate,
        reward_step=net.reward_step,
        probability_floor=net.probability_floor,
        checkpoint_dir=config.checkpoint_dir,
        base_model_name=config.base_model_name,
        device=config.device
    )


def generate_reasoning(action: Action, state: AgentState) -> str:
    """Fixed rationale chosen by threshold rules on the agent's state."""
    if action is Action.MOVE:
        if state.energy > 50:
            return "Exploring for new opportunities"
        return "Moving to conserve energy"
    if action is Action.COLLECT:
        if state.happiness < 70:
            return "Collecting items to boost happiness"
        return "Productive collection behavior"
    if action is Action.SOCIALIZE:
        if state.performance.social_interactions < 5:
            return "Seeking social interaction"
        return "Maintaining social bonds"
    if state.energy < 30:
        return "Resting to recover energy"
    return "Strategic rest period"


class AgentController:
    """
    Decision-and-learning loop for one agent.

    Attributes:
        state: Agent-local mutable state
        model: Policy model (owned, or shared through an AgentPool)
        encoder: State encoder
        selector: Epsilon-greedy action selector
        store: Experience replay store
        reward_calculator: Outcome-based reward shaping

    Example:
        >>> controller = AgentController("p1", model=model)
        >>> controller.initialize()
        >>> decision = controller.decide({"nearestFish": {"distance": 120}})
        >>> controller.learn(reward=7.0)
    """

    def __init__(
        self,
        agent_id: str,
        config: Optional[SimulationConfig] = None,
        model: Optional[PolicyModel] = None,
        encoder: Optional[StateEncoder] = None,
        selector: Optional[ActionSelector] = None,
        store: Optional[ExperienceStore] = None,
        reward_calculator: Optional[RewardCalculator] = None,
        rng: Optional[np.random.Generator] = None,
        position: Optional[Position] = None
    ):
        """
        Initialize controller. Widths are checked here, before any tick.

        Args:
            agent_id: Opaque agent identifier
            config: Simulation configuration (defaults if None)
            model: Policy model (built from config if None)
            encoder: State encoder (built from config if None)
            selector: Action selector (built from config if None)
            store: Experience store (built from config if None)
            reward_calculator: Reward calculator (default if None)
            rng: Random source for targets, happiness drift and sampling
            position: Starting position

        Raises:
            ConfigurationError: Encoder/model/action widths disagree
        """
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

        world = self.config.world
        exploration = self.config.exploration

        self.model = model or build_policy_model(self.config)
        self.encoder = encoder or StateEncoder(
            world_extent=world.world_extent,
            distance_horizon=world.distance_horizon,
            crowd_cap=world.crowd_cap,
            item_cap=world.item_cap
        )
        self.selector = selector or ActionSelector(
            rng=self.rng,
            epsilon_start=exploration.epsilon_start,
            epsilon_min=exploration.epsilon_min,
            efficiency_decay=exploration.efficiency_decay
        )
        if store is None:
            store = ExperienceStore(
                capacity=self.config.replay.capacity,
                state_dim=self.encoder.feature_dim,
                rng=self.rng
            )
        self.store = store
        self.reward_calculator = reward_calculator or RewardCalculator()

        self._check_widths()

        self.state = AgentState(
            id=agent_id,
            position=position or Position(),
            happiness=self.config.initial_happiness,
            energy=self.config.initial_energy,
            memory=[0] * self.config.memory_length
        )

        self._nonzero_rewards = deque(maxlen=self.config.replay.efficiency_window)
        self._lock = threading.RLock()
        self._closed = False
        self._pending = False

        self.decisions_made = 0
        self.fallback_count = 0
        self.training_calls = 0
        self.last_training_loss: Optional[float] = None

    def _check_widths(self):
        if self.encoder.feature_dim != self.model.input_dim:
            raise ConfigurationError(
                f"Encoder produces {self.encoder.feature_dim} features but the "
                f"policy expects {self.model.input_dim}"
            )
        if self.model.output_dim != len(Action):
            raise ConfigurationError(
                f"Policy has {self.model.output_dim} outputs for {len(Action)} actions"
            )
        if self.store.state_dim != self.encoder.feature_dim:
            raise ConfigurationError(
                f"Experience store width {self.store.state_dim} does not match "
                f"encoder width {self.encoder.feature_dim}"
            )

    @property
    def agent_id(self) -> str:
        return self.state.id

    @property
    def status(self) -> AgentStatus:
        if self.state.current_action is None:
            return AgentStatus.IDLE
        return self.state.current_action.status

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def checkpoint_name(self) -> str:
        return f"penguin-ai-{self.state.id}"

    def initialize(self) -> bool:
        """
        Initialize the policy model unless it already is (shared models).

        Returns:
            True if parameters came from a checkpoint
        """
        if self.model.is_initialized:
            return True
        loaded = self.model.initialize()
        logger.info("AI initialized for penguin %s (%s)", self.agent_id,
                    "checkpoint" if loaded else "fresh")
        return loaded

    def close(self):
        """Stop accepting ticks. Waits for an in-flight tick to finish."""
        with self._lock:
            self._closed = True

    def _ensure_open(self):
        if self._closed:
            raise AgentClosedError(f"Agent {self.agent_id} has been removed")

    # ------------------------------------------------------------------
    # Decision tick
    # ------------------------------------------------------------------

    def decide(
        self,
        snapshot: Union[EnvironmentSnapshot, Mapping[str, Any], None] = None
    ) -> Decision:
        """
        Run one decision tick.

        Internal failures (uninitialized model, bad prediction, ...) produce
        the fallback decision instead of an exception.

        Args:
            snapshot: Environment around the agent

        Returns:
            Decision for this tick
        """
        with self._lock:
            self._ensure_open()

            try:
                vector = self.encoder.encode(self.state, snapshot)
                probs = self.model.predict(vector)
                efficiency = self.state.performance.efficiency
                action = Action.from_index(self.selector.select(probs, efficiency))

                decision = Decision(
                    action=action,
                    target=self._target_for(action),
                    confidence=self._confidence(probs, action),
                    reasoning=generate_reasoning(action, self.state)
                )
            except Exception as e:
                self.fallback_count += 1
                logger.warning("Decision failed for penguin %s, using fallback: %s",
                               self.agent_id, e)
                self._pending = False
                return fallback_decision()

            self.store.set_latest_next_state(vector)
            self.store.record(vector, int(action))
            self._pending = True
            self._update_internal_state(action)
            self.decisions_made += 1

            logger.debug("Penguin %s decided %s (confidence %.2f)",
                         self.agent_id, action.label, decision.confidence)
            return decision

    def _confidence(self, probs: np.ndarray, action: Action) -> float:
        boosted = float(probs[int(action)]) + self.state.performance.efficiency * CONFIDENCE_EFFICIENCY_BOOST
        if not math.isfinite(boosted):
            return MIN_CONFIDENCE
        return clamp(boosted, MIN_CONFIDENCE, MAX_CONFIDENCE)

    def _target_for(self, action: Action) -> Optional[Position]:
        """Bounded random offset from the current position, clamped to the world."""
        world = self.config.world
        if action is Action.MOVE:
            radius = world.move_radius
        elif action is Action.COLLECT:
            radius = world.collect_radius
        else:
            return None

        dx, dy = self.rng.uniform(-radius, radius, size=2)
        return Position(
            x=clamp(self.state.position.x + float(dx), world.min_x, world.max_x),
            y=clamp(self.state.position.y + float(dy), world.min_y, world.max_y)
        )

    def _update_internal_state(self, action: Action):
        self.state.push_memory(int(action), self.config.memory_length)
        self.state.current_action = action

        if action is Action.REST:
            self.state.energy = self.state.energy + REST_ENERGY_GAIN
        else:
            self.state.energy = self.state.energy - ACTIVE_ENERGY_COST

        # setattr clamps to [0, 100]
        self.state.happiness = self.state.happiness + float(
            self.rng.uniform(-HAPPINESS_DRIFT, HAPPINESS_DRIFT)
        )

    # ------------------------------------------------------------------
    # Learn tick
    # ------------------------------------------------------------------

    def learn(self, reward: float) -> Optional[float]:
        """
        Run one learn tick.

        Args:
            reward: Reward for the most recent decision

        Returns:
            Training loss if a batch was trained, else None
        """
        reward = float(reward)
        if not math.isfinite(reward):
            raise ValueError(f"reward must be finite, got {reward}")

        with self._lock:
            self._ensure_open()

            # a fallback tick recorded nothing, so the previous record keeps its reward
            if self._pending:
                self.store.fill_latest_reward(reward)
            self._update_performance(reward)

            if len(self.store) >= self.config.replay.min_replay_size:
                return self._replay()
            return None

    def learn_from_outcome(
        self,
        outcome: Union[ActionOutcome, Mapping[str, Any], None]
    ) -> float:
        """
        Score the current action's outcome and learn from it.

        Returns:
            The computed reward
        """
        with self._lock:
            self._ensure_open()
            action = self.state.current_action or Action.REST
            reward = self.reward_calculator.calculate(action, outcome, self.state)
            self.learn(reward)

        logger.debug("Penguin %s rewarded %.2f for %s", self.agent_id, reward, action.label)
        return reward

    def train_from_replay(self) -> Optional[float]:
        """One replay batch outside a learn tick (global training pass)."""
        with self._lock:
            self._ensure_open()
            if len(self.store) < self.config.replay.min_replay_size:
                return None
            return self._replay()

    def _update_performance(self, reward: float):
        perf = self.state.performance

        if reward != 0:
            self._nonzero_rewards.append(reward)
        if self._nonzero_rewards:
            mean_reward = float(np.mean(self._nonzero_rewards))
            perf.efficiency = clamp(mean_reward / 10.0, 0.0, 1.0)

        if reward > FISH_REWARD_THRESHOLD:
            perf.fish_collected += 1
        if reward > YARN_REWARD_THRESHOLD:
            perf.yarn_collected += 1
        if reward > 0 and self.state.current_action is Action.SOCIALIZE:
            perf.social_interactions += 1

    def _replay(self) -> Optional[float]:
        batch = self.store.sample(self.config.replay.batch_size)
        self.training_calls += 1
        try:
            loss = self.model.train_on_batch(batch.states, batch.actions, batch.rewards)
        except PolicyError as e:
            logger.warning("Experience replay failed for penguin %s: %s", self.agent_id, e)
            return None

        self.last_training_loss = loss
        return loss

    # ------------------------------------------------------------------
    # External interaction
    # ------------------------------------------------------------------

    def update_position(self, x: float, y: float):
        with self._lock:
            self.state.position = Position(x=float(x), y=float(y))

    def update_happiness(self, delta: float):
        with self._lock:
            self.state.happiness = self.state.happiness + delta

    def update_energy(self, delta: float):
        with self._lock:
            self.state.energy = self.state.energy + delta

    def get_state(self) -> AgentState:
        """Deep copy of the agent state."""
        with self._lock:
            return self.state.copy()

    def save_model(self):
        """Save this agent's policy under its per-agent checkpoint name."""
        return self.model.save(self.checkpoint_name)

    def load_model(self):
        """Load this agent's policy from its per-agent checkpoint."""
        self.model.load(self.checkpoint_name)
