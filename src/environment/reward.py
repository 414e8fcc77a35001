"""
Reward Calculator Module
========================

Computes the shaped scalar reward for a penguin agent's action.

Reward Pipeline:
    1. Base reward by action kind (collect / socialize / move / rest)
    2. + efficiency bonus:   efficiency * 2
    3. * happiness factor:   0.5 + happiness/100 * 0.5
    4. * energy factor:      0.7 if energy < 20, 1.2 if energy > 80, else 1.0
    5. clamp to [-10, 10]

Base Rewards:
    collect:   fish -> 5 + 2 * n_fish,  yarn -> 10 + 3 * n_yarn
    socialize: +3 on success (+2 more while social count < 5), -1 on failure
    move:      +1 target reached, -2 if energy < 30 and distance > 100,
               +1.5 new area explored
    rest:      +3 if energy < 30, -0.5 if energy > 80, else +1

Author: Penguin AI Team
"""

from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple, Union

from .action_space import Action, ActionOutcome


# One-off bonuses for named achievements
ACHIEVEMENT_REWARDS: Dict[str, float] = {
    "first_fish": 5.0,
    "fish_streak_5": 8.0,
    "fish_streak_10": 15.0,
    "yarn_collector": 20.0,
    "social_butterfly": 10.0,
    "explorer": 12.0,
    "efficiency_master": 25.0,
    "happy_penguin": 8.0,
}

# Fixed penalties for named events
PENALTY_REWARDS: Dict[str, float] = {
    "collision": -3.0,
    "stuck": -2.0,
    "energy_depletion": -5.0,
    "unhappiness": -4.0,
    "inefficiency": -6.0,
}


def _state_values(agent_state) -> Tuple[float, float, float, int]:
    """
    (happiness, energy, efficiency, social interactions) from an AgentState
    or a client dict such as
    ``{"happiness": 80, "energy": 60, "performance": {"efficiency": 0.4}}``.
    """
    if isinstance(agent_state, Mapping):
        performance = agent_state.get("performance") or {}
        social = performance.get("social_interactions", performance.get("socialInteractions", 0))
        return (
            float(agent_state.get("happiness", 50.0)),
            float(agent_state.get("energy", 100.0)),
            float(performance.get("efficiency") or 0.0),
            int(social or 0),
        )

    performance = agent_state.performance
    return (
        float(agent_state.happiness),
        float(agent_state.energy),
        float(performance.efficiency or 0.0),
        int(performance.social_interactions),
    )


class RewardComponents(NamedTuple):
    """Container for the reward breakdown."""
    base: float
    efficiency_bonus: float
    happiness_factor: float
    energy_factor: float
    unclamped: float
    total: float


class RewardCalculator:
    """
    Calculates the shaped reward for one action outcome.

    The constants are hand-tuned and kept as-is; the calculator makes no
    attempt to balance them against each other.

    Attributes:
        min_reward: Lower clamp bound (-10)
        max_reward: Upper clamp bound (10)
        efficiency_weight: Multiplier for the efficiency bonus (2)

    Example:
        >>> calculator = RewardCalculator()
        >>> reward = calculator.calculate(
        ...     "collect", {"fishCollected": 3}, agent_state
        ... )
    """

    def __init__(
        self,
        min_reward: float = -10.0,
        max_reward: float = 10.0,
        efficiency_weight: float = 2.0,
        low_energy: float = 30.0,
        high_energy: float = 80.0,
        exhausted_energy: float = 20.0,
        long_distance: float = 100.0,
        social_novice_threshold: int = 5
    ):
        """
        Initialize reward calculator.

        Args:
            min_reward: Lower clamp bound
            max_reward: Upper clamp bound
            efficiency_weight: Weight of the efficiency bonus
            low_energy: Energy below which the agent counts as tired
            high_energy: Energy above which the agent counts as full
            exhausted_energy: Energy below which rewards are damped
            long_distance: Travel distance considered excessive when tired
            social_novice_threshold: Social count below which socializing
                earns the novice bonus
        """
        self.min_reward = min_reward
        self.max_reward = max_reward
        self.efficiency_weight = efficiency_weight
        self.low_energy = low_energy
        self.high_energy = high_energy
        self.exhausted_energy = exhausted_energy
        self.long_distance = long_distance
        self.social_novice_threshold = social_novice_threshold

    def calculate(
        self,
        action: Union[Action, str, int],
        outcome: Union[ActionOutcome, Mapping[str, Any], None],
        agent_state
    ) -> float:
        """
        Compute the clamped reward.

        Args:
            action: Action taken (enum, label or index)
            outcome: What happened (ActionOutcome or dict)
            agent_state: AgentState, or a dict with happiness, energy and
                performance.efficiency

        Returns:
            Reward in [min_reward, max_reward]
        """
        total, _ = self.compute(action, outcome, agent_state)
        return total

    def compute(
        self,
        action: Union[Action, str, int],
        outcome: Union[ActionOutcome, Mapping[str, Any], None],
        agent_state
    ) -> Tuple[float, RewardComponents]:
        """
        Compute the reward and its breakdown.

        Returns:
            Tuple of (total_reward, RewardComponents)
        """
        action = Action.parse(action)
        if not isinstance(outcome, ActionOutcome):
            outcome = ActionOutcome.from_dict(outcome)

        happiness, energy, efficiency, social_interactions = _state_values(agent_state)

        if action is Action.COLLECT:
            base = self._collection_reward(outcome)
        elif action is Action.SOCIALIZE:
            base = self._social_reward(outcome, social_interactions)
        elif action is Action.MOVE:
            base = self._movement_reward(outcome, energy)
        else:
            base = self._rest_reward(energy)

        efficiency_bonus = efficiency * self.efficiency_weight
        happiness_factor = self._happiness_factor(happiness)
        energy_factor = self._energy_factor(energy)

        unclamped = (base + efficiency_bonus) * happiness_factor * energy_factor
        total = max(self.min_reward, min(self.max_reward, unclamped))

        components = RewardComponents(
            base=base,
            efficiency_bonus=efficiency_bonus,
            happiness_factor=happiness_factor,
            energy_factor=energy_factor,
            unclamped=unclamped,
            total=total
        )

        return total, components

    def _collection_reward(self, outcome: ActionOutcome) -> float:
        reward = 0.0

        if outcome.fish_collected:
            reward += 5.0
            reward += outcome.fish_collected * 2.0

        if outcome.yarn_collected:
            reward += 10.0
            reward += outcome.yarn_collected * 3.0

        return reward

    def _social_reward(self, outcome: ActionOutcome, social_interactions: int) -> float:
        reward = 0.0

        if outcome.social_success:
            reward += 3.0
            if social_interactions < self.social_novice_threshold:
                reward += 2.0

        if outcome.social_failure:
            reward -= 1.0

        return reward

    def _movement_reward(self, outcome: ActionOutcome, energy: float) -> float:
        reward = 0.0

        if outcome.reached_target:
            reward += 1.0

        if energy < self.low_energy and outcome.distance > self.long_distance:
            reward -= 2.0

        if outcome.new_area_explored:
            reward += 1.5

        return reward

    def _rest_reward(self, energy: float) -> float:
        if energy < self.low_energy:
            return 3.0
        if energy > self.high_energy:
            return -0.5
        return 1.0

    def _happiness_factor(self, happiness: float) -> float:
        return 0.5 + (happiness / 100.0) * 0.5

    def _energy_factor(self, energy: float) -> float:
        if energy < self.exhausted_energy:
            return 0.7
        if energy > self.high_energy:
            return 1.2
        return 1.0

    def achievement_reward(self, achievement: str) -> float:
        """One-off bonus for a named achievement (0 if unknown)."""
        return ACHIEVEMENT_REWARDS.get(achievement, 0.0)

    def penalty_reward(self, penalty: str) -> float:
        """Fixed penalty for a named event (0 if unknown)."""
        return PENALTY_REWARDS.get(penalty, 0.0)

    def get_reward_breakdown(self, components: RewardComponents) -> Dict[str, float]:
        """Human-readable breakdown of a computed reward."""
        return {
            "base": components.base,
            "efficiency_bonus": components.efficiency_bonus,
            "happiness_factor": components.happiness_factor,
            "energy_factor": components.energy_factor,
            "unclamped": components.unclamped,
            "total": components.total
        }
