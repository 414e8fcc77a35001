"""
State Encoder Module
====================

Builds the 16-dimensional normalized feature vector for a penguin agent
from a raw environment snapshot and the agent's internal state.

Feature Vector:
    [0]  position x / world_extent
    [1]  position y / world_extent
    [2]  happiness / 100
    [3]  energy / 100
    [4]  nearest fish distance / distance_horizon
    [5]  nearest yarn distance / distance_horizon
    [6]  nearest penguin distance / distance_horizon
    [7]  crowd density: penguin count / crowd_cap
    [8]  efficiency
    [9]  fish collected / 100
    [10] yarn collected / 100
    [11] social interactions / 100
    [12:16] four most recent action codes from memory (verbatim)

Entries 0..11 are clamped to [0, 1]. Missing environment fields never raise:
distances default to "far" (1.0) and densities to a mid value (0.5).

Author: Penguin AI Team
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Sequence, Union

import numpy as np


DEFAULT_DISTANCE = 1.0
DEFAULT_DENSITY = 0.5
DEFAULT_MOOD = 0.7
DEFAULT_TIME_OF_DAY = 0.5
DEFAULT_WEATHER = 0.8

MEMORY_FEATURES = 4


@dataclass
class EnvironmentSnapshot:
    """
    Raw environment observation around one agent.

    All fields are optional. Distances are in world units, counts are raw
    numbers of visible entities, ``mood`` is on a 0-100 scale and
    ``hour_of_day`` on 0-24.
    """

    nearest_fish_distance: Optional[float] = None
    nearest_yarn_distance: Optional[float] = None
    nearest_agent_distance: Optional[float] = None
    agent_count: Optional[int] = None
    fish_count: Optional[int] = None
    yarn_count: Optional[int] = None
    mood: Optional[float] = None
    turbo_mode: bool = False
    hour_of_day: Optional[float] = None
    weather_factor: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "EnvironmentSnapshot":
        """
        Build a snapshot from a client payload.

        Accepts flat snake_case keys as well as the game client's nested form::

            {"nearestFish": {"distance": 120}, "penguins": [...],
             "fish": [...], "yarns": [...], "factoryMood": 70,
             "turboMode": True}
        """
        if not data:
            return cls()

        def nested_distance(key: str, flat_key: str) -> Optional[float]:
            if flat_key in data:
                return data[flat_key]
            entry = data.get(key)
            if isinstance(entry, Mapping):
                return entry.get("distance")
            return None

        def count(key: str, flat_key: str) -> Optional[int]:
            if flat_key in data:
                return data[flat_key]
            items = data.get(key)
            if items is None:
                return None
            if isinstance(items, (int, float)):
                return int(items)
            try:
                return len(items)
            except TypeError:
                return None

        return cls(
            nearest_fish_distance=nested_distance("nearestFish", "nearest_fish_distance"),
            nearest_yarn_distance=nested_distance("nearestYarn", "nearest_yarn_distance"),
            nearest_agent_distance=nested_distance("nearestPenguin", "nearest_agent_distance"),
            agent_count=count("penguins", "agent_count"),
            fish_count=count("fish", "fish_count"),
            yarn_count=count("yarns", "yarn_count"),
            mood=data.get("mood", data.get("factoryMood")),
            turbo_mode=bool(data.get("turbo_mode", data.get("turboMode", False))),
            hour_of_day=data.get("hour_of_day", data.get("hourOfDay")),
            weather_factor=data.get("weather_factor", data.get("weatherFactor")),
        )


class EnvironmentFeatures(NamedTuple):
    """Processed environment, every value in [0, 1]."""
    nearest_fish_distance: float
    nearest_yarn_distance: float
    nearest_agent_distance: float
    crowd_density: float
    fish_density: float
    yarn_density: float
    ambient_mood: float
    turbo_mode: float
    time_of_day: float
    weather_factor: float


def _finite(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None if that is not possible."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _clip01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


class StateEncoder:
    """
    Encodes agent + environment state into the policy input vector.

    Attributes:
        world_extent: Divisor for agent position
        distance_horizon: Distance mapped to 1.0 ("far")
        crowd_cap: Penguin count mapped to density 1.0
        item_cap: Item count mapped to density 1.0
        feature_dim: Output vector length (16)

    Example:
        >>> encoder = StateEncoder()
        >>> vector = encoder.encode(agent_state, {"nearestFish": {"distance": 250}})
        >>> print(vector.shape)  # (16,)
    """

    FEATURE_DIM = 16

    def __init__(
        self,
        world_extent: float = 1000.0,
        distance_horizon: float = 500.0,
        crowd_cap: int = 10,
        item_cap: int = 20
    ):
        self.world_extent = world_extent
        self.distance_horizon = distance_horizon
        self.crowd_cap = crowd_cap
        self.item_cap = item_cap
        self.feature_dim = self.FEATURE_DIM

    def process(
        self,
        snapshot: Union[EnvironmentSnapshot, Mapping[str, Any], None]
    ) -> EnvironmentFeatures:
        """
        Normalize a raw snapshot into environment features.

        Args:
            snapshot: EnvironmentSnapshot, client dict, or None

        Returns:
            EnvironmentFeatures with defaults substituted for missing fields
        """
        if not isinstance(snapshot, EnvironmentSnapshot):
            try:
                snapshot = EnvironmentSnapshot.from_dict(snapshot)
            except (TypeError, ValueError, AttributeError):
                snapshot = EnvironmentSnapshot()

        mood = _finite(snapshot.mood)
        hour = _finite(snapshot.hour_of_day)
        weather = _finite(snapshot.weather_factor)

        if hour is None:
            time_of_day = DEFAULT_TIME_OF_DAY
        else:
            time_of_day = math.sin((hour / 24.0) * math.pi * 2) * 0.5 + 0.5

        return EnvironmentFeatures(
            nearest_fish_distance=self._normalize_distance(snapshot.nearest_fish_distance),
            nearest_yarn_distance=self._normalize_distance(snapshot.nearest_yarn_distance),
            nearest_agent_distance=self._normalize_distance(snapshot.nearest_agent_distance),
            crowd_density=self._density(snapshot.agent_count, self.crowd_cap),
            fish_density=self._density(snapshot.fish_count, self.item_cap),
            yarn_density=self._density(snapshot.yarn_count, self.item_cap),
            ambient_mood=DEFAULT_MOOD if mood is None else _clip01(mood / 100.0),
            turbo_mode=1.0 if snapshot.turbo_mode else 0.0,
            time_of_day=_clip01(time_of_day),
            weather_factor=DEFAULT_WEATHER if weather is None else _clip01(weather),
        )

    def encode(
        self,
        agent_state,
        snapshot: Union[EnvironmentSnapshot, Mapping[str, Any], None] = None
    ) -> np.ndarray:
        """
        Build the policy input vector.

        Args:
            agent_state: AgentState (position, happiness, energy,
                performance, memory)
            snapshot: Raw environment around the agent

        Returns:
            Feature vector, shape (16,), dtype float32
        """
        env = self.process(snapshot)
        perf = agent_state.performance

        def scaled(value: Any, divisor: float) -> float:
            number = _finite(value)
            return 0.0 if number is None else _clip01(number / divisor)

        memory = self._memory_features(agent_state.memory)

        vector = np.array([
            scaled(agent_state.position.x, self.world_extent),
            scaled(agent_state.position.y, self.world_extent),
            scaled(agent_state.happiness, 100.0),
            scaled(agent_state.energy, 100.0),
            env.nearest_fish_distance,
            env.nearest_yarn_distance,
            env.nearest_agent_distance,
            env.crowd_density,
            scaled(perf.efficiency, 1.0),
            scaled(perf.fish_collected, 100.0),
            scaled(perf.yarn_collected, 100.0),
            scaled(perf.social_interactions, 100.0),
            *memory,
        ], dtype=np.float32)

        return vector

    def _normalize_distance(self, distance: Any) -> float:
        value = _finite(distance)
        if value is None:
            return DEFAULT_DISTANCE
        return _clip01(value / self.distance_horizon)

    def _density(self, count: Any, cap: int) -> float:
        value = _finite(count)
        if value is None:
            return DEFAULT_DENSITY
        return _clip01(value / cap)

    def _memory_features(self, memory: Sequence[int]) -> list:
        recent = list(memory or [])[:MEMORY_FEATURES]
        features = []
        for code in recent:
            value = _finite(code)
            features.append(0.0 if value is None else value)
        # short memories are zero-padded
        features.extend([0.0] * (MEMORY_FEATURES - len(features)))
        return features
