"""
Experience Store Module
=======================

Fixed-capacity ring buffer of (state, action, reward, next_state) records
for experience replay.

Stores:
    - States (feature vectors at decision time)
    - Actions (indices)
    - Rewards (0 until filled by a learn tick)
    - Next states (filled when the following decision is recorded)

The store never holds more than ``capacity`` records; appending to a full
store overwrites the oldest one.

Author: Penguin AI Team
"""

import numpy as np
from typing import Iterator, List, NamedTuple, Optional


class Experience(NamedTuple):
    """One stored transition."""
    state: np.ndarray
    action: int
    reward: float
    next_state: Optional[np.ndarray]


class ExperienceBatch(NamedTuple):
    """Container for sampled training data."""
    states: np.ndarray
    actions: np.ndarray
    rewards: np.ndarray


class ExperienceStore:
    """
    Ring buffer for one agent's experiences.

    Attributes:
        capacity: Maximum number of records (C)
        state_dim: Feature vector width

    Example:
        >>> store = ExperienceStore(capacity=1000, state_dim=16)
        >>> store.record(state, action=1)
        >>> store.fill_latest_reward(7.0)
        >>> batch = store.sample(32)
    """

    def __init__(
        self,
        capacity: int = 1000,
        state_dim: int = 16,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize experience store.

        Args:
            capacity: Maximum number of records
            state_dim: Feature vector width
            rng: Random source for sampling
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")

        self.capacity = capacity
        self.state_dim = state_dim
        self.rng = rng if rng is not None else np.random.default_rng()

        self.pos = 0
        self.full = False

        self.states = np.zeros((capacity, state_dim), dtype=np.float32)
        self.actions = np.zeros(capacity, dtype=np.int64)
        self.rewards = np.zeros(capacity, dtype=np.float32)
        self.next_states = np.zeros((capacity, state_dim), dtype=np.float32)
        self.has_next = np.zeros(capacity, dtype=bool)

    def record(self, state: np.ndarray, action: int, reward: float = 0.0):
        """
        Append a record, evicting the oldest one if the store is full.

        Args:
            state: Feature vector at decision time, shape (state_dim,)
            action: Chosen action index
            reward: Initial reward (normally 0, filled later)
        """
        state = np.asarray(state, dtype=np.float32)
        if state.shape != (self.state_dim,):
            raise ValueError(
                f"state must have shape ({self.state_dim},), got {state.shape}"
            )

        self.states[self.pos] = state
        self.actions[self.pos] = int(action)
        self.rewards[self.pos] = reward
        self.next_states[self.pos] = 0.0
        self.has_next[self.pos] = False

        self.pos = (self.pos + 1) % self.capacity
        if self.pos == 0:
            self.full = True

    def _latest_index(self) -> int:
        if len(self) == 0:
            raise IndexError("experience store is empty")
        return (self.pos - 1) % self.capacity

    def fill_latest_reward(self, reward: float) -> bool:
        """
        Set the reward of the most recent record only.

        Returns:
            False if the store is empty, True otherwise
        """
        if len(self) == 0:
            return False
        self.rewards[self._latest_index()] = reward
        return True

    def set_latest_next_state(self, next_state: np.ndarray) -> bool:
        """Attach the following tick's state to the most recent record."""
        if len(self) == 0:
            return False
        idx = self._latest_index()
        self.next_states[idx] = np.asarray(next_state, dtype=np.float32)
        self.has_next[idx] = True
        return True

    def sample(self, n: int) -> ExperienceBatch:
        """
        Draw n records uniformly at random, with replacement.

        n is clamped to the current store length.
        """
        size = len(self)
        n = max(0, min(int(n), size))

        if n == 0:
            return ExperienceBatch(
                states=np.zeros((0, self.state_dim), dtype=np.float32),
                actions=np.zeros(0, dtype=np.int64),
                rewards=np.zeros(0, dtype=np.float32)
            )

        # physical slots 0..size-1 are all populated
        indices = self.rng.integers(0, size, size=n)

        return ExperienceBatch(
            states=self.states[indices].copy(),
            actions=self.actions[indices].copy(),
            rewards=self.rewards[indices].copy()
        )

    def latest(self) -> Optional[Experience]:
        if len(self) == 0:
            return None
        return self[len(self) - 1]

    def recent_rewards(self, k: int) -> np.ndarray:
        """Rewards of the k most recent records, oldest first."""
        size = len(self)
        k = max(0, min(k, size))
        return np.array([self[i].reward for i in range(size - k, size)], dtype=np.float32)

    def clear(self):
        """Drop all records."""
        self.pos = 0
        self.full = False
        self.has_next[:] = False

    def __getitem__(self, i: int) -> Experience:
        """Record i in FIFO order (0 = oldest)."""
        size = len(self)
        if i < 0:
            i += size
        if not 0 <= i < size:
            raise IndexError("experience index out of range")

        start = self.pos if self.full else 0
        idx = (start + i) % self.capacity
        return Experience(
            state=self.states[idx].copy(),
            action=int(self.actions[idx]),
            reward=float(self.rewards[idx]),
            next_state=self.next_states[idx].copy() if self.has_next[idx] else None
        )

    def __iter__(self) -> Iterator[Experience]:
        for i in range(len(self)):
            yield self[i]

    def to_list(self) -> List[Experience]:
        return list(self)

    def __len__(self) -> int:
        """Return number of stored records."""
        return self.capacity if self.full else self.pos

    @property
    def size(self) -> int:
        return len(self)


# =============================================================================
# VERIFICATION
# =============================================================================

def verify_experience_store() -> dict:
    """Run verification tests."""
    results = {}

    # Test 1: Bounded length
    store = ExperienceStore(capacity=50, state_dim=16)
    for i in range(120):
        store.record(np.full(16, i, dtype=np.float32), action=i % 4)

    results["test_bounded"] = {
        "length": len(store),
        "capacity": store.capacity,
        "pass": len(store) == 50
    }

    # Test 2: FIFO order after wrap-around
    first = store[0].state[0]
    last = store[-1].state[0]
    results["test_fifo_order"] = {
        "oldest": float(first),
        "newest": float(last),
        "pass": first == 70 and last == 119
    }

    # Test 3: Reward fill touches only the latest record
    store.fill_latest_reward(7.0)
    rewards = store.recent_rewards(3)
    results["test_fill_latest"] = {
        "recent_rewards": rewards.tolist(),
        "pass": rewards.tolist() == [0.0, 0.0, 7.0]
    }

    # Test 4: Sampling clamps to length
    small = ExperienceStore(capacity=10, state_dim=16)
    for i in range(3):
        small.record(np.zeros(16, dtype=np.float32), action=i)
    batch = small.sample(8)
    results["test_sample_clamp"] = {
        "batch_size": len(batch.states),
        "pass": len(batch.states) == 3
    }

    return results


if __name__ == "__main__":
    print("=" * 60)
    print("Experience Store Verification")
    print("=" * 60)

    results = verify_experience_store()

    all_passed = True
    for test_name, result in results.items():
        print(f"\n{test_name}:")
        for k, v in result.items():
            print(f"  {k}: {v}")
        if not result.get("pass", False):
            all_passed = False

    print("\n" + "=" * 60)
    print("PASSED" if all_passed else "FAILED")
    print("=" * 60)
