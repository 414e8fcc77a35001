"""
Action Selector Module
======================

Epsilon-greedy action selection with exploration that shrinks as the
agent becomes more efficient:

    epsilon = max(epsilon_min, epsilon_start - efficiency * efficiency_decay)

With the defaults this is max(0.01, 0.3 - 0.2 * efficiency).

Author: Penguin AI Team
"""

import numpy as np
from typing import Optional, Sequence


def compute_epsilon(
    efficiency: float,
    epsilon_start: float = 0.3,
    epsilon_min: float = 0.01,
    efficiency_decay: float = 0.2
) -> float:
    """Exploration rate for a given efficiency."""
    return max(epsilon_min, epsilon_start - efficiency * efficiency_decay)


class ActionSelector:
    """
    Turns a probability distribution into an action index.

    The random source is injected so selection is reproducible. Anything
    with ``random()`` and ``integers(low, high)`` works, e.g.
    ``numpy.random.default_rng(seed)``.

    Example:
        >>> selector = ActionSelector(rng=np.random.default_rng(0))
        >>> selector.select([0.1, 0.6, 0.2, 0.1], efficiency=0.5)
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        epsilon_start: float = 0.3,
        epsilon_min: float = 0.01,
        efficiency_decay: float = 0.2
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.epsilon_start = epsilon_start
        self.epsilon_min = epsilon_min
        self.efficiency_decay = efficiency_decay

        self.explore_count = 0
        self.exploit_count = 0

    def epsilon(self, efficiency: float) -> float:
        return compute_epsilon(
            efficiency,
            epsilon_start=self.epsilon_start,
            epsilon_min=self.epsilon_min,
            efficiency_decay=self.efficiency_decay
        )

    def select(self, distribution: Sequence[float], efficiency: float) -> int:
        """
        Pick an action index.

        Args:
            distribution: Action desirabilities, shape (n_actions,)
            efficiency: Current efficiency in [0, 1]

        Returns:
            Random index with probability epsilon, otherwise the argmax
            (lowest index on ties)
        """
        distribution = np.asarray(distribution, dtype=np.float64)
        if distribution.ndim != 1 or len(distribution) == 0:
            raise ValueError("distribution must be a non-empty vector")

        if self.rng.random() < self.epsilon(efficiency):
            self.explore_count += 1
            return int(self.rng.integers(0, len(distribution)))

        self.exploit_count += 1
        # np.argmax returns the first maximum
        return int(np.argmax(distribution))
