"""
Policy Model Module
===================

Small feed-forward policy mapping a 16-dim state vector to a distribution
over {move, collect, socialize, rest}, plus checkpoint persistence.

Architecture:
    FC(16→64) → ReLU → Dropout(0.3) → FC(64→64) → LayerNorm → ReLU
    → FC(64→4) → softmax

Initialization:
    Hidden layers: He (Kaiming) normal, zero bias
    Output layer:  Xavier (Glorot) uniform, zero bias

Training (reward-weighted imitation step):
    target = current_prediction(state)
    target[action] += reward_step * reward
    target = max(floor, target / sum(target))     (per entry)
    one Adam step on soft cross-entropy(prediction, target) + L2(hidden weights)

Author: Penguin AI Team
"""

import logging
import os
import pickle
import tempfile
import threading
import numpy as np
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import torch
import torch.nn as nn
import torch.nn.functional as F
import torch.optim as optim

from .errors import (
    CheckpointLoadError,
    CheckpointSaveError,
    ModelNotInitializedError,
    TrainingBatchError,
)


logger = logging.getLogger(__name__)

CHECKPOINT_FILE = "policy_model.pt"


class PolicyNetwork(nn.Module):
    """
    Two-hidden-layer policy network with softmax output.

    Attributes:
        input_dim: State vector width (16)
        hidden_dim: Hidden layer size (64)
        output_dim: Number of actions (4)
    """

    def __init__(
        self,
        input_dim: int = 16,
        hidden_dim: int = 64,
        output_dim: int = 4,
        dropout: float = 0.3
    ):
        super().__init__()

        self.input_dim = input_dim
        self.hidden_dim = hidden_dim
        self.output_dim = output_dim

        self.hidden = nn.Sequential(
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_dim, hidden_dim),
            nn.LayerNorm(hidden_dim),
            nn.ReLU()
        )
        self.output = nn.Linear(hidden_dim, output_dim)

        self._init_weights()

    def _init_weights(self):
        """He normal for hidden layers, Glorot uniform for the output layer."""
        for module in self.hidden.modules():
            if isinstance(module, nn.Linear):
                nn.init.kaiming_normal_(module.weight, nonlinearity="relu")
                nn.init.constant_(module.bias, 0.0)

        nn.init.xavier_uniform_(self.output.weight)
        nn.init.constant_(self.output.bias, 0.0)

    def forward(self, states: torch.Tensor) -> torch.Tensor:
        """
        Args:
            states: Shape (batch, input_dim)

        Returns:
            Action probabilities, shape (batch, output_dim)
        """
        return F.softmax(self.output(self.hidden(states)), dim=-1)

    def hidden_weights(self):
        for module in self.hidden.modules():
            if isinstance(module, nn.Linear):
                yield module.weight


class PolicyModel:
    """
    Owner of one policy network and its persisted parameters.

    predict and train_on_batch are serialized by an internal lock, so
    inference always sees a consistent parameter snapshot.

    Example:
        >>> model = PolicyModel(checkpoint_dir="models")
        >>> model.initialize()           # loads or creates fresh
        >>> probs = model.predict(state_vector)
        >>> model.train_on_batch(states, actions, rewards)
        >>> model.save("penguin-ai-p1")
    """

    def __init__(
        self,
        input_dim: int = 16,
        hidden_dim: int = 64,
        output_dim: int = 4,
        dropout: float = 0.3,
        l2: float = 1e-4,
        learning_rate: float = 1e-3,
        reward_step: float = 0.1,
        probability_floor: float = 0.01,
        checkpoint_dir: str = "models",
        base_model_name: str = "penguin-behavior-base",
        device: str = "cpu"
    ):
        """
        Initialize policy model wrapper. No network exists until initialize().

        Args:
            input_dim: State vector width
            hidden_dim: Hidden layer size
            output_dim: Number of actions
            dropout: Dropout rate after the first hidden layer
            l2: L2 penalty on hidden-layer weights
            learning_rate: Adam learning rate
            reward_step: Target nudge per unit of reward
            probability_floor: Minimum target probability per entry
            checkpoint_dir: Directory holding named checkpoints
            base_model_name: Checkpoint tried by initialize()
            device: Device to use ("auto", "cpu", or "cuda")
        """
        self.input_dim = input_dim
        self.hidden_dim = hidden_dim
        self.output_dim = output_dim
        self.dropout = dropout
        self.l2 = l2
        self.learning_rate = learning_rate
        self.reward_step = reward_step
        self.probability_floor = probability_floor
        self.checkpoint_dir = Path(checkpoint_dir)
        self.base_model_name = base_model_name

        if device == "auto":
            self.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        else:
            self.device = torch.device(device)

        self.network: Optional[PolicyNetwork] = None
        self.optimizer: Optional[optim.Optimizer] = None
        self.train_steps = 0

        self._lock = threading.RLock()

    @property
    def is_initialized(self) -> bool:
        return self.network is not None

    def initialize(self, name: Optional[str] = None) -> bool:
        """
        Load a checkpoint, or build fresh parameters if none can be loaded.

        Args:
            name: Checkpoint name (defaults to base_model_name)

        Returns:
            True if a checkpoint was loaded, False if parameters are fresh
        """
        name = name or self.base_model_name
        try:
            self.load(name)
            return True
        except CheckpointLoadError as e:
            logger.info("No usable checkpoint %r (%s); creating new policy network", name, e)
            with self._lock:
                self._build()
            return False

    def _create_network(self):
        """Fresh network and optimizer, not yet attached to the model."""
        network = PolicyNetwork(
            input_dim=self.input_dim,
            hidden_dim=self.hidden_dim,
            output_dim=self.output_dim,
            dropout=self.dropout
        ).to(self.device)
        optimizer = optim.Adam(
            network.parameters(),
            lr=self.learning_rate,
            betas=(0.9, 0.999),
            eps=1e-8
        )
        return network, optimizer

    def _build(self):
        self.network, self.optimizer = self._create_network()
        self.train_steps = 0

    def _require_network(self):
        if self.network is None:
            raise ModelNotInitializedError("Policy model not initialized")

    def predict(self, state: Sequence[float]) -> np.ndarray:
        """
        Action distribution for one state.

        Args:
            state: Feature vector, shape (input_dim,)

        Returns:
            Non-negative probabilities, shape (output_dim,)
        """
        state = np.asarray(state, dtype=np.float32)
        if state.shape != (self.input_dim,):
            raise ValueError(
                f"state must have shape ({self.input_dim},), got {state.shape}"
            )

        with self._lock:
            self._require_network()
            probs = self._predict_batch(state[np.newaxis, :])

        return probs[0]

    def _predict_batch(self, states: np.ndarray) -> np.ndarray:
        self.network.eval()
        with torch.no_grad():
            tensor = torch.from_numpy(states).float().to(self.device)
            probs = self.network(tensor)
        return probs.cpu().numpy().astype(np.float64)

    def compute_targets(
        self,
        predictions: np.ndarray,
        actions: np.ndarray,
        rewards: np.ndarray
    ) -> np.ndarray:
        """
        Reward-nudged, renormalized, floored training targets.

        Rows whose sum is not positive after the nudge are floored without
        renormalizing.
        """
        targets = predictions.copy()
        rows = np.arange(len(targets))
        targets[rows, actions] += self.reward_step * rewards

        sums = targets.sum(axis=1, keepdims=True)
        positive = sums[:, 0] > 0
        targets[positive] = targets[positive] / sums[positive]
        return np.maximum(self.probability_floor, targets)

    def train_on_batch(
        self,
        states: Sequence[Sequence[float]],
        actions: Sequence[int],
        rewards: Sequence[float]
    ) -> float:
        """
        One reward-weighted imitation step.

        Args:
            states: Shape (batch, input_dim)
            actions: Action indices, shape (batch,)
            rewards: Rewards, shape (batch,)

        Returns:
            Training loss
        """
        with self._lock:
            self._require_network()

            try:
                states = np.asarray(states, dtype=np.float32)
                actions = np.asarray(actions, dtype=np.int64)
                rewards = np.asarray(rewards, dtype=np.float64)
            except (TypeError, ValueError) as e:
                raise TrainingBatchError(f"Malformed batch: {e}") from e

            n = len(states)
            if n == 0:
                raise TrainingBatchError("Empty training batch")
            if states.shape != (n, self.input_dim):
                raise TrainingBatchError(
                    f"states must have shape (n, {self.input_dim}), got {states.shape}"
                )
            if actions.shape != (n,) or rewards.shape != (n,):
                raise TrainingBatchError("states, actions and rewards differ in length")
            if actions.min() < 0 or actions.max() >= self.output_dim:
                raise TrainingBatchError("action index out of range")
            if not np.all(np.isfinite(rewards)) or not np.all(np.isfinite(states)):
                raise TrainingBatchError("non-finite values in batch")

            try:
                predictions = self._predict_batch(states)
                targets = self.compute_targets(predictions, actions, rewards)
                loss = self._fit(states, targets)
            except RuntimeError as e:
                raise TrainingBatchError(f"Training step failed: {e}") from e

            self.train_steps += 1
            return loss

    def _fit(self, states: np.ndarray, targets: np.ndarray) -> float:
        self.network.train()

        state_tensor = torch.from_numpy(states).float().to(self.device)
        target_tensor = torch.from_numpy(targets).float().to(self.device)

        probs = self.network(state_tensor)
        ce = -(target_tensor * torch.log(probs.clamp_min(1e-7))).sum(dim=-1).mean()
        l2_penalty = sum((w ** 2).sum() for w in self.network.hidden_weights())
        loss = ce + self.l2 * l2_penalty

        if not torch.isfinite(loss):
            raise TrainingBatchError("Non-finite training loss")

        self.optimizer.zero_grad()
        loss.backward()
        self.optimizer.step()

        return float(loss.item())

    def _checkpoint_path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", "..") or ".." in name:
            raise ValueError(f"Invalid checkpoint name: {name!r}")
        return self.checkpoint_dir / name / CHECKPOINT_FILE

    def save(self, name: str) -> Path:
        """
        Atomically write a named checkpoint.

        Returns:
            Path of the written checkpoint file
        """
        with self._lock:
            self._require_network()

            try:
                path = self._checkpoint_path(name)
            except ValueError as e:
                raise CheckpointSaveError(str(e)) from e

            tmp_name = None
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=".policy_model-", suffix=".tmp", dir=path.parent
                )
                with os.fdopen(fd, "wb") as f:
                    torch.save({
                        "network_state_dict": self.network.state_dict(),
                        "optimizer_state_dict": self.optimizer.state_dict(),
                        "train_steps": self.train_steps,
                        "config": self.get_config()
                    }, f)
                os.replace(tmp_name, path)
            except (OSError, RuntimeError) as e:
                logger.error("Model save failed for %r: %s", name, e)
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise CheckpointSaveError(f"Could not save checkpoint {name!r}: {e}") from e

            logger.info("Model saved: %s", name)
            return path

    def load(self, name: str):
        """
        Replace parameters with a named checkpoint.

        Raises:
            CheckpointLoadError: Missing, unreadable, or incompatible checkpoint
        """
        try:
            path = self._checkpoint_path(name)
        except ValueError as e:
            raise CheckpointLoadError(str(e)) from e

        if not path.is_file():
            raise CheckpointLoadError(f"No checkpoint at {path}")

        try:
            checkpoint = torch.load(path, map_location=self.device, weights_only=False)
            config = checkpoint["config"]
        except (OSError, RuntimeError, KeyError, EOFError, TypeError, ValueError, pickle.UnpicklingError) as e:
            raise CheckpointLoadError(f"Unreadable checkpoint {path}: {e}") from e

        if not isinstance(config, dict):
            raise CheckpointLoadError(f"Checkpoint {name!r} has no network config")

        for key in ("input_dim", "hidden_dim", "output_dim"):
            if config.get(key) != getattr(self, key):
                raise CheckpointLoadError(
                    f"Checkpoint {name!r} has {key}={config.get(key)}, expected {getattr(self, key)}"
                )

        # current parameters stay live until both state dicts load
        network, optimizer = self._create_network()
        try:
            network.load_state_dict(checkpoint["network_state_dict"])
            optimizer.load_state_dict(checkpoint["optimizer_state_dict"])
            train_steps = int(checkpoint.get("train_steps", 0))
        except (KeyError, RuntimeError, ValueError, TypeError, AttributeError) as e:
            raise CheckpointLoadError(f"Incompatible checkpoint {name!r}: {e}") from e

        with self._lock:
            self.network = network
            self.optimizer = optimizer
            self.train_steps = train_steps

        logger.info("Model loaded: %s", name)

    def get_config(self) -> Dict[str, Any]:
        return {
            "input_dim": self.input_dim,
            "hidden_dim": self.hidden_dim,
            "output_dim": self.output_dim,
            "dropout": self.dropout,
            "l2": self.l2,
            "learning_rate": self.learning_rate,
            "reward_step": self.reward_step,
            "probability_floor": self.probability_floor
        }

    def count_parameters(self) -> int:
        self._require_network()
        return sum(p.numel() for p in self.network.parameters())

    def summary(self) -> str:
        """Human-readable architecture description."""
        if self.network is None:
            return "Model not initialized"

        return (
            "Policy Network:\n"
            f"  Input:    {self.input_dim}\n"
            f"  Hidden 1: {self.hidden_dim} (ReLU + Dropout {self.dropout})\n"
            f"  Hidden 2: {self.hidden_dim} (LayerNorm + ReLU)\n"
            f"  Output:   {self.output_dim} (softmax)\n"
            f"  Parameters: {self.count_parameters()}\n"
            f"  Optimizer: Adam (lr={self.learning_rate}), L2={self.l2}\n"
            f"  Train steps: {self.train_steps}"
        )
