"""
Test Suite for Policy Model Module
==================================

Tests for src/agents/policy_model.py

Test Categories:
    - Network: Architecture, forward pass
    - Prediction: Shapes, initialization guard
    - Training: Target construction, batch validation
    - Persistence: Save/load, base checkpoint, failures

Author: Penguin AI Team
"""

import pytest
import numpy as np
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Check for PyTorch
try:
    import torch
    import torch.nn as nn
    HAS_TORCH = True
except ImportError:
    HAS_TORCH = False

# Skip all tests if PyTorch not available
pytestmark = pytest.mark.skipif(not HAS_TORCH, reason="PyTorch not installed")


def make_model(tmp_path, **kwargs):
    from agents.policy_model import PolicyModel
    return PolicyModel(checkpoint_dir=str(tmp_path), **kwargs)


def random_batch(n=8, seed=0):
    rng = np.random.default_rng(seed)
    states = rng.random((n, 16)).astype(np.float32)
    actions = rng.integers(0, 4, size=n)
    rewards = rng.uniform(-10, 10, size=n)
    return states, actions, rewards


# =============================================================================
# NETWORK TESTS
# =============================================================================

class TestPolicyNetwork:
    """Test PolicyNetwork architecture."""

    def test_layers(self):
        from agents.policy_model import PolicyNetwork

        net = PolicyNetwork()
        linears = [m for m in net.modules() if isinstance(m, nn.Linear)]

        assert [(m.in_features, m.out_features) for m in linears] == [(16, 64), (64, 64), (64, 4)]
        assert any(isinstance(m, nn.LayerNorm) for m in net.modules())
        assert any(isinstance(m, nn.Dropout) for m in net.modules())

    def test_forward_is_distribution(self):
        from agents.policy_model import PolicyNetwork

        net = PolicyNetwork()
        net.eval()
        probs = net(torch.rand(5, 16))

        assert probs.shape == (5, 4)
        assert torch.all(probs >= 0)
        assert torch.allclose(probs.sum(dim=-1), torch.ones(5), atol=1e-5)

    def test_zero_biases(self):
        from agents.policy_model import PolicyNetwork

        net = PolicyNetwork()
        assert torch.all(net.output.bias == 0)
        assert len(list(net.hidden_weights())) == 2


# =============================================================================
# PREDICTION TESTS
# =============================================================================

class TestPrediction:
    """Test PolicyModel.predict."""

    def test_predict_before_initialize(self, tmp_path):
        from agents.errors import ModelNotInitializedError

        model = make_model(tmp_path)
        with pytest.raises(ModelNotInitializedError):
            model.predict(np.zeros(16))

    def test_initialize_fresh(self, tmp_path):
        model = make_model(tmp_path)

        assert model.initialize() is False
        assert model.is_initialized

    def test_predict_shape(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()
        probs = model.predict(np.random.rand(16))

        assert probs.shape == (4,)
        assert np.all(probs >= 0)
        assert probs.sum() == pytest.approx(1.0, abs=1e-5)

    def test_predict_wrong_width(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()
        with pytest.raises(ValueError):
            model.predict(np.zeros(8))

    def test_predict_is_deterministic(self, tmp_path):
        """Dropout is off during inference."""
        model = make_model(tmp_path)
        model.initialize()
        state = np.random.rand(16)
        assert np.allclose(model.predict(state), model.predict(state))


# =============================================================================
# TRAINING TESTS
# =============================================================================

class TestTraining:
    """Test target construction and train_on_batch."""

    def test_targets_positive_reward(self, tmp_path):
        model = make_model(tmp_path)
        predictions = np.full((1, 4), 0.25)

        targets = model.compute_targets(predictions, np.array([1]), np.array([7.0]))

        expected = np.array([0.25, 0.95, 0.25, 0.25]) / 1.7
        assert np.allclose(targets[0], expected)

    def test_targets_floor(self, tmp_path):
        """Negative nudges are floored at 0.01."""
        model = make_model(tmp_path)
        predictions = np.full((1, 4), 0.25)

        targets = model.compute_targets(predictions, np.array([2]), np.array([-3.0]))

        assert targets[0, 2] == pytest.approx(0.01)
        assert np.all(targets >= 0.01)

    def test_targets_non_positive_sum(self, tmp_path):
        """A row summing to zero is floored without renormalizing."""
        model = make_model(tmp_path)
        predictions = np.full((1, 4), 0.25)

        targets = model.compute_targets(predictions, np.array([0]), np.array([-10.0]))

        assert np.allclose(targets[0], [0.01, 0.25, 0.25, 0.25])

    def test_train_on_batch(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()

        loss = model.train_on_batch(*random_batch())

        assert np.isfinite(loss)
        assert model.train_steps == 1

    def test_training_changes_parameters(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()
        before = [p.detach().clone() for p in model.network.parameters()]

        model.train_on_batch(*random_batch())

        after = list(model.network.parameters())
        assert any(not torch.equal(a, b) for a, b in zip(before, after))

    def test_rewarded_action_gains_probability(self, tmp_path):
        """Repeated positive reward for one action raises its probability."""
        model = make_model(tmp_path)
        model.initialize()
        state = np.full(16, 0.5, dtype=np.float32)
        before = model.predict(state)[2]

        states = np.tile(state, (32, 1))
        for _ in range(30):
            model.train_on_batch(states, np.full(32, 2), np.full(32, 10.0))

        assert model.predict(state)[2] > before

    def test_train_before_initialize(self, tmp_path):
        from agents.errors import ModelNotInitializedError

        model = make_model(tmp_path)
        with pytest.raises(ModelNotInitializedError):
            model.train_on_batch(*random_batch())

    def test_empty_batch(self, tmp_path):
        from agents.errors import TrainingBatchError

        model = make_model(tmp_path)
        model.initialize()
        with pytest.raises(TrainingBatchError):
            model.train_on_batch(np.zeros((0, 16)), np.zeros(0), np.zeros(0))

    def test_mismatched_lengths(self, tmp_path):
        from agents.errors import TrainingBatchError

        model = make_model(tmp_path)
        model.initialize()
        states, actions, rewards = random_batch(n=4)
        with pytest.raises(TrainingBatchError):
            model.train_on_batch(states, actions[:3], rewards)

    def test_action_out_of_range(self, tmp_path):
        from agents.errors import TrainingBatchError

        model = make_model(tmp_path)
        model.initialize()
        states, _, rewards = random_batch(n=4)
        with pytest.raises(TrainingBatchError):
            model.train_on_batch(states, np.array([0, 1, 2, 4]), rewards)

    def test_non_finite_reward(self, tmp_path):
        from agents.errors import TrainingBatchError

        model = make_model(tmp_path)
        model.initialize()
        states, actions, rewards = random_batch(n=4)
        rewards[0] = np.nan
        with pytest.raises(TrainingBatchError):
            model.train_on_batch(states, actions, rewards)


# =============================================================================
# PERSISTENCE TESTS
# =============================================================================

class TestPersistence:
    """Test checkpoint save and load."""

    def test_save_creates_file(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()

        path = model.save("penguin-ai-p1")

        assert path == tmp_path / "penguin-ai-p1" / "policy_model.pt"
        assert path.is_file()
        assert not any(p.name.endswith(".tmp") for p in path.parent.iterdir())

    def test_save_load_round_trip(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()
        model.train_on_batch(*random_batch())
        model.save("p1")

        restored = make_model(tmp_path)
        restored.load("p1")

        state = np.random.rand(16)
        assert np.allclose(model.predict(state), restored.predict(state), atol=1e-6)
        assert restored.train_steps == 1

    def test_initialize_loads_base(self, tmp_path):
        model = make_model(tmp_path)
        model.initialize()
        model.save("penguin-behavior-base")

        other = make_model(tmp_path)
        assert other.initialize() is True

    def test_load_missing(self, tmp_path):
        from agents.errors import CheckpointLoadError

        model = make_model(tmp_path)
        with pytest.raises(CheckpointLoadError):
            model.load("does-not-exist")

    def test_load_incompatible_dims(self, tmp_path):
        from agents.errors import CheckpointLoadError

        model = make_model(tmp_path, hidden_dim=32)
        model.initialize()
        model.save("small")

        other = make_model(tmp_path)
        with pytest.raises(CheckpointLoadError):
            other.load("small")
        assert other.initialize("small") is False

    def test_failed_load_keeps_live_parameters(self, tmp_path):
        """A rejected checkpoint leaves the current network in place."""
        from agents.errors import CheckpointLoadError

        model = make_model(tmp_path)
        model.initialize()
        model.train_on_batch(*random_batch())
        state = np.random.rand(16)
        before = model.predict(state)

        path = tmp_path / "broken" / "policy_model.pt"
        path.parent.mkdir()
        torch.save({
            "network_state_dict": {},
            "optimizer_state_dict": {},
            "config": model.get_config()
        }, path)

        with pytest.raises(CheckpointLoadError):
            model.load("broken")

        assert model.is_initialized
        assert model.train_steps == 1
        assert np.allclose(model.predict(state), before)

    def test_checkpoint_without_config_dict(self, tmp_path):
        """A malformed config is a load error, so initialize starts fresh."""
        from agents.errors import CheckpointLoadError

        path = tmp_path / "odd" / "policy_model.pt"
        path.parent.mkdir()
        torch.save({"network_state_dict": {}, "config": [16, 64, 4]}, path)

        model = make_model(tmp_path)
        with pytest.raises(CheckpointLoadError):
            model.load("odd")
        assert model.initialize("odd") is False
        assert model.is_initialized

    def test_predict_failure_inside_training_step(self, tmp_path, monkeypatch):
        """A runtime failure while computing targets surfaces as TrainingBatchError."""
        from agents.errors import TrainingBatchError

        model = make_model(tmp_path)
        model.initialize()

        def broken(states):
            raise RuntimeError("device lost")

        monkeypatch.setattr(model, "_predict_batch", broken)
        with pytest.raises(TrainingBatchError):
            model.train_on_batch(*random_batch())
        assert model.train_steps == 0

    def test_save_invalid_name(self, tmp_path):
        from agents.errors import CheckpointSaveError

        model = make_model(tmp_path)
        model.initialize()
        with pytest.raises(CheckpointSaveError):
            model.save("../escape")

    def test_summary(self, tmp_path):
        model = make_model(tmp_path)
        assert model.summary() == "Model not initialized"
        model.initialize()
        assert "Parameters" in model.summary()
        assert model.count_parameters() > 0
