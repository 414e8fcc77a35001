"""
Test Suite for Agent Controller Module
======================================

Tests for src/agents/controller.py

Test Categories:
    - Construction: Width checks, defaults
    - Decision tick: Store growth, state updates, targets, fallback
    - Learn tick: Reward fill, efficiency, replay trigger, capacity
    - Lifecycle: Close, persistence

Author: Penguin AI Team
"""

import pytest
import numpy as np
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

try:
    import torch
    HAS_TORCH = True
except ImportError:
    HAS_TORCH = False

pytestmark = pytest.mark.skipif(not HAS_TORCH, reason="PyTorch not installed")


def make_config(tmp_path, **overrides):
    from training.config import SimulationConfig

    config = SimulationConfig()
    config.checkpoint_dir = str(tmp_path / "models")
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def make_controller(tmp_path, seed=0, initialize=True, **kwargs):
    from agents.controller import AgentController

    controller = AgentController(
        "p1",
        config=kwargs.pop("config", None) or make_config(tmp_path),
        rng=np.random.default_rng(seed),
        **kwargs
    )
    if initialize:
        controller.initialize()
    return controller


# =============================================================================
# CONSTRUCTION TESTS
# =============================================================================

class TestConstruction:
    """Test controller construction."""

    def test_defaults(self, tmp_path):
        from environment.action_space import AgentStatus

        controller = make_controller(tmp_path, initialize=False)

        assert controller.agent_id == "p1"
        assert controller.status is AgentStatus.IDLE
        assert controller.state.energy == 100.0
        assert controller.state.happiness == 50.0
        assert len(controller.state.memory) == 16
        assert controller.checkpoint_name == "penguin-ai-p1"

    def test_encoder_model_width_mismatch(self, tmp_path):
        from agents.errors import ConfigurationError
        from agents.policy_model import PolicyModel

        model = PolicyModel(input_dim=8, checkpoint_dir=str(tmp_path))
        with pytest.raises(ConfigurationError):
            make_controller(tmp_path, initialize=False, model=model)

    def test_output_width_mismatch(self, tmp_path):
        from agents.errors import ConfigurationError
        from agents.policy_model import PolicyModel

        model = PolicyModel(output_dim=5, checkpoint_dir=str(tmp_path))
        with pytest.raises(ConfigurationError):
            make_controller(tmp_path, initialize=False, model=model)

    def test_store_width_mismatch(self, tmp_path):
        from agents.errors import ConfigurationError
        from agents.experience_store import ExperienceStore

        with pytest.raises(ConfigurationError):
            make_controller(tmp_path, initialize=False, store=ExperienceStore(state_dim=12))

    def test_injected_empty_store_is_used(self, tmp_path):
        from agents.experience_store import ExperienceStore

        store = ExperienceStore(capacity=7)
        controller = make_controller(tmp_path, initialize=False, store=store)
        assert controller.store is store


# =============================================================================
# DECISION TICK TESTS
# =============================================================================

class TestDecide:
    """Test the decision tick."""

    def test_single_decide(self, tmp_path):
        """One record with zero reward; energy drops by 1 unless resting."""
        from environment.action_space import Action

        controller = make_controller(tmp_path)
        decision = controller.decide()

        assert len(controller.store) == 1
        assert controller.store[0].reward == 0.0
        assert controller.store[0].action == int(decision.action)
        if decision.action is Action.REST:
            assert controller.state.energy == 100.0
        else:
            assert controller.state.energy == 99.0

    def test_decision_fields(self, tmp_path):
        from agents.controller import MAX_CONFIDENCE, MIN_CONFIDENCE

        controller = make_controller(tmp_path)
        decision = controller.decide({"nearestFish": {"distance": 120}})

        assert MIN_CONFIDENCE <= decision.confidence <= MAX_CONFIDENCE
        assert decision.reasoning
        assert decision.reasoning != "fallback"
        assert controller.state.current_action is decision.action
        assert controller.status is decision.action.status

    def test_memory_updated(self, tmp_path):
        controller = make_controller(tmp_path)
        decisions = [controller.decide() for _ in range(20)]

        memory = controller.state.memory
        assert len(memory) == 16
        assert memory[:3] == [int(d.action) for d in reversed(decisions[-3:])]

    def test_targets_in_bounds(self, tmp_path):
        """Move/collect get a target inside the world; others get none."""
        from environment.action_space import Action

        controller = make_controller(tmp_path)
        world = controller.config.world
        seen = set()
        for _ in range(200):
            decision = controller.decide()
            seen.add(decision.action)
            if decision.action in (Action.MOVE, Action.COLLECT):
                assert decision.target is not None
                assert world.min_x <= decision.target.x <= world.max_x
                assert world.min_y <= decision.target.y <= world.max_y
            else:
                assert decision.target is None
        assert len(seen) > 1

    def test_next_state_linked(self, tmp_path):
        controller = make_controller(tmp_path)
        controller.decide()
        controller.decide()

        assert np.allclose(controller.store[0].next_state, controller.store[1].state)
        assert controller.store[1].next_state is None

    def test_fallback_when_uninitialized(self, tmp_path):
        """Internal failures return the fallback decision, not an exception."""
        from environment.action_space import Action

        controller = make_controller(tmp_path, initialize=False)
        decision = controller.decide()

        assert decision.action is Action.REST
        assert decision.confidence == 0.1
        assert decision.reasoning == "fallback"
        assert controller.fallback_count == 1
        assert len(controller.store) == 0

    def test_bad_snapshot_does_not_raise(self, tmp_path):
        controller = make_controller(tmp_path)
        decision = controller.decide({"nearestFish": "far away", "penguins": 3.7})
        assert decision.reasoning != "fallback"

    def test_reproducible_with_seed(self, tmp_path):
        torch.manual_seed(0)
        a = make_controller(tmp_path / "a", seed=3)
        torch.manual_seed(0)
        b = make_controller(tmp_path / "b", seed=3)

        assert [a.decide().action for _ in range(30)] == [b.decide().action for _ in range(30)]


# =============================================================================
# LEARN TICK TESTS
# =============================================================================

class TestLearn:
    """Test the learn tick."""

    def test_learn_fills_latest_reward(self, tmp_path):
        controller = make_controller(tmp_path)
        controller.decide()
        controller.decide()
        controller.learn(3.0)

        assert [exp.reward for exp in controller.store] == [0.0, 3.0]

    def test_learn_on_empty_store(self, tmp_path):
        controller = make_controller(tmp_path)
        assert controller.learn(1.0) is None
        assert len(controller.store) == 0

    def test_efficiency_tracks_nonzero_rewards(self, tmp_path):
        controller = make_controller(tmp_path)
        for _ in range(5):
            controller.decide()
            controller.learn(7.0)
        controller.decide()
        controller.learn(0.0)

        assert controller.state.performance.efficiency == pytest.approx(0.7)

    def test_efficiency_clamped(self, tmp_path):
        controller = make_controller(tmp_path)
        controller.decide()
        controller.learn(-5.0)
        assert controller.state.performance.efficiency == 0.0

    def test_performance_counters(self, tmp_path):
        controller = make_controller(tmp_path)
        controller.decide()
        controller.learn(12.0)

        assert controller.state.performance.fish_collected == 1
        assert controller.state.performance.yarn_collected == 1

    def test_replay_triggered_after_min_size(self, tmp_path):
        """Training starts once the store holds a full batch."""
        controller = make_controller(tmp_path)
        for i in range(40):
            controller.decide()
            controller.learn(7.0)
            if i + 1 < 32:
                assert controller.training_calls == 0
            if i + 1 == 32:
                assert controller.training_calls >= 1

        assert controller.last_training_loss is not None
        assert controller.model.train_steps >= 1

    def test_store_capped_at_capacity(self, tmp_path):
        controller = make_controller(tmp_path)
        for _ in range(1500):
            controller.decide()
            controller.learn(7.0)

        assert len(controller.store) == 1000
        assert controller.decisions_made == 1500

    def test_non_finite_reward(self, tmp_path):
        controller = make_controller(tmp_path)
        controller.decide()
        with pytest.raises(ValueError):
            controller.learn(float("nan"))

    def test_learn_from_outcome(self, tmp_path):
        from environment.action_space import Action

        controller = make_controller(tmp_path)
        controller.decide()
        controller.state.current_action = Action.COLLECT

        reward = controller.learn_from_outcome({"fishCollected": 2})

        # (5 + 2 * 2) * happiness factor, energy factor 1.0 or 1.2
        assert reward > 0
        assert controller.store.latest().reward == pytest.approx(reward)
        assert controller.state.performance.efficiency > 0

    def test_failed_training_does_not_abort_tick(self, tmp_path):
        """A rejected batch is logged; the reward and the tick survive."""
        from agents.errors import TrainingBatchError
        from agents.policy_model import PolicyModel

        class RejectingModel(PolicyModel):
            def train_on_batch(self, states, actions, rewards):
                raise TrainingBatchError("rejected")

        model = RejectingModel(checkpoint_dir=str(tmp_path / "models"))
        controller = make_controller(tmp_path, model=model)
        controller.last_training_loss = 0.5

        results = []
        for _ in range(35):
            controller.decide()
            results.append(controller.learn(6.0))

        assert all(result is None for result in results)
        assert controller.training_calls == 4
        assert controller.store.latest().reward == pytest.approx(6.0)
        assert controller.last_training_loss == 0.5
        assert len(controller.store) == 35

    def test_fallback_tick_keeps_previous_reward(self, tmp_path):
        """Learning after a fallback decision does not overwrite the last record."""
        controller = make_controller(tmp_path)
        controller.decide()
        controller.learn(4.0)

        def broken(vector):
            raise RuntimeError("inference failed")

        controller.model.predict = broken
        decision = controller.decide()
        controller.learn(-2.0)

        assert decision.reasoning == "fallback"
        assert len(controller.store) == 1
        assert controller.store.latest().reward == pytest.approx(4.0)

    def test_train_from_replay(self, tmp_path):
        controller = make_controller(tmp_path)
        assert controller.train_from_replay() is None
        for _ in range(32):
            controller.decide()
            controller.learn(1.0)
        assert controller.train_from_replay() is not None


# =============================================================================
# LIFECYCLE TESTS
# =============================================================================

class TestLifecycle:
    """Test close, external updates and persistence."""

    def test_closed_agent_rejects_ticks(self, tmp_path):
        from agents.errors import AgentClosedError

        controller = make_controller(tmp_path)
        controller.close()

        assert controller.closed
        with pytest.raises(AgentClosedError):
            controller.decide()
        with pytest.raises(AgentClosedError):
            controller.learn(1.0)

    def test_external_updates_clamped(self, tmp_path):
        controller = make_controller(tmp_path)
        controller.update_energy(50)
        controller.update_happiness(-80)
        controller.update_position(120, 340)

        state = controller.get_state()
        assert state.energy == 100.0
        assert state.happiness == 0.0
        assert (state.position.x, state.position.y) == (120.0, 340.0)

    def test_get_state_is_copy(self, tmp_path):
        controller = make_controller(tmp_path)
        state = controller.get_state()
        state.energy = 0
        assert controller.state.energy == 100.0

    def test_save_and_load_model(self, tmp_path):
        controller = make_controller(tmp_path)
        path = controller.save_model()

        assert path.name == "policy_model.pt"
        assert path.parent.name == "penguin-ai-p1"
        controller.load_model()
