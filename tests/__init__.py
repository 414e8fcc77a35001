"""
Penguin AI Tests Package
========================

Unit tests for the decision-and-learning core:
    - test_action_space: Action set, statuses, outcome parsing
    - test_state_encoder: Feature vector construction and defaults
    - test_reward: Reward shaping and clamping
    - test_experience_store: Ring buffer, reward fill, sampling
    - test_action_selector: Adaptive epsilon-greedy selection
    - test_policy_model: Network, training step, checkpoints
    - test_controller: Decision and learn ticks
    - test_pool: Multi-agent registry and scheduling
    - test_training: Config, metrics, headless simulation
"""
