#!/usr/bin/env python3
"""
Tabular learning tests.

Covers:
- The Q-learning and SARSA update formulas
- Epsilon-greedy selection over legal actions
- State abstraction keys
- Q-table snapshots (round trip, wholesale replace, malformed input)
- Trainer epsilon schedule, missing learners, cancellation and the CLI
"""

import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import json
import random
import tempfile

from rescue_env import GridRescueEnvironment, parse_ascii_layout
from rescue_env.config import MOVE_UP, MOVE_DOWN, MOVE_RIGHT, EXTINGUISH, WAIT
from rescue_env.scenarios import build_scenario
from rescue_rl import (
    QLearningConfig, QTable, SnapshotFormatError, TabularPolicy,
    StepRewardShaper, TabularTrainer, NoLearningAgentsError,
)
from rescue_rl.tabular_agent import fire_direction
from rescue_rl.train_tabular import main as train_main

ROOM = [
    "#####",
    "#f*.#",
    "#...#",
    "##E##",
]


def _policy(algorithm="qlearning", table=None, lr=0.5, gamma=0.5, seed=0):
    table = table if table is not None else QTable()
    return TabularPolicy(table, algorithm=algorithm, learning_rate=lr,
                         discount_factor=gamma, rng=random.Random(seed))


def test_q_learning_update_is_exact():
    print("\n[Test 1] Q-learning update")
    policy = _policy()
    q = policy.q_table
    q.set("s", MOVE_UP, 2.0)
    q.set("s2", MOVE_UP, 4.0)
    q.set("s2", MOVE_DOWN, 10.0)

    old = q.get("s", MOVE_UP)
    target = 1.0 + 0.5 * 10.0
    new = policy.learn("s", MOVE_UP, 1.0, "s2", [MOVE_UP, MOVE_DOWN])
    assert new == old + 0.5 * (target - old), f"expected {old + 0.5 * (target - old)}, got {new}"
    assert q.get("s", MOVE_UP) == 4.0

    fresh = policy.learn("unseen", WAIT, 3.0, "s2", [])
    assert fresh == 0.5 * 3.0, "no legal next actions: target is the reward alone"
    print("  ✓ Q(s,a) = old + alpha * (target - old)")


def test_q_learning_max_over_legal_actions():
    print("\n[Test 2] Max over the legal next actions only")
    policy = _policy()
    q = policy.q_table
    q.set("s2", MOVE_UP, -3.0)
    q.set("s2", MOVE_DOWN, -5.0)
    q.set("s2", EXTINGUISH, 50.0)

    assert policy.q_learning_target(0.0, "s2", [MOVE_UP, MOVE_DOWN]) == 0.5 * -3.0, \
        "all-negative values must not be clamped to 0"
    assert policy.q_learning_target(0.0, "s2", [MOVE_UP, MOVE_DOWN, WAIT]) == 0.0, \
        "unseen actions count as 0"
    print("  ✓ illegal actions ignored, negatives kept")


def test_sarsa_and_q_learning_diverge():
    print("\n[Test 3] SARSA vs Q-learning")
    table = QTable()
    table.set("s2", MOVE_UP, 10.0)
    table.set("s2", MOVE_DOWN, 1.0)

    q_policy = _policy("qlearning", table.copy())
    s_policy = _policy("sarsa", table.copy())

    legal = [MOVE_UP, MOVE_DOWN]
    q_value = q_policy.learn("s", WAIT, 0.0, "s2", legal, next_action=MOVE_DOWN)
    s_value = s_policy.learn("s", WAIT, 0.0, "s2", legal, next_action=MOVE_DOWN)
    print(f"  Q-learning: {q_value}, SARSA: {s_value}")
    assert q_value == 0.5 * (0.5 * 10.0)
    assert s_value == 0.5 * (0.5 * 1.0)
    assert q_value != s_value

    fallback = _policy("sarsa", table.copy()).learn("s", WAIT, 0.0, "s2", legal, next_action=None)
    assert fallback == q_value, "SARSA without a next action uses the Q-learning target"
    assert table.get("s", WAIT) == 0.0, "copies are independent"
    print("  ✓ targets differ when the next action is not greedy")


def test_choose_action():
    print("\n[Test 4] Epsilon-greedy selection")
    policy = _policy()
    q = policy.q_table
    q.set("s", EXTINGUISH, 100.0)
    q.set("s", MOVE_RIGHT, 5.0)
    q.set("s", MOVE_UP, 1.0)

    legal = [WAIT, MOVE_UP, MOVE_RIGHT]
    for _ in range(20):
        assert policy.choose_action("s", legal, epsilon=0.0) == MOVE_RIGHT, "best legal action"
    assert policy.choose_action("s", [], epsilon=0.0) == WAIT
    assert policy.choose_action("s", legal, epsilon=1.0, force_exploit=True) == MOVE_RIGHT

    seen = {policy.choose_action("s", legal, epsilon=1.0) for _ in range(200)}
    assert seen == set(legal), f"exploration should cover every legal action: {seen}"

    ties = {policy.choose_action("unseen", legal, epsilon=0.0) for _ in range(200)}
    assert ties <= set(legal) and len(ties) > 1, "exact ties are broken randomly"
    print("  ✓ greedy, exploring and tie-breaking behave")


def test_abstract_state_key():
    print("\n[Test 5] State abstraction")
    env = GridRescueEnvironment(layout=parse_ascii_layout(ROOM), rng=random.Random(0))
    env.reset()
    ff = next(a for a in env.agents.values() if a.kind == "firefighter")
    policy = _policy()

    key = policy.abstract_state(env, ff)
    assert key == "r1c1_w2_h2_s1_fd1_smkN", key

    ff.water = 0
    ff.hp = 50
    ff.breathing_charge = 10
    env.get_tile(1, 2).fire_fuel = 0
    env.get_tile(1, 1).smoke_level = "Heavy"
    key = policy.abstract_state(env, ff)
    assert key == "r1c1_w0_h1_s0_fd5_smkH", key

    assert fire_direction(5, 5, (2, 4)) == 0
    assert fire_direction(5, 5, (5, 9)) == 1
    assert fire_direction(5, 5, (7, 3)) == 2
    assert fire_direction(5, 5, (5, 2)) == 3
    assert fire_direction(5, 5, (5, 5)) == 4
    assert fire_direction(5, 5, None) == 5
    print("  ✓ r/c, water, hp, breathing, fire direction and smoke encoded")


def test_snapshot_round_trip_and_rejection():
    print("\n[Test 6] Q-table snapshots")
    table = QTable()
    table.set("r1c1_w2_h2_s1_fd1_smkN", EXTINGUISH, 0.1 + 0.2)
    table.set("r1c1_w2_h2_s1_fd1_smkN", WAIT, -1e-12)
    table.set("r2c1_w2_h2_s1_fd0_smkL", MOVE_UP, 123.456789)

    restored = QTable.from_json(table.to_json())
    assert restored.to_snapshot() == table.to_snapshot(), "JSON round trip must be exact"

    other = QTable({"old_state": {0: 1.0}})
    other.load_snapshot(table.to_snapshot())
    assert "old_state" not in other, "loading replaces, never merges"
    assert len(other) == 2

    before = restored.to_snapshot()
    malformed = [
        ["not", "a", "mapping"],
        {"s": {"9": 1.0}},
        {"s": {"up": 1.0}},
        {"s": {"1": "high"}},
        {"s": [1.0]},
        {"ok": {"0": 1.0}, "bad": {"0": float("nan")}},
    ]
    for snapshot in malformed:
        try:
            restored.load_snapshot(snapshot)
        except SnapshotFormatError as e:
            print(f"  rejected: {e}")
        else:
            raise AssertionError(f"snapshot {snapshot!r} should be rejected")
        assert restored.to_snapshot() == before, "rejected snapshot must leave the table unchanged"

    try:
        restored.load_json("{not json")
    except SnapshotFormatError:
        pass
    else:
        raise AssertionError("invalid JSON should be rejected")
    assert isinstance(SnapshotFormatError("x"), ValueError)
    print("  ✓ exact round trip, wholesale replace, malformed input rejected")


def test_config():
    print("\n[Test 7] QLearningConfig")
    try:
        QLearningConfig(algorithm="td-lambda")
    except ValueError as e:
        assert "qlearning" in str(e)
    else:
        raise AssertionError("unknown algorithm should raise ValueError")

    config = QLearningConfig.get_default("small_room")
    assert config.num_episodes == 300 and config.max_steps_per_episode == 120
    assert config.epsilon_decay == 0.99

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "config.json")
        config.save(path)
        loaded = QLearningConfig.load(path)
    assert loaded == config
    print("  ✓ validation, scenario defaults and JSON round trip")


def test_reward_shaper():
    print("\n[Test 8] Step reward shaping")
    env = GridRescueEnvironment(layout=parse_ascii_layout(ROOM), rng=random.Random(0))
    env.reset()
    ff = next(a for a in env.agents.values() if a.kind == "firefighter")
    shaper = StepRewardShaper()

    shaper.begin_step(env, [ff])
    ff.take_damage(10)
    env.get_tile(1, 2).fire_fuel = 0
    reward, died = shaper.shape(ff, 1.0, env)
    assert not died
    assert reward == 1.0 - 15.0 + 3.0 + 50.0, f"got {reward}"
    assert shaper.episode_bonus(env, [ff]) == 200.0

    shaper.begin_step(env, [ff])
    ff.take_damage(ff.hp)
    reward, died = shaper.shape(ff, 1.0, env)
    assert died and reward == 1.0 - 50.0
    assert shaper.episode_bonus(env, [ff]) == 0.0, "no bonus without a living firefighter"
    assert shaper.get_episode_summary()["learner_deaths"] == 1
    print("  ✓ hp loss, fire bonuses, death penalty and episode bonus")


def test_trainer_epsilon_and_table_persist():
    print("\n[Test 9] Trainer runs episodes and decays epsilon")
    config = QLearningConfig(scenario="small_room", num_episodes=3, max_steps_per_episode=20,
                             epsilon_decay=0.5, seed=7)
    trainer = TabularTrainer(config, verbose=False)
    result = trainer.train()

    assert result.episodes_completed == 3 and not result.stopped and result.errors == []
    assert len(result.episode_rewards) == 3
    assert abs(result.final_epsilon - 0.125) < 1e-12, result.final_epsilon
    assert len(trainer.q_table) > 0, "Q-table filled during training"
    assert result.q_states == len(trainer.q_table)

    states = len(trainer.q_table)
    trainer.env.reset()
    assert len(trainer.q_table) == states, "environment reset keeps the Q-table"

    trainer.epsilon = 0.02
    for _ in range(10):
        trainer.decay_epsilon()
    assert trainer.epsilon == config.epsilon_min
    print(f"  ✓ {states} states learned, epsilon floor respected")


def test_no_learning_agents_is_per_episode_error():
    print("\n[Test 10] Missing learners abort only the episode")
    config = QLearningConfig(scenario="small_room", num_episodes=2, max_steps_per_episode=10)
    env = build_scenario("small_room", config={"learning_kind": "rescuer"})
    trainer = TabularTrainer(config, env=env, verbose=False)

    try:
        trainer.run_episode(1)
    except NoLearningAgentsError as e:
        assert "episode 1" in str(e)
    else:
        raise AssertionError("run_episode without learners should raise NoLearningAgentsError")

    result = trainer.train()
    assert result.episodes_completed == 0
    assert len(result.errors) == 2, result.errors
    assert result.final_epsilon == config.epsilon_start, "no decay without a finished episode"
    print("  ✓ errors recorded, training loop survives")


def test_cancellation_from_progress_callback():
    print("\n[Test 11] Cancellation at a step boundary")
    config = QLearningConfig(scenario="small_room", num_episodes=5, max_steps_per_episode=50,
                             progress_interval=10, seed=3)
    trainer = TabularTrainer(config, verbose=False)
    progress = []

    def on_progress(info):
        progress.append(info)
        trainer.stop()

    result = trainer.train(on_progress=on_progress)
    assert result.stopped
    assert result.episodes_completed == 0, "the interrupted episode is discarded"
    assert len(progress) == 1 and progress[0]["step"] == 11
    assert {"episode", "epsilon", "reward", "fires_active"} <= set(progress[0])
    for state in trainer.q_table.states():
        for value in trainer.q_table.state_values(state).values():
            assert value == value, "no NaN left behind"

    polls = []

    def stop_after_three_polls():
        polls.append(1)
        return len(polls) > 3

    result = trainer.train(num_episodes=2, should_stop=stop_after_three_polls)
    assert result.stopped and result.episodes_completed == 0
    print("  ✓ stop() and should_stop honoured")


def test_cli_saves_loadable_table():
    print("\n[Test 12] Command-line training")
    with tempfile.TemporaryDirectory() as tmp:
        table_path = os.path.join(tmp, "tables", "small_room.json")
        code = train_main([
            "--scenario", "small_room",
            "--episodes", "2",
            "--max-steps", "15",
            "--log-dir", tmp,
            "--save-table", table_path,
            "--eval-episodes", "1",
            "--quiet",
        ])
        assert code == 0
        with open(table_path) as f:
            snapshot = json.load(f)
        assert snapshot, "saved table should not be empty"
        table = QTable.from_json(json.dumps(snapshot))
        assert len(table) == len(snapshot)

        bad_path = os.path.join(tmp, "bad.json")
        with open(bad_path, "w") as f:
            json.dump({"s": {"7": 1.0}}, f)
        assert train_main(["--load-table", bad_path, "--log-dir", tmp, "--quiet"]) == 1
    print("  ✓ table written and malformed input refused")


if __name__ == "__main__":
    try:
        test_q_learning_update_is_exact()
        test_q_learning_max_over_legal_actions()
        test_sarsa_and_q_learning_diverge()
        test_choose_action()
        test_abstract_state_key()
        test_snapshot_round_trip_and_rejection()
        test_config()
        test_reward_shaper()
        test_trainer_epsilon_and_table_persist()
        test_no_learning_agents_is_per_episode_error()
        test_cancellation_from_progress_callback()
        test_cli_saves_loadable_table()
        print("\n✓ All Q-learning tests PASSED\n")
        sys.exit(0)
    except AssertionError as e:
        print(f"\n✗ Test FAILED: {e}\n")
        sys.exit(1)
