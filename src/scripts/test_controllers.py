#!/usr/bin/env python3
"""
Rule-based controller tests.

Checks:
- Firefighter refills at <= 20% water and sprays adjacent fires
- Victims flee to the safest neighbour, follow close rescuers, else head out
- Movement costs passability * (1.0 wander / 1.5 goal / 2.0 flee)
- A move the agent cannot pay for is skipped
- Agents act in shuffled order and the first to claim a cell keeps it
"""

import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import random

from rescue_env import GridRescueEnvironment, parse_ascii_layout
from rescue_env.controllers import (
    firefighter_ai, victim_ai, move_to_safety, move_randomly, step_toward, perform_rule_based_actions,
)


class FixedRandom(random.Random):
    """random() always returns the same value: 1.0 never fires an event, 0.0 always does."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value

    def getrandbits(self, k):
        return super().getrandbits(k)


def _env(rows, rng=None):
    env = GridRescueEnvironment(layout=parse_ascii_layout(rows), rng=rng or FixedRandom(1.0))
    env.reset()
    return env


def _first(env, kind):
    return next(a for a in env.agents.values() if a.kind == kind)


def test_firefighter_sprays_adjacent_fire():
    print("\n[Test 1] Firefighter sprays a neighbouring fire")
    env = _env([
        "#####",
        "#f*.#",
        "#...#",
        "##E##",
    ])
    ff = _first(env, "firefighter")
    stamina = ff.stamina

    firefighter_ai(env, ff)
    fire = env.get_tile(1, 2)
    print(f"  fuel={fire.fire_fuel} dampness={fire.dampness} water={ff.water}")
    assert fire.fire_fuel == 15, "one spray removes 15 fuel"
    assert fire.dampness == 10.0
    assert ff.water == 95
    assert ff.stamina == stamina - 1 - 5, "upkeep plus spray cost"
    assert ff.position == (1, 1), "spraying does not move"
    print("  ✓ -15 fuel, dampness 10, -5 water")


def test_firefighter_refills_when_low():
    print("\n[Test 2] Firefighter refills at or below 20% water")
    rows = [
        "######",
        "#fT..#",
        "#...*#",
        "##E###",
    ]
    env = _env(rows)
    ff = _first(env, "firefighter")
    ff.water = 20
    stamina = ff.stamina

    firefighter_ai(env, ff)
    assert ff.water == 50, f"refill adds 30 next to a toilet, got {ff.water}"
    assert ff.stamina == stamina - 1 - 2
    assert ff.position == (1, 1)

    env = _env(rows)
    ff = _first(env, "firefighter")
    ff.water = 21
    stamina = ff.stamina
    firefighter_ai(env, ff)
    assert ff.water == 21, "above the threshold the firefighter goes for the fire"
    assert ff.position in ((1, 2), (2, 1)), ff.position
    assert abs(ff.stamina - (stamina - 1 - 1.5)) < 1e-9, "goal moves cost 1.5 per floor tile"
    print("  ✓ 20 -> 50 at the toilet, 21 heads for the fire")


def test_victim_flees_to_safest_cell():
    print("\n[Test 3] Safety scoring")
    rows = [
        "#######",
        "#.....#",
        "#.*v..#",
        "#.....#",
        "###E###",
    ]
    env = _env(rows)
    victim = _first(env, "victim")
    env.get_tile(1, 3).smoke_level = "Heavy"   # 5 - 2 + 2 = 5
    env.get_tile(2, 4).smoke_level = "Light"   # 5 + 1 + 2 = 8
    stamina = victim.stamina                   # (3, 3) scores 5 + 3 + 2 = 10

    victim_ai(env, victim)
    assert victim.position == (3, 3), victim.position
    assert victim.stamina == stamina - 1 - 2.0, "upkeep plus flee cost"
    print("  ✓ best score wins, flee costs 2.0")

    # (1, 3), (3, 3) and (2, 4) all score 10 on a clean map
    env = _env(rows, rng=FixedRandom(1.0))
    victim = _first(env, "victim")
    move_to_safety(env, victim)
    assert victim.position == (1, 3), "without swaps the first best neighbour is kept"

    env = _env(rows, rng=FixedRandom(0.0))
    victim = _first(env, "victim")
    move_to_safety(env, victim)
    assert victim.position == (2, 4), "every tie swaps when the roll succeeds"
    print("  ✓ ties swap on the roll")


def test_stamina_veto():
    print("\n[Test 4] Moves need enough stamina")
    env = _env([
        "#######",
        "#.....#",
        "#.*v..#",
        "#.....#",
        "###E###",
    ])
    victim = _first(env, "victim")
    victim.stamina = 2.5

    victim_ai(env, victim)
    assert victim.position == (2, 3), "1.5 stamina left cannot pay a 2.0 flee"
    assert victim.stamina == 1.5
    print("  ✓ move skipped, only upkeep paid")


def test_movement_cost_multipliers():
    print("\n[Test 5] Movement cost multipliers")
    env = _env([
        "#####",
        "#vF.#",
        "#.###",
        "#E###",
    ])
    victim = _first(env, "victim")
    stamina = victim.stamina
    assert step_toward(env, victim, (1, 3))
    assert victim.position == (1, 2)
    assert abs(victim.stamina - (stamina - 1.2 * 1.5)) < 1e-9, "furniture 1.2 x goal 1.5"

    victim.row, victim.col = 1, 1
    stamina = victim.stamina
    assert move_randomly(env, victim)
    assert victim.position in ((1, 2), (2, 1))
    expected = env.get_tile(*victim.position).passability * 1.0
    assert abs(victim.stamina - (stamina - expected)) < 1e-9, "wandering costs passability x 1.0"
    print("  ✓ wander 1.0, goal 1.5, flee 2.0 (test 3)")


def test_victim_follow_radius():
    print("\n[Test 6] Victims follow rescuers closer than 7 cells")
    near = _env([
        "############",
        "#v.....r...#",
        "#..........#",
        "#E##########",
    ])
    victim = _first(near, "victim")
    victim_ai(near, victim)
    assert victim.position == (1, 2), "rescuer 6 cells away: walk toward it"

    far = _env([
        "############",
        "#v......r..#",
        "#..........#",
        "#E##########",
    ])
    victim = _first(far, "victim")
    victim_ai(far, victim)
    assert victim.position == (2, 1), "rescuer 7 cells away: head for the exit cell"
    print("  ✓ radius is strict")


def test_shuffled_order_first_claim_wins():
    print("\n[Test 7] Turn order is shuffled and the first mover blocks the cell")
    rows = [
        "#####",
        "#v.v#",
        "##E##",
    ]
    winners = set()
    for seed in range(20):
        env = _env(rows, rng=random.Random(seed))
        perform_rule_based_actions(env)
        on_exit = [a for a in env.agents.values() if a.position == (1, 2)]
        assert len(on_exit) == 1, "exactly one victim takes the exit cell"
        stayed = [a for a in env.agents.values() if a.position in ((1, 1), (1, 3))]
        assert len(stayed) == 1, "the other one is blocked"
        winners.add(on_exit[0].agent_id)
    assert winners == {0, 1}, f"both victims should win some shuffles, got {winners}"
    print("  ✓ order varies with the rng")


if __name__ == "__main__":
    try:
        test_firefighter_sprays_adjacent_fire()
        test_firefighter_refills_when_low()
        test_victim_flees_to_safest_cell()
        test_stamina_veto()
        test_movement_cost_multipliers()
        test_victim_follow_radius()
        test_shuffled_order_first_claim_wins()
        print("\n✓ All controller tests PASSED\n")
        sys.exit(0)
    except AssertionError as e:
        print(f"\n✗ Test FAILED: {e}\n")
        sys.exit(1)
