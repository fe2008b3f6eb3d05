#!/usr/bin/env python3
"""
Rescue flow test: pick-up, escort and hand-over at the exit.

A rescuer next to an unclaimed victim must pair up with it, walk it to the
cell above the entrance and mark it rescued exactly once.
"""

import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import random

from rescue_env import GridRescueEnvironment, parse_ascii_layout
from rescue_env.controllers import rescuer_ai

ROOM = [
    "#####",
    "#.r.#",
    "#.v.#",
    "#...#",
    "##E##",
]


def _setup(seed=0):
    env = GridRescueEnvironment(layout=parse_ascii_layout(ROOM), rng=random.Random(seed))
    env.reset()
    rescuer = next(a for a in env.agents.values() if a.kind == "rescuer")
    victim = next(a for a in env.agents.values() if a.kind == "victim")
    return env, rescuer, victim


def test_exit_cell():
    print("\n[Test 1] Exit cell sits above the entrance")
    env, _, _ = _setup()
    assert env.is_exit_cell(3, 2)
    assert not env.is_exit_cell(2, 2)
    assert not env.is_exit_cell(3, 1)
    print("  ✓ (3, 2) is the exit cell")


def test_pickup_escort_and_rescue_once():
    print("\n[Test 2] Pick-up, escort, rescue")
    env, rescuer, victim = _setup()

    rescues = []
    complete_rescue = env.complete_rescue

    def counting_rescue(r, v):
        rescues.append(v.agent_id)
        complete_rescue(r, v)

    env.complete_rescue = counting_rescue

    stamina = rescuer.stamina
    rescuer_ai(env, rescuer)
    assert env.carry.victim_of(rescuer.agent_id) == victim.agent_id, "adjacent victim must be picked up"
    assert env.carry.rescuer_of(victim.agent_id) == rescuer.agent_id
    assert rescuer.stamina == stamina - 1 - 3, "upkeep plus pick-up cost"
    print("  ✓ carry relation established")

    for turn in range(40):
        rescuer_ai(env, rescuer)
        if victim.rescued:
            print(f"  Victim rescued after {turn + 1} escort turns")
            break
        assert abs(victim.row - rescuer.row) + abs(victim.col - rescuer.col) == 1, \
            "led victim must stay next to its rescuer"

    assert victim.rescued, "victim should reach the exit within 40 turns"
    assert len(env.carry) == 0, "carry relation cleared at the exit"

    for _ in range(5):
        rescuer_ai(env, rescuer)
    assert rescues == [victim.agent_id], f"rescue must happen exactly once, got {rescues}"
    assert env.get_stats()["victims_rescued"] == 1
    assert env.get_agent_at(victim.row, victim.col) is not victim, "rescued victims leave the grid"
    print("  ✓ rescued exactly once")


def test_dead_partner_releases_carry():
    print("\n[Test 3] Carry released when the victim dies")
    env, rescuer, victim = _setup()
    assert env.carry.establish(rescuer.agent_id, victim.agent_id)

    victim.take_damage(victim.hp)
    env.update_world_state()
    assert not env.carry.is_paired(rescuer.agent_id)
    print("  ✓ pairing dropped")


if __name__ == "__main__":
    try:
        test_exit_cell()
        test_pickup_escort_and_rescue_once()
        test_dead_partner_releases_carry()
        print("\n✓ All rescue flow tests PASSED\n")
        sys.exit(0)
    except AssertionError as e:
        print(f"\n✗ Test FAILED: {e}\n")
        sys.exit(1)
