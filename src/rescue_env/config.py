# Tile type properties
# passability is the stamina cost multiplier for stepping onto the tile (inf = blocked)
TILE_TYPES = {
    "floor":     {"passability": 1.0,          "flammability": 1},
    "corridor":  {"passability": 1.0,          "flammability": 1},
    "wall":      {"passability": float("inf"), "flammability": 0},
    "door":      {"passability": 1.0,          "flammability": 2},
    "window":    {"passability": 1.0,          "flammability": 1},
    "toilet":    {"passability": 1.0,          "flammability": 1},
    "chemcab":   {"passability": 1.0,          "flammability": 4},
    "furniture": {"passability": 1.2,          "flammability": 3},
    "debris":    {"passability": 1.8,          "flammability": 1},
    "entrance":  {"passability": 1.0,          "flammability": 1},
}

SMOKE_LEVELS = ("None", "Light", "Heavy")

AGENT_KINDS = ("firefighter", "rescuer", "victim")

# Per-kind stat templates applied at spawn time
AGENT_TEMPLATES = {
    "firefighter": {"hp": 120, "stamina": 120, "speed": 1.5, "water": 100, "breathing": 60, "panic_threshold": 60},
    "rescuer":     {"hp": 110, "stamina": 120, "speed": 2.0, "water": 40,  "breathing": 60, "panic_threshold": 60},
    "victim":      {"hp": 100, "stamina": 80,  "speed": 1.0, "water": 0,   "breathing": 0,  "panic_threshold": 40},
}

# Action ids (stable ordinals, shared with saved policy snapshots)
MOVE_UP = 0
MOVE_DOWN = 1
MOVE_LEFT = 2
MOVE_RIGHT = 3
EXTINGUISH = 4
REFILL_WATER = 5
WAIT = 6

ACTIONS = {
    "MOVE_UP": MOVE_UP,
    "MOVE_DOWN": MOVE_DOWN,
    "MOVE_LEFT": MOVE_LEFT,
    "MOVE_RIGHT": MOVE_RIGHT,
    "EXTINGUISH": EXTINGUISH,
    "REFILL_WATER": REFILL_WATER,
    "WAIT": WAIT,
}
ACTION_NAMES = {v: k for k, v in ACTIONS.items()}
NUM_ACTIONS = len(ACTIONS)

# (d_row, d_col) for each move action
MOVE_DELTAS = {
    MOVE_UP: (-1, 0),
    MOVE_DOWN: (1, 0),
    MOVE_LEFT: (0, -1),
    MOVE_RIGHT: (0, 1),
}

# Default configuration values
DEFAULT_CONFIG = {

    # FIRE PARAMETERS

    "ignition_fuel": 30,             # Fuel given to a freshly ignited tile (ticks of burning)
    "ignition_base_prob": 0.05,      # Spread chance per neighbour = base * flammability * (1 - dampness/10)
    "ignition_dampness_limit": 5.0,  # Tiles at or above this dampness refuse to ignite
    "dampness_decay": 0.5,           # Dampness lost by every tile each tick

    # SMOKE PARAMETERS

    "smoke_heavy_decay_prob": 0.1,          # Heavy -> Light per tick
    "smoke_light_decay_prob": 0.15,         # Light -> None per tick
    "smoke_spread_heavy_prob": 0.25,        # Heavy neighbour pushes Heavy into a tile
    "smoke_spread_light_prob": 0.15,        # Light neighbour pushes Light into a clear tile

    # HAZARD DAMAGE (hp per tick)

    "damage_on_fire": 10,            # Standing in a burning tile
    "damage_adjacent_fire": 2,       # Radiant heat from a burning neighbour
    "damage_heavy_smoke": 3,         # Only without breathing apparatus (victims always)
    "damage_light_smoke": 1,
    "damage_toxic_fumes": 5,

    # PANIC (0-100)

    "panic_adjacent_fire": 3,
    "panic_on_fire": 7,
    "panic_heavy_smoke": 5,
    "panic_light_smoke": 2,
    "panic_low_hp": 7,               # Applied when hp < 25% of max
    "panic_led_relief": 10,          # Reduction per tick for a victim being led out
    "panic_decay": 2,                # Reduction per tick when nothing frightening happened

    # STAMINA

    "stamina_recovery": 1,           # Stamina regained by every living agent each tick
    "rule_based_upkeep": 1,          # Stamina spent by a rule-based agent just for deciding
    "move_cost_wander": 1.0,         # Passability multipliers by movement mode
    "move_cost_goal": 1.5,
    "move_cost_flee": 2.0,

    # RULE-BASED FIREFIGHTER

    "ff_low_water_frac": 0.2,        # Go refill when water <= 20% of capacity
    "ff_refill_amount": 30,          # Water gained per refill tick at a toilet
    "ff_refill_stamina": 2,
    "ff_spray_water": 5,             # Water per spray
    "ff_spray_stamina": 5,
    "ff_spray_fuel": 15,             # Fuel removed per spray
    "ff_spray_dampness": 10.0,       # Dampness left on the sprayed tile

    # RULE-BASED RESCUER / VICTIM

    "rescuer_pickup_stamina": 3,
    "rescuer_dropoff_stamina": 2,
    "victim_follow_radius": 7.0,     # Victims walk toward a free rescuer closer than this
    "greedy_tie_swap_prob": 0.3,     # Tie-breaking when two neighbours are equally close
    "safety_tie_swap_prob": 0.5,

    # ACTION EXECUTOR (learned control)

    "step_penalty": -0.1,            # Baseline reward per step in training mode
    "invalid_move_penalty": -1.0,
    "invalid_action_penalty": -0.5,  # Unknown action id
    "extinguish_cost": 5,            # Stamina cost weights
    "refill_cost": 2,
    "move_cost": 1,
    "extinguish_fuel": 20,           # Fuel removed from each tile hit
    "extinguish_dampness": 15.0,
    "extinguish_water": 5,
    "reward_extinguished": 15.0,     # Per tile put out
    "reward_reduced": 5.0,           # Per tile hit but still burning
    "reward_missed_spray": -2.0,     # Sprayed with nothing burning in reach
    "reward_refill": 8.0,
    "reward_failed_action": -1.0,

    # GENERAL SIMULATION PARAMETERS

    "learning_kind": "firefighter",  # Agent kind driven by the tabular policy
    "max_turns": 300,                # Turn limit for non-training runs
}
