import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import TILE_TYPES, AGENT_TEMPLATES, AGENT_KINDS

# DATA CLASSES

@dataclass
class Tile:
    """
    Physical state of one grid cell.

    Attributes:
        type: Tile type (see TILE_TYPES)
        passability: Stamina multiplier for entering the tile (inf = impassable)
        flammability: Ignition weight (0 = never burns)
        fire_fuel: Remaining burn time; the tile is on fire exactly while this is > 0
        smoke_level: 'None' | 'Light' | 'Heavy'
        dampness: Suppressant residue, decays every tick and blocks ignition at >= 5
        is_toxic_fumes: True if the tile releases toxic fumes
    """
    type: str = "floor"
    passability: float = 1.0
    flammability: int = 1
    fire_fuel: int = 0
    smoke_level: str = "None"
    dampness: float = 0.0
    is_toxic_fumes: bool = False

    @classmethod
    def of_type(cls, tile_type: str) -> "Tile":
        """Create a fresh tile with the properties of its type."""
        if tile_type not in TILE_TYPES:
            raise ValueError(f"Invalid tile type: {tile_type}. Must be one of {list(TILE_TYPES.keys())}")
        props = TILE_TYPES[tile_type]
        return cls(
            type=tile_type,
            passability=props["passability"],
            flammability=props["flammability"],
        )

    @property
    def on_fire(self) -> bool:
        """Tile is burning while it has fuel left"""
        return self.fire_fuel > 0

    @property
    def is_passable(self) -> bool:
        return self.type != "wall" and not math.isinf(self.passability)

    def ignite(self, fuel: int = 30, dampness_limit: float = 5.0) -> bool:
        """
        Set the tile on fire.

        Fails (and leaves the tile untouched) for walls, non-flammable tiles,
        tiles already burning and tiles damp enough to resist.
        """
        if self.type == "wall" or self.flammability <= 0:
            return False
        if self.on_fire or self.dampness >= dampness_limit:
            return False
        self.fire_fuel = fuel
        return True


@dataclass
class Agent:
    """
    Firefighter, rescuer or victim on the grid.

    Rescuer/victim pairings are not stored here; they live in the
    environment's CarryRegistry keyed by agent_id.
    """
    agent_id: int
    kind: str
    row: int
    col: int
    hp: float = 100.0
    max_hp: float = 100.0
    stamina: float = 80.0
    max_stamina: float = 80.0
    base_speed: float = 1.0
    water: int = 0
    max_water: int = 0
    breathing_charge: int = 0
    max_breathing_charge: int = 0
    panic_threshold: float = 40.0
    panic: float = 0.0
    inventory: Optional[str] = None
    unconscious: bool = False
    dead: bool = False
    rescued: bool = False
    is_learning: bool = False

    @property
    def position(self) -> Tuple[int, int]:
        return (self.row, self.col)

    @property
    def is_active(self) -> bool:
        """Agent can act this tick"""
        return not self.dead and not self.unconscious

    @property
    def effective_speed(self) -> float:
        """Movement speed after health, stamina and load penalties"""
        if self.dead or self.unconscious:
            return 0.0

        if self.hp >= self.max_hp * 0.5:
            health_mult = 1.0
        elif self.hp >= self.max_hp * 0.25:
            health_mult = 0.8
        else:
            health_mult = 0.6
        stamina_mult = 1.0 if self.stamina >= self.max_stamina * 0.3 else 0.8
        water_mult = 0.9 if (self.kind == "firefighter" and self.water > self.max_water * 0.7) else 1.0
        item_mult = 0.9 if self.inventory else 1.0

        return max(0.5, self.base_speed * health_mult * stamina_mult * water_mult * item_mult)

    @property
    def panic_probability(self) -> float:
        """Chance that panic overrides a decision (logistic around panic_threshold)"""
        return 1.0 / (1.0 + math.exp(-0.15 * (self.panic - self.panic_threshold)))

    def take_damage(self, amount: float) -> None:
        self.hp = max(0.0, self.hp - amount)
        if self.hp == 0 and not self.dead:
            self.dead = True
            self.unconscious = True

    def spend_stamina(self, amount: float) -> None:
        self.stamina = max(0.0, self.stamina - amount)

    def recover_stamina(self, amount: float = 3) -> None:
        if self.dead:
            return
        self.stamina = min(self.max_stamina, self.stamina + amount)
        if self.unconscious and self.stamina >= self.max_stamina * 0.1:
            self.unconscious = False

    def exhaust(self) -> None:
        """Collapse from exhaustion when stamina has run out"""
        if not self.dead and self.stamina <= 0:
            self.unconscious = True


def make_agent(agent_id: int, kind: str, row: int, col: int, is_learning: bool = False) -> Agent:
    """
    Create an agent with the stat template of its kind.

    An unknown kind does not abort the simulation: a warning is printed and
    the victim template is used instead.
    """
    if not isinstance(kind, str) or kind not in AGENT_KINDS:
        print(f"Warning: invalid agent kind {kind!r} for agent {agent_id}, falling back to 'victim'")
        kind = "victim"

    stats = AGENT_TEMPLATES[kind]
    return Agent(
        agent_id=agent_id,
        kind=kind,
        row=row,
        col=col,
        hp=stats["hp"],
        max_hp=stats["hp"],
        stamina=stats["stamina"],
        max_stamina=stats["stamina"],
        base_speed=stats["speed"],
        water=stats["water"],
        max_water=stats["water"],
        breathing_charge=stats["breathing"],
        max_breathing_charge=stats["breathing"],
        panic_threshold=stats["panic_threshold"],
        is_learning=is_learning,
    )
