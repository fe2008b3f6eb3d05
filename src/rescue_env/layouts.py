from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import networkx as nx

from .config import AGENT_KINDS
from .grid import Grid

Cell = Tuple[int, int]

# ASCII legend for hand-drawn maps
TILE_SYMBOLS = {
    "#": "wall",
    ".": "floor",
    "D": "door",
    "W": "window",
    "T": "toilet",
    "C": "chemcab",
    "F": "furniture",
    "E": "entrance",
    "x": "debris",
}

# Symbols that place something on a floor tile
SPAWN_SYMBOLS = {
    "f": "firefighter",
    "r": "rescuer",
    "v": "victim",
}
FIRE_SYMBOL = "*"


@dataclass
class BuildingLayout:
    """
    Static description of a building, replayed by every environment reset.

    Attributes:
        width, height: Grid size in cells
        tile_rows: Tile type per cell, row-major
        spawns: Start cells per agent kind (spawned in kind order)
        fire_cells: Cells ignited at the start of each episode
        toxic_cells: Cells that release toxic fumes
    """
    width: int
    height: int
    tile_rows: List[List[str]]
    spawns: Dict[str, List[Cell]] = field(default_factory=dict)
    fire_cells: List[Cell] = field(default_factory=list)
    toxic_cells: List[Cell] = field(default_factory=list)

    def build_grid(self) -> Grid:
        grid = Grid.from_types(self.tile_rows)
        for r, c in self.toxic_cells:
            tile = grid.get_tile(r, c)
            if tile is not None:
                tile.is_toxic_fumes = True
        return grid


# Build the layout

def build_default_layout(width: int = 20, height: int = 15) -> BuildingLayout:
    """
    Build the standard two-wing building:
    - Outer walls with two entrances on the bottom edge and two windows on top
    - A horizontal wall on row 7 and a vertical wall on column 10, each
      pierced by doors, splitting the floor into four rooms
    - A toilet (water refill) in the top-left, a chemical cabinet top-right
    - 1 firefighter and 1 rescuer near the left entrance, 4 victims spread out
    - 3 initial fires

    Returns:
        BuildingLayout for GridRescueEnvironment
    """
    rows = []
    for r in range(height):
        row = []
        for c in range(width):
            t = "floor"
            if r == 0 or r == height - 1 or c == 0 or c == width - 1:
                t = "wall"
            if r == 7 and 2 < c < width - 3:
                t = "wall"
            if c == 10 and 2 < r < height - 3 and r != 7:
                t = "wall"
            if (r == 7 and c in (5, 15)) or (c == 10 and r in (4, 10)):
                t = "door"
            if r == height - 1 and c in (1, width // 2):
                t = "entrance"
            if r == 0 and c in (5, 15):
                t = "window"
            if r == 2 and c == 2:
                t = "toilet"
            if r == 2 and c == width - 3:
                t = "chemcab"
            if (r, c) in ((3, 6), (9, 14)):
                t = "furniture"
            row.append(t)
        rows.append(row)

    # Keep the cells in front of both entrances clear
    rows[height - 2][width // 2] = "floor"
    rows[height - 2][1] = "floor"

    return BuildingLayout(
        width=width,
        height=height,
        tile_rows=rows,
        spawns={
            "firefighter": [(height - 2, 1)],
            "rescuer": [(height - 2, 2)],
            "victim": [(3, 8), (5, 15), (9, 6), (11, width - 4)],
        },
        fire_cells=[(4, 7), (10, 14), (6, width - 5)],
    )


def parse_ascii_layout(rows: List[str], toxic_cells: Optional[List[Cell]] = None) -> BuildingLayout:
    """
    Build a layout from a hand-drawn map.

    Tile symbols: '#' wall, '.' floor, 'D' door, 'W' window, 'T' toilet,
    'C' chemcab, 'F' furniture, 'E' entrance, 'x' debris.
    On-floor markers: 'f' firefighter, 'r' rescuer, 'v' victim, '*' fire.

    Example:
        parse_ascii_layout([
            "#####",
            "#f*.#",
            "#..v#",
            "##E##",
        ])
    """
    if not rows:
        raise ValueError("ASCII layout needs at least one row")
    width = len(rows[0])
    if any(len(line) != width for line in rows):
        raise ValueError("All ASCII layout rows must have the same length")

    tile_rows: List[List[str]] = []
    spawns: Dict[str, List[Cell]] = {kind: [] for kind in AGENT_KINDS}
    fire_cells: List[Cell] = []

    for r, line in enumerate(rows):
        row = []
        for c, ch in enumerate(line):
            if ch in TILE_SYMBOLS:
                row.append(TILE_SYMBOLS[ch])
            elif ch in SPAWN_SYMBOLS:
                row.append("floor")
                spawns[SPAWN_SYMBOLS[ch]].append((r, c))
            elif ch == FIRE_SYMBOL:
                row.append("floor")
                fire_cells.append((r, c))
            else:
                raise ValueError(f"Unknown layout symbol {ch!r} at row {r}, col {c}")
        tile_rows.append(row)

    return BuildingLayout(
        width=width,
        height=len(rows),
        tile_rows=tile_rows,
        spawns={k: v for k, v in spawns.items() if v},
        fire_cells=fire_cells,
        toxic_cells=list(toxic_cells or []),
    )


def validate_layout(layout: BuildingLayout, verbose: bool = True) -> List[Cell]:
    """
    Check that a layout is usable.

    Raises ValueError for spawns or fires outside the grid and for spawns
    on impassable tiles, and when every entrance has a wall above it (no
    rescue could ever complete). Spawns that cannot walk to any entrance
    are allowed but reported.

    Returns:
        Spawn cells with no walkable route to an entrance
    """
    grid = layout.build_grid()

    for kind, cells in layout.spawns.items():
        for r, c in cells:
            if not grid.in_bounds(r, c):
                raise ValueError(f"{kind} spawn {(r, c)} is outside the {layout.width}x{layout.height} grid")
            if not grid.is_valid_position(r, c):
                raise ValueError(f"{kind} spawn {(r, c)} is on an impassable '{grid.tiles[r][c].type}' tile")
    for r, c in layout.fire_cells:
        if not grid.in_bounds(r, c):
            raise ValueError(f"Fire cell {(r, c)} is outside the {layout.width}x{layout.height} grid")

    G = grid.to_graph()
    exits = [(r, c) for r, c, tile in grid.iter_cells() if tile.type == "entrance" and (r, c) in G]

    # Victims are handed over on the cell above an entrance
    usable = [ex for ex in exits if grid.is_valid_position(*grid.exit_cell(ex))]
    if exits and not usable:
        raise ValueError(f"No entrance has a walkable exit cell above it (entrances: {exits})")
    for ex in exits:
        if ex not in usable and verbose:
            print(f"Warning: entrance {ex} has an impassable exit cell {grid.exit_cell(ex)}")

    unreachable = []
    for kind, cells in layout.spawns.items():
        for cell in cells:
            if not any(nx.has_path(G, cell, ex) for ex in exits):
                unreachable.append(cell)
                if verbose:
                    print(f"Warning: {kind} spawn {cell} has no walkable route to an entrance")
    return unreachable
