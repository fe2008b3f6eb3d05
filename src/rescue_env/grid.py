import math
from typing import Iterator, List, Optional, Tuple

import networkx as nx

from .entities import Tile

# 4-neighbourhood in the order used everywhere else: up, down, left, right
DIRECTIONS = [(-1, 0), (1, 0), (0, -1), (0, 1)]


class Grid:
    """
    2-D array of tiles with bounds-checked access.

    Lookups outside the grid return None instead of raising, so callers can
    probe neighbours of edge cells freely.
    """

    def __init__(self, tiles: List[List[Tile]]):
        if not tiles or not tiles[0]:
            raise ValueError("Grid needs at least one row and one column")
        width = len(tiles[0])
        if any(len(row) != width for row in tiles):
            raise ValueError("All grid rows must have the same length")
        self.tiles = tiles
        self.height = len(tiles)
        self.width = width

    @classmethod
    def from_types(cls, type_rows: List[List[str]]) -> "Grid":
        return cls([[Tile.of_type(t) for t in row] for row in type_rows])

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def get_tile(self, row: int, col: int) -> Optional[Tile]:
        if self.in_bounds(row, col):
            return self.tiles[row][col]
        return None

    def is_valid_position(self, row: int, col: int) -> bool:
        """In bounds and walkable"""
        tile = self.get_tile(row, col)
        return tile is not None and tile.is_passable

    def neighbors4(self, row: int, col: int) -> Iterator[Tuple[int, int, Tile]]:
        for dr, dc in DIRECTIONS:
            tile = self.get_tile(row + dr, col + dc)
            if tile is not None:
                yield row + dr, col + dc, tile

    def has_adjacent_fire(self, row: int, col: int) -> bool:
        return any(tile.on_fire for _, _, tile in self.neighbors4(row, col))

    def iter_cells(self) -> Iterator[Tuple[int, int, Tile]]:
        for r in range(self.height):
            for c in range(self.width):
                yield r, c, self.tiles[r][c]

    def count_fires(self) -> int:
        return sum(1 for _, _, tile in self.iter_cells() if tile.on_fire)

    def find_nearest_tile(self, row: int, col: int, tile_type: str) -> Optional[Tuple[int, int]]:
        """Nearest tile of a type by straight-line distance (first in row-major order wins ties)."""
        best = None
        best_dist = math.inf
        for r, c, tile in self.iter_cells():
            if tile.type == tile_type:
                dist = math.hypot(r - row, c - col)
                if dist < best_dist:
                    best_dist = dist
                    best = (r, c)
        return best

    def find_nearest_fire(self, row: int, col: int) -> Optional[Tuple[int, int]]:
        best = None
        best_dist = math.inf
        for r, c, tile in self.iter_cells():
            if tile.on_fire:
                dist = math.hypot(r - row, c - col)
                if dist < best_dist:
                    best_dist = dist
                    best = (r, c)
        return best

    def exit_cell(self, entrance: Tuple[int, int]) -> Tuple[int, int]:
        """Cell inside the building from which an entrance is left (the one just above it)."""
        r, c = entrance
        return (r - 1, c) if r > 0 else (r, c)

    def to_graph(self) -> nx.Graph:
        """
        Walkable cells as a networkx graph.

        Edge weight is the mean passability of the two cells, so shortest
        paths prefer cheap floor over furniture or debris.
        """
        G = nx.Graph()
        for r, c, tile in self.iter_cells():
            if not tile.is_passable:
                continue
            G.add_node((r, c))
            # Only look right and down; the graph is undirected
            for dr, dc in ((1, 0), (0, 1)):
                other = self.get_tile(r + dr, c + dc)
                if other is not None and other.is_passable:
                    G.add_edge((r, c), (r + dr, c + dc),
                               weight=(tile.passability + other.passability) / 2.0)
        return G
