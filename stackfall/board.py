# Stackfall - Falling-block rules engine
# board.py - Playfield grid state, collision queries, ghost search and row shifting.

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from .pieces import PieceType, coordinates_of, upper_pivot_offset, UPPER_PIVOT_INDEX
from .exceptions import InvalidBitmapException

DEFAULT_CELL_HIT_POINTS = 10
DEFAULT_GREY_HIT_POINTS = 20


class CellKind(Enum):
    """CLASSIC cells are occupied/blank only; ARMORED cells also carry hit points, defense and status."""
    CLASSIC = "classic"
    ARMORED = "armored"


class DamageType(Enum):
    PHYSICAL = 0
    FIRE = 1
    COLD = 2
    LIGHTNING = 3


class CellStatus(Enum):
    NONE = 0
    IMPALED = 1
    SHOCKED = 2
    IGNITED = 3
    CHILLED = 4
    FROZEN = 5


@dataclass(frozen=True)
class CellView:
    """Read-only copy of a single cell."""
    occupant: PieceType
    hit_points: float = 0
    resistances: Tuple[int, int, int, int] = (0, 0, 0, 0)
    status: CellStatus = CellStatus.NONE


class PlayfieldGrid:
    """
    The playfield as numpy layers indexed [row, column], row 0 at the top.

    `cells` holds PieceType values. ARMORED grids add `hit_points`,
    `resistances` (one slot per DamageType, in percent) and `statuses`.
    `lowest_rows[x]` caches the topmost occupied row of column x,
    or height - 1 when the column is empty.
    """
    def __init__(self, width: int = 10, height: int = 20,
                 cell_kind: CellKind = CellKind.CLASSIC,
                 cell_hit_points: int = DEFAULT_CELL_HIT_POINTS,
                 grey_hit_points: int = DEFAULT_GREY_HIT_POINTS):
        self.width = width
        self.height = height
        self.cell_kind = cell_kind
        self.cell_hit_points = cell_hit_points
        self.grey_hit_points = grey_hit_points

        self.cells = np.zeros((height, width), dtype=np.int8)
        self.lowest_rows = np.full(width, height - 1, dtype=np.int32)

        self.hit_points = None
        self.resistances = None
        self.statuses = None
        if self.armored:
            self.hit_points = np.zeros((height, width), dtype=np.float64)
            self.resistances = np.zeros((height, width, len(DamageType)), dtype=np.int16)
            self.statuses = np.zeros((height, width), dtype=np.int8)

    @property
    def armored(self) -> bool:
        return self.cell_kind == CellKind.ARMORED

    def _layers(self) -> List[np.ndarray]:
        layers = [self.cells]
        if self.armored:
            layers.extend([self.hit_points, self.resistances, self.statuses])
        return layers

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def occupant(self, x: int, y: int) -> PieceType:
        return PieceType(int(self.cells[y, x]))

    def cell_view(self, x: int, y: int) -> CellView:
        if not self.armored:
            return CellView(self.occupant(x, y))
        return CellView(
            occupant=self.occupant(x, y),
            hit_points=float(self.hit_points[y, x]),
            resistances=tuple(int(r) for r in self.resistances[y, x]),
            status=CellStatus(int(self.statuses[y, x])),
        )

    def occupancy(self) -> np.ndarray:
        """Boolean matrix of cells that block movement and count for line completion."""
        return (self.cells != PieceType.BLANK.value) & (self.cells != PieceType.GHOST.value)

    def is_placeable(self, spawn_check: bool, x: int, y: int,
                     piece_type: PieceType, rotation: int) -> bool:
        """
        Checks whether a piece with its pivot at (x, y) fits on the grid.
        Cells above the board (y < 0) only need a valid column. A spawn check
        only fails on overlaps with occupied on-board cells.
        """
        for dx, dy in coordinates_of(piece_type, rotation):
            cell_x, cell_y = x + dx, y + dy
            x_valid = 0 <= cell_x < self.width

            if spawn_check:
                if x_valid and 0 <= cell_y < self.height \
                        and self.cells[cell_y, cell_x] != PieceType.BLANK.value:
                    return False
                continue

            if not x_valid or cell_y >= self.height:
                return False
            if cell_y >= 0 and self.cells[cell_y, cell_x] != PieceType.BLANK.value:
                return False
        return True

    def paint(self, x: int, y: int, piece_type: PieceType, rotation: int, value: PieceType):
        """Writes `value` into every on-board cell of the piece. Painting BLANK erases it."""
        for dx, dy in coordinates_of(piece_type, rotation):
            cell_x, cell_y = x + dx, y + dy
            if not self.in_bounds(cell_x, cell_y):
                continue
            self.cells[cell_y, cell_x] = value.value
            if self.armored:
                self.hit_points[cell_y, cell_x] = self.cell_hit_points if value.is_tetromino else 0
                self.resistances[cell_y, cell_x] = 0
                self.statuses[cell_y, cell_x] = CellStatus.NONE.value

    def commit_lowest_row(self, x: int, y: int, piece_type: PieceType, rotation: int):
        """Lowers the column cache for every on-board cell of a locked piece."""
        for dx, dy in coordinates_of(piece_type, rotation):
            cell_x, cell_y = x + dx, y + dy
            if self.in_bounds(cell_x, cell_y) and cell_y < self.lowest_rows[cell_x]:
                self.lowest_rows[cell_x] = cell_y

    def refresh_lowest_rows(self):
        occupied = self.occupancy()
        self.lowest_rows = np.where(
            occupied.any(axis=0), occupied.argmax(axis=0), self.height - 1
        ).astype(np.int32)

    def _scan_down(self, x: int, y: int, piece_type: PieceType, rotation: int) -> int:
        ghost_y = y
        while self.is_placeable(False, x, ghost_y + 1, piece_type, rotation):
            ghost_y += 1
        return ghost_y

    def compute_ghost_y(self, x: int, y: int, piece_type: PieceType, rotation: int) -> int:
        """
        Lowest row the pivot can fall to from (x, y) without moving sideways.

        When any cell of the piece already sits below its column's cached
        lowest row the cache says nothing useful, so we scan down from the
        piece. Otherwise we seed from the highest cached row among the spanned
        columns and settle locally from there. Cells above the board still
        span their column.
        """
        if not piece_type.is_tetromino:
            return y

        offsets = coordinates_of(piece_type, rotation)
        cached_rows = []
        for dx, dy in offsets:
            cell_x, cell_y = x + dx, y + dy
            if not 0 <= cell_x < self.width:
                continue
            lowest = int(self.lowest_rows[cell_x])
            if cell_y > lowest:
                return self._scan_down(x, y, piece_type, rotation)
            cached_rows.append(lowest)

        if not cached_rows:
            return self._scan_down(x, y, piece_type, rotation)

        pivot_dy = offsets[UPPER_PIVOT_INDEX][1]
        ghost_y = min(cached_rows) - 1 - pivot_dy

        moved = False
        while self.is_placeable(False, x, ghost_y + 1, piece_type, rotation):
            ghost_y += 1
            moved = True
        if not moved:
            while ghost_y > y and not self.is_placeable(False, x, ghost_y, piece_type, rotation):
                ghost_y -= 1

        if ghost_y < y:
            return self._scan_down(x, y, piece_type, rotation)
        return ghost_y

    def spawn_pivot_y(self, piece_type: PieceType, rotation: int) -> int:
        """Ghost row of a piece over an empty stack."""
        return self.height - 1 - upper_pivot_offset(piece_type, rotation)[1]

    def collapse_row(self, row: int):
        """Removes `row`; everything above it moves one row toward the bottom."""
        for layer in self._layers():
            layer[1:row + 1] = layer[0:row].copy()
            layer[0] = 0
        self.refresh_lowest_rows()

    def raise_rows(self, end_row: Optional[int] = None):
        """
        Moves rows 1..end_row one row toward the top, dropping row 0.
        Row `end_row` (the bottom row by default) is left blank for the caller.
        """
        if end_row is None:
            end_row = self.height - 1
        for layer in self._layers():
            layer[0:end_row] = layer[1:end_row + 1].copy()
            layer[end_row] = 0
        self.refresh_lowest_rows()

    def write_row(self, row: int, occupant: PieceType, hit_points: float = 0,
                  resistances: Iterable[int] = (0, 0, 0, 0)):
        self.cells[row] = occupant.value
        if self.armored:
            self.hit_points[row] = hit_points
            self.resistances[row] = np.array(list(resistances), dtype=np.int16)
            self.statuses[row] = CellStatus.NONE.value
        self.refresh_lowest_rows()

    def row_occupants(self, row: int) -> List[PieceType]:
        return [PieceType(int(v)) for v in self.cells[row]]

    def to_bitmap(self) -> List[PieceType]:
        """Row-major flat list, index y * width + x."""
        return [PieceType(int(v)) for v in self.cells.reshape(-1)]

    def load_bitmap(self, bitmap: Iterable[Union[PieceType, int]]):
        values = [v.value if isinstance(v, PieceType) else int(v) for v in bitmap]
        if len(values) != self.width * self.height:
            raise InvalidBitmapException(
                f"expected {self.width * self.height} cells, got {len(values)}"
            )
        self.cells = np.array(values, dtype=np.int8).reshape((self.height, self.width))
        if self.armored:
            self.hit_points = np.where(
                (self.cells >= PieceType.O.value) & (self.cells <= PieceType.S.value),
                float(self.cell_hit_points), 0.0,
            )
            self.hit_points[self.cells == PieceType.GREY.value] = self.grey_hit_points
            self.resistances[:] = 0
            self.statuses[:] = CellStatus.NONE.value
        self.refresh_lowest_rows()

    @classmethod
    def from_bitmap(cls, width: int, height: int, bitmap, **kwargs) -> 'PlayfieldGrid':
        grid = cls(width, height, **kwargs)
        grid.load_bitmap(bitmap)
        return grid

    def __str__(self):
        """String representation of the grid."""
        result = []
        for y in range(self.height):
            row = ""
            for x in range(self.width):
                value = self.cells[y, x]
                if value == PieceType.GHOST.value:
                    row += "░"
                elif value != PieceType.BLANK.value:
                    row += "█"
                else:
                    row += "·"
            result.append(row)
        return "\n".join(result)
