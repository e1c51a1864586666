"""
Piece definitions for Stackfall.
Holds the cell offsets of every shape per rotation state and the SRS wall kick tables.
"""

from enum import Enum
from typing import List, Tuple, Dict
from dataclasses import dataclass


class PieceType(Enum):
    """Occupant types. O..S are the playable tetrominoes."""
    BLANK = 0
    O = 1
    I = 2
    T = 3
    J = 4
    L = 5
    Z = 6
    S = 7
    GREY = 8
    GHOST = 9

    @property
    def is_tetromino(self) -> bool:
        return PieceType.O.value <= self.value <= PieceType.S.value


class Direction(Enum):
    """Rotation direction."""
    CW = 0
    CCW = 1


TETROMINO_TYPES = (
    PieceType.O, PieceType.I, PieceType.T, PieceType.J,
    PieceType.L, PieceType.Z, PieceType.S,
)

NUM_ROTATIONS = 4
UPPER_PIVOT_INDEX = 1

Offset = Tuple[int, int]

_NO_CELLS = ((0, 0), (0, 0), (0, 0), (0, 0))
_O_CELLS = ((0, -1), (1, 0), (0, 0), (1, -1))

# (dx, dy) per rotation state, y grows downward. Index 1 holds the lowest cell of the piece.
PIECE_COORDINATES: Dict[PieceType, Tuple[Tuple[Offset, ...], ...]] = {
    PieceType.BLANK: (_NO_CELLS,) * NUM_ROTATIONS,
    PieceType.O: (_O_CELLS,) * NUM_ROTATIONS,
    PieceType.I: (
        ((1, 0), (0, 0), (-1, 0), (2, 0)),
        ((0, -1), (0, 2), (0, 0), (0, 1)),
        ((-1, 0), (0, 0), (-2, 0), (1, 0)),
        ((0, -2), (0, 1), (0, 0), (0, -1)),
    ),
    PieceType.T: (
        ((0, -1), (0, 0), (-1, 0), (1, 0)),
        ((0, -1), (0, 1), (0, 0), (1, 0)),
        ((0, 0), (0, 1), (-1, 0), (1, 0)),
        ((0, -1), (0, 1), (-1, 0), (0, 0)),
    ),
    PieceType.J: (
        ((-1, -1), (0, 0), (-1, 0), (1, 0)),
        ((0, -1), (0, 1), (0, 0), (1, -1)),
        ((0, 0), (1, 1), (-1, 0), (1, 0)),
        ((0, -1), (0, 1), (-1, 1), (0, 0)),
    ),
    PieceType.L: (
        ((1, -1), (0, 0), (-1, 0), (1, 0)),
        ((0, -1), (0, 1), (0, 0), (1, 1)),
        ((0, 0), (-1, 1), (-1, 0), (1, 0)),
        ((0, -1), (0, 1), (-1, -1), (0, 0)),
    ),
    PieceType.Z: (
        ((0, -1), (0, 0), (-1, -1), (1, 0)),
        ((1, -1), (0, 1), (0, 0), (1, 0)),
        ((0, 0), (0, 1), (-1, 0), (1, 1)),
        ((0, -1), (-1, 1), (-1, 0), (0, 0)),
    ),
    PieceType.S: (
        ((0, -1), (0, 0), (-1, 0), (1, -1)),
        ((0, -1), (1, 1), (0, 0), (1, 0)),
        ((0, 0), (0, 1), (-1, 1), (1, 0)),
        ((-1, -1), (0, 1), (-1, 0), (0, 0)),
    ),
    PieceType.GREY: (_NO_CELLS,) * NUM_ROTATIONS,
    PieceType.GHOST: (_NO_CELLS,) * NUM_ROTATIONS,
}

# Wall kick tests keyed by (from_rotation, direction).
JLSTZ_WALL_KICKS: Dict[Tuple[int, Direction], List[Offset]] = {
    (0, Direction.CW): [(0, 0), (-1, 0), (-1, -1), (0, 2), (-1, 2)],
    (0, Direction.CCW): [(0, 0), (1, 0), (1, -1), (0, 2), (1, 2)],
    (1, Direction.CW): [(0, 0), (1, 0), (1, 1), (0, -2), (1, -2)],
    (1, Direction.CCW): [(0, 0), (1, 0), (1, 1), (0, -2), (1, -2)],
    (2, Direction.CW): [(0, 0), (1, 0), (1, -1), (0, 2), (1, 2)],
    (2, Direction.CCW): [(0, 0), (-1, 0), (-1, -1), (0, 2), (-1, 2)],
    (3, Direction.CW): [(0, 0), (-1, 0), (-1, 1), (0, -2), (-1, -2)],
    (3, Direction.CCW): [(0, 0), (-1, 0), (-1, 1), (0, -2), (-1, -2)],
}

I_WALL_KICKS: Dict[Tuple[int, Direction], List[Offset]] = {
    (0, Direction.CW): [(1, 0), (-1, 0), (2, 0), (-1, -1), (2, -2)],
    (0, Direction.CCW): [(0, 1), (-1, 1), (2, 1), (-1, -1), (2, 2)],
    (1, Direction.CW): [(0, 1), (-1, 1), (2, 1), (-2, -1), (2, 2)],
    (1, Direction.CCW): [(-1, 0), (1, 0), (-2, 0), (1, 1), (-2, 2)],
    (2, Direction.CW): [(-1, 0), (1, 0), (-2, 0), (1, -1), (-2, 2)],
    (2, Direction.CCW): [(0, -1), (1, -1), (-2, -1), (2, 1), (-2, -2)],
    (3, Direction.CW): [(0, -1), (1, -1), (-2, -1), (1, 1), (-2, -2)],
    (3, Direction.CCW): [(1, 0), (-1, 0), (2, 0), (-1, 1), (2, -2)],
}

# Kick entries a T can never resolve to, per from_rotation.
T_UNREACHABLE_KICKS = {0: 3, 2: 2}

_UNROTATABLE = (PieceType.BLANK, PieceType.GHOST, PieceType.GREY)


def coordinates_of(piece_type: PieceType, rotation: int) -> Tuple[Offset, ...]:
    """Cell offsets of a shape relative to its pivot."""
    return PIECE_COORDINATES[piece_type][rotation % NUM_ROTATIONS]


def upper_pivot_offset(piece_type: PieceType, rotation: int) -> Offset:
    """Offset of the cell used to seat a piece on the floor."""
    return coordinates_of(piece_type, rotation)[UPPER_PIVOT_INDEX]


def wall_kick_offsets(piece_type: PieceType, rotation: int,
                      direction: Direction) -> List[Offset]:
    """
    Ordered kick candidates for rotating `piece_type` out of `rotation`.
    The returned list is a fresh copy.
    """
    if piece_type in _UNROTATABLE:
        return []

    key = (rotation % NUM_ROTATIONS, direction)
    if piece_type == PieceType.I:
        return list(I_WALL_KICKS[key])

    kicks = list(JLSTZ_WALL_KICKS[key])
    if piece_type == PieceType.O:
        return kicks[:1]
    if piece_type == PieceType.T and key[0] in T_UNREACHABLE_KICKS:
        del kicks[T_UNREACHABLE_KICKS[key[0]]]
    return kicks


@dataclass(frozen=True)
class Piece:
    """An immutable shape + rotation state pair."""
    piece_type: PieceType
    rotation: int = 0

    def rotated(self, direction: Direction) -> 'Piece':
        step = 1 if direction == Direction.CW else -1
        return Piece(self.piece_type, (self.rotation + step) % NUM_ROTATIONS)

    def reset_rotation(self) -> 'Piece':
        return Piece(self.piece_type, 0)

    def cells(self, x: int, y: int) -> List[Tuple[int, int]]:
        """Board cells occupied with the pivot at (x, y)."""
        return [(x + dx, y + dy) for dx, dy in coordinates_of(self.piece_type, self.rotation)]

    def kicks(self, direction: Direction) -> List[Offset]:
        return wall_kick_offsets(self.piece_type, self.rotation, direction)
