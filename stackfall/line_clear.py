"""
Line completion detection and the classic clear strategy.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .board import PlayfieldGrid, DamageType
from .pieces import PieceType


@dataclass(frozen=True)
class ClearRecord:
    """One cleared row as reported to the caller."""
    row: int
    occupants: Tuple[PieceType, ...]
    critical: bool
    dominant_type: DamageType
    dominant_value: float


@dataclass
class ClearOutcome:
    """Rows removed by a single resolution."""
    rows_cleared: int = 0
    user_rows: int = 0
    challenge_rows: int = 0
    records: List[ClearRecord] = field(default_factory=list)


def find_complete_rows(grid: PlayfieldGrid) -> List[int]:
    """Indices of rows where every cell is occupied, bottom row first."""
    full = grid.occupancy().all(axis=1)
    return [row for row in range(grid.height - 1, -1, -1) if full[row]]


class ClearStrategy:
    """How a session turns completed rows into board changes."""

    def resolve(self, grid: PlayfieldGrid) -> ClearOutcome:
        raise NotImplementedError

    def on_tick(self, grid: PlayfieldGrid) -> Optional[int]:
        """Called on every downward tick; returns an interval override or None."""
        return None

    def spawn_challenge_line(self, grid: PlayfieldGrid):
        pass

    def drain_records(self) -> List[ClearRecord]:
        return []


class ClassicLineClear(ClearStrategy):
    """Removes every complete row and drops the rows above it."""

    def resolve(self, grid: PlayfieldGrid) -> ClearOutcome:
        rows = find_complete_rows(grid)
        # Rows are bottom first, so each removal pushes the remaining ones down by one.
        for removed, row in enumerate(rows):
            grid.collapse_row(row + removed)
        return ClearOutcome(rows_cleared=len(rows), user_rows=len(rows))
