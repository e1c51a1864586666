# Stackfall - Falling-block rules engine
# piece_queue.py - Upcoming piece generation and the hold slot

import random
from collections import deque
from typing import Optional, Tuple

from .pieces import Piece, PieceType, TETROMINO_TYPES
from .exceptions import QueueUnderflow

LOOKAHEAD = 6


class PieceQueue:
    """
    FIFO of upcoming pieces with a fixed lookahead plus one held piece.
    Pieces are drawn uniformly from the seven tetrominoes; `piece_override`
    forces a single shape for tests and debugging.
    """
    def __init__(self, piece_override: Optional[PieceType] = None,
                 rng: Optional[random.Random] = None, lookahead: int = LOOKAHEAD):
        self.piece_override = piece_override
        self.lookahead = lookahead
        self._rng = rng or random.Random()
        self._upcoming = deque()
        self._held: Optional[Piece] = None

        for _ in range(self.lookahead + 1):
            self._upcoming.append(self._random_piece())
        self._active = self._upcoming.popleft()

    def _random_piece(self) -> Piece:
        if self.piece_override is not None:
            return Piece(self.piece_override)
        return Piece(self._rng.choice(TETROMINO_TYPES))

    def _fill(self):
        while len(self._upcoming) < self.lookahead:
            self._upcoming.append(self._random_piece())

    def peek_active(self) -> Piece:
        return self._active

    def set_active(self, piece: Piece):
        self._active = piece

    def pop_and_advance(self) -> Piece:
        """Make the front upcoming piece active and top the queue back up."""
        if not self._upcoming:
            raise QueueUnderflow("piece queue is empty")
        self._active = self._upcoming.popleft()
        self._fill()
        return self._active

    def swap_held(self):
        """Exchange the active piece with the held slot, spawning rotations on both."""
        outgoing = self._active.reset_rotation()
        if self._held is None:
            self._held = outgoing
            self.pop_and_advance()
        else:
            self._active = self._held.reset_rotation()
            self._held = outgoing

    @property
    def held(self) -> Optional[Piece]:
        return self._held

    @property
    def upcoming(self) -> Tuple[PieceType, ...]:
        return tuple(piece.piece_type for piece in self._upcoming)
