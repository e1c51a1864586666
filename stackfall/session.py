"""
Game session state machine for Stackfall.
Sequences commands, lock delay, T-spin detection, scoring and leveling, and
produces one immutable snapshot per call.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from .board import PlayfieldGrid, CellKind, CellStatus
from .config import GameConfig, DamageConfig
from .damage import DamageResolver
from .line_clear import ClassicLineClear, ClearRecord, ClearStrategy, ClearOutcome
from .piece_queue import PieceQueue
from .pieces import Direction, Piece, PieceType
from .scoring import ClassicScoring, ExtendedScoring

logger = logging.getLogger(__name__)


class Command(Enum):
    """Symbolic commands understood by the engine."""
    MOVE_LEFT = 0
    MOVE_RIGHT = 1
    ROTATE_CW = 2
    ROTATE_CCW = 3
    SOFT_DROP = 4
    TICK_DOWN = 5
    HARD_DROP = 6
    HOLD = 7


class Phase(Enum):
    FALLING = "falling"
    LOCK_DELAY_ARMED = "lock_delay_armed"
    LOCKED = "locked"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class ClassicSnapshot:
    """Complete, read-only game state after one step."""
    x: int
    y: int
    ghost_y: int
    held: PieceType
    active: PieceType
    rotation: int
    upcoming: Tuple[PieceType, ...]
    cells: Tuple[Tuple[PieceType, ...], ...]
    game_over: bool
    score: int
    level: int
    interval_ms: float
    variant: str = "classic"

    def bitmap(self) -> List[PieceType]:
        """Row-major flat list of occupants."""
        return [cell for row in self.cells for cell in row]


@dataclass(frozen=True)
class ExtendedSnapshot(ClassicSnapshot):
    hit_points: Tuple[Tuple[float, ...], ...] = ()
    resistances: Tuple[Tuple[Tuple[int, ...], ...], ...] = ()
    statuses: Tuple[Tuple[CellStatus, ...], ...] = ()
    clear_records: Tuple[ClearRecord, ...] = ()
    challenge_row: int = 0
    variant: str = "extended"


Snapshot = Union[ClassicSnapshot, ExtendedSnapshot]


class GameSession:
    """
    One game, parameterised by cell kind, clear strategy and scoring rules.
    Use `create_classic_session` / `create_extended_session` to build one.

    The engine never schedules anything itself: the driver reads
    `interval_ms` from each snapshot and sends the next TICK_DOWN after that
    delay.
    """

    def __init__(self, config: GameConfig, clear_strategy: ClearStrategy, scoring,
                 cell_kind: CellKind = CellKind.CLASSIC, variant: str = "classic",
                 rng: Optional[random.Random] = None, cell_hit_points: int = 10,
                 grey_hit_points: int = 20):
        self.config = config.validate()
        self.variant = variant
        self._rng = rng or random.Random(config.seed)

        self.grid = PlayfieldGrid(config.width, config.height, cell_kind,
                                  cell_hit_points=cell_hit_points,
                                  grey_hit_points=grey_hit_points)
        self.queue = PieceQueue(config.piece_override, rng=self._rng,
                                lookahead=config.queue_lookahead)
        self.clears = clear_strategy
        self.scoring = scoring

        self.phase = Phase.FALLING
        self.is_t_spin = False
        self.hold_available = True
        self.ticks = 0
        self.lines_cleared = 0
        self._base_interval_ms: float = config.base_interval_ms
        self._painted = None
        self._last_records: Tuple[ClearRecord, ...] = ()

        piece = self.queue.peek_active()
        self.x, self.y = self.spawn_position
        self.ghost_y = self.grid.spawn_pivot_y(piece.piece_type, piece.rotation)

    @property
    def spawn_position(self) -> Tuple[int, int]:
        return (self.config.width - 1) // 2, 0

    @property
    def active(self) -> Piece:
        return self.queue.peek_active()

    @property
    def game_over(self) -> bool:
        return self.phase == Phase.GAME_OVER

    @property
    def interval_ms(self) -> float:
        """Delay before the driver should send the next TICK_DOWN."""
        base = 0 if self.config.zero_interval else self._base_interval_ms
        if self.phase == Phase.LOCK_DELAY_ARMED:
            return max(base, self.config.lock_delay_ms)
        return base

    def apply_command(self, command: Command) -> Snapshot:
        """Runs one command to completion and returns the resulting snapshot."""
        if self.game_over:
            return self.snapshot()

        # The first call only draws the freshly seated piece
        if self._painted is None:
            self._update_ghost()
            self._paint_active()
            return self._finish()

        self._erase_active()

        blocked = False
        if command == Command.MOVE_LEFT:
            self._shift(-1)
        elif command == Command.MOVE_RIGHT:
            self._shift(1)
        elif command == Command.ROTATE_CW:
            self._rotate(Direction.CW)
        elif command == Command.ROTATE_CCW:
            self._rotate(Direction.CCW)
        elif command == Command.TICK_DOWN:
            blocked = not self._tick_down()
        elif command == Command.SOFT_DROP:
            blocked = not self._descend()
        elif command == Command.HARD_DROP:
            self._update_ghost()
            self.y = self.ghost_y
            blocked = True
        elif command == Command.HOLD:
            self._hold()
        else:
            logger.error("Unknown command %r", command)

        if self.game_over:
            return self._finish()

        if blocked:
            self._resolve_lock()
            if not self.game_over:
                self._render_active()
        else:
            self._update_ghost()
            self._paint_active()
            if command != Command.HARD_DROP:
                self._arm_if_resting()
        return self._finish()

    # ----------------------------------------------------------- movement

    def _fits(self, x: int, y: int, piece: Optional[Piece] = None) -> bool:
        piece = piece or self.active
        return self.grid.is_placeable(False, x, y, piece.piece_type, piece.rotation)

    def _shift(self, dx: int) -> bool:
        if self._fits(self.x + dx, self.y):
            self.x += dx
            return True
        return False

    def _rotate(self, direction: Direction) -> bool:
        """Tries each wall kick in order and keeps the first one that fits."""
        piece = self.active
        rotated = piece.rotated(direction)
        was_armed = self.phase == Phase.LOCK_DELAY_ARMED

        for dx, dy in piece.kicks(direction):
            test_x, test_y = self.x + dx, self.y + dy
            if not self._fits(test_x, test_y, rotated):
                continue

            if was_armed and rotated.piece_type == PieceType.T:
                can_shift = (self._fits(test_x + 1, test_y, rotated)
                             or self._fits(test_x - 1, test_y, rotated))
                self.is_t_spin = not can_shift
            self.x, self.y = test_x, test_y
            self.queue.set_active(rotated)
            return True
        return False

    def _descend(self) -> bool:
        """One row down, then one tick of ailment processing."""
        moved = self._fits(self.x, self.y + 1)
        if moved:
            self.y += 1
            if self.phase == Phase.LOCK_DELAY_ARMED:
                self.phase = Phase.FALLING
                self.is_t_spin = False

        override = self.clears.on_tick(self.grid)
        if override is not None:
            self._base_interval_ms = override
        return moved

    def _tick_down(self) -> bool:
        self.ticks += 1
        cadence = self.scoring.challenge_cadence()
        if cadence is not None and self.ticks >= cadence:
            self.ticks = 0
            self.clears.spawn_challenge_line(self.grid)
            # The stack moved up under the piece
            self.y -= 1
        return self._descend()

    def _hold(self):
        if not self.hold_available:
            return
        self.queue.swap_held()
        self.x, self.y = self.spawn_position
        self.hold_available = False
        self.phase = Phase.FALLING
        self.is_t_spin = False

        piece = self.active
        if not self.grid.is_placeable(True, self.x, self.y, piece.piece_type, piece.rotation):
            self._end_game()

    # ------------------------------------------------------------- locking

    def _resolve_lock(self) -> ClearOutcome:
        """Commits the piece, resolves clears and seats the next piece."""
        piece = self.active
        self.phase = Phase.LOCKED
        self.grid.paint(self.x, self.y, piece.piece_type, piece.rotation, piece.piece_type)
        self.grid.commit_lowest_row(self.x, self.y, piece.piece_type, piece.rotation)

        outcome = self.clears.resolve(self.grid)
        self.lines_cleared += outcome.rows_cleared
        self.scoring.on_lock(outcome, self.is_t_spin)
        if self.scoring.interval_ms is not None:
            self._base_interval_ms = self.scoring.interval_ms

        piece = self.queue.pop_and_advance()
        self.x, self.y = self.spawn_position
        self.hold_available = True
        self.is_t_spin = False

        if not self.grid.is_placeable(True, self.x, self.y, piece.piece_type, piece.rotation):
            self._end_game()
            return outcome

        self.phase = Phase.FALLING
        self._update_ghost()
        return outcome

    def _render_active(self):
        """Shows the new piece with one synthetic down tick. Never locks."""
        self._tick_down()
        self._update_ghost()
        self._paint_active()
        self._arm_if_resting()

    def _arm_if_resting(self):
        if self.y == self.ghost_y and self.phase == Phase.FALLING:
            self.phase = Phase.LOCK_DELAY_ARMED

    def _end_game(self):
        self.phase = Phase.GAME_OVER
        logger.info("Game over: score %d, level %d, %d rows cleared",
                    self.scoring.score, self.scoring.level, self.lines_cleared)

    # ------------------------------------------------------------- drawing

    def _update_ghost(self):
        piece = self.active
        self.ghost_y = self.grid.compute_ghost_y(self.x, self.y, piece.piece_type, piece.rotation)

    def _paint_active(self):
        piece = self.active
        self.grid.paint(self.x, self.ghost_y, piece.piece_type, piece.rotation, PieceType.GHOST)
        self.grid.paint(self.x, self.y, piece.piece_type, piece.rotation, piece.piece_type)
        self._painted = (self.x, self.y, self.ghost_y, piece)

    def _erase_active(self):
        if self._painted is None:
            return
        x, y, ghost_y, piece = self._painted
        self.grid.paint(x, ghost_y, piece.piece_type, piece.rotation, PieceType.BLANK)
        self.grid.paint(x, y, piece.piece_type, piece.rotation, PieceType.BLANK)
        self._painted = None

    # ------------------------------------------------------------ snapshot

    def _finish(self) -> Snapshot:
        self._last_records = tuple(self.clears.drain_records())
        logger.debug("This tick's interval: %sms", self.interval_ms)
        return self.snapshot()

    def snapshot(self) -> Snapshot:
        """Builds the snapshot for the current state without changing anything."""
        piece = self.active
        held = self.queue.held
        common = dict(
            x=self.x,
            y=self.y,
            ghost_y=self.ghost_y,
            held=held.piece_type if held else PieceType.BLANK,
            active=piece.piece_type,
            rotation=piece.rotation,
            upcoming=self.queue.upcoming,
            cells=tuple(tuple(PieceType(int(v)) for v in row) for row in self.grid.cells),
            game_over=self.game_over,
            score=self.scoring.score,
            level=self.scoring.level,
            interval_ms=self.interval_ms,
        )
        if not self.grid.armored:
            return ClassicSnapshot(**common)

        return ExtendedSnapshot(
            hit_points=tuple(tuple(float(hp) for hp in row) for row in self.grid.hit_points),
            resistances=tuple(tuple(tuple(int(r) for r in cell) for cell in row)
                              for row in self.grid.resistances),
            statuses=tuple(tuple(CellStatus(int(s)) for s in row) for row in self.grid.statuses),
            clear_records=self._last_records,
            challenge_row=getattr(self.clears, "challenge_row", self.grid.height),
            **common,
        )


def create_classic_session(config: Optional[GameConfig] = None,
                           rng: Optional[random.Random] = None) -> GameSession:
    config = config or GameConfig()
    return GameSession(config, ClassicLineClear(), ClassicScoring(config), rng=rng)


def create_extended_session(config: Optional[GameConfig] = None,
                            damage_config: Optional[DamageConfig] = None,
                            rng: Optional[random.Random] = None) -> GameSession:
    config = config or GameConfig()
    damage_config = damage_config or DamageConfig()
    rng = rng or random.Random(config.seed)
    resolver = DamageResolver(config.height, damage_config, rng=rng,
                              base_interval_ms=config.base_interval_ms)
    return GameSession(config, resolver, ExtendedScoring(config),
                       cell_kind=CellKind.ARMORED, variant="extended", rng=rng,
                       cell_hit_points=damage_config.cell_hit_points,
                       grey_hit_points=damage_config.challenge_hit_points)
