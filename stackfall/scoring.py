# Stackfall - Falling-block rules engine
# scoring.py - Score, level and pacing rules for the two rule sets

from typing import Optional

from .config import GameConfig
from .line_clear import ClearOutcome

LINE_POINTS = (0, 100, 300, 500, 800)
T_SPIN_POINTS = (400, 800, 1200, 1600, 1600)
BACK_TO_BACK_TETRIS_MULTIPLIER = 1.5


class ClassicScoring:
    """
    Level grows with the number of locked pieces; every cleared row is worth
    the current level. The tick interval shrinks by a fixed step per level
    until the decrease passes a cap, after which it decays much more slowly.
    """
    def __init__(self, config: GameConfig):
        self.config = config
        self.score = 0
        self.level = 1
        self.pieces_locked = 0
        self.interval_ms: Optional[float] = config.base_interval_ms

    def on_lock(self, outcome: ClearOutcome, t_spin: bool = False):
        cfg = self.config
        self.pieces_locked += 1
        self.level = 1 + self.pieces_locked // cfg.level_up_count
        self.score += outcome.rows_cleared * self.level

        decrease = self.level * cfg.early_level_decrease_ms
        if decrease > cfg.interval_decrease_cap_ms:
            decrease = min(cfg.interval_decrease_cap_ms + self.level * cfg.late_level_decrease_ms,
                           cfg.base_interval_ms)
        self.interval_ms = cfg.base_interval_ms - decrease

    def challenge_cadence(self) -> Optional[int]:
        return None


class ExtendedScoring:
    """Line-value scoring with T-spin and back-to-back tetris bonuses."""

    def __init__(self, config: GameConfig):
        self.config = config
        self.score = 0
        self.level = 1
        self.pieces_locked = 0
        self.interval_ms: Optional[float] = None
        self._last_was_tetris = False

    def level_goal(self) -> int:
        """Cumulative score needed to leave the current level."""
        return self.config.variable_goal_multiplier * 100 * self.level

    def on_lock(self, outcome: ClearOutcome, t_spin: bool = False):
        self.pieces_locked += 1
        line_value = min(outcome.user_rows, 4)
        points = T_SPIN_POINTS[line_value] if t_spin else LINE_POINTS[line_value]

        if line_value == 4:
            if self._last_was_tetris:
                points *= BACK_TO_BACK_TETRIS_MULTIPLIER
            self._last_was_tetris = True
        elif line_value > 0:
            self._last_was_tetris = False

        self.score += int(points * self.level)
        # One level per lock at most
        if self.score >= self.level_goal():
            self.level += 1

    def challenge_cadence(self) -> Optional[int]:
        """Ticks between challenge lines, one fewer per level."""
        return max(1, self.config.ticks_per_challenge_line - (self.level - 1))
