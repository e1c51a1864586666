"""
Configuration for Stackfall sessions.
"""

from dataclasses import dataclass, field
from typing import Optional

from .board import DamageType
from .exceptions import InvalidConfigException
from .pieces import PieceType


@dataclass
class GameConfig:
    """Configuration shared by both rule sets."""
    width: int = 10
    height: int = 20
    piece_override: Optional[PieceType] = None  # Test/debug only
    zero_interval: bool = False  # Test/debug only
    seed: Optional[int] = None
    base_interval_ms: int = 1000
    lock_delay_ms: int = 500
    queue_lookahead: int = 6
    # Classic pacing
    level_up_count: int = 10
    early_level_decrease_ms: int = 60
    late_level_decrease_ms: float = 0.5
    interval_decrease_cap_ms: int = 900
    # Extended pacing
    ticks_per_challenge_line: int = 10
    variable_goal_multiplier: int = 10

    def validate(self) -> 'GameConfig':
        if self.width <= 0 or self.height <= 0:
            raise InvalidConfigException(f"board must be at least 1x1, got {self.width}x{self.height}")
        if self.piece_override is not None and not self.piece_override.is_tetromino:
            raise InvalidConfigException(f"{self.piece_override.name} cannot be spawned")
        if self.lock_delay_ms < 0 or self.base_interval_ms < 0:
            raise InvalidConfigException("intervals must not be negative")
        if self.queue_lookahead < 1:
            raise InvalidConfigException("queue_lookahead must be at least 1")
        if self.ticks_per_challenge_line < 1:
            raise InvalidConfigException("ticks_per_challenge_line must be at least 1")
        return self


@dataclass
class DamageComposition:
    """Amount of damage per type."""
    physical: float = 0
    fire: float = 0
    cold: float = 0
    lightning: float = 0

    def scaled(self, factor: float) -> 'DamageComposition':
        return DamageComposition(self.physical * factor, self.fire * factor,
                                 self.cold * factor, self.lightning * factor)

    def amount(self, damage_type: DamageType) -> float:
        return getattr(self, damage_type.name.lower())

    def total(self) -> float:
        return self.physical + self.fire + self.cold + self.lightning


@dataclass
class DamageConfig:
    """Constants for the extended rule set."""
    line_damage: DamageComposition = field(default_factory=lambda: DamageComposition(physical=100))
    crit_multiplier: float = 1.2

    impale_hit_fraction: float = 0.1

    damaging_ailment_ticks: int = 4
    ignite_hit_fraction: float = 0.8

    chill_ticks: int = 2
    chill_fraction: float = 0.2
    min_chill: float = 0.05
    max_chill: float = 0.3

    freeze_base: float = 1.0
    freeze_ticks: int = 1
    freeze_fraction: float = 0.05

    shock_base_multiplier: float = 1.0
    shock_fraction: float = 0.3
    shock_ticks: int = 3

    cell_hit_points: int = 10
    challenge_hit_points: int = 20
    max_physical_mitigation: int = 90
    max_elemental_resistance: int = 75

    three_line_perk_chance: float = 0.3
    four_line_perk_chance: float = 0.5
    crit_perk_chance_bonus: float = 1.0
