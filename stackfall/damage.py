# Stackfall - Falling-block rules engine
# damage.py - Damage pools, mitigation, ailments and perks for the extended rule set.

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from .board import PlayfieldGrid, DamageType, CellStatus
from .config import DamageConfig, DamageComposition
from .line_clear import ClearStrategy, ClearOutcome, ClearRecord
from .pieces import PieceType

logger = logging.getLogger(__name__)


class AilmentKind(Enum):
    IGNITE = "ignite"  # damage over time
    CHILL = "chill"
    FREEZE = "freeze"
    SHOCK = "shock"


@dataclass
class Ailment:
    """
    A live ailment. `magnitude` is damage per tick for IGNITE and the
    effectiveness for the timing/multiplier kinds.
    """
    magnitude: float
    remaining_ticks: int
    damage_type: DamageType


@dataclass
class DamagePool:
    composition: DamageComposition
    row: int
    critical: bool


@dataclass
class PerkState:
    impale: bool = False
    impale_bonus_per_cell: float = 0.0
    shock: bool = False
    shock_multiplier: float = 1.0
    ignite: bool = False
    chill: bool = False
    freeze: bool = False


_STATUS_PRIORITY = (
    (AilmentKind.FREEZE, CellStatus.FROZEN),
    (AilmentKind.CHILL, CellStatus.CHILLED),
    (AilmentKind.SHOCK, CellStatus.SHOCKED),
    (AilmentKind.IGNITE, CellStatus.IGNITED),
)


def dominant_damage(composition: DamageComposition) -> Tuple[DamageType, float]:
    """Largest component of a composition; ties keep the earlier DamageType."""
    best_type, best_value = DamageType.PHYSICAL, 0.0
    for damage_type in DamageType:
        value = composition.amount(damage_type)
        if value > best_value:
            best_type, best_value = damage_type, value
    return best_type, best_value


class DamageResolver(ClearStrategy):
    """
    Clear strategy for the extended rule set.

    Completed rows are turned into damage pools that first destroy the row
    itself and are then applied to the challenge line, the topmost defensive
    row. `challenge_row == height` means no challenge line is on the board.
    Multi-row clears roll perks that leave ailments behind; those are
    processed on every downward tick through `on_tick`.
    """
    def __init__(self, height: int, config: Optional[DamageConfig] = None,
                 rng: Optional[random.Random] = None, base_interval_ms: int = 1000):
        self.height = height
        self.config = config or DamageConfig()
        self.base_interval_ms = base_interval_ms
        self.challenge_row = height
        self.perks = PerkState(shock_multiplier=self.config.shock_base_multiplier)
        self.ailments: Dict[AilmentKind, List[Ailment]] = {kind: [] for kind in AilmentKind}
        self.last_roll_chance = 0.0
        self._rng = rng or random.Random()
        self._records: List[ClearRecord] = []

    # ------------------------------------------------------------------ pools

    def calculate_pools(self, grid: PlayfieldGrid) -> List[DamagePool]:
        """Damage pool per completed row, bottom row first, then rolls perks."""
        pools = []
        for row in range(grid.height - 1, -1, -1):
            values = grid.cells[row]
            solid = np.all((values >= PieceType.O.value) & (values <= PieceType.GREY.value))
            if not solid or not np.any(values != PieceType.GREY.value):
                continue

            critical = row in (self.challenge_row, self.challenge_row - 1)
            factor = self.config.crit_multiplier if critical else 1.0
            factor *= self.perks.shock_multiplier
            pools.append(DamagePool(self.config.line_damage.scaled(factor), row, critical))

        self.roll_perks(pools, grid.width)
        return pools

    def deal_damage(self, grid: PlayfieldGrid, composition: DamageComposition,
                    row: int) -> Tuple[bool, DamageComposition]:
        """
        Splits `composition` evenly over the row and applies it after
        mitigation. Returns whether every cell of the row is destroyed and
        the damage actually dealt.
        """
        if not 0 <= row < grid.height:
            return False, DamageComposition()

        cfg = self.config
        width = grid.width
        resist = grid.resistances[row].astype(np.float64)

        physical = (math.floor(composition.physical / width)
                    * (cfg.max_physical_mitigation - resist[:, DamageType.PHYSICAL.value])
                    / cfg.max_physical_mitigation
                    + self.perks.impale_bonus_per_cell)
        elemental = {}
        for damage_type in (DamageType.FIRE, DamageType.COLD, DamageType.LIGHTNING):
            per_cell = math.floor(composition.amount(damage_type) / width)
            elemental[damage_type] = (per_cell
                                      * (cfg.max_elemental_resistance - resist[:, damage_type.value])
                                      / cfg.max_elemental_resistance)

        grid.hit_points[row] -= physical + sum(elemental.values())
        destroyed = grid.hit_points[row] <= 0
        grid.hit_points[row, destroyed] = 0
        grid.cells[row, destroyed] = PieceType.BLANK.value
        grid.statuses[row, destroyed] = CellStatus.NONE.value

        dealt = DamageComposition(
            physical=float(physical.sum()),
            fire=float(elemental[DamageType.FIRE].sum()),
            cold=float(elemental[DamageType.COLD].sum()),
            lightning=float(elemental[DamageType.LIGHTNING].sum()),
        )
        return bool(destroyed.all()), dealt

    # ------------------------------------------------------------ resolution

    def resolve(self, grid: PlayfieldGrid) -> ClearOutcome:
        outcome = ClearOutcome()
        for pool in self.calculate_pools(grid):
            row = pool.row + outcome.rows_cleared
            self._record(grid, row, pool.composition, pool.critical)

            if row != self.challenge_row:
                self.deal_damage(grid, pool.composition, row)
                grid.collapse_row(row)
                outcome.rows_cleared += 1
                outcome.user_rows += 1

            cleared, dealt = self.deal_damage(grid, pool.composition, self.challenge_row)
            if cleared:
                self._clear_challenge_line(grid, dealt, pool.critical)
                outcome.rows_cleared += 1
                outcome.challenge_rows += 1

        grid.refresh_lowest_rows()
        self._tag_challenge_line(grid)
        outcome.records = list(self._records)
        return outcome

    def _clear_challenge_line(self, grid: PlayfieldGrid, dealt: DamageComposition,
                              critical: bool = False):
        dominant_type, value = dominant_damage(dealt)
        self._records.append(ClearRecord(
            row=self.challenge_row,
            occupants=(PieceType.GREY,) * grid.width,
            critical=critical,
            dominant_type=dominant_type,
            dominant_value=value,
        ))
        grid.collapse_row(self.challenge_row)
        self.challenge_row += 1
        logger.debug("Challenge line cleared, next challenge row %d", self.challenge_row)

    def _record(self, grid: PlayfieldGrid, row: int, composition: DamageComposition,
                critical: bool):
        dominant_type, value = dominant_damage(composition)
        self._records.append(ClearRecord(
            row=row,
            occupants=tuple(grid.row_occupants(row)),
            critical=critical,
            dominant_type=dominant_type,
            dominant_value=value,
        ))

    def drain_records(self) -> List[ClearRecord]:
        records, self._records = self._records, []
        return records

    def spawn_challenge_line(self, grid: PlayfieldGrid):
        """Pushes the board up one row and writes a fresh defensive row at the bottom."""
        if self.challenge_row > 0:
            self.challenge_row -= 1
        grid.raise_rows()
        grid.write_row(grid.height - 1, PieceType.GREY, self.config.challenge_hit_points)
        self._tag_challenge_line(grid)
        logger.debug("Spawned challenge line, challenge row now %d", self.challenge_row)

    # ------------------------------------------------------------------ perks

    def roll_perks(self, pools: List[DamagePool], width: int):
        """Rolls every perk after a 3 or 4 row clear."""
        cfg = self.config
        count = len(pools)
        chance = {3: cfg.three_line_perk_chance, 4: cfg.four_line_perk_chance}.get(count, 0.0)
        self.last_roll_chance = chance
        if not chance:
            return

        total = DamageComposition()
        critical = False
        for pool in pools:
            total.physical += pool.composition.physical
            total.fire += pool.composition.fire
            total.cold += pool.composition.cold
            total.lightning += pool.composition.lightning
            critical = critical or pool.critical

        # Impale doesn't benefit from crits
        impale_chance = chance
        if critical:
            chance += chance * cfg.crit_perk_chance_bonus
        self.last_roll_chance = chance
        logger.debug("Rolling perks for %d rows at chance %.2f", count, chance)

        hp_cleared = count * cfg.cell_hit_points * width
        if total.physical:
            self._roll_impale(total.physical, impale_chance, count, width)
        if total.lightning:
            self._roll_shock(total.lightning, chance, hp_cleared)
        if total.fire:
            self._roll_ignite(total.fire, chance)
        if total.cold:
            self._apply_chill_and_freeze(total.cold, chance, hp_cleared)

    def _roll_impale(self, physical: float, chance: float, rows: int, width: int):
        if self._rng.random() < chance:
            self.perks.impale = True
            current = self.perks.impale_bonus_per_cell * width * rows
            self.perks.impale_bonus_per_cell += (
                (physical + current) * self.config.impale_hit_fraction / rows / width
            )
        else:
            self.perks.impale = False
            self.perks.impale_bonus_per_cell = 0.0

    def _roll_ignite(self, fire: float, chance: float):
        cfg = self.config
        self.perks.ignite = self._rng.random() < chance
        if self.perks.ignite:
            self.ailments[AilmentKind.IGNITE].append(Ailment(
                magnitude=fire * cfg.ignite_hit_fraction / cfg.damaging_ailment_ticks,
                remaining_ticks=cfg.damaging_ailment_ticks,
                damage_type=DamageType.FIRE,
            ))

    def _apply_chill_and_freeze(self, cold: float, chance: float, hp_cleared: float):
        cfg = self.config
        self.perks.chill = True
        chill = min(cold / hp_cleared * cfg.chill_fraction, cfg.max_chill)
        if chill >= cfg.min_chill:
            self.ailments[AilmentKind.CHILL].append(
                Ailment(chill, cfg.chill_ticks, DamageType.COLD))

        self.perks.freeze = self._rng.random() < chance
        if self.perks.freeze:
            freeze = cfg.freeze_base + cold / hp_cleared * cfg.freeze_fraction
            self.ailments[AilmentKind.FREEZE].append(
                Ailment(freeze, cfg.freeze_ticks, DamageType.COLD))

    def _roll_shock(self, lightning: float, chance: float, hp_cleared: float):
        cfg = self.config
        self.perks.shock = self._rng.random() < chance
        if self.perks.shock:
            self.ailments[AilmentKind.SHOCK].append(Ailment(
                lightning / hp_cleared * cfg.shock_fraction, cfg.shock_ticks, DamageType.LIGHTNING))

    # --------------------------------------------------------------- ailments

    def _age(self, kind: AilmentKind) -> List[Ailment]:
        live = []
        for ailment in self.ailments[kind]:
            if ailment.remaining_ticks == 0:
                continue
            ailment.remaining_ticks -= 1
            live.append(ailment)
        self.ailments[kind] = live
        if not live:
            self._expire(kind)
        return live

    def _expire(self, kind: AilmentKind):
        if kind == AilmentKind.IGNITE:
            self.perks.ignite = False
        elif kind == AilmentKind.CHILL:
            self.perks.chill = False
        elif kind == AilmentKind.FREEZE:
            self.perks.freeze = False
        elif kind == AilmentKind.SHOCK:
            self.perks.shock = False
            self.perks.shock_multiplier = self.config.shock_base_multiplier

    def on_tick(self, grid: PlayfieldGrid) -> Optional[int]:
        """
        Ages every ailment by one tick, applies the strongest ignite to the
        challenge line and returns the interval for the next tick.
        """
        ignites = self._age(AilmentKind.IGNITE)
        if ignites:
            strongest = max(ignites, key=lambda ailment: ailment.magnitude)
            composition = DamageComposition()
            setattr(composition, strongest.damage_type.name.lower(), strongest.magnitude)
            cleared, dealt = self.deal_damage(grid, composition, self.challenge_row)
            if cleared:
                self._clear_challenge_line(grid, dealt)

        interval = self.base_interval_ms
        for kind in (AilmentKind.CHILL, AilmentKind.FREEZE):
            for ailment in self._age(kind):
                interval = max(interval, self.base_interval_ms * (1 + ailment.magnitude))

        shocks = self._age(AilmentKind.SHOCK)
        if shocks:
            self.perks.shock_multiplier = (self.config.shock_base_multiplier
                                           + max(ailment.magnitude for ailment in shocks))

        grid.refresh_lowest_rows()
        self._tag_challenge_line(grid)
        return interval

    def _tag_challenge_line(self, grid: PlayfieldGrid):
        if not 0 <= self.challenge_row < grid.height:
            return
        status = CellStatus.IMPALED if self.perks.impale else CellStatus.NONE
        for kind, kind_status in _STATUS_PRIORITY:
            if self.ailments[kind]:
                status = kind_status
                break
        grey = grid.cells[self.challenge_row] == PieceType.GREY.value
        grid.statuses[self.challenge_row, grey] = status.value
