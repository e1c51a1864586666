"""Gymnasium wrapper that drives a Stackfall session.

The environment plays the role of the external driver: every action is one
symbolic command, and the reported ``interval_ms`` tells a real-time caller
how long to wait before sending the next ``TICK_DOWN``.

Observation:
  - board: occupant ids (height x width)
  - active / held: piece type ids (0 = none)
  - upcoming: ids of the lookahead queue
"""

import random
from typing import Dict, Optional

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from .config import GameConfig, DamageConfig
from .pieces import PieceType
from .session import Command, create_classic_session, create_extended_session


class StackfallEnv(gym.Env):
    metadata = {
        "render_modes": ["ansi"],
    }

    def __init__(self, variant: str = "classic", config: Optional[GameConfig] = None,
                 damage_config: Optional[DamageConfig] = None, top_out_penalty: float = -10.0):
        super().__init__()
        if variant not in ("classic", "extended"):
            raise ValueError(f"Unknown variant {variant!r}")
        self.variant = variant
        self.config = config or GameConfig()
        self.damage_config = damage_config
        self.top_out_penalty = top_out_penalty

        num_types = len(PieceType)
        self.action_space = spaces.Discrete(len(Command))
        self.observation_space = spaces.Dict({
            "board": spaces.Box(low=0, high=num_types - 1,
                                shape=(self.config.height, self.config.width), dtype=np.uint8),
            "active": spaces.Discrete(num_types),
            "held": spaces.Discrete(num_types),
            "upcoming": spaces.Box(low=0, high=num_types - 1,
                                   shape=(self.config.queue_lookahead,), dtype=np.uint8),
        })
        self.session = None
        self._last_snapshot = None

    def _new_session(self, seed: Optional[int]):
        rng = random.Random(seed)
        if self.variant == "extended":
            return create_extended_session(self.config, self.damage_config, rng=rng)
        return create_classic_session(self.config, rng=rng)

    def reset(self, *, seed: Optional[int] = None, options: Optional[Dict] = None):
        super().reset(seed=seed)
        self.session = self._new_session(seed)
        # First command only draws the spawned piece
        self._last_snapshot = self.session.apply_command(Command.TICK_DOWN)
        return self._get_observation(), self._get_info()

    def step(self, action: int):
        if self.session is None:
            raise RuntimeError("Call reset() before step()")
        previous_score = self._last_snapshot.score
        self._last_snapshot = self.session.apply_command(Command(int(action)))

        reward = float(self._last_snapshot.score - previous_score)
        terminated = self._last_snapshot.game_over
        if terminated:
            reward += self.top_out_penalty
        return self._get_observation(), reward, terminated, False, self._get_info()

    def render(self):
        return str(self.session.grid) if self.session else ""

    def close(self):
        return None

    def _get_observation(self):
        snap = self._last_snapshot
        upcoming = np.zeros((self.config.queue_lookahead,), dtype=np.uint8)
        for i, piece_type in enumerate(snap.upcoming[:self.config.queue_lookahead]):
            upcoming[i] = piece_type.value
        return {
            "board": np.array([[cell.value for cell in row] for row in snap.cells], dtype=np.uint8),
            "active": snap.active.value,
            "held": snap.held.value,
            "upcoming": upcoming,
        }

    def _get_info(self) -> Dict:
        snap = self._last_snapshot
        return {
            "interval_ms": snap.interval_ms,
            "level": snap.level,
            "score": snap.score,
            "clear_records": list(getattr(snap, "clear_records", ())),
        }
