"""
Stackfall: rules engine for a falling-block puzzle game.
Provides the classic rule set and an extended rule set where cleared rows
damage a defensive challenge line.
"""

from .pieces import Piece, PieceType, Direction, coordinates_of, wall_kick_offsets
from .piece_queue import PieceQueue
from .board import PlayfieldGrid, CellKind, CellStatus, DamageType
from .line_clear import ClassicLineClear, ClearOutcome, ClearRecord
from .damage import DamageResolver
from .config import GameConfig, DamageConfig, DamageComposition
from .session import (
    Command, Phase, GameSession, ClassicSnapshot, ExtendedSnapshot,
    create_classic_session, create_extended_session,
)
from .exceptions import QueueUnderflow, InvalidBitmapException, InvalidConfigException

__all__ = [
    'Piece', 'PieceType', 'Direction', 'coordinates_of', 'wall_kick_offsets',
    'PieceQueue', 'PlayfieldGrid', 'CellKind', 'CellStatus', 'DamageType',
    'ClassicLineClear', 'ClearOutcome', 'ClearRecord', 'DamageResolver',
    'GameConfig', 'DamageConfig', 'DamageComposition',
    'Command', 'Phase', 'GameSession', 'ClassicSnapshot', 'ExtendedSnapshot',
    'create_classic_session', 'create_extended_session',
    'QueueUnderflow', 'InvalidBitmapException', 'InvalidConfigException',
]
