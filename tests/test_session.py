"""
Tests for the game session state machine.
"""

import random
import unittest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stackfall.board import CellStatus, DamageType
from stackfall.config import GameConfig
from stackfall.exceptions import InvalidConfigException
from stackfall.pieces import PieceType
from stackfall.session import (
    Command, Phase, ClassicSnapshot, ExtendedSnapshot,
    create_classic_session, create_extended_session,
)

T = PieceType.T
B = PieceType.BLANK


def occupied(snapshot, piece_type):
    """Set of (x, y) cells holding `piece_type`."""
    return {
        (x, y)
        for y, row in enumerate(snapshot.cells)
        for x, cell in enumerate(row)
        if cell == piece_type
    }


class TestClassicSession(unittest.TestCase):
    """Test movement, locking and hold in the classic rules."""

    def setUp(self):
        self.config = GameConfig(width=6, height=10, piece_override=T)
        self.session = create_classic_session(self.config)

    def test_first_command_only_renders(self):
        """The first command draws the spawned piece without moving it."""
        snapshot = self.session.apply_command(Command.MOVE_LEFT)
        self.assertIsInstance(snapshot, ClassicSnapshot)
        self.assertEqual((snapshot.x, snapshot.y), (2, 0))
        self.assertEqual(snapshot.ghost_y, 9)
        self.assertEqual(occupied(snapshot, T), {(1, 0), (2, 0), (3, 0)})
        self.assertEqual(snapshot.held, B)
        self.assertEqual(len(snapshot.upcoming), 6)

    def test_tick_down_and_ghost(self):
        """Ticking moves the piece down; the ghost shows its landing cells."""
        self.session.apply_command(Command.TICK_DOWN)
        snapshot = self.session.apply_command(Command.TICK_DOWN)

        self.assertEqual((snapshot.x, snapshot.y), (2, 1))
        self.assertEqual(occupied(snapshot, T), {(2, 0), (1, 1), (2, 1), (3, 1)})
        self.assertEqual(occupied(snapshot, PieceType.GHOST), {(2, 8), (1, 9), (2, 9), (3, 9)})
        self.assertEqual(len(snapshot.bitmap()), 60)

    def test_rotation(self):
        """Rotating updates the piece and its ghost."""
        self.session.apply_command(Command.TICK_DOWN)
        self.session.apply_command(Command.TICK_DOWN)

        snapshot = self.session.apply_command(Command.ROTATE_CW)
        self.assertEqual(snapshot.rotation, 1)
        self.assertEqual(occupied(snapshot, T), {(2, 0), (2, 1), (2, 2), (3, 1)})
        self.assertEqual(snapshot.ghost_y, 8)
        self.assertEqual(occupied(snapshot, PieceType.GHOST), {(2, 7), (2, 8), (2, 9), (3, 8)})

        snapshot = self.session.apply_command(Command.ROTATE_CCW)
        snapshot = self.session.apply_command(Command.ROTATE_CCW)
        self.assertEqual(snapshot.rotation, 3)
        self.assertEqual(occupied(snapshot, T), {(2, 0), (1, 1), (2, 1), (2, 2)})

    def test_movement_stops_at_walls(self):
        """Shifting into a wall leaves the piece in place."""
        self.session.apply_command(Command.TICK_DOWN)
        for _ in range(5):
            snapshot = self.session.apply_command(Command.MOVE_LEFT)
        self.assertEqual(snapshot.x, 1)
        for _ in range(5):
            snapshot = self.session.apply_command(Command.MOVE_RIGHT)
        self.assertEqual(snapshot.x, 4)

    def test_hard_drop_locks_and_spawns(self):
        """Hard drop locks at the ghost and shows the next piece one row down."""
        self.session.apply_command(Command.TICK_DOWN)
        self.session.apply_command(Command.TICK_DOWN)
        snapshot = self.session.apply_command(Command.HARD_DROP)

        self.assertEqual((snapshot.x, snapshot.y), (2, 1))
        self.assertEqual(snapshot.ghost_y, 7)
        self.assertEqual(occupied(snapshot, T), {
            (2, 8), (1, 9), (2, 9), (3, 9),
            (2, 0), (1, 1), (2, 1), (3, 1),
        })
        self.assertEqual(occupied(snapshot, PieceType.GHOST), {(2, 6), (1, 7), (2, 7), (3, 7)})
        self.assertEqual(snapshot.interval_ms, 940)
        self.assertFalse(snapshot.game_over)

    def test_soft_drop_locks_on_floor(self):
        """Soft drop against the floor locks the piece."""
        self.session.apply_command(Command.TICK_DOWN)
        for _ in range(9):
            snapshot = self.session.apply_command(Command.SOFT_DROP)
        self.assertEqual(snapshot.y, 9)
        self.assertEqual(self.session.phase, Phase.LOCK_DELAY_ARMED)

        snapshot = self.session.apply_command(Command.SOFT_DROP)
        self.assertEqual(snapshot.y, 1)
        self.assertIn((2, 9), occupied(snapshot, T))
        self.assertEqual(self.session.scoring.pieces_locked, 1)

    def test_lock_delay_interval(self):
        """Resting on the stack reports the lock delay as the next interval."""
        session = create_classic_session(
            GameConfig(width=6, height=10, piece_override=T, zero_interval=True))
        intervals = [session.apply_command(Command.TICK_DOWN).interval_ms for _ in range(10)]
        self.assertEqual(intervals[:9], [0] * 9)
        self.assertEqual(intervals[9], 500)

        snapshot = session.apply_command(Command.TICK_DOWN)
        self.assertEqual(snapshot.interval_ms, 0)
        self.assertEqual(snapshot.y, 1)

    def test_lock_delay_does_not_shorten_interval(self):
        """The lock delay never makes a tick faster than the base interval."""
        self.session.apply_command(Command.TICK_DOWN)
        for _ in range(9):
            snapshot = self.session.apply_command(Command.TICK_DOWN)
        self.assertEqual(self.session.phase, Phase.LOCK_DELAY_ARMED)
        self.assertEqual(snapshot.interval_ms, 1000)

    def test_spawn_collision_ends_game(self):
        """A new piece that overlaps the stack ends the game."""
        bitmap = [B] * 60
        for y in range(1, 10):
            for x in range(5):
                bitmap[y * 6 + x] = PieceType.I
        self.session.grid.load_bitmap(bitmap)

        self.session.apply_command(Command.TICK_DOWN)
        snapshot = self.session.apply_command(Command.HARD_DROP)
        self.assertTrue(snapshot.game_over)
        self.assertIn((2, 0), occupied(snapshot, T))

        again = self.session.apply_command(Command.MOVE_LEFT)
        self.assertTrue(again.game_over)
        self.assertEqual(again.cells, snapshot.cells)

    def test_line_clear_scores(self):
        """Completing a row clears it and scores."""
        bitmap = [B] * 60
        for x in (0, 4, 5):
            bitmap[9 * 6 + x] = PieceType.I
        self.session.grid.load_bitmap(bitmap)

        self.session.apply_command(Command.TICK_DOWN)
        snapshot = self.session.apply_command(Command.HARD_DROP)

        self.assertEqual(self.session.lines_cleared, 1)
        self.assertEqual(snapshot.score, 1)
        self.assertEqual(snapshot.cells[9], (B, B, T, B, B, B))

    def test_t_spin_detected(self):
        """Rotating a resting T into a slot it cannot slide out of is a T-spin."""
        session = create_classic_session(GameConfig(width=3, height=10, piece_override=T))
        bitmap = [B] * 30
        bitmap[9 * 3 + 0] = PieceType.I
        bitmap[9 * 3 + 2] = PieceType.I
        session.grid.load_bitmap(bitmap)

        session.apply_command(Command.TICK_DOWN)
        for _ in range(8):
            snapshot = session.apply_command(Command.TICK_DOWN)
        self.assertEqual(snapshot.y, 8)
        self.assertEqual(session.phase, Phase.LOCK_DELAY_ARMED)

        snapshot = session.apply_command(Command.ROTATE_CW)
        self.assertEqual(snapshot.rotation, 1)
        self.assertTrue(session.is_t_spin)

        session.apply_command(Command.HARD_DROP)
        self.assertEqual(session.lines_cleared, 1)
        self.assertFalse(session.is_t_spin)

    def test_unknown_command_is_logged(self):
        """Unknown commands are logged and otherwise ignored."""
        before = self.session.apply_command(Command.TICK_DOWN)
        with self.assertLogs('stackfall.session', level='ERROR'):
            after = self.session.apply_command("SPIN_TWICE")
        self.assertEqual((after.x, after.y), (before.x, before.y))
        self.assertEqual(after.cells, before.cells)

    def test_invalid_config(self):
        """Sessions refuse settings they cannot run with."""
        with self.assertRaises(InvalidConfigException):
            create_classic_session(GameConfig(width=0))
        with self.assertRaises(InvalidConfigException):
            create_classic_session(GameConfig(piece_override=PieceType.GREY))
        with self.assertRaises(InvalidConfigException):
            create_classic_session(GameConfig(queue_lookahead=0))

    def test_hard_drop_after_hold_stops_on_overhang(self):
        """A piece partly above the board lands on the first block below it."""
        session = create_classic_session(
            GameConfig(width=6, height=10, piece_override=PieceType.S))
        bitmap = [B] * 60
        for y in (3, 4, 5):
            bitmap[y * 6 + 3] = PieceType.I
        session.grid.load_bitmap(bitmap)

        session.apply_command(Command.TICK_DOWN)
        snapshot = session.apply_command(Command.HOLD)
        self.assertEqual((snapshot.y, snapshot.ghost_y), (0, 3))

        snapshot = session.apply_command(Command.HARD_DROP)
        column = [row[3] for row in snapshot.cells]
        self.assertEqual(column[2], PieceType.S)
        self.assertEqual(column[3:6], [PieceType.I] * 3)
        self.assertEqual(column[6:], [B] * 4)
        self.assertFalse(snapshot.game_over)


class TestHold(unittest.TestCase):
    """Test the hold slot through the session."""

    def setUp(self):
        self.session = create_classic_session(rng=random.Random(1))
        self.first = self.session.apply_command(Command.TICK_DOWN)

    def test_hold_swaps_in_next_piece(self):
        """Holding stores the active piece and brings in the next one."""
        self.session.apply_command(Command.ROTATE_CW)
        snapshot = self.session.apply_command(Command.HOLD)

        self.assertEqual(snapshot.held, self.first.active)
        self.assertEqual(snapshot.active, self.first.upcoming[0])
        self.assertEqual(snapshot.rotation, 0)
        self.assertEqual(self.session.queue.held.rotation, 0)
        self.assertEqual((snapshot.x, snapshot.y), (4, 0))

    def test_hold_once_per_piece(self):
        """A second hold before locking does nothing."""
        held = self.session.apply_command(Command.HOLD)
        again = self.session.apply_command(Command.HOLD)
        self.assertEqual(again.active, held.active)
        self.assertEqual(again.held, held.held)

    def test_hold_available_after_lock(self):
        """Locking a piece re-enables hold."""
        self.session.apply_command(Command.HOLD)
        self.session.apply_command(Command.HARD_DROP)
        self.assertTrue(self.session.hold_available)
        snapshot = self.session.apply_command(Command.HOLD)
        self.assertEqual(snapshot.active, self.first.active)


class TestExtendedSession(unittest.TestCase):
    """Test the extended rules through the session."""

    def setUp(self):
        self.config = GameConfig(width=4, height=10, piece_override=PieceType.O)
        self.session = create_extended_session(self.config, rng=random.Random(0))

    def test_snapshot_layers(self):
        """Extended snapshots carry hit points, resistances and statuses."""
        snapshot = self.session.apply_command(Command.TICK_DOWN)
        self.assertIsInstance(snapshot, ExtendedSnapshot)
        self.assertEqual(snapshot.variant, "extended")
        self.assertEqual(snapshot.challenge_row, 10)
        self.assertEqual(len(snapshot.hit_points), 10)
        self.assertEqual(len(snapshot.resistances[0][0]), 4)
        self.assertEqual(snapshot.statuses[9][0], CellStatus.NONE)
        self.assertEqual(snapshot.clear_records, ())

    def test_challenge_line_arrives(self):
        """A challenge line is injected after enough ticks."""
        snapshots = [self.session.apply_command(Command.TICK_DOWN) for _ in range(11)]
        snapshot = snapshots[-1]

        self.assertEqual(snapshot.challenge_row, 9)
        self.assertEqual(snapshot.cells[9], (PieceType.GREY,) * 4)
        self.assertEqual(snapshot.hit_points[9], (20.0,) * 4)
        self.assertEqual(snapshot.cells[8][1], PieceType.O)
        self.assertEqual(snapshot.hit_points[8][1], 10.0)
        self.assertEqual(snapshot.y, 1)

    def test_clear_records_reported_once(self):
        """Cleared rows are reported on the step that cleared them only."""
        bitmap = [B] * 40
        for y in (8, 9):
            bitmap[y * 4 + 0] = PieceType.I
            bitmap[y * 4 + 3] = PieceType.I
        self.session.grid.load_bitmap(bitmap)

        self.session.apply_command(Command.TICK_DOWN)
        snapshot = self.session.apply_command(Command.HARD_DROP)

        records = snapshot.clear_records
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].row, 9)
        self.assertTrue(records[0].critical)
        self.assertEqual(records[0].occupants, (PieceType.I, PieceType.O, PieceType.O, PieceType.I))
        self.assertEqual(records[0].dominant_type, DamageType.PHYSICAL)
        self.assertAlmostEqual(records[0].dominant_value, 120)
        self.assertEqual(records[1].row, 9)
        self.assertFalse(records[1].critical)
        self.assertAlmostEqual(records[1].dominant_value, 100)
        self.assertEqual(snapshot.score, 300)

        snapshot = self.session.apply_command(Command.MOVE_LEFT)
        self.assertEqual(snapshot.clear_records, ())


if __name__ == '__main__':
    unittest.main()
