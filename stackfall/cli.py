#!/usr/bin/env python3
"""
Stackfall command-line interface.
Runs demo sessions with random commands and a simple throughput benchmark.
"""

import argparse
import logging
import random
import sys
import time

from .config import GameConfig
from .session import Command, create_classic_session, create_extended_session

logger = logging.getLogger(__name__)

# Weighted towards gravity so demo games actually progress
DEMO_COMMANDS = [Command.TICK_DOWN] * 4 + list(Command)


def _build_session(variant: str, config: GameConfig, seed):
    rng = random.Random(seed)
    if variant == "extended":
        return create_extended_session(config, rng=rng)
    return create_classic_session(config, rng=rng)


def demo_game(args):
    """Play random commands and print the board every few steps."""
    config = GameConfig(width=args.width, height=args.height, seed=args.seed)
    session = _build_session(args.variant, config, args.seed)
    rng = random.Random(args.seed)

    print(f"Stackfall demo ({args.variant})")
    print("=" * 30)

    snapshot = session.apply_command(Command.TICK_DOWN)
    for step in range(1, args.steps + 1):
        snapshot = session.apply_command(rng.choice(DEMO_COMMANDS))
        for record in getattr(snapshot, "clear_records", ()):
            print(f"Cleared row {record.row}: {record.dominant_type.name} {record.dominant_value:.1f}"
                  f"{' (crit)' if record.critical else ''}")

        if step % args.print_every == 0 or snapshot.game_over:
            print(f"\nStep: {step}  Score: {snapshot.score}  Level: {snapshot.level}"
                  f"  Next tick: {snapshot.interval_ms}ms")
            print(str(session.grid))
        if snapshot.game_over:
            print("\nGame over")
            break

    return snapshot


def benchmark(args):
    """Measure commands per second over random play."""
    config = GameConfig(seed=args.seed)
    rng = random.Random(args.seed)
    session = _build_session(args.variant, config, args.seed)
    session.apply_command(Command.TICK_DOWN)

    games = 1
    start_time = time.time()
    for _ in range(args.steps):
        snapshot = session.apply_command(rng.choice(DEMO_COMMANDS))
        if snapshot.game_over:
            games += 1
            session = _build_session(args.variant, config, rng.random())
            session.apply_command(Command.TICK_DOWN)
    elapsed = time.time() - start_time

    rate = args.steps / elapsed if elapsed > 0 else float("inf")
    logger.info("Benchmark finished in %.3fs", elapsed)
    print(f"{args.steps} commands over {games} games: {rate:.0f} commands/s")
    return rate


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Stackfall: falling-block rules engine")
    parser.add_argument('--log-level', default='WARNING', help='Logging level (DEBUG, INFO, ...)')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    demo_parser = subparsers.add_parser('demo', help='Play a random demo game')
    demo_parser.add_argument('--variant', choices=['classic', 'extended'], default='classic')
    demo_parser.add_argument('--steps', type=int, default=500, help='Number of commands to send')
    demo_parser.add_argument('--width', type=int, default=10, help='Board width')
    demo_parser.add_argument('--height', type=int, default=20, help='Board height')
    demo_parser.add_argument('--seed', type=int, default=None, help='Random seed')
    demo_parser.add_argument('--print-every', type=int, default=50, help='Print the board every N steps')

    benchmark_parser = subparsers.add_parser('benchmark', help='Measure engine throughput')
    benchmark_parser.add_argument('--variant', choices=['classic', 'extended'], default='classic')
    benchmark_parser.add_argument('--steps', type=int, default=10000, help='Number of commands to send')
    benchmark_parser.add_argument('--seed', type=int, default=0, help='Random seed')

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == 'demo':
        demo_game(args)
    elif args.command == 'benchmark':
        benchmark(args)
    else:
        parser.print_help()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
