#!/usr/bin/env python3
"""CLI entrypoint for a headless game session.

Usage::

    python run_game.py --action earn-money --action invest-stocks
    python run_game.py --config config/default.yaml --save-dir saves/ --duration 30
    python run_game.py --reset

The session resumes from the snapshots in ``--save-dir`` (or starts fresh),
performs the requested actions in order, lets the background ticks run for
``--duration`` seconds, then logs a summary. Every change is saved as it
happens.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from models.config import GameConfig
from simulation.actions import action_ids
from simulation.session import GameSession
from simulation.storage import SnapshotStore

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a personal-finance idle game session.",
    )
    parser.add_argument(
        "--config",
        default=None,
        type=str,
        help="Path to a YAML configuration file (default: built-in defaults).",
    )
    parser.add_argument(
        "--save-dir",
        default="saves",
        type=str,
        help="Directory holding the game snapshots (default: saves/).",
    )
    parser.add_argument(
        "--action",
        dest="actions",
        action="append",
        default=[],
        choices=action_ids(),
        help="Action to perform; repeat to queue several.",
    )
    parser.add_argument(
        "--duration",
        default=0.0,
        type=float,
        help="Seconds to let background ticks run before exiting (default: 0).",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Reset the game before doing anything else.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    return parser.parse_args(argv)


def _setup_logging(level: str) -> None:
    """Configure root logger with a clean format."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


async def run(args: argparse.Namespace) -> GameSession:
    config = GameConfig.from_yaml(args.config) if args.config else GameConfig()
    store = SnapshotStore(args.save_dir)
    session = GameSession.from_store(store, config)
    if args.reset:
        session.reset_game()

    session.start()
    try:
        for action_id in args.actions:
            if session.is_disabled(action_id):
                logger.warning("'%s' is cooling down; skipped.", action_id)
                continue
            if not session.perform(action_id):
                logger.warning("'%s' could not be performed right now.", action_id)
        if args.duration > 0:
            await asyncio.sleep(args.duration)
    finally:
        await session.aclose()
        store.flush()

    state = session.state
    logger.info(
        "Cash $%.2f | portfolio $%.2f | %d transaction(s)",
        state.cash,
        state.total_portfolio_value,
        len(session.transactions),
    )
    for kind, value in state.portfolio.holdings():
        logger.info("  %-12s $%.2f", kind.label, value)
    return session


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    _setup_logging(args.log_level)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
