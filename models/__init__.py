"""Data models for the idle finance simulation.

The session, the action catalog and the tick engine all import from models.
"""

from models.config import GameConfig, TickConfig
from models.game import GameState, initial_state
from models.ledger import InfoEntry, MonetaryEntry, SeriesPoint, Transaction
from models.portfolio import AccountKind, Investment, Portfolio, total_value, valuation

__all__ = [
    # config
    "GameConfig",
    "TickConfig",
    # game
    "GameState",
    "initial_state",
    # ledger
    "InfoEntry",
    "MonetaryEntry",
    "SeriesPoint",
    "Transaction",
    # portfolio
    "AccountKind",
    "Investment",
    "Portfolio",
    "total_value",
    "valuation",
]
