"""Root game-state model and its snapshot (de)serialisation."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer
from pydantic.alias_generators import to_camel

from models.config import GameConfig
from models.portfolio import Portfolio

logger = logging.getLogger(__name__)

DEFAULT_WORK_COOLDOWN_MS = 4000.0


class GameState(BaseModel):
    """Everything the economy needs to resume a game.

    ``total_portfolio_value`` is a cache of ``portfolio.total_value()``; it is
    refreshed by ``refresh_total`` after every mutation and never edited
    directly. ``active_filters`` is ledger view state and has no economic
    effect.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    cash: float = 100.0
    portfolio: Portfolio = Field(default_factory=Portfolio)
    advisor_hired: bool = False
    pr_protection: float = Field(default=0.0, ge=0)
    total_portfolio_value: float = 0.0
    has_vehicle: bool = False
    work_cooldown: float = Field(default=DEFAULT_WORK_COOLDOWN_MS, gt=0)
    work_count: int = Field(default=0, ge=0)
    second_job_available: bool = True
    company_owned: bool = False
    company_age: int = Field(default=0, ge=0)
    unique_account_types: set[str] = Field(default_factory=set)
    active_filters: set[str] = Field(default_factory=set)

    @field_serializer("unique_account_types", "active_filters")
    def _sorted_list(self, value: set[str]) -> list[str]:
        return sorted(value)

    def refresh_total(self) -> float:
        self.total_portfolio_value = self.portfolio.total_value()
        return self.total_portfolio_value

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-ready encoding with camelCase keys and sets as lists."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_snapshot(cls, data: Any) -> GameState:
        """Rebuild a state from a persisted snapshot.

        Fields that are missing or fail validation fall back to their
        defaults one by one; a snapshot that is not a mapping yields the
        initial state. The portfolio is recovered per account and the total
        value is recomputed rather than trusted.
        """
        if not isinstance(data, dict):
            logger.warning("Game state snapshot is not a mapping; using the initial state.")
            return cls()

        # Key everything by alias so validation error locations match.
        aliases = {name: field.alias or name for name, field in cls.model_fields.items()}
        clean = {aliases.get(k, k): v for k, v in data.items() if k != "portfolio"}
        portfolio = Portfolio.from_snapshot(data.get("portfolio"))

        while True:
            try:
                state = cls.model_validate({**clean, "portfolio": portfolio})
                break
            except ValidationError as exc:
                bad = {
                    err["loc"][0]
                    for err in exc.errors()
                    if err["loc"] and err["loc"][0] in clean
                }
                if not bad:
                    logger.warning("Game state snapshot unusable; using the initial state.")
                    return cls(portfolio=portfolio).with_total()
                logger.warning("Dropping malformed snapshot field(s): %s", ", ".join(sorted(map(str, bad))))
                for key in bad:
                    del clean[key]

        return state.with_total()

    def with_total(self) -> GameState:
        self.refresh_total()
        return self


def initial_state(config: GameConfig | None = None) -> GameState:
    """Fresh game: starting cash, empty accounts at default rates, flags cleared."""
    config = config or GameConfig()
    return GameState(cash=config.initial_cash).with_total()
