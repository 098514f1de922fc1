"""Game configuration models, loaded from YAML.

These live in ``models/`` because they are shared data contracts used by the
session, the tick engine, and the action catalog.  Every field has a default
so an empty YAML mapping yields the standard game.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator


class TickConfig(BaseModel):
    """Cadence and odds of the two background processes (times in ms)."""

    yield_period_ms: int = Field(
        default=10_000,
        gt=0,
        description="Period of the passive-yield and company-lifecycle tick.",
    )
    event_period_ms: int = Field(
        default=15_000,
        gt=0,
        description="Period of the stochastic event tick.",
    )
    yield_rate: float = Field(
        default=0.1,
        ge=0.0,
        description="Fraction of per-unit gain paid out as cash on each yield tick.",
    )
    pr_attack_probability: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Chance per event tick that a PR attack hits the portfolio.",
    )
    pr_attack_min_impact: float = Field(default=0.1, ge=0.0, le=1.0)
    pr_attack_max_impact: float = Field(default=0.4, ge=0.0, le=1.0)
    clamp_pr_protection: bool = Field(
        default=True,
        description="Floor (1 - pr_protection) at 0 so attacks never raise values.",
    )
    layoff_probability: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Chance per event tick of losing the second job.",
    )
    layoff_min_work_count: int = Field(default=5, ge=0)

    @model_validator(mode="after")
    def _check_impact_range(self) -> TickConfig:
        if self.pr_attack_min_impact > self.pr_attack_max_impact:
            raise ValueError(
                "pr_attack_min_impact must not exceed pr_attack_max_impact "
                f"({self.pr_attack_min_impact} > {self.pr_attack_max_impact})."
            )
        return self


class GameConfig(BaseModel):
    """Top-level configuration for a game session."""

    initial_cash: float = Field(
        default=100.0,
        ge=0,
        description="Cash balance of a fresh or reset game.",
    )
    capital_gains_tax_rate: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Flat tax applied to the gain portion of a cash-out.",
    )
    welcome_message: str | None = Field(
        default=(
            "You awaken with ${cash} in your pocket. The world of finance is dark "
            "and uncertain. Start by earning more money."
        ),
        description=(
            "Ledger entry logged when a session starts with an empty ledger. "
            "'{cash}' is replaced by the starting cash."
        ),
    )
    ticks: TickConfig = Field(default_factory=TickConfig)

    def welcome_text(self, cash: float) -> str | None:
        """``welcome_message`` with ``{cash}`` filled in, e.g. ``100`` or ``250.50``."""
        if not self.welcome_message:
            return None
        amount = f"{cash:,.0f}" if float(cash).is_integer() else f"{cash:,.2f}"
        return self.welcome_message.replace("{cash}", amount)

    @classmethod
    def from_yaml(cls, path: str | Path) -> GameConfig:
        """Load and validate a ``GameConfig`` from a YAML file.

        Raises ``FileNotFoundError`` if the file does not exist and
        ``ValueError`` if the content is not a valid YAML mapping.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError(
                f"Expected a YAML mapping in {path}, got {type(raw).__name__}."
            )

        return cls(**raw)
