"""Portfolio state models: the seven fixed account kinds and their holdings."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_snake

logger = logging.getLogger(__name__)


class AccountKind(str, Enum):
    """Closed set of investment accounts. Values are the persisted keys."""

    SAVINGS = "savings"
    ETFS = "etfs"
    STOCKS = "stocks"
    BONDS = "bonds"
    REAL_ESTATE = "realEstate"
    EQUITY = "equity"
    COMPANY = "company"

    @property
    def attr(self) -> str:
        """Attribute name of this kind on ``Portfolio``."""
        return to_snake(self.value)

    @property
    def label(self) -> str:
        """Ledger category for this kind, e.g. ``"RealEstate"``."""
        return self.value[0].upper() + self.value[1:]


# (value_per_unit, risk_weight) for a fresh account
DEFAULT_RATES: dict[AccountKind, tuple[float, float]] = {
    AccountKind.SAVINGS: (1.005, 0.0),
    AccountKind.ETFS: (1.04, 0.08),
    AccountKind.STOCKS: (1.05, 0.1),
    AccountKind.BONDS: (1.02, 0.05),
    AccountKind.REAL_ESTATE: (1.08, 0.15),
    AccountKind.EQUITY: (1.06, 0.12),
    AccountKind.COMPANY: (1.0, 0.2),
}


class Investment(BaseModel):
    """One account: quantity held, per-unit value, and exposure to PR attacks.

    Quantity is measured in cost-basis units (one unit costs 1 when bought), so
    ``value_per_unit - 1`` is the per-unit gain.
    """

    model_config = ConfigDict(populate_by_name=True)

    quantity: float = Field(default=0.0, ge=0, alias="amount")
    value_per_unit: float = Field(default=1.0, gt=0, alias="valuePer")
    risk_weight: float = Field(default=0.0, ge=0, le=1, alias="risk")

    @property
    def value(self) -> float:
        return valuation(self)


def default_investment(kind: AccountKind) -> Investment:
    value_per_unit, risk_weight = DEFAULT_RATES[kind]
    return Investment(quantity=0.0, value_per_unit=value_per_unit, risk_weight=risk_weight)


def _default(kind: AccountKind):
    return Field(default_factory=lambda: default_investment(kind), alias=kind.value)


class Portfolio(BaseModel):
    """All seven accounts, always present.

    ``accounts()`` yields ``(AccountKind, Investment)`` pairs in declaration order.
    """

    model_config = ConfigDict(populate_by_name=True)

    savings: Investment = _default(AccountKind.SAVINGS)
    etfs: Investment = _default(AccountKind.ETFS)
    stocks: Investment = _default(AccountKind.STOCKS)
    bonds: Investment = _default(AccountKind.BONDS)
    real_estate: Investment = _default(AccountKind.REAL_ESTATE)
    equity: Investment = _default(AccountKind.EQUITY)
    company: Investment = _default(AccountKind.COMPANY)

    def __getitem__(self, kind: AccountKind) -> Investment:
        return getattr(self, AccountKind(kind).attr)

    def accounts(self) -> Iterator[tuple[AccountKind, Investment]]:
        for kind in AccountKind:
            yield kind, self[kind]

    def total_value(self) -> float:
        return total_value(self)

    def holdings(self) -> list[tuple[AccountKind, float]]:
        """Current value of every account with a positive quantity."""
        return [(kind, valuation(inv)) for kind, inv in self.accounts() if inv.quantity > 0]

    @classmethod
    def from_snapshot(cls, data: Any) -> Portfolio:
        """Rebuild a portfolio, replacing any malformed account with its default."""
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Portfolio snapshot is not a mapping; using defaults.")
            return cls()

        accounts: dict[str, Investment] = {}
        for kind in AccountKind:
            raw = data.get(kind.value, data.get(kind.attr))
            if raw is None:
                accounts[kind.attr] = default_investment(kind)
                continue
            try:
                accounts[kind.attr] = Investment.model_validate(raw)
            except ValidationError:
                logger.warning("Malformed '%s' account in snapshot; using defaults.", kind.value)
                accounts[kind.attr] = default_investment(kind)
        return cls(**accounts)


def valuation(investment: Investment) -> float:
    """``quantity * value_per_unit``."""
    return investment.quantity * investment.value_per_unit


def total_value(portfolio: Portfolio) -> float:
    """Sum of valuations over all seven accounts, computed from scratch."""
    return sum(valuation(inv) for _, inv in portfolio.accounts())
