"""Action catalog: every player-triggered transition of the economy.

Each action is a plain function ``(state, log, config) -> bool`` registered
under its action id. The function checks its guard first and returns
``False`` without touching anything when the guard fails. Otherwise it
mutates the *working copy* of the state it is given, reports ledger entries
through ``log`` and returns ``True``; the session commits state, entries and
cooldown together.

Usage::

    from simulation.actions import get_action

    spec = get_action("invest-stocks")
    fired = spec.handler(working_state, log, config)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Protocol

from models.config import GameConfig
from models.game import GameState
from models.portfolio import AccountKind, valuation


class LogFn(Protocol):
    def __call__(
        self,
        account_type: str,
        description: str,
        amount: float | None = None,
        total: float | None = None,
    ) -> None: ...


Handler = Callable[[GameState, LogFn, GameConfig], bool]
CooldownSpec = float | Callable[[GameState], float]

PERMANENT = math.inf
VEHICLE_WORK_COOLDOWN_MS = 2000.0


@dataclass(frozen=True)
class ActionSpec:
    """Registered action: id, handler, cooldown and visibility rule."""

    action_id: str
    name: str
    handler: Handler
    cooldown: CooldownSpec
    visible: Callable[[GameState], bool]

    def cooldown_for(self, state: GameState) -> float:
        """Cooldown length, read from the state as it was before the action ran."""
        return self.cooldown(state) if callable(self.cooldown) else self.cooldown

    @property
    def one_shot(self) -> bool:
        return not callable(self.cooldown) and math.isinf(self.cooldown)


# ---------------------------------------------------------------------------
# Registry mapping
# ---------------------------------------------------------------------------
_CATALOG: dict[str, ActionSpec] = {}


def _always(state: GameState) -> bool:
    return True


def register(
    action_id: str,
    *,
    cooldown: CooldownSpec,
    visible: Callable[[GameState], bool] = _always,
):
    """Decorator to register an action handler under *action_id*."""

    def _decorator(fn: Handler) -> Handler:
        if action_id in _CATALOG:
            raise ValueError(f"Action '{action_id}' is already registered.")
        _CATALOG[action_id] = ActionSpec(
            action_id=action_id,
            name=fn.__name__,
            handler=fn,
            cooldown=cooldown,
            visible=visible,
        )
        return fn

    return _decorator


def get_action(action_id: str) -> ActionSpec:
    """Look up a registered action.

    Raises ``KeyError`` if *action_id* is not in the catalog.
    """
    if action_id not in _CATALOG:
        available = ", ".join(sorted(_CATALOG)) or "(none)"
        raise KeyError(f"Unknown action '{action_id}'. Available: {available}.")
    return _CATALOG[action_id]


def action_ids() -> list[str]:
    """All registered ids, in registration order."""
    return list(_CATALOG)


# ---------------------------------------------------------------------------
# Shared transitions
# ---------------------------------------------------------------------------

def _invest(
    state: GameState,
    log: LogFn,
    kind: AccountKind,
    amount: float,
    cash_description: str,
    account_description: str = "Investment",
) -> bool:
    if state.cash < amount:
        return False
    account = state.portfolio[kind]
    state.cash -= amount
    account.quantity += amount
    log("Cash", cash_description, -amount, state.cash)
    log(kind.label, account_description, amount, valuation(account))
    return True


def cash_out(state: GameState, log: LogFn, kind: AccountKind, tax_rate: float) -> bool:
    """Sell the whole *kind* account, paying tax on the gain over a cost basis of 1.

    The per-unit value is left as it is, so a later purchase starts from the
    current rate.
    """
    account = state.portfolio[kind]
    if account.quantity <= 0:
        return False

    current_value = valuation(account)
    gain = account.quantity * (account.value_per_unit - 1)
    tax = gain * tax_rate
    net_proceeds = current_value - tax

    state.cash += net_proceeds
    account.quantity = 0.0
    log(kind.label, "Cashed out", -current_value, 0.0)
    log("Cash", f"Net proceeds from {kind.value} sale (after tax)", net_proceeds, state.cash)
    return True


# ---------------------------------------------------------------------------
# Income
# ---------------------------------------------------------------------------

@register("earn-money", cooldown=lambda state: state.work_cooldown)
def work(state: GameState, log: LogFn, config: GameConfig) -> bool:
    state.cash += 10
    state.work_count += 1
    log("Cash", "Worked for Money", 10, state.cash)
    return True


@register("buy-vehicle", cooldown=PERMANENT, visible=lambda s: s.cash >= 500)
def buy_vehicle(state: GameState, log: LogFn, config: GameConfig) -> bool:
    """Permanently shortens the work cooldown."""
    if state.cash < 500 or state.has_vehicle:
        return False
    state.cash -= 500
    state.has_vehicle = True
    state.work_cooldown = VEHICLE_WORK_COOLDOWN_MS
    log("Cash", "Bought Vehicle - Work time reduced", -500, state.cash)
    return True


# Offered only while the job exists; the handler itself does not check.
@register(
    "work-second-job",
    cooldown=8000,
    visible=lambda s: s.work_count >= 5 and s.second_job_available,
)
def work_second_job(state: GameState, log: LogFn, config: GameConfig) -> bool:
    state.cash += 15
    state.work_count += 1
    log("Cash", "Worked Second Job", 15, state.cash)
    return True


@register("earn-equity", cooldown=20000, visible=lambda s: s.work_count >= 10)
def earn_equity(state: GameState, log: LogFn, config: GameConfig) -> bool:
    account = state.portfolio[AccountKind.EQUITY]
    account.quantity += 50
    log(AccountKind.EQUITY.label, "Earned Company Equity", 50, valuation(account))
    return True


# ---------------------------------------------------------------------------
# Savings and investments
# ---------------------------------------------------------------------------

@register("deposit-hysa", cooldown=5000, visible=lambda s: s.cash >= 100)
def deposit_hysa(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return _invest(state, log, AccountKind.SAVINGS, 100, "Deposited to HYSA", "Deposit")


@register(
    "withdraw-savings",
    cooldown=5000,
    visible=lambda s: s.portfolio.savings.quantity >= 100,
)
def withdraw_savings(state: GameState, log: LogFn, config: GameConfig) -> bool:
    savings = state.portfolio[AccountKind.SAVINGS]
    if savings.quantity < 100:
        return False
    state.cash += 100
    savings.quantity -= 100
    log("Cash", "Withdrew from HYSA", 100, state.cash)
    log(AccountKind.SAVINGS.label, "Withdrawal", -100, valuation(savings))
    return True


@register("invest-etfs", cooldown=15000, visible=lambda s: s.cash >= 100)
def invest_etfs(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return _invest(state, log, AccountKind.ETFS, 100, "Invested in ETFs")


@register("invest-stocks", cooldown=10000, visible=lambda s: s.cash >= 50)
def invest_stocks(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return _invest(state, log, AccountKind.STOCKS, 50, "Invested in Stocks")


@register("invest-bonds", cooldown=20000, visible=lambda s: s.cash >= 100)
def invest_bonds(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return _invest(state, log, AccountKind.BONDS, 100, "Invested in Bonds")


@register("invest-real-estate", cooldown=40000, visible=lambda s: s.cash >= 200)
def invest_real_estate(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return _invest(state, log, AccountKind.REAL_ESTATE, 200, "Invested in Real Estate")


# ---------------------------------------------------------------------------
# One-shot upgrades
# ---------------------------------------------------------------------------

@register("start-company", cooldown=PERMANENT, visible=lambda s: s.cash >= 1000)
def start_company(state: GameState, log: LogFn, config: GameConfig) -> bool:
    if state.cash < 1000 or state.company_owned:
        return False
    company = state.portfolio[AccountKind.COMPANY]
    state.cash -= 1000
    state.company_owned = True
    state.company_age = 0
    company.quantity = 1000.0
    company.value_per_unit = 1.0
    log("Cash", "Started Company", -1000, state.cash)
    log(AccountKind.COMPANY.label, "Initial Investment", 1000, valuation(company))
    return True


@register(
    "hire-advisor",
    cooldown=PERMANENT,
    visible=lambda s: s.cash >= 50 and s.total_portfolio_value >= 100,
)
def hire_advisor(state: GameState, log: LogFn, config: GameConfig) -> bool:
    """Adds 0.01 to the per-unit value of every account, held or not."""
    if state.cash < 50 or state.advisor_hired:
        return False
    state.cash -= 50
    state.advisor_hired = True
    for _, account in state.portfolio.accounts():
        account.value_per_unit += 0.01
    log("Cash", "Hired a financial advisor. Investment returns improved.", -50, state.cash)
    return True


@register(
    "manage-pr",
    cooldown=4000,
    visible=lambda s: s.advisor_hired and s.total_portfolio_value >= 200,
)
def manage_pr(state: GameState, log: LogFn, config: GameConfig) -> bool:
    if state.cash < 20:
        return False
    state.cash -= 20
    state.pr_protection += 0.1
    log("Cash", "Spent on PR management. Protection increased.", -20, state.cash)
    return True


# ---------------------------------------------------------------------------
# Cash-outs
# ---------------------------------------------------------------------------

@register(
    "cashout-stocks",
    cooldown=5000,
    visible=lambda s: s.portfolio.stocks.quantity > 0,
)
def cash_out_stocks(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return cash_out(state, log, AccountKind.STOCKS, config.capital_gains_tax_rate)


@register(
    "cashout-etfs",
    cooldown=5000,
    visible=lambda s: s.portfolio.etfs.quantity > 0,
)
def cash_out_etfs(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return cash_out(state, log, AccountKind.ETFS, config.capital_gains_tax_rate)


@register(
    "cashout-equity",
    cooldown=5000,
    visible=lambda s: s.portfolio.equity.quantity > 0,
)
def cash_out_equity(state: GameState, log: LogFn, config: GameConfig) -> bool:
    return cash_out(state, log, AccountKind.EQUITY, config.capital_gains_tax_rate)
