"""
Tests for the action catalog, driven through GameSession.

Tests verify:
  1. Catalog registration and lookup
  2. Each action's guard, cash and portfolio effects, and ledger entries
  3. Cash-out tax arithmetic
  4. One-shot actions fire at most once
  5. Cooldowns arm only when an action fires
  6. Visibility rules offered to the caller
"""

import math

import pytest

from models.config import GameConfig
from models.game import GameState
from models.ledger import MonetaryEntry
from models.portfolio import AccountKind, Portfolio
from simulation.actions import action_ids, get_action, register
from simulation.session import GameSession


# =============================================================================
# FIXTURES / HELPERS
# =============================================================================


def make_session(clock=None, **state_fields) -> GameSession:
    return GameSession(state=GameState(**state_fields), clock=clock)


def last_entries(session: GameSession, n: int) -> list:
    return session.transactions[-n:]


def assert_total_consistent(session: GameSession) -> None:
    state = session.state
    expected = sum(inv.quantity * inv.value_per_unit for _, inv in state.portfolio.accounts())
    assert state.total_portfolio_value == pytest.approx(expected)


@pytest.fixture
def rich_session(clock) -> GameSession:
    return make_session(clock=clock, cash=5000.0)


# =============================================================================
# 1. CATALOG
# =============================================================================


class TestCatalog:
    def test_all_actions_registered(self):
        assert set(action_ids()) == {
            "earn-money", "buy-vehicle", "work-second-job", "earn-equity",
            "deposit-hysa", "withdraw-savings", "invest-etfs", "invest-stocks",
            "invest-bonds", "invest-real-estate", "start-company", "hire-advisor",
            "manage-pr", "cashout-stocks", "cashout-etfs", "cashout-equity",
        }

    def test_unknown_action(self):
        with pytest.raises(KeyError, match="Unknown action 'fly'"):
            get_action("fly")

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            register("earn-money", cooldown=1)(lambda state, log, config: True)

    def test_one_shot_flags(self):
        one_shots = {aid for aid in action_ids() if get_action(aid).one_shot}
        assert one_shots == {"buy-vehicle", "start-company", "hire-advisor"}

    def test_work_cooldown_follows_state(self):
        spec = get_action("earn-money")
        assert spec.cooldown_for(GameState()) == 4000
        assert spec.cooldown_for(GameState(work_cooldown=2000)) == 2000


# =============================================================================
# 2. INDIVIDUAL ACTIONS
# =============================================================================


class TestIncome:
    def test_work_from_initial_cash(self):
        session = make_session()
        assert session.work() is True
        state = session.state
        assert state.cash == 110
        assert state.work_count == 1
        (entry,) = session.transactions
        assert isinstance(entry, MonetaryEntry)
        assert (entry.id, entry.account_type, entry.amount, entry.total) == (1, "Cash", 10, 110)

    def test_second_job_pays_fifteen(self):
        session = make_session()
        assert session.work_second_job()
        assert session.state.cash == 115
        assert session.state.work_count == 1
        assert session.transactions[-1].description == "Worked Second Job"

    def test_earn_equity_needs_no_cash(self):
        session = make_session(cash=0.0)
        assert session.earn_equity()
        state = session.state
        assert state.cash == 0
        assert state.portfolio.equity.quantity == 50
        entry = session.transactions[-1]
        assert entry.account_type == "Equity"
        assert entry.total == pytest.approx(50 * 1.06)
        assert_total_consistent(session)

    def test_buy_vehicle(self):
        session = make_session(cash=600.0)
        assert session.buy_vehicle()
        state = session.state
        assert state.cash == 100
        assert state.has_vehicle
        assert state.work_cooldown == 2000

    def test_buy_vehicle_needs_cash(self):
        session = make_session(cash=499.0)
        assert session.buy_vehicle() is False
        assert session.state.has_vehicle is False
        assert session.transactions == []


class TestInvestments:
    @pytest.mark.parametrize(
        "method, kind, amount, label",
        [
            ("deposit_hysa", AccountKind.SAVINGS, 100, "Savings"),
            ("invest_etfs", AccountKind.ETFS, 100, "Etfs"),
            ("invest_stocks", AccountKind.STOCKS, 50, "Stocks"),
            ("invest_bonds", AccountKind.BONDS, 100, "Bonds"),
            ("invest_real_estate", AccountKind.REAL_ESTATE, 200, "RealEstate"),
        ],
    )
    def test_invest_moves_cash_into_account(self, method, kind, amount, label):
        session = make_session(cash=1000.0)
        assert getattr(session, method)() is True

        state = session.state
        assert state.cash == 1000 - amount
        assert state.portfolio[kind].quantity == amount

        cash_entry, account_entry = last_entries(session, 2)
        assert (cash_entry.account_type, cash_entry.amount, cash_entry.total) == (
            "Cash", -amount, 1000 - amount,
        )
        assert account_entry.account_type == label
        assert account_entry.amount == amount
        assert account_entry.total == pytest.approx(amount * state.portfolio[kind].value_per_unit)
        assert {"Cash", label} <= state.unique_account_types
        assert_total_consistent(session)

    @pytest.mark.parametrize(
        "method, cash",
        [
            ("deposit_hysa", 99.0),
            ("invest_etfs", 99.0),
            ("invest_stocks", 49.0),
            ("invest_bonds", 99.0),
            ("invest_real_estate", 199.0),
        ],
    )
    def test_invest_without_cash_is_a_noop(self, method, cash):
        session = make_session(cash=cash)
        before = session.state
        assert getattr(session, method)() is False
        assert session.state == before
        assert session.transactions == []

    def test_withdraw_savings(self):
        portfolio = Portfolio()
        portfolio.savings.quantity = 150
        session = make_session(cash=0.0, portfolio=portfolio)
        assert session.withdraw_savings()
        state = session.state
        assert state.cash == 100
        assert state.portfolio.savings.quantity == 50
        cash_entry, savings_entry = last_entries(session, 2)
        assert cash_entry.total == 100
        assert savings_entry.amount == -100
        assert savings_entry.total == pytest.approx(50 * 1.005)

    def test_withdraw_needs_hundred_in_savings(self):
        portfolio = Portfolio()
        portfolio.savings.quantity = 99
        session = make_session(portfolio=portfolio)
        assert session.withdraw_savings() is False
        assert session.state.portfolio.savings.quantity == 99

    def test_start_company(self):
        session = make_session(cash=1200.0)
        assert session.start_company()
        state = session.state
        assert state.cash == 200
        assert state.company_owned
        assert state.company_age == 0
        assert state.portfolio.company.quantity == 1000
        assert state.portfolio.company.value_per_unit == 1.0
        cash_entry, company_entry = last_entries(session, 2)
        assert (company_entry.account_type, company_entry.amount, company_entry.total) == (
            "Company", 1000, 1000,
        )
        assert state.total_portfolio_value == pytest.approx(1000)

    def test_hire_advisor_lifts_every_rate(self):
        session = make_session(cash=100.0)
        before = session.state.portfolio
        assert session.hire_advisor()
        after = session.state.portfolio
        for kind in AccountKind:
            assert after[kind].value_per_unit == pytest.approx(before[kind].value_per_unit + 0.01)
        assert session.state.cash == 50
        assert session.state.advisor_hired

    def test_manage_pr(self):
        session = make_session(cash=45.0)
        assert session.manage_pr()
        assert session.manage_pr()
        assert session.manage_pr() is False
        state = session.state
        assert state.cash == 5
        assert state.pr_protection == pytest.approx(0.2)


# =============================================================================
# 3. CASH-OUT
# =============================================================================


class TestCashOut:
    def _session_holding(self, kind: AccountKind, quantity: float, value_per_unit: float):
        portfolio = Portfolio()
        portfolio[kind].quantity = quantity
        portfolio[kind].value_per_unit = value_per_unit
        return make_session(cash=100.0, portfolio=portfolio)

    def test_tax_on_gain(self):
        session = self._session_holding(AccountKind.STOCKS, 100, 1.05)
        assert session.cash_out_stocks()

        state = session.state
        assert state.cash == pytest.approx(100 + 104)
        assert state.portfolio.stocks.quantity == 0
        assert state.portfolio.stocks.value_per_unit == 1.05

        source, proceeds = session.transactions
        assert source.account_type == "Stocks"
        assert source.description == "Cashed out"
        assert source.amount == pytest.approx(-105)
        assert source.total == 0
        assert proceeds.account_type == "Cash"
        assert proceeds.amount == pytest.approx(104)
        assert proceeds.total == pytest.approx(204)
        assert_total_consistent(session)

    def test_loss_reduces_tax(self):
        session = self._session_holding(AccountKind.ETFS, 100, 0.9)
        assert session.cash_out_etfs()
        # gain -10, tax -2: proceeds exceed the current value
        assert session.state.cash == pytest.approx(100 + 90 + 2)

    def test_equity_cash_out(self):
        session = self._session_holding(AccountKind.EQUITY, 50, 1.06)
        assert session.cash_out_equity()
        assert session.state.cash == pytest.approx(100 + 53 - 50 * 0.06 * 0.2)
        assert session.transactions[-1].description == "Net proceeds from equity sale (after tax)"

    @pytest.mark.parametrize("method", ["cash_out_stocks", "cash_out_etfs", "cash_out_equity"])
    def test_zero_quantity_is_a_noop(self, method, clock):
        session = make_session(clock=clock)
        before = session.state
        assert getattr(session, method)() is False
        assert session.state == before
        assert session.transactions == []
        assert session.next_transaction_id == 1

    def test_custom_tax_rate(self):
        portfolio = Portfolio()
        portfolio.stocks.quantity = 100
        portfolio.stocks.value_per_unit = 1.5
        session = GameSession(
            GameConfig(capital_gains_tax_rate=0.5),
            state=GameState(cash=0.0, portfolio=portfolio),
        )
        session.cash_out_stocks()
        assert session.state.cash == pytest.approx(150 - 25)


# =============================================================================
# 4. ONE-SHOT ACTIONS
# =============================================================================


class TestOneShot:
    def test_each_fires_once_with_ample_cash(self, rich_session: GameSession):
        assert rich_session.buy_vehicle() is True
        assert rich_session.buy_vehicle() is False
        assert rich_session.start_company() is True
        assert rich_session.start_company() is False
        assert rich_session.hire_advisor() is True
        assert rich_session.hire_advisor() is False

        state = rich_session.state
        assert state.cash == pytest.approx(5000 - 500 - 1000 - 50)
        assert state.portfolio.savings.value_per_unit == pytest.approx(1.015)
        assert len(rich_session.transactions) == 1 + 2 + 1

    def test_one_shots_lock_permanently(self, rich_session: GameSession, clock):
        rich_session.buy_vehicle()
        clock.advance(10**9)
        assert rich_session.is_disabled("buy-vehicle")
        assert rich_session.remaining_fraction("buy-vehicle") == 0.0


# =============================================================================
# 5. COOLDOWN ARMING
# =============================================================================


class TestCooldownArming:
    def test_armed_on_success(self, clock):
        session = make_session(clock=clock)
        assert session.invest_stocks()
        assert session.is_disabled("invest-stocks")
        assert session.remaining_fraction("invest-stocks") == 1.0
        clock.advance(5000)
        assert session.remaining_fraction("invest-stocks") == pytest.approx(0.5)
        clock.advance(5000)
        assert not session.is_disabled("invest-stocks")

    def test_not_armed_when_guard_fails(self, clock):
        session = make_session(clock=clock)
        assert session.invest_real_estate() is False
        assert not session.is_disabled("invest-real-estate")
        assert session.cash_out_stocks() is False
        assert not session.is_disabled("cashout-stocks")

    def test_catalog_does_not_enforce_cooldown(self, clock):
        session = make_session(clock=clock)
        session.work()
        assert session.is_disabled("earn-money")
        assert session.work() is True
        assert session.state.cash == 120

    def test_vehicle_halves_work_cooldown(self, clock):
        session = make_session(clock=clock, cash=600.0)
        session.work()
        clock.advance(3999)
        assert session.is_disabled("earn-money")
        clock.advance(1)
        assert not session.is_disabled("earn-money")

        session.buy_vehicle()
        session.work()
        clock.advance(1999)
        assert session.is_disabled("earn-money")
        clock.advance(1)
        assert not session.is_disabled("earn-money")

    @pytest.mark.parametrize(
        "action_id, duration",
        [
            ("work-second-job", 8000),
            ("deposit-hysa", 5000),
            ("invest-etfs", 15000),
            ("earn-equity", 20000),
            ("invest-bonds", 20000),
            ("invest-real-estate", 40000),
            ("manage-pr", 4000),
        ],
    )
    def test_durations(self, action_id, duration, clock):
        session = make_session(clock=clock, cash=1000.0)
        assert session.perform(action_id)
        clock.advance(duration - 1)
        assert session.is_disabled(action_id)
        clock.advance(1)
        assert not session.is_disabled(action_id)

    def test_start_company_cooldown_is_infinite(self):
        assert math.isinf(get_action("start-company").cooldown_for(GameState()))


# =============================================================================
# 6. VISIBILITY
# =============================================================================


class TestVisibility:
    def test_fresh_game(self):
        session = make_session()
        available = session.available_actions()
        assert "earn-money" in available
        assert "invest-stocks" in available
        assert "deposit-hysa" in available
        assert "buy-vehicle" not in available
        assert "work-second-job" not in available
        assert "cashout-stocks" not in available
        assert "manage-pr" not in available

    def test_second_job_and_equity_unlock_with_work(self):
        assert make_session(work_count=5).is_visible("work-second-job")
        assert not make_session(work_count=5, second_job_available=False).is_visible("work-second-job")
        assert not make_session(work_count=9).is_visible("earn-equity")
        assert make_session(work_count=10).is_visible("earn-equity")

    def test_advisor_and_pr_need_portfolio_value(self):
        portfolio = Portfolio()
        portfolio.stocks.quantity = 200
        session = make_session(cash=60.0, portfolio=portfolio)
        assert session.is_visible("hire-advisor")
        assert not session.is_visible("manage-pr")
        session.hire_advisor()
        assert session.is_visible("manage-pr")

    def test_cooling_action_not_available(self, clock):
        session = make_session(clock=clock)
        session.work()
        assert "earn-money" not in session.available_actions()
