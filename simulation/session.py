"""Game session: the single owner of state, ledger and cooldowns.

Every mutation (player action, background tick, filter toggle, reset) runs
through ``GameSession._mutate`` under one re-entrant lock, on a deep copy of
the state that is committed together with its ledger entries only when the
mutation completes. Readers get copies, never the live objects.

Lifecycle:
    1. Construct (fresh, or from a persisted snapshot via ``from_store``).
    2. ``start()`` inside a running event loop to begin background ticks.
    3. Invoke actions; subscribers are notified after every change.
    4. ``reset_game()`` at any point; ``stop()`` when the session ends.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import TYPE_CHECKING, Callable, Iterable

from models.config import GameConfig
from models.game import GameState, initial_state
from models.ledger import InfoEntry, MonetaryEntry, SeriesPoint
from simulation.actions import action_ids, get_action
from simulation.cooldowns import CooldownTracker
from simulation.ledger import Ledger
from simulation.ticks import TickScheduler, run_event_tick, run_yield_tick

if TYPE_CHECKING:
    from simulation.storage import SnapshotStore

logger = logging.getLogger(__name__)

Subscriber = Callable[["GameSession"], None]
_PendingEntry = tuple[str, str, "float | None", "float | None"]


class GameSession:
    """One player's game: economy, ledger, cooldowns and background ticks."""

    def __init__(
        self,
        config: GameConfig | None = None,
        *,
        state: GameState | None = None,
        transactions: Iterable[MonetaryEntry | InfoEntry] = (),
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or GameConfig()
        self._lock = threading.RLock()
        self._rng = rng or random.Random()
        self._cooldowns = CooldownTracker(clock=clock)
        self._ledger = Ledger(transactions)
        self._state = (
            state.model_copy(deep=True).with_total()
            if state is not None
            else initial_state(self._config)
        )
        self._subscribers: list[Subscriber] = []
        self._scheduler = TickScheduler(
            on_yield=self.run_yield_tick,
            on_event=self.run_event_tick,
            config=self._config.ticks,
        )

    @classmethod
    def from_store(cls, store: SnapshotStore, config: GameConfig | None = None, **kwargs) -> GameSession:
        """Resume from *store* (or start fresh) and keep the store updated."""
        state, transactions = store.load_snapshot()
        session = cls(config, state=state, transactions=transactions or (), **kwargs)
        store.attach(session)
        logger.info(
            "Session restored: cash $%.2f, %d transaction(s).",
            session._state.cash,
            len(session._ledger),
        )
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Log the welcome entry on an empty ledger and start the background ticks."""
        if self._config.welcome_message and len(self._ledger) == 0:

            def _welcome(state: GameState, log: Callable[..., None]) -> bool:
                log("Cash", self._config.welcome_text(state.cash), state.cash, state.cash)
                return True

            self._mutate(_welcome)
        self._scheduler.start()

    def stop(self) -> None:
        self._scheduler.stop()

    async def aclose(self) -> None:
        await self._scheduler.aclose()

    @property
    def ticking(self) -> bool:
        return self._scheduler.running

    def reset_game(self) -> None:
        """Return to the initial snapshot with an empty ledger and no cooldowns.

        If background ticks are running they are restarted, so both periods
        count from the reset. Safe to call from a thread other than the one
        running the event loop.
        """
        with self._lock:
            self._cooldowns.reset()
            self._state = initial_state(self._config)
            self._ledger.clear()
            if self._scheduler.running:
                self._scheduler.restart()
        logger.info("Game reset.")
        self._notify()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def config(self) -> GameConfig:
        return self._config

    @property
    def state(self) -> GameState:
        with self._lock:
            return self._state.model_copy(deep=True)

    @property
    def transactions(self) -> list[MonetaryEntry | InfoEntry]:
        with self._lock:
            return self._ledger.entries()

    @property
    def next_transaction_id(self) -> int:
        with self._lock:
            return self._ledger.next_id

    def filtered_transactions(self) -> list[MonetaryEntry | InfoEntry]:
        """Ledger entries in the categories selected by ``toggle_filter``."""
        with self._lock:
            return self._ledger.filter(self._state.active_filters)

    def account_series(self) -> dict[str, list[SeriesPoint]]:
        with self._lock:
            return self._ledger.account_series(self._state.active_filters)

    # ------------------------------------------------------------------
    # Cooldown and availability queries
    # ------------------------------------------------------------------

    def is_disabled(self, action_id: str) -> bool:
        with self._lock:
            return self._cooldowns.is_disabled(action_id)

    def remaining_fraction(self, action_id: str) -> float:
        with self._lock:
            return self._cooldowns.remaining_fraction(action_id)

    def is_visible(self, action_id: str) -> bool:
        """Whether the action should be offered given the current state."""
        spec = get_action(action_id)
        with self._lock:
            return spec.visible(self._state)

    def available_actions(self) -> list[str]:
        """Action ids that are both visible and off cooldown."""
        with self._lock:
            return [
                aid
                for aid in action_ids()
                if get_action(aid).visible(self._state) and not self._cooldowns.is_disabled(aid)
            ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def perform(self, action_id: str) -> bool:
        """Run the action registered as *action_id*.

        Cooldowns are not checked here; gating on ``is_disabled`` is the
        caller's job. Returns ``False`` (and changes nothing, including the
        cooldown) when the action's precondition is not met.
        """
        spec = get_action(action_id)
        with self._lock:
            cooldown_ms = spec.cooldown_for(self._state)
            fired = self._mutate(
                lambda state, log: spec.handler(state, log, self._config),
                notify=False,
            )
            if fired:
                self._cooldowns.arm(action_id, cooldown_ms)
        if not fired:
            logger.debug("Action '%s' skipped: precondition not met.", action_id)
            return False
        self._notify()
        return True

    def work(self) -> bool:
        return self.perform("earn-money")

    def buy_vehicle(self) -> bool:
        return self.perform("buy-vehicle")

    def work_second_job(self) -> bool:
        return self.perform("work-second-job")

    def deposit_hysa(self) -> bool:
        return self.perform("deposit-hysa")

    def withdraw_savings(self) -> bool:
        return self.perform("withdraw-savings")

    def invest_etfs(self) -> bool:
        return self.perform("invest-etfs")

    def earn_equity(self) -> bool:
        return self.perform("earn-equity")

    def invest_stocks(self) -> bool:
        return self.perform("invest-stocks")

    def invest_bonds(self) -> bool:
        return self.perform("invest-bonds")

    def invest_real_estate(self) -> bool:
        return self.perform("invest-real-estate")

    def start_company(self) -> bool:
        return self.perform("start-company")

    def hire_advisor(self) -> bool:
        return self.perform("hire-advisor")

    def manage_pr(self) -> bool:
        return self.perform("manage-pr")

    def cash_out_stocks(self) -> bool:
        return self.perform("cashout-stocks")

    def cash_out_etfs(self) -> bool:
        return self.perform("cashout-etfs")

    def cash_out_equity(self) -> bool:
        return self.perform("cashout-equity")

    def run_yield_tick(self) -> None:
        """Fire the passive-yield / company-lifecycle tick once."""

        def _tick(state: GameState, log: Callable[..., None]) -> bool:
            run_yield_tick(state, log, self._config.ticks)
            return True

        logger.debug("Yield tick.")
        self._mutate(_tick)

    def run_event_tick(self) -> None:
        """Fire the random-event tick once."""

        def _tick(state: GameState, log: Callable[..., None]) -> bool:
            run_event_tick(state, log, self._config.ticks, self._rng)
            return True

        logger.debug("Event tick.")
        self._mutate(_tick)

    def toggle_filter(self, account_type: str) -> None:
        """Show or hide *account_type* in the filtered ledger view."""
        with self._lock:
            self._state.active_filters ^= {account_type}
        self._notify()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call *callback(session)* after every change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _mutate(
        self,
        step: Callable[[GameState, Callable[..., None]], bool],
        notify: bool = True,
    ) -> bool:
        """Apply *step* to a copy of the state and commit it if it returns ``True``.

        Entries logged by *step* are appended to the ledger in order, their
        categories recorded in ``unique_account_types``, and the total value
        recomputed, all before the lock is released.
        """
        with self._lock:
            working = self._state.model_copy(deep=True)
            pending: list[_PendingEntry] = []

            def _log(account_type: str, description: str, amount=None, total=None) -> None:
                pending.append((account_type, description, amount, total))

            if not step(working, _log):
                return False

            for account_type, description, amount, total in pending:
                self._ledger.append(account_type, description, amount, total)
                working.unique_account_types.add(account_type)
            working.refresh_total()
            self._state = working

        if notify:
            self._notify()
        return True

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception:
                logger.exception("Session subscriber %r failed.", callback)
