"""Background tick engine: passive yield, company lifecycle, random events.

The two tick functions mutate a working copy of the state in the same
``(state, log, ...)`` shape as the action handlers, so the session commits
them the same way. ``TickScheduler`` fires them periodically from two
independent asyncio tasks that are started and cancelled together.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import threading
from typing import Callable

from models.config import TickConfig
from models.game import GameState
from models.portfolio import AccountKind, valuation
from simulation.actions import LogFn

logger = logging.getLogger(__name__)

LAYOFF_MESSAGE = (
    "Life event: Layoffs at your second job. You were one of them. "
    "Second job no longer available."
)


def company_tier(age: int) -> tuple[float, float]:
    """``(value factor, operating cost)`` for a company of *age* ticks."""
    if age < 5:
        return 0.95, 100.0
    if age < 10:
        return 0.98, 50.0
    return 1.1 + (age - 10) * 0.05, 0.0


# ------------------------------------------------------------------
# Yield and company lifecycle
# ------------------------------------------------------------------

def run_yield_tick(state: GameState, log: LogFn, config: TickConfig) -> None:
    """Pay passive yield on every held account and age the company."""
    for kind, account in state.portfolio.accounts():
        if kind is AccountKind.COMPANY or account.quantity <= 0:
            continue
        growth = account.quantity * (account.value_per_unit - 1) * config.yield_rate
        state.cash += growth
        log("Cash", f"Yield from {kind.label}", growth, state.cash)

    if state.company_owned:
        _age_company(state, log)

    state.refresh_total()


def _age_company(state: GameState, log: LogFn) -> None:
    state.company_age += 1
    factor, cost = company_tier(state.company_age)

    if cost > 0:
        if state.cash >= cost:
            state.cash -= cost
            log("Cash", "Company operating costs", -cost, state.cash)
        else:
            log("Event", "Company operating costs due, but insufficient cash.")

    company = state.portfolio[AccountKind.COMPANY]
    old_value = valuation(company)
    company.value_per_unit *= factor
    new_value = valuation(company)
    growth = new_value - old_value
    log(AccountKind.COMPANY.label, "Value Change", growth, new_value)

    # Losses only shrink the valuation; they never come out of cash.
    if growth > 0:
        state.cash += growth
        log("Cash", "Company Profit", growth, state.cash)


# ------------------------------------------------------------------
# Random events
# ------------------------------------------------------------------

def run_event_tick(
    state: GameState,
    log: LogFn,
    config: TickConfig,
    rng: random.Random,
) -> None:
    """Roll for a PR attack and, independently, for a second-job layoff."""
    if rng.random() < config.pr_attack_probability and state.total_portfolio_value > 0:
        _pr_attack(state, log, config, rng)

    if (
        rng.random() < config.layoff_probability
        and state.second_job_available
        and state.work_count >= config.layoff_min_work_count
    ):
        state.second_job_available = False
        log("Event", LAYOFF_MESSAGE)


def _pr_attack(state: GameState, log: LogFn, config: TickConfig, rng: random.Random) -> None:
    shield = 1 - state.pr_protection
    if config.clamp_pr_protection:
        shield = max(shield, 0.0)
    impact = rng.uniform(config.pr_attack_min_impact, config.pr_attack_max_impact) * shield
    if impact == 0:
        logger.debug("PR attack fully absorbed (protection %.2f).", state.pr_protection)
        return

    for kind, account in state.portfolio.accounts():
        if account.quantity <= 0 or account.risk_weight <= 0:
            continue
        indiv_impact = impact * account.risk_weight
        loss = valuation(account) * indiv_impact
        account.value_per_unit *= 1 - indiv_impact
        log(kind.label, "PR Attack - Scandal", -loss, valuation(account))


# ------------------------------------------------------------------
# Scheduling
# ------------------------------------------------------------------

class TickScheduler:
    """Runs the yield and event callbacks on their own fixed periods.

    ``start`` must be called from inside a running event loop, and the tasks
    always live on that loop. ``stop`` and ``restart`` may be called from any
    thread: work that touches the tasks is handed to the loop thread. ``stop``
    is safe to call repeatedly and the scheduler can be started again
    afterwards.
    """

    def __init__(
        self,
        on_yield: Callable[[], None],
        on_event: Callable[[], None],
        config: TickConfig,
    ) -> None:
        self._on_yield = on_yield
        self._on_event = on_event
        self._config = config
        self._tasks: list[asyncio.Task] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._active = False
        # bumped on every start/stop so a queued spawn from an older start is dropped
        self._generation = 0
        self._guard = threading.RLock()

    @property
    def running(self) -> bool:
        return self._active

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        with self._guard:
            if self._active:
                return
            self._loop = loop
            self._activate()
        logger.info(
            "Tick scheduler started (yield every %dms, events every %dms).",
            self._config.yield_period_ms,
            self._config.event_period_ms,
        )

    def stop(self) -> None:
        with self._guard:
            if not self._active:
                return
            self._deactivate()
        logger.info("Tick scheduler stopped.")

    def restart(self) -> bool:
        """Cancel the current tasks and start fresh ones on the same loop.

        Returns ``False`` (and does nothing) if the scheduler was never
        started or its loop has since closed.
        """
        with self._guard:
            if self._loop is None or self._loop.is_closed():
                return False
            self._deactivate()
            self._activate()
        logger.info("Tick scheduler restarted.")
        return True

    async def aclose(self) -> None:
        """Stop and wait until both tasks have finished unwinding."""
        with self._guard:
            tasks = list(self._tasks)
        self.stop()
        await asyncio.gather(*tasks, return_exceptions=True)

    # Both helpers expect self._guard to be held.

    def _activate(self) -> None:
        self._active = True
        self._generation += 1
        self._call_on_loop(functools.partial(self._spawn, self._generation))

    def _deactivate(self) -> None:
        self._active = False
        self._generation += 1
        tasks, self._tasks = self._tasks, []
        if tasks:
            self._call_on_loop(functools.partial(_cancel_all, tasks))

    def _spawn(self, generation: int) -> None:
        with self._guard:
            if generation != self._generation:
                return
            self._tasks = [
                self._loop.create_task(
                    self._run("yield", self._config.yield_period_ms, self._on_yield)
                ),
                self._loop.create_task(
                    self._run("event", self._config.event_period_ms, self._on_event)
                ),
            ]

    def _call_on_loop(self, callback: Callable[[], None]) -> None:
        loop = self._loop
        if _running_loop() is loop:
            callback()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(callback)

    @staticmethod
    async def _run(name: str, period_ms: int, fire: Callable[[], None]) -> None:
        period = period_ms / 1000.0
        while True:
            await asyncio.sleep(period)
            try:
                fire()
            except Exception:
                logger.exception("%s tick failed; skipping this period.", name.capitalize())


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _cancel_all(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
