"""Snapshot persistence for a game session.

The store keeps two JSON documents side by side::

    {directory}/
    ├── finance-game-state.json          # GameState snapshot
    └── finance-game-transactions.json   # ledger entries, oldest first

Persistence is best effort. Unreadable files load as ``None`` and failed
writes are logged; the in-memory session stays authoritative either way.
Once a change is observed on a running event loop, saves are handed to a
single background worker that writes them in order, so ticks never wait on
disk. ``flush()`` waits for pending writes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Any

from models.game import GameState
from models.ledger import InfoEntry, MonetaryEntry, dump_transactions, transactions_from_snapshot

if TYPE_CHECKING:
    from simulation.session import GameSession

logger = logging.getLogger(__name__)

GAME_STATE_FILE = "finance-game-state.json"
TRANSACTIONS_FILE = "finance-game-transactions.json"


class SnapshotStore:
    """Directory-backed store for the (GameState, transactions) snapshot pair."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._writer: ThreadPoolExecutor | None = None
        self._writer_guard = threading.Lock()

    @property
    def state_path(self) -> Path:
        return self._dir / GAME_STATE_FILE

    @property
    def transactions_path(self) -> Path:
        return self._dir / TRANSACTIONS_FILE

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_snapshot(self) -> tuple[GameState | None, list[MonetaryEntry | InfoEntry] | None]:
        """Return the stored state and transactions, ``None`` for whichever is absent."""
        raw_state = _read_json(self.state_path)
        raw_transactions = _read_json(self.transactions_path)

        state = GameState.from_snapshot(raw_state) if raw_state is not None else None
        transactions = (
            transactions_from_snapshot(raw_transactions) if raw_transactions is not None else None
        )
        if state is not None or transactions is not None:
            logger.info("Loaded snapshot from %s", self._dir)
        return state, transactions

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def save_state(self, state: GameState) -> bool:
        return _write_json(self.state_path, state.to_snapshot())

    def save_transactions(self, transactions: list[MonetaryEntry | InfoEntry]) -> bool:
        return _write_json(self.transactions_path, dump_transactions(transactions))

    def flush(self) -> None:
        """Block until every queued background write has finished."""
        with self._writer_guard:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.shutdown(wait=True)

    def clear(self) -> None:
        """Delete both snapshot files if present."""
        self.flush()
        for path in (self.state_path, self.transactions_path):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.exception("Failed to remove %s", path)

    def attach(self, session: GameSession) -> None:
        """Save both snapshots whenever *session* changes."""
        session.subscribe(self._on_change)

    def _on_change(self, session: GameSession) -> None:
        state, transactions = session.state, session.transactions
        with self._writer_guard:
            # once a background writer exists every save goes through it, keeping order
            if self._writer is None and _on_event_loop():
                self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer")
            if self._writer is not None:
                self._writer.submit(self._save, state, transactions)
                return
        self._save(state, transactions)

    def _save(self, state: GameState, transactions: list[MonetaryEntry | InfoEntry]) -> None:
        self.save_state(state)
        self.save_transactions(transactions)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _read_json(path: Path) -> Any:
    """Parsed contents of *path*, or ``None`` if it is missing or unreadable."""
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Failed to load %s: %s", path, exc)
        return None


def _write_json(path: Path, data: Any) -> bool:
    """Write *data* as pretty-printed JSON, replacing *path* atomically."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(path)
    except (OSError, TypeError, ValueError):
        logger.exception("Failed to save %s", path)
        return False
    return True
