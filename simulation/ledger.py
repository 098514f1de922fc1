"""Append-only transaction ledger.

The ledger owns the transaction-id counter: ids start at 1, increase by one
per entry, and after a restore continue from the highest restored id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator

from models.ledger import InfoEntry, MonetaryEntry, SeriesPoint, utcnow

Entry = MonetaryEntry | InfoEntry


class Ledger:
    """Ordered sequence of immutable entries with read-side filtering."""

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._entries: list[Entry] = []
        self._next_id = 1
        self.restore(entries)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(
        self,
        account_type: str,
        description: str,
        amount: float | None = None,
        total: float | None = None,
        timestamp: datetime | None = None,
    ) -> Entry:
        """Append a monetary entry, or an informational one when both numbers are omitted."""
        if (amount is None) != (total is None):
            raise ValueError(
                f"Ledger entry '{description}' needs both amount and total, or neither."
            )

        fields = {
            "id": self._next_id,
            "account_type": account_type,
            "description": description,
            "timestamp": timestamp or utcnow(),
        }
        if amount is None:
            entry: Entry = InfoEntry(**fields)
        else:
            entry = MonetaryEntry(**fields, amount=amount, total=total)

        self._entries.append(entry)
        self._next_id += 1
        return entry

    def restore(self, entries: Iterable[Entry]) -> None:
        """Replace the contents with previously persisted *entries*.

        Raises ``ValueError`` on duplicate ids; those can only come from a
        defect in whatever produced the snapshot.
        """
        restored = sorted(entries, key=lambda e: e.id)
        ids = [e.id for e in restored]
        if len(ids) != len(set(ids)):
            raise ValueError("Restored ledger contains duplicate transaction ids.")
        self._entries = restored
        self._next_id = (ids[-1] + 1) if ids else 1

    def clear(self) -> None:
        self._entries = []
        self._next_id = 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def next_id(self) -> int:
        return self._next_id

    def entries(self) -> list[Entry]:
        return list(self._entries)

    def filter(self, account_types: Iterable[str]) -> list[Entry]:
        """Entries whose category is in *account_types*; all entries if it is empty."""
        wanted = set(account_types)
        if not wanted:
            return self.entries()
        return [e for e in self._entries if e.account_type in wanted]

    def account_series(self, account_types: Iterable[str] = ()) -> dict[str, list[SeriesPoint]]:
        """Cumulative sum of amounts per category, in ledger order.

        Informational entries add a point without moving the value.
        """
        series: dict[str, list[SeriesPoint]] = {}
        for entry in self.filter(account_types):
            points = series.setdefault(entry.account_type, [])
            last = points[-1].value if points else 0.0
            delta = entry.amount if isinstance(entry, MonetaryEntry) else 0.0
            points.append(
                SeriesPoint(timestamp=entry.timestamp, value=last + delta, label=entry.description)
            )
        return series

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(list(self._entries))
