"""Ledger entry models.

- ``MonetaryEntry``: a cash or account movement with the account's new running total.
- ``InfoEntry``: a narrative event with no monetary fields (layoffs, unpaid costs).
- ``Transaction``: discriminated union of the two, keyed on ``kind``.

Entries are frozen once built; the ``Ledger`` in ``simulation.ledger`` is the
only thing that creates them at run time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EntryBase(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: int = Field(ge=1)
    account_type: str
    description: str
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        """Accept ISO-8601 strings; anything unreadable becomes "now"."""
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                pass
        return utcnow()


class MonetaryEntry(_EntryBase):
    """Signed movement plus the category's balance after it."""

    kind: Literal["monetary"] = "monetary"
    amount: float
    total: float


class InfoEntry(_EntryBase):
    """Informational event; carries no amount or total."""

    kind: Literal["info"] = "info"


Transaction = Annotated[Union[MonetaryEntry, InfoEntry], Field(discriminator="kind")]

_TRANSACTION_ADAPTER: TypeAdapter[Transaction] = TypeAdapter(Transaction)


class SeriesPoint(BaseModel):
    """One point of a category's cumulative-amount series."""

    timestamp: datetime
    value: float
    label: str


def transaction_from_dict(data: dict[str, Any]) -> MonetaryEntry | InfoEntry:
    """Validate one persisted entry.

    Entries written before the ``kind`` tag existed carry ``amount``/``total``
    as ``null`` for informational events; the tag is inferred from those.
    """
    if "kind" not in data:
        is_info = data.get("amount") is None and data.get("total") is None
        data = {**data, "kind": "info" if is_info else "monetary"}
        if is_info:
            data.pop("amount", None)
            data.pop("total", None)
    return _TRANSACTION_ADAPTER.validate_python(data)


def transactions_from_snapshot(data: Any) -> list[MonetaryEntry | InfoEntry]:
    """Rebuild a persisted entry list, skipping entries that cannot be read."""
    if not isinstance(data, list):
        if data is not None:
            logger.warning("Transaction snapshot is not a list; starting with an empty ledger.")
        return []

    entries: list[MonetaryEntry | InfoEntry] = []
    seen: set[int] = set()
    for idx, raw in enumerate(data):
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object transaction at index %d.", idx)
            continue
        try:
            entry = transaction_from_dict(raw)
        except ValidationError as exc:
            logger.warning("Skipping malformed transaction at index %d: %s", idx, exc.errors()[0]["msg"])
            continue
        if entry.id in seen:
            logger.warning("Skipping duplicate transaction id %d at index %d.", entry.id, idx)
            continue
        seen.add(entry.id)
        entries.append(entry)
    return entries


def dump_transactions(entries: list[MonetaryEntry | InfoEntry]) -> list[dict[str, Any]]:
    """JSON-ready encoding of *entries* (camelCase keys, ISO timestamps)."""
    return [entry.model_dump(mode="json", by_alias=True) for entry in entries]
