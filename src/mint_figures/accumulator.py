from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping

from .normalize import CanonicalRow
from .periods import Period, parse_period_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemRecord:
    item_id: str
    program_name: str
    quantity: int
    first_seen_period: Period
    latest_period: Period

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "programName": self.program_name,
            "quantity": self.quantity,
            "firstSeenPeriod": self.first_seen_period.key,
            "latestPeriod": self.latest_period.key,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ItemRecord":
        quantity = data["quantity"]
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValueError(f"Invalid quantity: {quantity!r}")
        return cls(
            item_id=str(data.get("itemId", "")),
            program_name=str(data.get("programName", "")),
            quantity=quantity,
            first_seen_period=parse_period_key(data["firstSeenPeriod"]),
            latest_period=parse_period_key(data["latestPeriod"]),
        )


def merge(
    existing: Mapping[str, ItemRecord], rows: Iterable[CanonicalRow]
) -> dict[str, ItemRecord]:
    """Fold one report's rows into the item map, returning a new map.

    Keyed by item name. A row at or after a record's latest period replaces
    its quantity and latest period; first-seen, id and program stay as first
    recorded. Rows older than the record's latest period are ignored, so a
    full re-run over an existing map changes nothing.
    """

    result = dict(existing)
    for row in rows:
        name = row.item_name.strip()
        if not name or row.quantity < 0:
            continue

        current = result.get(name)
        if current is None:
            result[name] = ItemRecord(
                item_id=row.item_id,
                program_name=row.program_name,
                quantity=row.quantity,
                first_seen_period=row.period,
                latest_period=row.period,
            )
            continue

        if row.period < current.latest_period:
            continue

        if row.quantity < current.quantity:
            logger.warning(
                "Quantity for %r dropped from %d (%s) to %d (%s)",
                name,
                current.quantity,
                current.latest_period,
                row.quantity,
                row.period,
            )
        result[name] = replace(current, quantity=row.quantity, latest_period=row.period)
    return result


def dump_records(records: Mapping[str, ItemRecord]) -> dict[str, dict[str, Any]]:
    return {name: record.to_dict() for name, record in records.items()}


def load_records(data: Mapping[str, Any] | None) -> dict[str, ItemRecord]:
    """Rebuild the item map from its JSON form, dropping invalid entries."""

    records: dict[str, ItemRecord] = {}
    for name, raw in (data or {}).items():
        try:
            records[name] = ItemRecord.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Dropping unreadable record %r: %s", name, e)
    return records


def latest_period(records: Mapping[str, ItemRecord]) -> Period | None:
    return max((r.latest_period for r in records.values()), default=None)
