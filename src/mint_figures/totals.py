from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from .accumulator import ItemRecord, latest_period
from .periods import Period

ROLLS_PROGRAM = "Rolls & Bags & Boxes"

AMERICAN_INNOVATION_ITEM = re.compile(
    r"(\d{4}) AI \$1 (25|100)-COIN (?:ROLL|BAG|)(?: - ([A-Z]{2}))? \((P|D)\)"
)

MINT_MARKS: dict[str, str] = {
    "P": "Philadelphia",
    "D": "Denver",
}

STATE_TERRITORY_NAMES: dict[str, str] = {
    "AL": "Alabama",
    "AK": "Alaska",
    "AS": "American Samoa",
    "AZ": "Arizona",
    "AR": "Arkansas",
    "CA": "California",
    "CO": "Colorado",
    "CT": "Connecticut",
    "DE": "Delaware",
    "DC": "District of Columbia",
    "FL": "Florida",
    "GA": "Georgia",
    "GU": "Guam",
    "HI": "Hawaii",
    "ID": "Idaho",
    "IL": "Illinois",
    "IN": "Indiana",
    "IA": "Iowa",
    "KS": "Kansas",
    "KY": "Kentucky",
    "LA": "Louisiana",
    "ME": "Maine",
    "MD": "Maryland",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "MN": "Minnesota",
    "MS": "Mississippi",
    "MO": "Missouri",
    "MT": "Montana",
    "NE": "Nebraska",
    "NV": "Nevada",
    "NH": "New Hampshire",
    "NJ": "New Jersey",
    "NM": "New Mexico",
    "NY": "New York",
    "NC": "North Carolina",
    "ND": "North Dakota",
    "MP": "Northern Mariana Islands",
    "OH": "Ohio",
    "OK": "Oklahoma",
    "OR": "Oregon",
    "PA": "Pennsylvania",
    "PR": "Puerto Rico",
    "RI": "Rhode Island",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TN": "Tennessee",
    "TX": "Texas",
    "UT": "Utah",
    "VT": "Vermont",
    "VI": "Virgin Islands",
    "VA": "Virginia",
    "WA": "Washington",
    "WV": "West Virginia",
    "WI": "Wisconsin",
    "WY": "Wyoming",
}


@dataclass
class TotalBucket:
    total: int = 0
    latest_periods: list[Period] = field(default_factory=list)

    def add(self, amount: int, period: Period) -> None:
        self.total += amount
        self.latest_periods.append(period)

    def sold_out(self, newest: Period | None) -> bool:
        if newest is None:
            return False
        return all(p < newest for p in self.latest_periods)


def derive_totals(records: Mapping[str, ItemRecord]) -> dict[str, Any]:
    """Sum American Innovation $1 roll/bag sales by year, [region], mint.

    Returns ``{year: {mint: bucket}}`` or ``{year: {region: {mint: bucket}}}``
    where a bucket is ``{"total": coins, "soldOut": bool}``.
    """

    buckets: dict[str, dict[str, Any]] = {}
    for name, record in records.items():
        if record.program_name != ROLLS_PROGRAM or "AI $1" not in name:
            continue
        m = AMERICAN_INNOVATION_ITEM.search(name)
        if not m:
            continue
        year, amount, region_code, mint_mark = m.groups()
        mint = MINT_MARKS[mint_mark]

        target = buckets.setdefault(year, {})
        if region_code:
            region = STATE_TERRITORY_NAMES.get(region_code, region_code)
            target = target.setdefault(region, {})
        bucket = target.setdefault(mint, TotalBucket())
        bucket.add(record.quantity * int(amount), record.latest_period)

    newest = latest_period(records)
    return _render(buckets, newest)


def _render(node: dict[str, Any], newest: Period | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in node.items():
        if isinstance(value, TotalBucket):
            out[key] = {"total": value.total, "soldOut": value.sold_out(newest)}
        else:
            out[key] = _render(value, newest)
    return out
