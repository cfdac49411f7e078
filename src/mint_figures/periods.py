from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Sequence

from .errors import MalformedPeriodError

logger = logging.getLogger(__name__)

_YEAR_KEY = re.compile(r"(\d{4})")
_DATE_KEY = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_WEEK_KEY = re.compile(r"(\d{4})/W(\d{2})")

_PLACEHOLDER_TOKENS = {"", "0", "-", "none", "null"}


@dataclass(frozen=True, order=True)
class Period:
    """One reporting interval of a series.

    Ordering and equality use the calendar anchor only; the key is the
    stable string form written to caches, deny-lists and datasets.
    """

    anchor: date
    key: str = field(compare=False)
    label: str = field(default="", compare=False)
    extrapolated: bool = field(default=False, compare=False)

    @property
    def year(self) -> int:
        return self.anchor.year

    def __str__(self) -> str:
        return self.key


def year_period(year: int) -> Period:
    return Period(anchor=date(year, 1, 1), key=f"{year:04d}", label=str(year))


def date_period(day: date, *, label: str = "", extrapolated: bool = False) -> Period:
    return Period(
        anchor=day,
        key=day.isoformat(),
        label=label or day.strftime("%B"),
        extrapolated=extrapolated,
    )


def week_period(year: int, index: int, token: str = "") -> Period:
    # Week 1 is anchored on Jan 1; the anchor only has to order weeks.
    if not 1 <= index <= 99:
        raise MalformedPeriodError(f"{year}/W{index}", "week index out of range")
    return Period(
        anchor=date(year, 1, 1) + timedelta(weeks=index - 1),
        key=f"{year:04d}/W{index:02d}",
        label=token,
    )


def parse_period_key(text: str) -> Period:
    """Parse a stored period key (``YYYY``, ``YYYY-MM-DD`` or ``YYYY/Wnn``).

    Unpadded or over-long components are rejected rather than coerced.
    """

    raw = text if isinstance(text, str) else str(text)

    m = _DATE_KEY.fullmatch(raw)
    if m:
        try:
            day = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError as e:
            raise MalformedPeriodError(raw, str(e)) from e
        return date_period(day)

    m = _YEAR_KEY.fullmatch(raw)
    if m:
        year = int(m.group(1))
        if year < 1:
            raise MalformedPeriodError(raw, "year out of range")
        return year_period(year)

    m = _WEEK_KEY.fullmatch(raw)
    if m:
        return week_period(int(m.group(1)), int(m.group(2)))

    raise MalformedPeriodError(raw)


def is_valid_period_key(text: str) -> bool:
    try:
        parse_period_key(text)
    except MalformedPeriodError:
        return False
    return True


@dataclass
class Enumeration:
    """Result of enumerating one series: periods plus what was rejected."""

    periods: list[Period] = field(default_factory=list)
    malformed: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    stale_denied: list[str] = field(default_factory=list)
    denied: list[str] = field(default_factory=list)

    def keys(self) -> list[str]:
        return [p.key for p in self.periods]

    def log_report(self, series: str) -> None:
        if self.malformed:
            logger.warning(
                "%s: ignored %d malformed period(s): %s",
                series,
                len(self.malformed),
                ", ".join(self.malformed),
            )
        if self.duplicates:
            logger.warning(
                "%s: ignored %d duplicate period(s): %s",
                series,
                len(self.duplicates),
                ", ".join(self.duplicates),
            )
        if self.denied:
            logger.info(
                "%s: %d period(s) previously marked as having invalid data: %s",
                series,
                len(self.denied),
                ", ".join(self.denied),
            )
        if self.stale_denied:
            logger.warning(
                "%s: deny-list entries matching no period (stale config): %s",
                series,
                ", ".join(self.stale_denied),
            )


def _dedupe_sorted(periods: Iterable[Period]) -> tuple[list[Period], list[str]]:
    seen: set[str] = set()
    unique: list[Period] = []
    duplicates: list[str] = []
    for p in periods:
        if p.key in seen:
            duplicates.append(p.key)
            continue
        seen.add(p.key)
        unique.append(p)
    # Stable: equal anchors keep first-seen order.
    unique.sort()
    return unique, duplicates


def _is_placeholder(token: str) -> bool:
    token = token.strip().lower()
    return token in _PLACEHOLDER_TOKENS or token.startswith("select")


WEEK_TOKEN_FORMATS = ("%m-%d", "%m/%d", "%B %d", "%b %d")
WEEK_TOKEN_FULL_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y")


def week_token_date(year: int, token: str) -> date | None:
    """The week a legacy option value names, e.g. ``01-08`` in 2016."""

    token = token.strip()
    for fmt in WEEK_TOKEN_FULL_FORMATS:
        try:
            return datetime.strptime(token, fmt).date()
        except ValueError:
            continue
    for fmt in WEEK_TOKEN_FORMATS:
        try:
            return datetime.strptime(f"{year} {token}", f"%Y {fmt}").date()
        except ValueError:
            continue
    return None


def weekly_periods(year: int, tokens: Sequence[str]) -> Enumeration:
    """Legacy weekly index: one period per distinct, non-placeholder option value.

    When every option names a date the periods are dated and keyed by it,
    whatever order the options are listed in. Otherwise they fall back to
    ordinal ``YYYY/Wnn`` keys in listing order.
    """

    out = Enumeration()
    values: list[str] = []
    for token in tokens:
        token = (token or "").strip()
        if _is_placeholder(token):
            continue
        if token in values:
            out.duplicates.append(token)
            continue
        values.append(token)

    days = [week_token_date(year, token) for token in values]
    candidates: list[Period] = []
    if all(day is not None for day in days):
        candidates = [date_period(day, label=token) for day, token in zip(days, values)]
    else:
        logger.warning("%s: week options are not dates, keying them by position", year)
        for index, token in enumerate(values, start=1):
            try:
                candidates.append(week_period(year, index, token))
            except MalformedPeriodError as e:
                out.malformed.append(e.key)
    out.periods, duplicates = _dedupe_sorted(candidates)
    out.duplicates.extend(duplicates)
    return out


def dated_periods(dropdown: Mapping[str, Mapping[str, Sequence[str]]]) -> Enumeration:
    """Dated index: ``{year: {month name: [day, ...]}}``."""

    out = Enumeration()
    candidates: list[Period] = []
    for year, months in dropdown.items():
        if not _YEAR_KEY.fullmatch(str(year)):
            out.malformed.append(str(year))
            continue
        for month_name, days in months.items():
            for day in days:
                raw = f"{year} {month_name} {day}"
                try:
                    parsed = datetime.strptime(
                        f"{month_name.strip()} {str(day).strip()} {year}", "%B %d %Y"
                    ).date()
                except ValueError:
                    out.malformed.append(raw)
                    continue
                candidates.append(date_period(parsed, label=month_name.strip()))
    out.periods, out.duplicates = _dedupe_sorted(candidates)
    return out


def manifest_periods(
    names: Iterable[str],
    pattern: re.Pattern[str],
    *,
    prefix: str = "",
) -> dict[str, Enumeration]:
    """Group manifest filenames by the pattern's ``group`` capture.

    Names without ``prefix`` belong to other series and are ignored. Names
    with the prefix that do not match, or whose ``key`` capture is not a
    valid period key, are reported as malformed. First occurrence wins.
    """

    grouped: dict[str, list[Period]] = {}
    out: dict[str, Enumeration] = {}
    orphans = Enumeration()

    for name in names:
        if not name.startswith(prefix):
            continue
        m = pattern.fullmatch(name)
        if not m:
            orphans.malformed.append(name)
            continue
        group = m.groupdict().get("group") or ""
        out.setdefault(group, Enumeration())
        try:
            period = parse_period_key(m.group("key"))
        except MalformedPeriodError:
            out[group].malformed.append(name)
            continue
        grouped.setdefault(group, []).append(period)

    for group, periods in grouped.items():
        out[group].periods, out[group].duplicates = _dedupe_sorted(periods)

    if orphans.malformed:
        orphans.log_report(prefix or "manifest")
    return out


def extrapolate(
    last: Period,
    *,
    today: date,
    interval_days: int = 7,
) -> list[Period]:
    """Synthesize weekly dated periods after ``last`` up to (not incl.) today."""

    if interval_days <= 0:
        raise ValueError("interval_days must be positive")
    out: list[Period] = []
    current = last.anchor + timedelta(days=interval_days)
    while current < today:
        out.append(date_period(current, extrapolated=True))
        current += timedelta(days=interval_days)
    return out


def with_extrapolation(
    enumeration: Enumeration, *, today: date, interval_days: int = 7
) -> Enumeration:
    if not enumeration.periods:
        return enumeration
    extra = extrapolate(
        enumeration.periods[-1], today=today, interval_days=interval_days
    )
    if extra:
        logger.info(
            "Extrapolated %d period(s) after %s", len(extra), enumeration.periods[-1]
        )
    periods, duplicates = _dedupe_sorted([*enumeration.periods, *extra])
    return Enumeration(
        periods=periods,
        malformed=list(enumeration.malformed),
        duplicates=[*enumeration.duplicates, *duplicates],
        stale_denied=list(enumeration.stale_denied),
        denied=list(enumeration.denied),
    )


def apply_deny_list(enumeration: Enumeration, deny_keys: Iterable[str]) -> Enumeration:
    """Remove deny-listed periods, reporting stale and malformed entries."""

    deny: list[str] = []
    malformed = list(enumeration.malformed)
    for key in deny_keys:
        if is_valid_period_key(key):
            deny.append(key)
        else:
            malformed.append(key)

    deny_set = set(deny)
    present = {p.key for p in enumeration.periods}
    return Enumeration(
        periods=[p for p in enumeration.periods if p.key not in deny_set],
        malformed=malformed,
        duplicates=list(enumeration.duplicates),
        stale_denied=[k for k in deny if k not in present],
        denied=[k for k in deny if k in present],
    )


def filter_year(periods: Iterable[Period], year: int | None) -> list[Period]:
    if year is None:
        return list(periods)
    return [p for p in periods if p.year == year]
