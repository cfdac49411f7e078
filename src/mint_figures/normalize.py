"""Translate heterogeneous report rows into one canonical row type.

Each upstream report generation names its columns differently. Rather than
branching inside one parser, every known row shape is an entry in
``ROW_SHAPES``: a detector that recognizes the shape from the keys a row
carries, and a translator that maps it onto ``CanonicalRow``. Detectors are
tried in order; the first match wins. Supporting a new upstream format means
appending an entry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable, Collection, Iterable, Iterator, Mapping

from .errors import UnrecognizedRowError, UnverifiableReportError
from .periods import Period

logger = logging.getLogger(__name__)

Row = Mapping[str, str]

MINTS = ("Philadelphia", "Denver")

# Characters the upstream CSV export mangles into this glyph.
ENCODING_ARTIFACT = "Ω"

LEGACY_SMALL_NUMBER_LIMIT = 10_000

DENOMINATIONS: dict[str, str] = {
    "1": "Penny",
    "5": "Nickel",
    "10": "Dime",
    "25": "Quarter",
    "50": "Half Dollar",
    "N.A. $1": "Native American Dollar",
    "Pres. $1": "Presidential Dollar",
}

ALTERNATIVE_DENOMINATION_NAMES: dict[str, str] = {
    "Lincoln": "1",
    "Jefferson": "5",
    "Roosevelt": "10",
    "Quarter": "25",
    "Kennedy": "50",
    "Native American": "N.A. $1",
    "Presidential": "Pres. $1",
}

DESIGN_KEYS = ("Design", "President", "AWQ Quarter", "Semiquincentennial Quarter")
DESIGN_SENTINELS = {"", "Total", "Grand Total:"}

MINT_LABEL_KEYS = ("", "Denomination/ Mint", "Denomination/Mint")
TOTAL_COLUMNS = {"Total", "Total:"}

PROGRAM_NAME_KEYS = ("Program Name", "", "\ufeffProgram Name")
SALES_KEYS = ("Adj. Net Demand", "Adj Net Demand")
AS_OF_KEYS = ("Date Sales Report is Valid", "Sales Reporting Date")

AS_OF_FORMATS = (
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%m/%d/%y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_ $&()+./Š-]")
_SPACE_RUNS = re.compile(r" {2,}")
_YEAR_PREFIX = re.compile(r"^\d{4}\s+")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


class RowShape(str, Enum):
    BY_DESIGN = "by-design"
    BY_DENOMINATION = "by-denomination"
    BY_MINT = "by-mint"
    ITEM_SALES = "item-sales"


@dataclass(frozen=True)
class CanonicalRow:
    item_id: str
    item_name: str
    program_name: str
    quantity: int
    period: Period
    shape: RowShape
    mint: str | None = None


def parse_quantity(text: str, *, scale_small: bool = True) -> int:
    """Parse a reported figure into a non-negative integer.

    - ``"5M"`` / ``"5 M"``: millions.
    - ``"1,234"``: written with thousands separators, taken literally.
    - ``"8500"``: below 10,000 without separators, legacy millions
      (only when ``scale_small``).
    """

    raw = str(text).replace(ENCODING_ARTIFACT, "").strip()
    millions = raw.endswith("M")
    if millions:
        raw = raw[:-1].strip()
    grouped = "," in raw
    raw = raw.replace(",", "")
    if not _NUMBER.fullmatch(raw):
        raise ValueError(f"Not a quantity: {text!r}")

    value = Decimal(raw)
    if millions or (scale_small and not grouped and value < LEGACY_SMALL_NUMBER_LIMIT):
        value *= 1_000_000
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def sanitize_name(text: str) -> str:
    text = text.replace("&amp;", "&").replace("–", "-")
    text = _UNSAFE_NAME_CHARS.sub("", text)
    return _SPACE_RUNS.sub(" ", text).strip()


def normalize_design(label: str) -> str:
    label = _YEAR_PREFIX.sub("", label.strip())
    return label.replace(ENCODING_ARTIFACT, ",").strip()


def format_denomination(raw: str) -> str | None:
    """Map a denomination header (``"1 Cent"``, ``"Pres $1"``) to its name."""

    value = raw.replace("Cent", "").replace("Pres ", "Pres. ").strip()
    if value == "":
        value = "1"
    return DENOMINATIONS.get(value)


def resolve_denomination(raw: str) -> str:
    formatted = format_denomination(raw)
    if formatted:
        return formatted
    for name, code in ALTERNATIVE_DENOMINATION_NAMES.items():
        if name in raw:
            return DENOMINATIONS[code]
    return raw.strip()


def _first_present(row: Row, keys: Iterable[str]) -> str | None:
    for key in keys:
        if key in row:
            return row[key]
    return None


def _mint_quantities(row: Row, label: str) -> Iterator[tuple[str, int]]:
    for mint in MINTS:
        value = (row.get(mint) or "").strip()
        if not value:
            continue
        try:
            yield mint, parse_quantity(value)
        except ValueError:
            logger.warning("Skipping unparsable %s figure for %s: %r", mint, label, value)


# --- detectors ---------------------------------------------------------------


def _is_by_design(row: Row) -> bool:
    return any(key in row for key in DESIGN_KEYS)


def _is_by_denomination(row: Row) -> bool:
    return "Denomination" in row


def _is_item_sales(row: Row) -> bool:
    return "Item Description" in row or ("Program Item" in row and "Sales to Date" in row)


def _is_by_mint(row: Row) -> bool:
    # Item-sales rows may also carry an empty key (a blank program header).
    return any(key in row for key in MINT_LABEL_KEYS) and not _is_item_sales(row)


# --- translators -------------------------------------------------------------


def _translate_by_design(row: Row, period: Period, program: str) -> list[CanonicalRow]:
    raw = (_first_present(row, DESIGN_KEYS) or "").strip()
    if raw in DESIGN_SENTINELS or raw == str(period.year):
        return []
    label = normalize_design(raw)
    if not label:
        return []
    out = [
        CanonicalRow(
            item_id=label,
            item_name=label,
            program_name=program,
            quantity=quantity,
            period=period,
            shape=RowShape.BY_DESIGN,
            mint=mint,
        )
        for mint, quantity in _mint_quantities(row, label)
    ]
    if out:
        return out
    # A listed design without figures still appears, with no mint.
    return [
        CanonicalRow(
            item_id=label,
            item_name=label,
            program_name=program,
            quantity=0,
            period=period,
            shape=RowShape.BY_DESIGN,
        )
    ]


def _translate_by_denomination(row: Row, period: Period, program: str) -> list[CanonicalRow]:
    raw = (row.get("Denomination") or "").strip()
    if raw in {"", "Total"}:
        return []
    denomination = resolve_denomination(raw)
    return [
        CanonicalRow(
            item_id=denomination,
            item_name=denomination,
            program_name=program,
            quantity=quantity,
            period=period,
            shape=RowShape.BY_DENOMINATION,
            mint=mint,
        )
        for mint, quantity in _mint_quantities(row, denomination)
    ]


def _translate_by_mint(row: Row, period: Period, program: str) -> list[CanonicalRow]:
    mint = (_first_present(row, MINT_LABEL_KEYS) or "").strip()
    if mint not in MINTS:
        return []

    out: list[CanonicalRow] = []
    for header, value in row.items():
        if header in MINT_LABEL_KEYS or header.strip() in TOTAL_COLUMNS:
            continue
        value = (value or "").strip()
        if not value:
            continue
        denomination = format_denomination(header)
        if denomination is None:
            logger.debug("Unknown denomination column %r, keeping as-is", header)
            denomination = header.strip()
        try:
            quantity = parse_quantity(value)
        except ValueError:
            logger.warning(
                "Skipping unparsable %s figure for %s: %r", mint, denomination, value
            )
            continue
        out.append(
            CanonicalRow(
                item_id=denomination,
                item_name=denomination,
                program_name=program,
                quantity=quantity,
                period=period,
                shape=RowShape.BY_MINT,
                mint=mint,
            )
        )
    return out


def _translate_item_sales(row: Row, period: Period, program: str) -> list[CanonicalRow]:
    if "Item Description" in row:
        item_id = row.get("Item", "")
        name = row["Item Description"]
        sales = _first_present(row, SALES_KEYS)
        program_name = _first_present(row, PROGRAM_NAME_KEYS) or program
    else:
        item_id = row["Program Item"]
        name = row.get("Product", "")
        sales = row["Sales to Date"]
        program_name = row.get("Program") or program

    parsed_name = sanitize_name(name or "")
    if not parsed_name:
        return []
    if sales is None:
        raise ValueError(f"No sales column for {parsed_name!r}")

    return [
        CanonicalRow(
            item_id=(item_id or "").strip(),
            item_name=parsed_name,
            program_name=program_name.replace("&amp;", "&").strip(),
            quantity=parse_quantity(sales, scale_small=False),
            period=period,
            shape=RowShape.ITEM_SALES,
        )
    ]


@dataclass(frozen=True)
class ShapeRule:
    shape: RowShape
    detect: Callable[[Row], bool]
    translate: Callable[[Row, Period, str], list[CanonicalRow]]


ROW_SHAPES: tuple[ShapeRule, ...] = (
    ShapeRule(RowShape.BY_DESIGN, _is_by_design, _translate_by_design),
    ShapeRule(RowShape.BY_DENOMINATION, _is_by_denomination, _translate_by_denomination),
    ShapeRule(RowShape.BY_MINT, _is_by_mint, _translate_by_mint),
    ShapeRule(RowShape.ITEM_SALES, _is_item_sales, _translate_item_sales),
)

PRODUCTION_SHAPES = frozenset(
    {RowShape.BY_DESIGN, RowShape.BY_DENOMINATION, RowShape.BY_MINT}
)
SALES_SHAPES = frozenset({RowShape.ITEM_SALES})


def detect_shape(row: Row) -> RowShape | None:
    for rule in ROW_SHAPES:
        if rule.detect(row):
            return rule.shape
    return None


def translate_row(
    row: Row,
    period: Period,
    *,
    program: str = "",
    shapes: Collection[RowShape] | None = None,
) -> list[CanonicalRow]:
    """Translate one row with the first matching shape rule.

    Raises UnrecognizedRowError when no rule (within ``shapes``) matches.
    """

    rule = next((r for r in ROW_SHAPES if r.detect(row)), None)
    if rule is None or (shapes is not None and rule.shape not in shapes):
        raise UnrecognizedRowError([str(k) for k in row])
    return rule.translate(row, period, program)


def normalize(
    rows: Iterable[Row],
    period: Period,
    *,
    program: str = "",
    shapes: Collection[RowShape] | None = None,
) -> Iterator[CanonicalRow]:
    """Yield canonical rows for one report; bad rows are logged and skipped."""

    rows = list(rows)
    for index, row in enumerate(rows):
        try:
            yield from translate_row(row, period, program=program, shapes=shapes)
        except UnrecognizedRowError as e:
            logger.warning(
                "Unknown and unparsable data structure at index %d/%d (keys: %s)",
                index,
                len(rows) - 1,
                ", ".join(repr(k) for k in e.keys),
            )
        except (KeyError, ValueError) as e:
            logger.warning("Skipping row %d of %s: %s", index, period, e)


def parse_report_date(text: str) -> date | None:
    text = text.strip()
    for fmt in AS_OF_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def report_as_of(rows: Iterable[Row]) -> date | None:
    """The date a report says it is valid for, if it says so.

    Raises UnverifiableReportError when the date column is filled in but
    does not parse.
    """

    for row in rows:
        raw = (_first_present(row, AS_OF_KEYS) or "").strip()
        if not raw:
            return None
        parsed = parse_report_date(raw)
        if parsed is None:
            raise UnverifiableReportError(raw)
        return parsed
    return None
