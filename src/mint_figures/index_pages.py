from __future__ import annotations

import html as html_lib
import json
import logging
import re
from typing import Any, Iterable

from bs4 import BeautifulSoup

from .errors import MissingStructureError
from .periods import Enumeration, dated_periods, manifest_periods, weekly_periods

logger = logging.getLogger(__name__)

CSV_MANIFEST_PATTERN = re.compile(
    r"CIRC-(?P<group>[A-Za-z0-9]+)-(?P<key>[^.]*)\.csv"
)
CSV_MANIFEST_PREFIX = "CIRC-"


def _attr_text(value: Any) -> str:
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    return "" if value is None else str(value)


def week_option_values(html: str, year: int) -> list[str] | None:
    """Values of the ``<select id="{year}weeks">`` options, or None if absent."""

    soup = BeautifulSoup(html, "html.parser")
    select = soup.find("select", id=f"{year}weeks")
    if select is None:
        return None
    return [_attr_text(opt.get("value")).strip() for opt in select.find_all("option")]


def weekly_option_periods(html: str, year: int) -> Enumeration | None:
    values = week_option_values(html, year)
    if values is None:
        return None
    return weekly_periods(year, values)


def weekly_index(html: str, years: Iterable[int]) -> dict[int, Enumeration]:
    out: dict[int, Enumeration] = {}
    for year in years:
        enumeration = weekly_option_periods(html, year)
        if enumeration is None:
            logger.error("Could not find select element for year %s", year)
            continue
        out[year] = enumeration
    return out


def dropdown_items(html: str) -> dict[str, dict[str, list[str]]]:
    """Decode the cumulative-sales page's ``data-dropdownitems`` attribute."""

    soup = BeautifulSoup(html, "html.parser")
    node = soup.find(attrs={"data-tabletype": "cumulative", "data-dropdownitems": True})
    if node is None:
        node = soup.find(attrs={"data-dropdownitems": True})
    if node is None:
        raise MissingStructureError("no data-dropdownitems attribute on index page")

    # BeautifulSoup already unescapes entities; unescape again for pages that
    # double-encode the JSON.
    raw = html_lib.unescape(_attr_text(node.get("data-dropdownitems")))
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MissingStructureError(f"dropdown items are not JSON: {e}") from e
    if not isinstance(data, dict):
        raise MissingStructureError("dropdown items are not a year mapping")
    return data


def dropdown_periods(html: str) -> Enumeration:
    return dated_periods(dropdown_items(html))


def csv_manifest_index(manifest: dict[str, Any]) -> dict[str, Enumeration]:
    """Group ``CIRC-<program>-<year>.csv`` manifest entries by program code."""

    return manifest_periods(
        manifest.keys(), CSV_MANIFEST_PATTERN, prefix=CSV_MANIFEST_PREFIX
    )
