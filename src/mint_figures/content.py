from __future__ import annotations

import codecs
import json
import re
from enum import Enum
from typing import Final, Sequence

from bs4 import BeautifulSoup

from .errors import MissingStructureError


class ContentKind(str, Enum):
    HTML = "html"
    JSON = "json"
    BYTES = "bytes"


_HARD_BLOCK_MARKERS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"Request\s+blocked", re.IGNORECASE),
    re.compile(r"You\s+have\s+been\s+blocked", re.IGNORECASE),
    re.compile(r"The\s+requested\s+URL\s+was\s+rejected", re.IGNORECASE),
    re.compile(r"Access\s+Denied", re.IGNORECASE),
)


def looks_like_html(data: bytes) -> bool:
    head = data[:2048].lstrip()
    return head.startswith(b"<") and (
        b"<html" in head.lower()
        or b"<!doctype" in head.lower()
        or b"<head" in head.lower()
        or b"<table" in head.lower()
        or b"<div" in head.lower()
    )


def sniff_kind(*, content_type: str | None, body: bytes) -> ContentKind:
    if content_type:
        ct = content_type.split(";", 1)[0].strip().lower()
        if ct in {"application/json", "text/json"}:
            return ContentKind.JSON
        if ct in {"text/html", "application/xhtml+xml"}:
            return ContentKind.HTML

    head = body[:64].removeprefix(codecs.BOM_UTF8).lstrip()
    if head.startswith((b"[", b"{")):
        return ContentKind.JSON
    if looks_like_html(body):
        return ContentKind.HTML
    return ContentKind.BYTES


def is_block_page(body: bytes, *, content_type: str | None) -> bool:
    """True when the body is an HTML interstitial instead of report data."""

    if sniff_kind(content_type=content_type, body=body) != ContentKind.HTML:
        return False
    text = body[:200_000].decode("utf-8", errors="ignore")
    if not any(p.search(text) for p in _HARD_BLOCK_MARKERS):
        return False
    # Real report pages carry a table; interstitials never do.
    return re.search(r"<\s*table\b", text, flags=re.IGNORECASE) is None


def _cell_text(node) -> str:
    return node.get_text(" ", strip=True)


def rows_from_html(
    html: str, *, columns: Sequence[str] | None = None
) -> list[dict[str, str]]:
    """Turn the first ``table tbody`` into header -> cell dicts.

    Headers come from ``thead`` unless ``columns`` is given, in which case
    cells are read positionally (legacy tables). Rows shorter than the
    header are padded with empty strings.
    """

    soup = BeautifulSoup(html, "html.parser")
    body = soup.select_one("table tbody")
    if body is None:
        raise MissingStructureError("no table body in HTML report")

    if columns:
        headers = list(columns)
    else:
        table = body.find_parent("table")
        headers = [_cell_text(th) for th in table.select("thead th")]
        if not headers:
            raise MissingStructureError("HTML report table has no header")

    rows: list[dict[str, str]] = []
    for tr in body.find_all("tr"):
        cells = [_cell_text(td) for td in tr.find_all(["td", "th"])]
        if not any(cells):
            continue
        cells += [""] * (len(headers) - len(cells))
        rows.append(dict(zip(headers, cells)))
    return rows


def rows_from_json(text: str) -> list[dict[str, str]]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MissingStructureError(f"report is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise MissingStructureError("JSON report is not an array of rows")
    rows: list[dict[str, str]] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        rows.append({str(k): "" if v is None else str(v) for k, v in item.items()})
    return rows


def rows_from_payload(
    body: bytes,
    *,
    content_type: str | None = None,
    columns: Sequence[str] | None = None,
) -> list[dict[str, str]]:
    kind = sniff_kind(content_type=content_type, body=body)
    text = body.decode("utf-8-sig", errors="replace")
    if kind == ContentKind.JSON:
        return rows_from_json(text)
    if kind == ContentKind.HTML:
        return rows_from_html(text, columns=columns)
    raise MissingStructureError("report payload is neither JSON nor HTML")
