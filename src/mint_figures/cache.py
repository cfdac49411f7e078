from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from requests.structures import CaseInsensitiveDict

from .datasets import load_json
from .http_client import FetchResult
from .periods import parse_period_key
from .urls import safe_filename_piece


@dataclass(frozen=True)
class CacheEntry:
    body_path: Path
    meta_path: Path


@dataclass(frozen=True)
class CachedReport:
    body: bytes
    meta: dict

    @property
    def content_type(self) -> str | None:
        headers = CaseInsensitiveDict(self.meta.get("headers") or {})
        return headers.get("Content-Type")


def _period_parts(period_key: str) -> list[str]:
    # Dated reports live under YYYY/M/D like the historical saved-reports tree.
    period = parse_period_key(period_key)
    if period.key.count("-") == 2:
        return [str(period.anchor.year), str(period.anchor.month), str(period.anchor.day)]
    return [safe_filename_piece(part) for part in period.key.split("/")]


class ReportCache:
    """Raw report payloads on disk, keyed by (series, period key).

    A payload is written once, after it has been validated, and is then
    served as-is on every later run.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def entry(self, series: str, period_key: str) -> CacheEntry:
        series_parts = [safe_filename_piece(p) for p in series.split("/") if p]
        parts = _period_parts(period_key)
        base = self.root.joinpath(*series_parts, *parts[:-1])
        return CacheEntry(
            body_path=base / f"{parts[-1]}.bin",
            meta_path=base / f"{parts[-1]}.json",
        )

    def exists(self, series: str, period_key: str) -> bool:
        entry = self.entry(series, period_key)
        return entry.body_path.exists() and entry.meta_path.exists()

    def read(self, series: str, period_key: str) -> CachedReport | None:
        entry = self.entry(series, period_key)
        if not entry.body_path.exists() or not entry.meta_path.exists():
            return None
        meta = load_json(entry.meta_path)
        if meta is None:
            return None
        try:
            body = entry.body_path.read_bytes()
        except OSError:
            return None
        return CachedReport(body=body, meta=meta)

    def write(self, series: str, period_key: str, result: FetchResult) -> CacheEntry:
        entry = self.entry(series, period_key)
        entry.body_path.parent.mkdir(parents=True, exist_ok=True)
        entry.body_path.write_bytes(result.body)
        meta = {
            "series": series,
            "period": period_key,
            "url": result.url,
            "final_url": result.final_url,
            "status_code": result.status_code,
            "headers": result.headers,
            "fetched_at": result.fetched_at,
        }
        # Sidecar last: an entry without it reads as a miss.
        entry.meta_path.write_text(
            json.dumps(meta, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        return entry
