from __future__ import annotations

import logging
from pathlib import Path

from ..accumulator import ItemRecord, dump_records, load_records, merge
from ..config import DENY_LIST_FILENAME, WEEKLY_SALES_FIRST_YEAR
from ..datasets import load_json, write_dataset
from ..errors import MissingStructureError, UpstreamBlockedError
from ..http_client import FetchResult
from ..index_pages import dropdown_periods, weekly_index
from ..normalize import SALES_SHAPES, Row, normalize
from ..periods import Enumeration, apply_deny_list, filter_year, with_extrapolation
from ..state import DenyList
from ..urls import (
    CSRF_TOKEN_URL,
    CUMULATIVE_SALES_DATA_URL,
    CUMULATIVE_SALES_PAGE_URL,
    cumulative_sales_data_params,
    weekly_sales_params,
)
from .base import ReportPipeline, ReportTask

logger = logging.getLogger(__name__)

# Column order of the header-less weekly report tables.
WEEKLY_REPORT_COLUMNS = (
    "Program Name",
    "Item",
    "Item Description",
    "Adj. Net Demand",
    "Date Sales Report is Valid",
)


class CumulativeSalesPipeline(ReportPipeline):
    """Cumulative item sales from the JSON dropdown endpoint, one report per week."""

    series = "cumulative-sales"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.records: dict[str, ItemRecord] = {}
        self.deny_list = DenyList(self.cfg.cache_dir / self.series / DENY_LIST_FILENAME)

    @property
    def dataset_path(self) -> Path:
        return self.cfg.cumulative_sales_path

    def load(self) -> None:
        self.records = load_records(load_json(self.dataset_path))
        if self.records:
            logger.info("Loaded %d existing item(s) from %s", len(self.records), self.dataset_path)

    def _index_html(self) -> str:
        self.http.prime_cookies(CSRF_TOKEN_URL)
        try:
            res = self.http.get(CUMULATIVE_SALES_PAGE_URL)
        except RuntimeError as e:
            raise UpstreamBlockedError(f"Could not load the sales index: {e}") from e
        if not res.ok:
            raise UpstreamBlockedError(f"Sales index returned HTTP {res.status_code}")
        return res.body.decode("utf-8", errors="replace")

    def enumerate(self) -> Enumeration:
        try:
            enumeration = dropdown_periods(self._index_html())
        except MissingStructureError as e:
            raise UpstreamBlockedError(str(e)) from e
        if self.cfg.extrapolate:
            enumeration = with_extrapolation(enumeration, today=self.cfg.today)
        return apply_deny_list(enumeration, self.deny_list.keys)

    def plan(self) -> list[ReportTask]:
        enumeration = self.enumerate()
        enumeration.log_report(self.series)
        return [
            ReportTask(period=p, series=self.series)
            for p in filter_year(enumeration.periods, self.cfg.year)
        ]

    def fetch(self, task: ReportTask) -> FetchResult:
        period = task.period
        return self.http.get(
            CUMULATIVE_SALES_DATA_URL,
            params=cumulative_sales_data_params(
                year=period.year, month_name=period.label, day_iso=period.key
            ),
        )

    def record_invalid(self, task: ReportTask, reported: str) -> None:
        super().record_invalid(task, reported)
        # Extrapolated weeks may simply not be published yet.
        if not task.period.extrapolated:
            self.deny_list.add(task.period.key)

    def fold(self, task: ReportTask, rows: list[Row]) -> None:
        canonical = list(normalize(rows, task.period, shapes=SALES_SHAPES))
        self.records = merge(self.records, canonical)
        self._stats["rows"] += len(canonical)

    def persist(self) -> None:
        write_dataset(self.dataset_path, dump_records(self.records))
        logger.info("Wrote %d item(s) to %s", len(self.records), self.dataset_path)

        if self.invalid:
            logger.warning(
                "The following %d date(s) were detected as having invalid data and were ignored: %s",
                len(self.invalid),
                ", ".join(f"{p.key} (actual: {actual})" for p, actual in self.invalid),
            )
        if self.deny_list.save():
            logger.info("Updated deny-list at %s", self.deny_list.path)


class WeeklySalesPipeline(CumulativeSalesPipeline):
    """The older HTML weekly reports, selected by year and week option."""

    series = "weekly-cumulative-sales"
    columns = WEEKLY_REPORT_COLUMNS

    @property
    def dataset_path(self) -> Path:
        return self.cfg.weekly_sales_path

    def enumerate(self) -> Enumeration:
        html = self._index_html()
        if self.cfg.year is not None:
            years = [self.cfg.year]
        else:
            years = list(range(WEEKLY_SALES_FIRST_YEAR, self.cfg.today.year + 1))

        combined = Enumeration()
        for year, enumeration in weekly_index(html, years).items():
            combined.periods.extend(enumeration.periods)
            combined.malformed.extend(enumeration.malformed)
            combined.duplicates.extend(enumeration.duplicates)
        combined.periods.sort()
        return apply_deny_list(combined, self.deny_list.keys)

    def fetch(self, task: ReportTask) -> FetchResult:
        period = task.period
        return self.http.get(
            CUMULATIVE_SALES_PAGE_URL,
            params=weekly_sales_params(year=period.year, week_token=period.label),
        )

    def validate(self, task: ReportTask, rows: list[Row]) -> None:
        # Legacy tables are not checked against their week.
        return None
