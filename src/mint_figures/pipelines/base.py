from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Any, Sequence

import requests

from ..cache import ReportCache
from ..config import RunConfig
from ..content import is_block_page, rows_from_payload
from ..datasets import utc_iso
from ..errors import (
    MissingStructureError,
    StaleReportError,
    UnverifiableReportError,
    UpstreamBlockedError,
)
from ..http_client import FetchResult, HttpClient
from ..normalize import Row, report_as_of
from ..periods import Period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportTask:
    """One fetchable report: a period of a (sub-)series."""

    period: Period
    series: str
    program: str = ""

    def describe(self) -> str:
        period = self.period
        if period.key.count("-") == 2:
            what = "week of " + period.anchor.strftime("%B %d, %Y")
        elif "/" in period.key:
            what = f"{period.year} week {period.label or period.key}"
        else:
            what = f"year of {period.key}"
        return f"{self.program} {what}".strip()


class ReportPipeline(ABC):
    """Enumerate -> cache/fetch -> normalize -> merge -> persist, one period at a time.

    Periods run strictly in order with a delay between uncached fetches.
    Per-period failures are logged and skipped; repeated structural failures
    abort the run, but whatever was merged so far is still written.
    """

    series: str = ""
    columns: Sequence[str] | None = None

    def __init__(
        self,
        *,
        http: HttpClient,
        config: RunConfig,
        cache: ReportCache | None = None,
    ) -> None:
        self.http = http
        self.cfg = config
        self.cache = cache or ReportCache(self.cfg.cache_dir)

        self._last_fetch_at: float | None = None
        self._consecutive_missing = 0
        self._stats: Counter[str] = Counter()
        self.skipped: list[str] = []
        self.invalid: list[tuple[Period, str]] = []

    # --- subclass hooks ---------------------------------------------------

    @abstractmethod
    def load(self) -> None:
        """Load the previously persisted dataset into the accumulator."""

    @abstractmethod
    def plan(self) -> list[ReportTask]:
        """Enumerate the tasks of this run, oldest first."""

    @abstractmethod
    def fetch(self, task: ReportTask) -> FetchResult:
        """Request one report from upstream."""

    @abstractmethod
    def fold(self, task: ReportTask, rows: list[Row]) -> None:
        """Normalize a report and merge it into the accumulator."""

    @abstractmethod
    def persist(self) -> None:
        """Write the accumulator (and any run state) to disk."""

    def must_refetch(self, task: ReportTask) -> bool:
        return False

    def validate(self, task: ReportTask, rows: list[Row]) -> None:
        """Reject a freshly fetched report whose own date disagrees with the period."""

        as_of = report_as_of(rows)
        if as_of is None:
            return
        if abs((as_of - task.period.anchor).days) > 1:
            raise StaleReportError(task.period.key, as_of.isoformat())

    def record_invalid(self, task: ReportTask, reported: str) -> None:
        self.invalid.append((task.period, reported))

    # --- shared machinery --------------------------------------------------

    def _pacing_sleep(self) -> None:
        if self._last_fetch_at is None:
            return
        elapsed = time.time() - self._last_fetch_at
        if elapsed < self.cfg.request_delay_s:
            time.sleep(self.cfg.request_delay_s - elapsed)

    def obtain_rows(self, task: ReportTask) -> list[Row]:
        if not self.must_refetch(task):
            cached = self.cache.read(task.series, task.period.key)
            if cached is not None:
                logger.info("   Using saved report file")
                self._stats["cache_hit"] += 1
                return rows_from_payload(
                    cached.body, content_type=cached.content_type, columns=self.columns
                )

        self._pacing_sleep()
        try:
            result = self.fetch(task)
        finally:
            self._last_fetch_at = time.time()
        self._stats["fetched"] += 1

        if is_block_page(result.body, content_type=result.content_type):
            raise UpstreamBlockedError(f"Blocked while fetching {result.url}")
        if not result.ok:
            raise RuntimeError(f"HTTP {result.status_code} for {result.url}")

        rows = rows_from_payload(
            result.body, content_type=result.content_type, columns=self.columns
        )
        if not rows:
            raise MissingStructureError("report has no rows")
        self.validate(task, rows)
        self.cache.write(task.series, task.period.key, result)
        return rows

    def process(self, task: ReportTask) -> None:
        try:
            rows = self.obtain_rows(task)
        except MissingStructureError as e:
            if task.period.extrapolated:
                # Guessed weeks upstream has not published; not a sign of blocking.
                self._stats["unpublished"] += 1
                self.skipped.append(task.period.key)
                logger.info("   No report published yet for %s", task.describe())
                return
            self._stats["missing"] += 1
            self.skipped.append(task.period.key)
            self._consecutive_missing += 1
            logger.error("   Could not find data for %s: %s", task.describe(), e)
            if self._consecutive_missing >= self.cfg.max_consecutive_missing:
                raise UpstreamBlockedError(
                    f"{self._consecutive_missing} consecutive reports without data"
                ) from e
            return
        except StaleReportError as e:
            self._stats["stale"] += 1
            self.skipped.append(task.period.key)
            logger.warning(
                "   Report date (%s) differs from expected date by more than 1 day, skipping save",
                e.reported,
            )
            self.record_invalid(task, e.reported)
            return
        except UnverifiableReportError as e:
            self._stats["unverified"] += 1
            self.skipped.append(task.period.key)
            logger.warning("   %s, skipping save", e)
            return
        except (requests.RequestException, RuntimeError) as e:
            self._stats["fetch_error"] += 1
            self.skipped.append(task.period.key)
            logger.error("   Failed to fetch data, skipping: %s", e)
            return

        self._consecutive_missing = 0
        self._stats["processed"] += 1
        self.fold(task, rows)

    def run(self) -> dict[str, Any]:
        started_at = utc_iso()
        self.load()

        aborted: str | None = None
        tasks: list[ReportTask] = []
        try:
            tasks = self.plan()
            if self.cfg.year is not None and not tasks:
                logger.warning("No reports found for %s", self.cfg.year)
            for index, task in enumerate(tasks, start=1):
                logger.info("Processing %s (%d/%d)", task.describe(), index, len(tasks))
                self.process(task)
        except UpstreamBlockedError as e:
            aborted = str(e)
            logger.error(
                "Aborting remaining reports (upstream is likely blocking requests): %s", e
            )
        finally:
            self.persist()

        return {
            "series": self.series,
            "started_at": started_at,
            "finished_at": utc_iso(),
            "planned": len(tasks),
            "stats": dict(self._stats),
            "skipped": list(self.skipped),
            "aborted": aborted,
        }
