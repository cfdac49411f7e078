from __future__ import annotations

import json
import logging
from pathlib import Path

from ..config import PROGRAM_CODE_ALIASES, PROGRAMS
from ..datasets import load_json, write_dataset
from ..errors import UpstreamBlockedError
from ..http_client import FetchResult
from ..index_pages import csv_manifest_index
from ..normalize import PRODUCTION_SHAPES, Row, normalize
from ..periods import Enumeration, filter_year
from ..production import ProductionDataset
from ..urls import (
    CSRF_TOKEN_URL,
    CSV_DATA_MANIFEST_URL,
    PRODUCTION_DATA_URL,
    production_params,
)
from .base import ReportPipeline, ReportTask

logger = logging.getLogger(__name__)


class CoinProductionPipeline(ReportPipeline):
    """Circulating-coin production per program and year.

    Past years are served from the raw report cache; the current year is
    refetched every run because its figures are still moving.
    """

    series = "circulating-coins-production"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.dataset = ProductionDataset()
        self._programs: list[str] = []

    @property
    def dataset_path(self) -> Path:
        return self.cfg.production_path

    def load(self) -> None:
        self.dataset.merge_existing(load_json(self.dataset_path))

    def _manifest(self) -> dict:
        self.http.prime_cookies(CSRF_TOKEN_URL)
        try:
            res = self.http.get(CSV_DATA_MANIFEST_URL)
        except RuntimeError as e:
            raise UpstreamBlockedError(f"Could not load the report manifest: {e}") from e
        if not res.ok:
            raise UpstreamBlockedError(f"Report manifest returned HTTP {res.status_code}")
        try:
            manifest = json.loads(res.body.decode("utf-8-sig", errors="replace"))
        except json.JSONDecodeError as e:
            raise UpstreamBlockedError(f"Report manifest is not JSON: {e}") from e
        if not isinstance(manifest, dict):
            raise UpstreamBlockedError("Report manifest is not a filename mapping")
        return manifest

    def enumerate(self) -> dict[str, Enumeration]:
        by_program: dict[str, Enumeration] = {code: Enumeration() for code in PROGRAMS}
        for raw_code, enumeration in csv_manifest_index(self._manifest()).items():
            code = PROGRAM_CODE_ALIASES.get(raw_code, raw_code)
            if code not in PROGRAMS:
                logger.warning("Ignoring reports for unknown program code %r", raw_code)
                continue
            target = by_program[code]
            known = set(target.keys())
            for period in enumeration.periods:
                if period.key in known:
                    target.duplicates.append(period.key)
                    continue
                target.periods.append(period)
            target.periods.sort()
            target.malformed.extend(enumeration.malformed)
            target.duplicates.extend(enumeration.duplicates)
        return by_program

    def plan(self) -> list[ReportTask]:
        tasks: list[ReportTask] = []
        self._programs = []
        for code, enumeration in self.enumerate().items():
            name = PROGRAMS[code]
            enumeration.log_report(f"{self.series}/{name}")
            periods = filter_year(enumeration.periods, self.cfg.year)
            if self.cfg.year is None:
                self._programs.append(name)
                self.dataset.start_program(name)
            tasks.extend(
                ReportTask(period=p, series=f"{self.series}/{name}", program=code)
                for p in periods
            )
        return tasks

    def must_refetch(self, task: ReportTask) -> bool:
        return task.period.year >= self.cfg.today.year

    def fetch(self, task: ReportTask) -> FetchResult:
        return self.http.get(
            PRODUCTION_DATA_URL,
            params=production_params(program_code=task.program, year=task.period.year),
        )

    def fold(self, task: ReportTask, rows: list[Row]) -> None:
        name = PROGRAMS[task.program]
        canonical = list(
            normalize(rows, task.period, program=name, shapes=PRODUCTION_SHAPES)
        )
        self.dataset.add_year(name, task.period.year, canonical)
        self._stats["rows"] += len(canonical)

    def persist(self) -> None:
        for name in self._programs:
            self.dataset.finish_program(name)
        write_dataset(self.dataset_path, self.dataset.to_dict())
        logger.info("Wrote circulating coins production data to %s", self.dataset_path)
