from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

CUMULATIVE_SALES_FILENAME = "cumulative-sales.json"
WEEKLY_SALES_FILENAME = "weekly-cumulative-sales.json"
PRODUCTION_FILENAME = "circulating-coins-production.json"
TOTALS_FILENAME = "american-innovation-totals.json"
DENY_LIST_FILENAME = "ignored-dates-with-invalid-data.json"

# Circulating-coin programs by the code used in the csv_data manifest.
PROGRAMS: dict[str, str] = {
    "50SQ": "50 State Quarters",
    "ATBQ": "America the Beautiful Quarters",
    "AWQS": "American Women Quarters",
    "CIRC": "Circulating Coins",
    "DCTERR": "District of Columbia and US Territories Quarters",
    "PRESDOLLAR": "Presidential One Dollar",
    "WJNS": "Westward Journey Nickel Series",
}

# Manifest codes that name an existing program differently.
PROGRAM_CODE_ALIASES: dict[str, str] = {"AWQ": "AWQS"}

# Weekly cumulative-sales pages went back to this year.
WEEKLY_SALES_FIRST_YEAR = 2015


@dataclass
class RunConfig:
    out_dir: Path = Path("lists")
    cache_dir: Path = Path("saved-reports")
    request_delay_s: float = 0.25
    timeout_s: int = 45
    max_retries: int = 4
    max_consecutive_missing: int = 3
    extrapolate: bool = True
    year: int | None = None
    today: date = field(default_factory=date.today)

    @property
    def cumulative_sales_path(self) -> Path:
        return self.out_dir / CUMULATIVE_SALES_FILENAME

    @property
    def weekly_sales_path(self) -> Path:
        return self.out_dir / WEEKLY_SALES_FILENAME

    @property
    def production_path(self) -> Path:
        return self.out_dir / PRODUCTION_FILENAME

    @property
    def totals_path(self) -> Path:
        return self.out_dir / TOTALS_FILENAME
