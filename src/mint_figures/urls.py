from __future__ import annotations

import re

BASE_URL = "https://www.usmint.gov"

CSRF_TOKEN_URL = f"{BASE_URL}/libs/granite/csrf/token.json"

CUMULATIVE_SALES_PAGE_URL = (
    f"{BASE_URL}/about/production-sales-figures/cumulative-sales"
)

CUMULATIVE_SALES_DATA_URL = (
    f"{BASE_URL}/content/usmint/us/en/about/production-sales-figures/"
    "cumulative-sales/jcr:content/root/container/"
    "productionsalesdata.dropdowns.json"
)

CSV_DATA_MANIFEST_URL = f"{BASE_URL}/content/dam/usmint/csv_data.1.json"

PRODUCTION_DATA_URL = f"{BASE_URL}/bin/usmint/psd"

PRODUCTION_DATA_PATH = "/content/dam/usmint/csv_data"


def cumulative_sales_data_params(*, year: int, month_name: str, day_iso: str) -> dict[str, str]:
    return {
        "firstDropdown": str(year),
        "secondDropdown": month_name,
        "date": day_iso,
    }


def weekly_sales_params(*, year: int, week_token: str) -> dict[str, str]:
    return {"years": str(year), f"{year}weeks": week_token}


def production_params(*, program_code: str, year: int) -> dict[str, str]:
    return {
        "path": PRODUCTION_DATA_PATH,
        "program": program_code,
        "year": str(year),
    }


def safe_filename_piece(text: str, *, max_len: int = 80) -> str:
    text = text.strip()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^A-Za-z0-9._-]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    if not text:
        return "untitled"
    return text[:max_len]
