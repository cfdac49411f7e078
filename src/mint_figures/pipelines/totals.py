from __future__ import annotations

import logging
from pathlib import Path

from ..accumulator import load_records
from ..config import RunConfig
from ..datasets import load_json, write_dataset
from ..totals import derive_totals

logger = logging.getLogger(__name__)


def build_totals(config: RunConfig) -> Path | None:
    """Derive the American Innovation totals from the cumulative-sales dataset.

    Returns the written path, or None when there is no sales dataset yet.
    """

    data = load_json(config.cumulative_sales_path)
    if not isinstance(data, dict):
        logger.warning(
            "No cumulative sales data at %s; run cumulative-sales first",
            config.cumulative_sales_path,
        )
        return None

    totals = derive_totals(load_records(data))
    write_dataset(config.totals_path, totals)
    logger.info("Wrote totals for %d year(s) to %s", len(totals), config.totals_path)
    return config.totals_path
