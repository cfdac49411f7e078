from .base import ReportPipeline, ReportTask
from .coin_production import CoinProductionPipeline
from .sales import CumulativeSalesPipeline, WeeklySalesPipeline
from .totals import build_totals

PIPELINES: dict[str, type[ReportPipeline]] = {
    "cumulative-sales": CumulativeSalesPipeline,
    "weekly-sales": WeeklySalesPipeline,
    "coin-production": CoinProductionPipeline,
}

__all__ = [
    "PIPELINES",
    "CoinProductionPipeline",
    "CumulativeSalesPipeline",
    "ReportPipeline",
    "ReportTask",
    "WeeklySalesPipeline",
    "build_totals",
]
