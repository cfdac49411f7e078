from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .normalize import MINTS, CanonicalRow, RowShape

logger = logging.getLogger(__name__)

YearFigures = dict[str, Any]


def fold_year(rows: Iterable[CanonicalRow]) -> YearFigures | None:
    """Fold one program-year's production rows into its nested figures.

    By-design rows become ``{design: {mint: n}}``, or ``{design: None}`` for a
    design listed without figures; by-denomination and by-mint rows become
    ``{mint: {denomination: n}}``. A year without any figure is ``None``.
    """

    by_design: dict[str, dict[str, int]] = {}
    by_mint: dict[str, dict[str, int]] = {}

    for row in rows:
        if row.shape == RowShape.BY_DESIGN:
            mints = by_design.setdefault(row.item_name, {})
            if row.mint is not None:
                mints[row.mint] = row.quantity
        elif row.mint is None:
            continue
        elif row.shape in (RowShape.BY_DENOMINATION, RowShape.BY_MINT):
            by_mint.setdefault(row.mint, {})[row.item_name] = row.quantity

    if by_design and by_mint:
        logger.warning("Report mixes per-design and per-mint rows; keeping both")

    figures: YearFigures = {design: mints or None for design, mints in by_design.items()}
    for mint in MINTS:
        if mint in by_mint:
            figures[mint] = by_mint[mint]
    if all(value is None for value in figures.values()):
        return None
    return figures


@dataclass
class ProductionDataset:
    """``{program: {year: figures | None} | None}`` in processing order."""

    programs: dict[str, dict[str, YearFigures | None] | None] = field(
        default_factory=dict
    )

    def add_year(self, program: str, year: int, rows: Iterable[CanonicalRow]) -> None:
        years = self.programs.get(program)
        if years is None:
            years = {}
            self.programs[program] = years
        years[str(year)] = fold_year(rows)

    def start_program(self, program: str) -> None:
        self.programs.setdefault(program, {})

    def finish_program(self, program: str) -> None:
        if not self.programs.get(program):
            logger.warning("No data found for %s", program)
            self.programs[program] = None

    def merge_existing(self, data: dict[str, Any] | None) -> None:
        """Seed from a previously written dataset; new runs overwrite years."""

        for program, years in (data or {}).items():
            if isinstance(years, dict):
                self.programs[program] = dict(years)
            elif years is None:
                self.programs.setdefault(program, None)

    def to_dict(self) -> dict[str, Any]:
        return {program: years for program, years in self.programs.items()}
