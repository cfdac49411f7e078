from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .datasets import load_json, write_dataset
from .periods import parse_period_key
from .errors import MalformedPeriodError

logger = logging.getLogger(__name__)


@dataclass
class DenyList:
    """Period keys confirmed to carry invalid upstream data.

    Stored as a JSON array and only ever appended to across runs.
    """

    path: Path
    keys: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.path.exists():
            return
        loaded = load_json(self.path)
        if not isinstance(loaded, list):
            logger.warning("Ignoring unreadable deny-list at %s", self.path)
            return
        self.keys = [str(k) for k in loaded]

    def __contains__(self, key: str) -> bool:
        return key in self.keys or key in self.added

    def add(self, key: str) -> None:
        if key not in self:
            self.added.append(key)

    def save(self) -> bool:
        """Persist newly added keys; returns False when nothing changed."""

        if not self.added:
            return False

        def sort_key(key: str):
            try:
                return (0, parse_period_key(key).anchor, key)
            except MalformedPeriodError:
                return (1, None, key)

        merged = sorted({*self.keys, *self.added}, key=sort_key)
        write_dataset(self.path, merged)
        self.keys = merged
        self.added = []
        return True
