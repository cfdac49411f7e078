"""mint-figures core library.

This package scrapes the US Mint's public sales and production report pages
and folds them into versioned JSON datasets (cumulative item sales,
circulating-coin production, American Innovation $1 totals).

Repo rules:
- Raw reports are cached on disk exactly as fetched; parsing never re-fetches.
- Generated lists are the only place normalized figures live.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
