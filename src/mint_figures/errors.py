from __future__ import annotations


class MintFiguresError(Exception):
    """Base class for every error raised by this package."""


class MalformedPeriodError(MintFiguresError, ValueError):
    def __init__(self, key: str, reason: str = "unrecognized format") -> None:
        super().__init__(f"Malformed period key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class UnrecognizedRowError(MintFiguresError):
    def __init__(self, keys: list[str]) -> None:
        super().__init__(f"Unrecognized row shape with keys: {keys}")
        self.keys = keys


class StaleReportError(MintFiguresError):
    """The report's self-reported date does not match the requested period."""

    def __init__(self, period_key: str, reported: str) -> None:
        super().__init__(
            f"Report for {period_key} claims to be valid for {reported}"
        )
        self.period_key = period_key
        self.reported = reported


class MissingStructureError(MintFiguresError):
    """A response did not contain the expected table or row array."""


class UpstreamBlockedError(MintFiguresError):
    """Repeated structural failures; the upstream site is likely blocking us."""


class UnverifiableReportError(MintFiguresError):
    """A report states its date in a form that cannot be read."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"Unrecognized report date {raw!r}")
        self.raw = raw
