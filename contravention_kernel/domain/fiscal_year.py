"""
Fiscal-year arithmetic.

Point totals reset at the start of each fiscal year.  The year starts on
the first day of a configurable month (April by default) and is labelled
``FY<start>/<end two digits>``, e.g. ``FY2025/26``.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime


@dataclass(frozen=True)
class FiscalYear:
    """A fiscal year with inclusive start and exclusive end dates."""

    start: date
    end: date

    @property
    def label(self) -> str:
        return f"FY{self.start.year}/{str(self.end.year)[-2:]}"

    @property
    def start_at(self) -> datetime:
        return datetime(self.start.year, self.start.month, self.start.day, tzinfo=UTC)

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end


def fiscal_year_for(day: date, start_month: int = 4) -> FiscalYear:
    """Return the fiscal year containing *day*.

    Raises:
        ValueError: If start_month is outside 1..12.
    """
    if not 1 <= start_month <= 12:
        raise ValueError(f"start_month must be 1..12, got {start_month}")
    start_year = day.year if day.month >= start_month else day.year - 1
    return FiscalYear(
        date(start_year, start_month, 1),
        date(start_year + 1, start_month, 1),
    )
