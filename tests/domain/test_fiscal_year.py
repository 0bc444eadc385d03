"""Tests for fiscal-year boundaries and labels."""

from datetime import date

import pytest

from contravention_kernel.domain.fiscal_year import fiscal_year_for


class TestFiscalYearFor:

    def test_april_start_after_boundary(self):
        fy = fiscal_year_for(date(2025, 6, 2))
        assert fy.start == date(2025, 4, 1)
        assert fy.end == date(2026, 4, 1)
        assert fy.label == "FY2025/26"

    def test_before_boundary_belongs_to_previous_year(self):
        fy = fiscal_year_for(date(2026, 3, 31))
        assert fy.label == "FY2025/26"

    def test_boundary_day_starts_new_year(self):
        assert fiscal_year_for(date(2026, 4, 1)).label == "FY2026/27"

    def test_contains_is_half_open(self):
        fy = fiscal_year_for(date(2025, 6, 2))
        assert fy.contains(date(2025, 4, 1))
        assert not fy.contains(date(2026, 4, 1))

    def test_calendar_year_start(self):
        fy = fiscal_year_for(date(2025, 6, 2), start_month=1)
        assert fy.start == date(2025, 1, 1)
        assert fy.end == date(2026, 1, 1)

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_start_month(self, month):
        with pytest.raises(ValueError):
            fiscal_year_for(date(2025, 6, 2), start_month=month)
