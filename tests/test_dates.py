"""
Test suite for date helpers
"""

from datetime import date, datetime, timezone

from cash_position.dates import to_date, today_in, resolve_today, day_range, in_range


class TestToDate:
    """Test start-of-day normalization"""

    def test_date_and_datetime(self):
        assert to_date(date(2024, 3, 5)) == date(2024, 3, 5)
        assert to_date(datetime(2024, 3, 5, 23, 59, tzinfo=timezone.utc)) == date(2024, 3, 5)

    def test_iso_strings(self):
        assert to_date("2024-03-05") == date(2024, 3, 5)
        assert to_date("2024-03-05T14:30:00+00:00") == date(2024, 3, 5)
        assert to_date("2024-03-05 14:30:00") == date(2024, 3, 5)

    def test_malformed_values(self):
        assert to_date(None) is None
        assert to_date("") is None
        assert to_date("05/03/2024") is None
        assert to_date("2024-02-30") is None
        assert to_date(20240305) is None


class TestToday:
    """Test resolution of the reference day"""

    def test_explicit_today_wins(self):
        assert resolve_today(date(2024, 3, 10)) == date(2024, 3, 10)
        assert resolve_today("2024-03-10") == date(2024, 3, 10)

    def test_configured_zone(self):
        assert isinstance(resolve_today(), date)
        assert isinstance(today_in("UTC"), date)


class TestRanges:
    """Test inclusive day ranges"""

    def test_day_range_inclusive(self):
        days = list(day_range(date(2024, 2, 27), date(2024, 3, 1)))
        assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_empty_day_range(self):
        assert list(day_range(date(2024, 3, 2), date(2024, 3, 1))) == []

    def test_in_range(self):
        start, end = date(2024, 3, 10), date(2024, 3, 20)
        assert in_range(date(2024, 3, 10), start, end)
        assert in_range(date(2024, 3, 20), start, end)
        assert not in_range(date(2024, 3, 21), start, end)
        assert not in_range(None, start, end)
