from datetime import date

import pytest

from periods import MonthKey, add_months, month_window, parse_date_param, time_range_start


def test_add_months_wraps_years():
    assert add_months(date(2024, 1, 31), -1) == date(2023, 12, 1)
    assert add_months(date(2024, 11, 5), 3) == date(2025, 2, 1)
    assert add_months(date(2024, 6, 1), 0) == date(2024, 6, 1)


def test_month_window_is_oldest_first():
    window = month_window(3, today=date(2024, 1, 15))
    assert window == [MonthKey(2023, 11), MonthKey(2023, 12), MonthKey(2024, 1)]
    assert window[-1].first_day() == date(2024, 1, 1)


def test_time_range_start():
    today = date(2024, 5, 10)
    assert time_range_start("90days", today=today) == date(2024, 2, 10)
    assert time_range_start("year", today=today) == date(2023, 5, 10)
    assert time_range_start("all", today=today) is None
    assert time_range_start(None, today=today) is None


def test_parse_date_param():
    assert parse_date_param(None) is None
    assert parse_date_param("") is None
    assert parse_date_param(" 2024-02-29 ") == date(2024, 2, 29)
    with pytest.raises(ValueError):
        parse_date_param("29.02.2024")
