from datetime import date, datetime

import pytest

from mesclasses.dates import DATE_SENTINEL, normalize_date


@pytest.mark.parametrize("serial, expected", [
    (25569, "1970-01-01"),
    (43567, "2019-04-12"),
    (40210, "2010-02-01"),
    (43567.75, "2019-04-12"),
    (1, "1899-12-31"),
])
def test_serial_numbers_count_days_from_spreadsheet_epoch(serial, expected):
    assert normalize_date(serial) == expected


def test_day_first_text():
    assert normalize_date("15/03/2021") == "2021-03-15"
    assert normalize_date("5-3-2021") == "2021-03-05"


def test_ambiguous_text_is_read_day_first():
    assert normalize_date("01-02-2020") == "2020-02-01"


def test_year_first_text():
    assert normalize_date("2021-03-15") == "2021-03-15"
    assert normalize_date("2021/3/5") == "2021-03-05"


def test_trailing_time_is_ignored():
    assert normalize_date("15/03/2021 00:00:00") == "2021-03-15"


def test_free_text_falls_back_to_generic_parse():
    assert normalize_date("March 15, 2021") == "2021-03-15"


def test_datetime_cells_keep_their_date():
    assert normalize_date(datetime(2011, 9, 30, 0, 0)) == "2011-09-30"
    assert normalize_date(date(2011, 9, 30)) == "2011-09-30"


@pytest.mark.parametrize("value", [None, "", "   ", 0, float("nan"), "not a date", "Nom"])
def test_unreadable_values_become_sentinel(value):
    assert normalize_date(value) == DATE_SENTINEL


def test_huge_serial_does_not_raise():
    result = normalize_date(1e20)
    assert isinstance(result, str) and len(result) == 10
