"""Turn the date values found in rosters into ISO ``YYYY-MM-DD`` strings.

Spreadsheets hand us serial day counts, ``datetime`` cells, day-first text
(``15/03/2021``), ISO-like text and the occasional free-form string.
:func:`normalize_date` accepts all of them and never raises: anything it
cannot read becomes :data:`DATE_SENTINEL`.
"""
import numbers
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

import pandas as pd

DATE_SENTINEL = "2000-01-01"

# Day 25569 of the spreadsheet calendar is 1970-01-01.
SERIAL_EPOCH_OFFSET = 25569
SECONDS_PER_DAY = 86400
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DMY_PATTERN = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
YMD_PATTERN = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return not value


def serial_to_iso(value: float) -> str:
    seconds = round((float(value) - SERIAL_EPOCH_OFFSET) * SECONDS_PER_DAY)
    return (UNIX_EPOCH + timedelta(seconds=seconds)).date().isoformat()


def normalize_date(value: Any) -> str:
    if _is_missing(value):
        return DATE_SENTINEL

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        try:
            return serial_to_iso(value)
        except (OverflowError, ValueError):
            pass

    text = str(value).strip()
    if not text:
        return DATE_SENTINEL

    match = DMY_PATTERN.match(text)
    if match:
        day, month, year = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    match = YMD_PATTERN.match(text)
    if match:
        year, month, day = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        parsed = pd.NaT
    if not pd.isna(parsed):
        return parsed.date().isoformat()

    return DATE_SENTINEL
