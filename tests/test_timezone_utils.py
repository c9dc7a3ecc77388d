import datetime

import pytz

from timezone_utils import calendar_days_between, convert_to_timezone, ensure_aware, local_date, start_of_day

JAKARTA = pytz.timezone("Asia/Jakarta")
UTC = datetime.timezone.utc


def test_local_date_crosses_midnight():
    late_utc = datetime.datetime(2025, 11, 15, 20, 0, tzinfo=UTC)
    assert local_date(late_utc, pytz.utc) == datetime.date(2025, 11, 15)
    assert local_date(late_utc, JAKARTA) == datetime.date(2025, 11, 16)

def test_calendar_days_between():
    a = datetime.datetime(2025, 11, 15, 23, 59, tzinfo=UTC)
    b = datetime.datetime(2025, 11, 16, 0, 1, tzinfo=UTC)
    assert calendar_days_between(a, b, pytz.utc) == 1
    assert calendar_days_between(b, a, pytz.utc) == -1
    assert calendar_days_between(a, a, pytz.utc) == 0

def test_naive_values_are_local():
    naive = datetime.datetime(2025, 11, 15, 8, 0)
    converted = convert_to_timezone(naive, JAKARTA)
    assert converted.hour == 8
    assert converted.utcoffset() == datetime.timedelta(hours=7)

def test_start_of_day():
    dt = datetime.datetime(2025, 11, 15, 20, 0, tzinfo=UTC)
    start = start_of_day(dt, JAKARTA)
    assert (start.year, start.month, start.day, start.hour) == (2025, 11, 16, 0)

def test_ensure_aware():
    aware = datetime.datetime(2025, 11, 15, tzinfo=UTC)
    assert ensure_aware(aware) is aware
    assert ensure_aware(datetime.datetime(2025, 11, 15), pytz.utc).tzinfo is not None
