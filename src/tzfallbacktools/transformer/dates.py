# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Normalization of the symbolic date expressions used by the TZDB (the
IN/ON/AT columns of a RULE, and the UNTIL column of a ZONE) into concrete
calendar date-times, plus conversions between date-times and integer seconds
since the Unix epoch. The reference suffix ('w', 's', 'u', ...) is returned
unresolved, because converting it into UTC depends on the offsets in effect
just before the transition.
"""

import datetime
from typing import Tuple

from tzfallbacktools.data_types.tz_types import TzdbDateError

INVALID_SECONDS = 999999  # 277h46m39s

# Zic accepts AT and UNTIL times up to (but not including) 1 week.
MAX_HOURS = 167

# Suffixes which denote UTC.
UTC_SUFFIXES = ('u', 'g', 'z')

AT_TIME_SUFFIXES = ('w', 's') + UTC_SUFFIXES

# ISO-8601 specifies Monday=1, Sunday=7
WEEK_TO_WEEK_INDEX = {
    'Mon': 1,
    'Tue': 2,
    'Wed': 3,
    'Thu': 4,
    'Fri': 5,
    'Sat': 6,
    'Sun': 7,
}

MONTH_NAMES = [
    'january',
    'february',
    'march',
    'april',
    'may',
    'june',
    'july',
    'august',
    'september',
    'october',
    'november',
    'december',
]

SECONDS_PER_DAY = 86400


def normalize_date_expression(
    year: int,
    month: int,
    on_day: str,
    time_string: str,
) -> Tuple[datetime.datetime, str]:
    """Convert (year, month, on_day, time_string) into a concrete date-time,
    and return the reference suffix of time_string. A time of 24:00 or more
    rolls over into the following day(s), for example:

        (1948, 9, 'Sat>=8', '25:00') -> (1948-09-12 01:00, '')
        (2007, 3, 'Sun>=8', '2:00s') -> (2007-03-11 02:00, 's')
    """
    time, suffix = parse_at_time_string(time_string)
    seconds = time_string_to_seconds(time)
    if seconds == INVALID_SECONDS:
        raise TzdbDateError(f"Invalid time '{time_string}'")

    day = resolve_day(year, month, on_day)
    start_of_day = datetime.datetime(day.year, day.month, day.day)
    return start_of_day + datetime.timedelta(seconds=seconds), suffix


def parse_until_string(until: str) -> Tuple[datetime.datetime, str]:
    """Convert the UNTIL column of a Zone entry ('YEAR [MONTH [DAY [TIME]]]')
    into a date-time and its suffix. Missing fields default to Jan 1 00:00.
    """
    fields = until.split()
    if not fields or len(fields) > 4:
        raise TzdbDateError(f"Invalid UNTIL '{until}'")
    try:
        year = int(fields[0])
        month = month_to_index(fields[1]) if len(fields) > 1 else 1
    except ValueError as e:
        raise TzdbDateError(f"Invalid UNTIL '{until}': {e}") from e
    on_day = fields[2] if len(fields) > 2 else '1'
    time_string = fields[3] if len(fields) > 3 else '0:00'
    return normalize_date_expression(year, month, on_day, time_string)


def parse_at_time_string(at_string: str) -> Tuple[str, str]:
    """Parses the '2:00s' string into '2:00' and 's'. If no suffix is given,
    returns an empty string. Throws ValueError if the suffix is unknown.
    """
    if not at_string:
        raise ValueError('Empty AT time')
    suffix = at_string[-1]
    if suffix.isdigit():
        return (at_string, '')
    if suffix not in AT_TIME_SUFFIXES:
        raise ValueError(f"Invalid AT suffix '{suffix}' in '{at_string}'")
    return (at_string[:-1], suffix)


def month_to_index(month: str) -> int:
    """Convert 'Jan', 'jan' or 'January' into 1, and so on. At least 3
    characters are needed to identify the month. Throws ValueError otherwise.
    """
    lowered = month.lower()
    if len(lowered) >= 3:
        for index, name in enumerate(MONTH_NAMES, start=1):
            if name.startswith(lowered):
                return index
    raise ValueError(f"Invalid month '{month}'")


def resolve_day(year: int, month: int, on_day: str) -> datetime.date:
    """Return the date matching the ON expression in the given (year, month).
    The 'Sun>=N' and 'Sun<=N' forms step to the nearest matching weekday
    (inclusive) and may shift into the adjacent month or year.
    """
    on_day_of_week, on_day_of_month = _parse_on_day_string(on_day)
    if (on_day_of_week, on_day_of_month) == (0, 0):
        raise TzdbDateError(f"Invalid day expression '{on_day}'")

    try:
        if on_day_of_week == 0:
            return datetime.date(year, month, on_day_of_month)

        if on_day_of_month >= 0:
            # Handle lastXxx by transforming it into (Xxx >= (daysInMonth - 6))
            if on_day_of_month == 0:
                on_day_of_month = days_in_month(year, month) - 6
            limit_date = datetime.date(year, month, on_day_of_month)
            shift = (on_day_of_week - limit_date.isoweekday()) % 7
            return limit_date + datetime.timedelta(days=shift)

        limit_date = datetime.date(year, month, -on_day_of_month)
        shift = (limit_date.isoweekday() - on_day_of_week) % 7
        return limit_date - datetime.timedelta(days=shift)
    except ValueError as e:
        raise TzdbDateError(
            f"Invalid day '{on_day}' in {year:04}-{month:02}: {e}") from e


def _parse_on_day_string(on_string: str) -> Tuple[int, int]:
    """Parse things like "Sun>=1", "lastSun", "20", "Fri<=2".
    Returns (on_day_of_week, on_day_of_month) where
        (0, dayOfMonth) = exact match on dayOfMonth
        (dayOfWeek, dayOfMonth) = matches dayOfWeek>=dayOfMonth
        (dayOfWeek, -dayOfMonth) = matches dayOfWeek<=dayOfMonth
        (dayOfWeek, 0) = matches lastDayOfWeek
        (0, 0) = syntax error

    where
        dayOfWeek is represented by a number (Mon=1, ..., Sun=7),
        dayOfMonth is 0, 1-31 (if >=), or (-1)-(-31) (if <=).
    """
    if on_string.isdigit():
        return (0, int(on_string))

    if on_string[:4] == 'last':
        dayOfWeek = on_string[4:]
        if dayOfWeek not in WEEK_TO_WEEK_INDEX:
            return (0, 0)
        return (WEEK_TO_WEEK_INDEX[dayOfWeek], 0)

    for operator, sign in (('>=', 1), ('<=', -1)):
        index = on_string.find(operator)
        if index < 0:
            continue
        dayOfWeek = on_string[:index]
        dayOfMonth = on_string[index + 2:]
        if dayOfWeek not in WEEK_TO_WEEK_INDEX or not dayOfMonth.isdigit():
            return (0, 0)
        if int(dayOfMonth) == 0:
            return (0, 0)
        return (WEEK_TO_WEEK_INDEX[dayOfWeek], sign * int(dayOfMonth))

    return (0, 0)


def days_in_month(year: int, month: int) -> int:
    """Return the number of days in the given (year, month)."""
    DAYS_IN_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]
    is_leap = (year % 4 == 0) and ((year % 100 != 0) or (year % 400) == 0)
    days = DAYS_IN_MONTH[month - 1]
    if month == 2:
        days += is_leap
    return days


def time_string_to_seconds(time_string: str) -> int:
    """Converts the '[-]hh:mm:ss' string into +/- total seconds from 00:00.
    Returns INVALID_SECONDS if there is a parsing error.
    """
    if not time_string:
        return INVALID_SECONDS
    if time_string == '-':
        return 0

    sign = 1
    if time_string[0] == '-':
        sign = -1
        time_string = time_string[1:]

    try:
        elems = time_string.split(':')
        hour = int(elems[0])
        minute = int(elems[1]) if len(elems) > 1 else 0
        second = int(elems[2]) if len(elems) > 2 else 0
        if len(elems) > 3:
            return INVALID_SECONDS
    except ValueError:
        return INVALID_SECONDS

    # A number of countries use 24:00, and Japan uses 25:00(!).
    # Rule  Japan   1948    1951  -     Sep Sat>=8  25:00   0   	S
    if hour < 0 or hour > MAX_HOURS:
        return INVALID_SECONDS
    if minute < 0 or minute > 59:
        return INVALID_SECONDS
    if second < 0 or second > 59:
        return INVALID_SECONDS
    return sign * ((hour * 60 + minute) * 60 + second)


def offset_string_to_seconds(offset_string: str) -> int:
    """Convert a STDOFF or SAVE field into seconds. Throws TzdbDateError if
    the field cannot be parsed.
    """
    seconds = time_string_to_seconds(offset_string)
    if seconds == INVALID_SECONDS:
        raise TzdbDateError(f"Invalid offset '{offset_string}'")
    return seconds


# -----------------------------------------------------------------------------
# Conversion between calendar dates and epoch seconds. These work for any
# integer year, unlike datetime, so that the caller's minimum and maximum
# instants can be rendered.
# -----------------------------------------------------------------------------

def days_from_civil(year: int, month: int, day: int) -> int:
    """Return the number of days since 1970-01-01 of the proleptic Gregorian
    date (year, month, day).
    """
    year -= month <= 2
    era = year // 400
    yoe = year - era * 400
    doy = (153 * (month + (-3 if month > 2 else 9)) + 2) // 5 + day - 1
    doe = yoe * 365 + yoe // 4 - yoe // 100 + doy
    return era * 146097 + doe - 719468


def civil_from_days(days: int) -> Tuple[int, int, int]:
    """Inverse of days_from_civil()."""
    days += 719468
    era = days // 146097
    doe = days - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + (3 if mp < 10 else -9)
    year = yoe + era * 400 + (month <= 2)
    return (year, month, day)


def datetime_to_seconds(dt: datetime.datetime) -> int:
    """Convert a naive date-time into seconds since 1970-01-01 00:00, as if
    it were UTC.
    """
    days = days_from_civil(dt.year, dt.month, dt.day)
    return (
        days * SECONDS_PER_DAY
        + dt.hour * 3600 + dt.minute * 60 + dt.second
    )


def seconds_to_iso(seconds: int) -> str:
    """Render epoch seconds as 'YYYY-MM-DDTHH:MM:SS+0000'."""
    days, remainder = divmod(seconds, SECONDS_PER_DAY)
    year, month, day = civil_from_days(days)
    hour, remainder = divmod(remainder, 3600)
    minute, second = divmod(remainder, 60)
    return (
        f'{year:04}-{month:02}-{day:02}'
        f'T{hour:02}:{minute:02}:{second:02}+0000'
    )


def year_of(seconds: int) -> int:
    """Return the UTC calendar year of the epoch seconds."""
    return civil_from_days(seconds // SECONDS_PER_DAY)[0]


def start_of_year(year: int) -> int:
    """Return the epoch seconds of YEAR-01-01 00:00 UTC."""
    return days_from_civil(year, 1, 1) * SECONDS_PER_DAY
