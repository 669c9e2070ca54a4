# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import datetime
import unittest

from tzfallbacktools.data_types.tz_types import TzdbDateError
from tzfallbacktools.transformer.dates import INVALID_SECONDS
from tzfallbacktools.transformer.dates import _parse_on_day_string
from tzfallbacktools.transformer.dates import civil_from_days
from tzfallbacktools.transformer.dates import datetime_to_seconds
from tzfallbacktools.transformer.dates import days_from_civil
from tzfallbacktools.transformer.dates import normalize_date_expression
from tzfallbacktools.transformer.dates import offset_string_to_seconds
from tzfallbacktools.transformer.dates import parse_until_string
from tzfallbacktools.transformer.dates import resolve_day
from tzfallbacktools.transformer.dates import seconds_to_iso
from tzfallbacktools.transformer.dates import start_of_year
from tzfallbacktools.transformer.dates import time_string_to_seconds
from tzfallbacktools.transformer.dates import year_of


class TestParseOnDayString(unittest.TestCase):
    def test_parse_on_day_string(self) -> None:
        self.assertEqual((7, 0), _parse_on_day_string('lastSun'))
        self.assertEqual((1, 0), _parse_on_day_string('lastMon'))
        self.assertEqual((7, 8), _parse_on_day_string('Sun>=8'))
        self.assertEqual((5, -1), _parse_on_day_string('Fri<=1'))
        self.assertEqual((0, 20), _parse_on_day_string('20'))

    def test_parse_on_day_string_fails(self) -> None:
        self.assertEqual((0, 0), _parse_on_day_string('lastFoo'))
        self.assertEqual((0, 0), _parse_on_day_string('Foo>=1'))
        self.assertEqual((0, 0), _parse_on_day_string('Sun>=0'))
        self.assertEqual((0, 0), _parse_on_day_string('Sun=1'))


class TestResolveDay(unittest.TestCase):
    def test_day_of_month(self) -> None:
        self.assertEqual(datetime.date(2000, 4, 1), resolve_day(2000, 4, '1'))

    def test_last_day_of_week(self) -> None:
        self.assertEqual(
            datetime.date(2023, 3, 26), resolve_day(2023, 3, 'lastSun'))
        self.assertEqual(
            datetime.date(2023, 10, 29), resolve_day(2023, 10, 'lastSun'))
        self.assertEqual(
            datetime.date(2024, 2, 29), resolve_day(2024, 2, 'lastThu'))

    def test_on_or_after(self) -> None:
        self.assertEqual(
            datetime.date(2007, 3, 11), resolve_day(2007, 3, 'Sun>=8'))
        self.assertEqual(
            datetime.date(2007, 11, 4), resolve_day(2007, 11, 'Sun>=1'))
        # Spills into the next month.
        self.assertEqual(
            datetime.date(2022, 5, 1), resolve_day(2022, 4, 'Sun>=30'))

    def test_on_or_before(self) -> None:
        self.assertEqual(
            datetime.date(2020, 3, 27), resolve_day(2020, 3, 'Fri<=28'))
        # Spills into the previous month.
        self.assertEqual(
            datetime.date(2020, 2, 29), resolve_day(2020, 3, 'Sat<=1'))

    def test_invalid(self) -> None:
        self.assertRaises(TzdbDateError, resolve_day, 2020, 3, 'Foo')
        self.assertRaises(TzdbDateError, resolve_day, 2021, 2, '30')


class TestTimeStringToSeconds(unittest.TestCase):
    def test_time_string_to_seconds(self) -> None:
        self.assertEqual(0, time_string_to_seconds('0'))
        self.assertEqual(0, time_string_to_seconds('-'))
        self.assertEqual(7200, time_string_to_seconds('2:00'))
        self.assertEqual(-1800, time_string_to_seconds('-0:30'))
        self.assertEqual(-17762, time_string_to_seconds('-4:56:02'))
        self.assertEqual(90000, time_string_to_seconds('25:00'))

    def test_time_string_to_seconds_fails(self) -> None:
        self.assertEqual(INVALID_SECONDS, time_string_to_seconds(''))
        self.assertEqual(INVALID_SECONDS, time_string_to_seconds('168:00'))
        self.assertEqual(INVALID_SECONDS, time_string_to_seconds('2:60'))
        self.assertEqual(INVALID_SECONDS, time_string_to_seconds('1:2:3:4'))
        self.assertEqual(INVALID_SECONDS, time_string_to_seconds('abc'))

    def test_offset_string_to_seconds(self) -> None:
        self.assertEqual(19800, offset_string_to_seconds('5:30'))
        self.assertRaises(TzdbDateError, offset_string_to_seconds, 'abc')


class TestNormalizeDateExpression(unittest.TestCase):
    def test_suffix(self) -> None:
        self.assertEqual(
            (datetime.datetime(2007, 3, 11, 2, 0), 's'),
            normalize_date_expression(2007, 3, 'Sun>=8', '2:00s'),
        )
        self.assertEqual(
            (datetime.datetime(2023, 3, 26, 1, 0), 'u'),
            normalize_date_expression(2023, 3, 'lastSun', '1:00u'),
        )

    def test_rollover(self) -> None:
        # Rule  Japan   1948    1951  -     Sep Sat>=8  25:00   0   	S
        self.assertEqual(
            (datetime.datetime(1948, 9, 12, 1, 0), ''),
            normalize_date_expression(1948, 9, 'Sat>=8', '25:00'),
        )
        self.assertEqual(
            (datetime.datetime(2000, 1, 1, 0, 0), ''),
            normalize_date_expression(1999, 12, '31', '24:00'),
        )

    def test_invalid(self) -> None:
        self.assertRaises(
            TzdbDateError, normalize_date_expression, 2000, 1, '1', '2:99')


class TestParseUntilString(unittest.TestCase):
    def test_parse_until_string(self) -> None:
        self.assertEqual(
            (datetime.datetime(1970, 1, 1), ''), parse_until_string('1970'))
        self.assertEqual(
            (datetime.datetime(1900, 1, 1), ''),
            parse_until_string('1900 Jan 1'),
        )
        self.assertEqual(
            (datetime.datetime(2011, 3, 13, 2, 0), 's'),
            parse_until_string('2011 Mar 13 2:00s'),
        )
        self.assertEqual(
            (datetime.datetime(1883, 11, 18, 12, 3, 58), ''),
            parse_until_string('1883 Nov 18 12:03:58'),
        )
        self.assertEqual(
            (datetime.datetime(1996, 10, 27, 1, 0), 'u'),
            parse_until_string('1996 Oct lastSun 1:00u'),
        )

    def test_parse_until_string_fails(self) -> None:
        self.assertRaises(TzdbDateError, parse_until_string, '')
        self.assertRaises(TzdbDateError, parse_until_string, '1970 Foo')
        self.assertRaises(TzdbDateError, parse_until_string, 'year')
        self.assertRaises(
            TzdbDateError, parse_until_string, '1970 Jan 1 0:00 extra')


class TestEpochSeconds(unittest.TestCase):
    def test_days_from_civil(self) -> None:
        self.assertEqual(0, days_from_civil(1970, 1, 1))
        self.assertEqual(11017, days_from_civil(2000, 3, 1))
        self.assertEqual(-1, days_from_civil(1969, 12, 31))
        self.assertEqual((1970, 1, 1), civil_from_days(0))
        self.assertEqual((2000, 3, 1), civil_from_days(11017))
        self.assertEqual((1969, 12, 31), civil_from_days(-1))

    def test_datetime_to_seconds(self) -> None:
        self.assertEqual(
            1173578400,
            datetime_to_seconds(datetime.datetime(2007, 3, 11, 2, 0)),
        )
        self.assertEqual(
            -885772800, datetime_to_seconds(datetime.datetime(1941, 12, 7)))

    def test_seconds_to_iso(self) -> None:
        self.assertEqual('1970-01-01T00:00:00+0000', seconds_to_iso(0))
        self.assertEqual(
            '1941-12-07T01:00:00+0000', seconds_to_iso(-885769200))
        self.assertEqual(
            '2007-03-11T07:00:00+0000', seconds_to_iso(1173596400))

    def test_years(self) -> None:
        self.assertEqual(1969, year_of(-1))
        self.assertEqual(1970, year_of(0))
        self.assertEqual(31536000, start_of_year(1971))
        self.assertEqual(0, start_of_year(1970))
        self.assertEqual(2030, year_of(start_of_year(2030)))


if __name__ == '__main__':
    unittest.main()
