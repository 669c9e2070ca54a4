# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import unittest
from typing import List

from tzfallbacktools.data_types.tz_types import Coordinates
from tzfallbacktools.data_types.tz_types import Transition
from tzfallbacktools.data_types.tz_types import TzdbError
from tzfallbacktools.data_types.tz_types import ZoneRecord
from tzfallbacktools.extractor.extractor import parse_tzdb_text
from tzfallbacktools.transformer.dates import seconds_to_iso
from tzfallbacktools.transformer.transitions import TransitionCompiler
from tzfallbacktools.transformer.transitions import format_abbreviation
from tzfallbacktools.transformer.transitions import format_numeric_offset
from tzdb_helpers import MAX_INSTANT
from tzdb_helpers import MIN_INSTANT
from tzdb_helpers import build_zones

NORTHAMERICA = """\
Rule	US	1967	2006	-	Oct	lastSun	2:00	0	S
Rule	US	1967	1973	-	Apr	lastSun	2:00	1:00	D
Rule	US	1976	1986	-	Apr	lastSun	2:00	1:00	D
Rule	US	1987	2006	-	Apr	Sun>=1	2:00	1:00	D
Rule	US	2007	max	-	Mar	Sun>=8	2:00	1:00	D
Rule	US	2007	max	-	Nov	Sun>=1	2:00	0	S
Zone America/New_York	-4:56:02 -	LMT	1883 Nov 18 12:03:58
			-5:00	US	E%sT
"""

EUROPE = """\
Rule	EU	1981	max	-	Mar	lastSun	 1:00u	1:00	S
Rule	EU	1996	max	-	Oct	lastSun	 1:00u	0	-
Zone	Europe/London	0:00	EU	GMT/BST
Zone	Europe/Test	0:00	-	GMT	2000 Jul 1
			1:00	EU	CE%sT
Zone	Europe/Fixed	1:00	1:00	CEST
Zone	Asia/Kolkata	5:30	-	IST
"""

ZONE_TAB = {
    'America/New_York': ('US', Coordinates(40.7, -74.0)),
    'Europe/London': ('GB', Coordinates(51.5, 0.0)),
    'Europe/Test': ('XX', Coordinates(50.0, 10.0)),
    'Europe/Fixed': ('XX', Coordinates(50.0, 10.0)),
    'Asia/Kolkata': ('IN', Coordinates(22.5, 88.4)),
}


def transitions_in_year(
    transitions: List[Transition],
    year: int,
) -> List[Transition]:
    prefix = f'{year:04}-'
    return [t for t in transitions if t.time.startswith(prefix)]


class TestFormatAbbreviation(unittest.TestCase):
    def test_letter(self) -> None:
        self.assertEqual('EDT', format_abbreviation('E%sT', 'D', 0, True))
        self.assertEqual('EST', format_abbreviation('E%sT', 'S', 0, False))
        self.assertEqual('CET', format_abbreviation('CE%sT', '-', 0, False))

    def test_slash(self) -> None:
        self.assertEqual(
            'BST', format_abbreviation('GMT/BST', '-', 3600, True))
        self.assertEqual('GMT', format_abbreviation('GMT/BST', 'S', 0, False))

    def test_numeric_offset(self) -> None:
        self.assertEqual('+0530', format_abbreviation('%z', '-', 19800, False))
        self.assertEqual('-03', format_abbreviation('%z', '-', -10800, False))
        self.assertEqual('+00', format_numeric_offset(0))
        self.assertEqual('-045602', format_numeric_offset(-17762))

    def test_plain(self) -> None:
        self.assertEqual('LMT', format_abbreviation('LMT', '-', 0, False))


class TestTransitionCompiler(unittest.TestCase):
    def setUp(self) -> None:
        self.zones, self.transitions = build_zones(
            NORTHAMERICA + EUROPE, ZONE_TAB)

    def test_fixed_offset(self) -> None:
        self.assertEqual(
            [(MIN_INSTANT, 19800, False, 'IST')],
            [(t.ts, t.offset, t.is_dst, t.abbr)
             for t in self.transitions['Asia/Kolkata']],
        )
        self.assertEqual(
            seconds_to_iso(MIN_INSTANT),
            self.transitions['Asia/Kolkata'][0].time,
        )

    def test_fixed_save(self) -> None:
        self.assertEqual(
            [(7200, True, 'CEST')],
            [t.state for t in self.transitions['Europe/Fixed']],
        )

    def test_two_rules_per_year(self) -> None:
        transitions = self.transitions['Europe/London']
        self.assertEqual((0, False, 'GMT'), transitions[0].state)
        self.assertEqual(MIN_INSTANT, transitions[0].ts)
        for year in range(2000, 2030):
            in_year = transitions_in_year(transitions, year)
            self.assertEqual(
                [(3600, True, 'BST'), (0, False, 'GMT')],
                [t.state for t in in_year],
            )
        self.assertEqual(
            ['2023-03-26T01:00:00+0000', '2023-10-29T01:00:00+0000'],
            [t.time for t in transitions_in_year(transitions, 2023)],
        )
        self.assertEqual([], transitions_in_year(transitions, 2030))

    def test_wall_clock_rules(self) -> None:
        transitions = self.transitions['America/New_York']
        self.assertEqual((-17762, False, 'LMT'), transitions[0].state)
        self.assertEqual(
            Transition(
                ts=-2717650800,
                time='1883-11-18T17:00:00+0000',
                offset=-18000,
                is_dst=False,
                abbr='EST',
            ),
            transitions[1],
        )
        self.assertEqual(
            [(1173596400, -14400, True, 'EDT'),
             (1194156000, -18000, False, 'EST')],
            [(t.ts, t.offset, t.is_dst, t.abbr)
             for t in transitions_in_year(transitions, 2007)],
        )
        # No DST in 1974 and 1975 for this simplified rule set, so the Oct
        # rules of those years repeat the current state.
        self.assertEqual([], transitions_in_year(transitions, 1974))
        self.assertEqual([], transitions_in_year(transitions, 1975))
        self.assertEqual(
            ['EDT', 'EST'],
            [t.abbr for t in transitions_in_year(transitions, 1976)],
        )

    def test_preceding_rule_seeds_entry_start(self) -> None:
        transitions = self.transitions['Europe/Test']
        self.assertEqual(
            [(MIN_INSTANT, 0, False, 'GMT'),
             (962409600, 7200, True, 'CEST')],
            [(t.ts, t.offset, t.is_dst, t.abbr) for t in transitions[:2]],
        )
        self.assertEqual('2000-10-29T01:00:00+0000', transitions[2].time)
        self.assertEqual((3600, False, 'CET'), transitions[2].state)

    def test_invariants(self) -> None:
        for name, transitions in self.transitions.items():
            for prev, curr in zip(transitions, transitions[1:]):
                self.assertLess(prev.ts, curr.ts, name)
                self.assertNotEqual(prev.state, curr.state, name)
            self.assertTrue(all(t.ts < MAX_INSTANT for t in transitions))

    def test_entries_are_back_filled(self) -> None:
        entries = self.zones['America/New_York'].entries
        self.assertEqual(MIN_INSTANT, entries[0]['from_utc'])
        self.assertEqual(-2717650800, entries[0]['until_utc'])
        self.assertEqual(-2717650800, entries[1]['from_utc'])
        self.assertEqual(MAX_INSTANT, entries[1]['until_utc'])
        self.assertEqual(-17762, entries[0]['offset_seconds'])

    def test_unknown_rule_set(self) -> None:
        data = parse_tzdb_text('europe', 'Zone\tTest/Zone\t1:00\tNope\tX\n')
        record = ZoneRecord(
            name='Test/Zone',
            entries=data.zones['Test/Zone'],
            file='europe',
        )
        compiler = TransitionCompiler({}, MIN_INSTANT, MAX_INSTANT)
        self.assertRaises(TzdbError, compiler.compile_zone, record)


FREETOWN = """\
Zone	Africa/Freetown	0:00	-	GMT	1941 Dec 7 1:00u
			0:00	1:00	+01	1942
			0:00	-	GMT
"""


class TestCorrections(unittest.TestCase):
    def compile(self, name: str) -> List[Transition]:
        data = parse_tzdb_text('africa', FREETOWN)
        record = ZoneRecord(
            name=name,
            entries=data.zones['Africa/Freetown'],
            file='africa',
        )
        self.compiler = TransitionCompiler(
            data.rules, MIN_INSTANT, MAX_INSTANT)
        return self.compiler.compile_zone(record)

    def test_freetown_is_corrected(self) -> None:
        transitions = self.compile('Africa/Freetown')
        self.assertEqual(
            [(MIN_INSTANT, 0, False, 'GMT')],
            [(t.ts, t.offset, t.is_dst, t.abbr) for t in transitions],
        )
        self.assertEqual(['Africa/Freetown'], self.compiler.corrected_zones)

    def test_other_zones_are_not_corrected(self) -> None:
        transitions = self.compile('Africa/Elsewhere')
        self.assertEqual(
            (-885769200, 3600, True, '+01'),
            (transitions[1].ts, transitions[1].offset, transitions[1].is_dst,
             transitions[1].abbr),
        )
        self.assertEqual([], self.compiler.corrected_zones)


if __name__ == '__main__':
    unittest.main()
