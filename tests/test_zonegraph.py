# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import unittest
from typing import Dict
from typing import List
from typing import Sequence

from tzfallbacktools.data_types.tz_types import Coordinates
from tzfallbacktools.data_types.tz_types import EntriesMap
from tzfallbacktools.data_types.tz_types import LinksMap
from tzfallbacktools.data_types.tz_types import TzdbInventory
from tzfallbacktools.data_types.tz_types import TzdbLinkError
from tzfallbacktools.data_types.tz_types import ZoneEntryRaw
from tzfallbacktools.transformer.zonegraph import ZoneGraphBuilder
from tzfallbacktools.transformer.zonegraph import compute_changes
from tzfallbacktools.transformer.zonegraph import resolve_link_target


def make_inventory(
    zones: List[str],
    links: LinksMap,
    backzones: Sequence[str] = (),
) -> TzdbInventory:
    all_ids: Dict[str, None] = {}
    for name in zones:
        all_ids[name] = None
    for link_name, target in links.items():
        all_ids[link_name] = None
        all_ids[target] = None
    return TzdbInventory(
        version='test',
        zones=zones,
        links=links,
        backward_links={},
        backzones=list(backzones),
        backzone_links={},
        all_ids=list(all_ids),
    )


def make_entry(offset_string: str, rules: str = '-', until: str = '') \
        -> ZoneEntryRaw:
    return {
        'offset_string': offset_string,
        'rules': rules,
        'format': 'XXX',
        'until': until,
        'raw_line': '',
    }


class TestComputeChanges(unittest.TestCase):
    def test_rename(self) -> None:
        prev = make_inventory(['Europe/Kiev', 'Test/A'], {})
        curr = make_inventory(
            ['Europe/Kyiv', 'Test/A', 'Test/New'],
            {'Europe/Kiev': 'Europe/Kyiv'},
        )
        changes = compute_changes(prev, curr)
        self.assertEqual(['Europe/Kyiv', 'Test/New'], changes.new)
        self.assertEqual({'Europe/Kiev': 'Europe/Kyiv'}, changes.renames)
        self.assertEqual(['Test/New'], changes.additions)
        self.assertEqual([], changes.anomalies)

    def test_new_link_to_old_zone(self) -> None:
        prev = make_inventory(['Test/A'], {})
        curr = make_inventory(['Test/A'], {'Test/Alias': 'Test/A'})
        changes = compute_changes(prev, curr)
        self.assertEqual(['Test/Alias'], changes.new)
        self.assertEqual({'Test/A': 'Test/Alias'}, changes.renames)
        self.assertEqual([], changes.additions)

    def test_anomaly(self) -> None:
        prev = make_inventory(['Test/X', 'Test/Y'], {})
        curr = make_inventory(
            ['Test/Amb'],
            {'Test/X': 'Test/Amb', 'Test/Y': 'Test/Amb'},
        )
        changes = compute_changes(prev, curr)
        self.assertEqual(['Test/Amb'], changes.anomalies)
        self.assertEqual({}, changes.renames)
        self.assertEqual([], changes.additions)

    def test_backzones_are_ignored_when_ambiguous(self) -> None:
        prev = make_inventory(['Test/X', 'Test/Y'], {})
        curr = make_inventory(
            ['Test/Amb'],
            {'Test/X': 'Test/Amb', 'Test/Y': 'Test/Amb'},
            backzones=['Test/Y'],
        )
        changes = compute_changes(prev, curr)
        self.assertEqual([], changes.anomalies)
        self.assertEqual({'Test/X': 'Test/Amb'}, changes.renames)


class TestResolveLinkTarget(unittest.TestCase):
    def test_chain(self) -> None:
        links = {'Test/L2': 'Test/L1', 'Test/L1': 'Test/Zone'}
        self.assertEqual('Test/Zone', resolve_link_target(links, 'Test/L2'))
        self.assertEqual('Test/Zone', resolve_link_target(links, 'Test/L1'))

    def test_cycle(self) -> None:
        links = {'Test/L1': 'Test/L2', 'Test/L2': 'Test/L1'}
        self.assertRaises(TzdbLinkError, resolve_link_target, links, 'Test/L1')


class TestZoneGraphBuilder(unittest.TestCase):
    def setUp(self) -> None:
        entries_map: EntriesMap = {
            'Test/A': [make_entry('1:00', until='1990'), make_entry('2:00')],
            'Etc/GMT+5': [make_entry('-5')],
            'Etc/Ruled': [make_entry('-5:00', rules='US')],
            'Test/NoTab': [make_entry('1:00', until='1990'),
                           make_entry('2:00')],
        }
        self.builder = ZoneGraphBuilder(
            entries_map=entries_map,
            zone_files={name: 'europe' for name in entries_map},
            links_map={
                'Test/L2': 'Test/L1',
                'Test/L1': 'Test/A',
                'Test/Dangling': 'Test/NoTab',
            },
            zone_tab={
                'Test/A': ('AA', Coordinates(50.0, 10.0)),
                'Test/L1': ('BB', Coordinates(40.0, 20.0)),
            },
            new_ids=['Test/L2', 'Test/Unknown'],
        )
        self.zones = self.builder.build()

    def test_locations(self) -> None:
        record = self.zones['Test/A']
        self.assertEqual('AA', record.country_code)
        self.assertEqual(Coordinates(50.0, 10.0), record.coordinates)
        self.assertEqual('europe', record.file)

    def test_fake_coordinates(self) -> None:
        record = self.zones['Etc/GMT+5']
        self.assertEqual('ZZ', record.country_code)
        self.assertEqual(Coordinates(0.0, -75.0), record.coordinates)

    def test_zones_without_coordinates_are_removed(self) -> None:
        self.assertNotIn('Test/NoTab', self.zones)
        self.assertNotIn('Etc/Ruled', self.zones)
        self.assertIn('Test/NoTab', self.builder.removed_zones)
        self.assertIn('Etc/Ruled', self.builder.removed_zones)

        self.assertNotIn('Test/Dangling', self.zones)
        self.assertIn('Test/Dangling', self.builder.removed_links)

    def test_links(self) -> None:
        target = self.zones['Test/A']
        self.assertIsNone(target.canonical)
        self.assertEqual(['Test/L2', 'Test/L1'], target.links)

        for name in ('Test/L1', 'Test/L2'):
            link = self.zones[name]
            self.assertEqual(name, link.name)
            self.assertEqual('Test/A', link.canonical)
            self.assertEqual([], link.links)
            self.assertEqual(target.entries, link.entries)
            self.assertIsNot(target.entries, link.entries)

        # A link with its own zone.tab entry keeps its own location.
        self.assertEqual('BB', self.zones['Test/L1'].country_code)
        self.assertEqual('AA', self.zones['Test/L2'].country_code)

    def test_new_zones(self) -> None:
        self.assertTrue(self.zones['Test/L2'].is_new)
        self.assertFalse(self.zones['Test/L1'].is_new)
        self.assertFalse(self.zones['Test/A'].is_new)

    def test_link_cycle_is_fatal(self) -> None:
        builder = ZoneGraphBuilder(
            entries_map={},
            zone_files={},
            links_map={'Test/L1': 'Test/L2', 'Test/L2': 'Test/L1'},
            zone_tab={},
            new_ids=[],
        )
        self.assertRaises(TzdbLinkError, builder.build)


if __name__ == '__main__':
    unittest.main()
