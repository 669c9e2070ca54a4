# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import copy
import logging
from typing import Collection
from typing import Dict
from typing import List
from typing import Tuple

from tzfallbacktools.data_types.tz_types import CommentsMap
from tzfallbacktools.data_types.tz_types import Coordinates
from tzfallbacktools.data_types.tz_types import EntriesMap
from tzfallbacktools.data_types.tz_types import LinksMap
from tzfallbacktools.data_types.tz_types import TzdbChanges
from tzfallbacktools.data_types.tz_types import TzdbInventory
from tzfallbacktools.data_types.tz_types import TzdbLinkError
from tzfallbacktools.data_types.tz_types import ZoneRecord
from tzfallbacktools.data_types.tz_types import ZonesMap
from tzfallbacktools.data_types.tz_types import add_comment
from tzfallbacktools.data_types.tz_types import is_named_rule_set
from tzfallbacktools.data_types.tz_types import merge_comments

# Map of zoneName -> (countryCode, Coordinates), from zone.tab.
ZoneTab = Dict[str, Tuple[str, Coordinates]]


def compute_changes(prev: TzdbInventory, curr: TzdbInventory) -> TzdbChanges:
    """Determine which identifiers of 'curr' are new relative to 'prev', and
    which of those are simple renames of an old identifier. A new identifier
    which links to more than one identifier (even after ignoring backzone
    zones) is an anomaly which requires manual review.
    """
    prev_ids = set(prev.all_ids)
    new = [name for name in curr.all_ids if name not in prev_ids]

    renames: Dict[str, str] = {}
    anomalies: List[str] = []
    for name in new:
        # Links which point to this name, and the target of this name.
        linked: Dict[str, None] = {}
        for link_name, target in curr.links.items():
            if target == name:
                linked[link_name] = None
        target = curr.links.get(name)
        if target is not None:
            linked[target] = None
        if not linked:
            continue

        candidates = list(linked.keys())
        if len(candidates) > 1:
            candidates = [c for c in candidates if c not in curr.backzones]
            if len(candidates) != 1:
                anomalies.append(name)
                continue
        renames[candidates[0]] = name

    renamed = set(renames.values())
    additions = [
        name for name in new
        if name not in renamed and name not in anomalies
    ]

    return TzdbChanges(
        new=new,
        renames=renames,
        additions=additions,
        anomalies=anomalies,
    )


def resolve_link_target(links_map: LinksMap, name: str) -> str:
    """Follow a chain of links until a name which is not a link is found.
    Raises TzdbLinkError if the chain contains a cycle.
    """
    seen: List[str] = [name]
    target = links_map[name]
    while target in links_map:
        if target in seen:
            chain = ' -> '.join(seen + [target])
            raise TzdbLinkError(f'Link cycle: {chain}')
        seen.append(target)
        target = links_map[target]
    return target


class ZoneGraphBuilder:
    """Create the ZoneRecords of the current TZDB version. Attaches the
    country code and coordinates from zone.tab, turns every link into a
    record which shares the entries of its canonical target, and marks the
    new identifiers.
    """

    def __init__(
        self,
        entries_map: EntriesMap,
        zone_files: Dict[str, str],
        links_map: LinksMap,
        zone_tab: ZoneTab,
        new_ids: Collection[str],
    ):
        """
        Args:
            entries_map: {zoneName -> ZoneEntryRaw[]} from the Extractor
            zone_files: {zoneName -> TZDB file which defined it}
            links_map: {linkName -> targetName} from the Extractor
            zone_tab: {zoneName -> (countryCode, Coordinates)}
            new_ids: identifiers which are absent from the baseline version
        """
        self.entries_map = entries_map
        self.zone_files = zone_files
        self.links_map = links_map
        self.zone_tab = zone_tab
        self.new_ids = new_ids

        self.removed_zones: CommentsMap = {}
        self.removed_links: CommentsMap = {}
        self.notable_zones: CommentsMap = {}

    def build(self) -> ZonesMap:
        zones = self._create_zone_records()
        zones = self._attach_locations(zones)
        zones = self._remove_zones_without_location(zones)
        zones = self._create_link_records(zones)
        self._mark_new_zones(zones)
        return zones

    def print_summary(self, zones: ZonesMap) -> None:
        links_count = sum(1 for record in zones.values() if record.canonical)
        new_count = sum(1 for record in zones.values() if record.is_new)
        logging.info(
            f'Summary: Zones: {len(zones) - links_count}'
            f'; links: {links_count}'
            f'; new: {new_count}'
            f'; removed zones: {len(self.removed_zones)}'
            f'; removed links: {len(self.removed_links)}'
        )
        self._print_comments_map(
            'Removed %s zones without coordinates', self.removed_zones)
        self._print_comments_map(
            'Removed %s links without targets', self.removed_links)
        self._print_comments_map(
            'Noted %s zones', self.notable_zones)

    def _print_comments_map(
        self,
        label: str,
        comments: CommentsMap,
        max_comments: int = 5,
    ) -> None:
        """Print the summary line, followed by up to 'max_comments' names
        and their reasons.
        """
        if len(comments) == 0:
            return

        logging.info(label, len(comments))

        # Print all lines if len() <= max_comments. Otherwise, print top half
        # and bottom half of max_comments.
        sorted_comments = sorted(comments.items())
        num_items = len(sorted_comments)
        limit = (max_comments - 1) // 2
        ellipses_printed = False
        for index, (name, reasons) in enumerate(sorted_comments):
            if (num_items <= max_comments or index < limit
                    or index >= num_items - limit):
                logging.info(f'- {name} ({sorted(reasons)})')
            elif not ellipses_printed:
                logging.info('- [...]')
                ellipses_printed = True

    def _create_zone_records(self) -> ZonesMap:
        zones: ZonesMap = {}
        for name, entries in self.entries_map.items():
            zones[name] = ZoneRecord(
                name=name,
                entries=entries,
                file=self.zone_files.get(name, ''),
            )
        return zones

    def _attach_locations(self, zones: ZonesMap) -> ZonesMap:
        for name, record in zones.items():
            location = self.zone_tab.get(name)
            if location is None:
                continue
            record.country_code, record.coordinates = location
        return zones

    def _remove_zones_without_location(self, zones: ZonesMap) -> ZonesMap:
        """Zones missing from zone.tab (e.g. Etc/*) which consist of a single
        fixed offset entry are given fake coordinates on the equator, at the
        longitude implied by their offset. Any other zone without coordinates
        cannot be placed, so it is dropped.
        """
        results: ZonesMap = {}
        removed_zones: CommentsMap = {}
        notable_zones: CommentsMap = {}
        for name, record in zones.items():
            if record.coordinates is None:
                entries = record.entries
                if (len(entries) == 1
                        and not is_named_rule_set(entries[0]['rules'])):
                    hours = int(entries[0]['offset_string'].split(':')[0])
                    record.coordinates = Coordinates(0.0, hours * 15.0)
                elif name in self.links_map:
                    add_comment(
                        notable_zones, name,
                        'No coordinates, replaced by its link target')
                    continue
                else:
                    add_comment(removed_zones, name, 'No coordinates')
                    continue
            results[name] = record

        for name, reasons in sorted(removed_zones.items()):
            logging.warning('Dropped zone %s: %s', name,
                            ', '.join(sorted(reasons)))
        merge_comments(self.removed_zones, removed_zones)
        merge_comments(self.notable_zones, notable_zones)
        return results

    def _create_link_records(self, zones: ZonesMap) -> ZonesMap:
        """From this point forward, links are handled like canonical zones.
        A link which has no Zone record of its own receives a copy of its
        target's record.
        """
        for link_name in self.links_map:
            target = resolve_link_target(self.links_map, link_name)
            target_record = zones.get(target)
            if target_record is None:
                add_comment(
                    self.removed_links, link_name,
                    f"Target '{target}' not found")
                continue

            if link_name not in zones:
                record = copy.deepcopy(target_record)
                record.name = link_name
                record.links = []
                location = self.zone_tab.get(link_name)
                if location is not None:
                    record.country_code, record.coordinates = location
                zones[link_name] = record

            zones[link_name].canonical = target
            if link_name not in target_record.links:
                target_record.links.append(link_name)

        if self.removed_links:
            logging.info(
                'Removed %d links with missing targets',
                len(self.removed_links))
        return zones

    def _mark_new_zones(self, zones: ZonesMap) -> None:
        for name in self.new_ids:
            record = zones.get(name)
            if record is not None:
                record.is_new = True
