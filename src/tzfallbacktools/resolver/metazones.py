# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Detect groups of canonical zones which share the same civil time behavior
but are not represented by any existing metazone. The check is done one
calendar year at a time, to avoid false positives on places that simply
started or stopped observing DST, and that are covered by existing metazones
both before and after the change.
"""

import logging
from typing import Collection
from typing import Dict
from typing import List
from typing import Mapping
from typing import Sequence
from typing import Tuple

from tzfallbacktools.data_types.tz_types import Metazone
from tzfallbacktools.data_types.tz_types import Transition
from tzfallbacktools.data_types.tz_types import TransitionsMap
from tzfallbacktools.data_types.tz_types import ZoneRecord
from tzfallbacktools.data_types.tz_types import ZonesMap
from tzfallbacktools.resolver.fallbacks import FallbackResolver
from tzfallbacktools.transformer.dates import start_of_year

# Zones whose transitions differ only by the time of day of the clock
# changes, by at most this, are considered close enough to share a
# metazone (e.g. America/Moncton and America/Halifax in 2005).
CLOSE_ENOUGH_SECONDS = 3 * 3600

# Countries of Central America which are considered part of North America.
NORTH_AMERICAN_COUNTRIES_NEAR_EQUATOR = ('NI', 'CR', 'PA')

# (ts, offset, is_dst, abbr) of each transition in the year.
Signature = Tuple[Tuple[int, int, bool, str], ...]

# (offset, is_dst, abbr) of each transition in the year.
LooseSignature = Tuple[Tuple[int, bool, str], ...]


def clip_signature(
    transitions: Sequence[Transition],
    start: int,
    end: int,
) -> Signature:
    """Return the signature of the transitions in [start, end). The
    transition in effect at 'start' is moved to 'start'.
    """
    signature = []
    for index, transition in enumerate(transitions):
        if transition.ts >= end:
            break
        if (index + 1 < len(transitions)
                and transitions[index + 1].ts <= start):
            continue
        ts = max(transition.ts, start)
        signature.append(
            (ts, transition.offset, transition.is_dst, transition.abbr))
    return tuple(signature)


def loose_signature(signature: Signature) -> LooseSignature:
    return tuple(
        (offset, is_dst, abbr) for _, offset, is_dst, abbr in signature)


def is_close_enough(a: Signature, b: Signature) -> bool:
    return all(
        abs(x[0] - y[0]) <= CLOSE_ENOUGH_SECONDS for x, y in zip(a, b)
    )


def make_label_key(record: ZoneRecord) -> str:
    """Create the suggested key of the display text of a metazone. Metazones
    distinguish between North and South America.
    """
    key = record.name.replace('/', '_')
    if not key.startswith('America_'):
        return key

    if record.file == 'northamerica':
        return 'North_' + key
    if record.file == 'southamerica':
        return 'South_' + key

    # From the backward or backzone files, so guess from the location.
    latitude = record.coordinates.latitude if record.coordinates else 0.0
    if latitude > 13:
        return 'North_' + key
    if (latitude > 7
            and record.country_code in NORTH_AMERICAN_COUNTRIES_NEAR_EQUATOR):
        return 'North_' + key
    return 'South_' + key


class MetazoneGrouper:
    """Propose new metazones for the years in [start_year, end_year].

    Only canonical zones which are not existing metazones, are not currently
    listed for display, are not Etc/*, and are hierarchical (or 'UTC') can
    become members of a proposal. The existing metazones and listed zones
    are registered first, so that zones which behave like them are not
    proposed again.
    """

    def __init__(
        self,
        zones: ZonesMap,
        transitions_map: TransitionsMap,
        canonical_names: Collection[str],
        metazone_names: Collection[str],
        listed_names: Collection[str],
        country_zone_order: Mapping[str, List[str]],
        resolver: FallbackResolver,
    ):
        self.zones = zones
        self.transitions_map = transitions_map
        self.metazone_names = list(metazone_names)
        self.listed_names = list(listed_names)
        self.country_zone_order = country_zone_order
        self.resolver = resolver

        metazone_set = set(self.metazone_names)
        self.canonical_non_metazones = [
            name for name in canonical_names if name not in metazone_set
        ]
        # Only existing metazones can cover a group. This also removes the
        # links of the members, which are copies of the members themselves.
        self.non_metazones = [
            name for name in zones if name not in metazone_set
        ]

    def group(self, start_year: int, end_year: int) -> List[Metazone]:
        proposals: Dict[Tuple[str, ...], Metazone] = {}
        for year in range(start_year, end_year + 1):
            for members in self.group_year(year):
                metazone = self._make_metazone(members)
                if metazone.members in proposals:
                    continue
                logging.info(
                    'Metazones: %d: proposed %s for %s',
                    year, metazone.tzid, ', '.join(metazone.members))
                proposals[metazone.members] = metazone
        return list(proposals.values())

    def group_year(self, year: int) -> List[List[str]]:
        """Return the groups of zones of 'year' which are not covered by an
        existing metazone, in the order in which they were found.
        """
        start = start_of_year(year)
        end = start_of_year(year + 1)

        registered: Dict[Signature, str] = {}
        registered_loose: Dict[LooseSignature, List[Signature]] = {}
        groups: Dict[Signature, List[str]] = {}

        for name in self._ordered_names():
            transitions = self.transitions_map.get(name)
            if transitions is None:
                continue
            signature = clip_signature(transitions, start, end)
            if signature in registered:
                continue

            loose = loose_signature(signature)
            similar = registered_loose.get(loose)
            close_enough = bool(similar) and all(
                is_close_enough(other, signature) for other in similar
            )

            if not close_enough and self._is_candidate(name):
                groups.setdefault(signature, []).append(name)
            else:
                registered[signature] = name
                registered_loose.setdefault(loose, []).append(signature)

        # A metazone is not justified if it contains only one zone.
        candidates = {
            signature: members for signature, members in groups.items()
            if len(members) > 1
        }
        grouped_names = [
            name for members in candidates.values() for name in members
        ]

        results: List[List[str]] = []
        for members in candidates.values():
            if self._is_covered(members[0], grouped_names, start, end):
                continue
            results.append(members)
        return results

    def print_summary(self, metazones: List[Metazone]) -> None:
        logging.info(f'Summary: Proposed metazones: {len(metazones)}')

    def _ordered_names(self) -> List[str]:
        names: Dict[str, None] = {}
        for collection in (
            self.metazone_names,
            self.listed_names,
            self.canonical_non_metazones,
        ):
            for name in collection:
                names[name] = None
        return list(names)

    def _is_candidate(self, name: str) -> bool:
        if name not in self.canonical_non_metazones:
            return False
        if name in self.listed_names:
            return False
        if name.startswith('Etc/'):
            return False
        return name == 'UTC' or '/' in name

    def _is_covered(
        self,
        name: str,
        excluded: Collection[str],
        start: int,
        end: int,
    ) -> bool:
        """Even if no single existing metazone covers the group, maybe a
        combination of existing metazones does. The group is covered when
        the fallbacks of its first member, using only the existing metazones,
        leave no gap within [start, end).
        """
        fallbacks = self.resolver.resolve(
            name, extra_excluded=set(excluded).union(self.non_metazones))
        in_year = [f for f in fallbacks if f.ts < end]
        for index in range(len(in_year) - 1, -1, -1):
            if in_year[index].ts <= start:
                in_year = in_year[index:]
                break
        if not in_year or in_year[0].ts > start:
            return False
        return all(f.tzid for f in in_year)

    def _make_metazone(self, members: List[str]) -> Metazone:
        ordered = self._sort_members(members)
        tzid = ordered[0]
        uses_dst = any(t.is_dst for t in self.transitions_map.get(tzid, []))
        return Metazone(
            tzid=tzid,
            members=tuple(ordered),
            uses_dst=uses_dst,
            label_key=make_label_key(self.zones[tzid]),
        )

    def _sort_members(self, members: List[str]) -> List[str]:
        """Sort by country code, then by the existing zone order of each
        country. Members missing from that order follow alphabetically.
        """
        def sort_key(name: str) -> Tuple[str, int, int, str]:
            record = self.zones.get(name)
            cc = record.country_code if record else ''
            order = self.country_zone_order.get(cc, [])
            if name in order:
                return (cc, 0, order.index(name), '')
            return (cc, 1, 0, name)

        return sorted(members, key=sort_key)
