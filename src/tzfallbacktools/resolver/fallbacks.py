# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Find existing zones which can stand in for newly introduced zones until the
consumers of the data learn about them. A fallback list is an ordered list of
FallbackEntry, each of which is valid from its 'ts' until the 'ts' of the next
one.
"""

import logging
import math
from collections import deque
from typing import Collection
from typing import Deque
from typing import Dict
from typing import Iterable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Set

from tzfallbacktools.data_types.tz_types import CommentsMap
from tzfallbacktools.data_types.tz_types import FallbackEntry
from tzfallbacktools.data_types.tz_types import FallbacksMap
from tzfallbacktools.data_types.tz_types import UNKNOWN_COUNTRY_CODE
from tzfallbacktools.data_types.tz_types import UNPOPULATED_FORMAT
from tzfallbacktools.data_types.tz_types import ZoneEntryRaw
from tzfallbacktools.data_types.tz_types import ZoneRecord
from tzfallbacktools.data_types.tz_types import ZonesMap
from tzfallbacktools.data_types.tz_types import add_comment

# Candidates further away than this (in degrees) are on the other side of the
# planet, and would never share a civil time history with the new zone.
MAX_DISTANCE = 6 * 15

# Bound on the number of times the remainder of a partially covered entry is
# resolved again.
MAX_DEPTH = 10

# Bound on the number of times the search point of an entry is moved forward
# to the start of the earliest candidate.
MAX_ADVANCEMENTS = 50


class WorkItem(NamedTuple):
    """A period [start, until) of a Zone entry which needs a fallback."""
    start: int
    until: int
    offset_seconds: int
    rules: str
    prev_name: str  # fallback of the immediately preceding period
    depth: int


class Coverage(NamedTuple):
    """Result of matching a candidate against a WorkItem."""
    covers: bool  # True if [start, until) of the candidate contains 'start'
    start: int
    until: int


def distance_between(a: ZoneRecord, b: ZoneRecord) -> float:
    """Return the planar distance in degrees between two zones. The
    antimeridian is treated as maximally distant, which is good enough
    because it roughly follows the International Date Line.
    """
    if a.coordinates is None or b.coordinates is None:
        return 0.0
    return math.hypot(
        a.coordinates.latitude - b.coordinates.latitude,
        a.coordinates.longitude - b.coordinates.longitude,
    )


class FallbackResolver:
    """Resolve the fallbacks of new zones. The zones must already have been
    processed by the TransitionCompiler, which back-fills the 'from_utc' and
    'until_utc' of every entry.

    Zones in 'excluded' (normally, all new zones) are never used as a
    fallback or offered as an option.
    """

    def __init__(
        self,
        zones: ZonesMap,
        excluded: Collection[str],
        min_instant: int,
    ):
        self.zones = zones
        self.excluded: Set[str] = set(excluded)
        self.min_instant = min_instant

        self.unresolved_zones: CommentsMap = {}

    def resolve_all(self, names: Iterable[str]) -> FallbacksMap:
        fallbacks_map: FallbacksMap = {}
        for name in names:
            if name not in self.zones:
                logging.warning('Fallbacks: unknown zone %s', name)
                continue
            fallbacks_map[name] = self.resolve(name)
        return fallbacks_map

    def resolve(
        self,
        name: str,
        extra_excluded: Collection[str] = (),
    ) -> List[FallbackEntry]:
        """Create the merged fallback list of zone 'name'. The zones in
        'extra_excluded' are also removed from consideration.
        """
        excluded = self.excluded | set(extra_excluded)
        record = self.zones[name]
        candidates = self.build_candidates(record, excluded)

        fallbacks: List[FallbackEntry] = []
        prev_name = ''
        for entry in record.entries:
            # Unpopulated periods don't need a fallback.
            if entry['format'] == UNPOPULATED_FORMAT:
                fallbacks.append(FallbackEntry(ts=entry['from_utc'], tzid=''))
                prev_name = ''
                continue

            found = self.find_fallbacks(
                name, candidates, entry, prev_name, excluded)
            if found:
                prev_name = found[-1].tzid
            fallbacks.extend(found)

        fallbacks = self.merge_fallbacks(fallbacks)
        for fallback in fallbacks:
            if fallback.ts <= self.min_instant:
                fallback.ts = self.min_instant
        return fallbacks

    def build_candidates(
        self,
        record: ZoneRecord,
        excluded: Collection[str],
    ) -> List[ZoneRecord]:
        """Return the zones which might work as fallbacks for 'record',
        ranked so that the (probably) best one is first. A human should
        still check the suggestions.
        """
        cc = record.country_code
        ranked = []
        for name, candidate in self.zones.items():
            if name == record.name or name in excluded:
                continue
            distance = distance_between(candidate, record)
            if distance > MAX_DISTANCE:
                continue
            key = (
                # Prefer zones in the same country.
                candidate.country_code != cc,
                # Legacy zones are rarely used, so they make good fallbacks.
                candidate.country_code != UNKNOWN_COUNTRY_CODE,
                '/' in name,
                candidate.canonical is None,
                distance,
                name,
            )
            ranked.append((key, candidate))
        ranked.sort(key=lambda item: item[0])
        return [candidate for _, candidate in ranked]

    def find_fallbacks(
        self,
        name: str,
        candidates: List[ZoneRecord],
        entry: ZoneEntryRaw,
        prev_name: str,
        excluded: Collection[str],
    ) -> List[FallbackEntry]:
        """Find the fallbacks for a single Zone entry. The result is a list
        because different candidates may be needed for different parts of
        the entry. Remaining sub-periods are processed through a worklist
        bounded by MAX_DEPTH.
        """
        results: List[FallbackEntry] = []
        worklist: Deque[WorkItem] = deque()
        worklist.append(WorkItem(
            start=entry['from_utc'],
            until=entry['until_utc'],
            offset_seconds=entry['offset_seconds'],
            rules=entry['rules'],
            prev_name=prev_name,
            depth=0,
        ))

        while worklist:
            item = worklist.popleft()
            remainder = self._resolve_item(
                name, candidates, item, excluded, results)
            if remainder is not None:
                worklist.append(remainder)

        return results

    def _resolve_item(
        self,
        name: str,
        candidates: List[ZoneRecord],
        item: WorkItem,
        excluded: Collection[str],
        results: List[FallbackEntry],
    ) -> Optional[WorkItem]:
        """Append the fallbacks of 'item' to 'results'. Return the WorkItem
        of the part which is not covered by the chosen candidate, if any.
        """
        start = item.start
        ordered = _prefer_previous(candidates, item.prev_name)

        for _ in range(MAX_ADVANCEMENTS + 1):
            chosen: Optional[ZoneRecord] = None
            chosen_until = item.until
            end = item.until
            options: Dict[str, None] = {}
            earliest = item.until

            for candidate in ordered:
                if candidate.name in options:
                    continue
                coverage = _match_candidate(candidate, item, start)
                if coverage is None:
                    continue
                if not coverage.covers:
                    earliest = min(earliest, coverage.start)
                    continue

                if chosen is None:
                    chosen = candidate
                    chosen_until = coverage.until
                    end = min(item.until, coverage.until)
                elif coverage.until < end:
                    continue

                options[candidate.name] = None
                if candidate.canonical:
                    options[candidate.canonical] = None
                for link in candidate.links:
                    options[link] = None

            if chosen is not None:
                results.append(FallbackEntry(
                    ts=start,
                    tzid=chosen.name,
                    options=[o for o in options if o not in excluded],
                ))
                if item.until <= chosen_until:
                    return None
                if item.depth < MAX_DEPTH:
                    return item._replace(
                        start=chosen_until,
                        prev_name=chosen.name,
                        depth=item.depth + 1,
                    )
                self._add_unresolved(
                    name, results, chosen_until, 'Depth limit reached')
                return None

            # Nothing covers 'start'. Leave a gap until the earliest
            # candidate starts, then try again from there.
            if not (start < earliest < item.until):
                break
            results.append(FallbackEntry(ts=start, tzid=''))
            start = earliest
            ordered = candidates

        self._add_unresolved(name, results, start, 'No candidate found')
        return None

    def merge_fallbacks(
        self,
        fallbacks: List[FallbackEntry],
    ) -> List[FallbackEntry]:
        """Walk the list in reverse order and merge each entry into the
        previous one when they share at least one option. The merged entry
        keeps the shared options, preferring a link over its canonical
        target.
        """
        results = list(fallbacks)
        for i in range(len(results) - 1, 0, -1):
            current = results[i]
            previous = results[i - 1]

            # Consecutive gaps.
            if (not current.tzid and not previous.tzid
                    and not current.options and not previous.options):
                previous.unresolved = previous.unresolved or current.unresolved
                del results[i]
                continue

            if not current.options or not previous.options:
                continue

            shared = [o for o in current.options if o in previous.options]
            if not shared:
                continue

            # Don't use canonical zones unless absolutely necessary.
            for option in list(shared):
                canonical = self.zones[option].canonical \
                    if option in self.zones else None
                if not canonical:
                    continue
                shared = [o for o in shared if o != canonical]
                if current.tzid == canonical:
                    current.tzid = option
                if previous.tzid == canonical:
                    previous.tzid = option

            if shared and previous.tzid not in shared:
                previous.tzid = shared[0]
            previous.options = shared
            del results[i]

        return results

    def build_rename_fallbacks(self, renames: Dict[str, str]) -> FallbacksMap:
        """A renamed zone falls back to its old name for all time."""
        fallbacks_map: FallbacksMap = {}
        for old_name, new_name in renames.items():
            fallbacks_map[new_name] = [
                FallbackEntry(
                    ts=self.min_instant,
                    tzid=old_name,
                    options=[old_name],
                )
            ]
        return fallbacks_map

    def print_summary(self, fallbacks_map: FallbacksMap) -> None:
        count = sum(len(f) for f in fallbacks_map.values())
        logging.info(
            f'Summary: Fallbacks: {count} for {len(fallbacks_map)} zones'
            f'; unresolved zones: {len(self.unresolved_zones)}'
        )

    def _add_unresolved(
        self,
        name: str,
        results: List[FallbackEntry],
        ts: int,
        reason: str,
    ) -> None:
        logging.info('Fallbacks: %s: %s at %d', name, reason, ts)
        add_comment(self.unresolved_zones, name, reason)
        results.append(FallbackEntry(ts=ts, tzid='', unresolved=True))


def _prefer_previous(
    candidates: List[ZoneRecord],
    prev_name: str,
) -> List[ZoneRecord]:
    """Move the fallback of the previous period to the front, to reduce
    needless switching between zones.
    """
    if not prev_name:
        return candidates
    for index, candidate in enumerate(candidates):
        if candidate.name == prev_name:
            return (
                [candidate] + candidates[:index] + candidates[index + 1:]
            )
    return candidates


def _match_candidate(
    candidate: ZoneRecord,
    item: WorkItem,
    start: int,
) -> Optional[Coverage]:
    """Find the first entry of 'candidate' with the same STDOFF and RULES as
    'item' which has not ended by 'start'.
    """
    for entry in candidate.entries:
        if entry['offset_seconds'] != item.offset_seconds:
            continue
        if entry['rules'] != item.rules:
            continue
        if start >= entry['until_utc']:
            continue
        return Coverage(
            covers=entry['from_utc'] <= start,
            start=entry['from_utc'],
            until=entry['until_utc'],
        )
    return None
