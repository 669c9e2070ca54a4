# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Compile the ZoneRecords into an ascending list of UTC transitions per zone,
similar to the output of zic, but only with the fields needed to compare
zones with each other: (offset, is_dst, abbreviation).

The compiler walks the entries of each zone in order, carrying the running
state of the previous entry (UTC offset, STD offset, SAVE, DST flag,
abbreviation and RULES). The running state is required to resolve the 'w'
and 's' suffixes of the UNTIL and AT fields into UTC.
"""

import bisect
import logging
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Tuple

from tzfallbacktools.data_types.tz_types import MAX_TO_YEAR
from tzfallbacktools.data_types.tz_types import RulesMap
from tzfallbacktools.data_types.tz_types import Transition
from tzfallbacktools.data_types.tz_types import TransitionsMap
from tzfallbacktools.data_types.tz_types import TzdbError
from tzfallbacktools.data_types.tz_types import ZoneEntryRaw
from tzfallbacktools.data_types.tz_types import ZoneRecord
from tzfallbacktools.data_types.tz_types import ZonesMap
from tzfallbacktools.data_types.tz_types import is_named_rule_set
from tzfallbacktools.transformer.dates import UTC_SUFFIXES
from tzfallbacktools.transformer.dates import datetime_to_seconds
from tzfallbacktools.transformer.dates import normalize_date_expression
from tzfallbacktools.transformer.dates import offset_string_to_seconds
from tzfallbacktools.transformer.dates import parse_until_string
from tzfallbacktools.transformer.dates import seconds_to_iso
from tzfallbacktools.transformer.dates import year_of

# Versions 2021b to 2022c of the TZDB show a spurious '+01' for Freetown at
# 1941-12-07T01:00:00Z. The historically correct state is GMT.
# {(zoneName, ts) -> (bad abbr, (offset, is_dst, abbr))}
Correction = Tuple[str, Tuple[int, bool, str]]
TRANSITION_CORRECTIONS: Dict[Tuple[str, int], Correction] = {
    ('Africa/Freetown', -885769200): ('+01', (0, False, 'GMT')),
}


class RuleInstance(NamedTuple):
    """One occurrence of a Rule in a given year."""
    local: int  # unadjusted seconds since 1970, interpreted using 'suffix'
    suffix: str
    save: int  # SAVE in seconds
    letter: str


def format_abbreviation(
    abbr_format: str,
    letter: str,
    offset: int,
    is_dst: bool,
) -> str:
    """Create the abbreviation from the FORMAT of the Zone entry.

        * '%z' is replaced by the numeric UTC offset, e.g. '+0530' or '-03'
        * 'GMT/BST' picks the half matching 'is_dst'
        * '%s' is replaced by the LETTER of the rule, where '-' means ''
    """
    if '%z' in abbr_format:
        return abbr_format.replace('%z', format_numeric_offset(offset))
    if '/' in abbr_format:
        std_abbr, dst_abbr = abbr_format.split('/', 1)
        return dst_abbr if is_dst else std_abbr
    if '%s' in abbr_format:
        return abbr_format.replace('%s', '' if letter == '-' else letter)
    return abbr_format


def format_numeric_offset(offset: int) -> str:
    """Convert the offset seconds into '+hh', '+hhmm' or '+hhmmss'."""
    sign = '-' if offset < 0 else '+'
    minutes, seconds = divmod(abs(offset), 60)
    hours, minutes = divmod(minutes, 60)
    result = f'{sign}{hours:02}'
    if minutes or seconds:
        result += f'{minutes:02}'
    if seconds:
        result += f'{seconds:02}'
    return result


class TransitionCompiler:
    """Create the transitions of each zone between 'min_instant' and
    'max_instant'. The first entry of each zone is taken to start at
    'min_instant' and the last one to end at 'max_instant'. The Rule
    instances of each RuleSet are expanded once and cached, so a single
    compiler should be used for all the zones of a run.
    """

    def __init__(self, rules_map: RulesMap, min_instant: int, max_instant: int):
        self.rules_map = rules_map
        self.min_instant = min_instant
        self.max_instant = max_instant

        # Last year for which Rule instances are generated. datetime cannot
        # go past year 9999, and 24:00+ times can roll into the next year.
        self.max_rule_year = min(year_of(max_instant), MAX_TO_YEAR - 1)

        # {ruleSetName -> RuleInstance[]} sorted by 'local'
        self.rule_instances: Dict[str, List[RuleInstance]] = {}
        self.corrected_zones: List[str] = []

    def compile_zones(self, zones: ZonesMap) -> TransitionsMap:
        transitions_map: TransitionsMap = {}
        for name, record in zones.items():
            transitions_map[name] = self.compile_zone(record)
        return transitions_map

    def compile_zone(self, record: ZoneRecord) -> List[Transition]:
        """Compile the transitions of a single zone, and back-fill the
        'from_utc' and 'until_utc' of its entries.
        """
        entries = record.entries
        if not entries:
            return []
        self._annotate_entries(entries)

        transitions: Dict[int, Transition] = {}
        prev_offset = 0
        prev_std_offset = 0
        prev_save = 0
        prev_is_dst = False
        prev_abbr = ''
        prev_rules = '-'

        for entry in entries:
            std_offset = entry['offset_seconds']
            rules = entry['rules']
            abbr_format = entry['format']

            entry_start = entry['from_seconds'] - _suffix_adjustment(
                entry['from_suffix'], prev_offset, prev_std_offset)
            entry['from_utc'] = entry_start

            if not is_named_rule_set(rules):
                save = 0 if rules == '-' else offset_string_to_seconds(rules)
                offset = std_offset + save
                is_dst = save != 0
                abbr = format_abbreviation(
                    abbr_format, 'D' if is_dst else 'S', offset, is_dst)
                if (offset, is_dst, abbr) != (prev_offset, prev_is_dst,
                                              prev_abbr):
                    transitions[entry_start] = _make_transition(
                        entry_start, offset, is_dst, abbr)
                    prev_offset = offset
                    prev_std_offset = std_offset
                    prev_save = save
                    prev_is_dst = is_dst
                    prev_abbr = abbr
                prev_rules = rules
                continue

            preceding, instances = self._find_rule_instances(
                record.name, rules,
                entry['from_seconds'], entry['until_seconds'])

            # Determine the state in effect at the start of the entry.
            default_letter = '-'
            default_save = 0
            if preceding is not None:
                default_letter = preceding.letter
                default_save = preceding.save
                if std_offset == prev_std_offset and prev_rules == rules:
                    prev_save = preceding.save
                    prev_offset = prev_std_offset + prev_save

            # Synthetic instance at the start of the entry, unless a rule
            # already fires at that exact moment. Either way, the first
            # instance is pinned to the UTC start of the entry.
            if not instances or instances[0].local != entry['from_seconds']:
                if default_letter == '-':
                    for instance in instances:
                        if instance.save == default_save:
                            default_letter = instance.letter
                            break
                instances.insert(0, RuleInstance(
                    local=entry['from_seconds'],
                    suffix=entry['from_suffix'],
                    save=default_save,
                    letter=default_letter,
                ))

            for index, instance in enumerate(instances):
                if index == 0:
                    ts = entry_start
                else:
                    ts = instance.local - _suffix_adjustment(
                        instance.suffix, prev_offset, prev_std_offset)
                offset = std_offset + instance.save
                is_dst = instance.save != 0
                abbr = format_abbreviation(
                    abbr_format, instance.letter, offset, is_dst)

                if (offset, is_dst, abbr) == (prev_offset, prev_is_dst,
                                              prev_abbr):
                    continue

                # Belongs to the next entry.
                entry_end = entry['until_seconds'] - _suffix_adjustment(
                    entry['until_suffix'], prev_offset, prev_std_offset)
                if ts >= entry_end:
                    break

                prev_offset = offset
                prev_std_offset = std_offset
                prev_save = instance.save
                prev_is_dst = is_dst
                prev_abbr = abbr

                if ts < entry_start:
                    # Rule fired before the entry started, in UTC terms.
                    # Its state applies at the entry start instead.
                    if entry_start in transitions:
                        transitions[entry_start] = _make_transition(
                            entry_start, offset, is_dst, abbr)
                    continue

                transitions[ts] = _make_transition(ts, offset, is_dst, abbr)

            prev_rules = rules

        # Entries are contiguous. The last one runs to the maximum instant.
        for entry, next_entry in zip(entries, entries[1:]):
            entry['until_utc'] = next_entry['from_utc']
        entries[-1]['until_utc'] = self.max_instant

        ordered = [transitions[ts] for ts in sorted(transitions)]
        ordered = self._apply_corrections(record, ordered)
        return _remove_duplicate_states(ordered)

    def print_summary(self, transitions_map: TransitionsMap) -> None:
        count = sum(len(t) for t in transitions_map.values())
        instance_count = sum(len(i) for i in self.rule_instances.values())
        logging.info(
            f'Summary: Transitions: {count} for {len(transitions_map)} zones'
            f'; rule instances: {instance_count}'
            f' in {len(self.rule_instances)} rule sets'
        )
        for name in self.corrected_zones:
            logging.info('Corrected known data error in %s', name)

    def _annotate_entries(self, entries: List[ZoneEntryRaw]) -> None:
        """Add the offset_seconds, from_seconds/from_suffix and
        until_seconds/until_suffix fields. The 'from' of an entry is the
        'until' of the previous one.
        """
        from_seconds = self.min_instant
        from_suffix = 'u'
        for index, entry in enumerate(entries):
            entry['offset_seconds'] = offset_string_to_seconds(
                entry['offset_string'])
            entry['from_seconds'] = from_seconds
            entry['from_suffix'] = from_suffix
            if index == len(entries) - 1:
                entry['until_seconds'] = self.max_instant
                entry['until_suffix'] = 'u'
            else:
                until, suffix = parse_until_string(entry['until'])
                entry['until_seconds'] = datetime_to_seconds(until)
                entry['until_suffix'] = suffix
            from_seconds = entry['until_seconds']
            from_suffix = entry['until_suffix']

    def _find_rule_instances(
        self,
        zone_name: str,
        rule_set_name: str,
        start: int,
        end: int,
    ) -> Tuple[Optional[RuleInstance], List[RuleInstance]]:
        """Return the last Rule instance before 'start', and the list of
        instances in [start, end], using the unadjusted local times.
        """
        instances = self._get_rule_instances(zone_name, rule_set_name)
        keys = [instance.local for instance in instances]
        lo = bisect.bisect_left(keys, start)
        hi = bisect.bisect_right(keys, end)
        preceding = instances[lo - 1] if lo > 0 else None
        return preceding, instances[lo:hi]

    def _get_rule_instances(
        self,
        zone_name: str,
        rule_set_name: str,
    ) -> List[RuleInstance]:
        instances = self.rule_instances.get(rule_set_name)
        if instances is not None:
            return instances

        rules = self.rules_map.get(rule_set_name)
        if rules is None:
            raise TzdbError(
                f"Zone '{zone_name}': unknown RuleSet '{rule_set_name}'")

        # Instances at the same local time replace the earlier ones.
        by_local: Dict[int, RuleInstance] = {}
        for rule in rules:
            save = offset_string_to_seconds(rule['delta_offset'])
            to_year = min(rule['to_year'], self.max_rule_year)
            for year in range(rule['from_year'], to_year + 1):
                dt, _ = normalize_date_expression(
                    year, rule['in_month'], rule['on_day'], rule['at_time'])
                local = datetime_to_seconds(dt)
                by_local[local] = RuleInstance(
                    local=local,
                    suffix=rule['at_time_suffix'],
                    save=save,
                    letter=rule['letter'],
                )

        instances = [by_local[local] for local in sorted(by_local)]
        self.rule_instances[rule_set_name] = instances
        return instances

    def _apply_corrections(
        self,
        record: ZoneRecord,
        transitions: List[Transition],
    ) -> List[Transition]:
        names = {record.name}
        if record.canonical:
            names.add(record.canonical)

        results: List[Transition] = []
        for transition in transitions:
            for name in names:
                correction = TRANSITION_CORRECTIONS.get((name, transition.ts))
                if correction is None:
                    continue
                bad_abbr, (offset, is_dst, abbr) = correction
                if transition.abbr == bad_abbr:
                    transition = _make_transition(
                        transition.ts, offset, is_dst, abbr)
                    self.corrected_zones.append(record.name)
            results.append(transition)
        return results


def _suffix_adjustment(suffix: str, offset: int, std_offset: int) -> int:
    """Return the seconds to subtract from a local time with the given
    suffix to convert it into UTC.
    """
    if suffix in UTC_SUFFIXES:
        return 0
    if suffix == 's':
        return std_offset
    return offset


def _make_transition(
    ts: int,
    offset: int,
    is_dst: bool,
    abbr: str,
) -> Transition:
    return Transition(
        ts=ts,
        time=seconds_to_iso(ts),
        offset=offset,
        is_dst=is_dst,
        abbr=abbr,
    )


def _remove_duplicate_states(transitions: List[Transition]) -> List[Transition]:
    results: List[Transition] = []
    for transition in transitions:
        if results and results[-1].state == transition.state:
            continue
        results.append(transition)
    return results
