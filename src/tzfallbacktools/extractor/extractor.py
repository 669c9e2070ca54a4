# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Parses the raw TZ Database files of a given TZDB version (as delivered by a
ContentCache) into internal records (ZoneEntryRaw, ZoneRuleRaw, links). The
Extractor never reads files by itself.

Zone lines look like:
    Zone NAME STDOFF RULES FORMAT [UNTIL]
             STDOFF RULES FORMAT [UNTIL]

Rule lines look like:
    Rule NAME FROM TO - IN ON AT SAVE LETTER/S

Link lines look like:
    Link TARGET LINK_NAME
"""

import logging
import re
from dataclasses import dataclass
from dataclasses import field
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from tzfallbacktools.data_types.tz_types import BACKWARD_FILE
from tzfallbacktools.data_types.tz_types import BACKZONE_FILE
from tzfallbacktools.data_types.tz_types import CommentsMap
from tzfallbacktools.data_types.tz_types import Coordinates
from tzfallbacktools.data_types.tz_types import EntriesMap
from tzfallbacktools.data_types.tz_types import FIRST_BACKZONE_VERSION
from tzfallbacktools.data_types.tz_types import ISO3166_TAB_FILE
from tzfallbacktools.data_types.tz_types import LinksMap
from tzfallbacktools.data_types.tz_types import MAX_TO_YEAR
from tzfallbacktools.data_types.tz_types import PRIMARY_FILES
from tzfallbacktools.data_types.tz_types import RulesMap
from tzfallbacktools.data_types.tz_types import TzdbInventory
from tzfallbacktools.data_types.tz_types import TzdbParseError
from tzfallbacktools.data_types.tz_types import ZONE_TAB_FILE
from tzfallbacktools.data_types.tz_types import ZoneEntryRaw
from tzfallbacktools.data_types.tz_types import ZoneRuleRaw
from tzfallbacktools.data_types.tz_types import add_comment
from tzfallbacktools.extractor.content import ContentCache
from tzfallbacktools.transformer.dates import month_to_index
from tzfallbacktools.transformer.dates import parse_at_time_string

# A line which continues the current Zone record starts with whitespace
# followed by the STDOFF field, e.g. "\t\t\t-5:00\tUS\tE%sT".
CONTINUATION_PATTERN = re.compile(r'^\s+[+-]?\d+(?::\d+){0,2}\s')

# Tokens of a Rule line. Quoted fields may contain whitespace.
RULE_TOKEN_PATTERN = re.compile(r'"[^"]*"|\S+')

# Comment prefix of backzone lines which are part of the PACKRATLIST.
PACKRAT_PREFIX = '#PACKRATLIST zone.tab '

# ISO 6709 coordinates, e.g. '+4043-07400' or '+404251-0740023'.
COORDINATES_PATTERN = re.compile(
    r'^([+-]\d{4}(?:\d{2})?)([+-]\d{5}(?:\d{2})?)$'
)


@dataclass
class TzdbFileData:
    """Records extracted from a single TZDB file."""
    filename: str
    zones: EntriesMap = field(default_factory=dict)
    links: LinksMap = field(default_factory=dict)
    rules: RulesMap = field(default_factory=dict)
    packrat_links: LinksMap = field(default_factory=dict)


class Extractor:
    """Read the TZDB files of one version through the ContentCache and extract
    the Zone, Rule and Link records. The 'backzone' file is skipped for
    versions which predate it.
    """

    def __init__(self, cache: ContentCache, version: str):
        self.cache = cache
        self.version = version
        self.files: Dict[str, TzdbFileData] = {}
        self.rules_map: RulesMap = {}
        self.entries_map: EntriesMap = {}
        self.zone_files: Dict[str, str] = {}  # zoneName -> filename
        self.links_map: LinksMap = {}
        self.notable_zones: CommentsMap = {}

    @property
    def has_backzone(self) -> bool:
        return self.version >= FIRST_BACKZONE_VERSION

    def parse(self) -> None:
        """Fetch and parse all Zone, Rule and Link files."""
        filenames = PRIMARY_FILES + [BACKWARD_FILE]
        if self.has_backzone:
            filenames.append(BACKZONE_FILE)

        for filename in filenames:
            text = self.cache.fetch_file(self.version, filename)
            data = parse_tzdb_text(filename, text)
            self.files[filename] = data

            for name, entries in data.zones.items():
                if name in self.entries_map:
                    add_comment(
                        self.notable_zones, name,
                        f"Duplicate Zone in '{filename}' ignored, "
                        f"keeping '{self.zone_files[name]}'")
                    continue
                self.entries_map[name] = entries
                self.zone_files[name] = filename
            for name, rules in data.rules.items():
                self.rules_map.setdefault(name, []).extend(rules)
            self.links_map.update(data.links)

        for name, reasons in sorted(self.notable_zones.items()):
            logging.warning('%s: %s', name, ', '.join(sorted(reasons)))

    def get_data(self) -> Tuple[RulesMap, EntriesMap, LinksMap]:
        return self.rules_map, self.entries_map, self.links_map

    def get_inventory(self) -> TzdbInventory:
        """Collect the identifiers of this version, separated into primary
        zones, primary links, backward links and backzone records.
        """
        zones: List[str] = []
        links: LinksMap = {}
        for filename in PRIMARY_FILES:
            data = self.files[filename]
            zones.extend(data.zones.keys())
            links.update(data.links)

        backward_links = dict(self.files[BACKWARD_FILE].links)

        backzones: List[str] = []
        backzone_links: LinksMap = {}
        if self.has_backzone:
            data = self.files[BACKZONE_FILE]
            backzones = list(data.zones.keys())
            backzone_links.update(data.links)
            backzone_links.update(data.packrat_links)

        all_ids: Dict[str, None] = {}
        for name in zones:
            all_ids[name] = None
        for link_map in (links, backward_links, backzone_links):
            for link_name, target in link_map.items():
                all_ids[link_name] = None
                all_ids[target] = None

        merged_links: LinksMap = {}
        merged_links.update(backzone_links)
        merged_links.update(backward_links)
        merged_links.update(links)

        return TzdbInventory(
            version=self.version,
            zones=zones,
            links=merged_links,
            backward_links=backward_links,
            backzones=backzones,
            backzone_links=backzone_links,
            all_ids=list(all_ids.keys()),
        )

    def get_zone_tab(self) -> Dict[str, Tuple[str, Coordinates]]:
        text = self.cache.fetch_file(self.version, ZONE_TAB_FILE)
        return parse_zone_tab(text)

    def get_country_names(self) -> Dict[str, str]:
        text = self.cache.fetch_file(self.version, ISO3166_TAB_FILE)
        return parse_iso3166_tab(text)

    def print_summary(self) -> None:
        rule_count = sum(len(rules) for rules in self.rules_map.values())
        entry_count = sum(len(entries) for entries in self.entries_map.values())
        logging.info(
            f'Summary ({self.version}): Rules: {len(self.rules_map)} '
            f'rule sets, {rule_count} rules'
        )
        logging.info(
            f'Summary ({self.version}): Zones: {len(self.entries_map)} '
            f'zones, {entry_count} entries'
        )
        logging.info(
            f'Summary ({self.version}): Links: {len(self.links_map)}'
        )


def parse_tzdb_text(filename: str, text: str) -> TzdbFileData:
    """Parse the content of one TZDB file. Raises TzdbParseError on a
    malformed line.
    """
    data = TzdbFileData(filename=filename)
    zone_name: Optional[str] = None
    for line_num, raw_line in enumerate(text.split('\n'), start=1):
        if filename == BACKZONE_FILE and raw_line.startswith(PACKRAT_PREFIX):
            packrat_line = strip_comment(raw_line[len(PACKRAT_PREFIX):])
            tokens = packrat_line.split()
            if tokens and tokens[0] == 'Link':
                _check_field_count(filename, line_num, raw_line, tokens, 3)
                data.packrat_links[tokens[2]] = tokens[1]
            continue

        line = strip_comment(raw_line).rstrip()
        if not line.strip():
            continue

        directive = '' if line[0].isspace() else line.split(None, 1)[0]
        if directive == 'Zone':
            tokens = line.split(None, 5)
            if len(tokens) < 5:
                raise TzdbParseError(
                    filename, line_num, raw_line,
                    f'Zone requires at least 5 fields, found {len(tokens)}')
            zone_name = tokens[1]
            if zone_name in data.zones:
                raise TzdbParseError(
                    filename, line_num, raw_line,
                    f'Duplicate Zone {zone_name}')
            data.zones[zone_name] = [
                _parse_zone_entry(filename, line_num, raw_line, tokens[2:])
            ]
        elif directive == 'Link':
            zone_name = None
            tokens = line.split()
            _check_field_count(filename, line_num, raw_line, tokens, 3)
            data.links[tokens[2]] = tokens[1]
        elif directive == 'Rule':
            zone_name = None
            rule = _parse_rule(filename, line_num, raw_line, line)
            data.rules.setdefault(rule['name'], []).append(rule)
        elif zone_name is not None and CONTINUATION_PATTERN.match(line):
            tokens = line.split(None, 3)
            data.zones[zone_name].append(
                _parse_zone_entry(filename, line_num, raw_line, tokens)
            )
        elif not directive:
            # Not an offset-leading continuation; closes the Zone record.
            zone_name = None
        else:
            raise TzdbParseError(
                filename, line_num, raw_line, 'Unknown record type')

    return data


def strip_comment(line: str) -> str:
    """Remove the text after '#'."""
    index = line.find('#')
    return line if index < 0 else line[:index]


def _check_field_count(
    filename: str,
    line_num: int,
    raw_line: str,
    tokens: List[str],
    expected: int,
) -> None:
    if len(tokens) != expected:
        raise TzdbParseError(
            filename, line_num, raw_line,
            f'{tokens[0]} requires {expected} fields, found {len(tokens)}')


def _parse_zone_entry(
    filename: str,
    line_num: int,
    raw_line: str,
    fields: List[str],
) -> ZoneEntryRaw:
    """Create a ZoneEntryRaw from [STDOFF, RULES, FORMAT, UNTIL...]."""
    if len(fields) < 3:
        raise TzdbParseError(
            filename, line_num, raw_line,
            f'Zone entry requires at least 3 fields, found {len(fields)}')

    offset_string = fields[0]
    if ':' not in offset_string:
        offset_string += ':00'
    until = ' '.join(' '.join(fields[3:]).split())

    return {
        'offset_string': offset_string,
        'rules': fields[1],
        'format': fields[2],
        'until': until,
        'raw_line': raw_line,
    }


def _parse_rule(
    filename: str,
    line_num: int,
    raw_line: str,
    line: str,
) -> ZoneRuleRaw:
    tokens = [
        token[1:-1] if token.startswith('"') else token
        for token in RULE_TOKEN_PATTERN.findall(line)
    ]
    _check_field_count(filename, line_num, raw_line, tokens, 10)

    try:
        from_year = int(tokens[2])
        to_year = _parse_to_year(tokens[3], from_year)
        in_month = month_to_index(tokens[5])
        at_time, at_time_suffix = parse_at_time_string(tokens[7])
    except ValueError as e:
        raise TzdbParseError(filename, line_num, raw_line, str(e)) from e

    return {
        'name': tokens[1],
        'from_year': from_year,
        'to_year': to_year,
        'in_month': in_month,
        'on_day': tokens[6],
        'at_time': at_time,
        'at_time_suffix': at_time_suffix,
        'delta_offset': tokens[8],
        'letter': tokens[9],
        'file': filename,
        'raw_line': raw_line,
    }


def _parse_to_year(to_string: str, from_year: int) -> int:
    """Parse the TO field, which may be 'only', 'max' or a year."""
    lowered = to_string.lower()
    if len(lowered) >= 2 and 'max'.startswith(lowered):
        return MAX_TO_YEAR
    if lowered and 'only'.startswith(lowered):
        return from_year
    return int(to_string)


def parse_coordinates(coordinates: str) -> Coordinates:
    """Convert ISO 6709 '+DDMM[SS]+DDDMM[SS]' into decimal degrees."""
    match = COORDINATES_PATTERN.match(coordinates)
    if not match:
        raise ValueError(f"Invalid coordinates '{coordinates}'")
    return Coordinates(
        latitude=_parse_degrees(match.group(1), 2),
        longitude=_parse_degrees(match.group(2), 3),
    )


def _parse_degrees(value: str, degree_digits: int) -> float:
    sign = -1 if value[0] == '-' else 1
    digits = value[1:]
    degrees = int(digits[:degree_digits])
    minutes = int(digits[degree_digits:degree_digits + 2])
    seconds = int(digits[degree_digits + 2:] or '0')
    return sign * (degrees + minutes / 60 + seconds / 3600)


def parse_zone_tab(text: str) -> Dict[str, Tuple[str, Coordinates]]:
    """Parse zone.tab into {zoneName -> (countryCode, Coordinates)}."""
    results: Dict[str, Tuple[str, Coordinates]] = {}
    for line_num, raw_line in enumerate(text.split('\n'), start=1):
        line = strip_comment(raw_line).rstrip()
        if not line:
            continue
        fields = line.split('\t')
        if len(fields) < 3:
            raise TzdbParseError(
                ZONE_TAB_FILE, line_num, raw_line,
                f'zone.tab requires at least 3 fields, found {len(fields)}')
        try:
            coordinates = parse_coordinates(fields[1])
        except ValueError as e:
            raise TzdbParseError(
                ZONE_TAB_FILE, line_num, raw_line, str(e)) from e
        results[fields[2]] = (fields[0], coordinates)
    return results


def parse_iso3166_tab(text: str) -> Dict[str, str]:
    """Parse iso3166.tab into {countryCode -> countryName}."""
    results: Dict[str, str] = {}
    for line_num, raw_line in enumerate(text.split('\n'), start=1):
        line = strip_comment(raw_line).rstrip()
        if not line:
            continue
        fields = line.split('\t')
        if len(fields) != 2:
            raise TzdbParseError(
                ISO3166_TAB_FILE, line_num, raw_line,
                f'iso3166.tab requires 2 fields, found {len(fields)}')
        results[fields[0]] = fields[1]
    return results
