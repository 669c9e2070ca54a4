# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Helpers which turn a snippet of TZDB text into compiled ZoneRecords, for the
tests of the later stages of the pipeline.
"""

from typing import Collection
from typing import Tuple

from tzfallbacktools.data_types.tz_types import TransitionsMap
from tzfallbacktools.data_types.tz_types import ZonesMap
from tzfallbacktools.extractor.extractor import parse_tzdb_text
from tzfallbacktools.transformer.dates import start_of_year
from tzfallbacktools.transformer.transitions import TransitionCompiler
from tzfallbacktools.transformer.zonegraph import ZoneGraphBuilder
from tzfallbacktools.transformer.zonegraph import ZoneTab

MIN_INSTANT = -(2**63)
MAX_YEAR = 2030
MAX_INSTANT = start_of_year(MAX_YEAR)


def build_zones(
    text: str,
    zone_tab: ZoneTab,
    new_ids: Collection[str] = (),
    filename: str = 'northamerica',
) -> Tuple[ZonesMap, TransitionsMap]:
    """Parse 'text' as the TZDB file 'filename', build the zone graph and
    compile the transitions of every zone.
    """
    data = parse_tzdb_text(filename, text)
    builder = ZoneGraphBuilder(
        entries_map=data.zones,
        zone_files={name: filename for name in data.zones},
        links_map=data.links,
        zone_tab=zone_tab,
        new_ids=new_ids,
    )
    zones = builder.build()
    compiler = TransitionCompiler(data.rules, MIN_INSTANT, MAX_INSTANT)
    return zones, compiler.compile_zones(zones)
