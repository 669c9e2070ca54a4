# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Run the stages of the processing pipeline, from the raw TZDB files of two
versions to the fallbacks of the new zones and the metazone proposals:

* Extractor
    * Parse the Zone, Rule and Link records of both versions.
* ZoneGraphBuilder
    * Diff the versions, resolve the links, attach the locations.
* TransitionCompiler
    * Compile the UTC transitions of every zone.
* FallbackResolver
    * Find the fallbacks of the new zones.
* MetazoneGrouper
    * Propose new metazones.
* LabelResolver
    * Find the display labels of the new zones.

The pipeline performs no I/O by itself. All files are requested from the
ContentProvider through a ContentCache owned by a single run.
"""

import logging
from typing import Dict
from typing import Tuple

from tzfallbacktools.data_types.tz_types import ExistingData
from tzfallbacktools.data_types.tz_types import PipelineConfig
from tzfallbacktools.data_types.tz_types import PipelineResult
from tzfallbacktools.data_types.tz_types import merge_comments
from tzfallbacktools.extractor.content import ContentCache
from tzfallbacktools.extractor.content import ContentProvider
from tzfallbacktools.extractor.extractor import Extractor
from tzfallbacktools.resolver.fallbacks import FallbackResolver
from tzfallbacktools.resolver.metazones import MetazoneGrouper
from tzfallbacktools.transformer.labels import LabelResolver
from tzfallbacktools.transformer.transitions import TransitionCompiler
from tzfallbacktools.transformer.zonegraph import ZoneGraphBuilder
from tzfallbacktools.transformer.zonegraph import compute_changes


def run_pipeline(
    provider: ContentProvider,
    config: PipelineConfig,
    existing: ExistingData,
) -> PipelineResult:
    cache = ContentCache(provider)

    logging.info('======== Extracting TZ Data files')
    prev_extractor = Extractor(cache, config.prev_version)
    prev_extractor.parse()
    prev_extractor.print_summary()
    curr_extractor = Extractor(cache, config.curr_version)
    curr_extractor.parse()
    curr_extractor.print_summary()
    rules_map, entries_map, links_map = curr_extractor.get_data()

    logging.info('======== Comparing TZDB versions')
    curr_inventory = curr_extractor.get_inventory()
    changes = compute_changes(prev_extractor.get_inventory(), curr_inventory)
    logging.info(
        'New: %d; renames: %d; additions: %d; anomalies: %d',
        len(changes.new), len(changes.renames), len(changes.additions),
        len(changes.anomalies))
    for name in changes.anomalies:
        logging.warning('Anomaly: %s links to several previous zones', name)

    logging.info('======== Building zone graph')
    builder = ZoneGraphBuilder(
        entries_map=entries_map,
        zone_files=curr_extractor.zone_files,
        links_map=links_map,
        zone_tab=curr_extractor.get_zone_tab(),
        new_ids=changes.new,
    )
    zones = builder.build()
    merge_comments(builder.notable_zones, curr_extractor.notable_zones)
    builder.print_summary(zones)

    logging.info('======== Compiling transitions')
    compiler = TransitionCompiler(
        rules_map=rules_map,
        min_instant=config.min_instant,
        max_instant=config.max_instant,
    )
    transitions = compiler.compile_zones(zones)
    compiler.print_summary(transitions)

    logging.info('======== Resolving fallbacks')
    resolver = FallbackResolver(
        zones=zones,
        excluded=changes.new,
        min_instant=config.min_instant,
    )
    fallbacks = resolver.resolve_all(changes.additions)
    fallbacks.update(resolver.build_rename_fallbacks(changes.renames))
    resolver.print_summary(fallbacks)

    logging.info('======== Grouping metazones')
    grouper = MetazoneGrouper(
        zones=zones,
        transitions_map=transitions,
        canonical_names=curr_inventory.canonical,
        metazone_names=existing.metazone_ids,
        listed_names=existing.listed_ids,
        country_zone_order=existing.country_zone_order,
        # The grouper limits the candidates to the existing metazones.
        resolver=FallbackResolver(
            zones=zones,
            excluded=(),
            min_instant=config.min_instant,
        ),
    )
    metazones = grouper.group(
        config.metazone_start_year, config.metazone_end_year)
    grouper.print_summary(metazones)

    logging.info('======== Resolving labels')
    labels: Dict[str, Tuple[str, bool]] = {}
    document = cache.fetch_labels()
    if document is None:
        logging.info('No label document, skipping')
    else:
        labels.update(
            LabelResolver(document).resolve_all(changes.additions))

    cache.print_summary()

    return PipelineResult(
        config=config,
        changes=changes,
        zones=zones,
        transitions=transitions,
        fallbacks=fallbacks,
        metazones=metazones,
        labels=labels,
        countries=curr_extractor.get_country_names(),
        removed_zones=builder.removed_zones,
        removed_links=builder.removed_links,
        notable_zones=builder.notable_zones,
        unresolved_zones=resolver.unresolved_zones,
    )
