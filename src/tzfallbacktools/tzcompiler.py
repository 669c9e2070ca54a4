#!/usr/bin/env python3
#
# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

"""
Read the raw TZ Database files of two versions from `--input_dir`, find the
fallbacks of the zones which are new in `--curr_version` relative to
`--prev_version`, propose new metazones, and write the results.

The files of each version are expected in a subdirectory named after the
version:

    {input_dir}/{version}/africa
    {input_dir}/{version}/zone.tab
    ...

Extractor Flags:

* --input_dir {dir}
    * Location of the per-version TZDB directories.
* --prev_version {version}
    * Baseline TZDB version (e.g. 2014g).
* --curr_version {version}
    * Current TZDB version (e.g. 2024a).
* --labels_file {file}
    * CLDR timeZoneNames.json document (optional).
* --existing_file {file}
    * JSON file of what is already known (optional):
      {"metazones": [...], "listed": [...], "country_zones": {cc: [...]}}

Transformer Flags:

* --max_year {year}
    * The last entry of each zone ends at {year}-01-01T00:00Z. Metazones are
      checked for the 8 years up to and including {year}.
      (default: current year + 2)

Generator Flags:

* --output_dir {dir}
    * The directory where the files are created. Empty means $PWD.
* --json_file {file}
    * Name of the JSON file (default: fallbacks.json)
* --report_file {file}
    * Name of the review report (default: fallbacks.txt)
"""

import argparse
import datetime
import json
import logging
import os
import sys
from typing import Any
from typing import Dict
from typing import Optional

from tzfallbacktools.data_types.tz_types import ExistingData
from tzfallbacktools.data_types.tz_types import PipelineConfig
from tzfallbacktools.data_types.tz_types import TzdbError
from tzfallbacktools.data_types.tz_types import create_fallback_database
from tzfallbacktools.generator.jsongenerator import JsonGenerator
from tzfallbacktools.generator.reportgenerator import ReportGenerator
from tzfallbacktools.pipeline import run_pipeline
from tzfallbacktools.transformer.dates import start_of_year

# Start of the first entry of every zone, the smallest 64-bit timestamp.
MIN_INSTANT = -(2**63)

# Number of years before --max_year which are checked for metazones.
METAZONE_YEARS = 7


class DirectoryContentProvider:
    """Read the TZDB files from {input_dir}/{version}/{filename}, and the
    labels from a JSON file.
    """

    def __init__(self, input_dir: str, labels_file: str = ''):
        self.input_dir = input_dir
        self.labels_file = labels_file

    def fetch_file(self, version: str, filename: str) -> str:
        full_filename = os.path.join(self.input_dir, version, filename)
        with open(full_filename, encoding='utf-8') as f:
            return f.read()

    def fetch_labels(self) -> Optional[Dict[str, Any]]:
        if not self.labels_file:
            return None
        with open(self.labels_file, encoding='utf-8') as f:
            return json.load(f)


def read_existing_data(filename: str) -> ExistingData:
    """Read the JSON file of existing metazones, listed zones and per-country
    zone order. Empty filename means 'nothing exists yet'.
    """
    if not filename:
        return ExistingData()

    with open(filename, encoding='utf-8') as f:
        data = json.load(f)
    return ExistingData(
        metazone_ids=list(data.get('metazones', [])),
        listed_ids=list(data.get('listed', [])),
        country_zone_order={
            cc: list(names)
            for cc, names in data.get('country_zones', {}).items()
        },
    )


def main() -> None:
    """
    Main driver for the TZ fallback compiler.

    Usage:
        tzfallback [flags...]
    """
    # Configure command line flags.
    parser = argparse.ArgumentParser(
        description='Find fallbacks for new TZDB zones.')

    # Extractor flags.
    parser.add_argument(
        '--input_dir', help='Location of the input directory', required=True)
    parser.add_argument(
        '--prev_version',
        help='Baseline TZDB version (e.g. 2014g)',
        required=True,
    )
    parser.add_argument(
        '--curr_version',
        help='Current TZDB version (e.g. 2024a)',
        required=True,
    )
    parser.add_argument(
        '--labels_file',
        help='CLDR timeZoneNames.json file (default: none)',
        default='',
    )
    parser.add_argument(
        '--existing_file',
        help='JSON file of existing metazones and listed zones '
             '(default: none)',
        default='',
    )

    # Transformer flags.
    parser.add_argument(
        '--max_year',
        help='Year at which open-ended entries end (default: this year + 2)',
        type=int,
        default=datetime.date.today().year + 2,
    )

    # Generator flags.
    parser.add_argument(
        '--output_dir',
        help='Location of the output directory',
        default='',
    )
    parser.add_argument(
        '--json_file',
        help='The JSON output file (default: fallbacks.json)',
        default='fallbacks.json',
    )
    parser.add_argument(
        '--report_file',
        help='The review report file (default: fallbacks.txt)',
        default='fallbacks.txt',
    )

    # Parse the command line arguments
    args = parser.parse_args()

    # Configure logging. This should normally be executed after the
    # parser.parse_args() because it allows us set the logging.level using a
    # flag.
    logging.basicConfig(level=logging.INFO)

    # How the script was invoked
    invocation = ' '.join(sys.argv)

    config = PipelineConfig(
        prev_version=args.prev_version,
        curr_version=args.curr_version,
        min_instant=MIN_INSTANT,
        max_instant=start_of_year(args.max_year),
        metazone_start_year=args.max_year - METAZONE_YEARS,
        metazone_end_year=args.max_year,
    )

    logging.info('======== TZ Fallback settings')
    logging.info(f'Versions: {config.prev_version} -> {config.curr_version}')
    logging.info(f'Max year: {args.max_year}')
    logging.info(
        f'Metazone years: [{config.metazone_start_year}, '
        f'{config.metazone_end_year}]'
    )

    provider = DirectoryContentProvider(args.input_dir, args.labels_file)
    existing = read_existing_data(args.existing_file)
    try:
        result = run_pipeline(provider, config, existing)
    except TzdbError as e:
        logging.error('%s', e)
        sys.exit(1)

    logging.info('======== Generating files')
    fdb = create_fallback_database(result, result.changes.new)
    json_generator = JsonGenerator(fdb=fdb, json_file=args.json_file)
    json_generator.generate_files(args.output_dir)
    report_generator = ReportGenerator(invocation=invocation, result=result)
    report_generator.generate_files(args.output_dir, args.report_file)

    logging.info('======== Finished processing TZ Data files.')


if __name__ == '__main__':
    main()
