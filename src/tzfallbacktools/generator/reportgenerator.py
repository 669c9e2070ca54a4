# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import logging
import os
from typing import List

from tzfallbacktools.data_types.tz_types import CommentsMap
from tzfallbacktools.data_types.tz_types import PipelineResult
from tzfallbacktools.transformer.dates import seconds_to_iso


class ReportGenerator:
    """Generate the text report of the items which need a human decision:
    anomalies, unresolved fallbacks, preliminary labels and metazone
    proposals.
    """

    def __init__(self, invocation: str, result: PipelineResult):
        self.invocation = invocation
        self.result = result

    def generate_files(self, output_dir: str, report_file: str) -> None:
        full_filename = os.path.join(output_dir, report_file)
        with open(full_filename, 'w', encoding='utf-8') as output_file:
            print(self.generate_report(), end='', file=output_file)
        logging.info("Created %s", full_filename)

    def generate_report(self) -> str:
        result = self.result
        changes = result.changes
        return f"""\
# This file was generated by the following script:
#
#   {self.invocation}
#
# TZDB versions: {result.config.prev_version} -> {result.config.curr_version}
#
# New: {len(changes.new)}
# Renames: {len(changes.renames)}
# Additions: {len(changes.additions)}
# Anomalies: {len(changes.anomalies)}

{self._generate_renames()}\
{self._generate_anomalies()}\
{self._generate_fallbacks()}\
{self._generate_labels()}\
{self._generate_metazones()}\
{_generate_comments('Removed zones', result.removed_zones)}\
{_generate_comments('Removed links', result.removed_links)}\
{_generate_comments('Notable zones', result.notable_zones)}\
"""

    def _generate_renames(self) -> str:
        renames = self.result.changes.renames
        if not renames:
            return ''
        lines = ['## Renames', '']
        for old_name, new_name in sorted(renames.items()):
            lines.append(f'- {old_name} -> {new_name}')
        return '\n'.join(lines) + '\n\n'

    def _generate_anomalies(self) -> str:
        anomalies = self.result.changes.anomalies
        if not anomalies:
            return ''
        lines = ['## Anomalies', '']
        for name in anomalies:
            lines.append(
                f'- ACTION NEEDED: {name} links to several previous zones')
        return '\n'.join(lines) + '\n\n'

    def _generate_fallbacks(self) -> str:
        fallbacks_map = self.result.fallbacks
        if not fallbacks_map:
            return ''
        lines: List[str] = ['## Fallbacks', '']
        for name, fallbacks in sorted(fallbacks_map.items()):
            lines.append(f'{name} ({self._country_of(name)}):')
            for fallback in fallbacks:
                time = seconds_to_iso(fallback.ts)
                if fallback.unresolved:
                    lines.append(
                        f'  {time} ACTION NEEDED: no fallback found')
                elif not fallback.tzid:
                    lines.append(f'  {time} (none)')
                else:
                    options = ', '.join(fallback.options)
                    lines.append(
                        f'  {time} {fallback.tzid} (options: {options})')
        return '\n'.join(lines) + '\n\n'

    def _country_of(self, name: str) -> str:
        record = self.result.zones.get(name)
        if record is None:
            return '?'
        cc = record.country_code
        return f"{cc}: {self.result.countries.get(cc, 'unknown')}"

    def _generate_labels(self) -> str:
        labels = self.result.labels
        if not labels:
            return ''
        lines = ['## Labels', '']
        for name, (label, needs_review) in sorted(labels.items()):
            if needs_review:
                lines.append(
                    f"- {name}: '{label}' ACTION NEEDED: "
                    'check that the label is spelled correctly')
            else:
                lines.append(f"- {name}: '{label}'")
        return '\n'.join(lines) + '\n\n'

    def _generate_metazones(self) -> str:
        metazones = self.result.metazones
        if not metazones:
            return ''
        lines = ['## Metazones', '']
        for metazone in metazones:
            dst = 'Uses DST' if metazone.uses_dst else 'No DST'
            lines.append(f'- {metazone.tzid} ({dst})')
            lines.append(f"    OPTIONS: {', '.join(metazone.members)}")
            lines.append(
                f"    ACTION NEEDED: review the key '{metazone.label_key}'")
        return '\n'.join(lines) + '\n\n'


def _generate_comments(title: str, comments: CommentsMap) -> str:
    if not comments:
        return ''
    return f'## {title}\n\n{render_comments_map(comments)}\n'


def render_comments_map(comments: CommentsMap, indent: str = '') -> str:
    """Convert the CommentsMap into text. Print the name and list of
    reasons one a single line, or multiple lines, like this:

    Name1 {reason}
    Name2 {
      reason1,
      reason2,
    }
    """
    text = ''
    for name, reasons in sorted(comments.items()):
        if len(reasons) <= 1:
            text += f"{indent}{name} {{{next(iter(reasons))}}}\n"
        else:
            text += f"{indent}{name} {{\n"
            for reason in sorted(reasons):
                text += f'  {indent}{reason},\n'
            text += f"{indent}}}\n"
    return text
