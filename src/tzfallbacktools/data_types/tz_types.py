# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

from collections import OrderedDict
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Collection
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Set
from typing import Tuple
from typing import cast
from typing_extensions import TypedDict

"""
Data types created or consumed by the various stages of the pipeline. These
allow type checking to be performed using mypy. Also contains global constants
and the exception types shared by multiple packages.
"""

# -----------------------------------------------------------------------------
# Constants used by various modules.
# -----------------------------------------------------------------------------

# Indicate max TO year of a RULE (represented by 'max').
MAX_TO_YEAR: int = 9999

# Country code assigned to zones which are not listed in zone.tab.
UNKNOWN_COUNTRY_CODE: str = 'ZZ'

# FORMAT of a Zone entry for an unpopulated period (e.g. Antarctic stations).
UNPOPULATED_FORMAT: str = '-00'

# Files with Zone, Rule and Link records, in the order in which they are read.
PRIMARY_FILES: List[str] = [
    'africa',
    'antarctica',
    'asia',
    'australasia',
    'etcetera',
    'europe',
    'northamerica',
    'southamerica',
]
BACKWARD_FILE: str = 'backward'
BACKZONE_FILE: str = 'backzone'
ZONE_TAB_FILE: str = 'zone.tab'
ISO3166_TAB_FILE: str = 'iso3166.tab'

# The complete set of files that a ContentProvider may be asked for.
ALL_FILES: List[str] = PRIMARY_FILES + [
    BACKWARD_FILE,
    BACKZONE_FILE,
    ZONE_TAB_FILE,
    ISO3166_TAB_FILE,
]

# First TZDB release which contains the 'backzone' file.
FIRST_BACKZONE_VERSION: str = '2014g'


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------

class TzdbError(Exception):
    """Base class of all fatal errors raised by the pipeline."""


class TzdbParseError(TzdbError):
    """A malformed record in one of the TZDB source files."""

    def __init__(self, filename: str, line_num: int, line: str, reason: str):
        super().__init__(f'{filename}:{line_num}: {reason}: {line!r}')
        self.filename = filename
        self.line_num = line_num
        self.line = line
        self.reason = reason


class TzdbDateError(TzdbError):
    """A date expression (UNTIL, or IN/ON/AT) which cannot be parsed."""


class TzdbFetchError(TzdbError):
    """The ContentProvider failed to deliver a file."""

    def __init__(self, version: str, filename: str, reason: str):
        super().__init__(f'Unable to fetch {filename}@{version}: {reason}')
        self.version = version
        self.filename = filename


class TzdbLinkError(TzdbError):
    """A Link cycle or a Link chain which never reaches a Zone."""


# -----------------------------------------------------------------------------
# Data types produced mostly by extractor.py. Some fields are incrementally
# added by transitions.py.
# -----------------------------------------------------------------------------

class ZoneRuleRaw(TypedDict, total=False):
    """Represents the input records corresponding to the 'RULE' lines in a
    tz database file. Those entries look like this:

    # Rule  NAME    FROM    TO    TYPE IN   ON      AT      SAVE    LETTER
    Rule    US      2007    max   -    Mar  Sun>=8  2:00    1:00    D
    Rule    US      2007    max   -    Nov  Sun>=1  2:00    0       S
    """
    name: str  # name of the RuleSet
    from_year: int  # from year
    to_year: int  # to year, MAX_TO_YEAR means 'max'
    in_month: int  # month index (1-12)
    on_day: str  # 'lastSun' or 'Sun>=2', or 'dayOfMonth'
    at_time: str  # time at which to transition to and from DST
    at_time_suffix: str  # '', 'w', 's', 'u', 'g', 'z'
    delta_offset: str  # DST offset from Standard time ('SAVE' field)
    letter: str  # 'D', 'S', '-', but sometimes longer 'DD', 'CAT', etc.
    file: str  # name of the TZDB file which defined the rule
    raw_line: str  # the original RULE line from the TZ file


class ZoneEntryRaw(TypedDict, total=False):
    """Represents the input records corresponding to the 'ZONE' lines in a
    tz database file. Those entries look like this:

    # Zone  NAME                STDOFF      RULES   FORMAT  [UNTIL]
    Zone    America/Chicago     -5:50:36    -       LMT     1883 Nov 18 12:09:24
                                -6:00       US      C%sT    1920
                                ...
                                -6:00       US      C%sT

    """
    offset_string: str  # STD offset from UTC/GMT
    rules: str  # '-', a fixed SAVE like '1:00', or the name of a RuleSet
    format: str  # abbreviation format (e.g. P%sT, E%sT, GMT/BST, %z)
    until: str  # raw UNTIL column, '' for the last entry
    raw_line: str  # original ZONE line in TZ file

    # Derived from above by transitions.py
    offset_seconds: int  # STDOFF in seconds
    from_seconds: int  # unadjusted start, seconds since 1970 in local time
    from_suffix: str  # reference suffix of from_seconds
    until_seconds: int  # unadjusted end, seconds since 1970 in local time
    until_suffix: str  # reference suffix of until_seconds
    from_utc: int  # start of the entry, UTC seconds
    until_utc: int  # end of the entry (exclusive), UTC seconds


# Map of ruleSetName -> ZoneRuleRaw[]. Created by extractor.py.
RulesMap = Dict[str, List[ZoneRuleRaw]]

# Map of zoneName -> ZoneEntryRaw[]. Created by extractor.py.
EntriesMap = Dict[str, List[ZoneEntryRaw]]

# Map of linkName -> targetName. Created by extractor.py.
LinksMap = Dict[str, str]


def is_named_rule_set(rules: str) -> bool:
    """Return True if the RULES column of a Zone entry references a RuleSet,
    as opposed to '-' (no DST) or a fixed SAVE such as '1:00' or '-0:30'.
    """
    if rules == '-':
        return False
    return not all(part.lstrip('-').isdigit() for part in rules.split(':'))


# Map of {name -> Set[reason]} used to collect de-duped error messages or
# warnings.
CommentsMap = Dict[str, Collection[str]]


def add_comment(comments: CommentsMap, name: str, reason: str) -> None:
    """Add the human readable 'reason' to the 'comments' CommentsMap.
    """
    reasons = cast(Optional[Set[str]], comments.get(name))
    if not reasons:
        reasons = set()
        comments[name] = reasons
    reasons.add(reason)


def merge_comments(target: CommentsMap, new: CommentsMap) -> None:
    """Merge 'new' CommentsMap into 'target' CommentsMap.
    """
    for name, new_reasons in new.items():
        old_reasons = cast(Optional[Set[str]], target.get(name))
        if not old_reasons:
            old_reasons = set()
            target[name] = old_reasons
        old_reasons.update(new_reasons)


# -----------------------------------------------------------------------------
# Data types produced by zonegraph.py.
# -----------------------------------------------------------------------------

class Coordinates(NamedTuple):
    """Location of a zone in decimal degrees, north and east positive."""
    latitude: float
    longitude: float


@dataclass
class ZoneRecord:
    """A zone (or a link treated like a zone) with its entries and location.
    A link carries a copy of the entries of its canonical target.
    """
    name: str
    entries: List[ZoneEntryRaw]
    file: str
    country_code: str = UNKNOWN_COUNTRY_CODE
    coordinates: Optional[Coordinates] = None
    canonical: Optional[str] = None  # target, if this is a link
    links: List[str] = field(default_factory=list)  # links pointing here
    is_new: bool = False


ZonesMap = Dict[str, ZoneRecord]


@dataclass
class TzdbInventory:
    """Identifiers found in one version of the TZDB, without entries."""
    version: str
    zones: List[str]  # Zone names in the primary files
    links: LinksMap  # primary, backward and backzone links merged
    backward_links: LinksMap
    backzones: List[str]  # Zone names in the backzone file
    backzone_links: LinksMap
    all_ids: List[str]  # every identifier mentioned anywhere

    @property
    def canonical(self) -> List[str]:
        return [name for name in self.all_ids if name not in self.links]


@dataclass
class TzdbChanges:
    """Differences between the baseline and the current TZDB version."""
    new: List[str]  # ids absent from the baseline
    renames: Dict[str, str]  # {oldName -> newName}
    additions: List[str]  # genuinely new ids, which need fallbacks
    anomalies: List[str]  # new ids with ambiguous links, for manual review


# -----------------------------------------------------------------------------
# Data types produced by transitions.py, fallbacks.py and metazones.py.
# -----------------------------------------------------------------------------

class Transition(NamedTuple):
    """A change of UTC offset, DST status or abbreviation at instant 'ts'."""
    ts: int  # UTC seconds since 1970
    time: str  # ISO 8601 rendering of 'ts' in UTC
    offset: int  # total UTC offset in seconds
    is_dst: bool
    abbr: str

    @property
    def state(self) -> Tuple[int, bool, str]:
        return (self.offset, self.is_dst, self.abbr)


# Map of zoneName -> Transition[].
TransitionsMap = Dict[str, List[Transition]]


@dataclass
class FallbackEntry:
    """From 'ts' onwards, 'tzid' can stand in for a new zone. An empty 'tzid'
    means that no fallback is known for the period.
    """
    ts: int
    tzid: str
    options: List[str] = field(default_factory=list)
    unresolved: bool = False


# Map of zoneName -> FallbackEntry[].
FallbacksMap = Dict[str, List[FallbackEntry]]


class Metazone(NamedTuple):
    """A proposed group of zones sharing the same civil time behavior."""
    tzid: str  # representative zone
    members: Tuple[str, ...]
    uses_dst: bool
    label_key: str


# -----------------------------------------------------------------------------
# Configuration and result of pipeline.py.
# -----------------------------------------------------------------------------

@dataclass
class PipelineConfig:
    """Caller-supplied settings. The pipeline invents no defaults."""
    prev_version: str  # baseline TZDB version, e.g. '2014g'
    curr_version: str  # current TZDB version, e.g. '2024a'
    min_instant: int  # start of the first entry of every zone
    max_instant: int  # end of the last entry of every zone
    metazone_start_year: int
    metazone_end_year: int


@dataclass
class ExistingData:
    """What the consumer of the results already knows about."""
    metazone_ids: List[str] = field(default_factory=list)
    listed_ids: List[str] = field(default_factory=list)  # displayed zones
    # {countryCode -> zoneName[]} in display order
    country_zone_order: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class PipelineResult:
    config: PipelineConfig
    changes: TzdbChanges
    zones: ZonesMap
    transitions: TransitionsMap
    fallbacks: FallbacksMap
    metazones: List[Metazone]
    labels: Dict[str, Tuple[str, bool]]  # {zoneName -> (label, needs_review)}
    countries: Dict[str, str]  # {countryCode -> countryName}
    removed_zones: CommentsMap
    removed_links: CommentsMap
    notable_zones: CommentsMap
    unresolved_zones: CommentsMap


class FallbackDatabase(TypedDict):
    """The JSON-serializable representation of a PipelineResult."""

    # Context data.
    prev_version: str
    curr_version: str
    min_instant: int
    max_instant: int

    # Data from the zone graph.
    new: List[str]
    renames: Dict[str, str]
    additions: List[str]
    anomalies: List[str]
    removed_zones: CommentsMap
    removed_links: CommentsMap
    notable_zones: CommentsMap

    # Data from the resolvers.
    transitions: Dict[str, List[Dict[str, Any]]]
    fallbacks: Dict[str, List[Dict[str, Any]]]
    metazones: List[Dict[str, Any]]
    labels: Dict[str, Dict[str, Any]]
    unresolved_zones: CommentsMap


def create_fallback_database(
    result: PipelineResult,
    transition_names: Collection[str] = (),
) -> FallbackDatabase:
    """Return a FallbackDatabase from the PipelineResult. Transitions are
    included only for the zones in 'transition_names', normally the new
    zones, because the full set is large.
    """
    return {
        # Context data.
        'prev_version': result.config.prev_version,
        'curr_version': result.config.curr_version,
        'min_instant': result.config.min_instant,
        'max_instant': result.config.max_instant,

        # Data from the zone graph.
        'new': result.changes.new,
        'renames': result.changes.renames,
        'additions': result.changes.additions,
        'anomalies': result.changes.anomalies,
        'removed_zones': _sort_comments(result.removed_zones),
        'removed_links': _sort_comments(result.removed_links),
        'notable_zones': _sort_comments(result.notable_zones),

        # Data from the resolvers.
        'transitions': {
            name: [t._asdict() for t in result.transitions[name]]
            for name in sorted(transition_names)
            if name in result.transitions
        },
        'fallbacks': {
            name: [asdict(f) for f in fallbacks]
            for name, fallbacks in result.fallbacks.items()
        },
        'metazones': [m._asdict() for m in result.metazones],
        'labels': {
            name: {'label': label, 'needs_review': needs_review}
            for name, (label, needs_review) in result.labels.items()
        },
        'unresolved_zones': _sort_comments(result.unresolved_zones),
    }


def _sort_comments(comments: CommentsMap) -> CommentsMap:
    """Sort and convert {name -> Set(str)} to {name -> List(str)} to provide
    deterministic ordering.
    """
    return OrderedDict(
        (k, list(sorted(v)))
        for k, v in sorted(comments.items())
    )
