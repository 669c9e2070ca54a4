# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import logging
from typing import Any
from typing import Dict
from typing import Iterable
from typing import NamedTuple
from typing import Optional


class ZoneLabel(NamedTuple):
    label: str
    needs_review: bool  # True if derived from the zone name


# Path of the zone names inside the CLDR timeZoneNames.json document.
CLDR_ZONE_PATH = ('main', 'en', 'dates', 'timeZoneNames', 'zone')


def make_preliminary_label(name: str) -> str:
    """Derive a label from the last component of the zone name, e.g.
    'America/St_Johns' -> 'St. Johns'.
    """
    city = name.rsplit('/', 1)[-1]
    return city.replace('St_', 'St. ').replace('_', ' ')


def find_exemplar_city(
    name: str,
    document: Optional[Dict[str, Any]],
) -> Optional[str]:
    """Walk the CLDR document by the components of the zone name and return
    the 'exemplarCity', or None if the zone is unknown.
    """
    node: Any = document
    for key in CLDR_ZONE_PATH + tuple(name.split('/')):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    if not isinstance(node, dict):
        return None
    city = node.get('exemplarCity')
    return city if isinstance(city, str) else None


class LabelResolver:
    """Find the display labels of new zones. When CLDR does not know the
    zone yet, a preliminary label is created which must be checked by hand.
    """

    def __init__(self, document: Optional[Dict[str, Any]]):
        self.document = document

    def resolve_all(self, names: Iterable[str]) -> Dict[str, ZoneLabel]:
        return {name: self.resolve(name) for name in names}

    def resolve(self, name: str) -> ZoneLabel:
        city = find_exemplar_city(name, self.document)
        if city is not None:
            return ZoneLabel(city, False)
        label = make_preliminary_label(name)
        logging.info(
            "Labels: %s: preliminary label '%s' needs review", name, label)
        return ZoneLabel(label, True)
