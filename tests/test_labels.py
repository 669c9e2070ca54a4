# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import unittest
from typing import Any
from typing import Dict

from tzfallbacktools.transformer.labels import LabelResolver
from tzfallbacktools.transformer.labels import ZoneLabel
from tzfallbacktools.transformer.labels import find_exemplar_city
from tzfallbacktools.transformer.labels import make_preliminary_label

DOCUMENT: Dict[str, Any] = {
    'main': {
        'en': {
            'dates': {
                'timeZoneNames': {
                    'zone': {
                        'America': {
                            'Argentina': {
                                'Rio_Gallegos': {
                                    'exemplarCity': 'Rio Gallegos',
                                },
                            },
                            'St_Johns': {'exemplarCity': 'St. John’s'},
                        },
                        'Europe': {
                            'Kyiv': {'exemplarCity': 'Kyiv'},
                            'Broken': {'exemplarCity': 42},
                        },
                    },
                },
            },
        },
    },
}


class TestLabels(unittest.TestCase):
    def test_make_preliminary_label(self) -> None:
        self.assertEqual(
            'St. Johns', make_preliminary_label('America/St_Johns'))
        self.assertEqual(
            'Rio Gallegos',
            make_preliminary_label('America/Argentina/Rio_Gallegos'),
        )
        self.assertEqual('UTC', make_preliminary_label('UTC'))

    def test_find_exemplar_city(self) -> None:
        self.assertEqual('Kyiv', find_exemplar_city('Europe/Kyiv', DOCUMENT))
        self.assertEqual(
            'Rio Gallegos',
            find_exemplar_city('America/Argentina/Rio_Gallegos', DOCUMENT),
        )
        self.assertIsNone(find_exemplar_city('Europe/Nowhere', DOCUMENT))
        self.assertIsNone(find_exemplar_city('Europe/Broken', DOCUMENT))
        self.assertIsNone(find_exemplar_city('America/Argentina', DOCUMENT))
        self.assertIsNone(find_exemplar_city('Europe/Kyiv', None))
        self.assertIsNone(find_exemplar_city('Europe/Kyiv', {'main': []}))

    def test_resolve(self) -> None:
        resolver = LabelResolver(DOCUMENT)
        self.assertEqual(
            ZoneLabel('St. John’s', False),
            resolver.resolve('America/St_Johns'),
        )
        self.assertEqual(
            ZoneLabel('Ciudad Juarez', True),
            resolver.resolve('America/Ciudad_Juarez'),
        )

    def test_resolve_all(self) -> None:
        resolver = LabelResolver(None)
        self.assertEqual(
            {
                'Europe/Kyiv': ('Kyiv', True),
                'America/St_Johns': ('St. Johns', True),
            },
            resolver.resolve_all(['Europe/Kyiv', 'America/St_Johns']),
        )


if __name__ == '__main__':
    unittest.main()
