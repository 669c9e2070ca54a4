# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

import logging
from typing import Any
from typing import Dict
from typing import Optional
from typing import Tuple
from typing_extensions import Protocol

from tzfallbacktools.data_types.tz_types import ALL_FILES
from tzfallbacktools.data_types.tz_types import TzdbFetchError


class ContentProvider(Protocol):
    """Define the interface of the collaborator which supplies the raw TZDB
    files and the display label document. Implementations live outside the
    core (e.g. tzcompiler.DirectoryContentProvider).
    """
    def fetch_file(self, version: str, filename: str) -> str:
        ...

    def fetch_labels(self) -> Optional[Dict[str, Any]]:
        ...


class ContentCache:
    """Memoize the content of each (version, filename) for the lifetime of a
    single run. There is no eviction, the set of files is small and fixed.
    Any failure of the provider is converted into a TzdbFetchError.
    """

    def __init__(self, provider: ContentProvider):
        self.provider = provider
        self.files: Dict[Tuple[str, str], str] = {}
        self.labels: Optional[Dict[str, Any]] = None
        self.labels_fetched = False

    def fetch_file(self, version: str, filename: str) -> str:
        if filename not in ALL_FILES:
            raise TzdbFetchError(version, filename, 'unknown file')

        key = (version, filename)
        content = self.files.get(key)
        if content is None:
            try:
                content = self.provider.fetch_file(version, filename)
            except TzdbFetchError:
                raise
            except Exception as e:
                raise TzdbFetchError(version, filename, str(e)) from e
            logging.info('Fetched %s@%s (%d bytes)', filename, version,
                         len(content))
            self.files[key] = content
        return content

    def fetch_labels(self) -> Optional[Dict[str, Any]]:
        if not self.labels_fetched:
            try:
                self.labels = self.provider.fetch_labels()
            except Exception as e:
                raise TzdbFetchError('-', 'labels', str(e)) from e
            self.labels_fetched = True
        return self.labels

    def print_summary(self) -> None:
        logging.info(f'Summary: Cached files: {len(self.files)}')
