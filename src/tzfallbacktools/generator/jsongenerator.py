# Copyright 2024 The tzfallbacktools Authors
#
# MIT License

from typing import Any
from typing import List
import os
import logging
import json

from tzfallbacktools.data_types.tz_types import FallbackDatabase


# Serializer for the Set() of reasons inside a CommentsMap.
def serialize_sets(obj: Any) -> List[Any]:
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError("Type %s is not serializable" % type(obj))


class JsonGenerator:
    """Generate the JSON representation of the FallbackDatabase to the given
    'json_file'.
    """
    def __init__(
        self,
        fdb: FallbackDatabase,
        json_file: str
    ):
        self.fdb = fdb
        self.json_file = json_file

    def generate_files(self, output_dir: str) -> None:
        """Serialize FallbackDatabase to the specified file."""
        full_filename = os.path.join(output_dir, self.json_file)
        with open(full_filename, 'w', encoding='utf-8') as output_file:
            json.dump(self.fdb, output_file, indent=2, default=serialize_sets)
            print(file=output_file)  # add terminating newline
        logging.info("Created %s", full_filename)
