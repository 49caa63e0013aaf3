import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from .exceptions import EntryStoreError
from .models import entries_from_json, entries_to_json, validate_entries

logger = logging.getLogger('personal_log.entries')


def atomic_write(path, data, mode='w'):
    """Write data next to path, then swap it in with os.replace."""
    path = Path(path)
    kwargs = {'encoding': 'utf-8'} if 'b' not in mode else {}
    tmp = NamedTemporaryFile(mode, dir=str(path.parent), prefix=f".{path.name}.", delete=False, **kwargs)
    try:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp.close()
        os.replace(tmp.name, path)
    finally:
        tmp.close()
        if os.path.exists(tmp.name):
            os.unlink(tmp.name)


class EntryStore:
    """The whole journal as a single JSON document.

    Every save replaces the full document. There is no locking or version
    check, so two overlapping read-modify-write cycles lose the earlier write.
    """

    def __init__(self, path):
        self.path = Path(path)

    def ensure_data_file(self):
        """Create the data directory and an empty entries document if needed"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                atomic_write(self.path, '[]')
                logger.info(f"Created empty entries file at {self.path}")
        except OSError as e:
            raise EntryStoreError(f"Cannot initialise {self.path}: {e}") from e

    def load_all(self):
        """Return every entry in the document"""
        self.ensure_data_file()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise EntryStoreError(f"Error loading {self.path}: {e}") from e

        try:
            return entries_from_json(data)
        except ValueError as e:
            raise EntryStoreError(f"Malformed entries in {self.path}: {e}") from e

    def save_all(self, entries):
        """Replace the document with the given entries"""
        validate_entries(entries)
        self.ensure_data_file()
        text = json.dumps(entries_to_json(entries), ensure_ascii=False, indent=2)
        try:
            atomic_write(self.path, text)
        except OSError as e:
            raise EntryStoreError(f"Error saving {self.path}: {e}") from e
        logger.debug(f"Saved {len(entries)} entries to {self.path}")
