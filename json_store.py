"""Flat JSON documents, one per entity type, holding an array under a root key."""

import json
import logging
import os
import threading
from contextlib import contextmanager

from services.errors import StorageError

logger = logging.getLogger(__name__)

TASKS_DOCUMENT = ('tasks.json', 'tasks')
EVENTS_DOCUMENT = ('events.json', 'events')
TIMEBLOCKS_DOCUMENT = ('timeblocks.json', 'timeBlocks')
PREFERENCES_DOCUMENT = ('user_prefs.json', 'preferences')
USERS_DOCUMENT = ('users.json', 'users')

_document_locks = {}
_registry_lock = threading.Lock()


def _lock_for(path):
    key = os.path.abspath(path)
    with _registry_lock:
        lock = _document_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _document_locks[key] = lock
        return lock


class JsonDocumentStore:
    def __init__(self, data_dir):
        self.data_dir = data_dir

    def path_for(self, document):
        filename, _ = document
        return os.path.join(self.data_dir, filename)

    @contextmanager
    def locked(self, document):
        """Serialize read-modify-write cycles on one document within this process."""
        with _lock_for(self.path_for(document)):
            yield

    def read(self, document):
        """Return the document's records; any failure degrades to an empty list."""
        path = self.path_for(document)
        _, root_key = document
        if not os.path.exists(path):
            self._write_quietly(document, [])
            return []
        try:
            with open(path, 'r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to read JSON document {path}: {exc}")
            return []
        if not isinstance(data, dict) or not isinstance(data.get(root_key), list):
            logger.error(f"Unexpected structure in {path}; expected '{root_key}' array")
            return []
        return data[root_key]

    def write(self, document, records):
        path = self.path_for(document)
        _, root_key = document
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            payload = json.dumps({root_key: list(records)}, indent=4, ensure_ascii=False)
            with open(path, 'w', encoding='utf-8') as handle:
                handle.write(payload)
        except (OSError, TypeError, ValueError) as exc:
            logger.error(f"Failed to write JSON document {path}: {exc}")
            raise StorageError(f"Failed to write {os.path.basename(path)}") from exc

    def _write_quietly(self, document, records):
        try:
            self.write(document, records)
        except StorageError:
            pass
