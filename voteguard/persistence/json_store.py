"""
JSON file-based storage implementation.

Keeps voters, verification cases and invalid votes in one JSON document:

    {
      "voters": {"<voter_id>": {...}},
      "verification_cases": {"<case_id>": {...}},
      "invalid_votes": [{...}, ...]
    }

Writes go through `transaction()`, which makes a group of changes
all-or-nothing: on error the in-memory state is rolled back, on success the
whole document is written to disk atomically. With `path=None` the store
lives only in memory (tests, dry runs).
"""

from __future__ import annotations

import copy
import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Any, Iterator

from ..exceptions import DataPersistenceError
from ..logger import get_logger
from ..utils.file_utils import atomic_write_bytes

logger = get_logger(__name__)

COLLECTIONS = ("voters", "verification_cases")
APPEND_ONLY = ("invalid_votes",)


def _empty_document() -> dict[str, Any]:
    data: dict[str, Any] = {name: {} for name in COLLECTIONS}
    data.update({name: [] for name in APPEND_ONLY})
    return data


class JSONStore:
    """
    JSON document store with transactional writes.

    All access is serialised with a re-entrant lock; nested transactions
    join the outermost one.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize JSON store.

        Args:
            path: JSON file to load and persist to, or None for memory only
        """
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._depth = 0
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        data = _empty_document()
        if self.path is None or not self.path.exists():
            return data

        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise DataPersistenceError(
                f"Could not load database: {e}", file_path=str(self.path), operation="load"
            ) from e

        for name in COLLECTIONS + APPEND_ONLY:
            if name in loaded:
                data[name] = loaded[name]
        logger.debug(f"Loaded {len(data['voters'])} voters, {len(data['verification_cases'])} cases from {self.path}")
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        payload = json.dumps(self._data, ensure_ascii=False, indent=2).encode("utf-8")
        try:
            atomic_write_bytes(self.path, payload)
        except OSError as e:
            raise DataPersistenceError(
                f"Could not save database: {e}", file_path=str(self.path), operation="save"
            ) from e

    @contextmanager
    def transaction(self) -> Iterator[dict[str, Any]]:
        """
        Group writes into one all-or-nothing unit.

        Yields the live document; mutate it in place. If the block raises,
        every change made inside it is discarded.
        """
        with self._lock:
            outermost = self._depth == 0
            snapshot = copy.deepcopy(self._data) if outermost else None
            self._depth += 1
            try:
                yield self._data
                if outermost:
                    self._flush()
            except BaseException:
                if outermost:
                    self._data = snapshot
                raise
            finally:
                self._depth -= 1

    @contextmanager
    def read(self) -> Iterator[dict[str, Any]]:
        """Consistent read access; do not mutate the yielded document."""
        with self._lock:
            yield self._data

    def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        with self.read() as data:
            record = data[collection].get(key)
            return copy.deepcopy(record) if record is not None else None

    def put(self, collection: str, key: str, record: dict[str, Any]) -> None:
        with self.transaction() as data:
            data[collection][key] = copy.deepcopy(record)

    def values(self, collection: str) -> list[dict[str, Any]]:
        with self.read() as data:
            items = data[collection]
            records = items.values() if isinstance(items, dict) else items
            return [copy.deepcopy(r) for r in records]

    def append(self, collection: str, record: dict[str, Any]) -> None:
        if collection not in APPEND_ONLY:
            raise ValueError(f"{collection} is not an append-only collection")
        with self.transaction() as data:
            data[collection].append(copy.deepcopy(record))
