"""Storage backends behind the resilient store."""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, Protocol, runtime_checkable


@runtime_checkable
class StoreBackend(Protocol):
    """Collection-oriented persistence contract.

    Records are JSON-compatible dictionaries keyed by their ``id`` field.
    """

    def exists(self, collection: str) -> bool:
        """Return True when the collection has been provisioned."""

    def list(self, collection: str) -> list[dict[str, Any]]:
        """Return every record in the collection."""

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Return one record or None."""

    def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        """Store a new record and return it."""

    def update(self, collection: str, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        """Replace an existing record and return it."""


class CollectionMissingError(LookupError):
    """Raised by a backend when writing to an unprovisioned collection."""


class CorruptCollectionError(ValueError):
    """Raised when a stored collection cannot be decoded."""


class InMemoryBackend:
    """Thread-safe in-process backend."""

    def __init__(self, provisioned: Iterable[str] = ()) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {
            name: {} for name in provisioned
        }
        self._lock = threading.RLock()

    def provision(self, *collections: str) -> None:
        with self._lock:
            for name in collections:
                self._collections.setdefault(name, {})

    def drop(self, collection: str) -> None:
        with self._lock:
            self._collections.pop(collection, None)

    def exists(self, collection: str) -> bool:
        with self._lock:
            return collection in self._collections

    def list(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._table(collection).values()]

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._table(collection).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            table = self._table(collection)
            record_id = record["id"]
            if record_id in table:
                raise KeyError(f"Duplicate id {record_id!r} in {collection!r}")
            table[record_id] = copy.deepcopy(record)
            return copy.deepcopy(record)

    def update(self, collection: str, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            table = self._table(collection)
            if record_id not in table:
                raise KeyError(f"Unknown id {record_id!r} in {collection!r}")
            table[record_id] = copy.deepcopy(record)
            return copy.deepcopy(record)

    def _table(self, collection: str) -> dict[str, dict[str, Any]]:
        try:
            return self._collections[collection]
        except KeyError as exc:
            raise CollectionMissingError(f"Collection not provisioned: {collection!r}") from exc


class JsonDirectoryBackend:
    """One JSON document per collection inside a directory.

    A collection is provisioned when ``<collection>.json`` exists.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._lock = threading.RLock()

    def provision(self, *collections: str) -> None:
        with self._lock:
            self._base_path.mkdir(parents=True, exist_ok=True)
            for name in collections:
                path = self._path(name)
                if not path.exists():
                    self._write(path, {})

    def exists(self, collection: str) -> bool:
        return self._path(collection).exists()

    def list(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._read(collection).values())

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._read(collection).get(record_id)

    def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            table = self._read(collection)
            if record["id"] in table:
                raise KeyError(f"Duplicate id {record['id']!r} in {collection!r}")
            table[record["id"]] = record
            self._write(self._path(collection), table)
            return record

    def update(self, collection: str, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            table = self._read(collection)
            if record_id not in table:
                raise KeyError(f"Unknown id {record_id!r} in {collection!r}")
            table[record_id] = record
            self._write(self._path(collection), table)
            return record

    def _path(self, collection: str) -> Path:
        return self._base_path / f"{collection}.json"

    def _read(self, collection: str) -> dict[str, dict[str, Any]]:
        path = self._path(collection)
        if not path.exists():
            raise CollectionMissingError(f"Collection not provisioned: {collection!r}")
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise CorruptCollectionError(f"Collection {collection!r} is unreadable: {exc}") from exc

    @staticmethod
    def _write(path: Path, table: dict[str, dict[str, Any]]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(table, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
