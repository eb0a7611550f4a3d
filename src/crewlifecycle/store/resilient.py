"""Store adapter that degrades to placeholder data for unprovisioned collections."""

from __future__ import annotations

import itertools
import threading
from typing import Callable, MutableMapping, TypeVar

import structlog
from cachetools import TTLCache
from pydantic import BaseModel

from ..errors import StoreUnavailableError
from ..schemas import new_id
from .backends import CollectionMissingError, CorruptCollectionError, StoreBackend
from .placeholders import placeholder_records

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

_INFRA_ERRORS = (
    ConnectionError,
    TimeoutError,
    OSError,
    CollectionMissingError,
    CorruptCollectionError,
)

DEFAULT_PROBE_TTL_SECONDS = 30.0


class ProvisioningRegistry:
    """Resolves whether a collection exists.

    Explicit flags take precedence. Otherwise the backend is probed once and the
    answer cached for ``ttl_seconds``; a TTL of zero keeps the first answer for
    the lifetime of the registry.
    """

    def __init__(
        self,
        backend: StoreBackend,
        *,
        overrides: dict[str, bool] | None = None,
        ttl_seconds: float | None = None,
    ) -> None:
        self._backend = backend
        self._overrides = dict(overrides or {})
        ttl = DEFAULT_PROBE_TTL_SECONDS if ttl_seconds is None else float(ttl_seconds)
        self._cache: MutableMapping[str, bool] = (
            TTLCache(maxsize=256, ttl=ttl) if ttl > 0 else {}
        )
        self._lock = threading.RLock()

    def is_provisioned(self, collection: str) -> bool:
        if collection in self._overrides:
            return self._overrides[collection]
        with self._lock:
            cached = self._cache.get(collection)
            if cached is not None:
                return cached
        try:
            answer = bool(self._backend.exists(collection))
        except _INFRA_ERRORS as exc:
            raise StoreUnavailableError(collection, str(exc)) from exc
        with self._lock:
            self._cache[collection] = answer
        return answer

    def set(self, collection: str, provisioned: bool) -> None:
        with self._lock:
            self._overrides[collection] = provisioned

    def invalidate(self, collection: str | None = None) -> None:
        with self._lock:
            if collection is None:
                self._cache.clear()
            else:
                self._cache.pop(collection, None)


class ResilientStore:
    """Typed access to backend collections with an explicit degraded mode."""

    def __init__(
        self,
        backend: StoreBackend,
        *,
        registry: ProvisioningRegistry | None = None,
        provisioned: dict[str, bool] | None = None,
        probe_ttl_seconds: float | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry or ProvisioningRegistry(
            backend,
            overrides=provisioned,
            ttl_seconds=probe_ttl_seconds,
        )
        self._synthetic_ids = itertools.count(1)
        self._synthetic_lock = threading.Lock()
        self._logger = structlog.get_logger(__name__)

    @property
    def registry(self) -> ProvisioningRegistry:
        return self._registry

    def is_provisioned(self, collection: str) -> bool:
        return self._registry.is_provisioned(collection)

    def invalidate(self, collection: str | None = None) -> None:
        self._registry.invalidate(collection)

    def fetch_all(self, collection: str, model: type[M]) -> list[M]:
        if not self.is_provisioned(collection):
            self._logger.warning("store.degraded_read", collection=collection)
            return [model.model_validate(record) for record in placeholder_records(collection)]
        records = self._call(collection, self._backend.list, collection)
        return [model.model_validate(record) for record in records]

    def get(self, collection: str, record_id: str, model: type[M]) -> M | None:
        if not self.is_provisioned(collection):
            self._logger.warning("store.degraded_read", collection=collection, record_id=record_id)
            for record in placeholder_records(collection):
                if record.get("id") == record_id:
                    return model.model_validate(record)
            return None
        record = self._call(collection, self._backend.get, collection, record_id)
        return model.model_validate(record) if record is not None else None

    def insert(self, collection: str, item: M) -> M:
        if not self.is_provisioned(collection):
            synthetic = item.model_copy(update={"id": self._synthetic_id(collection)})
            self._logger.warning(
                "store.degraded_write",
                collection=collection,
                synthetic_id=synthetic.id,  # type: ignore[attr-defined]
            )
            return synthetic
        if not getattr(item, "id", ""):
            item = item.model_copy(update={"id": new_id(collection.rstrip("s"))})
        self._call(collection, self._backend.insert, collection, item.model_dump(mode="json"))
        return item

    def update(self, collection: str, item: M) -> M:
        record_id = getattr(item, "id")
        if not self.is_provisioned(collection):
            self._logger.warning("store.degraded_write", collection=collection, record_id=record_id)
            return item
        self._call(collection, self._backend.update, collection, record_id, item.model_dump(mode="json"))
        return item

    def _synthetic_id(self, collection: str) -> str:
        with self._synthetic_lock:
            return f"synthetic-{collection}-{next(self._synthetic_ids)}"

    @staticmethod
    def _call(collection: str, func: Callable[..., T], *args: object) -> T:
        try:
            return func(*args)
        except _INFRA_ERRORS as exc:
            raise StoreUnavailableError(collection, str(exc)) from exc
