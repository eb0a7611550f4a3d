"""Dependency injection container for the lifecycle engine."""

from __future__ import annotations

from pathlib import Path

from dependency_injector import containers, providers

from .batch import AuditLogger, ScreeningBatch
from .core import (
    KeyedLocks,
    PerformanceAggregator,
    SchedulingEngine,
    ScreeningConfig,
    ScreeningEngine,
    WorkflowEngine,
)
from .events import EventBus
from .orchestrator import LifecycleOrchestrator
from .store import ALL_COLLECTIONS, InMemoryBackend, JsonDirectoryBackend, ResilientStore


class LifecycleContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    backend = providers.Singleton(InMemoryBackend, provisioned=ALL_COLLECTIONS)

    store = providers.Singleton(
        ResilientStore,
        backend=backend,
        provisioned=config.store.provisioned,
        probe_ttl_seconds=config.store.probe_ttl_seconds,
    )

    locks = providers.Singleton(KeyedLocks)
    events = providers.Singleton(EventBus)
    audit_logger = providers.Object(None)

    screening_config = providers.Singleton(ScreeningConfig)
    screening_engine = providers.Singleton(ScreeningEngine, config=screening_config)

    workflow_engine = providers.Singleton(WorkflowEngine, store=store, locks=locks, events=events)
    scheduling_engine = providers.Singleton(SchedulingEngine, store=store, locks=locks, events=events)
    performance_aggregator = providers.Singleton(PerformanceAggregator, store=store, locks=locks)

    orchestrator = providers.Factory(
        LifecycleOrchestrator,
        store=store,
        locks=locks,
        screening=screening_engine,
        workflows=workflow_engine,
        scheduling=scheduling_engine,
        performance=performance_aggregator,
        events=events,
        audit_logger=audit_logger,
    )

    batch = providers.Factory(ScreeningBatch, engine=screening_engine)


def create_container(*, settings: dict | None = None) -> LifecycleContainer:
    """Instantiate container with optional overrides."""

    container = LifecycleContainer()

    if not settings:
        return container

    store_settings = settings.get("store", {}) if isinstance(settings, dict) else {}
    if store_settings:
        container.config.override({"store": store_settings})
        data_dir = store_settings.get("data_dir")
        if data_dir:
            container.backend.override(providers.Singleton(JsonDirectoryBackend, base_path=Path(data_dir)))

    screening_settings = settings.get("screening", {}) if isinstance(settings, dict) else {}
    if screening_settings:
        screening_config = ScreeningConfig(**screening_settings)
        container.screening_config.override(providers.Object(screening_config))

    audit_log = settings.get("audit_log") if isinstance(settings, dict) else None
    if audit_log:
        container.audit_logger.override(providers.Singleton(AuditLogger, Path(audit_log)))

    return container
