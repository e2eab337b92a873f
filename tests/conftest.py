"""Shared fixtures: fake clock, fake external API and wired-up components."""

from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from unisync.adapters.memory import InMemoryDeclaredObjectStore, InMemorySyncStateRepository
from unisync.application.sync import Debouncer, SyncEngine, SyncStateStore
from unisync.core.domain import EventBus, SyncState
from unisync.core.exceptions import AmbiguousReferenceError
from unisync.core.ports import (
    EngineConfig,
    ExternalApiFactoryPort,
    ExternalApiPort,
    NotFoundError,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def utcnow(self) -> datetime:
        """The same instant as a wall-clock time, for persisted deadlines."""
        return datetime.fromtimestamp(self.now, timezone.utc)


class FakeExternalApi(ExternalApiPort):
    """
    In-memory stand-in for one external resource collection.

    ``next_ids`` are handed out by create in order (then cf-1, cf-2, ...).
    Setting ``fail_with`` makes every mutating call raise it.
    """

    def __init__(self, next_ids: Optional[list[str]] = None):
        self.resources: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.next_ids = list(next_ids or [])
        self.fail_with: Optional[Exception] = None
        self._counter = 0

    @property
    def name(self) -> str:
        return "Fake"

    def calls_to(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    def _new_id(self) -> str:
        if self.next_ids:
            return self.next_ids.pop(0)
        self._counter += 1
        return f"cf-{self._counter}"

    def create(self, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", params))
        if self.fail_with:
            raise self.fail_with
        new_id = self._new_id()
        self.resources[new_id] = dict(params)
        return {"id": new_id, **params}

    def update(self, external_id: str, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("update", external_id, params))
        if self.fail_with:
            raise self.fail_with
        if external_id not in self.resources:
            raise NotFoundError(f"{external_id} not found", resource=external_id, status_code=404)
        self.resources[external_id] = dict(params)
        return {"id": external_id, **params}

    def delete(self, external_id: str) -> None:
        self.calls.append(("delete", external_id))
        if self.fail_with:
            raise self.fail_with
        if self.resources.pop(external_id, None) is None:
            raise NotFoundError(f"{external_id} not found", resource=external_id, status_code=404)

    def get(self, external_id: str) -> dict[str, Any]:
        if external_id not in self.resources:
            raise NotFoundError(f"{external_id} not found", resource=external_id, status_code=404)
        return {"id": external_id, **self.resources[external_id]}

    def find_by_name(self, name: str) -> Optional[dict[str, Any]]:
        matches = [
            {"id": rid, **params} for rid, params in self.resources.items()
            if params.get("name") == name
        ]
        if len(matches) > 1:
            raise AmbiguousReferenceError(f"{len(matches)} resources named {name!r}")
        return matches[0] if matches else None


class FakeApiFactory(ExternalApiFactoryPort):
    """Hands the same FakeExternalApi to every SyncState."""

    def __init__(self, api: FakeExternalApi):
        self.api = api
        self.states: list[str] = []

    def for_state(self, sync_state: SyncState) -> ExternalApiPort:
        self.states.append(sync_state.name)
        return self.api


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def debouncer(clock):
    return Debouncer(window=0.5, clock=clock)


@pytest.fixture
def repository():
    return InMemorySyncStateRepository()


@pytest.fixture
def objects():
    return InMemoryDeclaredObjectStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def api():
    return FakeExternalApi()


@pytest.fixture
def api_factory(api):
    return FakeApiFactory(api)


@pytest.fixture
def engine_config():
    return EngineConfig(
        debounce_seconds=0.5,
        success_requeue_seconds=600,
        error_requeue_base_seconds=10,
        error_requeue_max_seconds=300,
        conflict_attempts=5,
        workers=2,
    )


@pytest.fixture
def store(repository, debouncer):
    return SyncStateStore(repository, debouncer=debouncer)


@pytest.fixture
def engine(repository, api_factory, debouncer, event_bus, engine_config, clock):
    return SyncEngine(
        repository=repository,
        api_factory=api_factory,
        debouncer=debouncer,
        event_bus=event_bus,
        config=engine_config,
        clock=clock.utcnow,
    )


def settle_reconcile(engine: SyncEngine, clock: FakeClock, name: str, max_passes: int = 10):
    """
    Drive reconciles the way the dispatcher would: wait out debounce windows
    and repeat immediate requeues. Returns the last result.
    """
    result = engine.reconcile(name)
    for _ in range(max_passes):
        if result.action == "debounced":
            clock.advance(result.requeue_after)
        elif not (result.requeue and result.requeue_after == 0):
            return result
        result = engine.reconcile(name)
    return result


@pytest.fixture
def settle(engine, clock):
    """settle_reconcile bound to the engine and clock fixtures."""
    def run(name: str):
        return settle_reconcile(engine, clock, name)
    return run
