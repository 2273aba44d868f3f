"""Shared pytest fixtures for oneup tests."""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from oneup.core.identity import Identity, StaticIdentityProvider
from oneup.core.remote import RemoteStoreError
from oneup.exercises import DEFAULT_EXERCISES
from oneup.progress.migrator import StateMigrator
from oneup.progress.storage import LocalStorage
from oneup.progress.store import ProgressStore
from oneup.service import ProgressService
from oneup.sync.engine import SyncEngine


class FixedClock:
    """Injectable clock returning a settable aware datetime."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRemoteStore:
    """In-memory hierarchical store standing in for Firebase.

    Values are deep-copied in and out.  ``emit()`` simulates a remote
    change pushed to live listeners; with ``echo_writes=True`` every
    ``set()`` is also pushed to listeners of that path, like the real
    database does for the writer's own listener.
    """

    def __init__(self, echo_writes: bool = False) -> None:
        self.data: dict[str, Any] = {}
        self.echo_writes = echo_writes
        self.writes: list[tuple[str, Any]] = []
        self.listeners: dict[str, list[Callable[[Any], None]]] = {}
        self.fail_with: Exception | None = None

    @staticmethod
    def _keys(path: str) -> list[str]:
        return [key for key in path.split("/") if key]

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get(self, path: str) -> Any | None:
        self._check()
        node: Any = self.data
        for key in self._keys(path):
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return copy.deepcopy(node)

    def set(self, path: str, value: Any) -> None:
        self._check()
        keys = self._keys(path)
        node = self.data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = copy.deepcopy(value)
        self.writes.append((path, copy.deepcopy(value)))
        if self.echo_writes:
            self.emit(path, value)

    def delete(self, path: str) -> None:
        self._check()
        keys = self._keys(path)
        node: Any = self.data
        for key in keys[:-1]:
            node = node.get(key, {})
        if isinstance(node, dict):
            node.pop(keys[-1], None)

    def listen(
        self, path: str, callback: Callable[[Any], None]
    ) -> Callable[[], None]:
        self._check()
        self.listeners.setdefault(path, []).append(callback)

        def unsubscribe() -> None:
            self.listeners[path].remove(callback)

        return unsubscribe

    def emit(self, path: str, value: Any) -> None:
        for callback in list(self.listeners.get(path, [])):
            callback(copy.deepcopy(value))


@pytest.fixture
def exercises():
    return DEFAULT_EXERCISES


@pytest.fixture
def clock():
    """Clock pinned to 2025-01-15 09:30 UTC."""
    return FixedClock(datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "storage.json")


@pytest.fixture
def store(storage, exercises, clock):
    progress_store = ProgressStore(storage, exercises, clock=clock)
    progress_store.initialize()
    return progress_store


@pytest.fixture
def migrator(exercises):
    return StateMigrator([ex.id for ex in exercises])


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()


@pytest.fixture
def identity():
    return StaticIdentityProvider(
        Identity(uid="user-1", display_name="Alex", photo_url="https://img/a.png")
    )


@pytest.fixture
def engine(fake_remote, identity, migrator):
    return SyncEngine(fake_remote, identity, migrator)


@pytest.fixture
def remote_failure():
    return RemoteStoreError("PUT failed with HTTP 503: unavailable", 503)


@pytest.fixture
def service(store):
    """Offline service: no sync engine."""
    return ProgressService(store)


@pytest.fixture
def cloud_service(store, engine):
    """Service wired to the in-memory remote."""
    return ProgressService(store, engine)
