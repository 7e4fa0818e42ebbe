"""テスト共通のフィクスチャ"""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Set, Tuple

import pytest

from todo_engine.binding import ManualScheduler
from todo_engine.exceptions import StorageError
from todo_engine.storage import MemoryKeyValueBackend, PersistenceAdapter
from todo_engine.storage.adapter import PROBE_KEY
from todo_engine.todo import TodoStore


class RecordingBackend(MemoryKeyValueBackend):
    """書き込みを記録するメモリバックエンド（可用性プローブは除外）"""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self.writes: List[Tuple[str, str]] = []
        self.fail_remove_keys: Set[str] = set()

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        if key != PROBE_KEY:
            self.writes.append((key, value))

    def remove_item(self, key: str) -> None:
        if key in self.fail_remove_keys:
            raise StorageError("削除に失敗しました", context={"key": key})
        super().remove_item(key)

    def writes_for(self, key: str) -> List[str]:
        return [value for k, value in self.writes if k == key]


class FakeClock:
    """呼び出すたびに1秒進む時計"""

    def __init__(self) -> None:
        self.current = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def adapter(backend: RecordingBackend) -> PersistenceAdapter:
    return PersistenceAdapter(backend)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store(adapter, scheduler, clock):
    """ManualScheduler・固定時計・連番IDを使うTodoStoreを作るファクトリー"""

    def _make(load: bool = True, id_factory=None) -> TodoStore:
        counter = itertools.count(1)
        store = TodoStore(
            adapter,
            scheduler=scheduler,
            clock=clock,
            id_factory=id_factory or (lambda: f"todo-{next(counter)}"),
        )
        if load:
            store.load_from_storage()
        return store

    return _make


@pytest.fixture
def store(make_store) -> TodoStore:
    return make_store()
