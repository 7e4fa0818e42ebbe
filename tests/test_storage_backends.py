"""キーバリューストア実装のテスト"""

import pytest

from todo_engine.exceptions import ErrorKind, QuotaExceededError, StorageNotAvailableError
from todo_engine.storage import (
    KeyValueBackend,
    MemoryKeyValueBackend,
    PersistenceAdapter,
    SqliteKeyValueBackend,
)


def test_memory_backend_quota():
    backend = MemoryKeyValueBackend(quota_bytes=10)
    backend.set_item("a", "12345")
    # 同じキーの上書きは既存の値を除いて計算する
    backend.set_item("a", "123456789")

    with pytest.raises(QuotaExceededError):
        backend.set_item("b", "1234")
    assert backend.keys() == ["a"]


def test_memory_backend_disabled():
    backend = MemoryKeyValueBackend(disabled=True)
    with pytest.raises(StorageNotAvailableError):
        backend.get_item("a")


def test_sqlite_backend_crud(tmp_path):
    backend = SqliteKeyValueBackend(db_path=tmp_path / "kv.db")
    assert isinstance(backend, KeyValueBackend)

    assert backend.get_item("a") is None
    backend.set_item("b", "2")
    backend.set_item("a", "1")
    backend.set_item("a", "10")

    assert backend.get_item("a") == "10"
    assert backend.keys() == ["a", "b"]
    assert len(backend) == 2

    backend.remove_item("a")
    assert backend.get_item("a") is None
    assert len(backend) == 1


def test_sqlite_backend_persists_between_instances(tmp_path):
    db_path = tmp_path / "kv.db"
    SqliteKeyValueBackend(db_path=db_path).set_item("key", '"value"')

    reopened = PersistenceAdapter(SqliteKeyValueBackend(db_path=db_path))
    assert reopened.get("key").data == "value"


def test_sqlite_backend_namespaces(tmp_path):
    """clear() は自分の名前空間だけを消去する"""
    db_path = tmp_path / "kv.db"
    first = SqliteKeyValueBackend(db_path=db_path, namespace="first")
    second = SqliteKeyValueBackend(db_path=db_path, namespace="second")

    first.set_item("key", "1")
    second.set_item("key", "2")
    assert first.get_item("key") == "1"
    assert second.get_item("key") == "2"

    first.clear()
    assert first.keys() == []
    assert second.keys() == ["key"]


def test_sqlite_backend_env_path(tmp_path, monkeypatch):
    db_path = tmp_path / "nested" / "env.db"
    monkeypatch.setenv("TODO_ENGINE_DB_PATH", str(db_path))

    backend = SqliteKeyValueBackend()
    assert backend.db_path == db_path
    assert db_path.exists()


def _limit_database_growth(backend, monkeypatch):
    """接続ごとにページ数の上限を現在のサイズに固定する"""
    original = backend._connect

    def _connect():
        conn = original()
        (pages,) = conn.execute("PRAGMA page_count").fetchone()
        conn.execute(f"PRAGMA max_page_count = {pages}")
        return conn

    monkeypatch.setattr(backend, "_connect", _connect)


def test_sqlite_backend_disk_full_is_quota_exceeded(tmp_path, monkeypatch):
    """SQLITE_FULL は容量超過として扱う"""
    backend = SqliteKeyValueBackend(db_path=tmp_path / "kv.db")
    _limit_database_growth(backend, monkeypatch)

    with pytest.raises(QuotaExceededError) as exc_info:
        backend.set_item("big", "x" * 100_000)
    assert exc_info.value.context["key"] == "big"

    adapter = PersistenceAdapter(backend)
    assert adapter.is_available() is True
    result = adapter.set("big", "x" * 100_000)
    assert result.success is False
    assert result.error_kind is ErrorKind.QUOTA_EXCEEDED
    assert backend.get_item("big") is None
