"""キーバリューストアのバックエンド実装

永続化アダプタが委譲するプラットフォーム側のキーバリューストアです。
get/set/remove/clear/列挙の最小契約のみを持ちます。

- MemoryKeyValueBackend: dictベース。容量上限・無効化をシミュレートできる
- SqliteKeyValueBackend: SQLiteファイル1テーブルで永続化する

Design Reference: DESIGN.md (Persistence Adapter)
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

from ..exceptions import QuotaExceededError, StorageNotAvailableError

logger = logging.getLogger(__name__)


def _is_disk_full(exc: sqlite3.OperationalError) -> bool:
    """SQLITE_FULL（データベースまたはディスクの容量不足）かどうか"""
    if getattr(exc, "sqlite_errorname", None) == "SQLITE_FULL":
        return True
    return "database or disk is full" in str(exc)


@runtime_checkable
class KeyValueBackend(Protocol):
    """同期キーバリューストアの契約"""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def keys(self) -> List[str]: ...

    def __len__(self) -> int: ...


class MemoryKeyValueBackend:
    """メモリ上のキーバリューストア

    Args:
        quota_bytes: 書き込み上限（key+valueの文字数合計）。Noneなら無制限
        disabled: Trueの場合、全操作がStorageNotAvailableErrorを送出する
    """

    def __init__(self, quota_bytes: Optional[int] = None, disabled: bool = False) -> None:
        self._items: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.disabled = disabled

    def _check_enabled(self) -> None:
        if self.disabled:
            raise StorageNotAvailableError("ストレージが無効化されています")

    def _used_without(self, key: str) -> int:
        return sum(len(k) + len(v) for k, v in self._items.items() if k != key)

    def get_item(self, key: str) -> Optional[str]:
        self._check_enabled()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        if self.quota_bytes is not None:
            projected = self._used_without(key) + len(key) + len(value)
            if projected > self.quota_bytes:
                raise QuotaExceededError(
                    "ストレージ容量を超過しました",
                    context={"key": key, "projected": projected, "quota": self.quota_bytes},
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._items.pop(key, None)

    def clear(self) -> None:
        self._check_enabled()
        self._items.clear()

    def keys(self) -> List[str]:
        self._check_enabled()
        return list(self._items)

    def __len__(self) -> int:
        self._check_enabled()
        return len(self._items)


class SqliteKeyValueBackend:
    """SQLiteベースのキーバリューストア

    1ファイル内で namespace 列により論理的なストアを分離します。
    clear() は自分の namespace のみを消去します。
    """

    def __init__(self, db_path: Optional[Path] = None, namespace: str = "default") -> None:
        env_path = os.getenv("TODO_ENGINE_DB_PATH")
        if db_path:
            self.db_path = Path(db_path)
        elif env_path:
            self.db_path = Path(env_path)
        else:
            self.db_path = Path("data") / "todo_engine.db"
        self.namespace = namespace
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_items (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )
            conn.commit()
        logger.debug("SqliteKeyValueBackend ready db=%s namespace=%s", self.db_path, self.namespace)

    def get_item(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_items WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            ).fetchone()
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_items (namespace, key, value) VALUES (?, ?, ?)
                    ON CONFLICT(namespace, key) DO UPDATE SET value = excluded.value
                    """,
                    (self.namespace, key, value),
                )
                conn.commit()
        except sqlite3.OperationalError as exc:
            if not _is_disk_full(exc):
                raise
            raise QuotaExceededError(
                "データベースの容量が不足しています",
                context={"key": key, "size": len(key) + len(value), "original_error": str(exc)},
            ) from exc

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM kv_items WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            conn.commit()

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_items WHERE namespace = ?", (self.namespace,))
            conn.commit()

    def keys(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_items WHERE namespace = ? ORDER BY key",
                (self.namespace,),
            ).fetchall()
        return [row["key"] for row in rows]

    def __len__(self) -> int:
        with self._connect() as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM kv_items WHERE namespace = ?", (self.namespace,)
            ).fetchone()
        return int(count)
