"""Todo Engine

Todoリスト用のリアクティブな永続化エンジンです。メモリ上のTodoコレクションを
キーバリューストアへミラーし、変更のたびに導出ビュー（フィルター・件数・完了率）を
再計算します。

Example:
    >>> from todo_engine import create_store
    >>> store = create_store()
    >>> store.load_from_storage()
    >>> store.add_todo("  牛乳を買う  ").title
    '牛乳を買う'
    >>> store.close()
"""

from typing import Optional

from .binding import ManualScheduler, Scheduler, ThreadingScheduler
from .config import Config, StorageConfig
from .exceptions import (
    ConfigurationError,
    DataCorruptedError,
    ErrorCategory,
    ErrorKind,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    StorageNotAvailableError,
    TodoEngineError,
    ValidationError,
)
from .storage import MemoryKeyValueBackend, PersistenceAdapter, SqliteKeyValueBackend
from .todo import FilterType, Task, TodoDataManager, TodoStore

__all__ = [
    "Config",
    "StorageConfig",
    "ConfigurationError",
    "DataCorruptedError",
    "ErrorCategory",
    "ErrorKind",
    "NotFoundError",
    "QuotaExceededError",
    "StorageError",
    "StorageNotAvailableError",
    "TodoEngineError",
    "ValidationError",
    "ManualScheduler",
    "Scheduler",
    "ThreadingScheduler",
    "MemoryKeyValueBackend",
    "PersistenceAdapter",
    "SqliteKeyValueBackend",
    "FilterType",
    "Task",
    "TodoDataManager",
    "TodoStore",
    "create_store",
]


def create_store(
    config: Optional[Config] = None, scheduler: Optional[Scheduler] = None
) -> TodoStore:
    """
    設定からTodoStoreを組み立てるファクトリー関数

    ストアはプロセス内で1つだけ生成し、利用者へ参照として渡すこと。

    Args:
        config: 設定（省略時は既定値）
        scheduler: デバウンスタイマーの生成元

    Returns:
        未ロードのTodoStore（load_from_storage()を呼んで初期化する）

    Raises:
        ConfigurationError: 不明なバックエンドが指定された場合
    """
    config = config or Config(storage=StorageConfig(backend="memory"))
    storage = config.storage

    if storage.backend == "memory":
        backend = MemoryKeyValueBackend()
    elif storage.backend == "sqlite":
        backend = SqliteKeyValueBackend(db_path=storage.db_path, namespace=storage.namespace)
    else:
        raise ConfigurationError(f"不明なストレージバックエンドです: {storage.backend}")

    adapter = PersistenceAdapter(backend, quota_bytes=storage.quota_bytes)
    return TodoStore(
        adapter,
        keys=storage.keys,
        delays=config.autosave,
        scheduler=scheduler,
    )
