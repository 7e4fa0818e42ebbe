"""永続化アダプタとキーバリューストアのバックエンド"""

from .adapter import DEFAULT_QUOTA_BYTES, PersistenceAdapter
from .backends import KeyValueBackend, MemoryKeyValueBackend, SqliteKeyValueBackend
from .results import OperationResult

__all__ = [
    "DEFAULT_QUOTA_BYTES",
    "PersistenceAdapter",
    "KeyValueBackend",
    "MemoryKeyValueBackend",
    "SqliteKeyValueBackend",
    "OperationResult",
]
