"""Todoコレクションストアとデータモデル"""

from .models import (
    MAX_TITLE_LENGTH,
    AppSettings,
    ExportBlob,
    FilterType,
    StateSnapshot,
    Task,
    TodoCounts,
    TodoStats,
    generate_id,
)
from .store import SaveDelays, StorageKeys, TodoStore
from .transfer import TodoDataManager

__all__ = [
    "MAX_TITLE_LENGTH",
    "AppSettings",
    "ExportBlob",
    "FilterType",
    "StateSnapshot",
    "Task",
    "TodoCounts",
    "TodoStats",
    "generate_id",
    "SaveDelays",
    "StorageKeys",
    "TodoStore",
    "TodoDataManager",
]
