"""Todo Engineのエラー分類と例外定義

このモジュールは、永続化アダプタ・バインディング・ストアの全レイヤーで
共有される閉じたエラー分類（ErrorKind）と例外クラスを定義します。

Design Reference: DESIGN.md (Error taxonomy)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """エラーの大分類"""

    VALIDATION = "validation"
    STORAGE = "storage"
    LOOKUP = "lookup"
    UNKNOWN = "unknown"


class ErrorKind(str, Enum):
    """全レイヤー共通のエラー種別（閉じた集合）"""

    EMPTY_TITLE = "EMPTY_TITLE"
    TITLE_TOO_LONG = "TITLE_TOO_LONG"

    NOT_AVAILABLE = "STORAGE_NOT_AVAILABLE"
    QUOTA_EXCEEDED = "STORAGE_QUOTA_EXCEEDED"
    DATA_CORRUPTED = "STORAGE_DATA_CORRUPTED"

    NOT_FOUND = "TODO_NOT_FOUND"

    UNKNOWN = "UNKNOWN_ERROR"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES = {
    ErrorKind.EMPTY_TITLE: ErrorCategory.VALIDATION,
    ErrorKind.TITLE_TOO_LONG: ErrorCategory.VALIDATION,
    ErrorKind.NOT_AVAILABLE: ErrorCategory.STORAGE,
    ErrorKind.QUOTA_EXCEEDED: ErrorCategory.STORAGE,
    ErrorKind.DATA_CORRUPTED: ErrorCategory.STORAGE,
    ErrorKind.NOT_FOUND: ErrorCategory.LOOKUP,
    ErrorKind.UNKNOWN: ErrorCategory.UNKNOWN,
}


class TodoEngineError(Exception):
    """Todo Engine基底例外

    Args:
        message: 人が読むためのメッセージ
        kind: エラー種別
        context: 付加情報（対象ID、壊れた生テキストなど）
    """

    default_kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.context: Dict[str, Any] = dict(context or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, message={self.message!r})"


class ValidationError(TodoEngineError):
    """入力検証エラー（空タイトル・長すぎるタイトル）"""

    default_kind = ErrorKind.EMPTY_TITLE


class StorageError(TodoEngineError):
    """ストレージ関連のエラー"""

    default_kind = ErrorKind.UNKNOWN


class StorageNotAvailableError(StorageError):
    """ストレージが利用できない"""

    default_kind = ErrorKind.NOT_AVAILABLE


class QuotaExceededError(StorageError):
    """ストレージ容量超過"""

    default_kind = ErrorKind.QUOTA_EXCEEDED


class DataCorruptedError(StorageError):
    """保存データが壊れている"""

    default_kind = ErrorKind.DATA_CORRUPTED


class NotFoundError(TodoEngineError):
    """指定IDのTodoが存在しない"""

    default_kind = ErrorKind.NOT_FOUND


class ConfigurationError(TodoEngineError):
    """設定エラー"""

    pass
