"""永続化操作の結果エンベロープ

すべての永続化呼び出しは例外を送出せず、OperationResultを返します。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Literal, Optional, TypeVar

from ..exceptions import ErrorKind, TodoEngineError

T = TypeVar("T")

Operation = Literal["get", "set", "remove", "clear"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class OperationResult(Generic[T]):
    """永続化操作の結果

    success が True の場合は data、False の場合は error / error_kind を参照します。
    """

    success: bool
    key: str
    operation: Operation
    data: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    @classmethod
    def ok(cls, key: str, operation: Operation, data: Any = None) -> "OperationResult[Any]":
        return cls(success=True, key=key, operation=operation, data=data)

    @classmethod
    def fail(
        cls,
        key: str,
        operation: Operation,
        error: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        context: Optional[Dict[str, Any]] = None,
    ) -> "OperationResult[Any]":
        return cls(
            success=False,
            key=key,
            operation=operation,
            error=error,
            error_kind=kind,
            context=dict(context or {}),
        )

    @classmethod
    def from_exception(
        cls, key: str, operation: Operation, exc: TodoEngineError
    ) -> "OperationResult[Any]":
        return cls.fail(key, operation, exc.message, exc.kind, exc.context)
