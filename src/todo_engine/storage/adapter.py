"""永続化アダプタ

プラットフォームのキーバリューストアを薄くラップし、値をJSONテキストとして
同期的に読み書きします。すべての操作は例外を外に出さず、
失敗は ErrorKind で分類された OperationResult として返されます。

Design Reference: DESIGN.md (Persistence Adapter)
関連クラス:
  - backends.MemoryKeyValueBackend / SqliteKeyValueBackend: 委譲先のストア
  - binding.durable.DurableBinding: このアダプタの利用者
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import (
    DataCorruptedError,
    ErrorKind,
    QuotaExceededError,
    StorageNotAvailableError,
    TodoEngineError,
)
from .backends import KeyValueBackend
from .results import Operation, OperationResult

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
PROBE_KEY = "__storage_test__"
PROBE_VALUE = "test"


def serialize_value(value: Any) -> str:
    """値をJSONテキストへ変換"""
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise TodoEngineError(
            "データのシリアライズに失敗しました",
            ErrorKind.UNKNOWN,
            {"original_error": str(exc)},
        ) from exc


def deserialize_value(text: str) -> Any:
    """JSONテキストを値へ変換（壊れている場合はDataCorruptedError）"""
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DataCorruptedError(
            "データのデシリアライズに失敗しました。データが破損している可能性があります",
            context={"raw": text, "original_error": str(exc)},
        ) from exc


class PersistenceAdapter:
    """キーバリューストアに対する同期get/set/remove/clear

    Args:
        backend: 委譲先のキーバリューストア
        quota_bytes: 使用量レポートで仮定する容量上限（実際の上限を問い合わせるわけではない）
    """

    def __init__(self, backend: KeyValueBackend, quota_bytes: int = DEFAULT_QUOTA_BYTES) -> None:
        self.backend = backend
        self.quota_bytes = quota_bytes

    def is_available(self) -> bool:
        """書き込み・読み出し・削除のプローブでストアの利用可否を判定"""
        try:
            self.backend.set_item(PROBE_KEY, PROBE_VALUE)
            retrieved = self.backend.get_item(PROBE_KEY)
            self.backend.remove_item(PROBE_KEY)
            return retrieved == PROBE_VALUE
        except Exception:
            return False

    def _unavailable(self, key: str, operation: Operation) -> OperationResult[Any]:
        return OperationResult.from_exception(
            key,
            operation,
            StorageNotAvailableError("ストレージが利用できません", context={"key": key}),
        )

    def get(self, key: str, default: Any = None) -> OperationResult[Any]:
        """キーの値を取得（存在しなければdefault）"""
        if not self.is_available():
            return self._unavailable(key, "get")

        try:
            item = self.backend.get_item(key)
            if item is None:
                return OperationResult.ok(key, "get", default)
            return OperationResult.ok(key, "get", deserialize_value(item))
        except TodoEngineError as exc:
            logger.error("Storage get failed key=%s: %s", key, exc.message)
            return OperationResult.from_exception(key, "get", exc)
        except Exception as exc:
            logger.exception("Unexpected storage get failure key=%s", key)
            return OperationResult.fail(
                key, "get", f"データ取得中に不明なエラーが発生しました: {exc}"
            )

    def set(self, key: str, value: Any) -> OperationResult[Any]:
        """キーに値を保存し、保存した値をそのまま返す"""
        if not self.is_available():
            return self._unavailable(key, "set")

        try:
            text = serialize_value(value)
            self.backend.set_item(key, text)
            return OperationResult.ok(key, "set", value)
        except QuotaExceededError as exc:
            logger.error("Storage quota exceeded key=%s", key)
            return OperationResult.fail(
                key,
                "set",
                "ストレージ容量が不足しているため保存できません",
                ErrorKind.QUOTA_EXCEEDED,
                {"key": key, **exc.context},
            )
        except TodoEngineError as exc:
            logger.error("Storage set failed key=%s: %s", key, exc.message)
            return OperationResult.fail(key, "set", exc.message, exc.kind, {"key": key, **exc.context})
        except Exception as exc:
            logger.exception("Unexpected storage set failure key=%s", key)
            return OperationResult.fail(
                key, "set", f"データ保存中に不明なエラーが発生しました: {exc}"
            )

    def remove(self, key: str) -> OperationResult[None]:
        """キーを削除"""
        if not self.is_available():
            return self._unavailable(key, "remove")

        try:
            self.backend.remove_item(key)
            return OperationResult.ok(key, "remove", None)
        except TodoEngineError as exc:
            return OperationResult.from_exception(key, "remove", exc)
        except Exception as exc:
            logger.exception("Unexpected storage remove failure key=%s", key)
            return OperationResult.fail(
                key, "remove", f"データ削除中に不明なエラーが発生しました: {exc}"
            )

    def clear(self) -> OperationResult[None]:
        """名前空間全体を消去する

        注意: 保存済みのすべてのキーが削除されます。
        """
        if not self.is_available():
            return self._unavailable("*", "clear")

        try:
            self.backend.clear()
            logger.warning("Storage namespace cleared")
            return OperationResult.ok("*", "clear", None)
        except TodoEngineError as exc:
            return OperationResult.from_exception("*", "clear", exc)
        except Exception as exc:
            logger.exception("Unexpected storage clear failure")
            return OperationResult.fail(
                "*", "clear", f"ストレージ消去中に不明なエラーが発生しました: {exc}"
            )

    def usage(self, keys: Optional[Iterable[str]] = None) -> Dict[str, float]:
        """ストレージ使用状況を返す

        Args:
            keys: 集計対象のキー（省略時はストア内の全キー）

        Returns:
            used_bytes / total_bytes / available_bytes / percentage
        """
        empty = {"used_bytes": 0, "total_bytes": 0, "available_bytes": 0, "percentage": 0.0}
        if not self.is_available():
            return empty

        try:
            target = list(keys) if keys is not None else self.backend.keys()
            used = 0
            for key in target:
                value = self.backend.get_item(key)
                if value:
                    used += len(key) + len(value)
        except Exception:
            logger.exception("Failed to compute storage usage")
            return empty

        total = self.quota_bytes
        percentage = (used / total) * 100 if total else 0.0
        return {
            "used_bytes": used,
            "total_bytes": total,
            "available_bytes": total - used,
            "percentage": round(percentage, 2),
        }

    def batch(self, operations: Iterable[Dict[str, Any]]) -> List[OperationResult[Any]]:
        """複数の操作を順番に実行し、操作ごとの結果を返す"""
        results: List[OperationResult[Any]] = []
        for op in operations:
            op_type = op.get("type")
            key = op.get("key", "")
            if op_type == "get":
                results.append(self.get(key, op.get("default")))
            elif op_type == "set":
                results.append(self.set(key, op.get("value")))
            elif op_type == "remove":
                results.append(self.remove(key))
            else:
                results.append(
                    OperationResult.fail(
                        key, "get", f"未対応の操作タイプです: {op_type}", context={"type": op_type}
                    )
                )
        return results
