"""型付き永続バインディング

1つの (key, 型付きの値) の組をメモリと永続化アダプタの間でミラーします。
手動の load/save/remove/reset と、デバウンス付きの自動保存を提供します。

自動保存のパイプライン:
    値の変更 → mark_dirty() → デバウンスタイマー再設定 → save()

ネストした値（リストの要素など）をその場で書き換えた場合は、
呼び出し側が mark_dirty() を呼ぶ必要があります。

Design Reference: DESIGN.md (Typed Durable Binding)
関連クラス:
  - storage.adapter.PersistenceAdapter: 読み書きの委譲先
  - binding.scheduler.ThreadingScheduler / ManualScheduler: デバウンスタイマー
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter

from ..exceptions import ErrorKind
from ..storage.adapter import PersistenceAdapter
from ..storage.results import OperationResult
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

UNSET: Any = object()


@dataclass
class Serializer:
    """独自のシリアライザ（read: 保存値→値, write: 値→保存値）"""

    read: Callable[[Any], Any]
    write: Callable[[Any], Any]


@dataclass
class BindingOptions:
    """DurableBindingの設定"""

    immediate: bool = True
    auto_save: bool = True
    save_delay: float = 0.3  # 秒
    serializer: Optional[Serializer] = None
    on_error: Optional[Callable[[str], None]] = None


class DurableBinding(Generic[T]):
    """(key, 値) を永続化アダプタへミラーするバインディング

    Args:
        adapter: 永続化アダプタ
        key: 保存キー
        default: 既定値（読み込み失敗時・reset時に復元される）
        value_type: pydanticで検証・変換する型（例: list[Task]）
        options: 自動保存などの設定
        scheduler: デバウンスタイマーの生成元
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        key: str,
        default: T,
        *,
        value_type: Any = None,
        options: Optional[BindingOptions] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.adapter = adapter
        self.key = key
        self.options = options or BindingOptions()
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()
        self.lock = threading.RLock()

        self._default = copy.deepcopy(default)
        self._value: T = copy.deepcopy(default)
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        self._auto_save = self.options.auto_save

        self.loading = False
        self.error: Optional[str] = None

        if self.options.serializer is not None:
            self._encode: Callable[[Any], Any] = self.options.serializer.write
            self._decode: Callable[[Any], Any] = self.options.serializer.read
        elif value_type is not None:
            type_adapter = TypeAdapter(value_type)
            self._encode = lambda value: type_adapter.dump_python(value, mode="json", by_alias=True)
            self._decode = type_adapter.validate_python
        else:
            self._encode = lambda value: value
            self._decode = lambda raw: raw

        if self.options.immediate:
            self.load()

    # ---- 値 ----

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        with self.lock:
            self._value = new_value
        self.mark_dirty()

    @property
    def default(self) -> T:
        """既定値のコピー"""
        return copy.deepcopy(self._default)

    @property
    def pending(self) -> bool:
        """デバウンス保存が予約されているかどうか"""
        return self._timer is not None

    @property
    def auto_save_enabled(self) -> bool:
        return self._auto_save

    # ---- 自動保存 ----

    def enable_auto_save(self) -> None:
        self._auto_save = True

    def disable_auto_save(self) -> None:
        with self.lock:
            self._auto_save = False
            self._cancel_timer()

    def mark_dirty(self) -> None:
        """値が変わったことを通知し、デバウンス保存を(再)予約する"""
        if not self._auto_save:
            return
        with self.lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            self._timer = self.scheduler.call_later(
                self.options.save_delay, lambda: self._fire(generation)
            )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self.lock:
            # 置き換え・キャンセル済みのタイマーは何もしない
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            self.save()

    def flush(self) -> Optional[OperationResult[T]]:
        """予約中の保存があれば即座に実行する"""
        with self.lock:
            if self._timer is None:
                return None
            return self.save()

    def close(self) -> None:
        """保留中の保存を書き出し、自動保存を停止する"""
        self.flush()
        self.disable_auto_save()

    # ---- エラー処理 ----

    def _handle_error(self, message: str) -> None:
        self.error = message
        logger.error("[DurableBinding] key=%s %s", self.key, message)
        if self.options.on_error:
            self.options.on_error(message)

    # ---- 永続化操作 ----

    def _read(self) -> OperationResult[T]:
        """ストアから読み出してデコードした結果を返す（状態は変更しない）"""
        result = self.adapter.get(self.key, UNSET)
        if not result.success:
            return result
        if result.data is UNSET:
            return OperationResult.ok(self.key, "get", self.default)
        try:
            decoded = self._decode(result.data)
        except Exception as exc:
            return OperationResult.fail(
                self.key,
                "get",
                f"デシリアライズに失敗しました: {exc}",
                ErrorKind.DATA_CORRUPTED,
                {"key": self.key, "raw": result.data},
            )
        return OperationResult.ok(self.key, "get", decoded)

    def peek(self) -> OperationResult[T]:
        """読み取り専用のload。value / error は変更しない"""
        return self._read()

    def load(self) -> OperationResult[T]:
        """ストアから値を読み込む。失敗時は既定値にフォールバックする"""
        with self.lock:
            self.loading = True
            self.error = None
            try:
                result = self._read()
                if result.success:
                    self._value = result.data  # type: ignore[assignment]
                else:
                    self._handle_error(result.error or "データの読み込みに失敗しました")
                    self._value = self.default
                return result
            finally:
                self.loading = False

    def save(self, new_value: Any = UNSET) -> OperationResult[T]:
        """値をストアへ保存する

        Args:
            new_value: 指定した場合はこの値を保存し、成功時にvalueへ反映する
        """
        with self.lock:
            self._cancel_timer()
            value_to_save = self._value if new_value is UNSET else new_value
            self.loading = True
            self.error = None
            try:
                try:
                    payload = self._encode(value_to_save)
                except Exception as exc:
                    message = f"シリアライズに失敗しました: {exc}"
                    self._handle_error(message)
                    return OperationResult.fail(self.key, "set", message, ErrorKind.UNKNOWN)

                result = self.adapter.set(self.key, payload)
                if result.success:
                    result.data = value_to_save
                    if new_value is not UNSET:
                        self._value = new_value
                    logger.debug("[DurableBinding] saved key=%s", self.key)
                else:
                    self._handle_error(result.error or "データの保存に失敗しました")
                return result
            finally:
                self.loading = False

    def remove(self) -> OperationResult[None]:
        """保存済みのキーを削除し、値を既定値へ戻す"""
        with self.lock:
            self._cancel_timer()
            self.loading = True
            self.error = None
            try:
                result = self.adapter.remove(self.key)
                if result.success:
                    self._value = self.default
                else:
                    self._handle_error(result.error or "データの削除に失敗しました")
                return result
            finally:
                self.loading = False

    def reset(self) -> None:
        """値を既定値に戻す（ストアには触れない）"""
        with self.lock:
            self._cancel_timer()
            self._value = self.default
            self.error = None


class ListBinding(DurableBinding[List[T]]):
    """リスト値向けのバインディング"""

    def append(self, item: T) -> None:
        with self.lock:
            self._value.append(item)
        self.mark_dirty()

    def extend(self, items: List[T]) -> None:
        with self.lock:
            self._value.extend(items)
        self.mark_dirty()

    def pop(self, index: int = -1) -> T:
        with self.lock:
            item = self._value.pop(index)
        self.mark_dirty()
        return item

    def clear(self) -> None:
        self.value = []


class ObjectBinding(DurableBinding[M]):
    """pydanticモデル値向けのバインディング"""

    def update(self, **changes: Any) -> M:
        """フィールドをマージ更新する（指定されていないフィールドは保持）"""
        with self.lock:
            current = self._value
            merged = {**current.model_dump(), **changes}
            self._value = type(current).model_validate(merged)
        self.mark_dirty()
        return self._value

    def get(self, name: str) -> Any:
        return getattr(self._value, name)

    def set(self, name: str, value: Any) -> None:
        with self.lock:
            setattr(self._value, name, value)
        self.mark_dirty()
