"""Todoコレクションストア

Todoリスト・フィルター・状態フラグを保持し、検証付きのCRUD/一括操作と
自動再計算される導出ビューを提供します。永続化は3つのDurableBinding
（entities / filter / settings）が担当します。

同じ3つのキーに対してプロセス内でストアを2つ生成してはいけません
（ロックでは強制しない前提条件）。

失敗の扱い:
  - 検証エラー（空・長すぎるタイトル）: error を設定して ValidationError を送出
  - 参照エラー（存在しないID）: error を設定して False を返す

Design Reference: DESIGN.md (Entity Collection Store)
関連クラス:
  - binding.durable.DurableBinding: 永続化
  - todo.transfer.TodoDataManager: エクスポート/インポート/ヘルスチェック
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..binding import BindingOptions, DurableBinding, ListBinding, ObjectBinding, Scheduler, Serializer
from ..exceptions import ErrorKind, NotFoundError, ValidationError
from ..storage.adapter import PersistenceAdapter
from .models import (
    MAX_TITLE_LENGTH,
    AppSettings,
    FilterType,
    StateSnapshot,
    Task,
    TodoCounts,
    TodoStats,
    generate_id,
    utc_now,
)
from .views import compute_stats, completion_rate, count_entities, filter_entities

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


@dataclass
class StorageKeys:
    """予約済みの永続化キー"""

    entities: str = "todo-list:entities"
    filter: str = "todo-list:filter"
    settings: str = "todo-list:settings"

    def as_list(self) -> List[str]:
        return [self.entities, self.filter, self.settings]


@dataclass
class SaveDelays:
    """バインディングごとのデバウンス遅延（秒）"""

    entities: float = 0.5
    filter: float = 0.1  # フィルターの反映は即時に感じられる必要がある
    settings: float = 1.0


def _read_filter(raw: Any) -> FilterType:
    try:
        return FilterType(raw)
    except ValueError:
        logger.warning("Stored filter %r is invalid; falling back to 'all'", raw)
        return FilterType.ALL


def _write_filter(value: Union[FilterType, str]) -> str:
    return FilterType(value).value


class TodoStore:
    """Todoコレクションストア

    Args:
        adapter: 永続化アダプタ
        keys: 永続化キー
        delays: デバウンス遅延
        scheduler: デバウンスタイマーの生成元（3バインディングで共有）
        clock: 現在時刻を返す関数
        id_factory: 一意IDを生成する関数
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        *,
        keys: Optional[StorageKeys] = None,
        delays: Optional[SaveDelays] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], Any] = utc_now,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self.adapter = adapter
        self.keys = keys or StorageKeys()
        self.delays = delays or SaveDelays()
        self._clock = clock
        self._id_factory = id_factory
        self._listeners: List[Listener] = []

        # 自動保存は初期化完了後に有効化する（起動中の既定値で保存済みデータを上書きしない）
        self._entities: ListBinding[Task] = ListBinding(
            adapter,
            self.keys.entities,
            [],
            value_type=List[Task],
            options=BindingOptions(
                immediate=False, auto_save=False, save_delay=self.delays.entities
            ),
            scheduler=scheduler,
        )
        self._filter: DurableBinding[FilterType] = DurableBinding(
            adapter,
            self.keys.filter,
            FilterType.ALL,
            options=BindingOptions(
                immediate=False,
                auto_save=False,
                save_delay=self.delays.filter,
                serializer=Serializer(read=_read_filter, write=_write_filter),
            ),
            scheduler=scheduler,
        )
        self._settings: ObjectBinding[AppSettings] = ObjectBinding(
            adapter,
            self.keys.settings,
            AppSettings(),
            value_type=AppSettings,
            options=BindingOptions(
                immediate=False, auto_save=False, save_delay=self.delays.settings
            ),
            scheduler=scheduler,
        )
        self._bindings: Dict[str, DurableBinding[Any]] = {
            "entities": self._entities,
            "filter": self._filter,
            "settings": self._settings,
        }

        self.loading = False
        self.error: Optional[str] = None
        self.initialized = False

    # ---- 状態 ----

    @property
    def entities(self) -> List[Task]:
        return self._entities.value

    @property
    def filter(self) -> FilterType:
        return self._filter.value

    @property
    def settings(self) -> AppSettings:
        return self._settings.value

    def binding(self, name: str) -> DurableBinding[Any]:
        """名前（entities / filter / settings）でバインディングを取得"""
        return self._bindings[name]

    # ---- 導出ビュー ----

    @property
    def filtered_entities(self) -> List[Task]:
        return filter_entities(self.entities, self.filter)

    @property
    def counts(self) -> TodoCounts:
        return count_entities(self.entities)

    @property
    def completion_rate(self) -> int:
        return completion_rate(self.counts)

    @property
    def stats(self) -> TodoStats:
        return compute_stats(self.entities)

    @property
    def has_entities(self) -> bool:
        return len(self.entities) > 0

    @property
    def all_completed(self) -> bool:
        entities = self.entities
        return len(entities) > 0 and all(task.completed for task in entities)

    @property
    def has_completed(self) -> bool:
        return any(task.completed for task in self.entities)

    @property
    def is_empty(self) -> bool:
        return self.initialized and not self.loading and not self.has_entities

    def get_todo_by_id(self, todo_id: str) -> Optional[Task]:
        for task in self.entities:
            if task.id == todo_id:
                return task
        return None

    def require_todo(self, todo_id: str) -> Task:
        """IDでTodoを取得する

        Raises:
            NotFoundError: 指定IDのTodoが存在しない場合
        """
        task = self.get_todo_by_id(todo_id)
        if task is None:
            raise NotFoundError(f"ID {todo_id} のTodoが見つかりません", context={"id": todo_id})
        return task

    # ---- 変更通知 ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """変更通知を購読する。戻り値を呼ぶと購読解除"""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self, name: str) -> None:
        for listener in list(self._listeners):
            listener(name)

    def mark_dirty(self, name: str) -> None:
        """変更を通知し、該当バインディングのデバウンス保存を予約する"""
        self._bindings[name].mark_dirty()
        self.notify(name)

    # ---- エラー/ローディング ----

    def set_error(self, message: Optional[str]) -> None:
        self.error = message
        if message:
            logger.error("[TodoStore] %s", message)

    def clear_error(self) -> None:
        self.error = None

    def set_loading(self, flag: bool) -> None:
        self.loading = flag

    # ---- 内部ヘルパー ----

    def _validate_title(self, title: Any) -> str:
        trimmed = title.strip() if isinstance(title, str) else ""
        if not trimmed:
            message = "Todoのタイトルは必須です"
            self.set_error(message)
            raise ValidationError(message, ErrorKind.EMPTY_TITLE, {"title": title})
        if len(trimmed) > MAX_TITLE_LENGTH:
            message = f"Todoのタイトルは{MAX_TITLE_LENGTH}文字以内で入力してください"
            self.set_error(message)
            raise ValidationError(
                message, ErrorKind.TITLE_TOO_LONG, {"title": title, "length": len(trimmed)}
            )
        return trimmed

    def _new_id(self, taken: set[str]) -> str:
        new_id = self._id_factory()
        while new_id in taken:
            new_id = self._id_factory()
        taken.add(new_id)
        return new_id

    def _not_found(self, todo_id: str) -> bool:
        self.set_error(f"ID {todo_id} のTodoが見つかりません")
        return False

    def _touch_last_access(self) -> None:
        self._settings.update(last_access_time=self._clock().isoformat())
        self.notify("settings")

    # ---- CRUD ----

    def add_todo(self, title: str) -> Task:
        """Todoを追加して返す

        Raises:
            ValidationError: タイトルが空、または長すぎる場合
        """
        normalized = self._validate_title(title)
        self.clear_error()

        with self._entities.lock:
            now = self._clock()
            task = Task(
                id=self._new_id({t.id for t in self.entities}),
                title=normalized,
                completed=False,
                created_at=now,
                updated_at=now,
            )
            self._entities.append(task)
        self.notify("entities")
        self._touch_last_access()
        logger.debug("Todo added id=%s", task.id)
        return task

    def toggle_todo(self, todo_id: str) -> bool:
        """完了状態を反転する。存在しない場合はFalse"""
        with self._entities.lock:
            task = self.get_todo_by_id(todo_id)
            if task is None:
                return self._not_found(todo_id)
            self.clear_error()
            task.completed = not task.completed
            task.updated_at = self._clock()
        self.mark_dirty("entities")
        logger.debug("Todo toggled id=%s completed=%s", todo_id, task.completed)
        return True

    def update_todo(self, todo_id: str, title: str) -> bool:
        """タイトルを更新する

        Raises:
            ValidationError: タイトルが空、または長すぎる場合
        """
        normalized = self._validate_title(title)

        with self._entities.lock:
            task = self.get_todo_by_id(todo_id)
            if task is None:
                return self._not_found(todo_id)
            self.clear_error()
            task.title = normalized
            task.updated_at = self._clock()
        self.mark_dirty("entities")
        logger.debug("Todo updated id=%s", todo_id)
        return True

    def delete_todo(self, todo_id: str) -> bool:
        with self._entities.lock:
            entities = self.entities
            index = next((i for i, t in enumerate(entities) if t.id == todo_id), None)
            if index is None:
                return self._not_found(todo_id)
            self.clear_error()
            del entities[index]
        self.mark_dirty("entities")
        logger.debug("Todo deleted id=%s", todo_id)
        return True

    def toggle_all_todos(self, completed: bool) -> int:
        """全Todoを指定の完了状態に揃える

        既に一致しているTodoには触れない（不要な保存を避ける）。

        Returns:
            状態を変更した件数
        """
        changed = 0
        with self._entities.lock:
            now = self._clock()
            for task in self.entities:
                if task.completed != completed:
                    task.completed = completed
                    task.updated_at = now
                    changed += 1
        self.clear_error()
        if changed:
            self.mark_dirty("entities")
        logger.debug("Toggle all completed=%s changed=%s", completed, changed)
        return changed

    def clear_completed(self) -> int:
        """完了済みTodoを削除し、削除件数を返す"""
        with self._entities.lock:
            entities = self.entities
            remaining = [task for task in entities if not task.completed]
            removed = len(entities) - len(remaining)
            if removed:
                entities[:] = remaining
        self.clear_error()
        if removed:
            self.mark_dirty("entities")
        logger.debug("Cleared %s completed todos", removed)
        return removed

    def add_multiple_todos(self, titles: Iterable[str]) -> List[Task]:
        """複数のTodoをまとめて追加する

        空白のみ・長すぎるタイトルは除外する。有効なものが無ければ[]を返しerrorを設定する。
        """
        valid: List[str] = []
        for title in titles:
            trimmed = title.strip() if isinstance(title, str) else ""
            if not trimmed:
                continue
            if len(trimmed) > MAX_TITLE_LENGTH:
                logger.warning("Skipping title longer than %s chars", MAX_TITLE_LENGTH)
                continue
            valid.append(trimmed)

        if not valid:
            self.set_error("有効なTodoのタイトルがありません")
            return []

        self.clear_error()
        with self._entities.lock:
            now = self._clock()
            taken = {t.id for t in self.entities}
            new_tasks = [
                Task(
                    id=self._new_id(taken),
                    title=title,
                    completed=False,
                    created_at=now,
                    updated_at=now,
                )
                for title in valid
            ]
            self._entities.extend(new_tasks)
        self.notify("entities")
        logger.debug("Added %s todos", len(new_tasks))
        return new_tasks

    def set_todos(self, tasks: List[Task]) -> None:
        """Todoリストを丸ごと置き換える"""
        with self._entities.lock:
            self.entities[:] = list(tasks)
        self.clear_error()
        self.mark_dirty("entities")

    def clear_all_todos(self) -> None:
        self._entities.clear()
        self.notify("entities")
        self.clear_error()

    def set_filter(self, new_filter: Union[FilterType, str]) -> None:
        """フィルターを切り替える（不正な値はValueError）"""
        value = FilterType(new_filter)
        if value is not self.filter:
            self._filter.value = value
            self.notify("filter")
        self.clear_error()

    # ---- 設定 ----

    def update_settings(self, **changes: Any) -> AppSettings:
        """設定をマージ更新する（指定されていないフィールドは保持）"""
        changes.setdefault("last_access_time", self._clock().isoformat())
        settings = self._settings.update(**changes)
        self.notify("settings")
        return settings

    def replace_settings(self, settings: AppSettings) -> None:
        self._settings.value = settings
        self.notify("settings")

    # ---- 永続化 ----

    def _dedupe_loaded(self) -> None:
        seen: set[str] = set()
        unique: List[Task] = []
        for task in self.entities:
            if task.id in seen:
                logger.warning("Dropping duplicate todo id=%s from storage", task.id)
                continue
            seen.add(task.id)
            unique.append(task)
        if len(unique) != len(self.entities):
            self.entities[:] = unique

    def load_from_storage(self) -> None:
        """3つのバインディングを個別に読み込む

        1つの失敗は他の成功した読み込みを破棄しない。完了後は必ず initialized=True。
        """
        self.set_loading(True)
        self.clear_error()
        errors: List[str] = []
        try:
            result = self._entities.load()
            if result.success:
                self._dedupe_loaded()
            else:
                errors.append(f"Todoリストの読み込みに失敗しました: {result.error}")

            result = self._filter.load()
            if not result.success:
                errors.append(f"フィルター状態の読み込みに失敗しました: {result.error}")

            result = self._settings.load()
            if not result.success:
                errors.append(f"設定の読み込みに失敗しました: {result.error}")

            if errors:
                self.set_error("; ".join(errors))
            logger.info(
                "TodoStore loaded todos=%s filter=%s errors=%s",
                len(self.entities),
                self.filter.value,
                len(errors),
            )
        finally:
            self.initialized = True
            for binding in self._bindings.values():
                binding.enable_auto_save()
            self.set_loading(False)

    def reload(self) -> None:
        """保留中の保存を書き出してから再読み込み"""
        self.flush()
        self.load_from_storage()

    def save_all(self) -> Dict[str, Any]:
        """3つのバインディングを即座に保存する"""
        errors: List[str] = []
        for name, binding in self._bindings.items():
            result = binding.save()
            if not result.success:
                errors.append(f"{name}の保存に失敗しました: {result.error}")
        if errors:
            self.set_error("; ".join(errors))
        return {"success": not errors, "errors": errors}

    def flush(self) -> None:
        for binding in self._bindings.values():
            binding.flush()

    def close(self) -> None:
        for binding in self._bindings.values():
            binding.close()

    # ---- スナップショット ----

    def get_state_snapshot(self) -> StateSnapshot:
        """ライブ状態から独立した状態のコピー"""
        return StateSnapshot(
            entities=[task.model_copy(deep=True) for task in self.entities],
            filter=self.filter,
            loading=self.loading,
            error=self.error,
        )

    def storage_info(self) -> Dict[str, Any]:
        payload = {
            "entities": [task.model_dump(mode="json", by_alias=True) for task in self.entities],
            "filter": self.filter.value,
            "settings": self.settings.model_dump(mode="json", by_alias=True),
        }
        return {
            "todos_count": len(self.entities),
            "storage_used": len(json.dumps(payload, ensure_ascii=False)),
            "last_saved": self.settings.last_access_time,
        }
