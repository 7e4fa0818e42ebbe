"""エクスポート/インポート/ヘルスチェック

ストア全体の状態をポータブルなJSONテキストへ変換し、
ストレージの整合性と使用量を報告します。

Design Reference: DESIGN.md (Import/Export/Health)
関連クラス:
  - todo.store.TodoStore: 対象のストア
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import (
    FORMAT_VERSION,
    MAX_TITLE_LENGTH,
    AppSettings,
    ExportBlob,
    FilterType,
    Task,
    utc_now,
)
from .store import TodoStore

logger = logging.getLogger(__name__)


class TodoDataManager:
    """ストア状態のエクスポート・インポート・ヘルスチェック"""

    def __init__(self, store: TodoStore) -> None:
        self.store = store
        self.adapter = store.adapter

    def export_state(self) -> str:
        """全状態を1つのJSONテキストにシリアライズする"""
        blob = ExportBlob(
            entities=list(self.store.entities),
            filter=self.store.filter.value,
            settings=self.store.settings.model_dump(mode="json", by_alias=True),
            exported_at=utc_now(),
            format_version=FORMAT_VERSION,
        )
        return blob.model_dump_json(by_alias=True, indent=2)

    @staticmethod
    def _validate_entities(raw_entities: List[Any]) -> Optional[List[Task]]:
        tasks: List[Task] = []
        seen: set[str] = set()
        for item in raw_entities:
            if not isinstance(item, dict):
                return None
            todo_id = item.get("id")
            if not isinstance(todo_id, str) or not todo_id:
                return None
            title = item.get("title")
            if not isinstance(title, str):
                return None
            title = title.strip()
            if not title or len(title) > MAX_TITLE_LENGTH:
                return None
            if not isinstance(item.get("completed"), bool):
                return None
            if todo_id in seen:
                return None
            seen.add(todo_id)
            try:
                tasks.append(Task.model_validate({**item, "title": title}))
            except PydanticValidationError:
                return None
        return tasks

    def import_state(self, text: str) -> bool:
        """JSONテキストから状態を復元する（全か無か）

        検証に1つでも失敗した場合はライブ状態に一切触れずFalseを返す。
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as exc:
            logger.error("Import failed: invalid JSON (%s)", exc)
            return False

        if not isinstance(data, dict) or not isinstance(data.get("entities"), list):
            logger.error("Import failed: 'entities' must be a list")
            return False

        tasks = self._validate_entities(data["entities"])
        if tasks is None:
            logger.error("Import failed: invalid todo entry")
            return False

        new_filter: Optional[FilterType] = None
        raw_filter = data.get("filter")
        if isinstance(raw_filter, str) and raw_filter in {f.value for f in FilterType}:
            new_filter = FilterType(raw_filter)

        new_settings: Optional[AppSettings] = None
        if isinstance(data.get("settings"), dict):
            current = self.store.settings.model_dump(by_alias=True)
            try:
                new_settings = AppSettings.model_validate({**current, **data["settings"]})
            except PydanticValidationError as exc:
                logger.error("Import failed: invalid settings (%s)", exc)
                return False

        self.store.set_todos(tasks)
        if new_filter is not None:
            self.store.set_filter(new_filter)
        if new_settings is not None:
            self.store.replace_settings(new_settings)
        logger.info("Imported %s todos", len(tasks))
        return True

    def load_app_state(self) -> Dict[str, Any]:
        """3つのキーを読み取り専用で読み込む（例外は送出しない）"""
        errors: List[str] = []
        state: Dict[str, Any] = {}
        for name in ("entities", "filter", "settings"):
            binding = self.store.binding(name)
            result = binding.peek()
            if result.success:
                state[name] = result.data
            else:
                state[name] = binding.default
                errors.append(f"{name}の読み込みに失敗しました: {result.error}")
        state["errors"] = errors
        return state

    def health_check(self) -> Dict[str, Any]:
        """ストレージの利用可否・データ整合性・使用量を報告する（読み取り専用）"""
        issues: List[str] = []
        available = self.adapter.is_available()
        if not available:
            issues.append("ストレージが利用できません")

        data_integrity = True
        if available:
            labels = {"entities": "Todoデータ", "filter": "フィルターデータ", "settings": "設定データ"}
            for name, label in labels.items():
                if not self.store.binding(name).peek().success:
                    data_integrity = False
                    issues.append(f"{label}が破損しています")

        usage = self.adapter.usage(self.store.keys.as_list())
        return {
            "available": available,
            "data_integrity": data_integrity,
            "usage": usage,
            "issues": issues,
        }

    def clear_all_data(self) -> Dict[str, Any]:
        """3つの保存キーを削除し、メモリ上の状態を既定値に戻す

        1つのキーの削除失敗は記録するが、残りの削除は続行する。
        """
        errors: List[str] = []
        for name in ("entities", "filter", "settings"):
            binding = self.store.binding(name)
            result = binding.remove()
            if not result.success:
                errors.append(f"{name}の削除に失敗しました: {result.error}")
                binding.reset()
            self.store.notify(name)

        self.store.clear_error()
        if errors:
            self.store.set_error("; ".join(errors))
        logger.info("All todo data cleared success=%s", not errors)
        return {"success": not errors, "errors": errors}
