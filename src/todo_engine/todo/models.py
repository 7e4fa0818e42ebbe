"""Todoエンジンのデータモデル定義

Design Reference: DESIGN.md (Data model)
関連モジュール:
- src/todo_engine/todo/store.py - モデルを保持するストア
- src/todo_engine/todo/transfer.py - エクスポート/インポート
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic.alias_generators import to_camel

MAX_TITLE_LENGTH = 200
FORMAT_VERSION = "1.0.0"
SETTINGS_VERSION = "1.0.0"

_BASE36 = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """時刻(ミリ秒)とランダム部分を組み合わせた一意ID"""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"{timestamp}-{random_part}"


class FilterType(str, Enum):
    """表示フィルター"""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class _CamelModel(BaseModel):
    """保存形式はcamelCaseキー、Python側はsnake_case属性"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


class Task(_CamelModel):
    """Todoアイテム

    id と created_at は生成後に変更できない。
    """

    id: StrictStr = Field(..., min_length=1, frozen=True)
    title: StrictStr
    completed: StrictBool = False
    created_at: datetime = Field(default_factory=utc_now, frozen=True)
    updated_at: datetime = Field(default_factory=utc_now)


class AppSettings(_CamelModel):
    """アプリケーション設定（バージョン付き）"""

    version: str = SETTINGS_VERSION
    theme: Literal["light", "dark", "auto"] = "auto"
    language: Literal["zh-CN", "en-US"] = "zh-CN"
    auto_save_enabled: bool = True
    auto_save_interval_ms: int = 1000
    last_access_time: str = Field(default_factory=lambda: utc_now().isoformat())


class ExportBlob(_CamelModel):
    """エクスポート形式。未知のフィールドは無視する"""

    entities: List[Task]
    filter: Optional[Any] = None
    settings: Optional[Any] = None
    exported_at: Optional[datetime] = None
    format_version: str = FORMAT_VERSION


@dataclass(slots=True)
class TodoCounts:
    total: int = 0
    completed: int = 0
    active: int = 0


@dataclass(slots=True)
class TodoStats:
    """統計情報"""

    total: int = 0
    completed: int = 0
    active: int = 0
    completion_rate: int = 0


@dataclass(slots=True)
class StateSnapshot:
    """ストア状態のスナップショット（ライブ状態とは独立したコピー）"""

    entities: List[Task] = field(default_factory=list)
    filter: FilterType = FilterType.ALL
    loading: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [task.model_dump(mode="json", by_alias=True) for task in self.entities],
            "filter": self.filter.value,
            "loading": self.loading,
            "error": self.error,
        }
