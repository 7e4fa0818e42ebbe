"""
設定管理モジュール

関連クラス:
  - todo.store.TodoStore: 保存キー・デバウンス遅延を使用
  - storage.adapter.PersistenceAdapter: 容量上限を使用
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigurationError
from .storage.adapter import DEFAULT_QUOTA_BYTES
from .todo.store import SaveDelays, StorageKeys


@dataclass
class StorageConfig:
    """ストレージ設定"""

    backend: str = "sqlite"  # "sqlite" | "memory"
    db_path: str = "data/todo_engine.db"
    namespace: str = "default"
    # 使用量レポートで仮定する上限。実際の上限を問い合わせた値ではない
    quota_bytes: int = DEFAULT_QUOTA_BYTES
    keys: StorageKeys = field(default_factory=StorageKeys)


@dataclass
class Config:
    """アプリケーション設定クラス"""

    storage: StorageConfig = field(default_factory=StorageConfig)
    autosave: SaveDelays = field(default_factory=SaveDelays)

    # ログ設定
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/todo_engine.log"

    def __post_init__(self) -> None:
        if self.storage.backend not in ("sqlite", "memory"):
            raise ConfigurationError(f"不明なストレージバックエンドです: {self.storage.backend}")

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス（省略時はconfig/app_config.yamlを使用）

        Returns:
            Config: 設定インスタンス
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "app_config.yaml"

        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"設定ファイルが見つかりません: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}

        storage_data = yaml_data.get("storage", {})
        keys_data = storage_data.get("keys", {})
        autosave_data = yaml_data.get("autosave", {})
        log_data = yaml_data.get("log", {})

        defaults = StorageKeys()
        delays = SaveDelays()
        return cls(
            storage=StorageConfig(
                backend=storage_data.get("backend", "sqlite"),
                db_path=storage_data.get("db_path", "data/todo_engine.db"),
                namespace=storage_data.get("namespace", "default"),
                quota_bytes=int(storage_data.get("quota_bytes", DEFAULT_QUOTA_BYTES)),
                keys=StorageKeys(
                    entities=keys_data.get("entities", defaults.entities),
                    filter=keys_data.get("filter", defaults.filter),
                    settings=keys_data.get("settings", defaults.settings),
                ),
            ),
            autosave=SaveDelays(
                entities=float(autosave_data.get("entities", delays.entities)),
                filter=float(autosave_data.get("filter", delays.filter)),
                settings=float(autosave_data.get("settings", delays.settings)),
            ),
            log_level=log_data.get("level", "INFO"),
            log_file=log_data.get("file", "logs/todo_engine.log"),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """環境変数から設定を読み込む"""
        return cls(
            storage=StorageConfig(
                backend=os.getenv("TODO_ENGINE_BACKEND", "sqlite"),
                db_path=os.getenv("TODO_ENGINE_DB_PATH", "data/todo_engine.db"),
                namespace=os.getenv("TODO_ENGINE_NAMESPACE", "default"),
                quota_bytes=int(os.getenv("TODO_ENGINE_QUOTA_BYTES", str(DEFAULT_QUOTA_BYTES))),
            ),
            log_level=os.getenv("TODO_ENGINE_LOG_LEVEL", "INFO"),
            log_file=os.getenv("TODO_ENGINE_LOG_FILE", "logs/todo_engine.log"),
        )
