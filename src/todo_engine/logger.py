"""
ロギング設定モジュール

ライブラリ側のモジュールは logging.getLogger(__name__) のみを使い、
ハンドラの設定はアプリケーション（CLIなど）の起動時にこの関数で行う。
"""

import logging
from pathlib import Path
from typing import Optional


def setup_logger(log_level: str = "INFO", log_file: Optional[str] = "logs/todo_engine.log") -> None:
    """
    ロガーのセットアップ

    Args:
        log_level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルのパス（Noneの場合はコンソールのみ）
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        # ログディレクトリの作成
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
