#!/usr/bin/env python3
"""
Todo Engine CLI - SQLiteに永続化されたTodoリストを操作するコマンドラインインターフェース

Usage:
    python -m todo_engine list [--filter all|active|completed] [--format json|text]
    python -m todo_engine add --title "タイトル" [--format json|text]
    python -m todo_engine toggle --id ID
    python -m todo_engine update --id ID --title "新タイトル"
    python -m todo_engine delete --id ID
    python -m todo_engine toggle-all [--active]
    python -m todo_engine clear-completed
    python -m todo_engine stats [--format json|text]
    python -m todo_engine export [--output FILE]
    python -m todo_engine import --input FILE
    python -m todo_engine health
    python -m todo_engine clear-all
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from . import create_store
from .config import Config
from .exceptions import ValidationError
from .logger import setup_logger
from .todo import Task, TodoDataManager, TodoStore


def format_todo_text(todo: Task) -> str:
    """Todoアイテムをテキスト形式で整形"""
    mark = "x" if todo.completed else " "
    return f"[{mark}] {todo.id} | {todo.title}"


def format_todo_json(todo: Task) -> Dict[str, Any]:
    """Todoアイテムを辞書形式に変換"""
    return todo.model_dump(mode="json", by_alias=True)


def _print_todo(todo: Task, output_format: str, prefix: str = "") -> None:
    if output_format == "json":
        print(json.dumps(format_todo_json(todo), ensure_ascii=False))
    else:
        print(f"{prefix}{format_todo_text(todo)}")


def cmd_list(store: TodoStore, filter_name: Optional[str], output_format: str) -> int:
    """Todoリストを表示"""
    if filter_name:
        store.set_filter(filter_name)
    items = store.filtered_entities
    if output_format == "json":
        print(json.dumps([format_todo_json(item) for item in items], ensure_ascii=False))
    elif not items:
        print("Todoは登録されていません。")
    else:
        for item in items:
            print(format_todo_text(item))
    return 0


def cmd_add(store: TodoStore, title: str, output_format: str) -> int:
    """新しいTodoを追加"""
    try:
        created = store.add_todo(title)
    except ValidationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    _print_todo(created, output_format, prefix="追加しました: ")
    return 0


def cmd_toggle(store: TodoStore, todo_id: str, output_format: str) -> int:
    """完了状態を切り替え"""
    if not store.toggle_todo(todo_id):
        print(f"Error: {store.error}", file=sys.stderr)
        return 1
    todo = store.require_todo(todo_id)
    _print_todo(todo, output_format, prefix="切り替えました: ")
    return 0


def cmd_update(store: TodoStore, todo_id: str, title: str, output_format: str) -> int:
    """タイトルを更新"""
    try:
        updated = store.update_todo(todo_id, title)
    except ValidationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    if not updated:
        print(f"Error: {store.error}", file=sys.stderr)
        return 1
    todo = store.require_todo(todo_id)
    _print_todo(todo, output_format, prefix="更新しました: ")
    return 0


def cmd_delete(store: TodoStore, todo_id: str, output_format: str) -> int:
    """Todoを削除"""
    if not store.delete_todo(todo_id):
        print(f"Error: {store.error}", file=sys.stderr)
        return 1
    if output_format == "json":
        print(json.dumps({"deleted": True, "id": todo_id}, ensure_ascii=False))
    else:
        print(f"削除しました: ID {todo_id}")
    return 0


def cmd_toggle_all(store: TodoStore, active: bool) -> int:
    """全Todoの完了状態を揃える"""
    changed = store.toggle_all_todos(not active)
    print(f"{changed}件を更新しました")
    return 0


def cmd_clear_completed(store: TodoStore) -> int:
    """完了済みTodoを削除"""
    removed = store.clear_completed()
    print(f"{removed}件の完了済みTodoを削除しました")
    return 0


def cmd_stats(store: TodoStore, output_format: str) -> int:
    """統計情報を表示"""
    stats = store.stats
    if output_format == "json":
        print(json.dumps(asdict(stats), ensure_ascii=False))
    else:
        print(
            f"合計: {stats.total} | 完了: {stats.completed} | 未完了: {stats.active} "
            f"| 完了率: {stats.completion_rate}%"
        )
    return 0


def cmd_export(manager: TodoDataManager, output: Optional[str]) -> int:
    """状態をJSONでエクスポート"""
    text = manager.export_state()
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"エクスポートしました: {output}")
    else:
        print(text)
    return 0


def cmd_import(manager: TodoDataManager, input_path: str) -> int:
    """JSONから状態をインポート"""
    path = Path(input_path)
    if not path.exists():
        print(f"Error: ファイルが見つかりません: {input_path}", file=sys.stderr)
        return 1
    if not manager.import_state(path.read_text(encoding="utf-8")):
        print("Error: インポートに失敗しました。データ形式を確認してください。", file=sys.stderr)
        return 1
    print(f"インポートしました: {len(manager.store.entities)}件")
    return 0


def cmd_health(manager: TodoDataManager) -> int:
    """ストレージのヘルスチェック"""
    report = manager.health_check()
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0 if report["available"] and report["data_integrity"] else 1


def cmd_clear_all(manager: TodoDataManager) -> int:
    """全データを削除"""
    result = manager.clear_all_data()
    if not result["success"]:
        for error in result["errors"]:
            print(f"Error: {error}", file=sys.stderr)
        return 1
    print("すべてのデータを削除しました")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todo-engine",
        description="Todo Engine CLI - 永続化されたTodoリストを操作します",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-path", type=str, help="SQLiteデータベースファイルのパス")
    parser.add_argument("--config", type=str, help="YAML設定ファイルのパス")

    subparsers = parser.add_subparsers(dest="command", help="実行するコマンド", required=True)

    def add_format(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--format",
            choices=["json", "text"],
            default="text",
            help="出力フォーマット（デフォルト: text）",
        )

    # list コマンド
    parser_list = subparsers.add_parser("list", help="Todoリストを表示")
    parser_list.add_argument("--filter", choices=["all", "active", "completed"], help="表示フィルター")
    add_format(parser_list)

    # add コマンド
    parser_add = subparsers.add_parser("add", help="新しいTodoを追加")
    parser_add.add_argument("--title", required=True, help="Todoのタイトル")
    add_format(parser_add)

    # toggle コマンド
    parser_toggle = subparsers.add_parser("toggle", help="完了状態を切り替え")
    parser_toggle.add_argument("--id", required=True, help="TodoのID")
    add_format(parser_toggle)

    # update コマンド
    parser_update = subparsers.add_parser("update", help="タイトルを更新")
    parser_update.add_argument("--id", required=True, help="TodoのID")
    parser_update.add_argument("--title", required=True, help="新しいタイトル")
    add_format(parser_update)

    # delete コマンド
    parser_delete = subparsers.add_parser("delete", help="Todoを削除")
    parser_delete.add_argument("--id", required=True, help="TodoのID")
    add_format(parser_delete)

    # toggle-all コマンド
    parser_toggle_all = subparsers.add_parser("toggle-all", help="全Todoを完了（--activeで未完了）にする")
    parser_toggle_all.add_argument("--active", action="store_true", help="全Todoを未完了に戻す")

    subparsers.add_parser("clear-completed", help="完了済みTodoを削除")

    parser_stats = subparsers.add_parser("stats", help="統計情報を表示")
    add_format(parser_stats)

    parser_export = subparsers.add_parser("export", help="状態をJSONでエクスポート")
    parser_export.add_argument("--output", help="出力ファイル（省略時は標準出力）")

    parser_import = subparsers.add_parser("import", help="JSONから状態をインポート")
    parser_import.add_argument("--input", required=True, help="入力ファイル")

    subparsers.add_parser("health", help="ストレージのヘルスチェック")
    subparsers.add_parser("clear-all", help="すべてのデータを削除")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLIエントリポイント"""
    args = build_parser().parse_args(argv)

    config = Config.from_yaml(Path(args.config)) if args.config else Config.from_env()
    if args.db_path:
        config.storage.backend = "sqlite"
        config.storage.db_path = args.db_path
    setup_logger(log_level=config.log_level, log_file=config.log_file)

    # ストア初期化
    store = create_store(config)
    store.load_from_storage()
    manager = TodoDataManager(store)

    try:
        # コマンド実行
        if args.command == "list":
            return cmd_list(store, args.filter, args.format)
        elif args.command == "add":
            return cmd_add(store, args.title, args.format)
        elif args.command == "toggle":
            return cmd_toggle(store, args.id, args.format)
        elif args.command == "update":
            return cmd_update(store, args.id, args.title, args.format)
        elif args.command == "delete":
            return cmd_delete(store, args.id, args.format)
        elif args.command == "toggle-all":
            return cmd_toggle_all(store, args.active)
        elif args.command == "clear-completed":
            return cmd_clear_completed(store)
        elif args.command == "stats":
            return cmd_stats(store, args.format)
        elif args.command == "export":
            return cmd_export(manager, args.output)
        elif args.command == "import":
            return cmd_import(manager, args.input)
        elif args.command == "health":
            return cmd_health(manager)
        elif args.command == "clear-all":
            return cmd_clear_all(manager)
        else:
            print(f"Error: 不明なコマンド: {args.command}", file=sys.stderr)
            return 1
    finally:
        # 予約中のデバウンス保存を書き出す
        store.close()


if __name__ == "__main__":
    sys.exit(main())
