"""Todo Engine CLI の動作テスト"""

import json
import os
import subprocess
import sys
from pathlib import Path

SRC_DIR = Path(__file__).parent.parent / "src"


def run_cli(args: list[str], db_path: Path) -> subprocess.CompletedProcess:
    """CLI実行ヘルパー"""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    env["TODO_ENGINE_LOG_FILE"] = str(db_path.parent / "cli.log")
    cmd = [
        sys.executable,
        "-m",
        "todo_engine",
        "--db-path",
        str(db_path),
    ] + args
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        cwd=db_path.parent,
        env=env,
    )


def add_todo(title: str, db_path: Path) -> dict:
    result = run_cli(["add", "--title", title, "--format", "json"], db_path)
    assert result.returncode == 0, result.stderr
    return json.loads(result.stdout)


def test_cli_list_empty(tmp_path):
    """空のリスト取得"""
    db_path = tmp_path / "cli_test.db"
    result = run_cli(["list", "--format", "json"], db_path)
    assert result.returncode == 0
    assert json.loads(result.stdout) == []


def test_cli_add_and_list(tmp_path):
    """Todo追加とリスト取得"""
    db_path = tmp_path / "cli_test.db"

    added = add_todo("  会議準備  ", db_path)
    assert added["title"] == "会議準備"
    assert added["completed"] is False
    assert "createdAt" in added

    result = run_cli(["list", "--format", "json"], db_path)
    assert result.returncode == 0
    items = json.loads(result.stdout)
    assert [item["id"] for item in items] == [added["id"]]

    result = run_cli(["list"], db_path)
    assert f"[ ] {added['id']} | 会議準備" in result.stdout


def test_cli_add_empty_title(tmp_path):
    db_path = tmp_path / "cli_test.db"
    result = run_cli(["add", "--title", "   "], db_path)
    assert result.returncode == 1
    assert "Todoのタイトルは必須です" in result.stderr


def test_cli_toggle_update_delete(tmp_path):
    """切り替え・更新・削除"""
    db_path = tmp_path / "cli_test.db"
    todo_id = add_todo("資料作成", db_path)["id"]

    result = run_cli(["toggle", "--id", todo_id, "--format", "json"], db_path)
    assert result.returncode == 0
    assert json.loads(result.stdout)["completed"] is True

    result = run_cli(["update", "--id", todo_id, "--title", "資料レビュー", "--format", "json"], db_path)
    assert result.returncode == 0
    assert json.loads(result.stdout)["title"] == "資料レビュー"

    result = run_cli(["list", "--filter", "completed", "--format", "json"], db_path)
    assert [item["title"] for item in json.loads(result.stdout)] == ["資料レビュー"]

    result = run_cli(["delete", "--id", todo_id, "--format", "json"], db_path)
    assert result.returncode == 0
    assert json.loads(result.stdout) == {"deleted": True, "id": todo_id}

    result = run_cli(["toggle", "--id", todo_id], db_path)
    assert result.returncode == 1
    assert "見つかりません" in result.stderr


def test_cli_bulk_commands_and_stats(tmp_path):
    db_path = tmp_path / "cli_test.db"
    add_todo("A", db_path)
    add_todo("B", db_path)

    result = run_cli(["toggle-all"], db_path)
    assert result.stdout.strip() == "2件を更新しました"

    result = run_cli(["stats", "--format", "json"], db_path)
    assert json.loads(result.stdout) == {
        "total": 2,
        "completed": 2,
        "active": 0,
        "completion_rate": 100,
    }

    result = run_cli(["clear-completed"], db_path)
    assert result.stdout.strip() == "2件の完了済みTodoを削除しました"

    result = run_cli(["list"], db_path)
    assert "Todoは登録されていません。" in result.stdout


def test_cli_export_import(tmp_path):
    """エクスポート・全削除・インポートで状態が戻る"""
    db_path = tmp_path / "cli_test.db"
    export_path = tmp_path / "export.json"
    added = add_todo("バックアップ対象", db_path)

    result = run_cli(["export", "--output", str(export_path)], db_path)
    assert result.returncode == 0
    assert json.loads(export_path.read_text(encoding="utf-8"))["formatVersion"] == "1.0.0"

    result = run_cli(["clear-all"], db_path)
    assert result.returncode == 0
    assert json.loads(run_cli(["list", "--format", "json"], db_path).stdout) == []

    result = run_cli(["import", "--input", str(export_path)], db_path)
    assert result.returncode == 0
    items = json.loads(run_cli(["list", "--format", "json"], db_path).stdout)
    assert [item["id"] for item in items] == [added["id"]]


def test_cli_import_missing_file(tmp_path):
    db_path = tmp_path / "cli_test.db"
    result = run_cli(["import", "--input", str(tmp_path / "missing.json")], db_path)
    assert result.returncode == 1


def test_cli_health(tmp_path):
    db_path = tmp_path / "cli_test.db"
    add_todo("A", db_path)

    result = run_cli(["health"], db_path)
    assert result.returncode == 0
    report = json.loads(result.stdout)
    assert report["available"] is True
    assert report["data_integrity"] is True
    assert report["usage"]["used_bytes"] > 0
