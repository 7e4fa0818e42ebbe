"""エクスポート/インポート/ヘルスチェックのテスト"""

import json

import pytest

from todo_engine.binding import ManualScheduler
from todo_engine.storage import MemoryKeyValueBackend, PersistenceAdapter
from todo_engine.todo import FilterType, TodoDataManager, TodoStore

ENTITIES_KEY = "todo-list:entities"
FILTER_KEY = "todo-list:filter"
SETTINGS_KEY = "todo-list:settings"


@pytest.fixture
def manager(store):
    return TodoDataManager(store)


@pytest.fixture
def populated(store):
    store.add_todo("A")
    b = store.add_todo("B")
    store.toggle_todo(b.id)
    store.set_filter("active")
    store.update_settings(theme="dark")
    return store


def _fresh_store():
    store = TodoStore(
        PersistenceAdapter(MemoryKeyValueBackend()), scheduler=ManualScheduler()
    )
    store.load_from_storage()
    return store


def test_export_format(populated, manager):
    data = json.loads(manager.export_state())

    assert data["formatVersion"] == "1.0.0"
    assert data["filter"] == "active"
    assert data["settings"]["theme"] == "dark"
    assert "exportedAt" in data
    assert [t["title"] for t in data["entities"]] == ["A", "B"]
    assert set(data["entities"][0]) == {"id", "title", "completed", "createdAt", "updatedAt"}


def test_export_import_roundtrip(populated, manager):
    """エクスポートしたテキストを別ストアへインポートすると同じ状態になる"""
    target = _fresh_store()

    assert TodoDataManager(target).import_state(manager.export_state()) is True
    assert target.entities == populated.entities
    assert target.filter is FilterType.ACTIVE
    assert target.settings == populated.settings


def test_import_marks_state_dirty(manager, store, scheduler, backend):
    text = json.dumps({"entities": [{"id": "a", "title": "imported", "completed": True}]})

    assert manager.import_state(text) is True
    scheduler.advance(1.0)
    saved = json.loads(backend.get_item(ENTITIES_KEY))
    assert saved[0]["title"] == "imported"


@pytest.mark.parametrize(
    "text",
    [
        '{"filter": "active"}',
        "not json",
        "[]",
        '{"entities": {}}',
        '{"entities": [{"id": "a", "title": "t", "completed": "yes"}]}',
        '{"entities": [{"title": "t", "completed": false}]}',
        '{"entities": [{"id": "", "title": "t", "completed": false}]}',
        '{"entities": [{"id": "a", "title": 1, "completed": false}]}',
        '{"entities": ["a"]}',
        '{"entities": [{"id": "a", "title": "t", "completed": false},'
        ' {"id": "a", "title": "u", "completed": false}]}',
        '{"entities": [], "settings": {"theme": "neon"}}',
        '{"entities": [{"id": "a", "title": "   ", "completed": false}]}',
        json.dumps({"entities": [{"id": "a", "title": "x" * 201, "completed": False}]}),
    ],
)
def test_import_rejects_invalid_input(populated, manager, text):
    """不正な入力ではライブ状態が一切変わらない"""
    before = populated.get_state_snapshot().to_dict()
    settings_before = populated.settings.model_copy()

    assert manager.import_state(text) is False
    assert populated.get_state_snapshot().to_dict() == before
    assert populated.settings == settings_before


def test_import_ignores_unknown_fields_and_invalid_filter(populated, manager):
    text = json.dumps(
        {
            "entities": [{"id": "x", "title": "t", "completed": False, "priority": 3}],
            "filter": "bogus",
            "extra": True,
        }
    )

    assert manager.import_state(text) is True
    assert [t.id for t in populated.entities] == ["x"]
    assert populated.filter is FilterType.ACTIVE


def test_import_merges_partial_settings(populated, manager):
    text = json.dumps({"entities": [], "settings": {"language": "en-US"}})

    assert manager.import_state(text) is True
    assert populated.settings.language == "en-US"
    assert populated.settings.theme == "dark"


def test_health_check_clean(populated, manager):
    populated.save_all()
    report = manager.health_check()

    assert report["available"] is True
    assert report["data_integrity"] is True
    assert report["issues"] == []
    assert report["usage"]["used_bytes"] > 0


def test_health_check_detects_corruption(store, manager, backend):
    store.add_todo("A")
    backend.set_item(ENTITIES_KEY, "{broken")

    report = manager.health_check()
    assert report["data_integrity"] is False
    assert report["issues"] == ["Todoデータが破損しています"]
    # 読み取り専用
    assert [t.title for t in store.entities] == ["A"]
    assert store.error is None


def test_health_check_unavailable():
    store = TodoStore(
        PersistenceAdapter(MemoryKeyValueBackend(disabled=True)), scheduler=ManualScheduler()
    )
    store.load_from_storage()

    report = TodoDataManager(store).health_check()
    assert report["available"] is False
    assert report["issues"] == ["ストレージが利用できません"]
    assert report["usage"]["used_bytes"] == 0


def test_load_app_state(populated, manager, backend):
    populated.save_all()
    state = manager.load_app_state()

    assert [t.title for t in state["entities"]] == ["A", "B"]
    assert state["filter"] is FilterType.ACTIVE
    assert state["settings"].theme == "dark"
    assert state["errors"] == []

    backend.set_item(SETTINGS_KEY, "{broken")
    state = manager.load_app_state()
    assert len(state["errors"]) == 1
    assert state["settings"].theme == "auto"


def test_clear_all_data(populated, manager, backend):
    populated.save_all()

    result = manager.clear_all_data()
    assert result == {"success": True, "errors": []}
    for key in (ENTITIES_KEY, FILTER_KEY, SETTINGS_KEY):
        assert backend.get_item(key) is None
    assert populated.entities == []
    assert populated.filter is FilterType.ALL
    assert populated.settings.theme == "auto"


def test_clear_all_data_continues_after_failure(populated, manager, backend, scheduler):
    """1つのキーの削除失敗は残りの削除を止めない"""
    populated.save_all()
    backend.fail_remove_keys = {FILTER_KEY}

    result = manager.clear_all_data()
    assert result["success"] is False
    assert len(result["errors"]) == 1
    assert backend.get_item(ENTITIES_KEY) is None
    assert backend.get_item(SETTINGS_KEY) is None
    assert populated.filter is FilterType.ALL
    assert populated.error

    scheduler.advance(10)
    assert backend.get_item(FILTER_KEY) == '"active"'


@pytest.mark.parametrize("raw_filter", [["active"], {}, 1, None])
def test_import_ignores_non_string_filter(populated, manager, raw_filter):
    text = json.dumps({"entities": [], "filter": raw_filter})

    assert manager.import_state(text) is True
    assert populated.entities == []
    assert populated.filter is FilterType.ACTIVE


def test_import_trims_titles(store, manager):
    text = json.dumps({"entities": [{"id": "a", "title": "  牛乳  ", "completed": False}]})

    assert manager.import_state(text) is True
    assert store.entities[0].title == "牛乳"
