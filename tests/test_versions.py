"""Tests for post version history."""

from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from quill.blocks import Block, heading, paragraph
from quill.db import Database
from quill.errors import NotFoundError, ValidationError
from quill.versions import VersionStore


@pytest.fixture
def store(temp_db: Database) -> VersionStore:
    return VersionStore(temp_db, max_versions=50)


class TestSaveVersion:
    def test_version_numbers_increase_per_post(self, store: VersionStore) -> None:
        v1 = store.save_version("post-1", "user-1", "Draft", [paragraph("a")])
        v2 = store.save_version("post-1", "user-1", "Draft", [paragraph("b")], trigger="ai")
        other = store.save_version("post-2", "user-1", "Other", [])

        assert (v1.version_number, v2.version_number) == (1, 2)
        assert other.version_number == 1
        assert v2.trigger == "ai"

    def test_content_round_trips_through_storage(self, store: VersionStore) -> None:
        blocks = [heading("标题"), paragraph("正文内容")]
        saved = store.save_version("post-1", None, "中文", blocks, description="first draft")
        loaded = store.get_version(saved.id)

        assert loaded.content == blocks
        assert loaded.title == "中文"
        assert loaded.change_description == "first draft"
        assert loaded.created_at == saved.created_at

    def test_concurrent_saves_get_distinct_numbers(self, store: VersionStore) -> None:
        with ThreadPoolExecutor(max_workers=8) as pool:
            saved = list(pool.map(lambda i: store.save_version("post-1", "u", f"T{i}", []), range(20)))

        assert sorted(v.version_number for v in saved) == list(range(1, 21))
        assert [v.version_number for v in store.get_version_history("post-1")] == list(range(20, 0, -1))

    def test_version_numbers_are_unique_per_post(self, store: VersionStore, temp_db: Database) -> None:
        store.save_version("post-1", "u", "Draft", [])
        with pytest.raises(sqlite3.IntegrityError):
            temp_db.connect().execute(
                "INSERT INTO versions (id, post_id, version_number, title, content, trigger, created_at) "
                "VALUES ('dup', 'post-1', 1, 'x', '[]', 'manual', 'now')"
            )

    def test_validation(self, store: VersionStore) -> None:
        with pytest.raises(ValidationError):
            store.save_version("", None, "T", [])
        with pytest.raises(ValidationError):
            store.save_version("post-1", None, "T", [], trigger="scheduled")

    def test_old_versions_are_pruned(self, temp_db: Database) -> None:
        store = VersionStore(temp_db, max_versions=3)
        for i in range(5):
            store.save_version("post-1", None, f"v{i}", [])

        history = store.get_version_history("post-1")
        assert [v.version_number for v in history] == [5, 4, 3]


class TestReadVersions:
    def test_history_is_newest_first_and_limited(self, store: VersionStore) -> None:
        for i in range(4):
            store.save_version("post-1", None, f"v{i}", [])
        history = store.get_version_history("post-1", limit=2)
        assert [v.title for v in history] == ["v3", "v2"]

    def test_missing_version(self, store: VersionStore) -> None:
        with pytest.raises(NotFoundError):
            store.get_version("does-not-exist")

    def test_to_dict_without_content(self, store: VersionStore) -> None:
        version = store.save_version("post-1", None, "T", [paragraph("x")])
        data = version.to_dict(include_content=False)
        assert "content" not in data
        assert data["version_number"] == 1


class TestRollback:
    def test_rollback_saves_a_new_version(self, store: VersionStore) -> None:
        v1 = store.save_version("post-1", "user-1", "First", [paragraph("original")])
        store.save_version("post-1", "user-1", "Second", [paragraph("changed")])

        restored = store.rollback_to_version(v1.id)

        assert restored.version_number == 3
        assert restored.title == "First"
        assert restored.content == [paragraph("original")]
        assert restored.trigger == "manual"
        assert restored.change_description == "Rolled back to version 1"
        assert restored.user_id == "user-1"
        assert len(store.get_version_history("post-1")) == 3


class TestCompare:
    def test_compare_is_order_insensitive(self, store: VersionStore) -> None:
        v1 = store.save_version("post-1", None, "Old title", [paragraph("keep"), paragraph("one")])
        v2 = store.save_version("post-1", None, "New title", [paragraph("keep"), paragraph("one two")])

        comparison = store.compare_versions(v2.id, v1.id)

        assert comparison.older.id == v1.id
        assert comparison.newer.id == v2.id
        assert comparison.time_diff_seconds >= 0
        data = comparison.to_dict()
        assert data["title_changed"] is True
        assert data["diff"]["stats"]["blocks_modified"] == 1
        assert data["diff"]["stats"]["words_added"] == 1

    def test_compare_across_posts_fails(self, store: VersionStore) -> None:
        a = store.save_version("post-1", None, "A", [])
        b = store.save_version("post-2", None, "B", [])
        with pytest.raises(ValidationError):
            store.compare_versions(a.id, b.id)


class TestUserContent:
    def test_latest_version_of_each_post(self, store: VersionStore) -> None:
        store.save_version("post-1", "user-1", "A", [paragraph("a old")])
        store.save_version("post-1", "user-1", "A", [paragraph("a new")])
        store.save_version("post-2", "user-1", "B", [paragraph("b")])
        store.save_version("post-3", "user-2", "C", [paragraph("someone else")])

        contents = store.recent_user_content("user-1")

        assert len(contents) == 2
        assert [paragraph("a new")] in contents
        assert [paragraph("b")] in contents

    def test_unknown_user(self, store: VersionStore) -> None:
        assert store.recent_user_content("nobody") == []
