"""Version history for posts, stored in the local SQLite database.

Each save snapshots the title and blocks under a monotonically increasing
per-post version number. Rolling back never rewrites history: the restored
state is saved as a new version.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from .blocks import Block
from .db import Database, get_db
from .diff import DiffResult, compute_diff
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

Trigger = Literal["manual", "ai", "auto"]
TRIGGERS: tuple[str, ...] = ("manual", "ai", "auto")
DEFAULT_KEEP_LAST = 50


@dataclass(frozen=True)
class PostVersion:
    id: str
    post_id: str
    user_id: str | None
    version_number: int
    title: str
    content: list[Block]
    change_description: str | None
    trigger: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PostVersion":
        try:
            content = json.loads(str(row.get("content") or "[]"))
        except json.JSONDecodeError:
            logger.warning("Version %s has corrupt content, treating as empty", row.get("id"))
            content = []
        return cls(
            id=str(row["id"]),
            post_id=str(row["post_id"]),
            user_id=row.get("user_id"),
            version_number=int(row["version_number"]),
            title=str(row.get("title") or ""),
            content=content if isinstance(content, list) else [],
            change_description=row.get("change_description"),
            trigger=str(row.get("trigger") or "manual"),
            created_at=datetime.fromisoformat(str(row["created_at"])),
        )

    def to_dict(self, *, include_content: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "post_id": self.post_id,
            "user_id": self.user_id,
            "version_number": self.version_number,
            "title": self.title,
            "change_description": self.change_description,
            "trigger": self.trigger,
            "created_at": self.created_at.isoformat(),
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass(frozen=True)
class VersionComparison:
    older: PostVersion
    newer: PostVersion
    diff: DiffResult

    @property
    def time_diff_seconds(self) -> float:
        return (self.newer.created_at - self.older.created_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "version1": self.older.to_dict(include_content=False),
            "version2": self.newer.to_dict(include_content=False),
            "time_diff_seconds": self.time_diff_seconds,
            "title_changed": self.older.title != self.newer.title,
            "diff": self.diff.to_dict(),
        }


class VersionStore:
    def __init__(self, db: Database | None = None, *, max_versions: int = DEFAULT_KEEP_LAST) -> None:
        self._db = db
        self._max_versions = max_versions

    @property
    def db(self) -> Database:
        return self._db if self._db is not None else get_db()

    def save_version(
        self,
        post_id: str,
        user_id: str | None,
        title: str,
        content: list[Block],
        *,
        trigger: str = "manual",
        description: str | None = None,
    ) -> PostVersion:
        """Snapshot a post. Old versions beyond the retention limit are pruned."""
        if not post_id:
            raise ValidationError("post_id is required")
        if trigger not in TRIGGERS:
            raise ValidationError(f"Invalid trigger: {trigger}. Expected one of {', '.join(TRIGGERS)}")

        version_id = str(uuid.uuid4())
        blocks = list(content or [])
        created_at = datetime.now(UTC)
        number = self.db.insert_version(
            version_id=version_id,
            post_id=post_id,
            user_id=user_id,
            title=title or "",
            content=json.dumps(blocks, ensure_ascii=False),
            change_description=description,
            trigger=trigger,
            created_at=created_at.isoformat(),
        )
        version = PostVersion(
            id=version_id,
            post_id=post_id,
            user_id=user_id,
            version_number=number,
            title=title or "",
            content=blocks,
            change_description=description,
            trigger=trigger,
            created_at=created_at,
        )
        logger.info("Saved version %d of post %s (%s)", version.version_number, post_id, trigger)

        if self._max_versions > 0:
            self.delete_old_versions(post_id, keep_last=self._max_versions)
        return version

    def get_version_history(self, post_id: str, limit: int = DEFAULT_KEEP_LAST) -> list[PostVersion]:
        return [PostVersion.from_row(r) for r in self.db.iter_versions(post_id, limit)]

    def get_version(self, version_id: str) -> PostVersion:
        row = self.db.get_version(version_id)
        if row is None:
            raise NotFoundError(f"Version not found: {version_id}")
        return PostVersion.from_row(row)

    def rollback_to_version(self, version_id: str, *, user_id: str | None = None) -> PostVersion:
        """Restore a version by saving its state as the newest version."""
        target = self.get_version(version_id)
        return self.save_version(
            target.post_id,
            user_id if user_id is not None else target.user_id,
            target.title,
            target.content,
            trigger="manual",
            description=f"Rolled back to version {target.version_number}",
        )

    def delete_old_versions(self, post_id: str, keep_last: int = DEFAULT_KEEP_LAST) -> int:
        rows = self.db.iter_versions(post_id)
        if len(rows) <= keep_last:
            return 0
        deleted = self.db.delete_versions([str(r["id"]) for r in rows[keep_last:]])
        logger.debug("Pruned %d old versions of post %s", deleted, post_id)
        return deleted

    def compare_versions(self, version_id1: str, version_id2: str) -> VersionComparison:
        """Compare two versions of the same post, oldest first regardless of argument order."""
        first = self.get_version(version_id1)
        second = self.get_version(version_id2)
        if first.post_id != second.post_id:
            raise ValidationError("Cannot compare versions of different posts")
        older, newer = sorted((first, second), key=lambda v: v.version_number)
        return VersionComparison(older=older, newer=newer, diff=compute_diff(older.content, newer.content))

    def recent_user_content(self, user_id: str, limit: int = 10) -> list[list[Block]]:
        """Latest content of the user's most recently saved posts."""
        return [PostVersion.from_row(r).content for r in self.db.iter_user_versions(user_id, limit)]
