"""
SQLite Store — Infrastructure adapter for a local SQLite database.

Implements every scheduling port against a single database file.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from retainly.domain.constants import DEFAULT_HISTORY_LIMIT
from retainly.domain.scheduling.models import (
    Category,
    CategoryDeleteStrategy,
    Item,
    Rating,
    ReviewOutcome,
)
from retainly.domain.scheduling.ports import (
    CategoryStore,
    ItemRepository,
    ReviewLog,
    SettingsStore,
)

logger = logging.getLogger(__name__)

MEMORY = ":memory:"
GLOBAL_RETENTION_KEY = "desired_retention"

SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    desired_retention REAL,
    parameters_json TEXT
);
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    source TEXT,
    category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
    notes TEXT,
    created_at TEXT NOT NULL,
    archived INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS reviews (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id INTEGER NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    rating INTEGER NOT NULL,
    notes TEXT,
    reviewed_at TEXT NOT NULL,
    stability_after REAL NOT NULL,
    difficulty_after REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reviews_item ON reviews(item_id, reviewed_at);
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def _to_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_text(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SqliteStore(ItemRepository, ReviewLog, CategoryStore, SettingsStore):
    """
    Stores items, categories, review history and settings in SQLite.

    The schema is created on open. Use as a context manager to close the
    connection deterministically.

    Queries run synchronously inside the async port methods, so each call
    blocks the event loop for its duration. Every statement is a short
    indexed lookup on a local file, which keeps that pause well below a
    millisecond for a single learner's database.
    """

    def __init__(self, path: Path | str = MEMORY):
        self.path = path
        if str(path) != MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)
        logger.debug(f"Opened SQLite store at {path}")

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Items

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        return Item(
            id=row["id"],
            title=row["title"],
            source=row["source"],
            category_id=row["category_id"],
            notes=row["notes"],
            created_at=_from_text(row["created_at"]),
            archived=bool(row["archived"]),
        )

    async def get_item(self, item_id: int) -> Item | None:
        row = self.conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        return self._row_to_item(row) if row else None

    async def list_active_items(self) -> list[Item]:
        rows = self.conn.execute("SELECT * FROM items WHERE archived = 0 ORDER BY id").fetchall()
        return [self._row_to_item(row) for row in rows]

    async def add_item(self, item: Item) -> Item:
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO items (title, source, category_id, notes, created_at, archived) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    item.title,
                    item.source,
                    item.category_id,
                    item.notes,
                    _to_text(item.created_at),
                    int(item.archived),
                ),
            )
        return Item(
            id=cur.lastrowid,
            title=item.title,
            source=item.source,
            category_id=item.category_id,
            notes=item.notes,
            created_at=item.created_at,
            archived=item.archived,
        )

    async def list_archived_items(self) -> list[Item]:
        rows = self.conn.execute("SELECT * FROM items WHERE archived = 1 ORDER BY id").fetchall()
        return [self._row_to_item(row) for row in rows]

    async def _set_archived(self, item_id: int, archived: bool) -> Item | None:
        with self.conn:
            self.conn.execute(
                "UPDATE items SET archived = ? WHERE id = ?", (int(archived), item_id)
            )
        return await self.get_item(item_id)

    async def archive_item(self, item_id: int) -> Item | None:
        return await self._set_archived(item_id, True)

    async def unarchive_item(self, item_id: int) -> Item | None:
        return await self._set_archived(item_id, False)

    async def delete_item(self, item_id: int) -> bool:
        # reviews go with it through ON DELETE CASCADE
        with self.conn:
            cur = self.conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
        return cur.rowcount > 0

    # Reviews

    @staticmethod
    def _row_to_review(row: sqlite3.Row) -> ReviewOutcome:
        return ReviewOutcome(
            id=row["id"],
            item_id=row["item_id"],
            rating=Rating.from_value(row["rating"]),
            notes=row["notes"],
            reviewed_at=_from_text(row["reviewed_at"]),
            stability=row["stability_after"],
            difficulty=row["difficulty_after"],
        )

    async def get_latest_review(self, item_id: int) -> ReviewOutcome | None:
        history = await self.list_reviews(item_id, limit=1)
        return history[0] if history else None

    async def append_review(self, outcome: ReviewOutcome) -> ReviewOutcome:
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO reviews "
                "(item_id, rating, notes, reviewed_at, stability_after, difficulty_after) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    outcome.item_id,
                    int(outcome.rating),
                    outcome.notes,
                    _to_text(outcome.reviewed_at),
                    outcome.stability,
                    outcome.difficulty,
                ),
            )
        return ReviewOutcome(
            id=cur.lastrowid,
            item_id=outcome.item_id,
            rating=outcome.rating,
            notes=outcome.notes,
            reviewed_at=outcome.reviewed_at,
            stability=outcome.stability,
            difficulty=outcome.difficulty,
        )

    async def list_reviews(
        self, item_id: int, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ReviewOutcome]:
        rows = self.conn.execute(
            "SELECT * FROM reviews WHERE item_id = ? "
            "ORDER BY reviewed_at DESC, id DESC LIMIT ?",
            (item_id, limit),
        ).fetchall()
        return [self._row_to_review(row) for row in rows]

    # Categories

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            desired_retention=row["desired_retention"],
            parameters_json=row["parameters_json"],
        )

    async def get_category(self, category_id: int) -> Category | None:
        row = self.conn.execute(
            "SELECT * FROM categories WHERE id = ?", (category_id,)
        ).fetchone()
        return self._row_to_category(row) if row else None

    async def list_categories(self) -> list[Category]:
        rows = self.conn.execute("SELECT * FROM categories ORDER BY id").fetchall()
        return [self._row_to_category(row) for row in rows]

    async def save_category(self, category: Category) -> Category:
        with self.conn:
            if category.id is None:
                cur = self.conn.execute(
                    "INSERT INTO categories (name, desired_retention, parameters_json) "
                    "VALUES (?, ?, ?)",
                    (category.name, category.desired_retention, category.parameters_json),
                )
                category_id = cur.lastrowid
            else:
                # Not REPLACE: deleting the row would null items.category_id
                self.conn.execute(
                    "INSERT INTO categories (id, name, desired_retention, parameters_json) "
                    "VALUES (?, ?, ?, ?) ON CONFLICT(id) DO UPDATE SET "
                    "name = excluded.name, "
                    "desired_retention = excluded.desired_retention, "
                    "parameters_json = excluded.parameters_json",
                    (
                        category.id,
                        category.name,
                        category.desired_retention,
                        category.parameters_json,
                    ),
                )
                category_id = category.id
        return Category(
            id=category_id,
            name=category.name,
            desired_retention=category.desired_retention,
            parameters_json=category.parameters_json,
        )

    async def rename_category(self, category_id: int, name: str) -> Category | None:
        with self.conn:
            self.conn.execute(
                "UPDATE categories SET name = ? WHERE id = ?", (name, category_id)
            )
        return await self.get_category(category_id)

    async def delete_category(
        self, category_id: int, strategy: CategoryDeleteStrategy
    ) -> bool:
        with self.conn:
            if strategy is CategoryDeleteStrategy.ARCHIVE:
                self.conn.execute(
                    "UPDATE items SET archived = 1 WHERE category_id = ?", (category_id,)
                )
            elif strategy is CategoryDeleteStrategy.DELETE:
                self.conn.execute("DELETE FROM items WHERE category_id = ?", (category_id,))
            # Remaining members lose their category through ON DELETE SET NULL
            cur = self.conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        return cur.rowcount > 0

    # Settings

    async def get_global_retention(self) -> float | None:
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (GLOBAL_RETENTION_KEY,)
        ).fetchone()
        return float(row["value"]) if row else None

    async def set_global_retention(self, value: float) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (GLOBAL_RETENTION_KEY, repr(float(value))),
            )
