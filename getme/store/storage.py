"""SQLite storage for tracked shows.

Persists shows, their seasons and episodes, and the remembered query
snippets. Snippet slots are written with an upsert, so storing a snippet
always replaces the previous one for that slot.

Usage:
    async with get_storage() as storage:
        show = await storage.get_show("The Wire")
        ...
        await storage.save_show(show)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from getme.store.models import Episode, MediaKind, QuerySnippets, Season, Show, Snippet

logger = structlog.get_logger(__name__)


MIGRATIONS = [
    # Migration 1: Shows and their structure
    """
    CREATE TABLE IF NOT EXISTS _migrations (
        version INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS shows (
        title TEXT PRIMARY KEY,
        tmdb_id INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS seasons (
        show_title TEXT NOT NULL,
        season INTEGER NOT NULL,
        PRIMARY KEY (show_title, season),
        FOREIGN KEY (show_title) REFERENCES shows(title) ON DELETE CASCADE
    );
    CREATE TABLE IF NOT EXISTS episodes (
        show_title TEXT NOT NULL,
        season INTEGER NOT NULL,
        episode INTEGER NOT NULL,
        title TEXT,
        air_date TEXT,
        pending INTEGER NOT NULL DEFAULT 1,
        PRIMARY KEY (show_title, season, episode),
        FOREIGN KEY (show_title) REFERENCES shows(title) ON DELETE CASCADE
    );
    """,
    # Migration 2: Remembered query snippets
    """
    CREATE TABLE IF NOT EXISTS snippets (
        show_title TEXT NOT NULL,
        slot TEXT NOT NULL,
        title_snippet TEXT NOT NULL,
        format_snippet TEXT NOT NULL,
        score INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (show_title, slot),
        FOREIGN KEY (show_title) REFERENCES shows(title) ON DELETE CASCADE
    );
    """,
]


class ShowStorage:
    """SQLite-based show storage."""

    def __init__(self, db_path: str | Path):
        """Initialize storage.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "ShowStorage":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open database connection and initialize schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row

        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._apply_migrations()

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Get active database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected. Use 'async with' or call connect()")
        return self._db

    async def _apply_migrations(self) -> None:
        cursor = await self.db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='_migrations'"
        )
        if await cursor.fetchone() is None:
            current_version = 0
        else:
            cursor = await self.db.execute("SELECT MAX(version) FROM _migrations")
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] else 0

        for i, sql in enumerate(MIGRATIONS, 1):
            if i <= current_version:
                continue

            logger.info("applying_migration", version=i)
            await self.db.executescript(sql)
            await self.db.execute(
                "INSERT OR IGNORE INTO _migrations (version, applied_at) VALUES (?, ?)",
                (i, datetime.now(UTC).isoformat()),
            )
            await self.db.commit()

    # -------------------------------------------------------------------------
    # Shows
    # -------------------------------------------------------------------------

    async def save_show(self, show: Show) -> None:
        """Insert or update a show with all its episodes and snippets."""
        now = datetime.now(UTC).isoformat()

        await self.db.execute(
            """
            INSERT INTO shows (title, tmdb_id, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(title) DO UPDATE SET
                tmdb_id = excluded.tmdb_id,
                updated_at = excluded.updated_at
            """,
            (show.title, show.tmdb_id, now, now),
        )

        for season in show.seasons:
            await self.db.execute(
                "INSERT OR IGNORE INTO seasons (show_title, season) VALUES (?, ?)",
                (show.title, season.season),
            )
            await self.db.executemany(
                """
                INSERT INTO episodes (show_title, season, episode, title, air_date, pending)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(show_title, season, episode) DO UPDATE SET
                    title = excluded.title,
                    air_date = excluded.air_date,
                    pending = excluded.pending
                """,
                [
                    (
                        show.title,
                        season.season,
                        episode.episode,
                        episode.title,
                        episode.air_date.isoformat() if episode.air_date else None,
                        int(episode.pending),
                    )
                    for episode in season.episodes
                ],
            )

        snippets = show.query_snippets
        if snippets.for_season is not None:
            await self._store_snippet(show.title, MediaKind.SEASON, snippets.for_season, now)
        if snippets.for_episode is not None:
            await self._store_snippet(show.title, MediaKind.EPISODE, snippets.for_episode, now)

        await self.db.commit()
        logger.debug("show_saved", title=show.title, episodes=len(show.episodes()))

    async def _store_snippet(
        self, show_title: str, slot: MediaKind, snippet: Snippet, now: str
    ) -> None:
        await self.db.execute(
            """
            INSERT INTO snippets
                (show_title, slot, title_snippet, format_snippet, score, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(show_title, slot) DO UPDATE SET
                title_snippet = excluded.title_snippet,
                format_snippet = excluded.format_snippet,
                score = excluded.score,
                updated_at = excluded.updated_at
            """,
            (
                show_title,
                slot.value,
                snippet.title_snippet,
                snippet.format_snippet,
                snippet.score,
                now,
            ),
        )

    async def get_show(self, title: str) -> Show | None:
        """Load a show by title.

        Returns:
            The show, or None if it is not tracked.
        """
        cursor = await self.db.execute(
            "SELECT title, tmdb_id FROM shows WHERE title = ?",
            (title,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return await self._load_show(row)

    async def list_shows(self) -> list[Show]:
        """Load every tracked show, ordered by title."""
        cursor = await self.db.execute("SELECT title, tmdb_id FROM shows ORDER BY title")
        rows = await cursor.fetchall()
        return [await self._load_show(row) for row in rows]

    async def delete_show(self, title: str) -> bool:
        """Stop tracking a show.

        Returns:
            True if the show existed.
        """
        cursor = await self.db.execute("DELETE FROM shows WHERE title = ?", (title,))
        await self.db.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("show_deleted", title=title)
        return deleted

    async def _load_show(self, row: aiosqlite.Row) -> Show:
        title = row["title"]
        seasons: dict[int, Season] = {}

        cursor = await self.db.execute(
            "SELECT season FROM seasons WHERE show_title = ? ORDER BY season",
            (title,),
        )
        for season_row in await cursor.fetchall():
            seasons[season_row["season"]] = Season(season=season_row["season"])

        cursor = await self.db.execute(
            """
            SELECT season, episode, title, air_date, pending FROM episodes
            WHERE show_title = ? ORDER BY season, episode
            """,
            (title,),
        )
        for ep_row in await cursor.fetchall():
            season = seasons.setdefault(ep_row["season"], Season(season=ep_row["season"]))
            season.episodes.append(
                Episode(
                    season=ep_row["season"],
                    episode=ep_row["episode"],
                    title=ep_row["title"],
                    air_date=datetime.fromisoformat(ep_row["air_date"])
                    if ep_row["air_date"]
                    else None,
                    pending=bool(ep_row["pending"]),
                )
            )

        snippets = QuerySnippets()
        cursor = await self.db.execute(
            "SELECT slot, title_snippet, format_snippet, score FROM snippets WHERE show_title = ?",
            (title,),
        )
        for snippet_row in await cursor.fetchall():
            snippet = Snippet(
                title_snippet=snippet_row["title_snippet"],
                format_snippet=snippet_row["format_snippet"],
                score=snippet_row["score"],
            )
            match MediaKind(snippet_row["slot"]):
                case MediaKind.SEASON:
                    snippets.for_season = snippet
                case MediaKind.EPISODE:
                    snippets.for_episode = snippet

        return Show(
            title=title,
            tmdb_id=row["tmdb_id"],
            seasons=[seasons[n] for n in sorted(seasons)],
            query_snippets=snippets,
        )


@asynccontextmanager
async def get_storage(db_path: str | Path | None = None) -> AsyncIterator[ShowStorage]:
    """Get a connected storage instance as context manager.

    Args:
        db_path: Database file; defaults to ``settings.database_path``.

    Yields:
        Connected ShowStorage.
    """
    if db_path is None:
        from getme.config import settings

        db_path = settings.database_path

    async with ShowStorage(db_path) as storage:
        yield storage
