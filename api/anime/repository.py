"""
Anime persistence (raw SQL).

`AnimeRepository` is the transactional facade over the anime, tag and
anime_tags tables. Every public method:
- runs under a timeout (settings default or the caller's `timeout=`),
- opens its own transaction (read committed for writes, repeatable read for reads),
- turns driver failures into `DatabaseError` via `core.errors.classify`, once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

import asyncpg

from core import db
from core.config import Settings
from core.errors import DatabaseError, EditConflictError, RecordNotFoundError, classify

from . import tags as tag_sql
from .query import ANIME_COLUMNS, build_list_query, resolve_sort
from .schemas import Anime, AnimeFilters, AnimeIn, Metadata, Pagination

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_anime(row: Any) -> Anime:
    return Anime(
        id=int(row["id"]),
        title=str(row["title"]),
        type=row["type"],
        episodes=row["episodes"],
        status=row["status"],
        season=row["season"],
        year=row["year"],
        duration=row["duration"],
        tags=list(row["tags"] or []),
        created_at=row["created_at"],
        version=int(row["version"]),
    )


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class AnimeRepository:
    def __init__(self, pool: asyncpg.Pool, settings: Settings) -> None:
        self._pool = pool
        self._settings = settings

    async def _run(
        self,
        operation: str,
        work: Awaitable[T],
        timeout: float | None,
        default_timeout: float,
    ) -> T:
        if timeout is None:
            timeout = default_timeout
        try:
            return await asyncio.wait_for(work, timeout)
        except DatabaseError:
            raise
        except Exception as exc:
            kind = classify(exc, stacklevel=2)
            raise DatabaseError(kind, f"{operation} failed: {kind.value.replace('_', ' ')}") from exc

    # --- create -----------------------------------------------------------

    async def create(self, anime: AnimeIn, *, timeout: float | None = None) -> Anime:
        """
        Insert the anime, its tags and its links atomically. Returns the stored
        entity with id, created_at and version=1.
        """
        return await self._run("create", self._create(anime), timeout, self._settings.write_timeout)

    async def _create(self, anime: AnimeIn) -> Anime:
        async with db.transaction(self._pool, isolation=db.READ_COMMITTED) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO anime (title, type, episodes, status, season, year, duration)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING id, created_at, version
                """,
                anime.title,
                _enum_value(anime.type),
                anime.episodes,
                _enum_value(anime.status),
                _enum_value(anime.season),
                anime.year,
                anime.duration,
            )
            if row is None:
                raise RuntimeError("INSERT INTO anime returned no row.")

            anime_id = int(row["id"])
            tag_ids = await tag_sql.sync_tags(conn, anime.tags)
            await tag_sql.relink_tags(conn, anime_id, tag_ids.values(), replace=False)

        logger.info("anime_created id=%s tags=%s", anime_id, len(tag_ids))
        return Anime(
            **anime.model_dump(),
            id=anime_id,
            created_at=row["created_at"],
            version=int(row["version"]),
        )

    # --- read -------------------------------------------------------------

    async def get(self, anime_id: int, *, timeout: float | None = None) -> Anime:
        if anime_id < 1:
            raise RecordNotFoundError()
        return await self._run("get", self._get(anime_id), timeout, self._settings.read_timeout)

    async def _get(self, anime_id: int) -> Anime:
        async with db.transaction(self._pool, isolation=db.REPEATABLE_READ, readonly=True) as conn:
            row = await conn.fetchrow(
                f"""
                SELECT{ANIME_COLUMNS}
                FROM anime a
                WHERE a.id = $1
                """,
                anime_id,
            )
        if row is None:
            raise RecordNotFoundError()
        return _to_anime(row)

    # --- update -----------------------------------------------------------

    async def update(
        self,
        anime_id: int,
        anime: AnimeIn,
        *,
        expected_version: int,
        timeout: float | None = None,
    ) -> Anime:
        """
        Replace every field and the full tag set, but only if the stored version
        still equals `expected_version`.

        Raises EditConflictError when no row matched. That covers both a stale
        version and a missing id. The loser of two concurrent updates from one
        version lands here too: it waits on the row lock, then re-checks `version`.
        Callers that need to tell a missing id apart read first.
        """
        return await self._run(
            "update",
            self._update(anime_id, anime, expected_version),
            timeout,
            self._settings.write_timeout,
        )

    async def _update(self, anime_id: int, anime: AnimeIn, expected_version: int) -> Anime:
        async with db.transaction(self._pool, isolation=db.READ_COMMITTED) as conn:
            row = await conn.fetchrow(
                """
                UPDATE anime
                SET title = $1,
                    type = $2,
                    episodes = $3,
                    status = $4,
                    season = $5,
                    year = $6,
                    duration = $7,
                    version = version + 1
                WHERE id = $8
                  AND version = $9
                RETURNING version, created_at
                """,
                anime.title,
                _enum_value(anime.type),
                anime.episodes,
                _enum_value(anime.status),
                _enum_value(anime.season),
                anime.year,
                anime.duration,
                anime_id,
                expected_version,
            )
            if row is None:
                raise EditConflictError()

            tag_ids = await tag_sql.sync_tags(conn, anime.tags)
            await tag_sql.relink_tags(conn, anime_id, tag_ids.values())

        logger.info("anime_updated id=%s version=%s", anime_id, row["version"])
        return Anime(
            **anime.model_dump(),
            id=anime_id,
            created_at=row["created_at"],
            version=int(row["version"]),
        )

    # --- delete -----------------------------------------------------------

    async def delete(self, anime_id: int, *, timeout: float | None = None) -> None:
        """
        Delete the anime; links go with it through ON DELETE CASCADE.
        """
        if anime_id < 1:
            raise RecordNotFoundError()
        await self._run("delete", self._delete(anime_id), timeout, self._settings.write_timeout)

    async def _delete(self, anime_id: int) -> None:
        async with db.transaction(self._pool, isolation=db.READ_COMMITTED) as conn:
            row = await conn.fetchrow("DELETE FROM anime WHERE id = $1 RETURNING id", anime_id)
            if row is None:
                raise RecordNotFoundError()
        logger.info("anime_deleted id=%s", anime_id)

    # --- list -------------------------------------------------------------

    async def list_anime(
        self,
        filters: AnimeFilters,
        pagination: Pagination,
        *,
        timeout: float | None = None,
    ) -> tuple[list[Anime], Metadata]:
        """
        One page of anime plus pagination metadata for the filtered set.

        An unsupported sort raises InvalidSortError before any connection is used.
        """
        resolve_sort(pagination.sort)
        sql, args = build_list_query(filters, pagination)
        return await self._run(
            "list_anime",
            self._list_anime(filters, pagination, sql, args),
            timeout,
            self._settings.list_timeout,
        )

    async def _list_anime(
        self,
        filters: AnimeFilters,
        pagination: Pagination,
        sql: str,
        args: list[Any],
    ) -> tuple[list[Anime], Metadata]:
        async with db.transaction(self._pool, isolation=db.REPEATABLE_READ, readonly=True) as conn:
            rows = await conn.fetch(sql, *args)
            total = int(rows[0]["total_records"]) if rows else 0

            if not rows and pagination.page > 1:
                # Past the last page the window count has no row to ride on;
                # ask for the first row of the same filtered set instead.
                first_row = pagination.model_copy(update={"page": 1, "page_size": 1})
                count_sql, count_args = build_list_query(filters, first_row)
                count_rows = await conn.fetch(count_sql, *count_args)
                total = int(count_rows[0]["total_records"]) if count_rows else 0

        metadata = Metadata.calculate(total, pagination.page, pagination.page_size)
        return [_to_anime(row) for row in rows], metadata

    # --- tags -------------------------------------------------------------

    async def list_tags(self, *, timeout: float | None = None) -> list[str]:
        return await self._run("list_tags", self._list_tags(), timeout, self._settings.read_timeout)

    async def _list_tags(self) -> list[str]:
        async with db.transaction(self._pool, isolation=db.REPEATABLE_READ, readonly=True) as conn:
            return await tag_sql.list_tag_names(conn)
