"""
Tag persistence: the shared tag vocabulary and the anime <-> tag links.

Both helpers run on the caller's connection, inside the caller's transaction,
and let driver errors propagate untouched.
"""

from __future__ import annotations

import string
from typing import Iterable

import asyncpg


def normalize_tag(name: str) -> str:
    """
    Canonical tag spelling: single spaces, title-cased words.

    Used for writes and for list filters alike.
    """
    return string.capwords((name or "").strip())


def _unique_normalized(names: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for name in names:
        tag = normalize_tag(name)
        if tag and tag not in seen:
            seen.append(tag)
    return seen


async def sync_tags(conn: asyncpg.Connection, names: Iterable[str]) -> dict[str, int]:
    """
    Insert-or-get every tag name in one statement, returning {name: id}.

    `ON CONFLICT ... DO UPDATE` makes RETURNING yield the existing row's id
    when the name is already stored. A name another transaction is inserting
    blocks until that transaction ends, then resolves to its row. This relies on
    the caller's transaction being read committed: under repeatable read or
    serializable, a conflict with a row committed after the snapshot raises
    40001 instead.

    Duplicates are removed first: the conflict clause may not touch one row
    twice in a single statement.
    """
    tags = _unique_normalized(names)
    if not tags:
        return {}

    rows = await conn.fetch(
        """
        INSERT INTO tag (name)
        SELECT unnest($1::text[])
        ON CONFLICT (name) DO UPDATE
        SET name = EXCLUDED.name
        RETURNING id, name
        """,
        tags,
    )
    return {str(row["name"]): int(row["id"]) for row in rows}


async def relink_tags(
    conn: asyncpg.Connection,
    anime_id: int,
    tag_ids: Iterable[int],
    *,
    replace: bool = True,
) -> None:
    """
    Make `tag_ids` the complete link set for `anime_id`.

    `replace=False` skips the delete; Create uses it for a brand-new row.
    """
    ids = list(dict.fromkeys(int(t) for t in tag_ids))
    if not ids:
        raise ValueError("relink_tags called with an empty tag set.")

    if replace:
        await conn.execute("DELETE FROM anime_tags WHERE anime_id = $1", anime_id)

    await conn.executemany(
        "INSERT INTO anime_tags (anime_id, tag_id) VALUES ($1, $2)",
        [(anime_id, tag_id) for tag_id in ids],
    )


async def list_tag_names(conn: asyncpg.Connection) -> list[str]:
    rows = await conn.fetch("SELECT name FROM tag ORDER BY name")
    return [str(row["name"]) for row in rows]
