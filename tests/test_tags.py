"""Tests for the tag synchronizer and the anime <-> tag link helpers."""

import asyncpg
import pytest
from fakes import tag_rows

from anime.tags import list_tag_names, relink_tags, sync_tags


@pytest.mark.asyncio
async def test_sync_collapses_case_and_whitespace_duplicates_into_one_upsert(conn, script):
    script.on("INSERT INTO tag (", tag_rows)

    ids = await sync_tags(conn, ["action", "ACTION", " Action ", "slice  of life", "Slice Of Life"])

    assert ids == {"Action": 1, "Slice Of Life": 2}
    (call,) = conn.calls
    assert call[0] == "fetch"
    assert call[2] == (["Action", "Slice Of Life"],)
    assert "ON CONFLICT (name) DO UPDATE" in call[1]
    assert "RETURNING id, name" in call[1]


@pytest.mark.asyncio
async def test_sync_resolves_existing_name_to_its_id(conn, script):
    # "Drama" was committed earlier by someone else
    script.on("INSERT INTO tag (", lambda args: [{"id": 41, "name": "Drama"}, {"id": 42, "name": "Mecha"}])

    assert await sync_tags(conn, ["drama", "mecha"]) == {"Drama": 41, "Mecha": 42}


@pytest.mark.asyncio
@pytest.mark.parametrize("names", [[], ["", "   "]])
async def test_sync_with_nothing_to_upsert_issues_no_statement(conn, names):
    assert await sync_tags(conn, names) == {}
    assert conn.calls == []


@pytest.mark.asyncio
async def test_sync_failure_propagates_unclassified(conn, script):
    script.on("INSERT INTO tag (", asyncpg.exceptions.CheckViolationError("tag name too long"))

    with pytest.raises(asyncpg.exceptions.CheckViolationError):
        await sync_tags(conn, ["action"])


@pytest.mark.asyncio
@pytest.mark.parametrize("replace", [True, False])
async def test_relink_rejects_an_empty_tag_set_before_any_statement(conn, replace):
    with pytest.raises(ValueError):
        await relink_tags(conn, 1, [], replace=replace)

    assert conn.calls == []


@pytest.mark.asyncio
async def test_relink_replaces_then_inserts_each_id_once(conn):
    await relink_tags(conn, 7, [3, 1, 3])

    assert [(method, sql.split(" (")[0]) for method, sql, _ in conn.calls] == [
        ("execute", "DELETE FROM anime_tags WHERE anime_id = $1"),
        ("executemany", "INSERT INTO anime_tags"),
    ]
    assert conn.calls[0][2] == (7,)
    assert conn.calls[1][2] == ([(7, 3), (7, 1)],)


@pytest.mark.asyncio
async def test_relink_without_replace_only_inserts(conn):
    await relink_tags(conn, 7, [2], replace=False)

    (call,) = conn.calls
    assert call[0] == "executemany"
    assert call[2] == ([(7, 2)],)


@pytest.mark.asyncio
async def test_list_tag_names(conn, script):
    script.on("SELECT name FROM tag", [{"name": "Action"}, {"name": "Comedy"}])

    assert await list_tag_names(conn) == ["Action", "Comedy"]
    assert "ORDER BY name" in conn.calls[0][1]
