"""
Anime business logic sitting between the HTTP routes and the repository.

Scope:
- translate repository outcomes into HTTP errors (no internal detail leaks)
- expected-version checks and partial-update merging before Update
"""

from __future__ import annotations

from fastapi import HTTPException, status

from core.errors import DatabaseError, ErrorKind

from . import schemas
from .query import InvalidSortError
from .repository import AnimeRepository

NOT_FOUND_MESSAGE = "the requested resource could not be found"
EDIT_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"
SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"

_CONFLICT_KINDS = {
    ErrorKind.EDIT_CONFLICT,
    ErrorKind.DEADLOCK,
    ErrorKind.SERIALIZATION_FAILURE,
}

_UNPROCESSABLE_KINDS = {
    ErrorKind.NOT_NULL_VIOLATION,
    ErrorKind.VALUE_TOO_LONG,
    ErrorKind.TYPE_MISMATCH,
}


def http_error(exc: DatabaseError) -> HTTPException:
    if exc.kind is ErrorKind.NOT_FOUND:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    if exc.kind is ErrorKind.DUPLICATE_ENTRY:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="anime title already exists")
    if exc.kind in _CONFLICT_KINDS:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EDIT_CONFLICT_MESSAGE)
    if exc.kind in _UNPROCESSABLE_KINDS:
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=SERVER_ERROR_MESSAGE)


def _check_expected_version(anime: schemas.Anime, expected_version: str | None) -> None:
    raw = (expected_version or "").strip()
    if raw and raw != str(anime.version):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EDIT_CONFLICT_MESSAGE)


async def create_anime(repo: AnimeRepository, payload: schemas.AnimeIn) -> schemas.Anime:
    try:
        return await repo.create(payload)
    except DatabaseError as exc:
        raise http_error(exc) from exc


async def get_anime(repo: AnimeRepository, anime_id: int) -> schemas.Anime:
    try:
        return await repo.get(anime_id)
    except DatabaseError as exc:
        raise http_error(exc) from exc


async def list_anime(
    repo: AnimeRepository,
    filters: schemas.AnimeFilters,
    pagination: schemas.Pagination,
) -> tuple[list[schemas.Anime], schemas.Metadata]:
    try:
        return await repo.list_anime(filters, pagination)
    except InvalidSortError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except DatabaseError as exc:
        raise http_error(exc) from exc


async def replace_anime(
    repo: AnimeRepository,
    anime_id: int,
    payload: schemas.AnimeIn,
    *,
    expected_version: str | None = None,
) -> schemas.Anime:
    # Read first so a missing id is a 404 rather than an edit conflict.
    current = await get_anime(repo, anime_id)
    _check_expected_version(current, expected_version)
    try:
        return await repo.update(anime_id, payload, expected_version=current.version)
    except DatabaseError as exc:
        raise http_error(exc) from exc


async def patch_anime(
    repo: AnimeRepository,
    anime_id: int,
    patch: schemas.AnimePatch,
    *,
    expected_version: str | None = None,
) -> schemas.Anime:
    current = await get_anime(repo, anime_id)
    _check_expected_version(current, expected_version)
    try:
        merged = patch.apply_to(current)
    except ValueError as exc:
        # pydantic.ValidationError is a ValueError
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    try:
        return await repo.update(anime_id, merged, expected_version=current.version)
    except DatabaseError as exc:
        raise http_error(exc) from exc


async def delete_anime(repo: AnimeRepository, anime_id: int) -> None:
    try:
        await repo.delete(anime_id)
    except DatabaseError as exc:
        raise http_error(exc) from exc


async def list_tags(repo: AnimeRepository) -> list[str]:
    try:
        return await repo.list_tags()
    except DatabaseError as exc:
        raise http_error(exc) from exc
