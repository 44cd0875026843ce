"""
Anime catalog API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from pydantic import ValidationError

from . import schemas, service
from .repository import AnimeRepository

router = APIRouter()


def get_repository(request: Request) -> AnimeRepository:
    return request.app.state.anime_repository


def _validation_detail(exc: ValidationError) -> list[dict]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]


def get_list_params(
    title: str = Query(default="", max_length=500),
    anime_status: str | None = Query(default=None, alias="status"),
    season: str | None = Query(default=None),
    anime_type: str | None = Query(default=None, alias="type"),
    tags: str = Query(default="", description="Comma separated tag names."),
    page: int = Query(default=1),
    page_size: int = Query(default=20),
    sort: str = Query(default="id"),
) -> tuple[schemas.AnimeFilters, schemas.Pagination]:
    try:
        filters = schemas.AnimeFilters(
            title=title,
            status=anime_status or None,
            season=season or None,
            type=anime_type or None,
            tags=[t for t in tags.split(",") if t.strip()],
        )
        pagination = schemas.Pagination(page=page, page_size=page_size, sort=sort)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_validation_detail(exc),
        ) from exc
    return filters, pagination


def _envelope(anime: schemas.Anime) -> dict:
    return {"anime": schemas.AnimeResponse(**anime.model_dump())}


@router.post("/v1/anime", status_code=status.HTTP_201_CREATED)
async def create_anime(
    payload: schemas.AnimeIn,
    response: Response,
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    anime = await service.create_anime(repo, payload)
    response.headers["Location"] = f"/v1/anime/{anime.id}"
    return _envelope(anime)


@router.get("/v1/anime")
async def list_anime(
    params: tuple[schemas.AnimeFilters, schemas.Pagination] = Depends(get_list_params),
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    filters, pagination = params
    rows, metadata = await service.list_anime(repo, filters, pagination)
    return {
        "anime": [schemas.AnimeResponse(**row.model_dump()) for row in rows],
        "metadata": metadata,
    }


@router.get("/v1/anime/{anime_id}")
async def show_anime(
    anime_id: int,
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    return _envelope(await service.get_anime(repo, anime_id))


@router.put("/v1/anime/{anime_id}")
async def update_anime(
    anime_id: int,
    payload: schemas.AnimeIn,
    expected_version: str | None = Header(default=None, alias="X-Expected-Version"),
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    anime = await service.replace_anime(repo, anime_id, payload, expected_version=expected_version)
    return _envelope(anime)


@router.patch("/v1/anime/{anime_id}")
async def patch_anime(
    anime_id: int,
    patch: schemas.AnimePatch,
    expected_version: str | None = Header(default=None, alias="X-Expected-Version"),
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    anime = await service.patch_anime(repo, anime_id, patch, expected_version=expected_version)
    return _envelope(anime)


@router.delete("/v1/anime/{anime_id}")
async def delete_anime(
    anime_id: int,
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    await service.delete_anime(repo, anime_id)
    return {"message": "anime successfully deleted"}


@router.get("/v1/tags")
async def list_tags(
    repo: AnimeRepository = Depends(get_repository),
) -> dict:
    tags = await service.list_tags(repo)
    return {"tags": tags, "count": len(tags)}
