"""
Anime data model and API schemas.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .query import SORT_SAFELIST
from .tags import normalize_tag

MIN_YEAR = 1917
MAX_TITLE_BYTES = 500
MAX_TAGS = 15
MAX_TAG_LENGTH = 50
# How far past the current year a release year may sit.
RELEASED_YEAR_SLACK = 1
UPCOMING_YEAR_SLACK = 10


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        return None


class AnimeType(_CaseInsensitiveEnum):
    TV = "TV"
    MOVIE = "Movie"
    OVA = "OVA"
    ONA = "ONA"
    SPECIAL = "Special"


class Status(_CaseInsensitiveEnum):
    ONGOING = "Ongoing"
    FINISHED = "Finished"
    UPCOMING = "Upcoming"


class Season(_CaseInsensitiveEnum):
    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"
    WINTER = "Winter"


def _current_year() -> int:
    return datetime.now(timezone.utc).year


def _clean_title(value: str) -> str:
    title = (value or "").strip()
    if not title:
        raise ValueError("must be provided")
    if len(title.encode("utf-8")) > MAX_TITLE_BYTES:
        raise ValueError(f"must not be more than {MAX_TITLE_BYTES} bytes long")
    return title


def _clean_tags(values: list[str]) -> list[str]:
    tags: list[str] = []
    for raw in values:
        tag = normalize_tag(raw)
        if not tag:
            raise ValueError("must not contain empty values")
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"must not contain values longer than {MAX_TAG_LENGTH} characters")
        if tag in tags:
            raise ValueError("must not contain duplicate values")
        tags.append(tag)
    return tags


def _check_year(year: int | None, status: Status) -> None:
    if year is None:
        return
    slack = UPCOMING_YEAR_SLACK if status is Status.UPCOMING else RELEASED_YEAR_SLACK
    if year > _current_year() + slack:
        raise ValueError(f"year must not be later than {_current_year() + slack} for {status.value} anime")


class AnimeIn(BaseModel):
    """
    Writable anime fields. Create takes this as-is; Update takes the full
    replacement plus the expected version.
    """

    title: str
    type: AnimeType
    episodes: int | None = Field(default=None, gt=0)
    status: Status
    season: Season | None = None
    year: int | None = Field(default=None, ge=MIN_YEAR)
    duration: int | None = Field(default=None, gt=0)
    tags: list[str] = Field(..., min_length=1, max_length=MAX_TAGS)

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        return _clean_title(value)

    @field_validator("tags")
    @classmethod
    def _tags(cls, values: list[str]) -> list[str]:
        return _clean_tags(values)

    @model_validator(mode="after")
    def _year_for_status(self) -> AnimeIn:
        _check_year(self.year, self.status)
        return self


class Anime(AnimeIn):
    id: int
    created_at: datetime
    version: int = 1


class AnimePatch(BaseModel):
    """
    Partial update body. Only fields the client actually sent are applied.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    type: AnimeType | None = None
    episodes: int | None = None
    status: Status | None = None
    season: Season | None = None
    year: int | None = None
    duration: int | None = None
    tags: list[str] | None = None

    def apply_to(self, anime: AnimeIn) -> AnimeIn:
        """
        Merge the supplied fields onto a full entity and re-validate the result.

        A field explicitly sent as null clears the nullable columns
        (`episodes`, `season`, `year`, `duration`); for required columns it is
        rejected by validation.
        """
        merged = anime.model_dump(include=set(AnimeIn.model_fields))
        merged.update(self.model_dump(exclude_unset=True))
        return AnimeIn.model_validate(merged)


class AnimeFilters(BaseModel):
    title: str = ""
    status: Status | None = None
    season: Season | None = None
    type: AnimeType | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        return (value or "").strip()

    @field_validator("tags")
    @classmethod
    def _tags(cls, values: list[str]) -> list[str]:
        # Same normalization as writes, or the intersection never matches.
        tags: list[str] = []
        for raw in values:
            tag = normalize_tag(raw)
            if tag and tag not in tags:
                tags.append(tag)
        return tags


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1, le=10_000_000)
    page_size: int = Field(default=20, ge=1, le=100)
    sort: str = "id"

    @field_validator("sort")
    @classmethod
    def _sort(cls, value: str) -> str:
        if value not in SORT_SAFELIST:
            raise ValueError(f"sort must be one of: {', '.join(SORT_SAFELIST)}")
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class Metadata(BaseModel):
    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    @classmethod
    def calculate(cls, total_records: int, page: int, page_size: int) -> Metadata:
        if total_records <= 0:
            return cls()
        return cls(
            current_page=page,
            page_size=page_size,
            first_page=1,
            last_page=(total_records + page_size - 1) // page_size,
            total_records=total_records,
        )


class AnimeResponse(Anime):
    @field_serializer("duration")
    def _duration(self, value: int | None) -> str | None:
        return f"{value} mins" if value is not None else None


class AnimeListResponse(BaseModel):
    anime: list[AnimeResponse]
    metadata: Metadata
