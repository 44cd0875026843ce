"""Tests for the anime data model, validation and pagination metadata."""

from datetime import datetime, timezone

import pytest
from fakes import CREATED_AT
from pydantic import ValidationError

from anime.schemas import (
    Anime,
    AnimeFilters,
    AnimeIn,
    AnimePatch,
    AnimeResponse,
    AnimeType,
    Metadata,
    Season,
    Status,
)
from anime.tags import normalize_tag


def _moana(**overrides) -> dict:
    payload = {
        "title": "Moana",
        "type": "Movie",
        "status": "Finished",
        "year": 2015,
        "episodes": 1,
        "duration": 107,
        "tags": ["Animation", "Adventure"],
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("action", "Action"),
        ("  slice   of  life ", "Slice Of Life"),
        ("ISEKAI", "Isekai"),
        ("Adventure", "Adventure"),
        ("", ""),
    ],
)
def test_normalize_tag(raw, expected):
    """Tags are whitespace-collapsed and title-cased."""
    assert normalize_tag(raw) == expected


def test_enums_parse_case_insensitively():
    """Lower-case labels resolve to the canonical members."""
    assert AnimeType("movie") is AnimeType.MOVIE
    assert Status("UPCOMING") is Status.UPCOMING
    assert Season("fall") is Season.FALL
    with pytest.raises(ValueError):
        AnimeType("series")


def test_anime_in_accepts_lower_case_enum_labels():
    """Request bodies may spell enum values in any case."""
    anime = AnimeIn(**_moana(type="movie", status="finished", season="winter"))

    assert anime.type is AnimeType.MOVIE
    assert anime.status is Status.FINISHED
    assert anime.season is Season.WINTER


def test_anime_in_normalizes_tags():
    """Tags are stored in their canonical spelling."""
    anime = AnimeIn(**_moana(tags=["slice of life", "comedy"]))

    assert anime.tags == ["Slice Of Life", "Comedy"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "   "},
        {"title": "あ" * 167},  # 501 bytes in UTF-8
        {"tags": []},
        {"tags": [f"tag{i}" for i in range(16)]},
        {"tags": ["action", "Action"]},
        {"tags": ["x" * 51]},
        {"episodes": 0},
        {"duration": -5},
        {"year": 1900},
        {"type": "Series"},
        {"status": "Cancelled"},
    ],
)
def test_anime_in_rejects_invalid_payloads(overrides):
    """Field rules from the data model are enforced."""
    with pytest.raises(ValidationError):
        AnimeIn(**_moana(**overrides))


def test_year_bound_depends_on_status():
    """Upcoming titles may be announced further ahead than released ones."""
    ahead = datetime.now(timezone.utc).year + 5

    assert AnimeIn(**_moana(status="Upcoming", year=ahead)).year == ahead
    with pytest.raises(ValidationError):
        AnimeIn(**_moana(status="Finished", year=ahead))


def test_optional_fields_may_be_absent():
    """Upcoming titles do not need episodes, season, year or duration."""
    anime = AnimeIn(title="Untitled Project", type="TV", status="Upcoming", tags=["Drama"])

    assert anime.episodes is None
    assert anime.season is None
    assert anime.year is None
    assert anime.duration is None


def _stored() -> Anime:
    return Anime(**_moana(), id=1, created_at=CREATED_AT, version=3)


def test_patch_applies_only_supplied_fields():
    """Fields the client did not send keep their stored values."""
    merged = AnimePatch(tags=["adventure"]).apply_to(_stored())

    assert merged.tags == ["Adventure"]
    assert merged.title == "Moana"
    assert merged.duration == 107
    assert isinstance(merged, AnimeIn)


def test_patch_with_explicit_null_clears_nullable_field():
    """Sending null for an optional column clears it."""
    merged = AnimePatch.model_validate({"episodes": None}).apply_to(_stored())

    assert merged.episodes is None
    assert merged.year == 2015


def test_patch_cannot_null_required_field():
    """Required columns stay required after a merge."""
    with pytest.raises(ValidationError):
        AnimePatch.model_validate({"title": None}).apply_to(_stored())


def test_patch_rejects_unknown_fields():
    """Typos in a PATCH body are reported, not ignored."""
    with pytest.raises(ValidationError):
        AnimePatch.model_validate({"titel": "Moana"})


def test_filters_normalize_and_deduplicate_tags():
    """Filter tags use the same spelling as stored tags."""
    filters = AnimeFilters(tags=["action", " Action ", "isekai", ""])

    assert filters.tags == ["Action", "Isekai"]


@pytest.mark.parametrize(
    ("total", "page", "page_size", "expected"),
    [
        (23, 1, 5, Metadata(current_page=1, page_size=5, first_page=1, last_page=5, total_records=23)),
        (12, 2, 5, Metadata(current_page=2, page_size=5, first_page=1, last_page=3, total_records=12)),
        (5, 1, 5, Metadata(current_page=1, page_size=5, first_page=1, last_page=1, total_records=5)),
        (1, 1, 100, Metadata(current_page=1, page_size=100, first_page=1, last_page=1, total_records=1)),
        (0, 4, 5, Metadata()),
    ],
)
def test_metadata_calculate(total, page, page_size, expected):
    """last_page rounds up; an empty result reports all zeros."""
    assert Metadata.calculate(total, page, page_size) == expected


def test_response_renders_duration_in_minutes():
    """The API shows durations as '<n> mins'."""
    body = AnimeResponse(**_stored().model_dump()).model_dump(mode="json")

    assert body["duration"] == "107 mins"
    assert body["version"] == 3
    assert body["type"] == "Movie"
