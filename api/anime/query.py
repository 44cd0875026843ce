"""
List query assembly for the anime catalog.

Only values are ever bound as parameters. The two things that cannot be
bound, the ORDER BY column and its direction, come exclusively from
`SORT_SAFELIST`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .schemas import AnimeFilters, Pagination

SORT_SAFELIST: dict[str, tuple[str, str]] = {
    "id": ("a.id", "ASC"),
    "title": ("a.title", "ASC"),
    "type": ("a.type", "ASC"),
    "status": ("a.status", "ASC"),
    "season": ("a.season", "ASC"),
    "year": ("a.year", "ASC"),
    "episodes": ("a.episodes", "ASC"),
    "duration": ("a.duration", "ASC"),
    "created_at": ("a.created_at", "ASC"),
    "-id": ("a.id", "DESC"),
    "-title": ("a.title", "DESC"),
    "-type": ("a.type", "DESC"),
    "-status": ("a.status", "DESC"),
    "-season": ("a.season", "DESC"),
    "-year": ("a.year", "DESC"),
    "-episodes": ("a.episodes", "DESC"),
    "-duration": ("a.duration", "DESC"),
    "-created_at": ("a.created_at", "DESC"),
}

ANIME_COLUMNS = """
          a.id,
          a.title,
          a.type,
          a.episodes,
          a.status,
          a.season,
          a.year,
          a.duration,
          a.created_at,
          a.version,
          ARRAY(
            SELECT t.name
            FROM anime_tags at
            JOIN tag t ON t.id = at.tag_id
            WHERE at.anime_id = a.id
            ORDER BY t.name
          ) AS tags"""


class InvalidSortError(ValueError):
    pass


def resolve_sort(token: str) -> tuple[str, str]:
    try:
        return SORT_SAFELIST[token]
    except KeyError:
        raise InvalidSortError(f"Unsupported sort value: {token!r}.") from None


class _Params:
    """Hands out $n placeholders in the order values are bound."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def build_list_query(filters: AnimeFilters, pagination: Pagination) -> tuple[str, list[Any]]:
    """
    Build the paginated list SELECT and its positional arguments.

    - $1 is always the title search text ('' disables it).
    - status/season/type add one `= $n` each when set.
    - tags restrict to anime linked to every requested tag (CTE `tagged`).
    - LIMIT/OFFSET are always the last two arguments.
    - `total_records` is the filtered row count before LIMIT/OFFSET.
    """
    column, direction = resolve_sort(pagination.sort)

    params = _Params()
    title = params.bind(filters.title or "")
    where = [f"(to_tsvector('simple', a.title) @@ plainto_tsquery('simple', {title}) OR {title} = '')"]

    cte = ""
    if filters.tags:
        names = params.bind(list(filters.tags))
        wanted = params.bind(len(filters.tags))
        cte = f"""
        WITH tagged AS (
          SELECT at.anime_id
          FROM anime_tags at
          JOIN tag t ON t.id = at.tag_id
          WHERE t.name = ANY({names}::text[])
          GROUP BY at.anime_id
          HAVING count(DISTINCT t.name) = {wanted}
        )"""
        where.append("a.id IN (SELECT anime_id FROM tagged)")

    for name, value in (("status", filters.status), ("season", filters.season), ("type", filters.type)):
        if value is not None:
            where.append(f"a.{name} = {params.bind(getattr(value, 'value', value))}")

    where_sql = "\n          AND ".join(where)
    limit = params.bind(pagination.page_size)
    offset = params.bind((pagination.page - 1) * pagination.page_size)

    sql = f"""{cte}
        SELECT
          count(*) OVER() AS total_records,{ANIME_COLUMNS}
        FROM anime a
        WHERE {where_sql}
        ORDER BY {column} {direction}, a.id ASC
        LIMIT {limit}
        OFFSET {offset}
        """
    return sql, params.values
