"""Builds the parameterized SQL for catalog searches."""

import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

TYPES = ("shows", "episodes")
SORT_COLUMNS = ("votes", "rating", "startYear", "title")
SORT_ORDERS = ("DESC", "ASC")
MAX_PAGE_LIMIT = 100

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")

# Genres of the row as a sorted, comma separated string.
# The inner ORDER BY keeps the string sorted whatever the insertion order was.
SELECT_GENRES = (
    "(SELECT GROUP_CONCAT(genre) FROM "
    "(SELECT g.genre FROM genres g WHERE t.showId = g.showId ORDER BY g.genre)) AS genres"
)

# (query parameter, column, operator)
_RANGE_FILTERS = (
    ("minVotes", "votes", ">="),
    ("maxVotes", "votes", "<="),
    ("minRating", "rating", ">="),
    ("maxRating", "rating", "<="),
    ("minYear", "startYear", ">="),
    ("maxYear", "startYear", "<="),
    ("minDuration", "duration", ">="),
    ("maxDuration", "duration", "<="),
)


@dataclass
class SearchParameters:
    """Raw search inputs, exactly as received in the query string."""

    type: Optional[str] = None
    titleSearch: Optional[str] = None
    minVotes: Optional[str] = None
    maxVotes: Optional[str] = None
    minRating: Optional[str] = None
    maxRating: Optional[str] = None
    minYear: Optional[str] = None
    maxYear: Optional[str] = None
    minDuration: Optional[str] = None
    maxDuration: Optional[str] = None
    genres: Optional[str] = None
    sortColumn: Optional[str] = None
    sortOrder: Optional[str] = None
    pageNumber: Optional[str] = None
    pageLimit: Optional[str] = None

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "SearchParameters":
        """Pick the known keys out of a query string mapping."""
        return cls(**{f.name: params.get(f.name) for f in fields(cls)})


def find_element(allowed: Sequence[str], value: Optional[str]) -> str:
    """
    Case-insensitive allowlist lookup.

    Returns:
        The allowlisted spelling of `value`, or the first element if it does not match
    """
    if value is not None:
        for element in allowed:
            if element.lower() == value.lower():
                return element
    return allowed[0]


def string_to_int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None or not _INTEGER_PATTERN.fullmatch(value):
        return None
    return int(value)


def parse_page_number(value: Optional[str]) -> int:
    """Page index, 0 for missing, non-numeric or negative input."""
    page_number = string_to_int_or_none(value)
    if page_number is None or page_number < 0:
        return 0
    return page_number


def parse_page_limit(value: Optional[str]) -> int:
    """Page size in [1, MAX_PAGE_LIMIT], MAX_PAGE_LIMIT for anything else."""
    page_limit = string_to_int_or_none(value)
    if page_limit is None or page_limit < 1 or page_limit > MAX_PAGE_LIMIT:
        return MAX_PAGE_LIMIT
    return page_limit


def title_like_pattern(title_search: str) -> str:
    """Every character outside [A-Za-z0-9_] becomes a % wildcard: 'the.office' -> '%the%office%'."""
    return "%" + re.sub(r"\W", "%", title_search, flags=re.ASCII) + "%"


def genres_like_pattern(genres: str) -> str:
    """'DRAMA,crime' -> '%crime%DRAMA%'. Tokens are sorted case-insensitively to match the sorted genres string."""
    return "%" + "%".join(sorted(genres.split(","), key=str.lower)) + "%"


def build_search_query(params: SearchParameters) -> Tuple[str, Dict[str, Any]]:
    """
    Compose the search statement.

    Table, column and sort order names only ever come from the allowlists;
    every other input is bound as a parameter (p0, p1, ... in order).

    Args:
        params: Raw search inputs

    Returns:
        (sql, bound values)
    """
    conditions: List[str] = []
    values: List[Any] = []

    def add_condition(condition: str, value: Any) -> None:
        conditions.append(condition.replace("?", f":p{len(values)}"))
        values.append(value)

    table_name = find_element(TYPES, params.type)

    if params.titleSearch is not None:
        add_condition("title LIKE ?", title_like_pattern(params.titleSearch))

    conditions.append("votes IS NOT NULL")

    for param_name, column, operator in _RANGE_FILTERS:
        value = getattr(params, param_name)
        if value is not None:
            add_condition(f"{column} {operator} ?", value)

    if params.genres is not None:
        add_condition("genres LIKE ?", genres_like_pattern(params.genres))

    sort_column = find_element(SORT_COLUMNS, params.sortColumn)
    sort_order = find_element(SORT_ORDERS, params.sortOrder)
    order_by = f"{sort_column} {sort_order}"
    if sort_column != "votes":
        order_by += ", votes DESC"

    page_number = parse_page_number(params.pageNumber)
    page_limit = parse_page_limit(params.pageLimit)

    sql = (
        f"SELECT *, {SELECT_GENRES} FROM {table_name} t"
        f" WHERE {' AND '.join(conditions)}"
        f" ORDER BY {order_by}"
        f" LIMIT {page_limit} OFFSET {page_number * page_limit}"
    )
    bound = {f"p{i}": value for i, value in enumerate(values)}

    logger.debug(f"{sql} ({' | '.join(str(v) for v in values)})")
    return sql, bound
