"""Repository classes"""

from tvratings_service.repos.catalog_repository import CatalogSnapshot
from tvratings_service.repos.search_query import SearchParameters, build_search_query
from tvratings_service.repos.user_repository import UserStore

__all__ = [
    "CatalogSnapshot",
    "UserStore",
    "SearchParameters",
    "build_search_query",
]
