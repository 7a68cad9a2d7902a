"""SQLAlchemy models"""

from tvratings_service.models.base import CatalogBase, UserBase
from tvratings_service.models.catalog import Episode, Genre, Show
from tvratings_service.models.database import create_sqlite_engine
from tvratings_service.models.user import Follow, VerificationCode

__all__ = [
    "CatalogBase",
    "UserBase",
    "Show",
    "Episode",
    "Genre",
    "VerificationCode",
    "Follow",
    "create_sqlite_engine",
]
