"""Declarative bases for the two kinds of database files."""
from sqlalchemy.orm import DeclarativeBase


class CatalogBase(DeclarativeBase):
    """Tables of a catalog snapshot file."""


class UserBase(DeclarativeBase):
    """Tables of the user store file."""
