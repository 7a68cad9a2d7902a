"""Normalized catalog tables built by the dataset importer."""
from sqlalchemy import Column, Float, Integer, Text

from tvratings_service.models.base import CatalogBase


class Show(CatalogBase):
    """A TV series or mini series."""
    __tablename__ = 'shows'

    showId = Column(Text, primary_key=True)
    title = Column(Text)
    startYear = Column(Integer)
    endYear = Column(Integer)
    duration = Column(Integer)
    rating = Column(Float)
    votes = Column(Integer)

    def __repr__(self):
        return f"<Show(showId='{self.showId}', title='{self.title}')>"


class Episode(CatalogBase):
    """A single episode of a show."""
    __tablename__ = 'episodes'

    episodeId = Column(Text, primary_key=True)
    showId = Column(Text)
    title = Column(Text)
    season = Column(Integer)
    episode = Column(Integer)
    startYear = Column(Integer)
    duration = Column(Integer)
    rating = Column(Float)
    votes = Column(Integer)

    def __repr__(self):
        return (
            f"<Episode(episodeId='{self.episodeId}', showId='{self.showId}', "
            f"S{self.season}E{self.episode})>"
        )


class Genre(CatalogBase):
    """One genre of a show (normal form of the comma separated upstream column)."""
    __tablename__ = 'genres'

    showId = Column(Text, primary_key=True)
    genre = Column(Text, primary_key=True)

    def __repr__(self):
        return f"<Genre(showId='{self.showId}', genre='{self.genre}')>"
