"""Shared test fixtures and configuration for pytest."""
import pytest
from pathlib import Path
from typing import Dict, List
from unittest.mock import Mock
import azure.functions as func
from sqlalchemy import insert

from tvratings_service.config import Configuration
from tvratings_service.models import CatalogBase, Episode, Genre, Show
from tvratings_service.repos import CatalogSnapshot, UserStore
from tvratings_service.services.rate_limiter import LoginRateLimiter
from tvratings_service.services.token_service import SignedTokenManager
from tvratings_service.services.update_controller import LiveSnapshot


# ===== Sample Data Fixtures =====

@pytest.fixture
def sample_shows() -> List[Dict]:
    """Catalog shows, one of them without votes."""
    return [
        {'showId': 'tt0903747', 'title': 'Breaking Bad', 'startYear': 2008, 'endYear': 2013,
         'duration': 49, 'rating': 9.5, 'votes': 2000000},
        {'showId': 'tt0141842', 'title': 'The Sopranos', 'startYear': 1999, 'endYear': 2007,
         'duration': 55, 'rating': 9.2, 'votes': 450000},
        {'showId': 'tt0306414', 'title': 'The Wire', 'startYear': 2002, 'endYear': 2008,
         'duration': 59, 'rating': 9.3, 'votes': 380000},
        {'showId': 'tt0386676', 'title': 'The Office', 'startYear': 2005, 'endYear': 2013,
         'duration': 22, 'rating': 9.0, 'votes': 700000},
        {'showId': 'tt7366338', 'title': 'Chernobyl', 'startYear': 2019, 'endYear': 2019,
         'duration': 330, 'rating': 9.3, 'votes': 900000},
        {'showId': 'tt0000001', 'title': 'Unrated Pilot', 'startYear': 2024, 'endYear': None,
         'duration': 30, 'rating': None, 'votes': None},
    ]


@pytest.fixture
def sample_episodes() -> List[Dict]:
    """Episodes inserted out of (season, episode) order."""
    return [
        {'episodeId': 'tt1054724', 'showId': 'tt0903747', 'title': 'Seven Thirty-Seven', 'season': 2,
         'episode': 1, 'startYear': 2009, 'duration': 47, 'rating': 8.6, 'votes': 30000},
        {'episodeId': 'tt1054725', 'showId': 'tt0903747', 'title': "Cat's in the Bag...", 'season': 1,
         'episode': 2, 'startYear': 2008, 'duration': 48, 'rating': 8.6, 'votes': 32000},
        {'episodeId': 'tt0959621', 'showId': 'tt0903747', 'title': 'Pilot', 'season': 1,
         'episode': 1, 'startYear': 2008, 'duration': 58, 'rating': 9.0, 'votes': 45000},
        {'episodeId': 'tt0705287', 'showId': 'tt0141842', 'title': 'The Sopranos', 'season': 1,
         'episode': 1, 'startYear': 1999, 'duration': 60, 'rating': 8.5, 'votes': 15000},
        {'episodeId': 'tt0664521', 'showId': 'tt0386676', 'title': 'Pilot', 'season': 1,
         'episode': 1, 'startYear': 2005, 'duration': 23, 'rating': 7.4, 'votes': 12000},
        {'episodeId': 'tt0000002', 'showId': 'tt0386676', 'title': 'Unaired', 'season': 10,
         'episode': 1, 'startYear': None, 'duration': None, 'rating': None, 'votes': None},
    ]


@pytest.fixture
def sample_genres() -> List[Dict]:
    """Genres inserted unsorted."""
    pairs = [
        ('tt0903747', 'Thriller'), ('tt0903747', 'Drama'), ('tt0903747', 'Crime'),
        ('tt0141842', 'Drama'), ('tt0141842', 'Crime'),
        ('tt0306414', 'Thriller'), ('tt0306414', 'Crime'), ('tt0306414', 'Drama'),
        ('tt0386676', 'Comedy'),
        ('tt7366338', 'History'), ('tt7366338', 'Drama'), ('tt7366338', 'Thriller'),
        ('tt0000001', 'Drama'),
    ]
    return [{'showId': show_id, 'genre': genre} for show_id, genre in pairs]


# ===== Database Fixtures =====

@pytest.fixture
def catalog_factory(tmp_path):
    """Build catalog snapshot files in a temporary directory."""

    def build(name: str, shows: List[Dict], episodes: List[Dict], genres: List[Dict] = ()) -> Path:
        path = tmp_path / name
        snapshot = CatalogSnapshot(path).open()
        try:
            CatalogBase.metadata.create_all(snapshot.engine)
            with snapshot.begin() as conn:
                if shows:
                    conn.execute(insert(Show), list(shows))
                if episodes:
                    conn.execute(insert(Episode), list(episodes))
                if genres:
                    conn.execute(insert(Genre), list(genres))
        finally:
            snapshot.close()
        return path

    return build


@pytest.fixture
def catalog_path(catalog_factory, sample_shows, sample_episodes, sample_genres) -> Path:
    return catalog_factory("20240102.snap", sample_shows, sample_episodes, sample_genres)


@pytest.fixture
def catalog_snapshot(catalog_path):
    """An open catalog snapshot with the sample data."""
    snapshot = CatalogSnapshot(catalog_path).open()
    yield snapshot
    if snapshot.is_open:
        snapshot.close()


@pytest.fixture
def user_store(tmp_path):
    """An open, empty user store."""
    store = UserStore(tmp_path / "users.snap").open()
    yield store
    if store.is_open:
        store.close()


# ===== HTTP Fixtures =====

@pytest.fixture
def make_request():
    """Build Azure Functions HTTP requests."""

    def build(
            method: str = 'GET',
            url: str = '/',
            params: Dict = None,
            headers: Dict = None,
            body: bytes = b''
    ) -> func.HttpRequest:
        return func.HttpRequest(
            method=method,
            url=url,
            headers=headers or {},
            params=params or {},
            route_params={},
            body=body
        )

    return build


@pytest.fixture
def test_configuration() -> Configuration:
    return Configuration(corsHost="https://tvratin.gs", jwtSecretKey="test-secret", jwtExpireSeconds=3600)


@pytest.fixture
def mock_backend(test_configuration, catalog_snapshot, user_store):
    """Backend with real stores and auth helpers, external services mocked."""
    backend = Mock()
    backend.configuration = test_configuration
    backend.live_snapshot = LiveSnapshot(catalog_snapshot)
    backend.read_catalog = backend.live_snapshot.acquire
    backend.user_store = user_store
    backend.token_manager = SignedTokenManager(test_configuration.jwtSecretKey)
    backend.login_rate_limiter = LoginRateLimiter()
    backend.recaptcha = Mock()
    backend.recaptcha.verify_token.return_value = True
    backend.mailer = Mock()
    return backend
