"""Read-only catalog endpoints."""
import azure.functions as func
import logging

from tvratings_service.blueprints.http_utils import error_response, get_client_ip, json_response
from tvratings_service.exceptions import BadRequestError, NotFoundError, TvRatingsError
from tvratings_service.repos import SearchParameters
from tvratings_service.services import get_backend

# Initialize blueprint
bp = func.Blueprint()

logger = logging.getLogger(__name__)


# noinspection PyUnusedLocal
@bp.route(route="{ignored:maxlength(0)?}", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def hello(req: func.HttpRequest) -> func.HttpResponse:
    """Liveness check."""
    return func.HttpResponse("hello world", status_code=200, mimetype="text/plain")


@bp.route(route="search", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def search(req: func.HttpRequest) -> func.HttpResponse:
    """
    Search shows or episodes.

    Query Parameters:
        - type: shows (default) or episodes
        - titleSearch: Title fragment, non-alphanumeric characters match anything
        - minVotes, maxVotes, minRating, maxRating, minYear, maxYear, minDuration, maxDuration
        - genres: Comma separated genres, all must match
        - sortColumn: votes (default), rating, startYear or title
        - sortOrder: DESC (default) or ASC
        - pageNumber: 0-based page (default: 0)
        - pageLimit: Rows per page (default and max: 100)

    Example: /search?type=shows&sortColumn=VoTeS&minRating=9&sortOrder=desc&genres=DRAMA,crime&pageLimit=10
    """
    cors_host = None
    try:
        backend = get_backend()
        cors_host = backend.configuration.corsHost

        logger.info(f"{get_client_ip(req)} search")

        with backend.read_catalog() as catalog:
            results = catalog.search(SearchParameters.from_query_params(req.params))
        return json_response(results, cors_host=cors_host)

    except TvRatingsError as e:
        logger.error(f"Error searching: {e.message}")
        return error_response(e.message, e.status_code, cors_host)
    except Exception as e:
        logger.error(f"Error searching: {str(e)}", exc_info=True)
        return error_response("Internal server error", 500, cors_host)


@bp.route(route="show", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_show(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get a show and its episodes.

    Query Parameters:
        - showId: IMDb id of the show, e.g. tt0903747
    """
    cors_host = None
    try:
        backend = get_backend()
        cors_host = backend.configuration.corsHost

        show_id = req.params.get('showId')
        if show_id is None:
            raise BadRequestError("showId not found")

        logger.info(f"{get_client_ip(req)} show {show_id}")

        with backend.read_catalog() as catalog:
            show = catalog.get_show(show_id)
            if show is None:
                raise NotFoundError(f"showId {show_id} not found")
            episodes = catalog.get_show_episodes(show_id)

        return json_response({"show": show, "episodes": episodes}, cors_host=cors_host)

    except TvRatingsError as e:
        logger.error(f"Error getting show: {e.message}")
        return error_response(e.message, e.status_code, cors_host)
    except Exception as e:
        logger.error(f"Error getting show: {str(e)}", exc_info=True)
        return error_response("Internal server error", 500, cors_host)


# noinspection PyUnusedLocal
@bp.route(route="genres", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_genres(req: func.HttpRequest) -> func.HttpResponse:
    """Get all genres, sorted."""
    cors_host = None
    try:
        backend = get_backend()
        cors_host = backend.configuration.corsHost

        with backend.read_catalog() as catalog:
            genres = catalog.get_genres()
        return json_response(genres, cors_host=cors_host)

    except TvRatingsError as e:
        logger.error(f"Error getting genres: {e.message}")
        return error_response(e.message, e.status_code, cors_host)
    except Exception as e:
        logger.error(f"Error getting genres: {str(e)}", exc_info=True)
        return error_response("Internal server error", 500, cors_host)
