"""Passwordless login and follow lists."""
import azure.functions as func
import logging
from typing import Optional

from tvratings_service.blueprints.http_utils import (
    TOKEN_COOKIE_NAME,
    build_token_cookie,
    error_response,
    get_client_ip,
    get_cookie,
    json_response,
    parse_bool,
)
from tvratings_service.exceptions import (
    BadRequestError,
    RateLimitedError,
    TransientError,
    TvRatingsError,
    UnauthorizedError,
)
from tvratings_service.services import Backend, generate_verification_code, get_backend

# Initialize blueprint
bp = func.Blueprint()

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "your verification code"


def _get_string(body: dict, key: str) -> Optional[str]:
    value = body.get(key)
    return value if isinstance(value, str) and value else None


def _get_authenticated_email(req: func.HttpRequest, backend: Backend) -> str:
    email = backend.token_manager.verify_token(get_cookie(req, TOKEN_COOKIE_NAME))
    if email is None:
        raise UnauthorizedError("user not authenticated")
    return email


def send_verification_mail(backend: Backend, email: str, code: str) -> None:
    content = f"<html><h3>your verification code: {code}</h3></html>"
    backend.mailer.send_mail(email, VERIFICATION_SUBJECT, content)


@bp.route(route="login", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def login(req: func.HttpRequest) -> func.HttpResponse:
    """
    Two-step passwordless login.

    Body:
        - {email, recaptcha}: Email a new verification code
        - {email, recaptcha, code}: Check the code and set the jwt cookie
    """
    cors_host = None
    try:
        backend = get_backend()
        cors_host = backend.configuration.corsHost

        client_ip = get_client_ip(req)
        if not backend.login_rate_limiter.hit(client_ip):
            raise RateLimitedError("too many requests, try again in a minute")

        try:
            body = req.get_json()
        except ValueError:
            raise BadRequestError("invalid JSON body")
        if not isinstance(body, dict):
            raise BadRequestError("invalid JSON body")

        email = _get_string(body, 'email')
        if email is None:
            raise BadRequestError("email not found")

        recaptcha = _get_string(body, 'recaptcha')
        if not backend.recaptcha.verify_token(recaptcha):
            raise BadRequestError("recaptcha not found or invalid")

        code = _get_string(body, 'code')
        if code is None:
            verification_code = generate_verification_code()
            backend.user_store.add_verification_code(email, verification_code)
            logger.info(f"{email} send verification code")
            try:
                send_verification_mail(backend, email, verification_code)
            except TransientError as e:
                logger.error(f"Error while sending verification mail ({email}): {e.message}")
                raise TransientError("sending mail failed") from e
            return json_response({}, cors_host=cors_host)

        valid = backend.user_store.check_verification_code(email, code)
        logger.info(f"{email} check verification code {valid}")
        if not valid:
            raise BadRequestError("verification code invalid")

        backend.user_store.delete_verification_code(email)
        token = backend.token_manager.create_token(email)
        return json_response(
            {},
            cors_host=cors_host,
            headers={"Set-Cookie": build_token_cookie(token, backend.configuration.jwtExpireSeconds)}
        )

    except TvRatingsError as e:
        logger.error(f"Error logging in: {e.message}")
        return error_response(e.message, e.status_code, cors_host)
    except Exception as e:
        logger.error(f"Error logging in: {str(e)}", exc_info=True)
        return error_response("Internal server error", 500, cors_host)


@bp.route(route="followlist", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_follow_list(req: func.HttpRequest) -> func.HttpResponse:
    """Get the shows the authenticated user follows."""
    cors_host = None
    try:
        backend = get_backend()
        cors_host = backend.configuration.corsHost

        email = _get_authenticated_email(req, backend)
        logger.info(f"{email} followlist")

        with backend.read_catalog() as catalog:
            follows = backend.user_store.get_followed_shows(email, catalog.path)
        return json_response(follows, cors_host=cors_host)

    except TvRatingsError as e:
        logger.error(f"Error getting follow list: {e.message}")
        return error_response(e.message, e.status_code, cors_host)
    except Exception as e:
        logger.error(f"Error getting follow list: {str(e)}", exc_info=True)
        return error_response("Internal server error", 500, cors_host)


@bp.route(route="follow", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def follow(req: func.HttpRequest) -> func.HttpResponse:
    """
    Follow or unfollow a show.

    Query Parameters:
        - showId: IMDb id of the show
        - follow: true or false

    Returns the updated follow list.
    """
    cors_host = None
    try:
        backend = get_backend()
        cors_host = backend.configuration.corsHost

        show_id = req.params.get('showId')
        should_follow = parse_bool(req.params.get('follow'))
        if show_id is None or should_follow is None:
            raise BadRequestError("showId or follow not found")

        email = _get_authenticated_email(req, backend)

        if should_follow:
            backend.user_store.follow_show(email, show_id)
            logger.info(f"{email} followed {show_id}")
        else:
            backend.user_store.unfollow_show(email, show_id)
            logger.info(f"{email} unfollowed {show_id}")

        with backend.read_catalog() as catalog:
            follows = backend.user_store.get_followed_shows(email, catalog.path)
        return json_response(follows, cors_host=cors_host)

    except TvRatingsError as e:
        logger.error(f"Error updating follow: {e.message}")
        return error_response(e.message, e.status_code, cors_host)
    except Exception as e:
        logger.error(f"Error updating follow: {str(e)}", exc_info=True)
        return error_response("Internal server error", 500, cors_host)
