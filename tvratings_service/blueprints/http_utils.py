"""Response and request helpers shared by the blueprints."""
import json
import logging
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Optional

import azure.functions as func

logger = logging.getLogger(__name__)

TOKEN_COOKIE_NAME = "jwt"


def cors_headers(cors_host: Optional[str]) -> Dict[str, str]:
    if not cors_host:
        return {}
    return {
        "Access-Control-Allow-Origin": cors_host,
        "Access-Control-Allow-Credentials": "true",
    }


def json_response(
        payload: Any,
        status_code: int = 200,
        cors_host: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload, default=str),
        status_code=status_code,
        headers={**cors_headers(cors_host), **(headers or {})},
        mimetype="application/json"
    )


def error_response(message: str, status_code: int, cors_host: Optional[str] = None) -> func.HttpResponse:
    return json_response({"error": message}, status_code=status_code, cors_host=cors_host)


def get_header(req: func.HttpRequest, name: str) -> Optional[str]:
    headers = req.headers or {}
    return headers.get(name) or headers.get(name.lower())


def get_cookie(req: func.HttpRequest, name: str) -> Optional[str]:
    """Value of a request cookie, or None."""
    raw = get_header(req, "Cookie")
    if not raw:
        return None

    cookie = SimpleCookie()
    try:
        cookie.load(raw)
    except CookieError as e:
        logger.warning(f"Ignoring malformed cookie header: {e}")
        return None

    morsel = cookie.get(name)
    return morsel.value if morsel is not None else None


def build_token_cookie(token: str, max_age: int) -> str:
    """Set-Cookie value for the session token."""
    return f"{TOKEN_COOKIE_NAME}={token}; Max-Age={max_age}; Path=/; SameSite=Strict; Secure; HttpOnly"


def get_client_ip(req: func.HttpRequest) -> str:
    """
    Client address as seen by the Functions host.

    X-Forwarded-For holds 'ip:port' entries; the first one is the client.
    """
    forwarded = get_header(req, "X-Forwarded-For")
    if forwarded:
        client = forwarded.split(",")[0].strip()
        if client.startswith("["):
            # [ipv6]:port
            return client[1:].split("]")[0]
        if client.count(":") == 1:
            return client.split(":")[0]
        return client

    return get_header(req, "X-Client-IP") or "unknown"


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """'true'/'false' in any case, None for anything else."""
    if value is None:
        return None
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None
