"""Per-client request caps."""
import logging

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

logger = logging.getLogger(__name__)

LOGIN_RATE_LIMIT = "3/minute"


class LoginRateLimiter:
    """Rolling-window limit keyed by client IP, kept in process memory."""

    def __init__(self, limit: str = LOGIN_RATE_LIMIT, namespace: str = "login"):
        self.limit = parse(limit)
        self.namespace = namespace
        self._limiter = MovingWindowRateLimiter(MemoryStorage())

    def hit(self, client_ip: str) -> bool:
        """
        Count one request.

        Returns:
            False if the client is over the limit
        """
        allowed = self._limiter.hit(self.limit, self.namespace, client_ip)
        if not allowed:
            logger.warning(f"Rate limit {self.limit} exceeded by {client_ip}")
        return allowed
