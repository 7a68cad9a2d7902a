"""Error taxonomy shared by the stores, the pipeline and the HTTP handlers."""


class TvRatingsError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class BadRequestError(TvRatingsError):
    """Missing or malformed input to a handler."""

    status_code = 400


class UnauthorizedError(TvRatingsError):
    """Token missing or signature mismatch."""

    status_code = 401


class NotFoundError(TvRatingsError):
    """Unknown resource, e.g. a showId that is not in the live snapshot."""

    status_code = 404


class RateLimitedError(TvRatingsError):
    """Login cap exceeded."""

    status_code = 429


class TransientError(TvRatingsError):
    """Network, mail or recaptcha failure."""

    status_code = 500


class FatalError(TvRatingsError):
    """Database open failure or import failure."""


class ConfigurationError(FatalError):
    """Configuration file could not be read."""


class SnapshotStoreError(FatalError):
    """Misuse of a snapshot store handle."""


class AlreadyConnectedError(SnapshotStoreError):
    """open() called on a store that is already open."""


class NotConnectedError(SnapshotStoreError):
    """close() or a query on a store that is not open."""


class DatasetImportError(FatalError):
    """A step of the dataset import failed."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step
