"""
Domain errors raised by the services.

Every mutating operation either returns the affected record or raises exactly
one of these. The API layer maps them onto HTTP status codes in ``main.py``.
"""


class BunkhouseError(Exception):
    """Base class for all domain errors"""

    code = "error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code


class ConflictError(BunkhouseError):
    """A uniqueness constraint was violated at the storage layer.

    Recoverable: pick another target or re-read and retry.
    """

    code = "conflict"


class AuthorizationError(BunkhouseError):
    """Missing role (non-admin) or missing ownership (someone else's claim)."""

    code = "forbidden"


class PreconditionError(BunkhouseError):
    """The client acted on stale state: window not open, bed in another house, etc."""

    code = "precondition_failed"


class NotFoundError(BunkhouseError):
    code = "not_found"
