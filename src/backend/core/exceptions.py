"""
Application error taxonomy.

Domain code raises these; the handlers registered in ``main`` turn them into
``{"error": message}`` JSON responses with the matching status code.
"""


class AppError(Exception):
    """
    Base exception for all application errors.

    Subclasses only override the defaults; callers may still pass a more
    specific message.
    """

    default_status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        super().__init__(self.message)


# ============================================================================
# 400
# ============================================================================


class ValidationError(AppError):
    """Malformed or missing input."""

    default_status_code = 400
    default_message = "Invalid request"


# ============================================================================
# 401
# ============================================================================


class AuthenticationError(AppError):
    """Missing or invalid credentials."""

    default_status_code = 401
    default_message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    """Token signature, claims or expiry could not be verified."""

    default_message = "Invalid or expired token"


# ============================================================================
# 403
# ============================================================================


class AuthorizationError(AppError):
    """Valid identity, insufficient rights."""

    default_status_code = 403
    default_message = "Permission denied"


class DuplicateVoteError(AuthorizationError):
    """Raised when a fingerprint tries to vote twice on the same debate."""

    default_message = "You have already voted on this debate"


class VotingClosedError(AuthorizationError):
    """Raised when a debate is not accepting votes."""

    default_message = "This debate is not accepting votes"


class ResponseClosedError(AuthorizationError):
    """Raised when a survey is not accepting responses."""

    default_message = "This survey is not accepting responses"


# ============================================================================
# 404 / 409 / 429 / 500
# ============================================================================


class NotFoundError(AppError):
    """Unknown id or soft-deleted entity."""

    default_status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    """Uniqueness violation outside of voting."""

    default_status_code = 409
    default_message = "Resource already exists"


class RateLimitExceededError(AppError):
    """Raised when a daily posting limit is exceeded."""

    default_status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class InternalError(AppError):
    """Persistence or unexpected failure."""

    default_status_code = 500
    default_message = "Internal server error"
