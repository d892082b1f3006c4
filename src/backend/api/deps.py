"""
Shared dependencies for API endpoints.

Includes:
- Client identification (IP resolution and fingerprinting)
- Admin JWT authentication (header or cookie)
- Author sessions for debates and surveys
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

import structlog
from fastapi import Depends, Request, Response

from core.config import settings
from core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from core.security import (
    ADMIN_TOKEN,
    DEBATE_AUTHOR_TOKEN,
    SURVEY_AUTHOR_TOKEN,
    constant_time_equals,
    decode_token,
    hash_identifier,
    hash_token,
)
from models.cosmos_documents import AdminRole, DebateDocument, SurveyDocument
from repositories.provider import (
    DebateRepositoryProtocol,
    SurveyRepositoryProtocol,
    get_debate_repository,
    get_survey_repository,
)
from schemas.auth import AdminUser
from services.auth_service import user_from_claims

logger = structlog.get_logger(__name__)

ADMIN_COOKIE = "admin_token"
REFRESH_COOKIE = "admin_refresh_token"


# =============================================================================
# Client identification
# =============================================================================


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For entry, then X-Real-IP, else "unknown"."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return "unknown"


def get_fingerprint(request: Request) -> str:
    """Salted digest of the client IP. The raw address is never stored."""
    return hash_identifier(get_client_ip(request))


Fingerprint = Annotated[str, Depends(get_fingerprint)]


# =============================================================================
# Cookies and downloads
# =============================================================================


def debate_author_cookie(debate_id: str) -> str:
    return f"debate_author_{debate_id}"


def survey_author_cookie(survey_id: str) -> str:
    return f"survey_author_{survey_id}"


def set_auth_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


def clear_auth_cookie(response: Response, name: str) -> None:
    response.delete_cookie(key=name, path="/", httponly=True, samesite="lax", secure=settings.cookie_secure)


def csv_attachment(content: str, filename: str) -> Response:
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================================================
# Admin authentication
# =============================================================================


def get_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def extract_admin_token(request: Request) -> Optional[str]:
    """Authorization header first, then the admin cookie."""
    return get_bearer_token(request) or request.cookies.get(ADMIN_COOKIE) or None


def admin_from_token(token: Optional[str]) -> Optional[AdminUser]:
    if not token:
        return None
    try:
        payload = decode_token(token, expected_type=ADMIN_TOKEN)
    except AuthenticationError:
        return None
    return user_from_claims(payload)


async def get_current_admin_optional(request: Request) -> Optional[AdminUser]:
    """
    Resolve the admin behind the request, if any.

    Returns None instead of raising; used where admins merely get extra powers.
    """
    return admin_from_token(extract_admin_token(request))


async def require_admin(request: Request) -> AdminUser:
    """
    Ensure the request carries a valid admin token.

    Raises:
        AuthenticationError: missing, invalid or expired token.
    """
    token = extract_admin_token(request)
    if not token:
        raise AuthenticationError("Admin authentication required")
    admin = admin_from_token(token)
    if admin is None:
        logger.warning("admin_token_rejected", path=request.url.path)
        raise AuthenticationError("Invalid or expired token")
    return admin


async def require_super_admin(
    admin: Annotated[AdminUser, Depends(require_admin)],
) -> AdminUser:
    if admin.role != AdminRole.SUPER_ADMIN.value:
        logger.warning("non_super_admin_access_attempt", username=admin.username)
        raise AuthorizationError("Super admin access required")
    return admin


CurrentAdmin = Annotated[AdminUser, Depends(require_admin)]
OptionalAdmin = Annotated[Optional[AdminUser], Depends(get_current_admin_optional)]


# =============================================================================
# Author sessions
# =============================================================================


def _author_token_matches(
    token: str,
    token_type: str,
    resource_id: str,
    stored_hash: Optional[str],
    stored_expiry: Optional[datetime],
) -> bool:
    try:
        payload = decode_token(token, expected_type=token_type)
    except AuthenticationError:
        return False
    if payload.get("sub") != resource_id or not stored_hash:
        return False
    if stored_expiry is not None and stored_expiry < datetime.now(timezone.utc):
        return False
    return constant_time_equals(hash_token(token), stored_hash)


def is_author_or_admin(
    request: Request,
    token_type: str,
    resource_id: str,
    cookie_name: str,
    stored_hash: Optional[str],
    stored_expiry: Optional[datetime],
) -> Optional[bool]:
    """
    True when any presented token grants access, False when tokens were
    presented but none grants it, None when no token was presented at all.
    """
    candidates = [
        token
        for token in (get_bearer_token(request), request.cookies.get(cookie_name), request.cookies.get(ADMIN_COOKIE))
        if token
    ]
    if not candidates:
        return None
    for token in candidates:
        if admin_from_token(token) is not None:
            return True
        if _author_token_matches(token, token_type, resource_id, stored_hash, stored_expiry):
            return True
    return False


def _enforce(granted: Optional[bool], kind: str, resource_id: str) -> None:
    if granted is None:
        raise AuthenticationError("Authentication required")
    if not granted:
        logger.warning("author_access_denied", kind=kind, resource_id=resource_id)
        raise AuthorizationError(f"You are not allowed to manage this {kind}")


async def require_debate_author(
    debate_id: str,
    request: Request,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> DebateDocument:
    """Load the debate and check the caller holds its author session or is an admin."""
    debate = await debate_repo.get_by_id(debate_id)
    if debate is None:
        raise NotFoundError("Debate not found")
    granted = is_author_or_admin(
        request,
        DEBATE_AUTHOR_TOKEN,
        debate.id,
        debate_author_cookie(debate.id),
        debate.author_token_hash,
        debate.author_token_expires,
    )
    _enforce(granted, "debate", debate.id)
    return debate


async def require_survey_author(
    survey_id: str,
    request: Request,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
) -> SurveyDocument:
    survey = await survey_repo.get_by_id(survey_id)
    if survey is None:
        raise NotFoundError("Survey not found")
    granted = is_author_or_admin(
        request,
        SURVEY_AUTHOR_TOKEN,
        survey.id,
        survey_author_cookie(survey.id),
        survey.author_token_hash,
        survey.author_token_expires,
    )
    _enforce(granted, "survey", survey.id)
    return survey


def has_author_access(request: Request, debate: DebateDocument) -> bool:
    """Non-raising variant used to force results for authors and admins."""
    return bool(
        is_author_or_admin(
            request,
            DEBATE_AUTHOR_TOKEN,
            debate.id,
            debate_author_cookie(debate.id),
            debate.author_token_hash,
            debate.author_token_expires,
        )
    )
