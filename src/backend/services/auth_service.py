"""
Admin authentication.

Credentials are checked against the environment super admin first and then
against stored admin accounts. Both paths fail with the same message so a
caller cannot tell which factor was wrong.
"""

from datetime import datetime
from typing import Any, Optional

import structlog

from core.config import settings
from core.exceptions import AuthenticationError, ConflictError, ValidationError
from core.security import (
    REFRESH_TOKEN,
    constant_time_equals,
    create_admin_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from models.cosmos_documents import AdminDocument, AdminRole, utcnow
from repositories.provider import AdminRepositoryProtocol
from schemas.auth import AdminRegister, AdminUser

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


class AuthService:
    def __init__(self, admin_repo: AdminRepositoryProtocol):
        self.admin_repo = admin_repo

    def _check_env_super_admin(self, username: str, password: str) -> bool:
        if not settings.SUPER_ADMIN_PASSWORD:
            return False
        username_ok = constant_time_equals(username, settings.SUPER_ADMIN_USERNAME)
        password_ok = constant_time_equals(password, settings.SUPER_ADMIN_PASSWORD)
        return username_ok and password_ok

    async def authenticate(self, username: str, password: str, now: Optional[datetime] = None) -> AdminUser:
        """
        Resolve credentials to an admin identity.

        Raises:
            ValidationError: username or password missing
            AuthenticationError: credentials do not match an active admin
        """
        if not username or not password:
            raise ValidationError("Username and password are required")

        if self._check_env_super_admin(username, password):
            logger.info("admin_login", username=username, source="environment")
            return AdminUser(username=username, role=AdminRole.SUPER_ADMIN.value)

        admin = await self.admin_repo.get_by_username(username)
        if admin is None or not admin.is_active or not verify_password(password, admin.password_hash):
            logger.warning("admin_login_failed", username=username)
            raise AuthenticationError(INVALID_CREDENTIALS)

        await self.admin_repo.touch_last_login(admin.id, now or utcnow())
        logger.info("admin_login", username=username, source="stored")
        return AdminUser(username=admin.username, role=admin.role)

    def issue_tokens(self, user: AdminUser) -> tuple[str, str]:
        """Access and refresh token pair for an authenticated admin."""
        claims = user.model_dump()
        return create_admin_token(claims), create_refresh_token(claims)

    def refresh(self, refresh_token: Optional[str]) -> tuple[str, AdminUser]:
        """Exchange a refresh token for a new admin token."""
        if not refresh_token:
            raise AuthenticationError("Refresh token is required")
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN)
        user = user_from_claims(payload)
        if user is None:
            raise AuthenticationError("Invalid refresh token")
        return create_admin_token(user.model_dump()), user

    async def register_admin(self, payload: AdminRegister) -> AdminDocument:
        email = payload.email.strip().lower()
        if await self.admin_repo.exists(payload.username, email):
            raise ConflictError("Admin account already exists")

        admin = AdminDocument(
            username=payload.username,
            email=email,
            password_hash=hash_password(payload.password),
            role=payload.role,
        )
        await self.admin_repo.create(admin)
        logger.info("admin_registered", username=admin.username, role=admin.role)
        return admin


def user_from_claims(payload: dict[str, Any]) -> Optional[AdminUser]:
    username = payload.get("username")
    role = payload.get("role")
    if not username or role not in (AdminRole.ADMIN.value, AdminRole.SUPER_ADMIN.value):
        return None
    return AdminUser(username=username, role=role)
