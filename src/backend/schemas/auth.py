"""
Admin authentication schemas.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.cosmos_documents import AdminRole


class AdminLogin(BaseModel):
    """Login form. Empty values are rejected by the service with a 400."""

    model_config = ConfigDict(extra="forbid")

    username: str = ""
    password: str = ""


class AdminRegister(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=3, max_length=20)
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=8)
    role: AdminRole = AdminRole.SUPER_ADMIN


class AdminUser(BaseModel):
    """Identity carried in admin tokens."""

    username: str
    role: str
    isAdmin: bool = True


class AdminLoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    accessToken: str
    user: AdminUser


class AdminPublic(BaseModel):
    id: str
    username: str
    email: str
    role: str


class AdminCreatedResponse(BaseModel):
    message: str = "Admin account created"
    admin: AdminPublic


class CheckAuthResponse(BaseModel):
    authenticated: bool
    user: Optional[AdminUser] = None


class RefreshTokenRequest(BaseModel):
    """Refresh token may also arrive in the refresh cookie."""

    model_config = ConfigDict(extra="forbid")

    refresh_token: Optional[str] = None


class RefreshTokenResponse(BaseModel):
    success: bool = True
    token: str
    accessToken: str
