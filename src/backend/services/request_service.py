"""
Request board: feature requests and bug reports from visitors.
"""

from datetime import timedelta

import structlog

from core.config import settings
from core.exceptions import AuthenticationError, NotFoundError, RateLimitExceededError, ValidationError
from core.security import hash_password, verify_password
from models.cosmos_documents import AdminReply, RequestDocument, utcnow
from repositories.provider import RequestRepositoryProtocol
from schemas.board import RequestCreate, RequestUpdate

logger = structlog.get_logger(__name__)


class RequestService:
    def __init__(self, request_repo: RequestRepositoryProtocol):
        self.request_repo = request_repo

    async def get_request(self, request_id: str) -> RequestDocument:
        request = await self.request_repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    async def view_request(self, request_id: str) -> RequestDocument:
        request = await self.get_request(request_id)
        return await self.request_repo.increment_views(request_id) or request

    async def create_request(self, payload: RequestCreate, fingerprint: str) -> RequestDocument:
        since = utcnow() - timedelta(days=1)
        if await self.request_repo.count_since(fingerprint, since) >= settings.REQUEST_DAILY_LIMIT:
            logger.warning("request_daily_limit_reached", client=fingerprint[:8])
            raise RateLimitExceededError("Daily request limit reached. Please try again tomorrow.")

        request = RequestDocument(
            title=payload.title.strip(),
            content=payload.content.strip(),
            author_nickname=payload.author_nickname.strip(),
            author_ip_hash=fingerprint,
            password_hash=hash_password(payload.password),
            is_public=payload.is_public,
        )
        await self.request_repo.create(request)
        return request

    def _check_password(self, request: RequestDocument, password: str) -> None:
        if not password:
            raise ValidationError("Password is required")
        if not verify_password(password, request.password_hash):
            raise AuthenticationError("Incorrect password")

    async def update_request(self, request_id: str, payload: RequestUpdate) -> RequestDocument:
        request = await self.get_request(request_id)
        self._check_password(request, payload.password)
        for field, value in payload.model_dump(exclude={"password"}, exclude_none=True).items():
            setattr(request, field, value.strip() if isinstance(value, str) else value)
        return await self.request_repo.update(request)

    async def delete_request(self, request_id: str, password: str) -> None:
        request = await self.get_request(request_id)
        self._check_password(request, password)
        request.is_deleted = True
        await self.request_repo.update(request)
        logger.info("request_deleted", request_id=request_id)

    async def reply(self, request_id: str, content: str, replied_by: str) -> RequestDocument:
        request = await self.get_request(request_id)
        request.admin_reply = AdminReply(content=content.strip(), replied_at=utcnow(), replied_by=replied_by)
        logger.info("request_replied", request_id=request_id, by=replied_by)
        return await self.request_repo.update(request)
