"""
Request board endpoints.
"""

from fastapi import APIRouter, Depends, Query, status

from api.deps import Fingerprint, OptionalAdmin
from core.exceptions import NotFoundError
from models.cosmos_documents import RequestDocument
from repositories.provider import RequestRepositoryProtocol, get_request_repository
from schemas.board import RequestCreate, RequestListResponse, RequestPublic, RequestUpdate
from schemas.common import MessageResponse, Pagination
from schemas.debate import PasswordVerify
from services.request_service import RequestService

router = APIRouter()


def _public(request: RequestDocument) -> RequestPublic:
    return RequestPublic.model_validate(request.model_dump())


@router.get("", response_model=RequestListResponse)
async def list_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
) -> RequestListResponse:
    """Public requests only, newest first."""
    requests, total = await request_repo.list_public(page=page, limit=limit)
    return RequestListResponse(
        requests=[_public(request) for request in requests],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=RequestPublic, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: RequestCreate,
    fingerprint: Fingerprint,
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
) -> RequestPublic:
    request = await RequestService(request_repo).create_request(payload, fingerprint)
    return _public(request)


@router.get("/{request_id}", response_model=RequestPublic)
async def get_request(
    request_id: str,
    admin: OptionalAdmin,
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
) -> RequestPublic:
    service = RequestService(request_repo)
    request = await service.get_request(request_id)
    if not request.is_public and admin is None:
        raise NotFoundError("Request not found")
    return _public(await service.view_request(request_id))


@router.put("/{request_id}", response_model=RequestPublic)
async def update_request(
    request_id: str,
    payload: RequestUpdate,
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
) -> RequestPublic:
    request = await RequestService(request_repo).update_request(request_id, payload)
    return _public(request)


@router.delete("/{request_id}", response_model=MessageResponse)
async def delete_request(
    request_id: str,
    payload: PasswordVerify,
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
) -> MessageResponse:
    await RequestService(request_repo).delete_request(request_id, payload.password)
    return MessageResponse(message="Request deleted")
