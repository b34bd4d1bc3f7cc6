"""Admin user-management endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, Query as QueryParam, Request

from jobradar.auth import AdminUser
from jobradar.models.profile import AdminUsersResponse, AdminUserUpdate, Profile
from jobradar.services.admin_service import AdminActionError, AdminService, UserNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_service(request: Request) -> AdminService:
    service = getattr(request.app.state, "admin_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Admin service unavailable")
    return service


@router.get("/users", response_model=AdminUsersResponse)
async def list_users(
    request: Request,
    admin: AdminUser,
    page: int = QueryParam(default=1, ge=1),
    limit: int | None = QueryParam(default=None, ge=1),
    search: str | None = None,
    account_type: str | None = None,
) -> AdminUsersResponse:
    service = _get_admin_service(request)
    try:
        return await service.list_users(page=page, limit=limit, search=search, account_type=account_type)
    except AdminActionError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/users/{user_id}", response_model=Profile)
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    request: Request,
    admin: AdminUser,
) -> Profile:
    service = _get_admin_service(request)
    try:
        return await service.update_user(admin.id, user_id, body)
    except AdminActionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, request: Request, admin: AdminUser) -> dict:
    service = _get_admin_service(request)
    try:
        await service.delete_user(admin.id, user_id)
    except AdminActionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "User deleted successfully"}
