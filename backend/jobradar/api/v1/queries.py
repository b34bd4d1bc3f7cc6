"""Search query endpoints. Creating and resuming queries require an active plan."""

import structlog
from fastapi import APIRouter, HTTPException, Request, Response

from jobradar.auth import CurrentUser
from jobradar.dependencies import get_entitlement_service, get_supabase
from jobradar.models.billing import EntitlementCheck
from jobradar.models.search import CreateQueryRequest, Query, UpdateQueryRequest
from jobradar.services import supabase_client as db
from jobradar.services.entitlements import check_can_create_query, check_can_resume_query

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/queries", tags=["queries"])


def _reject(user_id: str, action: str, check: EntitlementCheck) -> None:
    logger.info("query_action_not_entitled", user_id=user_id, action=action, needs_upgrade=check.needs_upgrade)
    raise HTTPException(status_code=403, detail=check.reason)


@router.get("", response_model=list[Query])
async def list_queries(request: Request, user: CurrentUser) -> list[Query]:
    rows = await db.list_queries(get_supabase(request), user.id)
    return [Query.model_validate(row) for row in rows]


@router.post("", response_model=Query, status_code=201)
async def create_query(body: CreateQueryRequest, request: Request, user: CurrentUser) -> Query:
    entitlements = await get_entitlement_service(request).get_entitlements(user.id)
    check = check_can_create_query(entitlements)
    if not check.allowed:
        _reject(user.id, "create", check)

    row = await db.create_query(get_supabase(request), user.id, body.model_dump())
    logger.info("query_created", user_id=user.id, query_id=row.get("id"))
    return Query.model_validate(row)


@router.patch("/{query_id}", response_model=Query)
async def update_query(
    query_id: int,
    body: UpdateQueryRequest,
    request: Request,
    user: CurrentUser,
) -> Query:
    """Edit a query. Re-activating a paused query counts as resuming it."""
    client = get_supabase(request)
    existing = await db.get_query(client, user.id, query_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Query not found")

    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    if updates.get("is_active") and not existing.get("is_active"):
        entitlements = await get_entitlement_service(request).get_entitlements(user.id)
        check = check_can_resume_query(entitlements)
        if not check.allowed:
            _reject(user.id, "resume", check)

    row = await db.update_query(client, user.id, query_id, updates)
    if row is None:
        raise HTTPException(status_code=404, detail="Query not found")
    logger.info("query_updated", user_id=user.id, query_id=query_id, fields=sorted(updates))
    return Query.model_validate(row)


@router.delete("/{query_id}", status_code=204)
async def delete_query(query_id: int, request: Request, user: CurrentUser) -> Response:
    deleted = await db.delete_query(get_supabase(request), user.id, query_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Query not found")
    logger.info("query_deleted", user_id=user.id, query_id=query_id)
    return Response(status_code=204)
