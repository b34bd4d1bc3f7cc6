"""Notification log endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, Query as QueryParam, Request

from jobradar.auth import CurrentUser
from jobradar.constants import NOTIFICATION_STATUS_WINDOW
from jobradar.dependencies import get_entitlement_service, get_supabase
from jobradar.models.notifications import (
    DeliveryDecision,
    NotificationLog,
    NotificationStatus,
    SendNotificationRequest,
    UnreadNotifications,
)
from jobradar.services import supabase_client as db
from jobradar.services.notification_service import (
    build_log_entry,
    count_unread,
    decide_delivery,
    summarize_status,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationTestResult(NotificationLog):
    decision: DeliveryDecision


@router.get("/logs", response_model=list[NotificationLog])
async def list_logs(
    request: Request,
    user: CurrentUser,
    limit: int = QueryParam(default=50, ge=1, le=200),
    offset: int = QueryParam(default=0, ge=0),
) -> list[NotificationLog]:
    rows = await db.list_notification_logs(get_supabase(request), user.id, limit=limit, offset=offset)
    return [NotificationLog.model_validate(row) for row in rows]


@router.get("/status", response_model=NotificationStatus)
async def notification_status(request: Request, user: CurrentUser) -> NotificationStatus:
    client = get_supabase(request)
    prefs = await db.load_notification_preferences(client, user.id)
    rows = await db.list_notification_logs(client, user.id, limit=NOTIFICATION_STATUS_WINDOW)
    return summarize_status(prefs, [NotificationLog.model_validate(row) for row in rows])


@router.get("/unread", response_model=UnreadNotifications)
async def unread_notifications(request: Request, user: CurrentUser) -> UnreadNotifications:
    rows = await db.list_recent_sent_logs(get_supabase(request), user.id)
    return count_unread([NotificationLog.model_validate(row) for row in rows])


@router.post("/logs/{log_id}/read", response_model=NotificationLog)
async def mark_read(log_id: int, request: Request, user: CurrentUser) -> NotificationLog:
    row = await db.mark_notification_read(get_supabase(request), user.id, log_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationLog.model_validate(row)


@router.post("/test", response_model=NotificationTestResult, status_code=201)
async def send_test_notification(
    body: SendNotificationRequest,
    request: Request,
    user: CurrentUser,
) -> NotificationTestResult:
    """
    Record a test notification on the requested channel.

    Nothing is delivered; the log entry is marked sent or skipped according
    to the caller's preferences, plan and quiet hours.
    """
    client = get_supabase(request)
    prefs = await db.load_notification_preferences(client, user.id)
    entitlements = await get_entitlement_service(request).get_entitlements(user.id)
    decision = decide_delivery(prefs, body.notification_type, entitlements)

    attempt = body.model_copy(update={"recipient": body.recipient or user.email})
    row = await db.insert_notification_log(client, build_log_entry(user.id, attempt, decision, test=True))
    logger.info(
        "test_notification_recorded",
        user_id=user.id,
        channel=body.notification_type.value,
        deliver=decision.deliver,
        reason=decision.reason.value if decision.reason else None,
    )
    return NotificationTestResult.model_validate({**row, "decision": decision.model_dump()})
