"""Profile and notification preference endpoints for the signed-in user."""

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from jobradar.auth import CurrentUser
from jobradar.dependencies import get_profile_repository, get_supabase
from jobradar.models.notifications import NotificationPreferences, NotificationPreferencesUpdate
from jobradar.models.profile import Profile, ProfileUpdate
from jobradar.services import supabase_client as db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=Profile)
async def get_profile(request: Request, user: CurrentUser) -> Profile:
    repository = get_profile_repository(request)
    profile = await repository.get_profile(user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.patch("", response_model=Profile)
async def update_profile(body: ProfileUpdate, request: Request, user: CurrentUser) -> Profile:
    """Update the caller's display fields. Billing and account fields are not editable here."""
    repository = get_profile_repository(request)
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No editable fields provided")

    profile = await repository.update_profile(user.id, fields)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    logger.info("profile_updated", user_id=user.id, fields=sorted(fields))
    return profile


@router.get("/notification-preferences", response_model=NotificationPreferences)
async def get_notification_preferences(request: Request, user: CurrentUser) -> NotificationPreferences:
    """Stored preferences, or the defaults when the user never saved any."""
    return await db.load_notification_preferences(get_supabase(request), user.id)


@router.put("/notification-preferences", response_model=NotificationPreferences)
async def update_notification_preferences(
    body: NotificationPreferencesUpdate,
    request: Request,
    user: CurrentUser,
) -> NotificationPreferences:
    client = get_supabase(request)
    current = await db.load_notification_preferences(client, user.id)
    changes = body.model_dump(exclude_unset=True)

    try:
        merged = NotificationPreferences.model_validate(current.model_dump() | changes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    row = await db.upsert_notification_preferences(client, user.id, merged.model_dump(mode="json"))
    logger.info("notification_preferences_updated", user_id=user.id, fields=sorted(changes))
    return NotificationPreferences.model_validate(row)
