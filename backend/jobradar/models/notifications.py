"""Notification preference and delivery log models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobradar.constants import BUSINESS_HOURS, DEFAULT_TIMEZONE


class NotificationChannel(str, Enum):
    EMAIL = "email"
    MOBILE_PUSH = "mobile_push"
    WEB_PUSH = "web_push"
    WEBHOOK = "webhook"


class TriggerEvent(str, Enum):
    NEW_JOBS = "new_jobs"
    QUERY_COMPLETE = "query_complete"
    SYSTEM_ALERT = "system_alert"
    DIGEST = "digest"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class NotificationFrequency(str, Enum):
    IMMEDIATE = "immediate"
    HOURLY = "hourly"
    DAILY = "daily"


class SkipReason(str, Enum):
    """Why a notification was not delivered."""

    PLAN_INACTIVE = "plan_inactive"
    CHANNEL_DISABLED = "channel_disabled"
    WEBHOOK_URL_MISSING = "webhook_url_missing"
    QUIET_HOURS = "quiet_hours"


def _normalize_hours(value: list[int]) -> list[int]:
    out_of_range = [hour for hour in value if not 0 <= hour <= 23]
    if out_of_range:
        raise ValueError(f"Notification hours must be between 0 and 23: {out_of_range}")
    return sorted(set(value))


class NotificationPreferences(BaseModel):
    """A notification_preferences row, or the defaults when none exists."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    email_notifications: bool = True
    mobile_push_notifications: bool = False
    webhook_notifications: bool = False
    webhook_url: str | None = None
    notification_frequency: NotificationFrequency = NotificationFrequency.IMMEDIATE
    email_digest: bool = False
    respect_notification_hours: bool = False
    timezone: str = DEFAULT_TIMEZONE
    notification_hours: list[int] = Field(default_factory=lambda: list(BUSINESS_HOURS))
    data_sharing_consent: bool = False
    marketing_consent: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("notification_hours")
    @classmethod
    def _hours(cls, value: list[int]) -> list[int]:
        return _normalize_hours(value)


class NotificationPreferencesUpdate(BaseModel):
    """Partial update; only provided fields are written."""

    model_config = ConfigDict(extra="forbid")

    email_notifications: bool | None = None
    mobile_push_notifications: bool | None = None
    webhook_notifications: bool | None = None
    webhook_url: str | None = None
    notification_frequency: NotificationFrequency | None = None
    email_digest: bool | None = None
    respect_notification_hours: bool | None = None
    timezone: str | None = None
    notification_hours: list[int] | None = None
    data_sharing_consent: bool | None = None
    marketing_consent: bool | None = None

    @field_validator("notification_hours")
    @classmethod
    def _hours(cls, value: list[int] | None) -> list[int] | None:
        return None if value is None else _normalize_hours(value)

    @field_validator("webhook_url")
    @classmethod
    def _strip_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class NotificationLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: str
    notification_type: NotificationChannel
    trigger_event: TriggerEvent
    job_count: int = 0
    query_ids: list[int] = Field(default_factory=list)
    status: DeliveryStatus
    recipient: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] | None = None
    sent_at: datetime | None = None
    created_at: datetime | None = None


class SendNotificationRequest(BaseModel):
    notification_type: NotificationChannel
    trigger_event: TriggerEvent
    job_count: int = Field(default=0, ge=0)
    query_ids: list[int] = Field(default_factory=list)
    recipient: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DeliveryDecision(BaseModel):
    deliver: bool
    reason: SkipReason | None = None


class NotificationStatus(BaseModel):
    email_enabled: bool
    push_enabled: bool
    webhook_enabled: bool
    last_email_sent: datetime | None = None
    last_push_sent: datetime | None = None
    last_webhook_sent: datetime | None = None
    total_notifications_sent: int = 0
    failed_notifications: int = 0


class UnreadNotifications(BaseModel):
    unread_count: int
    notifications: list[NotificationLog]
