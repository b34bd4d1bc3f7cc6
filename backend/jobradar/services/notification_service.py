"""
Notification delivery rules.

Pure functions over NotificationPreferences and NotificationLog rows: the
defaults used when a user has never saved preferences, the quiet-hours
check, the per-channel delivery decision and the status/unread summaries
shown on the settings page.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from jobradar.constants import NOTIFICATION_STATUS_WINDOW, UNREAD_WINDOW
from jobradar.models.billing import EntitlementView
from jobradar.models.notifications import (
    DeliveryDecision,
    DeliveryStatus,
    NotificationChannel,
    NotificationLog,
    NotificationPreferences,
    NotificationStatus,
    SendNotificationRequest,
    SkipReason,
    UnreadNotifications,
)

logger = structlog.get_logger(__name__)


def default_preferences(user_id: str) -> NotificationPreferences:
    """Preferences for a user with no stored row."""
    return NotificationPreferences(user_id=user_id)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("notification_timezone_invalid", timezone=name)
        return ZoneInfo("UTC")


def is_within_notification_hours(
    prefs: NotificationPreferences, at: datetime | None = None
) -> bool:
    """True when a notification may be sent at ``at`` (defaults to now).

    Naive datetimes are taken to be UTC.
    """
    if not prefs.respect_notification_hours:
        return True

    at = at or datetime.now(UTC)
    if at.tzinfo is None:
        at = at.replace(tzinfo=UTC)
    local_hour = at.astimezone(_zone(prefs.timezone)).hour
    return local_hour in prefs.notification_hours


def _channel_enabled(prefs: NotificationPreferences, channel: NotificationChannel) -> bool:
    if channel == NotificationChannel.EMAIL:
        return prefs.email_notifications
    if channel in {NotificationChannel.MOBILE_PUSH, NotificationChannel.WEB_PUSH}:
        return prefs.mobile_push_notifications
    return prefs.webhook_notifications


def decide_delivery(
    prefs: NotificationPreferences,
    channel: NotificationChannel,
    entitlements: EntitlementView,
    at: datetime | None = None,
) -> DeliveryDecision:
    """Decide whether a notification on ``channel`` goes out now.

    Checks run in order: plan, channel toggle, webhook URL, quiet hours.
    """
    if not (entitlements.is_active or entitlements.is_trial):
        return DeliveryDecision(deliver=False, reason=SkipReason.PLAN_INACTIVE)
    if not _channel_enabled(prefs, channel):
        return DeliveryDecision(deliver=False, reason=SkipReason.CHANNEL_DISABLED)
    if channel == NotificationChannel.WEBHOOK and not prefs.webhook_url:
        return DeliveryDecision(deliver=False, reason=SkipReason.WEBHOOK_URL_MISSING)
    if not is_within_notification_hours(prefs, at):
        return DeliveryDecision(deliver=False, reason=SkipReason.QUIET_HOURS)
    return DeliveryDecision(deliver=True)


def _last_sent(logs: list[NotificationLog], channels: set[NotificationChannel]) -> datetime | None:
    sent = [
        log.sent_at or log.created_at
        for log in logs
        if log.status == DeliveryStatus.SENT and log.notification_type in channels
    ]
    sent = [value for value in sent if value is not None]
    return max(sent) if sent else None


def summarize_status(
    prefs: NotificationPreferences, logs: list[NotificationLog]
) -> NotificationStatus:
    """Channel toggles plus delivery counts over the most recent logs."""
    recent = sorted(
        logs,
        key=lambda log: log.created_at or datetime.min.replace(tzinfo=UTC),
        reverse=True,
    )[:NOTIFICATION_STATUS_WINDOW]

    return NotificationStatus(
        email_enabled=prefs.email_notifications,
        push_enabled=prefs.mobile_push_notifications,
        webhook_enabled=prefs.webhook_notifications,
        last_email_sent=_last_sent(recent, {NotificationChannel.EMAIL}),
        last_push_sent=_last_sent(
            recent, {NotificationChannel.MOBILE_PUSH, NotificationChannel.WEB_PUSH}
        ),
        last_webhook_sent=_last_sent(recent, {NotificationChannel.WEBHOOK}),
        total_notifications_sent=sum(1 for log in recent if log.status == DeliveryStatus.SENT),
        failed_notifications=sum(1 for log in recent if log.status == DeliveryStatus.FAILED),
    )


def _is_read(log: NotificationLog) -> bool:
    return bool((log.metadata or {}).get("read"))


def count_unread(logs: list[NotificationLog]) -> UnreadNotifications:
    """Sent notifications not yet marked read. ``logs`` must be newest first."""
    recent = [log for log in logs if log.status == DeliveryStatus.SENT][:UNREAD_WINDOW]
    unread = [log for log in recent if not _is_read(log)]
    return UnreadNotifications(unread_count=len(unread), notifications=unread)


def build_log_entry(
    user_id: str,
    request: SendNotificationRequest,
    decision: DeliveryDecision,
    *,
    test: bool = False,
    at: datetime | None = None,
) -> dict:
    """Row for notification_logs describing a delivery attempt."""
    at = at or datetime.now(UTC)
    metadata = dict(request.metadata)
    if test:
        metadata["test"] = True
    if decision.reason is not None:
        metadata["skip_reason"] = decision.reason.value

    return {
        "user_id": user_id,
        "notification_type": request.notification_type.value,
        "trigger_event": request.trigger_event.value,
        "job_count": request.job_count,
        "query_ids": list(request.query_ids),
        "status": (DeliveryStatus.SENT if decision.deliver else DeliveryStatus.SKIPPED).value,
        "recipient": request.recipient,
        "metadata": metadata,
        "sent_at": at.isoformat() if decision.deliver else None,
    }
