"""Unit tests for notification delivery rules."""

from datetime import UTC, datetime, timedelta

import pytest

from jobradar.models.notifications import (
    DeliveryDecision,
    NotificationChannel,
    NotificationLog,
    NotificationPreferences,
    SendNotificationRequest,
    SkipReason,
    TriggerEvent,
)
from jobradar.services.entitlements import free_view, privileged_view
from jobradar.services.notification_service import (
    build_log_entry,
    count_unread,
    decide_delivery,
    default_preferences,
    is_within_notification_hours,
    summarize_status,
)

# January keeps America/New_York on EST (UTC-5)
WINTER_MORNING_UTC = datetime(2026, 1, 15, 15, 0, tzinfo=UTC)  # 10:00 in New York
WINTER_EVENING_UTC = datetime(2026, 1, 15, 23, 30, tzinfo=UTC)  # 18:30 in New York


def _prefs(**fields) -> NotificationPreferences:
    return NotificationPreferences(user_id="u1", **fields)


def _log(log_id: int, channel: str = "email", status: str = "sent", minutes_ago: int = 0, **fields):
    created = datetime(2026, 3, 1, 12, 0, tzinfo=UTC) - timedelta(minutes=minutes_ago)
    values = {
        "id": log_id,
        "user_id": "u1",
        "notification_type": channel,
        "trigger_event": "new_jobs",
        "status": status,
        "created_at": created,
    }
    return NotificationLog.model_validate(values | fields)


class TestDefaults:
    def test_default_preferences(self):
        prefs = default_preferences("u1")

        assert prefs.user_id == "u1"
        assert prefs.email_notifications is True
        assert prefs.mobile_push_notifications is False
        assert prefs.webhook_notifications is False
        assert prefs.respect_notification_hours is False
        assert prefs.timezone == "UTC"
        assert prefs.notification_hours == list(range(9, 18))

    def test_hours_are_sorted_and_deduplicated(self):
        assert _prefs(notification_hours=[17, 9, 9, 12]).notification_hours == [9, 12, 17]

    def test_out_of_range_hours_rejected(self):
        with pytest.raises(ValueError, match="between 0 and 23"):
            _prefs(notification_hours=[9, 24])


class TestNotificationHours:
    def test_always_allowed_when_not_respecting_hours(self):
        prefs = _prefs(respect_notification_hours=False, notification_hours=[])

        assert is_within_notification_hours(prefs, WINTER_EVENING_UTC) is True

    def test_hour_is_checked_in_user_timezone(self):
        prefs = _prefs(respect_notification_hours=True, timezone="America/New_York")

        assert is_within_notification_hours(prefs, WINTER_MORNING_UTC) is True
        assert is_within_notification_hours(prefs, WINTER_EVENING_UTC) is False

    def test_naive_datetime_is_utc(self):
        prefs = _prefs(respect_notification_hours=True, notification_hours=[15])

        assert is_within_notification_hours(prefs, datetime(2026, 1, 15, 15, 30)) is True

    def test_invalid_timezone_falls_back_to_utc(self):
        prefs = _prefs(respect_notification_hours=True, timezone="Mars/Olympus_Mons", notification_hours=[15])

        assert is_within_notification_hours(prefs, WINTER_MORNING_UTC) is True

    def test_empty_hours_block_everything(self):
        prefs = _prefs(respect_notification_hours=True, notification_hours=[])

        assert is_within_notification_hours(prefs, WINTER_MORNING_UTC) is False


class TestDecideDelivery:
    def test_inactive_plan_is_skipped_first(self, catalog):
        prefs = _prefs(email_notifications=False)

        decision = decide_delivery(prefs, NotificationChannel.EMAIL, free_view(catalog))

        assert decision == DeliveryDecision(deliver=False, reason=SkipReason.PLAN_INACTIVE)

    def test_trial_counts_as_active_plan(self, catalog):
        trial = free_view(catalog).model_copy(update={"is_trial": True})

        decision = decide_delivery(_prefs(), NotificationChannel.EMAIL, trial)

        assert decision.deliver is True

    def test_disabled_channel(self):
        decision = decide_delivery(
            _prefs(email_notifications=False), NotificationChannel.EMAIL, privileged_view()
        )

        assert decision.reason == SkipReason.CHANNEL_DISABLED

    def test_web_push_follows_mobile_push_toggle(self):
        prefs = _prefs(mobile_push_notifications=True)

        assert decide_delivery(prefs, NotificationChannel.WEB_PUSH, privileged_view()).deliver is True
        assert decide_delivery(_prefs(), NotificationChannel.WEB_PUSH, privileged_view()).reason == (
            SkipReason.CHANNEL_DISABLED
        )

    def test_webhook_requires_url(self):
        prefs = _prefs(webhook_notifications=True)

        decision = decide_delivery(prefs, NotificationChannel.WEBHOOK, privileged_view())

        assert decision.reason == SkipReason.WEBHOOK_URL_MISSING

    def test_webhook_with_url_delivers(self):
        prefs = _prefs(webhook_notifications=True, webhook_url="https://hooks.example.com/jobs")

        assert decide_delivery(prefs, NotificationChannel.WEBHOOK, privileged_view()).deliver is True

    def test_quiet_hours(self):
        prefs = _prefs(respect_notification_hours=True, timezone="America/New_York")

        outside = decide_delivery(prefs, NotificationChannel.EMAIL, privileged_view(), WINTER_EVENING_UTC)
        inside = decide_delivery(prefs, NotificationChannel.EMAIL, privileged_view(), WINTER_MORNING_UTC)

        assert outside.reason == SkipReason.QUIET_HOURS
        assert inside.deliver is True


class TestSummaries:
    def test_status_counts_and_last_sent(self):
        prefs = _prefs(mobile_push_notifications=True)
        sent_at = datetime(2026, 3, 1, 11, 59, tzinfo=UTC)
        logs = [
            _log(1, "email", "sent", minutes_ago=30),
            _log(2, "email", "sent", minutes_ago=5, sent_at=sent_at),
            _log(3, "web_push", "sent", minutes_ago=10),
            _log(4, "webhook", "failed", minutes_ago=1),
            _log(5, "email", "skipped", minutes_ago=0),
        ]

        status = summarize_status(prefs, logs)

        assert status.email_enabled is True
        assert status.push_enabled is True
        assert status.webhook_enabled is False
        assert status.last_email_sent == sent_at
        assert status.last_push_sent == datetime(2026, 3, 1, 11, 50, tzinfo=UTC)
        assert status.last_webhook_sent is None
        assert status.total_notifications_sent == 3
        assert status.failed_notifications == 1

    def test_status_only_considers_latest_hundred(self):
        logs = [_log(i, minutes_ago=i) for i in range(150)]

        assert summarize_status(_prefs(), logs).total_notifications_sent == 100

    def test_unread_counts_sent_logs_without_read_flag(self):
        logs = [
            _log(1, minutes_ago=1),
            _log(2, minutes_ago=2, metadata={"read": True}),
            _log(3, status="skipped", minutes_ago=3),
            _log(4, minutes_ago=4, metadata={"test": True}),
        ]

        unread = count_unread(logs)

        assert unread.unread_count == 2
        assert [log.id for log in unread.notifications] == [1, 4]

    def test_unread_window_is_twenty(self):
        logs = [_log(i, minutes_ago=i) for i in range(30)]

        assert count_unread(logs).unread_count == 20


class TestBuildLogEntry:
    def _request(self, **fields) -> SendNotificationRequest:
        values = {
            "notification_type": NotificationChannel.EMAIL,
            "trigger_event": TriggerEvent.NEW_JOBS,
            "job_count": 4,
            "query_ids": [7],
            "recipient": "u1@example.com",
        }
        return SendNotificationRequest(**(values | fields))

    def test_delivered_entry(self):
        at = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

        row = build_log_entry("u1", self._request(), DeliveryDecision(deliver=True), at=at)

        assert row["status"] == "sent"
        assert row["sent_at"] == at.isoformat()
        assert row["notification_type"] == "email"
        assert row["trigger_event"] == "new_jobs"
        assert row["query_ids"] == [7]
        assert row["metadata"] == {}

    def test_skipped_test_entry(self):
        decision = DeliveryDecision(deliver=False, reason=SkipReason.QUIET_HOURS)

        row = build_log_entry("u1", self._request(metadata={"source": "settings"}), decision, test=True)

        assert row["status"] == "skipped"
        assert row["sent_at"] is None
        assert row["metadata"] == {"source": "settings", "test": True, "skip_reason": "quiet_hours"}
