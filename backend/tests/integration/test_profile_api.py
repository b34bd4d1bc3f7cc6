"""Integration tests for profile and notification preference endpoints."""

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from jobradar.services.profile_store import InMemoryProfileRepository


@pytest.fixture
def repo(client: TestClient, fake_supabase, make_profile) -> InMemoryProfileRepository:
    repository = InMemoryProfileRepository([make_profile("user-1", full_name="Sam")])
    client.app.state.supabase = fake_supabase
    client.app.state.profile_repository = repository
    return repository


class TestProfile:
    def test_get_profile(self, client, repo, login, standard_user):
        login(standard_user)

        response = client.get("/api/v1/profile")

        assert response.status_code == 200
        assert response.json()["full_name"] == "Sam"
        assert response.json()["account_type"] == "standard"

    def test_missing_profile(self, client, repo, login, standard_user):
        repo.profiles.clear()
        login(standard_user)

        assert client.get("/api/v1/profile").status_code == 404

    def test_update_display_fields(self, client, repo, login, standard_user):
        login(standard_user)

        response = client.patch("/api/v1/profile", json={"company": "Acme"})

        assert response.status_code == 200
        assert repo.profiles["user-1"].company == "Acme"
        assert repo.profiles["user-1"].full_name == "Sam"

    def test_billing_fields_are_not_editable(self, client, repo, login, standard_user):
        login(standard_user)

        response = client.patch("/api/v1/profile", json={"subscription_tier": "pro"})

        assert response.status_code == 400
        assert repo.profiles["user-1"].subscription_tier.value == "free"

    def test_empty_update(self, client, repo, login, standard_user):
        login(standard_user)

        assert client.patch("/api/v1/profile", json={}).status_code == 400


class TestNotificationPreferences:
    def test_defaults_when_never_saved(self, client, repo, fake_supabase, login, standard_user):
        fake_supabase.fail("notification_preferences", APIError({"code": "PGRST116", "message": "0 rows"}))
        login(standard_user)

        response = client.get("/api/v1/profile/notification-preferences")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "user-1"
        assert data["email_notifications"] is True
        assert data["notification_hours"] == list(range(9, 18))

    def test_update_merges_with_stored_row(self, client, repo, fake_supabase, login, standard_user):
        fake_supabase.respond(
            "notification_preferences", {"user_id": "user-1", "email_notifications": False, "timezone": "Europe/Lisbon"}
        )
        fake_supabase.respond(
            "notification_preferences",
            [{"user_id": "user-1", "email_notifications": False, "timezone": "Europe/Lisbon", "email_digest": True}],
        )
        login(standard_user)

        response = client.put("/api/v1/profile/notification-preferences", json={"email_digest": True})

        assert response.status_code == 200
        assert response.json()["email_digest"] is True
        (row,) = fake_supabase.executed[1].called("upsert")[0]
        assert row["email_notifications"] is False
        assert row["timezone"] == "Europe/Lisbon"
        assert row["email_digest"] is True
        assert row["user_id"] == "user-1"

    def test_invalid_hours_rejected(self, client, repo, fake_supabase, login, standard_user):
        login(standard_user)

        response = client.put("/api/v1/profile/notification-preferences", json={"notification_hours": [8, 24]})

        assert response.status_code == 400
        assert fake_supabase.executed == []

    def test_unknown_field_rejected(self, client, repo, fake_supabase, login, standard_user):
        login(standard_user)

        response = client.put("/api/v1/profile/notification-preferences", json={"sms_notifications": True})

        assert response.status_code == 400
