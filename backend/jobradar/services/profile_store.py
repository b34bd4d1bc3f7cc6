"""User profile repositories."""

from datetime import UTC, datetime
from typing import Protocol

import structlog

from jobradar.constants import JOBS_TABLE, QUERIES_TABLE, USER_PROFILES_TABLE
from jobradar.models.profile import AccountType, Profile
from jobradar.services.supabase_client import sanitize_filter_term

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProfileRepository(Protocol):
    """Storage contract for user profiles."""

    async def get_profile(self, user_id: str) -> Profile | None:
        """Fetch a profile by user id."""

    async def get_profile_by_customer_id(self, customer_id: str) -> Profile | None:
        """Fetch a profile by Stripe customer id."""

    async def update_profile(self, user_id: str, fields: dict) -> Profile | None:
        """Apply a partial update. Returns None when the profile does not exist."""

    async def list_profiles(
        self,
        *,
        offset: int,
        limit: int,
        search: str | None = None,
        account_type: AccountType | None = None,
    ) -> tuple[list[Profile], int]:
        """Return one page of profiles (newest first) and the total match count."""

    async def delete_user(self, user_id: str) -> None:
        """Delete a user's queries, jobs and profile."""


class InMemoryProfileRepository:
    """In-memory repository used by the test suite."""

    def __init__(self, profiles: list[Profile] | None = None) -> None:
        self.profiles: dict[str, Profile] = {}
        self.deleted_user_ids: list[str] = []
        for profile in profiles or []:
            self.profiles[profile.id] = profile.model_copy(deep=True)

    async def get_profile(self, user_id: str) -> Profile | None:
        profile = self.profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def get_profile_by_customer_id(self, customer_id: str) -> Profile | None:
        for profile in self.profiles.values():
            if profile.stripe_customer_id == customer_id:
                return profile.model_copy(deep=True)
        return None

    async def update_profile(self, user_id: str, fields: dict) -> Profile | None:
        current = self.profiles.get(user_id)
        if current is None:
            return None
        merged = current.model_dump() | fields | {"updated_at": _utcnow()}
        updated = Profile.model_validate(merged)
        self.profiles[user_id] = updated
        return updated.model_copy(deep=True)

    async def list_profiles(
        self,
        *,
        offset: int,
        limit: int,
        search: str | None = None,
        account_type: AccountType | None = None,
    ) -> tuple[list[Profile], int]:
        matches = list(self.profiles.values())
        if account_type is not None:
            matches = [p for p in matches if p.account_type == account_type]
        if search:
            needle = search.lower()
            matches = [
                p
                for p in matches
                if needle in (p.full_name or "").lower() or needle in (p.company or "").lower()
            ]
        matches.sort(key=lambda p: p.created_at or datetime.min.replace(tzinfo=UTC), reverse=True)
        page = matches[offset : offset + limit]
        return [p.model_copy(deep=True) for p in page], len(matches)

    async def delete_user(self, user_id: str) -> None:
        self.profiles.pop(user_id, None)
        self.deleted_user_ids.append(user_id)


class SupabaseProfileRepository:
    """Supabase-backed repository for user_profiles."""

    def __init__(self, client, table: str = USER_PROFILES_TABLE):
        self.client = client
        self.table = table

    async def _first(self, column: str, value: str) -> Profile | None:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq(column, value)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return Profile.model_validate(rows[0])

    async def get_profile(self, user_id: str) -> Profile | None:
        return await self._first("id", user_id)

    async def get_profile_by_customer_id(self, customer_id: str) -> Profile | None:
        return await self._first("stripe_customer_id", customer_id)

    async def update_profile(self, user_id: str, fields: dict) -> Profile | None:
        payload = dict(fields)
        payload["updated_at"] = _utcnow().isoformat()
        response = (
            await self.client.table(self.table)
            .update(payload)
            .eq("id", user_id)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return Profile.model_validate(rows[0])

    async def list_profiles(
        self,
        *,
        offset: int,
        limit: int,
        search: str | None = None,
        account_type: AccountType | None = None,
    ) -> tuple[list[Profile], int]:
        query = self.client.table(self.table).select("*", count="exact")
        if account_type is not None:
            query = query.eq("account_type", account_type.value)
        if search:
            term = sanitize_filter_term(search)
            if term:
                query = query.or_(f"full_name.ilike.%{term}%,company.ilike.%{term}%")
        response = (
            await query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        profiles = [Profile.model_validate(row) for row in response.data or []]
        return profiles, response.count or 0

    async def delete_user(self, user_id: str) -> None:
        # jobs.query_id references queries, so jobs go first.
        await self.client.table(JOBS_TABLE).delete().eq("user_id", user_id).execute()
        await self.client.table(QUERIES_TABLE).delete().eq("user_id", user_id).execute()
        await self.client.table(self.table).delete().eq("id", user_id).execute()
        logger.info("user_deleted", user_id=user_id)
