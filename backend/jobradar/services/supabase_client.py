"""
Async Supabase wrappers for the job-alert tables.

Thin functions around the Supabase async client for queries, jobs,
notification_preferences and notification_logs. Every read and write is
scoped to the owning user_id, except the us_states/us_cities location
lookups, which are shared. user_profiles lives behind ProfileRepository
(profile_store.py) because billing and admin code swap it for an in-memory
store in tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from postgrest.exceptions import APIError
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from jobradar.constants import (
    JOBS_TABLE,
    NOTIFICATION_LOGS_TABLE,
    NOTIFICATION_PREFERENCES_TABLE,
    POSTGREST_NO_ROWS,
    QUERIES_TABLE,
    UNREAD_WINDOW,
    US_CITIES_TABLE,
    US_STATES_TABLE,
)
from jobradar.models.notifications import NotificationPreferences
from jobradar.models.search import JobFilters, JobStats
from jobradar.services.notification_service import default_preferences

logger = structlog.get_logger(__name__)

# Characters with meaning inside a PostgREST or=(...) filter
_FILTER_SPECIAL_CHARS = str.maketrans("", "", ",()*%\\")


def sanitize_filter_term(term: str) -> str:
    """Strip characters that would break out of an ilike pattern in or_()."""
    return term.translate(_FILTER_SPECIAL_CHARS).strip()


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# queries
# ---------------------------------------------------------------------------


async def list_queries(client: AsyncSupabaseClient, user_id: str) -> list[dict]:
    """All of a user's queries, newest first, with the joined city."""
    response = (
        await client.table(QUERIES_TABLE)
        .select("*, us_cities(id, city, state_name)")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return response.data or []


async def get_query(
    client: AsyncSupabaseClient, user_id: str, query_id: int
) -> dict | None:
    response = (
        await client.table(QUERIES_TABLE)
        .select("*")
        .eq("id", query_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return rows[0] if rows else None


async def create_query(
    client: AsyncSupabaseClient, user_id: str, data: dict
) -> dict:
    """Insert a query. user_id and is_active are always set here."""
    row = {**data, "user_id": user_id, "is_active": True}
    response = await client.table(QUERIES_TABLE).insert(row).execute()
    return response.data[0]


async def update_query(
    client: AsyncSupabaseClient, user_id: str, query_id: int, updates: dict
) -> dict | None:
    """Update a user's query. Returns None when it does not exist."""
    payload = {**updates, "updated_at": _now_iso()}
    response = (
        await client.table(QUERIES_TABLE)
        .update(payload)
        .eq("id", query_id)
        .eq("user_id", user_id)
        .execute()
    )
    rows = response.data or []
    return rows[0] if rows else None


async def delete_query(
    client: AsyncSupabaseClient, user_id: str, query_id: int
) -> bool:
    response = (
        await client.table(QUERIES_TABLE)
        .delete()
        .eq("id", query_id)
        .eq("user_id", user_id)
        .execute()
    )
    return bool(response.data)


# ---------------------------------------------------------------------------
# us_states / us_cities (shared lookup tables, not user-scoped)
# ---------------------------------------------------------------------------


async def list_states(client: AsyncSupabaseClient) -> list[dict]:
    response = (
        await client.table(US_STATES_TABLE)
        .select("id, name, code")
        .order("name")
        .execute()
    )
    return response.data or []


async def list_cities(client: AsyncSupabaseClient, state_id: int) -> list[dict]:
    """Cities of one state, alphabetical. Their ids are valid query city_ids."""
    response = (
        await client.table(US_CITIES_TABLE)
        .select("id, city, state_name, state_id")
        .eq("state_id", state_id)
        .order("city")
        .execute()
    )
    return response.data or []


# ---------------------------------------------------------------------------
# jobs
# ---------------------------------------------------------------------------


async def list_jobs(
    client: AsyncSupabaseClient, user_id: str, filters: JobFilters
) -> list[dict]:
    """A user's non-deleted jobs matching filters, with the owning query joined."""
    query = (
        client.table(JOBS_TABLE)
        .select("*, queries(id, keywords, location_string)")
        .eq("user_id", user_id)
        .eq("is_deleted", False)
    )

    if filters.search:
        term = sanitize_filter_term(filters.search)
        if term:
            query = query.or_(f"title.ilike.%{term}%,company.ilike.%{term}%")
    if filters.query_id is not None:
        query = query.eq("query_id", filters.query_id)
    if filters.posted_from:
        query = query.gte("posted", filters.posted_from.isoformat())
    if filters.posted_to:
        query = query.lte("posted", filters.posted_to.isoformat())
    if filters.applied_only:
        query = query.eq("applied", True)
    elif not filters.show_applied:
        query = query.eq("applied", False)

    query = query.order(filters.sort_by, desc=filters.sort_order == "desc")

    if filters.limit:
        offset = filters.offset or 0
        query = query.range(offset, offset + filters.limit - 1)

    response = await query.execute()
    return response.data or []


async def soft_delete_job(
    client: AsyncSupabaseClient, user_id: str, job_id: int
) -> bool:
    """Hide a job from listings. The row is kept so it is not re-discovered."""
    response = (
        await client.table(JOBS_TABLE)
        .update({"is_deleted": True})
        .eq("id", job_id)
        .eq("user_id", user_id)
        .execute()
    )
    return bool(response.data)


async def set_job_applied(
    client: AsyncSupabaseClient, user_id: str, job_id: int, applied: bool
) -> dict | None:
    response = (
        await client.table(JOBS_TABLE)
        .update({"applied": applied})
        .eq("id", job_id)
        .eq("user_id", user_id)
        .execute()
    )
    rows = response.data or []
    return rows[0] if rows else None


async def get_job_stat_rows(client: AsyncSupabaseClient, user_id: str) -> list[dict]:
    """The posted/query_id pairs that compute_job_stats() summarizes."""
    response = (
        await client.table(JOBS_TABLE)
        .select("posted, query_id")
        .eq("user_id", user_id)
        .eq("is_deleted", False)
        .execute()
    )
    return response.data or []


def _parse_posted(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        posted = value
    else:
        try:
            posted = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if posted.tzinfo is None:
        posted = posted.replace(tzinfo=UTC)
    return posted


def compute_job_stats(rows: list[dict], now: datetime | None = None) -> JobStats:
    """Totals for the dashboard.

    Both windows start at UTC midnight: ``today_jobs`` counts postings since
    midnight and ``week_jobs`` postings since midnight seven days earlier.
    Jobs without a query still count as one distinct query.
    """
    now = (now or datetime.now(UTC)).astimezone(UTC)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = today - timedelta(days=7)

    today_jobs = 0
    week_jobs = 0
    for row in rows:
        posted = _parse_posted(row.get("posted"))
        if posted is None:
            continue
        if posted >= today:
            today_jobs += 1
        if posted >= week_ago:
            week_jobs += 1

    query_ids = {row.get("query_id") for row in rows}
    return JobStats(
        total_jobs=len(rows),
        today_jobs=today_jobs,
        week_jobs=week_jobs,
        unique_queries=len(query_ids),
    )


# ---------------------------------------------------------------------------
# notification_preferences
# ---------------------------------------------------------------------------


async def get_notification_preferences(
    client: AsyncSupabaseClient, user_id: str
) -> dict | None:
    """Fetch the user's preferences row. Returns None if the user never saved any."""
    try:
        response = (
            await client.table(NOTIFICATION_PREFERENCES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .single()
            .execute()
        )
    except APIError as e:
        if e.code == POSTGREST_NO_ROWS:
            return None
        raise
    return response.data


async def load_notification_preferences(
    client: AsyncSupabaseClient, user_id: str
) -> NotificationPreferences:
    """Stored preferences, or the defaults when no row exists."""
    row = await get_notification_preferences(client, user_id)
    if row is None:
        return default_preferences(user_id)
    return NotificationPreferences.model_validate(row)


async def upsert_notification_preferences(
    client: AsyncSupabaseClient, user_id: str, preferences: dict
) -> dict:
    """Insert or replace the preferences row. Always sets updated_at."""
    row = {**preferences, "user_id": user_id, "updated_at": _now_iso()}
    row.pop("created_at", None)
    response = (
        await client.table(NOTIFICATION_PREFERENCES_TABLE)
        .upsert(row, on_conflict="user_id")
        .execute()
    )
    return response.data[0]


# ---------------------------------------------------------------------------
# notification_logs
# ---------------------------------------------------------------------------


async def list_notification_logs(
    client: AsyncSupabaseClient,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    status: str | None = None,
) -> list[dict]:
    """A user's notification logs, newest first."""
    query = client.table(NOTIFICATION_LOGS_TABLE).select("*").eq("user_id", user_id)
    if status:
        query = query.eq("status", status)
    response = (
        await query.order("created_at", desc=True)
        .range(offset, offset + limit - 1)
        .execute()
    )
    return response.data or []


async def list_recent_sent_logs(
    client: AsyncSupabaseClient, user_id: str, limit: int = UNREAD_WINDOW
) -> list[dict]:
    return await list_notification_logs(client, user_id, limit=limit, status="sent")


async def insert_notification_log(client: AsyncSupabaseClient, row: dict) -> dict:
    """Append a notification log entry. Logs are never updated except to mark read."""
    response = await client.table(NOTIFICATION_LOGS_TABLE).insert(row).execute()
    return response.data[0]


async def mark_notification_read(
    client: AsyncSupabaseClient, user_id: str, log_id: int
) -> dict | None:
    """Set metadata.read on a log entry, keeping its other metadata."""
    existing = (
        await client.table(NOTIFICATION_LOGS_TABLE)
        .select("metadata")
        .eq("id", log_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = existing.data or []
    if not rows:
        return None

    metadata = {**(rows[0].get("metadata") or {}), "read": True, "read_at": _now_iso()}
    response = (
        await client.table(NOTIFICATION_LOGS_TABLE)
        .update({"metadata": metadata})
        .eq("id", log_id)
        .eq("user_id", user_id)
        .execute()
    )
    updated = response.data or []
    return updated[0] if updated else None
