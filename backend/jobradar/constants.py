"""
Business logic constants for the JobRadar application.

These values are stable across environments (dev/staging/prod) and do not
need env-var overrides. For operational parameters that vary per environment
(keys, price ids, page sizes), see config.py.
"""

API_TITLE = "JobRadar API"
API_VERSION = "0.1.0"

# --- Limits ---
UNLIMITED = -1  # sentinel for "no cap" in max_queries / max_jobs_per_month

# --- Work types (queries.work_types holds these ids) ---
WORK_TYPES: dict[int, str] = {
    1: "onsite",
    2: "hybrid",
    3: "remote",
}

# --- Notification defaults ---
DEFAULT_TIMEZONE = "UTC"
BUSINESS_HOURS: list[int] = list(range(9, 18))  # 9 AM .. 5 PM local
NOTIFICATION_STATUS_WINDOW = 100  # logs considered by the status summary
UNREAD_WINDOW = 20  # recent sent logs considered for the unread badge

# --- PostgREST ---
POSTGREST_NO_ROWS = "PGRST116"  # .single() matched zero rows

# --- Tables ---
USER_PROFILES_TABLE = "user_profiles"
QUERIES_TABLE = "queries"
JOBS_TABLE = "jobs"
NOTIFICATION_PREFERENCES_TABLE = "notification_preferences"
NOTIFICATION_LOGS_TABLE = "notification_logs"
US_STATES_TABLE = "us_states"
US_CITIES_TABLE = "us_cities"
