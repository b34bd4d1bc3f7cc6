"""Admin user management."""

import math

import structlog

from jobradar.config import AdminConfig
from jobradar.models.profile import (
    AccountType,
    AdminStats,
    AdminUsersResponse,
    AdminUserUpdate,
    Pagination,
    Profile,
    SubscriptionTier,
)
from jobradar.services.profile_store import ProfileRepository

logger = structlog.get_logger(__name__)

# Present in the PATCH schema only so they can be refused explicitly.
_LOCKED_FIELDS = {
    "subscription_tier": "Subscription tier is managed by billing and cannot be edited",
    "max_active_queries": "max_active_queries is derived from the account type and cannot be edited",
}


class AdminActionError(ValueError):
    """The requested admin action is not allowed."""


class UserNotFoundError(LookupError):
    """No profile exists for the target user."""


def parse_account_type(value: str) -> AccountType:
    try:
        return AccountType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AccountType)
        raise AdminActionError(f"Invalid account type '{value}'. Expected one of: {allowed}") from None


def compute_stats(profiles: list[Profile]) -> AdminStats:
    privileged = [p for p in profiles if p.account_type.is_privileged]
    billed = [p for p in profiles if not p.account_type.is_privileged]
    return AdminStats(
        total_users=len(profiles),
        free_users=sum(1 for p in billed if p.subscription_tier == SubscriptionTier.FREE),
        pro_users=sum(1 for p in billed if p.subscription_tier == SubscriptionTier.PRO),
        privileged_users=len(privileged),
    )


class AdminService:
    def __init__(self, repository: ProfileRepository, config: AdminConfig | None = None) -> None:
        self.repository = repository
        self.config = config or AdminConfig()

    async def list_users(
        self,
        *,
        page: int = 1,
        limit: int | None = None,
        search: str | None = None,
        account_type: str | None = None,
    ) -> AdminUsersResponse:
        page = max(page, 1)
        limit = min(max(limit or self.config.default_page_size, 1), self.config.max_page_size)
        type_filter = parse_account_type(account_type) if account_type else None

        profiles, total = await self.repository.list_profiles(
            offset=(page - 1) * limit,
            limit=limit,
            search=search.strip() if search else None,
            account_type=type_filter,
        )
        return AdminUsersResponse(
            users=profiles,
            stats=compute_stats(profiles),
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if total else 0,
            ),
        )

    async def update_user(self, actor_id: str, user_id: str, patch: AdminUserUpdate) -> Profile:
        """
        Apply an admin edit to another user's profile.

        Raises:
            AdminActionError: locked field present, invalid account type,
                self-modification or an empty patch.
            UserNotFoundError: the target profile does not exist.
        """
        for field, message in _LOCKED_FIELDS.items():
            if field in patch.model_fields_set:
                raise AdminActionError(message)
        if actor_id == user_id:
            raise AdminActionError("Admins cannot modify their own account")

        fields: dict = {}
        if patch.account_type is not None:
            fields["account_type"] = parse_account_type(patch.account_type).value
        if patch.full_name is not None:
            fields["full_name"] = patch.full_name
        if not fields:
            raise AdminActionError("No editable fields provided")

        updated = await self.repository.update_profile(user_id, fields)
        if updated is None:
            raise UserNotFoundError("User not found")

        logger.info("admin_user_updated", actor_id=actor_id, user_id=user_id, fields=sorted(fields))
        return updated

    async def delete_user(self, actor_id: str, user_id: str) -> None:
        """
        Delete a user with their queries and jobs.

        Raises:
            AdminActionError: self-deletion or deleting another admin.
            UserNotFoundError: the target profile does not exist.
        """
        if actor_id == user_id:
            raise AdminActionError("Admins cannot delete their own account")

        profile = await self.repository.get_profile(user_id)
        if profile is None:
            raise UserNotFoundError("User not found")
        if profile.account_type == AccountType.ADMIN:
            raise AdminActionError("Admin accounts cannot be deleted")

        await self.repository.delete_user(user_id)
        logger.info("admin_user_deleted", actor_id=actor_id, user_id=user_id)
