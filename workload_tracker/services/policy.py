"""
Authorization policy: who may read, change or delete which users and workloads.

Admins are unrestricted (except deleting themselves). Everyone else owns
their workloads and their own user record. Checks raise ForbiddenError with a
resource-specific message; existence is checked by the caller first, so a
missing id is a NotFoundError regardless of ownership.
"""

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from workload_tracker.core.errors import ForbiddenError
from workload_tracker.models import ROLE_ADMIN
from workload_tracker.repositories.workloads import WorkloadFilters
from workload_tracker.schemas.auth import CurrentUser

# Fields a user may change on their own record.
SELF_EDITABLE_USER_FIELDS = frozenset({"name", "badge_number", "rank", "position"})
# Fields an admin may change on any record.
ADMIN_EDITABLE_USER_FIELDS = SELF_EDITABLE_USER_FIELDS | {"username", "role", "password"}

OWNER_FIELD = "user_id"


def is_admin(user: CurrentUser) -> bool:
    return user.role == ROLE_ADMIN


def owns(user: CurrentUser, workload: Mapping[str, Any]) -> bool:
    return workload[OWNER_FIELD] == user.id


def ensure_can_access_workload(user: CurrentUser, workload: Mapping[str, Any], action: str) -> None:
    """action is the verb used in the error message: access, update, delete."""
    if is_admin(user) or owns(user, workload):
        return
    raise ForbiddenError(f"You can only {action} your own workloads")


def scope_workload_filters(user: CurrentUser, filters: WorkloadFilters) -> WorkloadFilters:
    """Non-admin listings are always limited to the caller's own workloads."""
    if is_admin(user):
        return filters
    return replace(filters, user_id=user.id)


def statistics_owner(user: CurrentUser, requested_user_id: int | None) -> int | None:
    """Owner to scope statistics to; None means all workloads (admins only)."""
    return requested_user_id if is_admin(user) else user.id


def prepare_workload_create(user: CurrentUser, data: Mapping[str, Any]) -> dict[str, Any]:
    """Set the owner: forced to the caller for non-admins, defaulting to the caller for admins."""
    values = dict(data)
    if not is_admin(user) or values.get(OWNER_FIELD) is None:
        values[OWNER_FIELD] = user.id
    return values


def prepare_workload_update(user: CurrentUser, changes: Mapping[str, Any]) -> dict[str, Any]:
    """Only admins may reassign a workload to another owner."""
    values = dict(changes)
    if not is_admin(user) or values.get(OWNER_FIELD) is None:
        values.pop(OWNER_FIELD, None)
    return values


def ensure_can_view_user(actor: CurrentUser, target_id: int) -> None:
    if is_admin(actor) or actor.id == target_id:
        return
    raise ForbiddenError("You can only view your own profile")


def filter_user_update(
    actor: CurrentUser, target_id: int, changes: Mapping[str, Any]
) -> dict[str, Any]:
    """
    Reduce an update body to the fields the actor may change on target_id.

    Disallowed fields (username, role, password for non-admins) are dropped
    silently; updating somebody else's record without admin rights is denied.
    """
    if not is_admin(actor) and actor.id != target_id:
        raise ForbiddenError("You can only update your own profile")
    allowed = ADMIN_EDITABLE_USER_FIELDS if is_admin(actor) else SELF_EDITABLE_USER_FIELDS
    return {key: value for key, value in changes.items() if key in allowed}


def filter_profile_update(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Profile edits (PUT /users/profile/me) use the self allow-list for every role."""
    return {key: value for key, value in changes.items() if key in SELF_EDITABLE_USER_FIELDS}


def ensure_can_delete_user(actor: CurrentUser, target_id: int) -> None:
    """Only admins delete users, and nobody deletes their own account."""
    if not is_admin(actor):
        raise ForbiddenError("Only admins can delete users")
    if actor.id == target_id:
        raise ForbiddenError("You cannot delete your own account")
