"""User management: admin CRUD plus self-service profile endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from workload_tracker.api.deps import AuthContext, get_current_user, get_user_repository, require_admin
from workload_tracker.core.errors import NotFoundError
from workload_tracker.repositories.users import UserRepository
from workload_tracker.schemas.common import MessageResponse, Pagination
from workload_tracker.schemas.users import UserCreate, UserOut, UsersListResponse, UserUpdate
from workload_tracker.services import policy

router = APIRouter()


def _get_or_404(users: UserRepository, user_id: int) -> dict:
    user = users.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[AuthContext, Depends(require_admin)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> UsersListResponse:
    """List all users (admin only)."""
    rows = users.find_all(limit=limit, offset=(page - 1) * limit)
    return UsersListResponse(
        users=[UserOut.model_validate(u) for u in rows],
        pagination=Pagination.build(page, limit, users.count()),
    )


@router.get("/profile/me", response_model=UserOut)
def get_profile(
    auth: Annotated[AuthContext, Depends(get_current_user)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> UserOut:
    return UserOut.model_validate(_get_or_404(users, auth.user.id))


@router.put("/profile/me", response_model=UserOut)
def update_profile(
    body: UserUpdate,
    auth: Annotated[AuthContext, Depends(get_current_user)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> UserOut:
    """Update name, badge number, rank and position of the caller; other fields are ignored."""
    changes = policy.filter_profile_update(body.model_dump(exclude_unset=True))
    updated = users.update(auth.user.id, changes)
    if updated is None:
        raise NotFoundError("User not found")
    return UserOut.model_validate(updated)


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    auth: Annotated[AuthContext, Depends(get_current_user)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> UserOut:
    """Admins read anyone; other users only themselves."""
    user = _get_or_404(users, user_id)
    policy.ensure_can_view_user(auth.user, user_id)
    return UserOut.model_validate(user)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> UserOut:
    """Create a user (admin only). 409 when the username is taken."""
    created = users.create(**body.model_dump())
    return UserOut.model_validate(created)


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdate,
    auth: Annotated[AuthContext, Depends(get_current_user)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> UserOut:
    """
    Admins may change every field of any user. Other users may change only
    their own non-privileged fields; role, username and password are dropped.
    """
    _get_or_404(users, user_id)
    changes = policy.filter_user_update(auth.user, user_id, body.model_dump(exclude_unset=True))
    updated = users.update(user_id, changes)
    if updated is None:
        raise NotFoundError("User not found")
    return UserOut.model_validate(updated)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    admin: Annotated[AuthContext, Depends(require_admin)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
    force: bool = False,
) -> MessageResponse:
    """Delete a user (admin only). Users owning workloads need ?force=true."""
    _get_or_404(users, user_id)
    policy.ensure_can_delete_user(admin.user, user_id)
    if not users.delete(user_id, force=force):
        raise NotFoundError("User not found")
    return MessageResponse(message="User deleted successfully")
