"""Workload CRUD with ownership scoping, dropdown options and statistics."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from workload_tracker.api.deps import AuthContext, get_current_user, get_workload_repository
from workload_tracker.core.errors import NotFoundError
from workload_tracker.repositories.workloads import WorkloadFilters, WorkloadRepository
from workload_tracker.schemas.common import MessageResponse, Pagination
from workload_tracker.schemas.workloads import (
    WorkloadCreate,
    WorkloadListResponse,
    WorkloadOptions,
    WorkloadOut,
    WorkloadStatistics,
    WorkloadUpdate,
)
from workload_tracker.services import policy

logger = logging.getLogger(__name__)
router = APIRouter()

Auth = Annotated[AuthContext, Depends(get_current_user)]
Workloads = Annotated[WorkloadRepository, Depends(get_workload_repository)]
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


def _get_or_404(repo: WorkloadRepository, workload_id: int) -> dict:
    workload = repo.get_by_id(workload_id)
    if workload is None:
        raise NotFoundError("Workload not found")
    return workload


def _listing(
    repo: WorkloadRepository, filters: WorkloadFilters, page: int, limit: int
) -> WorkloadListResponse:
    rows = repo.find_all(filters, limit=limit, offset=(page - 1) * limit)
    return WorkloadListResponse(
        workloads=[WorkloadOut.model_validate(w) for w in rows],
        pagination=Pagination.build(page, limit, repo.count(filters)),
    )


@router.get("", response_model=WorkloadListResponse)
def list_workloads(
    auth: Auth,
    repo: Workloads,
    page: Page = 1,
    limit: Limit = 50,
    status_: Annotated[str | None, Query(alias="status")] = None,
    type_: Annotated[str | None, Query(alias="type")] = None,
    search: str | None = None,
    user_id: int | None = None,
) -> WorkloadListResponse:
    """
    List workloads newest first. Admins see all (optionally filtered by
    user_id); everyone else only their own.
    """
    filters = WorkloadFilters(user_id=user_id, status=status_, type=type_, search=search)
    return _listing(repo, policy.scope_workload_filters(auth.user, filters), page, limit)


@router.get("/options", response_model=WorkloadOptions)
def get_options(_auth: Auth, repo: Workloads) -> WorkloadOptions:
    return WorkloadOptions(**repo.options())


@router.get("/statistics", response_model=WorkloadStatistics)
def get_statistics(auth: Auth, repo: Workloads, user_id: int | None = None) -> WorkloadStatistics:
    """Counts per status. Non-admins always get their own numbers."""
    owner = policy.statistics_owner(auth.user, user_id)
    return WorkloadStatistics.model_validate(repo.statistics(owner))


@router.get("/my", response_model=WorkloadListResponse)
def list_my_workloads(
    auth: Auth,
    repo: Workloads,
    page: Page = 1,
    limit: Limit = 50,
) -> WorkloadListResponse:
    return _listing(repo, WorkloadFilters(user_id=auth.user.id), page, limit)


@router.get("/{workload_id}", response_model=WorkloadOut)
def get_workload(workload_id: int, auth: Auth, repo: Workloads) -> WorkloadOut:
    workload = _get_or_404(repo, workload_id)
    policy.ensure_can_access_workload(auth.user, workload, "access")
    return WorkloadOut.model_validate(workload)


@router.post("", response_model=WorkloadOut, status_code=status.HTTP_201_CREATED)
def create_workload(body: WorkloadCreate, auth: Auth, repo: Workloads) -> WorkloadOut:
    """Non-admins always own what they create; a user_id in the body is ignored."""
    values = policy.prepare_workload_create(auth.user, body.model_dump())
    created = repo.create(values)
    logger.info(
        "Workload created",
        extra={"workload_id": created["id"], "owner_id": created["user_id"]},
    )
    return WorkloadOut.model_validate(created)


@router.put("/{workload_id}", response_model=WorkloadOut)
def update_workload(
    workload_id: int, body: WorkloadUpdate, auth: Auth, repo: Workloads
) -> WorkloadOut:
    workload = _get_or_404(repo, workload_id)
    policy.ensure_can_access_workload(auth.user, workload, "update")
    changes = policy.prepare_workload_update(auth.user, body.model_dump(exclude_unset=True))
    updated = repo.update(workload_id, changes)
    if updated is None:
        raise NotFoundError("Workload not found")
    return WorkloadOut.model_validate(updated)


@router.delete("/{workload_id}", response_model=MessageResponse)
def delete_workload(workload_id: int, auth: Auth, repo: Workloads) -> MessageResponse:
    workload = _get_or_404(repo, workload_id)
    policy.ensure_can_access_workload(auth.user, workload, "delete")
    if not repo.delete(workload_id):
        raise NotFoundError("Workload not found")
    return MessageResponse(message="Workload deleted successfully")
