"""API routes: auth, users, workloads and database health."""

from fastapi import APIRouter, Depends

from workload_tracker.api.deps import warn_if_token_expiring
from workload_tracker.api.v1 import auth, health, users, workloads

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(
    users.router,
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(warn_if_token_expiring)],
)
router.include_router(
    workloads.router,
    prefix="/workload",
    tags=["workload"],
    dependencies=[Depends(warn_if_token_expiring)],
)
router.include_router(health.router, prefix="/health", tags=["health"])
