"""Database health endpoint. Reports the active backend; never raises."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from workload_tracker.api.deps import get_database
from workload_tracker.core.database import Database
from workload_tracker.schemas.health import DatabaseHealthResponse

router = APIRouter()


@router.get(
    "",
    response_model=DatabaseHealthResponse,
    responses={503: {"model": DatabaseHealthResponse}},
)
def get_database_health(db: Annotated[Database, Depends(get_database)]):
    """
    Ping the active database. 200 when healthy, 503 with the same body when not.
    Used by load balancers and monitoring.
    """
    report = DatabaseHealthResponse.model_validate(db.health_check())
    if report.status != "healthy":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=report.model_dump(),
        )
    return report
