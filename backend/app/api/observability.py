"""Process-wide request and scheduling-error counters.

The counters are not tenant scoped, so any authenticated user can read them.
"""

from fastapi import APIRouter, Depends

from app.core.security import get_current_user
from app.schemas.observability import ObservabilityMetricsResponse
from app.services.observability import observability_tracker

router = APIRouter(prefix="/observability", tags=["observability"], dependencies=[Depends(get_current_user)])


@router.get("/metrics", response_model=ObservabilityMetricsResponse)
def get_metrics() -> ObservabilityMetricsResponse:
    return ObservabilityMetricsResponse(**observability_tracker.snapshot())
