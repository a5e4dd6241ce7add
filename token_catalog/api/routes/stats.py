"""Stats routes - ingest observability."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from token_catalog.api.deps import get_query_service
from token_catalog.schemas.api import StatsResponse
from token_catalog.services.query_service import QueryService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=list[StatsResponse])
def get_ingest_stats(
    status: Optional[str] = Query(None, description="Filter by status (running, success, partial, failure)"),
    limit: int = Query(10, ge=1, le=50, description="Number of runs to return"),
    service: QueryService = Depends(get_query_service),
):
    """
    Get recent ingest run statistics.

    Shows counts of inserted/updated tokens, recomputed families and
    per-record failures for each batch.
    """
    return [StatsResponse.model_validate(run) for run in service.get_ingest_runs(status=status, limit=limit)]
