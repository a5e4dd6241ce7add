"""Family routes - listing, detail and explicit recompute."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from token_catalog.api.deps import get_engine, get_query_service
from token_catalog.core.logging import get_logger
from token_catalog.schemas.api import FamilyDetailResponse, FamilyListResponse, FamilyOut, ResolveResponse
from token_catalog.services.family_service import FamilyResolutionEngine
from token_catalog.services.query_service import QueryService

router = APIRouter(prefix="/families", tags=["families"])
log = get_logger("families_routes")


@router.get("", response_model=FamilyListResponse)
def list_families(
    base_asset: Optional[str] = Query(None, alias="baseAsset", description="Filter by base asset (case-insensitive partial match)"),
    limit: int = Query(50, ge=1, description="Max results per page (capped at 100)"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    service: QueryService = Depends(get_query_service),
):
    """
    List families, largest first.

    Each family carries a compact projection of its canonical token
    (symbol, name, chain, address) or null when it has none.
    """
    return service.list_families(base_asset=base_asset, limit=limit, skip=skip)


@router.get("/{family_id}", response_model=FamilyDetailResponse)
def get_family_detail(
    family_id: str,
    service: QueryService = Depends(get_query_service),
):
    """Family with all member tokens, grouped views, graph and stats."""
    return service.get_family_detail(family_id)


@router.post("/{family_id}/resolve", response_model=ResolveResponse)
def resolve_family(
    family_id: str,
    engine: FamilyResolutionEngine = Depends(get_engine),
):
    """
    Recompute a family from its current member tokens.

    Used for repair and backfill. A family with no remaining members is
    removed and reported as orphaned.
    """
    log.info(f"Explicit recompute requested for family {family_id}")
    family = engine.resolve_family(family_id)
    if family is None:
        return ResolveResponse(family_id=family_id, status="orphaned")
    return ResolveResponse(family_id=family_id, status="resolved", family=FamilyOut.model_validate(family))
