"""Token routes - filtered listing and token detail."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from token_catalog.api.deps import get_query_service
from token_catalog.schemas.api import TokenDetailResponse, TokenListResponse
from token_catalog.services.query_service import QueryService

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.get("", response_model=TokenListResponse)
def list_tokens(
    chain: Optional[str] = Query(None, description="Filter by blockchain (exact match, e.g. ethereum)"),
    token_type: Optional[str] = Query(None, alias="type", description="Filter by variant kind (CANONICAL, WRAPPED, BRIDGED, DERIVATIVE, SYNTHETIC)"),
    variant_kind: Optional[str] = Query(None, alias="variantKind", description="Alias of type"),
    family_id: Optional[str] = Query(None, alias="familyId", description="Filter by family ID (exact match)"),
    symbol: Optional[str] = Query(None, description="Filter by symbol (case-insensitive partial match)"),
    base_asset: Optional[str] = Query(None, alias="baseAsset", description="Filter by base asset (case-insensitive partial match)"),
    limit: int = Query(50, ge=1, description="Max results per page (capped at 100)"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    service: QueryService = Depends(get_query_service),
):
    """
    List tokens newest first.

    Each token is joined with its family's display name; tokens whose family
    is missing show "Unknown". ``pagination.hasMore`` tells whether more
    results exist past this page.
    """
    return service.list_tokens(
        chain=chain,
        variant_kind=variant_kind or token_type,
        family_id=family_id,
        symbol=symbol,
        base_asset=base_asset,
        limit=limit,
        skip=skip,
    )


@router.get("/{token_id}", response_model=TokenDetailResponse)
def get_token_detail(
    token_id: str,
    service: QueryService = Depends(get_query_service),
):
    """Token with its family, related tokens, grouped views and relationship graph."""
    return service.get_token_detail(token_id)
