"""Chain registry routes."""

from fastapi import APIRouter, Depends

from token_catalog.api.deps import get_query_service
from token_catalog.schemas.api import ChainOut
from token_catalog.services.query_service import QueryService

router = APIRouter(prefix="/chains", tags=["chains"])


@router.get("", response_model=list[ChainOut])
def list_chains(service: QueryService = Depends(get_query_service)):
    """All registered chains ordered by chainId."""
    return [ChainOut.model_validate(chain) for chain in service.list_chains()]
