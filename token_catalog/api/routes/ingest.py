"""Ingest route - bulk upload of tokens and chain registry entries."""

from typing import Any

from fastapi import APIRouter, Body, Depends

from token_catalog.api.deps import get_engine
from token_catalog.core.logging import get_logger
from token_catalog.schemas.api import IngestResponse
from token_catalog.services.family_service import FamilyResolutionEngine, IngestResult

router = APIRouter(prefix="/ingest", tags=["ingest"])
log = get_logger("ingest_routes")


def to_response(result: IngestResult) -> IngestResponse:
    return IngestResponse(
        success=result.success,
        run_id=result.run_id,
        inserted_count=result.inserted_count,
        updated_count=result.updated_count,
        affected_family_ids=result.affected_family_ids,
        orphaned_family_ids=result.orphaned_family_ids,
        failures=result.failures,
        chain_failures=result.chain_failures,
        family_failures=result.family_failures,
        message=result.message,
    )


@router.post("", response_model=IngestResponse)
def ingest(
    payload: Any = Body(..., description="{ tokens: [...], chains?: [...] }"),
    engine: FamilyResolutionEngine = Depends(get_engine),
):
    """
    Bulk upsert tokens (and optionally chains).

    Pipeline:
    1. Upsert chain registry entries by chainId
    2. Upsert each token by (chain, contractAddress)
    3. Recompute every touched family exactly once

    A missing or non-array ``tokens`` rejects the whole batch with 400.
    Individual bad records are reported in ``failures`` and do not stop
    the rest of the batch.
    """
    result = engine.ingest_payload(payload)
    if not result.success:
        log.warning(f"Ingest completed with {result.failure_count} failures")
    return to_response(result)
