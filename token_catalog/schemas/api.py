from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from token_catalog.models.token import VariantKind


class CamelModel(BaseModel):
    """Response models are emitted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TokenOut(CamelModel):
    id: UUID
    symbol: str
    name: str
    chain: str
    contract_address: str
    decimals: int
    family_id: str
    base_asset: str
    variant_kind: VariantKind
    image_url: str
    is_canonical: bool
    bridge_protocol: Optional[str] = None
    wrapping_protocol: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TokenListItem(TokenOut):
    family_name: str


class CanonicalTokenSummary(CamelModel):
    """Bounded projection of a family's canonical token for list payloads."""

    id: UUID
    symbol: str
    name: str
    chain: str
    contract_address: str


class FamilyOut(CamelModel):
    family_id: str
    base_asset: str
    canonical_token_id: Optional[UUID] = None
    name: str
    description: str
    image_url: str
    total_variants: int
    chains: list[str]
    version: int
    created_at: datetime
    updated_at: datetime


class FamilyListItem(FamilyOut):
    canonical_token: Optional[CanonicalTokenSummary] = None


class FamilyWithCanonical(FamilyOut):
    canonical_token: Optional[TokenOut] = None


class Pagination(CamelModel):
    total: int
    limit: int
    skip: int
    has_more: bool


class TokenListResponse(CamelModel):
    tokens: list[TokenListItem]
    pagination: Pagination


class FamilyListResponse(CamelModel):
    families: list[FamilyListItem]
    pagination: Pagination


class GraphNodeOut(CamelModel):
    id: str
    label: str
    variant_kind: VariantKind
    chain: str
    is_canonical: bool
    is_current: bool = False


class GraphEdgeOut(CamelModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    variant_kind: VariantKind


class GraphOut(CamelModel):
    nodes: list[GraphNodeOut]
    edges: list[GraphEdgeOut]


class FamilyStats(CamelModel):
    total_tokens: int
    by_type: dict[str, int]
    by_chain: dict[str, int]
    chains: int


class FamilyDetailResponse(CamelModel):
    family: FamilyWithCanonical
    tokens: list[TokenOut]
    grouped_by_type: dict[str, list[TokenOut]]
    grouped_by_chain: dict[str, list[TokenOut]]
    graph: GraphOut
    stats: FamilyStats


class TokenStats(CamelModel):
    total_variants: int
    chains: int
    types: int


class TokenDetailResponse(CamelModel):
    token: TokenOut
    family: FamilyWithCanonical
    related_tokens: list[TokenOut]
    grouped_by_type: dict[str, list[TokenOut]]
    grouped_by_chain: dict[str, list[TokenOut]]
    graph: GraphOut
    stats: TokenStats


class IngestFailureOut(CamelModel):
    index: int
    kind: str
    message: str
    chain: Optional[str] = None
    contract_address: Optional[str] = None


class ChainFailureOut(CamelModel):
    index: Optional[int] = None
    kind: str
    message: str
    chain_id: Optional[str] = None


class FamilyFailureOut(CamelModel):
    family_id: str
    kind: str
    message: str


class IngestResponse(CamelModel):
    success: bool
    run_id: Optional[UUID] = None
    inserted_count: int
    updated_count: int
    affected_family_ids: list[str]
    orphaned_family_ids: list[str] = []
    failures: list[IngestFailureOut] = []
    chain_failures: list[ChainFailureOut] = []
    family_failures: list[FamilyFailureOut] = []
    message: str


class ResolveResponse(CamelModel):
    family_id: str
    status: str  # resolved | orphaned
    family: Optional[FamilyOut] = None


class ChainOut(CamelModel):
    chain_id: str
    name: str
    native_currency: str


class HealthResponse(CamelModel):
    database: str
    last_ingest_status: str | None


class StatsResponse(CamelModel):
    run_id: UUID
    status: str
    tokens_received: int
    inserted_count: int
    updated_count: int
    families_resolved: int
    failure_count: int
    error_message: str | None = None
    started_at: datetime
    ended_at: datetime | None


class ErrorResponse(CamelModel):
    error: str
    message: str
