"""Query Service - filtered, paginated and enriched reads over tokens and families.

Reads take no locks. A family may be mid-recompute while it is read, which is
fine because aggregates are replaced wholesale.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from token_catalog.core.config import settings
from token_catalog.core.errors import InvalidInputError, NotFoundError, translate_store_errors
from token_catalog.core.logging import get_logger
from token_catalog.models.chain import Chain
from token_catalog.models.family import Family
from token_catalog.models.runs import IngestRun
from token_catalog.models.token import Token, VariantKind
from token_catalog.schemas.api import (
    CanonicalTokenSummary,
    FamilyDetailResponse,
    FamilyListItem,
    FamilyListResponse,
    FamilyOut,
    FamilyStats,
    FamilyWithCanonical,
    GraphEdgeOut,
    GraphNodeOut,
    GraphOut,
    Pagination,
    TokenDetailResponse,
    TokenListItem,
    TokenListResponse,
    TokenOut,
    TokenStats,
)
from token_catalog.services.graph import RelationshipGraph, build_graph

log = get_logger("query_service")

UNKNOWN_FAMILY_NAME = "Unknown"


@dataclass(frozen=True)
class Page:
    limit: int
    skip: int


def make_page(limit: Optional[int] = None, skip: Optional[int] = None) -> Page:
    """Apply defaults and the hard cap; negative or zero values are rejected."""
    limit = settings.DEFAULT_PAGE_LIMIT if limit is None else limit
    skip = 0 if skip is None else skip
    if limit < 1:
        raise InvalidInputError("limit must be at least 1")
    if skip < 0:
        raise InvalidInputError("skip must not be negative")
    return Page(limit=min(limit, settings.MAX_PAGE_LIMIT), skip=skip)


def parse_variant_kind(value: str) -> VariantKind:
    try:
        return VariantKind(value.upper())
    except ValueError:
        allowed = ", ".join(k.value for k in VariantKind)
        raise InvalidInputError(f"Unknown variant kind '{value}'. Expected one of: {allowed}") from None


def parse_token_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidInputError("Invalid token ID format") from None


def _graph_out(graph: RelationshipGraph) -> GraphOut:
    return GraphOut(
        nodes=[GraphNodeOut.model_validate(node) for node in graph.nodes],
        edges=[GraphEdgeOut.model_validate(edge) for edge in graph.edges],
    )


def _grouped_out(groups: Dict[str, List[Token]]) -> Dict[str, List[TokenOut]]:
    return {key: [TokenOut.model_validate(t) for t in members] for key, members in groups.items()}


class QueryService:
    """Handles all catalog read operations - reads from DB only, no writes."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Token listing
    # -------------------------------------------------------------------------
    def list_tokens(
        self,
        chain: Optional[str] = None,
        variant_kind: Optional[str] = None,
        family_id: Optional[str] = None,
        symbol: Optional[str] = None,
        base_asset: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> TokenListResponse:
        page = make_page(limit, skip)

        conditions: List[Any] = []
        if chain:
            conditions.append(Token.chain == chain)
        if variant_kind:
            conditions.append(Token.variant_kind == parse_variant_kind(variant_kind))
        if family_id:
            conditions.append(Token.family_id == family_id)
        if symbol:
            conditions.append(Token.symbol.icontains(symbol, autoescape=True))
        if base_asset:
            conditions.append(Token.base_asset.icontains(base_asset, autoescape=True))

        stmt = (
            select(Token)
            .where(*conditions)
            .order_by(Token.created_at.desc(), Token.chain, Token.contract_address)
            .limit(page.limit)
            .offset(page.skip)
        )
        count_stmt = select(func.count()).select_from(Token).where(*conditions)

        with translate_store_errors("list tokens"):
            tokens = list(self.db.execute(stmt).scalars().all())
            total = self.db.execute(count_stmt).scalar() or 0
            family_names = self._family_names({t.family_id for t in tokens})

        items = [
            TokenListItem(
                **TokenOut.model_validate(t).model_dump(),
                family_name=family_names.get(t.family_id, UNKNOWN_FAMILY_NAME),
            )
            for t in tokens
        ]
        return TokenListResponse(tokens=items, pagination=self._pagination(total, page, len(items)))

    def _family_names(self, family_ids: set[str]) -> Dict[str, str]:
        if not family_ids:
            return {}
        stmt = select(Family.family_id, Family.name).where(Family.family_id.in_(family_ids))
        return {row.family_id: row.name for row in self.db.execute(stmt)}

    # -------------------------------------------------------------------------
    # Family listing
    # -------------------------------------------------------------------------
    def list_families(
        self,
        base_asset: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> FamilyListResponse:
        page = make_page(limit, skip)

        conditions: List[Any] = []
        if base_asset:
            conditions.append(Family.base_asset.icontains(base_asset, autoescape=True))

        stmt = (
            select(Family)
            .where(*conditions)
            .order_by(Family.total_variants.desc(), Family.base_asset.asc())
            .limit(page.limit)
            .offset(page.skip)
        )
        count_stmt = select(func.count()).select_from(Family).where(*conditions)

        with translate_store_errors("list families"):
            families = list(self.db.execute(stmt).scalars().all())
            total = self.db.execute(count_stmt).scalar() or 0
            canonicals = self._canonical_summaries([f.canonical_token_id for f in families if f.canonical_token_id])

        items = [
            FamilyListItem(
                **FamilyOut.model_validate(f).model_dump(),
                canonical_token=canonicals.get(f.canonical_token_id) if f.canonical_token_id else None,
            )
            for f in families
        ]
        return FamilyListResponse(families=items, pagination=self._pagination(total, page, len(items)))

    def _canonical_summaries(self, token_ids: List[uuid.UUID]) -> Dict[uuid.UUID, CanonicalTokenSummary]:
        if not token_ids:
            return {}
        stmt = select(Token.id, Token.symbol, Token.name, Token.chain, Token.contract_address).where(Token.id.in_(token_ids))
        return {row.id: CanonicalTokenSummary.model_validate(row) for row in self.db.execute(stmt)}

    @staticmethod
    def _pagination(total: int, page: Page, returned: int) -> Pagination:
        return Pagination(
            total=total,
            limit=page.limit,
            skip=page.skip,
            has_more=page.skip + returned < total,
        )

    # -------------------------------------------------------------------------
    # Detail views
    # -------------------------------------------------------------------------
    def _family_members(self, family_id: str) -> List[Token]:
        stmt = select(Token).where(Token.family_id == family_id).order_by(Token.variant_kind, Token.chain, Token.contract_address)
        return list(self.db.execute(stmt).scalars().all())

    def _family_with_canonical(self, family: Family, members: List[Token]) -> FamilyWithCanonical:
        canonical = None
        if family.canonical_token_id is not None:
            canonical = next((t for t in members if t.id == family.canonical_token_id), None)
            if canonical is None:
                canonical = self.db.get(Token, family.canonical_token_id)
                if canonical is None:
                    log.warning(f"Family {family.family_id} references missing canonical token {family.canonical_token_id}")
        return FamilyWithCanonical(
            **FamilyOut.model_validate(family).model_dump(),
            canonical_token=TokenOut.model_validate(canonical) if canonical is not None else None,
        )

    def get_family_detail(self, family_id: str) -> FamilyDetailResponse:
        with translate_store_errors(f"load family {family_id}"):
            family = self.db.get(Family, family_id)
            if family is None:
                raise NotFoundError("Family not found")
            members = self._family_members(family_id)
            family_out = self._family_with_canonical(family, members)

        graph = build_graph(None, family, members)
        by_type = {kind: len(group) for kind, group in graph.grouped_by_type.items()}
        by_chain = {chain: len(group) for chain, group in graph.grouped_by_chain.items()}

        return FamilyDetailResponse(
            family=family_out,
            tokens=[TokenOut.model_validate(t) for t in members],
            grouped_by_type=_grouped_out(graph.grouped_by_type),
            grouped_by_chain=_grouped_out(graph.grouped_by_chain),
            graph=_graph_out(graph),
            stats=FamilyStats(
                total_tokens=len(members),
                by_type=by_type,
                by_chain=by_chain,
                chains=len(family.chains),
            ),
        )

    def get_token_detail(self, token_id: str) -> TokenDetailResponse:
        parsed_id = parse_token_id(token_id)

        with translate_store_errors(f"load token {token_id}"):
            token = self.db.get(Token, parsed_id)
            if token is None:
                raise NotFoundError("Token not found")
            family = self.db.get(Family, token.family_id)
            if family is None:
                raise NotFoundError("Family not found for this token")
            members = self._family_members(token.family_id)
            family_out = self._family_with_canonical(family, members)

        related = [t for t in members if t.id != token.id]
        graph = build_graph(token.id, family, members)

        return TokenDetailResponse(
            token=TokenOut.model_validate(token),
            family=family_out,
            related_tokens=[TokenOut.model_validate(t) for t in related],
            grouped_by_type=_grouped_out(graph.grouped_by_type),
            grouped_by_chain=_grouped_out(graph.grouped_by_chain),
            graph=_graph_out(graph),
            stats=TokenStats(
                total_variants=family.total_variants,
                chains=len(family.chains),
                types=len({t.variant_kind for t in members}),
            ),
        )

    # -------------------------------------------------------------------------
    # Chains & ingest runs
    # -------------------------------------------------------------------------
    def list_chains(self) -> List[Chain]:
        with translate_store_errors("list chains"):
            return list(self.db.execute(select(Chain).order_by(Chain.chain_id)).scalars().all())

    def get_ingest_runs(self, status: Optional[str] = None, limit: int = 10) -> List[IngestRun]:
        stmt = select(IngestRun)
        if status:
            stmt = stmt.where(IngestRun.status == status)
        stmt = stmt.order_by(IngestRun.started_at.desc()).limit(limit)
        with translate_store_errors("list ingest runs"):
            return list(self.db.execute(stmt).scalars().all())

    def get_latest_ingest_run(self) -> Optional[IngestRun]:
        runs = self.get_ingest_runs(limit=1)
        return runs[0] if runs else None
