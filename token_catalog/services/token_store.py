"""Token store adapter - identity-keyed lookups and atomic upserts.

Tokens are keyed by (chain, contract_address). A new key is inserted with
``ON CONFLICT DO NOTHING`` and an existing key is overwritten with a single
``UPDATE``; when either statement touches zero rows another writer won the
race, so the upsert re-reads once and retries before giving up.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from token_catalog.core.db import upsert_insert
from token_catalog.core.errors import ConflictError, TransientError
from token_catalog.core.logging import get_logger
from token_catalog.models.base import utcnow
from token_catalog.models.chain import Chain
from token_catalog.models.token import Token
from token_catalog.schemas.ingest import ChainInput, TokenInput
from token_catalog.services.identity import family_identifier

log = get_logger("token_store")

_tokens = Token.__table__
_chains = Chain.__table__


@dataclass
class UpsertResult:
    token: Token
    was_created: bool
    previous_family_id: Optional[str] = None

    @property
    def family_changed(self) -> bool:
        return self.previous_family_id is not None and self.previous_family_id != self.token.family_id


class TokenStore:
    """Reads and writes tokens; transaction boundaries belong to the caller."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------
    def get(self, token_id: uuid.UUID) -> Optional[Token]:
        return self.db.get(Token, token_id)

    def get_many(self, token_ids: Sequence[uuid.UUID]) -> List[Token]:
        if not token_ids:
            return []
        stmt = select(Token).where(Token.id.in_(list(token_ids)))
        return list(self.db.execute(stmt).scalars().all())

    def find_by_identity(self, chain: str, contract_address: str) -> Optional[Token]:
        stmt = (
            select(Token)
            .where(Token.chain == chain, Token.contract_address == contract_address)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_family(self, family_id: str) -> List[Token]:
        """All tokens currently carrying ``family_id``; unordered."""
        stmt = select(Token).where(Token.family_id == family_id).execution_options(populate_existing=True)
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Upserts
    # -------------------------------------------------------------------------
    def upsert_token(self, candidate: TokenInput) -> UpsertResult:
        """Insert or fully overwrite the token identified by (chain, contract_address)."""
        try:
            return self._attempt_upsert(candidate)
        except ConflictError as first:
            log.debug(f"Retrying upsert for {candidate.chain}:{candidate.contract_address} after conflict: {first}")

        try:
            return self._attempt_upsert(candidate)
        except ConflictError as exc:
            raise TransientError(
                f"Token {candidate.chain}:{candidate.contract_address} kept conflicting with a concurrent writer"
            ) from exc

    def _attempt_upsert(self, candidate: TokenInput) -> UpsertResult:
        row = candidate.to_row()
        row["family_id"] = family_identifier(candidate.base_asset)
        now = utcnow()

        existing = self.find_by_identity(candidate.chain, candidate.contract_address)

        if existing is not None:
            previous_family_id = existing.family_id
            stmt = (
                update(_tokens)
                .where(
                    _tokens.c.chain == candidate.chain,
                    _tokens.c.contract_address == candidate.contract_address,
                )
                .values(**row, updated_at=now)
            )
            if self.db.execute(stmt).rowcount != 1:
                raise ConflictError(f"Token {candidate.chain}:{candidate.contract_address} vanished during update")
            token = self.find_by_identity(candidate.chain, candidate.contract_address)
            if token is None:
                raise ConflictError(f"Token {candidate.chain}:{candidate.contract_address} vanished after update")
            return UpsertResult(token=token, was_created=False, previous_family_id=previous_family_id)

        stmt = (
            upsert_insert(self.db, _tokens)
            .values(id=uuid.uuid4(), created_at=now, updated_at=now, **row)
            .on_conflict_do_nothing(index_elements=["chain", "contract_address"])
        )
        if self.db.execute(stmt).rowcount != 1:
            raise ConflictError(f"Token {candidate.chain}:{candidate.contract_address} was inserted concurrently")
        token = self.find_by_identity(candidate.chain, candidate.contract_address)
        if token is None:
            raise ConflictError(f"Token {candidate.chain}:{candidate.contract_address} vanished after insert")
        return UpsertResult(token=token, was_created=True)


class ChainRegistry:
    """Chain reference data. Idempotent upserts keyed by chain_id."""

    def __init__(self, db: Session):
        self.db = db

    def upsert_chain(self, chain: ChainInput) -> None:
        now = utcnow()
        stmt = upsert_insert(self.db, _chains).values(
            chain_id=chain.chain_id,
            name=chain.name,
            native_currency=chain.native_currency,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["chain_id"],
            set_={
                "name": stmt.excluded.name,
                "native_currency": stmt.excluded.native_currency,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.db.execute(stmt)

    def known_chain_ids(self) -> set[str]:
        return set(self.db.execute(select(Chain.chain_id)).scalars().all())

    def list_chains(self) -> List[Chain]:
        return list(self.db.execute(select(Chain).order_by(Chain.chain_id)).scalars().all())
