"""Family resolution engine.

This module owns the family invariants:
1. Every ingested token is assigned to the family of its normalized base asset
2. Each family has at most one canonical token, picked by a fixed tie-break
3. ``total_variants`` and ``chains`` always mirror the family's current members

Recomputes run inside a per-family critical section (see core.locks) and are
persisted as a single upsert of the whole family row, never as field patches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from token_catalog.core.config import settings
from token_catalog.core.db import upsert_insert
from token_catalog.core.errors import CatalogError, InvalidInputError, InvariantError, translate_store_errors
from token_catalog.core.locks import KeyedLockRegistry, acquire_advisory_lock, family_locks
from token_catalog.core.logging import get_logger, ingest_context
from token_catalog.models.base import utcnow
from token_catalog.models.family import WELL_KNOWN_FAMILIES, Family
from token_catalog.models.runs import IngestRun
from token_catalog.models.token import Token
from token_catalog.schemas.ingest import ChainInput, TokenInput
from token_catalog.services.identity import normalize_base_asset
from token_catalog.services.token_store import ChainRegistry, TokenStore

log = get_logger("family_service")

_families = Family.__table__
_WELL_KNOWN = {entry["base_asset"]: entry for entry in WELL_KNOWN_FAMILIES}


# =============================================================================
# PURE DERIVATION - no store access
# =============================================================================
def creation_order_key(token: Token) -> tuple:
    """Earliest-created first; identity key breaks ties."""
    return (token.created_at, token.chain, token.contract_address)


def select_canonical(tokens: Sequence[Token]) -> Optional[Token]:
    """Pick the earliest-created token that claims canonical status, if any."""
    candidates = [t for t in tokens if t.claims_canonical]
    if not candidates:
        return None
    return min(candidates, key=creation_order_key)


def describe_family(base_asset: str, canonical: Optional[Token], tokens: Sequence[Token]) -> Dict[str, str]:
    """Display name, description and image for a family."""
    known = _WELL_KNOWN.get(base_asset)
    name = known["name"] if known else f"{base_asset} Family"
    description = known["description"] if known else f"All variants of {base_asset} across multiple chains."

    if canonical is not None:
        image_url = canonical.image_url
    elif tokens:
        image_url = min(tokens, key=creation_order_key).image_url
    else:
        image_url = settings.DEFAULT_TOKEN_IMAGE

    return {"name": name, "description": description, "image_url": image_url or settings.DEFAULT_TOKEN_IMAGE}


@dataclass
class FamilyState:
    """Wholesale replacement values for a family row."""

    family_id: str
    base_asset: str
    canonical_token_id: Any
    name: str
    description: str
    image_url: str
    total_variants: int
    chains: List[str]

    def as_row(self) -> Dict[str, Any]:
        return {
            "family_id": self.family_id,
            "base_asset": self.base_asset,
            "canonical_token_id": self.canonical_token_id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "total_variants": self.total_variants,
            "chains": self.chains,
        }


def compute_family_state(family_id: str, tokens: Sequence[Token]) -> FamilyState:
    """Derive the full family record from its member tokens.

    Raises:
        InvariantError: if called with no member tokens.
    """
    if not tokens:
        raise InvariantError(f"Family {family_id} has no member tokens")

    ordered = sorted(tokens, key=creation_order_key)
    base_asset = normalize_base_asset(ordered[0].base_asset)
    canonical = select_canonical(ordered)
    display = describe_family(base_asset, canonical, ordered)

    return FamilyState(
        family_id=family_id,
        base_asset=base_asset,
        canonical_token_id=canonical.id if canonical is not None else None,
        name=display["name"],
        description=display["description"],
        image_url=display["image_url"],
        total_variants=len(ordered),
        chains=sorted({t.chain for t in ordered}),
    )


# =============================================================================
# INGEST RESULT
# =============================================================================
@dataclass
class IngestResult:
    inserted_count: int = 0
    updated_count: int = 0
    affected_family_ids: List[str] = field(default_factory=list)
    orphaned_family_ids: List[str] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    chain_failures: List[Dict[str, Any]] = field(default_factory=list)
    family_failures: List[Dict[str, Any]] = field(default_factory=list)
    run_id: Any = None

    @property
    def success(self) -> bool:
        return not (self.failures or self.chain_failures or self.family_failures)

    @property
    def failure_count(self) -> int:
        return len(self.failures) + len(self.chain_failures) + len(self.family_failures)

    @property
    def message(self) -> str:
        processed = self.inserted_count + self.updated_count
        text = f"Successfully processed {processed} tokens across {len(self.affected_family_ids)} families"
        if self.failure_count:
            text += f" ({self.failure_count} failures)"
        return text


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "record"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


# =============================================================================
# ENGINE
# =============================================================================
class FamilyResolutionEngine:
    """Assigns tokens to families and keeps family aggregates consistent.

    Usage:
        engine = FamilyResolutionEngine(db)
        result = engine.ingest(tokens=[...], chains=[...])
        family = engine.resolve_family(family_id)
    """

    def __init__(
        self,
        db: Session,
        locks: KeyedLockRegistry = family_locks,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.locks = locks
        self.timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout
        self.tokens = TokenStore(db)
        self.chains = ChainRegistry(db)

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------
    def resolve_family(self, family_id: str, timeout: Optional[float] = None) -> Optional[Family]:
        """Recompute and persist one family.

        Returns the refreshed family, or None when the family has no members
        left; an orphaned family record is deleted.
        """
        if not family_id:
            raise InvalidInputError("familyId is required")

        with self.locks.hold(family_id, self.timeout if timeout is None else timeout):
            try:
                with translate_store_errors(f"resolve family {family_id}"):
                    acquire_advisory_lock(self.db, family_id)
                    members = self.tokens.find_by_family(family_id)

                    if not members:
                        self._drop_orphan(family_id)
                        self.db.commit()
                        return None

                    state = compute_family_state(family_id, members)
                    family = self._persist(state)
                    self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        log.debug(
            f"Resolved family {family.base_asset} ({family_id[:8]}) variants={family.total_variants} "
            f"chains={len(family.chains)} canonical={family.canonical_token_id}"
        )
        return family

    def _persist(self, state: FamilyState) -> Family:
        now = utcnow()
        row = state.as_row()
        stmt = upsert_insert(self.db, _families).values(**row, version=1, created_at=now, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["family_id"],
            set_={
                "base_asset": stmt.excluded.base_asset,
                "canonical_token_id": stmt.excluded.canonical_token_id,
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "image_url": stmt.excluded.image_url,
                "total_variants": stmt.excluded.total_variants,
                "chains": stmt.excluded.chains,
                "version": _families.c.version + 1,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.db.execute(stmt)

        refreshed = select(Family).where(Family.family_id == state.family_id).execution_options(populate_existing=True)
        return self.db.execute(refreshed).scalar_one()

    def _drop_orphan(self, family_id: str) -> None:
        problem = InvariantError(f"Family {family_id} has no member tokens; removing orphaned record")
        log.warning(problem.message)
        self.db.execute(delete(_families).where(_families.c.family_id == family_id))

    # -------------------------------------------------------------------------
    # Batch ingestion
    # -------------------------------------------------------------------------
    def ingest_payload(self, payload: Any) -> IngestResult:
        """Entry point for raw request bodies: ``{"tokens": [...], "chains": [...]}``."""
        if not isinstance(payload, dict):
            raise InvalidInputError("Invalid request: body must be an object with a tokens array")
        return self.ingest(payload.get("tokens"), payload.get("chains"))

    def ingest(self, tokens: Any, chains: Any = None) -> IngestResult:
        """Upsert chains, then tokens, then recompute each touched family once."""
        if tokens is None or not isinstance(tokens, (list, tuple)):
            raise InvalidInputError("Invalid request: tokens array is required")

        result = IngestResult()
        run = self._start_run(len(tokens))
        result.run_id = run.run_id

        with ingest_context(run.run_id):
            if chains is not None and not isinstance(chains, (list, tuple)):
                # Chain registry problems never block token processing
                log.warning(f"Ignoring chains payload of type {type(chains).__name__}; expected an array")
                result.chain_failures.append(
                    {"index": None, "chain_id": None, "kind": InvalidInputError.kind, "message": "chains must be an array when provided"}
                )
                chains = None

            log.info(f"Ingest started | tokens={len(tokens)} chains={len(chains or [])}")
            try:
                self._ingest_chains(chains or [], result)
                known_chains = self._known_chains()

                affected: Dict[str, None] = {}
                for index, raw in enumerate(tokens):
                    self._ingest_token(index, raw, result, affected, known_chains)

                result.affected_family_ids = list(affected)
                for family_id in result.affected_family_ids:
                    try:
                        if self.resolve_family(family_id) is None:
                            result.orphaned_family_ids.append(family_id)
                    except CatalogError as exc:
                        log.error(f"Family recompute failed for {family_id}: {exc.message}")
                        result.family_failures.append({"family_id": family_id, "kind": exc.kind, "message": exc.message})
            except Exception as exc:
                self._finish_run(run, result, error=str(exc))
                raise

            self._finish_run(run, result)
            log.info(
                f"Ingest finished | inserted={result.inserted_count} updated={result.updated_count} "
                f"families={len(result.affected_family_ids)} failures={result.failure_count}"
            )
        return result

    def _ingest_chains(self, chains: Sequence[Any], result: IngestResult) -> None:
        for index, raw in enumerate(chains):
            chain_id = raw.get("chainId") if isinstance(raw, dict) else None
            try:
                chain = ChainInput.model_validate(raw)
                with translate_store_errors(f"upsert chain {chain.chain_id}"):
                    self.chains.upsert_chain(chain)
                    self.db.commit()
            except ValidationError as exc:
                result.chain_failures.append(
                    {"index": index, "chain_id": chain_id, "kind": InvalidInputError.kind, "message": _validation_message(exc)}
                )
            except CatalogError as exc:
                self.db.rollback()
                log.warning(f"Chain upsert failed at index {index}: {exc.message}")
                result.chain_failures.append({"index": index, "chain_id": chain_id, "kind": exc.kind, "message": exc.message})

    def _ingest_token(
        self,
        index: int,
        raw: Any,
        result: IngestResult,
        affected: Dict[str, None],
        known_chains: set[str],
    ) -> None:
        chain = raw.get("chain") if isinstance(raw, dict) else None
        address = None
        if isinstance(raw, dict):
            address = raw.get("contractAddress") or raw.get("contract_address") or raw.get("address")

        try:
            candidate = TokenInput.model_validate(raw)
            with translate_store_errors(f"upsert token {candidate.chain}:{candidate.contract_address}"):
                upserted = self.tokens.upsert_token(candidate)
                self.db.commit()
        except ValidationError as exc:
            message = _validation_message(exc)
            log.warning(f"Rejected token at index {index}: {message}")
            result.failures.append(
                {"index": index, "chain": chain, "contract_address": address, "kind": InvalidInputError.kind, "message": message}
            )
            return
        except CatalogError as exc:
            self.db.rollback()
            log.warning(f"Token upsert failed at index {index}: {exc.message}")
            result.failures.append(
                {"index": index, "chain": chain, "contract_address": address, "kind": exc.kind, "message": exc.message}
            )
            return

        if upserted.was_created:
            result.inserted_count += 1
        else:
            result.updated_count += 1

        affected[upserted.token.family_id] = None
        if upserted.family_changed:
            log.info(
                f"Token {candidate.chain}:{candidate.contract_address} moved from family "
                f"{upserted.previous_family_id[:8]} to {upserted.token.family_id[:8]}"
            )
            affected[upserted.previous_family_id] = None

        if known_chains and candidate.chain not in known_chains:
            log.warning(f"Token {candidate.symbol} references unregistered chain '{candidate.chain}'")

    def _known_chains(self) -> set[str]:
        with translate_store_errors("load chain registry"):
            return self.chains.known_chain_ids()

    # -------------------------------------------------------------------------
    # Run ledger
    # -------------------------------------------------------------------------
    def _start_run(self, tokens_received: int) -> IngestRun:
        with translate_store_errors("start ingest run"):
            run = IngestRun(status="running", tokens_received=tokens_received)
            self.db.add(run)
            self.db.commit()
            return run

    def _finish_run(self, run: IngestRun, result: IngestResult, error: Optional[str] = None) -> None:
        if error is not None:
            status = "failure"
        elif result.failure_count:
            status = "partial"
        else:
            status = "success"

        try:
            with translate_store_errors("finish ingest run"):
                if error is not None:
                    self.db.rollback()
                run.status = status
                run.inserted_count = result.inserted_count
                run.updated_count = result.updated_count
                run.families_resolved = len(result.affected_family_ids) - len(result.family_failures)
                run.failure_count = result.failure_count
                run.error_message = error
                run.meta = {
                    "affected_family_ids": result.affected_family_ids,
                    "orphaned_family_ids": result.orphaned_family_ids,
                }
                run.ended_at = utcnow()
                self.db.add(run)
                self.db.commit()
        except CatalogError as exc:
            # The batch itself already landed; a missing ledger row is not worth failing it
            log.error(f"Could not record ingest run {run.run_id}: {exc.message}")
