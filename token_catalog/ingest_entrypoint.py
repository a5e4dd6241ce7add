"""Ingest entrypoint - Standalone bulk loader and admin purge.

Usage:
    python -m token_catalog.ingest_entrypoint load data/seed_data.json              # Ingest in-process
    python -m token_catalog.ingest_entrypoint load data/seed_data.json --api URL    # POST to a running API
    python -m token_catalog.ingest_entrypoint clear                                 # Purge tokens and families
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from sqlalchemy import delete
from sqlalchemy.orm import Session

from token_catalog.api.routes.ingest import to_response
from token_catalog.core.config import settings
from token_catalog.core.db import SessionLocal
from token_catalog.core.errors import CatalogError, InvalidInputError, TransientError
from token_catalog.core.logging import get_logger
from token_catalog.models.family import Family
from token_catalog.models.token import Token
from token_catalog.services.family_service import FamilyResolutionEngine

logger = get_logger("ingest_entrypoint")

DEFAULT_SEED_PATH = Path(__file__).parent.parent / "data" / "seed_data.json"

USAGE = "Usage: python -m token_catalog.ingest_entrypoint (load <file.json> [--api URL] | clear)"


def load_payload(path: Path) -> Dict[str, Any]:
    """Read a ``{"chains": [...], "tokens": [...]}`` seed file."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise InvalidInputError(f"Seed file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Seed file is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise InvalidInputError("Seed file must contain an object with a tokens array")

    logger.info(
        f"Loaded seed data: {len(payload.get('chains') or [])} chains, {len(payload.get('tokens') or [])} tokens"
    )
    return payload


def ingest_in_process(payload: Dict[str, Any], db: Optional[Session] = None) -> Dict[str, Any]:
    """Run the ingest pipeline directly against the database."""
    session = db or SessionLocal()
    try:
        result = FamilyResolutionEngine(session).ingest_payload(payload)
        return to_response(result).model_dump(mode="json", by_alias=True)
    finally:
        if db is None:
            session.close()


async def post_payload(
    payload: Dict[str, Any],
    api_url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Send the payload to a running API's /ingest endpoint."""
    ingest_url = f"{api_url.rstrip('/')}/ingest"
    logger.info(f"Sending data to {ingest_url}")

    try:
        async with httpx.AsyncClient(timeout=settings.INGEST_HTTP_TIMEOUT_SECONDS, transport=transport) as client:
            resp = await client.post(ingest_url, json=payload)
    except httpx.TransportError as exc:
        raise TransientError(f"Could not reach {ingest_url}: {exc}") from exc

    if resp.status_code == 400:
        raise InvalidInputError(resp.json().get("message", resp.text))
    if resp.status_code >= 500:
        raise TransientError(f"API returned {resp.status_code}: {resp.text}")
    resp.raise_for_status()
    return resp.json()


def purge_catalog(db: Session) -> Dict[str, int]:
    """Delete every token and family. Chain registry entries are kept."""
    tokens_deleted = db.execute(delete(Token)).rowcount
    families_deleted = db.execute(delete(Family)).rowcount
    db.commit()
    logger.warning(f"Purged catalog: {tokens_deleted} tokens, {families_deleted} families")
    return {"tokens_deleted": tokens_deleted, "families_deleted": families_deleted}


def _report(result: Dict[str, Any]) -> None:
    logger.info(
        f"Inserted: {result.get('insertedCount', 0)} tokens | Updated: {result.get('updatedCount', 0)} tokens | "
        f"Families created/updated: {len(result.get('affectedFamilyIds', []))}"
    )
    for index, family_id in enumerate(result.get("affectedFamilyIds", []), start=1):
        logger.info(f"  {index}. {family_id[:8]}...")
    for failure in result.get("failures", []):
        logger.warning(f"  failed token #{failure.get('index')}: {failure.get('message')}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the bulk loader."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] not in ("load", "clear"):
        logger.error(USAGE)
        return 2

    command = args.pop(0)
    try:
        if command == "clear":
            with SessionLocal() as db:
                purge_catalog(db)
            return 0

        api_url: Optional[str] = None
        if "--api" in args:
            position = args.index("--api")
            api_url = args[position + 1] if position + 1 < len(args) else settings.INGEST_API_URL
            del args[position : position + 2]

        path = Path(args[0]) if args else DEFAULT_SEED_PATH
        payload = load_payload(path)

        if api_url:
            result = asyncio.run(post_payload(payload, api_url))
        else:
            result = ingest_in_process(payload)
    except CatalogError as exc:
        logger.error(f"{command} failed: {exc.kind}: {exc.message}")
        return 1

    _report(result)
    return 0 if result.get("success", False) else 1


if __name__ == "__main__":
    sys.exit(main())
