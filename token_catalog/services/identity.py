"""Stable family identifiers derived from base-asset tickers."""

from __future__ import annotations

import hashlib

from token_catalog.core.errors import InvalidInputError


def normalize_base_asset(base_asset: str) -> str:
    """Uppercase the ticker. Whitespace is significant and left untouched."""
    if not isinstance(base_asset, str) or not base_asset:
        raise InvalidInputError("baseAsset must be a non-empty string")
    return base_asset.upper()


def family_identifier(base_asset: str) -> str:
    """SHA-256 hex digest of the normalized ticker; identical across runs and processes."""
    return hashlib.sha256(normalize_base_asset(base_asset).encode("utf-8")).hexdigest()
