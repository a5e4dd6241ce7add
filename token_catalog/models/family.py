"""Family aggregate: every token that shares a normalized base asset.

Aggregates (``total_variants``, ``chains``, ``canonical_token_id``) are only
ever written as a whole by the family resolver, never patched field by field.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from token_catalog.models.base import Base, utcnow


class Family(Base):
    __tablename__ = "families"

    family_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    base_asset: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)

    # Pointer by identity; the token outlives a cleared reference
    canonical_token_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)

    total_variants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chains: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Bumped on every recompute
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


# Display metadata for well-known tickers; anything else gets the generic template
WELL_KNOWN_FAMILIES = [
    {"base_asset": "ETH", "name": "Ethereum Family", "description": "All variants of Ethereum including wrapped, staked, and bridged versions across multiple chains."},
    {"base_asset": "BTC", "name": "Bitcoin Family", "description": "Native Bitcoin and all wrapped/bridged variants across multiple blockchains."},
    {"base_asset": "SOL", "name": "Solana Family", "description": "Native Solana and all wrapped/bridged variants across multiple blockchains."},
    {"base_asset": "USDC", "name": "USD Coin Family", "description": "Circle's USD Coin across multiple chains, including native and bridged versions."},
    {"base_asset": "USDT", "name": "Tether Family", "description": "Tether's USD stablecoin across multiple blockchains."},
    {"base_asset": "DAI", "name": "DAI Family", "description": "MakerDAO's decentralized stablecoin and its derivatives."},
    {"base_asset": "LINK", "name": "Chainlink Family", "description": "Chainlink token across multiple chains."},
    {"base_asset": "UNI", "name": "Uniswap Family", "description": "Uniswap governance token across multiple chains."},
    {"base_asset": "AAVE", "name": "Aave Family", "description": "Aave governance token across multiple chains."},
]
