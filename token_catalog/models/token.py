"""Chain-specific token representations.

A token is identified by its (chain, contract_address) pair, which is the
upsert key. ``family_id`` is derived from ``base_asset`` and is never taken
from the caller.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from token_catalog.models.base import Base, utcnow


class VariantKind(str, enum.Enum):
    """Relationship of a token to its underlying asset."""

    CANONICAL = "CANONICAL"
    WRAPPED = "WRAPPED"
    BRIDGED = "BRIDGED"
    DERIVATIVE = "DERIVATIVE"
    SYNTHETIC = "SYNTHETIC"


class Token(Base):
    __tablename__ = "tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    symbol: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    chain: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    contract_address: Mapped[str] = mapped_column(String(128), nullable=False)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False)

    family_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True, comment="SHA-256 of the uppercased base asset")
    base_asset: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    variant_kind: Mapped[VariantKind] = mapped_column(
        Enum(VariantKind, name="variant_kind", native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)

    is_canonical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bridge_protocol: Mapped[str | None] = mapped_column(String(100), nullable=True)
    wrapping_protocol: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("chain", "contract_address", name="uq_tokens_chain_contract_address"),
        Index("ix_tokens_family_id_variant_kind", "family_id", "variant_kind"),
    )

    @property
    def claims_canonical(self) -> bool:
        return self.is_canonical or self.variant_kind == VariantKind.CANONICAL

    @property
    def identity_key(self) -> tuple[str, str]:
        return self.chain, self.contract_address
