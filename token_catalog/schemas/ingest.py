"""Ingest payload schemas.

Both the compact wire names (``name``, ``type``, ``metadata.isCanonical``) and
the descriptive ones (``displayName``, ``variantKind``, ``isCanonicalFlag``)
are accepted so seed files and API callers can use either.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from token_catalog.core.config import settings
from token_catalog.models.token import VariantKind

_METADATA_KEYS = {
    "isCanonical": "isCanonicalFlag",
    "bridgeProtocol": "bridgeProtocol",
    "wrappingProtocol": "wrappingProtocol",
}


class TokenInput(BaseModel):
    """One token record as supplied by a caller."""

    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(min_length=1)
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "displayName", "display_name"))
    chain: str = Field(min_length=1)
    contract_address: str = Field(
        min_length=1,
        validation_alias=AliasChoices("contractAddress", "contract_address", "address"),
    )
    decimals: int = Field(18, ge=0)
    base_asset: str = Field(min_length=1, validation_alias=AliasChoices("baseAsset", "base_asset"))
    variant_kind: VariantKind = Field(validation_alias=AliasChoices("variantKind", "variant_kind", "type"))
    image_url: str = Field(
        default_factory=lambda: settings.DEFAULT_TOKEN_IMAGE,
        validation_alias=AliasChoices("imageUrl", "image_url"),
    )
    is_canonical: bool = Field(False, validation_alias=AliasChoices("isCanonicalFlag", "is_canonical", "isCanonical"))
    bridge_protocol: Optional[str] = Field(None, validation_alias=AliasChoices("bridgeProtocol", "bridge_protocol"))
    wrapping_protocol: Optional[str] = Field(None, validation_alias=AliasChoices("wrappingProtocol", "wrapping_protocol"))

    @model_validator(mode="before")
    @classmethod
    def _lift_metadata(cls, data: Any) -> Any:
        """Flatten the nested ``metadata`` block; top-level values win."""
        if not isinstance(data, dict) or not isinstance(data.get("metadata"), dict):
            return data
        merged = dict(data)
        for nested_key, flat_key in _METADATA_KEYS.items():
            if nested_key in data["metadata"] and flat_key not in merged:
                merged[flat_key] = data["metadata"][nested_key]
        return merged

    @field_validator("variant_kind", mode="before")
    @classmethod
    def _upper_variant_kind(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def display_name(self) -> str:
        return self.name or self.symbol

    def to_row(self) -> dict[str, Any]:
        """Mutable columns written on both insert and full overwrite."""
        return {
            "symbol": self.symbol,
            "name": self.display_name,
            "chain": self.chain,
            "contract_address": self.contract_address,
            "decimals": self.decimals,
            "base_asset": self.base_asset,
            "variant_kind": self.variant_kind,
            "image_url": self.image_url,
            "is_canonical": self.is_canonical,
            "bridge_protocol": self.bridge_protocol,
            "wrapping_protocol": self.wrapping_protocol,
        }


class ChainInput(BaseModel):
    """Chain registry entry."""

    model_config = ConfigDict(extra="ignore")

    chain_id: str = Field(min_length=1, validation_alias=AliasChoices("chainId", "chain_id"))
    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "displayName", "display_name"))
    native_currency: str = Field(
        min_length=1,
        validation_alias=AliasChoices("nativeCurrency", "nativeCurrencySymbol", "native_currency"),
    )
