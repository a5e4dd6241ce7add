from token_catalog.models.base import Base
from token_catalog.models.chain import Chain
from token_catalog.models.family import Family, WELL_KNOWN_FAMILIES
from token_catalog.models.runs import IngestRun
from token_catalog.models.token import Token, VariantKind

__all__ = [
    "Base",
    "Chain",
    "Family",
    "WELL_KNOWN_FAMILIES",
    "IngestRun",
    "Token",
    "VariantKind",
]
