# Services package
from token_catalog.services.family_service import FamilyResolutionEngine, IngestResult
from token_catalog.services.graph import RelationshipGraph, build_graph
from token_catalog.services.identity import family_identifier
from token_catalog.services.query_service import QueryService
from token_catalog.services.token_store import ChainRegistry, TokenStore

__all__ = [
    "FamilyResolutionEngine",
    "IngestResult",
    "RelationshipGraph",
    "build_graph",
    "family_identifier",
    "QueryService",
    "ChainRegistry",
    "TokenStore",
]
