from token_catalog.api.routes.chains import router as chains_router
from token_catalog.api.routes.families import router as families_router
from token_catalog.api.routes.health import router as health_router
from token_catalog.api.routes.ingest import router as ingest_router
from token_catalog.api.routes.stats import router as stats_router
from token_catalog.api.routes.tokens import router as tokens_router

__all__ = [
    "chains_router",
    "families_router",
    "health_router",
    "ingest_router",
    "stats_router",
    "tokens_router",
]
