from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from token_catalog.api.routes import chains, families, health, ingest, stats, tokens
from token_catalog.core.config import settings
from token_catalog.core.errors import CatalogError, InvalidInputError
from token_catalog.core.logging import get_logger

log = get_logger("app")


def run_migrations() -> None:
    """Execute Alembic migrations programmatically on startup."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    if settings.AUTO_MIGRATE:
        try:
            run_migrations()
        except Exception:
            log.exception("Failed to apply migrations on startup")
            raise
    else:
        log.info("Skipping migrations (AUTO_MIGRATE=false)")

    yield

    log.info("Application shutdown complete")


app = FastAPI(
    title="Token Family Catalog",
    description="Multi-chain token directory grouping token variants into canonical families",
    version="1.0.0",
    lifespan=lifespan,
    # Disable docs in production for security
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    debug=settings.debug_enabled,
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    error = InvalidInputError(f"Invalid request: {details}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/", tags=["index"])
def api_index():
    """Describe the available endpoints."""
    return {
        "name": "Token Family Catalog API",
        "version": app.version,
        "description": "Multi-chain token directory API",
        "endpoints": {
            "tokens": {
                "list": {
                    "method": "GET",
                    "path": "/tokens",
                    "queryParams": {
                        "chain": "Filter by blockchain (e.g., ethereum, arbitrum)",
                        "symbol": "Filter by token symbol (partial match)",
                        "type": "Filter by variant kind (CANONICAL, WRAPPED, BRIDGED, DERIVATIVE, SYNTHETIC)",
                        "baseAsset": "Filter by base asset (partial match)",
                        "familyId": "Filter by family ID",
                        "limit": f"Max results per page (default: {settings.DEFAULT_PAGE_LIMIT}, max: {settings.MAX_PAGE_LIMIT})",
                        "skip": "Pagination offset (default: 0)",
                    },
                },
                "detail": {"method": "GET", "path": "/tokens/{id}"},
            },
            "families": {
                "list": {"method": "GET", "path": "/families", "queryParams": {"baseAsset": "Filter by base asset"}},
                "detail": {"method": "GET", "path": "/families/{familyId}"},
                "resolve": {"method": "POST", "path": "/families/{familyId}/resolve"},
            },
            "chains": {"method": "GET", "path": "/chains"},
            "ingest": {
                "method": "POST",
                "path": "/ingest",
                "requestBody": {
                    "chains": "Array of chain objects (optional)",
                    "tokens": "Array of token objects (required)",
                },
            },
        },
    }


app.include_router(tokens.router)
app.include_router(families.router)
app.include_router(chains.router)
app.include_router(ingest.router)
app.include_router(health.router)
app.include_router(stats.router)
