"""
FastAPI Application - Cached Stock Quote API

Fronts a third-party quote provider with an in-process cache and single-flight
request deduplication.

Endpoints:
    - GET    /api/stock/{symbol}   - Daily quote history for a symbol (cached)
    - GET    /api/search?q=...     - Symbol search suggestions
    - GET    /api/cache            - Cache statistics, config and in-flight fetches
    - DELETE /api/cache            - Clear the cache (or one ?symbol=)
    - POST   /api/cache/cleanup    - Purge expired cache entries
    - GET    /health               - Provider health check

Error responses for quote lookups carry {type, message, can_retry}:
    INVALID_SYMBOL -> 400, RATE_LIMITED -> 429, UPSTREAM_AUTH_ERROR -> 401,
    anything else -> 500

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.errors import QuoteLookupError
from core.logging import logger
from core.provider_manager import ProviderManager
from core.schemas import ErrorResponse, QuoteRecord, SearchResponse
from core.utils.symbols import normalize_symbol
from core.utils.time import current_utc_isoformat
from services.quote_service import QuoteService
from services.single_flight import SingleFlight
from storage.quote_cache import QuoteCache


API_NAME = "quotegate Stock Quote API"
API_VERSION = "1.0.0"


# ============================================
# Service Wiring
# ============================================

def build_quote_service(manager: ProviderManager) -> QuoteService:
    """
    Create the QuoteService for the configured provider.

    Search goes to the configured provider when it supports search, otherwise
    to the first registered provider that does.
    """
    provider = manager.get_provider(settings.quote_provider)

    search_provider = provider
    if not provider.supports("search"):
        searchable = manager.get_providers_with_feature("search")
        if searchable:
            search_provider = manager.get_provider(searchable[0])

    cache = QuoteCache(
        ttl_seconds=settings.cache_ttl,
        max_size=settings.cache_max_size,
        cleanup_interval=settings.cache_cleanup_interval,
    )
    return QuoteService(
        provider,
        cache=cache,
        flight=SingleFlight(fetch_timeout=settings.fetch_timeout),
        search_provider=search_provider,
    )


def get_quote_service(request: Request) -> QuoteService:
    return request.app.state.quote_service


def get_provider_manager(request: Request) -> ProviderManager:
    return request.app.state.providers


# ============================================
# Routes
# ============================================

router = APIRouter()


@router.get("/", tags=["System"])
async def root(request: Request):
    """API information."""
    service: QuoteService = request.app.state.quote_service
    return {
        "name": API_NAME,
        "version": API_VERSION,
        "status": "operational",
        "docs": "/docs",
        "provider": service.provider.name,
        "providers": request.app.state.providers.list_providers(),
    }


@router.get("/health", tags=["System"])
async def health_check(
    service: QuoteService = Depends(get_quote_service),
    manager: ProviderManager = Depends(get_provider_manager)
):
    """Health check - tests connectivity to the providers in use."""
    health = await manager.health_check_all()
    active = {service.provider.name, service.search_provider.name}
    healthy = all(health.get(name, False) for name in active)
    return {
        "status": "healthy" if healthy else "degraded",
        "provider": service.provider.name,
        "providers": health,
    }


@router.get(
    "/api/stock/{symbol}",
    response_model=QuoteRecord,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    tags=["Quotes"],
)
async def get_stock(symbol: str, service: QuoteService = Depends(get_quote_service)):
    """
    Get daily quote history for a symbol.

    Served from cache while fresh; concurrent misses for the same symbol share
    one upstream fetch.

    Examples:
        GET /api/stock/AAPL
        GET /api/stock/msft
    """
    return await service.lookup(symbol)


@router.get(
    "/api/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    tags=["Quotes"],
)
async def search_stocks(
    q: Optional[str] = Query(default=None, description="Free-text query (company name or ticker)"),
    service: QuoteService = Depends(get_quote_service)
):
    """
    Search for stocks and ETFs.

    Example:
        GET /api/search?q=apple
    """
    if not q or not q.strip():
        return SearchResponse()

    results = await service.search(q)
    return SearchResponse(results=results, query=q, timestamp=current_utc_isoformat())


@router.get("/api/cache", tags=["Cache"])
async def get_cache_info(service: QuoteService = Depends(get_quote_service)):
    """Cache statistics, configuration, cached symbols and in-flight fetches."""
    return {**service.info(), "timestamp": current_utc_isoformat()}


@router.delete("/api/cache", tags=["Cache"])
async def clear_cache(
    symbol: Optional[str] = Query(default=None, description="Only drop this symbol"),
    service: QuoteService = Depends(get_quote_service)
):
    """
    Clear cached data.

    Examples:
        DELETE /api/cache
        DELETE /api/cache?symbol=AAPL
    """
    if symbol and symbol.strip():
        normalized = normalize_symbol(symbol)
        deleted = service.invalidate(normalized)
        return {
            "message": (
                f"Cache cleared for symbol: {normalized}" if deleted
                else f"No cache found for symbol: {normalized}"
            ),
            "deleted": deleted,
        }

    service.clear()
    return {"message": "All cache cleared successfully"}


@router.post("/api/cache/cleanup", tags=["Cache"])
async def cleanup_cache(service: QuoteService = Depends(get_quote_service)):
    """Purge expired cache entries."""
    removed = service.cleanup()
    return {
        "message": f"Cache cleanup completed. Removed {removed} expired entries.",
        "removed_count": removed,
    }


# ============================================
# Error Handlers
# ============================================

async def quote_error_handler(request: Request, exc: QuoteLookupError):
    """Render typed lookup errors as {type, message, can_retry}."""
    logger.error(f"Stock API Error: {exc.kind.value} - {exc.message} ({request.url.path})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def not_found_handler(request, exc):
    """Handle 404 errors."""
    return JSONResponse(status_code=404, content={"detail": "Not found", "path": str(request.url)})


async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================
# Application Factory
# ============================================

def create_app(
    quote_service: Optional[QuoteService] = None,
    manager: Optional[ProviderManager] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        quote_service: Pre-built service (tests); built from settings when omitted
        manager: Provider registry (tests); all built-in providers when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=== Application Starting ===")
        warm_task = None
        try:
            validate_configuration()
            app.state.providers = manager if manager is not None else ProviderManager()
            await app.state.providers.initialize_all()
            app.state.quote_service = quote_service if quote_service is not None else build_quote_service(app.state.providers)
            await app.state.quote_service.start()

            if settings.warm_symbols_list:
                warm_task = asyncio.create_task(
                    app.state.quote_service.warm_cache(settings.warm_symbols_list),
                    name="quote_cache_warmup",
                )
            logger.info("=== Started Successfully ===")
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        yield

        logger.info("=== Shutting Down ===")
        try:
            if warm_task and not warm_task.done():
                warm_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await warm_task
            await app.state.quote_service.stop()
            await app.state.providers.shutdown_all()
            logger.info("=== Shutdown Complete ===")
        except Exception as e:
            logger.error(f"Shutdown error: {e}")

    app = FastAPI(
        title=API_NAME,
        description=(
            "Cached, deduplicated access to daily stock quotes.\n\n"
            "## REST Endpoints\n"
            "- `GET /api/stock/{symbol}` - Daily quote history\n"
            "- `GET /api/search?q=` - Symbol search\n"
            "- `GET /api/cache` - Cache statistics\n"
            "- `DELETE /api/cache` - Clear cache (optional `?symbol=`)\n"
            "- `POST /api/cache/cleanup` - Purge expired entries\n"
            "- `GET /health` - Health check\n"
        ),
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    app.include_router(router)
    app.add_exception_handler(QuoteLookupError, quote_error_handler)
    app.add_exception_handler(404, not_found_handler)
    app.add_exception_handler(500, internal_error_handler)

    return app


app = create_app()
