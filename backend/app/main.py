"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine.Engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

# Try to use uvloop for better performance (Unix only)
try:
    import uvloop
    uvloop.install()
    _UVLOOP_ENABLED = True
except ImportError:
    _UVLOOP_ENABLED = False

from app.api import register_error_handlers, router, manager, websocket_endpoint
from app.api.routes import VERSION
from app.clients import DlmmRestClient, InMemoryPool, PoolAdapter
from app.config import Settings, get_settings
from app.services import VaultManager
from app.storage import VaultStore, cache, get_database, init_database
from app.vault_config import load_vaults_config
from core.errors import VaultError

logger = logging.getLogger(__name__)


def build_pool(settings: Settings) -> PoolAdapter:
    """Create the liquidity pool adapter selected by settings."""
    if settings.pool_adapter == "http":
        logger.info(f"Pool adapter: HTTP ({settings.pool_adapter_url})")
        return DlmmRestClient(
            base_url=settings.pool_adapter_url,
            api_key=settings.pool_adapter_api_key,
        )
    if settings.pool_adapter == "memory":
        logger.info(f"Pool adapter: in-memory simulator (fee rate {settings.pool_fee_rate})")
        return InMemoryPool(fee_rate=settings.pool_fee_rate)
    raise ValueError(f"Unknown pool_adapter: {settings.pool_adapter!r}")


async def bootstrap_vaults(vault_manager: VaultManager) -> int:
    """Create the vaults declared in vaults.yaml that don't exist yet."""
    created = 0
    for entry in load_vaults_config().get_enabled_vaults():
        key = entry.vault_key
        if vault_manager.registry.exists(key):
            continue
        try:
            await vault_manager.initialize(entry.admin_identity, entry.to_vault_config(), vault_key=key)
            created += 1
        except VaultError as e:
            logger.error(f"Vault '{key}' from vaults.yaml rejected: {e}")
    return created


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    logger.info("Starting DLMM Vault...")
    logger.info(f"Event loop: {'uvloop' if _UVLOOP_ENABLED else 'asyncio'}")

    # Track initialization state for proper cleanup on failure
    db_initialized = False
    cache_initialized = False
    vault_manager: VaultManager | None = None

    try:
        if settings.persistence_enabled:
            try:
                await asyncio.wait_for(init_database(), timeout=30)
                db_initialized = True
                logger.info("Database initialized")
            except asyncio.TimeoutError:
                raise RuntimeError("Database initialization timed out after 30s")
        else:
            logger.warning("Persistence disabled - vault state lives in memory only")

        # Initialize Redis cache with timeout
        try:
            await asyncio.wait_for(cache.init_cache(), timeout=10)
            cache_initialized = True
            if cache.is_cache_available():
                logger.info("Redis cache initialized")
            else:
                logger.warning("Redis cache unavailable - running without caching")
        except asyncio.TimeoutError:
            logger.warning("Redis cache initialization timed out - running without caching")
            cache_initialized = True  # Mark as initialized to skip cleanup

        store = VaultStore(persistence_enabled=settings.persistence_enabled)
        vault_manager = VaultManager(
            pool=build_pool(settings),
            save_vault=store.save,
            staleness_window=settings.price_staleness_seconds,
        )

        loaded = await vault_manager.registry.load(await store.load_all())
        created = await bootstrap_vaults(vault_manager)
        logger.info(f"Vaults ready: {loaded} loaded, {created} created from vaults.yaml")

        # Broadcast committed operations via WebSocket
        vault_manager.on_event(manager.send_event)

        # Expose vault_manager to API routes via app.state
        app.state.vault_manager = vault_manager

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        # Cleanup on startup failure
        if vault_manager:
            try:
                await vault_manager.close()
            except Exception as cleanup_err:
                logger.warning(f"Error closing pool adapter: {cleanup_err}")
        if cache_initialized:
            try:
                await cache.close_cache()
            except Exception as cleanup_err:
                logger.warning(f"Error closing cache: {cleanup_err}")
        if db_initialized:
            try:
                db = get_database()
                await db.close()
            except Exception as cleanup_err:
                logger.warning(f"Error closing database: {cleanup_err}")
        raise  # Re-raise to prevent app from starting in broken state

    yield

    # Shutdown
    logger.info("Shutting down...")

    app.state.vault_manager = None
    vault_manager.off_event(manager.send_event)
    await vault_manager.close()

    # Close Redis cache
    await cache.close_cache()

    # Close database connections
    if db_initialized:
        try:
            db = get_database()
            await db.close()
            logger.info("Database connections closed")
        except Exception as e:
            logger.warning(f"Error closing database: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="DLMM Vault",
    description="Automated liquidity range management for DLMM pools",
    version=VERSION,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include REST routes
app.include_router(router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "DLMM Vault",
        "version": VERSION,
        "docs": "/docs",
        "event_loop": "uvloop" if _UVLOOP_ENABLED else "asyncio",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "websocket_connections": manager.connection_count,
        "cache": await cache.get_info(),
    }


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
