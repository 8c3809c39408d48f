"""FastAPI backend for the supplier parts search."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routes import health, search
from core.search_orchestrator import SearchOrchestrator
from core.tab_platform import PlaywrightTabPlatform
from utils.config_loader import load_config
from utils.logger import setup_logger


# Get settings
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: load settings.json, start the browser, build the orchestrator
    - Shutdown: stop the browser
    """
    config = load_config(settings.config_path)
    if settings.headless is not None:
        config = {**config, "browser": {**config.get("browser", {}), "headless": settings.headless}}

    logger = setup_logger(
        "",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        config=config.get("logging"),
    )
    logger.info("[API] Starting up with %s", settings.config_path)

    app.state.platform = PlaywrightTabPlatform(config)
    await app.state.platform.start()
    app.state.orchestrator = SearchOrchestrator.from_config(app.state.platform, config)
    logger.info("[API] Suppliers: %s", ", ".join(app.state.orchestrator.suppliers.keys()))

    yield

    logger.info("[API] Shutting down...")
    await app.state.platform.stop()


# Create FastAPI application
app = FastAPI(
    title="Parts Search API",
    version="1.0.0",
    description="""
    Searches supplier catalogs (Mobilax, Utopya, ...) through browser tabs
    and returns structured product offers.
    """,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(search.router, prefix="/api", tags=["search"])
app.include_router(health.router, prefix="/api", tags=["health"])


@app.get("/")
def root():
    """
    Root endpoint.

    Returns basic service information.
    """
    return {
        "status": "ok",
        "service": "parts-search-api",
        "version": "1.0.0",
        "docs": "/api/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.api.main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,
        log_level="info",
    )
