"""
Thought Constellation Server
Turns a flat list of short thoughts into a navigable constellation

Architecture:
- Analyzer: lexical connection graph, greedy merge, density sizing
- Layout Engine: cluster-aware target positions
- Insight Generator: patterns, synthesis, suggestions, path questions
- Optional providers: Ollama narrative and embedding clustering (fail-soft)
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from constellation.config.settings import settings, get_cors_config, is_provider_configured

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from constellation.api.routes.constellation import close_providers
    from constellation.services.llm.telemetry import get_telemetry_store

    # Connect telemetry (blocking Redis ping) before the first provider call
    await asyncio.to_thread(get_telemetry_store)
    yield
    await close_providers()
    logger.info("Provider clients closed")


def create_app() -> FastAPI:
    """Create and configure the constellation application."""

    app = FastAPI(
        title=settings.APP_NAME,
        description="Thought constellation analysis, layout and narration",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    cors_config = get_cors_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config["allow_origins"],
        allow_credentials=cors_config["allow_credentials"],
        allow_methods=cors_config["allow_methods"],
        allow_headers=cors_config["allow_headers"],
    )

    # Import routes (deferred to avoid circular imports)
    from constellation.api.routes import constellation, stats

    app.include_router(constellation.router)
    app.include_router(stats.router)

    @app.get("/")
    async def root():
        """Root endpoint - service information"""
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "operational",
            "endpoints": {
                "analyze": "/api/constellation/analyze",
                "organize": "/api/constellation/organize",
                "embeddings": "/api/constellation/embeddings",
                "synthesis": "/api/constellation/synthesis",
                "presets": "/api/constellation/presets",
                "config": "/api/constellation/config",
                "provider_stats": "/api/stats/llm/providers",
                "health": "/health",
                "docs": "/docs"
            }
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {
            "status": "ok",
            "service": "constellation-server",
            "version": settings.APP_VERSION,
            "providers": {
                "narrative": is_provider_configured("narrative"),
                "embedding": is_provider_configured("embedding"),
            },
        }

    logger.info(f"{settings.APP_NAME} initialized on port {settings.PORT}")
    return app


# Create app instance
app = create_app()
