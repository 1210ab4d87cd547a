from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aicon_backend.config import load_settings
from aicon_backend.core.log import get_logger
from aicon_backend.infrastructure import HttpScrapeService, configure_scrape_service
from aicon_backend.routes import workspace

logger = get_logger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Aicon Canvas API", version="0.1.0")
    settings = load_settings()

    if settings.scrape_api_base:
        configure_scrape_service(HttpScrapeService(settings.scrape_api_base, timeout=settings.http_timeout))
    else:
        logger.info("AICON_SCRAPE_API_BASE not set; content ingestion is disabled")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(workspace.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Aicon Canvas API",
                "docs": "/docs",
                "health": "/api/workspaces",
            }
        )

    return app


app = create_app()
