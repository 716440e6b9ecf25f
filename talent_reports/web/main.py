from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from talent_reports.infrastructure.config import get_settings
from talent_reports.infrastructure.logging import get_logger, setup_logging
from talent_reports.web.routes import api

logger = get_logger(__name__)


def create_application() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.logging)

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(api.router)
    logger.info("Report API created for %s environment", settings.app.environment)
    return app


app = create_application()
