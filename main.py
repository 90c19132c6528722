import logging
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from settings.config import settings
from budgets.budget_routes import router as budget_router
from db.session import Database
from settings.logging_config import configure_logging

logger = logging.getLogger(__name__)


def get_app(database: Optional[Database] = None) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting %s", settings.APP_TITLE)
    app = FastAPI(title=settings.APP_TITLE)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Storage handle is owned by the app, not by module state
    app.state.db = database or Database.from_settings(settings)

    # DB lifecycle
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Initializing database")
        await app.state.db.connect()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Closing database")
        await app.state.db.dispose()

    # Routers
    app.include_router(budget_router)
    logger.info("Routers initialized successfully")

    # Health
    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        return {"status": "ok"}

    return app


# ASGI app instance
app = get_app()
