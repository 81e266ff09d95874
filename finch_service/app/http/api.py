from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI

from finch_service import __version__
from finch_service.app.http.routers.chat import router as chat_router
from finch_service.app.http.routers.health import router as health_router
from finch_service.app.http.routers.tools import router as tools_router
from finch_service.app.http.routers.users import router as users_router
from finch_service.core.factory import ServiceFactory
from finch_service.core.logging import logger


def create_app(factory: Optional[ServiceFactory] = None) -> FastAPI:
    """Create and configure the FastAPI application with DI"""
    factory = factory or ServiceFactory()
    chat_service = factory.get_chat_service()
    hydrate = bool(factory.config.get("history", {}).get("hydrate_on_startup", False))
    channel_router = factory.get_channel_router() if factory.config.get("channels") else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Finch API")
        if hydrate:
            await chat_service.agent.load_history()
        if channel_router is not None:
            await channel_router.start()
        try:
            yield
        finally:
            logger.info("Shutting down Finch API")
            if channel_router is not None:
                await channel_router.stop()
            await factory.get_provider().close()
            await factory.get_store().close()

    app = FastAPI(title="Finch API", version=__version__, lifespan=lifespan)
    # store service on app state
    app.state.chat_svc = chat_service
    app.state.factory = factory

    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(chat_router)
    v1_router.include_router(health_router)
    v1_router.include_router(tools_router)
    v1_router.include_router(users_router)

    app.include_router(v1_router)
    return app
