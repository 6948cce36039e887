from fastapi import FastAPI
from fastapi_pagination import add_pagination

from app.config import get_settings
from app.infra.logging_config import LoggingConfig, get_logger
from app.routers import (
    connections_router,
    connectors_router,
    profiles_router,
    system,
    webhooks,
)


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    LoggingConfig(level="DEBUG" if testing else None)

    app = FastAPI(
        title="Open Lines Bridge",
        description="Message routing between Bitrix24 Open Lines and messengers",
        version="0.1.0",
    )

    app.include_router(webhooks.router)
    app.include_router(profiles_router.router)
    app.include_router(connections_router.router)
    app.include_router(connectors_router.router)
    app.include_router(system.router)
    add_pagination(app)

    get_logger().info(
        "%s started (environment=%s)", settings.app_name, settings.environment
    )
    return app


app = create_app()
