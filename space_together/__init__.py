#space_together/__init__.py
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, settings as default_settings
from .core.database import MongoManager
from .core.errors import register_exception_handlers
from .core.logging import configure_logging, logger
from .core.security import TokenCodec
from .core.tenancy import TenantResolver
from .middleware.auth import AuthMiddleware
from .middleware.request_id import RequestIDMiddleware
from .middleware.tenant import TenantMiddleware
from .routes import auth, events, health, school, school_timetable
from .services.event_bus import EventBus


def create_app(
    settings: Optional[Settings] = None,
    mongo: Optional[MongoManager] = None,
    event_bus: Optional[EventBus] = None,
    codec: Optional[TokenCodec] = None,
) -> FastAPI:
    """Build the API. Collaborators passed in are used as-is; the rest come from settings.

    Without an injected ``mongo`` the startup hook checks the required settings,
    connects and pings the server, and fails startup with ``ConfigMissing`` or
    ``UpstreamUnavailable``.
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL, settings.LOG_DIR)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-tenant school management API",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.state.settings = settings
    app.state.mongo = mongo
    app.state.event_bus = event_bus or EventBus(
        queue_size=settings.EVENT_QUEUE_SIZE,
        heartbeat_interval=settings.SSE_HEARTBEAT_SECONDS,
    )
    app.state.token_codec = codec or TokenCodec.from_settings(settings)
    app.state.tenant_resolver = TenantResolver()
    owns_mongo = mongo is None

    register_exception_handlers(app)

    # Last added runs first: RequestID -> CORS -> Auth -> Tenant
    app.add_middleware(TenantMiddleware)
    app.add_middleware(AuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Include routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(school.router)
    app.include_router(school_timetable.router)
    app.include_router(events.router)

    @app.on_event("startup")
    async def startup_event():
        if app.state.mongo is None:
            settings.validate_startup()
            app.state.mongo = MongoManager.from_uri(
                settings.MONGO_URI,
                settings.MAIN_DB_NAME,
                settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
            )
            await app.state.mongo.ping(settings.MONGO_CONNECT_RETRIES)
        logger.info("Application startup completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.event_bus.close()
        if owns_mongo and app.state.mongo is not None:
            app.state.mongo.close()
        logger.info("Application shutdown completed")

    return app
