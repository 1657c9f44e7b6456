"""FastAPI application factory for primehooks."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from primehooks.common.config import get_settings
from primehooks.common.logging import setup_logging
from primehooks.common.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from primehooks.deps import get_db, get_trigger_engine
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await get_trigger_engine().aclose()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from primehooks.organizations.router import router as organization_router
    from primehooks.webhooks.router import router as webhook_router
    from primehooks.assignments.router import router as assignment_router

    prefix = settings.api_prefix
    app.include_router(organization_router, prefix=prefix, tags=["organizations"])
    app.include_router(webhook_router, prefix=prefix, tags=["webhooks"])
    app.include_router(assignment_router, prefix=prefix, tags=["assignments"])

    return app
