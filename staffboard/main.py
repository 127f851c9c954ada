import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from staffboard.api.dependencies import NavigationRedirect
from staffboard.api.routes import router as views_router
from staffboard.config.settings import Settings, get_settings
from staffboard.context import AppContext
from staffboard.engine.lifetimes import ViewSuperseded
from staffboard.storage.state_store import StateStore
from staffboard.utils.logging_config import setup_logging

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    state: Optional[StateStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name}...")
        context = AppContext.build(settings, state=state, transport=transport)
        context.init()
        app.state.context = context
        try:
            yield
        finally:
            logger.info(f"Shutting down {settings.app_name}...")
            await context.teardown()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        description="Resource-management dashboard: projects, assignments and engineer capacity",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NavigationRedirect)
    async def navigation_redirect_handler(request: Request, exc: NavigationRedirect):
        logger.info(f"{request.method} {request.url.path} redirected to {exc.location}")
        return RedirectResponse(exc.location, status_code=status.HTTP_303_SEE_OTHER)

    @app.exception_handler(ViewSuperseded)
    async def superseded_handler(request: Request, exc: ViewSuperseded):
        return JSONResponse(
            {"view": exc.key, "data": {}, "notices": [], "superseded": True},
            status_code=status.HTTP_409_CONFLICT,
        )

    @app.get("/health", tags=["health"])
    def health_check(request: Request):
        """Health check endpoint for monitoring and load balancers."""
        context: AppContext = request.app.state.context
        return {
            "status": "ok",
            "app": settings.app_name,
            "version": VERSION,
            "state_store": context.state.health_check(),
        }

    app.include_router(views_router, tags=["views"])
    return app


app = create_app()
