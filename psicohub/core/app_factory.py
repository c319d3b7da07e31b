"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from psicohub.api.routes import health_router, limits_router
from psicohub.core.config import settings
from psicohub.core.exception_handlers import setup_exception_handlers
from psicohub.core.logging import configure_logging
from psicohub.core.middleware import request_id_middleware
from psicohub.core.rate_limit import close_rate_limiter


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_rate_limiter()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="PsicoHub API",
        description=(
            "API do PsicoHub, gestão de consultório para psicólogos. "
            "Rotas sensíveis (login, cadastro, redefinição de senha, exclusões) "
            "são protegidas por rate limit com janela fixa, compartilhado via "
            "Redis quando configurado."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
