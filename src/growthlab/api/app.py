"""FastAPI application factory.

- Validates inputs, reads/writes DB through repo and lab services
- Returns payloads for the dashboard UI
- Forbidden: metric math and variant migration logic
"""

from __future__ import annotations

import logging
import os
from typing import Generator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from growthlab.db.repo import DbSession
from growthlab.db.session import get_session

logger = logging.getLogger(__name__)

CORS_ORIGINS_ENV = "GROWTHLAB_CORS_ORIGINS"
DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
    "http://localhost:3000",
]


def get_db_session() -> Generator[DbSession, None, None]:
    """Dependency to get database session.

    Yields:
        Database session that is automatically closed after request.
    """
    session = get_session()
    try:
        yield session
    finally:
        session.close()


def _cors_origins() -> list[str]:
    raw = os.environ.get(CORS_ORIGINS_ENV, "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or DEFAULT_CORS_ORIGINS


def create_app() -> FastAPI:
    """Create FastAPI application.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Growthlab API",
        description="A/B test lab: variant documents and lab metrics",
        version="0.1.0",
    )

    origins = _cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.debug(f"CORS origins: {origins}")

    # Include routes
    from growthlab.api.routes import metrics, variants

    app.include_router(metrics.router, prefix="/api")
    app.include_router(variants.router, prefix="/api")

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


# Default app instance
app = create_app()
