# backend/tutorsched/main.py
"""
FastAPI application for the scheduling engine.
"""

import logging

from fastapi import APIRouter, FastAPI, Response

from . import __version__
from .core.config import settings
from .core.constants import BRAND_NAME
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import sessions as sessions_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

metrics_router = APIRouter()


@metrics_router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """Prometheus exposition endpoint."""
    return Response(content=prometheus_metrics.get_metrics(), media_type=prometheus_metrics.get_content_type())


@metrics_router.get("/health", include_in_schema=False)
def health() -> dict[str, str]:
    return {"status": "ok"}


def create_app() -> FastAPI:
    app = FastAPI(title=BRAND_NAME, version=__version__)
    app.include_router(sessions_v1.router, prefix="/api/v1/sessions")
    app.include_router(metrics_router)
    return app


app = create_app()
