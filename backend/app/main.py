# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from .core.config import settings
from .core.constants import ALLOWED_ORIGINS, API_DESCRIPTION, API_TITLE, API_V1_PREFIX, API_VERSION
from .errors import register_error_handlers
from .routes.v1 import (
    credits as credits_v1,
    health as health_v1,
    prometheus as prometheus_v1,
    recurring_series as recurring_series_v1,
    reservations as reservations_v1,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: log configuration on startup and shutdown."""
    logger.info(
        f"{API_TITLE} starting in {settings.environment} "
        f"(timezone {settings.space_timezone}, booking race lock "
        f"{'on' if settings.close_booking_race else 'off'})"
    )
    yield
    logger.info(f"{API_TITLE} shutting down...")


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


def create_app() -> FastAPI:
    application = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
        generate_unique_id_function=_unique_operation_id,
    )
    register_error_handlers(application)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    api_v1 = APIRouter(prefix=API_V1_PREFIX)
    # Static paths (/preview, /gaps) are declared before /{reservation_id} in the router.
    api_v1.include_router(reservations_v1.router, prefix="/reservations")
    api_v1.include_router(credits_v1.router, prefix="/credits")
    api_v1.include_router(recurring_series_v1.router, prefix="/recurring-series")
    application.include_router(api_v1)

    # Infrastructure routes (intentionally unversioned)
    application.include_router(health_v1.router)
    application.include_router(prometheus_v1.router, prefix="/metrics")
    return application


app = create_app()
