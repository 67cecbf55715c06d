# backend/app/main.py
"""
FastAPI application for the BookOn settlement backend.

Mounts the versioned settlement API under /api/v1 and the Prometheus
scrape endpoint at /metrics.
"""

import logging
import time
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from .core.config import settings
from .core.constants import ALLOWED_ORIGINS, API_DESCRIPTION, API_TITLE, API_VERSION
from .core.exceptions import DomainException
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes import prometheus
from .routes.v1 import cancellations as cancellations_v1
from .routes.v1 import franchise_fees as franchise_fees_v1
from .routes.v1 import health as health_v1
from .routes.v1 import tfc as tfc_v1
from .routes.v1 import wallet as wallet_v1

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def record_request_metrics(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        prometheus_metrics.record_http_request(
            request.method, endpoint, time.perf_counter() - start, response.status_code
        )
        return response

    @app.exception_handler(DomainException)
    async def handle_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
        # Routers convert domain errors themselves; this catches anything that slips through
        http_exc = exc.to_http_exception()
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(cancellations_v1.router, prefix="/cancellations")
    api_v1.include_router(franchise_fees_v1.router, prefix="/franchise-fees")
    api_v1.include_router(tfc_v1.router, prefix="/tfc")
    api_v1.include_router(wallet_v1.router, prefix="/wallet")
    api_v1.include_router(health_v1.router, prefix="/health")

    app.include_router(api_v1)
    app.include_router(prometheus.router)

    logger.info("BookOn settlement API started (environment=%s)", settings.environment)
    return app


app = create_app()
