"""
Main FastAPI application for RPay.
Serves the H2H deposit API, the processor webhook, the merchant dashboard,
the admin panel, health probes and metrics.
"""
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from rpay.core.config import settings
from rpay.core.logging import configure_logging
from rpay.api.deps import get_atlantic_client
from rpay.api.routes import balance, h2h, health, webhook
from rpay.admin.ui import router as admin_router
from rpay.db.init_db import init_db
from rpay.db.session import engine
from rpay.utils.metrics import http_request_duration_seconds, router as metrics_router
from rpay.web import auth, dashboard, pages


logger = logging.getLogger("rpay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db(engine)
    logger.info("app_started")
    yield
    get_atlantic_client().close()
    logger.info("app_stopped")


app = FastAPI(
    title="RPay",
    description="QRIS payment gateway",
    version="1.0.0",
    lifespan=lifespan,
    # /docs is the merchant-facing HTML page
    docs_url=None,
    redoc_url=None,
)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie=settings.session_cookie_name,
    max_age=settings.session_max_age,
    same_site=settings.session_cookie_samesite,
    https_only=settings.session_cookie_secure,
)

# CORS
origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid.uuid4().hex
    start = time.time()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "request_failed",
            extra={"request_id": request_id, "path": request.url.path, "method": request.method},
        )
        raise
    latency = time.time() - start
    response.headers[settings.request_id_header] = request_id
    http_request_duration_seconds.labels(
        method=request.method, status_code=str(response.status_code)
    ).observe(latency)
    logger.info(
        "request_completed",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": round(latency * 1000, 1),
        },
    )
    return response


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(h2h.router)
app.include_router(webhook.router)
app.include_router(balance.router)
app.include_router(pages.router)
app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(admin_router)
app.include_router(metrics_router)


def run() -> None:
    import uvicorn

    uvicorn.run("rpay.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
