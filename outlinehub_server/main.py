# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""OutlineHub Server - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from outlinehub_server.config import settings
from outlinehub_server.database import init_db
from outlinehub_server.routers import auth, invite, organizations, outlines
from outlinehub_server.services.errors import OrganizationError

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _get_cors_origins() -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    if not settings.resend_api_key and not settings.smtp_host:
        logger.info("No email provider configured (RESEND_API_KEY or SMTP_HOST); emails will only be logged")
    yield


app = FastAPI(
    title="OutlineHub Server",
    description="Multi-tenant outline dashboard API",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


@app.exception_handler(OrganizationError)
async def organization_error_handler(request: Request, exc: OrganizationError) -> JSONResponse:
    """Typed domain failures become {"detail", "code"} with the error's status."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Something went wrong. Please try again."},
    )


# API v1
app.include_router(auth.router, prefix="/api/v1")
app.include_router(organizations.router, prefix="/api/v1")
app.include_router(invite.router, prefix="/api/v1")
app.include_router(outlines.router, prefix="/api/v1")


@app.get("/")
async def root():
    """API info."""
    return {
        "name": "OutlineHub Server",
        "version": VERSION,
        "api": "/api/v1",
        "docs": "/api/docs",
    }


@app.get("/api/v1/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run("outlinehub_server.main:app", host=settings.host, port=settings.port)
