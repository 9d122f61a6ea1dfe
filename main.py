import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional
from uuid import uuid4

import anyio
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

from analytics import AnalyticsAggregator
from config import Settings, get_settings
from database import connect, ensure_indexes
from errors import register_exception_handlers
from logging_setup import get_logger, setup_logging
from ratelimit import FixedWindowRateLimiter, rate_limit_middleware
from repositories import ProjectRepository, TaskRepository, UserRepository
from routes import Services, build_routers
from security import BearerAuth, PasswordHasher, TokenService

logger = get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}


def build_services(settings: Settings, db: Database) -> Services:
    tokens = TokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        access_ttl=timedelta(hours=settings.access_token_ttl_hours),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )
    tasks = TaskRepository(db)
    projects = ProjectRepository(db)
    return Services(
        settings=settings,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        auth=BearerAuth(tokens),
        users=UserRepository(db),
        tasks=tasks,
        projects=projects,
        analytics=AnalyticsAggregator(tasks, projects),
    )


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


async def access_log(request: Request, call_next):
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=uuid4().hex[:12])
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
        client=request.client.host if request.client else None,
    )
    return response


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)
    if db is None:
        db = connect(settings)
    services = build_services(settings, db)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await anyio.to_thread.run_sync(ensure_indexes, db)
        logger.info("api_started", service=settings.service_name, port=settings.port)
        yield
        logger.info("api_stopped")

    app = FastAPI(
        title=settings.service_name,
        version=settings.service_version,
        lifespan=lifespan,
    )
    app.state.services = services

    register_exception_handlers(app)
    for router in build_routers(services):
        app.include_router(router)

    limiter = FixedWindowRateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)
    # last added runs first
    app.middleware("http")(rate_limit_middleware(limiter))
    app.middleware("http")(security_headers)
    app.middleware("http")(access_log)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
