import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from .auth import Authenticator
from .config import Settings
from .db import init_db, make_engine, make_sessionmaker
from .errors import StorefrontError
from .metrics import LAT, REQS
from .routes import orders_router, products_router, users_router

logger = logging.getLogger(__name__)


def describe_validation_errors(errors) -> str:
    """Collapse pydantic errors into one line, e.g. "items.0.quantity: Input should be greater than 0"."""
    if not errors:
        return "invalid request"
    err = errors[0]
    loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    msg = str(err.get("msg", "invalid value"))
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{loc}: {msg}" if loc else msg


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ---- Startup: ensure tables exist (idempotent) ----
    init_db(app.state.engine)
    yield
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    app_name = settings.app_name

    app = FastAPI(title=app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = make_engine(settings.database_url)
    app.state.sessionmaker = make_sessionmaker(app.state.engine)
    app.state.authenticator = Authenticator(settings.jwt_secret, settings.jwt_expiration)

    # ---- Prometheus metrics ----
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        REQS.labels(app_name, request.url.path, request.method, response.status_code).inc()
        LAT.labels(app_name, request.url.path, request.method).observe(time.time() - start)
        return response

    # ---- Errors: every failure is {"error": "..."} ----
    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": describe_validation_errors(exc.errors())},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError):
        logger.error("database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "storage failure"},
        )

    @app.get("/health", response_class=PlainTextResponse)
    def health():
        return "ok"

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    for router in (users_router, products_router, orders_router):
        app.include_router(router, prefix=settings.api_prefix)

    return app
