import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from osoul.config import Settings
from osoul.database.db import Database
from osoul.errors import AppError
from osoul.routes import branches, collection, dashboard, dashboards, reports
from osoul.utils.auth import router as auth_router

API_NAME = "Osoul Collection Reporting API"
API_VERSION = "1.0.0"

# -----------------------------------------------------------------------------
# Logging base
# -----------------------------------------------------------------------------
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("uvicorn.error")


# -----------------------------------------------------------------------------
# Lifespan: the engine pool lives as long as the app
# -----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting %s env=%s cors=%s passwords=%s",
                API_NAME, settings.env, settings.cors_policy, settings.password_policy)
    try:
        yield
    finally:
        app.state.db.dispose()
        logger.info("Database pool disposed")


# -----------------------------------------------------------------------------
# CORS by policy
# -----------------------------------------------------------------------------
def _add_cors(app: FastAPI, settings: Settings) -> None:
    options = dict(
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
        expose_headers=["Content-Disposition"],  # file exports
        max_age=600,
    )
    if settings.cors_policy == "echo":
        # reflect any Origin back; credentials allowed
        app.add_middleware(CORSMiddleware, allow_origin_regex=".*", allow_credentials=True, **options)
    elif settings.cors_policy == "allowlist":
        app.add_middleware(CORSMiddleware, allow_origins=settings.cors_origins, allow_credentials=True, **options)
    else:
        app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=False, **options)


# -----------------------------------------------------------------------------
# Error handlers: every error body is {"error": ...}
# -----------------------------------------------------------------------------
def _add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")),
                "message": err.get("msg"),
            }
            for err in exc.errors()
        ]
        logger.info("400 validation %s %s: %s", request.method, request.url.path, details)
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(status_code=409, content={"error": "Resource already exists or violates a constraint"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    app = FastAPI(title=API_NAME, version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = Database(settings.database_url)

    _add_cors(app, settings)
    _add_exception_handlers(app)

    @app.get("/")
    def root():
        return {
            "name": API_NAME,
            "version": API_VERSION,
            "env": settings.env,
            "docs": "/docs",
            "endpoints": [
                "/api/v1/auth",
                "/api/v1/collection",
                "/api/v1/dashboard",
                "/api/v1/dashboards",
                "/api/v1/branches",
                "/api/v1/reports",
            ],
        }

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/ready")
    def ready():
        try:
            app.state.db.ping()
        except SQLAlchemyError:
            logger.exception("Readiness check failed")
            return JSONResponse(status_code=503, content={"error": "Database unavailable"})
        return {"ok": True, "database": "up"}

    app.include_router(auth_router)
    app.include_router(collection.router)
    app.include_router(dashboard.router)
    app.include_router(dashboards.router)
    app.include_router(branches.router)
    app.include_router(reports.router)
    return app


app = create_app()
