# =======================================================================================
# campus_access/main.py - FastAPI Application Entry Point
# =======================================================================================
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from . import __version__
from .config import Config, config
from .api.middleware import REQUEST_ID_HEADER, RequestIdMiddleware
from .api.routes.scan import router as scan_router
from .api.routes.credentials import router as credentials_router
from .api.routes.visitors import router as visitors_router
from .api.routes.status import router as status_router
from .api.routes.identities import router as identities_router
from .database import DatabaseManager, db_manager
from .logging_config import configure_logging, get_logger
from .models.schemas import ErrorResponse, HealthResponse
from .services import build_services
from .utils.exceptions import CampusAccessError, StorageUnavailableError
from .workers.expiry_worker import ExpiryWorker

logger = get_logger(__name__)


def create_app(
    db: Optional[DatabaseManager] = None,
    clock=None,
    settings: Config = config,
) -> FastAPI:
    db = db or db_manager

    app = FastAPI(
        title="Campus Access Control API",
        version=__version__,
        description="QR credential resolution and entry/exit recording for campus gates",
        debug=settings.API_DEBUG,
    )
    app.state.db = db
    app.state.settings = settings
    app.state.services = build_services(db, clock=clock, settings=settings)
    app.state.expiry_worker = ExpiryWorker(app.state.services.expirer, settings=settings)

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CampusAccessError)
    async def campus_access_error_handler(request: Request, exc: CampusAccessError):
        if isinstance(exc, StorageUnavailableError):
            logger.error("%s: %s", exc.code, exc.message, extra={"path": request.url.path})
        else:
            logger.info("%s: %s", exc.code, exc.message, extra={"path": request.url.path})

        body = ErrorResponse(code=exc.code, message=exc.message, details=exc.details)
        headers = {}
        req_id = getattr(request.state, "request_id", None)
        if req_id:
            headers[REQUEST_ID_HEADER] = req_id
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(mode="json"),
            headers=headers,
        )

    # Routers
    app.include_router(scan_router, prefix="/api", tags=["scan"])
    app.include_router(credentials_router, prefix="/api", tags=["credentials"])
    app.include_router(visitors_router, prefix="/api", tags=["visitors"])
    app.include_router(status_router, prefix="/api", tags=["status"])
    app.include_router(identities_router, prefix="/api", tags=["identities"])

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def api_health():
        try:
            db.fetch_one("SELECT 1")
            return HealthResponse(status="ok", dataAvailable=True, message=None)
        except StorageUnavailableError as e:
            return HealthResponse(status="error", dataAvailable=False, message=e.message)

    @app.on_event("startup")
    async def startup_event():
        configure_logging(
            log_level=settings.LOG_LEVEL,
            environment=settings.ENVIRONMENT,
            debug=settings.API_DEBUG,
        )
        if settings.DB_CREATE_SCHEMA:
            db.create_schema()
        app.state.expiry_worker.start()
        logger.info("Campus Access Control API started")

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.expiry_worker.stop()

    return app


app = create_app()
