# backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from database import Database
from utils.dashboard_cache import CacheManager
from utils.exceptions import (
    ApiException,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InternalServerException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from utils.logging_setup import setup_logging
from utils.permissions import RoleAccessControl
from utils.responses import error_response, success_response

load_dotenv()

# Router imports
from routes.admin import router as admin_router  # noqa: E402
from routes.auth import router as auth_router  # noqa: E402
from routes.categories import router as categories_router  # noqa: E402
from routes.dashboard import router as dashboard_router  # noqa: E402
from routes.logs import router as logs_router  # noqa: E402
from routes.orders import router as orders_router  # noqa: E402
from routes.products import router as products_router  # noqa: E402
from routes.sales_performance import router as sales_performance_router  # noqa: E402
from routes.shops import router as shops_router  # noqa: E402
from routes.stock import router as stock_router  # noqa: E402
from routes.suppliers import router as suppliers_router  # noqa: E402

logger = logging.getLogger(__name__)

# Starlette's own HTTP errors (unknown route, wrong method) in envelope form
_HTTP_ERRORS = {
    400: BadRequestException,
    401: UnauthorizedException,
    403: ForbiddenException,
    404: NotFoundException,
    409: ConflictException,
}


def _validation_details(errors) -> list:
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiException)
    async def api_exception_handler(request: Request, exc: ApiException):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(ValidationException(_validation_details(exc.errors())))

    @app.exception_handler(ValidationError)
    async def pydantic_validation_handler(request: Request, exc: ValidationError):
        return error_response(ValidationException(_validation_details(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        exc_class = _HTTP_ERRORS.get(exc.status_code)
        if exc_class is None:
            api_exc = ApiException(str(exc.detail), code="BAD_REQUEST" if exc.status_code < 500 else None)
            api_exc.status_code = exc.status_code
            return error_response(api_exc)
        return error_response(exc_class(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Details stay in the server log
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(InternalServerException())


def create_app(settings: Optional[Settings] = None, cache: Optional[CacheManager] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        db = Database(settings.DATABASE_URL, echo=settings.DB_ECHO)
        db.create_all()
        app.state.db = db
        logger.info("Database ready (%s)", db.engine.url.render_as_string(hide_password=True))
        yield
        app.state.cache.close()
        db.dispose()

    app = FastAPI(title="Shop Inventory API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.access_control = RoleAccessControl()
    # Redis-backed, shared by every worker
    app.state.cache = cache or CacheManager.from_url(settings.REDIS_URL, ttl=settings.DASHBOARD_CACHE_TTL_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Router registration
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(logs_router)
    app.include_router(products_router)
    app.include_router(categories_router)
    app.include_router(shops_router)
    app.include_router(suppliers_router)
    app.include_router(stock_router)
    app.include_router(orders_router)
    app.include_router(dashboard_router)
    app.include_router(sales_performance_router)

    @app.get("/health", tags=["Health"])
    def health():
        return success_response({"status": "ok"})

    return app


app = create_app()
