import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from datetime import datetime
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import structlog
import uuid

from marketplace.core.logging import configure_logging
from marketplace.core.config import settings
from marketplace.core.exceptions import APIError
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import SessionLocal, engine
from marketplace.models.user import User, UserType
from marketplace.api.v1 import auth, shops, products, reviews, categories, admin

API_VERSION = "1.0.0"


def standardized_error_response(status_code: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "success": False,
                "message": message,
                "data": None,
                "errors": errors or [],
                "timestamp": f"{datetime.utcnow().isoformat()}Z",
            }
        ),
    )


def _validation_errors(exc: RequestValidationError) -> list:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc) or "body", "message": message})
    return errors


configure_logging()
logger = structlog.get_logger()

if settings.ENVIRONMENT == "production" and settings.SENTRY_DSN:
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=0.1,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
            ],
        )
        logger.info("sentry_initialized")
    except Exception as e:
        # Application continues without Sentry monitoring
        logger.warning("sentry_init_failed", error=str(e))

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc"
)


@app.on_event("startup")
def validate_production_admin_bootstrap():
    """Fail fast in production when no admin account exists."""
    if settings.ENVIRONMENT != "production":
        return

    db = SessionLocal()
    try:
        admin_exists = (
            db.query(User.id)
            .filter(User.user_type == UserType.ADMIN, User.is_active == True)
            .first()
            is not None
        )
    finally:
        db.close()

    if not admin_exists:
        raise RuntimeError(
            "No active admin user found in production. "
            "Run marketplace.db.init_db before starting the API."
        )


# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return standardized_error_response(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        message="Too many requests. Please try again later.",
    )


# Local dev frontends are allowed outside production
cors_origins = list(settings.BACKEND_CORS_ORIGINS)
if settings.ENVIRONMENT != "production":
    for origin in ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]:
        if origin not in cors_origins:
            cors_origins.append(origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-Correlation-ID",
        "X-Requested-With",
    ],
    expose_headers=["X-Process-Time", "X-Correlation-ID", "X-Request-ID"],
    max_age=3600,
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    if settings.ENVIRONMENT == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())

    request.state.correlation_id = correlation_id
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.unbind_contextvars("correlation_id")

    response.headers["X-Correlation-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(
        "request_started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
    )

    response = await call_next(request)

    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
    )

    return response


# API v1
app.include_router(auth.router, prefix=f"{settings.API_V1_STR}/auth", tags=["Authentication"])
app.include_router(shops.router, prefix=f"{settings.API_V1_STR}/shops", tags=["Shops"])
app.include_router(products.router, prefix=f"{settings.API_V1_STR}/products", tags=["Products"])
app.include_router(reviews.router, prefix=f"{settings.API_V1_STR}/reviews", tags=["Reviews"])
app.include_router(categories.router, prefix=f"{settings.API_V1_STR}/categories", tags=["Categories"])
app.include_router(admin.router, prefix=f"{settings.API_V1_STR}/admin", tags=["Admin"])


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": API_VERSION
    }


@app.get("/health/database")
def database_health_check():
    try:
        with engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1")

        pool = engine.pool
        metrics = {
            "pool_class": pool.__class__.__name__,
            "size": pool.size() if hasattr(pool, "size") else None,
            "checked_out": pool.checkedout() if hasattr(pool, "checkedout") else None,
            "status": pool.status() if hasattr(pool, "status") else None,
        }
        return {"status": "healthy", "pool": metrics}
    except Exception as exc:
        return {
            "status": "unhealthy",
            "pool": {},
            "reason": f"Database connectivity check failed: {exc}",
        }


@app.get("/")
def root():
    return {
        "message": settings.PROJECT_NAME,
        "docs": f"{settings.API_V1_STR}/docs",
        "version": API_VERSION
    }


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    return standardized_error_response(
        status_code=exc.status_code,
        message=exc.message,
        errors=exc.errors,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail

    if isinstance(detail, str):
        message = detail
        errors = []
    elif isinstance(detail, list):
        message = "Request failed"
        errors = detail
    elif isinstance(detail, dict):
        message = detail.get("message", "Request failed")
        errors = detail.get("errors", [])
    else:
        message = "Request failed"
        errors = []

    response = standardized_error_response(
        status_code=exc.status_code,
        message=message,
        errors=errors,
    )
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return standardized_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Validation failed",
        errors=_validation_errors(exc),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_exception", error_type=type(exc).__name__, detail=str(exc))

    if settings.ENVIRONMENT != "production":
        return standardized_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message=str(exc) or "Internal server error",
            errors=[{"type": type(exc).__name__}],
        )

    return standardized_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Internal server error",
    )
