import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CORS_ORIGINS, HOST, LOG_LEVEL, PORT
from database import init_db
from errors import AppError, NotFoundError, PersistenceError, RateLimitError, ValidationError
from routers import health, sync
from routers.sync import limiter, welcome_payload
from schemas.sync import collect_field_errors


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup: Initialize the database
    init_db()
    logger.info("PiSync Backend started")
    yield
    logger.info("PiSync Backend shutting down")


app = FastAPI(
    title="PiSync Backend API",
    description="Collects device sync reports and serves failure and usage statistics",
    version="1.0.0",
    docs_url="/api-docs",
    lifespan=lifespan,
)

# Configure rate limiter
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "HTTP %s %s -> %s (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response


def _error_response(error: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(error.to_dict()),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = collect_field_errors(exc.errors())
    logger.warning(
        "Validation error on %s %s: %s", request.method, request.url.path, details
    )
    return _error_response(ValidationError(details))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _error_response(NotFoundError(f"Can't find {request.url.path} on this server!"))
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
    # Details stay in the logs; the client gets the generic message
    logger.error(
        "Database error on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return _error_response(PersistenceError())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    client = request.client.host if request.client else "unknown"
    logger.warning("Rate limit exceeded by %s on %s: %s", client, request.url.path, exc.detail)
    return _error_response(RateLimitError())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return _error_response(PersistenceError())


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(sync.router, prefix="/api", tags=["sync"])


@app.get("/")
async def root():
    return welcome_payload()


def run():
    """Serve the API with uvicorn (console script `pisync-backend`)."""
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
