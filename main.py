"""Main FastAPI application"""
import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import config
from routes import limiter, router as api_router
from services.errors import StorageError
from services.storage import MongoTransactionGateway, TransactionGateway
from services.validation import violations_from_errors

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": False,
        },
    },
    "loggers": {
        "uvicorn": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": { # Root logger for our application
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

# --- Middleware for Request Body Size Limit ---
class LimitBodySizeMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_body_size: int):
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT"):
            content_length_header = request.headers.get("content-length")
            if content_length_header:
                try:
                    content_length = int(content_length_header)
                except ValueError:
                    logger.warning("Request rejected: Invalid Content-Length header.")
                    return Response("Invalid Content-Length header.", status_code=400)
                if content_length > self.max_body_size:
                    logger.warning(f"Request rejected: body size {content_length} exceeds limit {self.max_body_size}.")
                    return Response(f"Maximum request body size ({self.max_body_size} bytes) exceeded.", status_code=413)

        return await call_next(request)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Reports malformed request bodies with the same 400 shape as field violations."""
    violations = violations_from_errors(exc.errors())
    logger.warning(f"{request.method} {request.url.path}: rejected request body: {violations}")
    return JSONResponse(status_code=400, content={"detail": {"message": "Validation failed", "errors": violations}})


@asynccontextmanager
async def lifespan(app: FastAPI):
    # An injected gateway (tests, alternative backends) skips the MongoDB setup
    if app.state.gateway is not None:
        yield
        return

    client = None
    if not config.MONGODB_URI:
        logger.error("Skipping MongoDB connection: MONGODB_URI is not set. Data routes will answer 503.")
    else:
        logger.info(f"Connecting to MongoDB database '{config.DB_NAME}'...")
        try:
            client = AsyncIOMotorClient(config.MONGODB_URI, tz_aware=True, serverSelectionTimeoutMS=5000)
            gateway = MongoTransactionGateway(client[config.DB_NAME].get_collection(config.COLLECTION_NAME))
            await gateway.ping()
            logger.info("MongoDB ping successful.")
            await gateway.ensure_indexes()
            app.state.gateway = gateway
            logger.info(f"Successfully connected to MongoDB database: {config.DB_NAME}")
        except (StorageError, PyMongoError) as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            app.state.gateway = None

    app.state.db_client = client
    yield

    if client is not None:
        logger.info("Closing MongoDB connection...")
        client.close()
        logger.info("MongoDB connection closed.")
    app.state.gateway = None


def create_app(
    gateway: Optional[TransactionGateway] = None,
    default_owner_id: Optional[str] = None,
    allow_zero_amount: Optional[bool] = None,
    rate_limit_enabled: Optional[bool] = None,
    max_body_size: Optional[int] = None,
) -> FastAPI:
    """
    Builds the API. Arguments left as None fall back to the environment
    configuration in `config`. Passing a gateway bypasses MongoDB entirely.
    """
    app = FastAPI(
        title="Finance Tracker API",
        description="API for recording and managing income and expense transactions.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    app.state.db_client = None
    app.state.default_owner_id = config.DEFAULT_OWNER_ID if default_owner_id is None else default_owner_id
    app.state.allow_zero_amount = config.ALLOW_ZERO_AMOUNT if allow_zero_amount is None else allow_zero_amount

    # --- Rate Limiter (limits are declared per route in routes.py) ---
    limiter.enabled = config.RATE_LIMIT_ENABLED if rate_limit_enabled is None else rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # --- Middleware (last added runs first) ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        LimitBodySizeMiddleware,
        max_body_size=config.MAX_BODY_SIZE if max_body_size is None else max_body_size,
    )

    app.include_router(api_router, prefix="/api", tags=["api"])
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
