"""
prize_portal/main.py
FastAPI application: routers, CORS, rate limiting and error rendering.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from prize_portal import __version__
from prize_portal.config import get_settings
from prize_portal.database import close_db, init_db
from prize_portal.errors import ERROR_MAPPING, ErrorCode, error_response, get_error_summary, internal_error_response
from prize_portal.exceptions import CipherError, PortalError
from prize_portal.routes import api_router
from prize_portal.routes.auth import limiter
from prize_portal.utils.executor import shutdown_executor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    await init_db()
    logger.info("Database connected successfully")

    yield

    logger.info("Shutting down application...")
    await close_db()
    shutdown_executor()


app = FastAPI(
    title="Prize Disbursement Portal API",
    description="Prize money disbursement for student organizations",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

# Attach rate limiter to the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    settings.frontend_url,
]
origins.extend(settings.allowed_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys(origins)),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if isinstance(exc, CipherError):
        # Fixed message only; nothing about the stored data
        logger.error(f"Cipher failure on {request.url.path}: {exc.code}")
        return error_response(exc.status_code, exc.error, "Stored bank data could not be read", exc.code)

    if exc.status_code >= 500:
        logger.error(f"{exc.error} on {request.url.path}: {exc.code}")
    else:
        logger.warning(f"{exc.error} on {request.url.path}: {exc.code} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg"),
            "type": error.get("type")
        })

    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation Error",
        "Request validation failed",
        ErrorCode.VALIDATION_ERROR,
        {"errors": error_details}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP exception on {request.url.path}: {exc.status_code}")
    label, code = ERROR_MAPPING.get(exc.status_code, ("Error", ErrorCode.INTERNAL_ERROR))
    return error_response(exc.status_code, label, str(exc.detail), code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    return internal_error_response(exc, request.url.path)


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": __version__
    }


@app.get("/api/errors/health", tags=["Health"])
async def error_handling_health():
    return get_error_summary()


app.include_router(api_router)
