from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging

from config.settings import Settings, setup_logging
from core.cookie_store import CookieStore
from core.tripay import GatewayError, TripayClient
from db.session import create_tables, make_engine, make_session_factory
from middleware.logging import ErrorLoggingMiddleware, LoggingMiddleware
from middleware.rate_limit import RateLimitMiddleware
from middleware.security import SecurityHeadersMiddleware
from utilities.response import error_response
from utilities.validate_env import validate_env_variables

# Import API routers
from api.payment import router as payment_router
from api.history import router as history_router
from api.cart import router as cart_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings: Settings = app.state.settings

    # Startup
    setup_logging(settings)
    logger.info("Starting Shiroine Payment Backend...")
    logger.info(
        f"Port: {settings.PORT} | Mode: {settings.TRIPAY_MODE} | "
        f"Environment: {settings.NODE_ENV or 'development'}"
    )
    validate_env_variables(settings)

    yield

    # Shutdown
    await app.state.gateway.aclose()
    app.state.engine.dispose()
    logger.info("Shutting down Shiroine Payment Backend...")

def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions"""
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = "Endpoint not found"
        else:
            message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(message=message),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are client errors, reported like the other 400s"""
        logger.info(f"Invalid request body for {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_response(message="Invalid request body")
        )

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        """Relay upstream gateway failures"""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(message=exc.message, error=exc.error)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response(
                message="Something went wrong!",
                error=str(exc) if settings.NODE_ENV == "development" else None
            )
        )

def create_app(settings: Optional[Settings] = None, gateway: Optional[TripayClient] = None) -> FastAPI:
    """Build the application around one explicit Settings instance"""
    settings = settings or Settings()

    app = FastAPI(
        title="Shiroine Payment API",
        description="Tripay checkout proxy for Shiroine premium plans",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.gateway = gateway or TripayClient(settings)
    app.state.cookie_store = CookieStore(settings)
    app.state.engine = make_engine(settings.DATABASE_URL)
    app.state.session_factory = make_session_factory(app.state.engine)

    # Create database tables
    create_tables(app.state.engine)
    logger.info("Database tables created/verified")

    # Rate limiting sits inside CORS so 429s still carry CORS headers
    if settings.RATE_LIMIT_ENABLED:
        app.add_middleware(
            RateLimitMiddleware,
            redis_url=settings.REDIS_URL,
            max_requests=settings.RATE_LIMIT_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW,
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorLoggingMiddleware)
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app, settings)

    # Health check
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mode": settings.TRIPAY_MODE
        }

    # Include routers
    app.include_router(payment_router)
    app.include_router(history_router)
    app.include_router(cart_router)

    return app

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=Settings().PORT,
        log_level="info"
    )
