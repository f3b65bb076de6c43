"""
FastAPI application entry point for the restaurant booking engine.
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.api.deps import EXCEPTION_HANDLERS, get_service
from apps.api.routers import reservations, staff
from core.logging import get_logger, setup_logging
from core.settings import settings
from db.session import init_db
from services.reservation_service import ReservationService


# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "Starting restaurant booking engine",
        extra={
            "app_name": settings.app_name,
            "environment": settings.app_env,
            "version": "1.0.0"
        }
    )

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down restaurant booking engine")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Table availability, booking and reservation lifecycle",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

# Include routers
app.include_router(reservations.router, prefix=settings.api_prefix)
app.include_router(staff.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "environment": settings.app_env
    }


@app.get("/health")
def health_check(service: ReservationService = Depends(get_service)):
    """
    Health check endpoint.
    Reports whether the restaurant configuration is loaded.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.app_env,
        "restaurant": service.config.name,
        "auto_confirm": service.auto_confirm,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
