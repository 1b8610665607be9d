# rentease/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rentease.config import ALLOWED_ORIGINS
from rentease.errors import RateLimitedError, RentalError
from rentease.logging_config import setup_logging
from rentease.middleware import RequestIDMiddleware
from rentease.routes.analytics import router as analytics_router
from rentease.routes.bookings import router as bookings_router
from rentease.routes.health import router as health_router
from rentease.routes.metrics import router as metrics_router
from rentease.routes.notifications import router as notifications_router
from rentease.routes.otp import router as otp_router
from rentease.routes.payments import router as payments_router
from rentease.routes.properties import router as properties_router
from rentease.routes.reviews import router as reviews_router
from rentease.routes.wishlist import router as wishlist_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="RentEase API",
    description="Property rentals: catalog, bookings, availability and manual QR payments",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(RentalError)
async def rental_error_handler(request: Request, exc: RentalError) -> JSONResponse:
    """Map domain errors to their HTTP status with a stable error code."""
    logger.info(
        "request_rejected",
        error=exc.code,
        status_code=exc.status_code,
        detail=exc.message,
        **{k: str(v) for k, v in exc.context.items()},
    )
    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(properties_router, prefix="/api", tags=["Properties"])
app.include_router(bookings_router, prefix="/api", tags=["Bookings"])
app.include_router(payments_router, prefix="/api", tags=["Payments"])
app.include_router(wishlist_router, prefix="/api", tags=["Wishlist"])
app.include_router(reviews_router, prefix="/api", tags=["Reviews"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])
app.include_router(analytics_router, prefix="/api", tags=["Analytics"])
app.include_router(otp_router, prefix="/api", tags=["OTP"])


@app.on_event("startup")
def startup_event() -> None:
    """Initialize application on startup."""
    from rentease.db.engine import check_engine_health

    logger.info("FastAPI application starting up...")

    if not check_engine_health():
        logger.warning("database_unreachable_at_startup")

    logger.info("FastAPI application initialized")
