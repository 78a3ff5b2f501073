"""
Fonepay QR Tester Backend - FastAPI Application

Developer tool for the Fonepay Dynamic QR API: signs and forwards QR
generation and status-check requests, records every provider call and
relays asynchronous payment notifications.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .exceptions import QRTesterError, InputValidationError
from .services.call_recorder import CallRecorder
from .services.provider_gateway import ProviderGateway
from .api.qr import router as qr_router
from .api.calls import router as calls_router
from .api.signatures import router as signatures_router
from .api.environment import router as environment_router
from .api.relay import router as relay_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Create the call recorder and the provider gateway
    - Shutdown: Close the gateway's HTTP client
    """
    # Startup
    logger.info("Starting Fonepay QR tester backend...")
    logger.info(f"Demo mode: {settings.demo_mode}")
    logger.info(f"Sandbox endpoint: {settings.sandbox_base_url}")
    logger.info(f"Production endpoint: {settings.production_base_url}")

    app.state.call_recorder = CallRecorder(capacity=settings.call_log_capacity)
    app.state.provider_gateway = ProviderGateway(app.state.call_recorder, settings=settings)

    logger.info("Server startup complete")

    yield

    # Shutdown
    logger.info("Shutting down Fonepay QR tester backend...")

    try:
        await app.state.provider_gateway.aclose()
        logger.info("Provider gateway closed")
    except Exception as e:
        logger.error(f"Error closing provider gateway: {e}")


# Initialize FastAPI application
app = FastAPI(
    title="Fonepay QR Tester API",
    description="Signed request builder, provider gateway and notification relay for the Fonepay Dynamic QR API",
    version=VERSION,
    lifespan=lifespan,
)


# Configure CORS middleware for the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(QRTesterError)
async def qr_tester_error_handler(request: Request, exc: QRTesterError):
    """
    Handle QR tester errors with standardized response format.

    Status code comes from the exception class (400 for validation and
    signing, 409 relay not connected, 502/504 provider failures).
    """
    logger.warning(
        f"Request failed: {exc.error_code} - {exc.message}",
        extra={"details": exc.details}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle request body/query validation failures.

    Answered with 400 like every other caller-input error.
    """
    error = InputValidationError.from_errors(exc.errors())
    logger.warning(f"Validation error: {error.message}")

    return JSONResponse(
        status_code=400,
        content=error.to_dict(),
    )


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unexpected errors.

    Logs full exception for debugging but returns generic message to client.
    """
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "internal_error",
            "message": "An unexpected error occurred",
            "details": {"error_type": type(exc).__name__} if settings.demo_mode else {}
        },
    )


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Server status and version information
    """
    return {
        "status": "healthy",
        "version": VERSION,
        "demo_mode": settings.demo_mode,
    }


# Include API routers
app.include_router(qr_router, prefix="/api/qr", tags=["QR"])
app.include_router(calls_router, prefix="/api/calls", tags=["Call Log"])
app.include_router(signatures_router, prefix="/api", tags=["Signatures"])
app.include_router(environment_router, prefix="/api", tags=["Configuration"])
app.include_router(relay_router, prefix="/api", tags=["Relay"])


def run() -> None:
    """Console entry point."""
    import uvicorn
    uvicorn.run(
        "fonepay_tester.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.demo_mode,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
