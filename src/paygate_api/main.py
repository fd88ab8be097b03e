"""FastAPI application for the payment callback service.

Endpoints:
- POST /api/payment/callback: provider callbacks
- GET /api/payment/mock-complete: development mock provider
- GET /api/ping: health check
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI
from mangum import Mangum

from paygate import __version__
from paygate.utils.logging import configure_logging
from paygate_api.exceptions import register_exception_handlers
from paygate_api.middleware.correlation import CorrelationIdMiddleware
from paygate_api.models.callback import HealthResponse
from paygate_api.routes.mock_payment import router as mock_payment_router
from paygate_api.routes.payment_callback import router as payment_callback_router

configure_logging(logging.INFO)

app = FastAPI(
    title="Payment Callback API",
    description="Receives and reconciles payment provider callbacks",
    version=__version__,
)

app.add_middleware(CorrelationIdMiddleware)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

# Include routers under /api prefix (CloudFront routes /api/* to API Gateway)
app.include_router(payment_callback_router, prefix="/api")
app.include_router(mock_payment_router, prefix="/api")


@app.get("/api/ping", response_model=HealthResponse)
async def ping() -> HealthResponse:
    """Root health check endpoint at /api/ping."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(UTC).isoformat(),
        service="paygate-callback",
    )


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "paygate_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
