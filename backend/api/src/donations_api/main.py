"""FastAPI application for the team fundraiser donation backend.

This package provides REST endpoints for:
- Square payment webhooks
- The public leaderboard and team pages
- Donation checkout links
- Operator totals rebuild and drift checks
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from mangum import Mangum

from donations.utils.logging import configure_logging, get_logger
from donations_api.exceptions import register_exception_handlers
from donations_api.middleware.correlation import CorrelationIdMiddleware
from donations_api.middleware.cors import PublicPathCORSMiddleware
from donations_api.routes import (
    admin_router,
    health_router,
    leaderboard_router,
    teams_router,
    webhooks_router,
)

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Team Fundraiser Donation API",
    description="Square donation ingestion, team totals and leaderboard",
    version="0.1.0",
)

# Configure CORS for local development; the leaderboard answers any origin itself
app.add_middleware(
    PublicPathCORSMiddleware,
    public_paths=["/api/leaderboard"],
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

# Include routers under /api prefix
app.include_router(health_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")
app.include_router(teams_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Root health check endpoint at /api/ping."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "donations-api",
    }


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
            "donations_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["backend/api/src", "backend/shared/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
