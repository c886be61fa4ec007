"""API routes package.

Routers are organized by domain and registered in main.py with the /api
prefix:

- health: Health check
- webhooks: Square payment webhooks
- leaderboard: Public ranked totals
- teams: Team listing, detail and donation checkout
- admin: Totals rebuild and drift report
"""

from donations_api.routes.admin import router as admin_router
from donations_api.routes.health import router as health_router
from donations_api.routes.leaderboard import router as leaderboard_router
from donations_api.routes.teams import router as teams_router
from donations_api.routes.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "health_router",
    "leaderboard_router",
    "teams_router",
    "webhooks_router",
]
